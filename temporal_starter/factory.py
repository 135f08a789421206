# temporal_starter/factory.py
# workflow 客户端工厂
#
# 功能说明：
# 1. 按 workflows 配置生成启动 workflow 的默认选项（任务队列、执行超时）
# 2. 用这些选项启动 / 执行 workflow
# 3. 为测试创建挂好注入拦截器的 Worker
#
# 使用方法：
#   factory = WorkflowFactory(store, client, options_configuration, injector)
#   handle = await factory.start_workflow(GreetingWorkflowImpl, "World", id="greet-1")
#   result = await factory.execute_workflow(GreetingWorkflowImpl, "World", id="greet-2")

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, Optional, Union

from temporalio.client import Client, WorkflowHandle
from temporalio.worker import UnsandboxedWorkflowRunner, Worker

from temporal_starter.core.errors import MissingTaskQueue
from temporal_starter.core.logging import get_logger
from temporal_starter.declarations import unit_of
from temporal_starter.injection import StubInjector
from temporal_starter.options.modifiers import TemporalOptionsConfiguration
from temporal_starter.options.records import WorkflowOptions
from temporal_starter.options.store import ConfigurationStore
from temporal_starter.temporal.client import DEFAULT_ACTIVITY_THREADS, activity_methods
from temporal_starter.temporal.interceptor import StubInjectionInterceptor

logger = get_logger(__name__)


def workflow_name(workflow: Union[type, str]) -> str:
    """配置中的名称：@temporal_workflow 的名称，没有时用类名"""
    if isinstance(workflow, str):
        return workflow
    descriptor = unit_of(workflow)
    return descriptor.name if descriptor is not None else workflow.__name__


class WorkflowFactory:
    """
    workflow 客户端工厂

    Attributes:
        store: 配置存储
        client: 默认使用的 Temporal Client
        options_configuration: 全局钩子
        injector: 测试 Worker 上使用的注入器
    """

    def __init__(
        self,
        store: ConfigurationStore,
        client: Optional[Client] = None,
        options_configuration: Optional[TemporalOptionsConfiguration] = None,
        injector: Optional[StubInjector] = None,
    ):
        self.store = store
        self.client = client
        self.options_configuration = options_configuration
        self.injector = injector

    def default_options(self, workflow: Union[type, str]) -> WorkflowOptions:
        """
        启动 workflow 的默认选项

        Raises:
            ConfigurationMissing: 没有配置
            MissingTaskQueue: 任务队列为空
        """
        name = workflow_name(workflow)
        option = self.store.get_options(name)
        if not option.task_queue:
            raise MissingTaskQueue(name)

        options = WorkflowOptions(
            task_queue=option.task_queue,
            execution_timeout=option.execution_timeout,
        )
        if self.options_configuration is not None:
            options = self.options_configuration.modify_default_stub_options(options)
        return options

    def _options_for(self, workflow_cls: type, id: str, overrides: dict) -> WorkflowOptions:
        options = self.default_options(workflow_cls)
        options.id = id
        for key, value in overrides.items():
            if not hasattr(options, key):
                raise TypeError(f"未知的 workflow 选项: {key}")
            setattr(options, key, value)
        return options

    def _client(self, client: Optional[Client]) -> Client:
        client = client or self.client
        if client is None:
            raise RuntimeError("WorkflowFactory 没有可用的 Temporal Client")
        return client

    async def start_workflow(
        self,
        workflow_cls: type,
        *args: Any,
        id: str,
        client: Optional[Client] = None,
        run_method: str = "run",
        **overrides: Any,
    ) -> WorkflowHandle:
        """
        启动 workflow，不等待结果

        Args:
            workflow_cls: workflow 实现类
            *args: workflow 参数
            id: workflow ID
            client: 指定 Client（测试环境），默认使用 self.client
            run_method: @workflow.run 方法名
            **overrides: 覆盖默认选项（task_queue、execution_timeout 等）

        Returns:
            WorkflowHandle: workflow 句柄
        """
        options = self._options_for(workflow_cls, id, overrides)
        logger.info(f"[WorkflowFactory] 启动 workflow: {workflow_cls.__name__} id={id} task_queue={options.task_queue}")
        return await self._client(client).start_workflow(
            getattr(workflow_cls, run_method),
            args=list(args),
            **options.to_kwargs(),
        )

    async def execute_workflow(
        self,
        workflow_cls: type,
        *args: Any,
        id: str,
        client: Optional[Client] = None,
        run_method: str = "run",
        **overrides: Any,
    ) -> Any:
        """启动 workflow 并等待结果"""
        handle = await self.start_workflow(
            workflow_cls, *args, id=id, client=client, run_method=run_method, **overrides
        )
        return await handle.result()

    def make_worker(
        self,
        client: Client,
        *workflow_classes: type,
        activities: Iterable[Any] = (),
    ) -> Worker:
        """
        创建测试用的 Worker

        任务队列取第一个 workflow 的配置；activities 可以是 activity 函数，也可以是实现实例

        Raises:
            ConfigurationMissing: workflow 没有配置
        """
        if not workflow_classes:
            raise ValueError("make_worker 至少需要一个 workflow 类")

        task_queues = {self.default_options(cls).task_queue for cls in workflow_classes}
        task_queue = self.default_options(workflow_classes[0]).task_queue
        if len(task_queues) > 1:
            logger.warning(f"[WorkflowFactory] workflow 配置了不同的任务队列 {sorted(task_queues)}，统一使用 {task_queue}")

        activity_callables = []
        for activity in activities:
            # 实现实例展开为绑定方法，activity 函数原样使用
            activity_callables.extend(activity_methods(activity) or [activity])

        interceptors = []
        if self.injector is not None:
            interceptors.append(StubInjectionInterceptor(self.injector))

        return Worker(
            client,
            task_queue=task_queue,
            workflows=list(workflow_classes),
            activities=activity_callables,
            activity_executor=ThreadPoolExecutor(max_workers=DEFAULT_ACTIVITY_THREADS),
            workflow_runner=UnsandboxedWorkflowRunner(),
            interceptors=interceptors,
        )

# temporal_starter/temporal/client.py
# 基于 temporalio 的编排客户端
#
# 提供：
# - connect_client: 按分层配置连接 Temporal Server
# - TemporalOrchestrationClient: 创建 activity stub 和 Worker
# - TemporalWorkerHandle: 收集 workflow / activity，启动时创建 temporalio Worker
#
# 使用方法：
#   client = await connect_client(properties, options_configuration)
#   orchestration = TemporalOrchestrationClient(client)
#   injector = StubInjector(resolver, orchestration)
#   orchestration.injector = injector

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional

from temporalio.client import Client
from temporalio.service import KeepAliveConfig
from temporalio.worker import UnsandboxedWorkflowRunner, Worker

from temporal_starter.core.logging import get_logger
from temporal_starter.injection import StubInjector
from temporal_starter.options.modifiers import TemporalOptionsConfiguration
from temporal_starter.options.properties import TemporalProperties
from temporal_starter.options.records import ActivityOptions, WorkerOptions
from temporal_starter.temporal.interceptor import StubInjectionInterceptor
from temporal_starter.temporal.stubs import ActivityStub

logger = get_logger(__name__)

# activity 线程池默认大小（未配置 activityPoolSize 时）
DEFAULT_ACTIVITY_THREADS = 10


# ==================== 连接 ====================

@dataclass
class ClientOptions:
    """
    Client.connect 的参数

    Attributes:
        target_host: host:port
        namespace: 命名空间
        tls: 是否使用 TLS
        keep_alive_config: keep-alive 设置，None 表示关闭
    """
    target_host: str
    namespace: str = "default"
    tls: bool = False
    keep_alive_config: Optional[KeepAliveConfig] = field(default_factory=KeepAliveConfig)


def build_client_options(properties: TemporalProperties) -> ClientOptions:
    """由分层配置生成连接参数"""
    options = ClientOptions(
        target_host=f"{properties.host}:{properties.port}",
        namespace=properties.namespace or "default",
        tls=bool(properties.use_ssl),
    )

    tuning = properties.workflow_service_stub_options
    if tuning is not None:
        if tuning.enable_keep_alive is False:
            options.keep_alive_config = None
        elif tuning.keep_alive_time is not None or tuning.keep_alive_timeout is not None:
            default = KeepAliveConfig()
            options.keep_alive_config = KeepAliveConfig(
                interval_millis=(
                    int(tuning.keep_alive_time.total_seconds() * 1000)
                    if tuning.keep_alive_time is not None else default.interval_millis
                ),
                timeout_millis=(
                    int(tuning.keep_alive_timeout.total_seconds() * 1000)
                    if tuning.keep_alive_timeout is not None else default.timeout_millis
                ),
            )
    return options


async def connect_client(
    properties: TemporalProperties,
    options_configuration: Optional[TemporalOptionsConfiguration] = None,
) -> Client:
    """
    连接 Temporal Server

    Args:
        properties: 分层配置（已补齐连接参数）
        options_configuration: 全局钩子，可修改连接参数

    Returns:
        Client: Temporal Client
    """
    options = build_client_options(properties)
    if options_configuration is not None:
        options = options_configuration.modify_client_options(options)

    logger.info(f"连接 Temporal Server: {options.target_host} (namespace={options.namespace})")
    client = await Client.connect(
        options.target_host,
        namespace=options.namespace,
        tls=options.tls,
        keep_alive_config=options.keep_alive_config,
    )
    logger.info("Temporal Client 连接成功")
    return client


# ==================== Worker ====================

def activity_methods(instance: Any) -> list:
    """实例上所有带 @activity.defn 的绑定方法"""
    methods = []
    for name in dir(type(instance)):
        attribute = getattr(type(instance), name, None)
        if getattr(attribute, "__temporal_activity_definition", None) is not None:
            methods.append(getattr(instance, name))
    return methods


class TemporalWorkerHandle:
    """
    一个任务队列上的 Worker

    注册阶段只收集 workflow 类型和 activity 实例，start() 时才创建 temporalio Worker
    """

    def __init__(
        self,
        client: Client,
        task_queue: str,
        options: WorkerOptions,
        injector: Optional[StubInjector] = None,
    ):
        self.client = client
        self.task_queue = task_queue
        self.options = options
        self.injector = injector
        self.workflow_types: list[type] = []
        self.activity_instances: list[Any] = []
        self.worker: Optional[Worker] = None
        self._task: Optional[asyncio.Task] = None

    def register_workflow_implementation_types(self, *types: type) -> None:
        self.workflow_types.extend(types)

    def register_activities_implementations(self, *instances: Any) -> None:
        self.activity_instances.extend(instances)

    def build_worker(self) -> Worker:
        """创建 temporalio Worker"""
        activities = []
        for instance in self.activity_instances:
            activities.extend(activity_methods(instance))

        interceptors = []
        if self.injector is not None:
            interceptors.append(StubInjectionInterceptor(self.injector))

        # 禁用 sandbox：workflow 实例上的 stub 由拦截器在 Worker 进程内注入
        return Worker(
            self.client,
            task_queue=self.task_queue,
            workflows=self.workflow_types,
            activities=activities,
            activity_executor=ThreadPoolExecutor(
                max_workers=self.options.max_concurrent_activities or DEFAULT_ACTIVITY_THREADS
            ),
            workflow_runner=UnsandboxedWorkflowRunner(),
            interceptors=interceptors,
            **self.options.to_kwargs(),
        )

    async def start(self) -> None:
        """创建 Worker 并在后台运行"""
        if self._task is not None:
            return
        if not self.workflow_types and not self.activity_instances:
            logger.warning(f"[Worker] {self.task_queue} 上没有注册任何 workflow 或 activity，不启动")
            return

        self.worker = self.build_worker()
        logger.info(
            f"[Worker] 启动 {self.task_queue}: "
            f"workflows={[w.__name__ for w in self.workflow_types]}, "
            f"activities={[type(a).__name__ for a in self.activity_instances]}"
        )
        self._task = asyncio.create_task(self.worker.run(), name=f"worker:{self.task_queue}")
        self._task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning(f"[Worker] {self.task_queue} 被取消")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[Worker] {self.task_queue} 异常退出: {error}", exc_info=error)

    async def wait(self) -> None:
        """
        等待 Worker 运行结束

        取消等待不会取消 Worker 本身

        Raises:
            Worker 异常退出时的异常
        """
        if self._task is None:
            return
        await asyncio.shield(self._task)

    async def shutdown(self) -> None:
        """
        停止 Worker，等待运行中的任务结束

        Raises:
            Worker 运行或停止时的异常
        """
        if self.worker is None or self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            await self.worker.shutdown()
        await task
        logger.info(f"[Worker] {self.task_queue} 已停止")


class TemporalOrchestrationClient:
    """
    编排客户端

    同时提供 StubInjector 需要的 new_activity_stub 和 WorkerRegistrar 需要的 new_worker

    Attributes:
        client: Temporal Client
        injector: 挂到 Worker 拦截器上的注入器（可以在创建后再设置）
    """

    def __init__(self, client: Client, injector: Optional[StubInjector] = None):
        self.client = client
        self.injector = injector

    def new_activity_stub(self, element_type: type, options: ActivityOptions) -> ActivityStub:
        return ActivityStub(element_type, options)

    def new_worker(self, task_queue: str, options: WorkerOptions) -> TemporalWorkerHandle:
        return TemporalWorkerHandle(self.client, task_queue, options, self.injector)

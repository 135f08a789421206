# temporal_starter/registrar.py
# Worker 注册
#
# 功能说明：
# 1. 遍历声明的单元，解析各自的选项
# 2. 按任务队列分组，每个队列一个 Worker，并发参数取自解析结果
# 3. workflow 上没有显式任务队列（也没有 activityStubs 配置）的 stub 字段视为本地 activity，
#    其实现由 activity_provider 提供，注册在 workflow 所在的 Worker 上
# 4. 同一实现类型只注册一次，重复注册记录日志后跳过
# 5. 所有 Worker 一起启动；运行期间任一 Worker 异常退出时由 wait 抛出
#
# 所有致命的配置错误都在 register_all 中抛出，此时还没有任何 Worker 开始轮询
#
# 使用方法：
#   registrar = WorkerRegistrar(resolver, orchestration_client, activity_provider)
#   registrar.register_all([GreetingWorkflowImpl, MailActivitiesImpl()])
#   await registrar.start_all()

import asyncio
from typing import Any, Callable, Iterable, Optional, Protocol

from temporal_starter.core.errors import (
    ConfigurationMissing,
    DuplicateRegistration,
    WorkersAlreadyStarted,
)
from temporal_starter.core.logging import get_logger
from temporal_starter.declarations import UnitDescriptor, UnitKind, stub_fields, unit_of
from temporal_starter.options.records import WorkerOptions, WorkflowOption
from temporal_starter.options.resolver import OptionResolver

logger = get_logger(__name__)

# activity 类型 -> 实现实例
ActivityProvider = Callable[[type], Optional[Any]]


class WorkerHandle(Protocol):
    """编排客户端创建的 Worker"""

    task_queue: str

    def register_workflow_implementation_types(self, *types: type) -> None:
        ...

    def register_activities_implementations(self, *instances: Any) -> None:
        ...

    async def start(self) -> None:
        ...

    async def wait(self) -> None:
        """运行结束时返回，异常退出时抛出异常"""
        ...

    async def shutdown(self) -> None:
        ...


class WorkerFactory(Protocol):
    """创建 Worker 的能力（由编排客户端提供）"""

    def new_worker(self, task_queue: str, options: WorkerOptions) -> WorkerHandle:
        ...


def is_workflow_definition(cls: type) -> bool:
    """类上是否有 @workflow.defn 生成的定义"""
    return getattr(cls, "__temporal_workflow_definition", None) is not None


class RegisteredTypes:
    """
    已注册的实现类型

    属于单个 WorkerRegistrar，生命周期与其一致
    """

    def __init__(self):
        self._types: set[type] = set()

    def add(self, impl_type: type) -> None:
        """
        Raises:
            DuplicateRegistration: 类型已注册
        """
        if impl_type in self._types:
            raise DuplicateRegistration(impl_type)
        self._types.add(impl_type)

    def __contains__(self, impl_type: type) -> bool:
        return impl_type in self._types

    def __len__(self) -> int:
        return len(self._types)


class _QueueWorker:
    """一个任务队列对应的 Worker 和它已注册的 activity 类型"""

    def __init__(self, handle: WorkerHandle, options: WorkerOptions):
        self.handle = handle
        self.options = options
        self.activity_types: set[type] = set()

    def register_activity(self, instance: Any) -> None:
        impl_type = type(instance)
        if impl_type in self.activity_types:
            logger.debug(
                f"[WorkerRegistrar] activity {impl_type.__name__} 已在 "
                f"{self.handle.task_queue} 上注册，跳过"
            )
            return
        self.handle.register_activities_implementations(instance)
        self.activity_types.add(impl_type)


class WorkerRegistrar:
    """
    Worker 注册器

    注册是一次性的启动流程，不可重入；Worker 启动后不能再注册
    """

    def __init__(
        self,
        resolver: OptionResolver,
        worker_factory: WorkerFactory,
        activity_provider: Optional[ActivityProvider] = None,
    ):
        self.resolver = resolver
        self.worker_factory = worker_factory
        self.activity_provider = activity_provider
        self.registered = RegisteredTypes()
        self._workers: dict[str, _QueueWorker] = {}
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def workers(self) -> dict[str, WorkerHandle]:
        """任务队列 -> Worker"""
        return {queue: entry.handle for queue, entry in self._workers.items()}

    # ==================== 注册 ====================

    def register_all(self, units: Iterable[Any]) -> set:
        """
        注册全部单元

        Args:
            units: workflow 实现类、activity 实现实例（或可无参构造的类）

        Returns:
            set: 所有 Worker

        Raises:
            WorkersAlreadyStarted: Worker 已启动
            ConfigurationMissing / NoConfigurationForUnit / MissingTaskQueue: 配置错误
        """
        if self._started:
            raise WorkersAlreadyStarted("Worker 已启动，不能再注册新的单元")

        if not self.resolver.store.create_workers:
            logger.info("[WorkerRegistrar] createWorkers=false，跳过 Worker 注册")
            return set()

        for unit in units:
            impl_type = unit if isinstance(unit, type) else type(unit)
            descriptor = unit_of(impl_type)
            if descriptor is None:
                logger.debug(f"[WorkerRegistrar] {impl_type.__name__} 没有单元标记，跳过")
                continue

            if descriptor.kind is UnitKind.WORKFLOW and not is_workflow_definition(impl_type):
                logger.info(f"[WorkerRegistrar] {impl_type.__name__} 上没有 @workflow.defn，跳过")
                continue

            try:
                self.registered.add(impl_type)
            except DuplicateRegistration as e:
                logger.warning(f"[WorkerRegistrar] {e}，跳过")
                continue

            if descriptor.kind is UnitKind.WORKFLOW:
                self._register_workflow(impl_type, descriptor)
            else:
                instance = unit() if isinstance(unit, type) else unit
                self._register_activity_worker(instance, descriptor)

        return {entry.handle for entry in self._workers.values()}

    def _worker_for(self, unit_name: str, option: WorkflowOption) -> _QueueWorker:
        options = WorkerOptions.from_option(option)
        entry = self._workers.get(option.task_queue)
        if entry is None:
            handle = self.worker_factory.new_worker(option.task_queue, options)
            entry = _QueueWorker(handle, options)
            self._workers[option.task_queue] = entry
            logger.info(f"[WorkerRegistrar] 创建 Worker: task_queue={option.task_queue}")
        elif entry.options != options:
            logger.warning(
                f"[WorkerRegistrar] {unit_name} 的并发参数与任务队列 {option.task_queue} "
                f"上已有的 Worker 不同，沿用已有参数"
            )
        return entry

    def _register_workflow(self, workflow_type: type, descriptor: UnitDescriptor) -> None:
        logger.info(f"[WorkerRegistrar] 注册 workflow: {workflow_type.__name__} ({descriptor.name})")
        option = self.resolver.resolve_workflow(descriptor.name)
        entry = self._worker_for(descriptor.name, option)

        for instance in self._local_activities(workflow_type):
            entry.register_activity(instance)

        entry.handle.register_workflow_implementation_types(workflow_type)

    def _local_activities(self, workflow_type: type) -> list:
        """没有显式任务队列、也没有 stub 配置的字段对应的 activity 实现"""
        store = self.resolver.store
        local = []
        for field in stub_fields(workflow_type):
            if not field.is_local or store.has_stub_options(field.owner, field.element_type):
                continue
            if self.activity_provider is None:
                logger.debug(
                    f"[WorkerRegistrar] 没有 activity_provider，"
                    f"{workflow_type.__name__}.{field.name} 的实现需另行注册"
                )
                continue
            instance = self.activity_provider(field.element_type)
            if instance is None:
                raise ConfigurationMissing(
                    field.element_type.__name__,
                    f"No activity implementation for local stub "
                    f"{workflow_type.__name__}.{field.name} ({field.element_type.__name__})",
                )
            local.append(instance)
        return local

    def _register_activity_worker(self, instance: Any, descriptor: UnitDescriptor) -> None:
        logger.info(
            f"[WorkerRegistrar] 注册 activity worker: {type(instance).__name__} ({descriptor.name})"
        )
        option = self.resolver.resolve_activity_worker(descriptor.name)
        entry = self._worker_for(descriptor.name, option)
        entry.register_activity(instance)

    # ==================== 启动 / 停止 ====================

    async def start_all(self) -> None:
        """一起启动所有 Worker，重复调用不会重复启动"""
        if self._started:
            return
        if not self.resolver.store.create_workers:
            return
        for queue, entry in self._workers.items():
            logger.info(f"[WorkerRegistrar] 启动 Worker: {queue}")
            await entry.handle.start()
        self._started = True

    async def wait(self, stop_event: asyncio.Event) -> None:
        """
        等待停止信号，期间任一 Worker 退出则提前返回

        Raises:
            Worker 异常退出时的异常
        """
        stop = asyncio.ensure_future(stop_event.wait())
        watchers = {}
        if self._started:
            watchers = {
                asyncio.ensure_future(entry.handle.wait()): queue
                for queue, entry in self._workers.items()
            }
        try:
            done, _ = await asyncio.wait([stop, *watchers], return_when=asyncio.FIRST_COMPLETED)
        finally:
            for future in [stop, *watchers]:
                if not future.done():
                    future.cancel()

        for future in done:
            queue = watchers.get(future)
            if queue is None:
                continue
            error = future.exception()
            if error is not None:
                logger.error(f"[WorkerRegistrar] Worker {queue} 异常退出，停止所有 Worker")
                raise error
            logger.warning(f"[WorkerRegistrar] Worker {queue} 已退出")

    async def shutdown_all(self) -> list[BaseException]:
        """
        停止所有 Worker

        单个 Worker 停止失败不影响其他 Worker

        Returns:
            停止过程中各 Worker 抛出的异常
        """
        queues = list(self._workers)
        for queue in queues:
            logger.info(f"[WorkerRegistrar] 停止 Worker: {queue}")
        results = await asyncio.gather(
            *(self._workers[queue].handle.shutdown() for queue in queues),
            return_exceptions=True,
        )

        errors = []
        for queue, result in zip(queues, results):
            if isinstance(result, BaseException):
                logger.error(f"[WorkerRegistrar] 停止 Worker {queue} 出错: {result}")
                errors.append(result)
        return errors

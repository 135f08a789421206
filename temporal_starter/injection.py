# temporal_starter/injection.py
# activity stub 注入
#
# 功能说明：
# workflow 实例第一次执行方法前，为每个仍为空的 stub 字段解析选项、
# 创建调用句柄并写入字段。
#
# 每个实例的状态：UNINITIALIZED -> INJECTING -> READY
# - 每个实例一把锁，并发的第一次调用只有一个执行注入，其余等待
# - 写入前在锁内再次确认字段为空，同一个字段不会被写两次
# - 已有值的字段（如测试里预先放入的 mock）保持不变，只记录日志
#
# 调用方式：
# - Temporal Worker 中由 StubInjectionInterceptor 自动调用（见 temporal/interceptor.py）
# - 其他场景：injector.ensure_injected(instance)，或用 @injecting(injector) 包装方法

import functools
import inspect
import threading
from enum import Enum
from typing import Any, Callable, Protocol

from temporal_starter.core.errors import StubInjectionError
from temporal_starter.core.logging import get_logger
from temporal_starter.declarations import FieldDescriptor, stub_fields
from temporal_starter.options.records import ActivityOptions
from temporal_starter.options.resolver import OptionResolver

logger = get_logger(__name__)

STATE_ATTR = "__temporal_stub_injection__"


class StubFactory(Protocol):
    """创建调用句柄的能力（由编排客户端提供）"""

    def new_activity_stub(self, element_type: type, options: ActivityOptions) -> Any:
        ...


class InjectionStatus(str, Enum):
    """实例的注入状态"""
    UNINITIALIZED = "uninitialized"
    INJECTING = "injecting"
    READY = "ready"


class _InjectionState:
    def __init__(self):
        self.status = InjectionStatus.UNINITIALIZED
        self.lock = threading.Lock()


class StubInjector:
    """
    activity stub 注入器

    使用方法：
        injector = StubInjector(resolver, stub_factory)
        injector.ensure_injected(workflow_instance)
    """

    def __init__(self, resolver: OptionResolver, stub_factory: StubFactory):
        self.resolver = resolver
        self.stub_factory = stub_factory
        # 只保护每个实例状态对象的创建
        self._states_lock = threading.Lock()

    def status_of(self, instance: Any) -> InjectionStatus:
        state = getattr(instance, "__dict__", {}).get(STATE_ATTR)
        return state.status if state is not None else InjectionStatus.UNINITIALIZED

    def _state_for(self, instance: Any) -> _InjectionState:
        try:
            attributes = vars(instance)
        except TypeError as e:
            raise StubInjectionError(
                f"{type(instance).__name__} 实例没有 __dict__，无法注入 stub"
            ) from e
        with self._states_lock:
            state = attributes.get(STATE_ATTR)
            if state is None:
                state = _InjectionState()
                attributes[STATE_ATTR] = state
            return state

    def ensure_injected(self, instance: Any) -> None:
        """
        确保实例的 stub 字段已注入

        第一次调用执行注入，之后的调用直接返回
        """
        descriptors = stub_fields(type(instance))
        if not descriptors:
            return

        state = self._state_for(instance)
        if state.status is InjectionStatus.READY:
            return

        with state.lock:
            if state.status is InjectionStatus.READY:
                return
            state.status = InjectionStatus.INJECTING
            try:
                for descriptor in descriptors:
                    self._inject_field(instance, descriptor)
            except BaseException:
                state.status = InjectionStatus.UNINITIALIZED
                raise
            state.status = InjectionStatus.READY

    def _inject_field(self, instance: Any, descriptor: FieldDescriptor) -> None:
        workflow_name = type(instance).__name__
        element_name = descriptor.element_type.__name__

        if vars(instance).get(descriptor.name) is not None:
            logger.debug(
                f"[StubInjector] 字段已有值，不创建 ActivityStub: {element_name} on {workflow_name}"
            )
            return

        options = self.resolver.resolve_stub(descriptor, instance)
        stub = self.stub_factory.new_activity_stub(descriptor.element_type, options)
        try:
            vars(instance)[descriptor.name] = stub
        except TypeError as e:
            raise StubInjectionError(
                f"无法写入字段 {workflow_name}.{descriptor.name}"
            ) from e
        logger.debug(f"[StubInjector] 已创建 ActivityStub: {element_name} on {workflow_name}")


def injecting(injector: StubInjector) -> Callable:
    """
    方法装饰器：调用前确保 stub 已注入

    用于不经过 Temporal Worker 调用 workflow 方法的场景（如单元测试）

        class GreetingWorkflowImpl:
            @injecting(injector)
            async def run(self, name): ...
    """
    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(self, *args, **kwargs):
                injector.ensure_injected(self)
                return await func(self, *args, **kwargs)
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(self, *args, **kwargs):
            injector.ensure_injected(self)
            return func(self, *args, **kwargs)
        return sync_wrapper

    return decorator

# temporal_starter/declarations.py
# 声明式标记
#
# 单元标记（类装饰器）：
# - @temporal_workflow("greeter"): workflow 实现类，名称对应 workflows 配置
# - @activity_worker("mailer"): activity 实现类，名称对应 activityWorkers 配置
#
# 字段标记（类属性）：
# - activity_stub(GreetingActivities, start_to_close="PT10S", ...)
#   声明一个 activity stub 字段，第一次调用 workflow 方法前由 StubInjector 注入
#
# 使用示例：
#   @temporal_workflow("greeter")
#   @workflow.defn
#   class GreetingWorkflowImpl:
#       activities = activity_stub(
#           GreetingActivities,
#           start_to_close="PT10S",
#           retry=retry_options(maximum_attempts=3, do_not_retry=[ValueError]),
#       )
#
#       @workflow.run
#       async def run(self, name: str) -> str:
#           return await self.activities.compose_greeting("Hello", name)
#
# 字段描述在类定义时收集一次并缓存在类上，之后按类型直接查表

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

from temporal_starter.options.durations import (
    UNSET,
    UNSET_LITERAL,
    DurationOrUnset,
    duration_of,
    parse_duration,
)
from temporal_starter.options.modifiers import ActivityOptionsModifier
from temporal_starter.options.retry import RetryOptions

UNIT_ATTR = "__temporal_unit__"
FIELDS_ATTR = "__temporal_stub_fields__"


# ==================== 单元描述 ====================

class UnitKind(str, Enum):
    """单元类型"""
    WORKFLOW = "workflow"                  # workflow 实现
    ACTIVITY_WORKER = "activity_worker"    # 独立的 activity 实现


@dataclass(frozen=True)
class UnitDescriptor:
    """
    单元描述

    Attributes:
        kind: 单元类型
        name: 配置中的名称
    """
    kind: UnitKind
    name: str


def temporal_workflow(name: str):
    """
    标记 workflow 实现类

    Args:
        name: workflows 配置中的名称
    """
    def decorator(cls: type) -> type:
        setattr(cls, UNIT_ATTR, UnitDescriptor(UnitKind.WORKFLOW, name))
        setattr(cls, FIELDS_ATTR, _collect_fields(cls))
        return cls
    return decorator


def activity_worker(name: str):
    """
    标记独立部署的 activity 实现类

    Args:
        name: activityWorkers 配置中的名称
    """
    def decorator(cls: type) -> type:
        setattr(cls, UNIT_ATTR, UnitDescriptor(UnitKind.ACTIVITY_WORKER, name))
        return cls
    return decorator


def unit_of(target: Any) -> Optional[UnitDescriptor]:
    """获取类（或实例）上的单元描述，没有标记时返回 None"""
    cls = target if isinstance(target, type) else type(target)
    return getattr(cls, UNIT_ATTR, None)


# ==================== 重试覆盖 ====================

def _interval(value: Any, units: str) -> DurationOrUnset:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return duration_of(value, units)
    return parse_duration(value)


def _error_type_name(entry: Union[str, type]) -> str:
    return entry.__name__ if isinstance(entry, type) else str(entry)


def retry_options(
    initial_interval: Any = -1,
    initial_interval_units: str = "SECONDS",
    backoff_coefficient: float = -1.0,
    maximum_attempts: int = -1,
    maximum_interval: Any = -1,
    maximum_interval_units: str = "SECONDS",
    do_not_retry: Iterable[Union[str, type]] = (),
) -> RetryOptions:
    """
    声明字段上的重试覆盖

    -1 表示不覆盖；间隔可以写数字（配合单位）或时长字面量；
    do_not_retry 可以写错误类型名或异常类

    Returns:
        RetryOptions: 带哨兵的重试策略
    """
    return RetryOptions(
        initial_interval=_interval(initial_interval, initial_interval_units),
        backoff_coefficient=UNSET if backoff_coefficient == -1.0 else backoff_coefficient,
        maximum_attempts=UNSET if maximum_attempts == -1 else maximum_attempts,
        maximum_interval=_interval(maximum_interval, maximum_interval_units),
        do_not_retry=frozenset(_error_type_name(entry) for entry in do_not_retry),
    )


# ==================== 字段描述 ====================

@dataclass(frozen=True)
class FieldDescriptor:
    """
    activity stub 字段描述

    Attributes:
        name: 字段名
        owner: 声明字段的 workflow 类
        element_type: activity 类型
        schedule_to_close / schedule_to_start / start_to_close / heartbeat: 字段上的超时
        duration: 旧写法的 schedule-to-close 超时
        task_queue: 显式指定的任务队列，None 表示本地 activity
        retry: 重试覆盖
        modifier: 只对这个字段生效的选项修改函数
    """
    name: str
    owner: type
    element_type: type
    schedule_to_close: DurationOrUnset = UNSET
    schedule_to_start: DurationOrUnset = UNSET
    start_to_close: DurationOrUnset = UNSET
    heartbeat: DurationOrUnset = UNSET
    duration: DurationOrUnset = UNSET
    task_queue: Optional[str] = None
    retry: RetryOptions = field(default_factory=RetryOptions)
    modifier: Optional[ActivityOptionsModifier] = None

    @property
    def is_local(self) -> bool:
        """没有显式任务队列，与 workflow 注册在同一个 Worker 上"""
        return not self.task_queue


class ActivityStubField:
    """
    activity stub 字段

    数据描述符：值保存在实例的 __dict__ 里，未注入时读取为 None
    """

    def __init__(self, element_type: type, **options: Any):
        self.element_type = element_type
        self._options = options
        self.name: Optional[str] = None
        self.descriptor: Optional[FieldDescriptor] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.descriptor = FieldDescriptor(
            name=name,
            owner=owner,
            element_type=self.element_type,
            **self._options,
        )

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        return instance.__dict__.get(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        instance.__dict__[self.name] = value


def activity_stub(
    element_type: type,
    *,
    schedule_to_close: Any = UNSET_LITERAL,
    schedule_to_start: Any = UNSET_LITERAL,
    start_to_close: Any = UNSET_LITERAL,
    heartbeat: Any = UNSET_LITERAL,
    duration: Any = -1,
    duration_units: str = "SECONDS",
    task_queue: str = "",
    retry: Optional[RetryOptions] = None,
    modifier: Optional[Callable] = None,
) -> ActivityStubField:
    """
    声明 activity stub 字段

    时长字面量在这里解析，格式错误时类定义直接失败

    Args:
        element_type: activity 类型（方法上有 @activity.defn 的类）
        schedule_to_close / schedule_to_start / start_to_close / heartbeat: ISO-8601 时长
        duration / duration_units: 旧写法，设置 schedule-to-close，优先级低于上面的字段
        task_queue: 远程 activity 的任务队列，为空表示本地 activity
        retry: retry_options(...) 声明的重试覆盖
        modifier: 只对这个字段生效的选项修改函数

    Returns:
        ActivityStubField: 作为类属性使用

    Raises:
        MalformedDurationLiteral: 时长字面量格式错误
    """
    return ActivityStubField(
        element_type,
        schedule_to_close=parse_duration(schedule_to_close),
        schedule_to_start=parse_duration(schedule_to_start),
        start_to_close=parse_duration(start_to_close),
        heartbeat=parse_duration(heartbeat),
        duration=duration_of(duration, duration_units),
        task_queue=task_queue or None,
        retry=retry or RetryOptions(),
        modifier=modifier,
    )


def _collect_fields(cls: type) -> tuple:
    # 子类同名字段覆盖父类
    found: dict[str, FieldDescriptor] = {}
    for klass in reversed(cls.__mro__):
        for value in vars(klass).values():
            if isinstance(value, ActivityStubField) and value.descriptor is not None:
                found[value.name] = value.descriptor
    return tuple(found.values())


def stub_fields(cls: type) -> tuple:
    """
    获取 workflow 类声明的全部 stub 字段

    没有经过 @temporal_workflow 的类在第一次调用时收集并缓存
    """
    cached = cls.__dict__.get(FIELDS_ATTR)
    if cached is None:
        cached = _collect_fields(cls)
        setattr(cls, FIELDS_ATTR, cached)
    return cached

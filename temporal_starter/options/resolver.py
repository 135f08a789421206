# temporal_starter/options/resolver.py
# 选项解析
#
# 把多层配置合并成一份生效的选项。
#
# activity stub 的优先级（后面的层只覆盖它显式设置的字段）：
# 1. 空的 ActivityOptions
# 2. activityStubDefaults 全局默认值
# 3. TemporalOptionsConfiguration.modify_default_activity_options
# 4. 旧写法 duration / duration_units -> schedule-to-close
# 5. 字段上的超时字面量（各自独立，UNSET 跳过）和显式任务队列
# 6. 字段上的重试覆盖（非默认时才合并）
# 7. activityStubs 中按 stub 名称的配置（完整名优先）
# 8. 字段自己的 modifier，没有时用 ModifierRegistry 中按类型注册的
#
# workflow / activity worker 单元：
# 读取已填充默认值的 WorkflowOption，任务队列为空时报 MissingTaskQueue
#
# 解析本身没有副作用（除了 ConfigurationStore 的一次性默认值填充）

from dataclasses import dataclass
from typing import Any, Optional

from temporal_starter.core.errors import MissingTaskQueue
from temporal_starter.core.logging import get_logger
from temporal_starter.declarations import FieldDescriptor
from temporal_starter.options.durations import UNSET
from temporal_starter.options.modifiers import ModifierRegistry, TemporalOptionsConfiguration
from temporal_starter.options.records import ActivityOptions, ActivityStubOptions, WorkflowOption
from temporal_starter.options.retry import merge_into_policy
from temporal_starter.options.store import ConfigurationStore

logger = get_logger(__name__)

# 字段上的超时 -> ActivityOptions 的属性
INLINE_TIMEOUTS = (
    ("schedule_to_close", "schedule_to_close_timeout"),
    ("schedule_to_start", "schedule_to_start_timeout"),
    ("start_to_close", "start_to_close_timeout"),
    ("heartbeat", "heartbeat_timeout"),
)

STUB_CONFIG_FIELDS = (
    "task_queue",
    "schedule_to_close_timeout",
    "schedule_to_start_timeout",
    "start_to_close_timeout",
    "heartbeat_timeout",
)


@dataclass
class ResolvedOptions:
    """
    resolve() 的结果

    Attributes:
        unit: 单元选项（workflow 的任务队列、超时、并发）
        activity: 传入字段描述时，该字段的 activity 选项
    """
    unit: Optional[WorkflowOption] = None
    activity: Optional[ActivityOptions] = None


def _copy_set_fields(target: ActivityOptions, source: Optional[ActivityStubOptions]) -> None:
    if source is None:
        return
    for name in STUB_CONFIG_FIELDS:
        value = getattr(source, name)
        if value is not None:
            setattr(target, name, value)


class OptionResolver:
    """
    选项解析器

    使用方法：
        resolver = OptionResolver(store, options_configuration, modifiers)
        option = resolver.resolve_workflow("greeter")
        activity_options = resolver.resolve_stub(descriptor)
    """

    def __init__(
        self,
        store: ConfigurationStore,
        options_configuration: Optional[TemporalOptionsConfiguration] = None,
        modifiers: Optional[ModifierRegistry] = None,
    ):
        self.store = store
        self.options_configuration = options_configuration
        self.modifiers = modifiers or ModifierRegistry()

    # ==================== 单元选项 ====================

    def resolve_workflow(self, name: str) -> WorkflowOption:
        """
        解析 workflow 单元选项

        Raises:
            ConfigurationMissing: 没有配置
            MissingTaskQueue: 任务队列为空
        """
        return self._require_task_queue(name, self.store.get_options(name))

    def resolve_activity_worker(self, name: str) -> WorkflowOption:
        """
        解析 activity worker 单元选项

        Raises:
            NoConfigurationForUnit: activityWorkers 中没有配置
            MissingTaskQueue: 任务队列为空
        """
        return self._require_task_queue(name, self.store.get_activity_worker_options(name))

    @staticmethod
    def _require_task_queue(name: str, option: WorkflowOption) -> WorkflowOption:
        if not option.task_queue:
            raise MissingTaskQueue(name)
        return option

    # ==================== activity stub 选项 ====================

    def resolve_stub(self, descriptor: FieldDescriptor, target: Any = None) -> ActivityOptions:
        """
        解析 activity stub 字段的选项

        Args:
            descriptor: 字段描述
            target: workflow 实例（可选，只影响日志中的类名；按名称查找配置始终用 descriptor.owner）

        Returns:
            ActivityOptions: 生效的选项
        """
        owner_name = type(target).__name__ if target is not None else descriptor.owner.__name__
        element_name = descriptor.element_type.__name__

        # 1. 空选项
        options = ActivityOptions()

        # 2. 全局默认值
        _copy_set_fields(options, self.store.stub_defaults)

        # 3. 全局钩子
        if self.options_configuration is not None:
            options = self.options_configuration.modify_default_activity_options(options)

        # 4. 旧写法
        if descriptor.duration is not UNSET:
            options.schedule_to_close_timeout = descriptor.duration

        # 5. 字段上的超时和任务队列
        for attr, option_name in INLINE_TIMEOUTS:
            value = getattr(descriptor, attr)
            if value is not UNSET:
                setattr(options, option_name, value)
        if descriptor.task_queue:
            options.task_queue = descriptor.task_queue

        # 6. 重试覆盖
        if not descriptor.retry.is_default():
            logger.debug(f"[OptionResolver] 用字段声明覆盖重试选项: {owner_name}.{descriptor.name}")
            options.retry_policy = merge_into_policy(options.retry_policy, descriptor.retry)

        # 7. 按 stub 名称的配置
        named = self.store.find_stub_options(descriptor.owner, descriptor.element_type)
        if named is not None:
            logger.debug(f"[OptionResolver] 使用 activityStubs 配置: {descriptor.owner.__name__}.{element_name}")
            _copy_set_fields(options, named)

        # 8. 字段或类型上的修改函数
        modifier = descriptor.modifier or self.modifiers.get(descriptor.element_type)
        if modifier is not None:
            logger.debug(f"[OptionResolver] 找到选项修改函数 {modifier.__name__}，作用于 {owner_name}.{descriptor.name}")
            options = modifier(options)
        else:
            logger.debug(f"[OptionResolver] {owner_name}.{descriptor.name} 没有选项修改函数")

        return options

    # ==================== 统一入口 ====================

    def resolve(self, unit_name: str, descriptor: Optional[FieldDescriptor] = None) -> ResolvedOptions:
        """
        解析单元选项，传入字段描述时同时解析该字段的 activity 选项
        """
        resolved = ResolvedOptions(unit=self.resolve_workflow(unit_name))
        if descriptor is not None:
            resolved.activity = self.resolve_stub(descriptor)
        return resolved

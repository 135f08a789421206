# temporal_starter/options/store.py
# 配置存储
#
# 功能说明：
# 1. 按名称读取 workflow / activity worker 的选项
# 2. 第一次读取时用 defaults 记录填充未设置的字段（只填一次）
# 3. 按 stub 名称读取 activity stub 的选项
#
# 默认值填充规则：
# - 只填充当前为 None 的字段
# - 只传播 defaults 中非 None 的字段
# - 每个 map 只填充一次，一个锁保护，并发的第一次读取不会重复填充
#
# 使用方法：
#   store = ConfigurationStore(properties)
#   option = store.get_options("greeter")

import threading
from typing import Optional

from temporal_starter.core.errors import ConfigurationMissing, NoConfigurationForUnit
from temporal_starter.core.logging import get_logger
from temporal_starter.options.properties import TemporalProperties
from temporal_starter.options.records import ActivityStubOptions, WorkflowOption

logger = get_logger(__name__)

# 参与默认值填充的字段
DEFAULTED_FIELDS = (
    "task_queue",
    "execution_timeout",
    "activity_pool_size",
    "workflow_pool_size",
    "activity_poll_thread_pool_size",
    "workflow_poll_thread_pool_size",
)

# activity worker 的轮询并发数在 activityWorkerDefaults 中没配置时，回退到 workflowDefaults
POLL_FIELDS = ("activity_poll_thread_pool_size", "workflow_poll_thread_pool_size")


def apply_defaults(
    option: WorkflowOption,
    defaults: Optional[WorkflowOption],
    fields: tuple = DEFAULTED_FIELDS,
) -> None:
    """
    用 defaults 填充 option 中未设置的字段

    重复调用不会改变已经填充过的值
    """
    if defaults is None:
        return
    for name in fields:
        if getattr(option, name) is None:
            default_value = getattr(defaults, name)
            if default_value is not None:
                setattr(option, name, default_value)


def stub_names(owner: type, element_type: type) -> tuple[str, str]:
    """
    stub 配置的两个候选键

    Returns:
        (完整名 "Owner.ActivityType", 简名 "ActivityType")
    """
    simple = element_type.__name__
    return f"{owner.__name__}.{simple}", simple


class ConfigurationStore:
    """
    配置存储

    包装 TemporalProperties，负责一次性的默认值填充。
    每个实例一把锁；填充完成后读取不再加锁。
    """

    def __init__(self, properties: TemporalProperties):
        self._properties = properties
        self._lock = threading.Lock()
        self._workflows_defaulted = False
        self._activity_workers_defaulted = False

    @property
    def properties(self) -> TemporalProperties:
        return self._properties

    @property
    def create_workers(self) -> bool:
        return self._properties.create_workers

    @property
    def stub_defaults(self) -> Optional[ActivityStubOptions]:
        return self._properties.activity_stub_defaults

    # ==================== workflow ====================

    def get_workflows(self) -> dict[str, WorkflowOption]:
        """返回已填充默认值的 workflows 配置"""
        if not self._workflows_defaulted:
            with self._lock:
                if not self._workflows_defaulted:
                    defaults = self._properties.workflow_defaults
                    for option in self._properties.workflows.values():
                        apply_defaults(option, defaults)
                    self._workflows_defaulted = True
                    logger.debug(
                        f"[ConfigurationStore] workflows 默认值填充完成: "
                        f"{len(self._properties.workflows)} 个"
                    )
        return self._properties.workflows

    def get_options(self, name: str) -> WorkflowOption:
        """
        读取 workflow 单元选项

        单元必须在 workflows 中有一条记录（可以是空记录，字段由 workflowDefaults 填充）

        Raises:
            ConfigurationMissing: workflows 中没有这个名称
        """
        option = self.get_workflows().get(name)
        if option is None:
            raise ConfigurationMissing(name)
        return option

    def has_options(self, name: str) -> bool:
        return name in self._properties.workflows

    # ==================== activity worker ====================

    def get_activity_workers(self) -> dict[str, WorkflowOption]:
        """返回已填充默认值的 activityWorkers 配置"""
        if not self._activity_workers_defaulted:
            with self._lock:
                if not self._activity_workers_defaulted:
                    defaults = self._properties.activity_worker_defaults
                    fallback = self._properties.workflow_defaults
                    for option in self._properties.activity_workers.values():
                        apply_defaults(option, defaults)
                        apply_defaults(option, fallback, POLL_FIELDS)
                    self._activity_workers_defaulted = True
        return self._properties.activity_workers

    def get_activity_worker_options(self, name: str) -> WorkflowOption:
        """
        读取 activity worker 单元选项

        Raises:
            NoConfigurationForUnit: activityWorkers 中没有这个名称
        """
        option = self.get_activity_workers().get(name)
        if option is None:
            raise NoConfigurationForUnit(name)
        return option

    # ==================== activity stub ====================

    def get_stub_options(self, key: str) -> Optional[ActivityStubOptions]:
        return self._properties.activity_stubs.get(key)

    def find_stub_options(self, owner: type, element_type: type) -> Optional[ActivityStubOptions]:
        """
        按 stub 名称查找配置，完整名优先，其次简名
        """
        full_name, simple_name = stub_names(owner, element_type)
        option = self.get_stub_options(full_name)
        if option is None:
            option = self.get_stub_options(simple_name)
        return option

    def has_stub_options(self, owner: type, element_type: type) -> bool:
        return self.find_stub_options(owner, element_type) is not None

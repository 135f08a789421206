# temporal_starter/options/records.py
# 选项记录
#
# 两类对象：
# 1. 配置记录（Pydantic 模型，从属性文件加载，读多写少）
#    - WorkflowOption: workflow / activity worker 单元的选项
#    - ActivityStubOptions: activity stub 的选项
# 2. 构建器（普通 dataclass，解析过程中逐层改写，交给 temporalio）
#    - ActivityOptions: workflow.execute_activity 的参数
#    - WorkflowOptions: client.start_workflow 的参数
#    - WorkerOptions: temporalio.worker.Worker 的并发参数
#
# 配置记录里 None 表示未设置，和 0 不同

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel
from temporalio.common import RetryPolicy

from temporal_starter.core.logging import get_logger
from temporal_starter.options.durations import duration_of, parse_duration

logger = get_logger(__name__)


def _optional_duration(value: Any) -> Optional[timedelta]:
    """解析时长，UNSET 转为 None"""
    parsed = parse_duration(value)
    return parsed if isinstance(parsed, timedelta) else None


class ConfigRecord(BaseModel):
    """
    配置记录基类

    属性文件里使用驼峰命名（taskQueue），代码里使用下划线命名（task_queue），两者都接受
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ==================== 配置记录 ====================

class WorkflowOption(ConfigRecord):
    """
    workflow / activity worker 单元选项

    Attributes:
        task_queue: 任务队列
        execution_timeout: workflow 执行超时
        activity_pool_size: activity 并发执行数
        workflow_pool_size: workflow task 并发执行数
        activity_poll_thread_pool_size: activity 轮询并发数
        workflow_poll_thread_pool_size: workflow 轮询并发数
    """
    task_queue: Optional[str] = None
    execution_timeout: Optional[timedelta] = None
    activity_pool_size: Optional[int] = None
    workflow_pool_size: Optional[int] = None
    activity_poll_thread_pool_size: Optional[int] = None
    workflow_poll_thread_pool_size: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_execution_timeout(cls, data: Any) -> Any:
        # 旧配置：executionTimeout 是数字，executionTimeoutUnit 是单位名
        if not isinstance(data, dict):
            return data
        data = dict(data)
        unit = data.pop("executionTimeoutUnit", None) or data.pop("execution_timeout_unit", None)
        for key in ("executionTimeout", "execution_timeout"):
            value = data.get(key)
            if unit and isinstance(value, (int, float)) and not isinstance(value, bool):
                data[key] = duration_of(value, unit)
        return data

    @field_validator("execution_timeout", mode="before")
    @classmethod
    def _parse_execution_timeout(cls, value: Any) -> Optional[timedelta]:
        return _optional_duration(value)


class ActivityStubOptions(ConfigRecord):
    """
    activity stub 选项

    在 activityStubDefaults 中作为全局默认值，
    在 activityStubs 中按 stub 名称（"Owner.ActivityType" 或 "ActivityType"）配置
    """
    task_queue: Optional[str] = None
    schedule_to_close_timeout: Optional[timedelta] = None
    schedule_to_start_timeout: Optional[timedelta] = None
    start_to_close_timeout: Optional[timedelta] = None
    heartbeat_timeout: Optional[timedelta] = None

    @field_validator(
        "schedule_to_close_timeout",
        "schedule_to_start_timeout",
        "start_to_close_timeout",
        "heartbeat_timeout",
        mode="before",
    )
    @classmethod
    def _parse_timeouts(cls, value: Any) -> Optional[timedelta]:
        return _optional_duration(value)


class WorkflowServiceStubOptions(ConfigRecord):
    """
    连接调优参数

    原样透传给客户端连接；目前只有 keep-alive 相关字段被 temporalio 使用
    """
    disable_health_check: Optional[bool] = None
    health_check_attempt_timeout: Optional[timedelta] = None
    health_check_timeout: Optional[timedelta] = None
    enable_keep_alive: Optional[bool] = None
    keep_alive_time: Optional[timedelta] = None
    keep_alive_timeout: Optional[timedelta] = None
    keep_alive_permit_without_stream: Optional[bool] = None
    rpc_long_poll_timeout: Optional[timedelta] = None
    rpc_query_timeout: Optional[timedelta] = None
    rpc_timeout: Optional[timedelta] = None
    connection_backoff_reset_frequency: Optional[timedelta] = None
    grpc_reconnect_frequency: Optional[timedelta] = None

    @field_validator(
        "health_check_attempt_timeout",
        "health_check_timeout",
        "keep_alive_time",
        "keep_alive_timeout",
        "rpc_long_poll_timeout",
        "rpc_query_timeout",
        "rpc_timeout",
        "connection_backoff_reset_frequency",
        "grpc_reconnect_frequency",
        mode="before",
    )
    @classmethod
    def _parse_durations(cls, value: Any) -> Optional[timedelta]:
        return _optional_duration(value)


# ==================== 构建器 ====================

def _drop_none(values: dict) -> dict:
    return {key: value for key, value in values.items() if value is not None}


@dataclass
class ActivityOptions:
    """
    activity 调用选项（解析过程中逐层改写）

    字段与 workflow.execute_activity 的关键字参数同名
    """
    task_queue: Optional[str] = None
    schedule_to_close_timeout: Optional[timedelta] = None
    schedule_to_start_timeout: Optional[timedelta] = None
    start_to_close_timeout: Optional[timedelta] = None
    heartbeat_timeout: Optional[timedelta] = None
    retry_policy: Optional[RetryPolicy] = None

    def to_kwargs(self) -> dict:
        """只包含已设置的字段，未设置的交给 Temporal 默认值"""
        return _drop_none({
            "task_queue": self.task_queue,
            "schedule_to_close_timeout": self.schedule_to_close_timeout,
            "schedule_to_start_timeout": self.schedule_to_start_timeout,
            "start_to_close_timeout": self.start_to_close_timeout,
            "heartbeat_timeout": self.heartbeat_timeout,
            "retry_policy": self.retry_policy,
        })


@dataclass
class WorkflowOptions:
    """
    启动 workflow 的选项

    字段与 client.start_workflow 的关键字参数同名
    """
    task_queue: Optional[str] = None
    id: Optional[str] = None
    execution_timeout: Optional[timedelta] = None
    run_timeout: Optional[timedelta] = None
    task_timeout: Optional[timedelta] = None
    retry_policy: Optional[RetryPolicy] = None

    def to_kwargs(self) -> dict:
        return _drop_none(dict(vars(self)))


# temporalio 要求 workflow 任务的轮询并发数不小于 2
MIN_WORKFLOW_TASK_POLLS = 2


@dataclass
class WorkerOptions:
    """
    Worker 并发参数

    字段与 temporalio.worker.Worker 的关键字参数同名
    """
    max_concurrent_activities: Optional[int] = None
    max_concurrent_workflow_tasks: Optional[int] = None
    max_concurrent_activity_task_polls: Optional[int] = None
    max_concurrent_workflow_task_polls: Optional[int] = None

    @classmethod
    def from_option(cls, option: WorkflowOption) -> "WorkerOptions":
        """
        由单元选项生成 Worker 参数

        轮询并发数未配置时，取对应的执行并发数；workflow 轮询并发数至少为 2（sticky 队列需要）
        """
        activity_polls = option.activity_poll_thread_pool_size
        if activity_polls is None:
            activity_polls = option.activity_pool_size
        workflow_polls = option.workflow_poll_thread_pool_size
        if workflow_polls is None:
            workflow_polls = option.workflow_pool_size
        if workflow_polls is not None and workflow_polls < MIN_WORKFLOW_TASK_POLLS:
            logger.warning(
                f"[WorkerOptions] workflow 轮询并发数 {workflow_polls} 小于 {MIN_WORKFLOW_TASK_POLLS}，"
                f"使用 {MIN_WORKFLOW_TASK_POLLS}"
            )
            workflow_polls = MIN_WORKFLOW_TASK_POLLS
        return cls(
            max_concurrent_activities=option.activity_pool_size,
            max_concurrent_workflow_tasks=option.workflow_pool_size,
            max_concurrent_activity_task_polls=activity_polls,
            max_concurrent_workflow_task_polls=workflow_polls,
        )

    def to_kwargs(self) -> dict:
        return _drop_none(dict(vars(self)))

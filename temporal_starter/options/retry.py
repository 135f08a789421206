# temporal_starter/options/retry.py
# 重试策略合并
#
# RetryOptions 是带"未设置"哨兵的重试策略：
# - 每个标量字段都可以是 UNSET，表示这一层没有配置
# - do_not_retry 是集合，合并时只能追加，不能删除基线里的条目
#
# 合并规则（merge_retry_options）：
# 1. override 完全是默认值时，原样返回基线
# 2. 每个字段独立：override 不是 UNSET 就替换基线的值
# 3. do_not_retry 取并集
#
# 与 temporalio.common.RetryPolicy 之间通过 from_policy / to_policy 转换

from dataclasses import dataclass, field, replace
from typing import Optional, Union

from temporalio.common import RetryPolicy

from temporal_starter.core.logging import get_logger
from temporal_starter.options.durations import UNSET, DurationOrUnset, _Unset, is_set

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryOptions:
    """
    可合并的重试策略

    Attributes:
        initial_interval: 首次重试间隔
        backoff_coefficient: 退避系数
        maximum_attempts: 最大尝试次数（0 表示不限）
        maximum_interval: 最大重试间隔
        do_not_retry: 不重试的错误类型名集合
    """
    initial_interval: DurationOrUnset = UNSET
    backoff_coefficient: Union[float, _Unset] = UNSET
    maximum_attempts: Union[int, _Unset] = UNSET
    maximum_interval: DurationOrUnset = UNSET
    do_not_retry: frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        # 允许传入 list / tuple，统一成 frozenset
        if not isinstance(self.do_not_retry, frozenset):
            object.__setattr__(self, "do_not_retry", frozenset(self.do_not_retry))

    def is_default(self) -> bool:
        """所有字段都是哨兵值，且没有 do_not_retry"""
        return (
            self.initial_interval is UNSET
            and self.backoff_coefficient is UNSET
            and self.maximum_attempts is UNSET
            and self.maximum_interval is UNSET
            and not self.do_not_retry
        )

    @classmethod
    def from_policy(cls, policy: Optional[RetryPolicy]) -> "RetryOptions":
        """
        从 temporalio 的 RetryPolicy 转换

        None 视为 Temporal 的默认策略（1 秒起步，系数 2.0，不限次数）
        """
        if policy is None:
            policy = RetryPolicy()
        return cls(
            initial_interval=policy.initial_interval,
            backoff_coefficient=policy.backoff_coefficient,
            maximum_attempts=policy.maximum_attempts,
            maximum_interval=(
                policy.maximum_interval if policy.maximum_interval is not None else UNSET
            ),
            do_not_retry=frozenset(policy.non_retryable_error_types or ()),
        )

    def to_policy(self) -> RetryPolicy:
        """转换为 temporalio 的 RetryPolicy，未设置的字段使用 Temporal 默认值"""
        defaults = RetryPolicy()
        return RetryPolicy(
            initial_interval=(
                self.initial_interval if is_set(self.initial_interval)
                else defaults.initial_interval
            ),
            backoff_coefficient=(
                self.backoff_coefficient if is_set(self.backoff_coefficient)
                else defaults.backoff_coefficient
            ),
            maximum_attempts=(
                self.maximum_attempts if is_set(self.maximum_attempts)
                else defaults.maximum_attempts
            ),
            maximum_interval=(
                self.maximum_interval if is_set(self.maximum_interval) else None
            ),
            non_retryable_error_types=sorted(self.do_not_retry) or None,
        )


def merge_retry_options(baseline: RetryOptions, override: RetryOptions) -> RetryOptions:
    """
    合并重试策略

    Args:
        baseline: 基线（通常来自默认值或 modifier 设置的策略）
        override: 声明在字段上的重试覆盖

    Returns:
        RetryOptions: 合并后的策略
    """
    if override.is_default():
        return baseline

    changes: dict = {}
    for name in ("initial_interval", "backoff_coefficient", "maximum_attempts", "maximum_interval"):
        value = getattr(override, name)
        if value is not UNSET:
            logger.debug(f"覆盖重试选项 '{name}': {getattr(baseline, name)!r} -> {value!r}")
            changes[name] = value

    if override.do_not_retry:
        logger.debug(
            f"合并重试选项 'do_not_retry': 原值 {sorted(baseline.do_not_retry)} "
            f"追加 {sorted(override.do_not_retry)}"
        )
        changes["do_not_retry"] = baseline.do_not_retry | override.do_not_retry

    return replace(baseline, **changes)


def merge_into_policy(policy: Optional[RetryPolicy], override: RetryOptions) -> RetryPolicy:
    """
    把字段上的重试覆盖合并进 builder 现有的 RetryPolicy

    policy 为 None 时以 Temporal 默认策略为基线
    """
    merged = merge_retry_options(RetryOptions.from_policy(policy), override)
    return merged.to_policy()

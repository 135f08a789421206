# temporal_starter/options/durations.py
# 时长字面量解析
#
# 支持的写法：
# - ISO-8601：PT5S、PT0.5S、P1DT2H、-PT1S（负数即"未设置"）
# - 简写：500ms、8s、2m、1h、1d
# - 数字：按秒处理
# - timedelta：原样返回
# - 旧写法：duration + duration_units（NANOS ... WEEKS），-1 表示未设置
#
# UNSET 是一等公民，用来区分"这一层没有配置"和"显式配置为 0"

import re
from datetime import timedelta
from typing import Any, Union

from temporal_starter.core.errors import MalformedDurationLiteral


class _Unset:
    """
    "未设置"哨兵

    单例，布尔值为 False，方便写 `if value is UNSET`
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_Unset, ())


UNSET = _Unset()

# 注解上的默认值，解析结果为 UNSET
UNSET_LITERAL = "-PT1S"

DurationOrUnset = Union[timedelta, _Unset]


# ISO-8601 时长：可选符号，日期部分只支持 W / D（年和月长度不固定）
_ISO_PATTERN = re.compile(
    r"^(?P<sign>[-+])?P"
    r"(?:(?P<weeks>\d+(?:\.\d+)?)W)?"
    r"(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T"
    r"(?:(?P<hours>\d+(?:\.\d+)?)H)?"
    r"(?:(?P<minutes>\d+(?:\.\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?"
    r")?$",
    re.IGNORECASE,
)

_SHORTHAND_PATTERN = re.compile(
    r"^(?P<sign>-)?(?P<amount>\d+(?:\.\d+)?)\s*(?P<unit>ns|us|ms|s|m|h|d)$",
    re.IGNORECASE,
)

_SHORTHAND_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "ms": 1e-3,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}

# 旧写法的时间单位（秒），名称沿用旧配置文件里的写法
CHRONO_UNITS = {
    "NANOS": 1e-9,
    "MICROS": 1e-6,
    "MILLIS": 1e-3,
    "SECONDS": 1,
    "MINUTES": 60,
    "HOURS": 3600,
    "HALF_DAYS": 43200,
    "DAYS": 86400,
    "WEEKS": 604800,
}


def _unset_if_negative(value: timedelta) -> DurationOrUnset:
    if value < timedelta(0):
        return UNSET
    return value


def _timedelta(literal: Any, **parts: float) -> timedelta:
    """构造 timedelta，超出范围或非有限数值时报格式错误"""
    try:
        return timedelta(**parts)
    except (OverflowError, ValueError) as e:
        raise MalformedDurationLiteral(literal, str(e)) from e


def _parse_iso(literal: str) -> DurationOrUnset:
    match = _ISO_PATTERN.match(literal)
    parts = match.groupdict() if match else {}
    # 只有 "P" 或 "PT" 没有任何分量时视为格式错误
    if not match or not any(parts[k] for k in ("weeks", "days", "hours", "minutes", "seconds")):
        raise MalformedDurationLiteral(literal, "not an ISO-8601 duration")
    if literal.upper().endswith("T"):
        raise MalformedDurationLiteral(literal, "time designator without components")

    value = _timedelta(
        literal,
        weeks=float(parts["weeks"] or 0),
        days=float(parts["days"] or 0),
        hours=float(parts["hours"] or 0),
        minutes=float(parts["minutes"] or 0),
        seconds=float(parts["seconds"] or 0),
    )
    if parts["sign"] == "-":
        value = -value
    return _unset_if_negative(value)


def parse_duration(literal: Any) -> DurationOrUnset:
    """
    解析时长字面量

    Args:
        literal: 字符串、数字（秒）、timedelta、None 或 UNSET

    Returns:
        timedelta，或 UNSET（None、空字符串、负数时长）

    Raises:
        MalformedDurationLiteral: 无法解析
    """
    if literal is None or literal is UNSET:
        return UNSET
    if isinstance(literal, timedelta):
        return _unset_if_negative(literal)
    if isinstance(literal, bool):
        raise MalformedDurationLiteral(literal, "boolean is not a duration")
    if isinstance(literal, (int, float)):
        return _unset_if_negative(_timedelta(literal, seconds=literal))
    if not isinstance(literal, str):
        raise MalformedDurationLiteral(literal, f"unsupported type {type(literal).__name__}")

    text = literal.strip()
    if not text:
        return UNSET

    if text.lstrip("+-")[:1].upper() == "P":
        return _parse_iso(text)

    match = _SHORTHAND_PATTERN.match(text)
    if match:
        seconds = float(match.group("amount")) * _SHORTHAND_UNITS[match.group("unit").lower()]
        value = _timedelta(literal, seconds=seconds)
        if match.group("sign"):
            value = -value
        return _unset_if_negative(value)

    raise MalformedDurationLiteral(literal)


def duration_of(amount: Any, unit: str = "SECONDS") -> DurationOrUnset:
    """
    旧写法：数值 + 单位名

    Args:
        amount: 数值，-1 或 None 表示未设置
        unit: 单位名，如 "SECONDS"、"MINUTES"

    Returns:
        timedelta 或 UNSET
    """
    if amount is None or amount is UNSET:
        return UNSET
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise MalformedDurationLiteral(amount, "legacy duration must be a number")
    if amount < 0:
        return UNSET

    step = CHRONO_UNITS.get(str(unit).upper())
    if step is None:
        raise MalformedDurationLiteral(f"{amount} {unit}", f"unknown time unit {unit!r}")
    return _timedelta(f"{amount} {unit}", seconds=amount * step)


def is_set(value: Any) -> bool:
    """字段是否被这一层显式设置"""
    return value is not None and value is not UNSET

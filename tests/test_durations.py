# tests/test_durations.py
# 时长字面量解析测试
#
# 运行方式：
#   pytest tests/test_durations.py -v

import copy
from datetime import timedelta

import pytest

from temporal_starter.core.errors import MalformedDurationLiteral
from temporal_starter.options.durations import (
    UNSET,
    UNSET_LITERAL,
    duration_of,
    is_set,
    parse_duration,
)


# ==================== ISO-8601 ====================

@pytest.mark.parametrize("literal, expected", [
    ("PT5S", timedelta(seconds=5)),
    ("PT0.5S", timedelta(milliseconds=500)),
    ("PT2M", timedelta(minutes=2)),
    ("PT1H30M", timedelta(hours=1, minutes=30)),
    ("P1DT2H", timedelta(days=1, hours=2)),
    ("P2W", timedelta(weeks=2)),
    ("pt10s", timedelta(seconds=10)),
    ("PT0S", timedelta(0)),
])
def test_parse_iso(literal, expected):
    """测试 ISO-8601 时长"""
    assert parse_duration(literal) == expected


def test_unset_literal():
    """测试 -PT1S 解析为 UNSET"""
    assert parse_duration(UNSET_LITERAL) is UNSET
    assert parse_duration("-PT10M") is UNSET


@pytest.mark.parametrize("literal", [None, "", "   ", UNSET])
def test_empty_is_unset(literal):
    """测试空值解析为 UNSET"""
    assert parse_duration(literal) is UNSET


def test_zero_is_not_unset():
    """测试 0 是显式设置的值"""
    value = parse_duration("PT0S")
    assert value is not UNSET
    assert is_set(value)


# ==================== 简写 / 数字 ====================

@pytest.mark.parametrize("literal, expected", [
    ("500ms", timedelta(milliseconds=500)),
    ("8s", timedelta(seconds=8)),
    ("2m", timedelta(minutes=2)),
    ("1h", timedelta(hours=1)),
    ("1d", timedelta(days=1)),
    (3, timedelta(seconds=3)),
    (1.5, timedelta(seconds=1.5)),
    (timedelta(seconds=7), timedelta(seconds=7)),
])
def test_parse_shorthand_and_numbers(literal, expected):
    """测试简写和数字（秒）"""
    assert parse_duration(literal) == expected


def test_negative_number_is_unset():
    assert parse_duration(-1) is UNSET
    assert parse_duration(timedelta(seconds=-1)) is UNSET


# ==================== 格式错误 ====================

@pytest.mark.parametrize("literal", ["P", "PT", "P1DT", "5 seconds", "abc", "PT5X", True, [1]])
def test_malformed_literal(literal):
    """测试格式错误的字面量直接报错，不回退到默认值"""
    with pytest.raises(MalformedDurationLiteral) as exc_info:
        parse_duration(literal)
    assert exc_info.value.literal == literal


@pytest.mark.parametrize("literal", [
    "P99999999999W",
    "PT1" + "0" * 20 + "S",
    "99999999999d",
    float("inf"),
    float("nan"),
])
def test_out_of_range_literal(literal):
    """测试超出 timedelta 范围或非有限的数值报格式错误"""
    with pytest.raises(MalformedDurationLiteral) as exc_info:
        parse_duration(literal)
    assert str(exc_info.value.literal) == str(literal)


# ==================== 旧写法 ====================

def test_duration_of_units():
    """测试数值 + 单位名"""
    assert duration_of(10) == timedelta(seconds=10)
    assert duration_of(2, "MINUTES") == timedelta(minutes=2)
    assert duration_of(1500, "MILLIS") == timedelta(milliseconds=1500)
    assert duration_of(1, "half_days") == timedelta(hours=12)


def test_duration_of_unset():
    assert duration_of(-1) is UNSET
    assert duration_of(None) is UNSET


def test_duration_of_unknown_unit():
    with pytest.raises(MalformedDurationLiteral):
        duration_of(5, "FORTNIGHTS")


def test_duration_of_out_of_range():
    with pytest.raises(MalformedDurationLiteral):
        duration_of(10 ** 12, "WEEKS")
    with pytest.raises(MalformedDurationLiteral):
        duration_of(float("inf"))


# ==================== 哨兵 ====================

def test_unset_sentinel():
    """测试 UNSET 是单例且布尔值为 False"""
    assert not UNSET
    assert copy.copy(UNSET) is UNSET
    assert copy.deepcopy(UNSET) is UNSET
    assert type(UNSET)() is UNSET
    assert repr(UNSET) == "UNSET"
    assert not is_set(UNSET)
    assert not is_set(None)

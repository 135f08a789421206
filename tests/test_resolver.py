# tests/test_resolver.py
# OptionResolver 测试
#
# 运行方式：
#   pytest tests/test_resolver.py -v

from datetime import timedelta

import pytest
from temporalio.common import RetryPolicy

from temporal_starter import activity_stub, retry_options
from temporal_starter.core.errors import ConfigurationMissing, MissingTaskQueue, NoConfigurationForUnit
from temporal_starter.declarations import stub_fields
from temporal_starter.options.modifiers import ModifierRegistry, TemporalOptionsConfiguration


class GreetingActivities:
    pass


class InlineWorkflow:
    activities = activity_stub(GreetingActivities, start_to_close="PT5S")


class LegacyWorkflow:
    legacy_only = activity_stub(GreetingActivities, duration=10)
    both = activity_stub(GreetingActivities, duration=10, schedule_to_close="PT3S")


class RetryWorkflow:
    activities = activity_stub(
        GreetingActivities,
        retry=retry_options(maximum_attempts=10, do_not_retry=["X"]),
    )


class RemoteWorkflow:
    activities = activity_stub(GreetingActivities, task_queue="remote-q")


def _field(cls, name):
    return next(field for field in stub_fields(cls) if field.name == name)


# ==================== 单元选项 ====================

def test_resolve_greeter_from_defaults(make_resolver, greeter_properties):
    """测试空的命名记录使用默认值"""
    resolver = make_resolver(greeter_properties)

    option = resolver.resolve_workflow("greeter")

    assert option.task_queue == "default-q"
    assert option.execution_timeout == timedelta(seconds=30)


def test_resolve_unknown_unit(make_resolver):
    resolver = make_resolver({"workflows": {"greeter": {"taskQueue": "q"}}})

    with pytest.raises(ConfigurationMissing) as exc_info:
        resolver.resolve_workflow("unknown-unit")

    assert exc_info.value.name == "unknown-unit"


def test_missing_task_queue(make_resolver):
    """测试所有层都没有任务队列时报 MissingTaskQueue"""
    resolver = make_resolver({"workflows": {"greeter": {"executionTimeout": "PT1M"}}})

    with pytest.raises(MissingTaskQueue) as exc_info:
        resolver.resolve_workflow("greeter")

    assert exc_info.value.unit_name == "greeter"


def test_resolve_activity_worker(make_resolver):
    resolver = make_resolver({
        "activityWorkerDefaults": {"activityPoolSize": 6},
        "activityWorkers": {"mailer": {"taskQueue": "mail-q"}},
    })

    option = resolver.resolve_activity_worker("mailer")

    assert option.task_queue == "mail-q"
    assert option.activity_pool_size == 6
    with pytest.raises(NoConfigurationForUnit):
        resolver.resolve_activity_worker("printer")


def test_resolve_with_descriptor(make_resolver, greeter_properties):
    resolver = make_resolver(greeter_properties)

    resolved = resolver.resolve("greeter", _field(InlineWorkflow, "activities"))

    assert resolved.unit.task_queue == "default-q"
    assert resolved.activity.start_to_close_timeout == timedelta(seconds=5)


# ==================== activity stub 优先级 ====================

def test_inline_literal_beats_stub_defaults(make_resolver):
    """测试字段上的字面量优先于 activityStubDefaults"""
    resolver = make_resolver({
        "activityStubDefaults": {"startToCloseTimeout": "PT20S", "scheduleToCloseTimeout": "PT1M"},
    })

    options = resolver.resolve_stub(_field(InlineWorkflow, "activities"))

    assert options.start_to_close_timeout == timedelta(seconds=5)
    assert options.schedule_to_close_timeout == timedelta(minutes=1)


def test_named_stub_config_beats_inline_literal(make_resolver):
    """测试 activityStubs 中的配置优先于字段上的字面量"""
    resolver = make_resolver({
        "activityStubs": {"InlineWorkflow.GreetingActivities": {"startToCloseTimeout": "8s"}},
    })

    options = resolver.resolve_stub(_field(InlineWorkflow, "activities"))

    assert options.start_to_close_timeout == timedelta(seconds=8)


def test_named_stub_config_by_simple_name(make_resolver):
    resolver = make_resolver({
        "activityStubs": {"GreetingActivities": {"taskQueue": "remote-q", "heartbeatTimeout": "PT2S"}},
    })

    options = resolver.resolve_stub(_field(InlineWorkflow, "activities"))

    assert options.task_queue == "remote-q"
    assert options.heartbeat_timeout == timedelta(seconds=2)
    assert options.start_to_close_timeout == timedelta(seconds=5)


def test_legacy_duration(make_resolver):
    """测试旧写法 duration 设置 schedule-to-close，但低于字段上的字面量"""
    resolver = make_resolver()

    assert resolver.resolve_stub(_field(LegacyWorkflow, "legacy_only")).schedule_to_close_timeout == timedelta(seconds=10)
    assert resolver.resolve_stub(_field(LegacyWorkflow, "both")).schedule_to_close_timeout == timedelta(seconds=3)


def test_explicit_task_queue(make_resolver):
    options = make_resolver().resolve_stub(_field(RemoteWorkflow, "activities"))
    assert options.task_queue == "remote-q"


def test_global_hook_runs_after_defaults_before_inline(make_resolver):
    """测试全局钩子在默认值之后、字段字面量之前执行"""
    seen = []

    class Hooks(TemporalOptionsConfiguration):
        def modify_default_activity_options(self, options):
            seen.append(options.schedule_to_close_timeout)
            options.start_to_close_timeout = timedelta(seconds=1)
            options.heartbeat_timeout = timedelta(seconds=7)
            return options

    resolver = make_resolver(
        {"activityStubDefaults": {"scheduleToCloseTimeout": "PT1M"}},
        options_configuration=Hooks(),
    )

    options = resolver.resolve_stub(_field(InlineWorkflow, "activities"))

    assert seen == [timedelta(minutes=1)]
    assert options.start_to_close_timeout == timedelta(seconds=5)
    assert options.heartbeat_timeout == timedelta(seconds=7)


def test_retry_override_merges_with_hook_policy(make_resolver):
    """测试字段上的重试覆盖逐字段合并到钩子设置的策略上"""
    class Hooks(TemporalOptionsConfiguration):
        def modify_default_activity_options(self, options):
            options.retry_policy = RetryPolicy(initial_interval=timedelta(seconds=2), maximum_attempts=5)
            return options

    resolver = make_resolver(options_configuration=Hooks())

    policy = resolver.resolve_stub(_field(RetryWorkflow, "activities")).retry_policy

    assert policy.initial_interval == timedelta(seconds=2)
    assert policy.maximum_attempts == 10
    assert policy.non_retryable_error_types == ["X"]


def test_no_retry_override_keeps_policy_unset(make_resolver):
    assert make_resolver().resolve_stub(_field(InlineWorkflow, "activities")).retry_policy is None


def test_registered_modifier_has_final_say(make_resolver):
    """测试按类型注册的修改函数最后执行"""
    modifiers = ModifierRegistry()

    @modifiers.register(GreetingActivities)
    def longer_timeout(options):
        options.start_to_close_timeout = timedelta(seconds=99)
        return options

    resolver = make_resolver(
        {"activityStubs": {"GreetingActivities": {"startToCloseTimeout": "8s"}}},
        modifiers=modifiers,
    )

    options = resolver.resolve_stub(_field(InlineWorkflow, "activities"))

    assert options.start_to_close_timeout == timedelta(seconds=99)
    assert GreetingActivities in modifiers
    assert len(modifiers) == 1


def test_field_modifier_takes_precedence_over_registry(make_resolver):
    def field_modifier(options):
        options.task_queue = "field-q"
        return options

    class ModifiedWorkflow:
        activities = activity_stub(GreetingActivities, modifier=field_modifier)

    modifiers = ModifierRegistry()
    modifiers.register(GreetingActivities, lambda options: options)

    options = make_resolver(modifiers=modifiers).resolve_stub(_field(ModifiedWorkflow, "activities"))

    assert options.task_queue == "field-q"


def test_resolution_has_no_side_effects(make_resolver):
    """测试解析不修改配置，多次解析结果相同"""
    resolver = make_resolver({"activityStubDefaults": {"startToCloseTimeout": "PT20S"}})
    descriptor = _field(InlineWorkflow, "activities")

    first = resolver.resolve_stub(descriptor)
    second = resolver.resolve_stub(descriptor)

    assert first == second
    assert first is not second
    assert resolver.store.stub_defaults.start_to_close_timeout == timedelta(seconds=20)

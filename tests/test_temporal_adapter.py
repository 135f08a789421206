# tests/test_temporal_adapter.py
# temporalio 适配层测试（不连接 Temporal Server）
#
# 运行方式：
#   pytest tests/test_temporal_adapter.py -v

import asyncio
import logging
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from temporalio.worker import WorkflowInboundInterceptor

from temporal_starter.options.modifiers import TemporalOptionsConfiguration
from temporal_starter.options.properties import TemporalProperties
from temporal_starter.options.records import ActivityOptions, WorkerOptions
from temporal_starter.options.resolver import OptionResolver
from temporal_starter.options.store import ConfigurationStore
from temporal_starter.registrar import WorkerRegistrar
from temporal_starter.temporal.client import (
    TemporalOrchestrationClient,
    TemporalWorkerHandle,
    activity_methods,
    build_client_options,
    connect_client,
)
from temporal_starter.temporal.interceptor import StubInjectionInterceptor
from temporal_starter.temporal.stubs import ActivityStub
from temporal_starter.temporal.worker import bootstrap, load_units, run_worker

from conftest import FakeOrchestrationClient
from sample_units import GreetingActivities, GreetingWorkflowImpl


# ==================== 连接 ====================

def test_build_client_options():
    properties = TemporalProperties(host="temporal.internal", port=7233, use_ssl=True, namespace="orders")

    options = build_client_options(properties)

    assert options.target_host == "temporal.internal:7233"
    assert options.namespace == "orders"
    assert options.tls is True
    assert options.keep_alive_config is not None


def test_keep_alive_tuning():
    """测试连接调优参数中的 keep-alive 设置"""
    properties = TemporalProperties.model_validate({
        "host": "localhost",
        "port": 7233,
        "workflowServiceStubOptions": {"keepAliveTime": "PT10S", "keepAliveTimeout": "PT5S"},
    })

    config = build_client_options(properties).keep_alive_config

    assert config.interval_millis == 10000
    assert config.timeout_millis == 5000


def test_keep_alive_disabled():
    properties = TemporalProperties.model_validate({
        "host": "localhost",
        "port": 7233,
        "workflowServiceStubOptions": {"enableKeepAlive": False},
    })

    assert build_client_options(properties).keep_alive_config is None


@pytest.mark.asyncio
async def test_connect_client_applies_hook():
    """测试 modify_client_options 钩子可以修改连接参数"""
    class Hooks(TemporalOptionsConfiguration):
        def modify_client_options(self, options):
            options.namespace = "custom"
            return options

    properties = TemporalProperties(host="localhost", port=7233, namespace="default")

    with patch("temporal_starter.temporal.client.Client.connect", new=AsyncMock(return_value="client")) as connect:
        client = await connect_client(properties, Hooks())

    assert client == "client"
    assert connect.await_args.args == ("localhost:7233",)
    assert connect.await_args.kwargs["namespace"] == "custom"


# ==================== 调用句柄 ====================

@pytest.mark.asyncio
async def test_activity_stub_executes_with_resolved_options():
    options = ActivityOptions(start_to_close_timeout=timedelta(seconds=5), task_queue="greet-q")
    stub = ActivityStub(GreetingActivities, options)

    with patch("temporalio.workflow.execute_activity_method", new=AsyncMock(return_value="Hello, World!")) as execute:
        result = await stub.compose_greeting("Hello", "World")

    assert result == "Hello, World!"
    execute.assert_awaited_once_with(
        GreetingActivities.compose_greeting,
        args=["Hello", "World"],
        start_to_close_timeout=timedelta(seconds=5),
        task_queue="greet-q",
    )


def test_activity_stub_unknown_method():
    stub = ActivityStub(GreetingActivities, ActivityOptions())

    with pytest.raises(AttributeError):
        stub.missing_method


# ==================== 拦截器 ====================

@pytest.mark.asyncio
async def test_interceptor_injects_before_execute():
    """测试 workflow 方法执行前先注入"""
    injector = MagicMock()
    interceptor = StubInjectionInterceptor(injector)
    inbound_class = interceptor.workflow_interceptor_class(MagicMock())
    assert issubclass(inbound_class, WorkflowInboundInterceptor)

    next_inbound = MagicMock()
    next_inbound.execute_workflow = AsyncMock(return_value="done")
    next_inbound.handle_signal = AsyncMock(return_value=None)
    instance = object()

    inbound = inbound_class(next_inbound)
    with patch("temporalio.workflow.instance", return_value=instance):
        assert await inbound.execute_workflow(MagicMock()) == "done"
        await inbound.handle_signal(MagicMock())

    assert injector.ensure_injected.call_count == 2
    injector.ensure_injected.assert_called_with(instance)


# ==================== Worker ====================

def test_activity_methods():
    instance = GreetingActivities()

    methods = activity_methods(instance)

    assert methods == [instance.compose_greeting]


def test_orchestration_client_creates_handles():
    injector = MagicMock()
    orchestration = TemporalOrchestrationClient(MagicMock(), injector)

    handle = orchestration.new_worker("greet-q", WorkerOptions(max_concurrent_activities=4))
    stub = orchestration.new_activity_stub(GreetingActivities, ActivityOptions())

    assert isinstance(handle, TemporalWorkerHandle)
    assert handle.task_queue == "greet-q"
    assert handle.injector is injector
    assert isinstance(stub, ActivityStub)


@pytest.mark.asyncio
async def test_empty_worker_is_not_started():
    handle = TemporalWorkerHandle(MagicMock(), "empty-q", WorkerOptions())

    await handle.start()
    await handle.shutdown()

    assert handle.worker is None


class FailingWorker:
    """run() 立即失败的 Worker"""

    def __init__(self):
        self.shutdown = AsyncMock()

    async def run(self):
        raise RuntimeError("poller died")


@pytest.mark.asyncio
async def test_worker_failure_is_logged_and_raised(caplog):
    """测试 Worker 运行失败时记录错误，wait / shutdown 抛出原异常"""
    handle = TemporalWorkerHandle(MagicMock(), "greet-q", WorkerOptions())
    handle.register_workflow_implementation_types(GreetingWorkflowImpl)
    worker = FailingWorker()

    with caplog.at_level(logging.ERROR, logger="temporal_starter.temporal.client"):
        with patch.object(TemporalWorkerHandle, "build_worker", return_value=worker):
            await handle.start()
        with pytest.raises(RuntimeError, match="poller died"):
            await asyncio.wait_for(handle.wait(), timeout=1)
        await asyncio.sleep(0)

    assert any("greet-q" in record.getMessage() for record in caplog.records)

    with pytest.raises(RuntimeError, match="poller died"):
        await handle.shutdown()
    # 已经退出的 Worker 不再调用 shutdown
    worker.shutdown.assert_not_awaited()


# ==================== 启动入口 ====================

def test_load_units():
    assert load_units("sample_units:UNITS")[0] is GreetingWorkflowImpl
    assert load_units("sample_units:build_units") == [GreetingWorkflowImpl]

    with pytest.raises(ValueError):
        load_units("sample_units")


@pytest.mark.asyncio
async def test_bootstrap_registers_units(greeter_properties):
    properties = TemporalProperties.model_validate(greeter_properties).with_connection_defaults()

    with patch("temporal_starter.temporal.worker.connect_client", new=AsyncMock(return_value=MagicMock())):
        registrar = await bootstrap(
            [GreetingWorkflowImpl],
            properties=properties,
            activity_provider=lambda element_type: element_type(),
        )

    handle = registrar.workers["default-q"]
    assert isinstance(handle, TemporalWorkerHandle)
    assert handle.workflow_types == [GreetingWorkflowImpl]
    assert handle.injector is not None


@pytest.mark.asyncio
async def test_run_worker_stops_when_a_worker_fails(greeter_properties):
    """测试任一 Worker 异常退出时 run_worker 停止所有 Worker 并抛出异常"""
    orchestration = FakeOrchestrationClient()
    registrar = WorkerRegistrar(
        OptionResolver(ConfigurationStore(TemporalProperties.model_validate(greeter_properties))),
        orchestration,
    )
    registrar.register_all([GreetingWorkflowImpl])
    orchestration.workers[0].fail(RuntimeError("poller died"))

    with patch("temporal_starter.temporal.worker.bootstrap", new=AsyncMock(return_value=registrar)), \
            patch("temporal_starter.temporal.worker.signal.signal"):
        with pytest.raises(RuntimeError, match="poller died"):
            await asyncio.wait_for(run_worker([GreetingWorkflowImpl]), timeout=1)

    assert orchestration.workers[0].start_count == 1
    assert orchestration.workers[0].shutdown_count == 1

# tests/conftest.py
# Pytest 配置文件
#
# 功能：
# 1. 自动加载环境变量
# 2. 提供内存中的编排客户端（不连接 Temporal Server）
# 3. 提供配置存储 / 解析器的工厂 fixtures

import asyncio
import os
import sys
import threading
import time

import pytest

# 将项目根目录添加到 Python 路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from temporal_starter.options.properties import TemporalProperties
from temporal_starter.options.resolver import OptionResolver
from temporal_starter.options.store import ConfigurationStore


# ==================== 环境配置 ====================

def pytest_configure(config):
    """Pytest 启动时配置"""
    # 加载 .env 文件
    from dotenv import load_dotenv
    load_dotenv()


# ==================== 编排客户端 ====================

class FakeActivityStub:
    """记录创建参数的调用句柄"""

    def __init__(self, element_type, options):
        self.element_type = element_type
        self.options = options


class FakeWorkerHandle:
    """
    只记录注册和启动次数的 Worker

    fail() 模拟运行中异常退出；shutdown_error 模拟停止时出错
    """

    def __init__(self, task_queue, options):
        self.task_queue = task_queue
        self.options = options
        self.workflow_types = []
        self.activity_instances = []
        self.start_count = 0
        self.shutdown_count = 0
        self.shutdown_error = None
        self.failure = None
        self._stopped = asyncio.Event()

    def register_workflow_implementation_types(self, *types):
        self.workflow_types.extend(types)

    def register_activities_implementations(self, *instances):
        self.activity_instances.extend(instances)

    async def start(self):
        self.start_count += 1

    def fail(self, error):
        self.failure = error
        self._stopped.set()

    async def wait(self):
        await self._stopped.wait()
        if self.failure is not None:
            raise self.failure

    async def shutdown(self):
        self.shutdown_count += 1
        self._stopped.set()
        if self.shutdown_error is not None:
            raise self.shutdown_error


class FakeOrchestrationClient:
    """
    内存中的编排客户端

    new_activity_stub 可以设置延迟，用来放大并发注入时的竞争窗口
    """

    def __init__(self, stub_delay: float = 0.0):
        self.stub_delay = stub_delay
        self.workers = []
        self.stubs = []
        self._lock = threading.Lock()

    def new_activity_stub(self, element_type, options):
        if self.stub_delay:
            time.sleep(self.stub_delay)
        stub = FakeActivityStub(element_type, options)
        with self._lock:
            self.stubs.append(stub)
        return stub

    def new_worker(self, task_queue, options):
        handle = FakeWorkerHandle(task_queue, options)
        self.workers.append(handle)
        return handle


@pytest.fixture
def orchestration():
    return FakeOrchestrationClient()


# ==================== 配置 Fixtures ====================

@pytest.fixture
def make_store():
    """由属性文件结构（dict）创建 ConfigurationStore 的工厂函数"""
    def _make(data: dict = None) -> ConfigurationStore:
        return ConfigurationStore(TemporalProperties.model_validate(data or {}))
    return _make


@pytest.fixture
def make_resolver(make_store):
    """创建 OptionResolver 的工厂函数"""
    def _make(data: dict = None, options_configuration=None, modifiers=None) -> OptionResolver:
        return OptionResolver(make_store(data), options_configuration, modifiers)
    return _make


@pytest.fixture
def greeter_properties():
    """greeter 等单元只有空的命名记录，字段全部来自默认值"""
    return {
        "workflowDefaults": {
            "taskQueue": "default-q",
            "executionTimeout": "PT30S",
        },
        "workflows": {
            "greeter": {},
            "farewell": {},
            "mail-flow": {},
        },
    }

# temporal_starter/temporal/worker.py
# Worker 启动入口
#
# 用法：
#   python -m temporal_starter.temporal.worker myapp.units:UNITS
#
# UNITS 是 workflow 实现类和 activity 实现实例的列表（可以是返回列表的函数）。
# 配置从 TEMPORAL_PROPERTIES_FILE 指向的 JSON 文件读取。
#
# 启动顺序：
# 1. 加载配置，连接 Temporal Server
# 2. 注册所有单元（配置错误在这里抛出，此时还没有 Worker 开始轮询）
# 3. 一起启动所有 Worker，等待 SIGINT / SIGTERM；任一 Worker 异常退出时停止全部并以非零状态退出

import asyncio
import importlib
import signal
import sys
from typing import Any, Iterable, Optional

from temporal_starter.core.config import settings
from temporal_starter.core.logging import get_logger, setup_logging
from temporal_starter.injection import StubInjector
from temporal_starter.options.modifiers import ModifierRegistry, TemporalOptionsConfiguration
from temporal_starter.options.properties import TemporalProperties, load_properties
from temporal_starter.options.resolver import OptionResolver
from temporal_starter.options.store import ConfigurationStore
from temporal_starter.registrar import ActivityProvider, WorkerRegistrar
from temporal_starter.temporal.client import TemporalOrchestrationClient, connect_client

logger = get_logger(__name__)


async def bootstrap(
    units: Iterable[Any],
    properties: Optional[TemporalProperties] = None,
    activity_provider: Optional[ActivityProvider] = None,
    options_configuration: Optional[TemporalOptionsConfiguration] = None,
    modifiers: Optional[ModifierRegistry] = None,
) -> WorkerRegistrar:
    """
    连接并注册所有单元（不启动 Worker）

    Returns:
        WorkerRegistrar: 已注册的注册器，调用 start_all() 启动
    """
    properties = properties or load_properties()
    store = ConfigurationStore(properties)
    resolver = OptionResolver(store, options_configuration, modifiers)

    client = await connect_client(properties, options_configuration)
    orchestration = TemporalOrchestrationClient(client)
    orchestration.injector = StubInjector(resolver, orchestration)

    registrar = WorkerRegistrar(resolver, orchestration, activity_provider)
    registrar.register_all(units)
    return registrar


def load_units(path: str) -> list:
    """
    按 "module:attribute" 导入单元列表

    attribute 可以是列表，也可以是返回列表的函数
    """
    module_name, _, attribute = path.partition(":")
    if not attribute:
        raise ValueError(f"单元路径格式应为 module:attribute，实际为 {path!r}")
    target = getattr(importlib.import_module(module_name), attribute)
    return list(target() if callable(target) else target)


async def run_worker(units: Iterable[Any], **kwargs: Any):
    """
    启动所有 Worker，直到收到停止信号
    """
    logger.info("=" * 60)
    logger.info("Temporal Worker 启动中...")
    logger.info(f"  Temporal Server: {settings.TEMPORAL_HOST}:{settings.TEMPORAL_PORT}")
    logger.info(f"  Namespace: {settings.TEMPORAL_NAMESPACE}")
    logger.info(f"  Properties: {settings.TEMPORAL_PROPERTIES_FILE}")
    logger.info("=" * 60)

    registrar = await bootstrap(units, **kwargs)

    # 处理优雅关闭
    shutdown_event = asyncio.Event()

    def signal_handler(signum, frame):
        logger.info(f"收到信号 {signum}，准备关闭...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    await registrar.start_all()
    logger.info(f"Temporal Worker 已启动: {sorted(registrar.workers)}，等待任务...")

    try:
        # 收到信号，或任一 Worker 异常退出（异常从这里抛出）
        await registrar.wait(shutdown_event)
    finally:
        await registrar.shutdown_all()

    logger.info("Temporal Worker 已关闭")


def main():
    """
    主入口
    """
    setup_logging()
    if len(sys.argv) < 2:
        logger.error("用法: python -m temporal_starter.temporal.worker module:UNITS")
        sys.exit(2)

    try:
        asyncio.run(run_worker(load_units(sys.argv[1])))
    except KeyboardInterrupt:
        logger.info("收到 KeyboardInterrupt，正在退出...")
    except Exception as e:
        logger.error(f"Worker 异常退出: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

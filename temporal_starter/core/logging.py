# temporal_starter/core/logging.py
# 日志配置模块
#
# 功能说明：
# 1. 库内各模块通过 get_logger(__name__) 获取 logger，消息以 "[组件名]" 开头
#    例如 "[WorkerRegistrar] 创建 Worker: task_queue=default-q"
# 2. 两种输出格式：彩色控制台（开发）和 JSON（生产），组件名单独成列 / 成字段
# 3. temporalio 自身的 logger 级别跟随 DEBUG 开关
#
# 使用方法：
#   from temporal_starter.core.logging import get_logger
#   logger = get_logger(__name__)
#   logger.info("[StubInjector] 已创建 ActivityStub")
#
# 库本身只调用 get_logger；setup_logging 由宿主进程（如 Worker 入口）调用一次

import json
import logging
import re
import sys
from datetime import datetime
from typing import Optional

from temporal_starter.core.config import settings

# 消息开头的 "[组件名]"
_COMPONENT_PATTERN = re.compile(r"^\[(?P<component>[\w.]+)\]\s*")


def split_component(message: str) -> tuple[Optional[str], str]:
    """
    拆出消息开头的组件名

    Returns:
        (组件名或 None, 去掉前缀后的消息)
    """
    match = _COMPONENT_PATTERN.match(message)
    if match is None:
        return None, message
    return match.group("component"), message[match.end():]


# ==================== 彩色输出 ====================

class Colors:
    """终端颜色代码"""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    GRAY = "\033[90m"


LEVEL_COLORS = {
    "DEBUG": Colors.BLUE,
    "INFO": Colors.GREEN,
    "WARNING": Colors.YELLOW,
    "ERROR": Colors.RED,
    "CRITICAL": Colors.MAGENTA,
}


class ColoredFormatter(logging.Formatter):
    """
    彩色日志格式化器（开发环境使用）

    输出格式：
    2026-01-30 12:00:00 | INFO     | WorkerRegistrar      | 创建 Worker: task_queue=default-q
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        level_color = LEVEL_COLORS.get(record.levelname, Colors.RESET)

        component, message = split_component(record.getMessage())
        # 没有组件前缀的消息（如 temporalio 自身的日志）显示 logger 名
        source = component or record.name

        formatted = (
            f"{Colors.CYAN}{timestamp}{Colors.RESET} | "
            f"{level_color}{record.levelname:8}{Colors.RESET} | "
            f"{Colors.GRAY}{source:20}{Colors.RESET} | "
            f"{message}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)
        return formatted


class JSONFormatter(logging.Formatter):
    """
    JSON 日志格式化器（生产环境使用）

    每行一个 JSON 对象；component 字段便于按组件过滤
    """

    def format(self, record: logging.LogRecord) -> str:
        component, message = split_component(record.getMessage())
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": component,
            "message": message,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # 通过 extra={"extra_data": {...}} 传入的上下文（如 task_queue、workflow 名）
        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        return json.dumps(log_data, ensure_ascii=False, default=str)


# ==================== 初始化 ====================

def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    初始化日志系统

    Args:
        level: 日志级别，默认取 LOG_LEVEL
        log_format: "console" 或 "json"，默认取 LOG_FORMAT
    """
    level = level or settings.LOG_LEVEL
    log_format = log_format or settings.LOG_FORMAT

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # 清除已有的 handler（避免重复添加）
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if log_format == "json" else ColoredFormatter())
    root_logger.addHandler(handler)

    logging.getLogger("temporalio").setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """获取 logger 实例，name 通常传入 __name__"""
    return logging.getLogger(name)

# temporal_starter/core/config.py
# 配置管理模块
#
# 功能说明：
# 1. 使用 Pydantic Settings 从环境变量加载进程级配置
# 2. 支持 .env 文件读取
# 3. 提供类型安全的配置访问
#
# 这里只放连接和日志相关的配置；workflow / activity 的分层选项
# 定义在 temporal_starter/options/properties.py（TemporalProperties）
#
# 使用方法：
#   from temporal_starter.core.config import settings
#   print(settings.TEMPORAL_HOST)

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    进程级配置类

    所有配置项都可以通过环境变量覆盖，环境变量名与属性名相同（大写）
    例如：设置 TEMPORAL_HOST=temporal.internal 会覆盖默认地址
    """

    # ==================== 日志配置 ====================
    # 日志级别：DEBUG < INFO < WARNING < ERROR < CRITICAL
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # 日志格式：console（彩色控制台输出）或 json（结构化JSON，适合生产环境）
    LOG_FORMAT: Literal["console", "json"] = "console"

    # 调试模式：True 时 temporalio 自身的日志也输出到 DEBUG
    DEBUG: bool = False

    # ==================== Temporal 连接配置 ====================
    # Temporal Server 地址（不含端口）
    # 属性文件中的 host 优先，这里是兜底值
    TEMPORAL_HOST: str = "localhost"
    TEMPORAL_PORT: int = 7233

    # 是否使用 TLS 连接（Temporal Cloud 需要开启）
    TEMPORAL_USE_SSL: bool = False

    # 命名空间，用于隔离不同环境/租户的工作流
    TEMPORAL_NAMESPACE: str = "default"

    # 是否在启动时创建并启动 Worker
    # 只做客户端（启动工作流）的进程可以关闭
    TEMPORAL_CREATE_WORKERS: bool = True

    # ==================== 分层选项配置 ====================
    # TemporalProperties 的 JSON 文件路径
    # 为空时使用空配置（所有单元都必须由默认值兜底）
    TEMPORAL_PROPERTIES_FILE: Optional[str] = None

    class Config:
        """Pydantic 配置类"""
        env_file = ".env"              # 从 .env 文件读取环境变量
        env_file_encoding = "utf-8"    # 文件编码
        case_sensitive = True          # 环境变量名区分大小写
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """
    获取配置实例（单例模式）

    Returns:
        Settings: 配置实例
    """
    return Settings()


# 导出配置实例，方便其他模块使用
settings = get_settings()

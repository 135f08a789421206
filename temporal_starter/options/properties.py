# temporal_starter/options/properties.py
# 分层配置结构
#
# 对应属性文件的根结构：
#   host / port / useSsl / namespace / createWorkers
#   workflowDefaults / activityWorkerDefaults      -> WorkflowOption
#   workflows / activityWorkers                    -> 名称 -> WorkflowOption
#   activityStubDefaults                           -> ActivityStubOptions
#   activityStubs                                  -> stub 名称 -> ActivityStubOptions
#   workflowServiceStubOptions                     -> 连接调优参数（透传）
#
# 加载方式：
#   properties = load_properties("temporal.json")
#   properties = TemporalProperties.model_validate({...})

from pathlib import Path
from typing import Optional, Union

from temporal_starter.core.config import Settings, settings
from temporal_starter.core.logging import get_logger
from temporal_starter.options.records import (
    ActivityStubOptions,
    ConfigRecord,
    WorkflowOption,
    WorkflowServiceStubOptions,
)

logger = get_logger(__name__)


class TemporalProperties(ConfigRecord):
    """
    Temporal 分层配置

    所有单元相关的选项都从这里读取；默认值的填充由 ConfigurationStore 负责
    """

    # ==================== 连接 ====================
    host: Optional[str] = None
    port: Optional[int] = None
    use_ssl: Optional[bool] = None
    namespace: Optional[str] = None

    # 是否创建 Worker；False 时 WorkerRegistrar 不做任何注册
    create_workers: bool = True

    # ==================== workflow / activity worker ====================
    workflow_defaults: Optional[WorkflowOption] = None
    activity_worker_defaults: Optional[WorkflowOption] = None
    workflows: dict[str, WorkflowOption] = {}
    activity_workers: dict[str, WorkflowOption] = {}

    # ==================== activity stub ====================
    activity_stub_defaults: Optional[ActivityStubOptions] = None
    activity_stubs: dict[str, ActivityStubOptions] = {}

    # ==================== 连接调优 ====================
    workflow_service_stub_options: Optional[WorkflowServiceStubOptions] = None

    def with_connection_defaults(self, env: Settings = settings) -> "TemporalProperties":
        """
        用环境变量补齐连接参数

        属性文件里写了的以属性文件为准

        Args:
            env: 进程级配置

        Returns:
            TemporalProperties: 补齐后的新实例
        """
        return self.model_copy(update={
            "host": self.host or env.TEMPORAL_HOST,
            "port": self.port or env.TEMPORAL_PORT,
            "use_ssl": env.TEMPORAL_USE_SSL if self.use_ssl is None else self.use_ssl,
            "namespace": self.namespace or env.TEMPORAL_NAMESPACE,
        })


def load_properties(path: Union[str, Path, None] = None) -> TemporalProperties:
    """
    从 JSON 文件加载配置

    Args:
        path: 文件路径，为空时使用 TEMPORAL_PROPERTIES_FILE；都为空时返回空配置

    Returns:
        TemporalProperties: 已补齐连接参数的配置
    """
    path = path or settings.TEMPORAL_PROPERTIES_FILE
    if not path:
        logger.info("未配置 TEMPORAL_PROPERTIES_FILE，使用空配置")
        properties = TemporalProperties()
    else:
        logger.info(f"加载 Temporal 配置: {path}")
        properties = TemporalProperties.model_validate_json(Path(path).read_text(encoding="utf-8"))

    properties = properties.with_connection_defaults()
    if not settings.TEMPORAL_CREATE_WORKERS:
        properties.create_workers = False
    return properties

# temporal_starter/__init__.py
# Temporal 选项解析与 activity stub 注入
#
# 目录结构：
# temporal_starter/
# ├── core/             # 配置、日志、异常
# ├── options/          # 时长、重试策略、配置记录、配置存储、选项解析
# ├── temporal/         # 基于 temporalio 的编排客户端、调用句柄、拦截器、Worker 入口
# ├── declarations.py   # @temporal_workflow / @activity_worker / activity_stub
# ├── injection.py      # StubInjector
# ├── registrar.py      # WorkerRegistrar
# └── factory.py        # WorkflowFactory
#
# 使用方式：
#   from temporal_starter import activity_stub, retry_options, temporal_workflow

from temporal_starter.declarations import (
    activity_stub,
    activity_worker,
    retry_options,
    temporal_workflow,
)
from temporal_starter.options.durations import UNSET, parse_duration

__all__ = [
    "activity_stub",
    "activity_worker",
    "retry_options",
    "temporal_workflow",
    "UNSET",
    "parse_duration",
]

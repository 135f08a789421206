# temporal_starter/core/errors.py
# 异常定义
#
# 所有致命错误都在启动 / 注册阶段抛出，Worker 开始轮询之前暴露配置问题：
# - ConfigurationMissing: 需要的命名配置不存在
# - MissingTaskQueue: 所有层都没有提供 task queue
# - NoConfigurationForUnit: activity worker 单元没有对应配置
# - MalformedDurationLiteral: 时长字面量无法解析
# - StubInjectionError: 字段无法写入（编程错误）
# - WorkersAlreadyStarted: Worker 已启动后又请求注册
#
# 非致命：
# - DuplicateRegistration: 同一实现类型重复注册，记录日志后跳过


class TemporalStarterError(Exception):
    """所有异常的基类"""
    pass


class ConfigurationMissing(TemporalStarterError):
    """找不到命名配置"""

    def __init__(self, name: str, message: str = ""):
        self.name = name
        super().__init__(message or f"No configuration defined for: {name}")


class NoConfigurationForUnit(ConfigurationMissing):
    """activity worker 单元在 activityWorkers 中没有配置"""

    def __init__(self, name: str):
        super().__init__(name, f"No configuration defined for activityWorker: {name}")


class MissingTaskQueue(TemporalStarterError):
    """解析完成后 task queue 仍未设置"""

    def __init__(self, unit_name: str):
        self.unit_name = unit_name
        super().__init__(f"No task queue resolved for unit: {unit_name}")


class MalformedDurationLiteral(TemporalStarterError):
    """时长字面量格式错误"""

    def __init__(self, literal, reason: str = ""):
        self.literal = literal
        message = f"Malformed duration literal: {literal!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class DuplicateRegistration(TemporalStarterError):
    """同一实现类型重复注册（非致命）"""

    def __init__(self, impl_type: type):
        self.impl_type = impl_type
        super().__init__(f"Implementation already registered: {impl_type.__qualname__}")


class StubInjectionError(TemporalStarterError):
    """无法把 stub 写入 workflow 实例字段"""
    pass


class WorkersAlreadyStarted(TemporalStarterError):
    """Worker 已经启动，不能再注册新的单元"""
    pass

# temporal_starter/options/modifiers.py
# 选项修改钩子
#
# 两种钩子：
# 1. TemporalOptionsConfiguration：全局钩子，宿主应用继承并覆盖需要的方法
#    - modify_client_options: 客户端连接选项
#    - modify_default_stub_options: 启动 workflow 的默认选项
#    - modify_default_activity_options: activity stub 的默认选项
# 2. ModifierRegistry：按 activity 类型注册的修改函数，最后执行，拥有最终写权限
#
# 钩子都是 builder -> builder 的函数，不应该抛异常，也不应该修改入参以外的状态

from typing import Callable, Optional, TypeVar

from temporal_starter.core.logging import get_logger
from temporal_starter.options.records import ActivityOptions, WorkflowOptions

logger = get_logger(__name__)

B = TypeVar("B")

ActivityOptionsModifier = Callable[[ActivityOptions], ActivityOptions]


class TemporalOptionsConfiguration:
    """
    全局选项钩子

    默认实现原样返回，子类按需覆盖：

        class MyOptions(TemporalOptionsConfiguration):
            def modify_default_activity_options(self, options):
                options.retry_policy = RetryPolicy(maximum_attempts=3)
                return options
    """

    def modify_client_options(self, options: B) -> B:
        return options

    def modify_default_stub_options(self, options: WorkflowOptions) -> WorkflowOptions:
        return options

    def modify_default_activity_options(self, options: ActivityOptions) -> ActivityOptions:
        return options


class ModifierRegistry:
    """
    按 activity 类型注册的选项修改函数

    使用方法：
        modifiers = ModifierRegistry()

        @modifiers.register(GreetingActivities)
        def limit_attempts(options):
            options.retry_policy = RetryPolicy(maximum_attempts=2)
            return options
    """

    def __init__(self):
        self._modifiers: dict[type, ActivityOptionsModifier] = {}

    def register(self, element_type: type, modifier: Optional[ActivityOptionsModifier] = None):
        """
        注册修改函数，不传 modifier 时可用作装饰器

        Args:
            element_type: activity 类型
            modifier: builder -> builder 的函数
        """
        if modifier is None:
            def decorator(func: ActivityOptionsModifier) -> ActivityOptionsModifier:
                self.register(element_type, func)
                return func
            return decorator

        if element_type in self._modifiers:
            logger.warning(f"[ModifierRegistry] {element_type.__name__} 的修改函数已存在，将被覆盖")
        self._modifiers[element_type] = modifier
        logger.debug(f"[ModifierRegistry] 注册修改函数: {element_type.__name__} -> {modifier.__name__}")
        return modifier

    def get(self, element_type: type) -> Optional[ActivityOptionsModifier]:
        return self._modifiers.get(element_type)

    def __contains__(self, element_type: type) -> bool:
        return element_type in self._modifiers

    def __len__(self) -> int:
        return len(self._modifiers)

# temporal_starter/temporal/stubs.py
# activity 调用句柄
#
# 注入到 workflow 字段上的对象。访问 activity 方法名得到一个异步函数，
# 调用时用解析好的选项执行 workflow.execute_activity_method：
#
#   result = await self.activities.compose_greeting("Hello", name)
#
# 只能在 workflow 代码中调用

from typing import Any, Callable

from temporalio import workflow

from temporal_starter.options.records import ActivityOptions


class ActivityStub:
    """
    activity 调用句柄

    Attributes:
        activity_type: activity 类型（方法上有 @activity.defn）
        options: 生效的 activity 选项
    """

    def __init__(self, activity_type: type, options: ActivityOptions):
        self.activity_type = activity_type
        self.options = options

    def __getattr__(self, name: str) -> Callable:
        if name.startswith("_"):
            raise AttributeError(name)
        method = getattr(self.activity_type, name)

        async def invoke(*args: Any) -> Any:
            return await workflow.execute_activity_method(
                method,
                args=list(args),
                **self.options.to_kwargs(),
            )

        invoke.__name__ = name
        return invoke

    def __repr__(self) -> str:
        return f"ActivityStub({self.activity_type.__name__}, {self.options!r})"

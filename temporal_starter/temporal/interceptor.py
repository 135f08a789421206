# temporal_starter/temporal/interceptor.py
# stub 注入拦截器
#
# 挂在 Worker 上，workflow 实例第一次处理 run / signal / update 之前
# 调用 StubInjector.ensure_injected，保证方法体里看到的 stub 字段已经就绪。
#
# 使用方法：
#   Worker(client, ..., interceptors=[StubInjectionInterceptor(injector)])

from typing import Any, Optional, Type

from temporalio import workflow
from temporalio.worker import (
    ExecuteWorkflowInput,
    HandleSignalInput,
    HandleUpdateInput,
    Interceptor,
    WorkflowInboundInterceptor,
    WorkflowInterceptorClassInput,
)

from temporal_starter.injection import StubInjector


def _make_inbound(injector: StubInjector) -> Type[WorkflowInboundInterceptor]:
    class _StubInjectionInbound(WorkflowInboundInterceptor):
        async def execute_workflow(self, input: ExecuteWorkflowInput) -> Any:
            injector.ensure_injected(workflow.instance())
            return await super().execute_workflow(input)

        async def handle_signal(self, input: HandleSignalInput) -> None:
            injector.ensure_injected(workflow.instance())
            return await super().handle_signal(input)

        async def handle_update_handler(self, input: HandleUpdateInput) -> Any:
            injector.ensure_injected(workflow.instance())
            return await super().handle_update_handler(input)

    return _StubInjectionInbound


class StubInjectionInterceptor(Interceptor):
    """在 workflow 方法执行前注入 activity stub"""

    def __init__(self, injector: StubInjector):
        self.injector = injector
        self._inbound_class = _make_inbound(injector)

    def workflow_interceptor_class(
        self, input: WorkflowInterceptorClassInput
    ) -> Optional[Type[WorkflowInboundInterceptor]]:
        return self._inbound_class

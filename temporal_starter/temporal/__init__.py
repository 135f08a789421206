# temporal_starter/temporal/__init__.py
# temporalio 适配层
#
# - client.py: connect_client / TemporalOrchestrationClient / TemporalWorkerHandle
# - stubs.py: ActivityStub 调用句柄
# - interceptor.py: StubInjectionInterceptor
# - worker.py: Worker 启动入口（python -m temporal_starter.temporal.worker module:UNITS）
#
# 使用方式：
#   from temporal_starter.temporal.client import connect_client, TemporalOrchestrationClient

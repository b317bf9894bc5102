"""Taskiq broker for document jobs.

Workers: ``taskiq worker src.core.tasks.broker:broker src.core.tasks.document_tasks``
Scheduler: ``taskiq scheduler src.core.tasks.broker:scheduler src.core.tasks.document_tasks``
"""

from taskiq import TaskiqScheduler
from taskiq.schedule_sources import LabelScheduleSource
from taskiq_redis import ListQueueBroker, RedisAsyncResultBackend

from src.core.config import settings

# Task results (final processing status) are kept long enough to inspect a run.
result_backend = RedisAsyncResultBackend(
    redis_url=settings.redis_url,
    result_ex_time=settings.progress_ttl_seconds,
)

broker = ListQueueBroker(url=settings.redis_url, queue_name="documents").with_result_backend(
    result_backend
)

scheduler = TaskiqScheduler(
    broker=broker,
    sources=[LabelScheduleSource(broker)],
)

# assessment_engine/workers/queue.py
import logging

from redis import Redis
from rq import Queue, Retry

from assessment_engine.core.config import settings

logger = logging.getLogger(__name__)

# delivery is retried with back-off when Redis publishing fails inside the job
EVENT_RETRY = Retry(max=3, interval=[10, 30, 60])
EVENT_RESULT_TTL = 60 * 60

_redis_conn: Redis | None = None


def get_redis_connection() -> Redis:
    global _redis_conn
    if _redis_conn is None:
        _redis_conn = Redis.from_url(settings.REDIS_URL)
    return _redis_conn


def get_event_queue(name: str | None = None) -> Queue:
    return Queue(name or settings.EVENTS_QUEUE_NAME, connection=get_redis_connection())


def enqueue_event_delivery(payload: dict, *, queue_name: str | None = None) -> str:
    """Queue one serialized domain event for ``deliver_event_task``."""
    from assessment_engine.workers.tasks import deliver_event_task

    job = get_event_queue(queue_name).enqueue(
        deliver_event_task,
        payload,
        retry=EVENT_RETRY,
        result_ttl=EVENT_RESULT_TTL,
        description=f"{payload.get('event')} attempt={payload.get('attempt_id')}",
    )
    logger.debug(f"Job {job.id} queued on {job.origin}")
    return job.id

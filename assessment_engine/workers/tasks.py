"""
Event delivery tasks for the worker.
These tasks are executed by RQ workers to push attempt lifecycle events
to whoever listens for a student's notifications.
"""

import json
import logging

from redis.exceptions import RedisError

from assessment_engine.workers.queue import get_redis_connection

logger = logging.getLogger(__name__)


def channel_for_user(user_id: int) -> str:
    return f"events:user:{user_id}"


def deliver_event_task(payload: dict) -> dict:
    """
    Worker task to publish one domain event.

    The event is published as JSON on the student's Redis channel; live
    transports (websocket gateway, push service) subscribe to that channel.

    Args:
        payload: ``DomainEvent.to_dict()`` output

    Returns:
        Dictionary with delivery summary
    """
    event_name = payload.get("event")
    student_id = payload.get("student_id")
    if student_id is None:
        logger.error(f"Dropping event {event_name} without student_id: {payload}")
        return {"status": "error", "event": event_name, "error": "missing student_id"}

    channel = channel_for_user(student_id)
    try:
        receivers = get_redis_connection().publish(channel, json.dumps(payload))
    except RedisError as e:
        logger.error(f"Publishing {event_name} on {channel} failed: {e}", exc_info=True)
        # let rq mark the job failed so it can be requeued
        raise

    logger.info(f"Delivered {event_name} on {channel} to {receivers} subscriber(s)")
    return {
        "status": "success",
        "event": event_name,
        "channel": channel,
        "receivers": receivers,
    }

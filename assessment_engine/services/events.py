# assessment_engine/services/events.py
"""
Domain events raised by the attempt lifecycle and the sinks that carry them
out of the engine. Events are emitted after the owning transaction commits.
"""
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import ClassVar, Protocol

from redis.exceptions import RedisError

from assessment_engine.core.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    name: ClassVar[str] = "event"

    attempt_id: int
    assessment_id: int
    student_id: int

    def to_dict(self) -> dict:
        data = {"event": self.name}
        for key, value in asdict(self).items():
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, datetime):
                value = value.isoformat()
            data[key] = value
        return data


@dataclass(frozen=True)
class AttemptSubmitted(DomainEvent):
    name: ClassVar[str] = "attempt_submitted"

    requires_manual_review: bool = False
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class AttemptGraded(DomainEvent):
    name: ClassVar[str] = "attempt_graded"

    obtained_weight: Decimal = Decimal("0")
    mark: Decimal = Decimal("0")
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class AttemptResultsReleased(DomainEvent):
    name: ClassVar[str] = "attempt_results_released"

    mark: Decimal = Decimal("0")
    occurred_at: datetime = field(default_factory=utcnow)


class EventSink(Protocol):
    def emit(self, event: DomainEvent) -> None:
        ...


class InMemoryEventSink:
    def __init__(self):
        self.events: list[DomainEvent] = []

    def emit(self, event: DomainEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [e.name for e in self.events]


class LoggingEventSink:
    def emit(self, event: DomainEvent) -> None:
        logger.info(f"Domain event {event.name}: {event.to_dict()}")


class QueueEventSink:
    """Hands events to the rq worker, which pushes them to subscribers."""

    def __init__(self, queue_name: str | None = None):
        self.queue_name = queue_name

    def emit(self, event: DomainEvent) -> None:
        from assessment_engine.workers.queue import enqueue_event_delivery

        try:
            job_id = enqueue_event_delivery(event.to_dict(), queue_name=self.queue_name)
        except RedisError as e:
            # the transition is already committed; delivery is best effort
            logger.error(
                f"Could not enqueue {event.name} for attempt {event.attempt_id}: {e}",
                exc_info=True,
            )
            return
        logger.info(f"Enqueued {event.name} for attempt {event.attempt_id} (job {job_id})")

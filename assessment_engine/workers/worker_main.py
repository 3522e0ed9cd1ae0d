# assessment_engine/workers/worker_main.py
"""
Event delivery worker.

    python -m assessment_engine.workers.worker_main

The scheduler is enabled so retried deliveries run after their back-off.
"""
import logging

from rq import SimpleWorker

from assessment_engine.core.logging_config import setup_logging
from assessment_engine.workers.queue import get_event_queue, get_redis_connection

logger = logging.getLogger(__name__)


def main():
    setup_logging()
    queue = get_event_queue()
    logger.info(f"Worker listening on '{queue.name}'")

    worker = SimpleWorker([queue], connection=get_redis_connection())
    worker.work(with_scheduler=True)


if __name__ == "__main__":
    main()

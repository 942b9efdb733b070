"""
backend/enrollment/services/events.py

Post-commit task queue: best-effort work that must not run inside the
parcel transaction (aggregates, recounts).

Queue: Redis list `tasks:post_commit`, consumed by
outside_hours.post_commit_worker_loop().
"""

import json
import time
import logging

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

TASK_QUEUE = "tasks:post_commit"


def emit_task(task_type: str, payload: dict) -> None:
    """
    Queue a post-commit task.

    Failures are logged and dropped: the aggregate is refreshed again
    on the next commit for the same location.
    """
    task = {
        "type": task_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis_client.rpush(TASK_QUEUE, json.dumps(task))
        logger.info(f"Task emitted: {task_type} → {TASK_QUEUE}")
    except Exception as e:
        logger.error(f"Failed to emit task {task_type}: {e}")


def pop_task(timeout: int = 5) -> dict | None:
    """Block up to timeout seconds for the next task."""
    item = redis_client.blpop(TASK_QUEUE, timeout=timeout)
    if not item:
        return None

    _, raw = item
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"Dropping malformed task: {raw!r}")
        return None

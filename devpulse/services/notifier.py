"""Project-scoped realtime events, delivered fire-and-forget."""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Protocol

TASK_CREATED = "task-created"
TASK_UPDATED = "task-updated"
TASK_DELETED = "task-deleted"
PROJECT_UPDATED = "project-updated"

Subscriber = Callable[[str, Dict[str, Any]], None]


def project_topic(project_id: int) -> str:
    return f"project-{project_id}"


class ProjectEventPublisher(Protocol):
    def publish(self, project_id: int, event: str, payload: Dict[str, Any]) -> None:
        ...


class NullPublisher:
    """Publisher that drops every event."""

    def publish(self, project_id: int, event: str, payload: Dict[str, Any]) -> None:
        return None


class InProcessBroadcaster:
    """Fans events out to callbacks subscribed to a project's topic.

    Delivery is at-most-once with no ordering guarantee; a failing subscriber
    is logged and skipped.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger(__name__)

    def subscribe(self, project_id: int, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers[project_topic(project_id)].append(callback)

    def unsubscribe(self, project_id: int, callback: Subscriber) -> None:
        topic = project_topic(project_id)
        with self._lock:
            callbacks = self._subscribers.get(topic, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._subscribers.pop(topic, None)

    def publish(self, project_id: int, event: str, payload: Dict[str, Any]) -> None:
        topic = project_topic(project_id)
        with self._lock:
            callbacks = list(self._subscribers.get(topic, []))
        for callback in callbacks:
            try:
                callback(event, payload)
            except Exception:
                self._logger.warning("Realtime subscriber failed on %s (%s)", topic, event, exc_info=True)

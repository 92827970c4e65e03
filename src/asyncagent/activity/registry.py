"""Concurrent id -> Activity index."""

from __future__ import annotations

import logging
import threading

from asyncagent.activity.activity import Activity
from asyncagent.errors import DuplicateActivityError

logger = logging.getLogger(__name__)


class ActivityRegistry:
    """Index of live activities, used for routing and lifecycle cleanup.

    At most one live activity per id. Removal happens once: the first
    ``deregister`` wins and every later call reports False.
    """

    def __init__(self) -> None:
        self._activities: dict[str, Activity] = {}
        self._lock = threading.Lock()

    def register(self, activity: Activity) -> None:
        with self._lock:
            if activity.id in self._activities:
                raise DuplicateActivityError(f"Activity {activity.id} already registered")
            self._activities[activity.id] = activity
        logger.debug("Registered activity %s", activity.id)

    def deregister(self, activity_id: str) -> bool:
        """Remove an activity. Returns False if it was not registered."""
        with self._lock:
            removed = self._activities.pop(activity_id, None)
        if removed is None:
            return False
        logger.debug("Deregistered activity %s", activity_id)
        return True

    def get(self, activity_id: str | None) -> Activity | None:
        if activity_id is None:
            return None
        with self._lock:
            return self._activities.get(activity_id)

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._activities.keys())

    def snapshot(self) -> list[Activity]:
        with self._lock:
            return list(self._activities.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._activities)

    def __contains__(self, activity_id: object) -> bool:
        with self._lock:
            return activity_id in self._activities

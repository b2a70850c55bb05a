"""In-process notification center for app-wide domain events."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, List


logger = logging.getLogger(__name__)

WORKOUT_DID_COMPLETE = "com.movemd.workoutDidComplete"


class NotificationCenter:
    """Name-keyed publish/subscribe. Subscriber errors are logged, not raised."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Callable[[str], None]]] = defaultdict(list)

    def subscribe(self, name: str, callback: Callable[[str], None]) -> Callable[[], None]:
        self._subscribers[name].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[name]:
                self._subscribers[name].remove(callback)

        return unsubscribe

    def post(self, name: str) -> None:
        logger.debug("Posting %s to %d subscriber(s)", name, len(self._subscribers[name]))
        for callback in list(self._subscribers[name]):
            try:
                callback(name)
            except Exception as exc:
                logger.warning("Subscriber for %s failed: %s", name, exc)

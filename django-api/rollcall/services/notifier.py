"""Change notification.

The core only needs ``publish(topic, payload)``. The default notifier turns
each publication into a Django signal so receivers (cache invalidation,
websocket fan-out, ...) can be attached without the services knowing.
"""

from abc import ABC, abstractmethod
from typing import Any

import structlog
from django.dispatch import Signal

logger = structlog.get_logger(__name__)

OCCUPANCY_TOPIC = "occupancy.changed"
ATTENDANCE_TOPIC = "attendance.changed"
ROSTER_TOPIC = "roster.changed"

# Sent with topic and payload keyword arguments.
change_published = Signal()


class ChangeNotifier(ABC):
    """Publish-only notification bus."""

    @abstractmethod
    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        ...


class SignalNotifier(ChangeNotifier):
    """Dispatches publications through the change_published signal."""

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        responses = change_published.send_robust(sender=self.__class__, topic=topic, payload=payload)
        for receiver, response in responses:
            if isinstance(response, Exception):
                logger.error(
                    "change_receiver_failed",
                    topic=topic,
                    receiver=getattr(receiver, "__qualname__", repr(receiver)),
                    exc_info=response,
                )

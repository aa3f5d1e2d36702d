"""Signal receivers for published changes."""

import structlog
from django.core.cache import cache
from django.dispatch import receiver

from rollcall.services.capacity_service import availability_cache_key
from rollcall.services.notifier import OCCUPANCY_TOPIC, change_published

logger = structlog.get_logger(__name__)


@receiver(change_published)
def invalidate_availability_cache(sender, topic, payload, **kwargs):
    """Drop the cached seat availability when occupancy or seating rules change."""
    if topic == OCCUPANCY_TOPIC:
        cache.delete(availability_cache_key(payload["eventId"]))


@receiver(change_published)
def log_change(sender, topic, payload, **kwargs):
    logger.info("change_published", topic=topic, event_id=payload.get("eventId"))

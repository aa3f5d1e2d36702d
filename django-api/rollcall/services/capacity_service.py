"""Seating configuration and cached seat availability."""

from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from django.core.cache import cache

from rollcall.conf import get_setting
from rollcall.domain import Capacity, CapacityMode, Event
from rollcall.domain.capacity import build_time_slots, validate_capacity
from rollcall.domain.errors import EventNotFoundError, InvalidCapacityConfigError
from rollcall.services.access import ensure_organizer, parse_event_id
from rollcall.services.notifier import OCCUPANCY_TOPIC, ChangeNotifier
from rollcall.stores.interfaces import EventStore

logger = structlog.get_logger(__name__)


def availability_cache_key(event_id) -> str:
    return f"rollcall:availability:{event_id}"


def availability_payload(event: Event) -> dict[str, Any]:
    return {
        "eventId": str(event.id),
        "unlimited": event.is_unlimited,
        "maxSeats": event.max_seats.value if event.max_seats else None,
        "occupantCount": event.occupant_count,
        "availableSeats": event.available_seats,
        "timeSlotsEnabled": event.time_slots_enabled,
        "timeSlots": [
            {
                "id": slot.id,
                "name": slot.name,
                "startTime": str(slot.start_time),
                "endTime": str(slot.end_time),
                "categories": [
                    {
                        "id": category.id,
                        "name": category.name,
                        "maxOccupants": category.max_occupants.value if category.max_occupants else None,
                        "currentOccupants": category.current_occupants,
                        "available": category.available,
                    }
                    for category in slot.categories
                ],
            }
            for slot in event.time_slots
        ],
    }


def _parse_mode(value: Any) -> CapacityMode:
    if isinstance(value, CapacityMode):
        return value
    try:
        return CapacityMode(str(value).upper())
    except ValueError:
        raise InvalidCapacityConfigError("Capacity mode must be UNLIMITED or FIXED") from None


def _parse_seats(value: Any) -> Capacity | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidCapacityConfigError("Max seats must be a whole number")
    try:
        return Capacity(value)
    except ValueError:
        raise InvalidCapacityConfigError("Max seats cannot be negative") from None


class CapacityService:
    """Organizer-facing seating rules and the public availability view."""

    def __init__(self, events: EventStore, notifier: ChangeNotifier) -> None:
        self._events = events
        self._notifier = notifier

    def _get_event(self, event_id: str) -> Event:
        event = self._events.get_event(parse_event_id(event_id))
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def configure(
        self,
        event_id: str,
        actor_id: str,
        mode: CapacityMode | str,
        max_seats: int | None,
        time_slots_enabled: bool,
        time_slots: Iterable[Mapping[str, Any]] = (),
    ) -> Event:
        """Replace the seating rules of an event.

        Occupancy counters of categories that keep their id survive the
        change. A category with registered volunteers cannot be removed, and
        no limit can drop below what is already taken.

        Raises:
            EventNotFoundError: If the event does not exist.
            UnauthorizedError: If the actor does not organize the event.
            InvalidCapacityConfigError: If the new rules are inconsistent.
        """
        event = self._get_event(event_id)
        ensure_organizer(event, actor_id)

        capacity_mode = _parse_mode(mode)
        seats = _parse_seats(max_seats)
        slots = build_time_slots(time_slots, event.time_slots)
        validate_capacity(capacity_mode, seats, time_slots_enabled, slots, current=event)

        updated = self._events.save_capacity(event.id, capacity_mode, seats, time_slots_enabled, slots)
        self._notifier.publish(OCCUPANCY_TOPIC, availability_payload(updated))
        logger.info(
            "capacity_configured",
            event_id=str(event.id),
            mode=capacity_mode.value,
            max_seats=seats.value if seats else None,
            time_slots=len(slots),
        )
        return updated

    def availability(self, event_id: str) -> dict[str, Any]:
        event_key = parse_event_id(event_id)
        key = availability_cache_key(event_key)
        cached = cache.get(key)
        if cached is not None:
            return cached

        event = self._events.get_event(event_key)
        if event is None:
            raise EventNotFoundError(event_id)
        payload = availability_payload(event)
        cache.set(key, payload, get_setting("AVAILABILITY_CACHE_TTL"))
        return payload

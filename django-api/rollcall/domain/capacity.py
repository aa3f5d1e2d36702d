"""Seating rules: building and validating an event's capacity structure.

Raw time slots arrive as plain mappings::

    {"id": "...", "name": "Morning", "start_time": "08:00", "end_time": "12:00",
     "categories": [{"id": "...", "name": "Team A", "max_occupants": 2}]}

``id`` keys are optional; missing ones are generated. Occupancy counters of
categories that keep their id are carried over from the current event.
"""

import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from rollcall.domain.errors import InvalidCapacityConfigError
from rollcall.domain.models import CapacityMode, Category, Event, TimeSlot
from rollcall.domain.value_objects import Capacity, ClockTime


def _generate_id() -> str:
    return str(uuid.uuid4())


def _parse_clock(value: Any) -> ClockTime:
    try:
        return ClockTime.from_string(str(value or ""))
    except ValueError:
        raise InvalidCapacityConfigError("Invalid time format. Use HH:MM format") from None


def _parse_max(value: Any, category_name: str) -> Capacity | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidCapacityConfigError(
            f'Max volunteers must be positive for category "{category_name}"'
        )
    return Capacity(value)


def build_time_slots(
    raw_slots: Iterable[Mapping[str, Any]],
    current: Iterable[TimeSlot] = (),
) -> tuple[TimeSlot, ...]:
    """Convert raw slot mappings into domain time slots."""
    occupancy = {c.id: c.current_occupants for slot in current for c in slot.categories}
    slots = []
    for raw in raw_slots:
        categories = []
        for raw_category in raw.get("categories") or ():
            name = (raw_category.get("name") or "").strip()
            category_id = raw_category.get("id") or _generate_id()
            categories.append(
                Category(
                    id=category_id,
                    name=name,
                    max_occupants=_parse_max(raw_category.get("max_occupants"), name),
                    current_occupants=occupancy.get(category_id, 0),
                )
            )
        slots.append(
            TimeSlot(
                id=raw.get("id") or _generate_id(),
                name=(raw.get("name") or "").strip(),
                start_time=_parse_clock(raw.get("start_time")),
                end_time=_parse_clock(raw.get("end_time")),
                categories=tuple(categories),
            )
        )
    return tuple(slots)


def validate_time_slots(time_slots: tuple[TimeSlot, ...]) -> None:
    """Check slot structure.

    Raises:
        InvalidCapacityConfigError: On the first violated rule.
    """
    if not time_slots:
        raise InvalidCapacityConfigError("At least one time slot is required")

    slot_ids = [slot.id for slot in time_slots]
    category_ids = [c.id for slot in time_slots for c in slot.categories]
    if len(set(slot_ids)) != len(slot_ids) or len(set(category_ids)) != len(category_ids):
        raise InvalidCapacityConfigError("Time slot and category ids must be unique")

    for i, first in enumerate(time_slots):
        for second in time_slots[i + 1 :]:
            if first.overlaps(second):
                raise InvalidCapacityConfigError(
                    f'Time slots "{first.name}" and "{second.name}" overlap'
                )

    for slot in time_slots:
        if not slot.name:
            raise InvalidCapacityConfigError("All time slots must have a name")
        if slot.start_time >= slot.end_time:
            raise InvalidCapacityConfigError(
                f'End time must be after start time for slot "{slot.name}"'
            )
        if not slot.categories:
            raise InvalidCapacityConfigError(
                f'Time slot "{slot.name}" must have at least one category'
            )
        names = [c.name.lower() for c in slot.categories]
        if len(names) != len(set(names)):
            raise InvalidCapacityConfigError(
                f'Duplicate category names found in slot "{slot.name}"'
            )
        if any(not c.name for c in slot.categories):
            raise InvalidCapacityConfigError("All categories must have a name")


def validate_capacity(
    mode: CapacityMode,
    max_seats: Capacity | None,
    time_slots_enabled: bool,
    time_slots: tuple[TimeSlot, ...],
    current: Event | None = None,
) -> None:
    """Validate a complete seating configuration, optionally against live state.

    Raises:
        InvalidCapacityConfigError: If the configuration is inconsistent.
    """
    if mode is CapacityMode.FIXED and (max_seats is None or max_seats.value <= 0):
        raise InvalidCapacityConfigError("A fixed-capacity event needs a positive seat count")
    if mode is CapacityMode.UNLIMITED and max_seats is not None:
        raise InvalidCapacityConfigError("An unlimited event cannot have a seat count")

    if time_slots_enabled:
        validate_time_slots(time_slots)
        if mode is CapacityMode.FIXED:
            allocated = sum(
                c.max_occupants.value
                for slot in time_slots
                for c in slot.categories
                if c.max_occupants is not None
            )
            if allocated > max_seats.value:
                raise InvalidCapacityConfigError(
                    f"Total allocated volunteers ({allocated}) exceeds event maximum ({max_seats.value})"
                )
    elif time_slots:
        raise InvalidCapacityConfigError("Time slots were given but time slots are disabled")

    if current is None:
        return

    if mode is CapacityMode.FIXED and current.occupant_count > max_seats.value:
        raise InvalidCapacityConfigError(
            f"Cannot lower the seat count below the {current.occupant_count} volunteers already registered"
        )
    kept = {c.id for slot in time_slots for c in slot.categories} if time_slots_enabled else set()
    for slot in current.time_slots:
        for category in slot.categories:
            if category.current_occupants and category.id not in kept:
                raise InvalidCapacityConfigError(
                    f'Category "{category.name}" still has registered volunteers'
                )
    for slot in time_slots:
        for category in slot.categories:
            if (
                category.max_occupants is not None
                and category.current_occupants > category.max_occupants.value
            ):
                raise InvalidCapacityConfigError(
                    f'Category "{category.name}" already has {category.current_occupants} volunteers'
                )

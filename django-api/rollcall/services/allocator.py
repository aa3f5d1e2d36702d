"""Capacity allocator: the only caller of the occupancy conditional writes.

Two admission gates exist, the event-wide seat gate and the optional category
gate inside a time slot. ``admit`` runs them as a small saga: category first,
then seat, releasing the category again when the seat gate says no.
"""

import structlog

from rollcall.domain import Admission, Event, EventId, SlotSelection
from rollcall.stores.interfaces import CapacityStore

logger = structlog.get_logger(__name__)


class CapacityAllocator:
    """Race-safe admission decisions."""

    def __init__(self, store: CapacityStore) -> None:
        self._store = store

    def try_reserve_seat(self, event: Event, volunteer_id: str) -> Admission:
        """Take an event-wide seat for the volunteer.

        A rejected conditional write is followed by a membership check so a
        volunteer who already holds a seat hears ALREADY_HELD, not NO_SEATS.
        """
        if event.is_banned(volunteer_id):
            return Admission.BANNED
        if self._store.add_occupant_if_room(event.id, volunteer_id):
            logger.info("seat_reserved", event_id=str(event.id), volunteer_id=volunteer_id)
            return Admission.ADMITTED
        if self._store.is_occupant(event.id, volunteer_id):
            return Admission.ALREADY_HELD
        logger.info("seat_rejected", event_id=str(event.id), volunteer_id=volunteer_id)
        return Admission.NO_SEATS

    def try_reserve_category_slot(self, event_id: EventId, slot_id: str, category_id: str) -> Admission:
        if self._store.increment_category_if_room(event_id, slot_id, category_id):
            logger.info("category_reserved", event_id=str(event_id), slot_id=slot_id, category_id=category_id)
            return Admission.ADMITTED
        logger.info("category_rejected", event_id=str(event_id), slot_id=slot_id, category_id=category_id)
        return Admission.CATEGORY_FULL

    def release_seat(self, event_id: EventId, volunteer_id: str) -> bool:
        return self._store.remove_occupant(event_id, volunteer_id)

    def release_category_slot(self, event_id: EventId, slot_id: str, category_id: str) -> bool:
        return self._store.decrement_category(event_id, slot_id, category_id)

    def admit(self, event: Event, volunteer_id: str, selection: SlotSelection | None) -> Admission:
        """Pass both gates or neither."""
        if selection is not None:
            admission = self.try_reserve_category_slot(event.id, selection.slot_id, selection.category_id)
            if not admission.admitted:
                return admission

        admission = self.try_reserve_seat(event, volunteer_id)
        if not admission.admitted and selection is not None:
            self.release_category_slot(event.id, selection.slot_id, selection.category_id)
            logger.info(
                "category_reservation_compensated",
                event_id=str(event.id),
                volunteer_id=volunteer_id,
                reason=admission.value,
            )
        return admission

    def release(self, event_id: EventId, volunteer_id: str, selection: SlotSelection | None) -> None:
        """Give back what admit() took. Safe to repeat.

        The category counter is only decremented when this call actually
        removed the seat, which keeps retries from double-releasing it.
        """
        if self.release_seat(event_id, volunteer_id) and selection is not None:
            self.release_category_slot(event_id, selection.slot_id, selection.category_id)

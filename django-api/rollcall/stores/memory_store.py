"""In-process implementation of the stores.

Each conditional write runs under a lock owned by the event it touches, which
gives the same all-or-nothing semantics as the database conditional updates.
Useful for single-process deployments and for exercising the services
without a database.
"""

import threading
from collections import defaultdict
from dataclasses import replace
from datetime import datetime

from rollcall.domain import (
    Capacity,
    CapacityMode,
    Credential,
    CredentialKind,
    Event,
    EventId,
    Registration,
    RegistrationId,
    Standing,
    TimeSlot,
)
from rollcall.domain.errors import (
    AlreadyRegisteredError,
    EventNotFoundError,
    InvalidCapacityConfigError,
    NotRegisteredError,
)
from rollcall.stores.interfaces import (
    CapacityStore,
    CredentialStore,
    EventStore,
    RegistrationStore,
)


class InMemoryStore(EventStore, CapacityStore, RegistrationStore, CredentialStore):
    """All four stores over plain dictionaries."""

    def __init__(self) -> None:
        self._events: dict[EventId, Event] = {}
        self._occupants: dict[EventId, set[str]] = defaultdict(set)
        self._category_counts: dict[tuple[EventId, str, str], int] = defaultdict(int)
        self._standings: dict[EventId, dict[str, Standing]] = defaultdict(dict)
        self._registrations: dict[RegistrationId, Registration] = {}
        self._credentials: dict[str, Credential] = {}
        self._event_locks: dict[EventId, threading.Lock] = defaultdict(threading.Lock)
        self._guard = threading.Lock()

    def _lock(self, event_id: EventId) -> threading.Lock:
        with self._guard:
            return self._event_locks[event_id]

    def add_event(self, event: Event) -> Event:
        """Seed an event, as the event catalog would."""
        with self._lock(event.id):
            self._events[event.id] = replace(event, occupant_count=0)
            for slot in event.time_slots:
                for category in slot.categories:
                    self._category_counts[(event.id, slot.id, category.id)] = category.current_occupants
            for volunteer_id in event.banned_volunteers:
                self._standings[event.id][volunteer_id] = Standing.BANNED
            for volunteer_id in event.removed_volunteers:
                self._standings[event.id][volunteer_id] = Standing.REMOVED
        return self.get_event(event.id)

    # EventStore

    def get_event(self, event_id: EventId) -> Event | None:
        event = self._events.get(event_id)
        if event is None:
            return None
        slots = tuple(
            replace(
                slot,
                categories=tuple(
                    replace(c, current_occupants=self._category_counts[(event_id, slot.id, c.id)])
                    for c in slot.categories
                ),
            )
            for slot in event.time_slots
        )
        standings = self._standings[event_id]
        return replace(
            event,
            occupant_count=len(self._occupants[event_id]),
            time_slots=slots,
            banned_volunteers=frozenset(v for v, s in standings.items() if s is Standing.BANNED),
            removed_volunteers=frozenset(v for v, s in standings.items() if s is Standing.REMOVED),
        )

    def save_capacity(
        self,
        event_id: EventId,
        mode: CapacityMode,
        max_seats: Capacity | None,
        time_slots_enabled: bool,
        time_slots: tuple[TimeSlot, ...],
    ) -> Event:
        with self._lock(event_id):
            event = self._events.get(event_id)
            if event is None:
                raise EventNotFoundError(str(event_id))
            if max_seats is not None and len(self._occupants[event_id]) > max_seats.value:
                raise InvalidCapacityConfigError(
                    "Cannot lower the seat count below the volunteers already registered"
                )
            counts = {
                category_id: count
                for (eid, _, category_id), count in self._category_counts.items()
                if eid == event_id
            }
            kept = {c.id: (slot.id, c) for slot in time_slots for c in slot.categories}
            if any(count and category_id not in kept for category_id, count in counts.items()):
                raise InvalidCapacityConfigError("A removed category still has registered volunteers")
            for category_id, (_, category) in kept.items():
                count = counts.get(category_id, 0)
                if category.max_occupants is not None and count > category.max_occupants.value:
                    raise InvalidCapacityConfigError(
                        f'Category "{category.name}" already has more volunteers than that'
                    )
            for key in [key for key in self._category_counts if key[0] == event_id]:
                del self._category_counts[key]
            for category_id, (slot_id, _) in kept.items():
                self._category_counts[(event_id, slot_id, category_id)] = counts.get(category_id, 0)
            self._events[event_id] = replace(
                event,
                capacity_mode=mode,
                max_seats=max_seats,
                time_slots_enabled=time_slots_enabled,
                time_slots=time_slots,
            )
        return self.get_event(event_id)

    def set_standing(self, event_id: EventId, volunteer_id: str, standing: Standing) -> None:
        with self._lock(event_id):
            self._standings[event_id][volunteer_id] = standing

    def clear_standing(self, event_id: EventId, volunteer_id: str, standing: Standing) -> bool:
        with self._lock(event_id):
            if self._standings[event_id].get(volunteer_id) is not standing:
                return False
            del self._standings[event_id][volunteer_id]
            return True

    # CapacityStore

    def add_occupant_if_room(self, event_id: EventId, volunteer_id: str) -> bool:
        with self._lock(event_id):
            event = self._events.get(event_id)
            occupants = self._occupants[event_id]
            if event is None or volunteer_id in occupants:
                return False
            if event.capacity_mode is CapacityMode.FIXED and len(occupants) >= event.max_seats.value:
                return False
            occupants.add(volunteer_id)
            return True

    def remove_occupant(self, event_id: EventId, volunteer_id: str) -> bool:
        with self._lock(event_id):
            occupants = self._occupants[event_id]
            if volunteer_id not in occupants:
                return False
            occupants.discard(volunteer_id)
            return True

    def is_occupant(self, event_id: EventId, volunteer_id: str) -> bool:
        with self._lock(event_id):
            return volunteer_id in self._occupants[event_id]

    def _category_limit(self, event_id: EventId, slot_id: str, category_id: str):
        event = self._events.get(event_id)
        slot = event.find_slot(slot_id) if event else None
        return slot.find_category(category_id) if slot else None

    def increment_category_if_room(self, event_id: EventId, slot_id: str, category_id: str) -> bool:
        with self._lock(event_id):
            category = self._category_limit(event_id, slot_id, category_id)
            if category is None:
                return False
            key = (event_id, slot_id, category_id)
            if category.max_occupants is not None and self._category_counts[key] >= category.max_occupants.value:
                return False
            self._category_counts[key] += 1
            return True

    def decrement_category(self, event_id: EventId, slot_id: str, category_id: str) -> bool:
        with self._lock(event_id):
            key = (event_id, slot_id, category_id)
            if self._category_counts.get(key, 0) <= 0:
                return False
            self._category_counts[key] -= 1
            return True

    # RegistrationStore

    def create(self, registration: Registration) -> Registration:
        with self._lock(registration.event_id):
            if self._find(registration.event_id, registration.volunteer_id) is not None:
                raise AlreadyRegisteredError()
            self._registrations[registration.id] = registration
        return registration

    def _find(self, event_id: EventId, volunteer_id: str) -> Registration | None:
        return next(
            (
                r
                for r in list(self._registrations.values())
                if r.event_id == event_id and r.volunteer_id == volunteer_id
            ),
            None,
        )

    def get(self, registration_id: RegistrationId) -> Registration | None:
        return self._registrations.get(registration_id)

    def find(self, event_id: EventId, volunteer_id: str) -> Registration | None:
        return self._find(event_id, volunteer_id)

    def list_for_event(self, event_id: EventId) -> list[Registration]:
        found = [r for r in list(self._registrations.values()) if r.event_id == event_id]
        return sorted(found, key=lambda r: r.created_at)

    def list_for_volunteer(self, volunteer_id: str) -> list[Registration]:
        found = [r for r in list(self._registrations.values()) if r.volunteer_id == volunteer_id]
        return sorted(found, key=lambda r: r.created_at)

    def delete(self, registration_id: RegistrationId) -> bool:
        registration = self._registrations.get(registration_id)
        if registration is None:
            return False
        with self._lock(registration.event_id):
            if self._registrations.pop(registration_id, None) is None:
                return False
            with self._guard:
                for token in [t for t, c in self._credentials.items() if c.registration_id == registration_id]:
                    del self._credentials[token]
            return True

    def _transition(self, registration_id: RegistrationId, allowed, **changes) -> bool:
        registration = self._registrations.get(registration_id)
        if registration is None:
            return False
        with self._lock(registration.event_id):
            current = self._registrations.get(registration_id)
            if current is None or not allowed(current):
                return False
            self._registrations[registration_id] = replace(current, **changes)
            return True

    def mark_checked_in(self, registration_id: RegistrationId, at: datetime) -> bool:
        return self._transition(registration_id, lambda r: r.in_time is None, in_time=at)

    def mark_checked_out(self, registration_id: RegistrationId, at: datetime) -> bool:
        return self._transition(
            registration_id,
            lambda r: r.in_time is not None and r.out_time is None,
            out_time=at,
        )

    def update_times(
        self,
        registration_id: RegistrationId,
        in_time: datetime | None,
        out_time: datetime | None,
    ) -> Registration:
        if not self._transition(registration_id, lambda r: True, in_time=in_time, out_time=out_time):
            raise NotRegisteredError()
        return self._registrations[registration_id]

    # CredentialStore

    def add(self, credential: Credential) -> Credential:
        with self._guard:
            self._credentials[credential.token] = credential
        return credential

    def get_by_token(self, token: str) -> Credential | None:
        return self._credentials.get(token)

    def live_for_registration(
        self, registration_id: RegistrationId, kind: CredentialKind
    ) -> Credential | None:
        live = [
            c
            for c in list(self._credentials.values())
            if c.registration_id == registration_id and c.kind is kind and c.is_live
        ]
        return max(live, key=lambda c: c.issued_at, default=None)

    def consume_all(self, registration_id: RegistrationId, at: datetime) -> list[Credential]:
        with self._guard:
            consumed = []
            for token, credential in list(self._credentials.items()):
                if credential.registration_id == registration_id and credential.is_live:
                    self._credentials[token] = replace(credential, consumed_at=at)
                    consumed.append(credential)
            return consumed

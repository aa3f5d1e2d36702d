"""Store interfaces (repository pattern).

Stores must be swappable and return domain models.

Occupancy (event occupants and category counters) is shared mutable state.
CapacityStore exposes it only through conditional writes that decide and
mutate in one atomic step; nothing else may read-then-write it.
"""

from abc import ABC, abstractmethod
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


class EventStore(ABC):
    """Interface for the capacity-relevant fields of events."""

    @abstractmethod
    def get_event(self, event_id: EventId) -> Event | None:
        """Return an event by ID, or None if not found."""
        ...

    @abstractmethod
    def save_capacity(
        self,
        event_id: EventId,
        mode: CapacityMode,
        max_seats: Capacity | None,
        time_slots_enabled: bool,
        time_slots: tuple[TimeSlot, ...],
    ) -> Event:
        """Replace seating rules and slot structure, keeping occupancy counters."""
        ...

    @abstractmethod
    def set_standing(self, event_id: EventId, volunteer_id: str, standing: Standing) -> None:
        """Record a ban or removal, replacing any previous standing."""
        ...

    @abstractmethod
    def clear_standing(self, event_id: EventId, volunteer_id: str, standing: Standing) -> bool:
        """Drop the given standing. Return False if the volunteer did not have it."""
        ...


class CapacityStore(ABC):
    """Atomic occupancy operations."""

    @abstractmethod
    def add_occupant_if_room(self, event_id: EventId, volunteer_id: str) -> bool:
        """Add the volunteer iff they are not an occupant and a seat is free.

        Unlimited events only enforce the uniqueness half of the condition.
        """
        ...

    @abstractmethod
    def remove_occupant(self, event_id: EventId, volunteer_id: str) -> bool:
        """Remove the volunteer. Return False if they held no seat."""
        ...

    @abstractmethod
    def is_occupant(self, event_id: EventId, volunteer_id: str) -> bool:
        ...

    @abstractmethod
    def increment_category_if_room(self, event_id: EventId, slot_id: str, category_id: str) -> bool:
        """Increment current occupants iff below the category maximum."""
        ...

    @abstractmethod
    def decrement_category(self, event_id: EventId, slot_id: str, category_id: str) -> bool:
        """Decrement current occupants unless already zero."""
        ...


class RegistrationStore(ABC):
    """Interface for registration persistence."""

    @abstractmethod
    def create(self, registration: Registration) -> Registration:
        """Persist a new registration.

        Raises:
            AlreadyRegisteredError: If the (event, volunteer) pair exists.
        """
        ...

    @abstractmethod
    def get(self, registration_id: RegistrationId) -> Registration | None:
        ...

    @abstractmethod
    def find(self, event_id: EventId, volunteer_id: str) -> Registration | None:
        ...

    @abstractmethod
    def list_for_event(self, event_id: EventId) -> list[Registration]:
        """Return registrations of an event ordered by created_at ascending."""
        ...

    @abstractmethod
    def list_for_volunteer(self, volunteer_id: str) -> list[Registration]:
        ...

    @abstractmethod
    def delete(self, registration_id: RegistrationId) -> bool:
        """Delete a registration and its credentials."""
        ...

    @abstractmethod
    def mark_checked_in(self, registration_id: RegistrationId, at: datetime) -> bool:
        """Set in_time iff it is still unset."""
        ...

    @abstractmethod
    def mark_checked_out(self, registration_id: RegistrationId, at: datetime) -> bool:
        """Set out_time iff in_time is set and out_time is still unset."""
        ...

    @abstractmethod
    def update_times(
        self,
        registration_id: RegistrationId,
        in_time: datetime | None,
        out_time: datetime | None,
    ) -> Registration:
        """Overwrite both timestamps (data correction, not a transition)."""
        ...


class CredentialStore(ABC):
    """Interface for entry/exit credential persistence."""

    @abstractmethod
    def add(self, credential: Credential) -> Credential:
        ...

    @abstractmethod
    def get_by_token(self, token: str) -> Credential | None:
        ...

    @abstractmethod
    def live_for_registration(
        self, registration_id: RegistrationId, kind: CredentialKind
    ) -> Credential | None:
        ...

    @abstractmethod
    def consume_all(self, registration_id: RegistrationId, at: datetime) -> list[Credential]:
        """Consume every live credential of a registration and return them."""
        ...

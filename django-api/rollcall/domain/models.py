"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in rollcall/models.py (persistence layer).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from rollcall.domain.value_objects import (
    Capacity,
    ClockTime,
    EventId,
    GroupMember,
    RegistrationId,
    SlotSelection,
)


class CapacityMode(Enum):
    UNLIMITED = "UNLIMITED"
    FIXED = "FIXED"


class Standing(Enum):
    """Organizer-imposed standing of a volunteer on one event."""

    BANNED = "BANNED"
    REMOVED = "REMOVED"


class AttendanceState(Enum):
    REGISTERED = "REGISTERED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"


class AttendanceSource(Enum):
    SCAN = "SCAN"
    MANUAL = "MANUAL"


class CredentialKind(Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"


class Admission(Enum):
    """Outcome of an admission gate."""

    ADMITTED = "ADMITTED"
    NO_SEATS = "NO_SEATS"
    ALREADY_HELD = "ALREADY_HELD"
    BANNED = "BANNED"
    CATEGORY_FULL = "CATEGORY_FULL"

    @property
    def admitted(self) -> bool:
        return self is Admission.ADMITTED


@dataclass(frozen=True)
class Category:
    """Domain representation of a sub-capacity bucket inside a time slot."""

    id: str
    name: str
    max_occupants: Capacity | None
    current_occupants: int = 0

    @property
    def is_available(self) -> bool:
        return self.max_occupants is None or self.current_occupants < self.max_occupants.value

    @property
    def available(self) -> int | None:
        if self.max_occupants is None:
            return None
        return max(self.max_occupants.value - self.current_occupants, 0)


@dataclass(frozen=True)
class TimeSlot:
    """Domain representation of a time slot."""

    id: str
    name: str
    start_time: ClockTime
    end_time: ClockTime
    categories: tuple[Category, ...] = ()

    def find_category(self, category_id: str) -> Category | None:
        return next((c for c in self.categories if c.id == category_id), None)

    def overlaps(self, other: "TimeSlot") -> bool:
        return (
            self.start_time.minutes < other.end_time.minutes
            and other.start_time.minutes < self.end_time.minutes
        )


@dataclass(frozen=True)
class Event:
    """Capacity-relevant view of an Event.

    Everything else about an event belongs to the event catalog.
    """

    id: EventId
    created_by: str
    capacity_mode: CapacityMode
    max_seats: Capacity | None
    occupant_count: int
    time_slots_enabled: bool
    time_slots: tuple[TimeSlot, ...] = ()
    organizers: frozenset[str] = frozenset()
    banned_volunteers: frozenset[str] = frozenset()
    removed_volunteers: frozenset[str] = frozenset()
    starts_at: datetime | None = None

    @property
    def is_unlimited(self) -> bool:
        return self.capacity_mode is CapacityMode.UNLIMITED

    @property
    def available_seats(self) -> int | None:
        if self.is_unlimited or self.max_seats is None:
            return None
        return max(self.max_seats.value - self.occupant_count, 0)

    def is_organizer(self, user_id: str) -> bool:
        return user_id == self.created_by or user_id in self.organizers

    def is_banned(self, volunteer_id: str) -> bool:
        return volunteer_id in self.banned_volunteers

    def has_started(self, now: datetime) -> bool:
        return self.starts_at is not None and self.starts_at <= now

    def find_slot(self, slot_id: str) -> TimeSlot | None:
        return next((s for s in self.time_slots if s.id == slot_id), None)


@dataclass(frozen=True)
class Registration:
    """Domain representation of a volunteer's registration for an event."""

    id: RegistrationId
    event_id: EventId
    volunteer_id: str
    created_at: datetime
    group_members: tuple[GroupMember, ...] = ()
    selected_time_slot: SlotSelection | None = None
    in_time: datetime | None = None
    out_time: datetime | None = None

    @property
    def has_attended(self) -> bool:
        return self.in_time is not None

    @property
    def state(self) -> AttendanceState:
        if self.out_time is not None:
            return AttendanceState.CHECKED_OUT
        if self.in_time is not None:
            return AttendanceState.CHECKED_IN
        return AttendanceState.REGISTERED


@dataclass(frozen=True)
class Credential:
    """A single-use token bound to a registration.

    Live until consumed_at is set.
    """

    token: str
    kind: CredentialKind
    registration_id: RegistrationId
    payload: dict = field(default_factory=dict)
    image_ref: str | None = None
    issued_at: datetime | None = None
    consumed_at: datetime | None = None

    @property
    def is_live(self) -> bool:
        return self.consumed_at is None

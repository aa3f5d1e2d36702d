from rollcall.domain.models import (
    Admission,
    AttendanceSource,
    AttendanceState,
    CapacityMode,
    Category,
    Credential,
    CredentialKind,
    Event,
    Registration,
    Standing,
    TimeSlot,
)
from rollcall.domain.value_objects import (
    Capacity,
    ClockTime,
    EventId,
    GroupMember,
    RegistrationId,
    SlotSelection,
)

__all__ = [
    "Admission",
    "AttendanceSource",
    "AttendanceState",
    "CapacityMode",
    "Category",
    "Credential",
    "CredentialKind",
    "Event",
    "Registration",
    "Standing",
    "TimeSlot",
    "Capacity",
    "ClockTime",
    "EventId",
    "GroupMember",
    "RegistrationId",
    "SlotSelection",
]

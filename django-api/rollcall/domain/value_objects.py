"""Domain primitives that enforce validity at creation time."""

import re
from dataclasses import dataclass
from typing import Self
from uuid import UUID

_CLOCK_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


@dataclass(frozen=True)
class EventId:
    """Unique identifier for an Event."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class RegistrationId:
    """Unique identifier for a Registration."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Capacity:
    """Non-negative integer representing capacity."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Capacity cannot be negative")


@dataclass(frozen=True, order=True)
class ClockTime:
    """Wall-clock time of day in HH:MM form, used to bound time slots."""

    hour: int
    minute: int

    def __post_init__(self) -> None:
        if not (0 <= self.hour <= 23 and 0 <= self.minute <= 59):
            raise ValueError("Clock time out of range")

    @classmethod
    def from_string(cls, value: str) -> Self:
        match = _CLOCK_PATTERN.match(value or "")
        if match is None:
            raise ValueError("Invalid time format. Use HH:MM format")
        return cls(hour=int(match.group(1)), minute=int(match.group(2)))

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class GroupMember:
    """A companion listed on a registration. Informational only."""

    name: str
    phone: str = ""
    email: str = ""


@dataclass(frozen=True)
class SlotSelection:
    """The time slot and category a volunteer chose when registering."""

    slot_id: str
    category_id: str

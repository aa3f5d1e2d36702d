"""Domain error codes for the rollcall module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    INVALID_CAPACITY_CONFIG = "INVALID_CAPACITY_CONFIG"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    BANNED = "BANNED"
    NO_SEATS = "NO_SEATS"
    CATEGORY_FULL = "CATEGORY_FULL"
    SLOT_NOT_FOUND = "SLOT_NOT_FOUND"
    NOT_REGISTERED = "NOT_REGISTERED"
    INVALID_OR_EXPIRED = "INVALID_OR_EXPIRED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    UNAUTHORIZED = "UNAUTHORIZED"
    EVENT_ALREADY_STARTED = "EVENT_ALREADY_STARTED"
    NOT_BANNED = "NOT_BANNED"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class EventNotFoundError(DomainError):
    """Raised when an event is not found."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_FOUND,
            message="Event not found",
        )
        self.event_id = event_id


class InvalidIdentifierError(DomainError):
    """Raised when an event or registration ID is malformed."""

    def __init__(self, field: str = "id") -> None:
        super().__init__(
            code=ErrorCode.INVALID_IDENTIFIER,
            message=f"Invalid {field} format",
        )
        self.field = field


class InvalidCapacityConfigError(DomainError):
    """Raised when seating rules or time slots fail validation."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.INVALID_CAPACITY_CONFIG, message=message)


class AlreadyRegisteredError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_REGISTERED,
            message="You have already registered for this event.",
        )


class BannedError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.BANNED,
            message="You have been banned from this event.",
        )


class NoSeatsAvailableError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NO_SEATS,
            message="This event is full.",
        )


class CategoryFullError(DomainError):
    """Raised when the chosen category has no room left."""

    def __init__(self, category_name: str, slot_name: str) -> None:
        super().__init__(
            code=ErrorCode.CATEGORY_FULL,
            message=f'Category "{category_name}" in time slot "{slot_name}" is full.',
        )
        self.category_name = category_name
        self.slot_name = slot_name


class SlotOrCategoryNotFoundError(DomainError):
    def __init__(self, message: str = "Selected time slot or category was not found.") -> None:
        super().__init__(code=ErrorCode.SLOT_NOT_FOUND, message=message)


class NotRegisteredError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NOT_REGISTERED,
            message="Registration not found.",
        )


class InvalidOrExpiredCredentialError(DomainError):
    """Raised when a scanned token is unknown or already consumed."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INVALID_OR_EXPIRED,
            message="This QR code is invalid or has expired.",
        )


class InvalidTransitionError(DomainError):
    """Raised when an attendance change would break the state machine."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.INVALID_TRANSITION, message=message)


class UnauthorizedError(DomainError):
    def __init__(self, message: str = "Only organizers of this event can do that.") -> None:
        super().__init__(code=ErrorCode.UNAUTHORIZED, message=message)


class EventAlreadyStartedError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.EVENT_ALREADY_STARTED,
            message="Cannot change the volunteer roster after the event has started.",
        )


class NotBannedError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NOT_BANNED,
            message="Volunteer is not banned from this event.",
        )

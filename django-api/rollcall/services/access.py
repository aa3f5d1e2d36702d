"""Authorization and identifier parsing shared by the services."""

from rollcall.domain import Event, EventId, Registration, RegistrationId
from rollcall.domain.errors import InvalidIdentifierError, UnauthorizedError


def parse_event_id(value: str) -> EventId:
    try:
        return EventId.from_string(str(value))
    except ValueError:
        raise InvalidIdentifierError("event ID") from None


def parse_registration_id(value: str) -> RegistrationId:
    try:
        return RegistrationId.from_string(str(value))
    except ValueError:
        raise InvalidIdentifierError("registration ID") from None


def ensure_organizer(event: Event, actor_id: str) -> None:
    if not event.is_organizer(actor_id):
        raise UnauthorizedError()


def ensure_creator(event: Event, actor_id: str, message: str) -> None:
    if actor_id != event.created_by:
        raise UnauthorizedError(message)


def ensure_can_mark(event: Event, actor_id: str, registration: Registration) -> None:
    """Organizers mark volunteers; only the creator marks organizers, themselves included."""
    ensure_organizer(event, actor_id)
    if event.is_organizer(registration.volunteer_id) and actor_id != event.created_by:
        raise UnauthorizedError("Only the event creator can mark attendance for organizers.")

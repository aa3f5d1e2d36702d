"""Organizer control over who may volunteer: remove, ban, unban."""

import structlog
from django.utils import timezone

from rollcall.domain import Event, Standing
from rollcall.domain.errors import (
    EventAlreadyStartedError,
    EventNotFoundError,
    NotBannedError,
    NotRegisteredError,
)
from rollcall.services.access import ensure_creator, ensure_organizer, parse_event_id
from rollcall.services.notifier import ROSTER_TOPIC, ChangeNotifier
from rollcall.services.registration_service import RegistrationService
from rollcall.stores.interfaces import EventStore

logger = structlog.get_logger(__name__)


class RosterService:
    """Removal and bans.

    A removed volunteer may register again; a banned one may not until an
    organizer unbans them, which downgrades the ban to a removal.
    """

    def __init__(self, events: EventStore, registrations: RegistrationService, notifier: ChangeNotifier) -> None:
        self._events = events
        self._registrations = registrations
        self._notifier = notifier

    def _get_event(self, event_id: str) -> Event:
        event = self._events.get_event(parse_event_id(event_id))
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def _ensure_not_started(self, event: Event) -> None:
        if event.has_started(timezone.now()):
            raise EventAlreadyStartedError()

    def _publish(self, event: Event, volunteer_id: str, action: str) -> None:
        self._notifier.publish(
            ROSTER_TOPIC,
            {"eventId": str(event.id), "volunteerId": volunteer_id, "action": action},
        )

    def remove_volunteer(self, event_id: str, volunteer_id: str, actor_id: str) -> None:
        event = self._get_event(event_id)
        ensure_organizer(event, actor_id)
        self._ensure_not_started(event)

        self._registrations.withdraw(event_id, volunteer_id)
        self._events.set_standing(event.id, volunteer_id, Standing.REMOVED)
        self._publish(event, volunteer_id, "removed")
        logger.info("volunteer_removed", event_id=str(event.id), volunteer_id=volunteer_id, actor_id=actor_id)

    def ban_volunteer(self, event_id: str, volunteer_id: str, actor_id: str) -> None:
        """Ban a registered volunteer and free their seat.

        The ban is recorded before the withdrawal so a concurrent
        re-registration cannot slip in between.
        """
        event = self._get_event(event_id)
        ensure_creator(event, actor_id, "Only the event creator can ban volunteers.")
        self._ensure_not_started(event)
        if not self._registrations.is_registered(event_id, volunteer_id):
            raise NotRegisteredError()

        self._events.set_standing(event.id, volunteer_id, Standing.BANNED)
        self._registrations.withdraw(event_id, volunteer_id)
        self._publish(event, volunteer_id, "banned")
        logger.info("volunteer_banned", event_id=str(event.id), volunteer_id=volunteer_id, actor_id=actor_id)

    def unban_volunteer(self, event_id: str, volunteer_id: str, actor_id: str) -> None:
        event = self._get_event(event_id)
        ensure_organizer(event, actor_id)
        if not self._events.clear_standing(event.id, volunteer_id, Standing.BANNED):
            raise NotBannedError()

        self._events.set_standing(event.id, volunteer_id, Standing.REMOVED)
        self._publish(event, volunteer_id, "unbanned")
        logger.info("volunteer_unbanned", event_id=str(event.id), volunteer_id=volunteer_id, actor_id=actor_id)

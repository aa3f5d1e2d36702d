"""Registration lifecycle: sign-up, withdrawal and lookups.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors
"""

import uuid
from collections.abc import Iterable
from dataclasses import dataclass

import structlog
from django.utils import timezone

from rollcall.domain import (
    Admission,
    CredentialKind,
    Credential,
    Event,
    GroupMember,
    Registration,
    RegistrationId,
    SlotSelection,
    Standing,
)
from rollcall.domain.errors import (
    AlreadyRegisteredError,
    BannedError,
    CategoryFullError,
    EventNotFoundError,
    NoSeatsAvailableError,
    NotRegisteredError,
    SlotOrCategoryNotFoundError,
)
from rollcall.services.access import ensure_organizer, parse_event_id
from rollcall.services.allocator import CapacityAllocator
from rollcall.services.capacity_service import availability_payload
from rollcall.services.credential_service import CredentialService
from rollcall.services.notifier import OCCUPANCY_TOPIC, ChangeNotifier
from rollcall.stores.interfaces import EventStore, RegistrationStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RegistrationView:
    """A registration together with its live credentials."""

    registration: Registration
    entry_credential: Credential | None = None
    exit_credential: Credential | None = None


class RegistrationService:
    """Service for volunteer registration."""

    def __init__(
        self,
        events: EventStore,
        registrations: RegistrationStore,
        allocator: CapacityAllocator,
        credentials: CredentialService,
        notifier: ChangeNotifier,
    ) -> None:
        self._events = events
        self._registrations = registrations
        self._allocator = allocator
        self._credentials = credentials
        self._notifier = notifier

    def _get_event(self, event_id: str) -> Event:
        event = self._events.get_event(parse_event_id(event_id))
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def _publish_occupancy(self, event: Event) -> None:
        self._notifier.publish(OCCUPANCY_TOPIC, availability_payload(self._events.get_event(event.id) or event))

    def _resolve_selection(self, event: Event, selection: SlotSelection | None):
        if selection is None:
            raise SlotOrCategoryNotFoundError("Please select a time slot and category.")
        slot = event.find_slot(selection.slot_id)
        category = slot.find_category(selection.category_id) if slot else None
        if category is None:
            raise SlotOrCategoryNotFoundError()
        return slot, category

    def register(
        self,
        event_id: str,
        volunteer_id: str,
        group_members: Iterable[GroupMember] = (),
        selected_time_slot: SlotSelection | None = None,
    ) -> RegistrationView:
        """Admit a volunteer and issue their entry credential.

        Raises:
            EventNotFoundError: If the event does not exist.
            BannedError: If the volunteer is banned from the event.
            AlreadyRegisteredError: If the volunteer already holds a registration.
            SlotOrCategoryNotFoundError: If the selection does not match a category.
            CategoryFullError: If the chosen category has no room.
            NoSeatsAvailableError: If the event has no seats left.
        """
        event = self._get_event(event_id)
        log = logger.bind(event_id=str(event.id), volunteer_id=volunteer_id)

        if event.is_banned(volunteer_id):
            raise BannedError()
        if self._registrations.find(event.id, volunteer_id) is not None:
            raise AlreadyRegisteredError()
        if volunteer_id in event.removed_volunteers:
            self._events.clear_standing(event.id, volunteer_id, Standing.REMOVED)
            log.info("removed_volunteer_reregistering")

        selection = None
        if event.time_slots_enabled:
            slot, category = self._resolve_selection(event, selected_time_slot)
            selection = SlotSelection(slot_id=slot.id, category_id=category.id)

        admission = self._allocator.admit(event, volunteer_id, selection)
        if admission is Admission.CATEGORY_FULL:
            raise CategoryFullError(category.name, slot.name)
        if admission is Admission.ALREADY_HELD:
            raise AlreadyRegisteredError()
        if admission is Admission.BANNED:
            raise BannedError()
        if admission is Admission.NO_SEATS:
            raise NoSeatsAvailableError()

        registration = Registration(
            id=RegistrationId(uuid.uuid4()),
            event_id=event.id,
            volunteer_id=volunteer_id,
            created_at=timezone.now(),
            group_members=tuple(group_members),
            selected_time_slot=selection,
        )
        try:
            registration = self._registrations.create(registration)
        except Exception:
            self._allocator.release(event.id, volunteer_id, selection)
            log.warning("registration_rolled_back")
            raise

        entry = self._credentials.issue_entry(registration)
        self._publish_occupancy(event)
        log.info("registration_created", registration_id=str(registration.id))
        return RegistrationView(registration=registration, entry_credential=entry)

    def withdraw(self, event_id: str, volunteer_id: str) -> None:
        """Release the seat and category, revoke credentials, delete the registration.

        Raises:
            NotRegisteredError: If the volunteer has no registration for the event.
        """
        event = self._get_event(event_id)
        registration = self._registrations.find(event.id, volunteer_id)
        if registration is None:
            raise NotRegisteredError()

        self._credentials.revoke_all(registration)
        self._allocator.release(event.id, volunteer_id, registration.selected_time_slot)
        self._registrations.delete(registration.id)
        self._publish_occupancy(event)
        logger.info(
            "registration_withdrawn",
            event_id=str(event.id),
            volunteer_id=volunteer_id,
            registration_id=str(registration.id),
        )

    def is_registered(self, event_id: str, volunteer_id: str) -> bool:
        return self._registrations.find(parse_event_id(event_id), volunteer_id) is not None

    def get_registration(self, event_id: str, volunteer_id: str) -> RegistrationView:
        registration = self._registrations.find(parse_event_id(event_id), volunteer_id)
        if registration is None:
            raise NotRegisteredError()
        return RegistrationView(
            registration=registration,
            entry_credential=self._credentials.live(registration.id, CredentialKind.ENTRY),
            exit_credential=self._credentials.live(registration.id, CredentialKind.EXIT),
        )

    def registered_event_ids(self, volunteer_id: str) -> list[str]:
        return [str(r.event_id) for r in self._registrations.list_for_volunteer(volunteer_id)]

    def list_for_event(self, event_id: str, actor_id: str) -> list[Registration]:
        event = self._get_event(event_id)
        ensure_organizer(event, actor_id)
        return self._registrations.list_for_event(event.id)

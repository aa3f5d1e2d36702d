"""Service wiring.

Handlers ask for a Services bundle instead of constructing stores
themselves, so tests can swap the Django stores for the in-memory one.
"""

from dataclasses import dataclass

from rollcall.conf import get_setting
from rollcall.credentials import CredentialRenderer, get_renderer
from rollcall.services.allocator import CapacityAllocator
from rollcall.services.attendance_service import AttendanceService
from rollcall.services.capacity_service import CapacityService
from rollcall.services.credential_service import CredentialService
from rollcall.services.notifier import ChangeNotifier, SignalNotifier
from rollcall.services.registration_service import RegistrationService
from rollcall.services.roster_service import RosterService
from rollcall.stores.interfaces import CapacityStore, CredentialStore, EventStore, RegistrationStore


@dataclass(frozen=True)
class Services:
    registrations: RegistrationService
    attendance: AttendanceService
    capacity: CapacityService
    roster: RosterService
    credentials: CredentialService


def build_services(
    events: EventStore | None = None,
    occupancy: CapacityStore | None = None,
    registrations: RegistrationStore | None = None,
    credentials: CredentialStore | None = None,
    renderer: CredentialRenderer | None = None,
    notifier: ChangeNotifier | None = None,
) -> Services:
    """Wire the services, defaulting to the Django stores."""
    if events is None or occupancy is None or registrations is None or credentials is None:
        from rollcall.stores.django_store import (
            DjangoCapacityStore,
            DjangoCredentialStore,
            DjangoEventStore,
            DjangoRegistrationStore,
        )

        events = events or DjangoEventStore()
        occupancy = occupancy or DjangoCapacityStore()
        registrations = registrations or DjangoRegistrationStore()
        credentials = credentials or DjangoCredentialStore()

    notifier = notifier or SignalNotifier()
    credential_service = CredentialService(
        credentials,
        renderer or get_renderer(),
        token_bytes=get_setting("TOKEN_BYTES"),
    )
    registration_service = RegistrationService(
        events,
        registrations,
        CapacityAllocator(occupancy),
        credential_service,
        notifier,
    )
    return Services(
        registrations=registration_service,
        attendance=AttendanceService(events, registrations, credential_service, notifier),
        capacity=CapacityService(events, notifier),
        roster=RosterService(events, registration_service, notifier),
        credentials=credential_service,
    )

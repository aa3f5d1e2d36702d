"""Attendance state machine: REGISTERED -> CHECKED_IN -> CHECKED_OUT.

Scans and manual marks converge on check_in/check_out. Each transition is a
conditional write on the timestamp it sets, so two racing callers record
exactly one transition and the loser gets ``already_recorded``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

import structlog
from django.utils import timezone

from rollcall.domain import (
    AttendanceSource,
    AttendanceState,
    Credential,
    CredentialKind,
    Event,
    Registration,
)
from rollcall.domain.errors import (
    EventNotFoundError,
    InvalidOrExpiredCredentialError,
    InvalidTransitionError,
    NotRegisteredError,
    UnauthorizedError,
)
from rollcall.services.access import (
    ensure_can_mark,
    ensure_organizer,
    parse_event_id,
    parse_registration_id,
)
from rollcall.services.credential_service import CredentialService
from rollcall.services.notifier import ATTENDANCE_TOPIC, ChangeNotifier
from rollcall.stores.interfaces import EventStore, RegistrationStore

logger = structlog.get_logger(__name__)

STATUS_LABELS = {
    AttendanceState.REGISTERED: "Absent",
    AttendanceState.CHECKED_IN: "Present",
    AttendanceState.CHECKED_OUT: "Checked Out",
}


@dataclass(frozen=True)
class AttendanceOutcome:
    registration: Registration
    already_recorded: bool = False
    exit_credential: Credential | None = None

    @property
    def state(self) -> AttendanceState:
        return self.registration.state


@dataclass(frozen=True)
class ReportRow:
    registration: Registration
    status: str


@dataclass(frozen=True)
class AttendanceReport:
    event_id: str
    rows: list[ReportRow]
    total: int
    present: int
    checked_out: int
    absent: int
    attendance_rate: int


def attendance_rate(attended: int, total: int) -> int:
    """Percentage of registrations that attended, rounded half up."""
    if total == 0:
        return 0
    rate = Decimal(attended * 100) / Decimal(total)
    return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _counts_as_volunteer(event: Event, volunteer_id: str) -> bool:
    """Organizers and volunteers dropped from the roster are left out of the report."""
    return not (
        event.is_organizer(volunteer_id)
        or event.is_banned(volunteer_id)
        or volunteer_id in event.removed_volunteers
    )


class AttendanceService:
    """Service for check-in, check-out and attendance corrections."""

    def __init__(
        self,
        events: EventStore,
        registrations: RegistrationStore,
        credentials: CredentialService,
        notifier: ChangeNotifier,
    ) -> None:
        self._events = events
        self._registrations = registrations
        self._credentials = credentials
        self._notifier = notifier

    def _load(self, registration_id) -> tuple[Registration, Event]:
        registration = self._registrations.get(parse_registration_id(registration_id))
        if registration is None:
            raise NotRegisteredError()
        event = self._events.get_event(registration.event_id)
        if event is None:
            raise EventNotFoundError(str(registration.event_id))
        return registration, event

    def _reload(self, registration: Registration) -> Registration:
        return self._registrations.get(registration.id) or registration

    def _publish(self, registration: Registration) -> None:
        self._notifier.publish(
            ATTENDANCE_TOPIC,
            {
                "eventId": str(registration.event_id),
                "registrationId": str(registration.id),
                "volunteerId": registration.volunteer_id,
                "inTime": registration.in_time.isoformat() if registration.in_time else None,
                "outTime": registration.out_time.isoformat() if registration.out_time else None,
            },
        )

    # Transitions

    def _check_in(self, registration: Registration, source: AttendanceSource) -> AttendanceOutcome:
        if registration.in_time is not None:
            return AttendanceOutcome(registration, already_recorded=True)
        if not self._registrations.mark_checked_in(registration.id, timezone.now()):
            return AttendanceOutcome(self._reload(registration), already_recorded=True)

        registration = self._reload(registration)
        exit_credential = self._credentials.rotate_to_exit(registration)
        self._publish(registration)
        logger.info(
            "volunteer_checked_in",
            registration_id=str(registration.id),
            event_id=str(registration.event_id),
            source=source.value,
        )
        return AttendanceOutcome(registration, exit_credential=exit_credential)

    def _check_out(self, registration: Registration, source: AttendanceSource) -> AttendanceOutcome:
        if registration.out_time is not None:
            return AttendanceOutcome(registration, already_recorded=True)
        if registration.in_time is None:
            raise InvalidTransitionError("Volunteer has not checked in yet.")
        if not self._registrations.mark_checked_out(registration.id, timezone.now()):
            return AttendanceOutcome(self._reload(registration), already_recorded=True)

        registration = self._reload(registration)
        self._credentials.consume_exit(registration)
        self._publish(registration)
        logger.info(
            "volunteer_checked_out",
            registration_id=str(registration.id),
            event_id=str(registration.event_id),
            source=source.value,
        )
        return AttendanceOutcome(registration)

    def check_in(self, registration_id: str, source: AttendanceSource, actor_id: str) -> AttendanceOutcome:
        registration, event = self._load(registration_id)
        ensure_can_mark(event, actor_id, registration)
        return self._check_in(registration, source)

    def check_out(self, registration_id: str, source: AttendanceSource, actor_id: str) -> AttendanceOutcome:
        registration, event = self._load(registration_id)
        ensure_can_mark(event, actor_id, registration)
        return self._check_out(registration, source)

    def scan_entry(
        self,
        registration_id: str,
        actor_id: str,
        event_id: str | None = None,
        volunteer_id: str | None = None,
    ) -> AttendanceOutcome:
        """Check a volunteer in from their entry credential.

        A missing registration, a credential that was already used, or a
        payload that does not match the registration all read as an
        invalid code to the scanner.
        """
        try:
            registration, event = self._load(registration_id)
        except (NotRegisteredError, EventNotFoundError):
            raise InvalidOrExpiredCredentialError() from None
        ensure_can_mark(event, actor_id, registration)
        if event_id is not None and event_id != str(registration.event_id):
            raise InvalidOrExpiredCredentialError()
        if volunteer_id is not None and volunteer_id != registration.volunteer_id:
            raise InvalidOrExpiredCredentialError()
        if self._credentials.live(registration.id, CredentialKind.ENTRY) is None:
            raise InvalidOrExpiredCredentialError()

        outcome = self._check_in(registration, AttendanceSource.SCAN)
        if outcome.already_recorded:
            # Lost the race to another scanner: the code is spent.
            raise InvalidOrExpiredCredentialError()
        return outcome

    def scan_exit(self, token: str, actor_id: str) -> AttendanceOutcome:
        """Check a volunteer out from their exit credential.

        Re-presenting the same exit code after check-out returns the earlier
        result instead of an error.
        """
        credential = self._credentials.resolve(token)
        if credential is None or credential.kind is not CredentialKind.EXIT:
            raise InvalidOrExpiredCredentialError()
        registration = self._registrations.get(credential.registration_id)
        if registration is None:
            raise InvalidOrExpiredCredentialError()
        event = self._events.get_event(registration.event_id)
        if event is None:
            raise InvalidOrExpiredCredentialError()
        ensure_can_mark(event, actor_id, registration)

        if not credential.is_live:
            if registration.state is AttendanceState.CHECKED_OUT:
                return AttendanceOutcome(registration, already_recorded=True)
            raise InvalidOrExpiredCredentialError()
        if registration.state is AttendanceState.CHECKED_OUT:
            # Check-out went through but the credential survived it.
            self._credentials.consume_exit(registration)
            return AttendanceOutcome(registration, already_recorded=True)
        return self._check_out(registration, AttendanceSource.SCAN)

    def set_has_attended(self, registration_id: str, value: bool, actor_id: str) -> AttendanceOutcome:
        registration, event = self._load(registration_id)
        ensure_can_mark(event, actor_id, registration)
        if value:
            return self._check_in(registration, AttendanceSource.MANUAL)
        if registration.has_attended:
            raise InvalidTransitionError("Attendance that has been recorded cannot be undone; edit the times instead.")
        return AttendanceOutcome(registration, already_recorded=True)

    def edit_times(
        self,
        registration_id: str,
        actor_id: str,
        in_time: datetime | None = None,
        out_time: datetime | None = None,
    ) -> Registration:
        """Correct recorded timestamps. Credentials are left alone.

        Raises:
            InvalidTransitionError: If a timestamp that was never recorded is
                given, or the corrected out time precedes the in time.
        """
        registration, event = self._load(registration_id)
        ensure_can_mark(event, actor_id, registration)

        if in_time is not None and registration.in_time is None:
            raise InvalidTransitionError("Cannot set an in time before the volunteer has checked in.")
        if out_time is not None and registration.out_time is None:
            raise InvalidTransitionError("Cannot set an out time before the volunteer has checked out.")

        new_in = in_time or registration.in_time
        new_out = out_time or registration.out_time
        if new_in is not None and new_out is not None and new_out < new_in:
            raise InvalidTransitionError("Out time cannot be before in time.")

        updated = self._registrations.update_times(registration.id, new_in, new_out)
        self._publish(updated)
        logger.info("attendance_times_edited", registration_id=str(updated.id), actor_id=actor_id)
        return updated

    def exit_credential(self, registration_id: str, actor_id: str) -> Credential:
        """Return the live exit credential, issuing a fresh one if it went missing.

        Raises:
            InvalidTransitionError: If the volunteer has not checked in.
            InvalidOrExpiredCredentialError: If the volunteer already checked out.
        """
        registration, event = self._load(registration_id)
        if actor_id != registration.volunteer_id and not event.is_organizer(actor_id):
            raise UnauthorizedError("You can only view your own exit code.")

        state = registration.state
        if state is AttendanceState.CHECKED_OUT:
            raise InvalidOrExpiredCredentialError()
        if state is AttendanceState.REGISTERED:
            raise InvalidTransitionError("Volunteer must check in before an exit code is issued.")

        credential = self._credentials.live(registration.id, CredentialKind.EXIT)
        if credential is None:
            logger.info("exit_credential_reissued", registration_id=str(registration.id))
            credential = self._credentials.issue_exit(registration)
        return credential

    def attendance_report(self, event_id: str, actor_id: str) -> AttendanceReport:
        event = self._events.get_event(parse_event_id(event_id))
        if event is None:
            raise EventNotFoundError(event_id)
        ensure_organizer(event, actor_id)

        rows = [
            ReportRow(registration=r, status=STATUS_LABELS[r.state])
            for r in self._registrations.list_for_event(event.id)
            if _counts_as_volunteer(event, r.volunteer_id)
        ]
        present = sum(1 for row in rows if row.registration.state is AttendanceState.CHECKED_IN)
        checked_out = sum(1 for row in rows if row.registration.state is AttendanceState.CHECKED_OUT)
        return AttendanceReport(
            event_id=str(event.id),
            rows=rows,
            total=len(rows),
            present=present,
            checked_out=checked_out,
            absent=len(rows) - present - checked_out,
            attendance_rate=attendance_rate(present + checked_out, len(rows)),
        )

"""Tests for the attendance state machine and credential lifecycle.

Run with: pytest tests/test_attendance.py -v
"""

import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from freezegun import freeze_time

from rollcall.domain import AttendanceSource, AttendanceState, CredentialKind
from rollcall.domain.errors import (
    InvalidOrExpiredCredentialError,
    InvalidTransitionError,
    UnauthorizedError,
)
from rollcall.services.attendance_service import attendance_rate
from rollcall.services.notifier import ATTENDANCE_TOPIC

from .conftest import ORGANIZER, TEAM_MEMBER


@pytest.fixture
def registered(services, make_event):
    """An event with one registered volunteer."""
    event = make_event(max_seats=5)
    view = services.registrations.register(str(event.id), "v1")
    return event, view


def live_kinds(store, registration_id):
    return {
        kind
        for kind in CredentialKind
        if store.live_for_registration(registration_id, kind) is not None
    }


class TestEntryScan:
    def test_entry_scan_checks_in_and_rotates_credentials(self, services, registered, store, notifier):
        event, view = registered
        reg_id = str(view.registration.id)

        outcome = services.attendance.scan_entry(reg_id, ORGANIZER, str(event.id), "v1")

        assert outcome.state is AttendanceState.CHECKED_IN
        assert not outcome.already_recorded
        assert outcome.exit_credential.kind is CredentialKind.EXIT
        assert outcome.exit_credential.payload == {"exitToken": outcome.exit_credential.token}
        assert live_kinds(store, view.registration.id) == {CredentialKind.EXIT}

        topic, payload = notifier.published[-1]
        assert topic == ATTENDANCE_TOPIC
        assert payload["registrationId"] == reg_id
        assert payload["inTime"] is not None

    def test_second_entry_scan_is_rejected(self, services, registered):
        _, view = registered
        services.attendance.scan_entry(str(view.registration.id), ORGANIZER)
        with pytest.raises(InvalidOrExpiredCredentialError):
            services.attendance.scan_entry(str(view.registration.id), ORGANIZER)

    def test_entry_scan_for_unknown_registration(self, services, registered):
        with pytest.raises(InvalidOrExpiredCredentialError):
            services.attendance.scan_entry(str(uuid.uuid4()), ORGANIZER)

    def test_entry_scan_payload_mismatch(self, services, registered):
        _, view = registered
        with pytest.raises(InvalidOrExpiredCredentialError):
            services.attendance.scan_entry(str(view.registration.id), ORGANIZER, volunteer_id="someone-else")

    def test_volunteer_cannot_scan(self, services, registered):
        _, view = registered
        with pytest.raises(UnauthorizedError):
            services.attendance.scan_entry(str(view.registration.id), "v1")

    def test_racing_entry_scans_record_one_check_in(self, services, registered, notifier):
        _, view = registered
        reg_id = str(view.registration.id)

        def scan(_):
            try:
                return services.attendance.scan_entry(reg_id, ORGANIZER)
            except InvalidOrExpiredCredentialError:
                return None

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(scan, range(8)))
        assert sum(1 for r in results if r is not None) == 1
        assert notifier.topics().count(ATTENDANCE_TOPIC) == 1


class TestExitScan:
    def check_in(self, services, view):
        return services.attendance.scan_entry(str(view.registration.id), ORGANIZER).exit_credential

    def test_exit_scan_checks_out_and_consumes(self, services, registered, store):
        _, view = registered
        exit_credential = self.check_in(services, view)

        outcome = services.attendance.scan_exit(exit_credential.token, ORGANIZER)

        assert outcome.state is AttendanceState.CHECKED_OUT
        assert not outcome.already_recorded
        assert live_kinds(store, view.registration.id) == set()

    def test_repeated_exit_scan_returns_prior_result(self, services, registered):
        _, view = registered
        exit_credential = self.check_in(services, view)
        first = services.attendance.scan_exit(exit_credential.token, ORGANIZER)

        again = services.attendance.scan_exit(exit_credential.token, ORGANIZER)

        assert again.already_recorded
        assert again.registration.out_time == first.registration.out_time

    def test_unknown_exit_token(self, services, registered):
        with pytest.raises(InvalidOrExpiredCredentialError):
            services.attendance.scan_exit("made-up", ORGANIZER)

    def test_entry_token_is_not_an_exit_token(self, services, registered):
        _, view = registered
        with pytest.raises(InvalidOrExpiredCredentialError):
            services.attendance.scan_exit(view.entry_credential.token, ORGANIZER)

    def test_entry_credential_dead_after_check_in(self, services, registered):
        _, view = registered
        self.check_in(services, view)
        with pytest.raises(InvalidOrExpiredCredentialError):
            services.attendance.scan_entry(str(view.registration.id), ORGANIZER)


class TestManualMarking:
    def test_set_has_attended_true_checks_in(self, services, registered, store):
        _, view = registered
        outcome = services.attendance.set_has_attended(str(view.registration.id), True, TEAM_MEMBER)
        assert outcome.state is AttendanceState.CHECKED_IN
        assert live_kinds(store, view.registration.id) == {CredentialKind.EXIT}

    def test_set_has_attended_true_twice_is_a_no_op(self, services, registered):
        _, view = registered
        first = services.attendance.set_has_attended(str(view.registration.id), True, ORGANIZER)
        second = services.attendance.set_has_attended(str(view.registration.id), True, ORGANIZER)
        assert second.already_recorded
        assert second.registration.in_time == first.registration.in_time

    def test_unmarking_attendance_is_refused(self, services, registered):
        _, view = registered
        services.attendance.set_has_attended(str(view.registration.id), True, ORGANIZER)
        with pytest.raises(InvalidTransitionError):
            services.attendance.set_has_attended(str(view.registration.id), False, ORGANIZER)

    def test_unmarking_absent_volunteer_is_a_no_op(self, services, registered):
        _, view = registered
        outcome = services.attendance.set_has_attended(str(view.registration.id), False, ORGANIZER)
        assert outcome.state is AttendanceState.REGISTERED

    def test_only_creator_marks_other_organizers(self, services, make_event):
        event = make_event(max_seats=5)
        creator = services.registrations.register(str(event.id), ORGANIZER)
        member = services.registrations.register(str(event.id), TEAM_MEMBER)
        with pytest.raises(UnauthorizedError):
            services.attendance.set_has_attended(str(creator.registration.id), True, TEAM_MEMBER)
        outcome = services.attendance.set_has_attended(str(member.registration.id), True, ORGANIZER)
        assert outcome.state is AttendanceState.CHECKED_IN

    def test_team_organizer_cannot_mark_themselves(self, services, make_event):
        """Given a team organizer registered as a volunteer, only the creator may mark them."""
        event = make_event(max_seats=5)
        member = services.registrations.register(str(event.id), TEAM_MEMBER)
        with pytest.raises(UnauthorizedError):
            services.attendance.set_has_attended(str(member.registration.id), True, TEAM_MEMBER)

    def test_creator_marks_themselves(self, services, make_event):
        event = make_event(max_seats=5)
        creator = services.registrations.register(str(event.id), ORGANIZER)
        outcome = services.attendance.set_has_attended(str(creator.registration.id), True, ORGANIZER)
        assert outcome.state is AttendanceState.CHECKED_IN

    def test_manual_check_out(self, services, registered):
        _, view = registered
        reg_id = str(view.registration.id)
        services.attendance.check_in(reg_id, AttendanceSource.MANUAL, ORGANIZER)
        outcome = services.attendance.check_out(reg_id, AttendanceSource.MANUAL, ORGANIZER)
        assert outcome.state is AttendanceState.CHECKED_OUT

    def test_check_out_before_check_in(self, services, registered):
        _, view = registered
        with pytest.raises(InvalidTransitionError):
            services.attendance.check_out(str(view.registration.id), AttendanceSource.MANUAL, ORGANIZER)


def failing_consume_all(registration_id, at):
    raise RuntimeError("credential store unavailable")


class TestCredentialStoreFailures:
    """Retiring credentials never blocks an attendance transition."""

    def test_exit_scan_completes_when_retire_fails(self, services, registered, store, notifier, monkeypatch):
        """Given the credential store fails while checking out, the check-out is still recorded and published."""
        _, view = registered
        exit_credential = services.attendance.scan_entry(str(view.registration.id), ORGANIZER).exit_credential
        monkeypatch.setattr(store, "consume_all", failing_consume_all)

        outcome = services.attendance.scan_exit(exit_credential.token, ORGANIZER)

        assert outcome.state is AttendanceState.CHECKED_OUT
        assert notifier.topics().count(ATTENDANCE_TOPIC) == 2
        assert notifier.published[-1][1]["outTime"] is not None

    def test_surviving_exit_credential_is_consumed_on_rescan(self, services, registered, store, monkeypatch):
        _, view = registered
        exit_credential = services.attendance.scan_entry(str(view.registration.id), ORGANIZER).exit_credential
        monkeypatch.setattr(store, "consume_all", failing_consume_all)
        services.attendance.scan_exit(exit_credential.token, ORGANIZER)
        assert live_kinds(store, view.registration.id) == {CredentialKind.EXIT}
        monkeypatch.undo()

        again = services.attendance.scan_exit(exit_credential.token, ORGANIZER)

        assert again.already_recorded
        assert live_kinds(store, view.registration.id) == set()

    def test_manual_check_in_completes_when_retire_fails(self, services, registered, store, notifier, monkeypatch):
        """Given the credential store fails while checking in, the exit credential is still issued."""
        _, view = registered
        monkeypatch.setattr(store, "consume_all", failing_consume_all)

        outcome = services.attendance.set_has_attended(str(view.registration.id), True, ORGANIZER)

        assert outcome.state is AttendanceState.CHECKED_IN
        assert outcome.exit_credential.kind is CredentialKind.EXIT
        assert notifier.topics()[-1] == ATTENDANCE_TOPIC
        # The leftover entry credential can no longer check anyone in.
        with pytest.raises(InvalidOrExpiredCredentialError):
            services.attendance.scan_entry(str(view.registration.id), ORGANIZER)


class TestEditTimes:
    def test_corrects_times_without_touching_credentials(self, services, registered, store):
        _, view = registered
        reg_id = str(view.registration.id)
        services.attendance.set_has_attended(reg_id, True, ORGANIZER)
        exit_before = store.live_for_registration(view.registration.id, CredentialKind.EXIT)

        corrected = datetime(2026, 5, 1, 8, 55, tzinfo=timezone.utc)
        updated = services.attendance.edit_times(reg_id, ORGANIZER, in_time=corrected)

        assert updated.in_time == corrected
        assert store.live_for_registration(view.registration.id, CredentialKind.EXIT) == exit_before

    def test_cannot_invent_out_time(self, services, registered):
        _, view = registered
        reg_id = str(view.registration.id)
        services.attendance.set_has_attended(reg_id, True, ORGANIZER)
        with pytest.raises(InvalidTransitionError):
            services.attendance.edit_times(reg_id, ORGANIZER, out_time=datetime.now(timezone.utc))

    def test_out_time_not_before_in_time(self, services, registered):
        _, view = registered
        reg_id = str(view.registration.id)
        services.attendance.set_has_attended(reg_id, True, ORGANIZER)
        services.attendance.check_out(reg_id, AttendanceSource.MANUAL, ORGANIZER)
        with pytest.raises(InvalidTransitionError):
            services.attendance.edit_times(
                reg_id, ORGANIZER, out_time=datetime(2000, 1, 1, tzinfo=timezone.utc)
            )


class TestExitCredential:
    def test_refetch_returns_same_token(self, services, registered):
        _, view = registered
        reg_id = str(view.registration.id)
        issued = services.attendance.scan_entry(reg_id, ORGANIZER).exit_credential
        assert services.attendance.exit_credential(reg_id, "v1").token == issued.token
        assert services.attendance.exit_credential(reg_id, ORGANIZER).token == issued.token

    def test_reissues_when_lost(self, services, registered, store):
        _, view = registered
        reg_id = str(view.registration.id)
        services.attendance.scan_entry(reg_id, ORGANIZER)
        store.consume_all(view.registration.id, datetime.now(timezone.utc))

        credential = services.attendance.exit_credential(reg_id, "v1")
        assert credential.kind is CredentialKind.EXIT
        assert credential.is_live

    def test_requires_check_in(self, services, registered):
        _, view = registered
        with pytest.raises(InvalidTransitionError):
            services.attendance.exit_credential(str(view.registration.id), "v1")

    def test_expired_after_check_out(self, services, registered):
        _, view = registered
        reg_id = str(view.registration.id)
        token = services.attendance.scan_entry(reg_id, ORGANIZER).exit_credential.token
        services.attendance.scan_exit(token, ORGANIZER)
        with pytest.raises(InvalidOrExpiredCredentialError):
            services.attendance.exit_credential(reg_id, "v1")

    def test_other_volunteers_cannot_fetch(self, services, registered):
        _, view = registered
        with pytest.raises(UnauthorizedError):
            services.attendance.exit_credential(str(view.registration.id), "v2")


class TestFullDay:
    """Register, scan in, scan out, scan out again, withdraw."""

    def test_volunteer_day(self, services, make_event, store):
        event = make_event(max_seats=1)
        event_id = str(event.id)

        with freeze_time("2026-05-01 08:00:00"):
            view = services.registrations.register(event_id, "v1")
        reg_id = str(view.registration.id)

        with freeze_time("2026-05-01 09:00:00"):
            checked_in = services.attendance.scan_entry(reg_id, ORGANIZER, event_id, "v1")
        with freeze_time("2026-05-01 13:30:00"):
            checked_out = services.attendance.scan_exit(checked_in.exit_credential.token, ORGANIZER)
            again = services.attendance.scan_exit(checked_in.exit_credential.token, ORGANIZER)

        assert checked_out.registration.in_time == datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)
        assert checked_out.registration.out_time - checked_out.registration.in_time == timedelta(hours=4, minutes=30)
        assert again.already_recorded

        services.registrations.withdraw(event_id, "v1")
        assert store.get_event(event.id).occupant_count == 0


class TestAttendanceReport:
    def test_report_counts_and_rate(self, services, make_event):
        event = make_event(max_seats=5)
        event_id = str(event.id)
        views = [services.registrations.register(event_id, f"v{i}") for i in range(3)]
        services.attendance.set_has_attended(str(views[0].registration.id), True, ORGANIZER)
        token = services.attendance.scan_entry(str(views[1].registration.id), ORGANIZER).exit_credential.token
        services.attendance.scan_exit(token, ORGANIZER)

        report = services.attendance.attendance_report(event_id, TEAM_MEMBER)

        assert [row.status for row in report.rows] == ["Present", "Checked Out", "Absent"]
        assert (report.total, report.present, report.checked_out, report.absent) == (3, 1, 1, 1)
        assert report.attendance_rate == 67

    def test_report_leaves_out_organizers(self, services, make_event):
        """Given organizers registered alongside a volunteer, only the volunteer is reported."""
        event = make_event(max_seats=5)
        event_id = str(event.id)
        services.registrations.register(event_id, ORGANIZER)
        services.registrations.register(event_id, TEAM_MEMBER)
        volunteer = services.registrations.register(event_id, "v1")
        services.attendance.set_has_attended(str(volunteer.registration.id), True, ORGANIZER)

        report = services.attendance.attendance_report(event_id, ORGANIZER)

        assert [row.registration.volunteer_id for row in report.rows] == ["v1"]
        assert (report.total, report.attendance_rate) == (1, 100)

    def test_report_is_organizer_only(self, services, make_event):
        event = make_event(max_seats=5)
        with pytest.raises(UnauthorizedError):
            services.attendance.attendance_report(str(event.id), "v1")

    @pytest.mark.parametrize("attended,total,expected", [(0, 0, 0), (1, 2, 50), (1, 8, 13), (1, 3, 33)])
    def test_rate_rounds_half_up(self, attended, total, expected):
        assert attendance_rate(attended, total) == expected

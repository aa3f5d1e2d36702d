"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses (see handlers/exceptions.py)
- Never contain business logic
- Never expose internal error details
"""

from functools import cached_property

from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from rollcall.credentials import decode_payload
from rollcall.handlers.serializers import (
    AttendanceOutcomeSerializer,
    AttendanceReportSerializer,
    CapacityRequestSerializer,
    CredentialSerializer,
    MarkAttendanceSerializer,
    RegisterRequestSerializer,
    RegistrationSerializer,
    RegistrationViewSerializer,
    ScanSerializer,
    TimesSerializer,
)
from rollcall.services import Services, build_services


class ServiceView(APIView):
    """Base view giving handlers the wired services and the acting user id."""

    @cached_property
    def services(self) -> Services:
        return build_services()

    def actor(self, request: Request) -> str:
        return str(request.user.pk)


class RegistrationCreateView(ServiceView):
    """Handler for POST /api/events/{event_id}/registrations"""

    def post(self, request: Request, event_id: str) -> Response:
        serializer = RegisterRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        view = self.services.registrations.register(event_id, self.actor(request), **serializer.to_domain())
        return Response(RegistrationViewSerializer(view).data, status=status.HTTP_201_CREATED)


class RegistrationCheckView(ServiceView):
    """Handler for GET /api/events/{event_id}/registrations/check"""

    def get(self, request: Request, event_id: str) -> Response:
        registered = self.services.registrations.is_registered(event_id, self.actor(request))
        return Response({"registered": registered})


class MyRegistrationView(ServiceView):
    """Handler for GET and DELETE /api/events/{event_id}/registrations/me"""

    def get(self, request: Request, event_id: str) -> Response:
        view = self.services.registrations.get_registration(event_id, self.actor(request))
        return Response(RegistrationViewSerializer(view).data)

    def delete(self, request: Request, event_id: str) -> Response:
        self.services.registrations.withdraw(event_id, self.actor(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


class MyRegisteredEventsView(ServiceView):
    """Handler for GET /api/registrations/events"""

    def get(self, request: Request) -> Response:
        return Response({"event_ids": self.services.registrations.registered_event_ids(self.actor(request))})


class EventVolunteersView(ServiceView):
    """Handler for GET /api/events/{event_id}/volunteers"""

    def get(self, request: Request, event_id: str) -> Response:
        registrations = self.services.registrations.list_for_event(event_id, self.actor(request))
        return Response(RegistrationSerializer(registrations, many=True).data)


class MarkAttendanceView(ServiceView):
    """Handler for PATCH /api/registrations/{registration_id}/attendance"""

    def patch(self, request: Request, registration_id: str) -> Response:
        serializer = MarkAttendanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = self.services.attendance.set_has_attended(
            registration_id, serializer.validated_data["has_attended"], self.actor(request)
        )
        return Response(AttendanceOutcomeSerializer(outcome).data)


class EntryScanView(ServiceView):
    """Handler for POST /api/attendance/entry-scan"""

    def post(self, request: Request) -> Response:
        serializer = ScanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = decode_payload(serializer.validated_data["qr_data"], "registrationId")
        outcome = self.services.attendance.scan_entry(
            payload["registrationId"],
            self.actor(request),
            event_id=payload.get("eventId"),
            volunteer_id=payload.get("volunteerId"),
        )
        return Response(AttendanceOutcomeSerializer(outcome).data)


class ExitScanView(ServiceView):
    """Handler for POST /api/attendance/exit-scan"""

    def post(self, request: Request) -> Response:
        serializer = ScanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = decode_payload(serializer.validated_data["qr_data"], "exitToken")
        outcome = self.services.attendance.scan_exit(str(payload["exitToken"]), self.actor(request))
        return Response(AttendanceOutcomeSerializer(outcome).data)


class ExitCredentialView(ServiceView):
    """Handler for GET /api/registrations/{registration_id}/exit-credential"""

    def get(self, request: Request, registration_id: str) -> Response:
        credential = self.services.attendance.exit_credential(registration_id, self.actor(request))
        return Response(CredentialSerializer(credential).data)


class TimesView(ServiceView):
    """Handler for PATCH /api/registrations/{registration_id}/times"""

    def patch(self, request: Request, registration_id: str) -> Response:
        serializer = TimesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        registration = self.services.attendance.edit_times(
            registration_id, self.actor(request), **serializer.validated_data
        )
        return Response(RegistrationSerializer(registration).data)


class CapacityView(ServiceView):
    """Handler for PUT /api/events/{event_id}/capacity"""

    def put(self, request: Request, event_id: str) -> Response:
        serializer = CapacityRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        self.services.capacity.configure(
            event_id,
            self.actor(request),
            mode=data["capacity_mode"],
            max_seats=data["max_seats"],
            time_slots_enabled=data["time_slots_enabled"],
            time_slots=data["time_slots"],
        )
        return Response(self.services.capacity.availability(event_id))


class AvailabilityView(ServiceView):
    """Handler for GET /api/events/{event_id}/availability

    Same body as the occupancy.changed broadcast, so clients parse one shape.
    """

    def get(self, request: Request, event_id: str) -> Response:
        return Response(self.services.capacity.availability(event_id))


class AttendanceReportView(ServiceView):
    """Handler for GET /api/events/{event_id}/attendance-report"""

    def get(self, request: Request, event_id: str) -> Response:
        report = self.services.attendance.attendance_report(event_id, self.actor(request))
        return Response(AttendanceReportSerializer(report).data)


class RosterActionView(ServiceView):
    roster_method = ""

    def post(self, request: Request, event_id: str, volunteer_id: str) -> Response:
        getattr(self.services.roster, self.roster_method)(event_id, volunteer_id, self.actor(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


class RemoveVolunteerView(RosterActionView):
    """Handler for POST /api/events/{event_id}/volunteers/{volunteer_id}/remove"""

    roster_method = "remove_volunteer"


class BanVolunteerView(RosterActionView):
    """Handler for POST /api/events/{event_id}/volunteers/{volunteer_id}/ban"""

    roster_method = "ban_volunteer"


class UnbanVolunteerView(RosterActionView):
    """Handler for POST /api/events/{event_id}/volunteers/{volunteer_id}/unban"""

    roster_method = "unban_volunteer"

from rollcall.handlers.views import (
    AttendanceReportView,
    AvailabilityView,
    BanVolunteerView,
    CapacityView,
    EntryScanView,
    EventVolunteersView,
    ExitCredentialView,
    ExitScanView,
    MarkAttendanceView,
    MyRegisteredEventsView,
    MyRegistrationView,
    RegistrationCheckView,
    RegistrationCreateView,
    RemoveVolunteerView,
    TimesView,
    UnbanVolunteerView,
)

__all__ = [
    "AttendanceReportView",
    "AvailabilityView",
    "BanVolunteerView",
    "CapacityView",
    "EntryScanView",
    "EventVolunteersView",
    "ExitCredentialView",
    "ExitScanView",
    "MarkAttendanceView",
    "MyRegisteredEventsView",
    "MyRegistrationView",
    "RegistrationCheckView",
    "RegistrationCreateView",
    "RemoveVolunteerView",
    "TimesView",
    "UnbanVolunteerView",
]

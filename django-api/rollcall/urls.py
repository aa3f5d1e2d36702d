from django.urls import path

from rollcall.handlers import (
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

urlpatterns = [
    path(
        "events/<str:event_id>/registrations",
        RegistrationCreateView.as_view(),
        name="registration-create",
    ),
    path(
        "events/<str:event_id>/registrations/check",
        RegistrationCheckView.as_view(),
        name="registration-check",
    ),
    path(
        "events/<str:event_id>/registrations/me",
        MyRegistrationView.as_view(),
        name="registration-me",
    ),
    path("registrations/events", MyRegisteredEventsView.as_view(), name="registered-events"),
    path("events/<str:event_id>/volunteers", EventVolunteersView.as_view(), name="event-volunteers"),
    path("events/<str:event_id>/capacity", CapacityView.as_view(), name="event-capacity"),
    path("events/<str:event_id>/availability", AvailabilityView.as_view(), name="event-availability"),
    path(
        "events/<str:event_id>/attendance-report",
        AttendanceReportView.as_view(),
        name="attendance-report",
    ),
    path(
        "events/<str:event_id>/volunteers/<str:volunteer_id>/remove",
        RemoveVolunteerView.as_view(),
        name="volunteer-remove",
    ),
    path(
        "events/<str:event_id>/volunteers/<str:volunteer_id>/ban",
        BanVolunteerView.as_view(),
        name="volunteer-ban",
    ),
    path(
        "events/<str:event_id>/volunteers/<str:volunteer_id>/unban",
        UnbanVolunteerView.as_view(),
        name="volunteer-unban",
    ),
    path(
        "registrations/<str:registration_id>/attendance",
        MarkAttendanceView.as_view(),
        name="mark-attendance",
    ),
    path(
        "registrations/<str:registration_id>/exit-credential",
        ExitCredentialView.as_view(),
        name="exit-credential",
    ),
    path("registrations/<str:registration_id>/times", TimesView.as_view(), name="attendance-times"),
    path("attendance/entry-scan", EntryScanView.as_view(), name="entry-scan"),
    path("attendance/exit-scan", ExitScanView.as_view(), name="exit-scan"),
]

from django.contrib import admin

from rollcall.models import (
    Category,
    Credential,
    Event,
    OrganizerMembership,
    Registration,
    TimeSlot,
    VolunteerStanding,
)


class OrganizerInline(admin.TabularInline):
    model = OrganizerMembership
    extra = 1


class TimeSlotInline(admin.TabularInline):
    model = TimeSlot
    extra = 0


class CategoryInline(admin.TabularInline):
    model = Category
    extra = 0
    readonly_fields = ["current_occupants"]


class CredentialInline(admin.TabularInline):
    model = Credential
    extra = 0
    fields = ["kind", "issued_at", "consumed_at"]
    readonly_fields = fields


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["name", "capacity_mode", "max_seats", "occupant_count", "starts_at"]
    search_fields = ["name", "created_by"]
    readonly_fields = ["occupant_count"]
    inlines = [OrganizerInline, TimeSlotInline]


@admin.register(TimeSlot)
class TimeSlotAdmin(admin.ModelAdmin):
    list_display = ["name", "event", "start_time", "end_time"]
    list_filter = ["event"]
    inlines = [CategoryInline]


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ["volunteer_id", "event", "created_at", "in_time", "out_time"]
    list_filter = ["event"]
    search_fields = ["volunteer_id"]
    inlines = [CredentialInline]


@admin.register(VolunteerStanding)
class VolunteerStandingAdmin(admin.ModelAdmin):
    list_display = ["volunteer_id", "event", "standing", "updated_at"]
    list_filter = ["standing", "event"]

"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid

from django.db import models


class Event(models.Model):
    """Persistence model for the capacity fields of an event."""

    class CapacityMode(models.TextChoices):
        UNLIMITED = "UNLIMITED"
        FIXED = "FIXED"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    created_by = models.CharField(max_length=64)
    starts_at = models.DateTimeField(blank=True, null=True)
    capacity_mode = models.CharField(
        max_length=16, choices=CapacityMode.choices, default=CapacityMode.UNLIMITED
    )
    max_seats = models.PositiveIntegerField(blank=True, null=True)
    occupant_count = models.PositiveIntegerField(default=0)
    time_slots_enabled = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(max_seats__isnull=True)
                | models.Q(occupant_count__lte=models.F("max_seats")),
                name="rollcall_event_occupants_lte_max_seats",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class OrganizerMembership(models.Model):
    """A member of an event's organizing team."""

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="organizers")
    user_id = models.CharField(max_length=64)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["event", "user_id"], name="rollcall_unique_organizer"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} @ {self.event_id}"


class EventOccupant(models.Model):
    """A volunteer currently holding a seat."""

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="occupants")
    volunteer_id = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["event", "volunteer_id"], name="rollcall_unique_occupant"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.volunteer_id} @ {self.event_id}"


class VolunteerStanding(models.Model):
    """Ban or removal of a volunteer. At most one per event and volunteer."""

    class Kind(models.TextChoices):
        BANNED = "BANNED"
        REMOVED = "REMOVED"

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="standings")
    volunteer_id = models.CharField(max_length=64)
    standing = models.CharField(max_length=16, choices=Kind.choices)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["event", "volunteer_id"], name="rollcall_unique_standing"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.volunteer_id} {self.standing} @ {self.event_id}"


class TimeSlot(models.Model):
    """Persistence model for event time slots."""

    id = models.CharField(primary_key=True, max_length=64)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="time_slots")
    name = models.CharField(max_length=255)
    start_time = models.CharField(max_length=5)
    end_time = models.CharField(max_length=5)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position"]
        indexes = [
            models.Index(fields=["event", "position"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.start_time}-{self.end_time})"


class Category(models.Model):
    """Persistence model for a sub-capacity bucket inside a time slot."""

    id = models.CharField(primary_key=True, max_length=64)
    time_slot = models.ForeignKey(TimeSlot, on_delete=models.CASCADE, related_name="categories")
    name = models.CharField(max_length=255)
    max_occupants = models.PositiveIntegerField(blank=True, null=True)
    current_occupants = models.PositiveIntegerField(default=0)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position"]
        verbose_name_plural = "categories"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(max_occupants__isnull=True)
                | models.Q(current_occupants__lte=models.F("max_occupants")),
                name="rollcall_category_occupants_lte_max",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class Registration(models.Model):
    """Persistence model for registrations."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="registrations")
    volunteer_id = models.CharField(max_length=64)
    group_members = models.JSONField(default=list, blank=True)
    slot_id = models.CharField(max_length=64, blank=True, null=True)
    category_id = models.CharField(max_length=64, blank=True, null=True)
    in_time = models.DateTimeField(blank=True, null=True)
    out_time = models.DateTimeField(blank=True, null=True)
    has_attended = models.BooleanField(default=False)
    created_at = models.DateTimeField()

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["event", "volunteer_id"], name="rollcall_unique_registration"
            ),
        ]
        indexes = [
            models.Index(fields=["volunteer_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.volunteer_id} -> {self.event_id}"


class Credential(models.Model):
    """Persistence model for entry and exit credentials."""

    class Kind(models.TextChoices):
        ENTRY = "ENTRY"
        EXIT = "EXIT"

    token = models.CharField(primary_key=True, max_length=128)
    registration = models.ForeignKey(
        Registration, on_delete=models.CASCADE, related_name="credentials"
    )
    kind = models.CharField(max_length=8, choices=Kind.choices)
    payload = models.JSONField(default=dict)
    image_ref = models.TextField(blank=True, null=True)
    issued_at = models.DateTimeField()
    consumed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        indexes = [
            models.Index(fields=["registration", "kind"]),
        ]

    def __str__(self) -> str:
        return f"{self.kind} {self.registration_id}"

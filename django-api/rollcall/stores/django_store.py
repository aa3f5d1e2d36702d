"""Django ORM implementation of the stores.

Admission gates are single conditional ``UPDATE ... WHERE`` statements, so the
database decides "is there room" and "take it" in one step.
"""

from dataclasses import asdict
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models import F, Q

from rollcall import models
from rollcall.domain import (
    Capacity,
    CapacityMode,
    Category,
    ClockTime,
    Credential,
    CredentialKind,
    Event,
    EventId,
    GroupMember,
    Registration,
    RegistrationId,
    SlotSelection,
    Standing,
    TimeSlot,
)
from rollcall.domain.errors import (
    AlreadyRegisteredError,
    EventNotFoundError,
    InvalidCapacityConfigError,
    NotRegisteredError,
)
from rollcall.stores.interfaces import (
    CapacityStore,
    CredentialStore,
    EventStore,
    RegistrationStore,
)


def _to_capacity(value: int | None) -> Capacity | None:
    return Capacity(value) if value is not None else None


def _to_event(row: models.Event) -> Event:
    standings = list(row.standings.all())
    return Event(
        id=EventId(row.id),
        created_by=row.created_by,
        capacity_mode=CapacityMode(row.capacity_mode),
        max_seats=_to_capacity(row.max_seats),
        occupant_count=row.occupant_count,
        time_slots_enabled=row.time_slots_enabled,
        time_slots=tuple(
            TimeSlot(
                id=slot.id,
                name=slot.name,
                start_time=ClockTime.from_string(slot.start_time),
                end_time=ClockTime.from_string(slot.end_time),
                categories=tuple(
                    Category(
                        id=category.id,
                        name=category.name,
                        max_occupants=_to_capacity(category.max_occupants),
                        current_occupants=category.current_occupants,
                    )
                    for category in slot.categories.all()
                ),
            )
            for slot in row.time_slots.all()
        ),
        organizers=frozenset(m.user_id for m in row.organizers.all()),
        banned_volunteers=frozenset(
            s.volunteer_id for s in standings if s.standing == Standing.BANNED.value
        ),
        removed_volunteers=frozenset(
            s.volunteer_id for s in standings if s.standing == Standing.REMOVED.value
        ),
        starts_at=row.starts_at,
    )


def _to_registration(row: models.Registration) -> Registration:
    selection = None
    if row.slot_id and row.category_id:
        selection = SlotSelection(slot_id=row.slot_id, category_id=row.category_id)
    return Registration(
        id=RegistrationId(row.id),
        event_id=EventId(row.event_id),
        volunteer_id=row.volunteer_id,
        created_at=row.created_at,
        group_members=tuple(GroupMember(**member) for member in row.group_members or ()),
        selected_time_slot=selection,
        in_time=row.in_time,
        out_time=row.out_time,
    )


def _to_credential(row: models.Credential) -> Credential:
    return Credential(
        token=row.token,
        kind=CredentialKind(row.kind),
        registration_id=RegistrationId(row.registration_id),
        payload=row.payload,
        image_ref=row.image_ref,
        issued_at=row.issued_at,
        consumed_at=row.consumed_at,
    )


class DjangoEventStore(EventStore):
    """PostgreSQL-backed event store using Django ORM."""

    def _queryset(self):
        return models.Event.objects.prefetch_related(
            "time_slots__categories", "organizers", "standings"
        )

    def get_event(self, event_id: EventId) -> Event | None:
        row = self._queryset().filter(pk=event_id.value).first()
        return _to_event(row) if row else None

    @transaction.atomic
    def save_capacity(
        self,
        event_id: EventId,
        mode: CapacityMode,
        max_seats: Capacity | None,
        time_slots_enabled: bool,
        time_slots: tuple[TimeSlot, ...],
    ) -> Event:
        if not models.Event.objects.select_for_update().filter(pk=event_id.value).exists():
            raise EventNotFoundError(str(event_id))

        kept_slots = [slot.id for slot in time_slots]
        kept_categories = [c.id for slot in time_slots for c in slot.categories]
        foreign_slots = models.TimeSlot.objects.filter(pk__in=kept_slots).exclude(event_id=event_id.value)
        foreign_categories = models.Category.objects.filter(pk__in=kept_categories).exclude(
            time_slot__event_id=event_id.value
        )
        if foreign_slots.exists() or foreign_categories.exists():
            raise InvalidCapacityConfigError("A time slot or category id is already used by another event")

        seats = max_seats.value if max_seats is not None else None
        events = models.Event.objects.filter(pk=event_id.value)
        if seats is not None:
            events = events.filter(occupant_count__lte=seats)
        updated = events.update(
            capacity_mode=mode.value,
            max_seats=seats,
            time_slots_enabled=time_slots_enabled,
        )
        if not updated:
            raise InvalidCapacityConfigError(
                "Cannot lower the seat count below the volunteers already registered"
            )

        stale = models.Category.objects.filter(time_slot__event_id=event_id.value).exclude(
            pk__in=kept_categories
        )
        if stale.filter(current_occupants__gt=0).exists():
            raise InvalidCapacityConfigError("A removed category still has registered volunteers")
        stale.delete()

        for slot_position, slot in enumerate(time_slots):
            models.TimeSlot.objects.update_or_create(
                pk=slot.id,
                event_id=event_id.value,
                defaults={
                    "name": slot.name,
                    "start_time": str(slot.start_time),
                    "end_time": str(slot.end_time),
                    "position": slot_position,
                },
            )
            for position, category in enumerate(slot.categories):
                limit = category.max_occupants.value if category.max_occupants else None
                existing = models.Category.objects.filter(
                    pk=category.id, time_slot__event_id=event_id.value
                )
                if limit is not None:
                    existing = existing.filter(current_occupants__lte=limit)
                updated = existing.update(
                    time_slot_id=slot.id,
                    name=category.name,
                    max_occupants=limit,
                    position=position,
                )
                if updated:
                    continue
                if models.Category.objects.filter(pk=category.id).exists():
                    raise InvalidCapacityConfigError(
                        f'Category "{category.name}" already has more volunteers than that'
                    )
                models.Category.objects.create(
                    pk=category.id,
                    time_slot_id=slot.id,
                    name=category.name,
                    max_occupants=limit,
                    position=position,
                )

        # Kept categories have been re-parented by now.
        models.TimeSlot.objects.filter(event_id=event_id.value).exclude(pk__in=kept_slots).delete()
        return self.get_event(event_id)

    def set_standing(self, event_id: EventId, volunteer_id: str, standing: Standing) -> None:
        models.VolunteerStanding.objects.update_or_create(
            event_id=event_id.value,
            volunteer_id=volunteer_id,
            defaults={"standing": standing.value},
        )

    def clear_standing(self, event_id: EventId, volunteer_id: str, standing: Standing) -> bool:
        deleted, _ = models.VolunteerStanding.objects.filter(
            event_id=event_id.value, volunteer_id=volunteer_id, standing=standing.value
        ).delete()
        return deleted > 0


class DjangoCapacityStore(CapacityStore):
    """Occupancy counters guarded by conditional updates."""

    def add_occupant_if_room(self, event_id: EventId, volunteer_id: str) -> bool:
        try:
            with transaction.atomic():
                has_room = models.Event.objects.filter(pk=event_id.value).filter(
                    Q(capacity_mode=models.Event.CapacityMode.UNLIMITED)
                    | Q(occupant_count__lt=F("max_seats"))
                )
                if not has_room.update(occupant_count=F("occupant_count") + 1):
                    return False
                # A duplicate occupant aborts the savepoint, undoing the increment.
                models.EventOccupant.objects.create(event_id=event_id.value, volunteer_id=volunteer_id)
        except IntegrityError:
            return False
        return True

    def remove_occupant(self, event_id: EventId, volunteer_id: str) -> bool:
        with transaction.atomic():
            deleted, _ = models.EventOccupant.objects.filter(
                event_id=event_id.value, volunteer_id=volunteer_id
            ).delete()
            if not deleted:
                return False
            models.Event.objects.filter(pk=event_id.value, occupant_count__gt=0).update(
                occupant_count=F("occupant_count") - 1
            )
        return True

    def is_occupant(self, event_id: EventId, volunteer_id: str) -> bool:
        return models.EventOccupant.objects.filter(
            event_id=event_id.value, volunteer_id=volunteer_id
        ).exists()

    def _category(self, event_id: EventId, slot_id: str, category_id: str):
        return models.Category.objects.filter(
            pk=category_id, time_slot_id=slot_id, time_slot__event_id=event_id.value
        )

    def increment_category_if_room(self, event_id: EventId, slot_id: str, category_id: str) -> bool:
        updated = (
            self._category(event_id, slot_id, category_id)
            .filter(Q(max_occupants__isnull=True) | Q(current_occupants__lt=F("max_occupants")))
            .update(current_occupants=F("current_occupants") + 1)
        )
        return updated == 1

    def decrement_category(self, event_id: EventId, slot_id: str, category_id: str) -> bool:
        updated = (
            self._category(event_id, slot_id, category_id)
            .filter(current_occupants__gt=0)
            .update(current_occupants=F("current_occupants") - 1)
        )
        return updated == 1


class DjangoRegistrationStore(RegistrationStore):
    """Registration persistence using Django ORM."""

    def create(self, registration: Registration) -> Registration:
        selection = registration.selected_time_slot
        try:
            with transaction.atomic():
                row = models.Registration.objects.create(
                    id=registration.id.value,
                    event_id=registration.event_id.value,
                    volunteer_id=registration.volunteer_id,
                    group_members=[asdict(member) for member in registration.group_members],
                    slot_id=selection.slot_id if selection else None,
                    category_id=selection.category_id if selection else None,
                    created_at=registration.created_at,
                )
        except IntegrityError:
            raise AlreadyRegisteredError() from None
        return _to_registration(row)

    def get(self, registration_id: RegistrationId) -> Registration | None:
        row = models.Registration.objects.filter(pk=registration_id.value).first()
        return _to_registration(row) if row else None

    def find(self, event_id: EventId, volunteer_id: str) -> Registration | None:
        row = models.Registration.objects.filter(
            event_id=event_id.value, volunteer_id=volunteer_id
        ).first()
        return _to_registration(row) if row else None

    def list_for_event(self, event_id: EventId) -> list[Registration]:
        rows = models.Registration.objects.filter(event_id=event_id.value).order_by("created_at")
        return [_to_registration(row) for row in rows]

    def list_for_volunteer(self, volunteer_id: str) -> list[Registration]:
        rows = models.Registration.objects.filter(volunteer_id=volunteer_id).order_by("created_at")
        return [_to_registration(row) for row in rows]

    def delete(self, registration_id: RegistrationId) -> bool:
        deleted, _ = models.Registration.objects.filter(pk=registration_id.value).delete()
        return deleted > 0

    def mark_checked_in(self, registration_id: RegistrationId, at: datetime) -> bool:
        updated = models.Registration.objects.filter(
            pk=registration_id.value, in_time__isnull=True
        ).update(in_time=at, has_attended=True)
        return updated == 1

    def mark_checked_out(self, registration_id: RegistrationId, at: datetime) -> bool:
        updated = models.Registration.objects.filter(
            pk=registration_id.value, in_time__isnull=False, out_time__isnull=True
        ).update(out_time=at)
        return updated == 1

    def update_times(
        self,
        registration_id: RegistrationId,
        in_time: datetime | None,
        out_time: datetime | None,
    ) -> Registration:
        updated = models.Registration.objects.filter(pk=registration_id.value).update(
            in_time=in_time, out_time=out_time, has_attended=in_time is not None
        )
        if not updated:
            raise NotRegisteredError()
        return self.get(registration_id)


class DjangoCredentialStore(CredentialStore):
    """Credential persistence using Django ORM."""

    def add(self, credential: Credential) -> Credential:
        row = models.Credential.objects.create(
            token=credential.token,
            registration_id=credential.registration_id.value,
            kind=credential.kind.value,
            payload=credential.payload,
            image_ref=credential.image_ref,
            issued_at=credential.issued_at,
        )
        return _to_credential(row)

    def get_by_token(self, token: str) -> Credential | None:
        row = models.Credential.objects.filter(pk=token).first()
        return _to_credential(row) if row else None

    def live_for_registration(
        self, registration_id: RegistrationId, kind: CredentialKind
    ) -> Credential | None:
        row = (
            models.Credential.objects.filter(
                registration_id=registration_id.value, kind=kind.value, consumed_at__isnull=True
            )
            .order_by("-issued_at")
            .first()
        )
        return _to_credential(row) if row else None

    def consume_all(self, registration_id: RegistrationId, at: datetime) -> list[Credential]:
        with transaction.atomic():
            rows = list(
                models.Credential.objects.select_for_update().filter(
                    registration_id=registration_id.value, consumed_at__isnull=True
                )
            )
            models.Credential.objects.filter(pk__in=[row.pk for row in rows]).update(consumed_at=at)
        return [_to_credential(row) for row in rows]

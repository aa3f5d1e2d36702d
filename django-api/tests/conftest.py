"""Pytest configuration and shared fixtures."""

import uuid
from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from rollcall.credentials import CredentialRenderer
from rollcall.domain import (
    Capacity,
    CapacityMode,
    Category,
    ClockTime,
    Event,
    EventId,
    TimeSlot,
)
from rollcall.services import build_services
from rollcall.services.notifier import ChangeNotifier
from rollcall.stores import InMemoryStore

ORGANIZER = "organizer-1"
TEAM_MEMBER = "organizer-2"


class RecordingNotifier(ChangeNotifier):
    def __init__(self) -> None:
        self.published = []

    def publish(self, topic, payload):
        self.published.append((topic, payload))

    def topics(self):
        return [topic for topic, _ in self.published]


class FakeRenderer(CredentialRenderer):
    """Records rendered payloads; optionally fails to discard."""

    def __init__(self, fail_discard: bool = False) -> None:
        self.rendered = []
        self.discarded = []
        self.fail_discard = fail_discard

    def render(self, payload: bytes) -> str:
        self.rendered.append(payload)
        return f"image-{len(self.rendered)}"

    def discard(self, ref: str) -> None:
        if self.fail_discard:
            raise OSError("image host unavailable")
        self.discarded.append(ref)


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def services(store, notifier, renderer):
    return build_services(
        events=store,
        occupancy=store,
        registrations=store,
        credentials=store,
        renderer=renderer,
        notifier=notifier,
    )


def make_slots(*limits: int | None) -> tuple[TimeSlot, ...]:
    """One morning slot holding one category per limit."""
    categories = tuple(
        Category(id=f"cat-{i}", name=f"Team {i}", max_occupants=Capacity(limit) if limit else None)
        for i, limit in enumerate(limits)
    )
    return (
        TimeSlot(
            id="slot-am",
            name="Morning",
            start_time=ClockTime(8, 0),
            end_time=ClockTime(12, 0),
            categories=categories,
        ),
    )


@pytest.fixture
def make_event(store):
    def _make(
        max_seats: int | None = None,
        slots: tuple[TimeSlot, ...] = (),
        starts_in: timedelta | None = timedelta(days=7),
        **kwargs,
    ) -> Event:
        event = Event(
            id=EventId(uuid.uuid4()),
            created_by=ORGANIZER,
            capacity_mode=CapacityMode.FIXED if max_seats is not None else CapacityMode.UNLIMITED,
            max_seats=Capacity(max_seats) if max_seats is not None else None,
            occupant_count=0,
            time_slots_enabled=bool(slots),
            time_slots=slots,
            organizers=frozenset({TEAM_MEMBER}),
            starts_at=timezone.now() + starts_in if starts_in is not None else None,
            **kwargs,
        )
        return store.add_event(event)

    return _make

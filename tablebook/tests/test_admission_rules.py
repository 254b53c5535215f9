from datetime import date, datetime, time, timezone
from uuid import uuid4

import pytest

from tablebook.app.core.errors import AdmissionRejected, NotFoundError, ValidationError
from tablebook.app.repositories import locations as location_repo
from tablebook.app.repositories import reservations as reservation_repo
from tablebook.app.services import locations as location_service
from tablebook.app.services import reservations as reservation_service
from tablebook.app.services.reservations import (
    MSG_CAPACITY,
    MSG_NO_FREE_PLACES,
    MSG_NO_WORKING_HOURS,
    MSG_OUTSIDE_HOURS,
    check_admission,
)

NOW = datetime(2024, 6, 1, 8, 0)


def _check(start: datetime, places: int, reserved: int = 0, capacity: int = 5,
           open_at: time | None = time(9, 0), close_at: time | None = time(22, 0)) -> None:
    check_admission(
        open_at=open_at,
        close_at=close_at,
        capacity=capacity,
        start_time=start,
        places=places,
        date_reserved_places=reserved,
    )


@pytest.mark.parametrize("start", [datetime(2024, 6, 1, 9, 0), datetime(2024, 6, 1, 22, 0)])
def test_start_on_opening_or_closing_time_is_rejected(start):
    with pytest.raises(AdmissionRejected) as excinfo:
        _check(start, places=1)
    assert excinfo.value.detail == MSG_OUTSIDE_HOURS


@pytest.mark.parametrize(
    "start",
    [datetime(2024, 6, 1, 9, 0, 1), datetime(2024, 6, 1, 21, 59, 59), datetime(2024, 6, 1, 12, 0)],
)
def test_start_strictly_inside_hours_is_admitted(start):
    _check(start, places=1)


def test_location_without_hours_rejects():
    with pytest.raises(AdmissionRejected) as excinfo:
        _check(datetime(2024, 6, 1, 12, 0), places=1, open_at=None)
    assert excinfo.value.detail == MSG_NO_WORKING_HOURS


def test_party_larger_than_total_capacity_is_rejected_before_free_places():
    with pytest.raises(AdmissionRejected) as excinfo:
        _check(datetime(2024, 6, 1, 12, 0), places=6, reserved=0, capacity=5)
    assert excinfo.value.detail == MSG_CAPACITY


def test_free_places_for_date():
    with pytest.raises(AdmissionRejected) as excinfo:
        _check(datetime(2024, 6, 1, 13, 0), places=3, reserved=3, capacity=5)
    assert excinfo.value.detail == MSG_NO_FREE_PLACES

    _check(datetime(2024, 6, 1, 13, 0), places=2, reserved=3, capacity=5)


class _InMemoryStore:
    """Stands in for the repositories so the engine's wiring can run without Postgres."""

    def __init__(self, places: int, open_at: time = time(9, 0), close_at: time = time(22, 0)) -> None:
        self.locations: dict = {}
        self.rows: dict = {}
        self.excluded: list = []
        self.restaurant_id, self.address_id = self.add_location(places, open_at, close_at)

    def add_location(self, places: int, open_at: time = time(9, 0), close_at: time = time(22, 0)):
        key = (uuid4(), uuid4())
        self.locations[key] = {
            "restaurant_id": key[0],
            "address_id": key[1],
            "places": places,
            "open": open_at,
            "close": close_at,
        }
        return key

    def install(self, monkeypatch) -> None:
        monkeypatch.setattr(location_repo, "get_by_key", self.get_by_key)
        monkeypatch.setattr(reservation_repo, "sum_active_places", self.sum_active_places)
        monkeypatch.setattr(reservation_repo, "insert", self.insert)
        monkeypatch.setattr(reservation_repo, "get_by_id", self.get_by_id)
        monkeypatch.setattr(reservation_repo, "update", self.update)

    async def get_by_key(self, session, restaurant_id, address_id, *, for_update=False):
        return self.locations.get((restaurant_id, address_id))

    async def sum_active_places(self, session, restaurant_id, address_id, day: date, exclude_id=None):
        self.excluded.append(exclude_id)
        return sum(
            row["places"]
            for row in self.rows.values()
            if row["id"] != exclude_id
            and (row["location_restaurant_id"], row["location_address_id"]) == (restaurant_id, address_id)
            and row["start_time"].date() == day
            and not row["is_started"]
            and not row["is_finished"]
        )

    async def insert(self, session, *, restaurant_id, address_id, name, phone, places, start_time):
        reservation_id = uuid4()
        self.rows[reservation_id] = {
            "id": reservation_id,
            "location_restaurant_id": restaurant_id,
            "location_address_id": address_id,
            "name": name,
            "phone": phone,
            "places": places,
            "start_time": start_time,
            "end_time": None,
            "is_started": False,
            "is_finished": False,
        }
        return reservation_id

    async def get_by_id(self, session, reservation_id, *, unfinished_only=False):
        row = self.rows.get(reservation_id)
        if row is None or (unfinished_only and row["is_finished"]):
            return None
        return row

    async def update(self, session, reservation_id, patch):
        self.rows[reservation_id].update(patch)
        return True

    async def create(self, places: int, start: datetime, location=None):
        restaurant_id, address_id = location or (self.restaurant_id, self.address_id)
        return await reservation_service.create_reservation(
            None,
            restaurant_id=restaurant_id,
            address_id=address_id,
            name="Guest",
            phone="+15550000",
            places=places,
            start_time=start,
            now=NOW,
        )


@pytest.mark.asyncio
async def test_scenario_fills_capacity_exactly(monkeypatch):
    store = _InMemoryStore(places=5)
    store.install(monkeypatch)

    await store.create(3, datetime(2024, 6, 1, 12, 0))
    with pytest.raises(AdmissionRejected) as excinfo:
        await store.create(3, datetime(2024, 6, 1, 13, 0))
    assert excinfo.value.detail == MSG_NO_FREE_PLACES
    await store.create(2, datetime(2024, 6, 1, 13, 0))

    assert sum(row["places"] for row in store.rows.values()) == 5


@pytest.mark.asyncio
async def test_other_dates_do_not_count(monkeypatch):
    store = _InMemoryStore(places=5)
    store.install(monkeypatch)

    await store.create(5, datetime(2024, 6, 1, 12, 0))
    await store.create(5, datetime(2024, 6, 2, 12, 0))


@pytest.mark.asyncio
async def test_new_reservation_starts_pending(monkeypatch):
    store = _InMemoryStore(places=5)
    store.install(monkeypatch)

    reservation_id = await store.create(2, datetime(2024, 6, 1, 12, 0))
    row = store.rows[reservation_id]
    assert (row["is_started"], row["is_finished"], row["end_time"]) == (False, False, None)


@pytest.mark.asyncio
async def test_update_excludes_its_own_places(monkeypatch):
    store = _InMemoryStore(places=10)
    store.install(monkeypatch)
    reservation_id = await store.create(4, datetime(2024, 6, 1, 12, 0))

    updated = await reservation_service.update_reservation(None, reservation_id, places=10, now=NOW)

    assert updated is True
    assert store.rows[reservation_id]["places"] == 10
    assert store.excluded[-1] == reservation_id


@pytest.mark.asyncio
async def test_update_keeps_omitted_fields(monkeypatch):
    store = _InMemoryStore(places=10)
    store.install(monkeypatch)
    reservation_id = await store.create(4, datetime(2024, 6, 1, 12, 0))

    await reservation_service.update_reservation(None, reservation_id, name="Renamed", now=NOW)

    row = store.rows[reservation_id]
    assert row["name"] == "Renamed"
    assert row["places"] == 4
    assert row["start_time"] == datetime(2024, 6, 1, 12, 0)


@pytest.mark.asyncio
async def test_update_rechecks_hours_for_new_start(monkeypatch):
    store = _InMemoryStore(places=10)
    store.install(monkeypatch)
    reservation_id = await store.create(4, datetime(2024, 6, 1, 12, 0))

    with pytest.raises(AdmissionRejected) as excinfo:
        await reservation_service.update_reservation(
            None, reservation_id, start_time=datetime(2024, 6, 1, 23, 30), now=NOW
        )
    assert excinfo.value.detail == MSG_OUTSIDE_HOURS


@pytest.mark.asyncio
async def test_update_of_finished_reservation_is_not_found(monkeypatch):
    store = _InMemoryStore(places=10)
    store.install(monkeypatch)
    reservation_id = await store.create(4, datetime(2024, 6, 1, 12, 0))
    store.rows[reservation_id]["is_finished"] = True

    with pytest.raises(NotFoundError):
        await reservation_service.update_reservation(None, reservation_id, places=2, now=NOW)


@pytest.mark.asyncio
async def test_unknown_location_is_not_found(monkeypatch):
    store = _InMemoryStore(places=10)
    store.install(monkeypatch)

    with pytest.raises(NotFoundError):
        await reservation_service.create_reservation(
            None,
            restaurant_id=uuid4(),
            address_id=store.address_id,
            name="Guest",
            phone="+15550000",
            places=2,
            start_time=datetime(2024, 6, 1, 12, 0),
            now=NOW,
        )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"restaurant_id": None},
        {"address_id": None},
        {"places": 0},
        {"places": -2},
        {"places": None},
        {"start_time": None},
        {"start_time": datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)},
    ],
)
async def test_invalid_request_fails_validation(overrides):
    request = {
        "restaurant_id": uuid4(),
        "address_id": uuid4(),
        "name": "Guest",
        "phone": "+15550000",
        "places": 2,
        "start_time": datetime(2024, 6, 1, 12, 0),
    }
    request.update(overrides)

    with pytest.raises(ValidationError):
        await reservation_service.create_reservation(None, now=NOW, **request)


@pytest.mark.asyncio
async def test_update_moves_reservation_to_another_location(monkeypatch):
    store = _InMemoryStore(places=5)
    store.install(monkeypatch)
    terrace = store.add_location(places=4)
    reservation_id = await store.create(3, datetime(2024, 6, 1, 12, 0))
    await store.create(2, datetime(2024, 6, 1, 19, 0), location=terrace)

    with pytest.raises(AdmissionRejected) as excinfo:
        await reservation_service.update_reservation(
            None, reservation_id, restaurant_id=terrace[0], address_id=terrace[1], now=NOW
        )
    assert excinfo.value.detail == MSG_NO_FREE_PLACES

    updated = await reservation_service.update_reservation(
        None, reservation_id, restaurant_id=terrace[0], address_id=terrace[1], places=2, now=NOW
    )

    assert updated is True
    row = store.rows[reservation_id]
    assert (row["location_restaurant_id"], row["location_address_id"]) == terrace
    assert row["places"] == 2
    # The old location no longer holds the moved seats.
    await store.create(5, datetime(2024, 6, 1, 13, 0))


@pytest.mark.asyncio
async def test_update_to_another_date_frees_the_old_one(monkeypatch):
    store = _InMemoryStore(places=5)
    store.install(monkeypatch)
    reservation_id = await store.create(5, datetime(2024, 6, 1, 12, 0))
    await store.create(4, datetime(2024, 6, 2, 12, 0))

    with pytest.raises(AdmissionRejected) as excinfo:
        await reservation_service.update_reservation(
            None, reservation_id, start_time=datetime(2024, 6, 2, 18, 0), now=NOW
        )
    assert excinfo.value.detail == MSG_NO_FREE_PLACES

    await reservation_service.update_reservation(
        None, reservation_id, start_time=datetime(2024, 6, 3, 18, 0), now=NOW
    )

    assert store.rows[reservation_id]["start_time"] == datetime(2024, 6, 3, 18, 0)
    await store.create(5, datetime(2024, 6, 1, 13, 0))


@pytest.mark.asyncio
async def test_update_to_missing_location_is_not_found(monkeypatch):
    store = _InMemoryStore(places=5)
    store.install(monkeypatch)
    reservation_id = await store.create(2, datetime(2024, 6, 1, 12, 0))

    with pytest.raises(NotFoundError):
        await reservation_service.update_reservation(None, reservation_id, address_id=uuid4(), now=NOW)

    assert store.rows[reservation_id]["location_address_id"] == store.address_id


@pytest.mark.asyncio
async def test_started_reservation_can_be_updated_against_pending_seats_only(monkeypatch):
    store = _InMemoryStore(places=6)
    store.install(monkeypatch)
    started_id = await store.create(2, datetime(2024, 6, 1, 12, 0))
    store.rows[started_id]["is_started"] = True
    await store.create(6, datetime(2024, 6, 1, 13, 0))

    with pytest.raises(AdmissionRejected) as excinfo:
        await reservation_service.update_reservation(None, started_id, places=1, now=NOW)
    assert excinfo.value.detail == MSG_NO_FREE_PLACES

    pending_id = next(rid for rid in store.rows if rid != started_id)
    store.rows[pending_id]["places"] = 4

    updated = await reservation_service.update_reservation(None, started_id, places=2, name="Walk-in", now=NOW)

    assert updated is True
    assert store.rows[started_id]["is_started"] is True
    assert store.rows[started_id]["name"] == "Walk-in"


@pytest.mark.asyncio
async def test_capacity_adjustment_respects_reserved_seats(monkeypatch):
    store = _InMemoryStore(places=10)
    store.install(monkeypatch)
    await store.create(10, datetime(2024, 6, 1, 12, 0))
    await store.create(3, datetime(2024, 6, 2, 12, 0))
    seen = {}

    async def max_daily_active_places(session, restaurant_id, address_id, since):
        seen["since"] = since
        totals: dict = {}
        for row in store.rows.values():
            if row["start_time"] >= since and not row["is_started"] and not row["is_finished"]:
                day = row["start_time"].date()
                totals[day] = totals.get(day, 0) + row["places"]
        return max(totals.values(), default=0)

    async def adjust_places(session, restaurant_id, address_id, delta):
        store.location_places += delta
        return store.location_places

    store.location_places = 10
    monkeypatch.setattr(reservation_repo, "max_daily_active_places", max_daily_active_places)
    monkeypatch.setattr(location_repo, "adjust_places", adjust_places)

    with pytest.raises(AdmissionRejected):
        await location_service.adjust_places(
            None, store.restaurant_id, store.address_id, -6, now=datetime(2024, 5, 31, 18, 30)
        )
    assert seen["since"] == datetime(2024, 5, 31, 0, 0)

    with pytest.raises(ValidationError):
        await location_service.adjust_places(
            None, store.restaurant_id, store.address_id, -11, now=datetime(2024, 5, 31, 18, 30)
        )

    # Once the busy day is past, only later days bound the capacity.
    places = await location_service.adjust_places(
        None, store.restaurant_id, store.address_id, -6, now=datetime(2024, 6, 2, 9, 0)
    )
    assert places == 4


def test_error_classes_carry_http_status():
    assert ValidationError("bad").status_code == 422
    assert NotFoundError("missing").status_code == 404
    assert AdmissionRejected("full").status_code == 409

"""
Reservation admission and lifecycle transitions.

Free capacity is computed on demand: a location's `places` is its total
capacity, and the seats still free on a date are that total minus the seats
held by pending (not started, not finished) reservations starting that day.
Admission locks the location row first so concurrent admissions for the same
location run one after another and each sees the previous one's insert.
"""
import logging
from datetime import date, datetime, time
from uuid import UUID

from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.app.core.errors import AdmissionRejected, NotFoundError, ValidationError
from tablebook.app.repositories import locations as location_repo
from tablebook.app.repositories import reservations as reservation_repo

logger = logging.getLogger(__name__)

MSG_NO_WORKING_HOURS = "Location has no working hours"
MSG_OUTSIDE_HOURS = "Reservation in wrong restaurant location work time"
MSG_CAPACITY = "Location restaurant capacity not enough for reservation"
MSG_NO_FREE_PLACES = "Location restaurant places not enough for reservation"


def check_admission(
    *,
    open_at: time | None,
    close_at: time | None,
    capacity: int,
    start_time: datetime,
    places: int,
    date_reserved_places: int,
) -> None:
    """Raise AdmissionRejected unless a party of `places` fits at `start_time`."""
    if open_at is None or close_at is None:
        raise AdmissionRejected(MSG_NO_WORKING_HOURS)

    start_of_day = start_time.time()
    if not (open_at < start_of_day < close_at):
        raise AdmissionRejected(MSG_OUTSIDE_HOURS)

    if capacity < places:
        raise AdmissionRejected(MSG_CAPACITY)

    if capacity - date_reserved_places < places:
        raise AdmissionRejected(MSG_NO_FREE_PLACES)


def _require_places(places: int | None) -> int:
    if places is None or places <= 0:
        raise ValidationError("Reservation places is wrong amount")
    return places


def _require_local(start_time: datetime) -> datetime:
    if start_time.tzinfo is not None and start_time.tzinfo.utcoffset(start_time) is not None:
        raise ValidationError("start_time must be a local time without offset")
    return start_time


async def _admit(
    session: AsyncSession,
    *,
    restaurant_id: UUID,
    address_id: UUID,
    start_time: datetime,
    places: int,
    exclude_id: UUID | None = None,
) -> None:
    location = await location_repo.get_by_key(session, restaurant_id, address_id, for_update=True)
    if location is None:
        raise NotFoundError("Location not found")

    date_reserved_places = await reservation_repo.sum_active_places(
        session,
        restaurant_id,
        address_id,
        start_time.date(),
        exclude_id=exclude_id,
    )

    try:
        check_admission(
            open_at=location["open"],
            close_at=location["close"],
            capacity=location["places"],
            start_time=start_time,
            places=places,
            date_reserved_places=date_reserved_places,
        )
    except AdmissionRejected as exc:
        logger.info(
            "Rejected %s places at %s/%s on %s: %s",
            places, restaurant_id, address_id, start_time.isoformat(), exc.detail,
        )
        raise


async def create_reservation(
    session: AsyncSession,
    *,
    restaurant_id: UUID | None,
    address_id: UUID | None,
    name: str | None,
    phone: str | None,
    places: int | None,
    start_time: datetime | None,
    now: datetime,
) -> UUID:
    """
    Admit and insert a new reservation. Must run inside a transaction.

    `now` is only recorded in the log: start times in the past are admitted
    and left to the sweeper.
    """
    if restaurant_id is None:
        raise ValidationError("Restaurant id is null")
    if address_id is None:
        raise ValidationError("Location address id is null")
    if not name:
        raise ValidationError("Name is null")
    if not phone:
        raise ValidationError("Phone is null")
    places = _require_places(places)
    if start_time is None:
        raise ValidationError("Start time is null")
    start_time = _require_local(start_time)

    await _admit(
        session,
        restaurant_id=restaurant_id,
        address_id=address_id,
        start_time=start_time,
        places=places,
    )
    reservation_id = await reservation_repo.insert(
        session,
        restaurant_id=restaurant_id,
        address_id=address_id,
        name=name,
        phone=phone,
        places=places,
        start_time=start_time,
    )
    logger.info("Admitted reservation %s (%s places, starts %s, requested at %s)",
                reservation_id, places, start_time.isoformat(), now.isoformat())
    return reservation_id


async def update_reservation(
    session: AsyncSession,
    reservation_id: UUID,
    *,
    restaurant_id: UUID | None = None,
    address_id: UUID | None = None,
    name: str | None = None,
    phone: str | None = None,
    places: int | None = None,
    start_time: datetime | None = None,
    now: datetime,
) -> bool:
    """
    Re-admit an unfinished reservation with the given fields changed; omitted
    fields keep their value. Started reservations may still be changed; only
    pending ones count towards capacity. `now` is only logged, as on create.
    """
    current = await reservation_repo.get_by_id(session, reservation_id, unfinished_only=True)
    if current is None:
        raise NotFoundError("Reservation not found")

    if places is not None:
        _require_places(places)
    if start_time is not None:
        _require_local(start_time)

    patch = {
        column: value
        for column, value in (
            ("location_restaurant_id", restaurant_id),
            ("location_address_id", address_id),
            ("name", name),
            ("phone", phone),
            ("places", places),
            ("start_time", start_time),
        )
        if value is not None
    }

    effective = {**current, **patch}
    await _admit(
        session,
        restaurant_id=effective["location_restaurant_id"],
        address_id=effective["location_address_id"],
        start_time=effective["start_time"],
        places=effective["places"],
        exclude_id=reservation_id,
    )
    updated = await reservation_repo.update(session, reservation_id, patch)
    if updated:
        logger.info("Updated reservation %s at %s", reservation_id, now.isoformat())
    return updated


async def get_reservation(session: AsyncSession, reservation_id: UUID) -> RowMapping:
    reservation = await reservation_repo.get_by_id(session, reservation_id)
    if reservation is None:
        raise NotFoundError("Reservation not found")
    return reservation


async def find_reservations_by_client(session: AsyncSession, name: str, phone: str) -> list[RowMapping]:
    return await reservation_repo.find_by_client(session, name, phone)


async def list_pending_for_day(
    session: AsyncSession,
    restaurant_id: UUID,
    address_id: UUID,
    day: date,
) -> list[RowMapping]:
    """Pending reservations at a location starting on `day`."""
    if await location_repo.get_by_key(session, restaurant_id, address_id) is None:
        raise NotFoundError("Location not found")
    return await reservation_repo.find_active_by_location_and_date(
        session, restaurant_id, address_id, day
    )


async def start_reservation(session: AsyncSession, reservation_id: UUID) -> bool:
    started = await reservation_repo.mark_started(session, reservation_id)
    if started:
        logger.info("Started reservation %s", reservation_id)
    return started


async def finish_reservation(session: AsyncSession, reservation_id: UUID, *, now: datetime) -> bool:
    finished = await reservation_repo.mark_finished(session, reservation_id, now)
    if finished:
        logger.info("Finished reservation %s", reservation_id)
    return finished

"""
Location management.

A location's `places` is its total capacity. Capacity never drops below the
seats already held by pending reservations on any day from today on, so every
change locks the location row the same way admission does before checking.
"""
import logging
from datetime import datetime, time
from uuid import UUID

from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.app.core.errors import AdmissionRejected, NotFoundError, ValidationError
from tablebook.app.repositories import locations as location_repo
from tablebook.app.repositories import reservations as reservation_repo

logger = logging.getLogger(__name__)

MSG_CAPACITY_BELOW_RESERVED = "Location places cannot drop below seats already reserved"


def _require_hours(open_at: time | None, close_at: time | None) -> None:
    if open_at is None or close_at is None:
        raise ValidationError("Open and close times are required")
    if open_at >= close_at:
        raise ValidationError("Open time must be before close time")


async def _require_capacity_floor(
    session: AsyncSession,
    restaurant_id: UUID,
    address_id: UUID,
    places: int,
    now: datetime,
) -> None:
    if places < 0:
        raise ValidationError("Location places cannot become negative")
    reserved = await reservation_repo.max_daily_active_places(
        session, restaurant_id, address_id, datetime.combine(now.date(), time.min)
    )
    if places < reserved:
        logger.info(
            "Refused capacity %d at %s/%s: %d seats reserved on one day",
            places, restaurant_id, address_id, reserved,
        )
        raise AdmissionRejected(MSG_CAPACITY_BELOW_RESERVED)


async def _lock_location(session: AsyncSession, restaurant_id: UUID, address_id: UUID) -> RowMapping:
    location = await location_repo.get_by_key(session, restaurant_id, address_id, for_update=True)
    if location is None:
        raise NotFoundError("Location not found")
    return location


async def list_locations(session: AsyncSession) -> list[RowMapping]:
    return await location_repo.list_all(session)


async def get_location(session: AsyncSession, restaurant_id: UUID, address_id: UUID) -> RowMapping:
    location = await location_repo.get_by_key(session, restaurant_id, address_id)
    if location is None:
        raise NotFoundError("Location not found")
    return location


async def create_location(
    session: AsyncSession,
    *,
    restaurant_id: UUID,
    city: str,
    street: str,
    house: str,
    apartment: str | None,
    places: int,
    open_at: time | None,
    close_at: time | None,
) -> UUID:
    """Create the address and the location on it; returns the new address id."""
    _require_hours(open_at, close_at)
    if places < 0:
        raise ValidationError("Location places must not be negative")
    if not await location_repo.restaurant_exists(session, restaurant_id):
        raise NotFoundError("Restaurant not found")

    address_id = await location_repo.insert_address(
        session, city=city, street=street, house=house, apartment=apartment
    )
    await location_repo.insert(
        session,
        restaurant_id=restaurant_id,
        address_id=address_id,
        places=places,
        open_at=open_at,
        close_at=close_at,
    )
    logger.info("Created location %s/%s with %d places", restaurant_id, address_id, places)
    return address_id


async def update_location(
    session: AsyncSession,
    restaurant_id: UUID,
    address_id: UUID,
    *,
    places: int | None = None,
    open_at: time | None = None,
    close_at: time | None = None,
    address: dict | None = None,
    now: datetime,
) -> RowMapping:
    """
    Change capacity, hours or the address of a location; omitted fields keep
    their value. New hours apply to later admissions only. The address row is
    edited in place so the location keeps its key.
    """
    location = await _lock_location(session, restaurant_id, address_id)

    new_open = open_at if open_at is not None else location["open"]
    new_close = close_at if close_at is not None else location["close"]
    if open_at is not None or close_at is not None:
        _require_hours(new_open, new_close)

    new_places = places if places is not None else location["places"]
    if places is not None:
        await _require_capacity_floor(session, restaurant_id, address_id, new_places, now)

    await location_repo.update(
        session,
        restaurant_id,
        address_id,
        places=new_places,
        open_at=new_open,
        close_at=new_close,
    )
    if address is not None:
        await location_repo.update_address(session, address_id, **address)

    logger.info("Updated location %s/%s", restaurant_id, address_id)
    return await location_repo.get_by_key(session, restaurant_id, address_id)


async def delete_location(session: AsyncSession, restaurant_id: UUID, address_id: UUID) -> None:
    """Delete a location together with its reservations and its address."""
    if not await location_repo.delete(session, restaurant_id, address_id):
        raise NotFoundError("Location not found")
    await location_repo.delete_address(session, address_id)
    logger.info("Deleted location %s/%s", restaurant_id, address_id)


async def adjust_places(
    session: AsyncSession,
    restaurant_id: UUID,
    address_id: UUID,
    delta: int,
    *,
    now: datetime,
) -> int:
    """Change a location's total capacity by `delta` and return the new value."""
    location = await _lock_location(session, restaurant_id, address_id)
    await _require_capacity_floor(session, restaurant_id, address_id, location["places"] + delta, now)

    places = await location_repo.adjust_places(session, restaurant_id, address_id, delta)
    if places is None:
        raise ValidationError("Location places cannot become negative")
    logger.info("Adjusted location %s/%s capacity by %+d to %d", restaurant_id, address_id, delta, places)
    return places

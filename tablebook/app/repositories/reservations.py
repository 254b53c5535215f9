from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession


_RESERVATION_COLUMNS = (
    "id, location_restaurant_id, location_address_id, name, phone, places, "
    "start_time, end_time, is_started, is_finished"
)

# Columns an update may touch; status columns are changed only by start/finish/sweep.
_PATCHABLE = ("location_restaurant_id", "location_address_id", "name", "phone", "places", "start_time")


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


async def insert(
    session: AsyncSession,
    *,
    restaurant_id: UUID,
    address_id: UUID,
    name: str,
    phone: str,
    places: int,
    start_time: datetime,
) -> UUID:
    """Insert a pending reservation and return its id."""
    result = await session.execute(
        text(
            """
            INSERT INTO reservation (
              location_restaurant_id, location_address_id, name, phone, places,
              start_time, end_time, is_started, is_finished
            ) VALUES (
              :restaurant_id, :address_id, :name, :phone, :places,
              :start_time, NULL, false, false
            )
            RETURNING id
            """
        ),
        {
            "restaurant_id": restaurant_id,
            "address_id": address_id,
            "name": name,
            "phone": phone,
            "places": places,
            "start_time": start_time,
        },
    )
    return result.scalar_one()


async def get_by_id(
    session: AsyncSession,
    reservation_id: UUID,
    *,
    unfinished_only: bool = False,
) -> RowMapping | None:
    query = f"SELECT {_RESERVATION_COLUMNS} FROM reservation WHERE id = :id"
    if unfinished_only:
        query += " AND is_finished = false"
    result = await session.execute(text(query), {"id": reservation_id})
    return result.mappings().one_or_none()


async def find_by_client(session: AsyncSession, name: str, phone: str) -> list[RowMapping]:
    result = await session.execute(
        text(
            f"""
            SELECT {_RESERVATION_COLUMNS}
            FROM reservation
            WHERE name = :name
              AND phone = :phone
            ORDER BY start_time
            """
        ),
        {"name": name, "phone": phone},
    )
    return list(result.mappings().all())


async def find_active_by_location_and_date(
    session: AsyncSession,
    restaurant_id: UUID,
    address_id: UUID,
    day: date,
    exclude_id: UUID | None = None,
) -> list[RowMapping]:
    """Pending reservations at a location whose start falls on `day`."""
    day_start, day_end = _day_bounds(day)
    result = await session.execute(
        text(
            f"""
            SELECT {_RESERVATION_COLUMNS}
            FROM reservation
            WHERE location_restaurant_id = :restaurant_id
              AND location_address_id = :address_id
              AND start_time >= :day_start
              AND start_time < :day_end
              AND is_started = false
              AND is_finished = false
              AND (CAST(:exclude_id AS uuid) IS NULL OR id <> :exclude_id)
            ORDER BY start_time
            """
        ),
        {
            "restaurant_id": restaurant_id,
            "address_id": address_id,
            "day_start": day_start,
            "day_end": day_end,
            "exclude_id": exclude_id,
        },
    )
    return list(result.mappings().all())


async def sum_active_places(
    session: AsyncSession,
    restaurant_id: UUID,
    address_id: UUID,
    day: date,
    exclude_id: UUID | None = None,
) -> int:
    """Seats held by pending reservations at a location on `day`."""
    day_start, day_end = _day_bounds(day)
    result = await session.execute(
        text(
            """
            SELECT COALESCE(SUM(places), 0) AS reserved
            FROM reservation
            WHERE location_restaurant_id = :restaurant_id
              AND location_address_id = :address_id
              AND start_time >= :day_start
              AND start_time < :day_end
              AND is_started = false
              AND is_finished = false
              AND (CAST(:exclude_id AS uuid) IS NULL OR id <> :exclude_id)
            """
        ),
        {
            "restaurant_id": restaurant_id,
            "address_id": address_id,
            "day_start": day_start,
            "day_end": day_end,
            "exclude_id": exclude_id,
        },
    )
    return int(result.scalar_one())


async def update(session: AsyncSession, reservation_id: UUID, patch: dict[str, Any]) -> bool:
    """Apply `patch` to an unfinished reservation. Returns False when no row matched."""
    unknown = set(patch) - set(_PATCHABLE)
    if unknown:
        raise ValueError(f"Cannot patch reservation columns: {sorted(unknown)}")
    if not patch:
        return await get_by_id(session, reservation_id, unfinished_only=True) is not None

    assignments = ", ".join(f"{column} = :{column}" for column in patch)
    result = await session.execute(
        text(
            f"""
            UPDATE reservation
            SET {assignments}
            WHERE id = :id
              AND is_finished = false
            """
        ),
        {**patch, "id": reservation_id},
    )
    return result.rowcount > 0


async def mark_started(session: AsyncSession, reservation_id: UUID) -> bool:
    result = await session.execute(
        text(
            """
            UPDATE reservation
            SET is_started = true
            WHERE id = :id
              AND is_started = false
              AND is_finished = false
            """
        ),
        {"id": reservation_id},
    )
    return result.rowcount > 0


async def mark_finished(session: AsyncSession, reservation_id: UUID, now: datetime) -> bool:
    result = await session.execute(
        text(
            """
            UPDATE reservation
            SET is_finished = true,
                end_time = :now
            WHERE id = :id
              AND is_finished = false
            """
        ),
        {"id": reservation_id, "now": now},
    )
    return result.rowcount > 0


async def finish_overdue(session: AsyncSession, cutoff: datetime, now: datetime) -> list[UUID]:
    """Finalize every pending reservation that started before `cutoff` in one statement."""
    result = await session.execute(
        text(
            """
            UPDATE reservation
            SET is_finished = true,
                end_time = :now
            WHERE is_finished = false
              AND is_started = false
              AND start_time < :cutoff
            RETURNING id
            """
        ),
        {"cutoff": cutoff, "now": now},
    )
    return list(result.scalars().all())


async def max_daily_active_places(
    session: AsyncSession,
    restaurant_id: UUID,
    address_id: UUID,
    since: datetime,
) -> int:
    """Largest per-day sum of pending seats at a location among days starting at `since`."""
    result = await session.execute(
        text(
            """
            SELECT COALESCE(MAX(day_places), 0)
            FROM (
              SELECT SUM(places) AS day_places
              FROM reservation
              WHERE location_restaurant_id = :restaurant_id
                AND location_address_id = :address_id
                AND start_time >= :since
                AND is_started = false
                AND is_finished = false
              GROUP BY CAST(start_time AS date)
            ) AS per_day
            """
        ),
        {"restaurant_id": restaurant_id, "address_id": address_id, "since": since},
    )
    return int(result.scalar_one())

from datetime import time
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession


_LOCATION_COLUMNS = "restaurant_id, address_id, places, open, close"


async def get_by_key(
    session: AsyncSession,
    restaurant_id: UUID,
    address_id: UUID,
    *,
    for_update: bool = False,
) -> RowMapping | None:
    """Fetch one location; `for_update` holds a row lock until the transaction ends."""
    query = f"""
        SELECT {_LOCATION_COLUMNS}
        FROM location
        WHERE restaurant_id = :restaurant_id
          AND address_id = :address_id
    """
    if for_update:
        query += " FOR UPDATE"

    result = await session.execute(
        text(query),
        {"restaurant_id": restaurant_id, "address_id": address_id},
    )
    return result.mappings().one_or_none()


async def list_all(session: AsyncSession) -> list[RowMapping]:
    result = await session.execute(
        text(
            f"""
            SELECT {_LOCATION_COLUMNS}
            FROM location
            ORDER BY restaurant_id, address_id
            """
        )
    )
    return list(result.mappings().all())


async def insert(
    session: AsyncSession,
    *,
    restaurant_id: UUID,
    address_id: UUID,
    places: int,
    open_at: time,
    close_at: time,
) -> None:
    await session.execute(
        text(
            """
            INSERT INTO location (restaurant_id, address_id, places, open, close)
            VALUES (:restaurant_id, :address_id, :places, :open, :close)
            """
        ),
        {
            "restaurant_id": restaurant_id,
            "address_id": address_id,
            "places": places,
            "open": open_at,
            "close": close_at,
        },
    )


async def adjust_places(
    session: AsyncSession,
    restaurant_id: UUID,
    address_id: UUID,
    delta: int,
) -> int | None:
    """Atomically add `delta` to the capacity; None when the result would be negative or the row is missing."""
    result = await session.execute(
        text(
            """
            UPDATE location
            SET places = places + :delta
            WHERE restaurant_id = :restaurant_id
              AND address_id = :address_id
              AND places + :delta >= 0
            RETURNING places
            """
        ),
        {"restaurant_id": restaurant_id, "address_id": address_id, "delta": delta},
    )
    return result.scalar_one_or_none()


async def restaurant_exists(session: AsyncSession, restaurant_id: UUID) -> bool:
    result = await session.execute(
        text("SELECT 1 FROM restaurant WHERE id = :id"),
        {"id": restaurant_id},
    )
    return result.first() is not None


async def insert_address(
    session: AsyncSession,
    *,
    city: str,
    street: str,
    house: str,
    apartment: str | None,
) -> UUID:
    result = await session.execute(
        text(
            """
            INSERT INTO address (city, street, house, apartment)
            VALUES (:city, :street, :house, :apartment)
            RETURNING id
            """
        ),
        {"city": city, "street": street, "house": house, "apartment": apartment},
    )
    return result.scalar_one()


async def update(
    session: AsyncSession,
    restaurant_id: UUID,
    address_id: UUID,
    *,
    places: int,
    open_at: time | None,
    close_at: time | None,
) -> bool:
    result = await session.execute(
        text(
            """
            UPDATE location
            SET places = :places,
                open = :open,
                close = :close
            WHERE restaurant_id = :restaurant_id
              AND address_id = :address_id
            """
        ),
        {
            "restaurant_id": restaurant_id,
            "address_id": address_id,
            "places": places,
            "open": open_at,
            "close": close_at,
        },
    )
    return result.rowcount > 0


async def delete(session: AsyncSession, restaurant_id: UUID, address_id: UUID) -> bool:
    """Remove a location; its reservations go with it through the cascading key."""
    result = await session.execute(
        text(
            """
            DELETE FROM location
            WHERE restaurant_id = :restaurant_id
              AND address_id = :address_id
            """
        ),
        {"restaurant_id": restaurant_id, "address_id": address_id},
    )
    return result.rowcount > 0


async def update_address(
    session: AsyncSession,
    address_id: UUID,
    *,
    city: str,
    street: str,
    house: str,
    apartment: str | None,
) -> None:
    await session.execute(
        text(
            """
            UPDATE address
            SET city = :city,
                street = :street,
                house = :house,
                apartment = :apartment
            WHERE id = :id
            """
        ),
        {"id": address_id, "city": city, "street": street, "house": house, "apartment": apartment},
    )


async def delete_address(session: AsyncSession, address_id: UUID) -> None:
    """Drop the address unless another location still sits on it."""
    await session.execute(
        text(
            """
            DELETE FROM address
            WHERE id = :id
              AND NOT EXISTS (SELECT 1 FROM location WHERE address_id = :id)
            """
        ),
        {"id": address_id},
    )

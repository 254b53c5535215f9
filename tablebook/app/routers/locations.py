from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.app.core.errors import store_errors
from tablebook.app.db.session import get_session
from tablebook.app.routers.schemas import (
    AdjustPlacesIn,
    AdjustPlacesOut,
    LocationCreateIn,
    LocationCreateOut,
    LocationOut,
    LocationUpdateIn,
)
from tablebook.app.services import locations as location_service


router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("", response_model=list[LocationOut])
async def list_endpoint(session: AsyncSession = Depends(get_session)) -> list[LocationOut]:
    async with store_errors():
        rows = await location_service.list_locations(session)
    return [LocationOut.model_validate(dict(row)) for row in rows]


@router.get("/by-id", response_model=LocationOut)
async def by_id_endpoint(
    restaurant_id: UUID,
    address_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> LocationOut:
    async with store_errors():
        location = await location_service.get_location(session, restaurant_id, address_id)
    return LocationOut.model_validate(dict(location))


@router.post("/create", response_model=LocationCreateOut, status_code=status.HTTP_201_CREATED)
async def create_endpoint(
    payload: LocationCreateIn,
    session: AsyncSession = Depends(get_session),
) -> LocationCreateOut:
    async with store_errors(), session.begin():
        address_id = await location_service.create_location(
            session,
            restaurant_id=payload.restaurant_id,
            city=payload.address.city,
            street=payload.address.street,
            house=payload.address.house,
            apartment=payload.address.apartment,
            places=payload.places,
            open_at=payload.open,
            close_at=payload.close,
        )
    return LocationCreateOut(restaurant_id=payload.restaurant_id, address_id=address_id)


@router.put("/adjust-places", response_model=AdjustPlacesOut)
async def adjust_places_endpoint(
    restaurant_id: UUID,
    address_id: UUID,
    payload: AdjustPlacesIn,
    session: AsyncSession = Depends(get_session),
) -> AdjustPlacesOut:
    async with store_errors(), session.begin():
        places = await location_service.adjust_places(
            session, restaurant_id, address_id, payload.delta, now=datetime.now()
        )
    return AdjustPlacesOut(places=places)


@router.put("/update", response_model=LocationOut)
async def update_endpoint(
    restaurant_id: UUID,
    address_id: UUID,
    payload: LocationUpdateIn,
    session: AsyncSession = Depends(get_session),
) -> LocationOut:
    async with store_errors(), session.begin():
        location = await location_service.update_location(
            session,
            restaurant_id,
            address_id,
            places=payload.places,
            open_at=payload.open,
            close_at=payload.close,
            address=payload.address.model_dump() if payload.address else None,
            now=datetime.now(),
        )
    return LocationOut.model_validate(dict(location))


@router.delete("/delete")
async def delete_endpoint(
    restaurant_id: UUID,
    address_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    async with store_errors(), session.begin():
        await location_service.delete_location(session, restaurant_id, address_id)
    return {"deleted": True}

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.app.core.errors import store_errors
from tablebook.app.db.session import get_session
from tablebook.app.routers.schemas import (
    ReservationCreateIn,
    ReservationCreateOut,
    ReservationOut,
    ReservationUpdateIn,
)
from tablebook.app.services import reservations as reservation_service


router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post("/create", response_model=ReservationCreateOut, status_code=status.HTTP_201_CREATED)
async def create_endpoint(
    payload: ReservationCreateIn,
    session: AsyncSession = Depends(get_session),
) -> ReservationCreateOut:
    async with store_errors(), session.begin():
        reservation_id = await reservation_service.create_reservation(
            session,
            restaurant_id=payload.restaurant_id,
            address_id=payload.address_id,
            name=payload.name,
            phone=payload.phone,
            places=payload.places,
            start_time=payload.start_time,
            now=datetime.now(),
        )
    return ReservationCreateOut(id=reservation_id)


@router.get("/by-id", response_model=ReservationOut)
async def by_id_endpoint(
    reservation_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> ReservationOut:
    async with store_errors():
        reservation = await reservation_service.get_reservation(session, reservation_id)
    return ReservationOut.model_validate(dict(reservation))


@router.get("/by-client", response_model=list[ReservationOut])
async def by_client_endpoint(
    name: str,
    phone: str,
    session: AsyncSession = Depends(get_session),
) -> list[ReservationOut]:
    async with store_errors():
        rows = await reservation_service.find_reservations_by_client(session, name, phone)
    return [ReservationOut.model_validate(dict(row)) for row in rows]


@router.get("/by-location", response_model=list[ReservationOut])
async def by_location_endpoint(
    restaurant_id: UUID,
    address_id: UUID,
    day: date,
    session: AsyncSession = Depends(get_session),
) -> list[ReservationOut]:
    """Pending reservations at a location for one day."""
    async with store_errors():
        rows = await reservation_service.list_pending_for_day(session, restaurant_id, address_id, day)
    return [ReservationOut.model_validate(dict(row)) for row in rows]


@router.put("/update", status_code=status.HTTP_200_OK)
async def update_endpoint(
    reservation_id: UUID,
    payload: ReservationUpdateIn,
    session: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    async with store_errors(), session.begin():
        updated = await reservation_service.update_reservation(
            session,
            reservation_id,
            restaurant_id=payload.restaurant_id,
            address_id=payload.address_id,
            name=payload.name,
            phone=payload.phone,
            places=payload.places,
            start_time=payload.start_time,
            now=datetime.now(),
        )
    if not updated:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    return {"updated": True}


@router.put("/start")
async def start_endpoint(
    reservation_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    async with store_errors(), session.begin():
        started = await reservation_service.start_reservation(session, reservation_id)
    if not started:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    return {"started": True}


@router.put("/finish")
async def finish_endpoint(
    reservation_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    async with store_errors(), session.begin():
        finished = await reservation_service.finish_reservation(session, reservation_id, now=datetime.now())
    if not finished:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    return {"finished": True}

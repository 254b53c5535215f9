from datetime import datetime, time
from uuid import UUID

from pydantic import BaseModel, Field


class ReservationCreateIn(BaseModel):
    restaurant_id: UUID
    address_id: UUID
    name: str = Field(min_length=1, max_length=255)
    phone: str = Field(min_length=1, max_length=32)
    places: int = Field(gt=0)
    # Local wall-clock time without offset, e.g. "2024-06-01T12:00:00"
    start_time: datetime


class ReservationCreateOut(BaseModel):
    id: UUID


class ReservationUpdateIn(BaseModel):
    restaurant_id: UUID | None = None
    address_id: UUID | None = None
    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, min_length=1, max_length=32)
    places: int | None = Field(default=None, gt=0)
    start_time: datetime | None = None


class ReservationOut(BaseModel):
    id: UUID
    restaurant_id: UUID = Field(validation_alias="location_restaurant_id")
    address_id: UUID = Field(validation_alias="location_address_id")
    name: str
    phone: str
    places: int
    start_time: datetime
    end_time: datetime | None
    is_started: bool
    is_finished: bool


class AddressIn(BaseModel):
    city: str = Field(min_length=1, max_length=255)
    street: str = Field(min_length=1, max_length=255)
    house: str = Field(min_length=1, max_length=255)
    apartment: str | None = Field(default=None, max_length=255)


class LocationCreateIn(BaseModel):
    restaurant_id: UUID
    address: AddressIn
    places: int = Field(ge=0)
    open: time
    close: time


class LocationCreateOut(BaseModel):
    restaurant_id: UUID
    address_id: UUID


class LocationOut(BaseModel):
    restaurant_id: UUID
    address_id: UUID
    places: int
    open: time | None
    close: time | None


class AdjustPlacesIn(BaseModel):
    delta: int


class AdjustPlacesOut(BaseModel):
    places: int


class LocationUpdateIn(BaseModel):
    address: AddressIn | None = None
    places: int | None = Field(default=None, ge=0)
    open: time | None = None
    close: time | None = None

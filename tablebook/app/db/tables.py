"""
Table definitions. Queries are written as raw SQL in the repositories; this
metadata is what migrations and the test suite create the schema from.
"""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Time,
    Uuid,
    text,
)

metadata = MetaData()

restaurant = Table(
    "restaurant",
    metadata,
    Column("id", Uuid, primary_key=True, server_default=text("gen_random_uuid()")),
    Column("name", String(255), nullable=False, unique=True),
    Column("description", Text, nullable=True),
)

address = Table(
    "address",
    metadata,
    Column("id", Uuid, primary_key=True, server_default=text("gen_random_uuid()")),
    Column("city", String(255), nullable=False),
    Column("street", String(255), nullable=False),
    Column("house", String(255), nullable=False),
    Column("apartment", String(255), nullable=True),
)

# `places` is the total seating capacity; free capacity is derived per date.
location = Table(
    "location",
    metadata,
    Column(
        "restaurant_id",
        Uuid,
        ForeignKey("restaurant.id", ondelete="CASCADE", onupdate="CASCADE"),
        primary_key=True,
    ),
    Column(
        "address_id",
        Uuid,
        ForeignKey("address.id", ondelete="CASCADE", onupdate="CASCADE"),
        primary_key=True,
    ),
    Column("places", Integer, nullable=False, server_default="0"),
    Column("open", Time, nullable=True),
    Column("close", Time, nullable=True),
    CheckConstraint("places >= 0", name="ck_location_places_non_negative"),
)

reservation = Table(
    "reservation",
    metadata,
    Column("id", Uuid, primary_key=True, server_default=text("gen_random_uuid()")),
    Column("location_restaurant_id", Uuid, nullable=False),
    Column("location_address_id", Uuid, nullable=False),
    Column("name", String(255), nullable=False),
    Column("phone", String(32), nullable=False),
    Column("places", Integer, nullable=False),
    # Local wall-clock time, no offset
    Column("start_time", DateTime(timezone=False), nullable=False),
    Column("end_time", DateTime(timezone=False), nullable=True),
    Column("is_started", Boolean, nullable=False, server_default="false"),
    Column("is_finished", Boolean, nullable=False, server_default="false"),
    ForeignKeyConstraint(
        ["location_restaurant_id", "location_address_id"],
        ["location.restaurant_id", "location.address_id"],
        ondelete="CASCADE",
        onupdate="CASCADE",
    ),
    CheckConstraint("places > 0", name="ck_reservation_places_positive"),
    Index("ix_reservation_location_start", "location_restaurant_id", "location_address_id", "start_time"),
)

ALL_TABLE_NAMES = ("restaurant", "address", "location", "reservation")

"""m1 locations and reservations

Revision ID: 3c1f0a9d2b7e
Revises:
Create Date: 2026-10-18 10:12:04.551093

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f0a9d2b7e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    op.create_table(
        "restaurant",
        sa.Column("id", sa.Uuid(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
    )
    op.create_table(
        "address",
        sa.Column("id", sa.Uuid(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("city", sa.String(255), nullable=False),
        sa.Column("street", sa.String(255), nullable=False),
        sa.Column("house", sa.String(255), nullable=False),
        sa.Column("apartment", sa.String(255), nullable=True),
    )
    op.create_table(
        "location",
        sa.Column(
            "restaurant_id",
            sa.Uuid(),
            sa.ForeignKey("restaurant.id", ondelete="CASCADE", onupdate="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "address_id",
            sa.Uuid(),
            sa.ForeignKey("address.id", ondelete="CASCADE", onupdate="CASCADE"),
            primary_key=True,
        ),
        sa.Column("places", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("open", sa.Time(), nullable=True),
        sa.Column("close", sa.Time(), nullable=True),
        sa.CheckConstraint("places >= 0", name="ck_location_places_non_negative"),
    )
    op.create_table(
        "reservation",
        sa.Column("id", sa.Uuid(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("location_restaurant_id", sa.Uuid(), nullable=False),
        sa.Column("location_address_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("places", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=False), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=False), nullable=True),
        sa.Column("is_started", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_finished", sa.Boolean(), nullable=False, server_default="false"),
        sa.ForeignKeyConstraint(
            ["location_restaurant_id", "location_address_id"],
            ["location.restaurant_id", "location.address_id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
        ),
        sa.CheckConstraint("places > 0", name="ck_reservation_places_positive"),
    )
    op.create_index(
        "ix_reservation_location_start",
        "reservation",
        ["location_restaurant_id", "location_address_id", "start_time"],
    )


def downgrade() -> None:
    op.drop_index("ix_reservation_location_start", table_name="reservation")
    op.drop_table("reservation", schema="public")
    op.drop_table("location", schema="public")
    op.drop_table("address", schema="public")
    op.drop_table("restaurant", schema="public")

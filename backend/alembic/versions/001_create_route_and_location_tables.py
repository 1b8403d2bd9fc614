"""Create Route and Location tables

Revision ID: 001
Revises: None
Create Date: 2025-02-03 00:00:00.000000+00:00

What:  Creates the "Route" and "Location" tables and their lookup indexes.
How:   Table and column names keep the quoted camelCase names the admin UI's
       SQL has always used ("routeId", "powerMode", "createdAt", ...).
       Route.id is BIGSERIAL and Location."routeId" BIGINT so route ids never
       overflow a 32-bit column.

Rollback: downgrade() drops both tables (destructive — all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "Route",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("route", sa.Text(), nullable=False),
        sa.Column("shift", sa.Text(), nullable=False),
        sa.Column("warehouse", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "createdAt",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updatedAt",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    )
    op.create_index("idx_route_name", "Route", ["route"])

    op.create_table(
        "Location",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "routeId",
            sa.BigInteger(),
            sa.ForeignKey("Route.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("code", sa.Text(), nullable=True),
        sa.Column("no", sa.Integer(), nullable=True),
        sa.Column("delivery", sa.Text(), nullable=True),
        # One of: Daily, Weekday, Alt 1, Alt 2 (validated by the API, not the DB)
        sa.Column("powerMode", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(precision=53), nullable=True),
        sa.Column("longitude", sa.Float(precision=53), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "images",
            postgresql.ARRAY(sa.Text()),
            server_default=sa.text("'{}'"),
            nullable=True,
        ),
        sa.Column("websiteLink", sa.Text(), nullable=True),
        sa.Column("qrCodeImageUrl", sa.Text(), nullable=True),
        sa.Column("qrCodeDestinationUrl", sa.Text(), nullable=True),
        sa.Column(
            "createdAt",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updatedAt",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    )
    op.create_index("idx_location_routeId", "Location", ["routeId"])
    op.create_index("idx_location_name", "Location", ["location"])


def downgrade() -> None:
    op.drop_index("idx_location_name", table_name="Location")
    op.drop_index("idx_location_routeId", table_name="Location")
    op.drop_table("Location")
    op.drop_index("idx_route_name", table_name="Route")
    op.drop_table("Route")

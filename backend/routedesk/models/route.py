"""
RouteDesk Backend — Route SQLAlchemy Model
============================================

What:  ORM model representing the `"Route"` table in PostgreSQL.
Who:   Used by RouteService for CRUD operations and by Alembic for schema management.

Table Design Rationale:
    - Table and column names keep the quoted camelCase spelling of the earlier
      schema ("Route", "createdAt"). The timestamps differ: they are
      TIMESTAMPTZ here (migration 001) and are written as aware UTC values.
      A database whose timestamp columns are plain TIMESTAMP has to be
      converted before this model can write to it.
    - BIGSERIAL primary key: ids are handed to the admin UI and must stay stable.
    - route/shift/warehouse are NOT NULL; emptiness after trimming is checked in
      RouteService because the database cannot express it.
    - Locations cascade on delete at both the ORM and the FK level.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import BigInteger, DateTime, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from routedesk.database import Base

if TYPE_CHECKING:
    from routedesk.models.location import Location

# SQLite only autoincrements INTEGER PRIMARY KEY columns (used by the test suite)
BigIntId = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Route(Base):
    """
    A delivery route: a named shift run out of one warehouse.

    Query Patterns:
        - List routes: ORDER BY "createdAt" DESC
        - Get route + its locations: PK lookup, then Location by "routeId"
    """

    __tablename__ = "Route"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)

    # Display name; the column keeps its historical name `route`
    name: Mapped[str] = mapped_column("route", Text, nullable=False)

    shift: Mapped[str] = mapped_column(Text, nullable=False)
    warehouse: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt",
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    locations: Mapped[List["Location"]] = relationship(
        back_populates="route",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_route_name", "route"),
    )

    def __repr__(self) -> str:
        return f"<Route(id={self.id}, name='{self.name}', shift='{self.shift}')>"

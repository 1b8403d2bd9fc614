"""
RouteDesk Backend — Location SQLAlchemy Model
===============================================

What:  ORM model representing the `"Location"` table (a delivery stop on a route).
Who:   Used by LocationService and RouteService (cascade delete, route detail).

Column Notes:
    - routeId: BIGINT foreign key with ON DELETE CASCADE; always required.
    - no: Optional sequence number shown in the first table column.
    - powerMode: One of the schedule labels in routedesk.power (free text in the DB).
    - images: Ordered list of image URLs. Postgres stores TEXT[]; other dialects
      (SQLite in tests) fall back to JSON. The service always assigns a new list,
      so change tracking works for both types.
    - createdAt / updatedAt: TIMESTAMPTZ, written as aware UTC values (see Route).
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    text,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from routedesk.database import Base
from routedesk.models.route import utcnow

if TYPE_CHECKING:
    from routedesk.models.route import Route

ImageList = JSON().with_variant(postgresql.ARRAY(Text), "postgresql")


class Location(Base):
    """A single delivery location belonging to exactly one route."""

    __tablename__ = "Location"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    route_id: Mapped[int] = mapped_column(
        "routeId",
        BigInteger,
        ForeignKey("Route.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Display name; the column keeps its historical name `location`
    name: Mapped[str] = mapped_column("location", Text, nullable=False)

    code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sequence: Mapped[Optional[int]] = mapped_column("no", Integer, nullable=True)
    delivery: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    power_mode: Mapped[Optional[str]] = mapped_column("powerMode", Text, nullable=True)

    # ── Geography ─────────────────────────────────────────────────────────
    latitude: Mapped[Optional[float]] = mapped_column(Float(precision=53), nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float(precision=53), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Media & Links ─────────────────────────────────────────────────────
    images: Mapped[Optional[List[str]]] = mapped_column(ImageList, nullable=True, default=list)
    website_link: Mapped[Optional[str]] = mapped_column("websiteLink", Text, nullable=True)
    qr_code_image_url: Mapped[Optional[str]] = mapped_column("qrCodeImageUrl", Text, nullable=True)
    qr_code_destination_url: Mapped[Optional[str]] = mapped_column(
        "qrCodeDestinationUrl", Text, nullable=True
    )

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

    route: Mapped["Route"] = relationship(back_populates="locations")

    __table_args__ = (
        Index("idx_location_routeId", "routeId"),
        Index("idx_location_name", "location"),
    )

    def __repr__(self) -> str:
        return f"<Location(id={self.id}, route_id={self.route_id}, name='{self.name}')>"

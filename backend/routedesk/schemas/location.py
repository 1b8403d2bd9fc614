"""
RouteDesk Backend — Location Request/Response Schemas
=======================================================

Wire names follow the admin UI: the location's name travels as `location`
and its sequence number as `no`. The image list is only ever changed through
the dedicated add/remove image calls, so it is absent from the update models.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field, field_validator

from routedesk.power import POWER_MODES
from routedesk.schemas.common import BatchFailure, CamelModel


class LocationFields(CamelModel):
    """Mutable location fields shared by create and update bodies."""

    name: Optional[str] = Field(default=None, alias="location")
    code: Optional[str] = None
    sequence: Optional[int] = Field(default=None, alias="no")
    delivery: Optional[str] = None
    power_mode: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: Optional[str] = None
    address: Optional[str] = None
    website_link: Optional[str] = None
    qr_code_image_url: Optional[str] = None
    qr_code_destination_url: Optional[str] = None

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, v: Any) -> Any:
        # The table editor sends numeric-looking codes as numbers
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("sequence", "latitude", "longitude", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    @field_validator("power_mode")
    @classmethod
    def validate_power_mode(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in POWER_MODES:
            raise ValueError(f"Invalid powerMode '{v}'. Must be one of: {', '.join(POWER_MODES)}")
        return v


class LocationCreate(LocationFields):
    # Kept loose here; LocationService parses and range-checks it
    route_id: Optional[Any] = None


class LocationUpdate(LocationFields):
    pass


class LocationBatchItem(LocationUpdate):
    id: int


class LocationBatchUpdate(CamelModel):
    # Entries stay raw so LocationService can reject a malformed one on its own
    locations: List[Any]


class ImageRequest(CamelModel):
    image_url: str = Field(min_length=1)


class LocationResponse(CamelModel):
    id: int
    route_id: int
    name: str = Field(alias="location")
    code: Optional[str] = None
    sequence: Optional[int] = Field(default=None, alias="no")
    delivery: Optional[str] = None
    power_mode: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    address: Optional[str] = None
    website_link: Optional[str] = None
    qr_code_image_url: Optional[str] = None
    qr_code_destination_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("images", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class LocationBatchResult(CamelModel):
    updated: int
    failed: int
    locations: List[LocationResponse] = Field(default_factory=list)
    failures: List[BatchFailure] = Field(default_factory=list)

"""
Pydantic schemas for location API request/response validation.

Provides data validation and serialization for:
- Location creation requests
- Location update requests
- Location API responses

Design:
- GUIDs are exposed via guid property, never internal IDs
- Capacity must be positive when given
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator, field_serializer


# ============================================================================
# Request Schemas
# ============================================================================


class LocationCreate(BaseModel):
    """
    Schema for creating a new location.

    Required:
        name: Location display name

    Optional:
        address: Free-form address
        capacity: Number of attendees the venue holds
        is_active: Whether the venue can be assigned to new series

    Example:
        >>> create = LocationCreate(name="Studio A", capacity=40)
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Location display name",
    )
    address: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Free-form address",
    )
    capacity: Optional[int] = Field(
        default=None,
        ge=1,
        description="Number of attendees the venue holds",
    )
    is_active: bool = Field(
        default=True,
        description="Whether the venue can be assigned to new series",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject whitespace-only names."""
        if not v.strip():
            raise ValueError("Location name cannot be blank")
        return v.strip()


class LocationUpdate(BaseModel):
    """
    Schema for updating an existing location.

    All fields are optional - only provided fields will be updated.
    An empty address clears it.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)
    capacity: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None


# ============================================================================
# Response Schemas
# ============================================================================


class LocationResponse(BaseModel):
    """
    Schema for location API responses.

    Example:
        >>> response = LocationResponse(**service.build_location_response(location))
    """

    guid: str = Field(..., description="External identifier (loc_xxx)")
    name: str
    address: Optional[str]
    capacity: Optional[int]
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    @classmethod
    def serialize_datetime_utc(cls, v: datetime) -> str:
        """Serialize datetime as ISO 8601 with explicit UTC timezone (Z suffix)."""
        return v.isoformat() + "Z" if v else None

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "guid": "loc_01hgw2bbg0000000000000001",
                "name": "Studio A",
                "address": "12 Harbour Street",
                "capacity": 40,
                "is_active": True,
                "created_at": "2026-01-10T10:00:00Z",
                "updated_at": "2026-01-10T10:00:00Z",
            }
        },
    }


class LocationListResponse(BaseModel):
    """
    Schema for list of locations response.

    Fields:
        items: List of locations
        total: Total count
    """

    items: List[LocationResponse]
    total: int

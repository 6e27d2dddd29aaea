"""
Pydantic schemas for recurring series API request/response validation.

Provides data validation and serialization for:
- Series creation and scoped update requests
- Instance update requests
- Series, instance and mutation responses

Design:
- GUIDs are exposed, never internal IDs
- Occurrence times are wall-clock values and serialize without a timezone
- Rule text is validated by the service (InvalidRuleError -> 400)
"""

import enum
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator, field_serializer

from backend.src.schemas.location import LocationResponse


class UpdateScope(str, enum.Enum):
    """Scope for update/delete operations on a series."""
    THIS = "this"                        # Only the pivot occurrence
    THIS_AND_FUTURE = "this_and_future"  # The pivot occurrence and all later ones
    ALL = "all"                          # The whole series


# ============================================================================
# Request Schemas
# ============================================================================


class SeriesCreate(BaseModel):
    """
    Schema for creating a recurring series.

    Required:
        title: Series title
        start: Start of the first occurrence
        recurrence_rule: Rule text, e.g. FREQ=WEEKLY;BYDAY=MO,WE;COUNT=4

    Optional:
        end: End of the first occurrence (defaults to start)
        description: Series description
        location_guid: Default location

    Example:
        >>> create = SeriesCreate(
        ...     title="Daily Meeting",
        ...     start="2023-01-01T09:00:00",
        ...     end="2023-01-01T09:30:00",
        ...     recurrence_rule="FREQ=DAILY;COUNT=10",
        ... )
    """

    title: str = Field(..., min_length=1, max_length=255, description="Series title")
    description: Optional[str] = Field(default=None, description="Series description")
    start: datetime = Field(..., description="Start of the first occurrence")
    end: Optional[datetime] = Field(default=None, description="End of the first occurrence")
    recurrence_rule: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Recurrence rule (FREQ, INTERVAL, COUNT|UNTIL, BYDAY)",
    )
    location_guid: Optional[str] = Field(default=None, description="Default location GUID (loc_xxx)")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title cannot be blank")
        return v.strip()


class SeriesUpdate(BaseModel):
    """
    Schema for a scoped series update.

    Only provided fields are changed. `pivot_date` names the occurrence the
    change applies from and is required unless scope is "all".

    Example:
        >>> update = SeriesUpdate(
        ...     title="Evening Yoga",
        ...     scope=UpdateScope.THIS_AND_FUTURE,
        ...     pivot_date="2024-03-04",
        ... )
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    recurrence_rule: Optional[str] = Field(default=None, min_length=1, max_length=255)
    location_guid: Optional[str] = None
    scope: UpdateScope = Field(default=UpdateScope.ALL)
    pivot_date: Optional[date] = Field(
        default=None,
        description="Occurrence date the update applies from",
    )


class InstanceUpdate(BaseModel):
    """
    Schema for updating a single occurrence.

    Start and end must stay on the occurrence's date; null clears an
    override so the value is inherited from the series again.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    location_guid: Optional[str] = None


# ============================================================================
# Response Schemas
# ============================================================================


class InstanceResponse(BaseModel):
    """Schema for one resolved occurrence."""

    guid: str = Field(..., description="Instance GUID (ins_xxx)")
    series_guid: str = Field(..., description="Owning series GUID (rec_xxx)")
    occurrence_date: date
    start_at: datetime
    end_at: datetime
    title: str
    description: Optional[str]
    location_guid: Optional[str]
    is_cancelled: bool
    is_exception: bool
    exception_kind: Optional[str] = Field(default=None, description="cancelled or modified")

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "guid": "ins_01hgw2bbg0000000000000001",
                "series_guid": "rec_01hgw2bbg0000000000000001",
                "occurrence_date": "2023-01-02",
                "start_at": "2023-01-02T09:00:00",
                "end_at": "2023-01-02T09:30:00",
                "title": "Daily Meeting",
                "description": None,
                "location_guid": None,
                "is_cancelled": False,
                "is_exception": False,
                "exception_kind": None,
            }
        },
    }


class SeriesResponse(BaseModel):
    """
    Schema for series API responses.

    next_instance is only filled by the list endpoint.
    """

    guid: str = Field(..., description="Series GUID (rec_xxx)")
    title: str
    description: Optional[str]
    start: datetime
    end: datetime
    recurrence_rule: str
    location: Optional[LocationResponse] = None
    parent_guid: Optional[str] = Field(
        default=None,
        description="Series this one was split from",
    )
    instance_count: int
    next_instance: Optional[InstanceResponse] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    @classmethod
    def serialize_datetime_utc(cls, v: datetime) -> str:
        """Serialize datetime as ISO 8601 with explicit UTC timezone."""
        return v.isoformat() + "Z" if v else None

    model_config = {
        "from_attributes": True,
        "json_schema_extra": {
            "example": {
                "guid": "rec_01hgw2bbg0000000000000001",
                "title": "Daily Meeting",
                "description": None,
                "start": "2023-01-01T09:00:00",
                "end": "2023-01-01T09:30:00",
                "recurrence_rule": "FREQ=DAILY;COUNT=10",
                "location": None,
                "parent_guid": None,
                "instance_count": 10,
                "next_instance": None,
                "created_at": "2026-01-10T10:00:00Z",
                "updated_at": "2026-01-10T10:00:00Z",
            }
        },
    }


class SeriesDetailResponse(SeriesResponse):
    """Series response with its ordered occurrences."""

    instances: List[InstanceResponse] = Field(default_factory=list)


class SeriesListResponse(BaseModel):
    """
    Paginated list of series.

    Fields:
        items: Series on this page, each with its next upcoming occurrence
        total: Total number of series
        limit: Page size applied
        offset: Number of series skipped
        has_more: Whether more series exist beyond this page
    """

    items: List[SeriesResponse]
    total: int
    limit: int
    offset: int
    has_more: bool = Field(..., description="More results available")


class InstanceDiffResponse(BaseModel):
    """Counts of instance rows touched by a mutation."""

    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0


class SeriesMutationResponse(BaseModel):
    """
    Outcome of a create, update or delete.

    series is null once the series has been deleted; new_series is set when
    a this_and_future update split the series.
    """

    series_guid: str
    scope: UpdateScope
    deleted: bool = False
    series: Optional[SeriesResponse] = None
    new_series: Optional[SeriesResponse] = None
    diff: InstanceDiffResponse


class InstanceRestoreResponse(BaseModel):
    """
    Outcome of restoring an occurrence.

    instance is null when the occurrence's date is no longer generated by
    the series and the instance was removed.
    """

    removed: bool
    instance: Optional[InstanceResponse] = None

"""
Pydantic schemas for API request/response validation.

This module exports all schema classes for use in API endpoints.
"""

from backend.src.schemas.location import (
    LocationCreate,
    LocationUpdate,
    LocationResponse,
    LocationListResponse,
)
from backend.src.schemas.series import (
    UpdateScope,
    SeriesCreate,
    SeriesUpdate,
    InstanceUpdate,
    InstanceResponse,
    SeriesResponse,
    SeriesDetailResponse,
    SeriesListResponse,
    InstanceDiffResponse,
    SeriesMutationResponse,
    InstanceRestoreResponse,
)

__all__ = [
    # Location schemas
    "LocationCreate",
    "LocationUpdate",
    "LocationResponse",
    "LocationListResponse",
    # Series schemas
    "UpdateScope",
    "SeriesCreate",
    "SeriesUpdate",
    "InstanceUpdate",
    "InstanceResponse",
    "SeriesResponse",
    "SeriesDetailResponse",
    "SeriesListResponse",
    "InstanceDiffResponse",
    "SeriesMutationResponse",
    "InstanceRestoreResponse",
]

"""
Locations API endpoints for managing event venues.

Provides CRUD operations for locations:
- List locations with filtering
- Create new locations
- Get location details
- Update location properties
- Delete locations (series and occurrences keep existing without one)

Design:
- Uses dependency injection for services
- Comprehensive error handling with meaningful HTTP status codes
- All endpoints use GUID format (loc_xxx) for identifiers
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from backend.src.db.database import get_db
from backend.src.schemas.location import (
    LocationCreate,
    LocationUpdate,
    LocationResponse,
    LocationListResponse,
)
from backend.src.services.location_service import LocationService
from backend.src.services.exceptions import NotFoundError, ValidationError
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    prefix="/locations",
    tags=["Locations"],
)


# ============================================================================
# Dependencies
# ============================================================================


def get_location_service(db: Session = Depends(get_db)) -> LocationService:
    """Create LocationService instance with database session."""
    return LocationService(db=db)


# ============================================================================
# API Endpoints
# ============================================================================


@router.get(
    "",
    response_model=LocationListResponse,
    summary="List locations",
    description="List all locations with optional filtering",
)
async def list_locations(
    active_only: bool = Query(
        False, description="Only return active locations"
    ),
    search: Optional[str] = Query(
        None, description="Search in name and address"
    ),
    limit: int = Query(100, ge=1, le=500, description="Maximum results to return"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    location_service: LocationService = Depends(get_location_service),
) -> LocationListResponse:
    """
    List all locations with optional filtering.

    Example:
        GET /api/locations
        GET /api/locations?active_only=true
        GET /api/locations?search=studio
    """
    try:
        locations, total = location_service.list(
            active_only=active_only,
            search=search,
            limit=limit,
            offset=offset,
        )

        logger.info(
            f"Listed {len(locations)} locations",
            extra={"total": total, "active_only": active_only, "search": search},
        )

        return LocationListResponse(
            items=[LocationResponse.model_validate(loc) for loc in locations],
            total=total,
        )

    except Exception as e:
        logger.error(f"Error listing locations: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list locations: {str(e)}",
        )


@router.post(
    "",
    response_model=LocationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create location",
    description="Create a new event location",
)
async def create_location(
    location: LocationCreate,
    location_service: LocationService = Depends(get_location_service),
) -> LocationResponse:
    """
    Create a new location.

    Raises:
        400 Bad Request: If validation fails

    Example:
        POST /api/locations
        {
          "name": "Studio A",
          "address": "12 Harbour Street",
          "capacity": 40
        }
    """
    try:
        created_location = location_service.create(
            name=location.name,
            address=location.address,
            capacity=location.capacity,
            is_active=location.is_active,
        )

        logger.info(
            f"Created location: {location.name}",
            extra={"guid": created_location.guid},
        )

        return LocationResponse.model_validate(created_location)

    except ValidationError as e:
        logger.warning(f"Location validation failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    except Exception as e:
        logger.error(f"Error creating location: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create location: {str(e)}",
        )


@router.get(
    "/{guid}",
    response_model=LocationResponse,
    summary="Get location",
    description="Get a single location by GUID (e.g., loc_01hgw...)",
)
async def get_location(
    guid: str,
    location_service: LocationService = Depends(get_location_service),
) -> LocationResponse:
    """
    Get location by GUID.

    Raises:
        404 Not Found: If location doesn't exist
    """
    try:
        location = location_service.get_by_guid(guid)
        return LocationResponse.model_validate(location)

    except NotFoundError:
        logger.warning(f"Location not found: {guid}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Location not found: {guid}",
        )


@router.patch(
    "/{guid}",
    response_model=LocationResponse,
    summary="Update location",
    description="Update location properties",
)
async def update_location(
    guid: str,
    location_update: LocationUpdate,
    location_service: LocationService = Depends(get_location_service),
) -> LocationResponse:
    """
    Update location properties by GUID.

    Only provided fields will be updated.

    Raises:
        400 Bad Request: If validation fails
        404 Not Found: If location doesn't exist

    Example:
        PATCH /api/locations/loc_01hgw2bbg0000000000000001
        {
          "capacity": 60,
          "is_active": false
        }
    """
    try:
        updated_location = location_service.update(
            guid=guid,
            name=location_update.name,
            address=location_update.address,
            capacity=location_update.capacity,
            is_active=location_update.is_active,
        )

        logger.info(
            f"Updated location: {updated_location.name}",
            extra={"guid": guid},
        )

        return LocationResponse.model_validate(updated_location)

    except NotFoundError as e:
        logger.warning(f"Location not found for update: {e.identifier}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    except ValidationError as e:
        logger.warning(f"Location update validation failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    except Exception as e:
        logger.error(f"Error updating location: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update location: {str(e)}",
        )


@router.delete(
    "/{guid}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete location",
    description="Delete location; series and occurrences using it keep existing without a location",
)
async def delete_location(
    guid: str,
    location_service: LocationService = Depends(get_location_service),
) -> None:
    """
    Delete location by GUID.

    Returns:
        204 No Content on success

    Raises:
        404 Not Found: If location doesn't exist
    """
    try:
        location_service.delete(guid)

        logger.info("Deleted location", extra={"guid": guid})

    except NotFoundError:
        logger.warning(f"Location not found for deletion: {guid}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Location not found: {guid}",
        )

    except Exception as e:
        logger.error(f"Error deleting location: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete location: {str(e)}",
        )

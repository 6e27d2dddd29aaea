"""
Recurring series API endpoints.

Provides endpoints for recurring series:
- Create a series and materialize its occurrences
- List series with their next upcoming occurrence
- Get series details with occurrences
- Scoped update (this / this_and_future / all)
- Scoped delete (this / this_and_future / all)
- List the resolved occurrences of a series

Design:
- Uses dependency injection for services
- All scheduling logic lives in RecurringSeriesService
- All endpoints use GUID format (rec_xxx) for identifiers
"""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from backend.src.db.database import get_db
from backend.src.schemas.series import (
    InstanceResponse,
    SeriesCreate,
    SeriesDetailResponse,
    SeriesListResponse,
    SeriesMutationResponse,
    SeriesResponse,
    SeriesUpdate,
    UpdateScope,
)
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    TransactionFailureError,
    ValidationError,
)
from backend.src.services.series_service import RecurringSeriesService
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    prefix="/series",
    tags=["Series"],
)


# ============================================================================
# Dependencies
# ============================================================================


def get_series_service(db: Session = Depends(get_db)) -> RecurringSeriesService:
    """Create RecurringSeriesService instance with database session."""
    return RecurringSeriesService(db=db)


# ============================================================================
# API Endpoints
# ============================================================================


@router.post(
    "",
    response_model=SeriesDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create series",
    description="Create a recurring series and materialize its occurrences",
)
async def create_series(
    series: SeriesCreate,
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesDetailResponse:
    """
    Create a recurring series.

    Raises:
        400 Bad Request: If the rule is malformed or values are invalid
        409 Conflict: If an identical series already exists

    Example:
        POST /api/series
        {
          "title": "Daily Meeting",
          "start": "2023-01-01T09:00:00",
          "end": "2023-01-01T09:30:00",
          "recurrence_rule": "FREQ=DAILY;COUNT=10"
        }
    """
    try:
        result = series_service.create(
            title=series.title,
            description=series.description,
            start=series.start,
            end=series.end,
            recurrence_rule=series.recurrence_rule,
            location_guid=series.location_guid,
        )

        logger.info(
            f"Created series: {series.title}",
            extra={"guid": result.series_guid, "inserted": result.diff.inserted},
        )

        return SeriesDetailResponse(**series_service.build_series_detail_response(result.template))

    except ValidationError as e:
        logger.warning(f"Series validation failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    except ConflictError as e:
        logger.warning(f"Series conflict: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        )

    except TransactionFailureError as e:
        logger.error(f"Series creation failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
        )

    except Exception as e:
        logger.error(f"Error creating series: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create series: {str(e)}",
        )


@router.get(
    "",
    response_model=SeriesListResponse,
    summary="List series",
    description="List series with their next upcoming occurrence",
)
async def list_series(
    limit: int = Query(20, ge=1, le=500, description="Maximum results to return"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesListResponse:
    """
    List series ordered by first occurrence.

    The page size is capped by TIMEKEEPER_MAX_PAGE_SIZE.

    Example:
        GET /api/series?limit=10&offset=20
    """
    try:
        limit = min(limit, series_service.settings.max_page_size)
        templates, total = series_service.list(limit=limit, offset=offset)

        logger.info(f"Listed {len(templates)} series", extra={"total": total})

        return SeriesListResponse(
            items=[
                SeriesResponse(**series_service.build_series_response(t, include_next=True))
                for t in templates
            ],
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(templates) < total,
        )

    except Exception as e:
        logger.error(f"Error listing series: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list series: {str(e)}",
        )


@router.get(
    "/{guid}",
    response_model=SeriesDetailResponse,
    summary="Get series",
    description="Get a series with its occurrences",
)
async def get_series(
    guid: str,
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesDetailResponse:
    """
    Get series by GUID.

    Raises:
        404 Not Found: If the series doesn't exist
    """
    try:
        template = series_service.get_by_guid(guid)
        return SeriesDetailResponse(**series_service.build_series_detail_response(template))

    except NotFoundError:
        logger.warning(f"Series not found: {guid}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Series not found: {guid}",
        )


@router.patch(
    "/{guid}",
    response_model=SeriesMutationResponse,
    summary="Update series",
    description="Update a series with scope this, this_and_future or all",
)
async def update_series(
    guid: str,
    series_update: SeriesUpdate,
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesMutationResponse:
    """
    Update a series.

    Scopes:
    - this: only the occurrence on pivot_date (recorded as an exception)
    - this_and_future: split the series at pivot_date
    - all: change the series itself and regenerate it

    Raises:
        400 Bad Request: If fields, rule or pivot are invalid
        404 Not Found: If the series or the pivot occurrence doesn't exist

    Example:
        PATCH /api/series/rec_01hgw2bbg0000000000000001
        {
          "title": "Evening Yoga",
          "scope": "this_and_future",
          "pivot_date": "2024-03-04"
        }
    """
    try:
        changes = series_update.model_dump(exclude_unset=True, exclude={"scope", "pivot_date"})
        result = series_service.update(
            guid,
            changes,
            scope=series_update.scope.value,
            pivot_date=series_update.pivot_date,
        )

        logger.info(
            f"Updated series: {guid}",
            extra={"scope": result.scope, "diff": str(result.diff)},
        )

        return SeriesMutationResponse(**series_service.build_mutation_response(result))

    except NotFoundError as e:
        logger.warning(f"Not found for series update: {e.identifier}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    except ValidationError as e:
        logger.warning(f"Series update validation failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    except ConflictError as e:
        logger.warning(f"Series update conflict: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        )

    except TransactionFailureError as e:
        logger.error(f"Series update failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
        )

    except Exception as e:
        logger.error(f"Error updating series: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update series: {str(e)}",
        )


@router.delete(
    "/{guid}",
    response_model=SeriesMutationResponse,
    summary="Delete series",
    description="Delete a series with scope this, this_and_future or all",
)
async def delete_series(
    guid: str,
    scope: UpdateScope = Query(UpdateScope.ALL, description="Delete scope"),
    pivot_date: Optional[date] = Query(
        None, description="Occurrence date the delete applies from (required unless scope=all)"
    ),
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesMutationResponse:
    """
    Delete a series.

    Scopes:
    - this: cancel the occurrence on pivot_date
    - this_and_future: cancel every occurrence from pivot_date on
    - all: remove the series with its occurrences and exceptions

    Raises:
        400 Bad Request: If the pivot is missing
        404 Not Found: If the series or the pivot occurrence doesn't exist

    Example:
        DELETE /api/series/rec_01hgw2bbg0000000000000001?scope=this&pivot_date=2023-01-03
    """
    try:
        result = series_service.delete(guid, scope=scope.value, pivot_date=pivot_date)

        logger.info(
            f"Deleted series: {guid}",
            extra={"scope": result.scope, "diff": str(result.diff)},
        )

        return SeriesMutationResponse(**series_service.build_mutation_response(result))

    except NotFoundError as e:
        logger.warning(f"Not found for series delete: {e.identifier}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    except ValidationError as e:
        logger.warning(f"Series delete validation failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    except TransactionFailureError as e:
        logger.error(f"Series delete failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
        )

    except Exception as e:
        logger.error(f"Error deleting series: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete series: {str(e)}",
        )


@router.get(
    "/{guid}/instances",
    response_model=List[InstanceResponse],
    summary="List series occurrences",
    description="Ordered resolved occurrences of a series, cancelled ones included",
)
async def list_series_instances(
    guid: str,
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> List[InstanceResponse]:
    """
    List the occurrences of a series.

    Raises:
        404 Not Found: If the series doesn't exist (or was deleted)
    """
    try:
        template = series_service.get_by_guid(guid)
        return [
            InstanceResponse(**item)
            for item in series_service.build_instance_list(template)
        ]

    except NotFoundError:
        logger.warning(f"Series not found: {guid}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Series not found: {guid}",
        )

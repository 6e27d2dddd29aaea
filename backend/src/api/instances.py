"""
Occurrence (instance) API endpoints.

Provides endpoints for single occurrences of a series:
- Get an occurrence
- Update an occurrence (same as a "this" series update)
- Cancel an occurrence (same as a "this" series delete)
- Restore an occurrence to its series values

All endpoints use GUID format (ins_xxx) for identifiers.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from backend.src.api.series import get_series_service
from backend.src.schemas.series import (
    InstanceResponse,
    InstanceRestoreResponse,
    InstanceUpdate,
)
from backend.src.services.exceptions import (
    NotFoundError,
    TransactionFailureError,
    ValidationError,
)
from backend.src.services.series_service import RecurringSeriesService
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    prefix="/instances",
    tags=["Instances"],
)


@router.get(
    "/{guid}",
    response_model=InstanceResponse,
    summary="Get occurrence",
)
async def get_instance(
    guid: str,
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> InstanceResponse:
    """
    Get a single occurrence by GUID.

    Raises:
        404 Not Found: If the occurrence doesn't exist
    """
    try:
        instance = series_service.get_instance(guid)
        return InstanceResponse(**series_service.build_instance_response(instance))

    except NotFoundError:
        logger.warning(f"Instance not found: {guid}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Instance not found: {guid}",
        )


@router.patch(
    "/{guid}",
    response_model=InstanceResponse,
    summary="Update occurrence",
    description="Override values of one occurrence; the rest of the series is untouched",
)
async def update_instance(
    guid: str,
    instance_update: InstanceUpdate,
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> InstanceResponse:
    """
    Update a single occurrence.

    Raises:
        400 Bad Request: If values are invalid (e.g. start on another date)
        404 Not Found: If the occurrence doesn't exist

    Example:
        PATCH /api/instances/ins_01hgw2bbg0000000000000001
        {
          "title": "Daily Meeting (remote)",
          "start": "2023-01-03T10:00:00"
        }
    """
    try:
        changes = instance_update.model_dump(exclude_unset=True)
        instance = series_service.update_instance(guid, changes)

        logger.info(f"Updated instance: {guid}", extra={"fields": sorted(changes)})

        return InstanceResponse(**series_service.build_instance_response(instance))

    except NotFoundError as e:
        logger.warning(f"Not found for instance update: {e.identifier}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    except ValidationError as e:
        logger.warning(f"Instance update validation failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    except TransactionFailureError as e:
        logger.error(f"Instance update failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
        )

    except Exception as e:
        logger.error(f"Error updating instance: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update instance: {str(e)}",
        )


@router.post(
    "/{guid}/cancel",
    response_model=InstanceResponse,
    summary="Cancel occurrence",
    description="Cancel one occurrence; it stays listed, flagged cancelled",
)
async def cancel_instance(
    guid: str,
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> InstanceResponse:
    """
    Cancel a single occurrence.

    Raises:
        404 Not Found: If the occurrence doesn't exist
    """
    try:
        instance = series_service.cancel_instance(guid)

        logger.info(f"Cancelled instance: {guid}")

        return InstanceResponse(**series_service.build_instance_response(instance))

    except NotFoundError:
        logger.warning(f"Instance not found for cancel: {guid}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Instance not found: {guid}",
        )

    except TransactionFailureError as e:
        logger.error(f"Instance cancel failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
        )

    except Exception as e:
        logger.error(f"Error cancelling instance: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to cancel instance: {str(e)}",
        )


@router.post(
    "/{guid}/restore",
    response_model=InstanceRestoreResponse,
    summary="Restore occurrence",
    description="Drop the occurrence's exception so it follows its series again",
)
async def restore_instance(
    guid: str,
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> InstanceRestoreResponse:
    """
    Restore a single occurrence.

    The occurrence is removed when its date is no longer generated by the
    series.

    Raises:
        404 Not Found: If the occurrence doesn't exist
    """
    try:
        instance = series_service.restore_instance(guid)

        logger.info(f"Restored instance: {guid}", extra={"removed": instance is None})

        if instance is None:
            return InstanceRestoreResponse(removed=True)
        return InstanceRestoreResponse(
            removed=False,
            instance=InstanceResponse(**series_service.build_instance_response(instance)),
        )

    except NotFoundError:
        logger.warning(f"Instance not found for restore: {guid}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Instance not found: {guid}",
        )

    except TransactionFailureError as e:
        logger.error(f"Instance restore failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
        )

    except Exception as e:
        logger.error(f"Error restoring instance: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to restore instance: {str(e)}",
        )

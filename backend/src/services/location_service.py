"""
Location service for managing event venues.

Provides business logic for creating, reading, updating, and deleting
event locations.

Design:
- Series reference a default location; instances and modified exceptions
  may reference another one
- Deleting a location never deletes schedules: the database clears every
  reference to it (ON DELETE SET NULL)
- Inactive locations remain valid on existing schedules but cannot be
  assigned to new ones
"""

from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from backend.src.models import Location
from backend.src.utils.logging_config import get_logger
from backend.src.services.exceptions import NotFoundError, ValidationError
from backend.src.services.guid import GuidService


logger = get_logger("services")


class LocationService:
    """
    Service for managing event locations.

    Usage:
        >>> service = LocationService(db_session)
        >>> location = service.create(
        ...     name="Studio A",
        ...     address="12 Harbour Street",
        ...     capacity=40
        ... )
    """

    def __init__(self, db: Session):
        """
        Initialize location service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def create(
        self,
        name: str,
        address: Optional[str] = None,
        capacity: Optional[int] = None,
        is_active: bool = True,
    ) -> Location:
        """
        Create a new location.

        Args:
            name: Location display name
            address: Free-form address
            capacity: Number of attendees the venue holds
            is_active: Whether the venue can be assigned to new series

        Returns:
            Created Location instance

        Raises:
            ValidationError: If name is empty or capacity is not positive
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Location name is required", field="name")

        if capacity is not None and capacity < 1:
            raise ValidationError("Capacity must be a positive number", field="capacity")

        try:
            location = Location(
                name=name,
                address=address or None,
                capacity=capacity,
                is_active=is_active,
            )
            self.db.add(location)
            self.db.commit()
            self.db.refresh(location)

            logger.info(f"Created location: {location.name} ({location.guid})")
            return location

        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Failed to create location '{name}': {e}")
            raise ValidationError("Failed to create location: database constraint violation")

    def get_by_guid(self, guid: str) -> Location:
        """
        Get a location by GUID.

        Args:
            guid: Location GUID (loc_xxx format)

        Returns:
            Location instance

        Raises:
            NotFoundError: If location not found
        """
        if not GuidService.validate_guid(guid, "loc"):
            raise NotFoundError("Location", guid)

        try:
            uuid_value = GuidService.parse_guid(guid, "loc")
        except ValueError:
            raise NotFoundError("Location", guid)

        location = self.db.query(Location).filter(Location.uuid == uuid_value).first()
        if not location:
            raise NotFoundError("Location", guid)

        return location

    def get_by_id(self, location_id: int) -> Location:
        location = self.db.query(Location).filter(Location.id == location_id).first()
        if not location:
            raise NotFoundError("Location", location_id)
        return location

    def resolve_assignable(self, guid: Optional[str], field: str = "location_guid") -> Optional[Location]:
        """
        Resolve a location GUID supplied for a schedule.

        Returns None for None. Unknown or inactive locations are a
        ValidationError on the given field, not a NotFoundError, since the
        resource being edited is the schedule.
        """
        if guid is None:
            return None
        try:
            location = self.get_by_guid(guid)
        except NotFoundError:
            raise ValidationError(f"Location {guid} not found", field=field)
        if not location.is_active:
            raise ValidationError(f"Location '{location.name}' is inactive", field=field)
        return location

    def list(
        self,
        active_only: bool = False,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[List[Location], int]:
        """
        List locations with optional filtering.

        Args:
            active_only: If True, only return active locations
            search: Search term for name/address
            limit: Maximum number of results
            offset: Number of results to skip

        Returns:
            Tuple of (list of Location instances, total count)
        """
        query = self.db.query(Location)

        if active_only:
            query = query.filter(Location.is_active.is_(True))

        if search:
            search_term = f"%{search}%"
            query = query.filter(
                (Location.name.ilike(search_term)) |
                (Location.address.ilike(search_term))
            )

        # Get total count before pagination
        total = query.count()

        locations = (
            query
            .order_by(Location.name.asc())
            .offset(offset)
            .limit(limit)
            .all()
        )

        return locations, total

    def update(
        self,
        guid: str,
        name: Optional[str] = None,
        address: Optional[str] = None,
        capacity: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> Location:
        """
        Update an existing location.

        None means no change; an empty address clears it.

        Raises:
            NotFoundError: If location not found
            ValidationError: If name is blank or capacity is not positive
        """
        location = self.get_by_guid(guid)

        if name is not None:
            if not name.strip():
                raise ValidationError("Location name is required", field="name")
            location.name = name.strip()
        if address is not None:
            location.address = address if address else None
        if capacity is not None:
            if capacity < 1:
                raise ValidationError("Capacity must be a positive number", field="capacity")
            location.capacity = capacity
        if is_active is not None:
            location.is_active = is_active

        try:
            self.db.commit()
            self.db.refresh(location)
            logger.info(f"Updated location: {location.name} ({location.guid})")
            return location

        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"Failed to update location {guid}: {e}")
            raise ValidationError("Failed to update location: database constraint violation")

    def delete(self, guid: str) -> None:
        """
        Delete a location.

        Series, instances and exceptions that referenced it keep existing
        with no location.

        Raises:
            NotFoundError: If location not found
        """
        location = self.get_by_guid(guid)
        name = location.name

        self.db.delete(location)
        self.db.commit()
        # Referencing rows were cleared by the database, not the session
        self.db.expire_all()
        logger.info(f"Deleted location: {name} ({guid})")

    def build_location_response(self, location: Location) -> dict:
        """Build API response dict for a location."""
        return {
            "guid": location.guid,
            "name": location.name,
            "address": location.address,
            "capacity": location.capacity,
            "is_active": location.is_active,
            "created_at": location.created_at,
            "updated_at": location.updated_at,
        }

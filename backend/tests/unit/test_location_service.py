"""
Unit tests for LocationService.

Tests CRUD operations, assignability checks and delete behaviour for
locations referenced by series.
"""

from datetime import date

import pytest

from backend.src.models import EventInstance, Location, RecurringTemplate
from backend.src.services.location_service import LocationService
from backend.src.services.exceptions import NotFoundError, ValidationError


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def location_service(test_db_session):
    """Create a LocationService instance for testing."""
    return LocationService(test_db_session)


# ============================================================================
# Create Tests
# ============================================================================


class TestLocationServiceCreate:
    """Tests for location creation."""

    def test_create_location(self, location_service):
        """Test creating a location with all fields."""
        location = location_service.create(
            name="Studio A",
            address="12 Harbour Street",
            capacity=40,
        )

        assert location.id is not None
        assert location.guid.startswith("loc_")
        assert location.name == "Studio A"
        assert location.address == "12 Harbour Street"
        assert location.capacity == 40
        assert location.is_active is True

    def test_create_strips_name(self, location_service):
        location = location_service.create(name="  Rooftop  ")
        assert location.name == "Rooftop"

    def test_create_blank_name(self, location_service):
        """Test that a blank name is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            location_service.create(name="   ")
        assert exc_info.value.field == "name"

    def test_create_zero_capacity(self, location_service):
        with pytest.raises(ValidationError) as exc_info:
            location_service.create(name="Closet", capacity=0)
        assert exc_info.value.field == "capacity"


# ============================================================================
# Read Tests
# ============================================================================


class TestLocationServiceGet:
    """Tests for location retrieval."""

    def test_get_by_guid(self, location_service, sample_location):
        location = sample_location()

        found = location_service.get_by_guid(location.guid)

        assert found.id == location.id

    def test_get_by_guid_wrong_prefix(self, location_service, sample_location):
        """Test that a GUID of another entity type is not found."""
        location = sample_location()
        with pytest.raises(NotFoundError):
            location_service.get_by_guid("rec_" + location.guid[4:])

    def test_get_by_guid_unknown(self, location_service):
        with pytest.raises(NotFoundError):
            location_service.get_by_guid("loc_00000000000000000000000000")

    def test_get_by_id(self, location_service, sample_location):
        location = sample_location()
        assert location_service.get_by_id(location.id).guid == location.guid

    def test_get_by_id_unknown(self, location_service):
        with pytest.raises(NotFoundError):
            location_service.get_by_id(9999)


class TestLocationServiceList:
    """Tests for location listing."""

    def test_list_ordered_by_name(self, location_service, sample_location):
        sample_location(name="Studio B")
        sample_location(name="Annex")

        locations, total = location_service.list()

        assert total == 2
        assert [loc.name for loc in locations] == ["Annex", "Studio B"]

    def test_list_active_only(self, location_service, sample_location):
        sample_location(name="Open")
        sample_location(name="Closed", is_active=False)

        locations, total = location_service.list(active_only=True)

        assert total == 1
        assert locations[0].name == "Open"

    def test_list_search(self, location_service, sample_location):
        sample_location(name="Studio A", address="Harbour")
        sample_location(name="Gym", address="Hill Road")

        locations, total = location_service.list(search="harb")

        assert total == 1
        assert locations[0].name == "Studio A"

    def test_list_pagination(self, location_service, sample_location):
        for name in ("A", "B", "C"):
            sample_location(name=name)

        locations, total = location_service.list(limit=2, offset=2)

        assert total == 3
        assert [loc.name for loc in locations] == ["C"]


class TestResolveAssignable:
    """Tests for resolving locations supplied with schedules."""

    def test_none(self, location_service):
        assert location_service.resolve_assignable(None) is None

    def test_active(self, location_service, sample_location):
        location = sample_location()
        assert location_service.resolve_assignable(location.guid).id == location.id

    def test_unknown_is_validation_error(self, location_service):
        with pytest.raises(ValidationError) as exc_info:
            location_service.resolve_assignable("loc_00000000000000000000000000")
        assert exc_info.value.field == "location_guid"

    def test_inactive_is_validation_error(self, location_service, sample_location):
        location = sample_location(is_active=False)
        with pytest.raises(ValidationError) as exc_info:
            location_service.resolve_assignable(location.guid, field="location")
        assert exc_info.value.field == "location"


# ============================================================================
# Update / Delete Tests
# ============================================================================


class TestLocationServiceUpdate:
    """Tests for location updates."""

    def test_update_fields(self, location_service, sample_location):
        location = sample_location()

        updated = location_service.update(location.guid, name="Studio Z", capacity=12, is_active=False)

        assert updated.name == "Studio Z"
        assert updated.capacity == 12
        assert updated.is_active is False
        assert updated.address == "12 Harbour Street"

    def test_update_empty_address_clears(self, location_service, sample_location):
        location = sample_location()
        assert location_service.update(location.guid, address="").address is None

    def test_update_blank_name(self, location_service, sample_location):
        location = sample_location()
        with pytest.raises(ValidationError):
            location_service.update(location.guid, name=" ")

    def test_update_unknown(self, location_service):
        with pytest.raises(NotFoundError):
            location_service.update("loc_00000000000000000000000000", name="x")


class TestLocationServiceDelete:
    """Tests for location deletion."""

    def test_delete(self, location_service, sample_location, test_db_session):
        location = sample_location()

        location_service.delete(location.guid)

        assert test_db_session.query(Location).count() == 0

    def test_delete_keeps_series_without_location(
        self, location_service, sample_location, sample_series, series_service, test_db_session
    ):
        """Series and occurrences survive with their location cleared."""
        location = sample_location()
        template = sample_series(location_guid=location.guid)
        template_guid = template.guid

        location_service.delete(location.guid)

        reloaded = series_service.get_by_guid(template_guid)
        assert reloaded.location_id is None
        assert test_db_session.query(RecurringTemplate).count() == 1
        instances = series_service.get_instances(template_guid)
        assert len(instances) == 4
        assert all(i.location_id is None for i in instances)
        assert instances[0].occurrence_date == date(2023, 1, 2)
        assert test_db_session.query(EventInstance).count() == 4

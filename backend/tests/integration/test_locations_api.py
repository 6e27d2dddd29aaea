"""
Integration tests for Locations API endpoints.

Tests end-to-end flows for location management:
- CRUD operations via API
- Filtering by activity and search
- Deleting a location used by a series
"""

import pytest


@pytest.fixture
def studio(test_client):
    """Create a sample location through the API."""
    response = test_client.post("/api/locations", json={
        "name": "Studio A",
        "address": "12 Harbour Street",
        "capacity": 40,
    })
    assert response.status_code == 201
    return response.json()


class TestLocationsAPI:
    """Integration tests for Locations API endpoints"""

    def test_create_location(self, test_client):
        """Test creating a location with minimal required fields"""
        response = test_client.post("/api/locations", json={"name": "Rooftop"})

        assert response.status_code == 201
        location = response.json()
        assert location["guid"].startswith("loc_")
        assert location["name"] == "Rooftop"
        assert location["address"] is None
        assert location["capacity"] is None
        assert location["is_active"] is True
        assert location["created_at"].endswith("Z")

    def test_create_location_invalid_capacity(self, test_client):
        response = test_client.post("/api/locations", json={"name": "Closet", "capacity": 0})
        assert response.status_code == 422

    def test_create_location_blank_name(self, test_client):
        response = test_client.post("/api/locations", json={"name": "   "})
        assert response.status_code == 422

    def test_get_location(self, test_client, studio):
        response = test_client.get(f"/api/locations/{studio['guid']}")

        assert response.status_code == 200
        assert response.json()["name"] == "Studio A"

    def test_get_location_not_found(self, test_client):
        response = test_client.get("/api/locations/loc_00000000000000000000000000")
        assert response.status_code == 404

    def test_list_locations(self, test_client, studio):
        test_client.post("/api/locations", json={"name": "Gym", "is_active": False})

        all_locations = test_client.get("/api/locations").json()
        active = test_client.get("/api/locations", params={"active_only": True}).json()
        searched = test_client.get("/api/locations", params={"search": "harbour"}).json()

        assert all_locations["total"] == 2
        assert [loc["name"] for loc in active["items"]] == ["Studio A"]
        assert searched["total"] == 1

    def test_update_location(self, test_client, studio):
        response = test_client.patch(
            f"/api/locations/{studio['guid']}",
            json={"capacity": 60, "is_active": False},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["capacity"] == 60
        assert data["is_active"] is False
        assert data["name"] == "Studio A"

    def test_update_location_not_found(self, test_client):
        response = test_client.patch(
            "/api/locations/loc_00000000000000000000000000", json={"name": "x"}
        )
        assert response.status_code == 404

    def test_inactive_location_cannot_be_assigned(self, test_client, studio):
        test_client.patch(f"/api/locations/{studio['guid']}", json={"is_active": False})

        response = test_client.post("/api/series", json={
            "title": "Yoga",
            "start": "2023-01-02T09:00:00",
            "recurrence_rule": "FREQ=WEEKLY;COUNT=2",
            "location_guid": studio["guid"],
        })

        assert response.status_code == 400

    def test_delete_location_used_by_series(self, test_client, studio):
        """Series keep existing without a location"""
        series = test_client.post("/api/series", json={
            "title": "Yoga",
            "start": "2023-01-02T09:00:00",
            "end": "2023-01-02T10:00:00",
            "recurrence_rule": "FREQ=WEEKLY;COUNT=2",
            "location_guid": studio["guid"],
        }).json()

        response = test_client.delete(f"/api/locations/{studio['guid']}")
        assert response.status_code == 204

        assert test_client.get(f"/api/locations/{studio['guid']}").status_code == 404
        reloaded = test_client.get(f"/api/series/{series['guid']}").json()
        assert reloaded["location"] is None
        assert all(i["location_guid"] is None for i in reloaded["instances"])

    def test_delete_location_not_found(self, test_client):
        response = test_client.delete("/api/locations/loc_00000000000000000000000000")
        assert response.status_code == 404

"""
Integration tests for Instance API endpoints.

Tests single-occurrence flows:
- Get an occurrence by GUID
- Override values of one occurrence
- Cancel and restore round trip
"""

import pytest


@pytest.fixture
def weekly_series(test_client):
    """Weekly yoga class, four Mondays from 2023-01-02."""
    response = test_client.post("/api/series", json={
        "title": "Morning Yoga",
        "start": "2023-01-02T09:00:00",
        "end": "2023-01-02T10:00:00",
        "recurrence_rule": "FREQ=WEEKLY;COUNT=4",
    })
    assert response.status_code == 201
    return response.json()


class TestInstancesAPI:
    """Integration tests for /api/instances"""

    def test_get_instance(self, test_client, weekly_series):
        instance = weekly_series["instances"][1]

        response = test_client.get(f"/api/instances/{instance['guid']}")

        assert response.status_code == 200
        data = response.json()
        assert data == instance

    def test_get_unknown_instance(self, test_client):
        response = test_client.get("/api/instances/ins_00000000000000000000000000")
        assert response.status_code == 404

    def test_get_with_series_guid_is_not_found(self, test_client, weekly_series):
        response = test_client.get(f"/api/instances/{weekly_series['guid']}")
        assert response.status_code == 404

    def test_update_instance(self, test_client, weekly_series):
        instance = weekly_series["instances"][2]

        response = test_client.patch(
            f"/api/instances/{instance['guid']}",
            json={"title": "Guest Instructor", "start": "2023-01-16T11:00:00"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["guid"] == instance["guid"]
        assert data["title"] == "Guest Instructor"
        assert data["start_at"] == "2023-01-16T11:00:00"
        assert data["end_at"] == "2023-01-16T12:00:00"
        assert data["is_exception"] is True
        assert data["exception_kind"] == "modified"

        series = test_client.get(f"/api/series/{weekly_series['guid']}").json()
        assert series["title"] == "Morning Yoga"

    def test_update_instance_to_other_date(self, test_client, weekly_series):
        instance = weekly_series["instances"][0]

        response = test_client.patch(
            f"/api/instances/{instance['guid']}",
            json={"start": "2023-01-03T09:00:00"},
        )

        assert response.status_code == 400

    def test_cancel_and_restore(self, test_client, weekly_series):
        instance = weekly_series["instances"][3]

        cancelled = test_client.post(f"/api/instances/{instance['guid']}/cancel")
        assert cancelled.status_code == 200
        assert cancelled.json()["is_cancelled"] is True
        assert cancelled.json()["exception_kind"] == "cancelled"

        restored = test_client.post(f"/api/instances/{instance['guid']}/restore")
        assert restored.status_code == 200
        data = restored.json()
        assert data["removed"] is False
        assert data["instance"] == instance

    def test_restore_without_exception(self, test_client, weekly_series):
        instance = weekly_series["instances"][0]

        response = test_client.post(f"/api/instances/{instance['guid']}/restore")

        assert response.status_code == 200
        assert response.json()["instance"]["is_exception"] is False

    def test_restore_unknown(self, test_client):
        response = test_client.post("/api/instances/ins_00000000000000000000000000/restore")
        assert response.status_code == 404

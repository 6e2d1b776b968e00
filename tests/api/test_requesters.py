# Material Tracker API Tests - Requester Registry
#
# Tests for:
# - Admin CRUD on registered requesters
# - Duplicate requester IDs
# - Password handling (hashed, never returned, blank keeps current)

import pytest

from tests.conftest import APIClient, assert_response
from tracker.extensions import db
from tracker.models import Requester


def _create(admin: APIClient, requester_id="R-1", name="Eve Electric", password="volts"):
    return admin.post("/api/requesters", json={
        "requester_id": requester_id,
        "name": name,
        "password": password,
    })


class TestRequesterRegistry:

    @pytest.mark.smoke
    @pytest.mark.requesters
    def test_create_and_list(self, admin: APIClient):
        response = _create(admin)
        assert_response(
            response, 201,
            scenario="Admin registers a requester",
            code_location="tracker/services/auth_service.py:create_requester"
        )
        created = response.get_json()["requester"]
        assert created["requester_id"] == "R-1"
        assert "password_hash" not in created

        listing = admin.get("/api/requesters").get_json()
        assert listing["count"] == 1
        assert "password_hash" not in listing["requesters"][0]

    @pytest.mark.requesters
    def test_password_is_hashed(self, admin: APIClient, app):
        _create(admin)
        stored = db.session.query(Requester).filter_by(requester_id="R-1").one()
        assert stored.password_hash != "volts"
        assert stored.password_hash.startswith("$2")

    @pytest.mark.requesters
    def test_duplicate_id_conflict(self, admin: APIClient):
        _create(admin)
        response = _create(admin, name="Someone Else")
        assert_response(
            response, 409,
            scenario="Duplicate requester ID",
            code_location="tracker/services/auth_service.py:create_requester",
            expected_body_contains="already exists"
        )

    @pytest.mark.requesters
    @pytest.mark.parametrize("missing", ["requester_id", "name", "password"])
    def test_all_fields_required(self, admin: APIClient, missing):
        body = {"requester_id": "R-1", "name": "Eve", "password": "volts"}
        body[missing] = ""
        response = admin.post("/api/requesters", json=body)
        assert response.status_code == 400

    @pytest.mark.requesters
    def test_update_blank_password_keeps_current(self, admin: APIClient, client: APIClient):
        pk = _create(admin).get_json()["requester"]["id"]

        response = admin.put(f"/api/requesters/{pk}", json={"name": "Eve Volt", "password": ""})
        assert response.status_code == 200
        assert response.get_json()["requester"]["name"] == "Eve Volt"

        assert client.login_requester("R-1", "volts")
        assert client.identity["name"] == "Eve Volt"

    @pytest.mark.requesters
    def test_update_password(self, admin: APIClient, client: APIClient):
        pk = _create(admin).get_json()["requester"]["id"]
        admin.put(f"/api/requesters/{pk}", json={"password": "ohms"})

        assert not client.login_requester("R-1", "volts")
        assert client.login_requester("R-1", "ohms")

    @pytest.mark.requesters
    def test_rename_to_existing_id_conflict(self, admin: APIClient):
        _create(admin, requester_id="R-1")
        pk = _create(admin, requester_id="R-2").get_json()["requester"]["id"]

        response = admin.put(f"/api/requesters/{pk}", json={"requester_id": "R-1"})
        assert response.status_code == 409

    @pytest.mark.requesters
    def test_delete(self, admin: APIClient, client: APIClient):
        pk = _create(admin).get_json()["requester"]["id"]

        assert admin.delete(f"/api/requesters/{pk}").status_code == 200
        assert admin.get(f"/api/requesters/{pk}").status_code == 404
        assert not client.login_requester("R-1", "volts")

    @pytest.mark.requesters
    def test_requester_files_under_their_id(self, factory, requester: APIClient):
        take = factory.submit_take(requester, [{"name": "Drill bits", "quantity": 4}])
        assert take["worker_id"] == "R-300"
        assert take["worker_name"] == "Dana Driller"

# Material Tracker API Tests - Take requests, listing, editing, deletion
#
# Tests for:
# - Take submission and reference numbering
# - Listing filters (type, status, search, dates, material return state)
# - Editing pending requests
# - Deleting requests (owner vs admin delete password)
# - History wipe

import pytest

from tests.conftest import APIClient, assert_response
from tracker.extensions import db
from tracker.models import ReferenceNumber


class TestTakeSubmission:

    @pytest.mark.smoke
    def test_take_gets_consecutive_reference_numbers(self, factory, worker: APIClient):
        take = factory.submit_take(worker, [
            {"name": "Cement", "quantity": 10, "unit": "pcs"},
            {"name": "Sand", "quantity": 2, "unit": "bags"},
            {"name": "Rebar", "quantity": 5, "unit": "m"},
        ])

        numbers = [int(r) for r in factory.refs(take)]
        assert numbers == [numbers[0], numbers[0] + 1, numbers[0] + 2]
        assert all(len(str(n)) == 6 for n in numbers)

        assert take["approval_status"] == "pending"
        assert take["worker_name"] == "Bob Builder"
        assert take["worker_id"] == "W-100"
        for line in take["materials"]:
            assert line["returned_quantity"] == 0
            assert line["returned"] is False
            assert line["taken_date"]

    def test_reference_numbers_indexed(self, factory, worker: APIClient, app):
        take = factory.submit_take(worker, [{"name": "Cement", "quantity": 1}, {"name": "Sand", "quantity": 1}])
        indexed = {r.reference_number for r in db.session.query(ReferenceNumber).all()}
        assert indexed == set(factory.refs(take))

    def test_defaults_date_and_time(self, factory, worker: APIClient):
        take = factory.submit_take(worker, [{"name": "Cement", "quantity": 1}])
        assert len(take["transaction_date"]) == 10
        assert len(take["transaction_time"]) == 5

    def test_blank_lines_dropped(self, factory, worker: APIClient):
        take = factory.submit_take(worker, [
            {"name": "Cement", "quantity": 1},
            {"name": "  ", "quantity": 3},
        ])
        assert len(take["materials"]) == 1

    def test_empty_material_list_rejected(self, worker: APIClient):
        response = worker.post("/api/transactions", json={
            "transaction_type": "take",
            "materials": [{"name": ""}],
        })
        assert_response(
            response, 400,
            scenario="Take with no materials",
            code_location="tracker/validation.py:clean_material_list",
            expected_body_contains="Please add at least one material"
        )

    @pytest.mark.parametrize("quantity", [0, -1, 2.5, "3.0", "1e3"])
    def test_bad_quantity_rejected(self, worker: APIClient, quantity):
        response = worker.post("/api/transactions", json={
            "transaction_type": "take",
            "materials": [{"name": "Cement", "quantity": quantity}],
        })
        assert response.status_code == 400

    def test_unknown_type_rejected(self, worker: APIClient):
        response = worker.post("/api/transactions", json={"transaction_type": "borrow", "materials": []})
        assert response.status_code == 400

    def test_admin_must_name_the_worker(self, admin: APIClient):
        response = admin.post("/api/transactions", json={
            "transaction_type": "take",
            "materials": [{"name": "Cement", "quantity": 1}],
        })
        assert response.status_code == 400

        response = admin.post("/api/transactions", json={
            "transaction_type": "take",
            "materials": [{"name": "Cement", "quantity": 1}],
            "worker_name": "Frank Fitter",
            "worker_id": "W-900",
        })
        assert response.status_code == 201
        assert response.get_json()["transaction"]["worker_id"] == "W-900"

    def test_worker_cannot_file_for_someone_else(self, factory, worker: APIClient):
        take = factory.submit_take(worker, [{"name": "Cement", "quantity": 1}], worker_id="W-999", worker_name="X")
        assert take["worker_id"] == "W-100"


class TestApproval:

    @pytest.mark.smoke
    def test_approve_stamps_reviewer(self, factory, worker: APIClient):
        take = factory.submit_take(worker, [{"name": "Cement", "quantity": 1}])
        approved = factory.approve(take["id"])
        assert approved["approval_status"] == "approved"
        assert approved["approved_by"] == "Alice Admin"
        # YYYY-MM-DD HH:MM
        assert len(approved["approval_date"]) == 16

    def test_pending_count(self, factory, worker: APIClient, admin: APIClient):
        first = factory.submit_take(worker, [{"name": "Cement", "quantity": 1}])
        factory.submit_take(worker, [{"name": "Sand", "quantity": 1}])
        assert admin.get("/api/transactions/pending-count").get_json()["pending"] == 2

        factory.approve(first["id"])
        assert admin.get("/api/transactions/pending-count").get_json()["pending"] == 1

    def test_decline_then_approve_take(self, factory, worker: APIClient):
        take = factory.submit_take(worker, [{"name": "Cement", "quantity": 1}])
        factory.decline(take["id"])
        assert factory.approve(take["id"])["approval_status"] == "approved"

    def test_missing_transaction(self, admin: APIClient):
        assert admin.post("/api/transactions/does-not-exist/approve").status_code == 404


class TestListing:

    @pytest.fixture
    def seeded(self, factory, worker: APIClient, other_worker: APIClient):
        cement = factory.approved_take(worker, [{"name": "Cement", "quantity": 10}])
        factory.submit_take(other_worker, [{"name": "Copper wire", "quantity": 3}], transaction_date="2020-01-15")
        ret = factory.approved_return(worker, factory.refs(cement)[0], 4)
        return cement, ret

    def test_newest_first(self, admin: APIClient, seeded):
        rows = admin.get("/api/transactions").get_json()["transactions"]
        created = [r["created_at"] for r in rows]
        assert created == sorted(created, reverse=True)

    def test_type_and_status_filters(self, admin: APIClient, seeded):
        returns = admin.get("/api/transactions", params={"type": "return"}).get_json()
        assert returns["count"] == 1

        pending = admin.get("/api/transactions", params={"status": "pending"}).get_json()
        assert [t["worker_id"] for t in pending["transactions"]] == ["W-200"]

    def test_invalid_filter_rejected(self, admin: APIClient):
        assert admin.get("/api/transactions", params={"status": "lost"}).status_code == 400

    def test_search_by_material_and_reference(self, admin: APIClient, factory, seeded):
        cement, _ = seeded
        by_name = admin.get("/api/transactions", params={"search": "copper"}).get_json()
        assert by_name["count"] == 1

        ref = factory.refs(cement)[0]
        by_ref = admin.get("/api/transactions", params={"search": ref}).get_json()
        # The take and the return that cites it
        assert by_ref["count"] == 2

    def test_slash_search_matches_approver(self, admin: APIClient, seeded):
        found = admin.get("/api/transactions", params={"search": "/alice"}).get_json()
        assert found["count"] == 2
        assert all(t["approved_by"] == "Alice Admin" for t in found["transactions"])

    def test_date_window(self, admin: APIClient, seeded):
        old = admin.get("/api/transactions", params={"start_date": "2020-01-01", "end_date": "2020-12-31"}).get_json()
        assert old["count"] == 1

        this_year = admin.get("/api/transactions", params={"date_range": "year"}).get_json()
        assert all(t["transaction_date"] != "2020-01-15" for t in this_year["transactions"])

    def test_material_return_filter(self, admin: APIClient, seeded):
        partial = admin.get("/api/transactions", params={"material_return": "partially_returned"}).get_json()
        assert [t["materials"][0]["name"] for t in partial["transactions"]] == ["Cement"]

        untouched = admin.get("/api/transactions", params={"material_return": "not_returned"}).get_json()
        assert [t["materials"][0]["name"] for t in untouched["transactions"]] == ["Copper wire"]

    def test_row_cap(self, admin: APIClient, factory, worker: APIClient, app):
        app.config["MAX_ROWS"] = 2
        for i in range(3):
            factory.submit_take(worker, [{"name": f"Item {i}", "quantity": 1}])
        assert admin.get("/api/transactions").get_json()["count"] == 2


class TestEditing:

    def test_worker_edits_pending_take(self, factory, worker: APIClient):
        take = factory.submit_take(worker, [{"name": "Cement", "quantity": 1}, {"name": "Sand", "quantity": 2}])
        cement_ref, sand_ref = factory.refs(take)

        response = worker.patch(f"/api/transactions/{take['id']}", json={
            "notes": "for site B",
            "materials": [
                {"name": "Cement", "quantity": 3, "reference_number": cement_ref},
                {"name": "Gravel", "quantity": 1},
            ],
            "version_id": take["version_id"],
        })
        assert_response(response, 200, "Edit pending take", "tracker/services/transaction_service.py:update_pending")
        edited = response.get_json()["transaction"]

        assert edited["notes"] == "for site B"
        assert edited["materials"][0]["reference_number"] == cement_ref
        assert edited["materials"][0]["quantity"] == 3
        assert edited["materials"][1]["reference_number"] not in (cement_ref, sand_ref)
        assert edited["version_id"] > take["version_id"]

    def test_dropped_line_releases_index_row(self, factory, worker: APIClient, app):
        take = factory.submit_take(worker, [{"name": "Cement", "quantity": 1}, {"name": "Sand", "quantity": 2}])
        cement_ref, sand_ref = factory.refs(take)

        worker.patch(f"/api/transactions/{take['id']}", json={
            "materials": [{"name": "Cement", "quantity": 1, "reference_number": cement_ref}],
        })
        db.session.expire_all()
        indexed = {r.reference_number for r in db.session.query(ReferenceNumber).all()}
        assert indexed == {cement_ref}

    def test_cannot_edit_decided(self, factory, worker: APIClient):
        take = factory.approved_take(worker, [{"name": "Cement", "quantity": 1}])
        response = worker.patch(f"/api/transactions/{take['id']}", json={"notes": "late"})
        assert response.status_code == 409

    def test_cannot_edit_someone_elses(self, factory, worker: APIClient, other_worker: APIClient):
        take = factory.submit_take(worker, [{"name": "Cement", "quantity": 1}])
        response = other_worker.patch(f"/api/transactions/{take['id']}", json={"notes": "mine now"})
        assert response.status_code == 403

    def test_return_edit_revalidated(self, factory, worker: APIClient):
        take = factory.approved_take(worker, [{"name": "Cement", "quantity": 5}])
        ref = factory.refs(take)[0]
        ret = factory.submit_return(worker, [{"reference_number": ref, "return_quantity": 2}]).get_json()["transaction"]

        response = worker.patch(f"/api/transactions/{ret['id']}", json={
            "materials": [{"reference_number": ref, "return_quantity": 6}],
        })
        assert response.status_code == 400


class TestDeletion:

    def test_worker_deletes_own_pending(self, factory, worker: APIClient):
        take = factory.submit_take(worker, [{"name": "Cement", "quantity": 1}])
        assert worker.delete(f"/api/transactions/{take['id']}").status_code == 200
        assert worker.get(f"/api/transactions/{take['id']}").status_code == 404

    def test_worker_cannot_delete_decided(self, factory, worker: APIClient):
        take = factory.approved_take(worker, [{"name": "Cement", "quantity": 1}])
        assert worker.delete(f"/api/transactions/{take['id']}").status_code == 409

    def test_admin_needs_delete_password(self, factory, worker: APIClient, admin: APIClient):
        take = factory.approved_take(worker, [{"name": "Cement", "quantity": 1}])

        response = admin.delete(f"/api/transactions/{take['id']}", json={"password": "000000"})
        assert_response(
            response, 403,
            scenario="Admin delete with wrong password",
            code_location="tracker/services/transaction_service.py:delete_transaction",
            expected_body_contains="Incorrect password"
        )

        response = admin.delete(f"/api/transactions/{take['id']}", json={"password": "722379"})
        assert response.status_code == 200

    def test_delete_all_history(self, factory, worker: APIClient, admin: APIClient, app):
        factory.approved_take(worker, [{"name": "Cement", "quantity": 1}])
        factory.submit_take(worker, [{"name": "Sand", "quantity": 1}])

        assert admin.delete("/api/transactions", json={"password": "wrong"}).status_code == 403

        response = admin.delete("/api/transactions", json={"password": "1432"})
        assert response.get_json()["deleted"] == 2
        assert admin.get("/api/transactions").get_json()["count"] == 0
        assert db.session.query(ReferenceNumber).count() == 0

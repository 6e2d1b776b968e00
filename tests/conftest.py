"""
Pytest fixtures for material tracker backend tests.

Provides an in-process app on a throwaway SQLite file per test, a test
client wrapper with bearer-token helpers, and a small data factory for
the take -> approve -> return flows most tests start from.
"""

from typing import Any, Dict, Optional

import pytest
from flask.testing import FlaskClient

from tracker import create_app
from tracker.extensions import db
from tracker.services.auth_service import create_requester


ADMIN_EMAIL = "admin@site.test"
ADMIN_PASSWORD = "Admin-Test-Pass"
DELETE_PASSWORD = "722379"
HISTORY_PASSWORD = "1432"


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class TestFailure(Exception):
    """
    Custom exception with detailed, human-readable failure messages.

    Structure:
    1. Scenario: What was being tested
    2. Expected: What should have happened
    3. Actual: What actually happened
    4. Likely Cause: Most probable reason for failure
    5. Code Location: Where to look in the codebase
    """
    __test__ = False

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response=None,
        extra_context: Optional[Dict[str, Any]] = None
    ):
        self.scenario = scenario
        self.expected = expected
        self.actual = actual
        self.likely_cause = likely_cause
        self.code_location = code_location
        self.response = response
        self.extra_context = extra_context or {}

        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [
            "",
            "=" * 80,
            "TEST FAILURE DETAILS",
            "=" * 80,
            f"SCENARIO: {self.scenario}",
            "-" * 80,
            f"EXPECTED: {self.expected}",
            f"ACTUAL: {self.actual}",
            "-" * 80,
            f"LIKELY CAUSE: {self.likely_cause}",
            f"CODE LOCATION: {self.code_location}",
        ]

        if self.response is not None:
            lines.extend([
                "-" * 80,
                f"HTTP STATUS: {self.response.status_code}",
                f"RESPONSE BODY: {self.response.get_data(as_text=True)[:1000]}",
            ])

        if self.extra_context:
            lines.append("-" * 80)
            lines.append("EXTRA CONTEXT:")
            for key, value in self.extra_context.items():
                lines.append(f"  {key}: {value}")

        lines.append("=" * 80)
        return "\n".join(lines)


def assert_response(
    response,
    expected_status: int,
    scenario: str,
    code_location: str,
    expected_body_contains: Optional[str] = None
):
    """
    Assert HTTP response status and optionally body content.
    Raises TestFailure with detailed message on failure.
    """
    if response.status_code != expected_status:
        raise TestFailure(
            scenario=scenario,
            expected=f"HTTP {expected_status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )

    if expected_body_contains and expected_body_contains not in (body := response.get_data(as_text=True)):
        raise TestFailure(
            scenario=scenario,
            expected=f"Response body contains: {expected_body_contains}",
            actual=f"Response body: {body[:500]}",
            likely_cause="Response format changed or wrong endpoint hit",
            code_location=code_location,
            response=response
        )


def _infer_cause(response) -> str:
    """Infer likely cause from response status/body."""
    if response.status_code == 401:
        return "Authentication failed - token invalid/missing or session expired"
    elif response.status_code == 403:
        return "Access denied - wrong role, not the owner, or wrong confirmation password"
    elif response.status_code == 404:
        return "Resource not found - wrong ID, deleted, or reference number not in an approved take"
    elif response.status_code == 400:
        return "Invalid request - missing required field or validation failed"
    elif response.status_code == 409:
        return "Conflict - duplicate resource, invalid state transition or concurrent write"
    elif response.status_code == 500:
        return "Server error - check app logs for stack trace"
    else:
        return f"Unexpected status code {response.status_code}"


# =============================================================================
# TEST CLIENT WITH AUTH HELPERS
# =============================================================================

class APIClient:
    """
    Flask test client wrapper that remembers a bearer token.
    """

    def __init__(self, client: FlaskClient):
        self.client = client
        self.token: Optional[str] = None
        self.identity: Optional[Dict] = None

    def _headers(self) -> Dict:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def get(self, path: str, params: Optional[Dict] = None):
        return self.client.get(path, headers=self._headers(), query_string=params)

    def post(self, path: str, json: Optional[Dict] = None):
        return self.client.post(path, headers=self._headers(), json=json)

    def put(self, path: str, json: Optional[Dict] = None):
        return self.client.put(path, headers=self._headers(), json=json)

    def patch(self, path: str, json: Optional[Dict] = None):
        return self.client.patch(path, headers=self._headers(), json=json)

    def delete(self, path: str, json: Optional[Dict] = None):
        return self.client.delete(path, headers=self._headers(), json=json)

    def _store_login(self, response) -> bool:
        if response.status_code == 200:
            data = response.get_json()
            self.token = data["token"]
            self.identity = data["identity"]
            return True
        return False

    def login_admin(self, name: str = "Alice Admin", email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> bool:
        return self._store_login(self.post("/api/auth/admin/login", json={
            "email": email,
            "password": password,
            "name": name,
        }))

    def login_requester(self, requester_id: str, password: str) -> bool:
        return self._store_login(self.post("/api/auth/requester/login", json={
            "requester_id": requester_id,
            "password": password,
        }))

    def login_worker(self, worker_name: str, worker_id: str) -> bool:
        return self._store_login(self.post("/api/auth/worker/login", json={
            "worker_name": worker_name,
            "worker_id": worker_id,
        }))

    def logout(self) -> bool:
        response = self.post("/api/auth/logout")
        if response.status_code == 200:
            self.token = None
            self.identity = None
            return True
        return False


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================

@pytest.fixture(scope='function')
def app(tmp_path):
    """Fresh application and database for every test."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'tracker_test.sqlite3'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
        'DELETE_PASSWORD': DELETE_PASSWORD,
        'HISTORY_PASSWORD': HISTORY_PASSWORD,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Unauthenticated API client."""
    return APIClient(app.test_client())


@pytest.fixture(scope='function')
def admin(app):
    api = APIClient(app.test_client())
    assert api.login_admin(), "admin login failed"
    return api


@pytest.fixture(scope='function')
def worker(app):
    api = APIClient(app.test_client())
    assert api.login_worker("Bob Builder", "W-100"), "worker login failed"
    return api


@pytest.fixture(scope='function')
def other_worker(app):
    api = APIClient(app.test_client())
    assert api.login_worker("Carol Crane", "W-200"), "worker login failed"
    return api


@pytest.fixture(scope='function')
def requester(app):
    """A registered requester, logged in."""
    create_requester("R-300", "Dana Driller", "drill-pass")
    api = APIClient(app.test_client())
    assert api.login_requester("R-300", "drill-pass"), "requester login failed"
    return api


# =============================================================================
# DATA FACTORY
# =============================================================================

class Factory:
    """Shortcuts for the common take -> approve -> return flows."""

    def __init__(self, admin: APIClient):
        self.admin = admin

    def submit_take(self, api: APIClient, materials: list, **extra) -> dict:
        response = api.post("/api/transactions", json={
            "transaction_type": "take",
            "materials": materials,
            **extra,
        })
        assert_response(response, 201, "Submit take request", "tracker/services/transaction_service.py:create_take")
        return response.get_json()["transaction"]

    def submit_return(self, api: APIClient, lines: list, **extra):
        """Raw response; callers check for 201 or the rejection they expect."""
        return api.post("/api/transactions", json={
            "transaction_type": "return",
            "materials": lines,
            **extra,
        })

    def approve(self, transaction_id: str) -> dict:
        response = self.admin.post(f"/api/transactions/{transaction_id}/approve")
        assert_response(response, 200, "Approve transaction", "tracker/services/approval_service.py:decide")
        return response.get_json()["transaction"]

    def decline(self, transaction_id: str) -> dict:
        response = self.admin.post(f"/api/transactions/{transaction_id}/decline")
        assert_response(response, 200, "Decline transaction", "tracker/services/approval_service.py:decide")
        return response.get_json()["transaction"]

    def approved_take(self, api: APIClient, materials: list) -> dict:
        take = self.submit_take(api, materials)
        return self.approve(take["id"])

    def approved_return(self, api: APIClient, reference_number: str, quantity: int, **extra) -> dict:
        response = self.submit_return(api, [{"reference_number": reference_number, "return_quantity": quantity}], **extra)
        assert_response(response, 201, "Submit return request", "tracker/services/return_service.py:submit_return")
        return self.approve(response.get_json()["transaction"]["id"])

    def fetch(self, transaction_id: str) -> dict:
        response = self.admin.get(f"/api/transactions/{transaction_id}")
        assert_response(response, 200, "Fetch transaction", "tracker/routes/transactions.py:get_transaction_route")
        return response.get_json()["transaction"]

    def line(self, transaction_id: str, reference_number: str) -> dict:
        for material in self.fetch(transaction_id)["materials"]:
            if material["reference_number"] == reference_number:
                return material
        raise AssertionError(f"reference {reference_number} not on transaction {transaction_id}")

    @staticmethod
    def refs(transaction: dict) -> list:
        return [m["reference_number"] for m in transaction["materials"]]


@pytest.fixture(scope='function')
def factory(admin):
    return Factory(admin)

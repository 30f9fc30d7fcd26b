"""
HTTP-level tests for identity and prescription endpoints.
"""

import base64

import pytest

from prescription_api.api.app import create_app
from prescription_api.api.auth import generate_token, verify_token
from prescription_api.config import PRESCRIPTIONS_COLLECTION
from prescription_api.database import RecordStore, init_engine
from prescription_api.errors import StoreFailure
from prescription_api.models import by_id_and_owner


# ── Helpers / Fakes ──────────────────────────────────────────────────

class RecordingStore:
    """Store double that records every call it receives."""
    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append(name)
            return []
        return record


class FailingStore(RecordingStore):
    def find_all(self, query, collection):
        raise StoreFailure()


def basic(username, password):
    raw = f"{username}:{password}".encode("utf-8")
    return {"Authorization": "Basic " + base64.b64encode(raw).decode("ascii")}


@pytest.fixture
def store():
    return RecordStore(init_engine("sqlite://"))


@pytest.fixture
def app(store):
    app = create_app(store=store)
    app.config["TESTING"] = True
    return app


def registered_client(app, username, password="pw"):
    client = app.test_client()
    response = client.post("/register", headers=basic(username, password))
    assert response.status_code == 200
    return client


def create(client, **fields):
    body = {"name": "Tylenol", "directions": "Use with food", "time": "Daily"}
    body.update(fields)
    response = client.post("/prescription", json=body)
    assert response.status_code == 200
    return response.get_json()


# ── Tests: register / login ──────────────────────────────────────────

def test_register_sets_session_cookie_for_username(app):
    client = app.test_client()
    response = client.post("/register", headers=basic("alice", "pw1"))
    assert response.status_code == 200
    assert response.get_json()["username"] == "alice"

    cookie = client.get_cookie("username")
    assert cookie is not None
    assert verify_token(cookie.value) == "alice"

    header = response.headers["Set-Cookie"]
    assert "Expires=" in header
    assert "HttpOnly" in header


def test_register_without_credentials_is_401(app):
    response = app.test_client().post("/register")
    assert response.status_code == 401


def test_register_wrong_scheme_is_401(app):
    response = app.test_client().post("/register", headers={"Authorization": "Bearer x"})
    assert response.status_code == 401


def test_register_duplicate_is_500(app):
    registered_client(app, "alice")
    response = app.test_client().post("/register", headers=basic("alice", "other"))
    assert response.status_code == 500
    assert "error" in response.get_json()


def test_login_after_register(app):
    registered_client(app, "alice", "pw1")
    client = app.test_client()
    response = client.post("/login", headers=basic("alice", "pw1"))
    assert response.status_code == 200
    assert verify_token(client.get_cookie("username").value) == "alice"


def test_login_failures_do_not_reveal_which(app):
    registered_client(app, "alice", "pw1")
    wrong_password = app.test_client().post("/login", headers=basic("alice", "bad"))
    unknown_user = app.test_client().post("/login", headers=basic("nobody", "pw1"))
    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.get_json() == unknown_user.get_json()


# ── Tests: request gate ──────────────────────────────────────────────

@pytest.mark.parametrize("method, path", [
    ("POST", "/prescription"),
    ("GET", "/prescription/abc"),
    ("PUT", "/prescription/abc"),
    ("DELETE", "/prescription/abc"),
    ("GET", "/prescriptions"),
    ("GET", "/unknown"),
])
def test_no_cookie_is_401_before_any_store_call(method, path):
    store = RecordingStore()
    app = create_app(store=store)
    response = app.test_client().open(path, method=method, json={"name": "x"})
    assert response.status_code == 401
    assert store.calls == []


def test_forged_cookie_is_401_without_store_call():
    store = RecordingStore()
    client = create_app(store=store).test_client()
    client.set_cookie("username", "alice")
    response = client.get("/prescriptions")
    assert response.status_code == 401
    assert store.calls == []


def test_cors_preflight_passes_gate_with_credentials():
    store = RecordingStore()
    client = create_app(store=store).test_client()
    response = client.options("/prescriptions", headers={
        "Origin": "http://localhost:5173",
        "Access-Control-Request-Method": "GET",
    })
    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
    assert response.headers["Access-Control-Allow-Credentials"] == "true"
    assert store.calls == []


def test_store_failure_is_500():
    client = create_app(store=FailingStore()).test_client()
    token, _ = generate_token("alice")
    client.set_cookie("username", token)
    response = client.get("/prescriptions")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Error accessing the database"}


# ── Tests: create / read ─────────────────────────────────────────────

def test_create_then_read_round_trip(app):
    client = registered_client(app, "alice")
    created = create(client, name="Tylenol", directions="Use with food", time="Daily")
    assert created["id"]
    assert created["owner"] == "alice"

    response = client.get(f"/prescription/{created['id']}")
    assert response.status_code == 200
    assert response.get_json() == created


def test_create_ignores_client_id_and_owner(app):
    client = registered_client(app, "alice")
    created = create(client, id="deadbeef", owner="bob")
    assert created["id"] != "deadbeef"
    assert created["owner"] == "alice"


def test_create_optional_fields_default_empty(app):
    client = registered_client(app, "alice")
    response = client.post("/prescription", json={"name": "Ibuprofen"})
    assert response.status_code == 200
    assert response.get_json()["directions"] == ""
    assert response.get_json()["time"] == ""


@pytest.mark.parametrize("body", [
    "not json",
    "[1, 2]",
    '{"directions": "no name"}',
    '{"name": ""}',
    '{"name": 42}',
    '{"name": "Tylenol", "time": 8}',
])
def test_create_rejects_bad_body_without_writing(app, body):
    client = registered_client(app, "alice")
    response = client.post("/prescription", data=body, content_type="application/json")
    assert response.status_code == 500
    assert "error" in response.get_json()
    assert client.get("/prescriptions").get_json() == []


def test_read_other_owners_record_is_404(app):
    alice = registered_client(app, "alice")
    bob = registered_client(app, "bob")
    created = create(alice)
    assert bob.get(f"/prescription/{created['id']}").status_code == 404


def test_read_missing_record_is_404(app):
    client = registered_client(app, "alice")
    assert client.get("/prescription/000000000000000000000000").status_code == 404


# ── Tests: update ────────────────────────────────────────────────────

def test_update_clears_omitted_fields(app):
    client = registered_client(app, "alice")
    created = create(client, name="Tylenol", directions="Use with food", time="Daily")
    response = client.put(f"/prescription/{created['id']}", json={"name": "Advil"})
    assert response.status_code == 200
    updated = response.get_json()
    assert updated["name"] == "Advil"
    assert updated["directions"] == ""
    assert updated["time"] == ""
    assert updated["owner"] == "alice"
    assert client.get(f"/prescription/{created['id']}").get_json() == updated


def test_update_without_name_keeps_stored_name(app):
    client = registered_client(app, "alice")
    created = create(client)
    response = client.put(f"/prescription/{created['id']}", json={"time": "Twice a day"})
    assert response.status_code == 200
    updated = response.get_json()
    assert updated["name"] == created["name"]
    assert updated["time"] == "Twice a day"
    assert updated["directions"] == ""


def test_update_is_idempotent(app):
    client = registered_client(app, "alice")
    created = create(client)
    payload = {"name": "Advil", "directions": "After meals", "time": "Nightly"}
    first = client.put(f"/prescription/{created['id']}", json=payload).get_json()
    second = client.put(f"/prescription/{created['id']}", json=payload).get_json()
    assert first == second
    assert client.get(f"/prescription/{created['id']}").get_json() == second


def test_update_cannot_reassign_owner(app):
    client = registered_client(app, "alice")
    created = create(client)
    response = client.put(f"/prescription/{created['id']}", json={"owner": "bob"})
    assert response.status_code == 200
    assert response.get_json()["owner"] == "alice"


def test_update_by_other_owner_is_404_and_leaves_record(app, store):
    alice = registered_client(app, "alice")
    bob = registered_client(app, "bob")
    created = create(alice)

    response = bob.put(f"/prescription/{created['id']}", json={"name": "Hijacked"})
    assert response.status_code == 404

    record = store.find_one(by_id_and_owner(created["id"], "alice"), PRESCRIPTIONS_COLLECTION)
    assert record == created


def test_update_with_bad_body_fails_closed(app):
    client = registered_client(app, "alice")
    created = create(client)
    response = client.put(f"/prescription/{created['id']}", data="{broken",
                          content_type="application/json")
    assert response.status_code == 500
    assert client.get(f"/prescription/{created['id']}").get_json() == created


def test_update_rejects_empty_name(app):
    client = registered_client(app, "alice")
    created = create(client)
    response = client.put(f"/prescription/{created['id']}", json={"name": "  "})
    assert response.status_code == 500
    assert client.get(f"/prescription/{created['id']}").get_json()["name"] == "Tylenol"


# ── Tests: delete ────────────────────────────────────────────────────

def test_delete_own_record(app):
    client = registered_client(app, "alice")
    created = create(client)
    assert client.delete(f"/prescription/{created['id']}").status_code == 200
    assert client.get(f"/prescription/{created['id']}").status_code == 404


def test_delete_by_other_owner_is_404_and_keeps_record(app):
    alice = registered_client(app, "alice")
    bob = registered_client(app, "bob")
    created = create(alice)
    assert bob.delete(f"/prescription/{created['id']}").status_code == 404
    assert alice.get(f"/prescription/{created['id']}").status_code == 200


def test_delete_twice_is_404(app):
    client = registered_client(app, "alice")
    created = create(client)
    client.delete(f"/prescription/{created['id']}")
    assert client.delete(f"/prescription/{created['id']}").status_code == 404


# ── Tests: list ──────────────────────────────────────────────────────

def test_list_returns_exactly_callers_records(app):
    alice = registered_client(app, "alice")
    bob = registered_client(app, "bob")
    carol = registered_client(app, "carol")
    alice_ids = {create(alice, name=n)["id"] for n in ("A", "B", "C")}
    bob_ids = {create(bob)["id"]}

    assert {p["id"] for p in alice.get("/prescriptions").get_json()} == alice_ids
    assert {p["id"] for p in bob.get("/prescriptions").get_json()} == bob_ids
    assert carol.get("/prescriptions").get_json() == []


# ── Tests: scenario ──────────────────────────────────────────────────

def test_register_create_and_cross_owner_read():
    app = create_app(store=RecordStore(init_engine("sqlite://")))
    alice = app.test_client()
    assert alice.post("/register", headers=basic("alice", "pw1")).status_code == 200
    assert verify_token(alice.get_cookie("username").value) == "alice"

    response = alice.post("/prescription",
                          json={"name": "Tylenol", "directions": "x", "time": "daily"})
    assert response.status_code == 200
    body = response.get_json()
    assert body["name"] == "Tylenol"
    assert body["id"]

    other = registered_client(app, "bob", "pw2")
    assert other.get(f"/prescription/{body['id']}").status_code == 404


# ── Tests: error handlers ────────────────────────────────────────────

def test_unknown_endpoint_with_session_is_json_404(app):
    client = registered_client(app, "alice")
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.get_json()["error"] == "Endpoint not found"


def test_wrong_method_is_json_405(app):
    client = registered_client(app, "alice")
    response = client.patch("/prescriptions")
    assert response.status_code == 405
    assert response.get_json()["error"] == "Method not allowed"

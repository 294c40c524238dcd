"""
tests/test_api_routes.py -- Integration tests for the CronoCodex REST API.

These tests exercise the full stack: FastAPI routing -> get_current_principal
-> AuthGate decision -> PrincipalStore/HRStore -> response model
serialization -> exception handlers. Unit testing the route functions would
miss the dependency wiring and the AuthError -> status translation, which is
most of what can go wrong here.

Coverage:
  - Login: 200 with token, uniform 401 on failure, no-store on both
  - Auth failures: 401 + WWW-Authenticate without or with a bad token
  - Users: create down the chain, 403 off the chain, 409 duplicate, deactivate
  - Time events: own log, supervisor oversight, out-of-scope 403
  - Absences: file, pending queue per approver, decide, 409 on re-decision
  - Store outage: 503 with Retry-After

Fixtures used (from conftest.py):
  - api_client: ApiContext(client, ids, gate) over the seeded G -> M -> H -> W
    chain plus H2 under M. All seeded accounts share conftest.PASSWORD.
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import OperationalError

from auth.gate import AuthGate
from conftest import PASSWORD, ApiContext


def _email(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@cronocodex.test"


def _new_worker(ctx: ApiContext) -> dict:
    resp = ctx.client.post(
        "/api/v1/users",
        json={"full_name": "New Worker", "email": _email("worker"), "password": PASSWORD, "role": "WORKER"},
        headers=ctx.headers_for(ctx.ids.h),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _file_absence(ctx: ApiContext, owner_id: int) -> dict:
    resp = ctx.client.post(
        "/api/v1/absences",
        json={"start_date": "2026-07-01", "end_date": "2026-07-10", "type": "VACATION"},
        headers=ctx.headers_for(owner_id),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Login / identity
# ---------------------------------------------------------------------------


class TestLogin:
    def test_login_success(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/api/v1/auth/login", json={"email": "w@cronocodex.test", "password": PASSWORD})
        assert resp.status_code == 200, resp.text
        assert resp.headers["cache-control"] == "no-store"
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 8 * 3600
        assert data["user"]["id"] == api_client.ids.w
        assert data["user"]["role"] == "WORKER"
        assert "password_hash" not in data["user"]
        assert api_client.gate.authenticate(data["access_token"]).id == api_client.ids.w

    @pytest.mark.parametrize(
        "email, password",
        [("w@cronocodex.test", "wrong-password"), ("nobody@cronocodex.test", PASSWORD)],
    )
    def test_login_failure_is_uniform(self, api_client: ApiContext, email: str, password: str) -> None:
        resp = api_client.client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 401
        assert resp.headers["cache-control"] == "no-store"
        assert resp.json() == {
            "error": {"code": "bad_credentials", "message": "Invalid email or password.", "detail": None}
        }

    def test_login_missing_fields(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/api/v1/auth/login", json={"email": "w@cronocodex.test"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_me(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/v1/auth/me", headers=api_client.headers_for(api_client.ids.h))
        assert resp.status_code == 200
        data = resp.json()
        assert data["user"]["id"] == api_client.ids.h
        assert data["can_create"] == ["WORKER"]
        assert data["is_approver"] is True

    def test_me_worker(self, api_client: ApiContext) -> None:
        data = api_client.client.get("/api/v1/auth/me", headers=api_client.headers_for(api_client.ids.w)).json()
        assert data["can_create"] == []
        assert data["is_approver"] is False


class TestAuthFailure:
    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/api/v1/auth/me"),
            ("get", "/api/v1/users"),
            ("get", "/api/v1/time-events/me"),
            ("get", "/api/v1/absences/me"),
            ("get", "/api/v1/absences/pending"),
        ],
    )
    def test_no_token(self, api_client: ApiContext, method: str, path: str) -> None:
        resp = getattr(api_client.client, method)(path)
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"
        assert resp.json()["error"]["code"] == "unauthenticated"

    @pytest.mark.parametrize("header", ["Bearer not-a-token", "Basic dXNlcjpwYXNz", "Bearer", "bearer x.y.z"])
    def test_bad_header(self, api_client: ApiContext, header: str) -> None:
        resp = api_client.client.get("/api/v1/auth/me", headers={"Authorization": header})
        assert resp.status_code == 401

    def test_token_with_stale_role(self, api_client: ApiContext) -> None:
        token = api_client.gate.codec.issue(api_client.ids.w, "GENERAL_ADMIN")
        resp = api_client.client.get("/api/v1/users", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class TestUsers:
    def test_create_down_the_chain(self, api_client: ApiContext) -> None:
        created = _new_worker(api_client)
        assert created["role"] == "WORKER"
        assert created["supervisor_id"] == api_client.ids.h
        assert created["active"] is True

    @pytest.mark.parametrize(
        "actor, role",
        [("h", "HR_ADMIN"), ("m", "WORKER"), ("g", "GENERAL_ADMIN"), ("w", "WORKER")],
    )
    def test_create_off_the_chain_forbidden(self, api_client: ApiContext, actor: str, role: str) -> None:
        resp = api_client.client.post(
            "/api/v1/users",
            json={"full_name": "X", "email": _email("x"), "password": PASSWORD, "role": role},
            headers=api_client.headers_for(getattr(api_client.ids, actor)),
        )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_duplicate_email_conflict(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/api/v1/users",
            json={"full_name": "Dup", "email": "W@cronocodex.test", "password": PASSWORD, "role": "WORKER"},
            headers=api_client.headers_for(api_client.ids.h),
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    @pytest.mark.parametrize(
        "body",
        [
            {"full_name": "Bad", "email": "not-an-email", "password": PASSWORD, "role": "WORKER"},
            {"full_name": "Bad", "email": "short@cronocodex.test", "password": "short", "role": "WORKER"},
            {"full_name": "Bad", "email": "role@cronocodex.test", "password": PASSWORD, "role": "SUPERUSER"},
        ],
    )
    def test_create_validation(self, api_client: ApiContext, body: dict) -> None:
        resp = api_client.client.post("/api/v1/users", json=body, headers=api_client.headers_for(api_client.ids.h))
        assert resp.status_code == 422

    def test_list_direct_reports(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/v1/users", headers=api_client.headers_for(api_client.ids.m))
        ids = {u["id"] for u in resp.json()}
        assert {api_client.ids.h, api_client.ids.h2} <= ids
        assert api_client.ids.w not in ids

    def test_general_admin_lists_everyone(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/v1/users", headers=api_client.headers_for(api_client.ids.g))
        ids = {u["id"] for u in resp.json()}
        assert {api_client.ids.g, api_client.ids.m, api_client.ids.h, api_client.ids.w} <= ids

    def test_deactivate_locks_out_token_and_login(self, api_client: ApiContext) -> None:
        created = _new_worker(api_client)
        login = api_client.client.post("/api/v1/auth/login", json={"email": created["email"], "password": PASSWORD})
        token = login.json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}
        assert api_client.client.get("/api/v1/auth/me", headers=headers).status_code == 200

        resp = api_client.client.patch(
            f"/api/v1/users/{created['id']}", json={"active": False}, headers=api_client.headers_for(api_client.ids.h)
        )
        assert resp.status_code == 200
        assert resp.json()["active"] is False

        assert api_client.client.get("/api/v1/auth/me", headers=headers).status_code == 401
        relogin = api_client.client.post(
            "/api/v1/auth/login", json={"email": created["email"], "password": PASSWORD}
        )
        assert relogin.status_code == 401

    def test_manage_requires_direct_supervision(self, api_client: ApiContext) -> None:
        resp = api_client.client.patch(
            f"/api/v1/users/{api_client.ids.w}", json={"active": False}, headers=api_client.headers_for(api_client.ids.m)
        )
        assert resp.status_code == 403

    def test_cannot_deactivate_self(self, api_client: ApiContext) -> None:
        resp = api_client.client.patch(
            f"/api/v1/users/{api_client.ids.g}", json={"active": False}, headers=api_client.headers_for(api_client.ids.g)
        )
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Time events
# ---------------------------------------------------------------------------


class TestTimeEvents:
    def test_clock_in_and_list(self, api_client: ApiContext) -> None:
        headers = api_client.headers_for(api_client.ids.w)
        resp = api_client.client.post("/api/v1/time-events", json={"type": "CLOCK_IN", "notes": "gate B"}, headers=headers)
        assert resp.status_code == 201
        created = resp.json()
        assert created["user_id"] == api_client.ids.w
        assert created["event_type"] == "CLOCK_IN"
        assert created["event_time"]

        listed = api_client.client.get("/api/v1/time-events/me", headers=headers).json()
        assert listed[0]["id"] == created["id"]

    def test_unknown_event_type(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/api/v1/time-events", json={"type": "LUNCH"}, headers=api_client.headers_for(api_client.ids.w)
        )
        assert resp.status_code == 422

    @pytest.mark.parametrize("viewer", ["h", "m", "g"])
    def test_supervisors_can_read(self, api_client: ApiContext, viewer: str) -> None:
        resp = api_client.client.get(
            f"/api/v1/time-events/{api_client.ids.w}", headers=api_client.headers_for(getattr(api_client.ids, viewer))
        )
        assert resp.status_code == 200

    @pytest.mark.parametrize("viewer, owner", [("h2", "w"), ("w", "h")])
    def test_out_of_scope_forbidden(self, api_client: ApiContext, viewer: str, owner: str) -> None:
        resp = api_client.client.get(
            f"/api/v1/time-events/{getattr(api_client.ids, owner)}",
            headers=api_client.headers_for(getattr(api_client.ids, viewer)),
        )
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Absences
# ---------------------------------------------------------------------------


class TestAbsences:
    def test_file_request(self, api_client: ApiContext) -> None:
        created = _file_absence(api_client, api_client.ids.w)
        assert created["status"] == "PENDING"
        assert created["user_id"] == api_client.ids.w
        mine = api_client.client.get("/api/v1/absences/me", headers=api_client.headers_for(api_client.ids.w)).json()
        assert created["id"] in {r["id"] for r in mine}

    def test_reversed_range_rejected(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/api/v1/absences",
            json={"start_date": "2026-07-10", "end_date": "2026-07-01"},
            headers=api_client.headers_for(api_client.ids.w),
        )
        assert resp.status_code == 422

    def test_worker_has_no_queue(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/api/v1/absences/pending", headers=api_client.headers_for(api_client.ids.w))
        assert resp.status_code == 403

    @pytest.mark.parametrize("viewer, visible", [("h", True), ("m", True), ("g", True), ("h2", False)])
    def test_pending_queue_per_approver(self, api_client: ApiContext, viewer: str, visible: bool) -> None:
        created = _file_absence(api_client, api_client.ids.w)
        resp = api_client.client.get(
            "/api/v1/absences/pending", headers=api_client.headers_for(getattr(api_client.ids, viewer))
        )
        assert resp.status_code == 200
        queue = {r["id"]: r for r in resp.json()}
        assert (created["id"] in queue) is visible
        if visible:
            assert queue[created["id"]]["employee_name"] == "W"

    def test_decide_then_conflict(self, api_client: ApiContext) -> None:
        created = _file_absence(api_client, api_client.ids.w)
        resp = api_client.client.patch(
            f"/api/v1/absences/{created['id']}",
            json={"status": "APPROVED", "decision_comment": "ok"},
            headers=api_client.headers_for(api_client.ids.h),
        )
        assert resp.status_code == 200, resp.text
        decided = resp.json()
        assert decided["status"] == "APPROVED"
        assert decided["approver_id"] == api_client.ids.h

        again = api_client.client.patch(
            f"/api/v1/absences/{created['id']}",
            json={"status": "REJECTED"},
            headers=api_client.headers_for(api_client.ids.m),
        )
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "already_decided"

    def test_out_of_scope_decision_forbidden(self, api_client: ApiContext) -> None:
        created = _file_absence(api_client, api_client.ids.w)
        resp = api_client.client.patch(
            f"/api/v1/absences/{created['id']}",
            json={"status": "APPROVED"},
            headers=api_client.headers_for(api_client.ids.h2),
        )
        assert resp.status_code == 403

    def test_own_request_cannot_be_self_approved(self, api_client: ApiContext) -> None:
        created = _file_absence(api_client, api_client.ids.h)
        resp = api_client.client.patch(
            f"/api/v1/absences/{created['id']}",
            json={"status": "APPROVED"},
            headers=api_client.headers_for(api_client.ids.h),
        )
        assert resp.status_code == 403

    def test_unknown_request_looks_like_out_of_scope(self, api_client: ApiContext) -> None:
        resp = api_client.client.patch(
            "/api/v1/absences/987654", json={"status": "APPROVED"}, headers=api_client.headers_for(api_client.ids.h)
        )
        assert resp.status_code == 403

    def test_pending_is_not_a_decision(self, api_client: ApiContext) -> None:
        created = _file_absence(api_client, api_client.ids.w)
        resp = api_client.client.patch(
            f"/api/v1/absences/{created['id']}",
            json={"status": "PENDING"},
            headers=api_client.headers_for(api_client.ids.h),
        )
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Store outage
# ---------------------------------------------------------------------------


class _DownDirectory:
    def find_by_id(self, principal_id):
        raise OperationalError("SELECT", {}, Exception("unable to open database file"))

    def find_credential(self, email):
        raise OperationalError("SELECT", {}, Exception("unable to open database file"))


def test_store_outage_is_503_not_a_grant(api_client: ApiContext) -> None:
    token = api_client.token_for(api_client.ids.g)
    app_state = api_client.client.app.state
    real_gate = app_state.gate
    app_state.gate = AuthGate(_DownDirectory(), real_gate.codec)
    try:
        resp = api_client.client.get("/api/v1/users", headers={"Authorization": f"Bearer {token}"})
        login = api_client.client.post("/api/v1/auth/login", json={"email": "g@cronocodex.test", "password": PASSWORD})
    finally:
        app_state.gate = real_gate
    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "5"
    assert resp.json()["error"]["code"] == "unavailable"
    assert login.status_code == 503

"""Integration tests for the authentication endpoints."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from lending_api.models.refresh_token import RefreshToken
from lending_api.services._shared.errors import StorageUnavailable
from lending_api.services._shared.ports import InMemoryRefreshTokenStore
from lending_api.services.sessions.credentials import digest_credential
from tests.factories.user import DEFAULT_PASSWORD, UserFactory
from tests.helpers.utils import bearer

API = "/api/v1"
PAYLOAD = {"email": "jane@example.com", "password": "s3cret-pass", "full_name": "Jane Roe"}


def _register(client, **overrides):
    resp = client.post(f"{API}/auth/register", json={**PAYLOAD, **overrides})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def _assert_problem(resp, status: int, code: str) -> None:
    assert resp.status_code == status
    assert resp.mimetype == "application/problem+json"
    body = resp.get_json()
    assert body["status"] == status
    assert body["code"] == code
    assert body["request_id"]


class _UnavailableStore(InMemoryRefreshTokenStore):
    def find_active_by_digest(self, digest):
        raise StorageUnavailable()


# ------------------------------- Register --------------------------------- #
def test_register_returns_token_pair(client) -> None:
    """Registering creates the account and opens its first session."""

    data = _register(client)

    assert data["token_type"] == "Bearer"
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["user"]["email"] == "jane@example.com"
    assert data["user"]["role"] == "borrower"
    assert "password" not in data["user"]


def test_register_stores_only_the_digest(client, session) -> None:
    data = _register(client)
    credential = data["refresh_token"]

    rows = session.execute(select(RefreshToken)).scalars().all()

    assert len(rows) == 1
    assert rows[0].token_digest == digest_credential(credential)
    assert rows[0].token_digest != credential
    assert rows[0].user_id == str(data["user"]["id"])


def test_register_records_request_metadata(client, session) -> None:
    resp = client.post(
        f"{API}/auth/register", json=PAYLOAD, headers={"User-Agent": "lending-app/2.3 (ios)"}
    )
    assert resp.status_code == 201

    row = session.execute(select(RefreshToken)).scalars().one()
    assert row.client_identity == "lending-app/2.3 (ios)"
    assert row.ip_address == "127.0.0.1"


def test_register_duplicate_email_conflicts(client) -> None:
    _register(client)

    resp = client.post(f"{API}/auth/register", json={**PAYLOAD, "email": "JANE@example.com"})

    _assert_problem(resp, 409, "conflict")


@pytest.mark.parametrize(
    "payload",
    [
        {"password": "s3cret-pass"},
        {"email": "not-an-email", "password": "s3cret-pass"},
        {"email": "jane@example.com", "password": "short"},
    ],
)
def test_register_rejects_invalid_payload(client, payload) -> None:
    resp = client.post(f"{API}/auth/register", json=payload)

    _assert_problem(resp, 422, "validation_error")
    assert resp.get_json()["details"]["errors"]


# -------------------------------- Login ----------------------------------- #
def test_login_returns_token_pair(client) -> None:
    _register(client)

    resp = client.post(
        f"{API}/auth/login", json={"email": PAYLOAD["email"], "password": PAYLOAD["password"]}
    )

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["user"]["full_name"] == "Jane Roe"


def test_login_wrong_password_is_unauthorized(client) -> None:
    _register(client)

    resp = client.post(f"{API}/auth/login", json={"email": PAYLOAD["email"], "password": "nope"})

    _assert_problem(resp, 401, "unauthorized")


def test_login_disabled_user_is_unauthorized(client, session) -> None:
    user = UserFactory(is_active=False)
    session.commit()

    resp = client.post(f"{API}/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})

    _assert_problem(resp, 401, "unauthorized")


# ------------------------------- Refresh ---------------------------------- #
def test_refresh_rotates_credential(client) -> None:
    first = _register(client)

    resp = client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["refresh_token"] != first["refresh_token"]
    assert data["access_token"]
    assert data["user_id"] == str(first["user"]["id"])
    assert data["token_type"] == "Bearer"


def test_refresh_replay_is_rejected(client) -> None:
    """A rotated credential can never be exchanged a second time."""

    first = _register(client)
    ok = client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert ok.status_code == 200

    replay = client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})

    _assert_problem(replay, 401, "invalid_refresh_token")


def test_refresh_chain_links_records(client, session) -> None:
    first = _register(client)
    second = client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})
    second_credential = second.get_json()["data"]["refresh_token"]

    rows = {
        row.token_digest: row for row in session.execute(select(RefreshToken)).scalars().all()
    }
    parent = rows[digest_credential(first["refresh_token"])]
    child = rows[digest_credential(second_credential)]

    assert parent.revoked_reason == "rotated"
    assert parent.replaced_by == child.id
    assert child.revoked_at is None


def test_refresh_unknown_credential_is_rejected(client) -> None:
    resp = client.post(f"{API}/auth/refresh", json={"refresh_token": "0" * 80})

    _assert_problem(resp, 401, "invalid_refresh_token")


def test_refresh_requires_credential(client) -> None:
    resp = client.post(f"{API}/auth/refresh", json={})

    _assert_problem(resp, 422, "validation_error")


def test_refresh_store_outage_is_service_unavailable(client, monkeypatch) -> None:
    first = _register(client)
    monkeypatch.setattr(
        "lending_api.api.deps.get_refresh_token_store", lambda: _UnavailableStore()
    )

    resp = client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})

    _assert_problem(resp, 503, "service_unavailable")


# -------------------------------- Logout ---------------------------------- #
def test_logout_revokes_supplied_credential(client) -> None:
    first = _register(client)

    resp = client.post(
        f"{API}/auth/logout",
        json={"refresh_token": first["refresh_token"]},
        headers=bearer(first["access_token"]),
    )

    assert resp.status_code == 204
    assert resp.data == b""
    again = client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})
    _assert_problem(again, 401, "invalid_refresh_token")


def test_logout_without_credential_ends_every_session(client) -> None:
    first = _register(client)
    other = client.post(
        f"{API}/auth/login", json={"email": PAYLOAD["email"], "password": PAYLOAD["password"]}
    ).get_json()["data"]

    resp = client.post(f"{API}/auth/logout", json={}, headers=bearer(first["access_token"]))

    assert resp.status_code == 204
    for credential in (first["refresh_token"], other["refresh_token"]):
        r = client.post(f"{API}/auth/refresh", json={"refresh_token": credential})
        _assert_problem(r, 401, "invalid_refresh_token")


def test_logout_with_inactive_credential_is_rejected(client) -> None:
    first = _register(client)
    client.post(f"{API}/auth/refresh", json={"refresh_token": first["refresh_token"]})

    resp = client.post(
        f"{API}/auth/logout",
        json={"refresh_token": first["refresh_token"]},
        headers=bearer(first["access_token"]),
    )

    _assert_problem(resp, 401, "invalid_refresh_token")


def test_logout_requires_access_token(client) -> None:
    resp = client.post(f"{API}/auth/logout", json={})

    assert resp.status_code == 401


# -------------------------------- Health ---------------------------------- #
def test_health_reports_store(client) -> None:
    resp = client.get(f"{API}/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["db"] == "ok"
    assert body["refresh_token_store"] == "sqlalchemy"


def test_request_id_is_echoed(client) -> None:
    resp = client.get(f"{API}/health", headers={"X-Request-ID": "req-123"})

    assert resp.headers["X-Request-ID"] == "req-123"


def test_request_id_is_fresh_for_every_request(client) -> None:
    first = client.get(f"{API}/health", headers={"X-Request-ID": "req-1"})
    second = client.get(f"{API}/health", headers={"X-Request-ID": "req-2"})
    third = client.get(f"{API}/health")

    assert first.headers["X-Request-ID"] == "req-1"
    assert second.headers["X-Request-ID"] == "req-2"
    assert third.headers["X-Request-ID"] not in {"req-1", "req-2"}


def test_problem_request_id_follows_the_request(client) -> None:
    client.get(f"{API}/health", headers={"X-Request-ID": "req-1"})

    resp = client.post(f"{API}/auth/refresh", json={}, headers={"X-Request-ID": "req-2"})

    assert resp.get_json()["request_id"] == "req-2"


def test_unknown_route_is_problem_json(client) -> None:
    resp = client.get(f"{API}/does-not-exist")

    _assert_problem(resp, 404, "not_found")

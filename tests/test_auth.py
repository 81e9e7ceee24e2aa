from __future__ import annotations

from typing import Any

import pytest
from google.oauth2 import id_token
from pytest import MonkeyPatch

from tasktracker.core.auth import Actor, GoogleIdentityVerifier
from tasktracker.core.errors import AuthenticationError
from tests.shared import OTHER_TOKEN, SERVICE_API_KEY, ApiTestContext, auth_headers

CLIENT_ID = "client-123.apps.googleusercontent.com"


def _verifier(allowed_emails: list[str] | None = None) -> GoogleIdentityVerifier:
    return GoogleIdentityVerifier(
        client_id=CLIENT_ID,
        allowed_emails=allowed_emails if allowed_emails is not None else ["alice@example.com"],
        request_factory=object,
    )


def test_api_requires_token(api_context: ApiTestContext) -> None:
    response = api_context.client.get("/api/tasks")

    assert response.status_code == 401
    assert response.json()["error"] == {
        "code": "UNAUTHORIZED",
        "message": "No token provided",
        "issues": [],
    }


def test_api_rejects_invalid_token(api_context: ApiTestContext) -> None:
    response = api_context.client.get("/api/tasks", headers=auth_headers("forged-token"))

    assert response.status_code == 401
    assert response.json()["error"]["message"].startswith("Invalid token")
    assert api_context.verifier.verified_tokens == ["forged-token"]


def test_api_accepts_verified_token_and_records_actor(api_context: ApiTestContext) -> None:
    response = api_context.client.post(
        "/api/tasks",
        json={"title": "Owned by Bob"},
        headers=auth_headers(OTHER_TOKEN),
    )

    assert response.status_code == 201
    assert response.json()["created_by"] == "bob@example.com"


def test_api_accepts_service_api_key(api_context: ApiTestContext) -> None:
    response = api_context.client.post(
        "/api/tasks",
        json={"title": "Filed by automation"},
        headers={"X-API-Key": SERVICE_API_KEY},
    )

    assert response.status_code == 201
    assert response.json()["created_by"] == "service@tasktracker.local"
    assert api_context.verifier.verified_tokens == []


def test_api_rejects_wrong_service_api_key_even_with_token(api_context: ApiTestContext) -> None:
    response = api_context.client.get(
        "/api/tasks",
        headers={"X-API-Key": "wrong-key", **auth_headers()},
    )

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid API key"


def test_non_bearer_authorization_is_treated_as_missing(api_context: ApiTestContext) -> None:
    response = api_context.client.get("/api/tasks", headers={"Authorization": "Basic abc"})

    assert response.status_code == 401
    assert response.json()["error"]["message"] == "No token provided"


def test_preflight_requests_skip_auth(api_context: ApiTestContext) -> None:
    response = api_context.client.options(
        "/api/tasks",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


def test_google_verifier_returns_actor_for_allowed_email(monkeypatch: MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_verify(token: str, request: Any, audience: str | None = None) -> dict[str, Any]:
        captured.update(token=token, audience=audience)
        return {
            "email": "Alice@Example.com",
            "name": "Alice",
            "picture": "https://example.com/alice.png",
        }

    monkeypatch.setattr(id_token, "verify_oauth2_token", fake_verify)

    actor = _verifier().verify("google-id-token")

    assert actor == Actor(
        email="Alice@Example.com",
        name="Alice",
        picture="https://example.com/alice.png",
    )
    assert captured == {"token": "google-id-token", "audience": CLIENT_ID}


def test_google_verifier_rejects_email_outside_allow_list(monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setattr(
        id_token,
        "verify_oauth2_token",
        lambda token, request, audience=None: {"email": "mallory@example.com"},
    )

    with pytest.raises(AuthenticationError, match="Email not authorized"):
        _verifier().verify("google-id-token")


def test_google_verifier_rejects_everyone_with_empty_allow_list(monkeypatch: MonkeyPatch) -> None:
    monkeypatch.setattr(
        id_token,
        "verify_oauth2_token",
        lambda token, request, audience=None: {"email": "alice@example.com"},
    )

    with pytest.raises(AuthenticationError, match="Email not authorized"):
        _verifier(allowed_emails=[]).verify("google-id-token")


def test_google_verifier_wraps_verification_failures(monkeypatch: MonkeyPatch) -> None:
    def fake_verify(token: str, request: Any, audience: str | None = None) -> dict[str, Any]:
        raise ValueError("Token expired")

    monkeypatch.setattr(id_token, "verify_oauth2_token", fake_verify)

    with pytest.raises(AuthenticationError, match="Invalid token: Token expired"):
        _verifier().verify("google-id-token")


def test_google_verifier_requires_client_id() -> None:
    verifier = GoogleIdentityVerifier(
        client_id=None,
        allowed_emails=["alice@example.com"],
        request_factory=object,
    )

    with pytest.raises(AuthenticationError, match="not configured"):
        verifier.verify("google-id-token")

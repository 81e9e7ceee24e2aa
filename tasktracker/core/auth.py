from __future__ import annotations

import secrets
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Annotated, Any, Protocol

from fastapi import Depends, status
from fastapi.responses import JSONResponse
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from tasktracker.core.errors import AuthenticationError
from tasktracker.core.logging import bind_log_context, get_logger

PROTECTED_PATH_PREFIX = "/api"

logger = get_logger("tasktracker.core.auth")


@dataclass(frozen=True, slots=True)
class Actor:
    email: str
    name: str | None = None
    picture: str | None = None


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> Actor: ...


class GoogleIdentityVerifier:
    """Verifies Google ID tokens and restricts access to an email allow-list."""

    def __init__(
        self,
        *,
        client_id: str | None,
        allowed_emails: Sequence[str],
        request_factory: Callable[[], Any] = google_requests.Request,
    ) -> None:
        self._client_id = client_id
        self._allowed_emails = frozenset(email.strip().lower() for email in allowed_emails)
        self._request_factory = request_factory

    def verify(self, token: str) -> Actor:
        if not self._client_id:
            raise AuthenticationError("Identity verification is not configured.")
        try:
            payload = id_token.verify_oauth2_token(
                token,
                self._request_factory(),
                audience=self._client_id,
            )
        except (ValueError, GoogleAuthError) as exc:
            raise AuthenticationError(f"Invalid token: {exc}") from exc

        email = str(payload.get("email") or "").strip()
        if not email or email.lower() not in self._allowed_emails:
            raise AuthenticationError("Invalid token: Email not authorized")
        return Actor(email=email, name=payload.get("name"), picture=payload.get("picture"))


def _extract_bearer_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization")
    if authorization is None:
        return None
    prefix = "bearer "
    if not authorization.lower().startswith(prefix):
        return None
    token = authorization[len(prefix) :].strip()
    return token if token else None


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={
            "error": {
                "code": AuthenticationError.code,
                "message": message,
                "issues": [],
            }
        },
    )


class ActorAuthMiddleware(BaseHTTPMiddleware):
    """Resolves the calling actor for every request under the API prefix.

    A service API key (``X-API-Key``) is checked first; otherwise a bearer ID
    token is handed to the identity verifier. The resolved actor is stored on
    ``request.state.actor``.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        verifier: IdentityVerifier,
        service_api_key: str | None,
        service_actor: Actor,
    ) -> None:
        super().__init__(app)
        self._verifier = verifier
        normalized = service_api_key.strip() if service_api_key is not None else ""
        self._service_api_key = normalized or None
        self._service_actor = service_actor

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.method == "OPTIONS":
            return await call_next(request)
        if not request.url.path.startswith(PROTECTED_PATH_PREFIX):
            return await call_next(request)

        try:
            actor = await self._resolve_actor(request)
        except AuthenticationError as exc:
            logger.info("auth.rejected", path=request.url.path, reason=exc.message)
            return _unauthorized(exc.message)

        request.state.actor = actor
        bind_log_context(actor=actor.email)
        return await call_next(request)

    async def _resolve_actor(self, request: Request) -> Actor:
        provided_key = request.headers.get("X-API-Key")
        if provided_key is not None:
            if self._service_api_key is not None and secrets.compare_digest(
                provided_key.strip(), self._service_api_key
            ):
                return self._service_actor
            raise AuthenticationError("Invalid API key")

        token = _extract_bearer_token(request)
        if token is None:
            raise AuthenticationError("No token provided")
        return await run_in_threadpool(self._verifier.verify, token)


def get_current_actor(request: Request) -> Actor:
    actor = getattr(request.state, "actor", None)
    if not isinstance(actor, Actor):
        raise AuthenticationError("No authenticated actor on request.")
    return actor


CurrentActor = Annotated[Actor, Depends(get_current_actor)]

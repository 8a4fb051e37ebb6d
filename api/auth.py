"""
Authentication for the API and the console pages.

Sign-in itself happens in the browser through the Firebase JS SDK (email/
password or anonymous).  The server only verifies what Firebase issued:

    Authorization: Bearer <ID token>    -> JSON API clients
    <APP_SESSION_COOKIE> cookie         -> console pages (set by POST /session)

Verification goes through firebase_admin.auth; the verified claims become an
``Actor``.  A ``region`` custom claim pins the actor to one governorate.
Anonymous sign-ins are accepted only when APP_ALLOW_ANONYMOUS is set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError

from api.store import StoreError, init_firebase
from utils.config import AppConfig, get_config

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Credentials are missing, invalid, expired, revoked, or not allowed."""


class LoginRequired(Exception):
    """Raised by page dependencies; the app turns it into a redirect to /login."""


@dataclass(frozen=True)
class Actor:
    """The signed-in user behind a request."""

    uid: str
    name: str = ""
    email: str = ""
    region: str | None = None
    anonymous: bool = False

    @property
    def display_name(self) -> str:
        if self.anonymous:
            return "Anonymous"
        return self.name or self.email or self.uid

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Actor":
        """Build an Actor from verified Firebase token claims."""
        firebase = claims.get("firebase") or {}
        return cls(
            uid=claims.get("uid") or claims.get("sub") or "",
            name=claims.get("name") or "",
            email=claims.get("email") or "",
            region=claims.get("region") or None,
            anonymous=firebase.get("sign_in_provider") == "anonymous",
        )


_INVALID_CREDENTIALS = (
    auth.InvalidIdTokenError,
    auth.InvalidSessionCookieError,
    auth.UserDisabledError,
    ValueError,
)


class TokenVerifier:
    """Verifies Firebase ID tokens and session cookies via firebase_admin.auth."""

    def __init__(self, cfg: AppConfig) -> None:
        self._cfg = cfg

    def verify_id_token(self, token: str) -> dict[str, Any]:
        init_firebase(self._cfg)
        try:
            return auth.verify_id_token(token, check_revoked=True)
        except _INVALID_CREDENTIALS as exc:
            raise AuthError(str(exc)) from exc
        except FirebaseError as exc:
            raise StoreError(f"Token verification failed: {exc}") from exc

    def verify_session_cookie(self, cookie: str) -> dict[str, Any]:
        init_firebase(self._cfg)
        try:
            return auth.verify_session_cookie(cookie, check_revoked=True)
        except _INVALID_CREDENTIALS as exc:
            raise AuthError(str(exc)) from exc
        except FirebaseError as exc:
            raise StoreError(f"Session verification failed: {exc}") from exc

    def create_session_cookie(self, id_token: str, expires_in: timedelta) -> str:
        init_firebase(self._cfg)
        try:
            return auth.create_session_cookie(id_token, expires_in=expires_in)
        except _INVALID_CREDENTIALS as exc:
            raise AuthError(str(exc)) from exc
        except FirebaseError as exc:
            raise StoreError(f"Session creation failed: {exc}") from exc

    def revoke(self, uid: str) -> None:
        """Revoke the user's refresh tokens (logout everywhere)."""
        init_firebase(self._cfg)
        try:
            auth.revoke_refresh_tokens(uid)
        except FirebaseError as exc:
            raise StoreError(f"Token revocation failed: {exc}") from exc


_verifier: TokenVerifier | None = None


def set_verifier(verifier: TokenVerifier | None) -> None:
    global _verifier
    _verifier = verifier


def get_verifier() -> TokenVerifier:
    """FastAPI dependency: the process-wide TokenVerifier."""
    global _verifier
    if _verifier is None:
        _verifier = TokenVerifier(get_config())
    return _verifier


def authenticate(request: Request, verifier: TokenVerifier, cfg: AppConfig) -> Actor:
    """Resolve the request's credentials into an Actor.

    A bearer token wins over the session cookie.

    Raises:
        AuthError: no credentials, invalid credentials, or a disallowed
            anonymous sign-in.
    """
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        claims = verifier.verify_id_token(token.strip())
    else:
        cookie = request.cookies.get(cfg.session_cookie)
        if not cookie:
            raise AuthError("Not signed in")
        claims = verifier.verify_session_cookie(cookie)

    actor = Actor.from_claims(claims)
    if not actor.uid:
        raise AuthError("Token has no subject")
    if actor.anonymous and not cfg.allow_anonymous:
        raise AuthError("Anonymous sign-in is disabled")
    return actor


def get_actor(
    request: Request,
    verifier: TokenVerifier = Depends(get_verifier),
    cfg: AppConfig = Depends(get_config),
) -> Actor:
    """FastAPI dependency for JSON routes: 401 when not authenticated."""
    try:
        return authenticate(request, verifier, cfg)
    except AuthError as exc:
        logger.info("auth rejected path=%s reason=%s", request.url.path, exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def get_page_actor(
    request: Request,
    verifier: TokenVerifier = Depends(get_verifier),
    cfg: AppConfig = Depends(get_config),
) -> Actor:
    """FastAPI dependency for HTML routes: redirect to /login when not authenticated."""
    try:
        return authenticate(request, verifier, cfg)
    except AuthError as exc:
        logger.info("login required path=%s reason=%s", request.url.path, exc)
        raise LoginRequired() from exc

"""
Console sign-in and sign-out.

Routes:
    GET  /login    → login.html (Firebase JS SDK sign-in form)
    POST /session  → exchange a fresh Firebase ID token for a session cookie
    POST /logout   → revoke refresh tokens, drop the cookie

The browser signs in with the Firebase JS SDK, then posts the ID token
here.  The server answers with an httpOnly session cookie, which the page
routes (api.routes.frontend) verify on every request.
"""

import logging
import time
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from pydantic import BaseModel, Field

from api.auth import Actor, AuthError, TokenVerifier, authenticate, get_verifier
from api.routes import frontend
from api.store import StoreError
from utils.config import AppConfig, get_config

logger = logging.getLogger(__name__)

router = APIRouter(tags=["session"])

# Firebase only mints session cookies from recently signed-in ID tokens.
_MAX_AUTH_AGE_SECONDS = 5 * 60


class SessionIn(BaseModel):
    id_token: str = Field(..., min_length=1, description="Firebase ID token")


@router.get("/login", response_class=HTMLResponse, include_in_schema=False)
def login_page(request: Request, cfg: AppConfig = Depends(get_config)) -> HTMLResponse:
    """Sign-in page; the Firebase web config is rendered into the page."""
    return frontend.render(
        request,
        "login.html",
        {
            "firebase_config": {
                "apiKey": cfg.firebase_web_api_key,
                "authDomain": cfg.firebase_auth_domain,
                "projectId": cfg.firebase_project_id,
            },
            "allow_anonymous": cfg.allow_anonymous,
        },
    )


@router.post("/session", summary="Start a console session")
def create_session(
    request: Request,
    body: SessionIn,
    verifier: TokenVerifier = Depends(get_verifier),
    cfg: AppConfig = Depends(get_config),
) -> JSONResponse:
    """Verify the ID token and set the session cookie.

    Raises:
        HTTPException 401: invalid token, stale sign-in, or anonymous
            sign-in while APP_ALLOW_ANONYMOUS is off.
    """
    try:
        claims = verifier.verify_id_token(body.id_token)
        actor = Actor.from_claims(claims)
        if actor.anonymous and not cfg.allow_anonymous:
            raise AuthError("Anonymous sign-in is disabled")
        if time.time() - float(claims.get("auth_time", 0)) > _MAX_AUTH_AGE_SECONDS:
            raise AuthError("Recent sign-in required")
        cookie = verifier.create_session_cookie(
            body.id_token, timedelta(days=cfg.session_days)
        )
    except AuthError as exc:
        logger.info("session rejected reason=%s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    logger.info("session started uid=%s region=%s anonymous=%s",
                actor.uid, actor.region or "-", actor.anonymous)
    response = JSONResponse({"status": "ok", "redirect": "/"})
    response.set_cookie(
        cfg.session_cookie,
        cookie,
        max_age=cfg.session_days * 24 * 3600,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
    )
    return response


@router.post("/logout", summary="End the console session")
def logout(
    request: Request,
    verifier: TokenVerifier = Depends(get_verifier),
    cfg: AppConfig = Depends(get_config),
) -> Response:
    """Revoke the user's tokens (best effort) and clear the cookie."""
    try:
        actor = authenticate(request, verifier, cfg)
    except (AuthError, StoreError):
        actor = None
    if actor is not None:
        try:
            verifier.revoke(actor.uid)
        except StoreError as exc:
            logger.warning("token revocation failed uid=%s: %s", actor.uid, exc)
        logger.info("session ended uid=%s", actor.uid)

    if request.headers.get("HX-Request"):
        response: Response = Response(status_code=204, headers={"HX-Redirect": "/login"})
    else:
        response = RedirectResponse("/login", status_code=303)
    response.delete_cookie(cfg.session_cookie)
    return response

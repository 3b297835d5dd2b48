"""
api/routes/v1/auth.py -- Session endpoints for JSON clients.

  POST /api/v1/auth/login   -- check credentials, return a bearer token and
                               set the same token as the session cookie
  POST /api/v1/auth/logout  -- expire the session cookie
  GET  /api/v1/auth/me      -- the account the current token belongs to

Login is rate-limited per client address and goes through
authenticate_user(), which spends the same bcrypt time whether or not the
username exists. Both failure kinds return one bad_credentials body.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, LoginRequest, LoginResponse, MeResponse
from auth.dependencies import get_current_user
from auth.models import Identity
from auth.store import UserStore
from auth.tokens import TokenCodec, authenticate_user, clear_auth_cookie, set_auth_cookie
from core.limiter import limiter, login_rate_limit

logger = logging.getLogger("parkspot.api")

router = APIRouter()

_BAD_CREDENTIALS = ErrorResponse(error=ErrorDetail(code="bad_credentials", message="Invalid username or password"))


def _uncached(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit)  # below @router so the registered endpoint is the limited one
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Exchange a username and password for a session token."""
    username = body.username.strip()
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, username, body.password)
    if user is None:
        logger.info("API login rejected for username=%r", username)
        return _uncached(JSONResponse(status_code=401, content=_BAD_CREDENTIALS.model_dump()))

    codec: TokenCodec = request.app.state.codec
    token = codec.sign(user.id, user.username)
    payload = LoginResponse(
        access_token=token,
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=codec.expire_seconds,
        username=user.username,
    )
    resp = JSONResponse(content=payload.model_dump())
    set_auth_cookie(resp, token, request.app.state.settings)
    logger.info("API login for %s", user.username)
    return _uncached(resp)


@router.post("/auth/logout")
def logout(request: Request) -> JSONResponse:
    """Expire the cookie. A copied token still works until its exp."""
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp, request.app.state.settings)
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, identity: Identity = Depends(get_current_user)) -> MeResponse:
    """Return the account behind the token.

    A token outlives its account if the user row is deleted, so the id is
    checked against the store and a missing account is treated as logged out.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(identity.user_id)
    if user is None:
        logger.info("Token for missing user_id=%d rejected", identity.user_id)
        raise HTTPException(
            status_code=401,
            detail=ErrorDetail(code="unauthorized", message="Authentication required.").model_dump(),
        )
    return MeResponse(user_id=user.id, username=user.username, created_at=user.created_at or "")

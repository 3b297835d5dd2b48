"""
auth/dependencies.py -- Request identity resolution and FastAPI auth helpers.

resolve_identity() is called exactly once per request by the session
middleware in api/main.py. It returns an Identity or None and never raises:
a missing, malformed, forged, or expired token all resolve to anonymous.
The result is stored on request.state.user.

Token sources, in priority order:
  1. "access_token" cookie -- set by the web login/registration flow.
  2. Authorization: Bearer <token> header -- JSON API clients.

current_identity() reads what the middleware stored. It is also exposed as a
Jinja2 global so templates can show the logged-in username.

get_current_user() is the hard variant for the JSON API: HTTP 401 when
anonymous. The HTML routes use their own redirect gate in web/routes.py.

Layer rule: no imports from web/ or records/.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.models import Identity
from auth.tokens import COOKIE_NAME, InvalidTokenError, TokenCodec

logger = logging.getLogger("parkspot.auth")


def resolve_identity(request: Request) -> Identity | None:
    """Decode the request's session token into an Identity, or None."""
    token: str | None = request.cookies.get(COOKIE_NAME)

    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if not token:
        return None

    codec: TokenCodec = request.app.state.codec
    try:
        return codec.verify(token)
    except InvalidTokenError as exc:
        logger.debug("Session token rejected on %s: %s", request.url.path, exc)
        return None


def current_identity(request: Request) -> Identity | None:
    """Return the identity attached by the session middleware (None = anonymous)."""
    return getattr(request.state, "user", None)


def get_current_user(request: Request) -> Identity:
    """Require authentication. Raises HTTP 401 if the request is anonymous.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_user)): ...
    """
    identity = current_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return identity

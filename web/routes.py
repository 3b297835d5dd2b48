"""
web/routes.py -- Jinja2 template routes for the ParkSpot web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same stores, same token codec) but return HTML instead of JSON.

Identity comes from request.state.user, filled in by the session middleware
before any handler runs. Protected routes call _require_auth() first; an
anonymous caller is redirected to / with the same 302 on every protected path.

Owner ids are never read from form data. Posts and reservations are stamped
with the verified identity by RecordStore.

Routes:
  GET  /                     -- logged in: 302 /homepage; else login view
  GET  /login                -- same as /
  POST /login                -- password login, sets session cookie
  POST /register             -- create account, sets session cookie
  GET  /logout, POST /logout -- clear cookie, 302 /
  GET  /create-account       -- registration view
  GET  /homepage             -- landing with history and posts (auth required)
  GET  /park                 -- parking view with history (empty if anonymous)
  POST /park                 -- landing with history (empty if anonymous)
  GET  /create-post          -- post form (auth required)
  POST /create-post          -- validate + insert post (auth required)
  POST /reserve              -- record a reservation (auth required)
  POST /navigate-to-home     -- landing with history
  POST /navigate-to-reserve  -- landing with history
  POST /view-history         -- landing with history (auth required)
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError

from auth.dependencies import current_identity
from auth.models import Identity, User
from auth.store import UserStore
from auth.tokens import TokenCodec, authenticate_user, clear_auth_cookie, hash_password, set_auth_cookie
from core.limiter import limiter, login_rate_limit, retry_after_seconds
from records.store import RecordStore
from web.forms import (
    LOGIN_FAILED,
    TOO_MANY_ATTEMPTS,
    USERNAME_TAKEN,
    parse_login,
    parse_post,
    parse_registration,
    parse_reservation,
)

logger = logging.getLogger("parkspot.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# Templates call current_identity(request) to show the logged-in username
# without every handler passing it explicitly.
templates.env.globals["current_identity"] = current_identity
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Return a redirect to / if the request is anonymous, None if OK.

    Call at the top of protected route handlers:
        if redirect := _require_auth(request):
            return redirect
    """
    if current_identity(request) is None:
        return RedirectResponse("/", status_code=302)
    return None


def _render(request: Request, name: str, status_code: int = 200, **context) -> HTMLResponse:
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def _history(request: Request) -> list:
    records: RecordStore = request.app.state.records
    return records.get_user_history(current_identity(request))


def _landing(request: Request) -> HTMLResponse:
    records: RecordStore = request.app.state.records
    identity = current_identity(request)
    return _render(
        request,
        "homepage.html",
        history=records.get_user_history(identity),
        posts=records.list_posts(identity),
    )


def _login_view(request: Request, errors: list[str], status_code: int = 200) -> HTMLResponse:
    return _render(request, "login.html", status_code=status_code, errors=errors, history=[])


def _start_session(request: Request, user_id: int, username: str) -> RedirectResponse:
    """Mint a session token, set the cookie, and redirect to the landing page."""
    codec: TokenCodec = request.app.state.codec
    token = codec.sign(user_id, username)
    resp = RedirectResponse("/homepage", status_code=302)
    set_auth_cookie(resp, token, request.app.state.settings)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def rate_limited_view(request: Request, exc: RateLimitExceeded) -> HTMLResponse:
    """Re-render the login view with a 429 when a form post hits the login limit.

    Installed by asgi.py for every path outside /api/.
    """
    logger.warning("Rate limit hit on %s", request.url.path)
    resp = _login_view(request, [TOO_MANY_ATTEMPTS], status_code=429)
    resp.headers["Retry-After"] = str(retry_after_seconds(exc))
    return resp


# ---------------------------------------------------------------------------
# Entry, login, logout
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    if current_identity(request) is not None:
        return RedirectResponse("/homepage", status_code=302)
    return _login_view(request, [])


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login page, or send an already-authenticated user home."""
    if current_identity(request) is not None:
        return RedirectResponse("/homepage", status_code=302)
    return _login_view(request, [])


@router.post("/login", response_class=HTMLResponse)
@limiter.limit(login_rate_limit)
def login_post(
    request: Request,
    username: str = Form(default=""),
    password: str = Form(default=""),
) -> HTMLResponse:
    """Handle username/password login form submission.

    Blank fields, unknown usernames, and wrong passwords all produce the same
    message and no cookie.
    """
    creds, errors = parse_login(username, password)
    if errors:
        return _login_view(request, errors)

    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, creds.username, creds.password)
    if user is None:
        logger.info("Failed login for username=%r", creds.username)
        return _login_view(request, [LOGIN_FAILED])

    logger.info("User %s logged in", user.username)
    return _start_session(request, user.id, user.username)


@router.api_route("/logout", methods=["GET", "POST"])
def logout(request: Request) -> RedirectResponse:
    """Clear the session cookie and redirect to the entry page."""
    resp = RedirectResponse("/", status_code=302)
    clear_auth_cookie(resp, request.app.state.settings)
    return resp


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.get("/create-account", response_class=HTMLResponse)
def create_account_form(request: Request) -> HTMLResponse:
    return _render(request, "create-account.html", errors=[], history=_history(request))


@router.post("/register", response_class=HTMLResponse)
@limiter.limit(login_rate_limit)
def register(
    request: Request,
    username: str = Form(default=""),
    password: str = Form(default=""),
) -> HTMLResponse:
    """Create an account and log the new user in.

    Every rule is checked before storage is touched, and the full list of
    violations is re-rendered together. The UNIQUE constraint still guards
    against two concurrent registrations of the same name.
    """
    user_store: UserStore = request.app.state.user_store
    creds, errors = parse_registration(username, password, user_store.username_exists)
    if errors:
        return _login_view(request, errors)

    try:
        user_id = user_store.create_user(User(username=creds.username, hashed_password=hash_password(creds.password)))
    except IntegrityError:
        return _login_view(request, [USERNAME_TAKEN])

    logger.info("Registered user %s (id=%d)", creds.username, user_id)
    return _start_session(request, user_id, creds.username)


# ---------------------------------------------------------------------------
# Landing and navigation
# ---------------------------------------------------------------------------


@router.get("/homepage", response_class=HTMLResponse)
def homepage(request: Request) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect
    return _landing(request)


@router.get("/park", response_class=HTMLResponse)
def park_view(request: Request) -> HTMLResponse:
    return _render(request, "park.html", history=_history(request))


@router.post("/park", response_class=HTMLResponse)
def park_post(request: Request) -> HTMLResponse:
    return _landing(request)


@router.post("/navigate-to-home", response_class=HTMLResponse)
def navigate_to_home(request: Request) -> HTMLResponse:
    return _landing(request)


@router.post("/navigate-to-reserve", response_class=HTMLResponse)
def navigate_to_reserve(request: Request) -> HTMLResponse:
    return _landing(request)


@router.post("/view-history", response_class=HTMLResponse)
def view_history(request: Request) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect
    return _landing(request)


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


@router.get("/create-post", response_class=HTMLResponse)
def create_post_form(request: Request) -> HTMLResponse:
    if redirect := _require_auth(request):
        return redirect
    return _render(request, "create-post.html", errors=[], history=_history(request))


@router.post("/create-post", response_class=HTMLResponse)
def create_post(
    request: Request,
    title: str = Form(default=""),
    body: str = Form(default=""),
) -> HTMLResponse:
    """Validate and store a post authored by the current session's user."""
    if redirect := _require_auth(request):
        return redirect
    identity: Identity = current_identity(request)

    draft, errors = parse_post(title, body)
    if errors:
        return _render(request, "create-post.html", errors=errors, history=_history(request))

    records: RecordStore = request.app.state.records
    post = records.create_post(identity, draft.title, draft.body)
    logger.info("User %s created post %d", identity.username, post.id)
    return RedirectResponse("/homepage", status_code=302)


# ---------------------------------------------------------------------------
# Reservations
# ---------------------------------------------------------------------------


@router.post("/reserve", response_class=HTMLResponse)
def reserve(request: Request, park: str = Form(default="")) -> HTMLResponse:
    """Record a reservation from the "place,spot,spots_left,rating" form field."""
    if redirect := _require_auth(request):
        return redirect
    identity: Identity = current_identity(request)

    if not park.strip():
        return PlainTextResponse("No park data received.", status_code=400)
    try:
        reservation = parse_reservation(park)
    except ValueError as exc:
        return PlainTextResponse(str(exc), status_code=400)

    records: RecordStore = request.app.state.records
    records.add_reservation(identity, reservation)
    return _render(request, "park.html", history=records.get_user_history(identity))

"""
auth/tokens.py -- Session tokens, password hashing, and the session cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry user_id, username (sub), iat and
       exp. TokenCodec is constructed with the signing key at startup -- no
       module reads the secret on its own. verify() raises InvalidTokenError on
       any failure; the session middleware turns that into "anonymous".

       There is no server-side session table. The signature is the only
       integrity check and a token stays valid until exp. Logging out deletes
       the cookie in the browser; a copied token keeps working until it expires.

  Passwords: bcrypt, cost factor 12. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether a username exists.

Layer rule: no imports from api/, web/, or records/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import Identity
from core.config import DEFAULT_SESSION_SECONDS

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore
    from core.config import Settings

logger = logging.getLogger("parkspot.auth")

_ALGORITHM = "HS256"
_BCRYPT_ROUNDS = 12
# bcrypt only consumes the first 72 bytes of its input.
_BCRYPT_MAX_BYTES = 72

COOKIE_NAME = "access_token"


class InvalidTokenError(Exception):
    """A session token was missing, malformed, forged, or expired."""


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def _password_bytes(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    The digest embeds its own random salt and cost factor, so verify_password()
    needs nothing but the stored string. Length rules (12-70 chars) belong to
    registration validation; this function accepts any input.
    """
    return bcrypt.hashpw(_password_bytes(plain), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed digest yields False rather than an exception.
    """
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("parkspot_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Check a username/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure. Callers must report
    both failure kinds with the same message.
    """
    user = store.get_by_username(username)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Token codec
# ---------------------------------------------------------------------------


class TokenCodec:
    """Signs and verifies session tokens with a fixed secret and lifetime.

    Usage:
        codec = TokenCodec(settings.secret_key, settings.token_expire_seconds)
        token = codec.sign(user.id, user.username)
        identity = codec.verify(token)   # raises InvalidTokenError
    """

    def __init__(self, secret_key: str, expire_seconds: int = DEFAULT_SESSION_SECONDS) -> None:
        if not secret_key:
            raise ValueError("TokenCodec requires a non-empty secret key.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def sign(self, user_id: int, username: str, issued_at: datetime | None = None) -> str:
        """Encode a signed token for the given identity.

        issued_at defaults to now. Expiry is issued_at + expire_seconds and is
        written into the payload, so verification never depends on cookie
        max-age or any other transport metadata.
        """
        issued = issued_at or datetime.now(timezone.utc)
        expire = issued + timedelta(seconds=self.expire_seconds)
        payload = {
            "sub": username,
            "user_id": user_id,
            "iat": int(issued.timestamp()),
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str | None) -> Identity:
        """Return the Identity carried by token or raise InvalidTokenError.

        Rejects: empty input, malformed tokens, any signature mismatch (a change
        to any header or payload byte), tokens without sub/user_id/exp, and
        tokens whose exp is not strictly in the future.
        """
        if not token:
            raise InvalidTokenError("missing token")
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"require_exp": True, "require_sub": True},
            )
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc

        user_id = payload.get("user_id")
        username = payload.get("sub")
        expires_at = payload.get("exp")
        if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
            raise InvalidTokenError("invalid user_id claim")
        if not isinstance(username, str) or not username:
            raise InvalidTokenError("invalid sub claim")
        if not isinstance(expires_at, (int, float)) or expires_at <= datetime.now(timezone.utc).timestamp():
            raise InvalidTokenError("token expired")
        return Identity(user_id=user_id, username=username)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, settings: Settings) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    secure: only sent over HTTPS unless SECURE_COOKIES=false (local dev).
    max_age: matches the token expiry so both expire together.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=settings.secure_cookies,
        max_age=settings.token_expire_seconds,
    )


def clear_auth_cookie(response, settings: Settings) -> None:
    """Expire the session cookie. Attributes must match set_auth_cookie()."""
    response.delete_cookie(
        COOKIE_NAME,
        httponly=True,
        samesite="strict",
        secure=settings.secure_cookies,
    )

"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - bcrypt hashing: salted, self-describing, verify true/false, malformed digest
  - authenticate_user(): success, wrong password, unknown user
  - TokenCodec: round trip, tampering, wrong secret, expiry, claim checks
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import Identity
from auth.tokens import (
    InvalidTokenError,
    TokenCodec,
    authenticate_user,
    hash_password,
    verify_password,
)

SECRET = "unit-test-secret-0123456789abcdef0123456789"


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


class TestPasswordHashing:
    def test_hash_is_salted(self) -> None:
        """Two hashes of the same password differ (random per-call salt)."""
        assert hash_password("correcthorsebattery") != hash_password("correcthorsebattery")

    def test_hash_is_self_describing_bcrypt(self) -> None:
        digest = hash_password("correcthorsebattery")
        assert digest.startswith("$2b$12$")

    def test_verify_matches(self) -> None:
        digest = hash_password("correcthorsebattery")
        assert verify_password("correcthorsebattery", digest) is True

    def test_verify_rejects_wrong_password(self) -> None:
        digest = hash_password("correcthorsebattery")
        assert verify_password("wrongpass", digest) is False

    def test_verify_malformed_digest_returns_false(self) -> None:
        """A digest that is not bcrypt format must yield False, not raise."""
        assert verify_password("correcthorsebattery", "not-a-bcrypt-hash") is False
        assert verify_password("correcthorsebattery", "") is False

    def test_long_password_hashes(self) -> None:
        """The hasher has no length limit of its own, even past bcrypt's 72 bytes."""
        long_pw = "é" * 70  # 140 UTF-8 bytes
        digest = hash_password(long_pw)
        assert verify_password(long_pw, digest) is True


class TestAuthenticateUser:
    def test_success(self, user_store, make_user) -> None:
        make_user("alice", "correcthorsebattery")
        user = authenticate_user(user_store, "alice", "correcthorsebattery")
        assert user is not None
        assert user.username == "alice"

    def test_wrong_password(self, user_store, make_user) -> None:
        make_user("alice", "correcthorsebattery")
        assert authenticate_user(user_store, "alice", "wrongpass") is None

    def test_unknown_user(self, user_store) -> None:
        assert authenticate_user(user_store, "nobody", "correcthorsebattery") is None


# ---------------------------------------------------------------------------
# Token codec
# ---------------------------------------------------------------------------


def _b64url_json(segment: str) -> dict:
    padded = segment + "=" * (-len(segment) % 4)
    return json.loads(base64.urlsafe_b64decode(padded))


def _b64url_encode(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


class TestTokenCodec:
    def test_round_trip(self) -> None:
        codec = TokenCodec(SECRET)
        token = codec.sign(1, "alice")
        assert codec.verify(token) == Identity(user_id=1, username="alice")

    def test_payload_claims(self) -> None:
        """Payload carries user id, username, issue time, and a 24 hour expiry."""
        codec = TokenCodec(SECRET)
        issued = datetime(2030, 1, 1, tzinfo=timezone.utc)
        claims = jwt.get_unverified_claims(codec.sign(7, "bob", issued_at=issued))
        assert claims["user_id"] == 7
        assert claims["sub"] == "bob"
        assert claims["iat"] == int(issued.timestamp())
        assert claims["exp"] - claims["iat"] == 24 * 60 * 60

    def test_any_payload_byte_change_fails(self) -> None:
        """Replacing any single character of the header or payload breaks the signature."""
        codec = TokenCodec(SECRET)
        token = codec.sign(1, "alice")
        signing_input, signature = token.rsplit(".", 1)
        for i, ch in enumerate(signing_input):
            if ch == ".":
                continue
            replacement = "A" if ch != "A" else "B"
            forged = signing_input[:i] + replacement + signing_input[i + 1 :] + "." + signature
            with pytest.raises(InvalidTokenError):
                codec.verify(forged)

    def test_reencoded_payload_with_other_user_fails(self) -> None:
        """Swapping in user_id=999 while keeping the old signature is rejected."""
        codec = TokenCodec(SECRET)
        header, payload, signature = codec.sign(1, "alice").split(".")
        claims = _b64url_json(payload)
        claims["user_id"] = 999
        forged = ".".join([header, _b64url_encode(claims), signature])
        with pytest.raises(InvalidTokenError):
            codec.verify(forged)

    def test_wrong_secret_fails(self) -> None:
        token = TokenCodec("another-secret-0123456789abcdef0123456789").sign(1, "alice")
        with pytest.raises(InvalidTokenError):
            TokenCodec(SECRET).verify(token)

    def test_expired_token_fails(self) -> None:
        """A correctly signed token whose exp has passed is rejected."""
        codec = TokenCodec(SECRET)
        token = codec.sign(1, "alice", issued_at=datetime.now(timezone.utc) - timedelta(hours=25))
        with pytest.raises(InvalidTokenError):
            codec.verify(token)

    def test_short_lifetime_expires(self) -> None:
        codec = TokenCodec(SECRET, expire_seconds=60)
        token = codec.sign(1, "alice", issued_at=datetime.now(timezone.utc) - timedelta(seconds=61))
        with pytest.raises(InvalidTokenError):
            codec.verify(token)

    @pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c", "a.b"])
    def test_malformed_tokens_fail(self, token) -> None:
        with pytest.raises(InvalidTokenError):
            TokenCodec(SECRET).verify(token)

    def test_missing_user_id_fails(self) -> None:
        exp = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
        token = jwt.encode({"sub": "alice", "exp": exp}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            TokenCodec(SECRET).verify(token)

    def test_missing_exp_fails(self) -> None:
        token = jwt.encode({"sub": "alice", "user_id": 1}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            TokenCodec(SECRET).verify(token)

    def test_non_integer_user_id_fails(self) -> None:
        exp = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
        token = jwt.encode({"sub": "alice", "user_id": "1", "exp": exp}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            TokenCodec(SECRET).verify(token)

    def test_unsigned_token_fails(self) -> None:
        """alg=none tokens are never accepted."""
        header = _b64url_encode({"alg": "none", "typ": "JWT"})
        exp = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
        payload = _b64url_encode({"sub": "alice", "user_id": 1, "exp": exp})
        with pytest.raises(InvalidTokenError):
            TokenCodec(SECRET).verify(f"{header}.{payload}.")

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenCodec("")

"""
auth/tokens.py -- Token codec and password hashing.

Security design decisions:
  Tokens: python-jose with HS256. A token carries sub (username), iat, exp,
       typ (token kind) and any extra metadata claims. TokenCodec.decode()
       raises one of three errors from auth/errors.py so the gate can tell a
       forged token from an expired one in its logs, while still answering
       the client with the same 401 for both.

       Expiry is checked against the injected Clock, not jose's internal
       wall-clock check (verify_exp is switched off), so issuance and
       validation agree on what "now" is.

       Integer epoch seconds and sorted extra claims make encode()
       deterministic: the same inputs and key always give the same string.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether a username exists [C1].

  SECRET_KEY: passed in by the application at startup (see api/main.py) from
       core.config.get_settings(). One key, no rotation window: a new key
       invalidates every outstanding token.

Layer rule: no imports from api/ or todos/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Mapping

import bcrypt
from jose import JWTError, jwt

from auth.errors import InvalidSignature, MalformedToken, TokenExpired
from auth.models import ClaimValue, TokenClaims, TokenKind

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore
    from core.clock import Clock

logger = logging.getLogger("todoapi.auth")

_ALGORITHM = "HS256"

# Claim names owned by the codec, plus the registered JWT claims jose
# validates on decode. Extra metadata may not shadow any of them.
RESERVED_CLAIMS = frozenset({"sub", "iat", "exp", "typ", "nbf", "aud", "iss", "jti"})


def _to_epoch(moment: datetime) -> int:
    # Naive datetimes are treated as UTC.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Token codec
# ---------------------------------------------------------------------------


class TokenCodec:
    """Sign and verify compact HS256 tokens with a single process-wide key.

    Usage:
        codec = TokenCodec(settings.secret_key, SystemClock())
        raw = codec.encode("alice", issued_at, expires_at)
        claims = codec.decode(raw)   # raises MalformedToken / InvalidSignature / TokenExpired
    """

    def __init__(self, secret_key: str, clock: Clock) -> None:
        self._secret_key = secret_key
        self._clock = clock

    def encode(
        self,
        subject: str,
        issued_at: datetime,
        expires_at: datetime,
        kind: TokenKind = TokenKind.API,
        extra: Mapping[str, ClaimValue] | None = None,
        token_id: str | None = None,
    ) -> str:
        """Return the signed token string for the given claims.

        token_id, when given, is signed as the "jti" claim. The issuer sets a
        fresh one per token so two tokens minted in the same second for the
        same user still differ.

        Raises MalformedToken if subject is not a non-empty string, kind is
        not a TokenKind value, or extra uses a reserved claim name, has a
        non-string key, or holds a value that cannot be serialized to JSON.
        """
        if not isinstance(subject, str) or not subject:
            raise MalformedToken("Token subject must be a non-empty string.")
        try:
            kind_value = TokenKind(kind).value
        except ValueError as exc:
            raise MalformedToken(f"Unknown token kind: {kind!r}") from exc
        extra = dict(extra or {})
        if any(not isinstance(k, str) for k in extra):
            raise MalformedToken("Extra claim names must be strings.")
        clashes = RESERVED_CLAIMS.intersection(extra)
        if clashes:
            raise MalformedToken(f"Extra claims may not override reserved claims: {sorted(clashes)}")

        payload: dict = {
            "sub": subject,
            "iat": _to_epoch(issued_at),
            "exp": _to_epoch(expires_at),
            "typ": kind_value,
        }
        if token_id is not None:
            payload["jti"] = token_id
        payload.update(sorted(extra.items()))
        try:
            return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        except (TypeError, ValueError) as exc:
            raise MalformedToken("Token claims are not JSON-serializable.") from exc

    def decode(self, token: str) -> TokenClaims:
        """Verify and decode a token.

        Checks run in this order so each failure has one meaning:
          1. structure and claim types       -> MalformedToken
          2. HS256 signature                 -> InvalidSignature
          3. exp strictly before clock.now() -> TokenExpired
        """
        try:
            unverified = jwt.get_unverified_claims(token)
        except (JWTError, AttributeError, TypeError) as exc:
            raise MalformedToken("Token is not a well-formed JWT.") from exc

        sub = unverified.get("sub")
        iat = unverified.get("iat")
        exp = unverified.get("exp")
        typ = unverified.get("typ")
        if not isinstance(sub, str) or not sub:
            raise MalformedToken("Token subject is missing.")
        if not _is_int(iat) or not _is_int(exp):
            raise MalformedToken("Token timestamps must be integer epoch seconds.")
        if not isinstance(typ, str):
            raise MalformedToken("Token kind is missing.")
        if not isinstance(unverified.get("jti", ""), str):
            raise MalformedToken("Token id must be a string.")

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidSignature("Token signature verification failed.") from exc

        try:
            kind: TokenKind | str = TokenKind(typ)
        except ValueError:
            kind = typ

        claims = TokenClaims(
            subject=sub,
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            kind=kind,
            token_id=payload.get("jti"),
            extra={k: v for k, v in payload.items() if k not in RESERVED_CLAIMS},
        )
        if claims.expires_at < self._clock.now():
            raise TokenExpired("Token has expired.")
        return claims


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are silently truncated by bcrypt. The API
    layer caps password length at 255 characters (Pydantic field).
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash [C1]. Computed once at module load so the
# first login attempt is not measurably slower than subsequent ones.
_DUMMY_HASH: str = hash_password("todoapi_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Check a username/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists [C1]. A correct password
    on an expired, locked or credentials-expired account still fails.

    Returns the User on success, None on any failure.
    """
    user = store.get_by_username(username)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    if not user.can_authenticate:
        logger.info("Login refused for %s: account state blocks authentication", username)
        return None
    return user

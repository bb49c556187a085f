"""
auth/gate.py -- Per-request bearer token validation.

AuthenticationGate.authenticate() runs the full check for one request and
returns a GateResult: either a bound principal or a Rejection. It never
raises for an expected failure. Codec errors are caught here and only here;
store errors (database unreachable, etc.) are NOT caught, so they surface as
a 500 and the request fails closed instead of passing as anonymous.

Check order:
  1. Authorization header present and "Bearer <token>"   -> else 401
  2. Token decodes (structure, signature, expiry)         -> else 401
  3. Token kind is "api"                                  -> else 403
  4. Token has a record in the TokenStore                 -> else 401
  5. Record is active (not revoked, not past expires_at)  -> else 401
  6. Subject resolves to a user whose account may log in  -> else 401

Anti-enumeration: every 401 carries the same message and every 403 the same
message. The specific reason is logged, never returned to the client.

Layer rule: no imports from api/ or todos/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from auth.errors import InvalidSignature, MalformedToken, TokenExpired
from auth.models import TokenKind, TokenRecord, User
from auth.store import TokenStore, UserStore, is_active
from auth.tokens import TokenCodec
from core.clock import Clock

logger = logging.getLogger("todoapi.auth")

UNAUTHENTICATED_MESSAGE = "Authentication required."
FORBIDDEN_MESSAGE = "Access denied."


class FailureClass(str, Enum):
    """What the client is told. Maps 1:1 onto HTTP 401 / 403."""

    UNAUTHENTICATED = "unauthorized"
    FORBIDDEN = "forbidden"


class RejectReason(str, Enum):
    """Why the gate said no. Logged only."""

    MISSING_CREDENTIAL = "missing_credential"
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    WRONG_KIND = "wrong_kind"
    UNKNOWN_TOKEN = "unknown_token"
    INACTIVE = "expired_or_revoked"
    UNKNOWN_USER = "unknown_user"
    ACCOUNT_DISABLED = "account_disabled"
    NOT_ADMIN = "not_admin"


_STATUS_CODES = {FailureClass.UNAUTHENTICATED: 401, FailureClass.FORBIDDEN: 403}


@dataclass(frozen=True)
class Rejection:
    """Structured refusal for the caller to serialize."""

    failure: FailureClass
    reason: RejectReason
    path: str
    timestamp: datetime

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.failure]

    @property
    def message(self) -> str:
        if self.failure is FailureClass.FORBIDDEN:
            return FORBIDDEN_MESSAGE
        return UNAUTHENTICATED_MESSAGE

    def to_detail(self) -> dict:
        """Error payload in the API's {"code", "message", ...} shape. Omits reason."""
        return {
            "code": self.failure.value,
            "message": self.message,
            "path": self.path,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class GateResult:
    user: User | None = None
    record: TokenRecord | None = None
    rejection: Rejection | None = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


def parse_bearer(header: str | None) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" value, or None."""
    if not header or not header.startswith("Bearer "):
        return None
    token = header[7:].strip()
    return token or None


class AuthenticationGate:
    """Validate a bearer credential against the codec and the token store.

    Holds no per-request state and caches nothing: each call re-reads the
    token record, so a revoke is visible to the very next request.
    """

    def __init__(self, codec: TokenCodec, tokens: TokenStore, users: UserStore, clock: Clock) -> None:
        self._codec = codec
        self._tokens = tokens
        self._users = users
        self._clock = clock

    def authenticate(self, authorization: str | None, path: str) -> GateResult:
        raw = parse_bearer(authorization)
        if raw is None:
            return self._reject(FailureClass.UNAUTHENTICATED, RejectReason.MISSING_CREDENTIAL, path)

        try:
            claims = self._codec.decode(raw)
        except TokenExpired:
            return self._reject(FailureClass.UNAUTHENTICATED, RejectReason.EXPIRED, path)
        except InvalidSignature:
            return self._reject(FailureClass.UNAUTHENTICATED, RejectReason.BAD_SIGNATURE, path)
        except MalformedToken:
            return self._reject(FailureClass.UNAUTHENTICATED, RejectReason.MALFORMED, path)

        if claims.kind != TokenKind.API:
            return self._reject(FailureClass.FORBIDDEN, RejectReason.WRONG_KIND, path, claims.subject)

        record = self._tokens.find_by_token(raw)
        if record is None:
            return self._reject(FailureClass.UNAUTHENTICATED, RejectReason.UNKNOWN_TOKEN, path, claims.subject)

        if not is_active(record, self._clock.now()):
            return self._reject(FailureClass.UNAUTHENTICATED, RejectReason.INACTIVE, path, claims.subject)

        user = self._users.get_by_username(claims.subject)
        if user is None or user.id != record.user_id:
            return self._reject(FailureClass.UNAUTHENTICATED, RejectReason.UNKNOWN_USER, path, claims.subject)
        if not user.can_authenticate:
            return self._reject(FailureClass.UNAUTHENTICATED, RejectReason.ACCOUNT_DISABLED, path, claims.subject)

        return GateResult(user=user, record=record)

    def forbid(self, reason: RejectReason, path: str, subject: str | None = None) -> Rejection:
        """Build a 403 for a capability check made after authentication (e.g. admin role)."""
        return self._reject(FailureClass.FORBIDDEN, reason, path, subject).rejection

    def _reject(
        self, failure: FailureClass, reason: RejectReason, path: str, subject: str | None = None
    ) -> GateResult:
        logger.info("Rejected %s: %s (%s) subject=%s", path, failure.value, reason.value, subject or "-")
        return GateResult(rejection=Rejection(failure=failure, reason=reason, path=path, timestamp=self._clock.now()))

"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in todos/models.py -- dataclasses own domain shape; stores, the issuer and the
gate do the work.

Layer rule: no imports from api/ or todos/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union

# JSON scalar types allowed in the open-ended part of a token's claim set.
ClaimValue = Union[str, int, float, bool]

ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"


class TokenKind(str, Enum):
    """Purpose a token was minted for, carried in the signed "typ" claim.

    Only API tokens are accepted by the bearer gate. A session token presented
    on an API path is a valid credential with the wrong capability (403).
    """

    API = "api"
    SESSION = "session"


@dataclass
class User:
    """An authenticated identity (the principal a request acts as).

    The three account-state flags block authentication independently of the
    password: a locked account with the right password still cannot log in,
    and its already-issued tokens stop working at the gate.
    """

    username: str
    id: int | None = None
    hashed_password: str | None = None
    roles: set[str] = field(default_factory=lambda: {ROLE_USER})
    account_expired: bool = False
    account_locked: bool = False
    credentials_expired: bool = False
    created_at: str | None = None

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles

    @property
    def can_authenticate(self) -> bool:
        return not (self.account_expired or self.account_locked or self.credentials_expired)


@dataclass(frozen=True)
class TokenClaims:
    """The decoded content of a signed token. Immutable once minted.

    extra holds open-ended metadata only; subject, timestamps and kind are
    always first-class fields, never entries in extra.
    """

    subject: str
    issued_at: datetime
    expires_at: datetime
    kind: TokenKind = TokenKind.API
    token_id: str | None = None  # signed "jti" claim
    extra: dict[str, ClaimValue] = field(default_factory=dict)


@dataclass
class TokenRecord:
    """Server-side bookkeeping for one issued token.

    expires_at duplicates the signed exp claim so the store can answer
    "which tokens are active" without decoding anything. revoked_at is set
    if and only if revoked is True; a record is never un-revoked.

    id is None before the record is written to the database.
    """

    user_id: int
    token: str
    issued_at: datetime
    expires_at: datetime
    id: int | None = None
    revoked: bool = False
    revoked_at: datetime | None = None

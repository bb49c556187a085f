"""
auth/issuer.py -- API token issuance with a clamped time-to-live.

Every token goes through the same three steps: clamp the requested TTL,
sign a token whose exp is now + TTL, and persist a TokenRecord that mirrors
the signed timestamps. The clamp is a hard boundary: whatever the caller asks
for, a token lives at least one minute and at most 24 hours.

Layer rule: no imports from api/ or todos/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Mapping

from auth.models import ClaimValue, TokenKind, TokenRecord, User
from auth.store import TokenStore
from auth.tokens import TokenCodec
from core.clock import Clock
from core.config import MAX_TOKEN_TTL_SECONDS, MIN_TOKEN_TTL_SECONDS

logger = logging.getLogger("todoapi.auth")

MIN_TTL = timedelta(seconds=MIN_TOKEN_TTL_SECONDS)
MAX_TTL = timedelta(seconds=MAX_TOKEN_TTL_SECONDS)


def clamp_ttl(ttl: timedelta) -> timedelta:
    """Bound a TTL into [MIN_TTL, MAX_TTL].

    Zero and negative durations become MIN_TTL.
    """
    if ttl < MIN_TTL:
        return MIN_TTL
    if ttl > MAX_TTL:
        return MAX_TTL
    return ttl


def ttl_from_seconds(seconds: int | None) -> timedelta | None:
    """Turn a client-supplied TTL in seconds into a timedelta for issue().

    Absurd magnitudes are cut down first so timedelta() cannot overflow; the
    real bounds are still applied by clamp_ttl() at issue time.
    """
    if seconds is None:
        return None
    limit = 10 * MAX_TOKEN_TTL_SECONDS
    return timedelta(seconds=max(-limit, min(seconds, limit)))


class TokenIssuer:
    """Mint API tokens and record them in the TokenStore.

    Usage:
        issuer = TokenIssuer(codec, token_store, SystemClock(), default_ttl=timedelta(hours=24))
        record = issuer.issue(user, timedelta(hours=2))
        record.token   # raw bearer token, shown to the client once
    """

    def __init__(self, codec: TokenCodec, store: TokenStore, clock: Clock, default_ttl: timedelta = MAX_TTL) -> None:
        self._codec = codec
        self._store = store
        self._clock = clock
        self._default_ttl = default_ttl

    def issue(
        self,
        user: User,
        requested_ttl: timedelta | None = None,
        extra: Mapping[str, ClaimValue] | None = None,
    ) -> TokenRecord:
        """Sign a new API token for user and persist its record.

        requested_ttl=None uses the configured default (also clamped).
        Issued-at is truncated to whole seconds: the signed iat/exp are epoch
        seconds, and the record must carry exactly the same instants.
        """
        ttl = clamp_ttl(self._default_ttl if requested_ttl is None else requested_ttl)
        issued_at = self._clock.now().replace(microsecond=0)
        expires_at = issued_at + ttl

        raw = self._codec.encode(
            user.username, issued_at, expires_at, kind=TokenKind.API, extra=extra, token_id=uuid.uuid4().hex
        )
        record = self._store.save(
            TokenRecord(
                user_id=user.id,
                token=raw,
                issued_at=issued_at,
                expires_at=expires_at,
            )
        )
        logger.info(
            "Issued API token id=%s for %s (requested_ttl=%s, effective_ttl=%s)",
            record.id,
            user.username,
            requested_ttl,
            ttl,
        )
        return record

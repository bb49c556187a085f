"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as todos/store.py).
UserStore and TokenStore are the repositories; _row_to_user / _row_to_token
are the mappers. Route, gate and issuer code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Lookups that return None / False instead of raising are the store's error
  contract: "not found" is an ordinary outcome, and callers decide what it
  means (401 at the gate, 404 in a route).

Concurrency:
  Every mutation is a single SQL statement inside its own transaction, and
  TokenStore serializes its mutations behind a lock. revoke() sets revoked
  and revoked_at in one conditional UPDATE, so a concurrent reader sees
  either the whole unrevoked row or the whole revoked row.

Timestamps are stored as fixed-width UTC ISO 8601 strings
(YYYY-MM-DDTHH:MM:SS.ffffff+00:00) so string comparison in SQL matches
chronological order -- list_active() relies on that.

Ids are never reused (AUTOINCREMENT), so the id of a deleted token or user
never comes to name a different row.

Layer rule: no imports from api/ or todos/.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from auth.models import ROLE_USER, TokenRecord, User
from core.clock import Clock, SystemClock
from core.db import make_engine

logger = logging.getLogger("todoapi.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),
    Column("roles", Text, nullable=False),  # JSON array, e.g. ["USER", "ADMIN"]
    Column("account_expired", Integer, nullable=False, server_default="0"),
    Column("account_locked", Integer, nullable=False, server_default="0"),
    Column("credentials_expired", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    sqlite_autoincrement=True,
)

_api_tokens = Table(
    "api_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("token", String(1024), nullable=False),
    Column("issued_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("revoked", Integer, nullable=False, server_default="0"),
    Column("revoked_at", String(32)),
    Index("idx_api_token_token", "token", unique=True),
    Index("idx_api_token_user", "user_id"),
    Index("idx_api_token_expires", "expires_at"),
    sqlite_autoincrement=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def _from_iso(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def is_active(record: TokenRecord, now: datetime) -> bool:
    """The single source of truth for "is this token still usable".

    Evaluated fresh on every request; never cached.
    """
    return not record.revoked and record.expires_at > now


# ---------------------------------------------------------------------------
# User repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User (principal) records.

    Usage:
        store = UserStore("sqlite:///todoapi.db")
        store.create_user(User(username="alice", hashed_password=hash_password("secret")))
        user = store.get_by_username("alice")
        store.close()
    """

    _MUTABLE_FIELDS = {"roles", "account_expired", "account_locked", "credentials_expired", "hashed_password"}

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url, _metadata)

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().limit(1)).fetchone()
        return row is not None

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        Callers (POST /auth/register) catch it as the signal that a concurrent
        request won the race for the same username.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    hashed_password=user.hashed_password,
                    roles=json.dumps(sorted(user.roles or {ROLE_USER})),
                    account_expired=1 if user.account_expired else 0,
                    account_locked=1 if user.account_locked else 0,
                    credentials_expired=1 if user.credentials_expired else 0,
                    created_at=_to_iso(datetime.now(timezone.utc)),
                )
            )
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by username. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update admin-editable fields on an existing user.

        Accepted fields: roles (set of labels), account_expired, account_locked,
        credentials_expired (bools), hashed_password. Unknown fields raise
        ValueError rather than being silently ignored.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - self._MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        values: dict = {}
        for name, value in fields.items():
            if name == "roles":
                values["roles"] = json.dumps(sorted(value))
            elif name == "hashed_password":
                values[name] = value
            else:
                values[name] = 1 if value else 0
        if not values:
            return self.get_by_id(user_id) is not None
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Token repository
# ---------------------------------------------------------------------------


class TokenStore:
    """Repository for TokenRecord entities -- the durable side of every token.

    The gate reads from here on every request; the issuer writes one record
    per issuance; owners and admins revoke and delete.

    Usage:
        tokens = TokenStore("sqlite:///todoapi.db")
        record = tokens.save(TokenRecord(user_id=1, token=raw, issued_at=now, expires_at=exp))
        tokens.revoke(record.id)
        tokens.close()
    """

    def __init__(self, db_url: str, clock: Clock | None = None) -> None:
        self.engine: Engine = make_engine(db_url, _metadata)
        self._clock = clock or SystemClock()
        self._write_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, record: TokenRecord) -> TokenRecord:
        """Insert a new record and return it with its assigned ID.

        Always an insert: records are never reused. A duplicate raw token
        violates the unique index and raises sqlalchemy.exc.IntegrityError.
        """
        with self._write_lock, self.engine.begin() as conn:
            result = conn.execute(
                _api_tokens.insert().values(
                    user_id=record.user_id,
                    token=record.token,
                    issued_at=_to_iso(record.issued_at),
                    expires_at=_to_iso(record.expires_at),
                    revoked=1 if record.revoked else 0,
                    revoked_at=_to_iso(record.revoked_at) if record.revoked_at else None,
                )
            )
            token_id = result.inserted_primary_key[0]
        return replace(record, id=token_id)

    def revoke(self, token_id: int) -> bool:
        """Mark a token revoked. Idempotent.

        Only an unrevoked row is updated, so a second call leaves the first
        revoked_at in place. Returns True if the record exists (revoked now or
        earlier), False if there is no such record.
        """
        return self._revoke(_api_tokens.c.id == token_id)

    def revoke_owned(self, token_id: int, user_id: int) -> bool:
        """revoke() restricted to tokens owned by user_id [IDOR guard].

        Returns False for a token that exists but belongs to someone else.
        """
        return self._revoke((_api_tokens.c.id == token_id) & (_api_tokens.c.user_id == user_id))

    def delete(self, token_id: int) -> bool:
        """Permanently delete a record. Returns True if a row was removed."""
        return self._delete(_api_tokens.c.id == token_id)

    def delete_owned(self, token_id: int, user_id: int) -> bool:
        """delete() restricted to tokens owned by user_id [IDOR guard]."""
        return self._delete((_api_tokens.c.id == token_id) & (_api_tokens.c.user_id == user_id))

    def _revoke(self, match) -> bool:
        now = _to_iso(self._clock.now())
        with self._write_lock, self.engine.begin() as conn:
            result = conn.execute(
                _api_tokens.update().where(match & (_api_tokens.c.revoked == 0)).values(revoked=1, revoked_at=now)
            )
            if result.rowcount > 0:
                return True
            # Already revoked, or absent. Checked in the same transaction.
            row = conn.execute(_api_tokens.select().where(match)).fetchone()
        return row is not None

    def _delete(self, match) -> bool:
        with self._write_lock, self.engine.begin() as conn:
            result = conn.execute(_api_tokens.delete().where(match))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, token_id: int) -> TokenRecord | None:
        with self.engine.connect() as conn:
            row = conn.execute(_api_tokens.select().where(_api_tokens.c.id == token_id)).fetchone()
        return _row_to_token(row) if row is not None else None

    def find_by_token(self, raw_token: str) -> TokenRecord | None:
        """Look up a record by its exact raw token string. O(1) via the unique index."""
        with self.engine.connect() as conn:
            row = conn.execute(_api_tokens.select().where(_api_tokens.c.token == raw_token)).fetchone()
        return _row_to_token(row) if row is not None else None

    def find_all_by_owner(self, user_id: int) -> list[TokenRecord]:
        """Return every record (active or not) for a user, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _api_tokens.select()
                .where(_api_tokens.c.user_id == user_id)
                .order_by(_api_tokens.c.issued_at.desc(), _api_tokens.c.id.desc())
            ).fetchall()
        return [_row_to_token(r) for r in rows]

    def list_all(self) -> list[TokenRecord]:
        """Return every record in the store. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_api_tokens.select().order_by(_api_tokens.c.id)).fetchall()
        return [_row_to_token(r) for r in rows]

    def list_active(self, now: datetime, user_id: int | None = None) -> list[TokenRecord]:
        """Return records that are unrevoked and unexpired as of now.

        Same rule as is_active(), expressed as a query over the expires_at
        index so a sweep does not have to load every record.
        """
        query = _api_tokens.select().where((_api_tokens.c.revoked == 0) & (_api_tokens.c.expires_at > _to_iso(now)))
        if user_id is not None:
            query = query.where(_api_tokens.c.user_id == user_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_api_tokens.c.expires_at)).fetchall()
        return [_row_to_token(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        hashed_password=row.hashed_password,
        roles=set(json.loads(row.roles or "[]")),
        account_expired=bool(row.account_expired),
        account_locked=bool(row.account_locked),
        credentials_expired=bool(row.credentials_expired),
        created_at=row.created_at,
    )


def _row_to_token(row) -> TokenRecord:
    return TokenRecord(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        issued_at=_from_iso(row.issued_at),
        expires_at=_from_iso(row.expires_at),
        revoked=bool(row.revoked),
        revoked_at=_from_iso(row.revoked_at),
    )

"""
API request and response models for the Todo API REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
todos/models.py, which own the internal domain representation. Route
handlers map between the two.

Separation of concerns: domain models = domain truth; api/ models = API contract.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import TokenRecord, User
from todos.models import Todo, TodoList

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    path and timestamp are filled in for authentication rejections so a
    client can correlate a 401/403 with the request that caused it.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    path: Optional[str] = None
    timestamp: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    ttl_seconds is a request, not a guarantee: the issuer clamps it into
    [60, 86400]. Omit it to get the configured default.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    ttl_seconds: Optional[int] = None


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Length rules are checked in the route so the error messages match the
    registration rules exactly rather than Pydantic's generic wording.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)
    confirm_password: Optional[str] = Field(default=None, max_length=255)


class TokenCreate(BaseModel):
    """Request body for POST /api/v1/auth/tokens."""

    ttl_seconds: Optional[int] = None


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/admin/users/{id}. Only set fields change."""

    roles: Optional[list[RoleEnum]] = Field(default=None, min_length=1)
    account_expired: Optional[bool] = None
    account_locked: Optional[bool] = None
    credentials_expired: Optional[bool] = None


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    """One token record. The raw token is never included after creation."""

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    token_hint: str
    issued_at: datetime
    expires_at: datetime
    revoked: bool
    revoked_at: Optional[datetime] = None
    active: bool

    @classmethod
    def from_record(cls, record: TokenRecord, active: bool) -> "TokenResponse":
        return cls(
            id=record.id,
            user_id=record.user_id,
            token_hint=f"...{record.token[-8:]}",
            issued_at=record.issued_at,
            expires_at=record.expires_at,
            revoked=record.revoked,
            revoked_at=record.revoked_at,
            active=active,
        )


class TokenCreatedResponse(BaseModel):
    """Returned once, at issuance. access_token is the raw bearer credential."""

    model_config = ConfigDict(frozen=True)

    id: int
    access_token: str
    token_type: str = "bearer"
    issued_at: datetime
    expires_at: datetime
    expires_in: int

    @classmethod
    def from_record(cls, record: TokenRecord) -> "TokenCreatedResponse":
        return cls(
            id=record.id,
            access_token=record.token,
            issued_at=record.issued_at,
            expires_at=record.expires_at,
            expires_in=int((record.expires_at - record.issued_at).total_seconds()),
        )


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    roles: list[str]
    token_id: int
    token_expires_at: datetime


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    roles: list[str]
    account_expired: bool
    account_locked: bool
    credentials_expired: bool
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            roles=sorted(user.roles),
            account_expired=user.account_expired,
            account_locked=user.account_locked,
            credentials_expired=user.credentials_expired,
            created_at=user.created_at or "",
        )


# ---------------------------------------------------------------------------
# Todos and lists
# ---------------------------------------------------------------------------


class TodoCreate(BaseModel):
    """Request body for POST /api/v1/todos. There is no owner field: the owner is the caller."""

    model_config = ConfigDict(str_strip_whitespace=True)

    text: str = Field(min_length=1, max_length=1000)
    done: bool = False
    list_id: Optional[int] = None


class TodoUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    text: str = Field(min_length=1, max_length=1000)
    done: bool = False


class TodoAssign(BaseModel):
    """Request body for PUT /api/v1/todos/{id}/list. list_id=null detaches the todo."""

    list_id: Optional[int] = None


class TodoResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    text: str
    done: bool
    list_id: Optional[int]
    created_at: str

    @classmethod
    def from_todo(cls, todo: Todo) -> "TodoResponse":
        return cls(id=todo.id, text=todo.text, done=todo.done, list_id=todo.list_id, created_at=todo.created_at)


class TodoListCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)


class TodoListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    created_at: str
    todos: list[TodoResponse] = Field(default_factory=list)

    @classmethod
    def from_list(cls, todo_list: TodoList, todos: list[Todo]) -> "TodoListResponse":
        return cls(
            id=todo_list.id,
            name=todo_list.name,
            created_at=todo_list.created_at,
            todos=[TodoResponse.from_todo(t) for t in todos],
        )

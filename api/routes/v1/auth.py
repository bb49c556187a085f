"""
api/routes/v1/auth.py -- Login, registration and self-service token endpoints.

Routes:
  POST   /api/v1/auth/login              -- password login; issues an API token
  POST   /api/v1/auth/register           -- create a USER account
  GET    /api/v1/auth/me                 -- current principal (requires token)
  GET    /api/v1/auth/tokens             -- caller's tokens (requires token)
  POST   /api/v1/auth/tokens             -- issue another token (requires token)
  POST   /api/v1/auth/tokens/{id}/revoke -- revoke own token (requires token)
  DELETE /api/v1/auth/tokens/{id}        -- delete own token (requires token)

Security:
  [H2] POST /login is rate-limited per client address (LOGIN_RATE_LIMIT).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on every response that carries a raw token.
  IDOR guard: revoke/delete pass the caller's user_id to the store, so a token
       id belonging to someone else is a 404, exactly like a missing one.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter, login_limit
from api.models import (
    LoginRequest,
    MeResponse,
    RegisterRequest,
    TokenCreate,
    TokenCreatedResponse,
    TokenResponse,
    UserResponse,
)
from auth.dependencies import RequestContext, get_request_context
from auth.issuer import TokenIssuer, ttl_from_seconds
from auth.models import ROLE_USER, User
from auth.store import TokenStore, UserStore, is_active
from auth.tokens import authenticate_user, hash_password
from core.config import get_settings

logger = logging.getLogger("todoapi.api")

# Auth policy:
# - POST   /auth/login, /auth/register:  public -- these are how a client gets a token
# - everything else:                     requires a valid API token (get_request_context)
router = APIRouter()

_MIN_PASSWORD_LENGTH = 3


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(login_limit)  # [H2] brute-force mitigation
@router.post("/auth/login", response_model=TokenCreatedResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Exchange username and password for a new API token.

    Wrong username, wrong password and a disabled account all get the same
    "bad_credentials" answer so the endpoint does not reveal which it was.
    """
    user_store: UserStore = request.app.state.user_store
    issuer: TokenIssuer = request.app.state.issuer

    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    record = issuer.issue(user, ttl_from_seconds(body.ttl_seconds))
    resp = JSONResponse(
        status_code=200,
        content=TokenCreatedResponse.from_record(record).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a new account with the USER role.

    Rules: username required and unique, password required and at least
    three characters, confirm_password (when sent) must match.
    """
    if not get_settings().self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )
    if not body.username:
        raise _bad_registration("Username is required.")
    if not body.password:
        raise _bad_registration("Password is required.")
    if body.confirm_password is not None and body.password != body.confirm_password:
        raise _bad_registration("Passwords do not match.")
    if len(body.password) < _MIN_PASSWORD_LENGTH:
        raise _bad_registration(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters long.")

    user_store: UserStore = request.app.state.user_store
    if user_store.get_by_username(body.username) is not None:
        raise _username_taken()
    try:
        user_id = user_store.create_user(
            User(username=body.username, hashed_password=hash_password(body.password), roles={ROLE_USER})
        )
    except IntegrityError as exc:
        raise _username_taken() from exc

    logger.info("Registered user %s", body.username)
    return UserResponse.from_user(user_store.get_by_id(user_id))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(ctx: RequestContext = Depends(get_request_context)) -> MeResponse:
    """Return identity information for the principal behind the presented token."""
    return MeResponse(
        user_id=ctx.user.id,
        username=ctx.user.username,
        roles=sorted(ctx.user.roles),
        token_id=ctx.token.id,
        token_expires_at=ctx.token.expires_at,
    )


@router.get("/auth/tokens", response_model=list[TokenResponse])
def list_tokens(request: Request, ctx: RequestContext = Depends(get_request_context)) -> list[TokenResponse]:
    """List every token the caller owns, active or not. Raw values are never returned."""
    token_store: TokenStore = request.app.state.token_store
    now = request.app.state.clock.now()
    return [TokenResponse.from_record(r, is_active(r, now)) for r in token_store.find_all_by_owner(ctx.user.id)]


@router.post("/auth/tokens", response_model=TokenCreatedResponse, status_code=201)
def create_token(
    request: Request,
    response: Response,
    body: TokenCreate,
    ctx: RequestContext = Depends(get_request_context),
) -> TokenCreatedResponse:
    """Issue an additional API token for the caller. The raw token is shown once."""
    issuer: TokenIssuer = request.app.state.issuer
    record = issuer.issue(ctx.user, ttl_from_seconds(body.ttl_seconds))
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return TokenCreatedResponse.from_record(record)


@router.post("/auth/tokens/{token_id}/revoke", response_model=TokenResponse)
def revoke_token(request: Request, token_id: int, ctx: RequestContext = Depends(get_request_context)) -> TokenResponse:
    """Revoke one of the caller's tokens. Revoking twice is not an error."""
    token_store: TokenStore = request.app.state.token_store
    if not token_store.revoke_owned(token_id, ctx.user.id):
        raise _token_not_found()
    logger.info("User %s revoked token id=%s", ctx.user.username, token_id)
    record = token_store.get(token_id)
    if record is None:
        # Deleted between the revoke and the read.
        raise _token_not_found()
    return TokenResponse.from_record(record, is_active(record, request.app.state.clock.now()))


@router.delete("/auth/tokens/{token_id}", status_code=204)
def delete_token(request: Request, token_id: int, ctx: RequestContext = Depends(get_request_context)) -> Response:
    """Delete one of the caller's tokens. Ownership is verified server-side [IDOR guard]."""
    token_store: TokenStore = request.app.state.token_store
    if not token_store.delete_owned(token_id, ctx.user.id):
        raise _token_not_found()
    logger.info("User %s deleted token id=%s", ctx.user.username, token_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _bad_registration(message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": "invalid_registration", "message": message})


def _username_taken() -> HTTPException:
    return HTTPException(status_code=409, detail={"code": "conflict", "message": "Username already exists."})


def _token_not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": "Token not found."})

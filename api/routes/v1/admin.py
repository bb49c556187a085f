"""
api/routes/v1/admin.py -- Administrative token and user management.

Routes (all require the ADMIN role; non-admins get 403):
  GET    /api/v1/admin/tokens              -- every token record in the store
  POST   /api/v1/admin/tokens/{id}/revoke  -- revoke any token
  DELETE /api/v1/admin/tokens/{id}         -- delete any token record
  GET    /api/v1/admin/users               -- list accounts
  PATCH  /api/v1/admin/users/{id}          -- change roles / account-state flags

[M4] An admin cannot lock, expire or demote their own account through
PATCH -- that would leave no way back in without database access.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import TokenResponse, UserPatch, UserResponse
from auth.dependencies import RequestContext, require_admin
from auth.models import ROLE_ADMIN
from auth.store import TokenStore, UserStore, is_active

logger = logging.getLogger("todoapi.api")

# Router-level dependency: every route below requires an admin token.
router = APIRouter(dependencies=[Depends(require_admin)])


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@router.get("/admin/tokens", response_model=list[TokenResponse])
def list_all_tokens(request: Request) -> list[TokenResponse]:
    token_store: TokenStore = request.app.state.token_store
    now = request.app.state.clock.now()
    return [TokenResponse.from_record(r, is_active(r, now)) for r in token_store.list_all()]


@router.post("/admin/tokens/{token_id}/revoke", response_model=TokenResponse)
def admin_revoke_token(
    request: Request, token_id: int, ctx: RequestContext = Depends(require_admin)
) -> TokenResponse:
    token_store: TokenStore = request.app.state.token_store
    if not token_store.revoke(token_id):
        raise _not_found("Token not found.")
    logger.info("Admin %s revoked token id=%s", ctx.user.username, token_id)
    record = token_store.get(token_id)
    if record is None:
        raise _not_found("Token not found.")
    return TokenResponse.from_record(record, is_active(record, request.app.state.clock.now()))


@router.delete("/admin/tokens/{token_id}", status_code=204)
def admin_delete_token(request: Request, token_id: int, ctx: RequestContext = Depends(require_admin)) -> Response:
    token_store: TokenStore = request.app.state.token_store
    if not token_store.delete(token_id):
        raise _not_found("Token not found.")
    logger.info("Admin %s deleted token id=%s", ctx.user.username, token_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/admin/users", response_model=list[UserResponse])
def list_users(request: Request) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.patch("/admin/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request, user_id: int, body: UserPatch, ctx: RequestContext = Depends(require_admin)
) -> UserResponse:
    """Update roles and/or account-state flags. Only fields present in the body change."""
    user_store: UserStore = request.app.state.user_store
    if user_store.get_by_id(user_id) is None:
        raise _not_found("User not found.")

    updates = body.model_dump(mode="json", exclude_none=True)
    if "roles" in updates:
        updates["roles"] = set(updates["roles"])
    if not updates:
        raise HTTPException(status_code=400, detail={"code": "no_changes", "message": "No fields to update."})

    if user_id == ctx.user.id:  # [M4]
        locks_self = any(updates.get(f) for f in ("account_expired", "account_locked", "credentials_expired"))
        demotes_self = "roles" in updates and ROLE_ADMIN not in updates["roles"]
        if locks_self or demotes_self:
            raise HTTPException(
                status_code=400,
                detail={"code": "self_lockout", "message": "You cannot disable or demote your own account."},
            )

    user_store.update_user(user_id, **updates)
    logger.info("Admin %s updated user id=%s fields=%s", ctx.user.username, user_id, sorted(updates))
    return UserResponse.from_user(user_store.get_by_id(user_id))


def _not_found(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": message})

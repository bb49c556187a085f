"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer authentication.

get_request_context() runs the AuthenticationGate for the current request
and returns an explicit RequestContext. Route handlers receive the context as
a parameter and pass ctx.user down to the ownership scope -- there is no
thread-local or global "current user".

require_admin() wraps get_request_context() and refuses non-admins with 403.

Which paths are protected is decided by the routers: a router that declares
Depends(get_request_context) is protected, one that does not (health, login,
register) bypasses the gate entirely.

Layer rule: no imports from todos/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from auth.gate import AuthenticationGate, RejectReason, Rejection
from auth.models import TokenRecord, User


@dataclass(frozen=True)
class RequestContext:
    """Everything downstream code may know about who is calling."""

    user: User
    token: TokenRecord
    path: str


def rejection_to_http(rejection: Rejection) -> HTTPException:
    headers = {"Cache-Control": "no-store"}
    if rejection.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    return HTTPException(status_code=rejection.status_code, detail=rejection.to_detail(), headers=headers)


def get_request_context(request: Request) -> RequestContext:
    """Require a valid API bearer token. Raises HTTP 401/403 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(ctx: RequestContext = Depends(get_request_context)): ...
    """
    gate: AuthenticationGate = request.app.state.gate
    result = gate.authenticate(request.headers.get("Authorization"), request.url.path)
    if not result.ok:
        raise rejection_to_http(result.rejection)
    return RequestContext(user=result.user, token=result.record, path=request.url.path)


def require_admin(request: Request, ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Require the ADMIN role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    if not ctx.user.is_admin:
        gate: AuthenticationGate = request.app.state.gate
        raise rejection_to_http(gate.forbid(RejectReason.NOT_ADMIN, ctx.path, ctx.user.username))
    return ctx

"""
api/routes/v1/lists.py -- Todo list routes, all scoped to the calling principal.

Routes:
  GET    /lists                          -- caller's lists with their todos
  POST   /lists                          -- create
  GET    /lists/{list_id}                -- one list with its todos
  PUT    /lists/{list_id}                -- rename
  DELETE /lists/{list_id}                -- delete; 409 while todos are assigned
  POST   /lists/{list_id}/todos/{todo_id} -- assign a todo to this list

A list owned by someone else answers 404, the same as a missing list.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import TodoListCreate, TodoListResponse
from auth.dependencies import RequestContext, get_request_context
from auth.models import User
from todos.models import ScopeOutcome, TodoList
from todos.scope import OwnershipScope

router = APIRouter(dependencies=[Depends(get_request_context)])


def _scope(request: Request) -> OwnershipScope:
    return request.app.state.scope


def _to_response(scope: OwnershipScope, user: User, todo_list: TodoList) -> TodoListResponse:
    return TodoListResponse.from_list(todo_list, scope.list_todos(user, list_id=todo_list.id))


@router.get("/lists", response_model=list[TodoListResponse])
def list_lists(request: Request, ctx: RequestContext = Depends(get_request_context)) -> list[TodoListResponse]:
    scope = _scope(request)
    return [_to_response(scope, ctx.user, tl) for tl in scope.list_lists(ctx.user)]


@router.post("/lists", response_model=TodoListResponse, status_code=201)
def create_list(
    request: Request, body: TodoListCreate, ctx: RequestContext = Depends(get_request_context)
) -> TodoListResponse:
    scope = _scope(request)
    return _to_response(scope, ctx.user, scope.create_list(ctx.user, TodoList(name=body.name)))


@router.get("/lists/{list_id}", response_model=TodoListResponse)
def get_list(request: Request, list_id: int, ctx: RequestContext = Depends(get_request_context)) -> TodoListResponse:
    scope = _scope(request)
    todo_list = scope.find_list(ctx.user, list_id)
    if todo_list is None:
        raise _list_not_found()
    return _to_response(scope, ctx.user, todo_list)


@router.put("/lists/{list_id}", response_model=TodoListResponse)
def rename_list(
    request: Request, list_id: int, body: TodoListCreate, ctx: RequestContext = Depends(get_request_context)
) -> TodoListResponse:
    scope = _scope(request)
    todo_list = scope.rename_list(ctx.user, list_id, body.name)
    if todo_list is None:
        raise _list_not_found()
    return _to_response(scope, ctx.user, todo_list)


@router.delete("/lists/{list_id}", response_model=TodoListResponse)
def delete_list(request: Request, list_id: int, ctx: RequestContext = Depends(get_request_context)) -> TodoListResponse:
    """Delete an empty list and return it. Todos must be moved or deleted first."""
    scope = _scope(request)
    todo_list = scope.find_list(ctx.user, list_id)
    if todo_list is None:
        raise _list_not_found()
    outcome = scope.delete_list(ctx.user, list_id)
    if outcome is ScopeOutcome.CONFLICT:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "Cannot delete a list that has todos."},
        )
    if outcome is ScopeOutcome.NOT_FOUND:
        raise _list_not_found()
    return TodoListResponse.from_list(todo_list, [])


@router.post("/lists/{list_id}/todos/{todo_id}", response_model=TodoListResponse)
def add_todo_to_list(
    request: Request, list_id: int, todo_id: int, ctx: RequestContext = Depends(get_request_context)
) -> TodoListResponse:
    scope = _scope(request)
    if scope.reparent_todo(ctx.user, todo_id, list_id) is not ScopeOutcome.OK:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Todo or list not found."})
    return _to_response(scope, ctx.user, scope.find_list(ctx.user, list_id))


def _list_not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": "List not found."})

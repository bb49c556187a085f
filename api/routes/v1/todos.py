"""
api/routes/v1/todos.py -- Todo routes, all scoped to the calling principal.

Routes:
  GET    /todos                 -- caller's todos (?done=true|false, ?unassigned=true)
  POST   /todos                 -- create; owner is always the caller
  GET    /todos/{todo_id}       -- one todo
  PUT    /todos/{todo_id}       -- replace text and done
  PATCH  /todos/{todo_id}/done  -- mark done
  PATCH  /todos/{todo_id}/undone
  DELETE /todos/{todo_id}       -- delete; returns the deleted todo
  PUT    /todos/{todo_id}/list  -- move into a list, or out of it with list_id=null

Someone else's todo answers 404, the same as a todo that does not exist.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import TodoAssign, TodoCreate, TodoResponse, TodoUpdate
from auth.dependencies import RequestContext, get_request_context
from todos.models import ScopeOutcome, Todo
from todos.scope import OwnershipScope

router = APIRouter(dependencies=[Depends(get_request_context)])


def _scope(request: Request) -> OwnershipScope:
    return request.app.state.scope


@router.get("/todos", response_model=list[TodoResponse])
def list_todos(
    request: Request,
    done: Optional[bool] = None,
    unassigned: bool = False,
    ctx: RequestContext = Depends(get_request_context),
) -> list[TodoResponse]:
    todos = _scope(request).list_todos(ctx.user, done=done, unassigned=unassigned)
    return [TodoResponse.from_todo(t) for t in todos]


@router.post("/todos", response_model=TodoResponse, status_code=201)
def create_todo(request: Request, body: TodoCreate, ctx: RequestContext = Depends(get_request_context)) -> TodoResponse:
    todo = _scope(request).create_todo(ctx.user, Todo(text=body.text, done=body.done, list_id=body.list_id))
    if todo is None:
        raise _not_found("List not found.")
    return TodoResponse.from_todo(todo)


@router.get("/todos/{todo_id}", response_model=TodoResponse)
def get_todo(request: Request, todo_id: int, ctx: RequestContext = Depends(get_request_context)) -> TodoResponse:
    return TodoResponse.from_todo(_found(_scope(request).find_todo(ctx.user, todo_id)))


@router.put("/todos/{todo_id}", response_model=TodoResponse)
def update_todo(
    request: Request, todo_id: int, body: TodoUpdate, ctx: RequestContext = Depends(get_request_context)
) -> TodoResponse:
    return TodoResponse.from_todo(_found(_scope(request).update_todo(ctx.user, todo_id, body.text, body.done)))


@router.patch("/todos/{todo_id}/done", response_model=TodoResponse)
def mark_done(request: Request, todo_id: int, ctx: RequestContext = Depends(get_request_context)) -> TodoResponse:
    return TodoResponse.from_todo(_found(_scope(request).set_done(ctx.user, todo_id, True)))


@router.patch("/todos/{todo_id}/undone", response_model=TodoResponse)
def mark_undone(request: Request, todo_id: int, ctx: RequestContext = Depends(get_request_context)) -> TodoResponse:
    return TodoResponse.from_todo(_found(_scope(request).set_done(ctx.user, todo_id, False)))


@router.delete("/todos/{todo_id}", response_model=TodoResponse)
def delete_todo(request: Request, todo_id: int, ctx: RequestContext = Depends(get_request_context)) -> TodoResponse:
    return TodoResponse.from_todo(_found(_scope(request).delete_todo(ctx.user, todo_id)))


@router.put("/todos/{todo_id}/list", response_model=TodoResponse)
def assign_todo(
    request: Request, todo_id: int, body: TodoAssign, ctx: RequestContext = Depends(get_request_context)
) -> TodoResponse:
    scope = _scope(request)
    if scope.reparent_todo(ctx.user, todo_id, body.list_id) is not ScopeOutcome.OK:
        raise _not_found("Todo or list not found.")
    return TodoResponse.from_todo(_found(scope.find_todo(ctx.user, todo_id)))


def _found(todo: Optional[Todo]) -> Todo:
    if todo is None:
        raise _not_found("Todo not found.")
    return todo


def _not_found(message: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": message})

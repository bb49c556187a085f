"""
todos/scope.py -- Ownership scope for every todo and list operation.

OwnershipScope is the only way route handlers reach TodoStore. Each method
takes the authenticated principal and derives owner_id from it, so no caller
can name an owner of its own choosing:

  - lookups return None when the resource is absent OR owned by someone else
    (the route answers 404 either way; existence never leaks)
  - creates stamp owner_id from the principal, overwriting whatever the draft
    carried
  - reparenting checks that both the todo and the target list are owned by
    the principal and is applied in one statement, or not at all
  - a list with todos assigned cannot be deleted (CONFLICT); nothing is
    detached as a side effect

Layer rule: todos/ may import domain dataclasses from auth/models.py, nothing
else from auth/, and never from api/.
"""

import logging
from dataclasses import replace
from typing import Optional

from auth.models import User
from todos.models import ScopeOutcome, Todo, TodoList
from todos.store import TodoStore

logger = logging.getLogger("todoapi.todos")


class OwnershipScope:
    def __init__(self, store: TodoStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Todos
    # ------------------------------------------------------------------

    def find_todo(self, user: User, todo_id: int) -> Optional[Todo]:
        todo = self._store.get_todo(user.id, todo_id)
        if todo is None:
            logger.debug("Todo %s not found for %s", todo_id, user.username)
        return todo

    def list_todos(
        self, user: User, done: Optional[bool] = None, list_id: Optional[int] = None, unassigned: bool = False
    ) -> list[Todo]:
        return self._store.list_todos(user.id, done=done, list_id=list_id, unassigned=unassigned)

    def create_todo(self, user: User, draft: Todo) -> Optional[Todo]:
        """Persist draft as a todo owned by user.

        Returns None if draft.list_id names a list the user does not own.
        """
        stamped = replace(draft, owner_id=user.id, id=None)
        todo_id = self._store.create_todo(user.id, stamped)
        if todo_id is None:
            logger.info("Create todo refused for %s: list %s not found", user.username, draft.list_id)
            return None
        logger.info("Created todo %s for %s", todo_id, user.username)
        return self._store.get_todo(user.id, todo_id)

    def update_todo(self, user: User, todo_id: int, text: str, done: bool) -> Optional[Todo]:
        if not self._store.update_todo(user.id, todo_id, text=text, done=done):
            return None
        return self._store.get_todo(user.id, todo_id)

    def set_done(self, user: User, todo_id: int, done: bool) -> Optional[Todo]:
        if not self._store.update_todo(user.id, todo_id, done=done):
            return None
        return self._store.get_todo(user.id, todo_id)

    def delete_todo(self, user: User, todo_id: int) -> Optional[Todo]:
        """Delete an owned todo and return what was deleted, or None if not found."""
        todo = self._store.get_todo(user.id, todo_id)
        if todo is None or not self._store.delete_todo(user.id, todo_id):
            return None
        logger.info("Deleted todo %s for %s", todo_id, user.username)
        return todo

    def reparent_todo(self, user: User, todo_id: int, list_id: Optional[int]) -> ScopeOutcome:
        """Assign a todo to list_id, or detach it from its list when list_id is None.

        NOT_FOUND if the todo or the target list is missing or foreign; in that
        case nothing changes.
        """
        if list_id is None:
            moved = self._store.unassign_todo(user.id, todo_id)
        else:
            moved = self._store.assign_todo(user.id, todo_id, list_id)
        if not moved:
            logger.info("Reparent refused for %s: todo %s -> list %s", user.username, todo_id, list_id)
            return ScopeOutcome.NOT_FOUND
        logger.info("Moved todo %s to list %s for %s", todo_id, list_id, user.username)
        return ScopeOutcome.OK

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def find_list(self, user: User, list_id: int) -> Optional[TodoList]:
        return self._store.get_list(user.id, list_id)

    def list_lists(self, user: User) -> list[TodoList]:
        return self._store.list_lists(user.id)

    def create_list(self, user: User, draft: TodoList) -> TodoList:
        list_id = self._store.create_list(user.id, draft.name)
        logger.info("Created list %s for %s", list_id, user.username)
        return self._store.get_list(user.id, list_id)

    def rename_list(self, user: User, list_id: int, name: str) -> Optional[TodoList]:
        if not self._store.rename_list(user.id, list_id, name):
            return None
        return self._store.get_list(user.id, list_id)

    def delete_list(self, user: User, list_id: int) -> ScopeOutcome:
        outcome = self._store.delete_list(user.id, list_id)
        if outcome is ScopeOutcome.CONFLICT:
            logger.warning(
                "Cannot delete list %s for %s: %d todos still assigned",
                list_id,
                user.username,
                self._store.count_todos_in_list(user.id, list_id),
            )
        elif outcome is ScopeOutcome.OK:
            logger.info("Deleted list %s for %s", list_id, user.username)
        return outcome

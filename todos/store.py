"""
todos/store.py -- SQLAlchemy-backed persistence for todos and todo lists.

Uses SQLAlchemy Core (not ORM) so the dataclasses in todos/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. TodoStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Ownership: every method takes owner_id and puts it in the WHERE clause of
the statement itself. There is no unscoped lookup by id, so a row owned by
someone else is indistinguishable from a missing row. Mutations that must
check two rows (assign a todo to a list, delete a list only if empty) do the
check and the write in one conditional statement, so they either apply fully
or not at all. Ids are never reused (AUTOINCREMENT).

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TodoStore("sqlite:///todoapi.db")
    list_id = store.create_list(owner_id, "groceries")
    todo_id = store.create_todo(owner_id, Todo(text="milk"))
    store.assign_todo(owner_id, todo_id, list_id)
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
    literal,
    select,
)
from sqlalchemy.engine import Engine

from core.db import make_engine
from todos.models import ScopeOutcome, Todo, TodoList

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_todo_lists = Table(
    "todo_lists",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, nullable=False),
    Column("name", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
    Index("idx_todo_lists_owner", "owner_id"),
    sqlite_autoincrement=True,
)

_todos = Table(
    "todos",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, nullable=False),
    Column("list_id", Integer),  # NULL = not assigned to a list
    Column("text", Text, nullable=False),
    Column("done", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Index("idx_todos_owner", "owner_id"),
    Index("idx_todos_list", "list_id"),
    sqlite_autoincrement=True,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _owned_list(owner_id: int, list_id: int):
    """EXISTS clause: list_id is a list owned by owner_id."""
    return (
        select(_todo_lists.c.id).where((_todo_lists.c.id == list_id) & (_todo_lists.c.owner_id == owner_id)).exists()
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TodoStore:
    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url, metadata)

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def create_list(self, owner_id: int, name: str) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(_todo_lists.insert().values(owner_id=owner_id, name=name, created_at=_now_iso()))
            return result.inserted_primary_key[0]

    def get_list(self, owner_id: int, list_id: int) -> Optional[TodoList]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _todo_lists.select().where((_todo_lists.c.id == list_id) & (_todo_lists.c.owner_id == owner_id))
            ).fetchone()
        return _row_to_list(row) if row is not None else None

    def list_lists(self, owner_id: int) -> list[TodoList]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _todo_lists.select().where(_todo_lists.c.owner_id == owner_id).order_by(_todo_lists.c.id)
            ).fetchall()
        return [_row_to_list(r) for r in rows]

    def rename_list(self, owner_id: int, list_id: int, name: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                _todo_lists.update()
                .where((_todo_lists.c.id == list_id) & (_todo_lists.c.owner_id == owner_id))
                .values(name=name)
            )
        return result.rowcount > 0

    def count_todos_in_list(self, owner_id: int, list_id: int) -> int:
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count())
                .select_from(_todos)
                .where((_todos.c.owner_id == owner_id) & (_todos.c.list_id == list_id))
            ).scalar()
        return count or 0

    def delete_list(self, owner_id: int, list_id: int) -> ScopeOutcome:
        """Delete a list only if it is owned by owner_id and has no todos.

        The emptiness check is part of the DELETE's WHERE clause, so a todo
        assigned concurrently either lands before (CONFLICT) or finds the list
        gone. Todos are never detached as a side effect.
        """
        has_todos = (
            select(_todos.c.id).where((_todos.c.list_id == list_id) & (_todos.c.owner_id == owner_id)).exists()
        )
        with self.engine.begin() as conn:
            result = conn.execute(
                _todo_lists.delete().where(
                    (_todo_lists.c.id == list_id) & (_todo_lists.c.owner_id == owner_id) & ~has_todos
                )
            )
            if result.rowcount > 0:
                return ScopeOutcome.OK
            row = conn.execute(
                _todo_lists.select().where((_todo_lists.c.id == list_id) & (_todo_lists.c.owner_id == owner_id))
            ).fetchone()
        return ScopeOutcome.CONFLICT if row is not None else ScopeOutcome.NOT_FOUND

    # ------------------------------------------------------------------
    # Todos
    # ------------------------------------------------------------------

    def create_todo(self, owner_id: int, todo: Todo) -> Optional[int]:
        """Insert a todo for owner_id. Returns None if todo.list_id is not an owned list.

        With a list_id the insert is an INSERT ... SELECT gated on the list
        being owned, so a list deleted concurrently yields no row rather than
        a todo pointing at a missing list.
        """
        done = 1 if todo.done else 0
        with self.engine.begin() as conn:
            if todo.list_id is None:
                result = conn.execute(
                    _todos.insert().values(
                        owner_id=owner_id, list_id=None, text=todo.text, done=done, created_at=_now_iso()
                    )
                )
                return result.inserted_primary_key[0]
            result = conn.execute(
                _todos.insert().from_select(
                    ["owner_id", "list_id", "text", "done", "created_at"],
                    select(
                        literal(owner_id),
                        literal(todo.list_id),
                        literal(todo.text),
                        literal(done),
                        literal(_now_iso()),
                    ).where(_owned_list(owner_id, todo.list_id)),
                )
            )
            if result.rowcount == 0:
                return None
            return result.lastrowid

    def get_todo(self, owner_id: int, todo_id: int) -> Optional[Todo]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _todos.select().where((_todos.c.id == todo_id) & (_todos.c.owner_id == owner_id))
            ).fetchone()
        return _row_to_todo(row) if row is not None else None

    def list_todos(
        self,
        owner_id: int,
        done: Optional[bool] = None,
        list_id: Optional[int] = None,
        unassigned: bool = False,
    ) -> list[Todo]:
        """Return owner_id's todos, optionally filtered by done state and list.

        unassigned=True returns only todos with no list (list_id is ignored).
        """
        query = _todos.select().where(_todos.c.owner_id == owner_id)
        if done is not None:
            query = query.where(_todos.c.done == (1 if done else 0))
        if unassigned:
            query = query.where(_todos.c.list_id.is_(None))
        elif list_id is not None:
            query = query.where(_todos.c.list_id == list_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_todos.c.id)).fetchall()
        return [_row_to_todo(r) for r in rows]

    def update_todo(self, owner_id: int, todo_id: int, **fields) -> bool:
        """Update text and/or done on an owned todo. Returns False if not found."""
        values: dict = {}
        if "text" in fields:
            values["text"] = fields["text"]
        if "done" in fields:
            values["done"] = 1 if fields["done"] else 0
        if not values:
            return self.get_todo(owner_id, todo_id) is not None
        with self.engine.begin() as conn:
            result = conn.execute(
                _todos.update().where((_todos.c.id == todo_id) & (_todos.c.owner_id == owner_id)).values(**values)
            )
        return result.rowcount > 0

    def delete_todo(self, owner_id: int, todo_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(_todos.delete().where((_todos.c.id == todo_id) & (_todos.c.owner_id == owner_id)))
        return result.rowcount > 0

    def assign_todo(self, owner_id: int, todo_id: int, list_id: int) -> bool:
        """Move an owned todo into an owned list, in one conditional UPDATE.

        Returns False (nothing changed) if either the todo or the list is
        missing or belongs to someone else.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _todos.update()
                .where((_todos.c.id == todo_id) & (_todos.c.owner_id == owner_id) & _owned_list(owner_id, list_id))
                .values(list_id=list_id)
            )
        return result.rowcount > 0

    def unassign_todo(self, owner_id: int, todo_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                _todos.update().where((_todos.c.id == todo_id) & (_todos.c.owner_id == owner_id)).values(list_id=None)
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_list(row) -> TodoList:
    return TodoList(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        created_at=row.created_at,
    )


def _row_to_todo(row) -> Todo:
    return Todo(
        id=row.id,
        owner_id=row.owner_id,
        list_id=row.list_id,
        text=row.text,
        done=bool(row.done),
        created_at=row.created_at,
    )

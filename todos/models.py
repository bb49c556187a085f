"""
todos/models.py -- Domain dataclasses for owned resources.

These are pure data containers with zero logic. Ownership rules live in
todos/scope.py; SQL lives in todos/store.py.

owner_id is stamped by the scope from the authenticated principal. A value
set by a caller on a draft is overwritten before anything is persisted.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ScopeOutcome(str, Enum):
    """Result of an ownership-scoped mutation that can fail in more than one way."""

    OK = "ok"
    NOT_FOUND = "not_found"  # absent, or owned by someone else -- deliberately the same
    CONFLICT = "conflict"  # invariant violation, e.g. deleting a list that still has todos


@dataclass
class TodoList:
    """A named parent resource. Cannot be deleted while todos are assigned to it.

    id is None before the record is written to the database.
    """

    name: str
    owner_id: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class Todo:
    """A single task. list_id is None when the todo is not assigned to a list.

    id is None before the record is written to the database.
    """

    text: str
    done: bool = False
    list_id: Optional[int] = None
    owner_id: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert

"""Unit tests for todos/scope.py and todos/store.py -- ownership isolation.

Covers:
- a user's lookups never see another user's todos or lists
- creates stamp the owner from the principal, ignoring the draft
- reparenting requires both the todo and the target list to be owned
- a list with todos cannot be deleted; once emptied it can
- another owner's rows never count toward a list's emptiness
- a todo created into a list deleted at the same moment is not stored
- ids are never reused after delete
"""

from sqlalchemy import event, text

from auth.models import User
from todos.models import ScopeOutcome, Todo, TodoList
from todos.store import TodoStore

ALICE = User(username="alice", id=1)
BOB = User(username="bob", id=2)


class TestTodoIsolation:
    def test_create_stamps_owner(self, scope) -> None:
        todo = scope.create_todo(ALICE, Todo(text="milk", owner_id=BOB.id))
        assert todo.owner_id == ALICE.id
        assert scope.find_todo(BOB, todo.id) is None

    def test_lookup_of_foreign_todo_is_none(self, scope) -> None:
        todo = scope.create_todo(ALICE, Todo(text="milk"))
        assert scope.find_todo(ALICE, todo.id).text == "milk"
        assert scope.find_todo(BOB, todo.id) is None
        assert scope.find_todo(BOB, 999) is None

    def test_list_only_own(self, scope) -> None:
        scope.create_todo(ALICE, Todo(text="a1"))
        scope.create_todo(ALICE, Todo(text="a2", done=True))
        scope.create_todo(BOB, Todo(text="b1"))
        assert [t.text for t in scope.list_todos(ALICE)] == ["a1", "a2"]
        assert [t.text for t in scope.list_todos(ALICE, done=True)] == ["a2"]
        assert [t.text for t in scope.list_todos(BOB)] == ["b1"]

    def test_foreign_mutations_are_refused(self, scope) -> None:
        todo = scope.create_todo(ALICE, Todo(text="milk"))
        assert scope.update_todo(BOB, todo.id, "hacked", True) is None
        assert scope.set_done(BOB, todo.id, True) is None
        assert scope.delete_todo(BOB, todo.id) is None
        unchanged = scope.find_todo(ALICE, todo.id)
        assert unchanged.text == "milk"
        assert not unchanged.done

    def test_update_and_delete_own(self, scope) -> None:
        todo = scope.create_todo(ALICE, Todo(text="milk"))
        assert scope.update_todo(ALICE, todo.id, "oat milk", False).text == "oat milk"
        assert scope.set_done(ALICE, todo.id, True).done
        assert scope.delete_todo(ALICE, todo.id).id == todo.id
        assert scope.find_todo(ALICE, todo.id) is None

    def test_create_into_foreign_list_refused(self, scope) -> None:
        bobs = scope.create_list(BOB, TodoList(name="bob's"))
        assert scope.create_todo(ALICE, Todo(text="sneaky", list_id=bobs.id)) is None
        assert scope.list_todos(ALICE) == []


class TestReparent:
    def test_assign_and_detach(self, scope) -> None:
        groceries = scope.create_list(ALICE, TodoList(name="groceries"))
        todo = scope.create_todo(ALICE, Todo(text="milk"))
        assert scope.reparent_todo(ALICE, todo.id, groceries.id) is ScopeOutcome.OK
        assert scope.find_todo(ALICE, todo.id).list_id == groceries.id
        assert [t.id for t in scope.list_todos(ALICE, list_id=groceries.id)] == [todo.id]
        assert scope.reparent_todo(ALICE, todo.id, None) is ScopeOutcome.OK
        assert scope.list_todos(ALICE, unassigned=True)[0].id == todo.id

    def test_foreign_list_refused(self, scope) -> None:
        bobs = scope.create_list(BOB, TodoList(name="bob's"))
        todo = scope.create_todo(ALICE, Todo(text="milk"))
        assert scope.reparent_todo(ALICE, todo.id, bobs.id) is ScopeOutcome.NOT_FOUND
        assert scope.find_todo(ALICE, todo.id).list_id is None

    def test_foreign_todo_refused(self, scope) -> None:
        alices = scope.create_list(ALICE, TodoList(name="alice's"))
        bobs_todo = scope.create_todo(BOB, Todo(text="bread"))
        assert scope.reparent_todo(ALICE, bobs_todo.id, alices.id) is ScopeOutcome.NOT_FOUND
        assert scope.find_todo(BOB, bobs_todo.id).list_id is None


class TestListDeletion:
    def test_non_empty_list_conflicts_then_succeeds(self, scope) -> None:
        groceries = scope.create_list(ALICE, TodoList(name="groceries"))
        todo = scope.create_todo(ALICE, Todo(text="milk", list_id=groceries.id))

        assert scope.delete_list(ALICE, groceries.id) is ScopeOutcome.CONFLICT
        # Nothing detached as a side effect.
        assert scope.find_list(ALICE, groceries.id) is not None
        assert scope.find_todo(ALICE, todo.id).list_id == groceries.id

        scope.reparent_todo(ALICE, todo.id, None)
        assert scope.delete_list(ALICE, groceries.id) is ScopeOutcome.OK
        assert scope.find_list(ALICE, groceries.id) is None

    def test_foreign_or_missing_list(self, scope) -> None:
        bobs = scope.create_list(BOB, TodoList(name="bob's"))
        assert scope.delete_list(ALICE, bobs.id) is ScopeOutcome.NOT_FOUND
        assert scope.delete_list(ALICE, 999) is ScopeOutcome.NOT_FOUND
        assert scope.find_list(BOB, bobs.id) is not None

    def test_rename_and_list(self, scope) -> None:
        mine = scope.create_list(ALICE, TodoList(name="old", owner_id=BOB.id))
        assert mine.owner_id == ALICE.id
        assert scope.rename_list(BOB, mine.id, "stolen") is None
        assert scope.rename_list(ALICE, mine.id, "new").name == "new"
        assert [tl.name for tl in scope.list_lists(ALICE)] == ["new"]
        assert scope.list_lists(BOB) == []

    def test_other_owners_todo_does_not_block_delete(self, scope, todo_store) -> None:
        groceries = scope.create_list(ALICE, TodoList(name="groceries"))
        # A row that only bob owns, pointing at alice's list id.
        with todo_store.engine.begin() as conn:
            conn.execute(
                text(
                    "INSERT INTO todos (owner_id, list_id, text, done, created_at) "
                    "VALUES (:owner, :list_id, 'bread', 0, '2026-01-15T09:30:00+00:00')"
                ),
                {"owner": BOB.id, "list_id": groceries.id},
            )
        assert scope.delete_list(ALICE, groceries.id) is ScopeOutcome.OK
        assert scope.find_list(ALICE, groceries.id) is None


class TestIds:
    def test_deleted_todo_id_not_reused(self, scope) -> None:
        first = scope.create_todo(ALICE, Todo(text="milk"))
        scope.delete_todo(ALICE, first.id)
        second = scope.create_todo(BOB, Todo(text="bread"))
        assert second.id > first.id
        assert scope.find_todo(ALICE, first.id) is None

    def test_deleted_list_id_not_reused(self, scope) -> None:
        first = scope.create_list(ALICE, TodoList(name="groceries"))
        assert scope.delete_list(ALICE, first.id) is ScopeOutcome.OK
        second = scope.create_list(BOB, TodoList(name="chores"))
        assert second.id > first.id
        assert scope.find_list(ALICE, first.id) is None


class TestCreateIntoList:
    def test_create_into_owned_list(self, scope) -> None:
        groceries = scope.create_list(ALICE, TodoList(name="groceries"))
        todo = scope.create_todo(ALICE, Todo(text="milk", list_id=groceries.id, done=True))
        assert todo is not None
        stored = scope.find_todo(ALICE, todo.id)
        assert stored.list_id == groceries.id
        assert stored.done

    def test_list_deleted_just_before_insert(self, tmp_path) -> None:
        url = f"sqlite:///{tmp_path / 'todos.db'}"
        writer = TodoStore(url)
        other = TodoStore(url)
        try:
            list_id = other.create_list(ALICE.id, "groceries")
            fired: list[ScopeOutcome] = []

            def delete_list_first(conn, cursor, statement, parameters, context, executemany) -> None:
                if not fired and statement.lstrip().upper().startswith("INSERT INTO TODOS"):
                    fired.append(other.delete_list(ALICE.id, list_id))

            event.listen(writer.engine, "before_cursor_execute", delete_list_first)
            assert writer.create_todo(ALICE.id, Todo(text="milk", list_id=list_id)) is None
            assert fired == [ScopeOutcome.OK]
            assert other.get_list(ALICE.id, list_id) is None
            assert writer.list_todos(ALICE.id) == []
        finally:
            writer.close()
            other.close()

"""todos/ -- Owned resources (todos and todo lists) and their ownership scope.

Layer rule: todos/ does NOT import from api/. The only auth/ import is the
User dataclass the scope takes as its principal.
"""

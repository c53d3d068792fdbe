"""
Board subsystem.

Components:
- board_models.py: data structures (Task, Subtask, ColumnId, update variants)
- transition.py: column transition rule driven by subtask completion
- optimistic.py: optimistic-update helper (snapshot / apply / restore)
- board_store.py: BoardStore, the client-side working view
- sqlite_store.py: SQLite-backed RemoteStore with change subscription
"""

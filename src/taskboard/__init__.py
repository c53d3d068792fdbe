"""taskboard: a three-column task board with subtasks, realtime sync and AI subtask suggestions."""

__version__ = "0.1.0"

# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TASKBOARD_APP_NAME": "App display name (default: taskboard).",
    "TASKBOARD_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Local data
    "TASKBOARD_DATA_DIR": "Directory for local data and logs (default: .local/taskboard).",
    "TASKBOARD_BOARD_DB_PATH": "SQLite file for tasks/subtasks (default: <data_dir>/board.sqlite3).",
    "TASKBOARD_USERS_DB_PATH": "SQLite file for users (default: <data_dir>/users.sqlite3).",
    # Board
    "TASKBOARD_REALTIME_ENABLED": "Reload the board on every store change (true/false, default true).",
    # Bootstrap admin (created only while the users table is empty)
    "TASKBOARD_ADMIN_USERNAME": "Username of the first admin account.",
    "TASKBOARD_ADMIN_PASSWORD": "Password of the first admin account (stored hashed).",
    # AI suggestions (OpenRouter / OpenAI-compatible)
    "TASKBOARD_OPENROUTER_API_KEY": "API key (OPENROUTER_API_KEY also accepted). Without it an offline demo suggester is used.",
    "TASKBOARD_OPENROUTER_BASE_URL": "Base URL (default: https://openrouter.ai/api/v1).",
    "TASKBOARD_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "TASKBOARD_SUGGEST_MAX_ITEMS": "Maximum number of suggested subtasks kept (default: 8).",
    "TASKBOARD_HTTP_REFERER": "Optional OpenRouter metadata header.",
    "TASKBOARD_APP_TITLE": "Optional OpenRouter metadata header title.",
    "TASKBOARD_LLM_CONNECT_TIMEOUT_SECONDS": "Connect timeout for the LLM API (default: 5).",
    "TASKBOARD_LLM_READ_TIMEOUT_SECONDS": "Read timeout for the LLM API (default: 30).",
}

"""SQLite schema management (code-first approach).

Every table carries `id`, `created` and `updated`; the db_client relies on them.
List-valued fields (group ids, member ids) and schedules are stored as JSON text.
"""

_TIMESTAMP_DEFAULT = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"


# Central list of all collections in the schema
COLLECTIONS = [
    "users",
    "goal_groups",
    "tasks",
    "task_schedules",
    "completion_records",
    "chat_messages",
]


SCHEMA_STATEMENTS: list[str] = [
    f"""
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        display_name TEXT NOT NULL,
        email TEXT,
        coins INTEGER NOT NULL DEFAULT 0 CHECK (coins >= 0),
        silver_coins INTEGER NOT NULL DEFAULT 0 CHECK (silver_coins >= 0),
        group_ids TEXT NOT NULL DEFAULT '[]',
        goals TEXT NOT NULL DEFAULT '',
        habits TEXT NOT NULL DEFAULT '',
        occupation TEXT NOT NULL DEFAULT ''
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS goal_groups (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        admin_id TEXT NOT NULL,
        member_ids TEXT NOT NULL DEFAULT '[]'
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        scope TEXT NOT NULL CHECK (scope IN ('group', 'personal')),
        group_id TEXT,
        owner_id TEXT,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        schedule TEXT NOT NULL,
        coins INTEGER NOT NULL DEFAULT 0 CHECK (coins >= 0),
        visibility TEXT NOT NULL DEFAULT 'private',
        CHECK ((group_id IS NULL) <> (owner_id IS NULL))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tasks_group ON tasks (group_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks (owner_id)",
    f"""
    CREATE TABLE IF NOT EXISTS task_schedules (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        user_id TEXT NOT NULL,
        task_id TEXT NOT NULL,
        schedule TEXT NOT NULL
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_task_schedules_key ON task_schedules (user_id, task_id)",
    f"""
    CREATE TABLE IF NOT EXISTS completion_records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        user_id TEXT NOT NULL,
        task_id TEXT NOT NULL,
        task_scope TEXT NOT NULL,
        date TEXT NOT NULL,
        completed_at TEXT NOT NULL,
        coins_awarded INTEGER NOT NULL CHECK (coins_awarded >= 0),
        currency TEXT NOT NULL
    )
    """,
    # One reward per user per task per calendar day
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_completion_key ON completion_records (user_id, task_id, date)",
    "CREATE INDEX IF NOT EXISTS idx_completion_user ON completion_records (user_id)",
    f"""
    CREATE TABLE IF NOT EXISTS chat_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
        user_id TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('user', 'model')),
        content TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_chat_messages_user ON chat_messages (user_id)",
]

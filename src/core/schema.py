"""SQLite schema for the record store (code-first approach)."""

TABLE_SCHEMAS: dict[str, str] = {
    "members": """CREATE TABLE IF NOT EXISTS members (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        full_name TEXT NOT NULL,
        email TEXT,
        manager_id INTEGER REFERENCES members(id),
        is_active INTEGER NOT NULL DEFAULT 1
    )""",
    "tasks": """CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        name TEXT NOT NULL,
        description TEXT,
        category TEXT,
        benchmark REAL CHECK (benchmark IS NULL OR benchmark > 0),
        anchor_date TEXT NOT NULL,
        recurrence_type TEXT NOT NULL DEFAULT 'none'
            CHECK (recurrence_type IN ('none', 'daily', 'weekly', 'monthly', 'yearly', 'custom')),
        recurrence_config TEXT
    )""",
    "task_assignments": """CREATE TABLE IF NOT EXISTS task_assignments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        task_id INTEGER NOT NULL REFERENCES tasks(id),
        assigned_to INTEGER NOT NULL REFERENCES members(id),
        assigned_by INTEGER NOT NULL REFERENCES members(id),
        delegation_type TEXT NOT NULL CHECK (delegation_type IN ('self', 'downward', 'upward', 'peer'))
    )""",
    "task_completions": """CREATE TABLE IF NOT EXISTS task_completions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        assignment_id INTEGER NOT NULL REFERENCES task_assignments(id),
        scheduled_date TEXT NOT NULL,
        completion_date TEXT NOT NULL,
        status TEXT NOT NULL CHECK (status IN ('completed', 'partial', 'not_done')),
        quantity_completed REAL,
        notes TEXT,
        approval_status TEXT NOT NULL DEFAULT 'pending'
            CHECK (approval_status IN ('pending', 'approved', 'rejected')),
        manager_comment TEXT,
        CHECK (completion_date >= scheduled_date)
    )""",
    "task_dependencies": """CREATE TABLE IF NOT EXISTS task_dependencies (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        task_id INTEGER NOT NULL REFERENCES tasks(id),
        depends_on_task_id INTEGER NOT NULL REFERENCES tasks(id),
        CHECK (task_id != depends_on_task_id)
    )""",
    "weekly_offs": """CREATE TABLE IF NOT EXISTS weekly_offs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        day_of_week TEXT NOT NULL
    )""",
    "user_weekly_off_overrides": """CREATE TABLE IF NOT EXISTS user_weekly_off_overrides (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        user_id INTEGER NOT NULL UNIQUE REFERENCES members(id),
        days_of_week TEXT NOT NULL DEFAULT '[]'
    )""",
    "public_holidays": """CREATE TABLE IF NOT EXISTS public_holidays (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        holiday_date TEXT NOT NULL UNIQUE,
        name TEXT
    )""",
    "personal_holidays": """CREATE TABLE IF NOT EXISTS personal_holidays (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        user_id INTEGER NOT NULL REFERENCES members(id),
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        approval_status TEXT NOT NULL DEFAULT 'pending'
            CHECK (approval_status IN ('pending', 'approved', 'rejected')),
        CHECK (end_date >= start_date)
    )""",
}

INDEXES: list[str] = [
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_completion_key ON task_completions (assignment_id, scheduled_date)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_dependency_edge ON task_dependencies (task_id, depends_on_task_id)",
    "CREATE INDEX IF NOT EXISTS idx_assignment_user ON task_assignments (assigned_to)",
    "CREATE INDEX IF NOT EXISTS idx_assignment_user_task ON task_assignments (assigned_to, task_id)",
    "CREATE INDEX IF NOT EXISTS idx_personal_holiday_user ON personal_holidays (user_id, approval_status)",
]

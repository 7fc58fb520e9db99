"""SQLite schema for the board store."""

SCHEMA_VERSION = "1"

SCHEMA = """
-- Board entities (missions, projects, stories, tasks)
CREATE TABLE IF NOT EXISTS board_entities (
    entity_id TEXT PRIMARY KEY,
    public_id TEXT NOT NULL UNIQUE,
    type TEXT NOT NULL CHECK(type IN ('mission', 'project', 'story', 'task')),
    name TEXT NOT NULL CHECK(length(name) > 0),
    description TEXT,
    room TEXT,
    created_by TEXT NOT NULL,
    assigned_to TEXT,
    start_date TEXT,
    end_date TEXT,
    estimate_hours REAL,
    sprint_id TEXT,
    workflow TEXT NOT NULL DEFAULT 'inbox'
        CHECK(workflow IN ('inbox', 'build', 'review', 'shipped')),
    parent_id TEXT,
    position INTEGER,
    metadata TEXT NOT NULL DEFAULT '{}',
    version INTEGER NOT NULL DEFAULT 1,
    is_deleted INTEGER NOT NULL DEFAULT 0,
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL,
    FOREIGN KEY (parent_id) REFERENCES board_entities(entity_id)
);

CREATE INDEX IF NOT EXISTS idx_board_entities_parent ON board_entities(parent_id);
CREATE INDEX IF NOT EXISTS idx_board_entities_type ON board_entities(type);
CREATE INDEX IF NOT EXISTS idx_board_entities_workflow ON board_entities(workflow);
CREATE INDEX IF NOT EXISTS idx_board_entities_created_at ON board_entities(created_at);

-- Entity history (append-only audit trail)
CREATE TABLE IF NOT EXISTS board_history (
    history_id INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_id TEXT NOT NULL,
    action TEXT NOT NULL CHECK(action IN ('created', 'updated', 'mapped', 'unmapped',
        'workflow_changed', 'assigned', 'deleted', 'comment', 'bulk_mapped')),
    actor_id TEXT,
    payload TEXT NOT NULL DEFAULT '{}',
    created_at DATETIME NOT NULL,
    FOREIGN KEY (entity_id) REFERENCES board_entities(entity_id)
);

CREATE INDEX IF NOT EXISTS idx_board_history_entity ON board_history(entity_id);
CREATE INDEX IF NOT EXISTS idx_board_history_created_at ON board_history(created_at);

-- Metadata table
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

INSERT OR IGNORE INTO metadata (key, value) VALUES ('schema_version', '1');
"""

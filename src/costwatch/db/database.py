"""SQLite database connection and schema management.

Provides connection management and schema initialization for costwatch.
Nested documents (service usage, breakdowns, alert context, audit trail)
are stored as JSON text columns.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from costwatch.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

# Current database file (module-level, set by init_db)
_db_path: Path | None = None


def get_db_path() -> Path:
    """Active database path, falling back to the configured one."""
    return _db_path or load_app_config().database_path


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to the configured path.
    """
    global _db_path
    _db_path = Path(db_path) if db_path else load_app_config().database_path

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


def reset_db_path() -> None:
    """Forget the path set by init_db."""
    global _db_path
    _db_path = None


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM costs").fetchall()
    """
    db_path = get_db_path()

    # Ensure directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        -- users: directory used to resolve names for reports and alerts
        CREATE TABLE IF NOT EXISTS users (
            user_id TEXT PRIMARY KEY,
            first_name TEXT NOT NULL DEFAULT '',
            last_name TEXT NOT NULL DEFAULT '',
            email TEXT NOT NULL DEFAULT '',
            created_at TEXT NOT NULL
        );

        -- costs: one row per billable operation
        CREATE TABLE IF NOT EXISTS costs (
            cost_id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            source TEXT NOT NULL CHECK(source IN (
                'learning_material_generation', 'learning_chatbot', 'challenge_chatbot'
            )),
            video_id TEXT,
            transcript_id TEXT,
            problem_id TEXT,
            services TEXT NOT NULL DEFAULT '[]',
            total_cost REAL NOT NULL CHECK(total_cost >= 0),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- cost_aggregations: one row per UTC day
        CREATE TABLE IF NOT EXISTS cost_aggregations (
            date TEXT PRIMARY KEY,
            daily_total_cost REAL NOT NULL DEFAULT 0,
            daily_input_tokens INTEGER NOT NULL DEFAULT 0,
            daily_output_tokens INTEGER NOT NULL DEFAULT 0,
            daily_total_tokens INTEGER NOT NULL DEFAULT 0,
            daily_operations INTEGER NOT NULL DEFAULT 0,
            by_service TEXT NOT NULL DEFAULT '[]',
            by_source TEXT NOT NULL DEFAULT '[]',
            by_model TEXT NOT NULL DEFAULT '[]',
            by_user TEXT NOT NULL DEFAULT '[]',
            moving_average_7d REAL NOT NULL DEFAULT 0,
            moving_average_30d REAL NOT NULL DEFAULT 0,
            std_dev_7d REAL NOT NULL DEFAULT 0,
            std_dev_30d REAL NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- alerts: anomaly notifications with audit trail
        CREATE TABLE IF NOT EXISTS alerts (
            alert_id TEXT PRIMARY KEY,
            type TEXT NOT NULL CHECK(type IN ('STATISTICAL_OUTLIER', 'USER_COST_SPIKE')),
            severity TEXT NOT NULL CHECK(severity IN ('LOW', 'MEDIUM', 'HIGH')),
            status TEXT NOT NULL DEFAULT 'NEW'
                CHECK(status IN ('NEW', 'ACKNOWLEDGED', 'RESOLVED', 'ARCHIVED')),
            alert_date TEXT,
            affected_resource TEXT,
            context TEXT NOT NULL DEFAULT '{}',
            message TEXT NOT NULL,
            description TEXT,
            audit_trail TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_costs_created_at ON costs(created_at);
        CREATE INDEX IF NOT EXISTS idx_costs_user_created ON costs(user_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_costs_source ON costs(source);
        CREATE INDEX IF NOT EXISTS idx_alerts_created_at ON alerts(created_at);
        CREATE INDEX IF NOT EXISTS idx_alerts_type_date ON alerts(type, alert_date);
        CREATE INDEX IF NOT EXISTS idx_alerts_status ON alerts(status);
        """
    )

"""Repository functions for users table."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from costwatch.db.database import get_db
from costwatch.utils.dates import to_iso, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class UserRecord:
    """User record from database."""

    user_id: str
    first_name: str
    last_name: str
    email: str
    created_at: str

    @property
    def full_name(self) -> str:
        """First and last name joined."""
        return f"{self.first_name} {self.last_name}".strip()


def upsert_user(user_id: str, first_name: str = "", last_name: str = "", email: str = "") -> None:
    """Insert or update a user.

    Args:
        user_id: User identifier
        first_name: Given name
        last_name: Family name
        email: Contact email
    """
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO users (user_id, first_name, last_name, email, created_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                first_name = excluded.first_name,
                last_name = excluded.last_name,
                email = excluded.email
            """,
            (user_id, first_name, last_name, email, to_iso(utc_now())),
        )

    logger.debug("users.upserted", user_id=user_id)


def get_user_by_id(user_id: str) -> UserRecord | None:
    """Get user by ID.

    Returns:
        UserRecord if found, None otherwise
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE user_id = ?", (user_id,)
        ).fetchone()

    if row is None:
        return None

    return _row_to_record(row)


def get_users_by_ids(user_ids: list[str]) -> dict[str, UserRecord]:
    """Get several users keyed by user_id. Unknown ids are absent."""
    if not user_ids:
        return {}

    placeholders = ", ".join("?" for _ in user_ids)
    with get_db() as conn:
        rows = conn.execute(
            f"SELECT * FROM users WHERE user_id IN ({placeholders})",
            tuple(user_ids),
        ).fetchall()

    return {row["user_id"]: _row_to_record(row) for row in rows}


def _row_to_record(row) -> UserRecord:
    """Convert database row to UserRecord."""
    return UserRecord(
        user_id=row["user_id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        email=row["email"],
        created_at=row["created_at"],
    )

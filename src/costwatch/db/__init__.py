"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions for users, costs, cost_aggregations and alerts
"""

from costwatch.db.database import get_db, init_db

__all__ = ["get_db", "init_db"]

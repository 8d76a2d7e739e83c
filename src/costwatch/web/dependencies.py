"""Shared route dependencies."""

import secrets

from fastapi import Header, HTTPException, status

from costwatch.config.app_config import load_app_config


def require_admin_key(x_admin_key: str | None = Header(default=None)) -> None:
    """Reject requests whose X-Admin-Key doesn't match the configured key.

    With no key configured the check is disabled (local development).
    """
    expected = load_app_config().get_admin_key()
    if expected is None:
        return

    if not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin key",
        )

import logging
import os

from fastapi import Header, HTTPException

logger = logging.getLogger(__name__)

ADMIN_API_KEY = os.getenv("CATFE_ADMIN_API_KEY", "").strip()
_open_mode_warned = False


def require_admin(x_admin_key: str | None = Header(default=None)) -> None:
    """Guard for admin-only endpoints (header `X-Admin-Key`)."""
    global _open_mode_warned
    if not ADMIN_API_KEY:
        if not _open_mode_warned:
            logger.warning("CATFE_ADMIN_API_KEY is not set, admin endpoints are open")
            _open_mode_warned = True
        return
    if not x_admin_key:
        raise HTTPException(status_code=401, detail="Admin key required")
    if x_admin_key != ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid admin key")

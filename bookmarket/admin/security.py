# bookmarket/admin/security.py
import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from ..config import settings
from ..logs import get_logger

log = get_logger(__name__)


def require_admin_key(x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key")) -> bool:
    """
    Log endpoints are guarded by a shared key. Without ADMIN_PASSWORD
    configured nobody gets in.
    """
    expected = settings.ADMIN_PASSWORD
    if not expected or not x_admin_key or not hmac.compare_digest(x_admin_key.encode("utf-8"), expected.encode("utf-8")):
        log.warning("admin key rejected")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin only")
    return True

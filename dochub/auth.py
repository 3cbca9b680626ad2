# This module guards the administration routes with the shared admin key
# The key travels in the URL path, as the existing clients expect
import hmac
import logging

from fastapi import Depends, HTTPException, status

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


# This dependency compares the admin key from the path with the configured one
# A wrong key answers 404 so the route does not reveal that it exists
def require_admin_key(admin_key: str, settings: Settings = Depends(get_settings)) -> None:
    if not settings.admin_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Administration key not configured"
        )

    if not hmac.compare_digest(admin_key.encode("utf-8"), settings.admin_key.encode("utf-8")):
        logger.info("Admin key is not good")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

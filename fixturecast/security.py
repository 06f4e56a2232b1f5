"""Rate limiting for public reads and API key checks for pipeline triggers."""

import logging
import os
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.util import get_remote_address

from fixturecast.config import get_settings

logger = logging.getLogger(__name__)

# Keyed by client IP; limits are declared per route
limiter = Limiter(key_func=get_remote_address)

api_key_header = APIKeyHeader(name=get_settings().API_KEY_HEADER, auto_error=False)


def is_production() -> bool:
    return os.getenv("ENVIRONMENT", "").lower() == "production"


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> bool:
    """
    Guard for endpoints that start runs or mutate stored state.

    With API_KEY unset, production refuses every trigger (503) while local
    development lets them through.
    """
    settings = get_settings()
    if not settings.API_KEY:
        if is_production():
            logger.error("API_KEY not configured in production - pipeline triggers disabled")
            raise HTTPException(status_code=503, detail="Pipeline triggers disabled: API_KEY not configured")
        return True

    if not api_key:
        raise HTTPException(status_code=401, detail=f"Missing {settings.API_KEY_HEADER} header")

    if api_key != settings.API_KEY:
        logger.warning("Rejected pipeline trigger with an invalid API key")
        raise HTTPException(status_code=403, detail="Invalid API key")

    return True

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from app.config import settings

logger = logging.getLogger("pickem.auth")


def _extract_secret(authorization: Optional[str], x_cron_secret: Optional[str]) -> str:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return (x_cron_secret or "").strip()


async def require_cron_secret(
    authorization: Optional[str] = Header(default=None),
    x_cron_secret: Optional[str] = Header(default=None),
) -> None:
    """FastAPI dependency: cron and admin triggers must present CRON_SECRET.

    Accepts ``Authorization: Bearer <secret>`` or ``x-cron-secret: <secret>``.
    """
    if not settings.CRON_SECRET:
        logger.error("CRON_SECRET is not configured; rejecting trigger request")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        )

    provided = _extract_secret(authorization, x_cron_secret)
    if not provided or not hmac.compare_digest(provided.encode(), settings.CRON_SECRET.encode()):
        logger.warning("Unauthorized trigger request (secret provided: %s)", bool(provided))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Valid CRON secret required",
        )

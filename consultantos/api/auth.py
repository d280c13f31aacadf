"""Request identity for the ConsultantOS API.

Authentication happens upstream at the identity-provider gateway, which
forwards the verified user id in the ``X-User-Id`` header.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException, status

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


async def get_user_id(x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER)) -> str:
    """FastAPI dependency returning the caller's user id, or 401."""
    if not x_user_id or not x_user_id.strip():
        logger.debug("Rejected request without %s header", USER_ID_HEADER)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return x_user_id.strip()

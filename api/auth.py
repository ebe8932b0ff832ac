"""
Bearer-token authentication for the FastAPI API.
"""

from typing import Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from accounts.exceptions import Unauthorized
from accounts.models import AuthContext
from utilities.logger import bind_request_context

logger = structlog.get_logger(__name__)

# Security scheme; missing headers are reported as 401 below rather than 403
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> AuthContext:
    """
    Validate the bearer token and return the caller's identity.

    Args:
        credentials: HTTP authorization credentials

    Returns:
        AuthContext for the caller

    Raises:
        HTTPException: 401 if the token is missing, invalid, expired or revoked
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")

    from api.main import user_service

    if user_service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="User service not available"
        )

    try:
        auth = await user_service.authenticate(credentials.credentials)
    except Unauthorized as e:
        logger.warning("Rejected bearer token", reason=e.message)
        raise _unauthorized(e.message)

    bind_request_context(user_id=auth.user_id)
    return auth

"""
Authentication dependencies for FastAPI.

Identity is owned by an external service: a request carries a Bearer JWT with
a `user_id`, and the user record must exist and be active.
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from carpool.app.core.jwt import decode_access_token
from carpool.app.core.token_revocation import is_token_revoked, are_user_tokens_revoked
from carpool.app.db.session import get_db
from carpool.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _authenticate(token: str, db: AsyncSession) -> dict:
    # 1. Decode and validate JWT
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("user_id")
    if not user_id:
        raise _unauthorized("Invalid token payload")

    # 2. Explicitly revoked token
    if await is_token_revoked(token):
        raise _unauthorized("Token has been revoked")

    # 3. All tokens of the user revoked (user blocked)
    if await are_user_tokens_revoked(user_id):
        raise _unauthorized("User access has been revoked")

    # 4. Real-time database check
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise _unauthorized("User not found")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Returns:
        Decoded token payload (contains `user_id`)

    Raises:
        HTTPException: 401 if authentication fails, 403 if the user is inactive
    """
    return await _authenticate(credentials.credentials, db)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: AsyncSession = Depends(get_db)
) -> Optional[dict]:
    """
    Like get_current_user, but anonymous callers get None.

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None
    return await _authenticate(credentials.credentials, db)

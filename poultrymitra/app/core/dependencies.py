"""
FastAPI dependencies.

Authentication of the bearer token, and access to the ledger and
connection components built at startup.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from poultrymitra.app.core.jwt import decode_access_token
from poultrymitra.app.core.redis_client import get_redis
from poultrymitra.app.core.token_revocation import is_token_revoked
from poultrymitra.app.db.session import get_db
from poultrymitra.app.models.user import User
from poultrymitra.app.services.connection_workflow import ConnectionWorkflow
from poultrymitra.app.services.ledger_account import LedgerAccount

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
    redis_client=Depends(get_redis)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    1. Validates JWT token signature and expiry
    2. Checks if token has been revoked (logout)
    3. Verifies user still exists and is active

    Returns:
        Decoded token payload (sub, user_id, role)

    Raises:
        HTTPException: 401 if authentication fails, 403 for inactive users
    """
    token = credentials.credentials

    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if await is_token_revoked(redis_client, token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return {**payload, "token": token}


def get_ledger_account(request: Request) -> LedgerAccount:
    return request.app.state.ledger_account


def get_connection_workflow(request: Request) -> ConnectionWorkflow:
    return request.app.state.connection_workflow

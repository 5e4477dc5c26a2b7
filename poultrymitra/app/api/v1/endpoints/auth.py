"""
Authentication API endpoints.

Provides register, login, logout and user info endpoints.
"""

import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from poultrymitra.app.db.session import get_db
from poultrymitra.app.models.user import User
from poultrymitra.app.models.enums import UserRole
from poultrymitra.app.schemas.auth import UserRegister, UserLogin, TokenResponse, UserResponse
from poultrymitra.app.core.security import get_password_hash, verify_password
from poultrymitra.app.core.jwt import create_access_token
from poultrymitra.app.core.dependencies import get_current_user
from poultrymitra.app.core.redis_client import get_redis
from poultrymitra.app.core.token_revocation import revoke_token
from poultrymitra.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/auth", tags=["Authentication"])


def generate_dealer_code() -> str:
    return f"PM-DLR-{secrets.token_hex(3).upper()}"


async def unused_dealer_code(db: AsyncSession) -> str:
    """Draw codes until one is free (the column is unique)."""
    while True:
        code = generate_dealer_code()
        taken = await db.execute(select(User.id).where(User.dealer_code == code))
        if taken.scalar_one_or_none() is None:
            return code


def build_token_response(user: User) -> TokenResponse:
    jwt_payload = {
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value,
    }
    return TokenResponse(
        access_token=create_access_token(data=jwt_payload),
        token_type="bearer",
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        dealer_code=user.dealer_code
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new farmer or dealer.

    - ADMIN role cannot be created via API.
    - Dealers receive a unique dealer code farmers can connect with.
    """
    if user_data.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin users cannot be registered via API"
        )

    result = await db.execute(
        select(User).where(
            or_(User.username == user_data.username, User.email == user_data.email)
        )
    )
    existing_user = result.scalar_one_or_none()

    if existing_user:
        if existing_user.username == user_data.username:
            detail = "Username already registered"
        else:
            detail = "Email already registered"
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    new_user = User(
        email=user_data.email,
        username=user_data.username,
        name=user_data.name,
        hashed_password=get_password_hash(user_data.password),
        role=user_data.role,
        plan_type=user_data.plan_type,
        dealer_code=await unused_dealer_code(db) if user_data.role == UserRole.DEALER else None,
        is_active=True
    )

    db.add(new_user)
    await db.flush()
    await log_event(
        db=db,
        action=AuditAction.USER_REGISTERED,
        actor_id=new_user.id,
        actor_username=new_user.username,
        metadata={"role": new_user.role.value}
    )
    await db.commit()
    await db.refresh(new_user)

    return build_token_response(new_user)


async def _reject_login(db: AsyncSession, username: str, user, reason: str, ip_address, status_code: int, detail: str):
    """Audit the failed attempt, then refuse it."""
    await log_event(
        db=db,
        action=AuditAction.LOGIN_FAILED,
        actor_id=user.id if user else None,
        actor_username=user.username if user else username,
        metadata={"reason": reason},
        ip_address=ip_address
    )
    await db.commit()

    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    raise HTTPException(status_code=status_code, detail=detail, headers=headers)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Login user and return JWT token.

    Accepts username or email. Successful and failed attempts are audited.
    """
    ip_address = request.client.host if request.client else None

    result = await db.execute(
        select(User).where(
            or_(User.username == credentials.username, User.email == credentials.username)
        )
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(credentials.password, user.hashed_password):
        reason = "User not found" if user is None else "Invalid password"
        await _reject_login(
            db, credentials.username, user, reason, ip_address,
            status.HTTP_401_UNAUTHORIZED, "Invalid credentials"
        )

    if not user.is_active:
        await _reject_login(
            db, credentials.username, user, "Account is inactive", ip_address,
            status.HTTP_403_FORBIDDEN, "Inactive user account"
        )

    await log_event(
        db=db,
        action=AuditAction.LOGIN_SUCCESS,
        actor_id=user.id,
        actor_username=user.username,
        ip_address=ip_address
    )
    await db.commit()

    return build_token_response(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    redis_client=Depends(get_redis)
):
    """Revoke the bearer token used for this request."""
    if not await revoke_token(redis_client, current_user["token"], current_user["user_id"]):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not revoke token, please retry"
        )

    await log_event(
        db=db,
        action=AuditAction.LOGOUT,
        actor_id=current_user["user_id"],
        actor_username=current_user["sub"]
    )
    await db.commit()


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get current authenticated user information.

    Raises:
        404: If user not found in database
    """
    user = await db.get(User, current_user["user_id"])
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return UserResponse.model_validate(user)

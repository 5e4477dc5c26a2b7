"""
Security guards for role-based and ownership-based access control.

The ledger and connection components trust the ids they are given; these
guards decide which ids a caller may pass.
"""

from typing import List, Optional
from fastapi import Depends, HTTPException, status
from poultrymitra.app.models.enums import UserRole
from poultrymitra.app.models.connection import Connection
from poultrymitra.app.models.connection_enums import ConnectionInitiator
from poultrymitra.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/admin/ledger/entries")
        async def list_all(current_user: dict = Depends(require_role([UserRole.ADMIN]))):
            ...

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing from token"
            )

        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


def is_admin(current_user: dict) -> bool:
    return current_user.get("role") == UserRole.ADMIN.value


class OwnershipGuard:
    """
    Decides whose ledger a caller may touch.

    Farmers and dealers act on their own ledger only; admins may act on any.
    """

    def resolve_user_id(self, current_user: dict, requested_user_id: Optional[int] = None) -> int:
        """
        The ledger owner for this request.

        Raises:
            HTTPException 403 if a non-admin asks for someone else's ledger
        """
        own_id = current_user["user_id"]
        if requested_user_id is None or requested_user_id == own_id:
            return own_id
        if is_admin(current_user):
            return requested_user_id
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You do not have permission to access this ledger."
        )


class ConnectionGuard:
    """
    Decides who may act on a connection.

    Only the party that did not send the request (or an admin) may resolve
    it; only the two parties (or an admin) may view it.
    """

    def enforce_participant(self, connection: Connection, current_user: dict):
        if is_admin(current_user):
            return
        if current_user["user_id"] not in (connection.farmer_id, connection.dealer_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. You are not a party to this connection."
            )

    def enforce_resolver(self, connection: Connection, current_user: dict):
        if is_admin(current_user):
            return
        self.enforce_participant(connection, current_user)

        if connection.requested_by == ConnectionInitiator.FARMER:
            resolver_id = connection.dealer_id
        else:
            resolver_id = connection.farmer_id

        if current_user["user_id"] != resolver_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. The other party must approve or reject this request."
            )

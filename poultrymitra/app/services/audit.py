"""
Audit logging service.

Writes audit rows for authentication and domain events. Rows are flushed,
not committed: the caller decides when the surrounding unit of work commits.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from poultrymitra.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    USER_REGISTERED = "USER_REGISTERED"

    LEDGER_ENTRY_APPENDED = "LEDGER_ENTRY_APPENDED"

    CONNECTION_REQUESTED = "CONNECTION_REQUESTED"
    CONNECTION_APPROVED = "CONNECTION_APPROVED"
    CONNECTION_REJECTED = "CONNECTION_REJECTED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    target_user_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Add an audit row to the session.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        target_user_id: ID of the user the action concerned
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        The flushed AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        target_user_id=target_user_id,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.flush()
    return audit_log

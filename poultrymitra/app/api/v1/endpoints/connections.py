"""
Connection API Endpoints.

Farmers and dealers send connection requests to each other; the receiving
party approves or rejects them. Approval links both accounts.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from poultrymitra.app.core.dependencies import get_connection_workflow
from poultrymitra.app.core.guards import ConnectionGuard, require_role
from poultrymitra.app.db.session import get_db
from poultrymitra.app.models.connection import Connection
from poultrymitra.app.models.connection_enums import ConnectionInitiator, ConnectionStatus
from poultrymitra.app.models.enums import UserRole
from poultrymitra.app.schemas.connection import (
    ConnectionByDealerCode,
    ConnectionListResponse,
    ConnectionRequest,
    ConnectionResponse,
    MembershipResponse,
)
from poultrymitra.app.services.audit import AuditAction, log_event
from poultrymitra.app.services.connection_workflow import ConnectionWorkflow

router = APIRouter(prefix="/connections", tags=["Connections"])
connection_guard = ConnectionGuard()

PARTIES = [UserRole.FARMER, UserRole.DEALER]


def other_party(connection: Connection, user_id: int) -> int:
    return connection.dealer_id if user_id == connection.farmer_id else connection.farmer_id


@router.post("", response_model=ConnectionResponse, status_code=status.HTTP_201_CREATED)
async def request_connection(
    request_data: ConnectionRequest,
    current_user: dict = Depends(require_role(PARTIES)),
    workflow: ConnectionWorkflow = Depends(get_connection_workflow),
    db: AsyncSession = Depends(get_db)
):
    """
    Send a connection request.

    Farmers name a dealer_id, dealers name a farmer_id.
    """
    user_id = current_user["user_id"]

    if current_user["role"] == UserRole.FARMER.value:
        if request_data.dealer_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="dealer_id is required")
        connection = await workflow.request_connection(ConnectionInitiator.FARMER, user_id, request_data.dealer_id)
    else:
        if request_data.farmer_id is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="farmer_id is required")
        connection = await workflow.request_connection(ConnectionInitiator.DEALER, request_data.farmer_id, user_id)

    await log_event(
        db=db,
        action=AuditAction.CONNECTION_REQUESTED,
        actor_id=user_id,
        actor_username=current_user["sub"],
        target_user_id=other_party(connection, user_id),
        metadata={"connection_id": connection.id}
    )
    await db.commit()

    return ConnectionResponse.model_validate(connection)


@router.post("/by-dealer-code", response_model=ConnectionResponse, status_code=status.HTTP_201_CREATED)
async def request_connection_by_dealer_code(
    request_data: ConnectionByDealerCode,
    current_user: dict = Depends(require_role([UserRole.FARMER])),
    workflow: ConnectionWorkflow = Depends(get_connection_workflow),
    db: AsyncSession = Depends(get_db)
):
    """Farmer sends a request to the dealer owning the given dealer code."""
    connection = await workflow.request_connection_by_dealer_code(
        current_user["user_id"], request_data.dealer_code
    )

    await log_event(
        db=db,
        action=AuditAction.CONNECTION_REQUESTED,
        actor_id=current_user["user_id"],
        actor_username=current_user["sub"],
        target_user_id=connection.dealer_id,
        metadata={"connection_id": connection.id, "dealer_code": request_data.dealer_code}
    )
    await db.commit()

    return ConnectionResponse.model_validate(connection)


@router.get("", response_model=ConnectionListResponse)
async def list_my_connections(
    current_user: dict = Depends(require_role(PARTIES)),
    workflow: ConnectionWorkflow = Depends(get_connection_workflow)
):
    """Connections involving the caller, newest first."""
    role = ConnectionInitiator.FARMER if current_user["role"] == UserRole.FARMER.value else ConnectionInitiator.DEALER
    connections = await workflow.list_connections(current_user["user_id"], role)

    return ConnectionListResponse(
        connections=[ConnectionResponse.model_validate(c) for c in connections],
        total=len(connections)
    )


@router.get("/members", response_model=MembershipResponse)
async def get_my_members(
    current_user: dict = Depends(require_role(PARTIES)),
    workflow: ConnectionWorkflow = Depends(get_connection_workflow)
):
    """The caller's connected farmers and dealers."""
    user_id = current_user["user_id"]
    return MembershipResponse(
        user_id=user_id,
        connected_farmers=await workflow.connected_farmers(user_id),
        connected_dealers=await workflow.connected_dealers(user_id)
    )


async def _resolve(
    connection_id: int,
    decision: ConnectionStatus,
    action: str,
    current_user: dict,
    workflow: ConnectionWorkflow,
    db: AsyncSession
) -> ConnectionResponse:
    connection = await workflow.get_connection(connection_id)
    connection_guard.enforce_resolver(connection, current_user)

    connection = await workflow.resolve_connection(connection_id, decision)

    await log_event(
        db=db,
        action=action,
        actor_id=current_user["user_id"],
        actor_username=current_user["sub"],
        target_user_id=other_party(connection, current_user["user_id"]),
        metadata={
            "connection_id": connection.id,
            "farmer_id": connection.farmer_id,
            "dealer_id": connection.dealer_id
        }
    )
    await db.commit()

    return ConnectionResponse.model_validate(connection)


@router.post("/{connection_id}/approve", response_model=ConnectionResponse)
async def approve_connection(
    connection_id: int = Path(..., description="Connection ID"),
    current_user: dict = Depends(require_role([UserRole.FARMER, UserRole.DEALER, UserRole.ADMIN])),
    workflow: ConnectionWorkflow = Depends(get_connection_workflow),
    db: AsyncSession = Depends(get_db)
):
    """
    Approve a pending request (receiving party or admin).

    Decision is final once made.
    """
    return await _resolve(
        connection_id, ConnectionStatus.APPROVED, AuditAction.CONNECTION_APPROVED, current_user, workflow, db
    )


@router.post("/{connection_id}/reject", response_model=ConnectionResponse)
async def reject_connection(
    connection_id: int = Path(..., description="Connection ID"),
    current_user: dict = Depends(require_role([UserRole.FARMER, UserRole.DEALER, UserRole.ADMIN])),
    workflow: ConnectionWorkflow = Depends(get_connection_workflow),
    db: AsyncSession = Depends(get_db)
):
    """
    Reject a pending request (receiving party or admin).

    Decision is final once made.
    """
    return await _resolve(
        connection_id, ConnectionStatus.REJECTED, AuditAction.CONNECTION_REJECTED, current_user, workflow, db
    )

"""
Connection Workflow service.

Mediates the farmer/dealer approval handshake:

    PENDING --approve--> APPROVED   (both membership sets gain the other party)
    PENDING --reject---> REJECTED   (no membership change)

APPROVED and REJECTED are final. Resolution uses a status-guarded
conditional UPDATE, so of two concurrent decisions on the same connection
exactly one commits and the other fails with InvalidStateError.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from poultrymitra.app.core.config import Settings
from poultrymitra.app.core.exceptions import (
    AlreadyConnectedError,
    CapacityExceededError,
    InvalidArgumentError,
    InvalidStateError,
    RequestAlreadyPendingError,
    ResourceNotFoundError,
)
from poultrymitra.app.core.reliability import ConflictRetryPolicy
from poultrymitra.app.db.errors import translate_db_errors
from poultrymitra.app.db.session import Database
from poultrymitra.app.models.connection import Connection
from poultrymitra.app.models.connection_enums import (
    ACTIVE_CONNECTION_STATUSES,
    ConnectionInitiator,
    ConnectionStatus,
    MembershipKind,
)
from poultrymitra.app.models.enums import PlanType, UserRole
from poultrymitra.app.models.user import User
from poultrymitra.app.services.membership import count_members, link_farmer_and_dealer, list_members

logger = logging.getLogger("poultrymitra.connections")

DECISIONS = (ConnectionStatus.APPROVED, ConnectionStatus.REJECTED)


def coerce_initiator(initiator_role) -> ConnectionInitiator:
    if isinstance(initiator_role, ConnectionInitiator):
        return initiator_role
    try:
        return ConnectionInitiator(str(initiator_role).lower())
    except ValueError:
        raise InvalidArgumentError("Initiator must be 'farmer' or 'dealer'", field="initiator_role")


def coerce_decision(decision) -> ConnectionStatus:
    try:
        status = decision if isinstance(decision, ConnectionStatus) else ConnectionStatus(str(decision).upper())
    except ValueError:
        status = None
    if status not in DECISIONS:
        raise InvalidArgumentError("Decision must be APPROVED or REJECTED", field="decision")
    return status


class ConnectionWorkflow:
    """
    Farmer/dealer connection requests and their resolution.

    Usage:
        workflow = ConnectionWorkflow(database, farmer_limit=2)
        conn = await workflow.request_connection("farmer", farmer_id, dealer_id)
        await workflow.resolve_connection(conn.id, ConnectionStatus.APPROVED)
    """

    def __init__(
        self,
        database: Database,
        farmer_limit: int = 2,
        retry_policy: Optional[ConflictRetryPolicy] = None
    ):
        self.database = database
        self.farmer_limit = farmer_limit
        self.retry_policy = retry_policy or ConflictRetryPolicy()

    @classmethod
    def from_settings(cls, database: Database, settings: Settings) -> "ConnectionWorkflow":
        return cls(
            database,
            farmer_limit=settings.free_plan_farmer_limit,
            retry_policy=ConflictRetryPolicy(
                max_attempts=settings.transaction_max_attempts,
                backoff_ms=settings.transaction_retry_backoff_ms,
            ),
        )

    async def request_connection(self, initiator_role, farmer_id: int, dealer_id: int) -> Connection:
        """
        Create a PENDING connection between a farmer and a dealer.

        The duplicate check, the capacity check and the insert run in one
        transaction; a concurrent duplicate that passes the check is stopped
        by the partial unique index on (farmer_id, dealer_id).

        Raises:
            InvalidArgumentError: Bad initiator, same user twice, or wrong roles
            ResourceNotFoundError: Either user does not exist
            AlreadyConnectedError: An APPROVED connection exists for the pair
            RequestAlreadyPendingError: A PENDING connection exists for the pair
            CapacityExceededError: FREE-plan dealer at its farmer limit
            StorageUnavailableError: Database unreachable
        """
        initiator = coerce_initiator(initiator_role)
        if farmer_id == dealer_id:
            raise InvalidArgumentError("Farmer and dealer must be different accounts")

        connection = await self.retry_policy.call(self._request_attempt, initiator, farmer_id, dealer_id)

        logger.info(
            "Connection requested",
            extra={
                "connection_id": connection.id,
                "farmer_id": farmer_id,
                "dealer_id": dealer_id,
                "requested_by": initiator.value,
            }
        )
        return connection

    async def _request_attempt(self, initiator: ConnectionInitiator, farmer_id: int, dealer_id: int) -> Connection:
        async with self.database.session() as session:
            with translate_db_errors("connections.request"):
                farmer = await self._get_user(session, farmer_id, UserRole.FARMER, "farmer_id")
                dealer = await self._get_user(session, dealer_id, UserRole.DEALER, "dealer_id")

                existing = await session.execute(
                    select(Connection).where(
                        Connection.farmer_id == farmer.id,
                        Connection.dealer_id == dealer.id,
                        Connection.status.in_(ACTIVE_CONNECTION_STATUSES)
                    )
                )
                for conn in existing.scalars().all():
                    if conn.status == ConnectionStatus.APPROVED:
                        raise AlreadyConnectedError(farmer.id, dealer.id)
                    raise RequestAlreadyPendingError(farmer.id, dealer.id)

                await self._check_capacity(session, dealer.id, dealer)

                connection = Connection(
                    farmer_id=farmer.id,
                    dealer_id=dealer.id,
                    status=ConnectionStatus.PENDING,
                    requested_by=initiator
                )
                session.add(connection)
                try:
                    await session.flush()
                    await session.commit()
                except IntegrityError as e:
                    # Lost the race on uq_connections_active_pair; the rollback expired farmer and dealer
                    raise RequestAlreadyPendingError(farmer_id, dealer_id) from e
        return connection

    async def request_connection_by_dealer_code(self, farmer_id: int, dealer_code: str) -> Connection:
        """Farmer-initiated request addressed by the dealer's shareable code."""
        dealer = await self.find_dealer_by_code(dealer_code)
        if dealer is None:
            raise ResourceNotFoundError("Dealer", dealer_code)
        return await self.request_connection(ConnectionInitiator.FARMER, farmer_id, dealer.id)

    async def resolve_connection(self, connection_id: int, decision) -> Connection:
        """
        Approve or reject a PENDING connection.

        Approval links both membership sets in the same commit as the status
        change. Rejection only changes the status.

        Raises:
            InvalidArgumentError: decision is not APPROVED/REJECTED
            ResourceNotFoundError: connection_id does not exist
            InvalidStateError: The connection is not PENDING, including when a
                concurrent resolution committed first
            CapacityExceededError: Approving would take a FREE-plan dealer past
                its farmer limit
            StorageUnavailableError: Database unreachable
        """
        status = coerce_decision(decision)

        connection = await self.retry_policy.call(self._resolve_attempt, connection_id, status)

        logger.info(
            "Connection resolved",
            extra={
                "connection_id": connection_id,
                "status": status.value,
                "farmer_id": connection.farmer_id,
                "dealer_id": connection.dealer_id,
            }
        )
        return connection

    async def _resolve_attempt(self, connection_id: int, status: ConnectionStatus) -> Connection:
        async with self.database.session() as session:
            with translate_db_errors("connections.resolve"):
                connection = await session.get(Connection, connection_id)
                if connection is None:
                    raise ResourceNotFoundError("Connection", connection_id)
                if connection.status != ConnectionStatus.PENDING:
                    raise InvalidStateError(
                        f"Connection already resolved with status: {connection.status.value}",
                        details={"connection_id": connection_id, "status": connection.status.value}
                    )

                if status == ConnectionStatus.APPROVED:
                    await self._check_capacity(session, connection.dealer_id)

                decided_at = datetime.now(timezone.utc)
                result = await session.execute(
                    update(Connection)
                    .where(
                        Connection.id == connection_id,
                        Connection.status == ConnectionStatus.PENDING
                    )
                    .values(status=status, decided_at=decided_at)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise InvalidStateError(
                        "Connection was resolved concurrently",
                        details={"connection_id": connection_id}
                    )

                if status == ConnectionStatus.APPROVED:
                    await link_farmer_and_dealer(session, connection.farmer_id, connection.dealer_id)

                await session.commit()

        connection.status = status
        connection.decided_at = decided_at
        return connection

    async def get_connection(self, connection_id: int) -> Connection:
        async with self.database.session() as session:
            with translate_db_errors("connections.get"):
                connection = await session.get(Connection, connection_id)
        if connection is None:
            raise ResourceNotFoundError("Connection", connection_id)
        return connection

    async def list_connections(self, user_id: int, role) -> List[Connection]:
        """Connections where the user is the farmer (role farmer) or the dealer (role dealer), newest first."""
        side = coerce_initiator(role)
        column = Connection.farmer_id if side == ConnectionInitiator.FARMER else Connection.dealer_id

        async with self.database.session() as session:
            with translate_db_errors("connections.list"):
                result = await session.execute(
                    select(Connection)
                    .where(column == user_id)
                    .order_by(Connection.created_at.desc(), Connection.id.desc())
                )
                return list(result.scalars().all())

    async def connected_dealers(self, farmer_id: int) -> List[int]:
        async with self.database.session() as session:
            with translate_db_errors("connections.members"):
                return await list_members(session, farmer_id, MembershipKind.DEALER)

    async def connected_farmers(self, dealer_id: int) -> List[int]:
        async with self.database.session() as session:
            with translate_db_errors("connections.members"):
                return await list_members(session, dealer_id, MembershipKind.FARMER)

    async def find_dealer_by_code(self, dealer_code: str) -> Optional[User]:
        code = (dealer_code or "").strip().upper()
        if not code:
            raise InvalidArgumentError("Dealer code is required", field="dealer_code")

        async with self.database.session() as session:
            with translate_db_errors("connections.find_dealer"):
                result = await session.execute(
                    select(User).where(User.dealer_code == code, User.role == UserRole.DEALER)
                )
                return result.scalar_one_or_none()

    async def _check_capacity(self, session: AsyncSession, dealer_id: int, dealer: Optional[User] = None) -> None:
        if dealer is None:
            dealer = await session.get(User, dealer_id)
        if dealer.plan_type == PlanType.PREMIUM:
            return
        connected = await count_members(session, dealer_id, MembershipKind.FARMER)
        if connected >= self.farmer_limit:
            raise CapacityExceededError(dealer_id, self.farmer_limit)

    @staticmethod
    async def _get_user(session: AsyncSession, user_id: int, role: UserRole, field: str) -> User:
        user = await session.get(User, user_id)
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        if user.role != role:
            raise InvalidArgumentError(f"User {user_id} is not a {role.value.lower()}", field=field)
        return user

"""
Connection database model.

Tracks the approval handshake between a farmer and a dealer.
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, Index, text
from sqlalchemy.sql import func
from poultrymitra.app.db.session import Base
from poultrymitra.app.models.connection_enums import ConnectionStatus, ConnectionInitiator

_ACTIVE_PREDICATE = text("status IN ('PENDING', 'APPROVED')")


class Connection(Base):
    """
    Connection model.

    Created PENDING by either party; the other party approves or rejects it.
    APPROVED and REJECTED are final. At most one PENDING or APPROVED row may
    exist per (farmer, dealer) pair, backed by a partial unique index.
    """
    __tablename__ = "connections"
    __table_args__ = (
        Index(
            "uq_connections_active_pair",
            "farmer_id",
            "dealer_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Parties
    farmer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    dealer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    status = Column(Enum(ConnectionStatus), default=ConnectionStatus.PENDING, nullable=False, index=True)
    requested_by = Column(Enum(ConnectionInitiator), nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    decided_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return (
            f"<Connection(id={self.id}, farmer_id={self.farmer_id}, dealer_id={self.dealer_id}, "
            f"status='{self.status.value}')>"
        )

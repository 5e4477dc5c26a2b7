"""
Ledger Entry database model.

Append-only records carrying a chained running balance.
"""

from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, String, UniqueConstraint, Index
from sqlalchemy.sql import func
from poultrymitra.app.db.session import Base
from poultrymitra.app.models.ledger_enums import LedgerEntryType

MONEY = Numeric(14, 2, asdecimal=True)


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Immutable record of one debit or credit for a user.
    balance_after is computed from the user's previous entry when the row is
    written and is never recomputed. NO updates or deletions allowed.

    Ordering key is (date, sequence); sequence breaks ties between entries
    recorded at the same instant.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        UniqueConstraint("user_id", "sequence", name="uq_ledger_entries_user_sequence"),
        Index("ix_ledger_entries_user_date", "user_id", "date", "sequence"),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Owner (farmer or dealer)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    # Entry details
    entry_type = Column(Enum(LedgerEntryType), nullable=False)  # DEBIT or CREDIT
    description = Column(String(255), nullable=False)

    # Financials
    amount = Column(MONEY, nullable=False)
    balance_after = Column(MONEY, nullable=False)

    # Ordering
    date = Column(DateTime(timezone=True), nullable=False)
    sequence = Column(Integer, nullable=False)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def signed_amount(self):
        return self.amount if self.entry_type == LedgerEntryType.CREDIT else -self.amount

    def __repr__(self):
        return (
            f"<LedgerEntry(id={self.id}, user_id={self.user_id}, type='{self.entry_type.value}', "
            f"amount={self.amount}, balance_after={self.balance_after})>"
        )

"""
Ledger account head model.

One row per user that has ledger entries. Its version column is the
optimistic-concurrency token for the user's entry stream: every append
bumps it with a conditional UPDATE, so two appends that read the same head
cannot both commit.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime
from sqlalchemy.sql import func
from poultrymitra.app.db.session import Base
from poultrymitra.app.models.ledger_entry import MONEY


class LedgerAccountHead(Base):
    __tablename__ = "ledger_accounts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, unique=True, index=True)

    version = Column(Integer, nullable=False, default=0)
    balance = Column(MONEY, nullable=False, default=0)
    entry_count = Column(Integer, nullable=False, default=0)
    last_entry_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<LedgerAccountHead(user_id={self.user_id}, version={self.version}, balance={self.balance})>"

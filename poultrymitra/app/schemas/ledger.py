"""
Ledger schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from poultrymitra.app.models.ledger_enums import LedgerEntryType


class LedgerEntryCreate(BaseModel):
    """
    Schema for appending an entry.

    Amount and description are validated by the ledger itself so API and
    in-process callers get the same errors.
    """
    description: str = Field(..., max_length=255)
    amount: Decimal
    entry_type: LedgerEntryType
    date: Optional[datetime] = Field(default=None, description="Defaults to now")
    user_id: Optional[int] = Field(default=None, description="Admin only: append to another user's ledger")


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    entry_type: LedgerEntryType
    description: str
    amount: Decimal
    balance_after: Decimal
    date: datetime
    sequence: int


class LedgerListResponse(BaseModel):
    entries: List[LedgerEntryResponse]
    total: int


class LedgerBalanceResponse(BaseModel):
    user_id: int
    balance: Decimal

"""
Ledger enumerations.
"""

import enum


class LedgerEntryType(str, enum.Enum):
    """Ledger entry type enumeration."""
    DEBIT = "DEBIT"  # Money leaving the account
    CREDIT = "CREDIT"  # Money entering the account

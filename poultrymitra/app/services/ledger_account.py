"""
Ledger Account service.

Appends debit/credit entries to a user's ledger and records the running
balance on each entry, so balance history can be shown without replaying
the whole ledger.

Concurrency:
    Every append reads the user's ledger head, reads the latest entry, then
    bumps the head with `UPDATE ... WHERE version = <version read>`. If a
    concurrent append committed first the update matches zero rows and the
    attempt fails with TransactionConflictError; append_entry retries it
    from scratch through ConflictRetryPolicy. Two appends for the same user
    therefore never compute their balance from the same prior entry.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from poultrymitra.app.core.config import Settings
from poultrymitra.app.core.exceptions import (
    InvalidArgumentError,
    ResourceNotFoundError,
    TransactionConflictError,
)
from poultrymitra.app.core.reliability import ConflictRetryPolicy
from poultrymitra.app.db.errors import translate_db_errors
from poultrymitra.app.db.session import Database
from poultrymitra.app.models.ledger_account import LedgerAccountHead
from poultrymitra.app.models.ledger_entry import LedgerEntry
from poultrymitra.app.models.ledger_enums import LedgerEntryType
from poultrymitra.app.models.user import User

logger = logging.getLogger("poultrymitra.ledger")

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("999999999999.99")
MAX_DESCRIPTION_LENGTH = 255
# Clock skew allowed on explicit dates
FUTURE_DATE_TOLERANCE = timedelta(minutes=5)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_amount(amount) -> Decimal:
    if isinstance(amount, bool) or amount is None:
        raise InvalidArgumentError("Amount must be a number", field="amount")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidArgumentError("Amount must be a number", field="amount")
    if not value.is_finite():
        raise InvalidArgumentError("Amount must be a finite number", field="amount")
    if value <= ZERO:
        raise InvalidArgumentError("Amount must be greater than zero", field="amount")
    if value > MAX_AMOUNT:
        raise InvalidArgumentError(f"Amount cannot exceed {MAX_AMOUNT}", field="amount")
    if value != value.quantize(CENT):
        raise InvalidArgumentError("Amount cannot have more than two decimal places", field="amount")
    return value.quantize(CENT)


def validate_entry_date(date: Optional[datetime]) -> Optional[datetime]:
    if date is None:
        return None
    date = as_utc(date)
    if date > utcnow() + FUTURE_DATE_TOLERANCE:
        raise InvalidArgumentError("Entry date cannot be in the future", field="date")
    return date


def validate_description(description) -> str:
    if not isinstance(description, str) or not description.strip():
        raise InvalidArgumentError("Description is required", field="description")
    description = description.strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise InvalidArgumentError(
            f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters", field="description"
        )
    return description


def coerce_entry_type(entry_type) -> LedgerEntryType:
    if isinstance(entry_type, LedgerEntryType):
        return entry_type
    try:
        return LedgerEntryType(str(entry_type).upper())
    except ValueError:
        raise InvalidArgumentError("Entry type must be DEBIT or CREDIT", field="entry_type")


def apply_entry(balance: Decimal, entry_type: LedgerEntryType, amount: Decimal) -> Decimal:
    """Credit adds, debit subtracts."""
    if entry_type == LedgerEntryType.CREDIT:
        return balance + amount
    return balance - amount


class LedgerAccount:
    """
    Append-only per-user ledger with a chained running balance.

    Usage:
        ledger = LedgerAccount(database, ConflictRetryPolicy(max_attempts=5))
        entry = await ledger.append_entry(user_id, "Feed purchase", Decimal("1200"), LedgerEntryType.DEBIT)
    """

    def __init__(self, database: Database, retry_policy: Optional[ConflictRetryPolicy] = None):
        self.database = database
        self.retry_policy = retry_policy or ConflictRetryPolicy()

    @classmethod
    def from_settings(cls, database: Database, settings: Settings) -> "LedgerAccount":
        return cls(
            database,
            ConflictRetryPolicy(
                max_attempts=settings.transaction_max_attempts,
                backoff_ms=settings.transaction_retry_backoff_ms,
            ),
        )

    async def append_entry(
        self,
        user_id: int,
        description: str,
        amount,
        entry_type,
        date: Optional[datetime] = None
    ) -> LedgerEntry:
        """
        Append an entry and return it with its computed balance_after.

        Args:
            user_id: Ledger owner (must exist)
            description: Non-empty label
            amount: Positive amount, at most two decimal places
            entry_type: LedgerEntryType.DEBIT or LedgerEntryType.CREDIT
            date: Transaction time, not later than now; defaults to now
                (or the latest entry's date if that is ahead of the clock)

        Raises:
            InvalidArgumentError: Bad amount/description/type, a future date,
                or a date older than the user's latest entry
            ResourceNotFoundError: user_id does not exist
            TransactionConflictError: Still conflicting after every retry
            StorageUnavailableError: Database unreachable
        """
        description = validate_description(description)
        amount = validate_amount(amount)
        entry_type = coerce_entry_type(entry_type)
        date = validate_entry_date(date)

        async def append_attempt() -> LedgerEntry:
            async with self.database.session() as session:
                with translate_db_errors("ledger.append"):
                    entry = await self._append(session, user_id, description, amount, entry_type, date)
                    await session.commit()
                return entry

        entry = await self.retry_policy.call(append_attempt)

        logger.info(
            "Ledger entry appended",
            extra={
                "user_id": user_id,
                "entry_id": entry.id,
                "entry_type": entry.entry_type.value,
                "amount": str(entry.amount),
                "balance_after": str(entry.balance_after),
            }
        )
        return entry

    async def append_entry_in_transaction(
        self,
        session: AsyncSession,
        user_id: int,
        description: str,
        amount,
        entry_type,
        date: Optional[datetime] = None
    ) -> LedgerEntry:
        """
        Append inside a caller-owned session.

        Lets a larger unit of work (e.g. an order that credits the dealer
        and debits the farmer) commit several entries atomically. The caller
        commits, and must retry the whole unit on TransactionConflictError.
        """
        return await self._append(
            session,
            user_id,
            validate_description(description),
            validate_amount(amount),
            coerce_entry_type(entry_type),
            validate_entry_date(date),
        )

    async def _append(
        self,
        session: AsyncSession,
        user_id: int,
        description: str,
        amount: Decimal,
        entry_type: LedgerEntryType,
        date: Optional[datetime]
    ) -> LedgerEntry:
        if await session.get(User, user_id) is None:
            raise ResourceNotFoundError("User", user_id)

        # 1. Ledger head (read first; its version guards everything read after it)
        head = await self._load_head(session, user_id)
        if head is None:
            head = LedgerAccountHead(user_id=user_id, version=0, balance=ZERO, entry_count=0)
            session.add(head)
            await session.flush()  # Concurrent first appends collide on user_id
        read_version = head.version
        sequence = head.entry_count + 1

        # 2. Most recent entry
        last_entry = await self._latest_entry(session, user_id)
        prior_balance = last_entry.balance_after if last_entry is not None else ZERO

        if date is None:
            entry_date = utcnow()
            if last_entry is not None:
                entry_date = max(entry_date, as_utc(last_entry.date))
        elif last_entry is not None and date < as_utc(last_entry.date):
            raise InvalidArgumentError(
                "Entry date is older than the latest ledger entry", field="date"
            )
        else:
            entry_date = date

        # 3. New balance
        new_balance = apply_entry(prior_balance, entry_type, amount)

        # 4. Claim the head; zero rows means another append committed first
        result = await session.execute(
            update(LedgerAccountHead)
            .where(
                LedgerAccountHead.id == head.id,
                LedgerAccountHead.version == read_version
            )
            .values(
                version=read_version + 1,
                balance=new_balance,
                entry_count=sequence,
                last_entry_at=entry_date
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise TransactionConflictError(
                details={"operation": "ledger.append", "user_id": user_id}
            )

        # 5. Entry
        entry = LedgerEntry(
            user_id=user_id,
            entry_type=entry_type,
            description=description,
            amount=amount,
            balance_after=new_balance,
            date=entry_date,
            sequence=sequence,
        )
        session.add(entry)
        await session.flush()
        return entry

    @staticmethod
    async def _load_head(session: AsyncSession, user_id: int) -> Optional[LedgerAccountHead]:
        result = await session.execute(
            select(LedgerAccountHead)
            .where(LedgerAccountHead.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _latest_entry(session: AsyncSession, user_id: int) -> Optional[LedgerEntry]:
        result = await session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.user_id == user_id)
            .order_by(LedgerEntry.date.desc(), LedgerEntry.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_entries(self, user_id: int) -> List[LedgerEntry]:
        """Entries for user_id, newest first."""
        async with self.database.session() as session:
            with translate_db_errors("ledger.list"):
                result = await session.execute(
                    select(LedgerEntry)
                    .where(LedgerEntry.user_id == user_id)
                    .order_by(LedgerEntry.date.desc(), LedgerEntry.sequence.desc())
                )
                return list(result.scalars().all())

    async def list_all_entries(self, limit: int = 100) -> List[LedgerEntry]:
        """Entries across every user, newest first (admin view)."""
        async with self.database.session() as session:
            with translate_db_errors("ledger.list_all"):
                result = await session.execute(
                    select(LedgerEntry)
                    .order_by(LedgerEntry.date.desc(), LedgerEntry.id.desc())
                    .limit(limit)
                )
                return list(result.scalars().all())

    async def get_balance(self, user_id: int) -> Decimal:
        """Latest balance_after for the user, 0 when the ledger is empty."""
        async with self.database.session() as session:
            with translate_db_errors("ledger.balance"):
                last_entry = await self._latest_entry(session, user_id)
        return last_entry.balance_after if last_entry is not None else ZERO

    async def verify_chain(self, user_id: int) -> bool:
        """Replay entries oldest-first and check every stored balance_after."""
        balance = ZERO
        for entry in reversed(await self.list_entries(user_id)):
            balance += entry.signed_amount
            if balance != entry.balance_after:
                logger.warning(
                    "Ledger chain mismatch",
                    extra={"user_id": user_id, "entry_id": entry.id, "expected": str(balance)}
                )
                return False
        return True

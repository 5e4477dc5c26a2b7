"""
Ledger API Endpoints.

Farmers and dealers record income and expenses; every entry carries the
running balance at the time it was written.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from poultrymitra.app.core.dependencies import get_current_user, get_ledger_account
from poultrymitra.app.core.guards import OwnershipGuard, require_role
from poultrymitra.app.db.session import get_db
from poultrymitra.app.models.enums import UserRole
from poultrymitra.app.schemas.ledger import (
    LedgerBalanceResponse,
    LedgerEntryCreate,
    LedgerEntryResponse,
    LedgerListResponse,
)
from poultrymitra.app.services.audit import AuditAction, log_event
from poultrymitra.app.services.ledger_account import LedgerAccount

router = APIRouter(prefix="/ledger", tags=["Ledger"])
admin_router = APIRouter(prefix="/admin/ledger", tags=["Admin - Ledger"])
ownership_guard = OwnershipGuard()


@router.post("/entries", response_model=LedgerEntryResponse, status_code=status.HTTP_201_CREATED)
async def append_ledger_entry(
    entry_data: LedgerEntryCreate,
    current_user: dict = Depends(get_current_user),
    ledger: LedgerAccount = Depends(get_ledger_account),
    db: AsyncSession = Depends(get_db)
):
    """
    Append a debit or credit to the caller's ledger (admins may name a user_id).

    Returns the stored entry including balance_after.
    """
    user_id = ownership_guard.resolve_user_id(current_user, entry_data.user_id)

    entry = await ledger.append_entry(
        user_id=user_id,
        description=entry_data.description,
        amount=entry_data.amount,
        entry_type=entry_data.entry_type,
        date=entry_data.date
    )

    await log_event(
        db=db,
        action=AuditAction.LEDGER_ENTRY_APPENDED,
        actor_id=current_user["user_id"],
        actor_username=current_user["sub"],
        target_user_id=user_id,
        metadata={
            "entry_id": entry.id,
            "entry_type": entry.entry_type.value,
            "amount": str(entry.amount),
            "balance_after": str(entry.balance_after)
        }
    )
    await db.commit()

    return LedgerEntryResponse.model_validate(entry)


@router.get("/entries", response_model=LedgerListResponse)
async def list_ledger_entries(
    user_id: Optional[int] = Query(None, description="Admin only: another user's ledger"),
    current_user: dict = Depends(get_current_user),
    ledger: LedgerAccount = Depends(get_ledger_account)
):
    """List ledger entries, newest first."""
    owner_id = ownership_guard.resolve_user_id(current_user, user_id)
    entries = await ledger.list_entries(owner_id)

    return LedgerListResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total=len(entries)
    )


@router.get("/balance", response_model=LedgerBalanceResponse)
async def get_ledger_balance(
    user_id: Optional[int] = Query(None, description="Admin only: another user's ledger"),
    current_user: dict = Depends(get_current_user),
    ledger: LedgerAccount = Depends(get_ledger_account)
):
    """Current running balance."""
    owner_id = ownership_guard.resolve_user_id(current_user, user_id)
    return LedgerBalanceResponse(user_id=owner_id, balance=await ledger.get_balance(owner_id))


@admin_router.get("/entries", response_model=LedgerListResponse)
async def list_all_ledger_entries(
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    ledger: LedgerAccount = Depends(get_ledger_account)
):
    """Every user's ledger entries, newest first (admin transactions view)."""
    entries = await ledger.list_all_entries(limit=limit)

    return LedgerListResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total=len(entries)
    )

"""
Membership set helpers.

Reads and writes a user's connected-farmers / connected-dealers sets.
All functions work inside the caller's session and never commit.
"""

from typing import List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from poultrymitra.app.models.membership import UserMembership
from poultrymitra.app.models.connection_enums import MembershipKind


async def add_member(
    db: AsyncSession,
    owner_id: int,
    member_id: int,
    kind: MembershipKind
) -> bool:
    """
    Add member_id to owner_id's set of the given kind.

    Idempotent: adding an existing member is a no-op.

    Returns:
        True if a row was written, False if the member was already present
    """
    existing = await db.execute(
        select(UserMembership.id).where(
            UserMembership.owner_id == owner_id,
            UserMembership.member_id == member_id,
            UserMembership.kind == kind
        )
    )
    if existing.scalar_one_or_none() is not None:
        return False

    db.add(UserMembership(owner_id=owner_id, member_id=member_id, kind=kind))
    await db.flush()  # Raises IntegrityError if a concurrent add won
    return True


async def link_farmer_and_dealer(db: AsyncSession, farmer_id: int, dealer_id: int) -> None:
    """Add the dealer to the farmer's dealers and the farmer to the dealer's farmers."""
    await add_member(db, owner_id=farmer_id, member_id=dealer_id, kind=MembershipKind.DEALER)
    await add_member(db, owner_id=dealer_id, member_id=farmer_id, kind=MembershipKind.FARMER)


async def list_members(
    db: AsyncSession,
    owner_id: int,
    kind: MembershipKind
) -> List[int]:
    """Member ids of owner_id's set, in insertion order."""
    result = await db.execute(
        select(UserMembership.member_id).where(
            UserMembership.owner_id == owner_id,
            UserMembership.kind == kind
        ).order_by(UserMembership.id)
    )
    return list(result.scalars().all())


async def count_members(
    db: AsyncSession,
    owner_id: int,
    kind: MembershipKind
) -> int:
    result = await db.execute(
        select(func.count(UserMembership.id)).where(
            UserMembership.owner_id == owner_id,
            UserMembership.kind == kind
        )
    )
    return result.scalar()

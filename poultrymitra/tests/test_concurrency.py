"""
Concurrency Tests.

Runs against a file-backed SQLite database so every session holds its own
connection and concurrent transactions genuinely contend for the write lock.

Covers:
- Concurrent appends to one ledger never chain from the same prior balance
- Concurrent approve/reject of one request: exactly one decision commits
- Concurrent duplicate requests: exactly one connection is created
"""

import asyncio
import pytest
from decimal import Decimal

from poultrymitra.app.core.exceptions import InvalidStateError, RequestAlreadyPendingError
from poultrymitra.app.core.reliability import ConflictRetryPolicy
from poultrymitra.app.models.connection_enums import ConnectionStatus
from poultrymitra.app.models.enums import UserRole
from poultrymitra.app.models.ledger_enums import LedgerEntryType
from poultrymitra.app.services.connection_workflow import ConnectionWorkflow
from poultrymitra.app.services.ledger_account import LedgerAccount


@pytest.fixture
async def file_users(file_database, make_user):
    farmer = await make_user("race_farmer", UserRole.FARMER, database=file_database)
    dealer = await make_user("race_dealer", UserRole.DEALER, database=file_database)
    return farmer, dealer


@pytest.mark.asyncio
async def test_concurrent_appends_chain_serially(file_database, file_users):
    farmer, _ = file_users
    ledger = LedgerAccount(file_database, ConflictRetryPolicy(max_attempts=10, backoff_ms=5))

    await asyncio.gather(
        ledger.append_entry(farmer.id, "Chick sale", Decimal("100"), LedgerEntryType.CREDIT),
        ledger.append_entry(farmer.id, "Feed purchase", Decimal("40"), LedgerEntryType.DEBIT),
    )

    entries = await ledger.list_entries(farmer.id)
    balances = {e.balance_after for e in entries}

    assert len(entries) == 2
    assert balances in ({Decimal("100"), Decimal("60")}, {Decimal("-40"), Decimal("60")})
    assert entries[0].balance_after == Decimal("60")
    assert sorted(e.sequence for e in entries) == [1, 2]
    assert await ledger.verify_chain(farmer.id) is True


@pytest.mark.asyncio
async def test_many_concurrent_appends_keep_chain(file_database, file_users):
    farmer, _ = file_users
    ledger = LedgerAccount(file_database, ConflictRetryPolicy(max_attempts=20, backoff_ms=5))

    await asyncio.gather(*[
        ledger.append_entry(farmer.id, f"Egg tray {i}", Decimal("25"), LedgerEntryType.CREDIT)
        for i in range(8)
    ])

    entries = await ledger.list_entries(farmer.id)
    assert len(entries) == 8
    assert sorted(e.balance_after for e in entries) == [Decimal(25 * n) for n in range(1, 9)]
    assert await ledger.get_balance(farmer.id) == Decimal("200")
    assert await ledger.verify_chain(farmer.id) is True


@pytest.mark.asyncio
async def test_concurrent_resolution_single_winner(file_database, file_users):
    farmer, dealer = file_users
    workflow = ConnectionWorkflow(file_database)
    connection = await workflow.request_connection("farmer", farmer.id, dealer.id)

    results = await asyncio.gather(
        workflow.resolve_connection(connection.id, ConnectionStatus.APPROVED),
        workflow.resolve_connection(connection.id, ConnectionStatus.REJECTED),
        return_exceptions=True
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], InvalidStateError)

    stored = await workflow.get_connection(connection.id)
    assert stored.status == winners[0].status

    if stored.status == ConnectionStatus.APPROVED:
        assert await workflow.connected_dealers(farmer.id) == [dealer.id]
        assert await workflow.connected_farmers(dealer.id) == [farmer.id]
    else:
        assert await workflow.connected_dealers(farmer.id) == []
        assert await workflow.connected_farmers(dealer.id) == []


@pytest.mark.asyncio
async def test_concurrent_duplicate_requests_single_connection(file_database, file_users):
    farmer, dealer = file_users
    workflow = ConnectionWorkflow(file_database)

    results = await asyncio.gather(
        workflow.request_connection("farmer", farmer.id, dealer.id),
        workflow.request_connection("dealer", farmer.id, dealer.id),
        return_exceptions=True
    )

    created = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(created) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], RequestAlreadyPendingError)
    assert len(await workflow.list_connections(farmer.id, "farmer")) == 1

"""Tests for ChestSettler: exactly-once payout, weighting and rollback."""

import random
from datetime import timedelta

import pytest

from src.rb_chest.application.service import ChestApplicationService
from src.rb_chest.domain.settlement import PAYOUT_ORIGIN, ChestSettler
from src.rb_common.enums import EntryEntity
from src.rb_common.errors import InternalError, OpeningNotFoundError
from src.rb_ledger.domain.engine import LedgerEngine
from tests.unit.fakes import (
    BASE_TIME,
    FakeChestRepository,
    FakeLedgerRepository,
    FakeSession,
    FakeStreamerDirectory,
    RecordingPublisher,
)

NOW = BASE_TIME + timedelta(minutes=5)


@pytest.fixture
def ledger_repo() -> FakeLedgerRepository:
    repo = FakeLedgerRepository()
    for uid in ("u1", "u2", "u3"):
        repo.add_user(uid)
    return repo


@pytest.fixture
def chest_repo() -> FakeChestRepository:
    repo = FakeChestRepository()
    repo.seed_lot("s1", "chest_deposit", 10_000, 4)
    repo.seed_lot("s1", "chest_auto", 2_000, 6)
    return repo


@pytest.fixture
def streamers() -> FakeStreamerDirectory:
    directory = FakeStreamerDirectory()
    directory.add("s1", "owner-1")
    return directory


@pytest.fixture
def settler(
    ledger_repo: FakeLedgerRepository, chest_repo: FakeChestRepository, streamers: FakeStreamerDirectory
) -> ChestSettler:
    return ChestSettler(chest_repo, LedgerEngine(ledger_repo, streamers), rng=random.Random(42))


async def _open_with(chest_repo: FakeChestRepository, *user_ids: str) -> int:
    opening = chest_repo.seed_opening("s1", closes_at=NOW - timedelta(seconds=1))
    for uid in user_ids:
        await chest_repo.insert_participant(None, opening.id, uid)
    return opening.id


class TestSettle:
    @pytest.mark.asyncio
    async def test_pays_every_participant_from_the_whole_pool(
        self,
        settler: ChestSettler,
        ledger_repo: FakeLedgerRepository,
        chest_repo: FakeChestRepository,
    ) -> None:
        opening_id = await _open_with(chest_repo, "u1", "u2", "u3")
        db = FakeSession(ledger_repo, chest_repo)

        result = await settler.settle_in_tx(db, opening_id, "owner-1", NOW)

        assert result.status == "closed" and not result.already_closed
        assert result.pool == 10 and result.participants == 3
        assert sorted(p.amount for p in result.payouts) == [3, 3, 4]
        assert chest_repo.balance("s1") == 0
        assert chest_repo.openings[opening_id].closed_by == "owner-1"
        for payout in result.payouts:
            assert all(int(w) <= 2_000 for w in payout.minted)
            assert sum(payout.minted.values()) == payout.amount
            assert sum(payout.breakdown.values()) == payout.amount
            assert ledger_repo.balances[payout.user_id] == payout.amount
            assert ledger_repo.lots_total(payout.user_id) == payout.amount
            tx = ledger_repo.txs[payout.tx_id]
            assert (tx.kind, tx.purpose, tx.streamer_id) == ("mint", "chest_payout", "s1")
            entries = {e.entity: e.delta for e in ledger_repo.entries[payout.tx_id]}
            assert entries == {EntryEntity.USER: payout.amount, EntryEntity.CHEST: -payout.amount}
        assert {l.origin for l in ledger_repo.lots.values()} == {PAYOUT_ORIGIN}

    @pytest.mark.asyncio
    async def test_first_participant_draws_highest_weight(
        self,
        settler: ChestSettler,
        ledger_repo: FakeLedgerRepository,
        chest_repo: FakeChestRepository,
    ) -> None:
        opening_id = await _open_with(chest_repo, "u1", "u2")
        result = await settler.settle_in_tx(FakeSession(ledger_repo, chest_repo), opening_id, None, NOW)

        first = next(p for p in result.payouts if p.user_id == "u1")
        assert first.breakdown == {"10000": 4, "2000": 1}
        assert first.minted == {"2000": 5}
        [lot] = [l for l in ledger_repo.lots.values() if l.owner_id == "u1"]
        assert (lot.weight_bp, lot.amount_total) == (2_000, 5)

    @pytest.mark.asyncio
    async def test_second_settle_is_a_no_op(
        self,
        settler: ChestSettler,
        ledger_repo: FakeLedgerRepository,
        chest_repo: FakeChestRepository,
    ) -> None:
        opening_id = await _open_with(chest_repo, "u1", "u2")
        db = FakeSession(ledger_repo, chest_repo)
        first = await settler.settle_in_tx(db, opening_id, None, NOW)
        tx_count = len(ledger_repo.txs)

        second = await settler.settle_in_tx(db, opening_id, None, NOW + timedelta(seconds=5))

        assert second.already_closed
        assert second.payouts == first.payouts
        assert len(ledger_repo.txs) == tx_count
        assert len(chest_repo.payouts) == 2

    @pytest.mark.asyncio
    async def test_no_participants_keeps_the_pool(
        self, settler: ChestSettler, ledger_repo: FakeLedgerRepository, chest_repo: FakeChestRepository
    ) -> None:
        opening_id = await _open_with(chest_repo)
        result = await settler.settle_in_tx(FakeSession(ledger_repo, chest_repo), opening_id, None, NOW)
        assert result.status == "closed"
        assert result.payouts == []
        assert chest_repo.balance("s1") == 10

    @pytest.mark.asyncio
    async def test_empty_chest_closes_without_payout(
        self, ledger_repo: FakeLedgerRepository, streamers: FakeStreamerDirectory
    ) -> None:
        empty = FakeChestRepository()
        opening = empty.seed_opening("s1", closes_at=NOW)
        await empty.insert_participant(None, opening.id, "u1")
        settler = ChestSettler(empty, LedgerEngine(ledger_repo, streamers))
        result = await settler.settle_in_tx(FakeSession(ledger_repo, empty), opening.id, None, NOW)
        assert result.pool == 0 and result.payouts == []
        assert empty.openings[opening.id].status == "closed"

    @pytest.mark.asyncio
    async def test_unknown_opening(self, settler: ChestSettler) -> None:
        with pytest.raises(OpeningNotFoundError):
            await settler.settle_in_tx(FakeSession(), 999, None, NOW)


class TestSettleRollback:
    @pytest.mark.asyncio
    async def test_failed_mint_leaves_opening_open(
        self,
        ledger_repo: FakeLedgerRepository,
        chest_repo: FakeChestRepository,
        streamers: FakeStreamerDirectory,
    ) -> None:
        publisher = RecordingPublisher()
        service = ChestApplicationService(
            chest_repo, LedgerEngine(ledger_repo, streamers), streamers, publisher,
            rng=random.Random(1), clock=lambda: NOW,
        )
        opening_id = await _open_with(chest_repo, "u1", "u2", "u3")
        ledger_repo.fail_mint_for.add("u3")
        db = FakeSession(ledger_repo, chest_repo)

        with pytest.raises(InternalError):
            await service.settle_chest(db, opening_id)

        assert db.rollbacks == 1
        assert chest_repo.openings[opening_id].status == "open"
        assert chest_repo.balance("s1") == 10
        assert chest_repo.payouts == []
        assert ledger_repo.txs == {}
        assert ledger_repo.balances == {"u1": 0, "u2": 0, "u3": 0}
        assert publisher.events == []

        ledger_repo.fail_mint_for.clear()
        retry = await service.settle_chest(FakeSession(ledger_repo, chest_repo), opening_id)
        assert not retry.already_closed
        assert sum(p.amount for p in retry.payouts) == 10
        assert publisher.types == ["chest.settled"]

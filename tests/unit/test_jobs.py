"""Tests for the auto-mint and auto-close sweeps and the periodic job loop."""

import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest

from src.rb_chest.application.service import ChestApplicationService
from src.rb_chest.domain.models import AutoMintState
from src.rb_jobs import auto_mint
from src.rb_jobs.auto_close import run_auto_close_tick
from src.rb_jobs.auto_mint import run_auto_mint_tick
from src.rb_jobs.scheduler import JobRunner, PeriodicJob
from src.rb_ledger.domain.engine import LedgerEngine
from tests.unit.fakes import (
    FakeChestRepository,
    FakeLedgerRepository,
    FakeSessionFactory,
    FakeStreamerDirectory,
)


def _at(hh: int, mm: int, ss: int = 0) -> datetime:
    return datetime(2026, 3, 2, hh, mm, ss, tzinfo=timezone.utc)


class FlakyChestRepository(FakeChestRepository):
    def __init__(self, broken: str) -> None:
        super().__init__()
        self.broken = broken

    async def lock_auto_state(self, db, streamer_id):  # type: ignore[no-untyped-def]
        if streamer_id == self.broken:
            raise RuntimeError("lock timeout")
        return await super().lock_auto_state(db, streamer_id)


class TestAutoMint:
    @pytest.fixture
    def streamers(self) -> FakeStreamerDirectory:
        directory = FakeStreamerDirectory()
        directory.add("s1", "owner-1", is_live=True)
        directory.add("s2", "owner-2", is_live=False)
        return directory

    @pytest.mark.asyncio
    async def test_first_tick_records_baseline(self, streamers: FakeStreamerDirectory) -> None:
        repo = FakeChestRepository()
        minted = await run_auto_mint_tick(
            repo, streamers, FakeSessionFactory(repo), clock=lambda: _at(12, 7, 42)
        )
        assert minted == 0
        assert repo.auto_states["s1"] == AutoMintState("s1", _at(12, 6), 0)
        assert "s2" not in repo.auto_states
        assert repo.lots == {}

    @pytest.mark.asyncio
    async def test_remainder_carries_across_ticks(self, streamers: FakeStreamerDirectory) -> None:
        repo = FakeChestRepository()
        repo.auto_states["s1"] = AutoMintState("s1", _at(12, 6), 3)
        for viewer in ("a", "b"):
            repo.add_viewer_minute("s1", viewer, _at(12, 7))
            repo.add_viewer_minute("s1", viewer, _at(12, 8))
        # not yet complete at 12:09:30
        repo.add_viewer_minute("s1", "a", _at(12, 9))
        factory = FakeSessionFactory(repo)

        first = await run_auto_mint_tick(repo, streamers, factory, clock=lambda: _at(12, 9, 30))

        assert first == 3
        assert repo.auto_states["s1"] == AutoMintState("s1", _at(12, 8), 2)
        [lot] = repo.lots.values()
        assert (lot.origin, lot.weight_bp, lot.amount_total) == ("chest_auto", 2_000, 3)

        repo.add_viewer_minute("s1", "b", _at(12, 9))
        repo.add_viewer_minute("s1", "c", _at(12, 9))
        second = await run_auto_mint_tick(repo, streamers, factory, clock=lambda: _at(12, 10, 5))

        assert second == 3
        assert repo.auto_states["s1"] == AutoMintState("s1", _at(12, 9), 0)
        assert repo.balance("s1") == 6

    @pytest.mark.asyncio
    async def test_same_minute_twice_is_a_no_op(self, streamers: FakeStreamerDirectory) -> None:
        repo = FakeChestRepository()
        repo.auto_states["s1"] = AutoMintState("s1", _at(12, 8), 4)
        repo.add_viewer_minute("s1", "a", _at(12, 8))
        minted = await run_auto_mint_tick(
            repo, streamers, FakeSessionFactory(repo), clock=lambda: _at(12, 9, 59)
        )
        assert minted == 0
        assert repo.auto_states["s1"].carry_minutes == 4

    @pytest.mark.asyncio
    async def test_one_streamer_failing_does_not_block_others(self) -> None:
        streamers = FakeStreamerDirectory()
        streamers.add("s1", "owner-1", is_live=True)
        streamers.add("s2", "owner-2", is_live=True)
        repo = FlakyChestRepository(broken="s1")
        factory = FakeSessionFactory(repo)

        await run_auto_mint_tick(repo, streamers, factory, clock=lambda: _at(12, 7))

        assert "s1" not in repo.auto_states
        assert "s2" in repo.auto_states
        assert sum(s.rollbacks for s in factory.sessions) == 1

    @pytest.mark.asyncio
    async def test_skips_while_a_sweep_is_running(self, streamers: FakeStreamerDirectory) -> None:
        repo = FakeChestRepository()
        async with auto_mint._sweep_lock:
            minted = await run_auto_mint_tick(
                repo, streamers, FakeSessionFactory(repo), clock=lambda: _at(12, 7)
            )
        assert minted == 0
        assert repo.auto_states == {}


class TestAutoClose:
    @pytest.fixture
    def ledger(self) -> FakeLedgerRepository:
        repo = FakeLedgerRepository()
        for uid in ("u1", "u2", "u3"):
            repo.add_user(uid)
        return repo

    def _service(self, ledger: FakeLedgerRepository, chest: FakeChestRepository, now: datetime) -> ChestApplicationService:
        streamers = FakeStreamerDirectory()
        for sid in ("s1", "s2", "s3"):
            streamers.add(sid, f"owner-{sid}")
        return ChestApplicationService(
            chest, LedgerEngine(ledger, streamers), streamers, rng=random.Random(0), clock=lambda: now
        )

    @pytest.mark.asyncio
    async def test_settles_only_due_openings(self, ledger: FakeLedgerRepository) -> None:
        now = _at(12, 0)
        chest = FakeChestRepository()
        chest.seed_lot("s1", "chest_auto", 2_000, 6)
        due = chest.seed_opening("s1", closes_at=now - timedelta(seconds=1))
        later = chest.seed_opening("s2", closes_at=now + timedelta(seconds=10))
        await chest.insert_participant(None, due.id, "u1")

        settled = await run_auto_close_tick(
            self._service(ledger, chest, now), chest, FakeSessionFactory(ledger, chest), clock=lambda: now
        )

        assert settled == 1
        assert chest.openings[due.id].status == "closed"
        assert chest.openings[due.id].closed_by is None
        assert chest.openings[later.id].status == "open"
        assert ledger.balances["u1"] == 6

    @pytest.mark.asyncio
    async def test_failure_is_skipped_and_retried_later(self, ledger: FakeLedgerRepository) -> None:
        now = _at(12, 0)
        chest = FakeChestRepository()
        chest.seed_lot("s1", "chest_auto", 2_000, 4)
        chest.seed_lot("s2", "chest_auto", 2_000, 4)
        broken = chest.seed_opening("s1", closes_at=now - timedelta(seconds=20))
        healthy = chest.seed_opening("s2", closes_at=now - timedelta(seconds=10))
        await chest.insert_participant(None, broken.id, "u3")
        await chest.insert_participant(None, healthy.id, "u1")
        ledger.fail_mint_for.add("u3")
        service = self._service(ledger, chest, now)
        factory = FakeSessionFactory(ledger, chest)

        assert await run_auto_close_tick(service, chest, factory, clock=lambda: now) == 1
        assert chest.openings[broken.id].status == "open"
        assert chest.openings[healthy.id].status == "closed"

        ledger.fail_mint_for.clear()
        assert await run_auto_close_tick(service, chest, factory, clock=lambda: now) == 1
        assert chest.openings[broken.id].status == "closed"
        assert ledger.balances["u3"] == 4

    @pytest.mark.asyncio
    async def test_batch_size(self, ledger: FakeLedgerRepository) -> None:
        now = _at(12, 0)
        chest = FakeChestRepository()
        for i, sid in enumerate(("s1", "s2", "s3")):
            chest.seed_opening(sid, closes_at=now - timedelta(seconds=30 - i))
        settled = await run_auto_close_tick(
            self._service(ledger, chest, now), chest, FakeSessionFactory(ledger, chest),
            clock=lambda: now, batch_size=2,
        )
        assert settled == 2
        assert [o.status for o in chest.openings.values()] == ["closed", "closed", "open"]


class TestPeriodicJob:
    @pytest.mark.asyncio
    async def test_tick_errors_do_not_stop_the_loop(self) -> None:
        calls = 0

        async def tick() -> None:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")

        job = PeriodicJob("test", 0.01, tick)
        job.start()
        await asyncio.sleep(0.1)
        await job.stop()

        assert calls >= 2
        assert not job.running

    @pytest.mark.asyncio
    async def test_stop_wakes_a_sleeping_job(self) -> None:
        ticks: list[int] = []

        async def tick() -> None:
            ticks.append(1)

        job = PeriodicJob("slow", 3600, tick)
        job.start()
        await asyncio.sleep(0.01)
        await asyncio.wait_for(job.stop(), timeout=1)
        assert ticks == [1]

    @pytest.mark.asyncio
    async def test_stop_before_start(self) -> None:
        job = PeriodicJob("idle", 1, lambda: asyncio.sleep(0))
        await job.stop()
        assert not job.running

    @pytest.mark.asyncio
    async def test_runner(self) -> None:
        seen: list[str] = []

        def make(name: str):  # type: ignore[no-untyped-def]
            async def tick() -> None:
                seen.append(name)
            return tick

        runner = JobRunner([PeriodicJob("a", 3600, make("a")), PeriodicJob("b", 3600, make("b"))])
        runner.start()
        await asyncio.sleep(0.01)
        await runner.stop()
        assert sorted(seen) == ["a", "b"]
        assert not any(job.running for job in runner.jobs)

"""Ports the chest depends on. rb_ledger's LedgerEngine satisfies LedgerPort;
the concrete engine is injected at startup (see src.container)."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_ledger.domain.models import MintCommand, MintResult, SpendCommand, SpendResult


class LedgerPort(Protocol):
    async def mint_in_tx(self, db: AsyncSession, cmd: MintCommand) -> MintResult: ...

    async def spend_in_tx(self, db: AsyncSession, cmd: SpendCommand) -> SpendResult: ...

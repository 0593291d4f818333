"""LedgerEngine: mint, spend and cashout against the lot-based ledger.

All *_in_tx methods run inside the caller's transaction and never commit:
the application service (or the chest/bonus code composing several calls)
owns the commit/rollback boundary.

Every failure is raised before the first write:
  1. input validation      (InvalidAmount / InvalidWeight / InvalidInput)  no lock taken
  2. lookups under lock    (UserNotFound / StreamerNotFound)
  3. full allocation plan  (InsufficientBalance / InsufficientValue)
  4. writes                lots, balance cache, tx, tx_lots, entries, wallet
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.rb_common.amounts import (
    split_support,
    validate_amount,
    validate_weight,
    weighted_value,
)
from src.rb_common.enums import EntryEntity, LotOrder, SpendKind, TxKind
from src.rb_common.errors import (
    InsufficientBalanceError,
    InvalidInputError,
    StreamerNotFoundError,
    UserNotFoundError,
)
from src.rb_common.weights import weight_for_origin
from src.rb_ledger.domain.allocator import (
    allocate,
    allocate_value,
    breakdown_by_origin,
    order_for,
    support_value,
)
from src.rb_ledger.domain.models import (
    CashoutResult,
    Entry,
    LockedBalance,
    MintCommand,
    MintResult,
    NewTransaction,
    SpendCommand,
    SpendResult,
)
from src.rb_ledger.domain.repository import LedgerRepositoryProtocol
from src.rb_streamer.domain.repository import StreamerDirectoryProtocol

logger = logging.getLogger(__name__)


class LedgerEngine:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol,
        streamers: StreamerDirectoryProtocol,
        beneficiary_percent: int = settings.SUPPORT_BENEFICIARY_PERCENT,
    ) -> None:
        self._repo = repo
        self._streamers = streamers
        self._beneficiary_percent = beneficiary_percent

    async def lock_user(self, db: AsyncSession, user_id: str) -> int:
        """Lock the user row and return the cached balance."""
        cached = await self._repo.lock_user(db, user_id)
        if cached is None:
            raise UserNotFoundError(user_id)
        return cached

    async def get_locked_balance(
        self, db: AsyncSession, user_id: str, order: LotOrder
    ) -> LockedBalance:
        locked = await self._repo.get_locked_balance(db, user_id, order)
        if locked is None:
            raise UserNotFoundError(user_id)
        if locked.lots_total != locked.cached_total:
            # Lots are authoritative; the cache is only a read shortcut.
            logger.warning(
                "Balance cache drift for user %s: cached=%d lots=%d",
                user_id, locked.cached_total, locked.lots_total,
            )
        return locked

    async def mint_in_tx(self, db: AsyncSession, cmd: MintCommand) -> MintResult:
        amount = validate_amount(cmd.amount)
        if cmd.parts is None:
            parts = [
                (
                    validate_weight(
                        cmd.weight_bp if cmd.weight_bp is not None else weight_for_origin(cmd.origin)
                    ),
                    amount,
                )
            ]
        else:
            parts = [(validate_weight(w), validate_amount(a)) for w, a in cmd.parts]
            if sum(a for _, a in parts) != amount:
                raise InvalidInputError(f"mint parts {cmd.parts!r} do not add up to {amount}")
        if not cmd.origin:
            raise InvalidInputError("origin must not be empty")

        await self.lock_user(db, cmd.user_id)

        weight_meta: dict[str, Any] = {"weight_bp": parts[0][0]}
        if len(parts) > 1:
            weight_meta = {"parts": {str(w): a for w, a in parts}}
        tx_id = await self._repo.insert_transaction(
            db,
            NewTransaction(
                kind=TxKind.MINT,
                purpose=cmd.purpose or cmd.origin,
                amount=amount,
                to_user=cmd.user_id,
                streamer_id=cmd.source_streamer_id,
                support_value=weighted_value([(a, w) for w, a in parts]),
                meta={**cmd.meta, "origin": cmd.origin, **weight_meta},
            ),
        )
        lot_ids: list[int] = []
        for weight, part in parts:
            lot = await self._repo.insert_lot(
                db, cmd.user_id, cmd.origin, weight, part, {**cmd.meta, "tx_id": tx_id}
            )
            lot_ids.append(lot.id)
        balance_after = await self._repo.adjust_cached_balance(db, cmd.user_id, amount)
        await self._repo.insert_entries(
            db,
            tx_id,
            [
                Entry(EntryEntity.USER, amount, user_id=cmd.user_id),
                Entry(cmd.source, -amount, streamer_id=cmd.source_streamer_id),
            ],
        )
        logger.info(
            "Minted %d rubis (origin=%s, weights=%s) to user %s: tx=%d lots=%s",
            amount, cmd.origin, [w for w, _ in parts], cmd.user_id, tx_id, lot_ids,
        )
        return MintResult(
            transaction_id=tx_id,
            lot_id=lot_ids[0],
            amount=amount,
            weight_bp=parts[0][0],
            balance_after=balance_after,
            lot_ids=lot_ids,
        )

    async def spend_in_tx(self, db: AsyncSession, cmd: SpendCommand) -> SpendResult:
        amount = validate_amount(cmd.amount)
        try:
            kind = SpendKind(cmd.kind)
        except ValueError:
            raise InvalidInputError(f"unknown spend kind {cmd.kind!r}") from None
        if not cmd.purpose:
            raise InvalidInputError("purpose must not be empty")

        if kind is SpendKind.SUPPORT:
            if not cmd.beneficiary_id:
                raise InvalidInputError("support spend requires a beneficiary")
            if await self._streamers.get_streamer(db, cmd.beneficiary_id) is None:
                raise StreamerNotFoundError(cmd.beneficiary_id)

        locked = await self.get_locked_balance(db, cmd.user_id, order_for(kind))
        allocations = allocate(locked.lots, amount)
        value = support_value(allocations)

        entries = [Entry(EntryEntity.USER, -amount, user_id=cmd.user_id)]
        if kind is SpendKind.SUPPORT:
            beneficiary_share, platform_share = split_support(value, self._beneficiary_percent)
            burn_share = amount - value
            tx_kind = TxKind.SPEND
            streamer_id = cmd.beneficiary_id
            entries += [
                Entry(EntryEntity.STREAMER_WALLET, beneficiary_share, streamer_id=streamer_id),
                Entry(EntryEntity.PLATFORM_FEE, platform_share),
                Entry(EntryEntity.PLATFORM_BURN, burn_share),
            ]
        elif cmd.sink_entity is EntryEntity.PLATFORM_BURN:
            beneficiary_share = platform_share = 0
            burn_share = amount
            tx_kind = TxKind.SPEND
            streamer_id = None
            entries.append(Entry(EntryEntity.PLATFORM_BURN, amount))
        else:
            # Internal transfer (e.g. chest deposit): currency moves, nothing is burned.
            beneficiary_share = platform_share = burn_share = 0
            tx_kind = TxKind.TRANSFER
            streamer_id = cmd.sink_streamer_id
            entries.append(Entry(cmd.sink_entity, amount, streamer_id=streamer_id))
        entries = [e for e in entries if e.delta != 0]

        breakdown = breakdown_by_origin(allocations)
        tx_id = await self._repo.insert_transaction(
            db,
            NewTransaction(
                kind=tx_kind,
                purpose=cmd.purpose,
                amount=amount,
                from_user=cmd.user_id,
                streamer_id=streamer_id,
                support_value=value,
                beneficiary_share=beneficiary_share,
                platform_share=platform_share,
                burn_share=burn_share,
                meta={**cmd.meta, "spend_kind": kind.value, "breakdown": breakdown},
            ),
        )
        await self._repo.consume_lots(db, allocations)
        await self._repo.insert_tx_lots(db, tx_id, allocations)
        balance_after = await self._repo.adjust_cached_balance(db, cmd.user_id, -amount)
        await self._repo.insert_entries(db, tx_id, entries)

        if kind is SpendKind.SUPPORT and streamer_id is not None:
            await self._repo.credit_streamer_wallet(db, streamer_id, beneficiary_share)
            await self._repo.insert_earnings(
                db, streamer_id, tx_id, cmd.user_id, amount, value, beneficiary_share
            )

        logger.info(
            "Spent %d rubis (%s/%s) from user %s: tx=%d value=%d share=%d",
            amount, kind.value, cmd.purpose, cmd.user_id, tx_id, value, beneficiary_share,
        )
        return SpendResult(
            transaction_id=tx_id,
            spent=amount,
            breakdown=breakdown,
            allocations=allocations,
            support_value=value,
            beneficiary_share=beneficiary_share,
            platform_share=platform_share,
            burn_share=burn_share,
            balance_after=balance_after,
        )

    async def cashout_in_tx(
        self,
        db: AsyncSession,
        streamer_id: str,
        owner_user_id: str,
        requested_by: str,
        value: int,
    ) -> CashoutResult:
        """Turn the streamer owner's rubis into a pending cashout request worth `value`.

        Consumes the owner's lots highest weight first, by value: each lot gives
        ceil(left * 10000 / weight) units until `value` is covered. All-or-nothing:
        InsufficientBalance on an empty balance, InsufficientValue when the lots
        cannot cover the value. The streamer wallet's available value goes down
        by the same value, floored at zero.
        """
        value = validate_amount(value)
        locked = await self.get_locked_balance(db, owner_user_id, LotOrder.HIGHEST_WEIGHT_FIRST)
        if locked.cached_total <= 0:
            raise InsufficientBalanceError(value, 0)
        allocations = allocate_value(locked.lots, value)
        debited = sum(a.amount for a in allocations)
        breakdown = breakdown_by_origin(allocations)
        wallet = await self._repo.lock_streamer_wallet(db, streamer_id)

        tx_id = await self._repo.insert_transaction(
            db,
            NewTransaction(
                kind=TxKind.CASHOUT,
                purpose="cashout",
                amount=debited,
                from_user=owner_user_id,
                streamer_id=streamer_id,
                support_value=value,
                meta={"requested_by": requested_by, "breakdown": breakdown},
            ),
        )
        await self._repo.consume_lots(db, allocations)
        await self._repo.insert_tx_lots(db, tx_id, allocations)
        balance_after = await self._repo.adjust_cached_balance(db, owner_user_id, -debited)
        await self._repo.insert_entries(
            db,
            tx_id,
            [
                Entry(EntryEntity.USER, -debited, user_id=owner_user_id),
                Entry(EntryEntity.CASHOUT, debited, streamer_id=streamer_id),
            ],
        )
        available_after = 0
        if wallet is not None:
            available_after = wallet.available_value
            if wallet.available_value > 0:
                wallet = await self._repo.debit_streamer_wallet(
                    db, streamer_id, min(value, wallet.available_value)
                )
                available_after = wallet.available_value
        request_id = await self._repo.insert_cashout_request(
            db, streamer_id, requested_by, value, debited, tx_id
        )
        logger.info(
            "Cashout requested for streamer %s: value=%d rubis=%d from user %s tx=%d request=%d",
            streamer_id, value, debited, owner_user_id, tx_id, request_id,
        )
        return CashoutResult(
            transaction_id=tx_id,
            request_id=request_id,
            value=value,
            debited=debited,
            breakdown=breakdown,
            balance_after=balance_after,
            available_after=available_after,
        )

"""
Wallet ledger — per-user stored value.

The transaction log is the source of truth; ``Wallet.balance`` is a reducer
over completed entries. Every append happens under the user's lock, so a
debit's balance check and its write cannot interleave with another write.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import structlog
from kungfu import Error, Ok, Result

from evergreen._types import Clock, Money, money, new_id, utcnow
from evergreen.config import Settings
from evergreen.domain import TopUp, TxStatus, TxType, Wallet, WalletTransaction
from evergreen.errors import CommerceError, Errors, boundary
from evergreen.gateway import (
    GatewayError,
    GatewayOrder,
    PaymentGateway,
    from_minor,
    receipt_for,
    to_minor,
    verify_signature,
)
from evergreen.repo import Repository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class WalletView:
    balance: Money
    transactions: tuple[WalletTransaction, ...]


def _newest_first(wallet: Wallet) -> tuple[WalletTransaction, ...]:
    return tuple(sorted(wallet.transactions, key=lambda t: t.date, reverse=True))


class WalletLedger:
    def __init__(
        self,
        repo: Repository,
        settings: Settings,
        gateway: PaymentGateway | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._repo = repo
        self._settings = settings
        self._gateway = gateway
        self._clock = clock

    # ───────────────────────────────────────────────────────────────────────────
    # Core append
    # ───────────────────────────────────────────────────────────────────────────

    async def _append(
        self,
        user_id: str,
        amount: Money,
        description: str,
        tx_type: TxType,
    ) -> Result[WalletTransaction, CommerceError]:
        amount = money(amount)
        if amount <= 0:
            return Error(Errors.bad_request("Amount must be greater than zero."))

        async with self._repo.locked("user", user_id):
            user = await self._repo.users.get(user_id)
            if user is None:
                return Error(Errors.not_found("User"))
            if tx_type is TxType.DEBIT and user.wallet.balance < amount:
                return Error(Errors.insufficient_balance())

            tx = WalletTransaction(
                id=new_id(),
                amount=amount,
                date=self._clock(),
                description=description,
                type=tx_type,
                status=TxStatus.COMPLETED,
            )
            await self._repo.users.put(replace(user, wallet=user.wallet.append(tx)))

        logger.info("wallet_tx", user_id=user_id, type=tx_type.value, amount=str(amount))
        return Ok(tx)

    @boundary("wallet.credit")
    async def credit(
        self, user_id: str, amount: Money, description: str
    ) -> Result[WalletTransaction, CommerceError]:
        return await self._append(user_id, amount, description, TxType.CREDIT)

    @boundary("wallet.debit")
    async def debit(
        self, user_id: str, amount: Money, description: str
    ) -> Result[WalletTransaction, CommerceError]:
        return await self._append(user_id, amount, description, TxType.DEBIT)

    # ───────────────────────────────────────────────────────────────────────────
    # Reads
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("wallet.view")
    async def view(self, user_id: str) -> Result[WalletView, CommerceError]:
        """Balance plus history, newest first."""
        user = await self._repo.users.get(user_id)
        if user is None:
            return Error(Errors.not_found("User"))
        return Ok(WalletView(balance=user.wallet.balance, transactions=_newest_first(user.wallet)))

    @boundary("wallet.history")
    async def history(self, user_id: str) -> Result[tuple[WalletTransaction, ...], CommerceError]:
        user = await self._repo.users.get(user_id)
        if user is None:
            return Error(Errors.not_found("User"))
        return Ok(_newest_first(user.wallet))

    # ───────────────────────────────────────────────────────────────────────────
    # Top-up through the gateway
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("wallet.start_top_up")
    async def start_top_up(self, user_id: str, amount: Money) -> Result[GatewayOrder, CommerceError]:
        if self._gateway is None:
            return Error(Errors.bad_request("Online payments are not available."))
        if money(amount) <= 0:
            return Error(Errors.bad_request("Amount must be greater than zero."))
        if await self._repo.users.get(user_id) is None:
            return Error(Errors.not_found("User"))
        try:
            order = await self._gateway.create_order(
                to_minor(amount), receipt_for(user_id), self._settings.currency
            )
        except GatewayError:
            return Error(Errors.bad_request("Failed to create payment order."))

        await self._repo.top_ups.put(TopUp(
            gateway_order_id=order.id,
            user_id=user_id,
            amount=from_minor(order.amount),
            created_at=self._clock(),
        ))
        return Ok(order)

    @boundary("wallet.complete_top_up")
    async def complete_top_up(
        self,
        user_id: str,
        gateway_order_id: str,
        payment_id: str,
        signature: str,
    ) -> Result[WalletTransaction, CommerceError]:
        """
        Credit the amount recorded by ``start_top_up``, once per gateway order.

        The callback only proves which payment happened; the amount comes
        from the stored top-up, never from the caller.
        """
        if not verify_signature(
            self._settings.gateway_key_secret, gateway_order_id, payment_id, signature
        ):
            logger.warning("top_up_signature_mismatch", user_id=user_id)
            return Error(Errors.invalid_signature())

        async with self._repo.locked("top_up", gateway_order_id):
            top_up = await self._repo.top_ups.get(gateway_order_id)
            if top_up is None or top_up.user_id != user_id:
                return Error(Errors.not_found("Top-up"))
            if top_up.is_credited:
                logger.warning(
                    "top_up_replayed",
                    user_id=user_id,
                    gateway_order_id=gateway_order_id,
                    payment_id=payment_id,
                )
                return Error(Errors.bad_request("This payment has already been added to your wallet."))

            match await self._append(user_id, top_up.amount, "Added to wallet.", TxType.CREDIT):
                case Ok(tx):
                    await self._repo.top_ups.put(replace(top_up, payment_id=payment_id))
                    return Ok(tx)
                case Error(e):
                    return Error(e)


__all__ = ("WalletView", "WalletLedger")

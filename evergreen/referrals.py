"""
Referrals — sign-up codes that pay both sides into their wallets.
"""

from __future__ import annotations

import secrets
from dataclasses import replace

import structlog
from kungfu import Error, Ok, Result

from evergreen.config import Settings
from evergreen.domain import User
from evergreen.errors import CommerceError, Errors, boundary
from evergreen.repo import Repository
from evergreen.wallet import WalletLedger

logger = structlog.get_logger(__name__)


class ReferralService:
    def __init__(self, repo: Repository, settings: Settings, ledger: WalletLedger) -> None:
        self._repo = repo
        self._settings = settings
        self._ledger = ledger

    async def _owner(self, code: str) -> User | None:
        return await self._repo.users.first(lambda u: u.referral_code == code)

    async def generate_code(self) -> str:
        """Eight hex characters no other user holds."""
        while True:
            code = secrets.token_hex(4)
            if await self._owner(code) is None:
                return code

    @boundary("referrals.assign_code")
    async def assign_code(self, user_id: str) -> Result[User, CommerceError]:
        async with self._repo.locked("user", user_id):
            user = await self._repo.users.get(user_id)
            if user is None:
                return Error(Errors.not_found("User"))
            if user.referral_code is not None:
                return Ok(user)
            return Ok(await self._repo.users.put(
                replace(user, referral_code=await self.generate_code())
            ))

    @boundary("referrals.validate")
    async def validate(self, code: str) -> Result[User, CommerceError]:
        referrer = await self._owner(code.strip())
        if referrer is None:
            return Error(Errors.bad_request("Invalid referral code."))
        if referrer.is_blocked:
            return Error(Errors.bad_request("Referrer is blocked by the admin."))
        return Ok(referrer)

    @boundary("referrals.reward")
    async def reward(self, new_user_id: str, code: str) -> Result[User, CommerceError]:
        """Credit both users and link them. Returns the updated referrer."""
        match await self.validate(code):
            case Ok(referrer):
                pass
            case Error(e):
                return Error(e)

        newcomer = await self._repo.users.get(new_user_id)
        if newcomer is None:
            return Error(Errors.not_found("User"))
        if newcomer.referred_by is not None:
            return Error(Errors.bad_request("Referral already applied."))
        if newcomer.id == referrer.id:
            return Error(Errors.bad_request("Invalid referral code."))

        async with self._repo.locked("user", newcomer.id):
            fresh = await self._repo.users.get(newcomer.id)
            if fresh is None:
                return Error(Errors.not_found("User"))
            await self._repo.users.put(replace(fresh, referred_by=referrer.id))
        async with self._repo.locked("user", referrer.id):
            fresh = await self._repo.users.get(referrer.id)
            if fresh is None:
                return Error(Errors.not_found("User"))
            await self._repo.users.put(
                replace(fresh, referred_users=(*fresh.referred_users, newcomer.id))
            )

        for user_id, amount, description in (
            (referrer.id, self._settings.referral_reward, f"Referral reward from {newcomer.email}"),
            (newcomer.id, self._settings.referral_bonus, "Referral bonus for signing up"),
        ):
            match await self._ledger.credit(user_id, amount, description):
                case Error(e):
                    return Error(e)
                case Ok(_):
                    pass

        logger.info("referral_rewarded", referrer_id=referrer.id, new_user_id=newcomer.id)
        updated = await self._repo.users.get(referrer.id)
        return Ok(updated if updated is not None else referrer)


__all__ = ("ReferralService",)

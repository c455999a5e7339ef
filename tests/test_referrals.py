"""Tests for referral codes and rewards."""

from dataclasses import replace
from decimal import Decimal

from kungfu import Ok

from evergreen.domain import User
from evergreen.errors import ErrorKind


async def newcomer(repo, user_id="u2"):
    return await repo.users.put(User(
        id=user_id, first_name="Ravi", last_name="Menon", email=f"{user_id}@example.com"
    ))


class TestCodes:
    async def test_assign_is_stable(self, services, catalog):
        first = (await services.referrals.assign_code("u1")).unwrap()
        second = (await services.referrals.assign_code("u1")).unwrap()
        assert len(first.referral_code) == 8
        assert first.referral_code == second.referral_code

    async def test_validate(self, services, catalog):
        code = (await services.referrals.assign_code("u1")).unwrap().referral_code
        assert (await services.referrals.validate(code)).unwrap().id == "u1"
        assert (await services.referrals.validate("zzzz")).error.kind is ErrorKind.BAD_REQUEST

    async def test_blocked_referrer(self, services, repo, catalog):
        user = (await services.referrals.assign_code("u1")).unwrap()
        await repo.users.put(replace(user, is_blocked=True))
        result = await services.referrals.validate(user.referral_code)
        assert result.error.message == "Referrer is blocked by the admin."


class TestReward:
    async def test_credits_both_sides(self, services, repo, settings, catalog):
        code = (await services.referrals.assign_code("u1")).unwrap().referral_code
        await newcomer(repo)

        result = await services.referrals.reward("u2", code)

        assert isinstance(result, Ok)
        referrer = await repo.users.get("u1")
        new_user = await repo.users.get("u2")
        assert referrer.referred_users == ("u2",)
        assert new_user.referred_by == "u1"
        assert referrer.wallet.balance == settings.referral_reward
        assert new_user.wallet.balance == settings.referral_bonus
        assert referrer.wallet.transactions[-1].description == "Referral reward from u2@example.com"

    async def test_applied_once(self, services, repo, catalog):
        code = (await services.referrals.assign_code("u1")).unwrap().referral_code
        await newcomer(repo)
        await services.referrals.reward("u2", code)

        result = await services.referrals.reward("u2", code)

        assert result.error.message == "Referral already applied."
        assert (await repo.users.get("u1")).wallet.balance == Decimal("250")

    async def test_own_code_rejected(self, services, catalog):
        code = (await services.referrals.assign_code("u1")).unwrap().referral_code
        result = await services.referrals.reward("u1", code)
        assert result.error.kind is ErrorKind.BAD_REQUEST

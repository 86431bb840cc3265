"""Tests for premium gating, flags and token redemption."""

import asyncio
import sqlite3
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from mizan.db.models import PremiumToken, Settings, User
from mizan.engine.subscription import (
    PaywallReason,
    check_redeemable,
    decide_features,
    is_premium,
    issue_token,
    load_session,
    merge_feature_flags,
    paywall_reason,
    redeem_premium_token,
)
from mizan.utils.errors import (
    ConflictError,
    NotFoundError,
    TokenAlreadyRedeemed,
    TokenExpired,
    TokenOwnerMismatch,
    ValidationError,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=ZoneInfo("UTC"))


def test_premium_expired_one_second_ago():
    """Test that an end date one second in the past is not premium."""
    user = User(
        telegram_id=1,
        timezone="UTC",
        tier="premium",
        subscription_ends_at=NOW - timedelta(seconds=1),
    )

    assert not is_premium(user, NOW)


def test_premium_without_end_date():
    """Test premium with no end date."""
    user = User(telegram_id=1, timezone="UTC", tier="premium")

    assert is_premium(user, NOW)
    assert not is_premium(User(telegram_id=2, timezone="UTC"), NOW)


def test_merge_feature_flags():
    """Test stored flags overriding defaults, unknown keys passing through."""
    flags = merge_feature_flags({"premiumV2": True, "betaThing": True})

    assert flags == {"premiumV2": True, "mizanStrictMode": False, "betaThing": True}
    assert merge_feature_flags(None) == {"premiumV2": False, "mizanStrictMode": False}


def test_paywall_reason():
    """Test paywall reasons for free and premium."""
    reason = paywall_reason("analytics", premium=False)

    assert reason == PaywallReason(code="premium_required", feature="analytics")
    assert paywall_reason("analytics", premium=True) is None


def test_decide_features():
    """Test the session's FeatureDecision for free and premium users."""
    settings = Settings(focus_phrase="x", feature_flags={"premiumV2": True})

    free = decide_features(User(telegram_id=1, timezone="UTC"), settings, NOW)
    assert not free.is_premium
    assert free.reason_for("analytics") is not None
    assert not free.show_v2_dashboard

    ends = NOW + timedelta(days=30)
    premium = decide_features(
        User(telegram_id=1, timezone="UTC", tier="premium", subscription_ends_at=ends),
        settings,
        NOW,
    )
    assert premium.is_premium
    assert premium.premium_until == ends
    assert premium.paywall_reasons == {}
    assert premium.show_v2_dashboard


def test_check_redeemable_order():
    """Test owner, then redeemed, then expiry."""
    token = PremiumToken(
        token="t",
        created_for_user_id=7,
        expires_at=NOW - timedelta(hours=1),
        redeemed_at=NOW - timedelta(hours=2),
    )

    with pytest.raises(TokenOwnerMismatch):
        check_redeemable(token, 5, NOW)
    with pytest.raises(TokenAlreadyRedeemed):
        check_redeemable(token, 7, NOW)

    token.redeemed_at = None
    with pytest.raises(TokenExpired):
        check_redeemable(token, 7, NOW)

    token.expires_at = NOW
    check_redeemable(token, 7, NOW)


def test_token_bound_to_other_user(make_repo):
    """Test that user 5 can't redeem a token made for user 7."""

    async def scenario():
        repo = await make_repo()
        try:
            user_ids = [(await repo.create_user(100 + i)).id for i in range(7)]
            owner, other = user_ids[6], user_ids[4]

            token = await issue_token(repo, created_for_user_id=owner, now=NOW)

            with pytest.raises(ConflictError):
                await redeem_premium_token(repo, other, token.token, NOW)

            unchanged = await repo.get_user(other)
            assert unchanged.tier == "free"
            assert unchanged.subscription_ends_at is None
            assert (await repo.get_token(token.token)).redeemed_at is None
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_redeem_grants_a_year_once(make_repo):
    """Test redemption and a second attempt on the same token."""

    async def scenario():
        repo = await make_repo()
        try:
            user = await repo.create_user(1)
            token = await issue_token(repo, now=NOW)

            updated = await redeem_premium_token(repo, user.id, token.token, NOW)
            assert updated.tier == "premium"
            assert updated.subscription_ends_at == datetime(2027, 3, 15, 12, 0, tzinfo=ZoneInfo("UTC"))

            stored = await repo.get_user(user.id)
            assert stored.tier == "premium"
            assert stored.subscription_ends_at == updated.subscription_ends_at

            with pytest.raises(TokenAlreadyRedeemed):
                await redeem_premium_token(
                    repo, user.id, token.token, NOW + timedelta(days=1)
                )

            # The second attempt doesn't extend the subscription
            again = await repo.get_user(user.id)
            assert again.tier == "premium"
            assert again.subscription_ends_at == updated.subscription_ends_at
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_redeem_rejects_bad_input(make_repo):
    """Test empty, unknown and expired tokens."""

    async def scenario():
        repo = await make_repo()
        try:
            user = await repo.create_user(1)

            with pytest.raises(ValidationError):
                await redeem_premium_token(repo, user.id, "  ", NOW)
            with pytest.raises(NotFoundError):
                await redeem_premium_token(repo, user.id, "nope", NOW)

            token = await issue_token(repo, ttl_hours=48, now=NOW)
            with pytest.raises(TokenExpired):
                await redeem_premium_token(
                    repo, user.id, token.token, NOW + timedelta(hours=49)
                )
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_load_session_downgrades_lapsed_premium(make_repo):
    """Test that an expired subscription is written back as free."""

    async def scenario():
        repo = await make_repo()
        try:
            user = await repo.create_user(1)
            await repo.update_subscription(user.id, "premium", NOW - timedelta(days=1))

            decision = await load_session(repo, user.id, NOW)

            assert not decision.is_premium
            stored = await repo.get_user(user.id)
            assert stored.tier == "free"
            assert stored.subscription_ends_at is None
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_failed_redeem_keeps_the_token(make_repo, monkeypatch):
    """Test that the token isn't spent if the subscription can't be stored."""

    async def fail(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    async def scenario():
        repo = await make_repo()
        try:
            user = await repo.create_user(1)
            token = await issue_token(repo, now=NOW)
            monkeypatch.setattr(repo, "_set_subscription", fail)

            with pytest.raises(sqlite3.OperationalError):
                await redeem_premium_token(repo, user.id, token.token, NOW)

            assert (await repo.get_token(token.token)).redeemed_at is None
            assert (await repo.get_user(user.id)).tier == "free"

            monkeypatch.undo()
            updated = await redeem_premium_token(repo, user.id, token.token, NOW)

            assert updated.tier == "premium"
            assert (await repo.get_token(token.token)).redeemed_by_user_id == user.id
        finally:
            await repo.close()

    asyncio.run(scenario())

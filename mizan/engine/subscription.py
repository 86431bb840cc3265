"""Premium gating, feature flags and single-use token redemption."""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from mizan.db.models import PremiumToken, Settings, User
from mizan.db.repository import Repository
from mizan.utils.constants import (
    DEFAULT_FEATURE_FLAGS,
    PAYWALL_CODE,
    PREMIUM_FEATURES,
    TIER_FREE,
    TIER_PREMIUM,
    TOKEN_TTL_HOURS,
)
from mizan.utils.errors import (
    NotFoundError,
    TokenAlreadyRedeemed,
    TokenExpired,
    TokenOwnerMismatch,
    ValidationError,
)
from mizan.utils.time_utils import one_year_after, utcnow

logger = logging.getLogger(__name__)


def is_premium(user: User, now: datetime | None = None) -> bool:
    """Premium tier with no end date or an end date still in the future.

    Always recomputed: expiry depends on the clock.
    """
    if now is None:
        now = utcnow()

    if user.tier != TIER_PREMIUM:
        return False
    return user.subscription_ends_at is None or user.subscription_ends_at > now


def is_expired(user: User, now: datetime | None = None) -> bool:
    if now is None:
        now = utcnow()
    return (
        user.tier == TIER_PREMIUM
        and user.subscription_ends_at is not None
        and user.subscription_ends_at <= now
    )


@dataclass(frozen=True)
class PaywallReason:
    code: str
    feature: str


def paywall_reason(feature: str, premium: bool) -> PaywallReason | None:
    """Why a premium feature is hidden, or None if it isn't."""
    if premium:
        return None
    return PaywallReason(code=PAYWALL_CODE, feature=feature)


def merge_feature_flags(stored: dict | None) -> dict[str, bool]:
    """System defaults overridden by stored values. Unknown keys pass through."""
    return {**DEFAULT_FEATURE_FLAGS, **(stored or {})}


@dataclass
class FeatureDecision:
    """Everything the presentation layer needs to gate views, computed once per session."""

    is_premium: bool
    premium_until: datetime | None
    flags: dict[str, bool] = field(default_factory=dict)
    paywall_reasons: dict[str, PaywallReason] = field(default_factory=dict)

    def reason_for(self, feature: str) -> PaywallReason | None:
        return self.paywall_reasons.get(feature)

    def flag(self, name: str) -> bool:
        return bool(self.flags.get(name, False))

    @property
    def show_v2_dashboard(self) -> bool:
        return self.reason_for("premium_v2") is None and self.flag("premiumV2")


def decide_features(
    user: User, settings: Settings, now: datetime | None = None
) -> FeatureDecision:
    premium = is_premium(user, now)
    reasons = {}
    for feature in PREMIUM_FEATURES:
        reason = paywall_reason(feature, premium)
        if reason:
            reasons[feature] = reason

    return FeatureDecision(
        is_premium=premium,
        premium_until=user.subscription_ends_at if user.tier == TIER_PREMIUM else None,
        flags=merge_feature_flags(settings.feature_flags),
        paywall_reasons=reasons,
    )


async def load_session(
    repo: Repository, user_id: int, now: datetime | None = None
) -> FeatureDecision:
    """Compute the session's FeatureDecision, downgrading lapsed subscriptions."""
    if now is None:
        now = utcnow()

    user = await repo.get_user(user_id)
    if not user:
        raise NotFoundError("User not found.")

    if is_expired(user, now):
        await repo.update_subscription(user_id, TIER_FREE, None)
        user.tier = TIER_FREE
        user.subscription_ends_at = None
        logger.info(f"Premium lapsed for user {user_id}, downgraded to free")

    settings = await repo.get_settings(user_id)
    return decide_features(user, settings, now)


# Token redemption


def generate_token() -> str:
    return secrets.token_hex(16)


def check_redeemable(token: PremiumToken, user_id: int, now: datetime) -> None:
    """Raise the matching ConflictError if ``user_id`` can't redeem ``token``."""
    if token.created_for_user_id is not None and token.created_for_user_id != user_id:
        raise TokenOwnerMismatch()

    if token.redeemed_at is not None:
        raise TokenAlreadyRedeemed()

    if token.expires_at is not None and now > token.expires_at:
        raise TokenExpired()


async def issue_token(
    repo: Repository,
    created_for_user_id: int | None = None,
    ttl_hours: int = TOKEN_TTL_HOURS,
    plan: str = TIER_PREMIUM,
    now: datetime | None = None,
) -> PremiumToken:
    """Create a single-use activation token, optionally bound to one user."""
    if now is None:
        now = utcnow()

    token = PremiumToken(
        token=generate_token(),
        plan=plan,
        created_for_user_id=created_for_user_id,
        expires_at=now + timedelta(hours=ttl_hours) if ttl_hours else None,
    )
    created = await repo.create_token(token)
    logger.info(f"Issued premium token (bound to user {created_for_user_id})")
    return created


async def redeem_premium_token(
    repo: Repository, user_id: int, token_value: str, now: datetime | None = None
) -> User:
    """Redeem a token for a year of premium.

    Returns:
        The updated user

    Raises:
        ValidationError: empty token
        NotFoundError: unknown user or token
        ConflictError: token bound to someone else, already used, or expired
    """
    if now is None:
        now = utcnow()

    token_value = (token_value or "").strip()
    if not token_value:
        raise ValidationError("token", "activation token is required")

    user = await repo.get_user(user_id)
    if not user:
        raise NotFoundError("User not found.")

    token = await repo.get_token(token_value)
    if not token:
        raise NotFoundError("Activation link not found or already used.")

    check_redeemable(token, user_id, now)

    # Conditional update: a concurrent redemption wins or loses atomically,
    # and the token is only spent if the subscription is stored with it.
    ends_at = one_year_after(now)
    redeemed = await repo.redeem_token(token_value, user_id, now, TIER_PREMIUM, ends_at)
    if redeemed is None:
        raise TokenAlreadyRedeemed()

    user.tier = TIER_PREMIUM
    user.subscription_ends_at = ends_at
    logger.info(f"User {user_id} redeemed premium until {ends_at.isoformat()}")
    return user

"""Constants and default values."""

from dataclasses import dataclass


# Salah
PRAYERS = ("fajr", "dhuhr", "asr", "maghrib", "isha")
SALAH_STATUSES = ("ontime", "late")

# Activity options per category
QURAN_OPTIONS = ("recitation", "reading", "reflection")
PHYSICAL_OPTIONS = ("strength", "cardio", "walk", "mobility")
BUILD_OPTIONS = ("work", "skill", "output")
OPTIONAL_TASKS = ("study", "journal", "rest")

# Completion thresholds
QURAN_MIN_MINUTES = 10
PHYSICAL_MIN_MINUTES = 20
MINIMUM_COMPLETED_CATEGORIES = 5
TOTAL_CATEGORIES = 7

# Scoring
LATE_PRAYER_DEDUCTION = 0.5
PERFECT_DAY_BONUS = 2
STREAK_BONUS = 20
STREAK_BONUS_EVERY = 7

# Cycles
CYCLE_LENGTH = 7

# Penalties
PENALTY_EXTRA_MILE = "extra-mile"
PENALTY_DISCIPLINE_DEBT = "discipline-debt"
PENALTY_LABEL = "Missed obligation - debt carried forward"


@dataclass(frozen=True)
class RankTier:
    """A single rank in the ladder."""

    tier: int
    title: str
    meaning: str


RANKS = {
    1: RankTier(1, "Ghāfil", "Heedless"),
    2: RankTier(2, "Muntabih", "Awakened"),
    3: RankTier(3, "Multazim", "Committed"),
    4: RankTier(4, "Muwāẓib", "Persistent"),
    5: RankTier(5, "Muhāsib", "Self-accountable"),
    6: RankTier(6, "Muttazin", "Steadfast"),
}

# Subscription
TIER_FREE = "free"
TIER_PREMIUM = "premium"
PAYWALL_CODE = "premium_required"
TOKEN_TTL_HOURS = 48
DEFAULT_FEATURE_FLAGS = {"premiumV2": False, "mizanStrictMode": False}
PREMIUM_FEATURES = ("premium_v2", "analytics", "export_full_history")

# Settings
DEFAULT_FOCUS_PHRASE = "Consistency is earned."

# Default timezone
DEFAULT_TIMEZONE = "UTC"

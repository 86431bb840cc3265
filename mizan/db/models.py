"""Data models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

from mizan.utils.constants import PRAYERS


SalahStatus = Literal["ontime", "late"] | None
PenaltyType = Literal["extra-mile", "discipline-debt"]
Tier = Literal["free", "premium"]


def _empty_salah() -> dict[str, SalahStatus]:
    return {prayer: None for prayer in PRAYERS}


@dataclass
class ActivityState:
    """Qur'an or physical activity: chosen options plus minutes spent."""

    selected: list[str] = field(default_factory=list)
    duration: int = 0


@dataclass
class BuildState:
    """Build work: chosen options plus what was built."""

    selected: list[str] = field(default_factory=list)
    description: str = ""


@dataclass
class OptionalTaskState:
    completed: bool = False


@dataclass
class CategoryState:
    """The seven daily obligations. Every field always has a default."""

    salah: dict[str, SalahStatus] = field(default_factory=_empty_salah)
    quran: ActivityState = field(default_factory=ActivityState)
    physical: ActivityState = field(default_factory=ActivityState)
    build: BuildState = field(default_factory=BuildState)
    study: OptionalTaskState = field(default_factory=OptionalTaskState)
    journal: OptionalTaskState = field(default_factory=OptionalTaskState)
    rest: OptionalTaskState = field(default_factory=OptionalTaskState)

    def to_dict(self) -> dict:
        return {
            "salah": dict(self.salah),
            "quran": {"selected": list(self.quran.selected), "duration": self.quran.duration},
            "physical": {
                "selected": list(self.physical.selected),
                "duration": self.physical.duration,
            },
            "build": {
                "selected": list(self.build.selected),
                "description": self.build.description,
            },
            "study": {"completed": self.study.completed},
            "journal": {"completed": self.journal.completed},
            "rest": {"completed": self.rest.completed},
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "CategoryState":
        """Build from stored JSON, filling anything missing with defaults."""
        data = data or {}
        salah = _empty_salah()
        for prayer, status in (data.get("salah") or {}).items():
            if prayer in salah and status in ("ontime", "late"):
                salah[prayer] = status

        def activity(key: str) -> ActivityState:
            raw = data.get(key) or {}
            return ActivityState(
                selected=list(raw.get("selected") or []),
                duration=int(raw.get("duration") or 0),
            )

        def optional(key: str) -> OptionalTaskState:
            raw = data.get(key) or {}
            return OptionalTaskState(completed=bool(raw.get("completed", False)))

        build = data.get("build") or {}
        return cls(
            salah=salah,
            quran=activity("quran"),
            physical=activity("physical"),
            build=BuildState(
                selected=list(build.get("selected") or []),
                description=build.get("description") or "",
            ),
            study=optional("study"),
            journal=optional("journal"),
            rest=optional("rest"),
        )


@dataclass
class Penalty:
    """A debt carried forward from a missed day."""

    id: str
    label: str
    origin: date  # the missed day
    due: date  # the day it must be resolved on
    type: PenaltyType
    resolved: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "origin": self.origin.isoformat(),
            "due": self.due.isoformat(),
            "type": self.type,
            "resolved": self.resolved,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Penalty":
        return cls(
            id=data["id"],
            label=data.get("label", ""),
            origin=date.fromisoformat(data["origin"]),
            due=date.fromisoformat(data["due"]),
            type=data.get("type", "extra-mile"),
            resolved=bool(data.get("resolved", False)),
        )


@dataclass
class DayRecord:
    """One user's entry for one calendar day."""

    day: date
    categories: CategoryState = field(default_factory=CategoryState)
    submitted: bool = False
    completed: bool = False  # frozen at submission
    submitted_at: datetime | None = None
    penalties: list[Penalty] = field(default_factory=list)
    points_awarded: float | None = None
    score_breakdown: list[str] | None = None


@dataclass
class CycleRecord:
    """Up to seven completed days, consecutive in the completed sequence."""

    id: str
    days: list[date] = field(default_factory=list)


@dataclass
class User:
    """Mizan account, bound to a Telegram user."""

    telegram_id: int
    timezone: str
    tier: Tier = "free"
    subscription_ends_at: datetime | None = None  # UTC
    username: str | None = None
    created_at: datetime | None = None
    id: int | None = None


@dataclass
class PremiumToken:
    """Single-use premium activation token."""

    token: str
    plan: str = "premium"
    created_for_user_id: int | None = None
    expires_at: datetime | None = None  # UTC
    redeemed_at: datetime | None = None  # UTC
    redeemed_by_user_id: int | None = None
    created_at: datetime | None = None


@dataclass
class RuleProgress:
    """Mission or achievement progress entry. Once completed, stays completed."""

    completed: bool = False
    completed_at: datetime | None = None
    points_awarded: int | None = None


@dataclass
class Settings:
    focus_phrase: str
    feature_flags: dict[str, bool] = field(default_factory=dict)


@dataclass
class LeaderboardEntry:
    user_id: int
    username: str | None
    points: float


@dataclass
class PointsLogEntry:
    day: date
    points: float
    breakdown: list[str] = field(default_factory=list)

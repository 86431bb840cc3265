"""Database repository - all SQL queries."""

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import List

import aiosqlite

from mizan.db.models import (
    CategoryState,
    DayRecord,
    LeaderboardEntry,
    Penalty,
    PointsLogEntry,
    PremiumToken,
    RuleProgress,
    Settings,
    User,
)
from mizan.utils.constants import DEFAULT_FOCUS_PHRASE, DEFAULT_TIMEZONE
from mizan.utils.errors import DaySealedError
from mizan.utils.time_utils import parse_timestamp

logger = logging.getLogger(__name__)


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


class Repository:
    """Database access layer."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        logger.info(f"Connected to database at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    # User operations

    async def get_user_by_telegram_id(self, telegram_id: int) -> User | None:
        """Get user by Telegram ID."""
        async with self.db.execute(
            "SELECT * FROM users WHERE telegram_id = ?", (telegram_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_user(row) if row else None

    async def get_user(self, user_id: int) -> User | None:
        """Get user by database ID."""
        async with self.db.execute(
            "SELECT * FROM users WHERE id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_user(row) if row else None

    async def list_user_ids(self) -> List[int]:
        async with self.db.execute("SELECT id FROM users ORDER BY id") as cursor:
            rows = await cursor.fetchall()
            return [row["id"] for row in rows]

    async def create_user(
        self,
        telegram_id: int,
        username: str | None = None,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> User:
        """Create a new free-tier user."""
        async with self.db.execute(
            """
            INSERT INTO users (telegram_id, username, timezone)
            VALUES (?, ?, ?)
            RETURNING *
            """,
            (telegram_id, username, timezone),
        ) as cursor:
            row = await cursor.fetchone()
            await self.db.commit()

        logger.info(f"Created user {telegram_id}")
        return self._row_to_user(row)

    async def update_user_settings(
        self,
        user_id: int,
        timezone: str | None = None,
        username: str | None = None,
    ) -> None:
        """Update user profile fields."""
        updates = []
        params: list = []

        if timezone is not None:
            updates.append("timezone = ?")
            params.append(timezone)
        if username is not None:
            updates.append("username = ?")
            params.append(username)

        if updates:
            params.append(user_id)
            await self.db.execute(
                f"UPDATE users SET {', '.join(updates)} WHERE id = ?", params
            )
            await self.db.commit()

    async def update_subscription(
        self, user_id: int, tier: str, ends_at: datetime | None
    ) -> None:
        await self._set_subscription(user_id, tier, ends_at)
        await self.db.commit()

    async def _set_subscription(
        self, user_id: int, tier: str, ends_at: datetime | None
    ) -> None:
        await self.db.execute(
            "UPDATE users SET subscription_tier = ?, subscription_ends_at = ? WHERE id = ?",
            (tier, _iso(ends_at), user_id),
        )

    # Day record operations

    async def get_day_record(self, user_id: int, day: date) -> DayRecord | None:
        async with self.db.execute(
            "SELECT * FROM day_records WHERE user_id = ? AND day = ?",
            (user_id, day.isoformat()),
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_day_record(row) if row else None

    async def list_day_records(self, user_id: int) -> List[DayRecord]:
        """All of a user's days, oldest first."""
        async with self.db.execute(
            "SELECT * FROM day_records WHERE user_id = ? ORDER BY day",
            (user_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_day_record(row) for row in rows]

    async def put_day_record(self, user_id: int, record: DayRecord) -> None:
        """Insert or update a day.

        A sealed row is never overwritten: the upsert only applies while the
        stored row is unsubmitted.
        """
        try:
            await self._upsert_day(user_id, record)
        except Exception:
            await self.db.rollback()
            raise
        await self.db.commit()

    async def seal_day(
        self,
        user_id: int,
        record: DayRecord,
        progress: dict[str, dict[str, RuleProgress]],
        log_entry: PointsLogEntry,
    ) -> None:
        """Store a submitted day with its progress, points and log in one transaction.

        Nothing is written unless every statement succeeds.

        Args:
            progress: rule progress keyed by kind (missions, achievements)

        Raises:
            DaySealedError: the stored day was already submitted
        """
        try:
            await self._upsert_day(user_id, record)
            for kind, entries in progress.items():
                await self._insert_progress(user_id, kind, entries)
            await self._add_points(user_id, log_entry.points)
            await self._append_points_log(user_id, log_entry)
        except Exception:
            await self.db.rollback()
            raise
        await self.db.commit()

    async def _upsert_day(self, user_id: int, record: DayRecord) -> None:
        cursor = await self.db.execute(
            """
            INSERT INTO day_records (
                user_id, day, categories, submitted, completed, submitted_at,
                penalties, points_awarded, score_breakdown
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_id, day) DO UPDATE SET
                categories = excluded.categories,
                submitted = excluded.submitted,
                completed = excluded.completed,
                submitted_at = excluded.submitted_at,
                penalties = excluded.penalties,
                points_awarded = excluded.points_awarded,
                score_breakdown = excluded.score_breakdown,
                updated_at = datetime('now')
            WHERE day_records.submitted = 0
            """,
            (
                user_id,
                record.day.isoformat(),
                json.dumps(record.categories.to_dict()),
                1 if record.submitted else 0,
                1 if record.completed else 0,
                _iso(record.submitted_at),
                json.dumps([p.to_dict() for p in record.penalties]),
                record.points_awarded,
                json.dumps(record.score_breakdown)
                if record.score_breakdown is not None
                else None,
            ),
        )
        rowcount = cursor.rowcount
        await cursor.close()

        if rowcount == 0:
            raise DaySealedError(record.day)

    # Settings

    async def get_settings(self, user_id: int) -> Settings:
        """Stored settings, or defaults if the user never saved any."""
        async with self.db.execute(
            "SELECT settings_json FROM settings WHERE user_id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()

        data = json.loads(row["settings_json"]) if row else {}
        return Settings(
            focus_phrase=data.get("focusPhrase") or DEFAULT_FOCUS_PHRASE,
            feature_flags=dict(data.get("featureFlags") or {}),
        )

    async def save_settings(self, user_id: int, settings: Settings) -> None:
        payload = json.dumps(
            {"focusPhrase": settings.focus_phrase, "featureFlags": settings.feature_flags}
        )
        await self.db.execute(
            """
            INSERT INTO settings (user_id, settings_json) VALUES (?, ?)
            ON CONFLICT (user_id) DO UPDATE SET
                settings_json = excluded.settings_json,
                updated_at = datetime('now')
            """,
            (user_id, payload),
        )
        await self.db.commit()

    # Premium tokens

    async def create_token(self, token: PremiumToken) -> PremiumToken:
        async with self.db.execute(
            """
            INSERT INTO premium_tokens (token, plan, created_for_user_id, expires_at)
            VALUES (?, ?, ?, ?)
            RETURNING *
            """,
            (token.token, token.plan, token.created_for_user_id, _iso(token.expires_at)),
        ) as cursor:
            row = await cursor.fetchone()
            await self.db.commit()
            return self._row_to_token(row)

    async def get_token(self, token: str) -> PremiumToken | None:
        async with self.db.execute(
            "SELECT * FROM premium_tokens WHERE token = ?", (token,)
        ) as cursor:
            row = await cursor.fetchone()
            return self._row_to_token(row) if row else None

    async def redeem_token(
        self,
        token: str,
        user_id: int,
        redeemed_at: datetime,
        tier: str,
        ends_at: datetime | None,
    ) -> PremiumToken | None:
        """Mark a token consumed and grant its subscription in one transaction.

        Returns:
            The redeemed token, or None if it was already redeemed
        """
        try:
            async with self.db.execute(
                """
                UPDATE premium_tokens
                SET redeemed_at = ?, redeemed_by_user_id = ?
                WHERE token = ? AND redeemed_at IS NULL
                RETURNING *
                """,
                (_iso(redeemed_at), user_id, token),
            ) as cursor:
                row = await cursor.fetchone()

            if row is None:
                await self.db.rollback()
                return None

            await self._set_subscription(user_id, tier, ends_at)
        except Exception:
            await self.db.rollback()
            raise

        await self.db.commit()
        return self._row_to_token(row)

    # Missions and achievements

    async def get_progress(self, user_id: int, kind: str) -> dict[str, RuleProgress]:
        async with self.db.execute(
            "SELECT * FROM rule_progress WHERE user_id = ? AND kind = ?",
            (user_id, kind),
        ) as cursor:
            rows = await cursor.fetchall()
            return {
                row["rule_id"]: RuleProgress(
                    completed=True,
                    completed_at=parse_timestamp(row["completed_at"]),
                    points_awarded=row["points_awarded"],
                )
                for row in rows
            }

    async def _insert_progress(
        self, user_id: int, kind: str, progress: dict[str, RuleProgress]
    ) -> None:
        """Persist completed rules. Existing rows are kept as they are."""
        for rule_id, entry in progress.items():
            if not entry.completed:
                continue
            await self.db.execute(
                """
                INSERT OR IGNORE INTO rule_progress
                    (user_id, kind, rule_id, completed_at, points_awarded)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, kind, rule_id, _iso(entry.completed_at), entry.points_awarded),
            )

    # Leaderboard and points log

    async def _add_points(self, user_id: int, delta: float) -> None:
        await self.db.execute(
            """
            INSERT INTO leaderboard (user_id, points) VALUES (?, ?)
            ON CONFLICT (user_id) DO UPDATE SET points = points + excluded.points
            """,
            (user_id, delta),
        )

    async def get_leaderboard(self, limit: int = 10) -> List[LeaderboardEntry]:
        async with self.db.execute(
            """
            SELECT l.user_id, l.points, u.username
            FROM leaderboard l JOIN users u ON u.id = l.user_id
            ORDER BY l.points DESC, l.user_id
            LIMIT ?
            """,
            (limit,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [
                LeaderboardEntry(
                    user_id=row["user_id"], username=row["username"], points=row["points"]
                )
                for row in rows
            ]

    async def get_leaderboard_points(self, user_id: int) -> float:
        async with self.db.execute(
            "SELECT points FROM leaderboard WHERE user_id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return row["points"] if row else 0.0

    async def _append_points_log(self, user_id: int, entry: PointsLogEntry) -> None:
        await self.db.execute(
            "INSERT INTO points_log (user_id, day, points, breakdown) VALUES (?, ?, ?, ?)",
            (user_id, entry.day.isoformat(), entry.points, json.dumps(entry.breakdown)),
        )

    async def get_points_log(self, user_id: int) -> List[PointsLogEntry]:
        async with self.db.execute(
            "SELECT * FROM points_log WHERE user_id = ? ORDER BY id", (user_id,)
        ) as cursor:
            rows = await cursor.fetchall()
            return [
                PointsLogEntry(
                    day=date.fromisoformat(row["day"]),
                    points=row["points"],
                    breakdown=json.loads(row["breakdown"]),
                )
                for row in rows
            ]

    # Account wipe

    async def delete_user_data(self, user_id: int) -> None:
        """Remove everything a user has logged. The account row stays."""
        for table in ("day_records", "rule_progress", "points_log", "leaderboard", "settings"):
            await self.db.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
        await self.db.commit()
        logger.info(f"Wiped data for user {user_id}")

    # Helper methods

    def _row_to_user(self, row: aiosqlite.Row) -> User:
        return User(
            id=row["id"],
            telegram_id=row["telegram_id"],
            username=row["username"],
            timezone=row["timezone"],
            tier=row["subscription_tier"],  # type: ignore
            subscription_ends_at=parse_timestamp(row["subscription_ends_at"]),
            created_at=parse_timestamp(row["created_at"]),
        )

    def _row_to_day_record(self, row: aiosqlite.Row) -> DayRecord:
        breakdown = row["score_breakdown"]
        return DayRecord(
            day=date.fromisoformat(row["day"]),
            categories=CategoryState.from_dict(json.loads(row["categories"])),
            submitted=bool(row["submitted"]),
            completed=bool(row["completed"]),
            submitted_at=parse_timestamp(row["submitted_at"]),
            penalties=[Penalty.from_dict(p) for p in json.loads(row["penalties"] or "[]")],
            points_awarded=row["points_awarded"],
            score_breakdown=json.loads(breakdown) if breakdown else None,
        )

    def _row_to_token(self, row: aiosqlite.Row) -> PremiumToken:
        return PremiumToken(
            token=row["token"],
            plan=row["plan"],
            created_for_user_id=row["created_for_user_id"],
            expires_at=parse_timestamp(row["expires_at"]),
            redeemed_at=parse_timestamp(row["redeemed_at"]),
            redeemed_by_user_id=row["redeemed_by_user_id"],
            created_at=parse_timestamp(row["created_at"]),
        )

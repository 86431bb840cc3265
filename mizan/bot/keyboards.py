"""Inline keyboard builders."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from mizan.db.models import DayRecord
from mizan.engine.completion import (
    is_build_complete,
    is_physical_complete,
    is_quran_complete,
    is_salah_complete,
)
from mizan.engine.penalties import can_submit
from mizan.utils.constants import PRAYERS

SALAH_MARK = {"ontime": "✅", "late": "⌛", None: "▫️"}


def _check(done: bool) -> str:
    return "✅" if done else "▫️"


def day_keyboard(record: DayRecord) -> InlineKeyboardMarkup:
    """Main check-in card: one button per obligation, debts and submit."""
    c = record.categories
    rows = [
        [
            InlineKeyboardButton(f"{_check(is_salah_complete(c.salah))} Salah", callback_data="menu:salah"),
            InlineKeyboardButton(f"{_check(is_quran_complete(c.quran))} Qur'an", callback_data="menu:quran"),
        ],
        [
            InlineKeyboardButton(f"{_check(is_physical_complete(c.physical))} Physical", callback_data="menu:physical"),
            InlineKeyboardButton(f"{_check(is_build_complete(c.build))} Build", callback_data="menu:build"),
        ],
        [
            InlineKeyboardButton(f"{_check(c.study.completed)} Study", callback_data="task:study"),
            InlineKeyboardButton(f"{_check(c.journal.completed)} Journal", callback_data="task:journal"),
            InlineKeyboardButton(f"{_check(c.rest.completed)} Rest", callback_data="task:rest"),
        ],
    ]

    for penalty in record.penalties:
        mark = "✅" if penalty.resolved else "⚠️"
        rows.append(
            [
                InlineKeyboardButton(
                    f"{mark} Debt from {penalty.origin.strftime('%b %d')}",
                    callback_data=f"debt:{penalty.id}",
                )
            ]
        )

    if can_submit(record):
        rows.append([InlineKeyboardButton("📥 Submit day", callback_data="submit")])

    return InlineKeyboardMarkup(rows)


def salah_keyboard(salah: dict) -> InlineKeyboardMarkup:
    """One row per prayer: on time, late, clear."""
    rows = []
    for prayer in PRAYERS:
        rows.append(
            [
                InlineKeyboardButton(
                    f"{SALAH_MARK[salah.get(prayer)]} {prayer.title()}",
                    callback_data="noop",
                ),
                InlineKeyboardButton("On time", callback_data=f"salah:{prayer}:ontime"),
                InlineKeyboardButton("Late", callback_data=f"salah:{prayer}:late"),
                InlineKeyboardButton("✗", callback_data=f"salah:{prayer}:clear"),
            ]
        )
    rows.append([InlineKeyboardButton("« Back", callback_data="menu:day")])
    return InlineKeyboardMarkup(rows)


def options_keyboard(category: str, options: tuple, selected: list[str]) -> InlineKeyboardMarkup:
    """Toggle buttons for an activity's options."""
    buttons = [
        InlineKeyboardButton(
            f"{_check(option in selected)} {option.title()}",
            callback_data=f"opt:{category}:{option}",
        )
        for option in options
    ]
    rows = [buttons[i : i + 2] for i in range(0, len(buttons), 2)]
    rows.append([InlineKeyboardButton("« Back", callback_data="menu:day")])
    return InlineKeyboardMarkup(rows)


def confirm_cancel_keyboard(action: str) -> InlineKeyboardMarkup:
    """Keyboard for confirmations: Confirm, Cancel."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Confirm", callback_data=f"confirm:{action}"),
                InlineKeyboardButton("✗ Cancel", callback_data=f"cancel:{action}"),
            ]
        ]
    )

"""Tests for command handlers with stand-in Telegram objects."""

import asyncio
from types import SimpleNamespace

from mizan.bot.handlers import debts_command, focus_command, timezone_command, today_command
from mizan.db.cache import MemoryCache


class FakeMessage:
    def __init__(self):
        self.replies: list[str] = []

    async def reply_html(self, text, **kwargs):
        self.replies.append(text)

    async def reply_text(self, text, **kwargs):
        self.replies.append(text)


def make_update(telegram_id: int):
    message = FakeMessage()
    update = SimpleNamespace(
        effective_user=SimpleNamespace(id=telegram_id, username=None),
        message=message,
        effective_message=message,
    )
    return update, message


def make_context(repo, cache, args=None):
    tasks = []
    context = SimpleNamespace(
        bot_data={"repo": repo, "cache": cache},
        application=SimpleNamespace(create_task=tasks.append),
        args=args or [],
    )
    return context, tasks


def test_opening_today_refreshes_the_cache(make_repo):
    """Test /today and /debts refreshing the snapshot with the day they created."""

    async def scenario():
        repo = await make_repo()
        try:
            cache = MemoryCache()
            user = await repo.create_user(1)

            for command in (today_command, debts_command):
                cache.clear(user.id)
                update, message = make_update(1)
                context, tasks = make_context(repo, cache)

                await command(update, context)
                await asyncio.gather(*tasks)

                assert message.replies
                snapshot = cache.read(user.id)
                assert snapshot is not None
                assert len(snapshot.records) == 1
                assert not snapshot.records[0].submitted
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_user_text_is_escaped_in_replies(make_repo):
    """Test that a stored focus phrase and a bad timezone can't inject markup."""

    async def scenario():
        repo = await make_repo()
        try:
            cache = MemoryCache()
            user = await repo.create_user(1)

            update, message = make_update(1)
            context, tasks = make_context(repo, cache, ["a", "<", "b"])
            await focus_command(update, context)
            await asyncio.gather(*tasks)
            assert (await repo.get_settings(user.id)).focus_phrase == "a < b"

            update, message = make_update(1)
            context, _ = make_context(repo, cache)
            await focus_command(update, context)
            assert "a &lt; b" in message.replies[0]

            update, message = make_update(1)
            context, _ = make_context(repo, cache, ["Bad<Zone"])
            await timezone_command(update, context)
            assert "Bad&lt;Zone" in message.replies[0]
            assert (await repo.get_user(user.id)).timezone == "UTC"
        finally:
            await repo.close()

    asyncio.run(scenario())

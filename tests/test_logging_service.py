"""
Admin audit log throttling and delivery.
"""

import pytest

from ledger_bot.services.logging_service import EmbedLogger, LogLevel, SendThrottle


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestSendThrottle:
    def test_repeated_key_suppressed_inside_window(self):
        clock = FakeClock()
        throttle = SendThrottle(per_minute=30, repeat_window=10, clock=clock)
        assert throttle.allow("a")
        assert not throttle.allow("a")
        assert throttle.allow("b")
        clock.now = 10
        assert throttle.allow("a")

    def test_per_minute_cap_slides(self):
        clock = FakeClock()
        throttle = SendThrottle(per_minute=2, clock=clock)
        assert throttle.allow(None)
        assert throttle.allow(None)
        assert not throttle.allow(None)
        clock.now = 60
        assert throttle.allow(None)

    def test_expired_keys_are_forgotten(self):
        clock = FakeClock()
        throttle = SendThrottle(per_minute=1000, repeat_window=10, clock=clock)
        for i in range(50):
            assert throttle.allow(f"error_{i}")
        assert len(throttle._last_by_key) == 50
        clock.now = 10
        assert throttle.allow("fresh")
        assert list(throttle._last_by_key) == ["fresh"]


@pytest.mark.asyncio
class TestEmbedLogger:
    async def test_without_channel_nothing_is_sent(self, mocker):
        bot = mocker.Mock()
        log = EmbedLogger(bot, 0)
        assert not await log.setup()
        await log.log_custom("Rewards", "Custom Reward", "done", LogLevel.SUCCESS)
        stats = await log.get_logging_stats()
        assert stats["total_logs_sent"] == 0
        assert not stats["channel_status"]["channel_resolved"]

    async def test_ledger_change_posts_embed(self, mocker):
        channel = mocker.AsyncMock()
        log = EmbedLogger(mocker.Mock(), 123)
        log.channel = channel
        await log.log_ledger_change(1, 2, "Aria", "XP", 0, 100, reason="session")
        embed = channel.send.await_args.kwargs["embed"]
        assert "XP updated" in embed.title
        assert [f.name for f in embed.fields] == ["Character", "Resource", "Change", "Reason"]
        assert (await log.get_logging_stats())["logs_by_service"] == {"Ledger": 1}

    async def test_duplicate_entries_suppressed(self, mocker):
        channel = mocker.AsyncMock()
        log = EmbedLogger(mocker.Mock(), 123)
        log.channel = channel
        await log.log_custom("LFG", "Purge", "x")
        await log.log_custom("LFG", "Purge", "x")
        assert channel.send.await_count == 1
        assert log.suppressed == 1

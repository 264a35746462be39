"""
Unit tests for lazy downtime accrual.
"""

import pytest

from ledger_bot.domain import CharacterProgress, DowntimeAccrual

DAY = 86400
START = 1_700_006_400  # day boundary


class TestBuckets:
    def test_default_bucket_is_one_day(self):
        assert DowntimeAccrual().bucket_seconds == DAY

    def test_rate_shrinks_bucket(self):
        assert DowntimeAccrual(rate=2).bucket_seconds == DAY // 2
        assert DowntimeAccrual(rate=7).bucket_seconds == round(DAY / 7)

    def test_bucket_start_floors(self):
        acc = DowntimeAccrual()
        assert acc.bucket_start(START + 3600.7) == START
        assert acc.bucket_start(START) == START

    @pytest.mark.parametrize("rate", [0, -1])
    def test_non_positive_rate_rejected(self, rate):
        with pytest.raises(ValueError):
            DowntimeAccrual(rate=rate)


class TestAccrue:
    def test_missing_character_is_distinct_from_zero(self):
        assert DowntimeAccrual().accrue(None, START) is None

    def test_credits_whole_days(self):
        progress = CharacterProgress(downtime_points=2, downtime_last_updated=START)
        res = DowntimeAccrual().accrue(progress, START + 3 * DAY + 500)
        assert res.accrued == 3
        assert res.downtime_points == 5
        assert res.downtime_last_updated == START + 3 * DAY

    def test_idempotent_within_bucket(self):
        acc = DowntimeAccrual()
        progress = CharacterProgress(downtime_points=0, downtime_last_updated=START)
        now = START + 2 * DAY + 10
        first = acc.accrue(progress, now)
        second = acc.accrue(first.apply_to(progress), now + 60)
        assert second.accrued == 0
        assert second.downtime_points == first.downtime_points
        assert second.downtime_last_updated == first.downtime_last_updated

    def test_clock_behind_stored_boundary_credits_nothing(self):
        progress = CharacterProgress(downtime_points=4, downtime_last_updated=START + DAY)
        res = DowntimeAccrual().accrue(progress, START)
        assert res.accrued == 0
        assert res.downtime_last_updated == START + DAY

    def test_misaligned_boundary_gives_fraction(self):
        progress = CharacterProgress(downtime_points=0, downtime_last_updated=START - DAY // 2)
        res = DowntimeAccrual().accrue(progress, START)
        assert res.accrued == pytest.approx(0.5)

    def test_apply_to_only_touches_downtime(self):
        progress = CharacterProgress(xp=900, level=3, currency_minor=120, downtime_last_updated=START)
        res = DowntimeAccrual().accrue(progress, START + DAY)
        updated = res.apply_to(progress)
        assert (updated.xp, updated.level, updated.currency_minor) == (900, 3, 120)
        assert updated.downtime_points == 1

"""
Unit tests for the advancement and DM reward tables.
"""

import json

import pytest

from ledger_bot.domain import AdvancementRow, AdvancementTable, RewardTable, nearest_defined_level_at_or_below


class TestAdvancementTable:
    def test_packaged_table_loads(self, advancement):
        assert advancement.max_level == 20
        assert advancement.row(1).xp_threshold == 0
        assert advancement.row(2).xp_threshold == 300
        assert advancement.row(20).proficiency == 6

    def test_thresholds_strictly_increasing(self, advancement):
        t = advancement.thresholds
        assert all(a < b for a, b in zip(t, t[1:]))

    def test_rejects_gap_in_levels(self):
        with pytest.raises(ValueError):
            AdvancementTable(
                [AdvancementRow(1, 0, 2), AdvancementRow(3, 900, 2)]
            )

    def test_rejects_non_increasing_thresholds(self):
        with pytest.raises(ValueError):
            AdvancementTable(
                [AdvancementRow(1, 0, 2), AdvancementRow(2, 0, 2)]
            )

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            AdvancementTable([])

    def test_declared_max_level_must_match(self):
        data = {"max_level": 5, "levels": [{"level": 1, "xp": 0, "proficiency": 2}]}
        with pytest.raises(ValueError):
            AdvancementTable.from_dict(data)

    def test_from_file_custom_path(self, tmp_path):
        path = tmp_path / "adv.json"
        path.write_text(
            json.dumps({"levels": [{"level": 1, "xp": 0, "proficiency": 2}, {"level": 2, "xp": 50, "proficiency": 2}]})
        )
        table = AdvancementTable.from_file(path)
        assert table.max_level == 2
        assert table.index_for_xp(49) == 0
        assert table.index_for_xp(50) == 1


class TestRewardTable:
    def test_packaged_table_covers_every_level(self, reward_table):
        assert reward_table.levels == list(range(1, 21))

    def test_exact_lookup(self, gappy_rewards):
        assert gappy_rewards.get(2).xp == 101
        assert gappy_rewards.get(3) is None

    def test_missing_level_uses_nearest_lower(self, gappy_rewards):
        assert gappy_rewards.row_for(4).level == 2
        assert gappy_rewards.row_for(9).level == 5

    def test_level_below_all_uses_lowest(self, gappy_rewards):
        assert gappy_rewards.row_for(1).level == 2

    def test_duplicate_rows_rejected(self):
        data = {"levels": [{"level": 1, "xp": 1}, {"level": 1, "xp": 2}]}
        with pytest.raises(ValueError):
            RewardTable.from_dict(data)


class TestNearestDefinedLevel:
    @pytest.mark.parametrize(
        "level,expected",
        [(0, 2), (2, 2), (3, 2), (5, 5), (7, 5), (100, 9), (9, 9)],
    )
    def test_lookup(self, level, expected):
        assert nearest_defined_level_at_or_below([2, 5, 9], level) == expected

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            nearest_defined_level_at_or_below([], 3)

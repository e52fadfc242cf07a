import pytest

from credibles.errors import InvalidCategory
from credibles.skills import Category, SkillStats, level_for, parse_category


@pytest.mark.parametrize("value", ["dev", "defi", "gov", "social"])
def test_known_categories_parse(value):
    assert parse_category(value).value == value


@pytest.mark.parametrize("value", ["Dev", "DEFI", " gov", "social ", "", "invalid", None, 1])
def test_anything_else_is_invalid(value):
    with pytest.raises(InvalidCategory):
        parse_category(value)


def test_enum_member_passes_through():
    assert parse_category(Category.GOV) is Category.GOV


@pytest.mark.parametrize("xp,level", [(0, 0), (99, 0), (100, 1), (199, 1), (250, 2), (1_000_000, 10_000)])
def test_level_is_floor_of_hundreds(xp, level):
    assert level_for(xp) == level


def test_stats_levels_and_dict():
    stats = SkillStats(dev=150, defi=20, gov=300, social=0)
    assert stats.get("gov") == 300
    assert stats.levels() == {"dev": 1, "defi": 0, "gov": 3, "social": 0}
    assert stats.as_dict() == {"dev": 150, "defi": 20, "gov": 300, "social": 0}
    assert stats.total() == 470

"""
Skill categories, XP levels and the per-subject stats record.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict

from .errors import InvalidCategory

LEVEL_STEP = 100
# Counters are stored as signed 64-bit integers.
MAX_XP = 2**63 - 1


class Category(str, Enum):
    DEV = "dev"
    DEFI = "defi"
    GOV = "gov"
    SOCIAL = "social"


CATEGORIES = tuple(c.value for c in Category)


def parse_category(value) -> Category:
    """Exact match only: "dev" is valid, "Dev" and " dev" are not."""
    if isinstance(value, Category):
        return value
    if not isinstance(value, str) or value not in CATEGORIES:
        raise InvalidCategory(f"Invalid category: {value!r}")
    return Category(value)


def level_for(xp: int) -> int:
    return xp // LEVEL_STEP


@dataclass(frozen=True)
class SkillStats:
    dev: int = 0
    defi: int = 0
    gov: int = 0
    social: int = 0

    def get(self, category) -> int:
        return getattr(self, parse_category(category).value)

    def levels(self) -> Dict[str, int]:
        return {c: level_for(getattr(self, c)) for c in CATEGORIES}

    def total(self) -> int:
        return self.dev + self.defi + self.gov + self.social

    def as_dict(self) -> Dict[str, int]:
        return {c: getattr(self, c) for c in CATEGORIES}


@dataclass(frozen=True)
class LevelUp:
    subject_id: int
    category: str
    new_level: int

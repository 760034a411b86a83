"""
lobstersage/protocol/tiers.py

Reputation tiers.

| Tier       | Min score |
|------------|-----------|
| Legendary  | 9000      |
| Prophet    | 7500      |
| Oracle     | 6000      |
| Seer       | 4500      |
| Adept      | 3000      |
| Apprentice | 1500      |
| Novice     | 0         |

Tiers are a closed, ordered enumeration. Labels and emoji are a display
concern and live in TIER_DISPLAY, not on the enum.
"""

from enum import Enum
from typing import Dict, Optional, Tuple


class Tier(Enum):
    """Reputation tier, ordered from lowest to highest."""
    NOVICE = "novice"
    APPRENTICE = "apprentice"
    ADEPT = "adept"
    SEER = "seer"
    ORACLE = "oracle"
    PROPHET = "prophet"
    LEGENDARY = "legendary"

    @property
    def min_score(self) -> int:
        return TIER_THRESHOLDS[self]

    @property
    def rank(self) -> int:
        """Position in tier order (Novice = 0)."""
        return TIER_ORDER.index(self)

    def __lt__(self, other: "Tier") -> bool:
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "Tier") -> bool:
        if not isinstance(other, Tier):
            return NotImplemented
        return self.rank <= other.rank


TIER_ORDER: Tuple[Tier, ...] = (
    Tier.NOVICE,
    Tier.APPRENTICE,
    Tier.ADEPT,
    Tier.SEER,
    Tier.ORACLE,
    Tier.PROPHET,
    Tier.LEGENDARY,
)

# Inclusive lower bounds
TIER_THRESHOLDS: Dict[Tier, int] = {
    Tier.NOVICE: 0,
    Tier.APPRENTICE: 1500,
    Tier.ADEPT: 3000,
    Tier.SEER: 4500,
    Tier.ORACLE: 6000,
    Tier.PROPHET: 7500,
    Tier.LEGENDARY: 9000,
}

TIER_DISPLAY: Dict[Tier, Tuple[str, str]] = {
    Tier.NOVICE: ("Novice", "\U0001F331"),
    Tier.APPRENTICE: ("Apprentice", "\U0001F4D6"),
    Tier.ADEPT: ("Adept", "\U0001F4FF"),
    Tier.SEER: ("Seer", "\U0001F441\ufe0f"),
    Tier.ORACLE: ("Oracle", "\U0001F31F"),
    Tier.PROPHET: ("Prophet", "\U0001F52E"),
    Tier.LEGENDARY: ("Legendary", "\U0001F99E"),
}


def get_tier(score: float) -> Tier:
    """Map a total score to its tier, checking the highest threshold first."""
    for tier in reversed(TIER_ORDER):
        if score >= TIER_THRESHOLDS[tier]:
            return tier
    return Tier.NOVICE


def next_tier(tier: Tier) -> Optional[Tier]:
    """The tier above `tier`, or None at Legendary."""
    idx = tier.rank
    if idx + 1 >= len(TIER_ORDER):
        return None
    return TIER_ORDER[idx + 1]


def points_to_next_tier(score: float) -> int:
    """Points still needed to reach the next tier (0 at Legendary)."""
    upcoming = next_tier(get_tier(score))
    if upcoming is None:
        return 0
    return max(0, int(upcoming.min_score - score))


def format_tier(tier: Tier, with_emoji: bool = True) -> str:
    """Human-readable tier label, e.g. 'Oracle 🌟'."""
    label, emoji = TIER_DISPLAY[tier]
    return f"{label} {emoji}" if with_emoji else label

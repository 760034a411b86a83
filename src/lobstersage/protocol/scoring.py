"""
lobstersage/protocol/scoring.py

Deterministic reputation scoring.

A reputation score is the sum of four capped components:

| Component   | Weight | Max points | Input                      |
|-------------|--------|------------|----------------------------|
| Accuracy    | 40%    | 4000       | correct / total predictions |
| Volume      | 25%    | 2500       | cumulative USD volume       |
| Consistency | 20%    | 2000       | consecutive active days     |
| Yield       | 15%    | 1500       | cumulative USD profit       |

The maximum total is 10000. Every function in this module is pure, so any
node can recompute a breakdown from the same inputs and get the same result.

Usage:
    from lobstersage.protocol.scoring import AccuracyInput, calculate_score

    breakdown = calculate_score(AccuracyInput(correct=7, total=10), 5000, 15, 500)
    breakdown.total_score  # 7000
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Tuple

from .tiers import Tier, get_tier

logger = logging.getLogger("lobstersage.protocol.scoring")


# ============================================================================
# WEIGHTS AND CAPS
# ============================================================================

REPUTATION_WEIGHTS = {
    "accuracy": 40,
    "volume": 25,
    "consistency": 20,
    "yield": 15,
}

MAX_ACCURACY_POINTS = 4000      # 40% of 10000
MAX_VOLUME_POINTS = 2500        # 25% of 10000
MAX_CONSISTENCY_POINTS = 2000   # 20% of 10000
MAX_YIELD_POINTS = 1500         # 15% of 10000
MAX_TOTAL_POINTS = 10000

MAX_POINTS = {
    "accuracy": MAX_ACCURACY_POINTS,
    "volume": MAX_VOLUME_POINTS,
    "consistency": MAX_CONSISTENCY_POINTS,
    "yield": MAX_YIELD_POINTS,
    "total": MAX_TOTAL_POINTS,
}


# ============================================================================
# ACCURACY DAMPENING
# ============================================================================
#
# Small samples cannot reach the undamped ceiling: with fewer than
# MIN_PREDICTIONS_FOR_FULL_WEIGHT resolved predictions the accuracy ratio is
# multiplied by SMALL_SAMPLE_DAMPENING before scaling to MAX_ACCURACY_POINTS.
# A 4-for-4 predictor therefore earns 1600 points, not 4000.

MIN_PREDICTIONS_FOR_FULL_WEIGHT = 5
SMALL_SAMPLE_DAMPENING = 0.4


# ============================================================================
# VOLUME AND YIELD TIERS
# ============================================================================
#
# Lower bounds are inclusive. The ledger contract publishes the same
# breakpoints (volumeTier1..5, yieldTier1..5); the two tables must match.
#
# | Volume (USD)    | Share | Points |   | Yield (USD)   | Share | Points |
# |-----------------|-------|--------|---|---------------|-------|--------|
# | < 100           | 0%    | 0      |   | < 10          | 0%    | 0      |
# | 100 - 499.99    | 20%   | 500    |   | 10 - 49.99    | 20%   | 300    |
# | 500 - 999.99    | 40%   | 1000   |   | 50 - 99.99    | 40%   | 600    |
# | 1000 - 4999.99  | 60%   | 1500   |   | 100 - 499.99  | 60%   | 900    |
# | 5000 - 9999.99  | 80%   | 2000   |   | 500 - 999.99  | 80%   | 1200   |
# | >= 10000        | 100%  | 2500   |   | >= 1000       | 100%  | 1500   |

VOLUME_TIERS_USD: Tuple[int, ...] = (100, 500, 1000, 5000, 10000)
YIELD_TIERS_USD: Tuple[int, ...] = (10, 50, 100, 500, 1000)

# Share of the category cap awarded at each tier (same index as the tiers)
TIER_SHARES: Tuple[float, ...] = (0.2, 0.4, 0.6, 0.8, 1.0)

# Consecutive days at which consistency is maxed out
CONSISTENCY_MAX_DAYS = 30


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class AccuracyInput:
    """Resolved prediction counts for the accuracy component."""
    correct: int
    total: int


@dataclass
class ReputationBreakdown:
    """
    Four-part score decomposition plus the total.

    total_score always equals the sum of the four point components.
    Breakdowns are derived on read and never persisted.
    """
    total_score: int = 0
    accuracy_points: int = 0
    volume_points: int = 0
    consistency_points: int = 0
    yield_points: int = 0
    accuracy_percentage: float = 0.0
    predictions_made: int = 0
    predictions_correct: int = 0
    consecutive_days: int = 0
    total_volume_usd: float = 0.0
    total_yield_usd: float = 0.0

    @property
    def tier(self) -> Tier:
        """Tier for this breakdown's total score."""
        return get_tier(self.total_score)

    @property
    def component_sum(self) -> int:
        return (
            self.accuracy_points
            + self.volume_points
            + self.consistency_points
            + self.yield_points
        )

    def is_consistent(self) -> bool:
        """Check the total/component invariant and the per-component caps."""
        return (
            self.total_score == self.component_sum
            and 0 <= self.accuracy_points <= MAX_ACCURACY_POINTS
            and 0 <= self.volume_points <= MAX_VOLUME_POINTS
            and 0 <= self.consistency_points <= MAX_CONSISTENCY_POINTS
            and 0 <= self.yield_points <= MAX_YIELD_POINTS
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReputationBreakdown":
        return cls(
            total_score=int(data.get('total_score', 0)),
            accuracy_points=int(data.get('accuracy_points', 0)),
            volume_points=int(data.get('volume_points', 0)),
            consistency_points=int(data.get('consistency_points', 0)),
            yield_points=int(data.get('yield_points', 0)),
            accuracy_percentage=float(data.get('accuracy_percentage', 0.0)),
            predictions_made=int(data.get('predictions_made', 0)),
            predictions_correct=int(data.get('predictions_correct', 0)),
            consecutive_days=int(data.get('consecutive_days', 0)),
            total_volume_usd=float(data.get('total_volume_usd', 0.0)),
            total_yield_usd=float(data.get('total_yield_usd', 0.0)),
        )

    @classmethod
    def empty(cls) -> "ReputationBreakdown":
        """All-zero breakdown (no reputation yet)."""
        return cls()


# ============================================================================
# INPUT CLAMPING
# ============================================================================

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def clamp_usd(value: float) -> float:
    """
    Clamp a USD amount to the valid range.

    Negative amounts become 0. NaN and infinities cannot cross the
    fixed-point ledger boundary, so they are treated as 0 as well.
    """
    try:
        value = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Non-numeric USD amount {value!r} treated as 0")
        return 0.0
    if not math.isfinite(value):
        logger.warning(f"Non-finite USD amount {value} treated as 0")
        return 0.0
    return max(0.0, value)


def _clamp_count(value: Any, name: str, infinite_as: int = 0) -> int:
    """Clamp a count to a non-negative integer; NaN and junk become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Non-numeric {name} {value!r} treated as 0")
        return 0
    if math.isnan(number):
        logger.warning(f"NaN {name} treated as 0")
        return 0
    if math.isinf(number):
        clamped = infinite_as if number > 0 else 0
        logger.warning(f"Infinite {name} treated as {clamped}")
        return clamped
    return max(0, int(number))


def clamp_days(days: int) -> int:
    """Clamp a day count to a non-negative integer (+inf saturates at the cap)."""
    return _clamp_count(days, "day count", infinite_as=CONSISTENCY_MAX_DAYS)


def clamp_accuracy(accuracy: AccuracyInput) -> AccuracyInput:
    """Clamp counts so that 0 <= correct <= total."""
    total = _clamp_count(accuracy.total, "prediction total")
    correct = min(_clamp_count(accuracy.correct, "correct count"), total)
    if total != accuracy.total or correct != accuracy.correct:
        logger.debug(
            f"Clamped accuracy input {accuracy.correct}/{accuracy.total} "
            f"to {correct}/{total}"
        )
        return AccuracyInput(correct=correct, total=total)
    return accuracy


# ============================================================================
# COMPONENT CALCULATIONS
# ============================================================================

def _tiered_points(value: float, tiers: Tuple[int, ...], cap: int) -> int:
    """Award the share of `cap` for the highest tier `value` reaches."""
    points = 0
    for bound, share in zip(tiers, TIER_SHARES):
        if value >= bound:
            points = round_half_up(cap * share)
        else:
            break
    return points


def calculate_accuracy_points(accuracy: AccuracyInput) -> int:
    """
    Accuracy points (max 4000).

    Fewer than five resolved predictions are dampened by 0.4.
    """
    accuracy = clamp_accuracy(accuracy)
    if accuracy.total == 0:
        return 0

    ratio = accuracy.correct / accuracy.total
    if accuracy.total < MIN_PREDICTIONS_FOR_FULL_WEIGHT:
        ratio *= SMALL_SAMPLE_DAMPENING
    return round_half_up(ratio * MAX_ACCURACY_POINTS)


def calculate_accuracy_percentage(accuracy: AccuracyInput) -> float:
    """Undamped accuracy percentage rounded to 2 decimals."""
    accuracy = clamp_accuracy(accuracy)
    if accuracy.total == 0:
        return 0.0
    return round_half_up(accuracy.correct / accuracy.total * 10000) / 100


def calculate_volume_points(volume_usd: float) -> int:
    """Volume points (max 2500) from the USD volume tiers."""
    return _tiered_points(clamp_usd(volume_usd), VOLUME_TIERS_USD, MAX_VOLUME_POINTS)


def calculate_consistency_points(consecutive_days: int) -> int:
    """Consistency points (max 2000), linear up to a 30-day streak."""
    days = min(clamp_days(consecutive_days), CONSISTENCY_MAX_DAYS)
    return round_half_up(days / CONSISTENCY_MAX_DAYS * MAX_CONSISTENCY_POINTS)


def calculate_yield_points(yield_usd: float) -> int:
    """Yield points (max 1500) from the USD profit tiers."""
    return _tiered_points(clamp_usd(yield_usd), YIELD_TIERS_USD, MAX_YIELD_POINTS)


def calculate_score(
    accuracy: AccuracyInput,
    volume_usd: float,
    consecutive_days: int,
    yield_usd: float,
) -> ReputationBreakdown:
    """
    Calculate a full reputation breakdown from raw activity inputs.

    Args:
        accuracy: Correct and total resolved predictions
        volume_usd: Cumulative traded volume in USD
        consecutive_days: Current activity streak in days
        yield_usd: Cumulative realized profit in USD

    Returns:
        ReputationBreakdown whose total is the sum of the four components
    """
    accuracy = clamp_accuracy(accuracy)
    volume_usd = clamp_usd(volume_usd)
    consecutive_days = clamp_days(consecutive_days)
    yield_usd = clamp_usd(yield_usd)

    accuracy_points = calculate_accuracy_points(accuracy)
    volume_points = calculate_volume_points(volume_usd)
    consistency_points = calculate_consistency_points(consecutive_days)
    yield_points = calculate_yield_points(yield_usd)

    return ReputationBreakdown(
        total_score=accuracy_points + volume_points + consistency_points + yield_points,
        accuracy_points=accuracy_points,
        volume_points=volume_points,
        consistency_points=consistency_points,
        yield_points=yield_points,
        accuracy_percentage=calculate_accuracy_percentage(accuracy),
        predictions_made=accuracy.total,
        predictions_correct=accuracy.correct,
        consecutive_days=consecutive_days,
        total_volume_usd=volume_usd,
        total_yield_usd=yield_usd,
    )

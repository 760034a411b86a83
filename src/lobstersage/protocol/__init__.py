"""
lobstersage/protocol/

Reputation scoring, streaks, tiers, local caching and ranking.
"""

from .scoring import (
    AccuracyInput,
    ReputationBreakdown,
    MAX_POINTS,
    REPUTATION_WEIGHTS,
    VOLUME_TIERS_USD,
    YIELD_TIERS_USD,
    calculate_score,
    calculate_accuracy_points,
    calculate_volume_points,
    calculate_consistency_points,
    calculate_yield_points,
)
from .tiers import Tier, get_tier, format_tier, next_tier, points_to_next_tier
from .streak import ActivityAction, ActivityRecord, compute_streak, add_activity
from .cache import LocalLedgerCache, LocalStats, PredictionResult, VolumeRecord
from .rank import LeaderboardEntry, RankService, percentile_from_rank
from .reputation import (
    ReputationOrchestrator,
    UpdateResult,
    UpdateStatus,
    breakdown_from_ledger,
)

__all__ = [
    # Scoring
    "AccuracyInput",
    "ReputationBreakdown",
    "MAX_POINTS",
    "REPUTATION_WEIGHTS",
    "VOLUME_TIERS_USD",
    "YIELD_TIERS_USD",
    "calculate_score",
    "calculate_accuracy_points",
    "calculate_volume_points",
    "calculate_consistency_points",
    "calculate_yield_points",
    # Tiers
    "Tier",
    "get_tier",
    "format_tier",
    "next_tier",
    "points_to_next_tier",
    # Streaks
    "ActivityAction",
    "ActivityRecord",
    "compute_streak",
    "add_activity",
    # Cache
    "LocalLedgerCache",
    "LocalStats",
    "PredictionResult",
    "VolumeRecord",
    # Ranking
    "LeaderboardEntry",
    "RankService",
    "percentile_from_rank",
    # Orchestration
    "ReputationOrchestrator",
    "UpdateResult",
    "UpdateStatus",
    "breakdown_from_ledger",
]

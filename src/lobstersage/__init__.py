"""
lobstersage - Reputation scoring and ranking for the LobsterSage agent

Scores predictors on four weighted components (accuracy 40%, volume 25%,
consistency 20%, yield 15%), classifies them into tiers, and reconciles a
local estimate with the on-chain Reputation contract, which is the source of
truth for scores and rankings.

Usage:
    from lobstersage import ReputationConfig, ReputationOrchestrator, PredictionResult

    config = ReputationConfig.from_env()
    orchestrator = ReputationOrchestrator.from_config(config)
    await orchestrator.initialize()

    result = await orchestrator.update_accuracy(
        "0xabc...",
        PredictionResult(predicted=True, actual=True, confidence=80),
    )
    print(result.status, result.breakdown)

    percentile = await orchestrator.get_rank("0xabc...")

Metrics Usage:
    from lobstersage.metrics import ReputationMetrics

    metrics = ReputationMetrics()
    orchestrator = ReputationOrchestrator(ledger, metrics=metrics)
    prometheus_output = metrics.collect()
"""

from .config import ReputationConfig
from .metrics import ReputationMetrics
from .blockchain import (
    ReputationLedger,
    ContractLedger,
    ReputationError,
    LedgerError,
    LedgerNotInitializedError,
    TierConstantsMismatchError,
)
from .protocol import (
    AccuracyInput,
    ReputationBreakdown,
    calculate_score,
    Tier,
    get_tier,
    format_tier,
    ActivityAction,
    ActivityRecord,
    compute_streak,
    LocalLedgerCache,
    PredictionResult,
    VolumeRecord,
    LeaderboardEntry,
    RankService,
    ReputationOrchestrator,
    UpdateResult,
    UpdateStatus,
)

__version__ = "1.0.0"
__all__ = [
    # Core
    "ReputationOrchestrator",
    "ReputationConfig",
    "UpdateResult",
    "UpdateStatus",
    # Scoring
    "AccuracyInput",
    "ReputationBreakdown",
    "calculate_score",
    "Tier",
    "get_tier",
    "format_tier",
    # Streaks & cache
    "ActivityAction",
    "ActivityRecord",
    "compute_streak",
    "LocalLedgerCache",
    "PredictionResult",
    "VolumeRecord",
    # Ranking
    "LeaderboardEntry",
    "RankService",
    # Ledger
    "ReputationLedger",
    "ContractLedger",
    # Errors
    "ReputationError",
    "LedgerError",
    "LedgerNotInitializedError",
    "TierConstantsMismatchError",
    # Metrics
    "ReputationMetrics",
]

"""Statistical helpers for effectiveness metrics.

Conventions:
- Standard deviation uses the population formula (ddof=0).
- Percentiles use the nearest-rank method: the value at 1-based rank
  ``ceil(p * n)`` of the ascending-sorted sample.
- Empty samples yield 0.0 rather than NaN.

All functions are pure computation -- no I/O or shared state.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

# ---------------------------------------------------------------------------
# Effectiveness score weights
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EffectivenessWeights:
    """Weights blending the composite 0-1 effectiveness score.

    Attributes:
        success_rate: Weight of the success rate (0-1).
        token_savings: Weight of normalized token savings.
        speed: Weight of normalized execution speed.
        error_rate: Penalty weight applied to the error rate.
        satisfaction_bonus: Maximum bonus from a 5/5 user satisfaction.
        token_savings_target: Savings ratio that scores a full 1.0.
        execution_time_target_ms: Execution time that scores 0.0 on speed.
    """

    success_rate: float = 0.4
    token_savings: float = 0.3
    speed: float = 0.2
    error_rate: float = 0.1
    satisfaction_bonus: float = 0.1
    token_savings_target: float = 0.7
    execution_time_target_ms: float = 5000.0


DEFAULT_WEIGHTS = EffectivenessWeights()


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    if len(values) == 0:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float), ddof=0))


def percentile(values: Sequence[float], pct: float) -> float:
    """Nearest-rank percentile.

    Args:
        values: Sample values, in any order.
        pct: Percentile as a fraction (0.95 for p95).

    Returns:
        The sample value at rank ``ceil(pct * n)``; 0.0 for an empty sample.
    """
    if len(values) == 0:
        return 0.0
    ordered = np.sort(np.asarray(values, dtype=float))
    # round() guards against 0.95 * 20 landing at 19.000000000000004
    rank = math.ceil(round(pct * len(ordered), 9))
    index = min(max(rank - 1, 0), len(ordered) - 1)
    return float(ordered[index])


def effectiveness_score(
    success_rate: float,
    error_rate: float,
    average_tokens_saved: float,
    average_execution_time_ms: float,
    average_user_satisfaction: float | None = None,
    weights: EffectivenessWeights = DEFAULT_WEIGHTS,
) -> float:
    """Composite 0-1 effectiveness score.

    ``score = w_s * success + w_t * savings + w_v * speed - w_e * error_rate``
    plus ``(satisfaction / 5) * satisfaction_bonus`` when a satisfaction
    average exists, clamped to [0, 1]. Savings are normalized against
    ``token_savings_target`` and capped at 1; speed falls linearly from 1
    at 0ms to 0 at ``execution_time_target_ms``.
    """
    savings_score = max(
        0.0, min(average_tokens_saved / weights.token_savings_target, 1.0)
    )
    speed_score = max(
        0.0, 1.0 - average_execution_time_ms / weights.execution_time_target_ms
    )

    score = (
        success_rate * weights.success_rate
        + savings_score * weights.token_savings
        + speed_score * weights.speed
        - error_rate * weights.error_rate
    )

    if average_user_satisfaction is not None:
        score += (average_user_satisfaction / 5.0) * weights.satisfaction_bonus

    # Default weights sum to 0.9999999999999999 in binary floating point
    return max(0.0, min(round(score, 10), 1.0))

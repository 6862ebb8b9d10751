"""Retry delay computation for the pagination controller."""

from __future__ import annotations

import random

from ..config import RetryPolicy


def backoff_delay(attempt: int, policy: RetryPolicy, rng: random.Random | None = None) -> float:
    """Exponential backoff with jitter for a 1-based retry attempt.

    ``backoff_base * 2^(attempt-1)`` capped at ``backoff_max``, plus up to
    ``jitter`` of that value at random.
    """

    if policy.backoff_base <= 0:
        return 0.0
    exp = min(policy.backoff_max, policy.backoff_base * (2 ** max(attempt - 1, 0)))
    jitter = (rng or random).uniform(0, exp * policy.jitter) if policy.jitter else 0.0
    return exp + jitter


__all__ = ["backoff_delay"]

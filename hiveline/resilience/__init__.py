"""Retry and batch execution helpers."""

from __future__ import annotations

from hiveline.resilience.batch import BatchItemOutcome, BatchProcessor
from hiveline.resilience.retry import RetryPolicy, is_transient_error, retry

__all__ = [
    "BatchItemOutcome",
    "BatchProcessor",
    "RetryPolicy",
    "is_transient_error",
    "retry",
]

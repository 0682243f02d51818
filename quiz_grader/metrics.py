"""Grading counters for observability.

The engine records one entry per graded attempt and the descriptive grader
records each fallback from AI to similarity grading. Nothing here influences
grading outcomes, and nothing is persisted across restarts.
"""

from __future__ import annotations

import threading
from typing import Protocol

from quiz_grader.models import MetricsSnapshot


class MetricsSink(Protocol):
    """What the grading pipeline needs from an observability collaborator."""

    def record_attempt(self, success: bool, elapsed_ms: float) -> None: ...

    def record_fallback(self) -> None: ...

    def snapshot(self) -> MetricsSnapshot: ...

    def reset(self) -> None: ...


class GradingMetrics:
    """Thread-safe in-memory grading counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = 0
        self._successful = 0
        self._failed = 0
        self._fallback = 0
        self._average_ms = 0.0

    def record_attempt(self, success: bool, elapsed_ms: float) -> None:
        with self._lock:
            self._total += 1
            if success:
                self._successful += 1
            else:
                self._failed += 1
            # Running mean over every recorded attempt
            self._average_ms += (float(elapsed_ms) - self._average_ms) / self._total

    def record_fallback(self) -> None:
        with self._lock:
            self._fallback += 1

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                total_graded=self._total,
                successful_gradings=self._successful,
                failed_gradings=self._failed,
                fallback_used=self._fallback,
                average_response_time=round(self._average_ms, 2),
            )

    def reset(self) -> None:
        with self._lock:
            self._total = 0
            self._successful = 0
            self._failed = 0
            self._fallback = 0
            self._average_ms = 0.0

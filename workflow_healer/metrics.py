"""Per-phase timing and counter telemetry for one healing run.

PhaseMetrics     — frozen snapshot of one phase's counters + duration.
MetricsCollector — async context manager; read .result / .to_dict() after exit.

Usage::

    async with MetricsCollector("validate") as m:
        errors = run_static_validators(document, registry)
        m.errors_found = len(errors)
    phases.append(m.to_dict())

Phases used by the orchestrator: "validate", "probe", "fix", "revalidate".
"""

from __future__ import annotations

import dataclasses
import time
from typing import Any


@dataclasses.dataclass(frozen=True)
class PhaseMetrics:
    """Timing and counter snapshot for one orchestration phase.

    Fields
    ------
    phase:         "validate" | "probe" | "fix" | "revalidate".
    start_ts:      Unix timestamp at phase start (time.time()).
    end_ts:        Unix timestamp at phase end.
    duration_ms:   (end_ts - start_ts) * 1000.
    errors_found:  Errors produced by the phase (validators, probe).
    fixes_applied: Repairs that changed the document (fix phase only).
    engine_calls:  Create/delete round trips issued to the engine.
    failed:        True when the phase exited with an exception.

    All fields are JSON-serialisable via dataclasses.asdict().
    """

    phase: str
    start_ts: float
    end_ts: float
    duration_ms: float
    errors_found: int = 0
    fixes_applied: int = 0
    engine_calls: int = 0
    failed: bool = False


class MetricsCollector:
    """Async context manager that records one phase's timing and counters.

    Exceptions raised inside the block are recorded (failed=True) and
    re-raised unchanged.
    """

    def __init__(self, phase: str) -> None:
        self.phase = phase
        self.errors_found: int = 0
        self.fixes_applied: int = 0
        self.engine_calls: int = 0
        self._start_ts: float = 0.0
        self._result: PhaseMetrics | None = None

    async def __aenter__(self) -> "MetricsCollector":
        self._start_ts = time.time()
        return self

    async def __aexit__(self, exc_type: object, *_args: object) -> None:
        end_ts = time.time()
        self._result = PhaseMetrics(
            phase=self.phase,
            start_ts=self._start_ts,
            end_ts=end_ts,
            duration_ms=(end_ts - self._start_ts) * 1000,
            errors_found=self.errors_found,
            fixes_applied=self.fixes_applied,
            engine_calls=self.engine_calls,
            failed=exc_type is not None,
        )

    @property
    def result(self) -> PhaseMetrics | None:
        """Finalized PhaseMetrics after the context manager exits, else None."""
        return self._result

    def to_dict(self) -> dict[str, Any]:
        """Finalized PhaseMetrics as a JSON-serialisable dict ({} before exit)."""
        return dataclasses.asdict(self._result) if self._result is not None else {}

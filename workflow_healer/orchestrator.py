"""Healing Orchestrator — one bounded validate → fix → re-validate pass.

State machine:

  INIT → VALIDATING → (auto-fixable errors) FIXING → REVALIDATING → FINALIZED

VALIDATING runs the three static validators and, once, the Engine Probe.
REVALIDATING runs the static validators only; probe errors carry forward
unchanged.  Exactly one pass is made: a document that still fails is
escalated, never retried.

Decision rules (errors compared by ValidationError.key):

  success             = no errors at all, or len(after) < len(before)
  needs_manual_review = any CRITICAL in after
                        or len(after) > len(before) * escalation_ratio
  outcome             = ESCALATED        if needs_manual_review
                        SUCCESS          if no residual errors
                        PARTIAL_SUCCESS  otherwise

A blocking structural error (structural + critical + not auto-fixable, e.g.
no node list) skips probe and fixer; the result is ESCALATED with no healed
graph.

heal() never raises.  Unexpected failures become ``system/healing-failure``
and caller deadline expiry becomes ``system/deadline-exceeded``; both are
critical and force manual review.  Ledger writes are fire-and-forget.
"""

from __future__ import annotations

import asyncio
import copy
import enum
import logging
from dataclasses import dataclass
from typing import Any

from workflow_healer.fixer import apply_fixes
from workflow_healer.graph import node_list
from workflow_healer.history import HealingHistory
from workflow_healer.ledger import HealingLedger, LedgerOutcome, SqliteHealingLedger
from workflow_healer.metrics import MetricsCollector
from workflow_healer.probe import EngineClient, EngineProbe, recommendations_for
from workflow_healer.registry import CapabilityRegistry, default_registry
from workflow_healer.settings import DEFAULT_ESCALATION_RATIO, HealerSettings
from workflow_healer.taxonomy import (
    GraphDocument,
    HealingOutcome,
    HealingResult,
    Severity,
    ValidationError,
    system_error,
)
from workflow_healer.validators import run_static_validators

logger = logging.getLogger("workflow_healer.orchestrator")

DEFAULT_NAMESPACE = "default"

# Size hints surfaced as recommendations on the healed document.
_LARGE_WORKFLOW_NODES = 15
_MANY_HTTP_NODES = 8


class HealingState(str, enum.Enum):
    INIT = "INIT"
    VALIDATING = "VALIDATING"
    FIXING = "FIXING"
    REVALIDATING = "REVALIDATING"
    FINALIZED = "FINALIZED"


@dataclass
class HealingContext:
    """Per-call handle supplied by the caller.

    namespace: tenant isolation namespace, recorded in the ledger.
    history:   optional caller-owned LRU; the result is appended when given.
    """

    namespace: str = DEFAULT_NAMESPACE
    history: HealingHistory | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _dedupe(errors: list[ValidationError]) -> list[ValidationError]:
    seen: set[tuple[str, str | None, str]] = set()
    unique: list[ValidationError] = []
    for error in errors:
        if error.key not in seen:
            seen.add(error.key)
            unique.append(error)
    return unique


def resolved_errors(
    before: list[ValidationError], after: list[ValidationError]
) -> list[ValidationError]:
    """Errors present before the pass and gone after it, in original order."""
    remaining = {e.key for e in after}
    return [e for e in before if e.key not in remaining]


def needs_review(
    before: list[ValidationError],
    after: list[ValidationError],
    escalation_ratio: float = DEFAULT_ESCALATION_RATIO,
) -> bool:
    if any(e.severity is Severity.CRITICAL for e in after):
        return True
    return len(after) > len(before) * escalation_ratio


def recommendations(errors: list[ValidationError], document: Any) -> list[str]:
    """Human guidance for residual errors plus size hints for the document."""
    recs: list[str] = []
    for error in errors:
        for rec in recommendations_for(error.message):
            if rec not in recs:
                recs.append(rec)
    nodes = [n for n in node_list(document) if isinstance(n, dict)]
    if len(nodes) > _LARGE_WORKFLOW_NODES:
        recs.append(
            "Consider breaking down large workflows into smaller sub-workflows "
            "for better performance"
        )
    http_nodes = [n for n in nodes if "http" in str(n.get("type", "")).lower()]
    if len(http_nodes) > _MANY_HTTP_NODES:
        recs.append(
            "Multiple HTTP requests detected - consider implementing caching "
            "or request batching"
        )
    return recs


def _copy_document(document: Any) -> Any:
    try:
        return copy.deepcopy(document)
    except Exception as exc:
        logger.error("Could not copy submitted document: %s", exc)
        return None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class HealingOrchestrator:
    """Drives one healing pass per heal() call.

    Args:
        registry:         Capability registry; default_registry() when omitted.
        probe:            EngineProbe, or None to validate statically only.
        ledger:           Any HealingLedger; None disables recording.
        settings:         HealerSettings; supplies escalation_ratio, deadline
                          and probe_enabled when the explicit args are omitted.
        escalation_ratio: Overrides settings.escalation_ratio.

    No state is shared between heal() calls apart from the ledger, so
    independent documents may be healed concurrently on one instance.
    """

    def __init__(
        self,
        registry: CapabilityRegistry | None = None,
        probe: EngineProbe | None = None,
        ledger: HealingLedger | None = None,
        settings: HealerSettings | None = None,
        escalation_ratio: float | None = None,
    ) -> None:
        self._registry = registry or default_registry()
        self._settings = settings
        self._probe = probe if (settings is None or settings.probe_enabled) else None
        self._ledger = ledger
        if escalation_ratio is None:
            escalation_ratio = settings.escalation_ratio if settings else DEFAULT_ESCALATION_RATIO
        self._escalation_ratio = max(0.0, min(1.0, escalation_ratio))

    @classmethod
    async def open(
        cls,
        settings: HealerSettings | None = None,
        client: EngineClient | None = None,
        registry: CapabilityRegistry | None = None,
    ) -> "HealingOrchestrator":
        """Factory: wire probe and ledger from settings.

        The probe is built only when a client is given; the SQLite ledger only
        when settings.ledger_path is set.  Pair with close().
        """
        settings = settings or HealerSettings()
        probe = EngineProbe(client, timeout=settings.probe_timeout) if client is not None else None
        ledger = None
        if settings.ledger_path:
            ledger = await SqliteHealingLedger.open(settings.ledger_path)
        return cls(registry=registry, probe=probe, ledger=ledger, settings=settings)

    async def close(self) -> None:
        """Close the ledger when it holds a connection."""
        close = getattr(self._ledger, "close", None)
        if close is not None:
            await close()

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    @property
    def escalation_ratio(self) -> float:
        return self._escalation_ratio

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def heal(
        self,
        document: Any,
        context: HealingContext | None = None,
        deadline: float | None = None,
    ) -> HealingResult:
        """Heal ``document`` once.  Always returns a HealingResult.

        Args:
            document: Candidate workflow graph (n8n JSON shape, possibly malformed).
            context:  Namespace and optional history; defaults to DEFAULT_NAMESPACE.
            deadline: Seconds allowed for the whole pass; settings.deadline
                      when omitted, unbounded when both are None.
        """
        context = context or HealingContext()
        if deadline is None and self._settings is not None:
            deadline = self._settings.deadline

        try:
            if deadline is not None:
                result = await asyncio.wait_for(self._run(document), timeout=deadline)
            else:
                result = await self._run(document)
        except Exception as exc:
            if deadline is not None and isinstance(exc, asyncio.TimeoutError):
                logger.warning(
                    "[%s] healing pass exceeded deadline of %.1fs", context.namespace, deadline
                )
                error = system_error(
                    "deadline-exceeded",
                    f"Healing did not finish within {deadline:.1f}s",
                    "Retry with a longer deadline",
                    "Manual review required",
                )
            else:
                logger.exception("[%s] healing pass failed", context.namespace)
                error = system_error(
                    "healing-failure",
                    f"Healing failed: {str(exc) or type(exc).__name__}",
                    "Manual review required",
                )
            result = self._failure_result(document, error)

        logger.info(
            "[%s] healing %s: %d error(s) before, %d after, %d fix(es), review=%s",
            context.namespace,
            result.outcome.value,
            len(result.errors_before),
            len(result.errors),
            len(result.fixes_applied),
            result.needs_manual_review,
        )
        await self._record(context, result)
        return result

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(self, document: Any) -> HealingResult:
        state = HealingState.INIT
        original = _copy_document(document)
        phases: list[dict[str, Any]] = []

        state = HealingState.VALIDATING
        logger.debug("state=%s", state.value)
        async with MetricsCollector("validate") as m:
            static_before = run_static_validators(document, self._registry)
            m.errors_found = len(static_before)
        phases.append(m.to_dict())

        blocking = [e for e in static_before if e.is_blocking]
        if blocking:
            before = _dedupe(static_before)
            logger.debug("Blocking structural error(s): %s", [e.id for e in blocking])
            return HealingResult(
                original_graph=original,
                healed_graph=None,
                errors=tuple(before),
                fixes_applied=(),
                needs_manual_review=True,
                success=False,
                errors_before=tuple(before),
                outcome=HealingOutcome.ESCALATED,
                recommendations=tuple(recommendations(before, document)),
                phase_metrics=tuple(phases),
            )

        probe_errors: list[ValidationError] = []
        if self._probe is not None:
            async with MetricsCollector("probe") as m:
                probe_errors = await self._probe.probe(document)
                m.engine_calls = 1
                m.errors_found = len(probe_errors)
            phases.append(m.to_dict())

        before = _dedupe([*static_before, *probe_errors])

        if not before:
            state = HealingState.FINALIZED
            logger.debug("state=%s (clean)", state.value)
            return HealingResult(
                original_graph=original,
                healed_graph=copy.deepcopy(original),
                errors=(),
                fixes_applied=(),
                needs_manual_review=False,
                success=True,
                errors_before=(),
                outcome=HealingOutcome.SUCCESS,
                recommendations=tuple(recommendations([], document)),
                phase_metrics=tuple(phases),
            )

        healed: GraphDocument = copy.deepcopy(original)
        after = before
        if any(e.auto_fixable for e in before):
            state = HealingState.FIXING
            logger.debug("state=%s", state.value)
            async with MetricsCollector("fix") as m:
                fix = apply_fixes(document, before, self._registry)
                m.fixes_applied = len(fix.applied)
            phases.append(m.to_dict())
            for line in fix.applied:
                logger.debug("applied: %s", line)

            if fix.changed:
                healed = fix.document

            state = HealingState.REVALIDATING
            logger.debug("state=%s", state.value)
            async with MetricsCollector("revalidate") as m:
                static_after = run_static_validators(healed, self._registry)
                m.errors_found = len(static_after)
            phases.append(m.to_dict())
            after = _dedupe([*static_after, *probe_errors])

        state = HealingState.FINALIZED
        logger.debug("state=%s", state.value)
        success = len(after) < len(before)
        review = needs_review(before, after, self._escalation_ratio)
        if review:
            outcome = HealingOutcome.ESCALATED
        elif not after:
            outcome = HealingOutcome.SUCCESS
        else:
            outcome = HealingOutcome.PARTIAL_SUCCESS

        return HealingResult(
            original_graph=original,
            healed_graph=healed,
            errors=tuple(after),
            fixes_applied=tuple(f"Fixed: {e.message}" for e in resolved_errors(before, after)),
            needs_manual_review=review,
            success=success,
            errors_before=tuple(before),
            outcome=outcome,
            recommendations=tuple(recommendations(after, healed)),
            phase_metrics=tuple(phases),
        )

    # ------------------------------------------------------------------
    # Finalization helpers
    # ------------------------------------------------------------------

    def _failure_result(self, document: Any, error: ValidationError) -> HealingResult:
        return HealingResult(
            original_graph=_copy_document(document),
            healed_graph=None,
            errors=(error,),
            fixes_applied=(),
            needs_manual_review=True,
            success=False,
            errors_before=(),
            outcome=HealingOutcome.ESCALATED,
            recommendations=error.suggestions,
        )

    async def _record(self, context: HealingContext, result: HealingResult) -> None:
        if context.history is not None:
            context.history.append(context.namespace, result)
        if self._ledger is None:
            return
        try:
            await self._ledger.record(LedgerOutcome.from_result(context.namespace, result))
        except Exception as exc:
            logger.error("[%s] ledger record failed: %s", context.namespace, exc)

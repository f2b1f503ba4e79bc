"""Error taxonomy and result types shared by every healing component.

ValidationError  — immutable defect record (category x severity, auto-fixable flag)
HealingResult    — immutable outcome of one orchestration run
Category, Severity, HealingOutcome — closed enums

Wire format: ``to_dict()`` / ``from_dict()`` emit the camelCase keys used by the
engine-side tooling and by the healing ledger (``autoFixable``, ``nodeRef``,
``needsManualReview`` ...).  ``from_dict`` tolerates unknown keys.
"""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field
from typing import Any

#: A candidate workflow document as emitted by the generator (n8n JSON shape).
GraphDocument = dict[str, Any]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Category(str, enum.Enum):
    STRUCTURAL = "structural"
    NODE = "node"
    CONNECTION = "connection"
    ENGINE = "engine"
    SYSTEM = "system"


class Severity(str, enum.Enum):
    """Totally ordered: LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class HealingOutcome(str, enum.Enum):
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    ESCALATED = "ESCALATED"


# ---------------------------------------------------------------------------
# ValidationError
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationError:
    """A single classified defect in a candidate workflow document.

    id:           Stable slug ("structural/missing-name", "node/invalid-position").
                  The Auto-Fixer dispatches on this value.
    category:     Which layer found the defect.
    severity:     How bad it is; CRITICAL residue always escalates.
    message:      Human-readable description (also part of the diff key).
    node_ref:     Node id (or name / "#<index>" when the id is unusable), or the
                  connection source/target name the defect refers to.
    suggestions:  Remediation hints for a human reviewer.
    auto_fixable: Decided once by the validator that raised the error; the
                  fixer only ever acts on True.
    context:      Small JSON mapping that locates the defect for the fixer
                  (e.g. {"index": 2} or {"source": "Webhook", "target": "X"}).
    """

    id: str
    category: Category
    severity: Severity
    message: str
    node_ref: str | None = None
    suggestions: tuple[str, ...] = ()
    auto_fixable: bool = False
    context: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> tuple[str, str | None, str]:
        """Identity used when diffing the error sets before and after a fix."""
        return (self.id, self.node_ref, self.message)

    @property
    def is_blocking(self) -> bool:
        """A structural defect with no safe repair: nothing downstream can run."""
        return (
            self.category is Category.STRUCTURAL
            and self.severity is Severity.CRITICAL
            and not self.auto_fixable
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "suggestions": list(self.suggestions),
            "autoFixable": self.auto_fixable,
        }
        if self.node_ref is not None:
            d["nodeRef"] = self.node_ref
        if self.context:
            d["context"] = copy.deepcopy(self.context)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ValidationError:
        """Inverse of to_dict().  Raises ValueError on unknown category/severity."""
        return cls(
            id=str(d["id"]),
            category=Category(d["category"]),
            severity=Severity(d["severity"]),
            message=str(d.get("message", "")),
            node_ref=d.get("nodeRef"),
            suggestions=tuple(d.get("suggestions") or ()),
            auto_fixable=bool(d.get("autoFixable", False)),
            context=dict(d.get("context") or {}),
        )


def system_error(error_id: str, message: str, *suggestions: str) -> ValidationError:
    """Synthetic critical error raised at the orchestrator boundary."""
    return ValidationError(
        id=f"system/{error_id}",
        category=Category.SYSTEM,
        severity=Severity.CRITICAL,
        message=message,
        suggestions=suggestions or ("Manual review required",),
        auto_fixable=False,
    )


# ---------------------------------------------------------------------------
# HealingResult
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HealingResult:
    """Outcome of one healing pass.

    original_graph:      Deep copy of the submitted document; never modified.
    healed_graph:        Repaired document, the original when nothing needed
                         fixing, None when the document was unrepairable.
    errors:              Residual errors after the pass.
    fixes_applied:       Human-readable list of resolved defects.
    needs_manual_review: The single actionable signal: False means the caller
                         may deploy automatically.
    success:             True when the pass reduced the error count (or there
                         was nothing to fix).
    errors_before:       Errors found before fixing.
    outcome:             SUCCESS | PARTIAL_SUCCESS | ESCALATED.
    recommendations:     Human guidance derived from the residual errors.
    phase_metrics:       Per-phase timing dicts (see metrics.PhaseMetrics).
    """

    original_graph: Any
    healed_graph: GraphDocument | None
    errors: tuple[ValidationError, ...]
    fixes_applied: tuple[str, ...]
    needs_manual_review: bool
    success: bool
    errors_before: tuple[ValidationError, ...] = ()
    outcome: HealingOutcome = HealingOutcome.ESCALATED
    recommendations: tuple[str, ...] = ()
    phase_metrics: tuple[dict[str, Any], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe wire form (camelCase keys)."""
        return {
            "originalGraph": copy.deepcopy(self.original_graph),
            "healedGraph": copy.deepcopy(self.healed_graph),
            "errors": [e.to_dict() for e in self.errors],
            "errorsBefore": [e.to_dict() for e in self.errors_before],
            "fixesApplied": list(self.fixes_applied),
            "needsManualReview": self.needs_manual_review,
            "success": self.success,
            "outcome": self.outcome.value,
            "recommendations": list(self.recommendations),
            "phaseMetrics": [dict(m) for m in self.phase_metrics],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> HealingResult:
        return cls(
            original_graph=d.get("originalGraph"),
            healed_graph=d.get("healedGraph"),
            errors=tuple(ValidationError.from_dict(e) for e in d.get("errors") or []),
            fixes_applied=tuple(d.get("fixesApplied") or ()),
            needs_manual_review=bool(d.get("needsManualReview", True)),
            success=bool(d.get("success", False)),
            errors_before=tuple(
                ValidationError.from_dict(e) for e in d.get("errorsBefore") or []
            ),
            outcome=HealingOutcome(d.get("outcome", HealingOutcome.ESCALATED.value)),
            recommendations=tuple(d.get("recommendations") or ()),
            phase_metrics=tuple(d.get("phaseMetrics") or ()),
        )

"""Workflow validation and self-healing for generated n8n workflow graphs.

Typical use from a deployment pipeline:

    from workflow_healer import (
        EngineProbe, HealingContext, HealingOrchestrator, N8nClient, Settings,
    )

    async with N8nClient(Settings.from_env()) as client:
        orchestrator = HealingOrchestrator(probe=EngineProbe(client))
        result = await orchestrator.heal(candidate, HealingContext("tenant/project"))
        if not result.needs_manual_review:
            deploy(result.healed_graph)
"""

from __future__ import annotations

import logging

from workflow_healer.client import N8nClient, Settings
from workflow_healer.fixer import FixOutcome, apply_fixes
from workflow_healer.history import HealingHistory
from workflow_healer.ledger import (
    HealingLedger,
    InMemoryHealingLedger,
    LedgerOutcome,
    SqliteHealingLedger,
)
from workflow_healer.orchestrator import HealingContext, HealingOrchestrator, HealingState
from workflow_healer.probe import EngineProbe
from workflow_healer.registry import CapabilityRegistry, NodeCapability, ParamRule, default_registry
from workflow_healer.settings import HealerSettings
from workflow_healer.taxonomy import (
    Category,
    HealingOutcome,
    HealingResult,
    Severity,
    ValidationError,
)
from workflow_healer.validators import run_static_validators


def configure_logging(level: str | int = "WARNING") -> None:
    """Basic stderr logging for host applications that have none."""
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


__all__ = [
    "CapabilityRegistry",
    "Category",
    "EngineProbe",
    "FixOutcome",
    "HealerSettings",
    "HealingContext",
    "HealingHistory",
    "HealingLedger",
    "HealingOrchestrator",
    "HealingOutcome",
    "HealingResult",
    "HealingState",
    "InMemoryHealingLedger",
    "LedgerOutcome",
    "N8nClient",
    "NodeCapability",
    "ParamRule",
    "Settings",
    "Severity",
    "SqliteHealingLedger",
    "ValidationError",
    "apply_fixes",
    "configure_logging",
    "default_registry",
    "run_static_validators",
]

"""Schema Validator — top-level document shape.

Checks are independent (no short-circuit) and the function is pure: the same
document always produces the same error list.
"""

from __future__ import annotations

from typing import Any

from workflow_healer.graph import node_list
from workflow_healer.registry import CapabilityRegistry
from workflow_healer.taxonomy import Category, Severity, ValidationError


def validate_schema(document: Any, registry: CapabilityRegistry) -> list[ValidationError]:
    """Return structural errors for ``document``; never raises."""
    if not isinstance(document, dict):
        return [
            ValidationError(
                id="structural/invalid-document",
                category=Category.STRUCTURAL,
                severity=Severity.CRITICAL,
                message=f"Workflow document must be an object, got {type(document).__name__}",
                suggestions=("Regenerate the workflow as a JSON object",),
                auto_fixable=False,
            )
        ]

    errors: list[ValidationError] = []

    name = document.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(ValidationError(
            id="structural/missing-name",
            category=Category.STRUCTURAL,
            severity=Severity.HIGH,
            message="Workflow must have a valid name",
            suggestions=("Add a descriptive name for the workflow",),
            auto_fixable=True,
        ))

    nodes = document.get("nodes")
    if not isinstance(nodes, list):
        errors.append(ValidationError(
            id="structural/missing-nodes",
            category=Category.STRUCTURAL,
            severity=Severity.CRITICAL,
            message="Workflow must have a nodes array",
            suggestions=("Add at least one node to the workflow",),
            auto_fixable=False,
        ))

    if not isinstance(document.get("connections"), dict):
        errors.append(ValidationError(
            id="structural/missing-connections",
            category=Category.STRUCTURAL,
            severity=Severity.MEDIUM,
            message="Workflow should have a connections object",
            suggestions=("Add connections object to define node relationships",),
            auto_fixable=True,
        ))

    # Only meaningful when there is a node list to search.
    if isinstance(nodes, list) and not any(
        isinstance(n, dict) and registry.is_entry(n.get("type")) for n in node_list(document)
    ):
        errors.append(ValidationError(
            id="structural/missing-start-node",
            category=Category.STRUCTURAL,
            severity=Severity.HIGH,
            message="Workflow should have a start or trigger node",
            suggestions=(
                "Add a Start node or trigger to begin workflow execution",
                f"Entry node types: {', '.join(registry.entry_types())}",
            ),
            auto_fixable=True,
        ))

    return errors

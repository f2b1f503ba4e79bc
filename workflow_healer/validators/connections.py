"""Connection Validator — every edge must reference existing nodes.

Malformed nested structures are the expected input here, not an exceptional
one: anything that is not a mapping/list where one is required is skipped.
"""

from __future__ import annotations

from typing import Any

from workflow_healer.graph import connection_map, is_edge_kind, iter_edges, reference_set
from workflow_healer.taxonomy import Category, Severity, ValidationError


def validate_connections(document: Any) -> list[ValidationError]:
    """Return connection errors for ``document``; never raises."""
    valid = reference_set(document)
    errors: list[ValidationError] = []

    for source, outputs in connection_map(document).items():
        if source not in valid:
            errors.append(ValidationError(
                id="connection/invalid-source",
                category=Category.CONNECTION,
                severity=Severity.HIGH,
                message=f"Connection references non-existent source node: {source}",
                node_ref=source,
                suggestions=("Remove invalid connection", "Add missing node"),
                auto_fixable=True,
                context={"source": source},
            ))
            continue

        for ref in iter_edges(source, outputs):
            edge = ref.edge
            if not isinstance(edge, dict):
                continue

            target = edge.get("node")
            if not isinstance(target, str) or target not in valid:
                errors.append(ValidationError(
                    id="connection/invalid-target",
                    category=Category.CONNECTION,
                    severity=Severity.HIGH,
                    message=(
                        f"Connection from '{source}' references non-existent "
                        f"target node: {target}"
                    ),
                    node_ref=target if isinstance(target, str) else None,
                    suggestions=("Remove invalid connection", "Add missing node"),
                    auto_fixable=True,
                    context={"source": source, "kind": ref.kind, "target": target},
                ))

            edge_type = edge.get("type")
            if not is_edge_kind(edge_type):
                errors.append(ValidationError(
                    id="connection/invalid-type",
                    category=Category.CONNECTION,
                    severity=Severity.MEDIUM,
                    message=(
                        f"Invalid connection type on edge '{source}' -> {target}: "
                        f"{edge_type}"
                    ),
                    node_ref=source,
                    suggestions=('Use "main" or "error" as connection type',),
                    auto_fixable=True,
                    context={"source": source, "kind": ref.kind},
                ))

    return errors

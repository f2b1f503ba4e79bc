"""Node Validator — per-node identity, type, position and parameter checks.

Type knowledge (which types exist, which parameters they require) comes from
the CapabilityRegistry only.  The loop below is the same for every node type.
"""

from __future__ import annotations

from typing import Any

from workflow_healer.graph import is_blank, is_position, node_list, node_ref
from workflow_healer.registry import CapabilityRegistry, NodeCapability
from workflow_healer.taxonomy import Category, Severity, ValidationError


def validate_nodes(document: Any, registry: CapabilityRegistry) -> list[ValidationError]:
    """Return node-level errors for every node in ``document``; never raises."""
    errors: list[ValidationError] = []
    seen_ids: set[str] = set()
    seen_names: set[str] = set()

    for index, node in enumerate(node_list(document)):
        ref = node_ref(node, index)
        ctx = {"index": index}

        if not isinstance(node, dict):
            errors.append(ValidationError(
                id="node/malformed-node",
                category=Category.NODE,
                severity=Severity.CRITICAL,
                message=f"Node at position {index} is not an object",
                node_ref=ref,
                suggestions=("Regenerate the node definition",),
                context=ctx,
            ))
            continue

        label = _label(node, ref)

        node_id = node.get("id")
        if not isinstance(node_id, str) or not node_id:
            errors.append(ValidationError(
                id="node/missing-id",
                category=Category.NODE,
                severity=Severity.CRITICAL,
                message=f"Node {label} must have a valid ID",
                node_ref=ref,
                suggestions=("Add a unique ID to the node",),
                auto_fixable=True,
                context=ctx,
            ))
        elif node_id in seen_ids:
            errors.append(ValidationError(
                id="node/duplicate-id",
                category=Category.NODE,
                severity=Severity.HIGH,
                message=f"Node {label} at position {index} reuses ID '{node_id}'",
                node_ref=ref,
                suggestions=("Give every node a unique ID",),
                auto_fixable=True,
                context=ctx,
            ))
        else:
            seen_ids.add(node_id)

        name = node.get("name")
        if isinstance(name, str) and name:
            if name in seen_names:
                errors.append(ValidationError(
                    id="node/duplicate-name",
                    category=Category.NODE,
                    severity=Severity.MEDIUM,
                    message=f"Node name '{name}' is used more than once (position {index})",
                    node_ref=ref,
                    suggestions=("Make node names unique; connections are keyed by name",),
                    auto_fixable=True,
                    context=ctx,
                ))
            else:
                seen_names.add(name)

        node_type = node.get("type")
        capability: NodeCapability | None = None
        if not isinstance(node_type, str) or not node_type:
            errors.append(ValidationError(
                id="node/missing-type",
                category=Category.NODE,
                severity=Severity.CRITICAL,
                message=f"Node {label} must have a valid type",
                node_ref=ref,
                suggestions=("Specify a valid n8n node type",),
                context=ctx,
            ))
        else:
            capability = registry.get(node_type)
            if capability is None:
                errors.append(ValidationError(
                    id="node/invalid-type",
                    category=Category.NODE,
                    severity=Severity.HIGH,
                    message=f"Invalid node type: {node_type}",
                    node_ref=ref,
                    suggestions=(
                        "Use a valid n8n node type",
                        "Check n8n documentation for available nodes",
                    ),
                    context={**ctx, "type": node_type},
                ))

        if not is_position(node.get("position")):
            errors.append(ValidationError(
                id="node/invalid-position",
                category=Category.NODE,
                severity=Severity.LOW,
                message=f"Node {label} should have valid position coordinates",
                node_ref=ref,
                suggestions=("Add [x, y] coordinates for node position",),
                auto_fixable=True,
                context=ctx,
            ))

        if capability is not None:
            errors.extend(_check_parameters(node, capability, ref, label, index))

    return errors


def _check_parameters(
    node: dict[str, Any],
    capability: NodeCapability,
    ref: str,
    label: str,
    index: int,
) -> list[ValidationError]:
    params = node.get("parameters")
    if not isinstance(params, dict):
        params = {}
    errors: list[ValidationError] = []
    for rule in capability.required_params:
        if is_blank(params.get(rule.name)):
            kind = capability.label or capability.type_tag
            errors.append(ValidationError(
                id=rule.error_id,
                category=Category.NODE,
                severity=rule.severity,
                message=f"{kind} node {label} must have a '{rule.name}' parameter",
                node_ref=ref,
                suggestions=(rule.suggestion,) if rule.suggestion else (),
                auto_fixable=rule.auto_fixable,
                context={"index": index, "param": rule.name, "type": capability.type_tag},
            ))
    return errors


def _label(node: dict[str, Any], ref: str) -> str:
    name = node.get("name")
    return f"'{name}'" if isinstance(name, str) and name else f"'{ref}'"


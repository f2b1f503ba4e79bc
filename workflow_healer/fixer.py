"""Error catalog and Auto-Fixer.

apply_fixes(document, errors, registry) is a pure function: it deep-copies the
document, applies one deterministic repair per auto-fixable error and returns
the copy together with a description of each repair that changed something.
The caller's document is never touched.

Catalog entries are keyed by ValidationError.id.  Each entry carries a
priority so repairs that address nodes by list index run before the start
node is prepended (which shifts every index by one):

  10  node identity            (missing-id, duplicate-id, duplicate-name)
  20  node content             (invalid-position, missing-parameter-*)
  30  connection pruning       (invalid-source, invalid-target)
  35  connection coercion      (invalid-type)
  40  document fields          (missing-name, missing-connections)
  50  entry node               (missing-start-node)

Every repair is idempotent: it re-checks the defect on the working copy and
returns None when there is nothing left to do.
"""

from __future__ import annotations

import copy
import datetime
import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from workflow_healer.graph import (
    START_X,
    START_Y,
    default_position,
    is_blank,
    is_edge_kind,
    is_position,
    node_list,
)
from workflow_healer.registry import START_NODE_TYPE, CapabilityRegistry
from workflow_healer.taxonomy import GraphDocument, ValidationError

logger = logging.getLogger("workflow_healer.fixer")

#: (working copy, error, registry) -> description of the change, or None for a no-op.
FixFn = Callable[[GraphDocument, ValidationError, CapabilityRegistry], "str | None"]

_MISSING_PARAMETER_PREFIX = "node/missing-parameter-"


@dataclass(frozen=True)
class CatalogEntry:
    priority: int
    fix: FixFn


@dataclass
class FixOutcome:
    """Result of one apply_fixes() call.

    document: repaired deep copy of the input.
    applied:  one human-readable line per repair that changed the copy.
    skipped:  ids of auto-fixable errors with no catalog entry.
    """

    document: GraphDocument
    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.applied)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _node_at(doc: GraphDocument, error: ValidationError) -> dict[str, Any] | None:
    index = error.context.get("index")
    nodes = node_list(doc)
    if not isinstance(index, int) or not 0 <= index < len(nodes):
        return None
    node = nodes[index]
    return node if isinstance(node, dict) else None


def _string_values(nodes: list[Any], key: str) -> set[str]:
    return {n[key] for n in nodes if isinstance(n, dict) and isinstance(n.get(key), str)}


def _unique_name(base: str, taken: set[str]) -> str:
    if base not in taken:
        return base
    n = 1
    while f"{base} {n}" in taken:
        n += 1
    return f"{base} {n}"


def _prune_groups(groups: list[Any]) -> list[Any]:
    """Drop trailing empty groups; inner empties keep later output indices stable."""
    while groups and isinstance(groups[-1], list) and not groups[-1]:
        groups.pop()
    return groups


def _prune_entry(connections: dict[str, Any], source: str) -> None:
    outputs = connections.get(source)
    if not isinstance(outputs, dict):
        return
    for kind in list(outputs):
        groups = outputs[kind]
        if isinstance(groups, list) and not _prune_groups(groups):
            del outputs[kind]
    if not outputs:
        del connections[source]


# ---------------------------------------------------------------------------
# Structural repairs
# ---------------------------------------------------------------------------


def _fix_missing_name(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    name = doc.get("name")
    if isinstance(name, str) and name.strip():
        return None
    stamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    doc["name"] = f"Generated Workflow {stamp}"
    return f"Named workflow '{doc['name']}'"


def _fix_missing_connections(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    if isinstance(doc.get("connections"), dict):
        return None
    doc["connections"] = {}
    return "Added empty connections object"


def _fix_missing_start_node(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    nodes = doc.get("nodes")
    if not isinstance(nodes, list):
        return None
    if any(isinstance(n, dict) and registry.is_entry(n.get("type")) for n in nodes):
        return None
    taken = _string_values(nodes, "name")
    start = {
        "id": str(uuid.uuid4()),
        "name": _unique_name("Start", taken),
        "type": START_NODE_TYPE,
        "typeVersion": 1,
        "position": [float(START_X), float(START_Y)],
        "parameters": {},
    }
    nodes.insert(0, start)
    return f"Added start node '{start['name']}'"


# ---------------------------------------------------------------------------
# Node repairs
# ---------------------------------------------------------------------------


def _fix_missing_id(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    node = _node_at(doc, error)
    if node is None or (isinstance(node.get("id"), str) and node["id"]):
        return None
    node["id"] = str(uuid.uuid4())
    return f"Generated ID {node['id']} for node at position {error.context['index']}"


def _fix_duplicate_id(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    node = _node_at(doc, error)
    if node is None:
        return None
    index = error.context["index"]
    earlier = _string_values(node_list(doc)[:index], "id")
    if not isinstance(node.get("id"), str) or node["id"] not in earlier:
        return None
    old = node["id"]
    node["id"] = str(uuid.uuid4())
    return f"Replaced duplicate ID '{old}' with {node['id']}"


def _fix_duplicate_name(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    node = _node_at(doc, error)
    if node is None:
        return None
    index = error.context["index"]
    nodes = node_list(doc)
    earlier = _string_values(nodes[:index], "name")
    name = node.get("name")
    if not isinstance(name, str) or name not in earlier:
        return None
    taken = _string_values(nodes, "name")
    node["name"] = _unique_name(name, taken)
    return f"Renamed duplicate node '{name}' to '{node['name']}'"


def _fix_invalid_position(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    node = _node_at(doc, error)
    if node is None or is_position(node.get("position")):
        return None
    index = error.context["index"]
    node["position"] = default_position(index, seed=error.node_ref or "")
    return f"Placed node {error.node_ref} at {node['position']}"


def _fix_missing_parameter(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    node = _node_at(doc, error)
    param = error.context.get("param")
    if node is None or not param:
        return None
    capability = registry.get(str(node.get("type", "")))
    rule = next(
        (r for r in (capability.required_params if capability else ()) if r.name == param),
        None,
    )
    if rule is None or rule.default is None:
        return None
    params = node.get("parameters")
    if not isinstance(params, dict):
        params = node["parameters"] = {}
    if not is_blank(params.get(param)):
        return None
    params[param] = rule.default(node)
    return f"Set default '{param}' on node {error.node_ref}"


# ---------------------------------------------------------------------------
# Connection repairs
# ---------------------------------------------------------------------------


def _fix_invalid_source(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    connections = doc.get("connections")
    source = error.context.get("source")
    if not isinstance(connections, dict) or source not in connections:
        return None
    del connections[source]
    return f"Removed connections from missing node '{source}'"


def _fix_invalid_target(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    connections = doc.get("connections")
    source = error.context.get("source")
    target = error.context.get("target")
    if not isinstance(connections, dict) or not isinstance(connections.get(source), dict):
        return None
    removed = 0
    for groups in connections[source].values():
        if not isinstance(groups, list):
            continue
        for g, group in enumerate(groups):
            if not isinstance(group, list):
                continue
            kept = [e for e in group if not (isinstance(e, dict) and e.get("node") == target)]
            removed += len(group) - len(kept)
            groups[g] = kept
    if not removed:
        return None
    _prune_entry(connections, source)
    return f"Removed {removed} edge(s) from '{source}' to missing node '{target}'"


def _fix_invalid_edge_type(doc: GraphDocument, error: ValidationError, registry: CapabilityRegistry) -> str | None:
    connections = doc.get("connections")
    source = error.context.get("source")
    kind = error.context.get("kind")
    if not isinstance(connections, dict) or not isinstance(connections.get(source), dict):
        return None
    groups = connections[source].get(kind)
    if not isinstance(groups, list):
        return None
    coerced = 0
    for group in groups:
        if not isinstance(group, list):
            continue
        for edge in group:
            if isinstance(edge, dict) and not is_edge_kind(edge.get("type")):
                edge["type"] = "main"
                coerced += 1
    if not coerced:
        return None
    return f"Coerced {coerced} edge type(s) from '{source}' to 'main'"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

ERROR_CATALOG: dict[str, CatalogEntry] = {
    "node/missing-id": CatalogEntry(10, _fix_missing_id),
    "node/duplicate-id": CatalogEntry(10, _fix_duplicate_id),
    "node/duplicate-name": CatalogEntry(10, _fix_duplicate_name),
    "node/invalid-position": CatalogEntry(20, _fix_invalid_position),
    "connection/invalid-source": CatalogEntry(30, _fix_invalid_source),
    "connection/invalid-target": CatalogEntry(30, _fix_invalid_target),
    "connection/invalid-type": CatalogEntry(35, _fix_invalid_edge_type),
    "structural/missing-name": CatalogEntry(40, _fix_missing_name),
    "structural/missing-connections": CatalogEntry(40, _fix_missing_connections),
    "structural/missing-start-node": CatalogEntry(50, _fix_missing_start_node),
}

_PARAMETER_ENTRY = CatalogEntry(20, _fix_missing_parameter)


def catalog_entry(error_id: str) -> CatalogEntry | None:
    """Catalog lookup; every ``node/missing-parameter-*`` id shares one repair."""
    entry = ERROR_CATALOG.get(error_id)
    if entry is None and error_id.startswith(_MISSING_PARAMETER_PREFIX):
        return _PARAMETER_ENTRY
    return entry


def apply_fixes(
    document: GraphDocument,
    errors: Iterable[ValidationError],
    registry: CapabilityRegistry,
) -> FixOutcome:
    """Apply one repair per auto-fixable error to a copy of ``document``."""
    outcome = FixOutcome(document=copy.deepcopy(document))

    planned: list[tuple[int, int, ValidationError, CatalogEntry]] = []
    for order, error in enumerate(errors):
        if not error.auto_fixable:
            continue
        entry = catalog_entry(error.id)
        if entry is None:
            logger.debug("No catalog entry for auto-fixable error %s", error.id)
            outcome.skipped.append(error.id)
            continue
        planned.append((entry.priority, order, error, entry))

    for _priority, _order, error, entry in sorted(planned, key=lambda p: (p[0], p[1])):
        change = entry.fix(outcome.document, error, registry)
        if change:
            logger.debug("Fix %s: %s", error.id, change)
            outcome.applied.append(change)

    return outcome

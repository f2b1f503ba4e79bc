"""Read-only helpers over raw n8n workflow documents.

Validators receive LLM output verbatim, so every helper here tolerates
missing keys and wrong container types instead of raising.  Nothing in this
module mutates its input.

Document shape (field names fixed for engine compatibility):

  {
    "name": "Weather digest",
    "nodes": [
      {"id": "...", "name": "Start", "type": "n8n-nodes-base.start",
       "typeVersion": 1, "position": [250, 300], "parameters": {}}
    ],
    "connections": {
      "Start": {"main": [[{"node": "HTTP Request", "type": "main", "index": 0}]]}
    },
    "settings": {}, "staticData": {}, "active": false
  }
"""

from __future__ import annotations

import math
import random
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

#: Edge kinds the engine accepts in the ``type`` field of a connection target.
EDGE_KINDS: frozenset[str] = frozenset({"main", "error"})

# Auto-layout grid constants (pixels)
GRID_X: int = 220
START_X: int = 250
START_Y: int = 300


@dataclass(frozen=True)
class EdgeRef:
    """One connection target inside ``connections[source][kind][group]``."""

    source: str
    kind: str
    group: int
    index: int
    edge: Any


def node_list(document: Any) -> list[Any]:
    """Return ``document["nodes"]`` if it is a list, else an empty list."""
    if not isinstance(document, dict):
        return []
    nodes = document.get("nodes")
    return nodes if isinstance(nodes, list) else []


def connection_map(document: Any) -> dict[str, Any]:
    """Return ``document["connections"]`` if it is a mapping, else {}."""
    if not isinstance(document, dict):
        return {}
    conns = document.get("connections")
    return conns if isinstance(conns, dict) else {}


def node_ref(node: Any, index: int) -> str:
    """Best available handle for a node: id, then name, then ``#<index>``."""
    if isinstance(node, dict):
        for key in ("id", "name"):
            value = node.get(key)
            if isinstance(value, str) and value:
                return value
    return f"#{index}"


def reference_set(document: Any) -> set[str]:
    """All strings a connection may legally point at (node names and ids)."""
    refs: set[str] = set()
    for node in node_list(document):
        if not isinstance(node, dict):
            continue
        for key in ("name", "id"):
            value = node.get(key)
            if isinstance(value, str) and value:
                refs.add(value)
    return refs


def iter_edges(source: str, outputs: Any) -> Iterator[EdgeRef]:
    """Yield every edge of one connection entry, skipping malformed shapes.

    ``outputs`` is ``{kind: [[edge, ...], ...]}``.  Non-dict outputs, non-list
    kinds and non-list groups are skipped silently.
    """
    if not isinstance(outputs, dict):
        return
    for kind, groups in outputs.items():
        if not isinstance(groups, list):
            continue
        for g, group in enumerate(groups):
            if not isinstance(group, list):
                continue
            for i, edge in enumerate(group):
                yield EdgeRef(source=source, kind=kind, group=g, index=i, edge=edge)


def default_position(index: int, seed: str = "") -> list[float]:
    """Grid slot for the node at ``index`` with a seeded vertical offset.

    Column follows the node index; the row offset (0-200 px) is derived from
    ``seed`` so repeated fixes of the same node land on the same spot while
    neighbouring nodes do not stack on one line.
    """
    jitter = random.Random(f"{seed}:{index}").randint(0, 200)
    return [float(START_X + index * GRID_X), float(START_Y + jitter)]


def is_position(value: Any) -> bool:
    """True for a two-element sequence of finite numbers."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return False
    return all(
        isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
        for v in value
    )


def is_blank(value: Any) -> bool:
    """True for None, whitespace-only strings and empty containers."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list)):
        return not value
    return False


def is_edge_kind(value: Any) -> bool:
    """True when ``value`` is one of EDGE_KINDS (non-strings never are)."""
    return isinstance(value, str) and value in EDGE_KINDS

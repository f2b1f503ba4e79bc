"""Static validators — pure functions from a document to a list of errors.

  validate_schema      — top-level shape (name, nodes, connections, entry node)
  validate_nodes       — per-node identity, type, position, required parameters
  validate_connections — edges reference existing nodes and use known kinds

run_static_validators() runs all three independently and concatenates the
results in that order.
"""

from __future__ import annotations

from typing import Any

from workflow_healer.registry import CapabilityRegistry
from workflow_healer.taxonomy import ValidationError
from workflow_healer.validators.connections import validate_connections
from workflow_healer.validators.nodes import validate_nodes
from workflow_healer.validators.schema import validate_schema


def run_static_validators(document: Any, registry: CapabilityRegistry) -> list[ValidationError]:
    return [
        *validate_schema(document, registry),
        *validate_nodes(document, registry),
        *validate_connections(document),
    ]


__all__ = [
    "run_static_validators",
    "validate_connections",
    "validate_nodes",
    "validate_schema",
]

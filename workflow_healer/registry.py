"""Node capability registry — the extension point for node-type knowledge.

Every node type the validators understand is described by a NodeCapability:

  type_tag         "n8n-nodes-base.webhook"
  entry            True when the node can start a workflow on its own
  required_params  ParamRule list checked by the Node Validator

Adding a node type means registering a descriptor; validator control flow is
never touched:

    registry = default_registry()
    registry.register(NodeCapability(
        type_tag="n8n-nodes-base.slack",
        label="Slack",
        required_params=(ParamRule(name="channel", severity=Severity.HIGH),),
    ))

Third-party node packages can be admitted wholesale with register_namespace();
types under a registered namespace resolve to a generic descriptor with no
parameter rules.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from workflow_healer.taxonomy import Severity

logger = logging.getLogger("workflow_healer.registry")

#: Produces a safe default value for a missing parameter, given the node.
DefaultFactory = Callable[[dict[str, Any]], Any]


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParamRule:
    """A required parameter on a node type.

    name:        Key in node["parameters"].
    severity:    Severity of the error raised when the parameter is missing/empty.
    default:     Factory for a safe default.  The error is auto-fixable only
                 when a default exists; no default means a human must decide.
    suggestion:  Remediation hint shown to the reviewer.
    """

    name: str
    severity: Severity = Severity.MEDIUM
    default: DefaultFactory | None = None
    suggestion: str = ""

    @property
    def auto_fixable(self) -> bool:
        return self.default is not None

    @property
    def error_id(self) -> str:
        return f"node/missing-parameter-{self.name}"


@dataclass(frozen=True)
class NodeCapability:
    """Descriptor for one node type tag."""

    type_tag: str
    label: str = ""
    entry: bool = False
    required_params: tuple[ParamRule, ...] = field(default_factory=tuple)


_GENERIC = NodeCapability(type_tag="", label="Generic node")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class CapabilityRegistry:
    """Mapping from node type tag to NodeCapability.

    Lookups are exact on the tag first, then fall back to registered
    namespaces.  Re-registering a tag replaces the previous descriptor.
    """

    def __init__(self, capabilities: Iterable[NodeCapability] = ()) -> None:
        self._by_tag: dict[str, NodeCapability] = {}
        self._namespaces: list[str] = []
        for cap in capabilities:
            self.register(cap)

    def register(self, capability: NodeCapability) -> None:
        if capability.type_tag in self._by_tag:
            logger.debug("Replacing capability for %s", capability.type_tag)
        self._by_tag[capability.type_tag] = capability

    def register_namespace(self, prefix: str) -> None:
        """Admit every type under ``prefix`` (e.g. "n8n-nodes-community.")."""
        if prefix and prefix not in self._namespaces:
            self._namespaces.append(prefix)

    def get(self, type_tag: str) -> NodeCapability | None:
        cap = self._by_tag.get(type_tag)
        if cap is not None:
            return cap
        if any(type_tag.startswith(ns) for ns in self._namespaces):
            return _GENERIC
        return None

    def is_known(self, type_tag: str) -> bool:
        return self.get(type_tag) is not None

    def is_entry(self, type_tag: Any) -> bool:
        if not isinstance(type_tag, str):
            return False
        cap = self._by_tag.get(type_tag)
        return cap is not None and cap.entry

    def entry_types(self) -> list[str]:
        return sorted(tag for tag, cap in self._by_tag.items() if cap.entry)

    def __contains__(self, type_tag: object) -> bool:
        return isinstance(type_tag, str) and self.is_known(type_tag)

    def __len__(self) -> int:
        return len(self._by_tag)


# ---------------------------------------------------------------------------
# Default n8n capabilities
# ---------------------------------------------------------------------------

START_NODE_TYPE = "n8n-nodes-base.start"
MANUAL_TRIGGER_TYPE = "n8n-nodes-base.manualTrigger"


def _webhook_path(node: dict[str, Any]) -> str:
    return f"webhook-{uuid.uuid4().hex[:8]}"


def _schedule_rule(node: dict[str, Any]) -> dict[str, Any]:
    return {"interval": [{"field": "minutes", "minutesInterval": 10}]}


# Plain types with no parameter rules.
_PLAIN_TYPES: dict[str, str] = {
    "n8n-nodes-base.set": "Set",
    "n8n-nodes-base.if": "IF",
    "n8n-nodes-base.switch": "Switch",
    "n8n-nodes-base.merge": "Merge",
    "n8n-nodes-base.function": "Function",
    "n8n-nodes-base.functionItem": "Function Item",
    "n8n-nodes-base.code": "Code",
    "n8n-nodes-base.noOp": "No Operation",
    "n8n-nodes-base.wait": "Wait",
    "n8n-nodes-base.respondToWebhook": "Respond to Webhook",
    "n8n-nodes-base.splitInBatches": "Split In Batches",
    "n8n-nodes-base.itemLists": "Item Lists",
    "n8n-nodes-base.filter": "Filter",
    "n8n-nodes-base.dateTime": "Date & Time",
    "n8n-nodes-base.html": "HTML",
    "n8n-nodes-base.rssFeedRead": "RSS Read",
    "n8n-nodes-base.googleSheets": "Google Sheets",
    "n8n-nodes-base.gmail": "Gmail",
    "n8n-nodes-base.slack": "Slack",
    "n8n-nodes-base.telegram": "Telegram",
    "n8n-nodes-base.discord": "Discord",
    "n8n-nodes-base.openAi": "OpenAI",
    "n8n-nodes-base.postgres": "Postgres",
    "n8n-nodes-base.stopAndError": "Stop and Error",
    "n8n-nodes-base.executeWorkflow": "Execute Workflow",
    "n8n-nodes-base.errorTrigger": "Error Trigger",
    "n8n-nodes-base.cron": "Cron",
    "n8n-nodes-base.interval": "Interval",
}


def default_capabilities() -> list[NodeCapability]:
    """Descriptors for the n8n core nodes the generator commonly emits."""
    caps = [
        NodeCapability(type_tag=START_NODE_TYPE, label="Start", entry=True),
        NodeCapability(type_tag=MANUAL_TRIGGER_TYPE, label="Manual Trigger", entry=True),
        NodeCapability(
            type_tag="n8n-nodes-base.webhook",
            label="Webhook",
            required_params=(
                ParamRule(
                    name="path",
                    severity=Severity.MEDIUM,
                    default=_webhook_path,
                    suggestion="Add a path parameter for the webhook",
                ),
            ),
        ),
        NodeCapability(
            type_tag="n8n-nodes-base.httpRequest",
            label="HTTP Request",
            required_params=(
                ParamRule(
                    name="url",
                    severity=Severity.HIGH,
                    suggestion="Add a URL parameter for the HTTP request",
                ),
            ),
        ),
        NodeCapability(
            type_tag="n8n-nodes-base.scheduleTrigger",
            label="Schedule Trigger",
            required_params=(
                ParamRule(
                    name="rule",
                    severity=Severity.MEDIUM,
                    default=_schedule_rule,
                    suggestion="Add a schedule rule (interval or cron expression)",
                ),
            ),
        ),
        NodeCapability(
            type_tag="n8n-nodes-base.emailSend",
            label="Send Email",
            required_params=(
                ParamRule(
                    name="toEmail",
                    severity=Severity.HIGH,
                    suggestion="Add the recipient address for the email",
                ),
            ),
        ),
    ]
    caps.extend(NodeCapability(type_tag=tag, label=label) for tag, label in _PLAIN_TYPES.items())
    return caps


def default_registry() -> CapabilityRegistry:
    """Fresh registry pre-loaded with default_capabilities().

    Each call returns a new instance; callers own and may extend it.
    """
    return CapabilityRegistry(default_capabilities())

"""Static validators — schema, node and connection checks.

Validators are pure: they never raise and never touch their input.  Malformed
nested shapes are the expected case and are skipped, not reported as crashes.
"""

from __future__ import annotations

import copy

import pytest

from workflow_healer.registry import default_registry
from workflow_healer.taxonomy import Category, Severity
from workflow_healer.validators import (
    run_static_validators,
    validate_connections,
    validate_nodes,
    validate_schema,
)


def _valid_doc() -> dict:
    return {
        "name": "Weather digest",
        "nodes": [
            {
                "id": "n1",
                "name": "Start",
                "type": "n8n-nodes-base.start",
                "typeVersion": 1,
                "position": [250, 300],
                "parameters": {},
            },
            {
                "id": "n2",
                "name": "Fetch",
                "type": "n8n-nodes-base.httpRequest",
                "typeVersion": 1,
                "position": [470, 300],
                "parameters": {"url": "https://api.example.com/weather"},
            },
        ],
        "connections": {
            "Start": {"main": [[{"node": "Fetch", "type": "main", "index": 0}]]},
        },
        "settings": {},
        "staticData": {},
        "active": False,
    }


def _ids(errors) -> list[str]:
    return [e.id for e in errors]


@pytest.fixture
def registry():
    return default_registry()


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class TestSchemaValidator:
    def test_valid_document(self, registry):
        assert validate_schema(_valid_doc(), registry) == []

    @pytest.mark.parametrize("document", [None, [], "workflow", 42])
    def test_not_a_mapping(self, registry, document):
        errors = validate_schema(document, registry)
        assert _ids(errors) == ["structural/invalid-document"]
        assert errors[0].severity is Severity.CRITICAL
        assert errors[0].is_blocking

    @pytest.mark.parametrize("name", [None, "", "   ", 17])
    def test_missing_name(self, registry, name):
        doc = _valid_doc()
        doc["name"] = name
        errors = validate_schema(doc, registry)
        assert _ids(errors) == ["structural/missing-name"]
        assert errors[0].severity is Severity.HIGH
        assert errors[0].auto_fixable is True

    def test_missing_nodes_is_not_fixable(self, registry):
        doc = _valid_doc()
        del doc["nodes"]
        errors = validate_schema(doc, registry)
        assert _ids(errors) == ["structural/missing-nodes"]
        assert errors[0].severity is Severity.CRITICAL
        assert errors[0].auto_fixable is False

    def test_missing_connections(self, registry):
        doc = _valid_doc()
        doc["connections"] = []
        errors = validate_schema(doc, registry)
        assert _ids(errors) == ["structural/missing-connections"]
        assert errors[0].severity is Severity.MEDIUM
        assert errors[0].auto_fixable is True

    def test_missing_start_node(self, registry):
        doc = _valid_doc()
        doc["nodes"] = doc["nodes"][1:]
        errors = validate_schema(doc, registry)
        assert _ids(errors) == ["structural/missing-start-node"]
        assert errors[0].severity is Severity.HIGH
        assert errors[0].auto_fixable is True

    def test_manual_trigger_is_entry(self, registry):
        doc = _valid_doc()
        doc["nodes"][0]["type"] = "n8n-nodes-base.manualTrigger"
        assert validate_schema(doc, registry) == []

    def test_checks_are_independent(self, registry):
        """An empty object reports every top-level problem at once."""
        assert _ids(validate_schema({}, registry)) == [
            "structural/missing-name",
            "structural/missing-nodes",
            "structural/missing-connections",
        ]

    def test_empty_node_list_needs_start(self, registry):
        assert _ids(validate_schema({"name": "x", "nodes": [], "connections": {}}, registry)) == [
            "structural/missing-start-node",
        ]

    def test_pure(self, registry):
        doc = {"nodes": None}
        snapshot = copy.deepcopy(doc)
        validate_schema(doc, registry)
        assert doc == snapshot


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


class TestNodeValidator:
    def test_valid_nodes(self, registry):
        assert validate_nodes(_valid_doc(), registry) == []

    def test_nodes_not_a_list(self, registry):
        assert validate_nodes({"nodes": "oops"}, registry) == []
        assert validate_nodes(None, registry) == []

    @pytest.mark.parametrize("node_id", [None, "", 12])
    def test_missing_id(self, registry, node_id):
        doc = _valid_doc()
        doc["nodes"][1]["id"] = node_id
        errors = validate_nodes(doc, registry)
        assert _ids(errors) == ["node/missing-id"]
        err = errors[0]
        assert err.severity is Severity.CRITICAL
        assert err.auto_fixable is True
        assert err.context == {"index": 1}
        assert err.node_ref == "Fetch"

    def test_duplicate_id(self, registry):
        doc = _valid_doc()
        doc["nodes"][1]["id"] = "n1"
        errors = validate_nodes(doc, registry)
        assert _ids(errors) == ["node/duplicate-id"]
        assert errors[0].context == {"index": 1}
        assert errors[0].auto_fixable is True

    def test_duplicate_name(self, registry):
        doc = _valid_doc()
        doc["nodes"][1]["name"] = "Start"
        errors = validate_nodes(doc, registry)
        assert _ids(errors) == ["node/duplicate-name"]
        assert errors[0].severity is Severity.MEDIUM

    def test_missing_type(self, registry):
        doc = _valid_doc()
        del doc["nodes"][1]["type"]
        errors = validate_nodes(doc, registry)
        assert _ids(errors) == ["node/missing-type"]
        assert errors[0].severity is Severity.CRITICAL
        assert errors[0].auto_fixable is False

    def test_invalid_type(self, registry):
        doc = _valid_doc()
        doc["nodes"][1]["type"] = "n8n-nodes-base.teleporter"
        errors = validate_nodes(doc, registry)
        assert _ids(errors) == ["node/invalid-type"]
        assert errors[0].severity is Severity.HIGH
        assert errors[0].auto_fixable is False
        assert "teleporter" in errors[0].message

    @pytest.mark.parametrize(
        "position",
        [None, [1], [1, 2, 3], ["a", 2], [True, 1], [float("nan"), 0], "250,300"],
    )
    def test_invalid_position(self, registry, position):
        doc = _valid_doc()
        doc["nodes"][0]["position"] = position
        errors = validate_nodes(doc, registry)
        assert _ids(errors) == ["node/invalid-position"]
        assert errors[0].severity is Severity.LOW
        assert errors[0].auto_fixable is True

    def test_tuple_and_float_positions_accepted(self, registry):
        doc = _valid_doc()
        doc["nodes"][0]["position"] = (250.5, -10)
        assert validate_nodes(doc, registry) == []

    def test_webhook_path_required(self, registry):
        doc = _valid_doc()
        doc["nodes"].append({
            "id": "n3", "name": "Hook", "type": "n8n-nodes-base.webhook",
            "position": [690, 300], "parameters": {"path": "  "},
        })
        errors = validate_nodes(doc, registry)
        assert _ids(errors) == ["node/missing-parameter-path"]
        err = errors[0]
        assert err.severity is Severity.MEDIUM
        assert err.auto_fixable is True
        assert err.context["param"] == "path"
        assert err.context["index"] == 2

    def test_http_url_required_not_fixable(self, registry):
        doc = _valid_doc()
        doc["nodes"][1]["parameters"] = {}
        errors = validate_nodes(doc, registry)
        assert _ids(errors) == ["node/missing-parameter-url"]
        assert errors[0].severity is Severity.HIGH
        assert errors[0].auto_fixable is False

    def test_parameters_not_a_mapping(self, registry):
        doc = _valid_doc()
        doc["nodes"][1]["parameters"] = "url=x"
        assert _ids(validate_nodes(doc, registry)) == ["node/missing-parameter-url"]

    def test_schedule_and_email_rules(self, registry):
        doc = _valid_doc()
        doc["nodes"].extend([
            {"id": "n3", "name": "Every", "type": "n8n-nodes-base.scheduleTrigger",
             "position": [0, 0], "parameters": {}},
            {"id": "n4", "name": "Mail", "type": "n8n-nodes-base.emailSend",
             "position": [0, 0], "parameters": {}},
        ])
        errors = {e.id: e for e in validate_nodes(doc, registry)}
        assert errors["node/missing-parameter-rule"].auto_fixable is True
        assert errors["node/missing-parameter-toEmail"].auto_fixable is False

    def test_malformed_node(self, registry):
        doc = _valid_doc()
        doc["nodes"].append("not a node")
        errors = validate_nodes(doc, registry)
        assert _ids(errors) == ["node/malformed-node"]
        assert errors[0].node_ref == "#2"
        assert errors[0].auto_fixable is False

    def test_each_node_independent(self, registry):
        doc = _valid_doc()
        doc["nodes"][0]["position"] = None
        doc["nodes"][1]["id"] = ""
        assert sorted(_ids(validate_nodes(doc, registry))) == [
            "node/invalid-position",
            "node/missing-id",
        ]


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------


class TestConnectionValidator:
    def test_valid_connections(self):
        assert validate_connections(_valid_doc()) == []

    def test_invalid_source_drops_entry_checks(self):
        doc = _valid_doc()
        doc["connections"]["Ghost"] = {"main": [[{"node": "Nowhere", "type": "bogus"}]]}
        errors = validate_connections(doc)
        assert _ids(errors) == ["connection/invalid-source"]
        assert errors[0].context == {"source": "Ghost"}
        assert errors[0].category is Category.CONNECTION
        assert errors[0].severity is Severity.HIGH
        assert errors[0].auto_fixable is True

    def test_invalid_target(self):
        doc = _valid_doc()
        doc["connections"]["Start"]["main"][0].append({"node": "Ghost", "type": "main", "index": 0})
        errors = validate_connections(doc)
        assert _ids(errors) == ["connection/invalid-target"]
        err = errors[0]
        assert err.node_ref == "Ghost"
        assert err.context == {"source": "Start", "kind": "main", "target": "Ghost"}

    def test_target_by_id(self):
        doc = _valid_doc()
        doc["connections"]["Start"]["main"][0][0]["node"] = "n2"
        assert validate_connections(doc) == []

    def test_source_by_id(self):
        doc = _valid_doc()
        doc["connections"] = {"n1": doc["connections"]["Start"]}
        assert validate_connections(doc) == []

    def test_invalid_edge_type(self):
        doc = _valid_doc()
        doc["connections"]["Start"]["main"][0][0]["type"] = "sideways"
        errors = validate_connections(doc)
        assert _ids(errors) == ["connection/invalid-type"]
        assert errors[0].severity is Severity.MEDIUM
        assert errors[0].auto_fixable is True
        assert errors[0].context == {"source": "Start", "kind": "main"}

    def test_error_kind_accepted(self):
        doc = _valid_doc()
        doc["connections"]["Start"]["error"] = [[{"node": "Fetch", "type": "error", "index": 0}]]
        assert validate_connections(doc) == []

    @pytest.mark.parametrize(
        "outputs",
        [
            "nope",
            None,
            {"main": "x"},
            {"main": [None, "x", {}]},
            {"main": [[42, "edge", None]]},
        ],
    )
    def test_malformed_shapes_skipped(self, outputs):
        doc = _valid_doc()
        doc["connections"]["Start"] = outputs
        assert validate_connections(doc) == []

    def test_connections_not_a_mapping(self):
        doc = _valid_doc()
        doc["connections"] = ["Start"]
        assert validate_connections(doc) == []


class TestRunStaticValidators:
    def test_concatenates_in_order(self, registry):
        doc = _valid_doc()
        doc["name"] = ""
        doc["nodes"][1]["position"] = None
        doc["connections"]["Start"]["main"][0][0]["node"] = "Ghost"
        assert _ids(run_static_validators(doc, registry)) == [
            "structural/missing-name",
            "node/invalid-position",
            "connection/invalid-target",
        ]

    def test_never_raises_on_garbage(self, registry):
        garbage = {"name": 1, "nodes": [None, 3, {"position": "x"}], "connections": {"a": 1}}
        errors = run_static_validators(garbage, registry)
        assert errors
        assert all(e.id for e in errors)


# ---------------------------------------------------------------------------
# Non-string scalars where strings are expected
# ---------------------------------------------------------------------------


class TestNonStringScalars:
    @pytest.mark.parametrize("edge_type", [["main"], {"kind": "main"}, 3, None])
    def test_edge_type_reported(self, edge_type):
        doc = _valid_doc()
        doc["connections"]["Start"]["main"][0][0]["type"] = edge_type
        errors = validate_connections(doc)
        assert _ids(errors) == ["connection/invalid-type"]
        assert errors[0].auto_fixable is True

    @pytest.mark.parametrize("name", [["Fetch"], {"name": "Fetch"}, 7])
    def test_node_name_tolerated(self, registry, name):
        doc = _valid_doc()
        doc["nodes"][1]["name"] = name
        doc["connections"]["Start"]["main"][0][0]["node"] = "n2"
        assert validate_nodes(doc, registry) == []
        assert validate_connections(doc) == []

    @pytest.mark.parametrize("node_id", [{"id": "n2"}, ["n2"], 2])
    def test_node_id_reported_missing(self, registry, node_id):
        doc = _valid_doc()
        doc["nodes"][1]["id"] = node_id
        errors = validate_nodes(doc, registry)
        assert _ids(errors) == ["node/missing-id"]
        assert errors[0].node_ref == "Fetch"

    def test_edge_target_not_a_string(self):
        doc = _valid_doc()
        doc["connections"]["Start"]["main"][0][0]["node"] = ["Fetch"]
        errors = validate_connections(doc)
        assert _ids(errors) == ["connection/invalid-target"]
        assert errors[0].node_ref is None

"""Engine Probe — typed outcomes, total classification and guaranteed cleanup."""

from __future__ import annotations

import asyncio
import re
from unittest.mock import AsyncMock

import pytest

from workflow_healer.probe import (
    Created,
    EngineProbe,
    Rejected,
    TransportFailure,
    classify_outcome,
    engine_message,
    outcome_from_response,
    recommendations_for,
)
from workflow_healer.taxonomy import Category, Severity


def _doc() -> dict:
    return {
        "name": "Weather digest",
        "nodes": [{"id": "n1", "name": "Start", "type": "n8n-nodes-base.start", "position": [0, 0]}],
        "connections": {},
        "active": True,
    }


def _client(create=None, delete=None) -> AsyncMock:
    client = AsyncMock()
    client.create_workflow = create or AsyncMock(return_value={"id": "wf-1"})
    client.delete_workflow = delete or AsyncMock(return_value={"success": True})
    return client


# ---------------------------------------------------------------------------
# Outcome mapping
# ---------------------------------------------------------------------------


class TestOutcomeFromResponse:
    def test_created(self):
        assert outcome_from_response({"id": 17, "name": "x"}) == Created(workflow_id="17")

    def test_rejected(self):
        out = outcome_from_response({"error": "HTTP 400", "status": 400, "detail": "bad node"})
        assert out == Rejected(status=400, body="bad node")

    def test_transport(self):
        out = outcome_from_response({"error": "Connection refused", "transport": True})
        assert out == TransportFailure(cause="Connection refused")

    def test_unexpected_shape_is_rejection(self):
        out = outcome_from_response(["not", "a", "dict"])
        assert isinstance(out, Rejected)
        assert out.status == 0


class TestEngineMessage:
    def test_json_message(self):
        assert engine_message('{"message": "request/body must NOT have additional properties"}') == (
            "request/body must NOT have additional properties"
        )

    def test_plain_text(self):
        assert engine_message("node parameter X is required") == "node parameter X is required"

    def test_json_without_message(self):
        assert engine_message('{"code": 400}') == '{"code": 400}'


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassifyOutcome:
    def test_created_has_no_errors(self):
        assert classify_outcome(Created(workflow_id="1")) == []

    def test_client_rejection_mentioning_node(self):
        [err] = classify_outcome(Rejected(status=400, body="node parameter X is required"))
        assert err.id == "engine/rejected"
        assert err.category is Category.NODE
        assert err.severity is Severity.HIGH
        assert err.auto_fixable is False
        assert err.context == {"status": 400}

    def test_server_fault_is_critical(self):
        [err] = classify_outcome(Rejected(status=503, body="Service Unavailable"))
        assert err.severity is Severity.CRITICAL
        assert err.category is Category.ENGINE

    def test_other_status_is_medium(self):
        [err] = classify_outcome(Rejected(status=422, body="Invalid connection between nodes"))
        assert err.severity is Severity.MEDIUM
        assert err.category is Category.CONNECTION

    def test_json_body_message_used(self):
        [err] = classify_outcome(Rejected(status=400, body='{"message": "Unknown node type"}'))
        assert err.category is Category.NODE
        assert "Unknown node type" in err.message

    def test_transport_failure_is_system(self):
        [err] = classify_outcome(TransportFailure(cause="Connection refused"))
        assert err.id == "system/engine-unreachable"
        assert err.category is Category.SYSTEM
        assert err.severity is Severity.HIGH
        assert err.auto_fixable is False

    def test_credential_recommendation_in_suggestions(self):
        [err] = classify_outcome(Rejected(status=400, body="Credential 'Gmail' not found"))
        assert any("credentials" in s for s in err.suggestions)


class TestRecommendations:
    @pytest.mark.parametrize(
        "message, fragment",
        [
            ("missing credential", "credentials"),
            ("Forbidden", "Permission denied"),
            ("quota exhausted", "quota"),
            ("request timed out", "Network"),
        ],
    )
    def test_known_wording(self, message, fragment):
        recs = recommendations_for(message)
        assert len(recs) == 1
        assert fragment in recs[0]

    def test_unrelated_message(self):
        assert recommendations_for("node parameter X is required") == []


# ---------------------------------------------------------------------------
# EngineProbe
# ---------------------------------------------------------------------------


class TestEphemeralCopy:
    def test_named_and_disabled(self):
        doc = _doc()
        probe_doc = EngineProbe.ephemeral_copy(doc)
        assert re.fullmatch(r"Weather digest - Validation [0-9a-f]{12}", probe_doc["name"])
        assert probe_doc["active"] is False
        assert probe_doc["nodes"] == doc["nodes"]
        assert doc["name"] == "Weather digest"
        assert doc["active"] is True

    def test_unique_token(self):
        a = EngineProbe.ephemeral_copy(_doc())["name"]
        b = EngineProbe.ephemeral_copy(_doc())["name"]
        assert a != b

    def test_blank_name(self):
        doc = _doc()
        doc["name"] = ""
        assert EngineProbe.ephemeral_copy(doc)["name"].startswith("Untitled - Validation ")


class TestEngineProbe:
    @pytest.mark.asyncio
    async def test_created_is_deleted(self):
        client = _client()
        errors = await EngineProbe(client).probe(_doc())

        assert errors == []
        submitted = client.create_workflow.call_args.args[0]
        assert submitted["active"] is False
        assert "- Validation " in submitted["name"]
        client.delete_workflow.assert_awaited_once_with("wf-1")

    @pytest.mark.asyncio
    async def test_rejection_classified_and_nothing_deleted(self):
        client = _client(create=AsyncMock(return_value={
            "error": "HTTP 400", "status": 400, "detail": "node parameter X is required",
        }))
        [err] = await EngineProbe(client).probe(_doc())

        assert (err.category, err.severity, err.auto_fixable) == (Category.NODE, Severity.HIGH, False)
        client.delete_workflow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        client = _client(create=AsyncMock(return_value={"error": "Connection refused", "transport": True}))
        [err] = await EngineProbe(client).probe(_doc())
        assert err.id == "system/engine-unreachable"

    @pytest.mark.asyncio
    async def test_client_exception_is_transport_failure(self):
        client = _client(create=AsyncMock(side_effect=OSError("DNS lookup failed")))
        outcome = await EngineProbe(client).run(_doc())
        assert outcome == TransportFailure(cause="DNS lookup failed")

    @pytest.mark.asyncio
    async def test_create_timeout(self):
        async def slow_create(_workflow):
            await asyncio.sleep(5)
            return {"id": "late"}

        client = _client(create=AsyncMock(side_effect=slow_create))
        [err] = await EngineProbe(client, timeout=0.05).probe(_doc())

        assert err.category is Category.SYSTEM
        assert "timeout" in err.message
        client.delete_workflow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_retried_once(self):
        delete = AsyncMock(side_effect=[
            {"error": "HTTP 500", "status": 500, "detail": "busy"},
            {"success": True},
        ])
        client = _client(delete=delete)
        errors = await EngineProbe(client).probe(_doc())

        assert errors == []
        assert delete.await_count == 2

    @pytest.mark.asyncio
    async def test_delete_failure_is_logged_not_raised(self, caplog):
        delete = AsyncMock(side_effect=RuntimeError("engine gone"))
        client = _client(delete=delete)
        with caplog.at_level("WARNING", logger="workflow_healer.probe"):
            errors = await EngineProbe(client).probe(_doc())

        assert errors == []
        assert delete.await_count == 2
        assert "wf-1" in caplog.text

    @pytest.mark.asyncio
    async def test_cleanup_survives_caller_cancellation(self):
        deleted: list[str] = []

        async def slow_delete(workflow_id):
            await asyncio.sleep(0.05)
            deleted.append(workflow_id)
            return {"success": True}

        client = _client(delete=AsyncMock(side_effect=slow_delete))
        task = asyncio.create_task(EngineProbe(client).probe(_doc()))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        await asyncio.sleep(0.2)
        assert deleted == ["wf-1"]

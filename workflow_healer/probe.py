"""Engine Probe — surface defects only the real execution engine knows about.

The probe submits an ephemeral copy of the candidate (name suffixed with a
fresh token, ``active`` forced off) through the engine's create operation and
deletes it again.  Static validators cannot model every node-specific rule;
the engine can.

Outcome of the create call is an explicit sum type:

  Created(workflow_id)          engine accepted the document
  Rejected(status, body)        engine answered with an error status
  TransportFailure(cause)       timeout, DNS, connection refused ...

classify_outcome() turns that into at most one ValidationError.  Engine-side
errors are never auto-fixable.

Cleanup contract: whenever create succeeds, the artifact is deleted before
probe() returns, including on the success path.  The delete shares the
probe's timeout budget (with a small floor so a slow create cannot starve it),
is retried once, and is shielded from caller cancellation.  A delete that
still fails is logged and abandoned; it never affects the healing decision.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Protocol, Union

from workflow_healer.taxonomy import Category, GraphDocument, Severity, ValidationError

logger = logging.getLogger("workflow_healer.probe")

DEFAULT_PROBE_TIMEOUT: float = 10.0

# Minimum seconds granted to each delete attempt, even when create used up the budget.
_CLEANUP_FLOOR: float = 2.0


class EngineClient(Protocol):
    """What the probe needs from the execution engine (see client.N8nClient)."""

    async def create_workflow(self, workflow: dict[str, Any]) -> Any: ...

    async def delete_workflow(self, workflow_id: str) -> Any: ...


# ---------------------------------------------------------------------------
# Outcome variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Created:
    workflow_id: str


@dataclass(frozen=True)
class Rejected:
    status: int
    body: str

    @property
    def message(self) -> str:
        return engine_message(self.body)


@dataclass(frozen=True)
class TransportFailure:
    cause: str


ProbeOutcome = Union[Created, Rejected, TransportFailure]


def outcome_from_response(response: Any) -> ProbeOutcome:
    """Map an engine client response dict onto a ProbeOutcome variant."""
    if isinstance(response, dict):
        if response.get("transport"):
            return TransportFailure(cause=str(response.get("error", "transport failure")))
        if "error" in response:
            status = response.get("status")
            return Rejected(
                status=status if isinstance(status, int) else 0,
                body=str(response.get("detail") or response["error"]),
            )
        workflow_id = response.get("id")
        if workflow_id is not None:
            return Created(workflow_id=str(workflow_id))
    return Rejected(status=0, body=f"Unexpected create response: {response!r}"[:500])


def engine_message(body: str) -> str:
    """Extract the human message from an engine error body.

    n8n answers with ``{"message": "..."}``; anything else is used verbatim.
    """
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body
    if isinstance(parsed, dict) and isinstance(parsed.get("message"), str):
        return parsed["message"]
    return body


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

_ENGINE_SUGGESTIONS: tuple[str, ...] = (
    "Check workflow syntax",
    "Verify node configurations",
    "Review n8n documentation",
)


def recommendations_for(message: str) -> list[str]:
    """Human guidance for engine messages that point outside the document."""
    text = message.lower()
    recs: list[str] = []
    if "credential" in text:
        recs.append(
            "This workflow requires credentials to be configured in n8n. "
            "Set up the necessary credentials before deploying."
        )
    if "permission" in text or "unauthorized" in text or "forbidden" in text:
        recs.append("Permission denied. Check API key permissions and user access rights.")
    if "limit" in text or "quota" in text:
        recs.append("Rate limit or quota exceeded. Wait before retrying or check your plan limits.")
    if "network" in text or "timeout" in text or "timed out" in text:
        recs.append("Network connectivity issue. Check n8n server availability.")
    return recs


def _rejection_severity(status: int) -> Severity:
    if status >= 500:
        return Severity.CRITICAL
    if status == 400:
        return Severity.HIGH
    return Severity.MEDIUM


def _rejection_category(message: str) -> Category:
    text = message.lower()
    if "connection" in text:
        return Category.CONNECTION
    if "node" in text:
        return Category.NODE
    return Category.ENGINE


def classify_outcome(outcome: ProbeOutcome) -> list[ValidationError]:
    """Total mapping from a probe outcome to zero or one ValidationError."""
    match outcome:
        case Created():
            return []
        case Rejected(status=status):
            message = outcome.message
            return [ValidationError(
                id="engine/rejected",
                category=_rejection_category(message),
                severity=_rejection_severity(status),
                message=f"Engine rejected workflow ({status or 'no status'}): {message}",
                suggestions=(*_ENGINE_SUGGESTIONS, *recommendations_for(message)),
                auto_fixable=False,
                context={"status": status},
            )]
        case TransportFailure(cause=cause):
            return [ValidationError(
                id="system/engine-unreachable",
                category=Category.SYSTEM,
                severity=Severity.HIGH,
                message=f"Execution engine unreachable: {cause}",
                suggestions=("Check n8n connectivity", *recommendations_for(cause)),
                auto_fixable=False,
            )]
    raise TypeError(f"Unknown probe outcome: {outcome!r}")


# ---------------------------------------------------------------------------
# EngineProbe
# ---------------------------------------------------------------------------


class EngineProbe:
    """Creates and deletes one ephemeral copy of a workflow on the engine.

    Args:
        client:          Anything implementing EngineClient (N8nClient in production).
        timeout:         Budget in seconds for the create/delete pair.
        delete_attempts: Delete tries before the artifact is abandoned (>= 2).
    """

    def __init__(
        self,
        client: EngineClient,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        delete_attempts: int = 2,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._delete_attempts = max(2, delete_attempts)
        self._cleanups: set[asyncio.Task] = set()

    @staticmethod
    def ephemeral_copy(document: GraphDocument) -> GraphDocument:
        """Same content, uniquely named, disabled."""
        probe_doc = copy.deepcopy(document)
        base = document.get("name")
        if not isinstance(base, str) or not base.strip():
            base = "Untitled"
        probe_doc["name"] = f"{base} - Validation {uuid.uuid4().hex[:12]}"
        probe_doc["active"] = False
        return probe_doc

    async def run(self, document: GraphDocument) -> ProbeOutcome:
        """Submit the ephemeral copy and return the typed outcome."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        ephemeral = self.ephemeral_copy(document)

        outcome: ProbeOutcome = TransportFailure(cause="probe did not complete")
        try:
            response = await asyncio.wait_for(
                self._client.create_workflow(ephemeral), timeout=self._timeout
            )
            outcome = outcome_from_response(response)
        except asyncio.TimeoutError:
            outcome = TransportFailure(
                cause=f"engine did not answer within {self._timeout:.1f}s (timeout)"
            )
        except Exception as exc:
            logger.error("Probe create failed: %s", exc)
            outcome = TransportFailure(cause=str(exc) or type(exc).__name__)
        finally:
            if isinstance(outcome, Created):
                task = asyncio.ensure_future(self._cleanup(outcome.workflow_id, deadline))
                self._cleanups.add(task)
                task.add_done_callback(self._cleanups.discard)
                await asyncio.shield(task)

        logger.debug("Probe outcome for %r: %s", ephemeral["name"], outcome)
        return outcome

    async def probe(self, document: GraphDocument) -> list[ValidationError]:
        return classify_outcome(await self.run(document))

    async def _cleanup(self, workflow_id: str, deadline: float) -> bool:
        """Delete the probe artifact; True once the engine confirms.  Never raises."""
        loop = asyncio.get_running_loop()
        for attempt in range(1, self._delete_attempts + 1):
            budget = max(deadline - loop.time(), _CLEANUP_FLOOR)
            try:
                response = await asyncio.wait_for(
                    self._client.delete_workflow(workflow_id), timeout=budget
                )
            except asyncio.TimeoutError:
                response = {"error": f"delete timed out after {budget:.1f}s"}
            except Exception as exc:
                response = {"error": str(exc) or type(exc).__name__}

            if not (isinstance(response, dict) and "error" in response):
                logger.debug("Deleted probe workflow %s (attempt %d)", workflow_id, attempt)
                return True
            logger.info(
                "Delete of probe workflow %s failed (attempt %d/%d): %s",
                workflow_id, attempt, self._delete_attempts, response.get("error"),
            )

        logger.warning("Abandoned probe workflow %s on the engine; remove it manually", workflow_id)
        return False

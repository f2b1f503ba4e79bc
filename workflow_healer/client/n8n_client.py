"""Async n8n public REST API client using httpx.

Only the workflow create/delete pair is needed by the healer.  Like every
helper here, they never raise: failures come back as dicts.

  success          → parsed JSON body (create returns {"id": ..., ...})
  HTTP error       → {"error": "HTTP 400", "status": 400, "detail": "<body>"}
  transport error  → {"error": "<exception text>", "transport": True}
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from workflow_healer.client.config import Settings

logger = logging.getLogger("workflow_healer.client")

#: Top-level workflow fields the n8n API rejects as read-only on create.
READ_ONLY_FIELDS: frozenset[str] = frozenset({
    "id",
    "active",
    "createdAt",
    "updatedAt",
    "versionId",
    "triggerCount",
    "tags",
})


class N8nClient:
    """Thin async wrapper around the n8n workflows API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            headers=settings.headers,
            timeout=httpx.Timeout(settings.timeout, connect=10.0),
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> N8nClient:
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _post(self, path: str, payload: dict | None = None) -> Any:
        try:
            r = await self._client.post(path, json=payload or {})
            r.raise_for_status()
            return r.json() if r.text.strip() else {"success": True}
        except httpx.HTTPStatusError as e:
            logger.error("POST %s -> %s", path, e.response.status_code)
            return {
                "error": f"HTTP {e.response.status_code}",
                "status": e.response.status_code,
                "detail": e.response.text,
            }
        except Exception as e:
            logger.error("POST %s failed: %s", path, e)
            return {"error": str(e) or type(e).__name__, "transport": True}

    async def _delete(self, path: str) -> Any:
        try:
            r = await self._client.delete(path)
            r.raise_for_status()
            return r.json() if r.text.strip() else {"success": True}
        except httpx.HTTPStatusError as e:
            logger.error("DELETE %s -> %s", path, e.response.status_code)
            return {
                "error": f"HTTP {e.response.status_code}",
                "status": e.response.status_code,
                "detail": e.response.text,
            }
        except Exception as e:
            logger.error("DELETE %s failed: %s", path, e)
            return {"error": str(e) or type(e).__name__, "transport": True}

    # ==================================================================
    # WORKFLOWS
    # ==================================================================

    @staticmethod
    def create_payload(workflow: dict[str, Any]) -> dict[str, Any]:
        """Strip read-only fields; the engine rejects them on create."""
        payload = {k: v for k, v in workflow.items() if k not in READ_ONLY_FIELDS}
        payload.setdefault("settings", {})
        return payload

    async def create_workflow(self, workflow: dict[str, Any]) -> Any:
        return await self._post("/workflows", self.create_payload(workflow))

    async def delete_workflow(self, workflow_id: str) -> Any:
        return await self._delete(f"/workflows/{workflow_id}")

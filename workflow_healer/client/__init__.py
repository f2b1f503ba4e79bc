"""n8n HTTP client used by the Engine Probe."""

from workflow_healer.client.config import Settings
from workflow_healer.client.n8n_client import N8nClient

__all__ = ["N8nClient", "Settings"]

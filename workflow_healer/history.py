"""Per-namespace healing history with LRU eviction.

The caller owns the instance and hands it to the orchestrator through
HealingContext; nothing here is process-global.
"""

from __future__ import annotations

import logging
from collections import OrderedDict

from workflow_healer.settings import HealerSettings
from workflow_healer.taxonomy import HealingResult

logger = logging.getLogger("workflow_healer.history")


class HealingHistory:
    """Bounded map of namespace -> results, least recently used evicted first.

    Each namespace keeps at most ``per_namespace`` results (oldest dropped).
    """

    def __init__(self, maxsize: int = 128, per_namespace: int = 20) -> None:
        self._maxsize = max(1, maxsize)
        self._per_namespace = max(1, per_namespace)
        self._entries: OrderedDict[str, list[HealingResult]] = OrderedDict()

    @classmethod
    def from_settings(cls, settings: HealerSettings) -> HealingHistory:
        return cls(maxsize=settings.history_size)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, namespace: object) -> bool:
        return namespace in self._entries

    def append(self, namespace: str, result: HealingResult) -> None:
        results = self._entries.pop(namespace, [])
        results.append(result)
        del results[:-self._per_namespace]
        self._entries[namespace] = results
        while len(self._entries) > self._maxsize:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted healing history for namespace %r", evicted)

    def get(self, namespace: str) -> list[HealingResult]:
        """Results for ``namespace``, oldest first.  Marks it recently used."""
        if namespace not in self._entries:
            return []
        self._entries.move_to_end(namespace)
        return list(self._entries[namespace])

    def latest(self, namespace: str) -> HealingResult | None:
        results = self.get(namespace)
        return results[-1] if results else None

    def clear(self, namespace: str | None = None) -> None:
        if namespace is None:
            self._entries.clear()
        else:
            self._entries.pop(namespace, None)

# OHADA FinSight - Financial statements engine for OHADA general ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Explicit cache of computed reports, keyed by (tenant_id, exercice_id).

Statements are pure functions of a ledger snapshot, so caching is only an
optimization: a miss always recomputes from source. Storage collaborators
keep the cache fresh by calling :meth:`StatementCache.invalidate` whenever
the data of a tenant changes (see ``SqliteStatementsSource.add_change_listener``).
"""

import logging
import threading
from collections.abc import Callable
from typing import Any, Optional

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]


class StatementCache:
    """Thread-safe in-memory cache of computed results."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, Any] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, tenant_id: str, exercice_id: str) -> Optional[Any]:
        with self._lock:
            return self._entries.get((str(tenant_id), str(exercice_id)))

    def set(self, tenant_id: str, exercice_id: str, value: Any) -> None:
        with self._lock:
            self._entries[(str(tenant_id), str(exercice_id))] = value

    def get_or_compute(
        self,
        tenant_id: str,
        exercice_id: str,
        compute: Callable[[], Any],
        should_cache: Optional[Callable[[Any], bool]] = None,
    ) -> Any:
        """
        Return the cached value, computing and storing it on a miss.

        When ``should_cache`` is given, a computed value it rejects is
        returned without being stored, so the next call recomputes it.

        ``compute`` runs outside the lock; two concurrent misses for the same
        key may both compute, the last one wins. Results are deterministic so
        either value is correct.
        """
        cached = self.get(tenant_id, exercice_id)
        if cached is not None:
            logger.debug("Cache hit for (%s, %s)", tenant_id, exercice_id)
            return cached

        logger.debug("Cache miss for (%s, %s)", tenant_id, exercice_id)
        value = compute()
        if should_cache is not None and not should_cache(value):
            logger.debug("Result for (%s, %s) not cached", tenant_id, exercice_id)
            return value
        self.set(tenant_id, exercice_id, value)
        return value

    def invalidate(self, tenant_id: str, exercice_id: Optional[str] = None) -> int:
        """
        Drop the cached results of a tenant.

        Args:
            tenant_id: Tenant whose data changed.
            exercice_id: Only drop this exercice; all exercices of the
                tenant when None.

        Returns:
            The number of entries removed.
        """
        tenant = str(tenant_id)
        with self._lock:
            if exercice_id is None:
                keys = [k for k in self._entries if k[0] == tenant]
            else:
                key = (tenant, str(exercice_id))
                keys = [key] if key in self._entries else []
            for key in keys:
                del self._entries[key]

        if keys:
            logger.debug("Invalidated %d cached report(s) for %s", len(keys), tenant)
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

"""Schema loading and caching."""

import logging
import threading
import time
from typing import Callable, Optional

from .client import GraphQLClient
from .introspection import SchemaSnapshot, fetch_full_schema, snapshot_from_introspection

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60


class SchemaCache:
    """
    Holds the last successfully introspected schema.

    Refresh is lazy and pull-based: the first reader after the TTL expires
    fetches a new snapshot. Concurrent readers during a refresh wait for the
    in-flight fetch instead of issuing their own. A failed refresh leaves the
    previous snapshot in place but is still raised to the caller.
    """

    def __init__(
        self,
        fetcher: Callable[[], dict],
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self.ttl = ttl
        self._clock = clock
        self._snapshot: Optional[SchemaSnapshot] = None
        self._lock = threading.Lock()

    @classmethod
    def for_client(cls, client: GraphQLClient, ttl: float = DEFAULT_TTL_SECONDS, **kwargs) -> "SchemaCache":
        """Cache whose fetcher runs full introspection through `client`."""
        return cls(lambda: fetch_full_schema(client), ttl=ttl, **kwargs)

    @property
    def snapshot(self) -> Optional[SchemaSnapshot]:
        """Current snapshot, fresh or not."""
        return self._snapshot

    def _fresh(self, snapshot: Optional[SchemaSnapshot]) -> bool:
        return snapshot is not None and self._clock() - snapshot.fetched_at < self.ttl

    def get_schema(self) -> SchemaSnapshot:
        """
        Return the cached snapshot, refetching when missing or expired.

        Returns:
            Current SchemaSnapshot

        Raises:
            DownstreamUnavailable: If a needed refresh cannot reach the endpoint
            DownstreamQueryError: If the endpoint rejects introspection
        """
        snapshot = self._snapshot
        if self._fresh(snapshot):
            return snapshot

        with self._lock:
            # Another caller may have refreshed while we waited
            snapshot = self._snapshot
            if self._fresh(snapshot):
                logger.debug("Schema refreshed by a concurrent caller")
                return snapshot

            logger.info("Fetching schema via introspection")
            try:
                raw = self._fetcher()
            except Exception:
                logger.warning("Schema introspection failed; keeping previous snapshot", exc_info=True)
                raise

            fresh = snapshot_from_introspection(raw, fetched_at=self._clock())
            self._snapshot = fresh
            logger.info("Schema cached with %d types", len(fresh.types))
            return fresh

    def invalidate(self) -> None:
        """Drop the current snapshot so the next read refetches."""
        with self._lock:
            self._snapshot = None

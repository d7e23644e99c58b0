"""
Collector handle with per-run in-memory cache.

Usage:
    client = SumoClient(api_url, username, password)
    collector = Collector(client, "web-01", query_limit=1000)
    if collector.exists() and collector.source_exists("app-logs"):
        src = collector.get_source("app-logs")

The collector record and its source list are fetched lazily on first access
and replaced wholesale by `refresh()`. Mutating calls never touch the cache;
callers refresh afterwards.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .sources import SourceDefinition
from .sumo_client import SumoClient

__all__ = ["Collector", "SourceNotFound", "SYNC_MODE_JSON", "SYNC_MODE_UI"]

SYNC_MODE_JSON = "Json"
SYNC_MODE_UI = "UI"


class SourceNotFound(KeyError):
    """Raised when a source name is not present in the cached source list."""


class Collector:
    """One remote collector, identified by name."""

    def __init__(
        self,
        client: SumoClient,
        name: str,
        *,
        query_limit: int = 1000,
        timeout_sec: Optional[float] = None,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self.client = client
        self.name = name
        self.query_limit = int(query_limit)
        self.timeout = timeout_sec
        self.log = logger or logging.getLogger("sumosync.collector")
        self._id: Optional[Any] = None
        self._looked_up = False
        self._metadata: Optional[Dict[str, Any]] = None
        self._sources: Optional[List[Dict[str, Any]]] = None

    # ---------------- collector ----------------

    def _lookup(self) -> Optional[Any]:
        if self._looked_up:
            return self._id
        payload = self.client.get_json("/collectors", params={"limit": self.query_limit}, timeout=self.timeout)
        for item in payload.get("collectors") or []:
            if isinstance(item, dict) and item.get("name") == self.name:
                self._id = item.get("id")
                break
        self._looked_up = True
        self.log.debug("Collector lookup: name=%s id=%s", self.name, self._id)
        return self._id

    def exists(self) -> bool:
        """True when a collector with this name is in the collector list (within the query limit)."""
        return self._lookup() is not None

    @property
    def id(self) -> Any:
        collector_id = self._lookup()
        if collector_id is None:
            raise LookupError(f"Collector '{self.name}' does not exist")
        return collector_id

    def _path(self, suffix: str = "") -> str:
        return f"/collectors/{self.id}{suffix}"

    @property
    def metadata(self) -> Dict[str, Any]:
        if self._metadata is None:
            self._metadata = self._fetch_metadata()
        return self._metadata

    def get_metadata(self) -> Dict[str, Any]:
        return self.metadata

    def _fetch_metadata(self) -> Dict[str, Any]:
        payload = self.client.get_json(self._path(), timeout=self.timeout)
        return dict(payload.get("collector") or {})

    @property
    def sync_mode(self) -> str:
        return str(self.metadata.get("sourceSyncMode") or "")

    def set_ui_sync_mode(self) -> None:
        """Switch the collector from local-file (Json) to API-managed (UI) source sync."""
        payload, etag = self.client.get_with_etag(self._path(), timeout=self.timeout)
        record = dict(payload.get("collector") or {})
        record["sourceSyncMode"] = SYNC_MODE_UI
        self.client.put_json(self._path(), {"collector": record}, etag=etag, timeout=self.timeout)
        self.log.info("Collector %s switched to sourceSyncMode=%s", self.name, SYNC_MODE_UI)

    # ---------------- sources ----------------

    @property
    def sources(self) -> List[Dict[str, Any]]:
        if self._sources is None:
            self._sources = self._fetch_sources()
        return self._sources

    def _fetch_sources(self) -> List[Dict[str, Any]]:
        payload = self.client.get_json(self._path("/sources"), timeout=self.timeout)
        items = [s for s in payload.get("sources") or [] if isinstance(s, dict)]
        self.log.debug("Sources loaded: collector=%s count=%d", self.name, len(items))
        return items

    def _find(self, name: str) -> Optional[Dict[str, Any]]:
        for item in self.sources:
            if item.get("name") == name:
                return item
        return None

    def source_exists(self, name: str) -> bool:
        return self._find(name) is not None

    def get_source(self, name: str) -> SourceDefinition:
        record = self._find(name)
        if record is None:
            raise SourceNotFound(name)
        return SourceDefinition.from_api(record)

    def add_source(self, definition: SourceDefinition, timeout: Optional[float] = None) -> SourceDefinition:
        resp = self.client.post_json(
            self._path("/sources"),
            {"source": definition.to_api()},
            timeout=timeout if timeout is not None else self.timeout,
        )
        return SourceDefinition.from_api(resp.get("source") or {})

    def update_source(self, source_id: Any, definition: SourceDefinition,
                      timeout: Optional[float] = None) -> SourceDefinition:
        timeout = timeout if timeout is not None else self.timeout
        path = self._path(f"/sources/{source_id}")
        _, etag = self.client.get_with_etag(path, timeout=timeout)
        body = definition.to_api()
        body["id"] = source_id
        resp = self.client.put_json(path, {"source": body}, etag=etag, timeout=timeout)
        return SourceDefinition.from_api(resp.get("source") or {})

    def delete_source(self, source_id: Any, timeout: Optional[float] = None) -> None:
        self.client.delete_json(
            self._path(f"/sources/{source_id}"),
            timeout=timeout if timeout is not None else self.timeout,
        )

    def refresh(self) -> None:
        """Re-fetch metadata and the source list, replacing the cache."""
        self._metadata = self._fetch_metadata()
        self._sources = self._fetch_sources()

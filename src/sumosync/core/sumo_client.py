"""
SumoClient: JSON-first HTTP client for the Sumo Logic Collector Management API.

- requests.Session with basic auth (access id / access key).
- Methods: get_json, post_json, put_json, delete_json.
- Per-call timeout override; no retries (errors surface to the caller).
- ETag support for the endpoints that require `If-Match` on update.
- Errors as SourceAPIError with status, url and body.

Usage:
    client = SumoClient("https://api.sumologic.com/api/v1", "accessId", "accessKey")
    data = client.get_json("/collectors", params={"limit": 1000})
"""
from __future__ import annotations

import json
import logging
import time
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests
import urllib3

DEFAULT_API_URL = "https://api.sumologic.com/api/v1"

_LOG_PREVIEW = 600
_REDACT_KEYS = {"password", "accesskey", "access_key", "authorization"}


def _short_json(obj: Any, limit: int = _LOG_PREVIEW) -> str:
    try:
        if isinstance(obj, (dict, list)):
            s = json.dumps(obj, ensure_ascii=False)
        else:
            s = str(obj)
        return s[:limit]
    except (TypeError, ValueError):
        return f"<unserializable:{type(obj).__name__}>"


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {
            k: ("***REDACTED***" if str(k).lower() in _REDACT_KEYS else _redact(v))
            for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [_redact(x) for x in obj]
    return obj


@dataclass(eq=False)
class SourceAPIError(Exception):
    """HTTP/transport error with context (status 0 for network/timeout)."""
    status: int
    url: str
    body: str = ""
    message: str = ""

    def __str__(self) -> str:
        base = f"SourceAPIError(status={self.status}, url={self.url})"
        if self.message:
            base += f": {self.message}"
        if self.body:
            base += f" body={self.body[:200]}"
        return base


class SumoClient:
    """Minimal JSON HTTP client for the Sumo Logic API.

    Args:
        base_url: API root, e.g. ``https://api.sumologic.com/api/v1``.
        username: Access id.
        password: Access key.
        timeout_sec: Default per-request timeout (seconds).
        verify_tls: If False, certificate verification is disabled.
        logger: Optional logger or adapter.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        timeout_sec: float = 60,
        verify_tls: bool = True,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout_sec)
        self.verify_tls = verify_tls
        self.log = logger or logging.getLogger("sumosync.http")

        self.session = requests.Session()
        self.session.auth = (username, password)
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "sumosync/HTTPClient",
        })

        if not verify_tls:
            warnings.filterwarnings("ignore", category=urllib3.exceptions.InsecureRequestWarning)

    # ------------- Public API -------------

    def get_json(self, path: str, *, params: Optional[Dict[str, Any]] = None,
                 timeout: Optional[float] = None) -> Dict[str, Any]:
        return self.request("GET", path, params=params, timeout=timeout)[0]

    def get_with_etag(self, path: str, *, timeout: Optional[float] = None) -> Tuple[Dict[str, Any], str]:
        """GET a resource and return ``(json, etag)``; etag is "" when absent."""
        return self.request("GET", path, timeout=timeout)

    def post_json(self, path: str, payload: Dict[str, Any], *,
                  timeout: Optional[float] = None) -> Dict[str, Any]:
        return self.request("POST", path, payload=payload, timeout=timeout)[0]

    def put_json(self, path: str, payload: Dict[str, Any], *, etag: str = "",
                 timeout: Optional[float] = None) -> Dict[str, Any]:
        headers = {"If-Match": etag} if etag else None
        return self.request("PUT", path, payload=payload, headers=headers, timeout=timeout)[0]

    def delete_json(self, path: str, *, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self.request("DELETE", path, timeout=timeout)[0]

    # ------------- Internal -------------

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[Dict[str, Any], str]:
        """Perform one HTTP request and return ``(json, etag)``.

        Raises:
            SourceAPIError: On connection errors, timeouts and non-2xx responses.
        """
        url = self._url(path)
        if payload is not None:
            self.log.debug("%s %s payload=%s", method, path, _short_json(_redact(payload)))

        start = time.time()
        try:
            resp = self.session.request(
                method=method,
                url=url,
                json=payload,
                params=params,
                headers=headers,
                timeout=float(timeout) if timeout is not None else self.timeout,
                verify=self.verify_tls,
            )
        except requests.Timeout as exc:
            self.log.error("%s %s timed out: %s", method, path, exc)
            raise SourceAPIError(status=0, url=url, message="timed out") from exc
        except requests.RequestException as exc:
            self.log.error("%s %s failed: %s", method, path, exc)
            raise SourceAPIError(status=0, url=url, message=str(exc)) from exc

        elapsed = (time.time() - start) * 1000
        if resp.status_code >= 400:
            self.log.error("%s %s -> %s: %s", method, path, resp.status_code, resp.text[:200])
            raise SourceAPIError(status=resp.status_code, url=url, body=resp.text, message=resp.reason or "")

        self.log.debug("%s %s -> %s in %.1fms", method, path, resp.status_code, elapsed)
        etag = resp.headers.get("ETag", "")
        if resp.status_code == 204 or not resp.content:
            return {}, etag
        try:
            return resp.json(), etag
        except ValueError as exc:
            raise SourceAPIError(status=resp.status_code, url=url, body=resp.text, message=str(exc)) from exc

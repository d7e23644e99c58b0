import base64
import json
import re
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlparse

import pytest

USERNAME = "acc-id"
PASSWORD = "acc-key"

_COLLECTOR = re.compile(r"^/api/v1/collectors/(\d+)$")
_SOURCES = re.compile(r"^/api/v1/collectors/(\d+)/sources$")
_SOURCE = re.compile(r"^/api/v1/collectors/(\d+)/sources/(\d+)$")


class FakeSumo:
    """In-memory Sumo Logic collector API state shared with the request handler."""

    def __init__(self):
        self.collectors = [
            {"id": 100, "name": "web-01", "sourceSyncMode": "UI", "collectorType": "Installable"},
        ]
        self.sources = {}
        self.calls = []
        self.failures = {}   # (method, path) -> status
        self.delay = 0.0
        self.etags = {}
        self.base_url = ""
        self._next_id = 1000

    # -- helpers for tests --
    def add_remote_source(self, **fields):
        self._next_id += 1
        record = {"id": self._next_id, "sourceType": "LocalFile", **fields}
        self.sources[self._next_id] = record
        return record

    def count(self, method, path_prefix=""):
        return sum(1 for m, p in self.calls if m == method and p.startswith(path_prefix))

    def mutations(self):
        return [(m, p) for m, p in self.calls if m in ("POST", "PUT", "DELETE")]

    def etag_for(self, key):
        self.etags[key] = self.etags.get(key, 0) + 1
        return f'"etag-{key}-{self.etags[key]}"'

    def collector(self, cid):
        for c in self.collectors:
            if c["id"] == cid:
                return c
        return None


def _make_handler(state):
    class _Handler(BaseHTTPRequestHandler):
        protocol_version = "HTTP/1.1"

        def _send_json(self, status, obj=None, etag=None):
            raw = json.dumps(obj).encode("utf-8") if obj is not None else b""
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(raw)))
            if etag:
                self.send_header("ETag", etag)
            self.end_headers()
            self.wfile.write(raw)

        def _auth_ok(self):
            expected = base64.b64encode(f"{USERNAME}:{PASSWORD}".encode()).decode()
            return self.headers.get("Authorization", "") == f"Basic {expected}"

        def _body(self):
            return self._payload

        def _begin(self, method):
            path = urlparse(self.path).path
            length = int(self.headers.get("Content-Length", "0"))
            self._payload = json.loads(self.rfile.read(length).decode("utf-8")) if length else {}
            state.calls.append((method, path))
            if state.delay:
                time.sleep(state.delay)
            if not self._auth_ok():
                self._send_json(401, {"status": 401, "code": "unauthorized"})
                return None
            status = state.failures.get((method, path))
            if status:
                self._send_json(status, {"status": status, "code": "injected"})
                return None
            return path

        def do_GET(self):  # noqa: N802
            path = self._begin("GET")
            if path is None:
                return
            if path == "/api/v1/collectors":
                limit = int(parse_qs(urlparse(self.path).query).get("limit", ["1000"])[0])
                self._send_json(200, {"collectors": state.collectors[:limit]})
                return
            m = _COLLECTOR.match(path)
            if m:
                c = state.collector(int(m.group(1)))
                if c is None:
                    self._send_json(404, {"code": "collectors.invalid"})
                else:
                    self._send_json(200, {"collector": c}, etag=state.etag_for(f"c{c['id']}"))
                return
            m = _SOURCES.match(path)
            if m:
                self._send_json(200, {"sources": list(state.sources.values())})
                return
            m = _SOURCE.match(path)
            if m and int(m.group(2)) in state.sources:
                sid = int(m.group(2))
                self._send_json(200, {"source": state.sources[sid]}, etag=state.etag_for(f"s{sid}"))
                return
            self._send_json(404, {"code": "not.found"})

        def do_POST(self):  # noqa: N802
            path = self._begin("POST")
            if path is None:
                return
            if _SOURCES.match(path):
                body = self._body().get("source") or {}
                record = state.add_remote_source(**body)
                self._send_json(201, {"source": record})
                return
            self._send_json(404, {"code": "not.found"})

        def do_PUT(self):  # noqa: N802
            path = self._begin("PUT")
            if path is None:
                return
            if not self.headers.get("If-Match"):
                self._send_json(412, {"code": "etag.missing"})
                return
            body = self._body()
            m = _COLLECTOR.match(path)
            if m:
                c = state.collector(int(m.group(1)))
                c.update(body.get("collector") or {})
                self._send_json(200, {"collector": c})
                return
            m = _SOURCE.match(path)
            if m and int(m.group(2)) in state.sources:
                sid = int(m.group(2))
                record = dict(body.get("source") or {})
                record["id"] = sid
                state.sources[sid] = record
                self._send_json(200, {"source": record})
                return
            self._send_json(404, {"code": "not.found"})

        def do_DELETE(self):  # noqa: N802
            path = self._begin("DELETE")
            if path is None:
                return
            m = _SOURCE.match(path)
            if m and int(m.group(2)) in state.sources:
                del state.sources[int(m.group(2))]
                self._send_json(200)
                return
            self._send_json(404, {"code": "not.found"})

        def log_message(self, fmt, *args):  # silence test server logs
            return

    return _Handler


@pytest.fixture()
def sumo_api():
    state = FakeSumo()
    server = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(state))
    host, port = server.server_address
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    state.base_url = f"http://{host}:{port}/api/v1"
    try:
        yield state
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=1.0)

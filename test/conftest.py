import json
import sys
from pathlib import Path

import requests

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_response(status: int, body=None) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r.encoding = "utf-8"
    r.url = "http://test.local/api"
    r._content = b"" if body is None else json.dumps(body).encode("utf-8")
    return r


class FakeHttp:
    """Stands in for requests.Session: replies from a (method, path) -> (status, body) table."""

    def __init__(self, routes: dict | None = None):
        self.routes = dict(routes or {})
        self.headers: dict[str, str] = {}
        self.calls: list[dict] = []
        self.closed = False

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        path = url.split("/api", 1)[-1]
        self.calls.append({"method": method, "path": path, "params": params, "json": json, "headers": headers or {}})
        reply = self.routes.get((method, path))
        if reply is None:
            return make_response(404, {"error": "not found"})
        if isinstance(reply, Exception):
            raise reply
        status, body = reply
        return make_response(status, body)

    def close(self):
        self.closed = True


class MemoryStore:
    def __init__(self):
        self.data: dict[str, str] = {}

    def get_value(self, key):
        return self.data.get(key)

    def set_value(self, key, value):
        self.data[key] = str(value)

    def delete_value(self, key):
        self.data.pop(key, None)


def summary_row(owner: str, period: str, income, sales=0, items=1, owner_id: int = 1, row_id: int = 1) -> dict:
    return {
        "id": row_id,
        "owner_id": owner_id,
        "owner_name": owner,
        "period": period,
        "total_sales": sales,
        "total_income": income,
        "item_count": items,
    }

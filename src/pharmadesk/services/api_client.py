from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from pharmadesk.domain.errors import FetchError, NotAuthenticatedError

log = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"
USER_KEY = "auth_user"


class ApiClient:
    """JSON-over-HTTP client for the pharmacy REST API.

    The bearer token is read from `token_store` on every request, so a login or
    logout through the session service is picked up without rebuilding the
    client. A 401 clears the stored credentials.
    """

    def __init__(self, base_url: str, token_store, timeout: float = 10.0, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.timeout = timeout
        self.http = session or requests.Session()
        self.http.headers.update({"Content-Type": "application/json"})

        self.auth = AuthEndpoints(self)
        self.inventory = InventoryEndpoints(self)
        self.sales = SalesEndpoints(self)
        self.income = IncomeEndpoints(self)
        self.devices = DeviceEndpoints(self)

    def _headers(self) -> dict[str, str]:
        token = self.token_store.get_value(TOKEN_KEY)
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _clear_credentials(self) -> None:
        self.token_store.delete_value(TOKEN_KEY)
        self.token_store.delete_value(USER_KEY)

    def request(self, method: str, path: str, *, params: Optional[dict] = None, json: Any = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            r = self.http.request(method, url, params=params, json=json, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            log.warning("api_request_failed method=%s path=%s error=%s", method, path, exc)
            raise FetchError(f"{method} {path} failed: {exc}") from exc

        if r.status_code == 401:
            self._clear_credentials()
            raise NotAuthenticatedError("Session expired or invalid. Please log in again.")

        try:
            r.raise_for_status()
        except requests.HTTPError as exc:
            detail = _error_detail(r)
            log.warning("api_http_error method=%s path=%s status=%s detail=%s", method, path, r.status_code, detail)
            raise FetchError(f"{method} {path} returned {r.status_code}: {detail}", status_code=r.status_code) from exc

        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError as exc:
            raise FetchError(f"{method} {path} returned invalid JSON.", status_code=r.status_code) from exc

    def get(self, path: str, params: Optional[dict] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, payload: Any = None) -> Any:
        return self.request("POST", path, json=payload)

    def put(self, path: str, payload: Any = None) -> Any:
        return self.request("PUT", path, json=payload)

    def patch(self, path: str, payload: Any = None) -> Any:
        return self.request("PATCH", path, json=payload)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def close(self) -> None:
        self.http.close()


def _error_detail(r: requests.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text[:200]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or body)
    return str(body)


class _Endpoints:
    def __init__(self, client: ApiClient):
        self.client = client


class AuthEndpoints(_Endpoints):
    def login(self, username: str, password: str) -> dict:
        return self.client.post("/auth/login", {"username": username, "password": password})

    def validate_token(self) -> dict:
        return self.client.post("/auth/validate-token")

    def get_profile(self) -> dict:
        return self.client.get("/auth/profile")

    def update_profile(self, data: dict) -> dict:
        return self.client.put("/auth/profile", data)

    def change_password(self, current_password: str, new_password: str) -> dict:
        return self.client.put(
            "/auth/change-password",
            {"currentPassword": current_password, "newPassword": new_password},
        )

    def list_owners(self) -> dict:
        return self.client.get("/auth/owners")

    def create_owner(self, data: dict) -> dict:
        return self.client.post("/auth/owners", data)

    def update_owner(self, owner_id: int, data: dict) -> dict:
        return self.client.put(f"/auth/owners/{int(owner_id)}", data)

    def reset_owner_password(self, owner_id: int, new_password: str) -> dict:
        return self.client.put(f"/auth/owners/{int(owner_id)}/reset-password", {"newPassword": new_password})

    def delete_owner(self, owner_id: int) -> dict:
        return self.client.delete(f"/auth/owners/{int(owner_id)}")


class InventoryEndpoints(_Endpoints):
    def list(self, **params) -> dict:
        return self.client.get("/inventory", params=params or None)

    def get(self, item_id: int) -> dict:
        return self.client.get(f"/inventory/{int(item_id)}")

    def create(self, data: dict) -> dict:
        return self.client.post("/inventory", data)

    def update(self, item_id: int, data: dict) -> dict:
        return self.client.put(f"/inventory/{int(item_id)}", data)

    def delete(self, item_id: int) -> dict:
        return self.client.delete(f"/inventory/{int(item_id)}")

    def low_stock(self) -> dict:
        return self.client.get("/inventory/low-stock")

    def categories(self) -> dict:
        return self.client.get("/inventory/categories")

    def owners(self) -> dict:
        return self.client.get("/inventory/owners")


class SalesEndpoints(_Endpoints):
    def list(self, **params) -> dict:
        return self.client.get("/sales", params=params or None)

    def get(self, sale_id: int) -> dict:
        return self.client.get(f"/sales/{int(sale_id)}")

    def create(self, data: dict) -> dict:
        return self.client.post("/sales", data)

    def mark_paid(self, sale_id: int) -> dict:
        return self.client.patch(f"/sales/{int(sale_id)}/mark-paid")


class IncomeEndpoints(_Endpoints):
    def summary(self, period: str, **params) -> dict:
        return self.client.get("/income/summary", params={"period": period, **params})

    def daily(self, **params) -> dict:
        return self.client.get("/income/daily", params=params or None)

    def monthly(self, **params) -> dict:
        return self.client.get("/income/monthly", params=params or None)

    def by_category(self, **params) -> dict:
        return self.client.get("/income/by-category", params=params or None)

    def top_selling(self, **params) -> dict:
        return self.client.get("/income/top-selling", params=params or None)

    def stats(self, **params) -> dict:
        return self.client.get("/income/stats", params=params or None)


class DeviceEndpoints(_Endpoints):
    def register(self, data: dict) -> dict:
        return self.client.post("/devices/register", data)

    def unregister(self, push_token: str) -> dict:
        return self.client.post("/devices/unregister", {"push_token": push_token})

    def my_devices(self) -> dict:
        return self.client.get("/devices/my-devices")

    def update_preferences(self, push_token: str, preferences: dict) -> dict:
        return self.client.put("/devices/preferences", {"push_token": push_token, **preferences})

    def test_notification(self, push_token: str, title: str, body: str) -> dict:
        return self.client.post("/devices/test-notification", {"push_token": push_token, "title": title, "body": body})

    def get_print_layout_config(self, push_token: Optional[str], device_id: Optional[str]) -> dict:
        params = {k: v for k, v in (("push_token", push_token), ("device_id", device_id)) if v}
        return self.client.get("/devices/print-layout-config", params=params)

    def update_print_layout_config(self, push_token: Optional[str], config: dict, device_id: Optional[str]) -> dict:
        payload: dict[str, Any] = {"print_layout_config": config}
        if push_token:
            payload["push_token"] = push_token
        if device_id:
            payload["device_id"] = device_id
        return self.client.put("/devices/print-layout-config", payload)

from __future__ import annotations

import json
import logging
from typing import Optional

from pharmadesk.domain.errors import AppError, FetchError, NotAuthenticatedError, ValidationError
from pharmadesk.services.api_client import TOKEN_KEY, USER_KEY

log = logging.getLogger(__name__)


class SessionService:
    """Authenticated session, persisted in the on-device store.

    Constructed once at startup; `logout()` tears it down.
    """

    def __init__(self, api, store, device_identity=None):
        self.api = api
        self.store = store
        self.device_identity = device_identity

    @property
    def token(self) -> Optional[str]:
        return self.store.get_value(TOKEN_KEY)

    @property
    def user(self) -> Optional[dict]:
        raw = self.store.get_value(USER_KEY)
        if not raw:
            return None
        try:
            user = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return user if isinstance(user, dict) else None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.user is not None

    def require_authenticated(self) -> None:
        if not self.is_authenticated:
            raise NotAuthenticatedError("Not authenticated.")

    def login(self, username: str, password: str) -> dict:
        username_clean = (username or "").strip()
        if not username_clean or not password:
            raise ValidationError("Username and password are required.")

        data = self.api.auth.login(username_clean, password)
        token = data.get("token") if isinstance(data, dict) else None
        owner = data.get("owner") if isinstance(data, dict) else None
        if not token or not isinstance(owner, dict):
            raise FetchError("Login response is missing token or owner.")

        self.store.set_value(TOKEN_KEY, str(token))
        self.store.set_value(USER_KEY, json.dumps(owner, ensure_ascii=False))
        log.info("login_ok username=%s", username_clean)

        if self.device_identity is not None:
            try:
                self.device_identity.register_with_server(self.api)
            except AppError as exc:
                log.warning("device_register_after_login_failed error=%s", exc)
        return owner

    def restore(self) -> Optional[dict]:
        """Re-validate stored credentials; clears them when the server rejects them."""
        if not self.token or self.user is None:
            return None
        try:
            data = self.api.auth.validate_token()
        except NotAuthenticatedError:
            self._clear()
            return None
        except FetchError as exc:
            log.warning("token_validation_failed error=%s", exc)
            self._clear()
            return None

        owner = data.get("owner") if isinstance(data, dict) else None
        if isinstance(owner, dict):
            self.store.set_value(USER_KEY, json.dumps(owner, ensure_ascii=False))
            return owner
        return self.user

    def logout(self) -> None:
        self._clear()
        log.info("logout")

    def _clear(self) -> None:
        self.store.delete_value(TOKEN_KEY)
        self.store.delete_value(USER_KEY)

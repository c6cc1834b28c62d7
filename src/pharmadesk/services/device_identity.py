from __future__ import annotations

import logging
import platform
import sqlite3
import uuid
from typing import Optional

from pharmadesk.domain.errors import DeviceIdentityError
from pharmadesk.domain.models import DeviceIdentity

log = logging.getLogger(__name__)

DEVICE_ID_KEY = "device_id"
PUSH_TOKEN_KEY = "push_token"


class DeviceIdentityService:
    def __init__(self, store):
        self.store = store

    def device_id(self) -> Optional[str]:
        """Stable per-install id; generated on first use. None if storage is unavailable."""
        try:
            existing = self.store.get_value(DEVICE_ID_KEY)
            if existing:
                return existing
            new_id = f"{platform.system().lower() or 'desktop'}-{uuid.uuid4()}"
            self.store.set_value(DEVICE_ID_KEY, new_id)
            return new_id
        except sqlite3.Error as exc:
            log.warning("device_id_unavailable error=%s", exc)
            return None

    def push_token(self) -> Optional[str]:
        try:
            return self.store.get_value(PUSH_TOKEN_KEY)
        except sqlite3.Error as exc:
            log.warning("push_token_unavailable error=%s", exc)
            return None

    def set_push_token(self, token: str) -> None:
        self.store.set_value(PUSH_TOKEN_KEY, token.strip())

    def clear_push_token(self) -> None:
        self.store.delete_value(PUSH_TOKEN_KEY)

    def identity(self) -> Optional[DeviceIdentity]:
        device_id = self.device_id()
        push_token = self.push_token()
        if not device_id and not push_token:
            return None
        return DeviceIdentity(device_id=device_id, push_token=push_token)

    def register_with_server(self, api) -> bool:
        ident = self.identity()
        if ident is None:
            raise DeviceIdentityError("No identification available for this device.")
        if not ident.push_token:
            log.info("device_register_skipped reason=no_push_token")
            return False
        api.devices.register(
            {
                "push_token": ident.push_token,
                "device_id": ident.device_id,
                "device_name": platform.node() or "Desktop",
                "device_model": platform.platform(),
                "platform": platform.system().lower(),
            }
        )
        log.info("device_registered device_id=%s", ident.device_id)
        return True

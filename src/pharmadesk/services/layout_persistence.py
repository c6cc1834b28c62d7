from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional, Protocol

from pharmadesk.domain.errors import (
    DeviceIdentityError,
    FetchError,
    NotAuthenticatedError,
    StorageReadError,
    StorageWriteError,
)

log = logging.getLogger(__name__)

LAYOUT_KEY = "print_layout_config"


class LayoutPersistence(Protocol):
    def load(self) -> Optional[dict]: ...
    def save(self, config: dict) -> None: ...


class LocalLayoutPersistence:
    """Layout stored as a JSON blob in the on-device key-value store. Works offline and unauthenticated."""

    def __init__(self, repo, key: str = LAYOUT_KEY):
        self.repo = repo
        self.key = key

    def load(self) -> Optional[dict]:
        try:
            raw = self.repo.get_value(self.key)
        except sqlite3.Error as exc:
            raise StorageReadError(f"Could not read '{self.key}': {exc}") from exc
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageReadError(f"Stored '{self.key}' is not valid JSON.") from exc
        if not isinstance(data, dict):
            raise StorageReadError(f"Stored '{self.key}' is not a JSON object.")
        return data

    def save(self, config: dict) -> None:
        try:
            self.repo.set_value(self.key, json.dumps(config, ensure_ascii=False))
        except sqlite3.Error as exc:
            raise StorageWriteError(f"Could not write '{self.key}': {exc}") from exc


class ServerLayoutPersistence:
    """Layout attached to this device's record on the server."""

    def __init__(self, api, identity, session):
        self.api = api
        self.identity = identity
        self.session = session

    def load(self) -> Optional[dict]:
        if not self.session.is_authenticated:
            return None
        ident = self.identity.identity()
        if ident is None:
            log.info("layout_load_skipped reason=no_device_identity")
            return None
        try:
            data = self.api.devices.get_print_layout_config(ident.push_token, ident.device_id)
        except (FetchError, NotAuthenticatedError) as exc:
            raise StorageReadError(f"Could not load print layout from server: {exc}") from exc

        device = data.get("device") if isinstance(data, dict) else None
        config = device.get("print_layout_config") if isinstance(device, dict) else None
        return config if isinstance(config, dict) else None

    def save(self, config: dict) -> None:
        if not self.session.is_authenticated:
            raise NotAuthenticatedError("Not authenticated")
        ident = self.identity.identity()
        if ident is None:
            raise DeviceIdentityError("No identification available for this device")
        try:
            self.api.devices.update_print_layout_config(ident.push_token, config, ident.device_id)
        except FetchError as exc:
            raise StorageWriteError(f"Could not save print layout to server: {exc}") from exc


def build_layout_persistence(mode: str, *, repo, api=None, identity=None, session=None) -> LayoutPersistence:
    if mode == "local":
        return LocalLayoutPersistence(repo)
    if mode == "server":
        if api is None or identity is None or session is None:
            raise ValueError("Server layout persistence needs api, identity and session.")
        return ServerLayoutPersistence(api, identity, session)
    raise ValueError(f"Unknown layout persistence mode: {mode}")

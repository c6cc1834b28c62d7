from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import sys

from pharmadesk.domain.errors import ValidationError


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path
    receipts_dir: Path


@dataclass(frozen=True)
class ApiSettings:
    base_url: str = "http://localhost:5000/api"
    timeout: float = 10.0
    layout_mode: str = "local"
    agent_ports: tuple[int, ...] = (3000, 3001, 3002)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "ApiSettings":
        env = os.environ if environ is None else environ
        base_url = (env.get("PHARMADESK_API_URL") or cls.base_url).strip().rstrip("/")

        try:
            timeout = float(env.get("PHARMADESK_API_TIMEOUT") or cls.timeout)
        except ValueError as exc:
            raise ValidationError("PHARMADESK_API_TIMEOUT must be a number of seconds.") from exc
        if timeout <= 0:
            raise ValidationError("PHARMADESK_API_TIMEOUT must be > 0.")

        mode = (env.get("PHARMADESK_LAYOUT_MODE") or cls.layout_mode).strip().lower()
        if mode not in {"local", "server"}:
            raise ValidationError(f"PHARMADESK_LAYOUT_MODE must be 'local' or 'server'. Received: {mode}")

        raw_ports = env.get("PHARMADESK_AGENT_PORTS")
        ports = cls.agent_ports
        if raw_ports:
            try:
                ports = tuple(int(p) for p in raw_ports.split(",") if p.strip())
            except ValueError as exc:
                raise ValidationError("PHARMADESK_AGENT_PORTS must be a comma separated list of ports.") from exc

        return cls(base_url=base_url, timeout=timeout, layout_mode=mode, agent_ports=ports)


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "PharmaDesk", base: Path | None = None) -> AppPaths:
    if base is None:
        if sys.platform.startswith("win"):
            base = _windows_appdata() / app_name
        elif sys.platform == "darwin":
            base = _mac_app_support() / app_name
        else:
            base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    receipts = base / "receipts"
    db = base / "pharmadesk.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)
    receipts.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs, receipts_dir=receipts)

from __future__ import annotations

import logging
import webbrowser
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Optional, Protocol

import requests

from pharmadesk.domain.errors import PrinterError, ValidationError
from pharmadesk.domain.models import ReceiptData
from pharmadesk.domain.print_layout import PrintLayoutConfig
from pharmadesk.services.receipt_service import (
    receipt_lines,
    render_receipt_html,
    validate_receipt_data,
)

log = logging.getLogger("pharmadesk.printing")


class ReceiptPrinter(Protocol):
    name: str

    def print_receipt(self, data: ReceiptData) -> None: ...

    def close(self) -> None: ...


def _require_valid(data: ReceiptData) -> None:
    if not validate_receipt_data(data):
        raise ValidationError("Receipt needs a store name, sale id, date, at least one item and a positive total.")


class AgentPrinter:
    """Prints through a local ESC/POS printing agent listening on localhost."""

    name = "agent"

    def __init__(
        self,
        ports: Iterable[int] = (3000, 3001, 3002),
        host: str = "localhost",
        session: requests.Session | None = None,
        probe_timeout: float = 2.0,
        timeout: float = 10.0,
    ):
        self.ports = tuple(ports)
        self.host = host
        self._owns_session = session is None
        self.http = session or requests.Session()
        self.probe_timeout = probe_timeout
        self.timeout = timeout
        self.agent_url: Optional[str] = None

    def find_agent(self) -> Optional[str]:
        for port in self.ports:
            url = f"http://{self.host}:{port}"
            try:
                r = self.http.get(f"{url}/health", timeout=self.probe_timeout)
                if r.ok and r.json().get("status") == "ok":
                    self.agent_url = url
                    log.info("print_agent_found url=%s", url)
                    return url
            except (requests.RequestException, ValueError, AttributeError):
                continue
        self.agent_url = None
        log.info("print_agent_unavailable ports=%s", ",".join(str(p) for p in self.ports))
        return None

    def print_receipt(self, data: ReceiptData) -> None:
        _require_valid(data)
        url = self.find_agent()
        if url is None:
            raise PrinterError("Printing agent is not available.")

        payload = {**data.to_payload(), "useImageMode": True}
        try:
            r = self.http.post(f"{url}/print", json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise PrinterError(f"Printing agent request failed: {exc}") from exc

        try:
            body = r.json()
        except ValueError:
            body = {}
        if not r.ok:
            raise PrinterError(str(body.get("error") or "Failed to print via agent"))
        if not body.get("success"):
            raise PrinterError(str(body.get("error") or "Print failed"))
        log.info("receipt_printed printer=agent sale_id=%s", data.sale_id)

    def close(self) -> None:
        if self._owns_session:
            self.http.close()


class BrowserPrinter:
    """Writes an HTML receipt and opens it so the system print dialog can take over."""

    name = "browser"

    def __init__(
        self,
        output_dir: Path | str,
        config_source: Callable[[], PrintLayoutConfig],
        opener: Callable[[str], bool] = webbrowser.open,
    ):
        self.output_dir = Path(output_dir)
        self.config_source = config_source
        self.opener = opener

    def write_receipt(self, data: ReceiptData) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"receipt_{data.sale_id}.html"
        path.write_text(render_receipt_html(data, self.config_source()), encoding="utf-8")
        return path

    def print_receipt(self, data: ReceiptData) -> None:
        _require_valid(data)
        try:
            path = self.write_receipt(data)
        except OSError as exc:
            raise PrinterError(f"Could not write receipt file: {exc}") from exc
        if not self.opener(path.resolve().as_uri()):
            raise PrinterError(f"Could not open a browser for {path}")
        log.info("receipt_printed printer=browser sale_id=%s path=%s", data.sale_id, path)

    def close(self) -> None:
        pass


ESC = b"\x1b"
GS = b"\x1d"
_ALIGN = {"left": b"\x00", "center": b"\x01", "right": b"\x02"}


class EscPosPrinter:
    """Streams an ESC/POS text receipt to an already-open printer connection."""

    name = "escpos"

    def __init__(self, stream: BinaryIO, width: int = 32, encoding: str = "cp437"):
        self.stream = stream
        self.width = width
        self.encoding = encoding

    def render(self, data: ReceiptData) -> bytes:
        out = bytearray(ESC + b"@")
        for align, text, bold in receipt_lines(data, self.width):
            out += ESC + b"a" + _ALIGN[align]
            out += ESC + b"E" + (b"\x01" if bold else b"\x00")
            out += text.encode(self.encoding, errors="replace") + b"\n"
        out += ESC + b"E\x00" + ESC + b"a\x00"
        out += ESC + b"d\x03"
        out += GS + b"V\x42\x00"
        return bytes(out)

    def print_receipt(self, data: ReceiptData) -> None:
        _require_valid(data)
        try:
            self.stream.write(self.render(data))
            self.stream.flush()
        except OSError as exc:
            raise PrinterError(f"Printer connection failed: {exc}") from exc
        log.info("receipt_printed printer=escpos sale_id=%s", data.sale_id)

    def close(self) -> None:
        # the stream belongs to whoever opened the printer connection
        pass


class FallbackPrinter:
    """Tries each printer in order until one succeeds."""

    name = "fallback"

    def __init__(self, printers: Iterable[ReceiptPrinter]):
        self.printers = list(printers)

    def print_receipt(self, data: ReceiptData) -> None:
        _require_valid(data)
        errors = []
        for printer in self.printers:
            try:
                printer.print_receipt(data)
                return
            except PrinterError as exc:
                errors.append(f"{printer.name}: {exc}")
                log.warning("printer_failed printer=%s error=%s", printer.name, exc)
        raise PrinterError("All printers failed. " + "; ".join(errors))

    def close(self) -> None:
        for printer in self.printers:
            printer.close()


def select_printer(
    platform_name: str,
    *,
    output_dir: Path | str,
    config_source: Callable[[], PrintLayoutConfig],
    agent_ports: Iterable[int] = (3000, 3001, 3002),
    stream: BinaryIO | None = None,
) -> ReceiptPrinter:
    """Pick the printing chain for the runtime platform.

    ``native`` needs an open printer `stream`; ``web`` and ``desktop`` try the
    local agent first and fall back to the browser print dialog.
    """
    platform_name = platform_name.strip().lower()
    if platform_name == "native":
        if stream is None:
            raise PrinterError("Native printing needs a connected printer.")
        return EscPosPrinter(stream)
    if platform_name in {"web", "desktop"}:
        chain: list[ReceiptPrinter] = [AgentPrinter(agent_ports), BrowserPrinter(output_dir, config_source)]
        if stream is not None:
            chain.insert(1, EscPosPrinter(stream))
        return FallbackPrinter(chain)
    raise ValidationError(f"Unknown printing platform: '{platform_name}'")

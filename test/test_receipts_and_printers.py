import io
from decimal import Decimal

import pytest
import requests

from conftest import make_response
from pharmadesk.domain.errors import PrinterError, ValidationError
from pharmadesk.domain.print_layout import DEFAULT_PRINT_LAYOUT, PRINT_LAYOUT_PRESETS
from pharmadesk.services.printer_service import (
    AgentPrinter,
    BrowserPrinter,
    EscPosPrinter,
    FallbackPrinter,
    select_printer,
)
from pharmadesk.services.receipt_service import (
    format_price,
    format_receipt_data,
    format_sale_date,
    payment_method_label,
    receipt_lines,
    render_receipt_html,
    render_receipt_text,
    validate_receipt_data,
)

SALE = {
    "id": 42,
    "sale_date": "2024-01-05T14:30:00",
    "customer_name": "Ko Aung",
    "customer_phone": "",
    "total_amount": "3500.00",
    "payment_method": "cash",
    "notes": None,
    "items": [
        {"item_name": "Paracetamol 500mg", "quantity": 2, "unit_price": "500", "total_price": "1000"},
        {"item_name": "Vitamin C effervescent tablets", "quantity": 1, "unit_price": "2500", "total_price": "2500"},
    ],
}


class FakeAgentHttp:
    def __init__(self, health: dict, print_reply=None):
        self.health = health
        self.print_reply = print_reply
        self.posts = []

    def get(self, url, timeout=None):
        port = int(url.split(":")[2].split("/")[0])
        reply = self.health.get(port)
        if reply is None:
            raise requests.ConnectionError("refused")
        return make_response(200, reply)

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json))
        status, body = self.print_reply
        return make_response(status, body)


class StubPrinter:
    def __init__(self, name, error=None):
        self.name = name
        self.error = error
        self.printed = []

    def print_receipt(self, data):
        if self.error:
            raise PrinterError(self.error)
        self.printed.append(data.sale_id)


def test_format_receipt_data_from_sale_record():
    data = format_receipt_data(SALE, address="No. 1 Main Road")

    assert data.store_name == "Hein Pharmacy"
    assert data.store_address == "No. 1 Main Road"
    assert data.sale_id == 42
    assert data.sale_date == "Jan 5, 2024, 02:30 PM"
    assert data.customer_phone is None
    assert data.total_amount == Decimal("3500.00")
    assert data.items[1].unit_price == Decimal("2500")
    assert validate_receipt_data(data)


def test_malformed_sale_is_rejected():
    with pytest.raises(ValidationError):
        format_receipt_data({"id": 1, "sale_date": "2024-01-05", "items": [{"quantity": 1}]})
    with pytest.raises(ValidationError):
        format_sale_date("last tuesday")


def test_receipt_without_items_is_invalid():
    data = format_receipt_data({**SALE, "items": []})
    assert not validate_receipt_data(data)
    with pytest.raises(ValidationError):
        EscPosPrinter(io.BytesIO()).print_receipt(data)


def test_price_and_payment_labels():
    assert format_price(Decimal("1500.4")) == "1500 Ks"
    assert payment_method_label("cash") == "Cash"
    assert payment_method_label("mobile") == "Mobile"


def test_text_receipt_fits_paper_width():
    data = format_receipt_data(SALE)
    text = render_receipt_text(data, width=32)
    lines = text.splitlines()

    assert all(len(line) <= 32 for line in lines)
    assert lines[0].strip() == "Hein Pharmacy"
    assert any(line.startswith("Vitamin C eff...") for line in lines)
    assert any(line.startswith("TOTAL:") and line.endswith("3500 Ks") for line in lines)
    bold = [text for _align, text, is_bold in receipt_lines(data) if is_bold]
    assert bold[0] == "Hein Pharmacy"


def test_html_receipt_uses_layout_sizes():
    data = format_receipt_data({**SALE, "customer_name": "<b>Ko</b>"})

    page = render_receipt_html(data, PRINT_LAYOUT_PRESETS["large"])

    assert "font-size: 48px" in page
    assert f"width: {DEFAULT_PRINT_LAYOUT.paper_width}px" in page
    assert "&lt;b&gt;Ko&lt;/b&gt;" in page
    assert "3500 Ks" in page


def test_escpos_bytes_frame_the_receipt():
    stream = io.BytesIO()
    EscPosPrinter(stream).print_receipt(format_receipt_data(SALE))

    out = stream.getvalue()
    assert out.startswith(b"\x1b@")
    assert out.endswith(b"\x1dV\x42\x00")
    assert b"Hein Pharmacy" in out


def test_agent_printer_probes_ports_in_order_and_posts_payload():
    http = FakeAgentHttp({3001: {"status": "ok"}}, print_reply=(200, {"success": True}))
    printer = AgentPrinter(session=http)

    printer.print_receipt(format_receipt_data(SALE))

    url, payload = http.posts[0]
    assert url == "http://localhost:3001/print"
    assert payload["useImageMode"] is True
    assert payload["saleId"] == 42
    assert payload["items"][0]["unitPrice"] == 500.0


def test_agent_printer_reports_failures():
    data = format_receipt_data(SALE)

    with pytest.raises(PrinterError, match="not available"):
        AgentPrinter(session=FakeAgentHttp({})).print_receipt(data)

    busy = FakeAgentHttp({3000: {"status": "ok"}}, print_reply=(500, {"error": "Paper out"}))
    with pytest.raises(PrinterError, match="Paper out"):
        AgentPrinter(session=busy).print_receipt(data)


def test_browser_printer_writes_html_and_opens_it(tmp_path):
    opened = []
    printer = BrowserPrinter(tmp_path, lambda: DEFAULT_PRINT_LAYOUT, opener=lambda url: opened.append(url) or True)

    printer.print_receipt(format_receipt_data(SALE))

    out = tmp_path / "receipt_42.html"
    assert out.exists()
    assert opened == [out.resolve().as_uri()]


def test_fallback_uses_next_printer_and_aggregates_errors():
    data = format_receipt_data(SALE)
    ok = StubPrinter("browser")
    FallbackPrinter([StubPrinter("agent", "offline"), ok]).print_receipt(data)
    assert ok.printed == [42]

    with pytest.raises(PrinterError, match="agent: offline; browser: no display"):
        FallbackPrinter([StubPrinter("agent", "offline"), StubPrinter("browser", "no display")]).print_receipt(data)


def test_select_printer_by_platform(tmp_path):
    def source():
        return DEFAULT_PRINT_LAYOUT

    desktop = select_printer("desktop", output_dir=tmp_path, config_source=source)
    assert [p.name for p in desktop.printers] == ["agent", "browser"]

    web = select_printer("web", output_dir=tmp_path, config_source=source, stream=io.BytesIO())
    assert [p.name for p in web.printers] == ["agent", "escpos", "browser"]

    assert isinstance(select_printer("native", output_dir=tmp_path, config_source=source, stream=io.BytesIO()), EscPosPrinter)
    with pytest.raises(PrinterError):
        select_printer("native", output_dir=tmp_path, config_source=source)
    with pytest.raises(ValidationError):
        select_printer("fax", output_dir=tmp_path, config_source=source)


def test_agent_printer_closes_only_its_own_session(monkeypatch):
    borrowed = FakeAgentHttp({})
    AgentPrinter(session=borrowed).close()

    own = AgentPrinter()
    closed = []
    monkeypatch.setattr(own.http, "close", lambda: closed.append(True))
    FallbackPrinter([own, EscPosPrinter(io.BytesIO())]).close()
    assert closed == [True]

from __future__ import annotations

import html
from datetime import datetime
from typing import Optional

from pharmadesk.domain.errors import ValidationError
from pharmadesk.domain.models import ReceiptData, ReceiptItem, to_decimal
from pharmadesk.domain.print_layout import PrintLayoutConfig, receipt_metrics

DEFAULT_STORE_NAME = "Hein Pharmacy"
CURRENCY = "Ks"
PAYMENT_METHOD_LABELS = {"cash": "Cash", "credit": "Credit"}

# item, qty, price, total
TEXT_COLUMNS = (16, 4, 4, 8)


def format_price(value: object, currency: str = CURRENCY) -> str:
    return f"{to_decimal(value):.0f} {currency}"


def format_sale_date(value: str) -> str:
    try:
        d = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"Invalid sale date: '{value}'") from exc
    return f"{d.strftime('%b')} {d.day}, {d.year}, {d.strftime('%I:%M %p')}"


def payment_method_label(method: str) -> str:
    method = (method or "").strip()
    return PAYMENT_METHOD_LABELS.get(method.lower(), method[:1].upper() + method[1:])


def format_receipt_data(
    sale: dict,
    store_name: Optional[str] = None,
    address: Optional[str] = None,
    phone: Optional[str] = None,
) -> ReceiptData:
    """Build receipt data from a sale record as returned by ``GET /sales/{id}``."""
    try:
        items = [
            ReceiptItem(
                name=str(it["item_name"]),
                quantity=int(it["quantity"]),
                unit_price=to_decimal(it["unit_price"]),
                total=to_decimal(it["total_price"]),
            )
            for it in sale.get("items") or []
        ]
        sale_id = int(sale["id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Malformed sale record: {exc}") from exc

    return ReceiptData(
        store_name=store_name or DEFAULT_STORE_NAME,
        store_address=address,
        store_phone=phone,
        sale_id=sale_id,
        sale_date=format_sale_date(sale.get("sale_date", "")),
        customer_name=sale.get("customer_name") or None,
        customer_phone=sale.get("customer_phone") or None,
        items=items,
        total_amount=to_decimal(sale.get("total_amount")),
        payment_method=str(sale.get("payment_method") or ""),
        notes=sale.get("notes") or None,
    )


def validate_receipt_data(data: ReceiptData) -> bool:
    if not data.store_name or not data.sale_id or not data.sale_date:
        return False
    if not data.items:
        return False
    if data.total_amount <= 0:
        return False
    return True


def _fit(text: str, width: int, align: str) -> str:
    if len(text) > width:
        text = text[:width]
    if align == "right":
        return text.rjust(width)
    if align == "center":
        return text.center(width)
    return text.ljust(width)


def _item_name(name: str, width: int) -> str:
    return name if len(name) <= width else name[: width - 3] + "..."


def receipt_lines(data: ReceiptData, width: int = 32) -> list[tuple[str, str, bool]]:
    """Receipt as ``(align, text, bold)`` lines for fixed-width printers."""
    name_w, qty_w, price_w, total_w = TEXT_COLUMNS
    name_w += max(width - sum(TEXT_COLUMNS), 0)
    heavy = "=" * width
    light = "-" * width

    lines: list[tuple[str, str, bool]] = [("center", data.store_name, True)]
    if data.store_address:
        lines.append(("center", data.store_address, False))
    if data.store_phone:
        lines.append(("center", f"Tel: {data.store_phone}", False))
    lines.append(("left", heavy, False))

    lines.append(("left", f"Receipt #: {data.sale_id}", False))
    lines.append(("left", f"Date: {data.sale_date}", False))
    if data.customer_name:
        lines.append(("left", f"Customer: {data.customer_name}", False))
    if data.customer_phone:
        lines.append(("left", f"Phone: {data.customer_phone}", False))
    lines.append(("left", heavy, False))

    header = _fit("Item", name_w, "left") + _fit("Qty", qty_w, "center") + _fit("Price", price_w, "right") + _fit("Total", total_w, "right")
    lines.append(("left", header, True))
    lines.append(("left", light, False))
    for it in data.items:
        row = (
            _fit(_item_name(it.name, name_w), name_w, "left")
            + _fit(str(it.quantity), qty_w, "center")
            + _fit(f"{it.unit_price:.0f}", price_w, "right")
            + _fit(f"{it.total:.0f}", total_w, "right")
        )
        lines.append(("left", row, False))
    lines.append(("left", heavy, False))

    total_label = "TOTAL:"
    lines.append(("left", total_label + _fit(format_price(data.total_amount), width - len(total_label), "right"), True))
    lines.append(("left", light, False))
    lines.append(("left", f"Payment Method: {payment_method_label(data.payment_method)}", False))
    if data.notes:
        lines.append(("left", "", False))
        lines.append(("left", f"Notes: {data.notes}", False))
    lines.append(("left", "", False))
    lines.append(("center", "Thank you for your business!", False))
    lines.append(("left", heavy, False))
    return lines


def render_receipt_text(data: ReceiptData, width: int = 32) -> str:
    return "\n".join(_fit(text, width, align).rstrip() for align, text, _bold in receipt_lines(data, width)) + "\n"


def render_receipt_html(data: ReceiptData, config: PrintLayoutConfig) -> str:
    m = receipt_metrics(config, scaled=False)
    fs = m.font_sizes
    mg = m.margins
    lh = m.line_heights
    cw = config.column_widths
    e = html.escape

    def pct(v: float) -> str:
        return f"{v * 100:.1f}%"

    info = [f"<div class='info-row'><span>Receipt #</span><span>{data.sale_id}</span></div>",
            f"<div class='info-row'><span>Date</span><span>{e(data.sale_date)}</span></div>"]
    if data.customer_name:
        info.append(f"<div class='info-row'><span>Customer</span><span>{e(data.customer_name)}</span></div>")
    if data.customer_phone:
        info.append(f"<div class='info-row'><span>Phone</span><span>{e(data.customer_phone)}</span></div>")

    rows = "\n".join(
        f"<tr><td class='name'>{e(it.name)}</td><td class='qty'>{it.quantity}</td>"
        f"<td class='price'>{it.unit_price:.0f}</td><td class='total'>{it.total:.0f}</td></tr>"
        for it in data.items
    )
    store_info = "".join(
        f"<div class='store-info'>{e(v)}</div>" for v in (data.store_address, data.store_phone) if v
    )
    notes = f"<div class='info-row'><span>Notes</span><span>{e(data.notes)}</span></div>" if data.notes else ""

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>Receipt #{data.sale_id}</title>
<style>
  body {{ margin: 0 auto; width: {m.width}px; padding: {m.padding}px; font-family: 'Noto Sans Myanmar', 'Courier New', monospace;
         font-size: {fs.normal}px; line-height: {lh.default}; }}
  .store-name {{ text-align: center; font-weight: bold; font-size: {fs.store_name}px; }}
  .store-info {{ text-align: center; font-size: {fs.store_info}px; }}
  .divider {{ border-top: 1px dashed #000; margin: {mg.divider_vertical}px 0; }}
  .info {{ margin: {mg.info_section}px 0; }}
  .info-row {{ display: flex; justify-content: space-between; margin: {mg.info_row}px 0; }}
  table {{ width: 100%; border-collapse: collapse; }}
  th {{ font-size: {fs.section_title}px; padding-bottom: {mg.items_header_bottom}px; border-bottom: 1px solid #000; }}
  td {{ padding: {mg.item_row}px 0; }}
  td.name {{ line-height: {lh.item_name}; }}
  .name {{ width: {pct(cw.name)}; text-align: left; }}
  .qty {{ width: {pct(cw.quantity)}; text-align: center; }}
  .price {{ width: {pct(cw.price)}; text-align: right; }}
  .total {{ width: {pct(cw.total)}; text-align: right; }}
  .total-row {{ display: flex; justify-content: space-between; font-weight: bold; font-size: {fs.total}px; margin: {mg.total_row}px 0; }}
  .footer {{ text-align: center; font-size: {fs.small}px; line-height: {lh.footer}; margin-top: {mg.footer_top}px; margin-bottom: {mg.footer_bottom}px; }}
  @media print {{ .no-print {{ display: none; }} }}
</style>
</head>
<body>
<div class="store-name">{e(data.store_name)}</div>
{store_info}
<div class="divider"></div>
<div class="info">{''.join(info)}</div>
<div class="divider"></div>
<table>
<thead><tr><th class="name">Item</th><th class="qty">Qty</th><th class="price">Price</th><th class="total">Total</th></tr></thead>
<tbody>
{rows}
</tbody>
</table>
<div class="divider"></div>
<div class="total-row"><span>TOTAL</span><span>{e(format_price(data.total_amount))}</span></div>
<div class="info-row"><span>Payment Method</span><span>{e(payment_method_label(data.payment_method))}</span></div>
{notes}
<div class="footer">Thank you for your business!</div>
<div class="no-print"><button onclick="window.print()">Print</button></div>
<script>window.onload = function () {{ window.print(); }};</script>
</body>
</html>
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

from pharmadesk.domain.errors import ValidationError


def to_decimal(value: object) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid amount: {value!r}") from exc


@dataclass(frozen=True)
class IncomeSummaryRow:
    id: int
    owner_id: int
    owner_name: str
    period: str
    total_sales: Decimal
    total_income: Decimal
    item_count: int

    @classmethod
    def from_api(cls, data: dict) -> "IncomeSummaryRow":
        period = str(data.get("period") or "").strip()
        if not period:
            raise ValidationError(f"Income summary row without period: {data!r}")
        try:
            return cls(
                id=int(data.get("id") or 0),
                owner_id=int(data.get("owner_id") or 0),
                owner_name=str(data.get("owner_name") or ""),
                period=period,
                total_sales=to_decimal(data.get("total_sales")),
                total_income=to_decimal(data.get("total_income")),
                item_count=int(data.get("item_count") or 0),
            )
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed income summary row: {data!r}") from exc


@dataclass(frozen=True)
class AggregatedPeriodEntry:
    period_key: str
    owner_name: str
    total_income: Decimal
    total_sales: Decimal
    item_count: int


@dataclass(frozen=True)
class PeriodTotals:
    period_key: str
    label: str
    total_income: Decimal
    total_sales: Decimal
    item_count: int


@dataclass(frozen=True)
class TrendDataset:
    owner_name: Optional[str]
    data: list[Decimal]
    color: str


@dataclass(frozen=True)
class TrendSeries:
    labels: list[str]
    datasets: list[TrendDataset]
    period_keys: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class OwnerSeries:
    """Bar/pie data for the current period, index-aligned with `owners`."""

    labels: list[str]
    owners: list[str]
    data: list[Decimal]
    colors: list[str]


@dataclass(frozen=True)
class DeviceIdentity:
    device_id: Optional[str]
    push_token: Optional[str]


@dataclass(frozen=True)
class ReceiptItem:
    name: str
    quantity: int
    unit_price: Decimal
    total: Decimal


@dataclass(frozen=True)
class ReceiptData:
    store_name: str
    sale_id: int
    sale_date: str
    items: list[ReceiptItem]
    total_amount: Decimal
    payment_method: str
    store_address: Optional[str] = None
    store_phone: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None

    def to_payload(self) -> dict:
        return {
            "storeName": self.store_name,
            "storeAddress": self.store_address,
            "storePhone": self.store_phone,
            "saleId": self.sale_id,
            "saleDate": self.sale_date,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "items": [
                {
                    "name": it.name,
                    "quantity": it.quantity,
                    "unitPrice": float(it.unit_price),
                    "total": float(it.total),
                }
                for it in self.items
            ],
            "totalAmount": float(self.total_amount),
            "paymentMethod": self.payment_method,
            "notes": self.notes,
        }

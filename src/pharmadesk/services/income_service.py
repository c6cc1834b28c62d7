from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from pharmadesk.domain.errors import AppError, FetchError, ValidationError
from pharmadesk.domain.models import (
    AggregatedPeriodEntry,
    IncomeSummaryRow,
    OwnerSeries,
    PeriodTotals,
    TrendSeries,
)
from pharmadesk.services import income_aggregator as agg

log = logging.getLogger("pharmadesk.income")


@dataclass(frozen=True)
class FetchTicket:
    number: int
    granularity: str


class IncomeService:
    """Income summaries for one selected granularity and optional owner filter.

    Every fetch gets a ticket; only the response for the latest ticket may
    replace `rows`. Responses to superseded requests are dropped, so
    overlapping refreshes cannot leave stale data on screen.
    """

    def __init__(self, api, clock: Callable[[], date] = date.today):
        self.api = api
        self.clock = clock
        self.rows: list[IncomeSummaryRow] = []
        self.granularity = "daily"
        self.owner_filter: Optional[str] = None
        self.last_error: Optional[AppError] = None
        self._ticket = 0
        self._lock = threading.Lock()

    def begin_fetch(self, granularity: str) -> FetchTicket:
        agg.check_granularity(granularity)
        with self._lock:
            self._ticket += 1
            return FetchTicket(self._ticket, granularity)

    def _is_current(self, ticket: FetchTicket) -> bool:
        return ticket.number == self._ticket

    def complete_fetch(self, ticket: FetchTicket, payload: dict) -> bool:
        rows = _parse_summaries(payload)
        with self._lock:
            if not self._is_current(ticket):
                log.warning("income_response_stale ticket=%s latest=%s period=%s", ticket.number, self._ticket, ticket.granularity)
                return False
            self.rows = rows
            self.granularity = ticket.granularity
            self.last_error = None
        log.info("income_loaded period=%s rows=%s", ticket.granularity, len(rows))
        return True

    def fail_fetch(self, ticket: FetchTicket, error: AppError) -> bool:
        with self._lock:
            if not self._is_current(ticket):
                return False
            self.last_error = error
        log.warning("income_fetch_failed period=%s error=%s keeping_rows=%s", ticket.granularity, error, len(self.rows))
        return True

    def refresh(self, granularity: Optional[str] = None) -> list[IncomeSummaryRow]:
        ticket = self.begin_fetch(granularity or self.granularity)
        try:
            payload = self.api.income.summary(ticket.granularity)
            self.complete_fetch(ticket, payload)
        except AppError as exc:
            self.fail_fetch(ticket, exc)
            raise
        return self.rows

    def set_owner_filter(self, owner: Optional[str]) -> None:
        self.owner_filter = owner or None

    # ---------- derived views ----------
    def entries(self) -> list[AggregatedPeriodEntry]:
        return agg.aggregate(self.rows, self.granularity)

    def owners(self) -> list[str]:
        return agg.owner_names(self.entries())

    def detail_entries(self) -> list[AggregatedPeriodEntry]:
        return agg.entries_for_owner(self.entries(), self.owner_filter)

    def current_slice(self) -> list[AggregatedPeriodEntry]:
        return agg.current_period_slice(self.entries(), self.granularity, self.clock())

    def totals(self) -> PeriodTotals:
        return agg.current_period_totals(self.entries(), self.granularity, self.clock())

    def trend(self, metric: str = "total_income") -> TrendSeries:
        return agg.trend_series(self.entries(), self.granularity, self.owner_filter, metric=metric)

    def owner_series(self, metric: str = "total_income", limit: Optional[int] = None, max_label_length: int = 10) -> OwnerSeries:
        return agg.current_period_series(
            self.entries(),
            self.granularity,
            self.clock(),
            metric=metric,
            limit=limit,
            max_label_length=max_label_length,
        )

    # ---------- export ----------
    def export_excel(self, path: str) -> None:
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
            ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        entries = self.entries()
        totals = agg.current_period_totals(entries, self.granularity, self.clock())
        income = agg.current_period_series(entries, self.granularity, self.clock(), metric="total_income")
        sales = agg.current_period_series(entries, self.granularity, self.clock(), metric="total_sales")

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = f"Income summary ({self.granularity})"
        ws["A1"].font = Font(bold=True, size=14)

        ws["A3"] = "Period"
        ws["B3"] = f"{totals.label} ({totals.period_key})"
        ws["A4"] = "Total income"
        ws["B4"] = float(totals.total_income)
        money(ws["B4"])
        ws["A5"] = "Total sales"
        ws["B5"] = float(totals.total_sales)
        money(ws["B5"])
        ws["A6"] = "Items sold"
        ws["B6"] = int(totals.item_count)

        ws.append([])
        ws.append(["Owner", "Income", "Sales"])
        header_row = ws.max_row
        bold_row(ws, header_row)
        for owner, inc, sal in zip(income.owners, income.data, sales.data):
            ws.append([owner, float(inc), float(sal)])
            money(ws[f"B{ws.max_row}"])
            money(ws[f"C{ws.max_row}"])
        set_widths(ws, {"A": 28, "B": 34, "C": 18})

        # -------- 2) Periods --------
        ws2 = wb.create_sheet("Periods")
        ws2.append(["Period", "Owner", "Income", "Sales", "Items"])
        bold_row(ws2, 1)
        for e in entries:
            ws2.append([e.period_key, e.owner_name, float(e.total_income), float(e.total_sales), int(e.item_count)])
            money(ws2[f"C{ws2.max_row}"])
            money(ws2[f"D{ws2.max_row}"])
        ws2.freeze_panes = "A2"
        set_widths(ws2, {"A": 14, "B": 28, "C": 16, "D": 16, "E": 10})
        if ws2.max_row >= 2:
            add_table(ws2, "IncomePeriods", 1, 1, ws2.max_row, 5)

        wb.save(path)
        log.info("income_exported path=%s entries=%s", path, len(entries))


def _parse_summaries(payload: dict) -> list[IncomeSummaryRow]:
    raw = payload.get("summaries") if isinstance(payload, dict) else None
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise FetchError("Income summary response has no 'summaries' list.")
    try:
        return [IncomeSummaryRow.from_api(r) for r in raw if isinstance(r, dict)]
    except ValidationError as exc:
        raise FetchError(f"Income summary response is malformed: {exc}") from exc

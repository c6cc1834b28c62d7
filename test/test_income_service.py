from datetime import date
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from conftest import summary_row
from pharmadesk.domain.errors import FetchError, ValidationError
from pharmadesk.services.income_service import IncomeService


class FakeIncomeApi:
    def __init__(self, replies):
        self.replies = dict(replies)
        self.requested = []

    def summary(self, period, **params):
        self.requested.append(period)
        reply = self.replies[period]
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeApi:
    def __init__(self, replies):
        self.income = FakeIncomeApi(replies)


def _service(replies, today=date(2024, 3, 15)):
    return IncomeService(FakeApi(replies), clock=lambda: today)


def test_refresh_loads_rows_for_granularity():
    svc = _service({"monthly": {"summaries": [summary_row("A", "2024-03-01", 100), summary_row("A", "2024-03-02", 50)]}})

    svc.refresh("monthly")

    assert svc.granularity == "monthly"
    assert len(svc.rows) == 2
    assert svc.totals().total_income == Decimal("150")
    assert svc.totals().label == "March"
    assert svc.api.income.requested == ["monthly"]


def test_stale_response_is_discarded():
    svc = _service({})
    daily_rows = {"summaries": [summary_row("A", "2024-03-15", 1)]}
    yearly_rows = {"summaries": [summary_row("A", "2024-03-15", 9), summary_row("B", "2023-01-01", 2)]}

    t_daily = svc.begin_fetch("daily")
    t_yearly = svc.begin_fetch("yearly")

    assert svc.complete_fetch(t_yearly, yearly_rows) is True
    assert svc.complete_fetch(t_daily, daily_rows) is False

    assert svc.granularity == "yearly"
    assert len(svc.rows) == 2
    assert [e.period_key for e in svc.entries()] == ["2024-01-01", "2023-01-01"]


def test_failed_refresh_keeps_previous_rows_and_records_error():
    svc = _service(
        {
            "daily": {"summaries": [summary_row("A", "2024-03-15", 10)]},
            "monthly": FetchError("GET /income/summary returned 500: boom", status_code=500),
        }
    )
    svc.refresh("daily")

    with pytest.raises(FetchError):
        svc.refresh("monthly")

    assert svc.granularity == "daily"
    assert len(svc.rows) == 1
    assert svc.last_error is not None
    assert svc.last_error.status_code == 500

    svc.api.income.replies["monthly"] = {"summaries": []}
    svc.refresh("monthly")
    assert svc.last_error is None
    assert svc.rows == []


def test_failure_of_superseded_request_is_ignored():
    svc = _service({})
    old = svc.begin_fetch("daily")
    svc.begin_fetch("monthly")

    assert svc.fail_fetch(old, FetchError("timeout")) is False
    assert svc.last_error is None


def test_malformed_payload_is_a_fetch_error():
    svc = _service({"daily": {"summaries": "oops"}})
    with pytest.raises(FetchError):
        svc.refresh("daily")

    svc = _service({"daily": {"summaries": [{"owner_name": "A", "total_income": 5}]}})
    with pytest.raises(FetchError):
        svc.refresh("daily")


def test_unknown_granularity_is_rejected_before_fetching():
    svc = _service({})
    with pytest.raises(ValidationError):
        svc.refresh("hourly")
    assert svc.api.income.requested == []


def test_owner_filter_narrows_detail_and_trend():
    svc = _service(
        {
            "daily": {
                "summaries": [
                    summary_row("A", "2024-03-14", 10),
                    summary_row("B", "2024-03-15", 20),
                    summary_row("A", "2024-03-15", 30),
                ]
            }
        }
    )
    svc.refresh("daily")

    svc.set_owner_filter("A")
    assert {e.owner_name for e in svc.detail_entries()} == {"A"}
    assert [d.owner_name for d in svc.trend().datasets] == ["A"]
    assert svc.owners() == ["A", "B"]

    svc.set_owner_filter("")
    assert len(svc.detail_entries()) == 3
    assert svc.owner_series().data == [Decimal("30"), Decimal("20")]


def test_export_excel_writes_summary_and_periods(tmp_path):
    svc = _service(
        {
            "monthly": {
                "summaries": [
                    summary_row("A", "2024-03-02", 100, sales=250, items=3),
                    summary_row("B", "2024-02-11", 40, sales=90, items=1),
                ]
            }
        }
    )
    svc.refresh("monthly")
    out = tmp_path / "income.xlsx"

    svc.export_excel(str(out))

    wb = load_workbook(out)
    assert wb.sheetnames == ["Summary", "Periods"]
    ws = wb["Summary"]
    assert ws["B4"].value == 100
    assert ws["B6"].value == 3

    periods = wb["Periods"]
    assert [c.value for c in periods[1]] == ["Period", "Owner", "Income", "Sales", "Items"]
    assert [c.value for c in periods[2]] == ["2024-03-01", "A", 100, 250, 3]
    assert [c.value for c in periods[3]] == ["2024-02-01", "B", 40, 90, 1]
    assert "IncomePeriods" in periods.tables

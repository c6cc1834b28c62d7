"""Period bucketing and chart series for income summaries.

Everything here is a pure function of its inputs: derived entries and series
are rebuilt from the source rows on every call, never patched in place.
"""
from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from pharmadesk.domain.errors import ValidationError
from pharmadesk.domain.models import (
    AggregatedPeriodEntry,
    IncomeSummaryRow,
    OwnerSeries,
    PeriodTotals,
    TrendDataset,
    TrendSeries,
)

GRANULARITIES = ("daily", "monthly", "yearly")
METRICS = ("total_income", "total_sales", "item_count")
PALETTE = ("#FF6384", "#36A2EB", "#FFCE56", "#4BC0C0", "#9966FF", "#FF9F40")
SINGLE_OWNER_COLOR = "#2196F3"
TREND_PERIODS = 6


def check_granularity(granularity: str) -> str:
    if granularity not in GRANULARITIES:
        raise ValidationError(f"Unknown period granularity: '{granularity}'. Use one of {', '.join(GRANULARITIES)}.")
    return granularity


def _parse_period(period: str) -> date:
    try:
        return date.fromisoformat(str(period).strip()[:10])
    except ValueError as exc:
        raise ValidationError(f"Invalid period date: '{period}'") from exc


def bucket_key(d: date, granularity: str) -> str:
    check_granularity(granularity)
    if granularity == "monthly":
        return f"{d.year:04d}-{d.month:02d}-01"
    if granularity == "yearly":
        return f"{d.year:04d}-01-01"
    return d.isoformat()


def period_key(period: str, granularity: str) -> str:
    # daily periods arrive day-granular; timestamps keep only their date part
    return bucket_key(_parse_period(period), granularity)


def current_period_key(granularity: str, today: Optional[date] = None) -> str:
    return bucket_key(today or date.today(), granularity)


def period_label(granularity: str, today: Optional[date] = None) -> str:
    check_granularity(granularity)
    d = today or date.today()
    if granularity == "daily":
        return "Today"
    if granularity == "monthly":
        return calendar.month_name[d.month]
    return str(d.year)


def format_point_label(key: str, granularity: str) -> str:
    check_granularity(granularity)
    d = _parse_period(key)
    if granularity == "daily":
        return f"{d.month}/{d.day}"
    if granularity == "monthly":
        return f"{d.month}/{str(d.year)[2:]}"
    return str(d.year)


def truncate_name(name: str, max_length: int = 10) -> str:
    if len(name) <= max_length:
        return name
    return name[: max_length - 2] + ".."


def aggregate(rows: Iterable[IncomeSummaryRow], granularity: str) -> list[AggregatedPeriodEntry]:
    """Group rows by (bucket, owner) and sum income, sales and item counts.

    Result is ordered by period key descending, then owner name.
    """
    check_granularity(granularity)
    groups: dict[tuple[str, str], list] = {}
    for row in rows:
        key = (period_key(row.period, granularity), row.owner_name)
        acc = groups.setdefault(key, [Decimal("0"), Decimal("0"), 0])
        acc[0] += row.total_income
        acc[1] += row.total_sales
        acc[2] += int(row.item_count)

    entries = [
        AggregatedPeriodEntry(
            period_key=pk,
            owner_name=owner,
            total_income=income,
            total_sales=sales,
            item_count=count,
        )
        for (pk, owner), (income, sales, count) in groups.items()
    ]
    entries.sort(key=lambda e: e.owner_name)
    entries.sort(key=lambda e: e.period_key, reverse=True)
    return entries


def owner_names(entries: Iterable[AggregatedPeriodEntry]) -> list[str]:
    return sorted({e.owner_name for e in entries}, key=lambda n: (n.casefold(), n))


def entries_for_owner(entries: Iterable[AggregatedPeriodEntry], owner: Optional[str]) -> list[AggregatedPeriodEntry]:
    if owner is None:
        return list(entries)
    return [e for e in entries if e.owner_name == owner]


def current_period_slice(
    entries: Iterable[AggregatedPeriodEntry],
    granularity: str,
    today: Optional[date] = None,
) -> list[AggregatedPeriodEntry]:
    key = current_period_key(granularity, today)
    return [e for e in entries if e.period_key == key]


def current_period_totals(
    entries: Iterable[AggregatedPeriodEntry],
    granularity: str,
    today: Optional[date] = None,
) -> PeriodTotals:
    current = current_period_slice(entries, granularity, today)
    return PeriodTotals(
        period_key=current_period_key(granularity, today),
        label=period_label(granularity, today),
        total_income=sum((e.total_income for e in current), Decimal("0")),
        total_sales=sum((e.total_sales for e in current), Decimal("0")),
        item_count=sum(e.item_count for e in current),
    )


def _metric(entry: Optional[AggregatedPeriodEntry], metric: str):
    if entry is None:
        return 0 if metric == "item_count" else Decimal("0")
    return getattr(entry, metric)


def _check_metric(metric: str) -> str:
    if metric not in METRICS:
        raise ValidationError(f"Unknown metric: '{metric}'. Use one of {', '.join(METRICS)}.")
    return metric


def _recent_keys(entries: list[AggregatedPeriodEntry], periods: int) -> list[str]:
    recent = sorted({e.period_key for e in entries}, reverse=True)[:periods]
    return sorted(recent)


def trend_series(
    entries: Iterable[AggregatedPeriodEntry],
    granularity: str,
    owner_filter: Optional[str] = None,
    periods: int = TREND_PERIODS,
    metric: str = "total_income",
) -> TrendSeries:
    """Line chart data over the most recent `periods` buckets, oldest first.

    With `owner_filter` there is a single line; otherwise one line per owner,
    colored by the owner's index in the palette. Missing buckets plot as 0.
    """
    check_granularity(granularity)
    _check_metric(metric)
    entries = list(entries)
    source = entries_for_owner(entries, owner_filter)
    keys = _recent_keys(source, periods)
    if not keys:
        return TrendSeries(labels=[], datasets=[], period_keys=[])

    lookup = {(e.period_key, e.owner_name): e for e in source}
    if owner_filter is not None:
        owners = [owner_filter]
    else:
        owners = owner_names(source)

    datasets = []
    for index, owner in enumerate(owners):
        color = SINGLE_OWNER_COLOR if owner_filter is not None else PALETTE[index % len(PALETTE)]
        datasets.append(
            TrendDataset(
                owner_name=owner,
                data=[_metric(lookup.get((k, owner)), metric) for k in keys],
                color=color,
            )
        )
    return TrendSeries(
        labels=[format_point_label(k, granularity) for k in keys],
        datasets=datasets,
        period_keys=keys,
    )


def current_period_series(
    entries: Iterable[AggregatedPeriodEntry],
    granularity: str,
    today: Optional[date] = None,
    metric: str = "total_income",
    limit: Optional[int] = None,
    max_label_length: int = 10,
) -> OwnerSeries:
    """Bar/pie data for the current bucket: one value per known owner.

    Owners are taken from all `entries`, so an owner with nothing in the
    current period still appears with 0 and the arrays stay index-aligned.
    """
    _check_metric(metric)
    entries = list(entries)
    owners = owner_names(entries)
    if limit is not None:
        owners = owners[:limit]
    current = {e.owner_name: e for e in current_period_slice(entries, granularity, today)}
    return OwnerSeries(
        labels=[truncate_name(o, max_label_length) for o in owners],
        owners=owners,
        data=[_metric(current.get(o), metric) for o in owners],
        colors=[PALETTE[i % len(PALETTE)] for i in range(len(owners))],
    )

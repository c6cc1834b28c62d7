from .models import (
    AggregatedPeriodEntry,
    DeviceIdentity,
    IncomeSummaryRow,
    OwnerSeries,
    PeriodTotals,
    ReceiptData,
    ReceiptItem,
    TrendDataset,
    TrendSeries,
)
from .print_layout import DEFAULT_PRINT_LAYOUT, PRINT_LAYOUT_PRESETS, PrintLayoutConfig
from .errors import (
    AppError,
    ValidationError,
    StorageReadError,
    StorageWriteError,
    NotAuthenticatedError,
    DeviceIdentityError,
    UnknownPresetError,
    ImportParseError,
    FetchError,
    PrinterError,
)

__all__ = [
    "AggregatedPeriodEntry",
    "DeviceIdentity",
    "IncomeSummaryRow",
    "OwnerSeries",
    "PeriodTotals",
    "ReceiptData",
    "ReceiptItem",
    "TrendDataset",
    "TrendSeries",
    "DEFAULT_PRINT_LAYOUT",
    "PRINT_LAYOUT_PRESETS",
    "PrintLayoutConfig",
    "AppError",
    "ValidationError",
    "StorageReadError",
    "StorageWriteError",
    "NotAuthenticatedError",
    "DeviceIdentityError",
    "UnknownPresetError",
    "ImportParseError",
    "FetchError",
    "PrinterError",
]

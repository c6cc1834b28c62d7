"""Receipt print layout configuration.

The layout is an immutable tree of frozen dataclasses. Its JSON form uses the
camelCase keys shared with the server (``fontSizes.normal``, ``paperWidth``),
and every partial form is deep-merged against ``DEFAULT_PRINT_LAYOUT`` so a
config is always complete.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from pharmadesk.domain.errors import ValidationError


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.capitalize() for p in rest)


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def deep_merge(base: Mapping[str, Any], partial: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new dict with `partial` merged into `base`.

    Nested mappings merge key by key; anything else in `partial` replaces the
    value from `base` wholesale. ``None`` values in `partial` are skipped.
    """
    out: dict[str, Any] = dict(base)
    for key, value in partial.items():
        if value is None:
            continue
        current = out.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            out[key] = deep_merge(current, value)
        else:
            out[key] = value
    return out


def _number(path: str, value: Any, *, integer: bool = False) -> int | float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"'{path}' must be a number. Received: {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"'{path}' must be a finite number. Received: {value!r}")
    if integer and isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"'{path}' must be a whole number. Received: {value!r}")
        return int(value)
    return value


class _Section:
    def to_dict(self) -> dict[str, Any]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], prefix: str):
        values = {}
        for f in fields(cls):
            key = _camel(f.name)
            values[f.name] = _number(f"{prefix}.{key}", data[key])
        return cls(**values)


@dataclass(frozen=True)
class FontSizes(_Section):
    store_name: float
    store_info: float
    section_title: float
    normal: float
    small: float
    total: float


@dataclass(frozen=True)
class ColumnWidths(_Section):
    # fractional shares of the items table; expected to sum to ~1.0
    name: float
    unit: float
    quantity: float
    price: float
    total: float


@dataclass(frozen=True)
class Margins(_Section):
    divider_vertical: float
    info_section: float
    info_row: float
    items_header_bottom: float
    item_row: float
    total_row: float
    footer_top: float
    footer_bottom: float


@dataclass(frozen=True)
class LineHeights(_Section):
    default: float
    item_name: float
    footer: float


_SECTIONS: dict[str, type[_Section]] = {
    "font_sizes": FontSizes,
    "column_widths": ColumnWidths,
    "margins": Margins,
    "line_heights": LineHeights,
}


@dataclass(frozen=True)
class PrintLayoutConfig:
    paper_width: int
    scale: float
    padding_base: float
    font_sizes: FontSizes
    column_widths: ColumnWidths
    margins: Margins
    line_heights: LineHeights

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[_camel(f.name)] = value.to_dict() if isinstance(value, _Section) else value
        return out

    @classmethod
    def from_dict(cls, partial: Mapping[str, Any] | None = None) -> "PrintLayoutConfig":
        """Build a complete config from `partial` merged over the defaults.

        Keys the layout does not know are ignored.
        """
        if partial is not None and not isinstance(partial, Mapping):
            raise ValidationError("Print layout config must be a JSON object.")
        data = deep_merge(DEFAULT_PRINT_LAYOUT.to_dict(), partial or {})
        values: dict[str, Any] = {}
        for f in fields(cls):
            key = _camel(f.name)
            raw = data[key]
            section = _SECTIONS.get(f.name)
            if section is not None:
                if not isinstance(raw, Mapping):
                    raise ValidationError(f"'{key}' must be an object.")
                values[f.name] = section.from_dict(raw, key)
            else:
                values[f.name] = _number(key, raw, integer=f.name == "paper_width")
        return cls(**values)

    def merged(self, partial: Mapping[str, Any]) -> "PrintLayoutConfig":
        return PrintLayoutConfig.from_dict(deep_merge(self.to_dict(), partial))

    def get_value(self, path: str) -> int | float:
        node: Any = self
        for part in _split_path(path):
            if not isinstance(node, (_Section, PrintLayoutConfig)):
                raise ValidationError(f"Unknown print layout setting: '{path}'")
            attr = _snake(part)
            if attr not in {f.name for f in fields(node)} or _camel(attr) != part:
                raise ValidationError(f"Unknown print layout setting: '{path}'")
            node = getattr(node, attr)
        if isinstance(node, _Section):
            raise ValidationError(f"'{path}' is a section, not a setting.")
        return node

    def with_value(self, path: str, value: int | float) -> "PrintLayoutConfig":
        """Return a copy with only the leaf at `path` replaced."""
        self.get_value(path)
        parts = _split_path(path)
        number = _number(path, value, integer=parts == ["paperWidth"])
        if len(parts) == 1:
            return replace(self, **{_snake(parts[0]): number})
        section_attr = _snake(parts[0])
        section = getattr(self, section_attr)
        return replace(self, **{section_attr: replace(section, **{_snake(parts[1]): number})})


def _split_path(path: str) -> list[str]:
    parts = [p for p in (path or "").strip().split(".")]
    if not parts or any(not p for p in parts) or len(parts) > 2:
        raise ValidationError(f"Unknown print layout setting: '{path}'")
    return parts


DEFAULT_PRINT_LAYOUT = PrintLayoutConfig(
    paper_width=576,
    scale=3,
    padding_base=12,
    font_sizes=FontSizes(
        store_name=42,
        store_info=21,
        section_title=21,
        normal=21,
        small=18,
        total=28,
    ),
    column_widths=ColumnWidths(
        name=0.40,
        unit=0.10,
        quantity=0.10,
        price=0.20,
        total=0.20,
    ),
    margins=Margins(
        divider_vertical=10,
        info_section=6,
        info_row=3,
        items_header_bottom=6,
        item_row=4,
        total_row=8,
        footer_top=14,
        footer_bottom=40,
    ),
    line_heights=LineHeights(
        default=1.3,
        item_name=1.4,
        footer=1.4,
    ),
)

PRINT_LAYOUT_PRESETS: dict[str, PrintLayoutConfig] = {
    "default": DEFAULT_PRINT_LAYOUT,
    "compact": replace(
        DEFAULT_PRINT_LAYOUT,
        scale=2,
        font_sizes=FontSizes(store_name=36, store_info=18, section_title=18, normal=18, small=16, total=24),
        margins=replace(DEFAULT_PRINT_LAYOUT.margins, divider_vertical=8, footer_bottom=30),
    ),
    "large": replace(
        DEFAULT_PRINT_LAYOUT,
        scale=4,
        font_sizes=FontSizes(store_name=48, store_info=24, section_title=24, normal=24, small=20, total=32),
        margins=replace(DEFAULT_PRINT_LAYOUT.margins, divider_vertical=12, footer_bottom=50),
    ),
}


@dataclass(frozen=True)
class ReceiptMetrics:
    width: float
    padding: float
    font_sizes: FontSizes
    margins: Margins
    line_heights: LineHeights
    column_px: dict[str, float]


def receipt_metrics(config: PrintLayoutConfig, *, scaled: bool = True) -> ReceiptMetrics:
    """Pixel values for rendering a receipt with `config`.

    Font sizes, padding and margins are multiplied by ``scale`` when `scaled`;
    the paper width is the printable width in dots at scale 1.
    """
    factor = config.scale if scaled else 1
    width = config.paper_width * factor
    padding = config.padding_base * factor
    inner = max(width - 2 * padding, 0)

    def _scale(section):
        return replace(section, **{f.name: getattr(section, f.name) * factor for f in fields(section)})

    return ReceiptMetrics(
        width=width,
        padding=padding,
        font_sizes=_scale(config.font_sizes),
        margins=_scale(config.margins),
        line_heights=config.line_heights,
        column_px={k: inner * v for k, v in config.column_widths.to_dict().items()},
    )

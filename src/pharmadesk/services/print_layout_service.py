from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from pharmadesk.domain.errors import (
    ImportParseError,
    StorageReadError,
    UnknownPresetError,
    ValidationError,
)
from pharmadesk.domain.print_layout import (
    DEFAULT_PRINT_LAYOUT,
    PRINT_LAYOUT_PRESETS,
    PrintLayoutConfig,
)

log = logging.getLogger(__name__)


class PrintLayoutStore:
    """Holds the current receipt layout and mediates every read and write.

    Mutations persist first and only then replace the in-memory config, so a
    failed write keeps the previously committed config. Configs are immutable;
    references to an older version stay valid.
    """

    def __init__(self, persistence, presets: Mapping[str, PrintLayoutConfig] | None = None):
        self.persistence = persistence
        self.presets = dict(presets or PRINT_LAYOUT_PRESETS)
        self._config = DEFAULT_PRINT_LAYOUT

    @property
    def config(self) -> PrintLayoutConfig:
        return self._config

    def load(self) -> PrintLayoutConfig:
        try:
            stored = self.persistence.load()
            self._config = PrintLayoutConfig.from_dict(stored) if stored else DEFAULT_PRINT_LAYOUT
        except (StorageReadError, ValidationError) as exc:
            log.warning("print_layout_load_failed error=%s using=defaults", exc)
            self._config = DEFAULT_PRINT_LAYOUT
        return self._config

    def _commit(self, new_config: PrintLayoutConfig) -> PrintLayoutConfig:
        self.persistence.save(new_config.to_dict())
        self._config = new_config
        return new_config

    def get_value(self, path: str) -> int | float:
        return self._config.get_value(path)

    def is_default(self, path: str) -> bool:
        return self._config.get_value(path) == DEFAULT_PRINT_LAYOUT.get_value(path)

    def update_value(self, path: str, value: int | float) -> PrintLayoutConfig:
        return self._commit(self._config.with_value(path, value))

    def update_many(self, partial: Mapping[str, Any]) -> PrintLayoutConfig:
        if not isinstance(partial, Mapping):
            raise ValidationError("Partial print layout must be a mapping.")
        return self._commit(self._config.merged(partial))

    def reset_to_default(self) -> PrintLayoutConfig:
        log.info("print_layout_reset")
        return self._commit(DEFAULT_PRINT_LAYOUT)

    def preset_names(self) -> list[str]:
        return list(self.presets)

    def apply_preset(self, name: str) -> PrintLayoutConfig:
        preset = self.presets.get(name)
        if preset is None:
            raise UnknownPresetError(f"Unknown print layout preset: '{name}'")
        log.info("print_layout_preset_applied name=%s", name)
        return self._commit(preset)

    def export_json(self) -> str:
        return json.dumps(self._config.to_dict(), indent=2)

    def import_json(self, text: str) -> bool:
        try:
            imported = parse_layout_json(text)
        except ImportParseError as exc:
            log.warning("print_layout_import_rejected reason=%s", exc)
            return False
        self._commit(imported)
        return True


def parse_layout_json(text: str) -> PrintLayoutConfig:
    """Parse an exported layout, filling missing settings from the defaults."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ImportParseError("invalid_json") from exc
    if not isinstance(data, dict):
        raise ImportParseError("not_an_object")
    try:
        return PrintLayoutConfig.from_dict(data)
    except ValidationError as exc:
        raise ImportParseError(str(exc)) from exc

# SPDX-License-Identifier: AGPL-3.0-only
#
# Copyright (c) 2026 Batchfmt Contributors
#
# This file is part of Batchfmt.
#
# Batchfmt is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 only.
#
# Batchfmt is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.
# See the GNU Affero General Public License for more details.

import json
import tomllib
from pathlib import Path
from typing import Any

from batchfmt.errors import ConfigLoadError
from batchfmt.settings.types import FormatterConfig


class DefaultFormatterConfigLoader:
    """
    Loads a FormatterConfig from rustfmt.toml (or a .json / .yaml / .yml file).

    Only the `ignore` list is interpreted; a missing file is the caller's
    concern (see `exists`).
    """

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()

    def load(self, path: Path) -> FormatterConfig:
        if not isinstance(path, Path):
            path = Path(path)

        if not path.exists():
            raise ConfigLoadError("Config file does not exist.", code="config_not_found", path=str(path))

        data = self._read_config_file(path)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigLoadError("Config root must be a table/mapping.", code="invalid_config", path=str(path))

        return FormatterConfig(ignore=self._parse_ignore(data.get("ignore"), path), source=str(path))

    def _read_config_file(self, path: Path) -> Any:
        suffix = path.suffix.lower()
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigLoadError(f"Cannot read config file: {e}", code="config_unreadable", path=str(path)) from e

        if suffix == ".json":
            try:
                return json.loads(raw)
            except json.JSONDecodeError as e:
                raise ConfigLoadError(f"Invalid JSON: {e}", code="config_parse_error", path=str(path)) from e

        if suffix in (".yaml", ".yml"):
            import yaml

            try:
                return yaml.safe_load(raw)
            except yaml.YAMLError as e:
                raise ConfigLoadError(f"Invalid YAML: {e}", code="config_parse_error", path=str(path)) from e

        # rustfmt.toml, .rustfmt.toml and anything else is TOML
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as e:
            raise ConfigLoadError(f"Invalid TOML: {e}", code="config_parse_error", path=str(path)) from e

    def _parse_ignore(self, raw: Any, path: Path) -> tuple[str, ...]:
        if raw is None:
            return ()

        if not isinstance(raw, (list, tuple)):
            raise ConfigLoadError("'ignore' must be a list of glob strings.", code="invalid_ignore", path=str(path))

        out: list[str] = []
        for item in raw:
            if not isinstance(item, str):
                raise ConfigLoadError(
                    f"'ignore' entries must be strings, got {type(item).__name__}.",
                    code="invalid_ignore",
                    path=str(path),
                )
            if item.strip():
                out.append(item.strip())
        return tuple(out)

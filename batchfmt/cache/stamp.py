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

"""
Formatter version stamp.

The stamp file records the formatter version used by the last successful
fix-mode run. The "modified files since merge-base" shortcut is only safe
when the installed formatter is the one that produced the current tree:

  build/
  └── rustfmt.stamp     # exact `rustfmt --version` output
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path

_VERSION_TIMEOUT_S = 30


@dataclass(frozen=True, slots=True)
class CacheStamp:
    version: str
    stamp_file: Path


class VersionCache:
    """
    Reads and writes the formatter version stamp.

    Every failure mode (formatter missing, --version failing, stamp missing
    or unreadable) is reported as "not valid"; nothing here raises.
    """

    def __init__(self, formatter: Path | None, stamp_file: Path) -> None:
        self._formatter = formatter
        self._stamp_file = Path(stamp_file)

    @property
    def stamp_file(self) -> Path:
        return self._stamp_file

    def query(self) -> CacheStamp | None:
        """
        Ask the formatter for its version.

        Returns:
            CacheStamp with the raw stdout of `<formatter> --version`, or None
            if the formatter is unavailable or the query failed.
        """
        if self._formatter is None:
            return None

        try:
            result = subprocess.run(
                [str(self._formatter), "--version"],
                capture_output=True,
                check=False,
                timeout=_VERSION_TIMEOUT_S,
            )
        except (OSError, subprocess.SubprocessError):
            return None

        if result.returncode != 0:
            return None

        try:
            version = result.stdout.decode("utf-8")
        except UnicodeDecodeError:
            return None

        return CacheStamp(version=version, stamp_file=self._stamp_file)

    def read_stamp(self) -> str | None:
        try:
            return self._stamp_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def is_valid(self) -> bool:
        """Return whether the format cache can be reused."""
        stamp = self.query()
        if stamp is None:
            return False
        previous = self.read_stamp()
        return previous is not None and previous == stamp.version

    def update(self) -> bool:
        """
        Record the current formatter version.

        Returns:
            True if the stamp was written, False if the version is unknown.
        """
        stamp = self.query()
        if stamp is None:
            return False
        stamp.stamp_file.parent.mkdir(parents=True, exist_ok=True)
        stamp.stamp_file.write_text(stamp.version, encoding="utf-8")
        return True

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

from pathlib import Path


def ensure_repo_root(path: str) -> Path:
    p = Path(path).resolve()
    if not p.exists():
        raise FileNotFoundError(f"Path does not exist: {p}")
    if not p.is_dir():
        raise NotADirectoryError(f"Repository root is not a directory: {p}")
    return p


def optional_path(value: str | None) -> Path | None:
    return Path(value) if value else None

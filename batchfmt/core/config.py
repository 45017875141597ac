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

import os
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILE_NAME = "rustfmt.toml"
STAMP_FILE_NAME = "rustfmt.stamp"
DEFAULT_OUT_DIR = "build"

DEFAULT_BATCH_SIZE = 8
DEFAULT_QUEUE_CAPACITY = 128
DEFAULT_EDITION = "2021"
DEFAULT_FILE_TYPE = "rust"
DEFAULT_UPSTREAM_IDENTITY = "rust-lang"
DEFAULT_UPSTREAM_BRANCH = "master"


def default_jobs() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class FormatRunConfig:
    repo_root: Path
    paths: tuple[Path, ...] = ()
    check: bool = False
    dry_run: bool = False
    jobs: int = 0  # 0 => os.cpu_count()
    formatter: Path | None = None  # None => look up "rustfmt" on PATH
    config_file: Path | None = None  # None => <repo_root>/rustfmt.toml
    out_dir: Path | None = None  # None => <repo_root>/build
    edition: str = DEFAULT_EDITION
    file_type: str = DEFAULT_FILE_TYPE
    upstream_identity: str = DEFAULT_UPSTREAM_IDENTITY
    upstream_branch: str = DEFAULT_UPSTREAM_BRANCH
    batch_size: int = DEFAULT_BATCH_SIZE
    queue_capacity: int = DEFAULT_QUEUE_CAPACITY
    quiet: bool = False

    @property
    def effective_jobs(self) -> int:
        return self.jobs if self.jobs > 0 else default_jobs()

    @property
    def max_processes(self) -> int:
        # spawning and waiting is mostly blocking, so keep more processes than cores busy
        return self.effective_jobs * 2

    @property
    def config_path(self) -> Path:
        return self.config_file if self.config_file is not None else self.repo_root / CONFIG_FILE_NAME

    @property
    def stamp_path(self) -> Path:
        out_dir = self.out_dir if self.out_dir is not None else self.repo_root / DEFAULT_OUT_DIR
        return out_dir / STAMP_FILE_NAME

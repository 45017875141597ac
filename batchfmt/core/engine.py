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

import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from batchfmt.cache.stamp import VersionCache
from batchfmt.core.config import FormatRunConfig
from batchfmt.core.progress import Progress
from batchfmt.core.selector import FileSelection, FileSetSelector
from batchfmt.dispatch.channel import BatchQueue
from batchfmt.dispatch.pool import Dispatcher, Spawner
from batchfmt.dispatch.process import FormatterCommand
from batchfmt.errors import ConfigLoadError, FormatError, FormatterNotFound
from batchfmt.settings.loader import DefaultFormatterConfigLoader
from batchfmt.vcs.git import GitVCSProvider
from batchfmt.walk.discovery import ParallelWalker, WalkOptions
from batchfmt.walk.rules import FileTypeMatcher

DEFAULT_FORMATTER = "rustfmt"


@dataclass(frozen=True)
class FormatResult:
    skipped: bool = False
    reason: str | None = None
    files: int = 0
    batches: int = 0
    peak_processes: int = 0
    stamp_updated: bool = False
    selection: FileSelection | None = None


def resolve_formatter(config: FormatRunConfig) -> Path:
    if config.formatter is not None:
        path = Path(config.formatter)
    else:
        found = shutil.which(DEFAULT_FORMATTER)
        if found is None:
            raise FormatterNotFound(
                f"formatting is not supported on this toolchain: `{DEFAULT_FORMATTER}` was not found on PATH",
                code="formatter_not_found",
            )
        path = Path(found)

    if not path.exists():
        raise FormatterNotFound(f"formatter does not exist: {path}", code="formatter_not_found")
    return path


class DefaultFormatEngine:
    """
    Runs the formatter over a repository.

    Pipeline:
      config file -> file selection -> parallel walk -> batch queue
      -> dispatcher thread (bounded process pool) -> version stamp
    """

    def __init__(
        self,
        *,
        vcs: GitVCSProvider | None = None,
        config_loader: DefaultFormatterConfigLoader | None = None,
        progress: Progress | None = None,
        spawner: Callable[[FormatterCommand], Spawner] | None = None,
    ) -> None:
        self.vcs = vcs if vcs is not None else GitVCSProvider()
        self.config_loader = config_loader if config_loader is not None else DefaultFormatterConfigLoader()
        self._progress = progress
        # Note: tests swap the spawner to run fake processes
        self._spawner = spawner if spawner is not None else (lambda command: command.spawn)

    def run(self, config: FormatRunConfig) -> FormatResult:
        progress = self._progress if self._progress is not None else Progress(quiet=config.quiet)

        if config.dry_run:
            return FormatResult(skipped=True, reason="dry run")

        config_path = config.config_path
        if not self.config_loader.exists(config_path):
            progress.warn(f"Not running formatting checks; {config_path.name} does not exist.")
            progress.warn("This may happen in distributed tarballs.")
            return FormatResult(skipped=True, reason="config file missing")

        formatter_config = self.config_loader.load(config_path)

        try:
            file_types = FileTypeMatcher.select(config.file_type)
        except ValueError as e:
            raise ConfigLoadError(str(e), code="invalid_file_type") from e

        formatter = resolve_formatter(config)
        repo_root = config.repo_root.resolve()
        version_cache = VersionCache(formatter, config.stamp_path)

        selection = FileSetSelector(
            repo_root=repo_root,
            file_types=file_types,
            vcs=self.vcs,
            version_cache=version_cache,
            ignore=formatter_config.ignore,
            paths=tuple(p.resolve() for p in config.paths),
            check=config.check,
            upstream_identity=config.upstream_identity,
            upstream_branch=config.upstream_branch,
            progress=progress,
        ).select()

        if selection.nothing_to_format:
            progress.info("No modified files to format.")
            return FormatResult(selection=selection, stamp_updated=self._record_version(config, version_cache))

        command = FormatterCommand(formatter=formatter, config_dir=repo_root, edition=config.edition, check=config.check)
        channel = BatchQueue(config.queue_capacity)
        dispatcher = Dispatcher(
            channel,
            self._spawner(command),
            max_processes=config.max_processes,
            batch_size=config.batch_size,
        )
        walker = ParallelWalker(
            selection.roots,
            selection.rules,
            repo_root=repo_root,
            options=WalkOptions(threads=config.effective_jobs, git_ignore=selection.git_aware),
        )

        thread = dispatcher.start()
        try:
            files = walker.run(channel.send)
        except Exception:
            channel.abort()
            channel.close()
            thread.join()
            if dispatcher.failure is not None:
                raise dispatcher.failure from None
            raise

        channel.close()
        thread.join()
        if dispatcher.failure is not None:
            raise dispatcher.failure

        return FormatResult(
            files=files,
            batches=dispatcher.batch_count,
            peak_processes=dispatcher.pool.peak,
            stamp_updated=self._record_version(config, version_cache),
            selection=selection,
        )

    def _record_version(self, config: FormatRunConfig, version_cache: VersionCache) -> bool:
        # check runs and explicit-path runs do not prove the tree matches this formatter
        if config.check or config.paths:
            return False
        return version_cache.update()


def run_format(config: FormatRunConfig, **engine_kwargs) -> FormatResult:
    return DefaultFormatEngine(**engine_kwargs).run(config)

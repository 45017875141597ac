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

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from batchfmt.cache.stamp import VersionCache
from batchfmt.core.progress import Progress
from batchfmt.errors import VCSQueryError
from batchfmt.vcs.git import GitVCSProvider
from batchfmt.walk.rules import FileTypeMatcher, RuleSet, RuleSetBuilder


@dataclass(frozen=True)
class FileSelection:
    roots: tuple[Path, ...]
    rules: RuleSet
    git_aware: bool = False  # inside a git work tree with a usable git
    fast_path: bool = False  # restricted to files modified since the merge-base
    nothing_to_format: bool = False  # fast path found no modified files
    fallback_reason: str | None = None


class FileSetSelector:
    """
    Decides which files a run formats and builds the matching RuleSet.

    Override order (later wins):
      1. config ignore globs          !<glob>
      2. untracked paths              !/<path>
      3. modified files (fast path)   /<file>
    """

    def __init__(
        self,
        *,
        repo_root: Path,
        file_types: FileTypeMatcher,
        vcs: GitVCSProvider,
        version_cache: VersionCache,
        ignore: Sequence[str] = (),
        paths: Sequence[Path] = (),
        check: bool = False,
        upstream_identity: str = "rust-lang",
        upstream_branch: str = "master",
        progress: Progress | None = None,
    ) -> None:
        self._repo_root = repo_root
        self._file_types = file_types
        self._vcs = vcs
        self._version_cache = version_cache
        self._ignore = tuple(ignore)
        self._paths = tuple(paths)
        self._check = check
        self._identity = upstream_identity
        self._branch = upstream_branch
        self._progress = progress if progress is not None else Progress()

    def select(self) -> FileSelection:
        builder = RuleSetBuilder(self._file_types)
        for glob in self._ignore:
            builder.exclude(glob)

        roots = self._paths if self._paths else (self._repo_root,)

        if not self._vcs.is_available():
            self._progress.info("Could not find usable git. Skipping git-aware format checks")
            return FileSelection(roots=roots, rules=builder.build())

        if not self._vcs.is_git_repo(self._repo_root):
            self._progress.info("Not in git tree. Skipping git-aware format checks")
            return FileSelection(roots=roots, rules=builder.build())

        for untracked in self._untracked():
            self._progress.info(f"skip untracked path {untracked} during formatter invocations")
            builder.exclude_anchored(untracked)

        if self._check or self._paths:
            return FileSelection(roots=roots, rules=builder.build(), git_aware=True)

        modified, reason = self._modified_files()
        if modified is None:
            self._progress.info(f"{reason}; formatting the whole tree")
            return FileSelection(roots=roots, rules=builder.build(), git_aware=True, fallback_reason=reason)

        for f in modified:
            self._progress.info(f"formatting modified file {f}")
            builder.include_anchored(f)

        return FileSelection(
            roots=roots,
            rules=builder.build(),
            git_aware=True,
            fast_path=True,
            nothing_to_format=not modified,
        )

    def _untracked(self) -> list[str]:
        try:
            return self._vcs.untracked_paths(self._repo_root)
        except VCSQueryError as e:
            self._progress.info(f"Could not list untracked files: {e}")
            return []

    def _modified_files(self) -> tuple[list[str] | None, str | None]:
        """
        Files changed since the merge-base with the upstream branch, or
        (None, reason) when the whole tree has to be formatted.
        """
        try:
            remote = self._vcs.find_upstream_remote(self._repo_root, self._identity)
        except VCSQueryError as e:
            return None, str(e)

        if not self._version_cache.is_valid():
            return None, "formatter version differs from the last recorded run"

        try:
            files = self._vcs.modified_files(
                self._repo_root,
                remote,
                self._branch,
                self._file_types.extensions(),
            )
        except VCSQueryError as e:
            return None, str(e)
        return files, None

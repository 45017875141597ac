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

import subprocess
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from batchfmt.errors import RemoteNotFound, VCSQueryError

_GIT_TIMEOUT_S = 60


@dataclass(frozen=True, slots=True)
class GitVCSProvider:
    """
    Git-based VCS provider for the git-aware parts of a formatting run.

    Provides:
      - availability / work-tree probes
      - upstream remote lookup
      - files modified since the merge-base with the upstream branch
      - untracked paths

    All operations are read-only and safe to run in any Git repository.
    """

    git: str = "git"

    def _run(self, repo_root: str | Path, *args: str) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            [self.git, *args],
            cwd=str(repo_root),
            capture_output=True,
            text=True,
            check=False,
            timeout=_GIT_TIMEOUT_S,
        )

    def is_available(self) -> bool:
        """
        Check whether a usable git binary is on PATH.

        Returns:
            True if `git --version` succeeds
        """
        try:
            result = subprocess.run(
                [self.git, "--version"],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
                timeout=_GIT_TIMEOUT_S,
            )
            return result.returncode == 0
        except (OSError, subprocess.SubprocessError):
            return False

    def is_git_repo(self, repo_root: str | Path) -> bool:
        """
        Check if the path is inside a Git working tree.

        Args:
            repo_root: Path to check

        Returns:
            True if inside a Git working tree, False otherwise
        """
        try:
            result = self._run(repo_root, "rev-parse", "--is-inside-work-tree")
            return result.returncode == 0 and result.stdout.strip() == "true"
        except (OSError, subprocess.SubprocessError):
            return False

    def find_upstream_remote(self, repo_root: str | Path, identity: str) -> str:
        """
        Find the name of the remote whose URL mentions `identity`.

        For example with identity "rust-lang" and these remotes it returns "upstream":

            remote.origin.url https://github.com/someone/rust.git
            remote.upstream.url https://github.com/rust-lang/rust

        Raises:
            RemoteNotFound: no remote URL contains `identity`
            VCSQueryError: git could not be queried
        """
        try:
            result = self._run(repo_root, "config", "--local", "--get-regex", r"remote\..*\.url")
        except (OSError, subprocess.SubprocessError) as e:
            raise VCSQueryError(f"failed to execute git config command: {e}") from e

        # exit status 1 means "no matching keys", i.e. no remotes configured
        if result.returncode == 1:
            raise RemoteNotFound(f"{identity} remote not found")
        if result.returncode != 0:
            raise VCSQueryError("failed to execute git config command")

        name = parse_upstream_remote(result.stdout.splitlines(), identity)
        if name is None:
            raise RemoteNotFound(f"{identity} remote not found")
        return name

    def modified_files(
        self,
        repo_root: str | Path,
        remote: str,
        branch: str,
        extensions: Iterable[str],
    ) -> list[str]:
        """
        Files changed between the merge-base of HEAD and `<remote>/<branch>` and
        the working tree, restricted to the given extensions.

        Raises:
            VCSQueryError: the diff could not be computed
        """
        try:
            result = self._run(repo_root, "diff-index", "--name-only", "--merge-base", f"{remote}/{branch}")
        except (OSError, subprocess.SubprocessError) as e:
            raise VCSQueryError(f"git diff-index failed: {e}") from e

        if result.returncode != 0:
            raise VCSQueryError(f"git diff-index failed: {result.stderr.strip()}")

        exts = frozenset(extensions)
        files: list[str] = []
        for line in result.stdout.splitlines():
            name = line.strip()
            if name and PurePosixPath(name).suffix.lstrip(".") in exts:
                files.append(name)
        return files

    def untracked_paths(self, repo_root: str | Path) -> list[str]:
        """
        Untracked paths as reported by `git status --porcelain`.

        Untracked directories are reported once with a trailing slash.

        Raises:
            VCSQueryError: git status failed
        """
        try:
            result = self._run(repo_root, "status", "--porcelain", "--untracked-files=normal")
        except (OSError, subprocess.SubprocessError) as e:
            raise VCSQueryError(f"git status failed: {e}") from e

        if result.returncode != 0:
            raise VCSQueryError(f"git status failed: {result.stderr.strip()}")

        return parse_untracked(result.stdout.splitlines())


def parse_upstream_remote(config_lines: Iterable[str], identity: str) -> str | None:
    """
    Pick the first `remote.<name>.url <url>` line whose URL contains `identity`.
    """
    for line in config_lines:
        key, _, url = line.strip().partition(" ")
        if identity not in url:
            continue
        if key.startswith("remote.") and key.endswith(".url"):
            name = key[len("remote.") : -len(".url")]
            if name:
                return name
    return None


def parse_untracked(status_lines: Iterable[str]) -> list[str]:
    out: list[str] = []
    for entry in status_lines:
        if not entry.startswith("?? "):
            continue
        out.append(_unquote(entry[3:]))
    return out


def _unquote(path: str) -> str:
    # git C-quotes paths with special characters: "caf\303\251.rs"
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path
    try:
        return path[1:-1].encode("ascii").decode("unicode_escape").encode("latin-1").decode("utf-8")
    except UnicodeError:
        return path[1:-1]

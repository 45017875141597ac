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

"""Gitignore layers for the parallel walk."""

from dataclasses import dataclass
from pathlib import Path

from pathspec import GitIgnoreSpec

from batchfmt.walk.rules import Match

GITIGNORE_FILE = ".gitignore"


@dataclass(frozen=True)
class IgnoreLayer:
    """Compiled ignore rules of one directory, matched relative to `base`."""

    base: Path
    spec: GitIgnoreSpec

    def matched(self, path: Path, is_dir: bool) -> Match:
        try:
            rel = path.relative_to(self.base).as_posix()
        except ValueError:
            return Match.NONE
        if is_dir:
            rel += "/"
        result = self.spec.check_file(rel)
        if result.include is True:
            return Match.IGNORE
        if result.include is False:
            return Match.WHITELIST
        return Match.NONE


def matched_layers(layers: tuple[IgnoreLayer, ...], path: Path, is_dir: bool) -> Match:
    """
    The innermost layer that has an opinion about `path` decides.
    """
    for layer in reversed(layers):
        m = layer.matched(path, is_dir)
        if m is not Match.NONE:
            return m
    return Match.NONE


def load_layer(directory: Path, ignore_file: Path | None = None) -> IgnoreLayer | None:
    """
    Compile `<directory>/.gitignore` (or `ignore_file`, matched relative to
    `directory`) into a layer. Returns None when there are no rules.
    """
    lines = _read_lines(ignore_file if ignore_file is not None else directory / GITIGNORE_FILE)
    if not any(line.strip() and not line.lstrip().startswith("#") for line in lines):
        return None
    return IgnoreLayer(base=directory, spec=GitIgnoreSpec.from_lines(lines))


def root_layers(repo_root: Path, walk_root: Path) -> tuple[IgnoreLayer, ...]:
    """
    Layers in effect before the walk enters `walk_root`: .git/info/exclude and
    the .gitignore of every directory from the repository root down to the
    parent of `walk_root`. The walk loads `walk_root`'s own .gitignore.
    """
    layers: list[IgnoreLayer] = []
    git_dir = _resolve_git_dir(repo_root)
    if git_dir is not None:
        exclude = load_layer(repo_root, git_dir / "info" / "exclude")
        if exclude is not None:
            layers.append(exclude)

    try:
        rel = walk_root.relative_to(repo_root)
    except ValueError:
        return tuple(layers)

    current = repo_root
    for part in rel.parts:
        layer = load_layer(current)
        if layer is not None:
            layers.append(layer)
        current = current / part
    return tuple(layers)


def _resolve_git_dir(repo_root: Path) -> Path | None:
    git_entry = repo_root / ".git"
    if git_entry.is_dir():
        return git_entry
    if not git_entry.is_file():
        return None
    try:
        content = git_entry.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    for raw_line in content.splitlines():
        stripped = raw_line.strip()
        if stripped.startswith("gitdir:"):
            git_dir = Path(stripped[len("gitdir:") :].strip())
            if not git_dir.is_absolute():
                git_dir = (repo_root / git_dir).resolve()
            return git_dir
    return None


def _read_lines(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return []

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

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import PurePosixPath

from pathspec import PathSpec

# File types (subset of the usual editor/grep type table)

DEFAULT_FILE_TYPES: dict[str, tuple[str, ...]] = {
    "c": ("*.c", "*.h", "*.H"),
    "cpp": ("*.C", "*.cc", "*.cpp", "*.cxx", "*.h", "*.hh", "*.hpp", "*.hxx", "*.inl"),
    "go": ("*.go",),
    "js": ("*.js", "*.jsx", "*.mjs", "*.cjs"),
    "python": ("*.py", "*.pyi"),
    "rust": ("*.rs",),
    "toml": ("*.toml",),
    "ts": ("*.ts", "*.tsx", "*.cts", "*.mts"),
}


class Match(str, Enum):
    NONE = "none"
    IGNORE = "ignore"
    WHITELIST = "whitelist"


@dataclass(frozen=True, slots=True)
class FileTypeMatcher:
    """
    Matches file *names* against the globs of the selected file types.
    """

    types: tuple[str, ...]
    globs: tuple[str, ...]

    @classmethod
    def select(cls, *names: str) -> "FileTypeMatcher":
        globs: list[str] = []
        for name in names:
            try:
                globs.extend(DEFAULT_FILE_TYPES[name])
            except KeyError:
                known = ", ".join(sorted(DEFAULT_FILE_TYPES))
                raise ValueError(f"unknown file type {name!r} (known: {known})") from None
        return cls(types=tuple(names), globs=tuple(dict.fromkeys(globs)))

    def matches(self, name: str) -> bool:
        return any(fnmatchcase(name, g) for g in self.globs)

    def extensions(self) -> frozenset[str]:
        """Plain extensions (without dot) covered by simple `*.ext` globs."""
        return frozenset(g[2:] for g in self.globs if g.startswith("*.") and "*" not in g[2:])


@dataclass(frozen=True, slots=True)
class Override:
    """
    A single gitignore-style glob. `exclude` globs are written with a leading
    `!`; a leading `/` anchors the glob to the repository root.
    """

    glob: str
    exclude: bool

    @property
    def line(self) -> str:
        return f"!{self.glob}" if self.exclude else self.glob

    @staticmethod
    def parse(line: str) -> "Override":
        if line.startswith("!"):
            return Override(glob=line[1:], exclude=True)
        return Override(glob=line, exclude=False)


@dataclass(frozen=True)
class RuleSet:
    """
    Ordered overrides plus a file-type filter.

    Semantics:
      - later overrides win over earlier ones for the same path
      - a matching exclude override => Match.IGNORE (prunes directories)
      - a matching include override => Match.WHITELIST
      - if any include override exists, a *file* matching none of them is
        ignored; directories are not, so the walk can still reach whitelisted
        files below them
    """

    overrides: tuple[Override, ...]
    file_types: FileTypeMatcher
    _spec: PathSpec | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.overrides:
            spec = PathSpec.from_lines("gitwildmatch", [o.line for o in self.overrides])
            object.__setattr__(self, "_spec", spec)

    @property
    def num_whitelists(self) -> int:
        return sum(1 for o in self.overrides if not o.exclude)

    def matched(self, rel_path: str, is_dir: bool) -> Match:
        """
        Match a repo-relative POSIX path against the overrides.
        """
        if self._spec is None:
            return Match.NONE

        candidate = rel_path.rstrip("/") + "/" if is_dir else rel_path
        result = self._spec.check_file(candidate)
        if result.include is True:
            return Match.WHITELIST
        if result.include is False:
            return Match.IGNORE

        if not is_dir and self.num_whitelists > 0:
            return Match.IGNORE
        return Match.NONE

    def admits(self, rel_path: str) -> bool:
        """
        Whether a file path passes both the overrides and the file-type filter.
        """
        if self.matched(rel_path, is_dir=False) is Match.IGNORE:
            return False
        return self.file_types.matches(PurePosixPath(rel_path).name)

    def sieve(self, rel_paths: Iterable[str]) -> list[str]:
        return [p for p in rel_paths if self.admits(p)]


class RuleSetBuilder:
    """
    Collects overrides in order, then builds an immutable RuleSet.
    """

    def __init__(self, file_types: FileTypeMatcher) -> None:
        self._file_types = file_types
        self._overrides: list[Override] = []

    def add(self, line: str) -> "RuleSetBuilder":
        line = line.strip()
        if not line or line == "!":
            raise ValueError(f"invalid override glob: {line!r}")
        self._overrides.append(Override.parse(line))
        return self

    def exclude(self, glob: str) -> "RuleSetBuilder":
        return self.add(f"!{glob}")

    def exclude_anchored(self, rel_path: str) -> "RuleSetBuilder":
        # a leading "/" makes this an exact match against the repository root,
        # so "foo.rs" does not also exclude "pkg/foo.rs"
        return self.add(f"!/{rel_path.lstrip('/')}")

    def include_anchored(self, rel_path: str) -> "RuleSetBuilder":
        return self.add(f"/{rel_path.lstrip('/')}")

    def extend(self, lines: Sequence[str]) -> "RuleSetBuilder":
        for line in lines:
            self.add(line)
        return self

    def build(self) -> RuleSet:
        return RuleSet(overrides=tuple(self._overrides), file_types=self._file_types)

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
Parallel directory walk feeding discovered files into a sink.

Workers share a queue of directories; each worker lists one directory,
pushes sub-directories back onto the queue and hands matching files to the
sink. The walk ends when the directory queue is fully processed.
"""

import os
import queue
import stat
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from batchfmt.errors import DiscoveryError
from batchfmt.walk.ignore import IgnoreLayer, load_layer, matched_layers, root_layers
from batchfmt.walk.rules import Match, RuleSet

# A sink returns False once it no longer accepts paths (the run was aborted).
PathSink = Callable[[Path], bool]


@dataclass(frozen=True, slots=True)
class WalkOptions:
    threads: int = 1
    git_ignore: bool = True  # honour .gitignore / .git/info/exclude


@dataclass(frozen=True, slots=True)
class _DirWork:
    path: Path
    layers: tuple[IgnoreLayer, ...]


_STOP = object()


class ParallelWalker:
    """
    Walks one or more roots with `options.threads` worker threads.

    Directory read errors are fatal: the first one stops the walk and is
    re-raised from `run` as DiscoveryError.
    """

    def __init__(
        self,
        roots: Sequence[Path],
        rules: RuleSet,
        *,
        repo_root: Path,
        options: WalkOptions | None = None,
    ) -> None:
        self._roots = tuple(Path(r) for r in roots)
        self._rules = rules
        self._repo_root = Path(repo_root)
        self._options = options if options is not None else WalkOptions()

        self._work: queue.Queue[object] = queue.Queue()
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._error: BaseException | None = None
        self._emitted = 0

    def run(self, sink: PathSink) -> int:
        """
        Walk every root, calling `sink` for each discovered file.

        Returns:
            Number of files handed to the sink
        """
        seeds: list[_DirWork] = []
        for root in self._roots:
            try:
                is_dir = stat.S_ISDIR(root.stat().st_mode)
            except OSError as e:
                raise DiscoveryError(str(root), e.strerror or str(e)) from e

            if is_dir:
                layers = root_layers(self._repo_root, root) if self._options.git_ignore else ()
                seeds.append(_DirWork(path=root, layers=layers))
            elif self._rules.file_types.matches(root.name):
                # explicitly named files bypass the overrides
                if not self._emit(sink, root):
                    return self._emitted

        if not seeds:
            return self._emitted

        for seed in seeds:
            self._work.put(seed)

        threads = [
            threading.Thread(target=self._worker, args=(sink,), name=f"batchfmt-walk-{i}", daemon=True)
            for i in range(max(1, self._options.threads))
        ]
        for t in threads:
            t.start()

        self._work.join()

        for _ in threads:
            self._work.put(_STOP)
        for t in threads:
            t.join()

        if self._error is not None:
            raise self._error
        return self._emitted

    def _worker(self, sink: PathSink) -> None:
        while True:
            item = self._work.get()
            try:
                if item is _STOP:
                    return
                assert isinstance(item, _DirWork)
                self._visit(item, sink)
            except OSError as e:
                path = getattr(e, "filename", None) or (item.path if isinstance(item, _DirWork) else "?")
                self._fail(DiscoveryError(str(path), e.strerror or str(e)))
            except Exception as e:
                self._fail(e)
            finally:
                self._work.task_done()

    def _fail(self, error: BaseException) -> None:
        with self._lock:
            if self._error is None:
                self._error = error
        self._stopped.set()

    def _emit(self, sink: PathSink, path: Path) -> bool:
        if not sink(path):
            self._stopped.set()
            return False
        with self._lock:
            self._emitted += 1
        return True

    def _visit(self, item: _DirWork, sink: PathSink) -> None:
        if self._stopped.is_set():
            return

        layers = item.layers
        if self._options.git_ignore:
            own = load_layer(item.path)
            if own is not None:
                layers = (*layers, own)

        with os.scandir(item.path) as it:
            entries = list(it)

        for entry in entries:
            if self._stopped.is_set():
                return

            is_dir = entry.is_dir(follow_symlinks=False)
            if not is_dir and not entry.is_file(follow_symlinks=False):
                continue  # symlinks, sockets, ...

            path = Path(entry.path)
            if not self._admit(path, entry.name, is_dir, layers):
                continue

            if is_dir:
                self._work.put(_DirWork(path=path, layers=layers))
            elif not self._emit(sink, path):
                return

    def _admit(self, path: Path, name: str, is_dir: bool, layers: tuple[IgnoreLayer, ...]) -> bool:
        # overrides have the highest precedence
        m = self._rules.matched(self._relative(path), is_dir)
        if m is Match.IGNORE:
            return False
        whitelisted = m is Match.WHITELIST

        if not whitelisted and layers:
            g = matched_layers(layers, path, is_dir)
            if g is Match.IGNORE:
                return False
            whitelisted = g is Match.WHITELIST

        if not is_dir:
            return self._rules.file_types.matches(name)

        if not whitelisted and name.startswith("."):
            return False
        return True

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self._repo_root).as_posix()
        except ValueError:
            return path.as_posix()

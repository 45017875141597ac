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

import shlex
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from batchfmt.errors import FormatterFailed


class ProcessState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class ProcessStatus:
    state: ProcessState
    exit_code: int | None = None

    @property
    def done(self) -> bool:
        return self.state is ProcessState.COMPLETED


RUNNING = ProcessStatus(ProcessState.RUNNING)


class Waitable(Protocol):
    """The subset of subprocess.Popen a ManagedProcess needs."""

    def poll(self) -> int | None: ...

    def wait(self) -> int: ...


@dataclass(frozen=True, slots=True)
class FormatterCommand:
    """
    Command line for one formatter invocation over a batch of paths:

      <formatter> --config-path <dir> --edition <E> --unstable-features --skip-children [--check] <path>...
    """

    formatter: Path
    config_dir: Path
    edition: str = "2021"
    check: bool = False

    def argv(self, paths: Sequence[Path]) -> list[str]:
        # pin the config directory so nested/submodule configs never apply
        args = [
            str(self.formatter),
            "--config-path",
            str(self.config_dir),
            "--edition",
            self.edition,
            "--unstable-features",
            "--skip-children",
        ]
        if self.check:
            args.append("--check")
        args.extend(str(p) for p in paths)
        return args

    def spawn(self, paths: Sequence[Path]) -> "ManagedProcess":
        argv = self.argv(paths)
        command_line = shlex.join(argv)
        try:
            proc = subprocess.Popen(argv)
        except OSError as e:
            raise FormatterFailed(command_line, None, e.strerror or str(e)) from e
        return ManagedProcess(proc, command_line=command_line, batch=tuple(paths))


class ManagedProcess:
    """
    A running formatter invocation.

    State only moves forward: RUNNING -> COMPLETED(exit_code). Observing a
    non-zero exit, by polling or by waiting, raises FormatterFailed, every
    time it is observed.
    """

    def __init__(self, proc: Waitable, *, command_line: str, batch: tuple[Path, ...] = ()) -> None:
        self._proc = proc
        self.command_line = command_line
        self.batch = batch
        self._status = RUNNING

    @property
    def status(self) -> ProcessStatus:
        return self._status

    def poll_once(self) -> ProcessStatus:
        """Check for completion without blocking."""
        if self._status.done:
            return self._check(self._status)
        code = self._proc.poll()
        if code is None:
            return RUNNING
        return self._complete(code)

    def block_until_done(self) -> int:
        """Wait for the process and return its exit code (always 0; failures raise)."""
        if self._status.done:
            self._check(self._status)
        else:
            self._complete(self._proc.wait())
        assert self._status.exit_code is not None
        return self._status.exit_code

    def _complete(self, code: int) -> ProcessStatus:
        self._status = ProcessStatus(ProcessState.COMPLETED, exit_code=code)
        return self._check(self._status)

    def _check(self, status: ProcessStatus) -> ProcessStatus:
        if status.exit_code != 0:
            raise FormatterFailed(self.command_line, status.exit_code)
        return status

    def __repr__(self) -> str:
        return f"ManagedProcess({self.command_line!r}, {self._status.state.value})"

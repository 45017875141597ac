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

from collections.abc import Mapping
from typing import Any


class FormatError(Exception):
    """
    Base class for all fatal formatting-run errors.

    A formatting run is all-or-nothing: any FormatError that escapes the
    engine ends the run with a non-zero exit code.
    """

    code: str
    message: str
    details: Mapping[str, Any] | None = None

    def __init__(
        self,
        message: str,
        code: str = "format_error",
        details: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class ConfigLoadError(FormatError):
    """Raised when the formatter config file exists but cannot be parsed."""

    def __init__(self, message: str, code: str = "config_error", path: str | None = None) -> None:
        super().__init__(message, code=code, details={"path": path} if path else None)
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class FormatterNotFound(FormatError):
    """Raised when no formatter executable is available."""

    pass


class FormatterFailed(FormatError):
    """Raised when a formatter batch exits with a non-success status."""

    HINT = (
        "If you ran with `--check`, run `batchfmt` without `--check` to apply the formatting. "
        "Or, if you only changed a few files, pass them explicitly to format just those."
    )

    def __init__(self, command_line: str, exit_code: int | None, reason: str | None = None) -> None:
        self.command_line = command_line
        self.exit_code = exit_code
        self.reason = reason
        cause = f": {reason}" if reason else ""
        super().__init__(
            f"Running `{command_line}` failed{cause}.\n{self.HINT}",
            code="formatter_failed",
            details={"command": command_line, "exit_code": exit_code, "reason": reason},
        )


class DiscoveryError(FormatError):
    """Raised when a root or directory cannot be read during the walk."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"failed to walk {path}: {reason}", code="discovery_error", details={"path": path})


class VCSQueryError(Exception):
    """
    A git query could not be answered.

    Never fatal: callers fall back to full-tree discovery.
    """

    pass


class RemoteNotFound(VCSQueryError):
    """Raised when no configured remote points at the upstream repository."""

    pass

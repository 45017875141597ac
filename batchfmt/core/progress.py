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

import sys
from typing import TextIO


class Progress:
    """
    Advisory output for a formatting run.

    Informational lines go to stdout and are silenced by `quiet`; warnings
    always go to stderr.
    """

    def __init__(self, *, quiet: bool = False, out: TextIO | None = None, err: TextIO | None = None) -> None:
        self.quiet = quiet
        self._out = out
        self._err = err

    def info(self, message: str) -> None:
        if not self.quiet:
            print(message, file=self._out if self._out is not None else sys.stdout)

    def warn(self, message: str) -> None:
        print(message, file=self._err if self._err is not None else sys.stderr)

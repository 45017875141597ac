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

import threading
from collections import deque
from pathlib import Path


class BatchQueue:
    """
    Bounded, closeable channel between walk workers and the dispatcher.

    - send() blocks while the queue is full (backpressure on the walk)
    - recv() blocks while the queue is empty; returns None once the queue is
      closed and drained
    - drain(n) takes up to n already-queued paths without blocking
    - abort() drops queued paths and makes every send() return False, so
      producers never wait on a consumer that has given up
    """

    def __init__(self, capacity: int = 128) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._items: deque[Path] = deque()
        self._mutex = threading.Lock()
        self._not_empty = threading.Condition(self._mutex)
        self._not_full = threading.Condition(self._mutex)
        self._closed = False
        self._aborted = False

    def __len__(self) -> int:
        with self._mutex:
            return len(self._items)

    @property
    def aborted(self) -> bool:
        return self._aborted

    def send(self, path: Path) -> bool:
        with self._not_full:
            while len(self._items) >= self.capacity and not self._aborted:
                self._not_full.wait()
            if self._aborted:
                return False
            if self._closed:
                raise RuntimeError("send on closed BatchQueue")
            self._items.append(path)
            self._not_empty.notify()
            return True

    def recv(self) -> Path | None:
        with self._not_empty:
            while not self._items and not self._closed and not self._aborted:
                self._not_empty.wait()
            if not self._items:
                return None
            path = self._items.popleft()
            self._not_full.notify()
            return path

    def drain(self, limit: int) -> list[Path]:
        out: list[Path] = []
        with self._mutex:
            while self._items and len(out) < limit:
                out.append(self._items.popleft())
            if out:
                self._not_full.notify_all()
        return out

    def close(self) -> None:
        with self._mutex:
            self._closed = True
            self._not_empty.notify_all()

    def abort(self) -> None:
        with self._mutex:
            self._aborted = True
            self._items.clear()
            self._not_full.notify_all()
            self._not_empty.notify_all()

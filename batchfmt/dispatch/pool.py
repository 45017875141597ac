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
from collections.abc import Callable, Sequence
from pathlib import Path

from batchfmt.dispatch.channel import BatchQueue
from batchfmt.dispatch.process import ManagedProcess

Spawner = Callable[[Sequence[Path]], ManagedProcess]


class ProcessPool:
    """
    Outstanding formatter processes, oldest first.

    Removal by completion uses swap-remove (the tail takes the freed slot);
    removal by capacity always takes the oldest entry, so no batch waits
    forever once the ceiling is hit.
    """

    def __init__(self, max_processes: int) -> None:
        if max_processes < 1:
            raise ValueError("max_processes must be >= 1")
        self.max_processes = max_processes
        self._children: deque[ManagedProcess] = deque()
        self.peak = 0

    def __len__(self) -> int:
        return len(self._children)

    def push(self, child: ManagedProcess) -> None:
        self._children.append(child)
        self.peak = max(self.peak, len(self._children))

    def reap_one_finished(self) -> ManagedProcess | None:
        """
        Poll newest to oldest and drop the first finished process found.
        """
        for i in range(len(self._children) - 1, -1, -1):
            child = self._children[i]
            if child.poll_once().done:
                self._swap_remove(i)
                return child
        return None

    def at_capacity(self) -> bool:
        return len(self._children) >= self.max_processes

    def evict_oldest(self) -> ManagedProcess:
        child = self._children.popleft()
        child.block_until_done()
        return child

    def await_all(self) -> None:
        while self._children:
            self.evict_oldest()

    def abandon(self) -> list[ManagedProcess]:
        """Forget every outstanding process without waiting on it."""
        children = list(self._children)
        self._children.clear()
        return children

    def _swap_remove(self, i: int) -> None:
        last = self._children.pop()
        if i < len(self._children):
            self._children[i] = last


class Dispatcher:
    """
    Turns queued paths into batches and formatter processes.

    Meant to run on its own thread: spawning and waiting on processes are
    blocking calls that must not stall the walk.
    """

    def __init__(
        self,
        channel: BatchQueue,
        spawn: Spawner,
        *,
        max_processes: int,
        batch_size: int = 8,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._channel = channel
        self._spawn = spawn
        self._batch_size = batch_size
        self.pool = ProcessPool(max_processes)
        self.batch_count = 0
        self.failure: Exception | None = None

    def run(self) -> None:
        try:
            self._loop()
        except Exception as e:
            self.failure = e
            # stop producers; outstanding processes are left to finish on their own
            self._channel.abort()
            self.pool.abandon()

    def _loop(self) -> None:
        while (path := self._channel.recv()) is not None:
            # amortize spawn overhead over whatever is already queued
            batch = (path, *self._channel.drain(self._batch_size - 1))
            self.batch_count += 1
            self.pool.push(self._spawn(batch))

            # poll completion before waiting
            self.pool.reap_one_finished()

            if self.pool.at_capacity():
                self.pool.evict_oldest()

        self.pool.await_all()

    def start(self) -> threading.Thread:
        thread = threading.Thread(target=self.run, name="batchfmt-dispatch", daemon=True)
        thread.start()
        return thread

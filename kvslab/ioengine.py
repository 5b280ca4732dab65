"""Batched page IO engine working on top of the page cache.

Reads and writes are queued, submitted together, completed, and then the
request callbacks are run. A page that is already cached is served at
once. A request for a page that is already being fetched, or a write to a
page whose flush is already queued, is linked and run after the next batch
completes.
"""

from __future__ import annotations

import enum
import os
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from kvslab.config import PAGE_SIZE
from kvslab.pagecache import LruEntry, PageCache, page_hash


class IoEngineError(RuntimeError):
    """Raised when the IO engine is misused or an IO does not complete."""


class _Opcode(enum.Enum):
    READ = "read"
    WRITE = "write"


@dataclass(eq=False)
class IoRequest:
    """A page request: which page of which file, and what to run once it is in memory.

    ``io_cb`` is called with the request once the page is available;
    ``lru_entry`` is set by the engine to the cache slot holding the page.
    """

    fd: int
    page_num: int
    io_cb: Optional[Callable[["IoRequest"], None]] = None
    lru_entry: Optional[LruEntry] = None
    payload: Any = field(default=None, repr=False)

    def _complete(self) -> None:
        if self.io_cb is None:
            raise IoEngineError("request has no completion callback")
        self.io_cb(self)


@dataclass(eq=False)
class _Operation:
    request: IoRequest
    opcode: _Opcode
    entry: LruEntry
    offset: int
    result: int = 0


def safe_pread(fd: int, offset: int) -> bytes:
    """Read one page synchronously at ``offset``; raise if it is not read whole."""
    data = os.pread(fd, PAGE_SIZE, offset)
    if len(data) != PAGE_SIZE:
        raise IoEngineError(
            f"pread failed! Read {len(data)} instead of {PAGE_SIZE} (offset {offset})"
        )
    return data


class IoEngine:
    """Queue of page reads and writes served through a :class:`PageCache`.

    At most ``2 * nb_callbacks`` IOs may be queued and not yet processed.
    """

    def __init__(self, pagecache: PageCache, nb_callbacks: int) -> None:
        if nb_callbacks <= 0:
            raise ValueError("nb_callbacks must be positive")
        self.pagecache = pagecache
        self.max_pending_io = nb_callbacks * 2
        self.sent_io = 0
        self.processed_io = 0
        self.ios_sent_to_disk = 0
        self._queue: deque[_Operation] = deque()
        self._in_flight: list[_Operation] = []
        self._linked: list[IoRequest] = []

    @property
    def page_size(self) -> int:
        return self.pagecache.page_size

    def _enqueue(self, request: IoRequest, opcode: _Opcode, entry: LruEntry) -> None:
        if self.sent_io - self.processed_io >= self.max_pending_io:
            raise IoEngineError(
                f"Sent {self.sent_io} ios, processed {self.processed_io} "
                f"(> {self.max_pending_io} waiting), IO buffer is too full!"
            )
        offset = request.page_num * self.page_size
        self._queue.append(_Operation(request, opcode, entry, offset))
        self.sent_io += 1

    def read_page_async(self, request: IoRequest) -> Optional[memoryview]:
        """Make the page of ``request`` available, then call its ``io_cb``.

        A cached page is returned and the callback runs immediately;
        otherwise the read is queued and None is returned.
        """
        already_used, entry = self.pagecache.get_page(
            page_hash(request.fd, request.page_num)
        )
        request.lru_entry = entry
        if entry.contains_data:
            request._complete()
            return entry.page
        if already_used:
            self._linked.append(request)
            return None
        self._enqueue(request, _Opcode.READ, entry)
        return None

    def write_page_async(self, request: IoRequest) -> Optional[memoryview]:
        """Queue a flush of the cached page of ``request`` to disk.

        If a flush of that page is already queued, the request is linked to
        it and the page is returned; otherwise None is returned.
        """
        entry = request.lru_entry
        if entry is None or not entry.contains_data:
            raise IoEngineError("cannot write a page that is not in memory")
        if entry.dirty:
            self._linked.append(request)
            return entry.page
        entry.dirty = True
        self._enqueue(request, _Opcode.WRITE, entry)
        return None

    def enqueue_ios(self) -> None:
        """Submit every queued IO that has not been processed yet."""
        pending = self.sent_io - self.processed_io
        if pending == 0:
            self.ios_sent_to_disk = 0
            self._in_flight = []
            return
        self._in_flight = list(self._queue)[:pending]
        for op in self._in_flight:
            # Cleared before the flush so that a later write queues a new one.
            op.entry.dirty = False
        self.ios_sent_to_disk = len(self._in_flight)

    def get_completed_ios(self) -> None:
        """Carry out the submitted IOs and collect their results."""
        if self.ios_sent_to_disk == 0:
            return
        size = self.page_size
        for op in self._in_flight:
            try:
                if op.opcode is _Opcode.READ:
                    data = os.pread(op.request.fd, size, op.offset)
                    op.entry.page[: len(data)] = data
                    op.result = len(data)
                else:
                    op.result = os.pwrite(op.request.fd, op.entry.page, op.offset)
            except OSError as exc:
                raise IoEngineError(
                    f"IO on fd {op.request.fd} at offset {op.offset} failed: {exc}"
                ) from exc

    def process_completed_ios(self) -> None:
        """Run the callbacks of completed IOs, then those of linked requests."""
        count = self.ios_sent_to_disk
        if count == 0:
            return
        size = self.page_size
        for op in self._in_flight:
            if op.result != size:
                raise IoEngineError(
                    f"incomplete IO: {op.result} bytes instead of {size} "
                    f"(offset {op.offset})"
                )
            op.entry.contains_data = True
            op.request._complete()
        self._process_linked()
        for _ in range(count):
            self._queue.popleft()
        self._in_flight = []
        self.processed_io += count

    def _process_linked(self) -> None:
        linked, self._linked = self._linked, []
        for request in reversed(linked):
            if request.lru_entry.contains_data:
                request._complete()
            else:
                self._linked.append(request)

    def pending(self) -> int:
        """Number of queued IOs not processed yet."""
        return self.sent_io - self.processed_io

    def run_until_idle(self) -> int:
        """Submit, complete and process IOs until none is pending.

        Returns the number of IOs carried out.
        """
        done = 0
        while self.pending():
            self.enqueue_ios()
            self.get_completed_ios()
            done += self.ios_sent_to_disk
            self.process_completed_ios()
        return done
"""LRU page cache mapping page hashes to in-memory page buffers."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass

from kvslab.config import PAGE_SIZE


def page_hash(fd: int, page_num: int) -> int:
    """Return a cache key unique to a page of a file (files below 2**40 pages)."""
    return (fd << 40) + page_num


@dataclass(eq=False)
class LruEntry:
    """Cache slot: the page buffer plus the state set by the IO engine.

    ``contains_data`` tells whether the buffer holds the page's content;
    ``dirty`` tells whether a write of it is queued but not flushed.
    """

    hash: int
    page: memoryview
    contains_data: bool = False
    dirty: bool = False


class PageCache:
    """Fixed number of page buffers recycled in least-recently-used order."""

    def __init__(self, max_pages: int, page_size: int = PAGE_SIZE) -> None:
        if max_pages <= 0:
            raise ValueError("the page cache needs at least one page")
        if page_size <= 0:
            raise ValueError("page size must be positive")
        self.max_pages = max_pages
        self.page_size = page_size
        self._data = bytearray(max_pages * page_size)
        self._view = memoryview(self._data)
        self._entries: OrderedDict[int, LruEntry] = OrderedDict()

    def get_page(self, hash: int) -> tuple[bool, LruEntry]:
        """Return ``(was_cached, entry)`` for the page with ``hash``.

        A page already cached is moved to the most recent position and its
        state is left untouched. Otherwise a free buffer, or the least
        recently used one, is assigned to ``hash`` with its state cleared.
        """
        entry = self._entries.get(hash)
        if entry is not None:
            self._entries.move_to_end(hash)
            return True, entry

        if len(self._entries) < self.max_pages:
            start = len(self._entries) * self.page_size
            entry = LruEntry(hash, self._view[start : start + self.page_size])
        else:
            _, entry = self._entries.popitem(last=False)
            entry.hash = hash
        entry.contains_data = False
        entry.dirty = False
        self._entries[hash] = entry
        return False, entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, hash: object) -> bool:
        return hash in self._entries

    def lru_order(self) -> list[int]:
        """Return cached hashes from the most to the least recently used."""
        return list(reversed(self._entries))
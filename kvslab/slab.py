"""Slabs: files holding fixed-size item slots, accessed through the IO engine.

A slab file is a sequence of pages, each holding ``PAGE_SIZE // item_size``
slots. Every slot starts with an :class:`~kvslab.items.ItemMetadata` header
followed by the key and the value. A slot whose key size is 0 has never been
used; a slot whose key size is -1 holds a removed item and can be reused.
A newly created file is assumed to read as zeros.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from kvslab.config import PAGE_SIZE
from kvslab.ioengine import IoEngine, IoRequest, safe_pread
from kvslab.items import METADATA_SIZE, REMOVED, Item, ItemMetadata
from kvslab.pagecache import LruEntry, PageCache

_GRANULARITY_REBUILD = 2 * 1024 * 1024
_RESIZE_STEP = 10_000_000_000


class SlabError(RuntimeError):
    """Raised when a slab file cannot be used or an item cannot be written."""


class SlabAction(enum.Enum):
    """What a request to a slab is meant to do."""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    READ = "read"
    READ_NO_LOOKUP = "read_no_lookup"
    ADD_OR_UPDATE = "add_or_update"


@dataclass
class SlabContext:
    """State shared by the slabs of one worker: IO engine and timestamp."""

    engine: IoEngine
    rdt: int = 0

    def __post_init__(self) -> None:
        if self.engine.page_size != PAGE_SIZE:
            raise ValueError(
                f"the page cache must use {PAGE_SIZE}-byte pages, "
                f"not {self.engine.page_size}"
            )

    @property
    def pagecache(self) -> PageCache:
        return self.engine.pagecache


ItemCallback = Callable[["SlabCallback", memoryview], None]


@dataclass(eq=False)
class SlabCallback:
    """A request to a slab and the function to call with the item's slot.

    ``cb`` receives the callback and a view of the item's slot in the page.
    ``item`` is the item to write, for adds and updates.
    """

    cb: Optional[ItemCallback] = None
    item: Optional[Union[Item, ItemMetadata]] = None
    action: SlabAction = SlabAction.READ
    slab_idx: int = 0
    payload: Any = field(default=None, repr=False)
    slab: Optional["Slab"] = field(default=None, repr=False)
    lru_entry: Optional[LruEntry] = field(default=None, repr=False)
    io_cb: Optional[Callable[["SlabCallback"], None]] = field(default=None, repr=False)


def _dispatch(request: IoRequest) -> None:
    callback: SlabCallback = request.payload
    callback.lru_entry = request.lru_entry
    callback.io_cb(callback)


class Slab:
    """A file holding items of at most ``item_size`` bytes."""

    def __init__(
        self,
        ctx: SlabContext,
        path: Union[str, os.PathLike],
        item_size: int,
        callback: Optional[SlabCallback] = None,
    ) -> None:
        if not METADATA_SIZE <= item_size <= PAGE_SIZE:
            raise ValueError(
                f"item size must be between {METADATA_SIZE} and {PAGE_SIZE}"
            )
        self.ctx = ctx
        self.path = os.fspath(path)
        self.item_size = item_size
        self.items_per_page = PAGE_SIZE // item_size
        try:
            self.fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o666)
        except OSError as exc:
            raise SlabError(f"Cannot allocate slab {self.path}: {exc}") from exc

        self.size_on_disk = os.fstat(self.fd).st_size
        if self.size_on_disk < 2 * PAGE_SIZE:
            self._grow_file(2 * PAGE_SIZE)
        self.nb_max_items = self.size_on_disk // PAGE_SIZE * self.items_per_page
        self.nb_items = 0
        self.last_item = 0
        self._free_items: list[int] = []

        meta = ItemMetadata.unpack(self.read_item(0))
        if meta.key_size != 0:
            if callback is not None:
                callback.slab = self
            self._rebuild_index(callback)

    # Context management -------------------------------------------------

    def __enter__(self) -> "Slab":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the slab file."""
        if self.fd >= 0:
            os.close(self.fd)
            self.fd = -1

    @property
    def nb_free_items(self) -> int:
        return len(self._free_items)

    # Geometry -----------------------------------------------------------

    def item_page_num(self, idx: int) -> int:
        """Page of the file holding slot ``idx``."""
        return idx // self.items_per_page

    def _in_page_offset(self, idx: int) -> int:
        return (idx % self.items_per_page) * self.item_size

    def _slot(self, page: memoryview, idx: int) -> memoryview:
        offset = self._in_page_offset(idx)
        return page[offset : offset + self.item_size]

    # File size ----------------------------------------------------------

    def _grow_file(self, size: int) -> None:
        try:
            os.ftruncate(self.fd, size)
        except OSError as exc:
            raise SlabError(
                f"Cannot resize slab (item size {self.item_size}) new size {size}"
            ) from exc
        self.size_on_disk = size

    def resize(self) -> "Slab":
        """Grow the file: double it up to 10 GB, then add 10 GB at a time."""
        if self.size_on_disk < _RESIZE_STEP:
            self._grow_file(self.size_on_disk * 2)
            self.nb_max_items *= 2
        else:
            self._grow_file(self.size_on_disk + _RESIZE_STEP)
            self.nb_max_items = self.size_on_disk // PAGE_SIZE * self.items_per_page
        return self

    # Recovery -----------------------------------------------------------

    def _add_existing_item(
        self, idx: int, data: memoryview, callback: Optional[SlabCallback]
    ) -> None:
        meta = ItemMetadata.unpack(data)
        if meta.is_removed():
            self._free_items.append(idx)
            self.last_item = max(self.last_item, idx)
        elif meta.key_size != 0:
            self.nb_items += 1
            self.last_item = max(self.last_item, idx)
            if meta.rdt > self.ctx.rdt:
                self.ctx.rdt = meta.rdt
            if callback is not None and callback.cb is not None:
                callback.slab_idx = idx
                callback.cb(callback, data)

    def _rebuild_index(self, callback: Optional[SlabCallback]) -> None:
        start = 0
        while True:
            end = min(start + _GRANULARITY_REBUILD, self.size_on_disk)
            end -= (end - start) % PAGE_SIZE
            if end == start:
                break
            data = os.pread(self.fd, end - start, start)
            if len(data) != end - start:
                raise SlabError(
                    f"pread failed! Read {len(data)} instead of {end - start} "
                    f"(offset {start})"
                )
            view = memoryview(data)
            first_page = start // PAGE_SIZE
            for p in range(len(data) // PAGE_SIZE):
                page = view[p * PAGE_SIZE : (p + 1) * PAGE_SIZE]
                base_idx = (first_page + p) * self.items_per_page
                for i in range(self.items_per_page):
                    self._add_existing_item(base_idx + i, self._slot(page, i), callback)
            start = end
        self.last_item += 1

    # Synchronous access -------------------------------------------------

    def read_item(self, idx: int) -> bytes:
        """Read the slot of item ``idx`` straight from disk."""
        page = safe_pread(self.fd, self.item_page_num(idx) * PAGE_SIZE)
        offset = self._in_page_offset(idx)
        return page[offset : offset + self.item_size]

    # Asynchronous access ------------------------------------------------

    def _read_page(
        self, callback: SlabCallback, io_cb: Callable[[SlabCallback], None]
    ) -> None:
        callback.slab = self
        callback.io_cb = io_cb
        request = IoRequest(
            self.fd, self.item_page_num(callback.slab_idx), _dispatch, payload=callback
        )
        self.ctx.engine.read_page_async(request)

    def _write_page(
        self, callback: SlabCallback, io_cb: Callable[[SlabCallback], None]
    ) -> None:
        callback.io_cb = io_cb
        request = IoRequest(
            self.fd,
            self.item_page_num(callback.slab_idx),
            _dispatch,
            lru_entry=callback.lru_entry,
            payload=callback,
        )
        self.ctx.engine.write_page_async(request)

    def _deliver(self, callback: SlabCallback) -> None:
        if callback.cb is not None:
            callback.cb(callback, self._slot(callback.lru_entry.page, callback.slab_idx))

    def read_item_async(self, callback: SlabCallback) -> None:
        """Read slot ``callback.slab_idx`` and hand it to ``callback.cb``."""
        self._read_page(callback, self._deliver)

    def _update_cb1(self, callback: SlabCallback) -> None:
        page = callback.lru_entry.page
        offset = self._in_page_offset(callback.slab_idx)
        item = callback.item
        if item is None:
            raise SlabError("no item to write")
        old_meta = ItemMetadata.unpack(page, offset)

        if isinstance(item, ItemMetadata):
            if not item.is_removed():
                raise SlabError("only a removed item can be written as bare metadata")
            item.rdt = self.ctx.rdt
            page[offset : offset + METADATA_SIZE] = item.pack()
        else:
            if callback.action is SlabAction.UPDATE:
                if len(item.key) != old_meta.key_size:
                    raise SlabError("Updating an item, but key size changed!")
                start = offset + METADATA_SIZE
                if bytes(page[start : start + old_meta.key_size]) != item.key:
                    raise SlabError("Updating an item, but key mismatch!")
            item.rdt = self.ctx.rdt
            if item.size() > self.item_size:
                raise SlabError("Trying to write an item that is too big for its slab")
            data = item.encode()
            page[offset : offset + len(data)] = data

        self._write_page(callback, self._deliver)

    def update_item_async(self, callback: SlabCallback) -> None:
        """Write ``callback.item`` into slot ``callback.slab_idx`` and flush it."""
        self._read_page(callback, self._update_cb1)

    def _add_cb1(self, callback: SlabCallback) -> None:
        if callback.lru_entry is None:
            if self.last_item >= self.nb_max_items:
                self.resize()
            callback.slab_idx = self.last_item
            self.last_item += 1
        self.nb_items += 1
        self.update_item_async(callback)

    def add_item_async(self, callback: SlabCallback) -> None:
        """Store ``callback.item`` in a free slot, or append it to the slab.

        The chosen slot is left in ``callback.slab_idx``.
        """
        callback.slab = self
        if self._free_items:
            callback.slab_idx = self._free_items.pop()
            self._read_page(callback, self._add_cb1)
        else:
            callback.lru_entry = None
            callback.io_cb = self._add_cb1
            self._add_cb1(callback)

    def _remove_cb1(self, callback: SlabCallback) -> None:
        page = callback.lru_entry.page
        idx = callback.slab_idx
        offset = self._in_page_offset(idx)
        meta = ItemMetadata.unpack(page, offset)
        if meta.is_removed():
            self._deliver(callback)
            return
        meta.rdt = self.ctx.rdt
        meta.key_size = REMOVED
        page[offset : offset + METADATA_SIZE] = meta.pack()
        self.nb_items -= 1
        self._free_items.append(idx)
        self._write_page(callback, self._deliver)

    def remove_item_async(self, callback: SlabCallback) -> None:
        """Mark slot ``callback.slab_idx`` as removed and flush it."""
        self._read_page(callback, self._remove_cb1)
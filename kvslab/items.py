"""On-disk layout of items: a fixed metadata header followed by key and value."""

from __future__ import annotations

import struct
from dataclasses import dataclass

_HEADER = struct.Struct("<QQQ")
METADATA_SIZE = _HEADER.size
REMOVED = -1
_SIZE_MAX = (1 << 64) - 1


@dataclass
class ItemMetadata:
    """Header of an item: timestamp, key size and value size.

    A removed item has ``key_size == -1`` and its ``value_size`` holds the
    index of the next free spot.
    """

    rdt: int = 0
    key_size: int = 0
    value_size: int = 0

    def pack(self) -> bytes:
        """Encode the header as stored on disk."""
        return _HEADER.pack(
            self.rdt & _SIZE_MAX, self.key_size & _SIZE_MAX, self.value_size & _SIZE_MAX
        )

    @classmethod
    def unpack(cls, data: bytes, offset: int = 0) -> "ItemMetadata":
        """Decode a header found at ``offset`` in ``data``."""
        try:
            rdt, key_size, value_size = _HEADER.unpack_from(data, offset)
        except struct.error as exc:
            raise ValueError("not enough data for an item header") from exc
        if key_size == _SIZE_MAX:
            key_size = REMOVED
        return cls(rdt, key_size, value_size)

    def is_removed(self) -> bool:
        return self.key_size == REMOVED

    def is_empty(self) -> bool:
        return self.key_size == 0


@dataclass
class Item:
    """A key/value pair with its timestamp."""

    key: bytes
    value: bytes = b""
    rdt: int = 0

    @property
    def metadata(self) -> ItemMetadata:
        return ItemMetadata(self.rdt, len(self.key), len(self.value))

    def encode(self) -> bytes:
        """Return the bytes written to disk for this item."""
        return self.metadata.pack() + self.key + self.value

    @classmethod
    def decode(cls, data: bytes, offset: int = 0) -> "Item":
        """Decode the item stored at ``offset`` in ``data``."""
        meta = ItemMetadata.unpack(data, offset)
        if meta.is_removed():
            raise ValueError("item has been removed")
        start = offset + METADATA_SIZE
        end = start + meta.key_size + meta.value_size
        if end > len(data):
            raise ValueError("item extends past the end of the data")
        key = bytes(data[start : start + meta.key_size])
        value = bytes(data[start + meta.key_size : end])
        return cls(key, value, meta.rdt)

    def size(self) -> int:
        """Number of bytes the encoded item takes."""
        return METADATA_SIZE + len(self.key) + len(self.value)
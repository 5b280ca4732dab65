"""Slab-based key-value storage components: items, page cache, IO engine, slabs, red-black tree and key generators."""

__version__ = "0.1.0"
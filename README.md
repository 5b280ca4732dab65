# kvslab

Building blocks of a slab-based key-value store, in plain Python with no
dependencies outside the standard library. File access uses `os.pread` and
`os.pwrite`, so a POSIX system is needed.

## Modules

- `kvslab.rbtree` — `RBTree`, an ordered map on a red-black tree with a
  pluggable three-way `compare` function: `insert`, `lookup`, `delete`,
  `lookup_n` (the first `n` pairs whose keys are >= a key), ordered iteration,
  `len()` and `verify()` (checks the invariants, returns the black height).
- `kvslab.distributions` — `Xorshf96`, an iterable xorshf96 generator, and
  `KeyGenerator`, a seeded source of Zipfian (`init_zipf`, `zipf_next`,
  `next_long`), uniform (`uniform_next`), small cached-range (`bogus_rand`) and
  production-like (`production_random1`, `production_random2`) keys.
  `get_function_name` gives a display name for one of these methods.
- `kvslab.items` — the on-disk item layout: `ItemMetadata` (a 24-byte header
  of timestamp, key size and value size; a key size of -1 marks a removed
  item) and `Item` (`encode`, `decode`, `size`).
- `kvslab.pagecache` — `PageCache`, a fixed number of page buffers recycled in
  least-recently-used order. `get_page(hash)` returns `(was_cached, entry)`,
  where `entry` is an `LruEntry` holding the page buffer and its
  `contains_data` / `dirty` flags. `page_hash(fd, page_num)` builds the key.
- `kvslab.ioengine` — `IoEngine`, which queues page reads and writes through a
  page cache, submits them in batches (`enqueue_ios`, `get_completed_ios`,
  `process_completed_ios`, or all at once with `run_until_idle`) and then
  calls each `IoRequest`'s `io_cb`. Misuse or incomplete IO raises
  `IoEngineError`. `safe_pread` reads one page synchronously.
- `kvslab.slab` — `Slab`, a file of fixed-size item slots. It rebuilds its
  counters and free-slot list from an existing file when opened, and offers
  `read_item` plus asynchronous `read_item_async`, `add_item_async`,
  `update_item_async` and `remove_item_async`, driven by `SlabCallback`
  objects and a `SlabContext` (IO engine and current timestamp). Errors raise
  `SlabError`.
- `kvslab.config` — default settings, `slab_path(disk, worker_id, item_size)`
  and `configuration_summary(...)`, the start-up banner text.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

```python
from kvslab.rbtree import RBTree

tree = RBTree()
for key in (5, 1, 9, 3):
    tree.insert(key, f"value-{key}")

print(tree.lookup(3))       # value-3
print(len(tree))            # 4
print(tree.lookup_n(2, 3))  # [(3, 'value-3'), (5, 'value-5'), (9, 'value-9')]
```

```python
from kvslab.pagecache import PageCache, page_hash

cache = PageCache(max_pages=16, page_size=4096)
was_cached, entry = cache.get_page(page_hash(3, 0))
print(was_cached, entry.contains_data)  # False False
```

```python
import os, tempfile
from kvslab.ioengine import IoEngine
from kvslab.items import Item
from kvslab.pagecache import PageCache
from kvslab.slab import Slab, SlabCallback, SlabContext

ctx = SlabContext(IoEngine(PageCache(64), nb_callbacks=16))
path = os.path.join(tempfile.mkdtemp(), "slab-128")
with Slab(ctx, path, item_size=128) as slab:
    cb = SlabCallback(item=Item(b"key", b"value"))
    slab.add_item_async(cb)
    ctx.engine.run_until_idle()
    print(Item.decode(slab.read_item(cb.slab_idx)))
```

## Commands

Turn a trace of `<time> <bytes>` lines into a throughput series over 10 ms
steps; a second argument of `1` counts requests instead of summing bytes:

```
kvslab-parse-log trace.log 0
```

Run a micro-benchmark: random page IO on a file (`--bench io`, the default,
with `--threads`, `--accesses`, `--queue-size`, `--mode ro|wo|rw|rm`), random
inserts and lookups in the red-black tree (`--bench structures --inserts N`),
or the most frequent Zipf keys (`--bench zipf --max-r N --length N --top N`):

```
kvslab-microbench data.bin --bench io --mode ro
kvslab-microbench --bench zipf --max-r 1000 --length 100000 --top 10
```

## What this package does not do

It provides the storage layers only. There is no key index mapping keys to
slab slots, no worker threads or disk sharding, no free-list persistence
beyond what a slab rebuilds when opened, no workload runner and no server or
client interface. IO is carried out synchronously when a batch is completed,
not through kernel asynchronous IO.
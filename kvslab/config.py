"""Store configuration and the default benchmark workload."""

from __future__ import annotations

import enum

DEBUG = False
PINNING = True
PAGE_SIZE = 4096


class IndexKind(enum.IntEnum):
    """In-memory data structures available for indexes."""

    RBTREE = 0
    RAX = 1
    ART = 2
    BTREE = 3


MEMORY_INDEX = IndexKind.BTREE
PAGECACHE_INDEX = IndexKind.BTREE

QUEUE_DEPTH = 64
MAX_NB_PENDING_CALLBACKS_PER_WORKER = 4 * QUEUE_DEPTH
NEVER_EXCEED_QUEUE_DEPTH = True
WAIT_A_BIT_FOR_MORE_IOS = False

PAGE_CACHE_SIZE = PAGE_SIZE * 7864320
MAX_PAGE_CACHE = PAGE_CACHE_SIZE // PAGE_SIZE

FREELIST_IN_MEMORY_ITEMS = 256

PATH_TEMPLATE = "/scratch{disk}/kvell/slab-{worker_id}-{generation}-{item_size}"

NB_ITEMS_IN_DB = 100000000
NB_LOAD_INJECTORS = 4
NB_REQUESTS = 100000000
NB_SCAN_REQUESTS = 2000000


def slab_path(disk: int, worker_id: int, item_size: int) -> str:
    """Return the file path of the slab of ``item_size`` owned by a worker."""
    return PATH_TEMPLATE.format(
        disk=disk, worker_id=worker_id, generation=0, item_size=item_size
    )


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def configuration_summary(
    nb_disks: int, nb_workers_per_disk: int, bench_name: str, nb_items: int = NB_ITEMS_IN_DB
) -> str:
    """Return the configuration banner printed at start-up."""
    lines = [
        "# Configuration:",
        f"# \tPage cache size: {PAGE_CACHE_SIZE // 1024 // 1024 // 1024} GB",
        f"# \tWorkers: {nb_disks * nb_workers_per_disk} working on {nb_disks} disks",
        f"# \tIO configuration: {QUEUE_DEPTH} queue depth "
        f"(capped: {_yes_no(NEVER_EXCEED_QUEUE_DEPTH)}, "
        f"extra waiting: {_yes_no(WAIT_A_BIT_FOR_MORE_IOS)})",
        f"# \tQueue configuration: {MAX_NB_PENDING_CALLBACKS_PER_WORKER} "
        "maximum pending callbaks per worker",
        f"# \tDatastructures: {int(MEMORY_INDEX)} (memory index) "
        f"{int(PAGECACHE_INDEX)} (pagecache)",
        f"# \tThread pinning: {_yes_no(PINNING)}",
        f"# \tBench: {bench_name} ({nb_items} elements)",
    ]
    return "\n".join(lines)
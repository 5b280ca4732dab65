"""Micro-benchmarks: random page IO, index data structures and the Zipf generator."""

from __future__ import annotations

import argparse
import enum
import itertools
import os
import random
import sys
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from kvslab.config import PAGE_SIZE
from kvslab.distributions import KeyGenerator, Xorshf96
from kvslab.rbtree import RBTree

NB_THREADS = 6
NB_ACCESSES = 5000000
QUEUE_SIZE = 56
NB_INSERTS = 10000000
MAX_R = 100000000
BENCH_L = 100000000
TOP_ZIPF = 100


class IoMode(enum.IntEnum):
    """Mix of reads and writes issued by the IO benchmark."""

    RO = 1  # read only
    WO = 2  # write only
    RW = 3  # half reads, half writes
    RM = 4  # 95% reads


_MODE_NAMES = {
    IoMode.RO: "Read only",
    IoMode.WO: "Write only",
    IoMode.RW: "Read-write",
    IoMode.RM: "Read-mostly",
}


def rw_to_str(rw: int) -> str:
    """Return the display name of an IO mode, or ``"????"`` if unknown."""
    try:
        return _MODE_NAMES[IoMode(rw)]
    except ValueError:
        return "????"


@dataclass(frozen=True)
class IoBenchResult:
    """Outcome of one run of :func:`bench_io`."""

    mode: IoMode
    nb_threads: int
    queue_size: int
    file_size: int
    nb_pages: int
    reads: int
    writes: int
    elapsed: float

    @property
    def accesses(self) -> int:
        return self.reads + self.writes

    @property
    def io_per_sec(self) -> float:
        return self.accesses / self.elapsed if self.elapsed > 0 else float("inf")


@dataclass(frozen=True)
class DataStructureResult:
    """Timings of inserts and lookups in one index structure."""

    name: str
    nb_inserts: int
    insert_seconds: float
    lookup_seconds: float
    nb_elements: int
    nb_found: int


def _is_write(mode: IoMode, rng: random.Random) -> bool:
    if mode is IoMode.RO:
        return False
    if mode is IoMode.WO:
        return True
    if mode is IoMode.RW:
        return rng.getrandbits(31) % 2 == 1
    return rng.getrandbits(31) % 100 < 5


def _io_worker(
    fd: int, mode: IoMode, queue_size: int, nb_accesses: int, nb_pages: int, seed: int
) -> tuple[int, int]:
    rng = random.Random(seed)
    buffers = bytearray(PAGE_SIZE * queue_size)
    view = memoryview(buffers)
    reads = writes = 0
    done = 0
    while done < nb_accesses:
        for j in range(queue_size):
            offset = rng.randrange(nb_pages) * PAGE_SIZE
            slot = view[j * PAGE_SIZE : (j + 1) * PAGE_SIZE]
            if _is_write(mode, rng):
                os.pwrite(fd, slot, offset)
                writes += 1
            else:
                data = os.pread(fd, PAGE_SIZE, offset)
                slot[: len(data)] = data
                reads += 1
            done += 1
    return reads, writes


def bench_io(
    path: str,
    nb_threads: int = NB_THREADS,
    nb_accesses: int = NB_ACCESSES,
    queue_size: int = QUEUE_SIZE,
    rw: int = IoMode.RO,
) -> IoBenchResult:
    """Issue random page reads/writes on ``path`` from several threads.

    Each thread performs ``nb_accesses // nb_threads`` accesses, in batches
    of ``queue_size`` (the last batch is always complete).
    """
    try:
        mode = IoMode(rw)
    except ValueError as exc:
        raise ValueError(f"unknown IO mode {rw!r}") from exc
    if nb_threads <= 0:
        raise ValueError("nb_threads must be positive")
    if queue_size <= 0:
        raise ValueError("queue_size must be positive")

    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o777)
    try:
        file_size = os.fstat(fd).st_size
        nb_pages = file_size // PAGE_SIZE
        if nb_pages == 0:
            raise ValueError(f"{path} holds no complete page to benchmark")
        per_thread = nb_accesses // nb_threads
        seeder = random.Random()
        seeds = [seeder.getrandbits(32) for _ in range(nb_threads)]
        start = time.perf_counter()
        with ThreadPoolExecutor(max_workers=nb_threads) as pool:
            outcomes = list(
                pool.map(
                    lambda seed: _io_worker(
                        fd, mode, queue_size, per_thread, nb_pages, seed
                    ),
                    seeds,
                )
            )
        elapsed = time.perf_counter() - start
    finally:
        os.close(fd)

    return IoBenchResult(
        mode=mode,
        nb_threads=nb_threads,
        queue_size=queue_size,
        file_size=file_size,
        nb_pages=nb_pages,
        reads=sum(r for r, _ in outcomes),
        writes=sum(w for _, w in outcomes),
        elapsed=elapsed,
    )


def bench_data_structures(nb_inserts: int = NB_INSERTS) -> list[DataStructureResult]:
    """Time random inserts and lookups of keys below ``nb_inserts`` in each index."""
    if nb_inserts <= 0:
        raise ValueError("nb_inserts must be positive")
    rng = Xorshf96()
    tree = RBTree()
    entry = object()

    start = time.perf_counter()
    for value in itertools.islice(rng, nb_inserts):
        tree.insert(value % nb_inserts, entry)
    insert_seconds = time.perf_counter() - start

    start = time.perf_counter()
    found = sum(
        1
        for value in itertools.islice(rng, nb_inserts)
        if tree.lookup(value % nb_inserts) is not None
    )
    lookup_seconds = time.perf_counter() - start

    return [
        DataStructureResult(
            "RBTREE", nb_inserts, insert_seconds, lookup_seconds, len(tree), found
        )
    ]


def bench_zipf(
    max_r: int = MAX_R, length: int = BENCH_L, top: int = TOP_ZIPF
) -> list[tuple[int, int]]:
    """Draw ``length`` Zipf keys over [0, max_r] and return the ``top`` most frequent.

    Pairs are ``(key, count)`` by decreasing count, then increasing key;
    keys never drawn follow with a count of 0.
    """
    generator = KeyGenerator()
    generator.init_zipf(0, max_r)
    counts = Counter(generator.zipf_next() for _ in range(length))
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    unseen = ((key, 0) for key in range(max_r) if key not in counts)
    return list(itertools.islice(itertools.chain(ranked, unseen), max(top, 0)))


def _mode_arg(text: str) -> IoMode:
    try:
        return IoMode[text.upper()]
    except KeyError as exc:
        raise argparse.ArgumentTypeError(f"unknown mode {text!r}") from exc


def main(argv: Optional[list[str]] = None) -> int:
    """Run one of the micro-benchmarks and print its results."""
    parser = argparse.ArgumentParser(prog="microbench")
    parser.add_argument("path", nargs="?", help="file used by the IO benchmark")
    parser.add_argument("--bench", choices=("io", "structures", "zipf"), default="io")
    parser.add_argument("--threads", type=int, default=NB_THREADS)
    parser.add_argument("--accesses", type=int, default=NB_ACCESSES)
    parser.add_argument("--queue-size", type=int, default=QUEUE_SIZE)
    parser.add_argument("--mode", type=_mode_arg, default=IoMode.RO)
    parser.add_argument("--inserts", type=int, default=NB_INSERTS)
    parser.add_argument("--max-r", type=int, default=MAX_R)
    parser.add_argument("--length", type=int, default=BENCH_L)
    parser.add_argument("--top", type=int, default=TOP_ZIPF)
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    if args.bench == "io":
        if args.path is None:
            parser.error("the IO benchmark needs a file path")
        result = bench_io(
            args.path, args.threads, args.accesses, args.queue_size, args.mode
        )
        print(
            f"# Size of file being benched: {result.file_size}B = "
            f"{result.nb_pages} pages"
        )
        print(
            f"{result.nb_threads} threads - {rw_to_str(result.mode)} - Time for "
            f"{result.accesses} accesses queue size {result.queue_size} = "
            f"{int(result.elapsed * 1000)}ms ({int(result.io_per_sec)} io/s)"
        )
    elif args.bench == "structures":
        for res in bench_data_structures(args.inserts):
            print(
                f"{res.name} - Time for {res.nb_inserts} inserts/replace "
                f"({int(res.nb_inserts / max(res.insert_seconds, 1e-9))} inserts/s)"
            )
            print(
                f"{res.name} - Time for {res.nb_inserts} finds "
                f"({int(res.nb_inserts / max(res.lookup_seconds, 1e-9))} finds/s)"
            )
    else:
        for key, count in bench_zipf(args.max_r, args.length, args.top):
            print(f"{key} - {count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
"""Pseudo-random key generators used to drive benchmark workloads."""

from __future__ import annotations

import warnings
from typing import Callable, Iterator

_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1

RAND_MAX = 2147483647
ZIPFIAN_CONSTANT = 0.99


class Xorshf96:
    """The xorshf96 generator (period 2**96 - 1) over 64-bit words."""

    def __init__(self) -> None:
        self._x = 123456789
        self._y = 362436069
        self._z = 521288629

    def next(self) -> int:
        """Advance the generator and return the next 64-bit value."""
        x = self._x
        x ^= (x << 16) & _MASK64
        x ^= x >> 5
        x ^= (x << 1) & _MASK64
        t = x
        self._x = self._y
        self._y = self._z
        self._z = t ^ self._x ^ self._y
        return self._z

    def __iter__(self) -> Iterator[int]:
        return self

    def __next__(self) -> int:
        return self.next()


def zeta_static(st: int, n: int, theta: float, initialsum: float = 0.0) -> float:
    """Return ``initialsum`` plus the sum of 1 / (i + 1) ** theta for st <= i < n."""
    return initialsum + sum(1.0 / ((i + 1) ** theta) for i in range(st, n))


class KeyGenerator:
    """Key distributions (Zipf, uniform and production traces) with a private seed."""

    def __init__(self, seed: int = 0) -> None:
        self._seed = seed & _MASK32
        self.items = 0
        self.base = 0
        self.theta = ZIPFIAN_CONSTANT
        self.zeta2theta = 0.0
        self.alpha = 0.0
        self.zetan = 0.0
        self.eta = 0.0
        self.countforzeta = 0

    def _rand_r(self) -> int:
        nxt = self._seed
        nxt = (nxt * 1103515245 + 12345) & _MASK32
        result = (nxt // 65536) % 2048
        nxt = (nxt * 1103515245 + 12345) & _MASK32
        result = (result << 10) ^ ((nxt // 65536) % 1024)
        nxt = (nxt * 1103515245 + 12345) & _MASK32
        result = (result << 10) ^ ((nxt // 65536) % 1024)
        self._seed = nxt
        return result

    def _zeta(self, st: int, n: int, initialsum: float) -> float:
        self.countforzeta = n
        return zeta_static(st, n, self.theta, initialsum)

    def _require_items(self) -> None:
        if self.items <= 0:
            raise RuntimeError("init_zipf must be called before drawing keys")

    def init_zipf(self, min: int, max: int) -> None:
        """Prepare the Zipf and uniform generators for keys in [min, max]."""
        items = max - min + 1
        if items <= 0:
            raise ValueError("max must not be smaller than min")
        self.items = items
        self.base = min
        self.theta = ZIPFIAN_CONSTANT
        self.zeta2theta = self._zeta(0, 2, 0.0)
        self.alpha = 1.0 / (1.0 - self.theta)
        self.zetan = zeta_static(0, items, self.theta, 0.0)
        self.countforzeta = items
        self.eta = (1 - (2.0 / items) ** (1 - self.theta)) / (
            1 - self.zeta2theta / self.zetan
        )
        self.zipf_next()

    def next_long(self, itemcount: int) -> int:
        """Draw a Zipf-distributed key among ``itemcount`` items."""
        self._require_items()
        if itemcount > self.countforzeta:
            warnings.warn(
                "Incrementally recomputing Zipfian distribution "
                f"(itemcount={itemcount}; countforzeta={self.countforzeta})",
                RuntimeWarning,
                stacklevel=2,
            )
            self.zetan = self._zeta(self.countforzeta, itemcount, self.zetan)
            self.eta = (1 - (2.0 / self.items) ** (1 - self.theta)) / (
                1 - self.zeta2theta / self.zetan
            )

        u = (self._rand_r() % RAND_MAX) / float(RAND_MAX)
        uz = u * self.zetan
        if uz < 1.0:
            return self.base
        if uz < 1.0 + 0.5 ** self.theta:
            return self.base + 1
        return self.base + int(itemcount * (self.eta * u - self.eta + 1) ** self.alpha)

    def zipf_next(self) -> int:
        """Draw a Zipf-distributed key over the initialised range."""
        return self.next_long(self.items)

    def uniform_next(self) -> int:
        """Draw a uniform value in [0, items)."""
        self._require_items()
        return self._rand_r() % self.items

    def bogus_rand(self) -> int:
        """Draw a value in [0, 1000): a key set small enough to stay cached."""
        return self._rand_r() % 1000

    def production_random1(self) -> int:
        """Draw a key following the first production workload distribution."""
        rand_key = self._rand_r()
        prob = self._rand_r() % 10000
        if prob < 13:
            return rand_key % 144000000
        if prob < 8130:
            return 144000000 + rand_key % (314400000 - 144000000)
        if prob < 9444:
            return 314400000 + rand_key % (450000000 - 314400000)
        if prob < 9742:
            return 450000000 + rand_key % (480000000 - 450000000)
        if prob < 9920:
            return 480000000 + rand_key % (490000000 - 480000000)
        return 490000000 + rand_key % (500000000 - 490000000)

    def production_random2(self) -> int:
        """Draw a key following the second production workload distribution."""
        rand_key = self._rand_r()
        prob = self._rand_r() % 10000
        if prob < 103487:
            return rand_key % 47016400
        if prob < 570480:
            return 47016400 + rand_key % (259179450 - 47016400)
        if prob < 849982:
            return 259179450 + rand_key % (386162550 - 259179450)
        if prob < 930511:
            return 386162550 + rand_key % (422748200 - 386162550)
        if prob < 973234:
            return 422748200 + rand_key % (442158000 - 422748200)
        if prob < 986958:
            return 442158000 + rand_key % (448392900 - 442158000)
        return 448392900 + rand_key % (500000000 - 448392900)


_FUNCTION_NAMES = {
    KeyGenerator.zipf_next: "Zipf",
    KeyGenerator.uniform_next: "Uniform",
    KeyGenerator.bogus_rand: "Cached",
    KeyGenerator.production_random1: "Production1",
    KeyGenerator.production_random2: "Production2",
}


def get_function_name(f: Callable[..., int]) -> str:
    """Return the display name of a key generator method."""
    return _FUNCTION_NAMES.get(getattr(f, "__func__", f), "Unknown random")
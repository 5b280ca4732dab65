from collections import Counter
from itertools import islice

import pytest

from kvslab.distributions import (
    KeyGenerator,
    Xorshf96,
    get_function_name,
    zeta_static,
)


def test_xorshf96_deterministic_and_iterable():
    a = Xorshf96()
    b = Xorshf96()
    expected = [b.next() for _ in range(5)]
    assert list(islice(a, 5)) == expected
    assert all(0 <= v < 2**64 for v in expected)
    assert len(set(expected)) == 5


def test_same_seed_same_sequence():
    a = KeyGenerator(42)
    b = KeyGenerator(42)
    assert [a.bogus_rand() for _ in range(20)] == [b.bogus_rand() for _ in range(20)]


def test_different_seeds_differ():
    a = KeyGenerator(1)
    b = KeyGenerator(2)
    assert [a.bogus_rand() for _ in range(20)] != [b.bogus_rand() for _ in range(20)]


def test_bogus_rand_range():
    gen = KeyGenerator(7)
    assert all(0 <= gen.bogus_rand() < 1000 for _ in range(500))


def test_uniform_requires_init():
    with pytest.raises(RuntimeError):
        KeyGenerator(3).uniform_next()


def test_zipf_requires_init():
    with pytest.raises(RuntimeError):
        KeyGenerator(3).zipf_next()


def test_init_rejects_empty_range():
    with pytest.raises(ValueError):
        KeyGenerator(3).init_zipf(10, 5)


def test_uniform_range():
    gen = KeyGenerator(5)
    gen.init_zipf(0, 99)
    values = [gen.uniform_next() for _ in range(1000)]
    assert all(0 <= v < 100 for v in values)
    assert len(set(values)) > 50


def test_zipf_range_and_skew():
    gen = KeyGenerator(11)
    gen.init_zipf(0, 999)
    values = [gen.zipf_next() for _ in range(3000)]
    assert all(0 <= v <= 1000 for v in values)
    assert Counter(values).most_common(1)[0][0] == 0


def test_zipf_respects_base():
    gen = KeyGenerator(9)
    gen.init_zipf(500, 599)
    values = [gen.zipf_next() for _ in range(500)]
    assert min(values) >= 500
    assert max(values) <= 600


def test_next_long_larger_itemcount_warns_and_updates():
    gen = KeyGenerator(13)
    gen.init_zipf(0, 99)
    before = gen.zetan
    with pytest.warns(RuntimeWarning):
        gen.next_long(200)
    assert gen.countforzeta == 200
    assert gen.zetan == pytest.approx(zeta_static(0, 200, gen.theta))
    assert gen.zetan > before


def test_zeta_static_values():
    assert zeta_static(0, 1, 0.99) == pytest.approx(1.0)
    assert zeta_static(0, 3, 0.0) == pytest.approx(3.0)
    assert zeta_static(0, 0, 0.99, 2.5) == 2.5


def test_zeta_static_incremental():
    head = zeta_static(0, 10, 0.99)
    assert zeta_static(10, 50, 0.99, head) == pytest.approx(zeta_static(0, 50, 0.99))


def test_production_random1_range():
    gen = KeyGenerator(17)
    values = [gen.production_random1() for _ in range(2000)]
    assert all(0 <= v < 500000000 for v in values)
    assert any(v >= 144000000 for v in values)


def test_production_random2_always_first_bucket():
    gen = KeyGenerator(19)
    assert all(0 <= gen.production_random2() < 47016400 for _ in range(500))


def test_get_function_name():
    gen = KeyGenerator()
    assert get_function_name(gen.zipf_next) == "Zipf"
    assert get_function_name(gen.uniform_next) == "Uniform"
    assert get_function_name(gen.bogus_rand) == "Cached"
    assert get_function_name(gen.production_random1) == "Production1"
    assert get_function_name(KeyGenerator.production_random2) == "Production2"
    assert get_function_name(len) == "Unknown random"
import os

import pytest

from kvslab.config import PAGE_SIZE
from kvslab.ioengine import IoEngine, IoEngineError, IoRequest, safe_pread
from kvslab.pagecache import PageCache

NB_PAGES = 4


def _page_content(num):
    return bytes([num + 1]) * PAGE_SIZE


@pytest.fixture
def fd(tmp_path):
    path = tmp_path / "data"
    path.write_bytes(b"".join(_page_content(i) for i in range(NB_PAGES)))
    handle = os.open(path, os.O_RDWR)
    yield handle
    os.close(handle)


@pytest.fixture
def engine():
    return IoEngine(PageCache(8, PAGE_SIZE), nb_callbacks=4)


def _recorder(seen):
    def cb(request):
        seen.append((request.page_num, bytes(request.lru_entry.page)))

    return cb


def test_uncached_read_is_deferred_then_completed(fd, engine):
    seen = []
    request = IoRequest(fd, 2, _recorder(seen))
    assert engine.read_page_async(request) is None
    assert engine.pending() == 1
    assert seen == []
    assert engine.run_until_idle() == 1
    assert engine.pending() == 0
    assert seen == [(2, _page_content(2))]
    assert request.lru_entry.contains_data


def test_cached_read_runs_callback_immediately(fd, engine):
    seen = []
    engine.read_page_async(IoRequest(fd, 1, _recorder(seen)))
    engine.run_until_idle()
    page = engine.read_page_async(IoRequest(fd, 1, _recorder(seen)))
    assert bytes(page) == _page_content(1)
    assert seen == [(1, _page_content(1)), (1, _page_content(1))]
    assert engine.pending() == 0


def test_read_of_page_in_flight_is_linked(fd, engine):
    seen = []
    engine.read_page_async(IoRequest(fd, 0, _recorder(seen)))
    assert engine.read_page_async(IoRequest(fd, 0, _recorder(seen))) is None
    assert engine.pending() == 1
    engine.run_until_idle()
    assert seen == [(0, _page_content(0)), (0, _page_content(0))]


def test_write_requires_page_in_memory(fd, engine):
    request = IoRequest(fd, 0, lambda r: None)
    with pytest.raises(IoEngineError):
        engine.write_page_async(request)


def test_write_flushes_page_to_disk(fd, engine):
    done = []

    def modify(request):
        request.lru_entry.page[:] = b"z" * PAGE_SIZE
        request.io_cb = lambda r: done.append(r.lru_entry.dirty)
        engine.write_page_async(request)

    engine.read_page_async(IoRequest(fd, 3, modify))
    engine.run_until_idle()
    assert done == [False]
    assert os.pread(fd, PAGE_SIZE, 3 * PAGE_SIZE) == b"z" * PAGE_SIZE
    assert os.pread(fd, PAGE_SIZE, 2 * PAGE_SIZE) == _page_content(2)


def test_second_write_while_dirty_is_linked(fd, engine):
    reader = IoRequest(fd, 1, lambda r: None)
    engine.read_page_async(reader)
    engine.run_until_idle()
    completed = []
    first = IoRequest(fd, 1, lambda r: completed.append("first"), reader.lru_entry)
    second = IoRequest(fd, 1, lambda r: completed.append("second"), reader.lru_entry)
    assert engine.write_page_async(first) is None
    page = engine.write_page_async(second)
    assert page is reader.lru_entry.page
    assert engine.pending() == 1
    engine.run_until_idle()
    assert sorted(completed) == ["first", "second"]
    assert reader.lru_entry.dirty is False


def test_queue_full_raises(fd):
    engine = IoEngine(PageCache(8, PAGE_SIZE), nb_callbacks=1)
    engine.read_page_async(IoRequest(fd, 0, lambda r: None))
    engine.read_page_async(IoRequest(fd, 1, lambda r: None))
    with pytest.raises(IoEngineError):
        engine.read_page_async(IoRequest(fd, 2, lambda r: None))
    assert engine.pending() == engine.max_pending_io


def test_short_read_raises(fd, engine):
    engine.read_page_async(IoRequest(fd, NB_PAGES + 5, lambda r: None))
    with pytest.raises(IoEngineError):
        engine.run_until_idle()


def test_enqueue_with_nothing_pending_is_idle(engine):
    engine.enqueue_ios()
    engine.get_completed_ios()
    engine.process_completed_ios()
    assert engine.ios_sent_to_disk == 0
    assert engine.run_until_idle() == 0


def test_invalid_nb_callbacks():
    with pytest.raises(ValueError):
        IoEngine(PageCache(2, PAGE_SIZE), nb_callbacks=0)


def test_safe_pread_reads_one_page(fd):
    assert safe_pread(fd, PAGE_SIZE) == _page_content(1)


def test_safe_pread_short_read_raises(fd):
    with pytest.raises(IoEngineError):
        safe_pread(fd, NB_PAGES * PAGE_SIZE)
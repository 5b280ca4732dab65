import pytest

from kvslab.items import METADATA_SIZE, Item, ItemMetadata


def test_metadata_pack_layout():
    packed = ItemMetadata(1, 2, 3).pack()
    assert len(packed) == METADATA_SIZE
    assert packed[:8] == b"\x01" + b"\x00" * 7
    assert packed[8:16] == b"\x02" + b"\x00" * 7
    assert packed[16:] == b"\x03" + b"\x00" * 7


def test_metadata_round_trip_with_offset():
    meta = ItemMetadata(77, 8, 100)
    data = b"pad" + meta.pack()
    assert ItemMetadata.unpack(data, 3) == meta


def test_removed_metadata():
    meta = ItemMetadata(5, -1, 12)
    packed = meta.pack()
    assert packed[8:16] == b"\xff" * 8
    decoded = ItemMetadata.unpack(packed)
    assert decoded.is_removed()
    assert decoded.value_size == 12
    assert not decoded.is_empty()


def test_empty_metadata():
    meta = ItemMetadata.unpack(bytes(METADATA_SIZE))
    assert meta.is_empty()
    assert not meta.is_removed()


def test_unpack_short_data():
    with pytest.raises(ValueError):
        ItemMetadata.unpack(b"\x00" * 10)


def test_item_round_trip():
    item = Item(b"key", b"some value", rdt=9)
    encoded = item.encode()
    assert len(encoded) == item.size()
    assert Item.decode(encoded) == item


def test_item_decode_at_offset():
    first = Item(b"a", b"1")
    second = Item(b"bb", b"22", rdt=4)
    data = first.encode() + second.encode()
    assert Item.decode(data, first.size()) == second


def test_item_metadata_property():
    item = Item(b"abcd", b"xy", rdt=3)
    assert item.metadata == ItemMetadata(3, 4, 2)


def test_decode_removed_item_raises():
    with pytest.raises(ValueError):
        Item.decode(ItemMetadata(0, -1, 0).pack())


def test_decode_truncated_item_raises():
    encoded = Item(b"key", b"value").encode()
    with pytest.raises(ValueError):
        Item.decode(encoded[:-2])
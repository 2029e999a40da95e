import pytest

from podformat.bitmap import (
    Bitmap,
    BitmapKind,
    clear_bit,
    set_bit,
    swab16,
    swab32,
    test_bit as bit_is_set,
)


def test_set_and_clear_bit_report_previous_state():
    data = bytearray(4)
    assert set_bit(13, data) is False
    assert set_bit(13, data) is True
    assert bit_is_set(13, data) is True
    assert clear_bit(13, data) is True
    assert clear_bit(13, data) is False
    assert bit_is_set(13, data) is False
    assert data == bytearray(4)


def test_bits_are_least_significant_first():
    data = bytearray(2)
    set_bit(9, data)
    assert bytes(data) == b"\x00\x02"


def test_swab_values():
    assert swab16(0x1234) == 0x3412
    assert swab32(0x12345678) == 0x78563412


@pytest.mark.parametrize("value", [0, 1, 0xABCD, 0xFFFF, 0x00FF])
def test_swab16_round_trip(value):
    assert swab16(swab16(value)) == value


@pytest.mark.parametrize("value", [0, 1, 0xDEADBEEF, 0xFFFFFFFF, 0x0000FF00])
def test_swab32_round_trip(value):
    assert swab32(swab32(value)) == value


def test_mark_unmark_test():
    bm = Bitmap(10, 50, 63, "test map")
    assert bm.mark(10) is False
    assert bm.mark(10) is True
    assert bm.test(10) is True
    assert bm.test(11) is False
    assert bm.unmark(10) is True
    assert bm.test(10) is False


@pytest.mark.parametrize("bitno", [9, 51, 63])
def test_out_of_range_raises(bitno):
    bm = Bitmap(10, 50, 63)
    with pytest.raises(IndexError):
        bm.mark(bitno)
    with pytest.raises(IndexError):
        bm.test(bitno)
    with pytest.raises(IndexError):
        bm.unmark(bitno)


def test_for_blocks_bounds():
    bm = Bitmap.for_blocks(1, 8193, 8192, 1, "block bitmap")
    assert bm.kind is BitmapKind.BLOCK
    assert bm.start == 1
    assert bm.end == 8192
    assert bm.real_end == 8192
    bm.mark(8192)
    assert bm.test(8192)
    with pytest.raises(IndexError):
        bm.mark(0)


def test_for_inodes_bounds():
    bm = Bitmap.for_inodes(100, 64, 2, "inode bitmap")
    assert bm.kind is BitmapKind.INODE
    assert bm.start == 1
    assert bm.end == 100
    assert bm.real_end == 128
    with pytest.raises(IndexError):
        bm.test(101)


def test_ranges():
    bm = Bitmap(0, 99, 127)
    assert bm.test_range(20, 10) is True
    bm.mark_range(20, 10)
    assert all(bm.test(b) for b in range(20, 30))
    assert bm.test(19) is False and bm.test(30) is False
    assert bm.test_range(25, 1) is False
    assert bm.test_range(30, 5) is True
    bm.unmark_range(20, 10)
    assert bm.test_range(20, 10) is True


def test_range_out_of_bounds_raises():
    bm = Bitmap(0, 99, 127)
    with pytest.raises(IndexError):
        bm.mark_range(95, 10)
    with pytest.raises(IndexError):
        bm.test_range(95, 10)
    with pytest.raises(IndexError):
        bm.unmark_range(95, 10)


def test_clear():
    bm = Bitmap(0, 30, 31)
    bm.mark_range(0, 31)
    bm.clear()
    assert bm.test_range(0, 31) is True
    assert bm.data == bytes(len(bm.data))


def test_set_padding_and_fudge_end():
    bm = Bitmap(0, 20, 31)
    bm.set_padding()
    assert bm.test_range(0, 21) is True
    assert bm.fudge_end(31) == 20
    assert bm.end == 31
    assert all(bm.test(b) for b in range(21, 32))


def test_fudge_end_past_real_end_raises():
    bm = Bitmap(0, 20, 31)
    with pytest.raises(ValueError):
        bm.fudge_end(32)
    assert bm.end == 20


def test_copy_is_independent():
    bm = Bitmap(5, 40, 47, "orig", BitmapKind.BLOCK)
    bm.mark(7)
    clone = bm.copy()
    assert clone.data == bm.data
    assert clone.description == "orig"
    assert clone.kind is BitmapKind.BLOCK
    clone.mark(8)
    assert bm.test(8) is False
    assert clone.test(7) is True


def test_invalid_bounds_raise():
    with pytest.raises(ValueError):
        Bitmap(10, 20, 5)
    with pytest.raises(ValueError):
        Bitmap(0, 40, 31)
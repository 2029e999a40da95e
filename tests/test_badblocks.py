import pytest

from podformat.badblocks import BadBlocksList


def test_blocks_kept_sorted_and_unique():
    bb = BadBlocksList([30, 10, 20, 10, 30])
    assert list(bb) == [10, 20, 30]
    assert len(bb) == 3


def test_add_inserts_in_order():
    bb = BadBlocksList([5, 50])
    bb.add(25)
    bb.add(1)
    bb.add(100)
    bb.add(25)
    assert list(bb) == [1, 5, 25, 50, 100]


def test_find_and_contains():
    bb = BadBlocksList([2, 4, 6, 8])
    for index, blk in enumerate([2, 4, 6, 8]):
        assert bb.find(blk) == index
        assert blk in bb
    assert bb.find(5) is None
    assert 5 not in bb
    assert BadBlocksList().find(0) is None


def test_remove():
    bb = BadBlocksList([1, 2, 3])
    bb.remove(2)
    assert list(bb) == [1, 3]
    with pytest.raises(ValueError):
        bb.remove(2)


def test_remove_from_empty_raises():
    with pytest.raises(ValueError):
        BadBlocksList().remove(7)


def test_out_of_range_rejected():
    bb = BadBlocksList()
    with pytest.raises(ValueError):
        bb.add(-1)
    with pytest.raises(ValueError):
        bb.add(1 << 32)
    bb.add(0xFFFFFFFF)
    assert list(bb) == [0xFFFFFFFF]


def test_equality():
    assert BadBlocksList([3, 1, 2]) == BadBlocksList([1, 2, 3])
    assert not BadBlocksList([1, 2]) == BadBlocksList([1, 2, 3])
    assert not BadBlocksList([1]) == [1]


def test_copy_is_independent():
    original = BadBlocksList([7, 9])
    clone = original.copy()
    assert clone == original
    clone.add(8)
    assert list(original) == [7, 9]
    assert list(clone) == [7, 8, 9]


def test_iteration_survives_changes():
    bb = BadBlocksList([1, 2, 3])
    seen = []
    for blk in bb:
        seen.append(blk)
        bb.add(blk + 10)
    assert seen == [1, 2, 3]
    assert len(bb) == 6
"""Bit-level helpers and the inode and block allocation bitmaps."""

from __future__ import annotations

from enum import Enum
from typing import Optional

_U16 = 0xFFFF
_U32 = 0xFFFFFFFF


def set_bit(nr: int, data: bytearray) -> bool:
    """Set bit nr (least significant bit first) and return its previous state."""
    index, mask = nr >> 3, 1 << (nr & 7)
    previous = bool(data[index] & mask)
    data[index] |= mask
    return previous


def clear_bit(nr: int, data: bytearray) -> bool:
    """Clear bit nr and return its previous state."""
    index, mask = nr >> 3, 1 << (nr & 7)
    previous = bool(data[index] & mask)
    data[index] &= ~mask & 0xFF
    return previous


def test_bit(nr: int, data: bytes) -> bool:
    """Return whether bit nr is set."""
    return bool(data[nr >> 3] & (1 << (nr & 7)))


def swab16(val: int) -> int:
    """Swap the two bytes of a 16-bit value."""
    val &= _U16
    return ((val >> 8) | (val << 8)) & _U16


def swab32(val: int) -> int:
    """Reverse the four bytes of a 32-bit value."""
    val &= _U32
    return (
        (val >> 24)
        | ((val >> 8) & 0xFF00)
        | ((val << 8) & 0xFF0000)
        | (val << 24)
    ) & _U32


class BitmapKind(Enum):
    """What a bitmap's bits stand for."""

    GENERIC = "generic"
    INODE = "inode"
    BLOCK = "block"


class Bitmap:
    """A bitmap over the numbers start..end, stored up to real_end.

    Bits past end and up to real_end are padding: they exist in storage
    but cannot be reached until the end is moved with fudge_end.
    """

    def __init__(
        self,
        start: int,
        end: int,
        real_end: int,
        description: Optional[str] = None,
        kind: BitmapKind = BitmapKind.GENERIC,
    ) -> None:
        if real_end < start:
            raise ValueError(f"real end {real_end} lies before start {start}")
        if end > real_end:
            raise ValueError(f"end {end} lies past real end {real_end}")
        self.start = start
        self.end = end
        self.real_end = real_end
        self.description = description
        self.kind = kind
        self._bits = bytearray((real_end - start) // 8 + 1)

    @classmethod
    def for_inodes(
        cls,
        inodes_count: int,
        inodes_per_group: int,
        group_count: int,
        description: Optional[str] = None,
    ) -> "Bitmap":
        """Make an inode bitmap; inode numbers start at 1."""
        return cls(
            1,
            inodes_count,
            inodes_per_group * group_count,
            description,
            BitmapKind.INODE,
        )

    @classmethod
    def for_blocks(
        cls,
        first_data_block: int,
        blocks_count: int,
        blocks_per_group: int,
        group_count: int,
        description: Optional[str] = None,
    ) -> "Bitmap":
        """Make a block bitmap covering first_data_block..blocks_count-1."""
        return cls(
            first_data_block,
            blocks_count - 1,
            blocks_per_group * group_count - 1 + first_data_block,
            description,
            BitmapKind.BLOCK,
        )

    @property
    def data(self) -> bytes:
        """The stored bits, padding included."""
        return bytes(self._bits)

    def _label(self) -> str:
        return self.description or f"{self.kind.value} bitmap"

    def _check(self, bitno: int, action: str) -> None:
        if bitno < self.start or bitno > self.end:
            raise IndexError(f"cannot {action} #{bitno} for {self._label()}")

    def _check_range(self, block: int, num: int, action: str) -> None:
        if block < self.start or block + num - 1 > self.end:
            raise IndexError(
                f"cannot {action} #{block} (+{num}) for {self._label()}"
            )

    def mark(self, bitno: int) -> bool:
        """Set a bit and return its previous state."""
        self._check(bitno, "mark")
        return set_bit(bitno - self.start, self._bits)

    def unmark(self, bitno: int) -> bool:
        """Clear a bit and return its previous state."""
        self._check(bitno, "unmark")
        return clear_bit(bitno - self.start, self._bits)

    def test(self, bitno: int) -> bool:
        """Return whether a bit is set."""
        self._check(bitno, "test")
        return test_bit(bitno - self.start, self._bits)

    def mark_range(self, block: int, num: int) -> None:
        """Set num bits starting at block."""
        self._check_range(block, num, "mark")
        for offset in range(block - self.start, block - self.start + num):
            set_bit(offset, self._bits)

    def unmark_range(self, block: int, num: int) -> None:
        """Clear num bits starting at block."""
        self._check_range(block, num, "unmark")
        for offset in range(block - self.start, block - self.start + num):
            clear_bit(offset, self._bits)

    def test_range(self, block: int, num: int) -> bool:
        """Return True when none of the num bits starting at block is set."""
        self._check_range(block, num, "test")
        return not any(
            test_bit(offset, self._bits)
            for offset in range(block - self.start, block - self.start + num)
        )

    def clear(self) -> None:
        """Clear every bit, padding included."""
        self._bits[:] = bytes(len(self._bits))

    def set_padding(self) -> None:
        """Set the padding bits between end and real_end."""
        for offset in range(self.end + 1 - self.start, self.real_end + 1 - self.start):
            set_bit(offset, self._bits)

    def fudge_end(self, end: int) -> int:
        """Move the usable end of the bitmap; return the old end."""
        if end > self.real_end:
            raise ValueError(
                f"end {end} lies past real end {self.real_end} of {self._label()}"
            )
        previous, self.end = self.end, end
        return previous

    def copy(self) -> "Bitmap":
        """Return an independent copy."""
        clone = Bitmap(self.start, self.end, self.real_end, self.description, self.kind)
        clone._bits[:] = self._bits
        return clone

    def __repr__(self) -> str:
        return (
            f"Bitmap(start={self.start}, end={self.end}, real_end={self.real_end}, "
            f"description={self.description!r}, kind={self.kind})"
        )
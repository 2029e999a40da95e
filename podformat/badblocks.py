"""A sorted set of bad block numbers."""

from __future__ import annotations

import bisect
from typing import Iterable, Iterator, Optional

_U32 = 0xFFFFFFFF


class BadBlocksList:
    """Bad block numbers kept sorted and without repeats."""

    __hash__ = None  # type: ignore[assignment]

    def __init__(self, blocks: Optional[Iterable[int]] = None) -> None:
        self._blocks: list[int] = []
        for blk in blocks or ():
            self.add(blk)

    def add(self, blk: int) -> None:
        """Add a block number; adding one already present does nothing."""
        if not 0 <= blk <= _U32:
            raise ValueError(f"block number out of range: {blk}")
        index = bisect.bisect_left(self._blocks, blk)
        if index == len(self._blocks) or self._blocks[index] != blk:
            self._blocks.insert(index, blk)

    def find(self, blk: int) -> Optional[int]:
        """Return the position of a block number in the list, or None."""
        index = bisect.bisect_left(self._blocks, blk)
        if index < len(self._blocks) and self._blocks[index] == blk:
            return index
        return None

    def __contains__(self, blk: object) -> bool:
        return isinstance(blk, int) and self.find(blk) is not None

    def remove(self, blk: int) -> None:
        """Remove a block number; raise ValueError if it is not listed."""
        index = self.find(blk)
        if index is None:
            raise ValueError(f"block {blk} is not in the list")
        del self._blocks[index]

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._blocks))

    def __len__(self) -> int:
        return len(self._blocks)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BadBlocksList):
            return NotImplemented
        return self._blocks == other._blocks

    def copy(self) -> "BadBlocksList":
        """Return an independent copy."""
        clone = BadBlocksList()
        clone._blocks = list(self._blocks)
        return clone

    def __repr__(self) -> str:
        return f"BadBlocksList({self._blocks!r})"
"""Create a FAT filesystem on a seekable binary device."""

from __future__ import annotations

import dataclasses
import io
import os
import sys
import time
from typing import BinaryIO, Optional, Sequence

from .fatlayout import (
    BLOCK_SIZE,
    FAT_BAD,
    HARD_SECTOR_SIZE,
    FatFormatError,
    FatLayout,
    FatOptions,
    FatTable,
    compute_layout,
)

PROGRAM_NAME = "mkdosfs"
VERSION = "2.10-rawpod"
VERSION_DATE = "01 Mar 2006"

TEST_BUFFER_BLOCKS = 16
SECTORS_PER_BLOCK = BLOCK_SIZE // HARD_SECTOR_SIZE

_USAGE = "Usage: mkdosfs [-y] <path>\n"


def _valid_offset(dev: BinaryIO, offset: int) -> bool:
    try:
        if dev.seek(offset, os.SEEK_SET) != offset:
            return False
        return len(dev.read(1)) >= 1
    except OSError:
        return False


def count_blocks(dev: BinaryIO) -> int:
    """Return how many whole 512-byte blocks the device holds."""
    try:
        low = dev.seek(0, os.SEEK_END)
    except OSError:
        low = 0
    if low <= 0:
        low = 0
        high = 1
        while _valid_offset(dev, high):
            low = high
            high *= 2
        while low + 1 < high:
            mid = (low + high) // 2
            if _valid_offset(dev, mid):
                low = mid
            else:
                high = mid
        low += 1
    return low // BLOCK_SIZE


def _do_check(dev: BinaryIO, tries: int, current_block: int) -> int:
    """Read tries blocks from current_block; return how many came back whole."""
    position = current_block * BLOCK_SIZE
    if dev.seek(position, os.SEEK_SET) != position:
        raise FatFormatError("seek failed during testing for blocks")
    try:
        got = len(dev.read(tries * BLOCK_SIZE))
    except OSError:
        got = 0
    if got % BLOCK_SIZE:
        print("Unexpected values in do_check: probably bugs")
    return got // BLOCK_SIZE


def _mark_block_bad(fat: FatTable, layout: FatLayout, block: int) -> None:
    for i in range(SECTORS_PER_BLOCK):
        fat.mark_sector(block * SECTORS_PER_BLOCK + i, FAT_BAD, layout)


def _report_bad(count: int) -> None:
    if count:
        print(f"{count} bad block{'s' if count > 1 else ''}")


def check_blocks(
    dev: BinaryIO, layout: FatLayout, fat: FatTable, verbose: int = 0
) -> int:
    """Read the whole device, mark unreadable blocks bad in the FAT; return their count."""
    if verbose:
        print("Searching for bad blocks ", end="", flush=True)
    blocks = layout.blocks
    badblocks = 0
    current = 0
    tries = TEST_BUFFER_BLOCKS
    while current < blocks:
        if current + tries > blocks:
            tries = blocks - current
        got = _do_check(dev, tries, current)
        current += got
        if got == tries:
            tries = TEST_BUFFER_BLOCKS
            continue
        tries = 1
        if current < layout.start_data_block:
            raise FatFormatError("bad blocks before data-area: cannot make fs")
        _mark_block_bad(fat, layout, current)
        badblocks += 1
        current += 1
    if verbose:
        print()
    _report_bad(badblocks)
    return badblocks


def read_bad_block_list(path: str, layout: FatLayout, fat: FatTable) -> int:
    """Mark the blocks listed in a text file as bad; return how many were listed."""
    try:
        with open(path, "r", encoding="ascii") as listfile:
            text = listfile.read()
    except OSError as exc:
        raise FatFormatError("Can't open file of bad blocks") from exc
    badblocks = 0
    for word in text.split():
        try:
            block = int(word)
        except ValueError as exc:
            raise FatFormatError(f"bad block number in list: {word!r}") from exc
        _mark_block_bad(fat, layout, block)
        badblocks += 1
    _report_bad(badblocks)
    return badblocks


def _seek_to(dev: BinaryIO, position: int, what: str) -> None:
    try:
        reached = dev.seek(position, os.SEEK_SET)
    except OSError as exc:
        raise FatFormatError(f"seek to {what} failed whilst writing tables") from exc
    if reached != position:
        raise FatFormatError(f"seek to {what} failed whilst writing tables")


def _write(dev: BinaryIO, data: bytes, what: str) -> None:
    try:
        written = dev.write(data)
    except OSError as exc:
        raise FatFormatError(f"failed whilst writing {what}") from exc
    if written != len(data):
        raise FatFormatError(f"failed whilst writing {what}")


def write_tables(
    dev: BinaryIO, layout: FatLayout, fat: FatTable, root_dir: bytes
) -> None:
    """Write reserved sectors, boot sectors, FATs and root directory to the device."""
    sector_size = layout.sector_size
    boot = layout.boot_sector()

    _seek_to(dev, 0, "start of device")
    blank = bytes(sector_size)
    for _ in range(layout.reserved_sectors):
        _write(dev, blank, "reserved sector")
    _seek_to(dev, 0, "boot sector")
    _write(dev, boot, "boot sector")
    if layout.size_fat == 32:
        _seek_to(dev, layout.info_sector_number * sector_size, "info sector")
        _write(dev, layout.info_sector()[:512], "info sector")
        if layout.backup_boot:
            _seek_to(dev, layout.backup_boot * sector_size, "backup boot sector")
            _write(dev, boot, "backup boot sector")
    _seek_to(dev, layout.reserved_sectors * sector_size, "first FAT")
    table = fat.to_bytes()
    for _ in range(layout.nr_fats):
        _write(dev, table, "FAT")
    _write(dev, root_dir, "root directory")


def create_fat_filesystem(
    dev: BinaryIO, options: Optional[FatOptions] = None
) -> FatLayout:
    """Lay out and write a new FAT filesystem (FAT32 by default) on dev."""
    create_time = time.time()
    opts = options if options is not None else FatOptions()
    if opts.volume_id is None:
        opts = dataclasses.replace(opts, volume_id=int(create_time))
    print(f"{PROGRAM_NAME} {VERSION} ({VERSION_DATE})")

    blocks = count_blocks(dev)
    layout = compute_layout(blocks, opts)

    fat = FatTable(layout.size_fat, layout.fat_length * layout.sector_size)
    fat.mark_cluster(0, 0xFFFFFF00 | layout.media)
    fat.mark_cluster(1, 0xFFFFFFFF)
    if layout.size_fat == 32:
        fat.mark_cluster(2, layout.fat_eof)

    root_dir = layout.root_directory(create_time)
    write_tables(dev, layout, fat, root_dir)
    return layout


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Make a FAT32 filesystem on the file or device named on the command line."""
    args = list(sys.argv[1:] if argv is None else argv)
    assume_yes = False
    paths = []
    for arg in args:
        if arg in ("-y", "--yes"):
            assume_yes = True
        else:
            paths.append(arg)
    if len(paths) != 1:
        sys.stderr.write(_USAGE)
        return 1
    path = paths[0]

    try:
        dev = open(path, "r+b")
    except OSError as exc:
        sys.stderr.write(f"{path}: {exc.strerror or exc}\n")
        return 1
    with dev:
        if not assume_yes:
            print(
                f"Are you SURE you want to create a FAT32 filesystem on {path}?\n"
                "ALL DATA WILL BE ERASED.\n"
                "Press Enter to continue or Ctrl+C to cancel..."
            )
            try:
                input()
            except (EOFError, KeyboardInterrupt):
                return 1
        try:
            create_fat_filesystem(dev)
        except FatFormatError as exc:
            sys.stderr.write(f"{PROGRAM_NAME}: {exc}\n")
            return 1
        except io.UnsupportedOperation as exc:
            sys.stderr.write(f"{PROGRAM_NAME}: {exc}\n")
            return 1
    return 0
"""Lay out and write FAT filesystems, with helpers for ext2 metadata."""

__version__ = "0.1.0"

__all__ = [
    "badblocks",
    "bitmap",
    "errtable",
    "fatlayout",
    "features",
    "mkdosfs",
    "superblock_report",
]
"""Conversion between ext2 feature, hash and default mount option names and bits."""

from __future__ import annotations

import re
from enum import IntEnum
from typing import Iterator, Optional, Sequence

_U32 = 0xFFFFFFFF


class FeatureType(IntEnum):
    """Which of the three superblock feature words a feature bit lives in."""

    COMPAT = 0
    INCOMPAT = 1
    RO_COMPAT = 2


EXT2_FEATURE_COMPAT_DIR_PREALLOC = 0x0001
EXT2_FEATURE_COMPAT_IMAGIC_INODES = 0x0002
EXT3_FEATURE_COMPAT_HAS_JOURNAL = 0x0004
EXT2_FEATURE_COMPAT_EXT_ATTR = 0x0008
EXT2_FEATURE_COMPAT_RESIZE_INODE = 0x0010
EXT2_FEATURE_COMPAT_DIR_INDEX = 0x0020

EXT2_FEATURE_RO_COMPAT_SPARSE_SUPER = 0x0001
EXT2_FEATURE_RO_COMPAT_LARGE_FILE = 0x0002

EXT2_FEATURE_INCOMPAT_COMPRESSION = 0x0001
EXT2_FEATURE_INCOMPAT_FILETYPE = 0x0002
EXT3_FEATURE_INCOMPAT_RECOVER = 0x0004
EXT3_FEATURE_INCOMPAT_JOURNAL_DEV = 0x0008
EXT2_FEATURE_INCOMPAT_META_BG = 0x0010

EXT2_HASH_LEGACY = 0
EXT2_HASH_HALF_MD4 = 1
EXT2_HASH_TEA = 2

EXT2_DEFM_DEBUG = 0x0001
EXT2_DEFM_BSDGROUPS = 0x0002
EXT2_DEFM_XATTR_USER = 0x0004
EXT2_DEFM_ACL = 0x0008
EXT2_DEFM_UID16 = 0x0010
EXT3_DEFM_JMODE = 0x0060
EXT3_DEFM_JMODE_DATA = 0x0020
EXT3_DEFM_JMODE_ORDERED = 0x0040
EXT3_DEFM_JMODE_WBACK = 0x0060

_FEATURES = (
    (FeatureType.COMPAT, EXT2_FEATURE_COMPAT_DIR_PREALLOC, "dir_prealloc"),
    (FeatureType.COMPAT, EXT3_FEATURE_COMPAT_HAS_JOURNAL, "has_journal"),
    (FeatureType.COMPAT, EXT2_FEATURE_COMPAT_IMAGIC_INODES, "imagic_inodes"),
    (FeatureType.COMPAT, EXT2_FEATURE_COMPAT_EXT_ATTR, "ext_attr"),
    (FeatureType.COMPAT, EXT2_FEATURE_COMPAT_DIR_INDEX, "dir_index"),
    (FeatureType.COMPAT, EXT2_FEATURE_COMPAT_RESIZE_INODE, "resize_inode"),
    (FeatureType.RO_COMPAT, EXT2_FEATURE_RO_COMPAT_SPARSE_SUPER, "sparse_super"),
    (FeatureType.RO_COMPAT, EXT2_FEATURE_RO_COMPAT_LARGE_FILE, "large_file"),
    (FeatureType.INCOMPAT, EXT2_FEATURE_INCOMPAT_COMPRESSION, "compression"),
    (FeatureType.INCOMPAT, EXT2_FEATURE_INCOMPAT_FILETYPE, "filetype"),
    (FeatureType.INCOMPAT, EXT3_FEATURE_INCOMPAT_RECOVER, "needs_recovery"),
    (FeatureType.INCOMPAT, EXT3_FEATURE_INCOMPAT_JOURNAL_DEV, "journal_dev"),
    (FeatureType.INCOMPAT, EXT2_FEATURE_INCOMPAT_META_BG, "meta_bg"),
)

_TYPE_CHARS = {
    FeatureType.COMPAT: "C",
    FeatureType.INCOMPAT: "I",
    FeatureType.RO_COMPAT: "R",
}
_CHAR_TYPES = {char.lower(): ftype for ftype, char in _TYPE_CHARS.items()}

_HASHES = (
    (EXT2_HASH_LEGACY, "legacy"),
    (EXT2_HASH_HALF_MD4, "half_md4"),
    (EXT2_HASH_TEA, "tea"),
)

_MNTOPTS = (
    (EXT2_DEFM_DEBUG, "debug"),
    (EXT2_DEFM_BSDGROUPS, "bsdgroups"),
    (EXT2_DEFM_XATTR_USER, "user_xattr"),
    (EXT2_DEFM_ACL, "acl"),
    (EXT2_DEFM_UID16, "uid16"),
    (EXT3_DEFM_JMODE_DATA, "journal_data"),
    (EXT3_DEFM_JMODE_ORDERED, "journal_data_ordered"),
    (EXT3_DEFM_JMODE_WBACK, "journal_data_writeback"),
)

_LEADING_INT = re.compile(r"\s*[+-]?\d+")
_WORD = re.compile(r"\s*([^\s,]*)")


def _highest_bit(mask: int) -> int:
    return max((mask & _U32).bit_length() - 1, 0)


def _leading_int(text: str) -> tuple[int, str]:
    """Parse a decimal number at the start of text; return it and what follows."""
    match = _LEADING_INT.match(text)
    if match is None:
        return 0, text
    return int(match.group()), text[match.end():]


def _words(spec: str) -> Iterator[str]:
    """Split an edit specification into words separated by blanks or commas."""
    pos = 0
    while pos < len(spec):
        match = _WORD.match(spec, pos)
        yield match.group(1)
        pos = match.end() + 1


def _split_sign(word: str) -> tuple[bool, str]:
    first = word[:1]
    if first in ("-", "^"):
        return True, word[1:]
    if first == "+":
        return False, word[1:]
    return False, word


def feature_to_string(compat: int, mask: int) -> str:
    """Name a feature bit, falling back to FEATURE_<type><bit>."""
    for ftype, fmask, name in _FEATURES:
        if compat == ftype and mask == fmask:
            return name
    char = _TYPE_CHARS.get(compat, "?")
    return f"FEATURE_{char}{_highest_bit(mask)}"


def string_to_feature(string: str) -> tuple[FeatureType, int]:
    """Return (feature type, mask) for a feature name; raise ValueError if unknown."""
    lowered = string.lower()
    for ftype, mask, name in _FEATURES:
        if lowered == name:
            return ftype, mask
    if not lowered.startswith("feature_"):
        raise ValueError(f"unknown feature: {string!r}")
    ftype = _CHAR_TYPES.get(lowered[8:9])
    if ftype is None or len(string) == 9:
        raise ValueError(f"unknown feature: {string!r}")
    num, rest = _leading_int(string[9:])
    if num > 32 or num < 0 or rest:
        raise ValueError(f"unknown feature: {string!r}")
    return ftype, 1 << num


def edit_features(
    spec: str,
    compat_array: Sequence[int],
    ok_array: Optional[Sequence[int]] = None,
) -> list[int]:
    """Apply a "feat,-feat,^feat,+feat" edit to three feature words.

    ok_array, when given, limits which bits may be set or cleared.
    Returns the edited words; the input is left untouched.
    """
    result = list(compat_array)
    for word in _words(spec):
        negate, name = _split_sign(word)
        ftype, mask = string_to_feature(name)
        if ok_array is not None and not ok_array[ftype] & mask:
            raise ValueError(f"feature may not be changed: {name!r}")
        if negate:
            result[ftype] &= ~mask & _U32
        else:
            result[ftype] |= mask
    return result


def hash_to_string(num: int) -> str:
    """Name a directory hash algorithm, falling back to HASHALG_<n>."""
    for hnum, name in _HASHES:
        if num == hnum:
            return name
    return f"HASHALG_{num}"


def string_to_hash(string: str) -> int:
    """Return the hash algorithm number for a name; raise ValueError if unknown."""
    lowered = string.lower()
    for hnum, name in _HASHES:
        if lowered == name:
            return hnum
    if not lowered.startswith("hashalg_") or len(string) == 8:
        raise ValueError(f"unknown hash algorithm: {string!r}")
    num, rest = _leading_int(string[8:])
    if num > 255 or num < 0 or rest:
        raise ValueError(f"unknown hash algorithm: {string!r}")
    return num


def mntopt_to_string(mask: int) -> str:
    """Name a default mount option bit, falling back to MNTOPT_<bit>."""
    for omask, name in _MNTOPTS:
        if mask == omask:
            return name
    return f"MNTOPT_{_highest_bit(mask)}"


def string_to_mntopt(string: str) -> int:
    """Return the mask of a named mount option; raise ValueError if unknown.

    Only the named options are accepted: the numeric MNTOPT_<n> form that
    mntopt_to_string falls back to is not parsed back.
    """
    lowered = string.lower()
    for mask, name in _MNTOPTS:
        if lowered == name:
            return mask
    raise ValueError(f"unknown mount option: {string!r}")


def edit_mntopts(spec: str, mntopts: int, ok: int = 0) -> int:
    """Apply a "opt,-opt,^opt,+opt" edit to a mount option word and return it.

    A journalling mode replaces any mode already set. A non-zero ok limits
    which options may be changed.
    """
    result = mntopts
    for word in _words(spec):
        negate, name = _split_sign(word)
        mask = string_to_mntopt(name)
        if ok and not ok & mask:
            raise ValueError(f"mount option may not be changed: {name!r}")
        if mask & EXT3_DEFM_JMODE:
            result &= ~EXT3_DEFM_JMODE & _U32
        if negate:
            result &= ~mask & _U32
        else:
            result |= mask
    return result
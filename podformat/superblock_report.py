"""Human-readable reports on an ext2 superblock and its fields."""

from __future__ import annotations

import os
import sys
import time
import uuid as _uuid
from dataclasses import dataclass
from typing import Callable, Optional, TextIO

from .features import (
    EXT2_FEATURE_COMPAT_DIR_INDEX,
    EXT3_DEFM_JMODE,
    feature_to_string,
    hash_to_string,
    mntopt_to_string,
)

EXT2_SUPER_MAGIC = 0xEF53
EXT2_GOOD_OLD_REV = 0
EXT2_DYNAMIC_REV = 1
EXT2_GOOD_OLD_INODE_SIZE = 128
EXT2_MIN_BLOCK_SIZE = 1024
EXT2_MIN_FRAG_SIZE = 1024

EXT2_OS_LINUX = 0
EXT2_OS_HURD = 1
EXT2_OS_MASIX = 2

EXT2_VALID_FS = 0x0001
EXT2_ERROR_FS = 0x0002

EXT2_ERRORS_CONTINUE = 1
EXT2_ERRORS_RO = 2
EXT2_ERRORS_PANIC = 3

EXT2_SECRM_FL = 0x00000001
EXT2_UNRM_FL = 0x00000002
EXT2_COMPR_FL = 0x00000004
EXT2_SYNC_FL = 0x00000008
EXT2_IMMUTABLE_FL = 0x00000010
EXT2_APPEND_FL = 0x00000020
EXT2_NODUMP_FL = 0x00000040
EXT2_NOATIME_FL = 0x00000080
EXT2_INDEX_FL = 0x00001000
EXT3_JOURNAL_DATA_FL = 0x00004000
EXT2_NOTAIL_FL = 0x00008000
EXT2_DIRSYNC_FL = 0x00010000
EXT2_TOPDIR_FL = 0x00020000

_FLAGS = (
    (EXT2_SECRM_FL, "s", "Secure_Deletion"),
    (EXT2_UNRM_FL, "u", "Undelete"),
    (EXT2_SYNC_FL, "S", "Synchronous_Updates"),
    (EXT2_DIRSYNC_FL, "D", "Synchronous_Directory_Updates"),
    (EXT2_IMMUTABLE_FL, "i", "Immutable"),
    (EXT2_APPEND_FL, "a", "Append_Only"),
    (EXT2_NODUMP_FL, "d", "No_Dump"),
    (EXT2_NOATIME_FL, "A", "No_Atime"),
    (EXT2_COMPR_FL, "c", "Compression_Requested"),
    (EXT3_JOURNAL_DATA_FL, "j", "Journaled_Data"),
    (EXT2_INDEX_FL, "I", "Indexed_direcctory"),
    (EXT2_NOTAIL_FL, "t", "No_Tailmerging"),
    (EXT2_TOPDIR_FL, "T", "Top_of_Directory_Hierarchies"),
)

_OS_NAMES = {EXT2_OS_LINUX: "Linux", EXT2_OS_HURD: "GNU/Hurd", EXT2_OS_MASIX: "Masix"}

_ERRORS = {
    EXT2_ERRORS_CONTINUE: "Continue",
    EXT2_ERRORS_RO: "Remount read-only",
    EXT2_ERRORS_PANIC: "Panic",
}

_MONTH = 86400 * 30
_WEEK = 86400 * 7
_DAY = 86400
_HOUR = 3600
_MINUTE = 60

_NULL_UUID = bytes(16)


@dataclass
class SuperBlock:
    """The superblock fields that a report shows."""

    inodes_count: int = 0
    blocks_count: int = 0
    r_blocks_count: int = 0
    free_blocks_count: int = 0
    free_inodes_count: int = 0
    first_data_block: int = 0
    log_block_size: int = 0
    log_frag_size: int = 0
    blocks_per_group: int = 0
    frags_per_group: int = 0
    inodes_per_group: int = 0
    mtime: int = 0
    wtime: int = 0
    mnt_count: int = 0
    max_mnt_count: int = 0
    magic: int = EXT2_SUPER_MAGIC
    state: int = 0
    errors: int = 0
    lastcheck: int = 0
    checkinterval: int = 0
    creator_os: int = EXT2_OS_LINUX
    rev_level: int = EXT2_GOOD_OLD_REV
    def_resuid: int = 0
    def_resgid: int = 0
    first_ino: int = 0
    inode_size: int = EXT2_GOOD_OLD_INODE_SIZE
    feature_compat: int = 0
    feature_incompat: int = 0
    feature_ro_compat: int = 0
    uuid: bytes = _NULL_UUID
    volume_name: bytes = b""
    last_mounted: bytes = b""
    journal_uuid: bytes = _NULL_UUID
    journal_inum: int = 0
    journal_dev: int = 0
    last_orphan: int = 0
    hash_seed: bytes = _NULL_UUID
    def_hash_version: int = 0
    jnl_backup_type: int = 0
    default_mount_opts: int = 0
    first_meta_bg: int = 0
    mkfs_time: int = 0

    @property
    def block_size(self) -> int:
        return EXT2_MIN_BLOCK_SIZE << self.log_block_size

    @property
    def frag_size(self) -> int:
        return EXT2_MIN_FRAG_SIZE << self.log_frag_size

    @property
    def inode_record_size(self) -> int:
        if self.rev_level == EXT2_GOOD_OLD_REV:
            return EXT2_GOOD_OLD_INODE_SIZE
        return self.inode_size


def fs_errors_text(errors: int) -> str:
    """Describe the on-error behaviour."""
    return _ERRORS.get(errors, "Unknown (continue)")


def flags_text(flags: int, long_format: bool = False) -> str:
    """Describe inode attribute flags, as letters or as a list of names."""
    if long_format:
        names = [long for flag, _, long in _FLAGS if flags & flag]
        return ", ".join(names) if names else "---"
    return "".join(short if flags & flag else "-" for flag, short, _ in _FLAGS)


def fs_state_text(state: int) -> str:
    """Describe the filesystem state; the text starts with a blank."""
    text = " clean" if state & EXT2_VALID_FS else " not clean"
    if state & EXT2_ERROR_FS:
        text += " with errors"
    return text


def is_null_uuid(uu: bytes) -> bool:
    """True when the 16-byte UUID is all zero."""
    return bytes(uu[:16]) == _NULL_UUID


def uuid_to_str(uu: bytes) -> str:
    """Format a 16-byte UUID in the usual dashed lower-case form."""
    return str(_uuid.UUID(bytes=bytes(uu[:16])))


def uuid_text(uu: bytes) -> str:
    """Format a UUID, or "<none>" when it is null."""
    return "<none>" if is_null_uuid(uu) else uuid_to_str(uu)


def interval_string(secs: int) -> str:
    """Describe a number of seconds in months, weeks, days and h:mm:ss."""
    if secs == 0:
        return "<none>"
    parts = []
    for unit, word in ((_MONTH, "month"), (_WEEK, "week"), (_DAY, "day")):
        if secs >= unit:
            num, secs = divmod(secs, unit)
            parts.append(f"{num} {word}{'s' if num > 1 else ''}")
    if secs > 0:
        hours, secs = divmod(secs, _HOUR)
        minutes, secs = divmod(secs, _MINUTE)
        parts.append(f"{hours}:{minutes:02d}:{secs:02d}")
    return ", ".join(parts)


def _c_string(raw: bytes, size: int) -> str:
    return bytes(raw[:size]).split(b"\0", 1)[0].decode("latin-1")


def _ctime(stamp: int) -> str:
    return time.ctime(stamp) + "\n"


def _features_line(sb: SuperBlock) -> str:
    words = (sb.feature_compat, sb.feature_incompat, sb.feature_ro_compat)
    names = [
        feature_to_string(ftype, 1 << bit)
        for ftype, word in enumerate(words)
        for bit in range(32)
        if word & (1 << bit)
    ]
    body = "".join(f" {name}" for name in names) if names else " (none)"
    return f"Filesystem features:     {body}\n"


def _mntopts_line(sb: SuperBlock) -> str:
    mask = sb.default_mount_opts
    names = []
    if mask & EXT3_DEFM_JMODE:
        names.append(mntopt_to_string(mask & EXT3_DEFM_JMODE))
    names.extend(
        mntopt_to_string(1 << bit)
        for bit in range(32)
        if not (1 << bit) & EXT3_DEFM_JMODE and mask & (1 << bit)
    )
    body = "".join(f" {name}" for name in names) if names else " (none)"
    return f"Default mount options:   {body}\n"


def list_super(sb: SuperBlock, out: Optional[TextIO] = None) -> None:
    """Write a full report on the superblock to out (standard output by default)."""
    out = sys.stdout if out is None else out
    block_size = sb.block_size
    inode_blocks_per_group = (
        sb.inodes_per_group * sb.inode_record_size + block_size - 1
    ) // block_size

    volume = _c_string(sb.volume_name, 16) if sb.volume_name[:1] not in (b"", b"\0") else "<none>"
    mounted = (
        _c_string(sb.last_mounted, 64)
        if sb.last_mounted[:1] not in (b"", b"\0")
        else "<not available>"
    )
    if sb.rev_level == EXT2_GOOD_OLD_REV:
        revision = " (original)"
    elif sb.rev_level == EXT2_DYNAMIC_REV:
        revision = " (dynamic)"
    else:
        revision = " (unknown)"

    lines = [
        f"Filesystem volume name:   {volume}\n",
        f"Last mounted on:          {mounted}\n",
        f"Filesystem UUID:          {uuid_text(sb.uuid)}\n",
        f"Filesystem magic number:  0x{sb.magic:04X}\n",
        f"Filesystem revision #:    {sb.rev_level}{revision}\n",
        _features_line(sb),
        _mntopts_line(sb),
        f"Filesystem state:        {fs_state_text(sb.state)}\n",
        f"Errors behavior:          {fs_errors_text(sb.errors)}\n",
        f"Filesystem OS type:       {_OS_NAMES.get(sb.creator_os, 'unknown')}\n",
        f"Inode count:              {sb.inodes_count}\n",
        f"Block count:              {sb.blocks_count}\n",
        f"Reserved block count:     {sb.r_blocks_count}\n",
        f"Free blocks:              {sb.free_blocks_count}\n",
        f"Free inodes:              {sb.free_inodes_count}\n",
        f"First block:              {sb.first_data_block}\n",
        f"Block size:               {block_size}\n",
        f"Fragment size:            {sb.frag_size}\n",
        f"Blocks per group:         {sb.blocks_per_group}\n",
        f"Fragments per group:      {sb.frags_per_group}\n",
        f"Inodes per group:         {sb.inodes_per_group}\n",
        f"Inode blocks per group:   {inode_blocks_per_group}\n",
    ]
    if sb.first_meta_bg:
        lines.append(f"First meta block group:   {sb.first_meta_bg}\n")
    if sb.mkfs_time:
        lines.append(f"Filesystem created:       {_ctime(sb.mkfs_time)}")
    mount_time = _ctime(sb.mtime) if sb.mtime else "n/a\n"
    lines += [
        f"Last mount time:          {mount_time}",
        f"Last write time:          {_ctime(sb.wtime)}",
        f"Mount count:              {sb.mnt_count}\n",
        f"Maximum mount count:      {sb.max_mnt_count}\n",
        f"Last checked:             {_ctime(sb.lastcheck)}",
        f"Check interval:           {sb.checkinterval} ({interval_string(sb.checkinterval)})\n",
    ]
    if sb.checkinterval:
        lines.append(f"Next check after:         {_ctime(sb.lastcheck + sb.checkinterval)}")
    lines += [
        f"Reserved blocks uid:      {sb.def_resuid} (user unknown)\n",
        f"Reserved blocks gid:      {sb.def_resgid} (group unknown)\n",
    ]
    if sb.rev_level >= EXT2_DYNAMIC_REV:
        lines.append(f"First inode:              {sb.first_ino}\n")
        lines.append(f"Inode size:\t\t  {sb.inode_size}\n")
    if not is_null_uuid(sb.journal_uuid):
        lines.append(f"Journal UUID:             {uuid_text(sb.journal_uuid)}\n")
    if sb.journal_inum:
        lines.append(f"Journal inode:            {sb.journal_inum}\n")
    if sb.journal_dev:
        lines.append(f"Journal device:\t          0x{sb.journal_dev:04x}\n")
    if sb.last_orphan:
        lines.append(f"First orphan inode:       {sb.last_orphan}\n")
    if sb.feature_compat & EXT2_FEATURE_COMPAT_DIR_INDEX or sb.def_hash_version:
        lines.append(f"Default directory hash:   {hash_to_string(sb.def_hash_version)}\n")
    if not is_null_uuid(sb.hash_seed):
        lines.append(f"Directory Hash Seed:      {uuid_text(sb.hash_seed)}\n")
    if sb.jnl_backup_type:
        kind = "inode blocks" if sb.jnl_backup_type == 1 else f"type {sb.jnl_backup_type}"
        lines.append(f"Journal backup:           {kind}\n")
    out.write("".join(lines))


def iterate_on_dir(dir_name: str, func: Callable[[str, str], object]) -> None:
    """Call func(dir_name, entry_name) for every entry, "." and ".." included.

    Raises OSError when the directory cannot be read.
    """
    names = os.listdir(dir_name)
    for name in (os.curdir, os.pardir, *names):
        func(dir_name, name)
"""Layout and on-disk structures of a newly created FAT12/16/32 filesystem."""

from __future__ import annotations

import struct
import sys
import time
from dataclasses import dataclass
from typing import Optional

BLOCK_SIZE = 512
HARD_SECTOR_SIZE = 512

ATTR_VOLUME = 8

FAT_EOF = 0x0FFFFFF8
ATARI_FAT_EOF = 0x0FFFFFFF
FAT_BAD = 0x0FFFFFF7

MSDOS_EXT_SIGN = 0x29
BOOT_SIGN = 0xAA55
FSINFO_SIGNATURE = 0x61417272
MEDIA_HARD_DISK = 0xF8
DEFAULT_ROOT_DIR_ENTRIES = 512

MAX_CLUST_12 = (1 << 12) - 16
MAX_CLUST_16 = (1 << 16) - 16
MAX_CLUST_32 = (1 << 28) - 16
FAT12_THRESHOLD = 4078

OLDGEMDOS_MAX_SECTORS = 32765
GEMDOS_MAX_SECTORS = 65531
GEMDOS_MAX_SECTOR_SIZE = 16 * 1024

BOOTCODE_SIZE = 448
BOOTCODE_FAT32_SIZE = 420
MESSAGE_OFFSET = 29
MSG_OFFSET_OFFSET = 3

_BOOT_SECTOR_SIZE = 512
_DIR_ENTRY_SIZE = 32
_OLDFAT_VI_OFFSET = 36
_OLDFAT_CODE_OFFSET = 62
_FAT32_VI_OFFSET = 64
_FAT32_CODE_OFFSET = 90
_FSINFO_OFFSET = 0x1E0

_HEAD_VALUES = (16, 32, 64, 128, 255)
_SECTORS_PER_TRACK = 63
_ATARI_JUMP = b"\x60\x1c"
_FLOPPY_SECTOR_COUNTS = (1440, 2400, 2880, 5760)

_BOOT_CODE = (
    b"\x0e\x1f\xbe\x5b\x7c\xac\x22\xc0\x74\x0b\x56\xb4\x0e\xbb\x07\x00"
    b"\xcd\x10\x5e\xeb\xf0\x32\xe4\xcd\x16\xcd\x19\xeb\xfe"
    b"This is not a bootable disk.  Please insert a bootable floppy and\r\n"
    b"press any key to try again ... \r\n"
)

_FS_TYPES = {12: b"FAT12   ", 16: b"FAT16   ", 32: b"FAT32   "}


class FatFormatError(Exception):
    """The filesystem cannot be laid out or written as requested."""


def _cdiv(a: int, b: int) -> int:
    return (a + b - 1) // b


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


@dataclass
class FatOptions:
    """What to make: FAT size, sector and cluster sizes, label and so on.

    A size_fat of 0 lets the FAT size be chosen (12 or 16 bits); zero
    values of the other counts ask for the usual defaults.
    """

    atari_format: bool = False
    sector_size: int = 512
    sector_size_set: bool = False
    backup_boot: int = 0
    reserved_sectors: int = 0
    nr_fats: int = 2
    size_fat: int = 32
    size_fat_by_user: bool = True
    sectors_per_cluster: int = 0
    root_dir_entries: int = 0
    volume_id: Optional[int] = None
    volume_name: str = ""
    verbose: int = 0

    def __post_init__(self) -> None:
        if len(self.volume_name) > 11:
            raise ValueError("volume name is longer than 11 characters")
        self.volume_name.encode("ascii")
        if not 0 <= self.sectors_per_cluster <= 255:
            raise ValueError("sectors per cluster must lie in 0..255")
        if self.nr_fats < 1:
            raise ValueError("at least one FAT is needed")
        if self.sector_size < HARD_SECTOR_SIZE or self.sector_size % HARD_SECTOR_SIZE:
            raise ValueError("sector size must be a multiple of 512")

    @property
    def volume_label(self) -> bytes:
        return self.volume_name.ljust(11).encode("ascii")


def establish_geometry(blocks: int, size_fat: int) -> tuple[int, int, int]:
    """Return (sectors per track, heads, initial sectors per cluster)."""
    heads = next((hv for hv in _HEAD_VALUES if 1024 * hv * 63 > blocks), 255)
    if size_fat == 32:
        sz_mb = (blocks + (1 << 11) - 1) >> 11
        if sz_mb >= 16 * 1024:
            cluster_size = 32
        elif sz_mb >= 8 * 1024:
            cluster_size = 16
        elif sz_mb >= 256:
            cluster_size = 8
        else:
            cluster_size = 1
    else:
        cluster_size = 4
    return _SECTORS_PER_TRACK, heads, cluster_size


@dataclass(frozen=True)
class FatLayout:
    """Where everything of a new FAT filesystem goes, in sectors and clusters."""

    blocks: int
    size_fat: int
    sector_size: int
    cluster_size: int
    reserved_sectors: int
    nr_fats: int
    fat_length: int
    cluster_count: int
    num_sectors: int
    root_dir_entries: int
    backup_boot: int
    secs_track: int
    heads: int
    volume_id: int
    volume_label: bytes
    atari_format: bool
    start_data_sector: int
    start_data_block: int
    media: int = MEDIA_HARD_DISK
    info_sector_number: int = 1

    @property
    def size_root_dir(self) -> int:
        """Bytes of the root directory written after the FATs."""
        if self.size_fat == 32:
            return self.cluster_size * self.sector_size
        return (self.root_dir_entries & 0xFFFF) * _DIR_ENTRY_SIZE

    @property
    def fat_eof(self) -> int:
        """The end-of-chain marker for this format."""
        return ATARI_FAT_EOF if self.atari_format else FAT_EOF

    def boot_sector(self) -> bytes:
        """Return the 512-byte boot sector."""
        bs = bytearray(_BOOT_SECTOR_SIZE)
        fat32 = self.size_fat == 32
        if self.atari_format:
            bs[0:2] = _ATARI_JUMP
            bs[2:8] = b"mkdosf"
            bs[8:11] = (self.volume_id & 0xFFFFFF).to_bytes(3, "little")
        else:
            bs[3:11] = b"mkdosfs\0"
        small = self.num_sectors < 65536
        struct.pack_into(
            "<HBHBHHBHHHII",
            bs,
            11,
            self.sector_size & 0xFFFF,
            self.cluster_size & 0xFF,
            self.reserved_sectors & 0xFFFF,
            self.nr_fats & 0xFF,
            self.root_dir_entries & 0xFFFF,
            self.num_sectors if small else 0,
            self.media,
            0 if fat32 else self.fat_length & 0xFFFF,
            self.secs_track,
            self.heads,
            0,
            0 if small else self.num_sectors & 0xFFFFFFFF,
        )
        if fat32:
            struct.pack_into(
                "<IHBBIHH",
                bs,
                36,
                self.fat_length,
                0,
                0,
                0,
                2,
                self.info_sector_number,
                self.backup_boot,
            )
        if not self.atari_format:
            vi = _FAT32_VI_OFFSET if fat32 else _OLDFAT_VI_OFFSET
            code_at = _FAT32_CODE_OFFSET if fat32 else _OLDFAT_CODE_OFFSET
            bs[vi + 2] = MSDOS_EXT_SIGN
            bs[vi + 3:vi + 7] = (self.volume_id & 0xFFFFFFFF).to_bytes(4, "little")
            bs[vi + 7:vi + 18] = self.volume_label
            bs[vi + 18:vi + 26] = _FS_TYPES[self.size_fat]
            bs[0:3] = bytes((0xEB, code_at - 2, 0x90))
            if fat32:
                code = bytearray(_BOOT_CODE.ljust(BOOTCODE_FAT32_SIZE, b"\0")[:BOOTCODE_FAT32_SIZE])
                code[-1] = 0
                offset = code_at + MESSAGE_OFFSET + 0x7C00
                code[MSG_OFFSET_OFFSET] = offset & 0xFF
                code[MSG_OFFSET_OFFSET + 1] = offset >> 8
            else:
                code = _BOOT_CODE.ljust(BOOTCODE_SIZE, b"\0")[:BOOTCODE_SIZE]
            bs[code_at:code_at + len(code)] = code
            struct.pack_into("<H", bs, 510, BOOT_SIGN)
        return bytes(bs)

    def info_sector(self) -> bytes:
        """Return the FAT32 information sector (one logical sector)."""
        if self.size_fat != 32:
            raise ValueError("only FAT32 has an information sector")
        info = bytearray(self.sector_size)
        info[0:4] = b"RRaA"
        struct.pack_into(
            "<IIII",
            info,
            _FSINFO_OFFSET,
            0,
            FSINFO_SIGNATURE,
            (self.cluster_count - 1) & 0xFFFFFFFF,
            2,
        )
        struct.pack_into("<H", info, 0x1FE, BOOT_SIGN)
        return bytes(info)

    def root_directory(self, create_time: Optional[float] = None) -> bytes:
        """Return the root directory, holding the volume label entry if there is one."""
        root = bytearray(self.size_root_dir)
        if self.volume_label != b" " * 11 and root:
            stamp = time.localtime(time.time() if create_time is None else create_time)
            dos_time = (
                (stamp.tm_sec >> 1) + (stamp.tm_min << 5) + (stamp.tm_hour << 11)
            ) & 0xFFFF
            dos_date = (
                stamp.tm_mday + (stamp.tm_mon << 5) + ((stamp.tm_year - 1980) << 9)
            ) & 0xFFFF
            root[0:11] = self.volume_label
            struct.pack_into(
                "<BBBHHHHHHHI",
                root,
                11,
                ATTR_VOLUME,
                0,
                0,
                dos_time,
                dos_date,
                dos_date,
                0,
                dos_time,
                dos_date,
                0,
                0,
            )
        return bytes(root)


class FatTable:
    """An in-memory file allocation table of 12, 16 or 32-bit entries."""

    def __init__(self, size_fat: int, length: int) -> None:
        if size_fat not in (12, 16, 32):
            raise FatFormatError("Bad FAT size (not 12, 16, or 32)")
        self.size_fat = size_fat
        self._data = bytearray(length)

    def mark_cluster(self, cluster: int, value: int) -> None:
        """Store value in the entry of a cluster."""
        data = self._data
        if self.size_fat == 12:
            value &= 0x0FFF
            index = 3 * cluster // 2
            if (cluster * 3) & 1 == 0:
                data[index] = value & 0xFF
                data[index + 1] = (data[index + 1] & 0xF0) | ((value & 0x0F00) >> 8)
            else:
                data[index] = (data[index] & 0x0F) | ((value & 0x000F) << 4)
                data[index + 1] = (value & 0x0FF0) >> 4
        elif self.size_fat == 16:
            struct.pack_into("<H", data, 2 * cluster, value & 0xFFFF)
        else:
            struct.pack_into("<I", data, 4 * cluster, value & 0x0FFFFFFF)

    def mark_sector(self, sector: int, value: int, layout: FatLayout) -> None:
        """Store value in the entry of the cluster holding a 512-byte sector."""
        cluster = _trunc_div(
            _trunc_div(sector - layout.start_data_sector, layout.cluster_size),
            layout.sector_size // HARD_SECTOR_SIZE,
        )
        if cluster < 0:
            raise FatFormatError("Invalid cluster number in mark_FAT_sector: probably bug!")
        self.mark_cluster(cluster, value)

    def to_bytes(self) -> bytes:
        return bytes(self._data)

    def __len__(self) -> int:
        return len(self._data)


def _say(opts: FatOptions, level: int, message: str) -> None:
    if opts.verbose >= level:
        print(message)


def _standard_sizes(
    opts: FatOptions,
    size_fat: int,
    cluster_size: int,
    fatdata: int,
    sector_size: int,
) -> tuple[int, int, int, int]:
    """Pick cluster size and FAT size; return (size_fat, cluster_size, clusters, fat_length)."""
    nr = opts.nr_fats
    ss = sector_size
    maxclustsize = cluster_size if opts.sectors_per_cluster else 128
    _say(opts, 2, f"{fatdata} sectors for FAT+data, starting with {cluster_size} sectors/cluster")
    while True:
        _say(opts, 2, f"Trying with {cluster_size} sectors/cluster:")
        cs = cluster_size

        clust12 = 2 * (fatdata * ss + nr * 3) // (2 * cs * ss + nr * 3)
        fatlength12 = _cdiv(((clust12 + 2) * 3 + 1) >> 1, ss)
        clust12 = max(0, (fatdata - nr * fatlength12) // cs)
        maxclust12 = min(fatlength12 * 2 * ss // 3, MAX_CLUST_12)
        _say(opts, 2, f"FAT12: #clu={clust12}, fatlen={fatlength12}, maxclu={maxclust12}, limit={MAX_CLUST_12}")
        if clust12 > maxclust12 - 2:
            clust12 = 0
            _say(opts, 2, "FAT12: too much clusters")

        clust16 = (fatdata * ss + nr * 4) // (cs * ss + nr * 2)
        fatlength16 = _cdiv((clust16 + 2) * 2, ss)
        clust16 = max(0, (fatdata - nr * fatlength16) // cs)
        maxclust16 = min(fatlength16 * ss // 2, MAX_CLUST_16)
        _say(opts, 2, f"FAT16: #clu={clust16}, fatlen={fatlength16}, maxclu={maxclust16}, limit={MAX_CLUST_16}")
        if clust16 > maxclust16 - 2:
            _say(opts, 2, "FAT16: too much clusters")
            clust16 = 0
        if clust16 < FAT12_THRESHOLD and not (opts.size_fat_by_user and size_fat == 16):
            _say(opts, 2, "FAT16: would be misdetected as FAT12")
            clust16 = 0

        clust32 = (fatdata * ss + nr * 8) // (cs * ss + nr * 4)
        fatlength32 = _cdiv((clust32 + 2) * 4, ss)
        clust32 = max(0, (fatdata - nr * fatlength32) // cs)
        maxclust32 = min(fatlength32 * ss // 4, MAX_CLUST_32)
        _say(opts, 2, f"FAT32: #clu={clust32}, fatlen={fatlength32}, maxclu={maxclust32}, limit={MAX_CLUST_32}")
        if clust32 > maxclust32:
            clust32 = 0
            _say(opts, 2, "FAT32: too much clusters")

        if (
            (clust12 and size_fat in (0, 12))
            or (clust16 and size_fat in (0, 16))
            or (clust32 and size_fat == 32)
        ):
            break
        cluster_size = (cluster_size << 1) & 0xFF
        if not (cluster_size and cluster_size <= maxclustsize):
            break

    if not size_fat:
        size_fat = 16 if clust16 > clust12 else 12
        _say(opts, 2, f"Choosing {size_fat} bits for FAT")

    if size_fat == 12:
        return size_fat, cluster_size, clust12, fatlength12
    if size_fat == 16:
        if clust16 < FAT12_THRESHOLD:
            if opts.size_fat_by_user:
                sys.stderr.write(
                    "WARNING: Not enough clusters for a 16 bit FAT! The filesystem will be\n"
                    "misinterpreted as having a 12 bit FAT without mount option \"fat=16\".\n"
                )
            else:
                sys.stderr.write(
                    "This filesystem has an unfortunate size. A 12 bit FAT cannot provide\n"
                    "enough clusters, but a 16 bit FAT takes up a little bit more space so that\n"
                    "the total number of clusters becomes less than the threshold value for\n"
                    "distinction between 12 and 16 bit FATs.\n"
                )
                raise FatFormatError("Make the file system a bit smaller manually.")
        return size_fat, cluster_size, clust16, fatlength16
    return size_fat, cluster_size, clust32, fatlength32


def _atari_sizes(
    opts: FatOptions,
    size_fat: int,
    num_sectors: int,
    sector_size: int,
    root_dir_entries: int,
    reserved: int,
) -> tuple[int, int, int, int, int, int]:
    """Return (size_fat, cluster_size, clusters, fat_length, num_sectors, sector_size)."""
    nr = opts.nr_fats
    if not size_fat:
        size_fat = 12 if num_sectors in _FLOPPY_SECTOR_COUNTS else 16
    _say(opts, 2, f"Choosing {size_fat} bits for FAT")
    cluster_size = opts.sectors_per_cluster or 2
    if not opts.sector_size_set:
        while num_sectors > GEMDOS_MAX_SECTORS:
            num_sectors >>= 1
            sector_size <<= 1
    _say(opts, 2, f"Sector size must be {sector_size} to have less than {GEMDOS_MAX_SECTORS} log. sectors")
    limit = MAX_CLUST_32 if size_fat == 32 else (1 << size_fat) - 0x10
    while True:
        fatdata = num_sectors - _cdiv(root_dir_entries * 32, sector_size) - reserved
        if fatdata <= 0:
            raise FatFormatError("Too few blocks for viable file system")
        clusters = (2 * (fatdata * sector_size - 2 * nr * size_fat // 8)) // (
            2 * (cluster_size * sector_size + nr * size_fat // 8)
        )
        fat_length = _cdiv((clusters + 2) * size_fat // 8, sector_size)
        clusters = (fatdata - nr * fat_length) // cluster_size
        maxclust = fat_length * sector_size * 8 // size_fat
        _say(opts, 2, f"ss={sector_size}: #clu={clusters}, fat_len={fat_length}, maxclu={maxclust}")
        if maxclust <= limit and 0 <= clusters <= maxclust - 2:
            break
        _say(opts, 2, "Too many clusters" if clusters > maxclust - 2 else "FAT too big")
        if opts.sector_size_set:
            raise FatFormatError(
                "With this sector size, the maximum number of FAT entries would be exceeded."
            )
        num_sectors >>= 1
        sector_size <<= 1
        if sector_size > GEMDOS_MAX_SECTOR_SIZE:
            raise FatFormatError("Would need a sector size > 16k, which GEMDOS can't work with")
    return size_fat, cluster_size, clusters, fat_length, num_sectors, sector_size


def compute_layout(blocks: int, options: Optional[FatOptions] = None) -> FatLayout:
    """Work out the layout of a FAT filesystem over blocks 512-byte blocks."""
    opts = options if options is not None else FatOptions()
    size_fat = opts.size_fat
    if size_fat not in (0, 12, 16, 32):
        raise FatFormatError("FAT not 12, 16 or 32 bits")
    volume_id = (int(time.time()) if opts.volume_id is None else opts.volume_id) & 0xFFFFFFFF

    secs_track, heads, cluster_size = establish_geometry(blocks, size_fat)
    if opts.sectors_per_cluster:
        cluster_size = opts.sectors_per_cluster
    if size_fat == 32:
        root_dir_entries = 0
    elif opts.root_dir_entries:
        root_dir_entries = opts.root_dir_entries & 0xFFFF
    else:
        root_dir_entries = DEFAULT_ROOT_DIR_ENTRIES

    reserved = opts.reserved_sectors
    if not reserved:
        reserved = 32 if size_fat == 32 else 1
    elif size_fat == 32 and reserved < 2:
        raise FatFormatError("On FAT32 at least 2 reserved sectors are needed.")
    _say(opts, 2, f"Using {reserved} reserved sectors")

    sector_size = opts.sector_size
    num_sectors = blocks * BLOCK_SIZE // sector_size
    if opts.atari_format:
        size_fat, cluster_size, cluster_count, fat_length, num_sectors, sector_size = _atari_sizes(
            opts, size_fat, num_sectors, sector_size, root_dir_entries, reserved
        )
    else:
        fatdata = num_sectors - _cdiv(root_dir_entries * 32, sector_size) - reserved
        if fatdata <= 0:
            raise FatFormatError("Too few blocks for viable file system")
        size_fat, cluster_size, cluster_count, fat_length = _standard_sizes(
            opts, size_fat, cluster_size, fatdata, sector_size
        )

    backup_boot = 0
    if size_fat == 32:
        backup_boot = opts.backup_boot
        if not backup_boot:
            backup_boot = 6 if reserved >= 7 else reserved - 1 if reserved >= 2 else 0
        elif backup_boot == 1:
            raise FatFormatError("Backup boot sector must be after sector 1")
        elif backup_boot >= reserved:
            raise FatFormatError("Backup boot sector must be a reserved sector")
        _say(opts, 2, f"Using sector {backup_boot} as backup boot sector (0 = none)")

    if opts.atari_format:
        if num_sectors >= GEMDOS_MAX_SECTORS:
            raise FatFormatError("GEMDOS can't handle more than 65531 sectors")
        if num_sectors >= OLDGEMDOS_MAX_SECTORS:
            print("Warning: More than 32765 sector need TOS 1.04 or higher.")

    if not cluster_count:
        if opts.sectors_per_cluster:
            raise FatFormatError("Too many clusters for file system - try more sectors per cluster")
        raise FatFormatError("Attempting to create a too large file system")

    start_data_sector = (reserved + opts.nr_fats * fat_length) * (sector_size // HARD_SECTOR_SIZE)
    start_data_block = start_data_sector * HARD_SECTOR_SIZE // BLOCK_SIZE
    if blocks < start_data_block + 32:
        raise FatFormatError("Too few blocks for viable file system")

    layout = FatLayout(
        blocks=blocks,
        size_fat=size_fat,
        sector_size=sector_size,
        cluster_size=cluster_size,
        reserved_sectors=reserved,
        nr_fats=opts.nr_fats,
        fat_length=fat_length,
        cluster_count=cluster_count,
        num_sectors=num_sectors,
        root_dir_entries=root_dir_entries,
        backup_boot=backup_boot,
        secs_track=secs_track,
        heads=heads,
        volume_id=volume_id,
        volume_label=opts.volume_label,
        atari_format=opts.atari_format,
        start_data_sector=start_data_sector,
        start_data_block=start_data_block,
    )
    if opts.verbose:
        _print_summary(layout)
    return layout


def _print_summary(layout: FatLayout) -> None:
    heads_s = "s" if layout.heads != 1 else ""
    track_s = "s" if layout.secs_track != 1 else ""
    fats_s = "s" if layout.nr_fats != 1 else ""
    cluster_s = "s" if layout.cluster_size != 1 else ""
    fatlen_s = "s" if layout.fat_length != 1 else ""
    count_s = "s" if layout.cluster_count != 1 else ""
    print(
        f"device has {layout.heads} head{heads_s} and "
        f"{layout.secs_track} sector{track_s} per track,"
    )
    print(f"logical sector size is {layout.sector_size},")
    print(f"using 0x{layout.media:02x} media descriptor, with {layout.num_sectors} sectors;")
    print(
        f"file system has {layout.nr_fats} {layout.size_fat}-bit FAT{fats_s} "
        f"and {layout.cluster_size} sector{cluster_s} per cluster."
    )
    print(
        f"FAT size is {layout.fat_length} sector{fatlen_s}, and provides "
        f"{layout.cluster_count} cluster{count_s}."
    )
    if layout.size_fat != 32:
        print(f"Root directory contains {layout.root_dir_entries & 0xFFFF} slots.")
    mask = 0x00FFFFFF if layout.atari_format else 0xFFFFFFFF
    label = layout.volume_label.decode("ascii")
    tail = f"volume label {label}." if label != " " * 11 else "no volume label."
    print(f"Volume ID is {layout.volume_id & mask:08x}, {tail}")
import io
import os
import struct

import pytest

from podformat.fatlayout import (
    FAT_BAD,
    FatFormatError,
    FatOptions,
    FatTable,
    compute_layout,
)
from podformat.mkdosfs import (
    check_blocks,
    count_blocks,
    create_fat_filesystem,
    main,
    read_bad_block_list,
    write_tables,
)

SIZE = 8 * 1024 * 1024


class NoEndDevice(io.BytesIO):
    """A device that cannot report its size by seeking to the end."""

    def seek(self, offset, whence=os.SEEK_SET):
        if whence == os.SEEK_END:
            return 0
        return super().seek(offset, whence)


class FaultyDevice(io.BytesIO):
    """A device whose reads stop short at given byte offsets."""

    def __init__(self, data, bad_offsets):
        super().__init__(data)
        self.bad_offsets = sorted(bad_offsets)

    def read(self, n=-1):
        pos = self.tell()
        for bad in self.bad_offsets:
            if pos <= bad < pos + n:
                n = bad - pos
                break
        return super().read(n)


class ShortWriteDevice(io.BytesIO):
    def write(self, data):
        super().write(data)
        return len(data) - 1


def _fat_entries(fat):
    raw = fat.to_bytes()
    return [v for (v,) in struct.iter_unpack("<I", raw)]


def _opts():
    return FatOptions(volume_id=0x12345678, volume_name="PODVOL")


def test_count_blocks_by_seek_end():
    dev = io.BytesIO(bytes(SIZE))
    assert count_blocks(dev) == SIZE // 512


def test_count_blocks_by_probing():
    dev = NoEndDevice(bytes(5000))
    assert count_blocks(dev) == 5000 // 512


def test_create_writes_boot_sector_and_backup():
    dev = io.BytesIO(bytes(SIZE))
    layout = create_fat_filesystem(dev, _opts())
    image = dev.getvalue()
    assert len(image) == SIZE
    assert layout.size_fat == 32
    assert image[510:512] == b"\x55\xaa"
    assert image[82:90] == b"FAT32   "
    assert image[:512] == layout.boot_sector()
    backup = layout.backup_boot * 512
    assert layout.backup_boot > 0
    assert image[backup:backup + 512] == image[:512]
    assert image[512:516] == b"RRaA"


def test_create_writes_fats_and_root_dir():
    dev = io.BytesIO(bytes(SIZE))
    layout = create_fat_filesystem(dev, _opts())
    image = dev.getvalue()
    fat_bytes = layout.fat_length * layout.sector_size
    first = layout.reserved_sectors * layout.sector_size
    fat1 = image[first:first + fat_bytes]
    fat2 = image[first + fat_bytes:first + 2 * fat_bytes]
    assert fat1 == fat2
    entries = struct.unpack_from("<III", fat1)
    assert entries == (0x0FFFFFF8, 0x0FFFFFFF, layout.fat_eof)
    root = image[first + 2 * fat_bytes:first + 2 * fat_bytes + layout.size_root_dir]
    assert root[:11] == b"PODVOL     "
    assert root[11] == 8
    assert root == layout.root_directory(0)[:11] + root[11:]


def test_create_on_too_small_device_fails():
    dev = io.BytesIO(bytes(4096))
    with pytest.raises(FatFormatError):
        create_fat_filesystem(dev, _opts())


def test_write_tables_short_write_fails():
    layout = compute_layout(SIZE // 512, _opts())
    fat = FatTable(32, layout.fat_length * layout.sector_size)
    dev = ShortWriteDevice(bytes(SIZE))
    with pytest.raises(FatFormatError, match="failed whilst writing"):
        write_tables(dev, layout, fat, layout.root_directory(0))


def test_check_blocks_marks_unreadable_block():
    layout = compute_layout(SIZE // 512, _opts())
    fat = FatTable(32, layout.fat_length * layout.sector_size)
    bad_block = layout.start_data_block + 500
    dev = FaultyDevice(bytes(SIZE), [bad_block * 512])
    assert check_blocks(dev, layout, fat, 0) == 1
    entries = _fat_entries(fat)
    assert entries.count(FAT_BAD & 0x0FFFFFFF) == 1


def test_check_blocks_clean_device_marks_nothing():
    layout = compute_layout(SIZE // 512, _opts())
    fat = FatTable(32, layout.fat_length * layout.sector_size)
    before = fat.to_bytes()
    assert check_blocks(io.BytesIO(bytes(SIZE)), layout, fat, 0) == 0
    assert fat.to_bytes() == before


def test_check_blocks_bad_before_data_area():
    layout = compute_layout(SIZE // 512, _opts())
    fat = FatTable(32, layout.fat_length * layout.sector_size)
    dev = FaultyDevice(bytes(SIZE), [512])
    with pytest.raises(FatFormatError, match="before data-area"):
        check_blocks(dev, layout, fat, 0)


def test_read_bad_block_list(tmp_path):
    layout = compute_layout(SIZE // 512, _opts())
    fat = FatTable(32, layout.fat_length * layout.sector_size)
    first = layout.start_data_block
    listing = tmp_path / "bad.txt"
    listing.write_text(f"{first + 10}\n{first + 20}\n{first + 30}\n")
    assert read_bad_block_list(str(listing), layout, fat) == 3
    assert _fat_entries(fat).count(FAT_BAD & 0x0FFFFFFF) == 3


def test_read_bad_block_list_missing_file(tmp_path):
    layout = compute_layout(SIZE // 512, _opts())
    fat = FatTable(32, layout.fat_length * layout.sector_size)
    with pytest.raises(FatFormatError, match="Can't open"):
        read_bad_block_list(str(tmp_path / "absent.txt"), layout, fat)


def test_main_formats_file(tmp_path):
    image = tmp_path / "disk.img"
    image.write_bytes(bytes(SIZE))
    assert main(["-y", str(image)]) == 0
    data = image.read_bytes()
    assert data[510:512] == b"\x55\xaa"
    assert data[82:90] == b"FAT32   "


def test_main_usage_error():
    assert main([]) == 1


def test_main_empty_file_fails(tmp_path):
    image = tmp_path / "empty.img"
    image.write_bytes(b"")
    assert main(["-y", str(image)]) == 1
    assert image.read_bytes() == b""
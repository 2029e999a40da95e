# podformat

Lay out and write a fresh FAT filesystem onto a device or disk image file,
plus a set of small helpers for ext2 metadata: feature and mount-option
names, superblock reports, bad-block lists, allocation bitmaps and numbered
error tables.

The package has no dependencies outside the standard library.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Making a FAT32 filesystem from the command line

```
podformat-mkdosfs disk.img
podformat-mkdosfs -y disk.img
```

The target must already exist and be writable; it is opened for reading and
writing and its whole size is used. Without `-y` (or `--yes`) the command
asks for confirmation and waits for Enter. **Everything already stored on
the target is lost.** It exits with status 0 on success and 1 on a usage
error, an unreadable target, a cancelled prompt or a layout that cannot be
made.

## Making a FAT filesystem from Python

```python
from podformat.fatlayout import FatOptions
from podformat.mkdosfs import create_fat_filesystem

with open("disk.img", "r+b") as dev:
    layout = create_fat_filesystem(dev, FatOptions(volume_name="DATA"))
print(layout.size_fat, layout.cluster_count)
```

`create_fat_filesystem(dev, options)` counts the device's 512-byte blocks,
works out the layout, builds the FAT and root directory and writes them,
returning the `FatLayout` it used. Any failure is raised as
`podformat.fatlayout.FatFormatError`.

### Options

`FatOptions` is a dataclass. Its defaults make FAT32:

- `size_fat` – 32 by default; 12 or 16, or 0 to choose between 12 and 16.
- `sector_size`, `sector_size_set`, `sectors_per_cluster`, `nr_fats`,
  `reserved_sectors`, `root_dir_entries`, `backup_boot` – zero counts ask
  for the usual defaults.
- `volume_name` (up to 11 ASCII characters) and `volume_id` (taken from the
  clock when `None`).
- `atari_format` for the Atari variant of the boot sector and sizing.
- `verbose` – 1 prints a summary of the layout, 2 also prints each step of
  the sizing.

### Working with the layout directly

`podformat.fatlayout` does its work without touching any device:

- `establish_geometry(blocks, size_fat)` returns
  `(sectors per track, heads, initial sectors per cluster)`.
- `compute_layout(blocks, options)` returns a frozen `FatLayout`, or raises
  `FatFormatError` when the size or options cannot give a usable filesystem.
- `FatLayout.boot_sector()`, `FatLayout.info_sector()` (FAT32 only) and
  `FatLayout.root_directory(create_time)` return the raw bytes.
- `FatTable(size_fat, length)` is an in-memory allocation table;
  `mark_cluster`, `mark_sector(sector, value, layout)` and `to_bytes` cover
  12-, 16- and 32-bit entries.

`podformat.mkdosfs` also offers the single steps: `count_blocks(dev)`,
`check_blocks(dev, layout, fat, verbose)` (reads every block and marks
unreadable ones bad), `read_bad_block_list(path, layout, fat)` (marks the
block numbers listed in a text file bad) and
`write_tables(dev, layout, fat, root_dir)`. The command itself does not run
the bad-block check or read a bad-block list.

## ext2 helpers

### Features, hashes and mount options

```python
from podformat.features import (
    FeatureType, feature_to_string, string_to_feature, edit_features,
    hash_to_string, string_to_hash,
    mntopt_to_string, string_to_mntopt, edit_mntopts,
)

string_to_feature("has_journal")                 # (FeatureType.COMPAT, 4)
feature_to_string(FeatureType.COMPAT, 4)         # "has_journal"
edit_features("has_journal,^dir_index", [0, 0, 0])
string_to_hash("tea")                            # 2
edit_mntopts("acl,journal_data", 0)
```

Unknown names raise `ValueError`. Feature and hash names also accept the
`FEATURE_<C|I|R><bit>` and `HASHALG_<n>` forms; mount options accept only
their names. `edit_features` and `edit_mntopts` return the edited values and
refuse changes outside the optional allowed mask.

### Superblock reports

`podformat.superblock_report.SuperBlock` is a dataclass of the superblock
fields a report shows; fill it in yourself. `list_super(sb, out)` writes a
full listing (to standard output by default). `fs_state_text`,
`fs_errors_text`, `flags_text`, `uuid_to_str`, `uuid_text`, `is_null_uuid`
and `interval_string` produce the single pieces. `iterate_on_dir(dir_name,
func)` calls `func(dir_name, name)` for every entry of a directory, `.` and
`..` included.

### Bad-block lists

```python
from podformat.badblocks import BadBlocksList

bad = BadBlocksList([40, 12])
bad.add(25)
list(bad)        # [12, 25, 40]
25 in bad        # True
bad.find(40)     # 2
bad.remove(25)   # ValueError if the block is not listed
```

### Bitmaps

`podformat.bitmap.Bitmap` tracks used numbers over `start..end`, with
padding up to `real_end`. `Bitmap.for_inodes(...)` and
`Bitmap.for_blocks(...)` size one for a filesystem. `mark`, `unmark` and
`test` (and `mark_range`, `unmark_range`, `test_range`) raise `IndexError`
outside the range; `test_range` is true when no bit in the range is set.
`clear`, `set_padding`, `fudge_end` and `copy` complete it. The module also
has `set_bit`, `clear_bit`, `test_bit`, `swab16` and `swab32`.

### Error tables

`podformat.errtable` maps error codes to messages. `ErrorTable(messages,
base)` holds one table; `add_error_table`, `remove_error_table` and
`error_message(code)` use the shared registry, and `ErrorTableRegistry`
gives a private one. Codes below 256 give the operating system's message.
`com_err(whoami, code, fmt, *args)` reports through a hook that
`set_com_err_hook` and `reset_com_err_hook` replace.

## What the package does not do

It does not create, read or check ext2 filesystems: the ext2 modules are
standalone helpers, and `SuperBlock` is not read from disk. It does not read
or list the contents of existing FAT filesystems either; it only writes new
ones.
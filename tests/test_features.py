import pytest

from podformat import features as f
from podformat.features import (
    FeatureType,
    edit_features,
    edit_mntopts,
    feature_to_string,
    hash_to_string,
    mntopt_to_string,
    string_to_feature,
    string_to_hash,
    string_to_mntopt,
)

NAMED = [
    (FeatureType.COMPAT, f.EXT3_FEATURE_COMPAT_HAS_JOURNAL, "has_journal"),
    (FeatureType.COMPAT, f.EXT2_FEATURE_COMPAT_DIR_INDEX, "dir_index"),
    (FeatureType.RO_COMPAT, f.EXT2_FEATURE_RO_COMPAT_SPARSE_SUPER, "sparse_super"),
    (FeatureType.INCOMPAT, f.EXT2_FEATURE_INCOMPAT_FILETYPE, "filetype"),
    (FeatureType.INCOMPAT, f.EXT3_FEATURE_INCOMPAT_RECOVER, "needs_recovery"),
]


@pytest.mark.parametrize("ftype,mask,name", NAMED)
def test_named_features(ftype, mask, name):
    assert feature_to_string(ftype, mask) == name
    assert string_to_feature(name) == (ftype, mask)


def test_feature_names_are_case_insensitive():
    assert string_to_feature("HAS_JOURNAL") == (
        FeatureType.COMPAT,
        f.EXT3_FEATURE_COMPAT_HAS_JOURNAL,
    )


def test_generic_feature_name():
    assert feature_to_string(FeatureType.COMPAT, 1 << 12) == "FEATURE_C12"


@pytest.mark.parametrize("ftype", list(FeatureType))
def test_every_bit_round_trips(ftype):
    for bit in range(32):
        name = feature_to_string(ftype, 1 << bit)
        assert string_to_feature(name) == (ftype, 1 << bit)


@pytest.mark.parametrize(
    "name", ["bogus", "", "FEATURE_X1", "FEATURE_C", "FEATURE_C33", "FEATURE_C1x", "FEATURE_"]
)
def test_bad_feature_names(name):
    with pytest.raises(ValueError):
        string_to_feature(name)


def test_edit_features_sets_and_clears():
    start = [0, 0, f.EXT2_FEATURE_RO_COMPAT_SPARSE_SUPER]
    result = edit_features("has_journal, ^sparse_super +filetype", start)
    assert result == [
        f.EXT3_FEATURE_COMPAT_HAS_JOURNAL,
        f.EXT2_FEATURE_INCOMPAT_FILETYPE,
        0,
    ]
    assert start == [0, 0, f.EXT2_FEATURE_RO_COMPAT_SPARSE_SUPER]


def test_edit_features_minus_prefix_clears():
    start = [f.EXT2_FEATURE_COMPAT_DIR_INDEX, 0, 0]
    assert edit_features("-dir_index", start) == [0, 0, 0]


def test_edit_features_respects_ok_array():
    ok = [f.EXT3_FEATURE_COMPAT_HAS_JOURNAL, 0, 0]
    assert edit_features("has_journal", [0, 0, 0], ok)[FeatureType.COMPAT] == (
        f.EXT3_FEATURE_COMPAT_HAS_JOURNAL
    )
    with pytest.raises(ValueError):
        edit_features("dir_index", [0, 0, 0], ok)


def test_edit_features_empty_spec_keeps_words():
    assert edit_features("", [1, 2, 3]) == [1, 2, 3]


def test_edit_features_unknown_word():
    with pytest.raises(ValueError):
        edit_features("has_journal,nonsense", [0, 0, 0])


def test_hash_names():
    assert hash_to_string(f.EXT2_HASH_TEA) == "tea"
    assert string_to_hash("HALF_MD4") == f.EXT2_HASH_HALF_MD4
    assert string_to_hash("legacy") == f.EXT2_HASH_LEGACY


def test_hash_numbers_round_trip():
    for num in range(256):
        assert string_to_hash(hash_to_string(num)) == num
    assert string_to_hash("hashalg_7") == 7


@pytest.mark.parametrize("name", ["HASHALG_256", "HASHALG_", "HASHALG_-1", "nothing", "HASHALG_4z"])
def test_bad_hash_names(name):
    with pytest.raises(ValueError):
        string_to_hash(name)


def test_mntopt_names():
    assert mntopt_to_string(f.EXT2_DEFM_ACL) == "acl"
    assert string_to_mntopt("journal_data_writeback") == f.EXT3_DEFM_JMODE_WBACK
    assert string_to_mntopt("USER_XATTR") == f.EXT2_DEFM_XATTR_USER


def test_mntopt_generic_name_is_not_parsed():
    assert mntopt_to_string(1 << 10) == "MNTOPT_10"
    with pytest.raises(ValueError):
        string_to_mntopt(mntopt_to_string(1 << 10))


def test_edit_mntopts_replaces_journal_mode():
    start = f.EXT3_DEFM_JMODE_WBACK | f.EXT2_DEFM_ACL
    assert edit_mntopts("journal_data", start) == f.EXT3_DEFM_JMODE_DATA | f.EXT2_DEFM_ACL


def test_edit_mntopts_clear_and_set():
    start = f.EXT2_DEFM_ACL | f.EXT2_DEFM_DEBUG
    assert edit_mntopts("^acl,uid16", start) == f.EXT2_DEFM_DEBUG | f.EXT2_DEFM_UID16


def test_edit_mntopts_respects_ok():
    with pytest.raises(ValueError):
        edit_mntopts("debug", 0, f.EXT2_DEFM_ACL)
    assert edit_mntopts("acl", 0, f.EXT2_DEFM_ACL) == f.EXT2_DEFM_ACL
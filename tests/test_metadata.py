"""Tests for metadata values and the metadata store."""

import numpy as np
import pytest

from paxfile.errors import (
    IndexOutOfBoundsError,
    MetadataNotFoundError,
    TypeMismatchError,
)
from paxfile.metadata import (
    Location,
    MetadataStore,
    MetadataValue,
    MetaType,
    check_text,
    coerce_numeric,
    comment_name,
    infer_meta_type,
)


def _entry(name, location=Location.END, index=0, value=1):
    return MetadataValue(name, MetaType.INT32, value, location=location, index=index)


class TestMetaType:
    def test_from_tag_case_insensitive(self):
        assert MetaType.from_tag("FLOAT") is MetaType.FLOAT
        assert MetaType.from_tag("uint16") is MetaType.UINT16

    def test_unparseable_tags(self):
        assert MetaType.from_tag("complex") is None
        assert MetaType.from_tag("comment") is None
        assert MetaType.from_tag("invalid") is None

    def test_dtypes(self):
        assert MetaType.DOUBLE.dtype == np.float64
        assert MetaType.STRING.dtype is None
        assert MetaType.INT8.is_integer
        assert not MetaType.FLOAT.is_integer

    def test_variant_count(self):
        assert len(MetaType) == 13


class TestStore:
    def test_insert_and_lookup(self):
        store = MetadataStore()
        store.insert_or_replace(_entry("a"))
        assert "a" in store
        assert len(store) == 1
        assert store.lookup("a").value == 1

    def test_lookup_missing(self):
        store = MetadataStore()
        with pytest.raises(MetadataNotFoundError):
            store.lookup("nope")
        with pytest.raises(KeyError):
            store.lookup("nope")
        assert store.get("nope") is None

    def test_replace_keeps_one_entry_with_new_place(self):
        store = MetadataStore()
        store.insert_or_replace(_entry("a", Location.AFTER_TAG, 0))
        store.insert_or_replace(_entry("b", Location.AFTER_TAG, 1))
        store.insert_or_replace(_entry("a", Location.END, 0, value=7))
        assert store.names() == ["b", "a"]
        groups = store.grouped_by_location()
        assert [v.name for v in groups[Location.AFTER_TAG]] == ["b"]
        assert [v.value for v in groups[Location.END]] == [7]

    def test_grouped_sorted_by_index(self):
        store = MetadataStore()
        for name, index in (("c", 2), ("a", 0), ("b", 1)):
            store.insert_or_replace(_entry(name, Location.AFTER_VPE, index))
        groups = store.grouped_by_location()
        assert len(groups) == 5
        assert [v.name for v in groups[Location.AFTER_VPE]] == ["a", "b", "c"]

    def test_allocate_follows_last_location(self):
        store = MetadataStore()
        assert store.allocate() == (Location.END, 0)
        assert store.allocate(Location.AFTER_TAG) == (Location.AFTER_TAG, 0)
        assert store.allocate() == (Location.AFTER_TAG, 1)
        assert store.allocate(Location.END) == (Location.END, 1)

    def test_replace_renumbers_bucket_and_comments(self):
        store = MetadataStore()
        store.insert_or_replace(_entry("a", Location.END, 0))
        store.insert_or_replace(MetadataValue(comment_name(Location.END, 1), MetaType.COMMENT,
                                              "note", location=Location.END, index=1))
        store.allocate(Location.END)
        store.allocate(Location.END)
        loc, index = store.allocate(Location.END)
        store.insert_or_replace(_entry("a", loc, index, value=2))
        assert store.lookup(";4;0").value == "note"
        assert ";4;1" not in store
        assert store.lookup("a").index == 1
        assert store.allocate() == (Location.END, 2)

    def test_resync_counters(self):
        store = MetadataStore()
        store.insert_or_replace(_entry("a", Location.AFTER_BPV, 4))
        store.resync_counters()
        assert store.allocate(Location.AFTER_BPV) == (Location.AFTER_BPV, 5)
        assert store.allocate(Location.AFTER_TAG) == (Location.AFTER_TAG, 0)

    def test_comments(self):
        store = MetadataStore()
        store.insert_or_replace(MetadataValue(comment_name(0, 0), MetaType.COMMENT, "hi",
                                              location=Location.AFTER_TAG))
        store.insert_or_replace(_entry("a"))
        assert [v.value for v in store.comments()] == ["hi"]

    def test_comment_name(self):
        assert comment_name(Location.AFTER_TAG, 3) == ";0;3"
        assert comment_name(4, 0) == ";4;0"


class TestArrayIndexing:
    @pytest.fixture
    def grid(self):
        arr = np.arange(6, dtype=np.int32).reshape(2, 3)
        stored, dims = coerce_numeric(MetaType.INT32, arr)
        return arr, MetadataValue("g", MetaType.INT32, stored, dims)

    def test_dims_from_shape(self, grid):
        _, entry = grid
        assert entry.dims == (2, 3)
        assert entry.count == 6

    def test_first_index_fastest(self, grid):
        arr, entry = grid
        for i in range(2):
            for j in range(3):
                assert entry.value_at((i, j)) == arr[i, j]
        assert entry.flat_index((1, 2)) == 5

    def test_flat_int_index(self, grid):
        _, entry = grid
        assert entry.value_at(1) == entry.value[1]

    @pytest.mark.parametrize("indices", [(2, 0), (0, 3), (-1, 0), (0,), (0, 0, 0), 6])
    def test_out_of_bounds(self, grid, indices):
        _, entry = grid
        with pytest.raises(IndexOutOfBoundsError):
            entry.value_at(indices)

    def test_whole_array_is_copy(self, grid):
        _, entry = grid
        whole = entry.value_at()
        whole[0] = 99
        assert entry.value[0] == 0


class TestCoerceNumeric:
    def test_single_value_is_scalar(self):
        assert coerce_numeric(MetaType.INT32, [7]) == (7, ())

    def test_float_scalar_is_float32(self):
        value, dims = coerce_numeric(MetaType.FLOAT, 3.1416)
        assert isinstance(value, np.float32)
        assert dims == ()

    def test_explicit_dims(self):
        value, dims = coerce_numeric(MetaType.UINT8, [1, 2, 3, 4, 5, 6], dims=(3, 2))
        assert dims == (3, 2)
        assert value.dtype == np.uint8
        assert value.tolist() == [1, 2, 3, 4, 5, 6]

    def test_dims_mismatch(self):
        with pytest.raises(ValueError):
            coerce_numeric(MetaType.UINT8, [1, 2, 3], dims=(2, 2))

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            coerce_numeric(MetaType.UINT8, 300)
        with pytest.raises(ValueError):
            coerce_numeric(MetaType.INT8, [-129, 0])

    def test_float_into_integer(self):
        with pytest.raises(TypeMismatchError):
            coerce_numeric(MetaType.INT32, 1.5)

    def test_too_many_dims(self):
        with pytest.raises(ValueError):
            coerce_numeric(MetaType.INT16, np.zeros((2, 2, 2, 2, 2), dtype=np.int16))

    def test_text_rejected(self):
        with pytest.raises(TypeMismatchError):
            coerce_numeric(MetaType.DOUBLE, "abc")


class TestInference:
    @pytest.mark.parametrize("value, expected", [
        ("x", MetaType.STRING),
        (1.5, MetaType.DOUBLE),
        (3, MetaType.INT64),
        (2**64 - 1, MetaType.UINT64),
        (np.float32(1), MetaType.FLOAT),
        (np.array([1, 2], dtype=np.uint16), MetaType.UINT16),
        (np.int8(-3), MetaType.INT8),
        ([1.0, 2.0], MetaType.DOUBLE),
        ([1, 2], MetaType.INT64),
    ])
    def test_infer(self, value, expected):
        assert infer_meta_type(value) is expected

    def test_bool_rejected(self):
        with pytest.raises(TypeMismatchError):
            infer_meta_type(True)

    def test_complex_rejected(self):
        with pytest.raises(TypeMismatchError):
            infer_meta_type(np.complex64(1))


class TestCheckText:
    def test_truncates(self):
        assert len(check_text("a" * 400, 256)) == 255

    def test_stripped_leaves_room_for_separator(self):
        assert len(check_text("a" * 400, 256, stripped=True)) == 254

    @pytest.mark.parametrize("text", ["two\nlines", "cr\rinside"])
    def test_multi_line_rejected(self, text):
        with pytest.raises(ValueError):
            check_text(text, 256)

    def test_non_latin1_rejected(self):
        with pytest.raises(ValueError):
            check_text("☃", 256)

"""
Tests for the Allocation Registry.

This test suite covers:
1. Scalar allocation and kind selection
2. Buffers with explicit sizes and embedded zero bytes
3. Sequences, tuples and mappings
4. Reference counts of container children
5. Unsupported values
"""

from collections import OrderedDict, deque

import numpy as np
import pytest

from pywrapper.core.allocate import allocate, allocate_buffer
from pywrapper.core.errors import UnsupportedTypeError
from pywrapper.runtime import Kind


class TestScalars:
    """Test scalar allocation."""

    @pytest.mark.parametrize(
        "value,kind",
        [
            (None, Kind.NONE),
            (True, Kind.BOOL),
            (0, Kind.INT),
            (2**100, Kind.INT),
            (1.5, Kind.FLOAT),
            ("text", Kind.TEXT),
            (b"raw", Kind.BYTES),
            (bytearray(b"raw"), Kind.BYTES),
        ],
    )
    def test_kind_follows_native_type(self, runtime, value, kind):
        with allocate(value, runtime) as ref:
            assert runtime.kind(ref.get()) is kind
            assert runtime.refcount(ref.get()) == 1

    def test_bool_stays_distinct_from_int(self, runtime):
        with allocate(False, runtime) as ref:
            assert runtime.is_bool(ref.get())
            assert not runtime.is_int(ref.get())
            assert runtime.bool_value(ref.get()) is False

    def test_numpy_scalars(self, runtime):
        with allocate(np.int16(-7), runtime) as int_ref, allocate(np.float32(0.25), runtime) as float_ref:
            assert runtime.int_value(int_ref.get()) == -7
            assert type(runtime.int_value(int_ref.get())) is int
            assert runtime.float_value(float_ref.get()) == 0.25

    def test_numpy_bool_is_unsupported(self, runtime):
        with pytest.raises(UnsupportedTypeError):
            allocate(np.bool_(True), runtime)

    def test_defaults_to_installed_runtime(self, runtime):
        with allocate("x") as ref:
            assert ref.runtime is runtime


class TestBuffers:
    """Test bytes allocation."""

    def test_embedded_zero_bytes_are_kept(self, runtime):
        with allocate(b"a\x00b\x00", runtime) as ref:
            assert runtime.bytes_value(ref.get()) == b"a\x00b\x00"

    def test_memoryview(self, runtime):
        with allocate(memoryview(b"\x01\x02"), runtime) as ref:
            assert runtime.bytes_value(ref.get()) == b"\x01\x02"

    def test_explicit_size_takes_leading_bytes(self, runtime):
        with allocate_buffer(b"\x00\x01\x02\x03", 2, runtime=runtime) as ref:
            assert runtime.bytes_value(ref.get()) == b"\x00\x01"

    def test_zero_size(self, runtime):
        with allocate_buffer(b"abc", 0, runtime=runtime) as ref:
            assert runtime.bytes_value(ref.get()) == b""

    @pytest.mark.parametrize("size", [-1, 5])
    def test_size_out_of_range(self, runtime, size):
        with pytest.raises(ValueError, match="outside"):
            allocate_buffer(b"abcd", size, runtime=runtime)
        assert runtime.live_count() == 0


class TestContainers:
    """Test sequence, tuple and mapping allocation."""

    def test_list_keeps_order(self, runtime):
        with allocate([3, "two", 1.0], runtime) as ref:
            rt, lst = runtime, ref.get()
            assert rt.is_list(lst)
            assert rt.list_size(lst) == 3
            assert rt.int_value(rt.list_get_item(lst, 0)) == 3
            assert rt.text_value(rt.list_get_item(lst, 1)) == "two"
            assert rt.float_value(rt.list_get_item(lst, 2)) == 1.0

    def test_deque_becomes_list(self, runtime):
        with allocate(deque([1, 2]), runtime) as ref:
            assert runtime.is_list(ref.get())
            assert runtime.list_size(ref.get()) == 2

    def test_tuple(self, runtime):
        with allocate((1, "a"), runtime) as ref:
            assert runtime.is_tuple(ref.get())
            assert runtime.tuple_size(ref.get()) == 2

    def test_empty_containers(self, runtime):
        with allocate([], runtime) as lst, allocate((), runtime) as tup, allocate({}, runtime) as mapping:
            assert runtime.list_size(lst.get()) == 0
            assert runtime.tuple_size(tup.get()) == 0
            assert runtime.dict_items(mapping.get()) == []

    def test_mapping_entry_counts(self, runtime):
        """Each entry is held once, by the mapping only."""
        with allocate({"a": 1}, runtime) as ref:
            [(key, value)] = runtime.dict_items(ref.get())
            assert runtime.text_value(key) == "a"
            assert runtime.int_value(value) == 1
            assert runtime.refcount(key) == 1
            assert runtime.refcount(value) == 1
            assert runtime.live_count() == 3
        assert runtime.live_count() == 0

    def test_ordered_mapping(self, runtime):
        value = OrderedDict([("b", 2), ("a", 1)])
        with allocate(value, runtime) as ref:
            keys = [runtime.text_value(key) for key, _ in runtime.dict_items(ref.get())]
            assert keys == ["b", "a"]

    def test_nested_children_released_with_parent(self, runtime):
        ref = allocate({"k": [(1, b"x"), (2, b"y")]}, runtime)
        assert runtime.live_count() > 1
        ref.close()
        assert runtime.live_count() == 0


class TestUnsupported:
    """Unsupported values raise and leave nothing behind."""

    @pytest.mark.parametrize("value", [{1, 2}, object(), 1 + 2j, frozenset()])
    def test_unsupported_value(self, runtime, value):
        with pytest.raises(UnsupportedTypeError, match="Cannot allocate"):
            allocate(value, runtime)

    def test_unsupported_element_mid_list(self, runtime):
        with pytest.raises(UnsupportedTypeError):
            allocate([1, "two", {3}, 4], runtime)
        assert runtime.live_count() == 0

    def test_unsupported_mapping_value(self, runtime):
        with pytest.raises(UnsupportedTypeError):
            allocate({"a": 1, "b": object()}, runtime)
        assert runtime.live_count() == 0

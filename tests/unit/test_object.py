"""
Tests for the Object facade.

This test suite covers:
1. Script loading
2. Attribute lookup and probing
3. Calls, argument marshalling and failures
4. Error indicator hygiene
5. Unbound Objects
6. Shared ownership and leak freedom
"""

import copy
import gc

import pytest

from pywrapper.core.allocate import allocate
from pywrapper.core.convert import Out
from pywrapper.core.errors import (
    AttributeNotFoundError,
    CallError,
    ErrorKind,
    LoadError,
    UnsupportedTypeError,
    WrapperError,
)
from pywrapper.core.handle import SharedRef
from pywrapper.core.object import Object
from pywrapper.runtime import HeapError


@pytest.fixture
def module(runtime, sample_script):
    """The sample script loaded as an Object."""
    return Object.from_script(sample_script)


def value_of(obj, hint):
    out = Out(hint)
    assert obj.convert(out), f"{obj!r} does not convert to {hint!r}"
    return out.value


class TestLoading:
    """Test from_script."""

    def test_loaded_module_is_bound(self, module, runtime):
        assert module.bound
        assert module.runtime is runtime
        assert repr(module).startswith("Object<Ref(")

    def test_missing_script(self, runtime, tmp_path):
        path = tmp_path / "missing.py"
        with pytest.raises(LoadError) as excinfo:
            Object.from_script(path)

        assert excinfo.value.kind is ErrorKind.LOAD_FAILED
        assert excinfo.value.name == str(path)
        assert "Script not found" in excinfo.value.detail
        assert not runtime.error_occurred()

    def test_script_raising_on_import(self, runtime, write_script):
        path = write_script("raise RuntimeError('bad import')\n", "broken.py")
        with pytest.raises(LoadError, match="bad import"):
            Object.from_script(path)
        assert not runtime.error_occurred()


class TestAttributes:
    """Test get_attr and has_attr."""

    def test_has_attr(self, module):
        assert module.has_attr("add")
        assert module.has_attr("VERSION")
        assert not module.has_attr("missing")

    def test_has_attr_swallows_lookup_errors(self, module, runtime):
        assert not module.has_attr("explodes")
        assert not runtime.error_occurred()

    def test_get_attr_value(self, module):
        assert value_of(module.get_attr("VERSION"), str) == "1.0"

    def test_get_attr_missing(self, module, runtime):
        with pytest.raises(AttributeNotFoundError) as excinfo:
            module.get_attr("missing")

        error = excinfo.value
        assert error.name == "missing"
        assert error.kind is ErrorKind.ATTRIBUTE_NOT_FOUND
        assert error.detail.startswith("AttributeError")
        assert isinstance(error.__cause__, AttributeError)
        assert not runtime.error_occurred()

    def test_get_attr_lookup_raising(self, module):
        with pytest.raises(AttributeNotFoundError, match="RuntimeError: boom"):
            module.get_attr("explodes")

    def test_attribute_of_a_value(self, runtime):
        text = Object.from_value("abc")
        assert value_of(text.call_function("upper"), str) == "ABC"

    def test_list_and_dict_methods_are_rejected(self, runtime):
        items = Object.from_value([1])
        with pytest.raises(AttributeNotFoundError, match="do not expose attributes"):
            items.call_function("append", 2)
        assert value_of(items, list[int]) == [1]
        assert not items.has_attr("append")

        mapping = Object.from_value({"a": 1})
        with pytest.raises(AttributeNotFoundError):
            mapping.call_function("update", {"b": 2})
        assert value_of(mapping, dict[str, int]) == {"a": 1}
        assert not runtime.error_occurred()

    def test_tuple_methods(self, runtime):
        assert value_of(Object.from_value((1, 2, 1)).call_function("count", 1), int) == 2


class TestCalls:
    """Test call_function and call."""

    def test_call_function(self, module):
        assert value_of(module.call_function("add", 2, 3), int) == 5

    def test_result_conversions(self, module):
        assert value_of(module.call_function("make_list"), list[int]) == [1, 2, 3]
        assert value_of(module.call_function("make_mapping"), dict[str, int]) == {"a": 1}
        assert value_of(module.call_function("pair"), tuple[int, str]) == (1, "a")

        nested = module.call_function("nested")
        assert value_of(nested, list[dict[str, tuple[int, str]]]) == [
            {"x": (1, "one")},
            {"y": (2, "two")},
        ]

    def test_mismatched_result(self, module):
        triple = module.call_function("triple")
        assert not triple.convert(Out(tuple[int, str]))
        assert not module.call_function("nothing").convert(Out(int))

    def test_native_arguments_are_allocated(self, module):
        out = Out(tuple[int, str, bytes, list[float]])
        assert module.call_function("echo", 1, "a", b"\x00z", [1.5]).convert(out)
        assert out.value == (1, "a", b"\x00z", [1.5])

    def test_bool_argument_keeps_its_kind(self, module):
        assert value_of(module.call_function("type_name", True), str) == "bool"
        assert value_of(module.call_function("type_name", 1), str) == "int"

    def test_call_on_function_object(self, module):
        add = module.get_attr("add")
        assert value_of(add.call(1, 2), int) == 3

    def test_state_persists_between_calls(self, module):
        assert value_of(module.call_function("bump"), int) == 1
        assert value_of(module.call_function("bump"), int) == 2

    def test_missing_function(self, module, runtime):
        with pytest.raises(AttributeNotFoundError) as excinfo:
            module.call_function("nonexistent_name")

        assert excinfo.value.name == "nonexistent_name"
        assert isinstance(excinfo.value, WrapperError)
        assert isinstance(excinfo.value, RuntimeError)
        assert not runtime.error_occurred()

    def test_function_raising(self, module, runtime):
        with pytest.raises(CallError) as excinfo:
            module.call_function("fail", "boom")

        error = excinfo.value
        assert error.kind is ErrorKind.CALL_FAILED
        assert error.name == "fail"
        assert error.detail == "ValueError: boom"
        assert isinstance(error.__cause__, ValueError)
        assert not runtime.error_occurred()

    def test_calling_a_non_callable(self, module):
        with pytest.raises(CallError, match="TypeError"):
            module.call_function("VERSION")

    def test_wrong_argument_count(self, module):
        with pytest.raises(CallError, match="TypeError"):
            module.call_function("add", 1)

    def test_self_referential_result(self, runtime, write_script):
        path = write_script("def loop():\n    items = []\n    items.append(items)\n    return items\n", "loop.py")
        with pytest.raises(CallError, match="RecursionError"):
            Object.from_script(path).call_function("loop")
        assert not runtime.error_occurred()

    def test_indicator_clear_after_success(self, module, runtime):
        runtime.set_error(ValueError("stale"))
        module.call_function("add", 1, 1)
        assert not runtime.error_occurred()


class TestArgumentMarshalling:
    """Test how each argument kind enters the call tuple."""

    def test_object_argument_is_shared(self, module, runtime):
        items = Object.from_value([1, 2, 3])
        assert runtime.refcount(items.get()) == 1

        assert value_of(module.call_function("length", items), int) == 3
        assert items.bound
        assert runtime.refcount(items.get()) == 1

    def test_shared_ref_argument_is_shared(self, module, runtime):
        shared = allocate("abcd", runtime).share()
        assert value_of(module.call_function("length", shared), int) == 4
        assert runtime.refcount(shared.get()) == 1

    def test_owned_ref_argument_is_moved(self, module, runtime):
        owned = allocate("abc", runtime)
        assert value_of(module.call_function("length", owned), int) == 3
        assert owned.empty

    def test_raw_ref_argument_is_stolen(self, module, runtime):
        raw = runtime.new_text("xy")
        assert value_of(module.call_function("length", raw), int) == 2
        with pytest.raises(HeapError):
            runtime.refcount(raw)

    def test_raw_refs_released_when_an_argument_fails(self, module, runtime):
        raw = runtime.new_text("xy")
        owned = allocate("ab", runtime)
        with pytest.raises(UnsupportedTypeError):
            module.call_function("echo", object(), raw, owned)

        # The raw reference was handed over; the OwnedRef stays with the caller
        with pytest.raises(HeapError):
            runtime.refcount(raw)
        assert not owned.empty
        assert runtime.refcount(owned.get()) == 1

    def test_unbound_object_argument(self, module, runtime):
        func = module.get_attr("length")
        live = runtime.live_count()
        with pytest.raises(ValueError, match="unbound"):
            func.call(Object())
        assert runtime.live_count() == live


class TestUnbound:
    """Test Objects holding no value."""

    def test_state(self):
        obj = Object()
        assert not obj.bound
        assert obj.get() is None
        assert obj.runtime is None
        assert obj.handle is None
        assert repr(obj) == "Object<unbound>"

    def test_probes_return_false(self):
        obj = Object()
        assert not obj.has_attr("anything")
        assert not obj.convert(Out(int))

    def test_operations_raise(self):
        obj = Object()
        with pytest.raises(AttributeNotFoundError, match="unbound"):
            obj.get_attr("x")
        with pytest.raises(AttributeNotFoundError):
            obj.call_function("x")
        with pytest.raises(CallError, match="unbound"):
            obj.call()

    def test_copy_of_unbound(self):
        assert not copy.copy(Object()).bound


class TestOwnership:
    """Test shared ownership between Objects."""

    def test_copy_shares_reference(self, module, runtime):
        other = copy.copy(module)
        assert other.get() == module.get()
        assert module.handle.use_count == 2
        assert runtime.refcount(module.get()) == 1

    def test_constructors(self, runtime):
        owned = allocate(1, runtime)
        from_owned = Object(owned)
        assert owned.empty

        shared = SharedRef(runtime.new_int(2), runtime)
        from_shared = Object(shared)
        assert shared.use_count == 2

        assert value_of(from_owned, int) == 1
        assert value_of(from_shared, int) == 2

    def test_rejects_other_values(self, runtime):
        with pytest.raises(TypeError, match="cannot hold"):
            Object(123)

    def test_released_when_last_copy_dies(self, runtime):
        first = Object.from_value({"a": [1, 2]})
        second = Object(first)
        assert runtime.live_count() > 0

        del first
        assert runtime.live_count() > 0
        del second
        assert runtime.live_count() == 0

    def test_no_leaks_after_calls(self, runtime, sample_script):
        module = Object.from_script(sample_script)
        result = module.call_function("nested")
        value_of(result, list[dict[str, tuple[int, str]]])
        module.call_function("add", Object.from_value(1), allocate(2, runtime))

        del result
        del module
        gc.collect()
        assert runtime.live_count() == 0

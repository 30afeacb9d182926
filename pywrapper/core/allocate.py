"""
Allocation Registry - Typed native values to new runtime values.

allocate(value) dispatches on the native value's type and returns an
OwnedRef holding a freshly created runtime reference. Containers allocate
their elements recursively; elements keep their positional order.

Allocation does not fail for supported values. A runtime refusing to store
an element is reported as AllocationError and treated as fatal.
"""

import functools
import numbers
from collections import deque
from collections.abc import Mapping
from typing import Any

from pywrapper.core.errors import AllocationError, UnsupportedTypeError, summarize
from pywrapper.core.handle import OwnedRef
from pywrapper.runtime import RuntimeAPI, current


def _runtime(runtime: RuntimeAPI | None) -> RuntimeAPI:
    return runtime if runtime is not None else current()


def _fail(runtime: RuntimeAPI, what: str) -> AllocationError:
    detail = summarize(runtime.fetch_error())
    return AllocationError(f"Runtime failed to store {what}", what, detail)


@functools.singledispatch
def allocate(value: Any, runtime: RuntimeAPI | None = None) -> OwnedRef:
    """
    Create a runtime value from a native value.

    Args:
        value: Native value
        runtime: Target runtime (default: the installed one)

    Returns:
        OwnedRef holding the new reference

    Raises:
        UnsupportedTypeError: If the value's type has no allocation rule
        AllocationError: If the runtime fails while building a container
    """
    raise UnsupportedTypeError(f"Cannot allocate a runtime value from {type(value).__name__}")


@allocate.register(type(None))
def _allocate_none(value: None, runtime: RuntimeAPI | None = None) -> OwnedRef:
    rt = _runtime(runtime)
    return OwnedRef(rt.new_none(), rt)


# bool is registered apart from Integral so it stays a distinct runtime kind
@allocate.register(bool)
def _allocate_bool(value: bool, runtime: RuntimeAPI | None = None) -> OwnedRef:
    rt = _runtime(runtime)
    return OwnedRef(rt.new_bool(value), rt)


@allocate.register(numbers.Integral)
def _allocate_int(value: numbers.Integral, runtime: RuntimeAPI | None = None) -> OwnedRef:
    rt = _runtime(runtime)
    return OwnedRef(rt.new_int(int(value)), rt)


@allocate.register(numbers.Real)
def _allocate_float(value: numbers.Real, runtime: RuntimeAPI | None = None) -> OwnedRef:
    rt = _runtime(runtime)
    return OwnedRef(rt.new_float(float(value)), rt)


@allocate.register(str)
def _allocate_text(value: str, runtime: RuntimeAPI | None = None) -> OwnedRef:
    rt = _runtime(runtime)
    return OwnedRef(rt.new_text(value), rt)


@allocate.register(bytes)
@allocate.register(bytearray)
@allocate.register(memoryview)
def _allocate_bytes(value: bytes, runtime: RuntimeAPI | None = None) -> OwnedRef:
    return allocate_buffer(value, runtime=runtime)


def allocate_buffer(
    data: bytes | bytearray | memoryview,
    size: int | None = None,
    runtime: RuntimeAPI | None = None,
) -> OwnedRef:
    """
    Create a runtime bytes value from a buffer.

    The length comes from the container (or from size), never from the
    content, so embedded zero bytes are kept.

    Args:
        data: Source buffer
        size: Number of leading bytes to take (default: all of them)
        runtime: Target runtime (default: the installed one)

    Raises:
        ValueError: If size is negative or larger than the buffer
    """
    rt = _runtime(runtime)
    payload = bytes(data)
    if size is not None:
        if not 0 <= size <= len(payload):
            raise ValueError(f"Buffer size {size} outside 0..{len(payload)}")
        payload = payload[:size]
    return OwnedRef(rt.new_bytes(payload), rt)


def _fill_slots(rt: RuntimeAPI, container: OwnedRef, items: Any, setter: Any, what: str) -> OwnedRef:
    # Item ownership moves into the slot; the container releases everything on error
    with container:
        for index, item in enumerate(items):
            if not setter(container.get(), index, allocate(item, rt).release()):
                raise _fail(rt, f"{what} item {index}")
        return OwnedRef(container.release(), rt)


@allocate.register(list)
@allocate.register(deque)
def _allocate_sequence(value: list, runtime: RuntimeAPI | None = None) -> OwnedRef:
    rt = _runtime(runtime)
    return _fill_slots(rt, OwnedRef(rt.new_list(len(value)), rt), value, rt.list_set_item, "list")


@allocate.register(tuple)
def _allocate_tuple(value: tuple, runtime: RuntimeAPI | None = None) -> OwnedRef:
    rt = _runtime(runtime)
    return _fill_slots(rt, OwnedRef(rt.new_tuple(len(value)), rt), value, rt.tuple_set_item, "tuple")


@allocate.register(Mapping)
def _allocate_mapping(value: Mapping, runtime: RuntimeAPI | None = None) -> OwnedRef:
    rt = _runtime(runtime)
    with OwnedRef(rt.new_dict(), rt) as mapping:
        for key, item in value.items():
            # dict_set_item takes its own references; ours are dropped after
            with allocate(key, rt) as key_ref, allocate(item, rt) as value_ref:
                if not rt.dict_set_item(mapping.get(), key_ref.get(), value_ref.get()):
                    raise _fail(rt, f"dict entry {key!r}")
        return OwnedRef(mapping.release(), rt)

"""
Heap Runtime - In-process reference-counted object runtime.

This module provides HeapRuntime, the embedded runtime bundled with pywrapper.
Every value lives in a heap cell addressed by a Ref and carries its own
reference count; the cell is freed, and its children released, when the
count reaches zero.

Key features:
- Primitive and container cells (list, tuple, dict) holding child references
- Steal / borrow / new-reference conventions of classic embedding APIs
- Scripted callables loaded from Python source files
- A single error indicator set by failing operations
- Detection of double release and use of freed references
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pywrapper import config
from pywrapper.runtime.api import Kind, Ref
from pywrapper.runtime.loader import LoaderError, load_script_module


class HeapError(Exception):
    """Raised on invalid use of heap references (unknown, freed, wrong kind)."""

    pass


@dataclass
class _Cell:
    """
    A heap cell.

    Attributes:
        kind: Runtime-visible kind of the value
        payload: Python scalar, list of child Refs, or dict of hash key -> (key Ref, value Ref)
        refcount: Number of outstanding references
    """

    kind: Kind
    payload: Any
    refcount: int = 1


class HeapRuntime:
    """
    Reference-counted object heap implementing RuntimeAPI.

    Containers own their children: freeing a list, tuple or dict releases
    every reference it holds. Scripted callables receive plain Python values
    and their results are boxed back into fresh cells.

    Example:
        rt = HeapRuntime()
        ref = rt.new_int(42)
        rt.int_value(ref)   # 42
        rt.decref(ref)      # cell freed
    """

    _ADDRESS_BASE = 0x1000
    _ADDRESS_STEP = 0x10

    def __init__(
        self,
        module_prefix: str | None = None,
        cache_scripts: bool | None = None,
    ):
        """
        Initialize HeapRuntime.

        Args:
            module_prefix: Module name prefix for loaded scripts (default from settings)
            cache_scripts: Reuse modules loaded from the same path (default from settings)
        """
        self._cells: dict[int, _Cell] = {}
        self._next_address = self._ADDRESS_BASE
        self._error: BaseException | None = None
        self._module_prefix = module_prefix
        self._cache_scripts = cache_scripts

    # Cell management

    def _alloc(self, kind: Kind, payload: Any) -> Ref:
        address = self._next_address
        self._next_address += self._ADDRESS_STEP
        self._cells[address] = _Cell(kind, payload)
        return Ref(address)

    def _cell(self, ref: Ref) -> _Cell:
        try:
            return self._cells[ref.address]
        except (KeyError, AttributeError):
            raise HeapError(f"Unknown or freed reference: {ref!r}") from None

    def _cell_of(self, ref: Ref, kind: Kind) -> _Cell:
        cell = self._cell(ref)
        if cell.kind is not kind:
            raise HeapError(
                f"Expected {kind.value} at {ref!r}, found {cell.kind.value}"
            )
        return cell

    # Reference counting

    def incref(self, ref: Ref) -> None:
        self._cell(ref).refcount += 1

    def decref(self, ref: Ref) -> None:
        cell = self._cell(ref)
        cell.refcount -= 1
        if cell.refcount > 0:
            return

        del self._cells[ref.address]

        # Release children after the parent is gone
        if cell.kind in (Kind.LIST, Kind.TUPLE):
            for item in cell.payload:
                if item is not None:
                    self.decref(item)
        elif cell.kind is Kind.DICT:
            for key, value in cell.payload.values():
                self.decref(key)
                self.decref(value)

    def refcount(self, ref: Ref) -> int:
        return self._cell(ref).refcount

    def live_count(self) -> int:
        """Number of cells currently allocated."""
        return len(self._cells)

    # Type predicates

    def kind(self, ref: Ref) -> Kind:
        return self._cell(ref).kind

    def is_none(self, ref: Ref) -> bool:
        return self.kind(ref) is Kind.NONE

    def is_bool(self, ref: Ref) -> bool:
        return self.kind(ref) is Kind.BOOL

    def is_int(self, ref: Ref) -> bool:
        return self.kind(ref) is Kind.INT

    def is_float(self, ref: Ref) -> bool:
        return self.kind(ref) is Kind.FLOAT

    def is_text(self, ref: Ref) -> bool:
        return self.kind(ref) is Kind.TEXT

    def is_bytes(self, ref: Ref) -> bool:
        return self.kind(ref) is Kind.BYTES

    def is_list(self, ref: Ref) -> bool:
        return self.kind(ref) is Kind.LIST

    def is_tuple(self, ref: Ref) -> bool:
        return self.kind(ref) is Kind.TUPLE

    def is_dict(self, ref: Ref) -> bool:
        return self.kind(ref) is Kind.DICT

    def is_callable(self, ref: Ref) -> bool:
        cell = self._cell(ref)
        return cell.kind is Kind.OBJECT and callable(cell.payload)

    # Constructors

    def new_none(self) -> Ref:
        return self._alloc(Kind.NONE, None)

    def new_bool(self, value: bool) -> Ref:
        return self._alloc(Kind.BOOL, bool(value))

    def new_int(self, value: int) -> Ref:
        return self._alloc(Kind.INT, int(value))

    def new_float(self, value: float) -> Ref:
        return self._alloc(Kind.FLOAT, float(value))

    def new_text(self, value: str) -> Ref:
        if not isinstance(value, str):
            raise HeapError(f"Text cell requires str, got {type(value).__name__}")
        return self._alloc(Kind.TEXT, value)

    def new_bytes(self, value: bytes) -> Ref:
        return self._alloc(Kind.BYTES, bytes(value))

    def new_list(self, size: int) -> Ref:
        if size < 0:
            raise HeapError(f"Negative list size: {size}")
        return self._alloc(Kind.LIST, [None] * size)

    def new_tuple(self, size: int) -> Ref:
        if size < 0:
            raise HeapError(f"Negative tuple size: {size}")
        return self._alloc(Kind.TUPLE, [None] * size)

    def new_dict(self) -> Ref:
        return self._alloc(Kind.DICT, {})

    # Scalar readers

    def bool_value(self, ref: Ref) -> bool:
        return self._cell_of(ref, Kind.BOOL).payload

    def int_value(self, ref: Ref) -> int:
        return self._cell_of(ref, Kind.INT).payload

    def float_value(self, ref: Ref) -> float:
        return self._cell_of(ref, Kind.FLOAT).payload

    def text_value(self, ref: Ref) -> str:
        return self._cell_of(ref, Kind.TEXT).payload

    def bytes_value(self, ref: Ref) -> bytes:
        return self._cell_of(ref, Kind.BYTES).payload

    # Container access

    def _get_slot(self, ref: Ref, kind: Kind, index: int) -> Ref:
        items = self._cell_of(ref, kind).payload
        if not 0 <= index < len(items):
            raise HeapError(f"{kind.value} index {index} out of range")
        item = items[index]
        if item is None:
            raise HeapError(f"{kind.value} slot {index} is empty")
        return item

    def _set_slot(self, ref: Ref, kind: Kind, index: int, item: Ref) -> bool:
        cell = self._cell(ref)
        if cell.kind is not kind or not 0 <= index < len(cell.payload):
            # The stolen reference is released even on failure
            self.decref(item)
            self.set_error(IndexError(f"{kind.value} assignment index out of range"))
            return False

        previous = cell.payload[index]
        cell.payload[index] = item
        if previous is not None:
            self.decref(previous)
        return True

    def list_size(self, ref: Ref) -> int:
        return len(self._cell_of(ref, Kind.LIST).payload)

    def list_get_item(self, ref: Ref, index: int) -> Ref:
        return self._get_slot(ref, Kind.LIST, index)

    def list_set_item(self, ref: Ref, index: int, item: Ref) -> bool:
        return self._set_slot(ref, Kind.LIST, index, item)

    def tuple_size(self, ref: Ref) -> int:
        return len(self._cell_of(ref, Kind.TUPLE).payload)

    def tuple_get_item(self, ref: Ref, index: int) -> Ref:
        return self._get_slot(ref, Kind.TUPLE, index)

    def tuple_set_item(self, ref: Ref, index: int, item: Ref) -> bool:
        return self._set_slot(ref, Kind.TUPLE, index, item)

    def dict_set_item(self, ref: Ref, key: Ref, value: Ref) -> bool:
        """
        Insert or replace a dict entry without stealing either reference.

        When the key already exists the original key reference is kept and
        only the value is replaced.
        """
        entries = self._cell_of(ref, Kind.DICT).payload
        try:
            hash_key = self._unbox(key)
            hash(hash_key)
        except TypeError as e:
            self.set_error(e)
            return False

        self.incref(value)
        previous = entries.get(hash_key)
        if previous is None:
            self.incref(key)
            entries[hash_key] = (key, value)
        else:
            old_key, old_value = previous
            entries[hash_key] = (old_key, value)
            self.decref(old_value)
        return True

    def dict_items(self, ref: Ref) -> list[tuple[Ref, Ref]]:
        return list(self._cell_of(ref, Kind.DICT).payload.values())

    # Boxing between heap cells and Python values

    def _unbox(self, ref: Ref) -> Any:
        cell = self._cell(ref)
        if cell.kind is Kind.LIST:
            return [self._unbox(item) for item in cell.payload if item is not None]
        if cell.kind is Kind.TUPLE:
            return tuple(self._unbox(item) for item in cell.payload if item is not None)
        if cell.kind is Kind.DICT:
            return {
                self._unbox(key): self._unbox(value)
                for key, value in cell.payload.values()
            }
        return cell.payload

    def _box(self, value: Any) -> Ref:
        if value is None:
            return self.new_none()
        if isinstance(value, bool):
            return self.new_bool(value)
        if isinstance(value, int):
            return self.new_int(value)
        if isinstance(value, float):
            return self.new_float(value)
        if isinstance(value, str):
            return self.new_text(value)
        if isinstance(value, (bytes, bytearray)):
            return self.new_bytes(value)
        if isinstance(value, (list, tuple)):
            seq = self.new_list(len(value)) if isinstance(value, list) else self.new_tuple(len(value))
            try:
                for index, item in enumerate(value):
                    self._set_slot(seq, self.kind(seq), index, self._box(item))
            except Exception:
                # Release whatever was boxed so far
                self.decref(seq)
                raise
            return seq
        if isinstance(value, dict):
            mapping = self.new_dict()
            try:
                for key, item in value.items():
                    key_ref = self._box(key)
                    try:
                        value_ref = self._box(item)
                    except Exception:
                        self.decref(key_ref)
                        raise
                    self.dict_set_item(mapping, key_ref, value_ref)
                    self.decref(key_ref)
                    self.decref(value_ref)
            except Exception:
                self.decref(mapping)
                raise
            return mapping
        return self._alloc(Kind.OBJECT, value)

    # Attributes and calls

    def _attr_target(self, ref: Ref) -> Any:
        cell = self._cell(ref)
        # Lists and dicts are handed to scripts by value; a method bound to
        # that copy would mutate nothing the caller can see
        if cell.kind in (Kind.LIST, Kind.DICT):
            raise AttributeError(f"{cell.kind.value} values do not expose attributes")
        return self._unbox(ref)

    def get_attr(self, ref: Ref, name: str) -> Ref | None:
        try:
            return self._box(getattr(self._attr_target(ref), name))
        except Exception as e:
            self.set_error(e)
            return None

    def has_attr(self, ref: Ref, name: str) -> bool:
        try:
            getattr(self._attr_target(ref), name)
        except Exception:
            return False
        return True

    def call_object(self, callable_ref: Ref, args: Ref) -> Ref | None:
        if not self.is_callable(callable_ref):
            kind = self.kind(callable_ref).value
            self.set_error(TypeError(f"'{kind}' value is not callable"))
            return None

        args_cell = self._cell(args)
        if args_cell.kind is not Kind.TUPLE:
            self.set_error(TypeError("argument list must be a tuple"))
            return None
        for index, item in enumerate(args_cell.payload):
            if item is None:
                self.set_error(SystemError(f"argument tuple slot {index} is empty"))
                return None

        try:
            return self._box(self._cell(callable_ref).payload(*self._unbox(args)))
        except Exception as e:
            # Includes RecursionError from self-referential arguments or results
            self.set_error(e)
            return None

    # Error indicator

    def error_occurred(self) -> bool:
        return self._error is not None

    def set_error(self, exc: BaseException) -> None:
        self._error = exc

    def fetch_error(self) -> BaseException | None:
        error, self._error = self._error, None
        return error

    def clear_error(self) -> None:
        self._error = None

    # Diagnostics and script loading

    def describe(self, ref: Ref) -> str:
        return repr(self._unbox(ref))

    def load(self, path: str | Path) -> Ref | None:
        """
        Load a script file as a module value.

        Args:
            path: Path to a Python source file

        Returns:
            New reference to the module, or None with the error indicator set
        """
        settings = config.current()
        prefix = self._module_prefix if self._module_prefix is not None else settings.module_prefix
        use_cache = self._cache_scripts if self._cache_scripts is not None else settings.cache_scripts
        try:
            module = load_script_module(path, prefix=prefix, use_cache=use_cache)
        except LoaderError as e:
            self.set_error(e)
            return None
        return self._alloc(Kind.OBJECT, module)

    def __repr__(self) -> str:
        return f"HeapRuntime(live={self.live_count()})"

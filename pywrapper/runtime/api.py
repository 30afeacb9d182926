"""
Embedded Runtime Interface.

This module declares the object-model primitives the marshalling layer
consumes from an embedded runtime.

Key features:
- Ref: opaque, hashable handle to a runtime value
- Kind: runtime-visible value categories
- RuntimeAPI: structural protocol every runtime backend implements

Ownership conventions follow the usual embedding rules: constructors,
get_attr, call_object and load return NEW references; list_get_item,
tuple_get_item and dict_items return BORROWED references; list_set_item and
tuple_set_item STEAL the item reference; dict_set_item does not.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class Ref:
    """
    Raw reference to a runtime value.

    Identity is the address, not the value. Holding a Ref does not keep the
    value alive; wrap it in an OwnedRef or SharedRef as soon as it is received.
    """

    address: int

    def __repr__(self) -> str:
        return f"Ref(0x{self.address:x})"


class Kind(Enum):
    """Runtime-visible value kinds."""

    NONE = "none"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    TEXT = "text"
    BYTES = "bytes"
    LIST = "list"
    TUPLE = "tuple"
    DICT = "dict"
    OBJECT = "object"


@runtime_checkable
class RuntimeAPI(Protocol):
    """Primitives of an embedded, reference-counted object runtime."""

    # Reference counting
    def incref(self, ref: Ref) -> None: ...
    def decref(self, ref: Ref) -> None: ...
    def refcount(self, ref: Ref) -> int: ...
    def live_count(self) -> int: ...

    # Type predicates
    def kind(self, ref: Ref) -> Kind: ...
    def is_none(self, ref: Ref) -> bool: ...
    def is_bool(self, ref: Ref) -> bool: ...
    def is_int(self, ref: Ref) -> bool: ...
    def is_float(self, ref: Ref) -> bool: ...
    def is_text(self, ref: Ref) -> bool: ...
    def is_bytes(self, ref: Ref) -> bool: ...
    def is_list(self, ref: Ref) -> bool: ...
    def is_tuple(self, ref: Ref) -> bool: ...
    def is_dict(self, ref: Ref) -> bool: ...
    def is_callable(self, ref: Ref) -> bool: ...

    # Constructors (new references)
    def new_none(self) -> Ref: ...
    def new_bool(self, value: bool) -> Ref: ...
    def new_int(self, value: int) -> Ref: ...
    def new_float(self, value: float) -> Ref: ...
    def new_text(self, value: str) -> Ref: ...
    def new_bytes(self, value: bytes) -> Ref: ...
    def new_list(self, size: int) -> Ref: ...
    def new_tuple(self, size: int) -> Ref: ...
    def new_dict(self) -> Ref: ...

    # Scalar readers
    def bool_value(self, ref: Ref) -> bool: ...
    def int_value(self, ref: Ref) -> int: ...
    def float_value(self, ref: Ref) -> float: ...
    def text_value(self, ref: Ref) -> str: ...
    def bytes_value(self, ref: Ref) -> bytes: ...

    # Container access
    def list_size(self, ref: Ref) -> int: ...
    def list_get_item(self, ref: Ref, index: int) -> Ref: ...
    def list_set_item(self, ref: Ref, index: int, item: Ref) -> bool: ...
    def tuple_size(self, ref: Ref) -> int: ...
    def tuple_get_item(self, ref: Ref, index: int) -> Ref: ...
    def tuple_set_item(self, ref: Ref, index: int, item: Ref) -> bool: ...
    def dict_set_item(self, ref: Ref, key: Ref, value: Ref) -> bool: ...
    def dict_items(self, ref: Ref) -> list[tuple[Ref, Ref]]: ...

    # Attributes and calls
    def get_attr(self, ref: Ref, name: str) -> Ref | None: ...
    def has_attr(self, ref: Ref, name: str) -> bool: ...
    def call_object(self, callable_ref: Ref, args: Ref) -> Ref | None: ...

    # Error indicator
    def error_occurred(self) -> bool: ...
    def set_error(self, exc: BaseException) -> None: ...
    def fetch_error(self) -> BaseException | None: ...
    def clear_error(self) -> None: ...

    # Diagnostics and script loading
    def describe(self, ref: Ref) -> str: ...
    def load(self, path: str | Path) -> Ref | None: ...

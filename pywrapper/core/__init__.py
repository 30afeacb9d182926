"""
pywrapper Core - The marshalling layer.

This module contains the building blocks:
- Ownership handles: OwnedRef (exclusive), SharedRef (shared)
- Conversion Registry: runtime values to typed native values
- Allocation Registry: native values to new runtime values
- Object: attribute access and calls over a runtime value
"""

from pywrapper.core.allocate import allocate, allocate_buffer
from pywrapper.core.convert import NO_MATCH, ConversionRegistry, Converter, Out, convert, register_conversion
from pywrapper.core.errors import (
    AllocationError,
    AttributeNotFoundError,
    CallError,
    ErrorKind,
    LoadError,
    UnsupportedTypeError,
    WrapperError,
)
from pywrapper.core.handle import HandleError, OwnedRef, SharedRef
from pywrapper.core.object import Object

__all__ = [
    "NO_MATCH",
    "AllocationError",
    "AttributeNotFoundError",
    "CallError",
    "ConversionRegistry",
    "Converter",
    "ErrorKind",
    "HandleError",
    "LoadError",
    "Object",
    "Out",
    "OwnedRef",
    "SharedRef",
    "UnsupportedTypeError",
    "WrapperError",
    "allocate",
    "allocate_buffer",
    "convert",
    "register_conversion",
]

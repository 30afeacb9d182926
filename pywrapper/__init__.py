"""
pywrapper - Typed marshalling for an embedded, reference-counted object runtime.

This is the main package that exports the public API:
- Object: attribute access, calls and conversion over a runtime value
- Out / convert / allocate: the conversion and allocation registries
- OwnedRef / SharedRef: exactly-once ownership of runtime references
- initialize / finalize: process-wide runtime lifecycle
"""

__version__ = "0.1.0"

from pywrapper.core import (
    AllocationError,
    AttributeNotFoundError,
    CallError,
    ErrorKind,
    LoadError,
    Object,
    Out,
    OwnedRef,
    SharedRef,
    UnsupportedTypeError,
    WrapperError,
    allocate,
    allocate_buffer,
    convert,
)
from pywrapper.runtime import (
    HeapRuntime,
    Ref,
    RuntimeAPI,
    clear_error,
    finalize,
    initialize,
    print_error,
    print_object,
)

__all__ = [
    "__version__",
    "AllocationError",
    "AttributeNotFoundError",
    "CallError",
    "ErrorKind",
    "HeapRuntime",
    "LoadError",
    "Object",
    "Out",
    "OwnedRef",
    "Ref",
    "RuntimeAPI",
    "SharedRef",
    "UnsupportedTypeError",
    "WrapperError",
    "allocate",
    "allocate_buffer",
    "clear_error",
    "convert",
    "finalize",
    "initialize",
    "print_error",
    "print_object",
]

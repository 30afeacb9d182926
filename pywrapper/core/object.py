"""
Object Facade.

This module provides Object, the native-side view of one runtime value.

Key features:
- Shared ownership: copies of an Object hold the same runtime reference
- Attribute lookup (get_attr) and existence probing (has_attr)
- Calls with automatic argument marshalling (call_function, call)
- Conversion into typed native values (convert)
- Script loading (from_script)

The runtime's error indicator is consumed and cleared after every operation
that may set it, on success as well as on failure.
"""

import logging
from pathlib import Path
from typing import Any

from pywrapper.core.allocate import allocate
from pywrapper.core.arguments import build_call_tuple
from pywrapper.core.convert import Out, convert
from pywrapper.core.errors import AttributeNotFoundError, CallError, LoadError, summarize
from pywrapper.core.handle import OwnedRef, SharedRef
from pywrapper.runtime import RuntimeAPI, current
from pywrapper.runtime.api import Ref

logger = logging.getLogger(__name__)


class Object:
    """
    A runtime value held from native code.

    An Object is either unbound (no value) or bound to one shared handle.
    Constructing from a raw Ref or an OwnedRef claims that reference without
    incrementing it; constructing from another Object or a SharedRef shares it.

    Example:
        module = Object.from_script("scripts/math_utils.py")
        result = module.call_function("add", 2, 3)
        out = Out(int)
        if result.convert(out):
            print(out.value)   # 5
    """

    def __init__(
        self,
        ref: "Ref | OwnedRef | SharedRef | Object | None" = None,
        runtime: RuntimeAPI | None = None,
    ):
        """
        Initialize Object.

        Args:
            ref: Value to hold; None leaves the Object unbound
            runtime: Runtime a raw Ref belongs to (default: the installed one)
        """
        if ref is None:
            self._handle: SharedRef | None = None
        elif isinstance(ref, Object):
            self._handle = ref._handle.clone() if ref._handle is not None else None
        elif isinstance(ref, SharedRef):
            self._handle = ref.clone()
        elif isinstance(ref, OwnedRef):
            self._handle = ref.share()
        elif isinstance(ref, Ref):
            self._handle = SharedRef(ref, runtime)
        else:
            raise TypeError(f"Object cannot hold a {type(ref).__name__}")

    @classmethod
    def from_value(cls, value: Any, runtime: RuntimeAPI | None = None) -> "Object":
        """Allocate a runtime value from a native value and hold it."""
        return cls(allocate(value, runtime))

    @classmethod
    def from_script(cls, script_path: str | Path, runtime: RuntimeAPI | None = None) -> "Object":
        """
        Load a script and return the module value it produces.

        Args:
            script_path: Path of the script to load
            runtime: Runtime to load into (default: the installed one)

        Returns:
            Bound Object holding the loaded module

        Raises:
            LoadError: If loading fails
        """
        rt = runtime if runtime is not None else current()
        raw = rt.load(script_path)
        error = rt.fetch_error()
        if raw is None:
            logger.debug("Loading %s failed: %s", script_path, error)
            raise LoadError(
                f"Failed to load script {script_path}", str(script_path), summarize(error)
            ) from error
        return cls(raw, rt)

    @property
    def bound(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> SharedRef | None:
        """The shared handle, or None when unbound."""
        return self._handle

    @property
    def runtime(self) -> RuntimeAPI | None:
        return self._handle.runtime if self._handle is not None else None

    def get(self) -> Ref | None:
        """
        Borrow the raw reference.

        No increment is performed; the reference is valid only while this
        Object (or a copy) is alive.
        """
        return self._handle.get() if self._handle is not None else None

    def get_attr(self, name: str) -> "Object":
        """
        Look up an attribute.

        Args:
            name: Attribute name

        Returns:
            Bound Object holding the attribute value

        Raises:
            AttributeNotFoundError: If unbound, the attribute is missing, or the lookup raises
        """
        if self._handle is None:
            raise AttributeNotFoundError(f"Cannot get attribute {name} of an unbound Object", name)

        rt = self._handle.runtime
        raw = rt.get_attr(self._handle.get(), name)
        error = rt.fetch_error()
        if raw is None:
            raise AttributeNotFoundError(
                f"Failed to get attribute {name}", name, summarize(error)
            ) from error
        return Object(raw, rt)

    def has_attr(self, name: str) -> bool:
        """
        Check whether an attribute exists. Never raises.

        Returns:
            True if the attribute can be looked up; False otherwise or when unbound
        """
        if self._handle is None:
            return False

        rt = self._handle.runtime
        try:
            return rt.has_attr(self._handle.get(), name)
        finally:
            rt.clear_error()

    def call_function(self, name: str, *args: Any) -> "Object":
        """
        Call the callable attribute name with the given arguments.

        Arguments are marshalled by build_call_tuple: raw Refs and OwnedRefs
        are moved into the call, Objects are shared, and native values are
        allocated.

        Args:
            name: Name of the callable attribute
            *args: Positional arguments

        Returns:
            Bound Object holding the call result

        Raises:
            AttributeNotFoundError: If the attribute cannot be looked up
            CallError: If the call fails in the runtime
        """
        return self.get_attr(name)._invoke(args, name)

    def call(self, *args: Any) -> "Object":
        """
        Call this value itself.

        Raises:
            CallError: If unbound or the call fails in the runtime
        """
        if self._handle is None:
            raise CallError("Cannot call an unbound Object", "__call__")
        return self._invoke(args, "__call__")

    def _invoke(self, args: tuple[Any, ...], name: str) -> "Object":
        rt = self._handle.runtime
        with build_call_tuple(args, rt) as call_args:
            logger.debug("Calling %s with %d argument(s)", name, len(args))
            raw = rt.call_object(self._handle.get(), call_args.get())

        error = rt.fetch_error()
        if raw is None:
            logger.debug("Call to %s failed: %s", name, error)
            raise CallError(f"Failed to call function {name}", name, summarize(error)) from error
        return Object(raw, rt)

    def convert(self, out: Out) -> bool:
        """
        Convert the held value into a typed destination.

        Returns:
            True and out updated on success; False on mismatch or when unbound
        """
        if self._handle is None:
            return False
        return convert(self._handle.get(), out, runtime=self._handle.runtime)

    def __copy__(self) -> "Object":
        return Object(self)

    def __repr__(self) -> str:
        if self._handle is None:
            return "Object<unbound>"
        return f"Object<{self._handle.get()!r}>"

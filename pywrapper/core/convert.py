"""
Conversion Registry - Runtime values to typed native values.

This module implements the probe-style conversion family:

    convert(ref, Out(list[int])) -> bool

A conversion returns False, never raises, when the runtime value's kind does
not match the target. Targets are type hints: int, float, bool, str, bytes,
bytearray, numpy integer and floating scalars, tuple[...], list[T],
collections.deque[T] and dict[K, V], nested freely.

Key features:
- Rules registered per target origin; lookup walks the origin's MRO
- Composite rules built from element rules (recursion over the hint)
- Atomic commits: a failed conversion leaves the destination untouched
- Borrowed reads only: conversion never touches reference counts
"""

from collections import deque
from collections.abc import Callable
from typing import Any, Generic, TypeVar, get_args, get_origin

import numpy as np

from pywrapper import config
from pywrapper.core.errors import UnsupportedTypeError
from pywrapper.runtime import RuntimeAPI, current
from pywrapper.runtime.api import Ref

T = TypeVar("T")


class _NoMatch:
    """Sentinel returned by rules when the runtime value does not fit."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_MATCH"


NO_MATCH = _NoMatch()

ConvertRule = Callable[["Converter", Ref, Any, tuple[Any, ...]], Any]

_DEFAULT = object()


class ConversionRegistry:
    """
    Maps target origins to conversion rules.

    Example:
        registry = ConversionRegistry()

        @registry.register(complex)
        def convert_complex(conv, ref, origin, args):
            rt = conv.runtime
            return complex(rt.float_value(ref)) if rt.is_float(ref) else NO_MATCH
    """

    def __init__(self, parent: "ConversionRegistry | None" = None):
        """
        Initialize ConversionRegistry.

        Args:
            parent: Registry consulted for origins this one does not define
        """
        self._rules: dict[Any, ConvertRule] = {}
        self._parent = parent

    def register(self, *keys: Any) -> Callable[[ConvertRule], ConvertRule]:
        """Decorator registering a rule for one or more target origins."""

        def decorator(rule: ConvertRule) -> ConvertRule:
            for key in keys:
                self._rules[key] = rule
            return rule

        return decorator

    def _lookup(self, origin: Any) -> ConvertRule | None:
        candidates = origin.__mro__ if isinstance(origin, type) else (origin,)
        for candidate in candidates:
            if candidate in self._rules:
                return self._rules[candidate]
        if self._parent is not None:
            return self._parent._lookup(origin)
        return None

    def resolve(self, hint: Any) -> tuple[ConvertRule, Any, tuple[Any, ...]]:
        """
        Find the rule for a target hint.

        Returns:
            (rule, origin, type arguments)

        Raises:
            UnsupportedTypeError: If no rule handles the hint
        """
        if hint is tuple:
            # Element hints are required; tuple[()] names the empty tuple
            raise UnsupportedTypeError("Bare tuple target; use tuple[...] or tuple[()]")
        origin = get_origin(hint) or hint
        rule = self._lookup(origin)
        if rule is None:
            raise UnsupportedTypeError(f"Unsupported conversion target: {hint!r}")
        return rule, origin, get_args(hint)


class Converter:
    """Recursive conversion driver bound to one runtime."""

    def __init__(
        self,
        runtime: RuntimeAPI,
        registry: ConversionRegistry | None = None,
        int_as_float: bool = False,
    ):
        self.runtime = runtime
        self.registry = registry if registry is not None else default_registry
        self.int_as_float = int_as_float

    def convert(self, ref: Ref, hint: Any) -> Any:
        """Convert one value; returns NO_MATCH on mismatch."""
        rule, origin, args = self.registry.resolve(hint)
        return rule(self, ref, origin, args)


class Out(Generic[T]):
    """
    Destination slot for a conversion.

    Sequence and mapping destinations start empty and are extended on
    success; scalar and tuple destinations are replaced.

    Example:
        out = Out(list[int])
        if obj.convert(out):
            print(out.value)
    """

    __slots__ = ("hint", "value")

    def __init__(self, hint: Any, value: Any = _DEFAULT):
        self.hint = hint
        if value is _DEFAULT:
            origin = get_origin(hint) or hint
            value = origin() if origin in (list, deque, dict) else None
        self.value = value

    def commit(self, result: Any) -> None:
        """Write a fully converted result into the destination."""
        origin = get_origin(self.hint) or self.hint
        if origin in (list, deque) and self.value is not None:
            self.value.extend(result)
        elif origin is dict and self.value is not None:
            # Insert semantics: keys already present keep their value
            for key, value in result.items():
                self.value.setdefault(key, value)
        else:
            self.value = result

    def __repr__(self) -> str:
        return f"Out({self.hint!r}, {self.value!r})"


default_registry = ConversionRegistry()
register_conversion = default_registry.register


def _element_hints(origin: Any, args: tuple[Any, ...], count: int) -> tuple[Any, ...]:
    if len(args) != count:
        raise UnsupportedTypeError(
            f"{origin.__name__} target needs {count} type argument(s), got {len(args)}"
        )
    return args


# Scalar rules


@register_conversion(bool)
def _convert_bool(conv: Converter, ref: Ref, origin: Any, args: tuple) -> Any:
    rt = conv.runtime
    return rt.bool_value(ref) if rt.is_bool(ref) else NO_MATCH


@register_conversion(int)
def _convert_int(conv: Converter, ref: Ref, origin: Any, args: tuple) -> Any:
    rt = conv.runtime
    return rt.int_value(ref) if rt.is_int(ref) else NO_MATCH


@register_conversion(float)
def _convert_float(conv: Converter, ref: Ref, origin: Any, args: tuple) -> Any:
    rt = conv.runtime
    if rt.is_float(ref):
        return rt.float_value(ref)
    if conv.int_as_float and rt.is_int(ref):
        return float(rt.int_value(ref))
    return NO_MATCH


@register_conversion(str)
def _convert_text(conv: Converter, ref: Ref, origin: Any, args: tuple) -> Any:
    rt = conv.runtime
    return rt.text_value(ref) if rt.is_text(ref) else NO_MATCH


@register_conversion(bytes, bytearray)
def _convert_buffer(conv: Converter, ref: Ref, origin: Any, args: tuple) -> Any:
    rt = conv.runtime
    if not rt.is_bytes(ref):
        return NO_MATCH
    data = rt.bytes_value(ref)
    return data if origin is bytes else bytearray(data)


@register_conversion(np.integer)
def _convert_numpy_int(conv: Converter, ref: Ref, origin: Any, args: tuple) -> Any:
    if origin in (np.integer, np.signedinteger, np.unsignedinteger):
        raise UnsupportedTypeError(f"Abstract numpy integer target: {origin!r}")
    info = np.iinfo(origin)

    rt = conv.runtime
    if not rt.is_int(ref):
        return NO_MATCH
    value = rt.int_value(ref)
    # Out-of-range values do not fit the type
    if not info.min <= value <= info.max:
        return NO_MATCH
    return origin(value)


@register_conversion(np.floating)
def _convert_numpy_float(conv: Converter, ref: Ref, origin: Any, args: tuple) -> Any:
    if origin is np.floating:
        raise UnsupportedTypeError("Abstract numpy floating target")
    rt = conv.runtime
    return origin(rt.float_value(ref)) if rt.is_float(ref) else NO_MATCH


# Composite rules


@register_conversion(tuple)
def _convert_tuple(conv: Converter, ref: Ref, origin: Any, args: tuple) -> Any:
    rt = conv.runtime
    if not rt.is_tuple(ref):
        return NO_MATCH

    size = rt.tuple_size(ref)
    if len(args) == 2 and args[1] is Ellipsis:
        item_hints = (args[0],) * size
    elif size != len(args):
        return NO_MATCH
    else:
        item_hints = args

    items = []
    for index, item_hint in enumerate(item_hints):
        value = conv.convert(rt.tuple_get_item(ref, index), item_hint)
        if value is NO_MATCH:
            return NO_MATCH
        items.append(value)
    return tuple(items)


@register_conversion(list, deque)
def _convert_sequence(conv: Converter, ref: Ref, origin: Any, args: tuple) -> Any:
    (item_hint,) = _element_hints(origin, args, 1)
    rt = conv.runtime
    if not rt.is_list(ref):
        return NO_MATCH

    items = origin()
    for index in range(rt.list_size(ref)):
        value = conv.convert(rt.list_get_item(ref, index), item_hint)
        if value is NO_MATCH:
            return NO_MATCH
        items.append(value)
    return items


@register_conversion(dict)
def _convert_mapping(conv: Converter, ref: Ref, origin: Any, args: tuple) -> Any:
    key_hint, value_hint = _element_hints(origin, args, 2)
    rt = conv.runtime
    if not rt.is_dict(ref):
        return NO_MATCH

    result: dict[Any, Any] = {}
    for key_ref, value_ref in rt.dict_items(ref):
        key = conv.convert(key_ref, key_hint)
        if key is NO_MATCH:
            return NO_MATCH
        value = conv.convert(value_ref, value_hint)
        if value is NO_MATCH:
            return NO_MATCH
        result.setdefault(key, value)
    return result


def convert(
    ref: Any,
    out: Out,
    runtime: RuntimeAPI | None = None,
    registry: ConversionRegistry | None = None,
) -> bool:
    """
    Convert a runtime value into a typed destination.

    Args:
        ref: Raw Ref, or an OwnedRef / SharedRef to read through
        out: Destination slot carrying the target hint
        runtime: Runtime the reference belongs to (default: the handle's, else the installed one)
        registry: Rules to use (default: the built-in registry)

    Returns:
        True and out updated on success; False with out untouched on mismatch

    Raises:
        UnsupportedTypeError: If the target hint is not a supported shape
    """
    if not isinstance(ref, Ref):
        runtime = runtime if runtime is not None else ref.runtime
        ref = ref.get()
    if runtime is None:
        runtime = current()

    # Only settings already loaded apply; no file is read here
    settings = config.loaded()
    int_as_float = settings.int_as_float if settings is not None else config.SCHEMA["int_as_float"].default
    converter = Converter(runtime, registry, int_as_float=int_as_float)
    result = converter.convert(ref, out.hint)
    if result is NO_MATCH:
        return False
    out.commit(result)
    return True

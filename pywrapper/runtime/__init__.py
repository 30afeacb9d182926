"""
pywrapper Runtime - The process-wide embedded runtime.

This module handles:
- Installing and tearing down the embedded runtime (initialize / finalize)
- Leak checks on teardown
- Error indicator helpers (clear_error, print_error)
- Printing runtime values (print_object)
"""

import logging
import sys
import traceback
import warnings
from typing import TYPE_CHECKING, TextIO

from pywrapper import config
from pywrapper.runtime.api import Kind, Ref, RuntimeAPI
from pywrapper.runtime.heap import HeapError, HeapRuntime

if TYPE_CHECKING:
    from pywrapper.core.object import Object

logger = logging.getLogger(__name__)


class RuntimeStateError(Exception):
    """Raised when the runtime is used before initialize() or after finalize()."""

    pass


class LeakError(RuntimeStateError):
    """Raised by finalize() when references are still alive and leak_check is 'raise'."""

    pass


_current: RuntimeAPI | None = None


def initialize(runtime: RuntimeAPI | None = None) -> RuntimeAPI:
    """
    Install the process-wide runtime.

    Calling initialize() again while a runtime is installed returns the
    installed one unchanged.

    Args:
        runtime: Runtime to install (default: a new HeapRuntime)

    Returns:
        The installed runtime

    Raises:
        ConfigError: If the settings file cannot be parsed or fails validation
    """
    global _current

    if _current is not None:
        return _current

    # Load settings before any conversion runs
    config.current()
    _current = runtime if runtime is not None else HeapRuntime()
    logger.info("Runtime initialized: %r", _current)
    return _current


def finalize() -> None:
    """
    Uninstall the process-wide runtime, applying the leak_check setting.

    Raises:
        LeakError: If references are alive and leak_check is 'raise'
    """
    global _current

    if _current is None:
        return

    runtime, _current = _current, None
    live = runtime.live_count()
    policy = config.current().leak_check
    logger.info("Runtime finalized with %d live references", live)

    if live == 0 or policy == "off":
        return

    message = f"{live} runtime reference(s) still alive at finalize"
    logger.warning(message)
    if policy == "raise":
        raise LeakError(message)
    warnings.warn(message, ResourceWarning, stacklevel=2)


def is_initialized() -> bool:
    """Check whether a runtime is installed."""
    return _current is not None


def current() -> RuntimeAPI:
    """
    Return the installed runtime.

    Raises:
        RuntimeStateError: If no runtime is installed
    """
    if _current is None:
        raise RuntimeStateError("Runtime not initialized. Call initialize() first.")
    return _current


def clear_error() -> None:
    """Clear the runtime's error indicator."""
    current().clear_error()


def print_error(file: TextIO | None = None) -> bool:
    """
    Print and clear the pending runtime error.

    Args:
        file: Stream to print to (default: sys.stderr)

    Returns:
        True if an error was pending
    """
    error = current().fetch_error()
    if error is None:
        return False
    traceback.print_exception(error, file=file or sys.stderr)
    return True


def print_object(obj: "Object | Ref", file: TextIO | None = None) -> None:
    """
    Print the runtime's representation of a value.

    Args:
        obj: Object or raw reference to print
        file: Stream to print to (default: sys.stdout)
    """
    if isinstance(obj, Ref):
        text = current().describe(obj)
    elif obj.bound:
        text = obj.runtime.describe(obj.get())
    else:
        text = "<unbound>"
    print(text, file=file or sys.stdout)


__all__ = [
    "HeapError",
    "HeapRuntime",
    "Kind",
    "LeakError",
    "Ref",
    "RuntimeAPI",
    "RuntimeStateError",
    "clear_error",
    "current",
    "finalize",
    "initialize",
    "is_initialized",
    "print_error",
    "print_object",
]

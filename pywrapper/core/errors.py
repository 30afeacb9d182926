"""
Marshalling Errors.

Operational failures (a required attribute is missing, a call raised inside
the runtime, a script failed to load) are raised as WrapperError subclasses
carrying an ErrorKind and the offending name. Probing operations such as
conversion and has_attr never raise these; they return False instead.
"""

from enum import Enum


class ErrorKind(Enum):
    """Operational failure kinds."""

    ATTRIBUTE_NOT_FOUND = "attribute_not_found"
    CALL_FAILED = "call_failed"
    LOAD_FAILED = "load_failed"
    ALLOCATION_FAILED = "allocation_failed"


class WrapperError(RuntimeError):
    """
    Base exception for operational failures.

    Attributes:
        kind: What failed
        name: Attribute, function or path involved
        detail: Short summary of the runtime error, if one was reported
    """

    kind: ErrorKind

    def __init__(self, message: str, name: str, detail: str | None = None):
        super().__init__(message if detail is None else f"{message}: {detail}")
        self.name = name
        self.detail = detail


class AttributeNotFoundError(WrapperError):
    """Raised when a required attribute cannot be looked up."""

    kind = ErrorKind.ATTRIBUTE_NOT_FOUND


class CallError(WrapperError):
    """Raised when invoking a callable returns no result."""

    kind = ErrorKind.CALL_FAILED


class LoadError(WrapperError):
    """Raised when a script cannot be loaded."""

    kind = ErrorKind.LOAD_FAILED


class AllocationError(WrapperError):
    """Raised when the runtime fails to build a value. Not recoverable."""

    kind = ErrorKind.ALLOCATION_FAILED


class UnsupportedTypeError(TypeError):
    """Raised for native types or type hints outside the supported shapes."""

    pass


def summarize(error: BaseException | None) -> str | None:
    """Render a runtime error as 'ExcType: message'."""
    if error is None:
        return None
    text = str(error)
    return f"{type(error).__name__}: {text}" if text else type(error).__name__

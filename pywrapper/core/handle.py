"""
Ownership Handles - Exactly-once release of runtime references.

A raw Ref does not keep a runtime value alive. Every reference received from
the runtime is wrapped straight away in one of two handles:

1. OwnedRef: exclusive ownership, used while a value is under local
   construction (a list being filled, an argument tuple being built).
   Ownership can be released into a stealing container slot.
2. SharedRef: shared ownership, used once a value is exposed to several
   native-side holders. Copies share one control block in the manner of an
   Arc; the runtime reference is released when the last holder goes away.

Neither handle increments the runtime count on construction: wrapping a
reference claims it.
"""

import warnings

from pywrapper.runtime import RuntimeAPI, current
from pywrapper.runtime.api import Ref


class HandleError(ValueError):
    """Raised when an empty or closed handle is dereferenced."""

    pass


def _warn_release_failed(error: Exception) -> None:
    # Destructors never raise; report and carry on
    warnings.warn(f"Releasing runtime reference failed: {error}", RuntimeWarning, stacklevel=3)


class OwnedRef:
    """
    Exclusive owner of one runtime reference.

    Usage:
        with OwnedRef(runtime.new_list(2), runtime) as lst:
            runtime.list_set_item(lst.get(), 0, item.release())
            ...
            return lst.release()   # hand ownership on
        # on an exception the list is released by __exit__
    """

    __slots__ = ("_runtime", "_ref")

    def __init__(self, ref: Ref, runtime: RuntimeAPI | None = None):
        """
        Claim ownership of a new reference.

        Args:
            ref: A reference the caller owns (no increment is performed)
            runtime: Runtime the reference belongs to (default: the installed one)
        """
        self._runtime = runtime if runtime is not None else current()
        self._ref: Ref | None = ref

    @property
    def runtime(self) -> RuntimeAPI:
        return self._runtime

    @property
    def empty(self) -> bool:
        """True once the reference has been released or closed."""
        return self._ref is None

    def get(self) -> Ref:
        """
        Borrow the reference. Ownership stays with the handle.

        Raises:
            HandleError: If the handle is empty
        """
        if self._ref is None:
            raise HandleError("OwnedRef is empty")
        return self._ref

    def release(self) -> Ref:
        """
        Give up ownership and return the raw reference.

        The caller becomes responsible for releasing it, typically by
        passing it to a slot setter that steals references.
        """
        ref = self.get()
        self._ref = None
        return ref

    def share(self) -> "SharedRef":
        """Move ownership into a new SharedRef."""
        return SharedRef(self.release(), self._runtime)

    def close(self) -> None:
        """Release the reference. Safe to call more than once."""
        if self._ref is None:
            return
        ref, self._ref = self._ref, None
        self._runtime.decref(ref)

    def __enter__(self) -> "OwnedRef":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self):
        if getattr(self, "_ref", None) is None:
            return
        try:
            self.close()
        except Exception as e:
            _warn_release_failed(e)

    def __repr__(self) -> str:
        return f"OwnedRef<{self._ref!r}>" if self._ref is not None else "OwnedRef<empty>"


class _SharedInner:
    """
    Control block shared by every SharedRef copy of one runtime reference.

    Counts native-side holders; the runtime reference is released once, when
    the count reaches zero.
    """

    __slots__ = ("ref", "runtime", "count")

    def __init__(self, ref: Ref, runtime: RuntimeAPI):
        self.ref: Ref | None = ref
        self.runtime = runtime
        self.count = 1

    def incref(self) -> None:
        self.count += 1

    def decref(self) -> None:
        self.count -= 1
        if self.count == 0:
            ref, self.ref = self.ref, None
            self.runtime.decref(ref)


class SharedRef:
    """
    Shared owner of one runtime reference.

    Usage:
        a = SharedRef(runtime.new_int(1), runtime)
        b = a.clone()        # a.use_count == 2, runtime refcount unchanged
        a.close()            # b still valid
        del b                # runtime reference released here
    """

    __slots__ = ("_inner",)

    def __init__(self, ref: Ref, runtime: RuntimeAPI | None = None):
        """
        Claim ownership of a new reference.

        Args:
            ref: A reference the caller owns (no increment is performed)
            runtime: Runtime the reference belongs to (default: the installed one)
        """
        self._inner: _SharedInner | None = _SharedInner(
            ref, runtime if runtime is not None else current()
        )

    @classmethod
    def _join(cls, inner: _SharedInner) -> "SharedRef":
        handle = cls.__new__(cls)
        inner.incref()
        handle._inner = inner
        return handle

    def _live(self) -> _SharedInner:
        if self._inner is None:
            raise HandleError("SharedRef is closed")
        return self._inner

    @property
    def runtime(self) -> RuntimeAPI:
        return self._live().runtime

    @property
    def closed(self) -> bool:
        return self._inner is None

    @property
    def use_count(self) -> int:
        """Number of SharedRef holders of this reference (0 once closed)."""
        return 0 if self._inner is None else self._inner.count

    def get(self) -> Ref:
        """Borrow the reference. No increment is performed."""
        return self._live().ref

    def clone(self) -> "SharedRef":
        """Return another holder of the same reference."""
        return SharedRef._join(self._live())

    def close(self) -> None:
        """Drop this holder. Safe to call more than once."""
        if self._inner is None:
            return
        inner, self._inner = self._inner, None
        inner.decref()

    def __copy__(self) -> "SharedRef":
        return self.clone()

    def __del__(self):
        if getattr(self, "_inner", None) is None:
            return
        try:
            self.close()
        except Exception as e:
            _warn_release_failed(e)

    def __repr__(self) -> str:
        if self._inner is None:
            return "SharedRef<closed>"
        return f"SharedRef<{self._inner.ref!r}, holders={self._inner.count}>"

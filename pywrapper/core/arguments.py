"""
Call Argument Marshalling.

Builds the positional argument tuple for a runtime call in one pass over the
native arguments.
"""

from typing import Any

from pywrapper.core.allocate import allocate
from pywrapper.core.errors import AllocationError, summarize
from pywrapper.core.handle import OwnedRef, SharedRef
from pywrapper.runtime import RuntimeAPI
from pywrapper.runtime.api import Ref


def _slot_reference(arg: Any, runtime: RuntimeAPI) -> Ref:
    """Return a reference the tuple slot may steal."""
    from pywrapper.core.object import Object

    if isinstance(arg, OwnedRef):
        return arg.release()
    if isinstance(arg, Object):
        if not arg.bound:
            raise ValueError("Cannot pass an unbound Object as a call argument")
        arg = arg.handle
    if isinstance(arg, SharedRef):
        ref = arg.get()
        runtime.incref(ref)
        return ref
    return allocate(arg, runtime).release()


def build_call_tuple(args: "tuple[Any, ...] | list[Any]", runtime: RuntimeAPI) -> OwnedRef:
    """
    Build a runtime tuple from native call arguments.

    Each argument is handled by kind:
    - Ref: stolen into its slot (the caller gives up ownership, even when
      building the tuple fails)
    - OwnedRef: released into its slot
    - Object / SharedRef: shared; the slot gets its own increment
    - anything else: allocated through the Allocation Registry

    Args:
        args: Positional arguments in call order
        runtime: Runtime the call runs in

    Returns:
        OwnedRef holding the argument tuple

    Raises:
        ValueError: If an argument is an unbound Object
        UnsupportedTypeError: If an argument cannot be allocated
    """
    # Raw references were handed over by the caller; own them before any
    # allocation can fail so each is released exactly once
    pending = [OwnedRef(arg, runtime) if isinstance(arg, Ref) else arg for arg in args]
    try:
        with OwnedRef(runtime.new_tuple(len(pending)), runtime) as call_args:
            for index, arg in enumerate(pending):
                if not runtime.tuple_set_item(call_args.get(), index, _slot_reference(arg, runtime)):
                    detail = summarize(runtime.fetch_error())
                    raise AllocationError(f"Runtime failed to store argument {index}", str(index), detail)
            return OwnedRef(call_args.release(), runtime)
    finally:
        for index, arg in enumerate(args):
            if isinstance(arg, Ref):
                pending[index].close()

"""
Script Loader.

This module loads Python source files as modules for the embedded runtime.

Key features:
- importlib integration for loading by file path
- Optional module caching keyed by resolved path
- sys.modules registration while the script executes, cleaned up on failure
- Unload support for scripts edited at runtime
"""

import hashlib
import importlib.util
import logging
import re
import sys
from pathlib import Path
from types import ModuleType

logger = logging.getLogger(__name__)


class LoaderError(Exception):
    """Base exception for loader-related errors."""

    pass


# Module cache: resolved script path -> module
_module_cache: dict[str, ModuleType] = {}

_UNSAFE_CHARS = re.compile(r"[^0-9A-Za-z_]")


def module_name_for(script_path: Path, prefix: str) -> str:
    """
    Build a unique, importable module name for a script.

    Args:
        script_path: Resolved path of the script
        prefix: Module name prefix

    Returns:
        Module name of the form <prefix><stem>_<digest>
    """
    stem = _UNSAFE_CHARS.sub("_", script_path.stem)
    digest = hashlib.sha1(str(script_path).encode("utf-8")).hexdigest()[:8]
    return f"{prefix}{stem}_{digest}"


def load_script_module(
    script_path: str | Path,
    prefix: str = "pywrapper_script_",
    use_cache: bool = False,
) -> ModuleType:
    """
    Load a script file and execute it as a module.

    Args:
        script_path: Path to the Python source file
        prefix: Module name prefix for the loaded module
        use_cache: Return an already-loaded module for the same path

    Returns:
        Loaded module

    Raises:
        LoaderError: If the file is missing or executing it raises
    """
    path = Path(script_path).expanduser().resolve()
    key = str(path)

    if not path.is_file():
        raise LoaderError(f"Script not found: {path}")

    if use_cache and key in _module_cache:
        return _module_cache[key]

    module_name = module_name_for(path, prefix)
    logger.debug("Loading script %s as %s", path, module_name)

    try:
        spec = importlib.util.spec_from_file_location(module_name, path)

        if spec is None or spec.loader is None:
            raise LoaderError(f"Failed to create module spec for {path}")

        module = importlib.util.module_from_spec(spec)

        # Scripts may import each other by module name while executing
        sys.modules[module_name] = module
        spec.loader.exec_module(module)

    except Exception as e:
        sys.modules.pop(module_name, None)
        raise LoaderError(f"Failed to load script {path}: {e}") from e

    if use_cache:
        _module_cache[key] = module

    return module


def unload_script_module(script_path: str | Path, prefix: str = "pywrapper_script_") -> None:
    """
    Forget a loaded script so the next load executes it again.

    Args:
        script_path: Path the script was loaded from
        prefix: Module name prefix it was loaded with
    """
    path = Path(script_path).expanduser().resolve()
    _module_cache.pop(str(path), None)
    sys.modules.pop(module_name_for(path, prefix), None)


def is_script_cached(script_path: str | Path) -> bool:
    """Check whether a script module is cached."""
    return str(Path(script_path).expanduser().resolve()) in _module_cache


def clear_cache() -> None:
    """Clear all cached script modules."""
    for key, module in list(_module_cache.items()):
        sys.modules.pop(module.__name__, None)
        del _module_cache[key]

"""Shared fixtures for pywrapper unit tests."""

import gc
import textwrap

import pytest

import pywrapper.runtime as embedded
from pywrapper import config
from pywrapper.runtime import HeapRuntime

SAMPLE_SCRIPT = '''
VERSION = "1.0"

counter = 0


def add(a, b):
    return a + b


def echo(*args):
    return args


def length(value):
    return len(value)


def type_name(value):
    return type(value).__name__


def fail(message):
    raise ValueError(message)


def make_list():
    return [1, 2, 3]


def make_mapping():
    return {"a": 1}


def pair():
    return (1, "a")


def triple():
    return (1, 2, 3)


def nested():
    return [{"x": (1, "one")}, {"y": (2, "two")}]


def nothing():
    return None


def bump():
    global counter
    counter += 1
    return counter


def __getattr__(name):
    if name == "explodes":
        raise RuntimeError("boom")
    raise AttributeError(name)
'''


@pytest.fixture
def runtime():
    """A fresh HeapRuntime installed as the process-wide runtime."""
    config.reset()
    if embedded.is_initialized():
        config.configure(leak_check="off")
        embedded.finalize()
        config.reset()
    rt = embedded.initialize(HeapRuntime())
    yield rt
    gc.collect()
    config.configure(leak_check="off")
    embedded.finalize()
    config.reset()


@pytest.fixture
def write_script(tmp_path):
    """Write a script into tmp_path and return its path."""

    def _write(source: str, name: str = "script.py"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_script(write_script):
    """Path to a script exposing a handful of functions and values."""
    return write_script(SAMPLE_SCRIPT, "sample.py")

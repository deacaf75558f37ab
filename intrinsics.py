"""The host functions shipped with the interpreter."""

import math
import os
import sys

from errors import JingIOError, JingRuntimeError, JingTypeError
from registry import default_registry
from values import is_number, to_display, type_name


def _number(value, func: str):
    if not is_number(value):
        raise JingTypeError(f"{func}() expects a number, got {type_name(value)}")
    return float(value)


def _string(value, func: str):
    if not isinstance(value, str):
        raise JingTypeError(f"{func}() expects a string, got {type_name(value)}")
    return value


def _read_line():
    line = sys.stdin.readline()
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def install_intrinsics(registry=None):
    registry = registry if registry is not None else default_registry

    # ---- core ----
    @registry.register("print", 1, help="print(value) - Print a value to standard output")
    def _print(args):
        print(to_display(args[0]))
        return None

    @registry.register("type", 1, help="type(value) - Return the type name of a value")
    def _type(args):
        return type_name(args[0])

    @registry.register("str", 1, help="str(value) - Return the string form of a value")
    def _str(args):
        return to_display(args[0])

    # ---- math ----
    @registry.register("sqrt", 1, help="sqrt(number) - Return the square root of a number")
    def _sqrt(args):
        n = _number(args[0], "sqrt")
        if n < 0:
            raise JingRuntimeError("Cannot take square root of negative number")
        return math.sqrt(n)

    @registry.register("abs", 1, help="abs(number) - Return the absolute value of a number")
    def _abs(args):
        return abs(_number(args[0], "abs"))

    @registry.register("max", 2, help="max(a, b) - Return the maximum of two numbers")
    def _max(args):
        return max(_number(args[0], "max"), _number(args[1], "max"))

    @registry.register("min", 2, help="min(a, b) - Return the minimum of two numbers")
    def _min(args):
        return min(_number(args[0], "min"), _number(args[1], "min"))

    # ---- strings ----
    @registry.register("len", 1, help="len(string) - Return the length of a string")
    def _len(args):
        return float(len(_string(args[0], "len")))

    @registry.register("upper", 1, help="upper(string) - Convert string to uppercase")
    def _upper(args):
        return _string(args[0], "upper").upper()

    @registry.register("lower", 1, help="lower(string) - Convert string to lowercase")
    def _lower(args):
        return _string(args[0], "lower").lower()

    @registry.register("reverse", 1, help="reverse(string) - Reverse the characters in a string")
    def _reverse(args):
        return _string(args[0], "reverse")[::-1]

    # ---- I/O ----
    @registry.register("readline", 0, help="readline() - Read a line from standard input")
    def _readline(args):
        return _read_line()

    @registry.register("input", 1, help="input(prompt) - Display prompt and read a line from standard input")
    def _input(args):
        prompt = _string(args[0], "input")
        sys.stdout.write(prompt)
        sys.stdout.flush()
        return _read_line()

    @registry.register("read_file", 1, help="read_file(path) - Read entire file contents as string")
    def _read_file(args):
        path = _string(args[0], "read_file")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            raise JingIOError(f"Failed to read file '{path}': {e.strerror or e}") from e

    @registry.register("write_file", 2, help="write_file(path, content) - Write content to a file")
    def _write_file(args):
        path = _string(args[0], "write_file")
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(to_display(args[1]))
        except OSError as e:
            raise JingIOError(f"Failed to write to file '{path}': {e.strerror or e}") from e
        return None

    @registry.register("file_exists", 1, help="file_exists(path) - Check whether a file exists")
    def _file_exists(args):
        return os.path.exists(_string(args[0], "file_exists"))

    return registry


def default_intrinsics():
    """The process-wide registry, filled on first use."""
    if len(default_registry) == 0:
        install_intrinsics(default_registry)
    return default_registry

"""Runtime values of the language and the scoped variable environment.

Values map onto plain Python objects where one exists:

    nil     -> None
    bool    -> bool
    number  -> float (int is accepted from host code)
    string  -> str

Functions are the two small immutable records below.
"""

import math
import sys
from dataclasses import dataclass, field
from typing import Callable

from errors import JingRuntimeError, JingTypeError

EPSILON = sys.float_info.epsilon


@dataclass(frozen=True)
class UserFunction:
    name: str
    arity: int
    entry: int  # instruction index of the first body instruction

    def __str__(self) -> str:
        return f"<fn {self.name}({self.arity} args)>"


@dataclass(frozen=True)
class HostFunction:
    name: str
    arity: int
    func: Callable = field(compare=False, repr=False)
    help: str = field(default="", compare=False)

    def invoke(self, args):
        if len(args) != self.arity:
            raise JingRuntimeError(f"Function '{self.name}' expects {self.arity} arguments, got {len(args)}")
        return self.func(args)

    def __str__(self) -> str:
        return f"<intrinsic {self.name}>"


def is_number(value) -> bool:
    # bool is an int subclass in Python; it is not a number here
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def type_name(value) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "bool"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, UserFunction):
        return "function"
    if isinstance(value, HostFunction):
        return "intrinsic"
    return type(value).__name__


def is_truthy(value) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return True


def format_number(n) -> str:
    n = float(n)
    if math.isfinite(n) and n.is_integer():
        return f"{n:.0f}"
    return repr(n)


def to_display(value) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    return str(value)


def values_equal(a, b) -> bool:
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if is_number(a) and is_number(b):
        return abs(a - b) < EPSILON
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if type(a) is not type(b):
        return False
    return a == b


# -------- operators --------

def add(a, b):
    if is_number(a) and is_number(b):
        return float(a + b)
    if isinstance(a, str) and isinstance(b, str):
        return a + b
    if isinstance(a, str):
        return a + to_display(b)
    if isinstance(b, str):
        return to_display(a) + b
    raise JingTypeError(f"Cannot add {type_name(a)} and {type_name(b)}")


def _numbers(a, b, verb: str):
    if not (is_number(a) and is_number(b)):
        raise JingTypeError(f"Cannot {verb} {type_name(a)} and {type_name(b)}")
    return float(a), float(b)


def subtract(a, b):
    x, y = _numbers(a, b, "subtract")
    return x - y


def multiply(a, b):
    x, y = _numbers(a, b, "multiply")
    return x * y


def divide(a, b):
    x, y = _numbers(a, b, "divide")
    if y == 0.0:
        raise JingRuntimeError("Division by zero")
    return x / y


def modulo(a, b):
    x, y = _numbers(a, b, "modulo")
    if y == 0.0:
        raise JingRuntimeError("Modulo by zero")
    return math.fmod(x, y)


def negate(a):
    if not is_number(a):
        raise JingTypeError(f"Cannot negate {type_name(a)}")
    return -float(a)


def compare(op: str, a, b) -> bool:
    if not ((is_number(a) and is_number(b)) or (isinstance(a, str) and isinstance(b, str))):
        raise JingTypeError(f"Cannot compare {type_name(a)} and {type_name(b)}")
    if op == "<":
        return a < b
    if op == "<=":
        return a <= b
    if op == ">":
        return a > b
    if op == ">=":
        return a >= b
    raise JingRuntimeError(f"Unknown comparison operator: {op}")


class Environment:
    """A stack of name -> value frames; frame 0 is the global frame."""

    def __init__(self, globals_frame=None):
        self.scopes = [globals_frame if globals_frame is not None else {}]

    @property
    def globals(self):
        return self.scopes[0]

    @property
    def depth(self) -> int:
        return len(self.scopes)

    def push_scope(self, bindings=None):
        self.scopes.append(dict(bindings) if bindings else {})

    def pop_scope(self):
        if len(self.scopes) <= 1:
            raise JingRuntimeError("Cannot leave the global scope")
        self.scopes.pop()

    def child(self, bindings=None) -> "Environment":
        # Shares the global frame, nothing else.
        env = Environment(self.globals)
        env.push_scope(bindings)
        return env

    def define(self, name: str, value):
        self.scopes[-1][name] = value

    def lookup(self, name: str):
        for scope in reversed(self.scopes):
            if name in scope:
                return True, scope[name]
        return False, None

    def get(self, name: str):
        found, value = self.lookup(name)
        if not found:
            raise JingRuntimeError(f"Undefined variable '{name}'")
        return value

    def assign(self, name: str, value):
        for scope in reversed(self.scopes):
            if name in scope:
                scope[name] = value
                return
        raise JingRuntimeError(f"Undefined variable '{name}'")

    def __contains__(self, name: str) -> bool:
        return self.lookup(name)[0]

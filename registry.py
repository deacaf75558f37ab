"""Name-indexed table of host-provided functions.

The registry is filled once at startup (see ``intrinsics.install_intrinsics``)
and only read afterwards: the compiler consults it for arity checks and the
VM resolves unknown names through it.
"""

from errors import JingError
from values import HostFunction


class IntrinsicRegistry:
    def __init__(self):
        self._functions = {}

    def add(self, function: HostFunction) -> HostFunction:
        if not isinstance(function, HostFunction):
            raise JingError(f"Not a host function: {function!r}")
        if function.arity < 0:
            raise JingError(f"Invalid arity for '{function.name}': {function.arity}")
        self._functions[function.name] = function
        return function

    def register(self, name: str, arity: int, help: str = ""):
        """Decorator form of add(): the decorated callable takes the argument list."""

        def decorator(func):
            self.add(HostFunction(name, arity, func, help))
            return func

        return decorator

    def get(self, name: str) -> HostFunction | None:
        return self._functions.get(name)

    def names(self):
        return sorted(self._functions)

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def __iter__(self):
        for name in self.names():
            yield self._functions[name]

    def __len__(self):
        return len(self._functions)


# process-wide registry shared by every compiler and VM that is not given one
default_registry = IntrinsicRegistry()

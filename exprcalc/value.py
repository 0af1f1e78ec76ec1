from dataclasses import dataclass
from typing import Any, Callable

MAX_ARITY = 7

# Functions take 0..7 floats; closures get their context as an extra first argument.
Func = Callable[..., float]
ClosureFunc = Callable[..., float]
Context = Any


@dataclass
class Var:
    """Caller-owned cell a compiled expression reads on every evaluation."""

    value: float = 0.0

    def set(self, value: float) -> None:
        self.value = value

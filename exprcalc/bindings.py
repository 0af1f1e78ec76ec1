import enum
import inspect
from dataclasses import dataclass
from typing import Iterable

from exprcalc.utils import PrintableEnum, is_valid_name
from exprcalc.value import MAX_ARITY, ClosureFunc, Context, Func, Var


class BindingKind(PrintableEnum):
    VARIABLE = enum.auto()
    FUNCTION = enum.auto()
    CLOSURE = enum.auto()


@dataclass(frozen=True)
class Binding:
    name: str
    address: Var | Func | ClosureFunc
    kind: BindingKind = BindingKind.VARIABLE
    arity: int = 0
    pure: bool = False
    context: Context = None

    def __post_init__(self) -> None:
        if not is_valid_name(self.name):
            raise ValueError(f"Invalid binding name: {self.name!r}")
        if self.kind is BindingKind.VARIABLE:
            if not isinstance(self.address, Var):
                raise ValueError(f"Variable {self.name!r} must be bound to a Var, got {type(self.address).__name__}")
            return
        if not callable(self.address):
            raise ValueError(f"{self.kind} {self.name!r} must be bound to a callable")
        if not 0 <= self.arity <= MAX_ARITY:
            raise ValueError(f"{self.kind} {self.name!r} has arity {self.arity}, expected 0..{MAX_ARITY}")
        if self.kind is BindingKind.CLOSURE and self.pure:
            raise ValueError(f"Closure {self.name!r} can not be marked pure")

    @classmethod
    def variable(cls, name: str, var: Var) -> "Binding":
        return cls(name=name, address=var)

    @classmethod
    def function(cls, name: str, fn: Func, arity: int | None = None, pure: bool = False) -> "Binding":
        if arity is None:
            arity = positional_arity(fn)
        return cls(name=name, address=fn, kind=BindingKind.FUNCTION, arity=arity, pure=pure)

    @classmethod
    def closure(cls, name: str, fn: ClosureFunc, context: Context, arity: int | None = None) -> "Binding":
        if arity is None:
            # context is passed as the first argument and is not an operand
            arity = positional_arity(fn) - 1
        return cls(name=name, address=fn, kind=BindingKind.CLOSURE, arity=arity, context=context)


def positional_arity(fn: Func) -> int:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        raise ValueError(f"Can not infer arity of {fn!r}, pass it explicitly")
    kinds = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    params = signature.parameters.values()
    if any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params):
        raise ValueError(f"Can not infer arity of variadic {fn!r}, pass it explicitly")
    return sum(1 for p in params if p.kind in kinds and p.default is inspect.Parameter.empty)


class BindingTable:
    """Caller bindings, looked up by linear scan before the builtins."""

    def __init__(self, bindings: Iterable[Binding] = ()) -> None:
        self.entries: tuple[Binding, ...] = tuple(bindings)
        seen: set[str] = set()
        for entry in self.entries:
            if not isinstance(entry, Binding):
                raise ValueError(f"Expected Binding, got {type(entry).__name__}")
            if entry.name in seen:
                raise ValueError(f"Duplicate binding name: {entry.name!r}")
            seen.add(entry.name)

    def find(self, name: str) -> Binding | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def __len__(self) -> int:
        return len(self.entries)

import bisect
import functools
import math
import sys
from dataclasses import dataclass
from typing import Callable

import numpy as np

from exprcalc.value import Func

# Operand ranges beyond this saturate instead of being truncated to an integer
UINT_MAX = 2**32 - 1
# Largest n with n! representable as a double
MAX_FACTORIAL_ARG = 170


@dataclass(frozen=True)
class Builtin:
    name: str
    fn: Func
    arity: int
    pure: bool = True


BUILTIN_FUNCS: dict[str, Builtin] = dict()


def register_builtin_func(name: str, arity: int) -> Callable[[Func], Func]:
    def decorator(fn: Func) -> Func:
        if name in BUILTIN_FUNCS:
            raise ValueError(f"Built-in {name!r} is already registered")
        BUILTIN_FUNCS[name] = Builtin(name=name, fn=fn, arity=arity)
        return fn

    return decorator


@register_builtin_func("e", 0)
def e_() -> float:
    return math.e


@register_builtin_func("pi", 0)
def pi_() -> float:
    return math.pi


@register_builtin_func("fac", 1)
def fac(a: float) -> float:
    if math.isnan(a) or a < 0:
        return math.nan
    if a > MAX_FACTORIAL_ARG + 1:
        return math.inf
    n = int(a)
    if n > MAX_FACTORIAL_ARG:
        return math.inf
    return float(math.factorial(n))


@register_builtin_func("ncr", 2)
def ncr(n: float, r: float) -> float:
    if math.isnan(n) or math.isnan(r) or n < 0 or r < 0 or n < r:
        return math.nan
    if n > UINT_MAX or r > UINT_MAX:
        return math.inf
    un, ur = int(n), int(r)
    if ur > un // 2:
        ur = un - ur
    result = 1
    for i in range(1, ur + 1):
        result = result * (un - ur + i) // i
        if result > sys.float_info.max:
            return math.inf
    try:
        return float(result)
    except OverflowError:
        return math.inf


@register_builtin_func("npr", 2)
def npr(n: float, r: float) -> float:
    return ncr(n, r) * fac(r)


for _name, _ufunc in [
    ("abs", np.fabs),
    ("acos", np.arccos),
    ("asin", np.arcsin),
    ("atan", np.arctan),
    ("ceil", np.ceil),
    ("cos", np.cos),
    ("cosh", np.cosh),
    ("exp", np.exp),
    ("floor", np.floor),
    ("ln", np.log),
    ("log10", np.log10),
    ("sin", np.sin),
    ("sinh", np.sinh),
    ("sqrt", np.sqrt),
    ("tan", np.tan),
    ("tanh", np.tanh),
]:
    register_builtin_func(_name, 1)(_ufunc)

for _name, _ufunc in [
    ("atan2", np.arctan2),
    ("pow", np.power),
]:
    register_builtin_func(_name, 2)(_ufunc)


@functools.lru_cache(maxsize=None)
def builtin_table(natural_log: bool = False) -> tuple[Builtin, ...]:
    """Returns builtins sorted by name; `log` is log10 unless natural_log is set."""
    log_fn = np.log if natural_log else np.log10
    entries = list(BUILTIN_FUNCS.values()) + [Builtin(name="log", fn=log_fn, arity=1)]
    table = tuple(sorted(entries, key=lambda b: b.name))
    names = [b.name for b in table]
    if any(a >= b for a, b in zip(names, names[1:])):
        raise ValueError(f"Built-in names must be unique: {names}")
    return table


@functools.lru_cache(maxsize=None)
def _builtin_names(natural_log: bool) -> tuple[str, ...]:
    return tuple(b.name for b in builtin_table(natural_log))


def find_builtin(name: str, natural_log: bool = False) -> Builtin | None:
    names = _builtin_names(natural_log)
    i = bisect.bisect_left(names, name)
    if i < len(names) and names[i] == name:
        return builtin_table(natural_log)[i]
    return None

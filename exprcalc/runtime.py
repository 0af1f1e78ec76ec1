import logging
import math
import sys
from typing import Iterable, TextIO

import numpy as np

from exprcalc.bindings import Binding, BindingTable
from exprcalc.config import DEFAULT_CONFIG, CompileConfig
from exprcalc.optimizer import optimize
from exprcalc.parser import Closure, Constant, Expression, Function, ParserError, Variable, parse
from exprcalc.pool import PoolExhaustedError, make_allocator

logger = logging.getLogger(__name__)

Bindings = BindingTable | Iterable[Binding]


def compile(
    expression: str,
    bindings: Bindings = (),
    config: CompileConfig | None = None,
) -> tuple[Expression | None, int]:
    """Parses and optimizes `expression`.

    Returns ``(tree, 0)`` on success and ``(None, offset)`` on failure, where
    offset is the 1-based position of the character at which the problem was
    detected (1 for allocation failures).
    """
    config = config if config is not None else DEFAULT_CONFIG
    table = bindings if isinstance(bindings, BindingTable) else BindingTable(bindings)
    allocator = make_allocator(config.max_nodes)
    try:
        tree = parse(expression, bindings=table, config=config, allocator=allocator)
        tree = optimize(tree)
    except ParserError as e:
        logger.debug("Failed to compile %r at %d: %s", expression, e.offset, e.errmsg)
        return None, e.offset
    except PoolExhaustedError as e:
        logger.debug("Failed to compile %r: %s", expression, e)
        return None, 1
    return tree, 0


def evaluate(expression: Expression | None) -> float:
    """Evaluates a compiled tree, reading bound variables as they are now."""
    with np.errstate(all="ignore"):
        return evaluate_expression(expression)


def evaluate_expression(expression: Expression | None) -> float:
    # post-order walk with an explicit stack, so long operator chains
    # do not hit the interpreter's recursion limit
    values: list[float] = []
    stack: list[tuple[Expression | None, bool]] = [(expression, False)]
    while stack:
        node, ready = stack.pop()
        if isinstance(node, Constant):
            values.append(node.value)
        elif isinstance(node, Variable):
            values.append(node.ref.value)
        elif isinstance(node, (Function, Closure)):
            if len(node.args) != node.arity:
                values.append(math.nan)
            elif not ready:
                stack.append((node, True))
                stack.extend((arg, False) for arg in reversed(node.args))
            else:
                start = len(values) - node.arity
                args = values[start:]
                del values[start:]
                if isinstance(node, Closure):
                    result = node.fn(node.context, *args)
                else:
                    result = node.fn(*args)
                # numpy scalars never reach user functions
                values.append(float(result))
        else:
            values.append(math.nan)
    return float(values[0])


def interp(expression: str, config: CompileConfig | None = None) -> tuple[float, int]:
    """Compiles, evaluates and frees `expression`; NaN and the error offset on failure."""
    tree, error = compile(expression, config=config)
    if tree is None:
        return math.nan, error
    try:
        return evaluate(tree), 0
    finally:
        free(tree)


def free(expression: Expression | None) -> None:
    """Releases a tree: children are detached and nodes go back to their allocator."""
    stack = [expression]
    while stack:
        node = stack.pop()
        if node is None:
            continue
        if isinstance(node, (Function, Closure)):
            stack.extend(node.args)
            node.args.clear()
        allocator = getattr(node, "allocator", None)
        if allocator is not None:
            allocator.release(node)


def format_tree(expression: Expression | None) -> str:
    lines: list[str] = []
    stack: list[tuple[Expression | None, int]] = [(expression, 0)]
    while stack:
        node, depth = stack.pop()
        lines.append(" " * depth + _format_node(node))
        if isinstance(node, (Function, Closure)):
            stack.extend((arg, depth + 1) for arg in reversed(node.args))
    return "\n".join(lines)


def debug_print(expression: Expression | None, file: TextIO | None = None) -> None:
    print(format_tree(expression), file=file if file is not None else sys.stdout)


def _node_id(expression: Expression) -> str:
    if expression.handle is not None:
        return f"#{expression.handle}"
    return hex(id(expression))


def _format_node(expression: Expression | None) -> str:
    if isinstance(expression, Constant):
        return f"{expression.value:f}"
    elif isinstance(expression, Variable):
        return f"bound {expression.name} {hex(id(expression.ref))}"
    elif isinstance(expression, (Function, Closure)):
        kind = "c" if isinstance(expression, Closure) else "f"
        children = " ".join(_node_id(arg) for arg in expression.args)
        return f"{kind}{expression.arity} {expression.name} {children}".rstrip()
    else:
        return f"<invalid {expression!r}>"

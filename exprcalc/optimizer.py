import logging

import numpy as np

from exprcalc.parser import Closure, Constant, Expression, Function

logger = logging.getLogger(__name__)


def optimize(expression: Expression) -> Expression:
    """Folds pure functions over constants into Constant nodes, bottom-up.

    Returns the optimized root, which is a new Constant node when the whole
    expression folds. Variables and closures are never folded, so folding
    never reads a bound value. A pure function that raises while folding is
    left in the tree and called again on evaluation.
    """
    with np.errstate(all="ignore"):
        result, folded = _optimize(expression)
    if folded:
        logger.debug("Folded %d nodes into constants", folded)
    return result


def _optimize(expression: Expression) -> tuple[Expression, int]:
    # pre-order walk; in reverse every child comes before its parent
    order: list[tuple[Expression, Function | Closure | None, int]] = []
    stack: list[tuple[Expression, Function | Closure | None, int]] = [(expression, None, 0)]
    while stack:
        node, parent, index = stack.pop()
        order.append((node, parent, index))
        if isinstance(node, (Function, Closure)):
            stack.extend((arg, node, i) for i, arg in enumerate(node.args))

    result = expression
    folded = 0
    for node, parent, index in reversed(order):
        constant = _fold(node)
        if constant is None:
            continue
        folded += 1
        if parent is None:
            result = constant
        else:
            parent.args[index] = constant
    return result, folded


def _fold(expression: Expression) -> Constant | None:
    if not isinstance(expression, Function) or not expression.pure:
        return None
    if not all(isinstance(arg, Constant) for arg in expression.args):
        return None

    try:
        value = float(expression.fn(*(arg.value for arg in expression.args)))  # type: ignore
    except Exception as e:
        logger.debug("Not folding %s: %r", expression.name, e)
        return None

    allocator = expression.allocator
    for arg in expression.args:
        if allocator is not None:
            allocator.release(arg)
    expression.args.clear()
    if allocator is None:
        return Constant(value)
    allocator.release(expression)
    return allocator.allocate(Constant(value))

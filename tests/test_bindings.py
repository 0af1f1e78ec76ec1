import pytest

from exprcalc.bindings import Binding, BindingKind, BindingTable
from exprcalc.parser import Closure, Constant, Function, Variable
from exprcalc.runtime import compile, evaluate
from exprcalc.value import Var


def test_variable_rebinding_without_recompiling() -> None:
    x = Var()
    tree, error = compile("x+1", [Binding.variable("x", x)])
    assert error == 0
    x.value = 3
    assert evaluate(tree) == 4.0
    x.value = 10
    assert evaluate(tree) == 11.0


def test_two_variables() -> None:
    x, y = Var(), Var()
    tree, error = compile("sqrt(x^2+y^2)", [Binding.variable("x", x), Binding.variable("y", y)])
    assert error == 0
    x.set(3)
    y.set(4)
    assert evaluate(tree) == 5.0
    y.set(0)
    assert evaluate(tree) == 3.0


def test_user_binding_shadows_builtin() -> None:
    pi = Var(3.0)
    tree, _ = compile("pi*2", [Binding.variable("pi", pi)])
    assert evaluate(tree) == 6.0


@pytest.mark.parametrize(
    "arity, code, expected",
    [
        pytest.param(0, "f0", 6.0),
        pytest.param(0, "f0()", 6.0),
        pytest.param(1, "f1 3", 3.0),
        pytest.param(2, "f2(1,2)", 3.0),
        pytest.param(3, "f3(1,2,3)", 6.0),
        pytest.param(4, "f4(1,2,3,4)", 10.0),
        pytest.param(5, "f5(1,2,3,4,5)", 15.0),
        pytest.param(6, "f6(1,2,3,4,5,6)", 21.0),
        pytest.param(7, "f7(1,2,3,4,5,6,7)", 28.0),
    ],
)
def test_functions_of_every_arity(arity: int, code: str, expected: float) -> None:
    def total(*args: float) -> float:
        return sum(args) if args else 6.0

    binding = Binding.function(f"f{arity}", total, arity=arity)
    tree, error = compile(code, [binding])
    assert error == 0
    assert evaluate(tree) == expected


@pytest.mark.parametrize("arity", range(8))
def test_closures_of_every_arity_receive_context(arity: int) -> None:
    seen = []

    def closure(context: list, *args: float) -> float:
        seen.append(context)
        return float(len(args))

    context: list = ["ctx"]
    name = f"c{arity}"
    args = ",".join(str(i) for i in range(arity))
    code = f"{name}({args})" if arity != 1 else f"{name} 0"
    tree, error = compile(code, [Binding.closure(name, closure, context, arity=arity)])
    assert error == 0
    assert evaluate(tree) == float(arity)
    assert seen == [context]
    assert seen[0] is context


def test_pure_user_function_is_folded() -> None:
    calls = []

    def double(a: float) -> float:
        calls.append(a)
        return 2 * a

    tree, _ = compile("double(4)", [Binding.function("double", double, pure=True)])
    assert tree == Constant(8.0)
    assert evaluate(tree) == 8.0
    assert calls == [4.0]


def test_impure_user_function_is_called_on_every_evaluation() -> None:
    counter = Var(0.0)

    def tick() -> float:
        counter.value += 1
        return counter.value

    tree, _ = compile("tick + 1", [Binding.function("tick", tick)])
    assert isinstance(tree, Function)
    assert evaluate(tree) == 2.0
    assert evaluate(tree) == 3.0


def test_user_functions_receive_python_floats() -> None:
    x = Var(0.0)
    seen = []

    def inv(a: float) -> float:
        seen.append(type(a))
        return 1 / a

    bindings = [Binding.variable("x", x), Binding.function("inv", inv)]
    via_operator, _ = compile("inv(x - x)", bindings)
    via_variable, _ = compile("inv(x)", bindings)
    with pytest.raises(ZeroDivisionError):
        evaluate(via_operator)
    with pytest.raises(ZeroDivisionError):
        evaluate(via_variable)

    def record(ctx: object, a: float) -> float:
        seen.append(type(a))
        return a

    closure, _ = compile("c(sqrt(4) * x)", [Binding.variable("x", x), Binding.closure("c", record, context=None)])
    assert evaluate(closure) == 0.0
    assert seen == [float, float, float]


def test_pure_function_raising_while_folding_is_left_in_tree() -> None:
    calls = []

    def inv(a: float) -> float:
        calls.append(a)
        return 1 / a

    tree, error = compile("inv 0", [Binding.function("inv", inv, pure=True)])
    assert error == 0
    assert isinstance(tree, Function) and tree.name == "inv"
    assert tree.args == [Constant(0.0)]
    with pytest.raises(ZeroDivisionError):
        evaluate(tree)
    assert calls == [0.0, 0.0]

    tree, _ = compile("inv 0 + inv 2", [Binding.function("inv", inv, pure=True)])
    assert isinstance(tree, Function)
    assert tree.args[1] == Constant(0.5)


def test_closures_are_never_folded() -> None:
    tree, _ = compile("c(1+2)", [Binding.closure("c", lambda ctx, a: a * ctx, context=10.0)])
    assert isinstance(tree, Closure)
    assert tree.args == [Constant(3.0)]
    assert evaluate(tree) == 30.0


def test_variables_stop_folding() -> None:
    x = Var(2.0)
    tree, _ = compile("x * (2 + 3)", [Binding.variable("x", x)])
    assert isinstance(tree, Function)
    assert isinstance(tree.args[0], Variable)
    assert tree.args[1] == Constant(5.0)
    assert evaluate(tree) == 10.0


def test_binding_table_accepts_prebuilt_table() -> None:
    x = Var(1.0)
    table = BindingTable([Binding.variable("x", x)])
    assert len(table) == 1
    assert table.find("x").address is x  # type: ignore
    assert table.find("y") is None
    tree, _ = compile("x", table)
    assert evaluate(tree) == 1.0


@pytest.mark.parametrize(
    "make_binding",
    [
        pytest.param(lambda: Binding.variable("", Var()), id="empty name"),
        pytest.param(lambda: Binding.variable("X", Var()), id="uppercase"),
        pytest.param(lambda: Binding.variable("1x", Var()), id="leading digit"),
        pytest.param(lambda: Binding.variable("a-b", Var()), id="dash"),
        pytest.param(lambda: Binding("x", 1.0), id="plain float"),  # type: ignore
        pytest.param(lambda: Binding.function("f", 1.0, arity=1), id="not callable"),  # type: ignore
        pytest.param(lambda: Binding.function("f", lambda *a: 0.0, arity=8), id="arity too large"),
        pytest.param(lambda: Binding.function("f", lambda *a: 0.0), id="variadic"),
        pytest.param(lambda: Binding.closure("f", lambda: 0.0, context=None), id="closure without context"),
        pytest.param(
            lambda: Binding("f", lambda c: 0.0, kind=BindingKind.CLOSURE, pure=True), id="pure closure"
        ),
    ],
)
def test_invalid_bindings(make_binding) -> None:
    with pytest.raises(ValueError):
        make_binding()


def test_duplicate_binding_names() -> None:
    with pytest.raises(ValueError):
        BindingTable([Binding.variable("x", Var()), Binding.variable("x", Var())])


def test_arity_inference_ignores_defaults() -> None:
    binding = Binding.function("f", lambda a, b=2.0: a * b)
    assert binding.arity == 1
    assert binding.kind is BindingKind.FUNCTION
    assert not binding.pure


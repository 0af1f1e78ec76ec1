from dataclasses import dataclass, field
from typing import Any

from exprcalc.bindings import BindingTable
from exprcalc.config import DEFAULT_CONFIG, CompileConfig
from exprcalc.pool import HeapAllocator, NodeAllocator
from exprcalc.tokenizer import OPERATOR_FUNCS, Lexer, Op, Token, TokenType
from exprcalc.utils import is_identifier_start
from exprcalc.value import Context, Func, Var


@dataclass
class ParserError(Exception):
    errmsg: str
    code: str
    error_char_idx: int

    @property
    def offset(self) -> int:
        """1-based position reported by `compile`, never 0."""
        return self.error_char_idx + 1

    def __str__(self) -> str:
        print_start_idx = max(0, self.error_char_idx - 10)
        print_ellipsis_pre = print_start_idx > 0
        print_end_idx = min(len(self.code), self.error_char_idx + 10)
        print_ellipsis_post = print_end_idx < len(self.code)
        return "\n".join(
            [
                f"[Parser error] {self.errmsg}",
                (
                    ("..." if print_ellipsis_pre else "")
                    + f"{self.code[print_start_idx:print_end_idx]}"
                    + ("..." if print_ellipsis_post else "")
                ),
                " " * (self.error_char_idx - print_start_idx + (3 if print_ellipsis_pre else 0)) + "^",
            ]
        )


@dataclass
class Constant:
    value: float
    handle: int | None = field(default=None, repr=False, compare=False)
    allocator: NodeAllocator | None = field(default=None, repr=False, compare=False)


@dataclass
class Variable:
    ref: Var
    name: str = ""
    handle: int | None = field(default=None, repr=False, compare=False)
    allocator: NodeAllocator | None = field(default=None, repr=False, compare=False)


@dataclass
class Function:
    op: Op
    fn: Func
    arity: int
    args: list["Expression"]
    pure: bool = False
    name: str = ""
    handle: int | None = field(default=None, repr=False, compare=False)
    allocator: NodeAllocator | None = field(default=None, repr=False, compare=False)


@dataclass
class Closure:
    fn: Func
    context: Context
    arity: int
    args: list["Expression"]
    name: str = ""
    handle: int | None = field(default=None, repr=False, compare=False)
    allocator: NodeAllocator | None = field(default=None, repr=False, compare=False)

    @property
    def pure(self) -> bool:
        return False


Expression = Constant | Variable | Function | Closure
Callee = Function | Closure


def parse(
    code: str,
    bindings: BindingTable | None = None,
    config: CompileConfig | None = None,
    allocator: NodeAllocator | None = None,
) -> Expression:
    """Parses a whole expression without optimizing it; raises ParserError."""
    parser = _Parser(
        code,
        bindings if bindings is not None else BindingTable(),
        config if config is not None else DEFAULT_CONFIG,
        allocator if allocator is not None else HeapAllocator(),
    )
    return parser.parse()


class _Parser:
    def __init__(self, code: str, bindings: BindingTable, config: CompileConfig, allocator: NodeAllocator) -> None:
        self.code = code
        self.config = config
        self.allocator = allocator
        self.lexer = Lexer(code, bindings, natural_log=config.natural_log)
        self.token: Token = self.lexer.next_token()
        self.depth = 0

    def parse(self) -> Expression:
        try:
            result = self.consume_list()
        except RecursionError:
            self.error("Expression nested too deeply")
        if self.token.type is not TokenType.END:
            self.error(f"Unexpected {self.token.type} after expression")
        return result

    def advance(self) -> None:
        self.token = self.lexer.next_token()

    def error(self, errmsg: str) -> Any:
        raise ParserError(errmsg, code=self.code, error_char_idx=self.token.start)

    def new_node(self, node: Any) -> Any:
        return self.allocator.allocate(node)

    def new_operator(self, op: Op, name: str, *args: Expression) -> Function:
        return self.new_node(Function(op=op, fn=OPERATOR_FUNCS[op], arity=len(args), args=list(args), pure=True, name=name))

    def new_call(self, token: Token, args: list[Expression]) -> Callee:
        if token.type is TokenType.CLOSURE:
            return self.new_node(Closure(fn=token.fn, context=token.context, arity=token.arity, args=args, name=token.lexeme))  # type: ignore
        return self.new_node(
            Function(op=Op.FUNC, fn=token.fn, arity=token.arity, args=args, pure=token.pure, name=token.lexeme)  # type: ignore
        )

    def consume_list(self) -> Expression:
        # <list> = <expr> {"," <expr>}
        result = self.consume_expr()
        while self.token.type is TokenType.SEPARATOR:
            self.advance()
            result = self.new_operator(Op.COMMA, ",", result, self.consume_expr())
        return result

    def consume_expr(self) -> Expression:
        # <expr> = <term> {("+" | "-") <term>}
        result = self.consume_term()
        while self.token.is_op(Op.ADD, Op.SUB):
            operator = self.token
            self.advance()
            result = self.new_operator(operator.op, operator.lexeme, result, self.consume_term())  # type: ignore
        return result

    def consume_term(self) -> Expression:
        # <term> = <factor> {("*" | "/" | "%") <factor>}
        result = self.consume_factor()
        while self.token.is_op(Op.MUL, Op.DIV, Op.MOD):
            operator = self.token
            self.advance()
            result = self.new_operator(operator.op, operator.lexeme, result, self.consume_factor())  # type: ignore
        return result

    def consume_factor(self) -> Expression:
        # <factor> = {("-" | "+")} <base> {"^" <power>}
        # a leading sign applies to the whole chain: -2^2 = -(2^2)
        negative = self.consume_sign()
        operands = [self.consume_base()]
        while self.token.is_op(Op.POW):
            self.advance()
            operands.append(self.consume_power())

        if self.config.pow_right_assoc:
            result = operands[-1]
            for operand in reversed(operands[:-1]):
                result = self.new_operator(Op.POW, "^", operand, result)
        else:
            result = operands[0]
            for operand in operands[1:]:
                result = self.new_operator(Op.POW, "^", result, operand)

        if negative:
            result = self.new_operator(Op.NEGATE, "-", result)
        return result

    def consume_power(self) -> Expression:
        # <power> = {("-" | "+")} <base>
        negative = self.consume_sign()
        result = self.consume_base()
        if negative:
            result = self.new_operator(Op.NEGATE, "-", result)
        return result

    def consume_sign(self) -> bool:
        negative = False
        while self.token.is_op(Op.ADD, Op.SUB):
            if self.token.op is Op.SUB:
                negative = not negative
            self.advance()
        return negative

    def consume_base(self) -> Expression:
        # <base> = <constant> | <variable> | <function-0> {"(" ")"} | <function-1> <power>
        #        | <function-X> "(" <expr> {"," <expr>} ")" | "(" <list> ")"
        token = self.token
        if token.type is TokenType.NUMBER:
            self.advance()
            return self.new_node(Constant(token.value))
        elif token.type is TokenType.VARIABLE:
            self.advance()
            return self.new_node(Variable(token.ref, name=token.lexeme))  # type: ignore
        elif token.type in (TokenType.FUNCTION, TokenType.CLOSURE):
            self.enter()
            result = self.consume_call(token)
            self.depth -= 1
            return result
        elif token.type is TokenType.BRACKET_OPEN:
            self.enter()
            self.advance()
            result = self.consume_list()
            if self.token.type is not TokenType.BRACKET_CLOSE:
                self.error("Unclosed bracket")
            self.advance()
            self.depth -= 1
            return result
        elif token.type is TokenType.ERROR:
            if is_identifier_start(token.lexeme[0]):
                return self.error(f"Unknown identifier: {token.lexeme!r}")
            return self.error(f"Unexpected character: {token.lexeme!r}")
        else:
            return self.error(f"Operand expected, found {token.type}")

    def consume_call(self, token: Token) -> Callee:
        self.advance()
        if token.arity == 0:
            if self.token.type is TokenType.BRACKET_OPEN:
                self.advance()
                if self.token.type is not TokenType.BRACKET_CLOSE:
                    self.error(f"{token.lexeme!r} takes no arguments")
                self.advance()
            return self.new_call(token, [])

        if token.arity == 1:
            return self.new_call(token, [self.consume_power()])

        if self.token.type is not TokenType.BRACKET_OPEN:
            self.error(f"{token.lexeme!r} expects {token.arity} arguments in parentheses")
        args: list[Expression] = []
        while True:
            self.advance()
            args.append(self.consume_expr())
            if self.token.type is not TokenType.SEPARATOR:
                break
        if self.token.type is not TokenType.BRACKET_CLOSE:
            self.error("Unclosed bracket")
        if len(args) != token.arity:
            self.error(f"{token.lexeme!r} expects {token.arity} arguments, got {len(args)}")
        self.advance()
        return self.new_call(token, args)

    def enter(self) -> None:
        if self.depth >= self.config.max_depth:
            self.error(f"Expression nested deeper than {self.config.max_depth} levels")
        self.depth += 1

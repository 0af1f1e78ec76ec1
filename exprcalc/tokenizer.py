import enum
import re
from dataclasses import dataclass

import numpy as np

from exprcalc.bindings import BindingKind, BindingTable
from exprcalc.builtins import find_builtin
from exprcalc.utils import PrintableEnum, is_identifier_char, is_identifier_start
from exprcalc.value import Context, Func, Var


class TokenType(PrintableEnum):
    NUMBER = enum.auto()
    VARIABLE = enum.auto()
    FUNCTION = enum.auto()
    CLOSURE = enum.auto()
    INFIX = enum.auto()
    BRACKET_OPEN = enum.auto()
    BRACKET_CLOSE = enum.auto()
    SEPARATOR = enum.auto()
    END = enum.auto()
    ERROR = enum.auto()


class Op(PrintableEnum):
    ADD = enum.auto()
    SUB = enum.auto()
    MUL = enum.auto()
    DIV = enum.auto()
    POW = enum.auto()
    MOD = enum.auto()
    COMMA = enum.auto()
    NEGATE = enum.auto()
    FUNC = enum.auto()
    CLOSURE = enum.auto()


def comma(a: float, b: float) -> float:
    return b


OPERATOR_FUNCS: dict[Op, Func] = {
    Op.ADD: np.add,
    Op.SUB: np.subtract,
    Op.MUL: np.multiply,
    Op.DIV: np.true_divide,
    Op.POW: np.power,
    Op.MOD: np.fmod,
    Op.COMMA: comma,
    Op.NEGATE: np.negative,
}

INFIX_CHARS = {
    "+": Op.ADD,
    "-": Op.SUB,
    "*": Op.MUL,
    "/": Op.DIV,
    "^": Op.POW,
    "%": Op.MOD,
}

SINGLE_CHAR_TOKENS = {
    "(": TokenType.BRACKET_OPEN,
    ")": TokenType.BRACKET_CLOSE,
    ",": TokenType.SEPARATOR,
}

WHITESPACE = " \t\n\r"

NUMBER_RE = re.compile(r"(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


@dataclass
class Token:
    type: TokenType
    lexeme: str
    start: int
    value: float = 0.0
    ref: Var | None = None
    fn: Func | None = None
    op: Op | None = None
    arity: int = 0
    pure: bool = False
    context: Context = None

    def __str__(self) -> str:
        return f"<{self.type}>{self.lexeme}"

    def is_op(self, *ops: Op) -> bool:
        return self.type is TokenType.INFIX and self.op in ops


class Lexer:
    """Reads one token at a time from `code`, advancing `pos` past it."""

    def __init__(self, code: str, bindings: BindingTable, natural_log: bool = False) -> None:
        self.code = code
        self.pos = 0
        self.bindings = bindings
        self.natural_log = natural_log

    def next_token(self) -> Token:
        code = self.code
        while self.pos < len(code) and code[self.pos] in WHITESPACE:
            self.pos += 1

        start = self.pos
        if start >= len(code):
            return Token(type=TokenType.END, lexeme="", start=start)

        ch = code[start]
        if ch.isdigit() or ch == ".":
            match = NUMBER_RE.match(code, start)
            if match is None:
                self.pos = start + 1
                return Token(type=TokenType.ERROR, lexeme=ch, start=start)
            self.pos = match.end()
            return Token(type=TokenType.NUMBER, lexeme=match.group(), start=start, value=float(match.group()))
        elif is_identifier_start(ch):
            end = start + 1
            while end < len(code) and is_identifier_char(code[end]):
                end += 1
            self.pos = end
            return self._resolve_identifier(code[start:end], start)
        elif ch in INFIX_CHARS:
            self.pos = start + 1
            op = INFIX_CHARS[ch]
            return Token(type=TokenType.INFIX, lexeme=ch, start=start, op=op, fn=OPERATOR_FUNCS[op], arity=2, pure=True)
        elif ch in SINGLE_CHAR_TOKENS:
            self.pos = start + 1
            return Token(type=SINGLE_CHAR_TOKENS[ch], lexeme=ch, start=start)
        else:
            self.pos = start + 1
            return Token(type=TokenType.ERROR, lexeme=ch, start=start)

    def _resolve_identifier(self, name: str, start: int) -> Token:
        binding = self.bindings.find(name)
        if binding is not None:
            if binding.kind is BindingKind.VARIABLE:
                return Token(type=TokenType.VARIABLE, lexeme=name, start=start, ref=binding.address)  # type: ignore
            elif binding.kind is BindingKind.FUNCTION:
                return Token(
                    type=TokenType.FUNCTION,
                    lexeme=name,
                    start=start,
                    fn=binding.address,  # type: ignore
                    op=Op.FUNC,
                    arity=binding.arity,
                    pure=binding.pure,
                )
            else:
                return Token(
                    type=TokenType.CLOSURE,
                    lexeme=name,
                    start=start,
                    fn=binding.address,  # type: ignore
                    op=Op.CLOSURE,
                    arity=binding.arity,
                    context=binding.context,
                )

        builtin = find_builtin(name, natural_log=self.natural_log)
        if builtin is not None:
            return Token(
                type=TokenType.FUNCTION,
                lexeme=name,
                start=start,
                fn=builtin.fn,
                op=Op.FUNC,
                arity=builtin.arity,
                pure=builtin.pure,
            )
        return Token(type=TokenType.ERROR, lexeme=name, start=start)


def tokenize(code: str, bindings: BindingTable | None = None, natural_log: bool = False) -> list[Token]:
    """Tokens up to and including the first END or ERROR token."""
    lexer = Lexer(code, bindings if bindings is not None else BindingTable(), natural_log=natural_log)
    tokens: list[Token] = []
    while True:
        token = lexer.next_token()
        tokens.append(token)
        if token.type in (TokenType.END, TokenType.ERROR):
            return tokens

import enum
import re

IDENTIFIER_RE = re.compile(r"[a-z_][a-z0-9_]*")


class PrintableEnum(enum.Enum):
    def __str__(self) -> str:
        return self.name

    __repr__ = __str__


def is_identifier_start(ch: str) -> bool:
    return ch == "_" or "a" <= ch <= "z"


def is_identifier_char(ch: str) -> bool:
    return is_identifier_start(ch) or "0" <= ch <= "9"


def is_valid_name(name: str) -> bool:
    return IDENTIFIER_RE.fullmatch(name) is not None

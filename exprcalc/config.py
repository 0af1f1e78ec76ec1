from dataclasses import dataclass


@dataclass(frozen=True)
class CompileConfig:
    """Options read by the parser and the builtin lookup.

    pow_right_assoc: parse ``a^b^c`` as ``a^(b^c)`` instead of ``(a^b)^c``.
    natural_log: make ``log`` the natural logarithm instead of log10.
    max_depth: maximum nesting of parentheses and function applications.
    max_nodes: compile into a fixed pool of this many nodes; None means unbounded.
    """

    pow_right_assoc: bool = False
    natural_log: bool = False
    max_depth: int = 100
    max_nodes: int | None = None

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")
        if self.max_nodes is not None and self.max_nodes < 1:
            raise ValueError(f"max_nodes must be positive, got {self.max_nodes}")


DEFAULT_CONFIG = CompileConfig()

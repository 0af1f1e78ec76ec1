"""Evaluate expressions from the command line or interactively."""

import argparse
import logging
from typing import Sequence

from exprcalc.config import CompileConfig
from exprcalc.runtime import interp

QUIT_COMMANDS = {"q", "quit"}


def eval_line(code: str, config: CompileConfig) -> bool:
    result, error = interp(code, config=config)
    if error:
        print(f"Error at position {error}")
        print(code)
        print(" " * (error - 1) + "^")
        return False
    print(f"{result:g}")
    return True


def repl(config: CompileConfig) -> None:
    while True:
        try:
            code = input("> ")
        except EOFError:
            break
        if code.strip() in QUIT_COMMANDS:
            break
        if not code.strip():
            continue
        eval_line(code, config)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("-e", dest="expression", help="evaluate a single expression and exit")
    parser.add_argument("--pow-right", action="store_true", help="make ^ right-associative")
    parser.add_argument("--natural-log", action="store_true", help="make log the natural logarithm")
    parser.add_argument("-v", "--verbose", action="store_true", help="log compiler diagnostics")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    config = CompileConfig(pow_right_assoc=args.pow_right, natural_log=args.natural_log)
    if args.expression is not None:
        return 0 if eval_line(args.expression, config) else 1
    repl(config)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

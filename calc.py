"""Command-line calculator.

Usage:
    calc "2 + 3 * 4"                  # prints 14.0
    calc --dump parse.txt "(1+2)*3"   # also writes the parse result
    calc -- "-5 % 3"                  # expressions starting with a sign

Set DEBUG=1 to log the parse result.
"""
import logging
import os
import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.pretty import pretty_repr

from parser import ParseError, parse_expression
from units import OperationError

DEBUG = bool(os.getenv("DEBUG", False))
DUMP_DEPTH = 5

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="calc",
    help="Evaluate a flat arithmetic expression.",
    add_completion=False,
)
console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def report_parse_error(e: ParseError) -> None:
    err_console.print(f"[red]Parse error:[/red] {escape(str(e))}")
    if e.index is not None:
        err_console.print(escape(e.text))
        err_console.print(" " * e.index + "^")


def record_parse_result(result, dump: Optional[Path]) -> None:
    if not (dump or logger.isEnabledFor(logging.DEBUG)):
        return
    rendered = pretty_repr(result, max_depth=DUMP_DEPTH)
    logger.debug("Parsed %r:\n%s", result.input, rendered)
    if dump:
        dump.write_text(rendered + "\n")
        logger.info("Wrote parse result to %s", dump)


@app.command()
def main(
    expression: str = typer.Argument(help="Expression to evaluate, e.g. '(2+3)*4'"),
    dump: Optional[Path] = typer.Option(None, "--dump", "-d", help="Write the parse result to this file"),
    timing: bool = typer.Option(False, "--timing", "-t", help="Report parse and evaluation time"),
) -> None:
    """Parse and evaluate EXPRESSION, printing the result."""
    logging.basicConfig(
        level=logging.DEBUG if DEBUG else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    start = time.perf_counter()
    try:
        result = parse_expression(expression)
    except ParseError as e:
        report_parse_error(e)
        raise typer.Exit(1)

    try:
        value = result.expression.evaluate()
    except OperationError as e:
        record_parse_result(result, dump)
        err_console.print(f"[red]Evaluation error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    elapsed_ms = (time.perf_counter() - start) * 1000

    record_parse_result(result, dump)
    console.print(repr(value))
    if timing:
        err_console.print(f"[dim]{elapsed_ms:.3f} ms[/dim]")


if __name__ == "__main__":
    app()

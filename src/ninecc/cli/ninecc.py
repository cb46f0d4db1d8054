"""
ninecc - Compiler Command-Line Interface
========================================

Compiles one program, given as a single command-line argument, to
x86-64 assembly.

Usage Examples
--------------
Assembly to stdout:
    $ ninecc "return 5*(9-6);" > prog.s
    $ cc -o prog prog.s && ./prog; echo $?
    15

With output file:
    $ ninecc "a = 1; return a;" -o prog.s

Inspect intermediate stages:
    $ ninecc --tokens "1+2;"
    $ ninecc --ast "for (i = 0; i < 3; i = i + 1) x = x + i;"

Run in the simulator instead of assembling:
    $ ninecc --run "a = 0; while (a < 10) a = a + 1; return a;"
    10
"""

import logging
from pathlib import Path
from typing import Optional

import click

from ninecc import __version__
from ninecc.compiler import Compiler, CompilerOptions
from ninecc.simulator import Simulator
from ninecc.ast import ASTPrinter
from ninecc.cli.errors import handle_cli_exception

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(name)s: %(message)s",
    )


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument("source")
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write assembly to FILE instead of stdout",
)
@click.option(
    "--tokens",
    is_flag=True,
    help="Print the token list (for debugging)",
)
@click.option(
    "--ast",
    is_flag=True,
    help="Print the AST with variable frame slots (for debugging)",
)
@click.option(
    "--run",
    is_flag=True,
    help="Run the program in the simulator and print its exit status",
)
@click.option(
    "--frame-size",
    type=click.IntRange(min=0),
    default=None,
    help="Reserve a fixed number of bytes for locals instead of sizing "
         "the frame from the program",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="ninecc")
def main(
    source: str,
    output: Optional[Path],
    tokens: bool,
    ast: bool,
    run: bool,
    frame_size: Optional[int],
    verbose: bool,
) -> None:
    """
    Compile a C subset program to x86-64 assembly.

    SOURCE is the program text itself, not a file name.

    \b
    Examples:
        ninecc "42;"                      # Assembly to stdout
        ninecc "return 1+2;" -o prog.s    # Assembly to a file
        ninecc --run "return 1+2;"        # Prints 3
        ninecc --ast "x = 1; x = x * 2;"  # Show the parsed tree

    \b
    Supported language:
        - Integer literals and local variables
        - + - * / == != < <= > >= = and unary + -
        - return, if/else, while, for, { ... }
    """
    setup_logging(verbose)

    options = CompilerOptions.from_env()
    if frame_size is not None:
        options.frame_size = frame_size

    try:
        result = Compiler(options).compile_source(source)

        if tokens:
            for token in result.tokens:
                click.echo(repr(token))

        if ast:
            click.echo(ASTPrinter().print(result.ast))

        if run:
            outcome = Simulator(max_steps=options.max_steps).run(result.assembly)
            logger.debug(f"Program returned {outcome.return_value} after {outcome.steps} steps")
            click.echo(outcome.exit_status)

        if output is not None:
            output.write_text(result.assembly, encoding="utf-8")
            if verbose:
                click.echo(f"Wrote {len(result.assembly)} bytes to {output}", err=True)
        elif not (tokens or ast or run):
            click.echo(result.assembly, nl=False)

    except Exception as e:
        handle_cli_exception(e, verbose)


if __name__ == "__main__":
    main()

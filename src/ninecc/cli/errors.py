"""
CLI Error Handling
==================

Maps exceptions to messages and exit codes for the ninecc command.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click

from ninecc.errors import NineccError


class ExitCode(IntEnum):
    """Exit codes of the ninecc command."""
    SUCCESS = 0
    COMPILE_ERROR = 1    # Lexical, parse, code generation or simulation error
    INVALID_ARGS = 2     # Invalid arguments or unwritable output
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(error: Exception, verbose: bool = False) -> NoReturn:
    """
    Report error on stderr and exit with the matching exit code.

    Compiler errors are printed as they format themselves, which already
    includes the location, the source line and a hint. Internal errors
    print a traceback in verbose mode.

    Raises:
        SystemExit: Always
    """
    if isinstance(error, NineccError):
        click.echo(str(error), err=True)
        sys.exit(ExitCode.COMPILE_ERROR)

    elif isinstance(error, click.BadParameter):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, (FileNotFoundError, PermissionError, IsADirectoryError)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)

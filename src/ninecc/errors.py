"""
ninecc Error Hierarchy
======================

This module defines the exception hierarchy for the whole compiler.
All exceptions inherit from NineccError, so callers can catch every
compilation failure with a single except clause.

Exception Hierarchy
-------------------
NineccError (base)
├── LexError - source text cannot be tokenized
│   ├── InvalidCharacterError - character not in the language
│   ├── MalformedOperatorError - '!' without its '='
│   └── LiteralTooLargeError - literal wider than 32 bits
├── ParseError - token stream does not match the grammar
│   ├── UnexpectedTokenError - wrong token where another was expected
│   ├── UnexpectedEOFError - input ended before the construct was complete
│   └── NotEnoughTokensError - token stream ran out without an EOF marker
├── InvalidAssignmentTargetError - left side of '=' is not a variable
├── CodeGenError - tree cannot be lowered to assembly
│   └── FrameOverflowError - too many locals for a fixed-size frame
└── SimulationError - generated assembly cannot be run by the simulator

Error Message Format
--------------------
    <input>:1:3: error: unexpected token ';'
        1+;
          ^
    hint: expected number, identifier or '('
"""

from dataclasses import dataclass
from typing import Optional, Sequence

# Indent of the quoted source line under a diagnostic
SOURCE_INDENT = "    "


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A position in the source text, used only for diagnostics.

    Attributes:
        filename: Name of the source ("<input>" for command-line text)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Base Exception
# =============================================================================

class NineccError(Exception):
    """
    Base exception for all compiler errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred
        hint: A suggestion for fixing the error
        source_line: The source text of the offending line
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Render the diagnostic the CLI prints, e.g. for 'a = 1 # 2;':

            <input>:1:7: error: invalid character '#'
                a = 1 # 2;
                      ^
        """
        prefix = f"{self.location}: error" if self.location else "error"
        lines = [f"{prefix}: {self.message}"]
        lines.extend(self._context_lines())
        if self.hint:
            lines.append(f"hint: {self.hint}")
        return "\n".join(lines)

    def _context_lines(self) -> list[str]:
        """The offending source line, indented, with a caret under the column."""
        if self.source_line is None or self.location is None:
            return []
        context = [SOURCE_INDENT + self.source_line]
        if self.location.column > 0:
            context.append(" " * (len(SOURCE_INDENT) + self.location.column - 1) + "^")
        return context


# =============================================================================
# Lexical Errors
# =============================================================================

class LexError(NineccError):
    """
    The source text contains something the lexer cannot turn into a token.

    Lexical errors stop the compilation before any parsing happens, so no
    assembly is produced.
    """
    pass


class InvalidCharacterError(LexError):
    """A character that starts no token of the language."""

    def __init__(
        self,
        char: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.char = char
        super().__init__(
            f"invalid character '{char}' (0x{ord(char):02X})",
            location=location,
            source_line=source_line,
        )


class MalformedOperatorError(LexError):
    """
    First character of a two-character operator without its second half.

    Only '!' is affected: a lone '=' is assignment, and '<'/'>' are valid
    on their own.
    """

    def __init__(
        self,
        text: str,
        expected: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.text = text
        self.expected = expected
        super().__init__(
            f"malformed operator '{text}'",
            location=location,
            hint=f"did you mean '{expected}'?",
            source_line=source_line,
        )


class LiteralTooLargeError(LexError):
    """Integer literal that does not fit the 32-bit unsigned literal width."""

    def __init__(
        self,
        text: str,
        limit: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.text = text
        self.limit = limit
        super().__init__(
            f"integer literal '{text}' is too large",
            location=location,
            hint=f"literals must not exceed {limit}",
            source_line=source_line,
        )


# =============================================================================
# Parse Errors
# =============================================================================

class ParseError(NineccError):
    """Token stream does not match the grammar."""
    pass


def _describe_expected(expected: Sequence) -> str:
    """Join token-type descriptions as 'a, b or c'."""
    names = [t.describe() for t in expected]
    if len(names) <= 1:
        return "".join(names)
    return f"{', '.join(names[:-1])} or {names[-1]}"


class UnexpectedTokenError(ParseError):
    """
    The parser found a token it cannot use at this point.

    Attributes:
        expected: Token types that would have been accepted
        actual: The token that was found (the EOF token at end of input)
    """

    def __init__(
        self,
        expected: Sequence,
        actual,
        source_line: Optional[str] = None,
    ):
        self.expected = tuple(expected)
        self.actual = actual
        super().__init__(
            f"unexpected {actual.describe()}",
            location=actual.location,
            hint=f"expected {_describe_expected(self.expected)}",
            source_line=source_line,
        )


class UnexpectedEOFError(ParseError):
    """
    Input ended while a construct still needed a token.

    Attributes:
        expected: Token types that would have completed the construct
    """

    def __init__(
        self,
        expected: Sequence,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.expected = tuple(expected)
        super().__init__(
            "unexpected end of input",
            location=location,
            hint=f"expected {_describe_expected(self.expected)}",
            source_line=source_line,
        )


class NotEnoughTokensError(ParseError):
    """The token sequence ended without an end-of-input marker."""

    def __init__(self):
        super().__init__(
            "not enough tokens",
            hint="token streams must be terminated by an EOF token",
        )


# =============================================================================
# Assignment Target
# =============================================================================

class InvalidAssignmentTargetError(NineccError):
    """
    Left-hand side of '=' is not an addressable expression.

    Only variables can be assigned to:
        x = 1;          // ok
        (x) = 1;        // ok, parentheses are transparent
        1 = x;          // error
        x + 1 = 2;      // error
    """

    def __init__(
        self,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        super().__init__(
            "expression is not assignable",
            location=location,
            hint="left side of '=' must be a variable",
            source_line=source_line,
        )


# =============================================================================
# Code Generation Errors
# =============================================================================

class CodeGenError(NineccError):
    """The code generator cannot lower the tree it was given."""
    pass


class FrameOverflowError(CodeGenError):
    """
    Program needs more local-variable storage than a fixed frame provides.

    Only raised when CompilerOptions.frame_size pins the frame to a
    constant size; computed frames always fit.
    """

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"local variables need {required} bytes but the frame holds {available}",
            hint="remove --frame-size to size the frame from the program",
        )


# =============================================================================
# Simulation Errors
# =============================================================================

class SimulationError(NineccError):
    """
    Generated assembly could not be run to completion by the simulator.

    Raised for instructions outside the supported subset, jumps to unknown
    labels, division by zero and an exhausted step budget.

    Attributes:
        line: 1-indexed assembly line being executed, if known
    """

    def __init__(self, message: str, line: Optional[int] = None, hint: Optional[str] = None):
        self.line = line
        if line is not None:
            message = f"{message} (assembly line {line})"
        super().__init__(message, hint=hint)

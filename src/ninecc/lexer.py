"""
ninecc Lexer (Tokenizer)
========================

This module converts source text into a flat list of tokens for the
parser. The token list always ends with a single EOF token.

Token Categories
----------------
- Keywords: return, if, else, while, for
- Identifiers: a letter followed by letters, digits or underscores
- Numbers: unsigned decimal literals, at most 32 bits wide
- Operators: + - * / = == != < <= > >=
- Delimiters: ( ) { } ;

Two-character operators are recognised with one character of lookahead.
A '!' that is not followed by '=' is a lexical error; every other
character outside the language is rejected as well.

Example Usage
-------------
>>> from ninecc.lexer import Lexer
>>> for token in Lexer("x = 1;").tokenize():
...     print(token)
Token(IDENTIFIER, 'x', 1:1)
Token(ASSIGN, '=', 1:3)
Token(NUMBER, 1, 1:5)
Token(SEMICOLON, ';', 1:6)
Token(EOF, 1:7)
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator, Optional
import logging
import string

from ninecc.errors import (
    SourceLocation,
    InvalidCharacterError,
    MalformedOperatorError,
    LiteralTooLargeError,
)

logger = logging.getLogger(__name__)

# Largest value an integer literal may hold (unsigned 32-bit)
MAX_LITERAL = 0xFFFF_FFFF


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types of the language."""

    # === Structural ===
    EOF = auto()            # End of input

    # === Identifiers and Literals ===
    IDENTIFIER = auto()     # Variable names
    NUMBER = auto()         # Unsigned decimal literals

    # === Keywords ===
    RETURN = auto()         # return
    IF = auto()             # if
    ELSE = auto()           # else
    WHILE = auto()          # while
    FOR = auto()            # for

    # === Arithmetic Operators ===
    PLUS = auto()           # +
    MINUS = auto()          # -
    STAR = auto()           # *
    SLASH = auto()          # /

    # === Comparison Operators ===
    EQ = auto()             # ==
    NE = auto()             # !=
    LT = auto()             # <
    LE = auto()             # <=
    GT = auto()             # >
    GE = auto()             # >=

    # === Assignment ===
    ASSIGN = auto()         # =

    # === Delimiters ===
    LPAREN = auto()         # (
    RPAREN = auto()         # )
    LBRACE = auto()         # {
    RBRACE = auto()         # }
    SEMICOLON = auto()      # ;

    def describe(self) -> str:
        """Human-readable name used in 'expected ...' hints."""
        if self in _CATEGORY_NAMES:
            return _CATEGORY_NAMES[self]
        return f"'{TOKEN_TEXT[self]}'"


_CATEGORY_NAMES = {
    TokenType.EOF: "end of input",
    TokenType.IDENTIFIER: "identifier",
    TokenType.NUMBER: "number",
}


# =============================================================================
# Keyword and Operator Tables
# =============================================================================

KEYWORDS: dict[str, TokenType] = {
    "return": TokenType.RETURN,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "while": TokenType.WHILE,
    "for": TokenType.FOR,
}

SINGLE_CHAR_TOKENS: dict[str, TokenType] = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    ";": TokenType.SEMICOLON,
}

# Canonical spelling of every fixed-text token
TOKEN_TEXT: dict[TokenType, str] = {
    **{token_type: text for text, token_type in KEYWORDS.items()},
    **{token_type: text for text, token_type in SINGLE_CHAR_TOKENS.items()},
    TokenType.ASSIGN: "=",
    TokenType.EQ: "==",
    TokenType.NE: "!=",
    TokenType.LT: "<",
    TokenType.LE: "<=",
    TokenType.GT: ">",
    TokenType.GE: ">=",
}


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single lexical element.

    Tokens own their payload: the integer value of a literal, the name of
    an identifier, or the spelling of an operator or keyword. The location
    is kept for diagnostics only and takes no part in equality, so
    Token(TokenType.SEMICOLON, ";") compares equal to any ';' token.

    Attributes:
        type: The TokenType classification
        value: int for numbers, str for everything else, None for EOF
        location: Where the token starts in the source
    """
    type: TokenType
    value: str | int | None = None
    location: Optional[SourceLocation] = field(default=None, compare=False)

    def __repr__(self) -> str:
        """Format token for debugging output."""
        where = ""
        if self.location is not None:
            where = f", {self.location.line}:{self.location.column}"
        if self.value is None:
            return f"Token({self.type.name}{where})"
        if isinstance(self.value, int):
            return f"Token({self.type.name}, {self.value}{where})"
        return f"Token({self.type.name}, {self.value!r}{where})"

    def describe(self) -> str:
        """Describe the token for error messages: "token ';'" or "end of input"."""
        if self.type == TokenType.EOF:
            return "end of input"
        return f"token '{self.value}'"


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes source text.

    Usage:
        lexer = Lexer(source_text)
        tokens = list(lexer.tokenize())

    Attributes:
        source: The source text being tokenized
        filename: Name reported in error locations
    """

    IDENT_START = string.ascii_letters
    IDENT_CHARS = string.ascii_letters + string.digits + "_"

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename

        self._pos = 0
        self._line = 1
        self._column = 1
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source text, ending with an EOF token.

        Raises:
            LexError: On the first character that starts no valid token
        """
        count = 0
        while True:
            self._skip_whitespace()
            if self._at_end():
                break
            yield self._scan_token()
            count += 1

        logger.debug(f"Tokenized {count} tokens from {self.filename}")
        yield Token(TokenType.EOF, None, self._location())

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self) -> str:
        """Current character, or empty string at end of input."""
        if self._at_end():
            return ""
        return self.source[self._pos]

    def _advance(self) -> str:
        """Consume the current character, keeping line/column in step."""
        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    def _match(self, expected: str) -> bool:
        """Consume the next character if it is the expected one."""
        if self._peek() == expected:
            self._advance()
            return True
        return False

    def _location(self, line: Optional[int] = None, column: Optional[int] = None) -> SourceLocation:
        return SourceLocation(self.filename, line or self._line, column or self._column)

    def _current_line(self) -> str:
        """Source text of the line being scanned, for error context."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]

    def _skip_whitespace(self) -> None:
        while not self._at_end() and self._peek().isspace():
            self._advance()

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        start = self._location()
        char = self._peek()

        if char in self.IDENT_START:
            return self._scan_identifier(start)

        if char in string.digits:
            return self._scan_number(start)

        return self._scan_operator(start)

    def _scan_identifier(self, start: SourceLocation) -> Token:
        """
        Scan an identifier or keyword.

        The whole run of identifier characters is read first and only then
        tested against the keyword table, so 'returnx' is an identifier.
        """
        chars = []
        while self._peek() and self._peek() in self.IDENT_CHARS:
            chars.append(self._advance())

        name = "".join(chars)
        return Token(KEYWORDS.get(name, TokenType.IDENTIFIER), name, start)

    def _scan_number(self, start: SourceLocation) -> Token:
        """Scan a run of decimal digits into one literal."""
        chars = []
        while self._peek() and self._peek() in string.digits:
            chars.append(self._advance())

        text = "".join(chars)
        value = int(text)
        if value > MAX_LITERAL:
            raise LiteralTooLargeError(text, MAX_LITERAL, start, self._current_line())

        return Token(TokenType.NUMBER, value, start)

    def _scan_operator(self, start: SourceLocation) -> Token:
        """Scan an operator or delimiter, with one character of lookahead."""
        char = self._advance()

        if char == "=":
            if self._match("="):
                return Token(TokenType.EQ, "==", start)
            return Token(TokenType.ASSIGN, "=", start)

        if char == "!":
            if self._match("="):
                return Token(TokenType.NE, "!=", start)
            raise MalformedOperatorError("!", "!=", start, self._current_line())

        if char == "<":
            if self._match("="):
                return Token(TokenType.LE, "<=", start)
            return Token(TokenType.LT, "<", start)

        if char == ">":
            if self._match("="):
                return Token(TokenType.GE, ">=", start)
            return Token(TokenType.GT, ">", start)

        if char in SINGLE_CHAR_TOKENS:
            return Token(SINGLE_CHAR_TOKENS[char], char, start)

        raise InvalidCharacterError(char, start, self._current_line())


# =============================================================================
# Convenience Functions
# =============================================================================

def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Tokenize source text into a list ending with an EOF token."""
    return list(Lexer(source, filename).tokenize())

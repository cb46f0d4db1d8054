"""
ninecc Recursive Descent Parser
===============================

This module implements a recursive descent parser that turns the token
list from the lexer into an AST. Identifiers are resolved to frame
slots while parsing, so the returned ProgramNode already knows every
local variable of the program.

Grammar (EBNF)
--------------
program         ::= statement*
statement       ::= '{' statement* '}'
                  | 'return' expression ';'
                  | 'if' '(' expression ')' statement ('else' statement)?
                  | 'while' '(' expression ')' statement
                  | 'for' '(' expression? ';' expression? ';' expression? ')' statement
                  | expression ';'
expression      ::= assignment
assignment      ::= equality ('=' assignment)?
equality        ::= relational (('==' | '!=') relational)*
relational      ::= additive (('<' | '<=' | '>' | '>=') additive)*
additive        ::= multiplicative (('+' | '-') multiplicative)*
multiplicative  ::= unary (('*' | '/') unary)*
unary           ::= ('+' | '-')? primary
primary         ::= NUMBER | IDENTIFIER | '(' expression ')'

Expression Precedence (lowest to highest)
-----------------------------------------
1. assignment      =          right-associative
2. equality        == !=      left-associative
3. relational      < <= > >=  left-associative
4. additive        + -        left-associative
5. multiplicative  * /        left-associative
6. unary           + -

Rewrites
--------
- 'a > b' becomes 'b < a' and 'a >= b' becomes 'b <= a'.
- '-x' becomes '0 - x'; '+x' is just 'x'.
- The left side of '=' must reduce to a variable; anything else is
  rejected here with InvalidAssignmentTargetError.

Example Usage
-------------
>>> from ninecc.parser import parse_source
>>> program = parse_source("1-2-3;")
>>> print(program)
((1 - 2) - 3);
"""

from typing import Callable, Optional
import logging

from ninecc.lexer import Lexer, Token, TokenType
from ninecc.symbols import SymbolTable
from ninecc.ast import (
    ProgramNode,
    Statement,
    BlockStatement,
    ExpressionStatement,
    ReturnStatement,
    IfStatement,
    WhileStatement,
    ForStatement,
    Expression,
    NumberLiteral,
    VariableExpression,
    AssignmentExpression,
    BinaryExpression,
    BinaryOperator,
)
from ninecc.errors import (
    SourceLocation,
    UnexpectedTokenError,
    UnexpectedEOFError,
    NotEnoughTokensError,
    InvalidAssignmentTargetError,
)

logger = logging.getLogger(__name__)

# Tokens that can start a primary expression
PRIMARY_START = (TokenType.NUMBER, TokenType.IDENTIFIER, TokenType.LPAREN)


class Parser:
    """
    Recursive descent parser.

    The parser keeps a single forward cursor into the token list and looks
    at most one token ahead. The first error aborts parsing; nothing is
    returned for a program that does not parse completely.

    Attributes:
        tokens: Token list, normally terminated by an EOF token
        symbols: Symbol table filled in while identifiers are resolved
    """

    def __init__(
        self,
        tokens: list[Token],
        source_lines: Optional[list[str]] = None,
        symbols: Optional[SymbolTable] = None,
    ):
        """
        Initialize the parser.

        Args:
            tokens: Tokens from the lexer
            source_lines: Original source lines for error context
            symbols: Symbol table to resolve identifiers into (a fresh one
                     by default)
        """
        self.tokens = tokens
        self.source_lines = source_lines or []
        self.symbols = symbols if symbols is not None else SymbolTable()

        self._pos = 0

    def parse(self) -> ProgramNode:
        """
        Parse the whole token list.

        Returns:
            ProgramNode with the top-level statements and every local variable

        Raises:
            ParseError: If the tokens do not form a program
            InvalidAssignmentTargetError: If '=' has a non-variable left side
        """
        statements = []
        while not self._check(TokenType.EOF):
            statements.append(self._parse_statement())

        logger.debug(
            f"Parsed {len(statements)} statements, {len(self.symbols)} locals"
        )
        return ProgramNode(
            location=self.tokens[0].location if self.tokens else None,
            statements=tuple(statements),
            locals=tuple(self.symbols),
        )

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _peek(self) -> Token:
        """Look at the current token without consuming it."""
        if self._pos >= len(self.tokens):
            raise NotEnoughTokensError()
        return self.tokens[self._pos]

    def _advance(self) -> Token:
        token = self._peek()
        self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        """Consume the current token if it is one of the given types."""
        if self._check(*types):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType) -> Token:
        """
        Consume a token of the given type.

        Raises:
            UnexpectedEOFError: If input ends instead
            UnexpectedTokenError: If another token is found
        """
        if self._check(token_type):
            return self._advance()
        raise self._error((token_type,))

    def _error(self, expected: tuple[TokenType, ...]):
        """Build the error for finding the current token instead of expected."""
        current = self._peek()
        source_line = self._get_source_line(current.location)
        if current.type == TokenType.EOF:
            return UnexpectedEOFError(expected, current.location, source_line)
        return UnexpectedTokenError(expected, current, source_line)

    def _get_source_line(self, location: Optional[SourceLocation]) -> Optional[str]:
        if location is None:
            return None
        line = location.line
        if 0 < line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None

    # =========================================================================
    # Statement Parsing
    # =========================================================================

    def _parse_statement(self) -> Statement:
        """Parse any statement."""
        token = self._peek()

        if token.type == TokenType.LBRACE:
            return self._parse_block()
        if token.type == TokenType.RETURN:
            return self._parse_return_statement()
        if token.type == TokenType.IF:
            return self._parse_if_statement()
        if token.type == TokenType.WHILE:
            return self._parse_while_statement()
        if token.type == TokenType.FOR:
            return self._parse_for_statement()

        return self._parse_expression_statement()

    def _parse_block(self) -> BlockStatement:
        """Parse a block statement { ... }."""
        location = self._expect(TokenType.LBRACE).location

        statements = []
        while not self._check(TokenType.RBRACE):
            if self._check(TokenType.EOF):
                raise self._error((TokenType.RBRACE,))
            statements.append(self._parse_statement())

        self._expect(TokenType.RBRACE)
        return BlockStatement(location=location, statements=tuple(statements))

    def _parse_return_statement(self) -> ReturnStatement:
        location = self._expect(TokenType.RETURN).location
        value = self._parse_expression()
        self._expect(TokenType.SEMICOLON)
        return ReturnStatement(location=location, value=value)

    def _parse_if_statement(self) -> IfStatement:
        location = self._expect(TokenType.IF).location
        self._expect(TokenType.LPAREN)
        condition = self._parse_expression()
        self._expect(TokenType.RPAREN)

        then_branch = self._parse_statement()

        # A dangling else binds to the nearest if
        else_branch = None
        if self._match(TokenType.ELSE):
            else_branch = self._parse_statement()

        return IfStatement(
            location=location,
            condition=condition,
            then_branch=then_branch,
            else_branch=else_branch,
        )

    def _parse_while_statement(self) -> WhileStatement:
        location = self._expect(TokenType.WHILE).location
        self._expect(TokenType.LPAREN)
        condition = self._parse_expression()
        self._expect(TokenType.RPAREN)

        body = self._parse_statement()

        return WhileStatement(location=location, condition=condition, body=body)

    def _parse_for_statement(self) -> ForStatement:
        """
        Parse a for statement.

        Each clause is optional; it is absent when the delimiter that
        closes it follows immediately.
        """
        location = self._expect(TokenType.FOR).location
        self._expect(TokenType.LPAREN)

        initializer = None
        if not self._check(TokenType.SEMICOLON):
            initializer = self._parse_expression()
        self._expect(TokenType.SEMICOLON)

        condition = None
        if not self._check(TokenType.SEMICOLON):
            condition = self._parse_expression()
        self._expect(TokenType.SEMICOLON)

        update = None
        if not self._check(TokenType.RPAREN):
            update = self._parse_expression()
        self._expect(TokenType.RPAREN)

        body = self._parse_statement()

        return ForStatement(
            location=location,
            initializer=initializer,
            condition=condition,
            update=update,
            body=body,
        )

    def _parse_expression_statement(self) -> ExpressionStatement:
        location = self._peek().location
        expression = self._parse_expression()
        self._expect(TokenType.SEMICOLON)
        return ExpressionStatement(location=location, expression=expression)

    # =========================================================================
    # Expression Parsing (Operator Precedence)
    # =========================================================================

    def _parse_expression(self) -> Expression:
        return self._parse_assignment()

    def _parse_assignment(self) -> Expression:
        """Parse assignment expression (right-associative)."""
        expr = self._parse_equality()

        if self._match(TokenType.ASSIGN):
            if not isinstance(expr, VariableExpression):
                raise InvalidAssignmentTargetError(
                    expr.location, self._get_source_line(expr.location)
                )
            value = self._parse_assignment()
            return AssignmentExpression(location=expr.location, target=expr, value=value)

        return expr

    def _parse_equality(self) -> Expression:
        """Parse equality expression (== !=)."""
        return self._parse_binary(
            self._parse_relational,
            {
                TokenType.EQ: BinaryOperator.EQUAL,
                TokenType.NE: BinaryOperator.NOT_EQUAL,
            },
        )

    def _parse_relational(self) -> Expression:
        """
        Parse relational expression (< <= > >=).

        '>' and '>=' swap their operands into '<' and '<='.
        """
        operators = {
            TokenType.LT: (BinaryOperator.LESS, False),
            TokenType.LE: (BinaryOperator.LESS_EQ, False),
            TokenType.GT: (BinaryOperator.LESS, True),
            TokenType.GE: (BinaryOperator.LESS_EQ, True),
        }
        expr = self._parse_additive()

        while self._peek().type in operators:
            op_token = self._advance()
            operator, swapped = operators[op_token.type]
            right = self._parse_additive()
            if swapped:
                expr = BinaryExpression(
                    location=expr.location, operator=operator, left=right, right=expr,
                )
            else:
                expr = BinaryExpression(
                    location=expr.location, operator=operator, left=expr, right=right,
                )

        return expr

    def _parse_additive(self) -> Expression:
        """Parse additive expression (+ -)."""
        return self._parse_binary(
            self._parse_multiplicative,
            {
                TokenType.PLUS: BinaryOperator.ADD,
                TokenType.MINUS: BinaryOperator.SUBTRACT,
            },
        )

    def _parse_multiplicative(self) -> Expression:
        """Parse multiplicative expression (* /)."""
        return self._parse_binary(
            self._parse_unary,
            {
                TokenType.STAR: BinaryOperator.MULTIPLY,
                TokenType.SLASH: BinaryOperator.DIVIDE,
            },
        )

    def _parse_binary(
        self,
        operand_parser: Callable[[], Expression],
        operators: dict[TokenType, BinaryOperator],
    ) -> Expression:
        """
        Generic left-associative binary expression parser.

        Args:
            operand_parser: Function to parse operands
            operators: Map of token types to binary operators
        """
        expr = operand_parser()

        while self._peek().type in operators:
            op_token = self._advance()
            right = operand_parser()
            expr = BinaryExpression(
                location=expr.location,
                operator=operators[op_token.type],
                left=expr,
                right=right,
            )

        return expr

    def _parse_unary(self) -> Expression:
        """Parse an optional sign followed by a primary expression."""
        token = self._peek()

        if self._match(TokenType.PLUS):
            return self._parse_primary()

        if self._match(TokenType.MINUS):
            operand = self._parse_primary()
            return BinaryExpression(
                location=token.location,
                operator=BinaryOperator.SUBTRACT,
                left=NumberLiteral(location=token.location, value=0),
                right=operand,
            )

        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        """Parse primary expression (literal, variable, parenthesized)."""
        token = self._peek()

        if token.type == TokenType.NUMBER:
            self._advance()
            return NumberLiteral(location=token.location, value=token.value)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            var = self.symbols.resolve(token.value)
            return VariableExpression(location=token.location, var=var)

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN)
            return expr

        # End of input is reported as an unexpected token here, with the
        # EOF token as the one found
        raise UnexpectedTokenError(PRIMARY_START, token, self._get_source_line(token.location))


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(source: str, filename: str = "<input>") -> ProgramNode:
    """
    Parse source text into an AST.

    This is a convenience function that combines lexing and parsing.

    Raises:
        LexError: If the source cannot be tokenized
        ParseError: If the tokens do not form a program
        InvalidAssignmentTargetError: If '=' has a non-variable left side
    """
    tokens = list(Lexer(source, filename).tokenize())
    return Parser(tokens, source.splitlines()).parse()

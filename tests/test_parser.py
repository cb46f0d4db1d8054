"""
Parser Test Suite
=================

Tests for the recursive descent parser: precedence, associativity,
the '>'/'>=' and unary rewrites, statements, local variable resolution
and parse errors.

Expected trees are written as canonical source text, the fully
parenthesised form produced by format_program().
"""

import pytest
from ninecc.lexer import Token, TokenType, tokenize
from ninecc.parser import Parser, parse_source
from ninecc.ast import (
    ProgramNode,
    BlockStatement,
    ExpressionStatement,
    ReturnStatement,
    IfStatement,
    WhileStatement,
    ForStatement,
    NumberLiteral,
    VariableExpression,
    AssignmentExpression,
    BinaryExpression,
    BinaryOperator,
    format_program,
)
from ninecc.errors import (
    ParseError,
    UnexpectedTokenError,
    UnexpectedEOFError,
    NotEnoughTokensError,
    InvalidAssignmentTargetError,
)


def canonical(source: str) -> str:
    return format_program(parse_source(source))


# =============================================================================
# Expression Tests
# =============================================================================

class TestExpressions:
    """Precedence and associativity of binary operators."""

    @pytest.mark.parametrize("source, expected", [
        ("1;", "1;"),
        ("1-2-3;", "((1 - 2) - 3);"),
        ("1+2*3-4/2;", "((1 + (2 * 3)) - (4 / 2));"),
        ("(1+2)*(3-4)/2;", "(((1 + 2) * (3 - 4)) / 2);"),
        ("8/4/2;", "((8 / 4) / 2);"),
        ("5+6*7;", "(5 + (6 * 7));"),
        ("5*(9-6);", "(5 * (9 - 6));"),
        ("((((1))));", "1;"),
    ])
    def test_arithmetic(self, source, expected):
        assert canonical(source) == expected

    @pytest.mark.parametrize("source, expected", [
        ("1<2==1;", "((1 < 2) == 1);"),
        ("1+1<=2;", "((1 + 1) <= 2);"),
        ("1==2!=3;", "((1 == 2) != 3);"),
        ("1<2<3;", "((1 < 2) < 3);"),
    ])
    def test_comparison_precedence(self, source, expected):
        assert canonical(source) == expected

    def test_unary_minus(self):
        assert canonical("-1+2;") == "((0 - 1) + 2);"

    def test_unary_plus(self):
        assert canonical("+1-2;") == "(1 - 2);"

    def test_unary_binds_tighter_than_multiply(self):
        assert canonical("-2*3;") == "((0 - 2) * 3);"

    def test_unary_on_parenthesized(self):
        assert canonical("-(1+2);") == "(0 - (1 + 2));"

    def test_unary_minus_node(self):
        stmt = parse_source("-5;").statements[0]
        expr = stmt.expression
        assert isinstance(expr, BinaryExpression)
        assert expr.operator == BinaryOperator.SUBTRACT
        assert expr.left == NumberLiteral(value=0)
        assert expr.right == NumberLiteral(value=5)

    def test_greater_than_swaps_operands(self):
        assert parse_source("1>2;") == parse_source("2<1;")
        assert canonical("1>2;") == "(2 < 1);"

    def test_greater_equal_swaps_operands(self):
        assert parse_source("1>=2;") == parse_source("2<=1;")
        assert canonical("1>=2;") == "(2 <= 1);"

    def test_greater_than_chain(self):
        assert canonical("a>b>c;") == "(c < (b < a));"

    def test_greater_than_with_arithmetic(self):
        assert canonical("a+1>b*2;") == "((b * 2) < (a + 1));"


# =============================================================================
# Assignment Tests
# =============================================================================

class TestAssignment:
    """Assignment is right-associative and needs a variable on the left."""

    def test_simple_assignment(self):
        expr = parse_source("a = 1;").statements[0].expression
        assert isinstance(expr, AssignmentExpression)
        assert isinstance(expr.target, VariableExpression)
        assert expr.target.name == "a"
        assert expr.value == NumberLiteral(value=1)

    def test_right_associative(self):
        assert canonical("a=b=3;") == "(a = (b = 3));"

    def test_lowest_precedence(self):
        assert canonical("a=1+2==3;") == "(a = ((1 + 2) == 3));"

    def test_parenthesized_target(self):
        assert canonical("(a) = 2;") == "(a = 2);"

    @pytest.mark.parametrize("source", [
        "1 = 2;",
        "a + 1 = 2;",
        "(a = 1) = 2;",
        "-a = 1;",
        "a < b = 1;",
    ])
    def test_invalid_target(self, source):
        with pytest.raises(InvalidAssignmentTargetError):
            parse_source(source)

    def test_invalid_target_location(self):
        with pytest.raises(InvalidAssignmentTargetError) as exc_info:
            parse_source("x = 1;\n  3 = x;")
        assert exc_info.value.location.line == 2
        assert exc_info.value.location.column == 3
        assert "left side of '=' must be a variable" in str(exc_info.value)


# =============================================================================
# Local Variable Tests
# =============================================================================

class TestLocals:
    """Identifiers resolve to frame slots in order of first appearance."""

    def test_offsets_in_order_of_first_appearance(self):
        program = parse_source("hoge=1;huga=2;piyo=3;hoge=4;")
        assert [(v.name, v.offset) for v in program.locals] == [
            ("hoge", 8), ("huga", 16), ("piyo", 24),
        ]

    def test_reuse_gives_same_slot(self):
        program = parse_source("hoge=1;huga=2;hoge=hoge+huga;")
        first = program.statements[0].expression.target.var
        last = program.statements[2].expression.target.var
        assert first is last
        assert first.offset == 8

    def test_read_before_write_allocates(self):
        program = parse_source("return a + b;")
        assert [v.offset for v in program.locals] == [8, 16]

    def test_no_locals(self):
        assert parse_source("1+2;").locals == ()

    def test_deterministic(self):
        source = "x=1; y=x; for (i=0; i<3; i=i+1) z=z+i; return y;"
        assert parse_source(source) == parse_source(source)
        assert parse_source(source).locals == parse_source(source).locals


# =============================================================================
# Statement Tests
# =============================================================================

class TestStatements:
    """Statement forms."""

    def test_empty_program(self):
        program = parse_source("")
        assert isinstance(program, ProgramNode)
        assert program.statements == ()

    def test_multiple_statements(self):
        program = parse_source("1; 2; 3;")
        assert len(program.statements) == 3
        assert all(isinstance(s, ExpressionStatement) for s in program.statements)

    def test_return(self):
        stmt = parse_source("return 42;").statements[0]
        assert isinstance(stmt, ReturnStatement)
        assert stmt.value == NumberLiteral(value=42)

    def test_if_without_else(self):
        stmt = parse_source("if (a) b = 1;").statements[0]
        assert isinstance(stmt, IfStatement)
        assert stmt.else_branch is None

    def test_if_else(self):
        assert canonical("if (a == 1) b = 2; else b = 3;") == \
            "if ((a == 1)) (b = 2); else (b = 3);"

    def test_dangling_else_binds_to_nearest_if(self):
        outer = parse_source("if (a) if (b) c; else d;").statements[0]
        assert outer.else_branch is None
        inner = outer.then_branch
        assert isinstance(inner, IfStatement)
        assert inner.else_branch is not None

    def test_while(self):
        stmt = parse_source("while (i < 10) i = i + 1;").statements[0]
        assert isinstance(stmt, WhileStatement)
        assert canonical("while (i < 10) i = i + 1;") == \
            "while ((i < 10)) (i = (i + 1));"

    def test_for_all_clauses(self):
        stmt = parse_source("for (i = 0; i < 5; i = i + 1) x = x + i;").statements[0]
        assert isinstance(stmt, ForStatement)
        assert stmt.initializer is not None
        assert stmt.condition is not None
        assert stmt.update is not None

    def test_for_no_clauses(self):
        stmt = parse_source("for (;;) return 1;").statements[0]
        assert stmt.initializer is None
        assert stmt.condition is None
        assert stmt.update is None
        assert isinstance(stmt.body, ReturnStatement)
        assert canonical("for (;;) return 1;") == "for (; ; ) return 1;"

    @pytest.mark.parametrize("source, present", [
        ("for (i=0;;) 1;", (True, False, False)),
        ("for (;i<3;) 1;", (False, True, False)),
        ("for (;;i=i+1) 1;", (False, False, True)),
        ("for (i=0;;i=i+1) 1;", (True, False, True)),
    ])
    def test_for_optional_clauses(self, source, present):
        stmt = parse_source(source).statements[0]
        clauses = (stmt.initializer, stmt.condition, stmt.update)
        assert tuple(c is not None for c in clauses) == present

    def test_block(self):
        stmt = parse_source("{ a = 1; b = 2; }").statements[0]
        assert isinstance(stmt, BlockStatement)
        assert len(stmt.statements) == 2

    def test_empty_block(self):
        assert canonical("{}") == "{ }"

    def test_nested_blocks(self):
        assert canonical("{ a = 1; { } { b; } }") == "{ (a = 1); { } { b; } }"

    def test_loop_with_block_body(self):
        assert canonical("while (a) { a = a - 1; b = b + 1; }") == \
            "while (a) { (a = (a - 1)); (b = (b + 1)); }"


# =============================================================================
# Round Trip Tests
# =============================================================================

class TestRoundTrip:
    """Canonical text re-parses and prints identically."""

    @pytest.mark.parametrize("source", [
        "1+2*3-4/2;",
        "-1+2; +3;",
        "a>=b; a>b;",
        "x=1;while(x<10) x=x+1; return x;",
        "x=0;for(i=0;i<5;i=i+1) x=x+i; return x;",
        "if (a) if (b) c; else d;",
        "if (a) { b; } else { c; d; }",
        "for (;;) { return 1; }",
        "a=b=c=0;",
    ])
    def test_round_trip(self, source):
        first = canonical(source)
        assert canonical(first) == first

    def test_swap_can_change_first_appearance(self):
        # The printed "b < a" names b first, so the slots are reassigned
        first = canonical("a>=b; a>b;")
        assert first == "(b <= a); (b < a);"
        assert [v.name for v in parse_source(first).locals] == ["b", "a"]
        assert canonical(first) == first


# =============================================================================
# Error Tests
# =============================================================================

class TestErrors:
    """Parse errors are structured and carry the expected set and actual token."""

    def test_unexpected_semicolon(self):
        with pytest.raises(UnexpectedTokenError) as exc_info:
            parse_source("1+;")
        error = exc_info.value
        assert error.actual == Token(TokenType.SEMICOLON, ";")
        assert TokenType.NUMBER in error.expected
        assert TokenType.IDENTIFIER in error.expected
        assert TokenType.LPAREN in error.expected
        assert "unexpected token ';'" in str(error)
        assert "expected number, identifier or '('" in str(error)

    def test_unexpected_end_after_operator(self):
        """'1+' fails the same way as '1+;', reporting end of input."""
        with pytest.raises(UnexpectedTokenError) as exc_info:
            parse_source("1+")
        assert exc_info.value.actual.type == TokenType.EOF
        assert "unexpected end of input" in str(exc_info.value)

    def test_missing_semicolon(self):
        with pytest.raises(UnexpectedEOFError) as exc_info:
            parse_source("1")
        assert exc_info.value.expected == (TokenType.SEMICOLON,)

    def test_unterminated_block(self):
        with pytest.raises(UnexpectedEOFError) as exc_info:
            parse_source("{ a = 1;")
        assert exc_info.value.expected == (TokenType.RBRACE,)

    def test_missing_close_paren(self):
        with pytest.raises(UnexpectedTokenError) as exc_info:
            parse_source("if (1 2;")
        assert exc_info.value.expected == (TokenType.RPAREN,)
        assert exc_info.value.actual == Token(TokenType.NUMBER, 2)

    def test_stray_close_brace(self):
        with pytest.raises(UnexpectedTokenError):
            parse_source("}")

    def test_else_without_if(self):
        with pytest.raises(UnexpectedTokenError):
            parse_source("else 1;")

    def test_for_missing_semicolons(self):
        with pytest.raises(UnexpectedTokenError):
            parse_source("for (i = 0) 1;")

    def test_empty_token_list(self):
        with pytest.raises(NotEnoughTokensError):
            Parser([]).parse()

    def test_token_list_without_eof(self):
        tokens = [Token(TokenType.NUMBER, 1)]
        with pytest.raises(NotEnoughTokensError):
            Parser(tokens).parse()

    def test_parser_accepts_lexer_output(self):
        program = Parser(tokenize("a = 1;")).parse()
        assert len(program.locals) == 1

    def test_errors_are_parse_errors(self):
        for source in ["1+;", "1", "(", "return;", "while 1;"]:
            with pytest.raises(ParseError):
                parse_source(source)

    def test_error_source_context(self):
        with pytest.raises(UnexpectedTokenError) as exc_info:
            parse_source("a = 1;\nb = * 2;")
        message = str(exc_info.value)
        assert message.startswith("<input>:2:5: error:")
        assert "    b = * 2;" in message

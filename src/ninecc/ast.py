"""
ninecc Abstract Syntax Tree (AST) Definitions
=============================================

This module defines the AST node types built by the parser and
consumed by the code generator.

Node Hierarchy
--------------
ASTNode (base)
├── ProgramNode - ordered top-level statements plus the locals table
├── Statements
│   ├── BlockStatement - { statement* }
│   ├── ExpressionStatement - expression ';'
│   ├── ReturnStatement - return expression ';'
│   ├── IfStatement - if/else
│   ├── WhileStatement - while loop
│   └── ForStatement - for loop with optional clauses
└── Expressions
    ├── NumberLiteral - integer constant
    ├── VariableExpression - reference to a LocalVar
    ├── AssignmentExpression - variable '=' expression
    └── BinaryExpression - + - * / < <= == !=

Design Notes
------------
- All nodes are frozen dataclasses; a node owns its children outright,
  so the tree never shares or cycles.
- '>' and '>=' have no node of their own: the parser swaps the operands
  and builds '<' / '<=' instead.
- Unary minus is '(0 - x)', unary plus is dropped.
- Locations are kept for diagnostics and ignored by equality.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ninecc.errors import SourceLocation
from ninecc.symbols import LocalVar, frame_size_for


# =============================================================================
# AST Node Base Classes
# =============================================================================

@dataclass(frozen=True)
class ASTNode:
    """
    Base class for all AST nodes.

    Attributes:
        location: Source location where this node starts
    """
    location: Optional[SourceLocation] = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return format_node(self)


@dataclass(frozen=True)
class Expression(ASTNode):
    """Base class for nodes that leave one value on the evaluation stack."""
    pass


@dataclass(frozen=True)
class Statement(ASTNode):
    """Base class for nodes that leave the evaluation stack unchanged."""
    pass


# =============================================================================
# Expression Nodes
# =============================================================================

class BinaryOperator(Enum):
    """Binary operator types, valued by their source spelling."""

    # Arithmetic
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"

    # Comparison (> and >= are rewritten by the parser)
    LESS = "<"
    LESS_EQ = "<="
    EQUAL = "=="
    NOT_EQUAL = "!="

    @property
    def symbol(self) -> str:
        return self.value

    @property
    def is_comparison(self) -> bool:
        return self in (
            BinaryOperator.LESS,
            BinaryOperator.LESS_EQ,
            BinaryOperator.EQUAL,
            BinaryOperator.NOT_EQUAL,
        )


@dataclass(frozen=True)
class NumberLiteral(Expression):
    """
    Integer literal expression.

    Attributes:
        value: The literal value (0 .. 2**32-1)
    """
    value: int = 0


@dataclass(frozen=True)
class VariableExpression(Expression):
    """
    Variable reference. Also the only addressable expression.

    Attributes:
        var: The resolved frame slot
    """
    var: LocalVar = None

    @property
    def name(self) -> str:
        return self.var.name


@dataclass(frozen=True)
class AssignmentExpression(Expression):
    """
    Assignment expression (variable = value); yields the stored value.

    Attributes:
        target: The variable being written
        value: The value to assign
    """
    target: VariableExpression = None
    value: Expression = None


@dataclass(frozen=True)
class BinaryExpression(Expression):
    """
    Binary operation expression (left op right).

    Attributes:
        operator: The binary operator
        left: Left operand expression
        right: Right operand expression
    """
    operator: BinaryOperator = None
    left: Expression = None
    right: Expression = None


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass(frozen=True)
class ExpressionStatement(Statement):
    """
    Expression used as a statement; its value is discarded.

    Attributes:
        expression: The expression
    """
    expression: Expression = None


@dataclass(frozen=True)
class ReturnStatement(Statement):
    """
    Return statement.

    Attributes:
        value: The returned expression
    """
    value: Expression = None


@dataclass(frozen=True)
class IfStatement(Statement):
    """
    If statement with optional else clause.

    Attributes:
        condition: The condition expression (zero is false)
        then_branch: Statement executed if condition is true
        else_branch: Optional statement executed if condition is false
    """
    condition: Expression = None
    then_branch: Statement = None
    else_branch: Optional[Statement] = None


@dataclass(frozen=True)
class WhileStatement(Statement):
    """
    While loop statement.

    Attributes:
        condition: Loop condition
        body: Loop body statement
    """
    condition: Expression = None
    body: Statement = None


@dataclass(frozen=True)
class ForStatement(Statement):
    """
    For loop statement. Every clause is optional.

    An absent condition is not replaced by a constant: the loop simply
    has no exit test and only a return leaves it.

    Attributes:
        initializer: Evaluated once before the loop
        condition: Tested before each iteration
        update: Evaluated after each iteration
        body: Loop body statement
    """
    initializer: Optional[Expression] = None
    condition: Optional[Expression] = None
    update: Optional[Expression] = None
    body: Statement = None


@dataclass(frozen=True)
class BlockStatement(Statement):
    """
    Block statement enclosed in braces.

    Attributes:
        statements: Statements in the block, in order
    """
    statements: tuple[Statement, ...] = ()


# =============================================================================
# Program Root Node
# =============================================================================

@dataclass(frozen=True)
class ProgramNode(ASTNode):
    """
    Root node: one translation unit, compiled into main.

    Attributes:
        statements: Top-level statements in source order
        locals: Every variable of the program, in order of first appearance
    """
    statements: tuple[Statement, ...] = ()
    locals: tuple[LocalVar, ...] = ()


# =============================================================================
# AST Visitor Pattern
# =============================================================================

class ASTVisitor:
    """
    Base class for AST visitors.

    Subclasses override visit_* methods for the node types they care
    about; everything else falls through to generic_visit, which walks
    the children.
    """

    def visit(self, node: ASTNode) -> Any:
        method_name = f"visit_{node.__class__.__name__}"
        visitor = getattr(self, method_name, self.generic_visit)
        return visitor(node)

    def generic_visit(self, node: ASTNode) -> None:
        for value in node.__dict__.values():
            if isinstance(value, ASTNode):
                self.visit(value)
            elif isinstance(value, tuple):
                for item in value:
                    if isinstance(item, ASTNode):
                        self.visit(item)


# =============================================================================
# Canonical Source Printer
# =============================================================================

class SourcePrinter(ASTVisitor):
    """
    Renders a tree as fully parenthesised source text.

    The output is valid input for the parser, and printing the re-parsed
    tree gives back the same text:

        1+2*3-4/2;          ->  ((1 + (2 * 3)) - (4 / 2));
        x=1; if (x>1) x=0;  ->  (x = 1); if ((1 < x)) (x = 0);
    """

    def visit_ProgramNode(self, node: ProgramNode) -> str:
        return " ".join(self.visit(stmt) for stmt in node.statements)

    def visit_BlockStatement(self, node: BlockStatement) -> str:
        if not node.statements:
            return "{ }"
        inner = " ".join(self.visit(stmt) for stmt in node.statements)
        return f"{{ {inner} }}"

    def visit_ExpressionStatement(self, node: ExpressionStatement) -> str:
        return f"{self.visit(node.expression)};"

    def visit_ReturnStatement(self, node: ReturnStatement) -> str:
        return f"return {self.visit(node.value)};"

    def visit_IfStatement(self, node: IfStatement) -> str:
        text = f"if ({self.visit(node.condition)}) {self.visit(node.then_branch)}"
        if node.else_branch is not None:
            text += f" else {self.visit(node.else_branch)}"
        return text

    def visit_WhileStatement(self, node: WhileStatement) -> str:
        return f"while ({self.visit(node.condition)}) {self.visit(node.body)}"

    def visit_ForStatement(self, node: ForStatement) -> str:
        clauses = [
            self.visit(clause) if clause is not None else ""
            for clause in (node.initializer, node.condition, node.update)
        ]
        return f"for ({clauses[0]}; {clauses[1]}; {clauses[2]}) {self.visit(node.body)}"

    def visit_NumberLiteral(self, node: NumberLiteral) -> str:
        return str(node.value)

    def visit_VariableExpression(self, node: VariableExpression) -> str:
        return node.name

    def visit_AssignmentExpression(self, node: AssignmentExpression) -> str:
        return f"({self.visit(node.target)} = {self.visit(node.value)})"

    def visit_BinaryExpression(self, node: BinaryExpression) -> str:
        return f"({self.visit(node.left)} {node.operator.symbol} {self.visit(node.right)})"

    def generic_visit(self, node: ASTNode) -> str:
        return f"<{type(node).__name__}>"


def format_node(node: ASTNode) -> str:
    """Canonical source text of any node."""
    return SourcePrinter().visit(node)


def format_program(program: ProgramNode) -> str:
    """Canonical source text of a whole program."""
    return SourcePrinter().visit(program)


# =============================================================================
# Tree Printer
# =============================================================================

class ASTPrinter(ASTVisitor):
    """
    Pretty printer for AST debugging.

    Variables are shown with their frame slot:

        Program (2 locals, frame 16 bytes)
          Expr: (x[rbp-8] = 1)
          While ((x[rbp-8] < 10))
            Expr: (x[rbp-8] = (x[rbp-8] + 1))

    Usage:
        printer = ASTPrinter()
        print(printer.print(program))
    """

    def __init__(self):
        self.output: list[str] = []
        self.indent_level = 0

    def print(self, node: ASTNode) -> str:
        """Print the AST and return it as a string."""
        self.output = []
        self.indent_level = 0
        self.visit(node)
        return "\n".join(self.output)

    def _emit(self, text: str) -> None:
        indent = "  " * self.indent_level
        self.output.append(f"{indent}{text}")

    def _nested(self, node: ASTNode) -> None:
        self.indent_level += 1
        self.visit(node)
        self.indent_level -= 1

    def visit_ProgramNode(self, node: ProgramNode):
        count = len(node.locals)
        word = "local" if count == 1 else "locals"
        self._emit(f"Program ({count} {word}, frame {frame_size_for(count)} bytes)")
        for stmt in node.statements:
            self._nested(stmt)

    def visit_BlockStatement(self, node: BlockStatement):
        self._emit("Block")
        for stmt in node.statements:
            self._nested(stmt)

    def visit_ExpressionStatement(self, node: ExpressionStatement):
        self._emit(f"Expr: {self._expr_str(node.expression)}")

    def visit_ReturnStatement(self, node: ReturnStatement):
        self._emit(f"Return {self._expr_str(node.value)}")

    def visit_IfStatement(self, node: IfStatement):
        self._emit(f"If ({self._expr_str(node.condition)})")
        self.indent_level += 1
        self._emit("Then:")
        self._nested(node.then_branch)
        if node.else_branch is not None:
            self._emit("Else:")
            self._nested(node.else_branch)
        self.indent_level -= 1

    def visit_WhileStatement(self, node: WhileStatement):
        self._emit(f"While ({self._expr_str(node.condition)})")
        self._nested(node.body)

    def visit_ForStatement(self, node: ForStatement):
        init = self._expr_str(node.initializer)
        cond = self._expr_str(node.condition)
        update = self._expr_str(node.update)
        self._emit(f"For ({init}; {cond}; {update})")
        self._nested(node.body)

    def _expr_str(self, expr: Optional[Expression]) -> str:
        """Convert expression to string, showing variable slots."""
        if expr is None:
            return ""
        if isinstance(expr, NumberLiteral):
            return str(expr.value)
        if isinstance(expr, VariableExpression):
            return str(expr.var)
        if isinstance(expr, AssignmentExpression):
            return f"({self._expr_str(expr.target)} = {self._expr_str(expr.value)})"
        if isinstance(expr, BinaryExpression):
            return f"({self._expr_str(expr.left)} {expr.operator.symbol} {self._expr_str(expr.right)})"
        return f"<{type(expr).__name__}>"

"""
ninecc - A Tiny C Subset Compiler for x86-64
============================================

ninecc compiles a small imperative subset of C into x86-64 assembly in
Intel syntax. A whole program is one source string; its statements
become the body of ``main``.

Pipeline
--------
    Source → Lexer → Parser (+ symbol table) → AST → Code Generator → Assembly

The assembly is linked with the system C compiler, or run directly by
the bundled simulator.

Usage
-----
>>> from ninecc import compile_program
>>> asm = compile_program("a = 3; b = 4; return a * b;")

Language Subset
---------------
- Unsigned decimal literals up to 2**32-1, 64-bit signed arithmetic
- Operators: + - * / == != < <= > >= = and unary + -
- Statements: expression, return, if/else, while, for, { ... }
- Local variables, implicitly declared on first use

Author: ninecc contributors
"""

# =============================================================================
# Version Information
# =============================================================================

__version__ = "0.1.0"
__author__ = "ninecc contributors"

# =============================================================================
# Public API Imports
# =============================================================================

from ninecc.compiler import (
    Compiler,
    CompilerOptions,
    CompilerResult,
    compile_program,
    compile_to,
    compile_and_run,
)
from ninecc.errors import (
    NineccError,
    SourceLocation,
    LexError,
    InvalidCharacterError,
    MalformedOperatorError,
    LiteralTooLargeError,
    ParseError,
    UnexpectedTokenError,
    UnexpectedEOFError,
    NotEnoughTokensError,
    InvalidAssignmentTargetError,
    CodeGenError,
    FrameOverflowError,
    SimulationError,
)
from ninecc.lexer import Lexer, Token, TokenType, tokenize
from ninecc.parser import Parser, parse_source
from ninecc.symbols import LocalVar, SymbolTable
from ninecc.codegen import CodeGenerator
from ninecc.simulator import Simulator, SimulationResult, run_assembly
from ninecc.ast import (
    ASTNode,
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
    ASTPrinter,
    format_program,
)

__all__ = [
    # Version
    "__version__",
    # Main API
    "Compiler",
    "CompilerOptions",
    "CompilerResult",
    "compile_program",
    "compile_to",
    "compile_and_run",
    # Errors
    "NineccError",
    "SourceLocation",
    "LexError",
    "InvalidCharacterError",
    "MalformedOperatorError",
    "LiteralTooLargeError",
    "ParseError",
    "UnexpectedTokenError",
    "UnexpectedEOFError",
    "NotEnoughTokensError",
    "InvalidAssignmentTargetError",
    "CodeGenError",
    "FrameOverflowError",
    "SimulationError",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    # Parser
    "Parser",
    "parse_source",
    "LocalVar",
    "SymbolTable",
    # Code generation and simulation
    "CodeGenerator",
    "Simulator",
    "SimulationResult",
    "run_assembly",
    # AST
    "ASTNode",
    "ProgramNode",
    "BlockStatement",
    "ExpressionStatement",
    "ReturnStatement",
    "IfStatement",
    "WhileStatement",
    "ForStatement",
    "NumberLiteral",
    "VariableExpression",
    "AssignmentExpression",
    "BinaryExpression",
    "BinaryOperator",
    "ASTPrinter",
    "format_program",
]

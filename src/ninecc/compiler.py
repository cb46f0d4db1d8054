"""
ninecc Compiler Driver
======================

This module ties the pipeline stages together:

    Source → Lex → Parse (+ resolve locals) → Generate → Assembly

Usage
-----
Command line:
    $ ninecc "a = 3; b = 4; return a * b;" > prog.s
    $ cc -o prog prog.s && ./prog; echo $?
    12

Programmatic:
    >>> from ninecc.compiler import compile_program
    >>> asm = compile_program("return 42;")

Error Handling
--------------
Compilation stops at the first error. Every failure is raised as a
NineccError subclass and no assembly is produced for a failed program:
compile_to() writes to its stream only after the whole pipeline has
succeeded.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, TextIO
import logging
import os

from ninecc.lexer import Lexer, Token
from ninecc.parser import Parser
from ninecc.codegen import CodeGenerator
from ninecc.simulator import Simulator, SimulationResult, DEFAULT_MAX_STEPS
from ninecc.symbols import LocalVar, frame_size_for
from ninecc.ast import ProgramNode

logger = logging.getLogger(__name__)


_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        frame_size: Bytes reserved for locals. None sizes the frame from
                    the program (8 bytes per variable, 16-byte aligned);
                    an integer pins it, and a program that needs more
                    storage fails with FrameOverflowError.
        emit_comments: Annotate the assembly with '#' comments
        max_steps: Instruction budget when running programs in the simulator
    """
    frame_size: Optional[int] = None
    emit_comments: bool = False
    max_steps: int = DEFAULT_MAX_STEPS

    @classmethod
    def from_env(cls) -> "CompilerOptions":
        """
        Create CompilerOptions from environment variables.

        Environment variables (all optional):
            NINECC_FRAME_SIZE: Fixed frame size in bytes (integer)
            NINECC_EMIT_COMMENTS: "1", "true", "yes" or "on" to annotate output
            NINECC_MAX_STEPS: Simulator instruction budget (integer)

        Invalid integers are logged and ignored.
        """
        options = cls()

        if frame_size := os.environ.get("NINECC_FRAME_SIZE"):
            try:
                options.frame_size = int(frame_size)
            except ValueError:
                logger.warning(f"Ignoring invalid NINECC_FRAME_SIZE={frame_size!r}")

        if emit_comments := os.environ.get("NINECC_EMIT_COMMENTS"):
            options.emit_comments = emit_comments.strip().lower() in _TRUE_VALUES

        if max_steps := os.environ.get("NINECC_MAX_STEPS"):
            try:
                options.max_steps = int(max_steps)
            except ValueError:
                logger.warning(f"Ignoring invalid NINECC_MAX_STEPS={max_steps!r}")

        return options


@dataclass
class CompilerResult:
    """
    Result of a successful compilation.

    Attributes:
        filename: Source name used in diagnostics
        assembly: Generated assembly text
        tokens: Token list, ending with EOF
        ast: The parsed program
        frame_size: Bytes reserved for locals in the prologue
    """
    filename: str = "<input>"
    assembly: str = ""
    tokens: list[Token] = field(default_factory=list)
    ast: Optional[ProgramNode] = None
    frame_size: int = 0

    @property
    def locals(self) -> tuple[LocalVar, ...]:
        """Local variables in order of first appearance."""
        return self.ast.locals if self.ast is not None else ()


class Compiler:
    """
    Compiles one source string into one assembly unit.

    Example:
        compiler = Compiler(CompilerOptions(emit_comments=True))
        result = compiler.compile_source("x = 2; return x + 1;")
        print(result.assembly)

    Attributes:
        options: Compiler configuration options
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        self.options = options or CompilerOptions()

    def compile_source(self, source: str, filename: str = "<input>") -> CompilerResult:
        """
        Compile source text to assembly.

        Raises:
            NineccError: If any stage fails
        """
        result = CompilerResult(filename=filename)

        # Stage 1: Lexical analysis
        result.tokens = self._lex(source, filename)

        # Stage 2: Parsing and symbol resolution
        result.ast = self._parse(result.tokens, source.splitlines())

        # Stage 3: Code generation
        result.assembly = self._generate(result.ast)

        if self.options.frame_size is None:
            result.frame_size = frame_size_for(len(result.ast.locals))
        else:
            result.frame_size = self.options.frame_size

        logger.info(
            f"Compiled {filename}: {len(result.ast.statements)} statements, "
            f"{len(result.locals)} locals"
        )
        return result

    def compile_file(self, filepath: str) -> CompilerResult:
        """
        Compile a source file.

        Raises:
            NineccError: If compilation fails
            FileNotFoundError: If the source file does not exist
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        return self.compile_source(path.read_text(encoding="utf-8"), str(filepath))

    def run(self, source: str, filename: str = "<input>") -> SimulationResult:
        """Compile source and execute it in the simulator."""
        result = self.compile_source(source, filename)
        return Simulator(max_steps=self.options.max_steps).run(result.assembly)

    def _lex(self, source: str, filename: str) -> list[Token]:
        return list(Lexer(source, filename).tokenize())

    def _parse(self, tokens: list[Token], source_lines: list[str]) -> ProgramNode:
        return Parser(tokens, source_lines).parse()

    def _generate(self, ast: ProgramNode) -> str:
        generator = CodeGenerator(
            frame_size=self.options.frame_size,
            emit_comments=self.options.emit_comments,
        )
        return generator.generate(ast)


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_program(source: str, filename: str = "<input>") -> str:
    """
    Compile source text to assembly with default options.

    Raises:
        NineccError: If compilation fails

    Example:
        >>> print(compile_program("1+2;"))
        .intel_syntax noprefix
        .globl main
        main:
        ...
    """
    return Compiler().compile_source(source, filename).assembly


def compile_to(
    source: str,
    stream: TextIO,
    options: Optional[CompilerOptions] = None,
    filename: str = "<input>",
) -> CompilerResult:
    """
    Compile source and write the assembly to stream.

    The stream is only written once the whole pipeline has succeeded, so
    a failed compilation leaves it untouched. OSError from the stream
    propagates unchanged.
    """
    result = Compiler(options).compile_source(source, filename)
    stream.write(result.assembly)
    return result


def compile_and_run(source: str, max_steps: int = DEFAULT_MAX_STEPS) -> SimulationResult:
    """Compile source and run it in the simulator."""
    return Compiler(CompilerOptions(max_steps=max_steps)).run(source)

"""
Code Generator Test Suite
=========================

Tests for the x86-64 assembly output: program structure, frame sizing,
instruction sequences per node kind, control flow labels and stack
discipline.
"""

import io

import pytest
from ninecc.parser import parse_source
from ninecc.codegen import CodeGenerator, generate
from ninecc.ast import (
    ProgramNode,
    ExpressionStatement,
    AssignmentExpression,
    NumberLiteral,
)
from ninecc.errors import (
    CodeGenError,
    FrameOverflowError,
    InvalidAssignmentTargetError,
)


def asm(source: str, **kwargs) -> str:
    return CodeGenerator(**kwargs).generate(parse_source(source))


def asm_lines(source: str, **kwargs) -> list[str]:
    return asm(source, **kwargs).splitlines()


def body_lines(source: str) -> list[str]:
    """Instructions between the prologue and the final epilogue."""
    lines = asm_lines(source)
    start = next(i for i, line in enumerate(lines) if line.startswith("  sub rsp,"))
    return lines[start + 1:-3]


# =============================================================================
# Program Structure Tests
# =============================================================================

class TestProgramStructure:
    """Preamble, prologue and epilogue."""

    def test_single_literal(self):
        assert asm("42;") == "\n".join([
            ".intel_syntax noprefix",
            ".globl main",
            "main:",
            "  push rbp",
            "  mov rbp, rsp",
            "  sub rsp, 0",
            "  push 42",
            "  pop rax",
            "  mov rsp, rbp",
            "  pop rbp",
            "  ret",
        ]) + "\n"

    def test_empty_program(self):
        lines = asm_lines("")
        assert lines[:3] == [".intel_syntax noprefix", ".globl main", "main:"]
        assert lines[-3:] == ["  mov rsp, rbp", "  pop rbp", "  ret"]

    def test_output_ends_with_newline(self):
        assert asm("1;").endswith("  ret\n")

    def test_generate_is_repeatable(self):
        program = parse_source("if (1) 2; while (0) 3;")
        generator = CodeGenerator()
        assert generator.generate(program) == generator.generate(program)

    def test_convenience_function(self):
        program = parse_source("a = 1;")
        assert generate(program) == CodeGenerator().generate(program)

    def test_write_to_stream(self):
        stream = io.StringIO()
        program = parse_source("return 3;")
        CodeGenerator().write(program, stream)
        assert stream.getvalue() == generate(program)


# =============================================================================
# Frame Tests
# =============================================================================

class TestFrame:
    """The frame is sized from the program unless pinned."""

    @pytest.mark.parametrize("source, frame", [
        ("1;", 0),
        ("a = 1;", 16),
        ("a = 1; b = 2;", 16),
        ("a = 1; b = 2; c = 3;", 32),
        ("a; b; c; d; e;", 48),
    ])
    def test_frame_from_locals(self, source, frame):
        assert f"  sub rsp, {frame}" in asm_lines(source)

    def test_fixed_frame(self):
        assert "  sub rsp, 208" in asm_lines("a = 1;", frame_size=208)

    def test_fixed_frame_exactly_full(self):
        assert "  sub rsp, 16" in asm_lines("a = 1; b = 2;", frame_size=16)

    def test_fixed_frame_overflow(self):
        with pytest.raises(FrameOverflowError) as exc_info:
            asm("a = 1; b = 2;", frame_size=8)
        assert exc_info.value.required == 16
        assert exc_info.value.available == 8

    def test_many_locals_fit(self):
        """More variables than an old 208-byte frame could hold."""
        source = " ".join(f"v{i} = {i};" for i in range(40))
        assert "  sub rsp, 320" in asm_lines(source)


# =============================================================================
# Expression Tests
# =============================================================================

class TestExpressions:
    """Instruction sequences for each expression kind."""

    def test_addition(self):
        assert body_lines("1+2;") == [
            "  push 1",
            "  push 2",
            "  pop rdi",
            "  pop rax",
            "  add rax, rdi",
            "  push rax",
            "  pop rax",
        ]

    @pytest.mark.parametrize("source, instructions", [
        ("1-2;", ["sub rax, rdi"]),
        ("1*2;", ["imul rax, rdi"]),
        ("1/2;", ["cqo", "idiv rdi"]),
    ])
    def test_arithmetic(self, source, instructions):
        lines = body_lines(source)
        assert lines[4:4 + len(instructions)] == [f"  {i}" for i in instructions]

    @pytest.mark.parametrize("source, setcc", [
        ("1==2;", "sete"),
        ("1!=2;", "setne"),
        ("1<2;", "setl"),
        ("1<=2;", "setle"),
    ])
    def test_comparison(self, source, setcc):
        assert body_lines(source)[4:7] == [
            "  cmp rax, rdi",
            f"  {setcc} al",
            "  movzb rax, al",
        ]

    def test_greater_than_uses_swapped_less(self):
        assert asm("1>2;") == asm("2<1;")

    def test_largest_push_immediate(self):
        assert body_lines("2147483647;")[0] == "  push 2147483647"

    @pytest.mark.parametrize("value", [2147483648, 4294967295])
    def test_wide_literal_goes_through_rax(self, value):
        assert body_lines(f"{value};")[:3] == [
            f"  mov rax, {value}",
            "  push rax",
            "  pop rax",
        ]
        assert asm("1>=2;") == asm("2<=1;")

    def test_variable_read(self):
        assert body_lines("a;") == [
            "  mov rax, rbp",
            "  sub rax, 8",
            "  push rax",
            "  pop rax",
            "  mov rax, [rax]",
            "  push rax",
            "  pop rax",
        ]

    def test_assignment(self):
        assert body_lines("a = 5;") == [
            "  mov rax, rbp",
            "  sub rax, 8",
            "  push rax",
            "  push 5",
            "  pop rdi",
            "  pop rax",
            "  mov [rax], rdi",
            "  push rdi",
            "  pop rax",
        ]

    def test_second_variable_offset(self):
        assert "  sub rax, 16" in asm_lines("a = 1; b = 2;")

    def test_invalid_assignment_target(self):
        """Hand-built trees are checked again during generation."""
        program = ProgramNode(statements=(
            ExpressionStatement(expression=AssignmentExpression(
                target=NumberLiteral(value=1),
                value=NumberLiteral(value=2),
            )),
        ))
        with pytest.raises(InvalidAssignmentTargetError):
            CodeGenerator().generate(program)

    def test_unknown_statement(self):
        program = ProgramNode(statements=(NumberLiteral(value=1),))
        with pytest.raises(CodeGenError):
            CodeGenerator().generate(program)


# =============================================================================
# Control Flow Tests
# =============================================================================

class TestControlFlow:
    """Labels and jumps for return, if, while and for."""

    def test_return(self):
        assert body_lines("return 7;") == [
            "  push 7",
            "  pop rax",
            "  mov rsp, rbp",
            "  pop rbp",
            "  ret",
        ]

    def test_return_is_not_elided(self):
        """Code after a return is still emitted."""
        lines = body_lines("return 1; 2;")
        assert "  push 2" in lines

    def test_if_without_else(self):
        assert body_lines("if (1) 2;") == [
            "  push 1",
            "  pop rax",
            "  cmp rax, 0",
            "  je .Lend0",
            "  push 2",
            "  pop rax",
            ".Lend0:",
        ]

    def test_if_else(self):
        assert body_lines("if (1) 2; else 3;") == [
            "  push 1",
            "  pop rax",
            "  cmp rax, 0",
            "  je .Lelse0",
            "  push 2",
            "  pop rax",
            "  jmp .Lend0",
            ".Lelse0:",
            "  push 3",
            "  pop rax",
            ".Lend0:",
        ]

    def test_while(self):
        assert body_lines("while (0) 1;") == [
            ".Lbegin0:",
            "  push 0",
            "  pop rax",
            "  cmp rax, 0",
            "  je .Lend0",
            "  push 1",
            "  pop rax",
            "  jmp .Lbegin0",
            ".Lend0:",
        ]

    def test_for_all_clauses(self):
        lines = body_lines("for (1; 2; 3) 4;")
        assert lines == [
            "  push 1",
            "  pop rax",
            ".Lbegin0:",
            "  push 2",
            "  pop rax",
            "  cmp rax, 0",
            "  je .Lend0",
            "  push 4",
            "  pop rax",
            "  push 3",
            "  pop rax",
            "  jmp .Lbegin0",
            ".Lend0:",
        ]

    def test_for_without_condition_has_no_exit_test(self):
        lines = body_lines("for (;;) return 1;")
        assert lines == [
            ".Lbegin0:",
            "  push 1",
            "  pop rax",
            "  mov rsp, rbp",
            "  pop rbp",
            "  ret",
            "  jmp .Lbegin0",
            ".Lend0:",
        ]
        assert "  cmp rax, 0" not in lines

    def test_labels_are_unique(self):
        source = "if (1) 2; else 3; while (0) 1; for (;0;) 1; if (1) { if (2) 3; }"
        labels = [line for line in asm_lines(source) if line.startswith(".L")]
        assert len(labels) == len(set(labels))
        assert ".Lend0:" in labels
        assert ".Lbegin1:" in labels
        assert ".Lbegin2:" in labels
        assert ".Lend4:" in labels

    def test_nested_label_numbering(self):
        lines = asm_lines("while (1) if (0) 1;")
        assert ".Lbegin0:" in lines
        assert ".Lend1:" in lines
        assert lines.index(".Lend1:") < lines.index(".Lend0:")

    def test_counter_restarts_per_program(self):
        generator = CodeGenerator()
        generator.generate(parse_source("if (1) 2; if (3) 4;"))
        lines = generator.generate(parse_source("if (1) 2;")).splitlines()
        assert ".Lend0:" in lines
        assert ".Lend2:" not in lines


# =============================================================================
# Stack Discipline Tests
# =============================================================================

class TestStackDiscipline:
    """Straight-line statements leave the stack as they found it."""

    @pytest.mark.parametrize("source", [
        "1;",
        "a = 1; b = a * 2 + 3; a == b;",
        "{ a = 1; { b = 2; } }",
        "a = b = c = 4;",
    ])
    def test_pushes_match_pops(self, source):
        lines = body_lines(source)
        pushes = sum(1 for line in lines if line.startswith("  push"))
        pops = sum(1 for line in lines if line.startswith("  pop"))
        assert pushes == pops


# =============================================================================
# Comment Tests
# =============================================================================

class TestComments:
    """Optional '#' annotations."""

    def test_comments_off_by_default(self):
        assert "#" not in asm("if (1) 2; while (0) 1;")

    def test_comments_on(self):
        text = asm("a = 1; if (a) return a;", emit_comments=True)
        assert "  # prologue, 16 bytes of locals" in text
        assert "  # if condition" in text
        assert "  # return" in text
        assert "  # epilogue" in text

    def test_comments_do_not_change_instructions(self):
        source = "x = 0; for (i = 0; i < 5; i = i + 1) x = x + i; return x;"
        plain = asm_lines(source)
        commented = [
            line for line in asm_lines(source, emit_comments=True)
            if not line.lstrip().startswith("#")
        ]
        assert commented == plain

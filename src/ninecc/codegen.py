"""
x86-64 Code Generator
=====================

This module lowers the AST to x86-64 assembly in Intel syntax, ready for
the system assembler (``cc -o prog prog.s``).

Code Generation Strategy
------------------------
The generator is a plain stack machine:

1. Every expression leaves exactly one 8-byte value on the hardware stack.
   Literals too wide for push's 32-bit immediate are loaded through rax.
2. Binary operators pop the right operand into rdi and the left into rax,
   compute into rax and push the result.
3. Comparisons produce a canonical 0/1 through setCC + movzb.
4. Every statement leaves the stack as it found it; expression statements
   pop their value into rax.

Register Usage
--------------
| Register | Usage                                  |
|----------|----------------------------------------|
| rax      | Left operand, result, return value     |
| rdi      | Right operand, value being stored      |
| rbp      | Frame base, variables live below it    |
| rsp      | Top of the evaluation stack            |

Stack Frame Layout
------------------
    +----------------+ <- rsp on entry
    | Return address |
    +----------------+
    | Saved rbp      |
    +----------------+ <- rbp
    | var 1          |  [rbp-8]
    | var 2          |  [rbp-16]
    | ...            |
    +----------------+ <- rsp after prologue (16-byte aligned)
    | Temp values    |
    +----------------+

Control Flow Labels
-------------------
Each if/while/for takes one number N from a counter and uses .LbeginN,
.LelseN and .LendN. The counter belongs to one generate() call, so the
same program always produces the same text.

Example output for "a = 3; return a * 2;":

    .intel_syntax noprefix
    .globl main
    main:
      push rbp
      mov rbp, rsp
      sub rsp, 16
      mov rax, rbp
      sub rax, 8
      push rax
      push 3
      ...
"""

from typing import Optional, TextIO
import logging

from ninecc.ast import (
    ASTVisitor,
    ProgramNode,
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
from ninecc.symbols import LocalVar, frame_size_for
from ninecc.errors import (
    CodeGenError,
    FrameOverflowError,
    InvalidAssignmentTargetError,
)

logger = logging.getLogger(__name__)

# push takes a sign-extended 32-bit immediate
PUSH_IMMEDIATE_MAX = 0x7FFF_FFFF


# Instruction that computes rax = rax OP rdi
ARITHMETIC_INSTRUCTIONS: dict[BinaryOperator, list[str]] = {
    BinaryOperator.ADD: ["add rax, rdi"],
    BinaryOperator.SUBTRACT: ["sub rax, rdi"],
    BinaryOperator.MULTIPLY: ["imul rax, rdi"],
    BinaryOperator.DIVIDE: ["cqo", "idiv rdi"],
}

# setCC mnemonic for each comparison
SET_INSTRUCTIONS: dict[BinaryOperator, str] = {
    BinaryOperator.EQUAL: "sete",
    BinaryOperator.NOT_EQUAL: "setne",
    BinaryOperator.LESS: "setl",
    BinaryOperator.LESS_EQ: "setle",
}


class CodeGenerator(ASTVisitor):
    """
    Generates x86-64 assembly from a ProgramNode.

    Statements are lowered through visit_* methods; expressions go through
    _generate_expression, which always pushes exactly one value.

    Attributes:
        frame_size: Fixed frame in bytes, or None to size it from the
                    program's locals
        emit_comments: Annotate the output with '#' comments
    """

    def __init__(self, frame_size: Optional[int] = None, emit_comments: bool = False):
        self.frame_size = frame_size
        self.emit_comments = emit_comments

        self._output: list[str] = []
        self._label_counter: int = 0

    def generate(self, program: ProgramNode) -> str:
        """
        Generate assembly for a whole program.

        Args:
            program: Root of the tree, with its locals table

        Returns:
            Assembly text, one line per instruction, ending in a newline

        Raises:
            FrameOverflowError: If a fixed frame is too small for the locals
            InvalidAssignmentTargetError: If an assignment target is not a
                                          variable (hand-built trees only)
            CodeGenError: If the tree contains a node the generator does
                          not know
        """
        self._output = []
        self._label_counter = 0

        frame = self._frame_size(program.locals)

        self._emit_header()
        self._emit_prologue(frame)

        for stmt in program.statements:
            self.visit(stmt)

        self._emit_epilogue()

        logger.debug(
            f"Generated {len(self._output)} lines, frame {frame} bytes, "
            f"{self._label_counter} label groups"
        )
        return "\n".join(self._output) + "\n"

    def write(self, program: ProgramNode, stream: TextIO) -> None:
        """
        Generate assembly and write it to stream.

        Nothing is written unless generation succeeds. Errors raised by
        the stream itself propagate unchanged.
        """
        stream.write(self.generate(program))

    def _frame_size(self, local_vars: tuple[LocalVar, ...]) -> int:
        required = frame_size_for(len(local_vars))
        if self.frame_size is None:
            return required
        if required > self.frame_size:
            raise FrameOverflowError(required, self.frame_size)
        return self.frame_size

    # =========================================================================
    # Assembly Output Methods
    # =========================================================================

    def _emit(self, line: str) -> None:
        self._output.append(line)

    def _emit_instruction(self, instruction: str) -> None:
        self._emit(f"  {instruction}")

    def _emit_label(self, label: str) -> None:
        self._emit(f"{label}:")

    def _emit_comment(self, comment: str) -> None:
        if self.emit_comments:
            self._emit(f"  # {comment}")

    def _new_label_index(self) -> int:
        """Reserve a fresh number for one control construct's labels."""
        index = self._label_counter
        self._label_counter += 1
        return index

    # =========================================================================
    # Program Structure
    # =========================================================================

    def _emit_header(self) -> None:
        self._emit(".intel_syntax noprefix")
        self._emit(".globl main")
        self._emit_label("main")

    def _emit_prologue(self, frame: int) -> None:
        self._emit_comment(f"prologue, {frame} bytes of locals")
        self._emit_instruction("push rbp")
        self._emit_instruction("mov rbp, rsp")
        self._emit_instruction(f"sub rsp, {frame}")

    def _emit_epilogue(self) -> None:
        """Tear down the frame and return rax to the caller."""
        self._emit_comment("epilogue")
        self._emit_instruction("mov rsp, rbp")
        self._emit_instruction("pop rbp")
        self._emit_instruction("ret")

    # =========================================================================
    # Statement Generation
    # =========================================================================

    def visit_BlockStatement(self, node: BlockStatement) -> None:
        for stmt in node.statements:
            self.visit(stmt)

    def visit_ExpressionStatement(self, node: ExpressionStatement) -> None:
        self._generate_expression(node.expression)
        self._emit_instruction("pop rax")

    def visit_ReturnStatement(self, node: ReturnStatement) -> None:
        self._emit_comment("return")
        self._generate_expression(node.value)
        self._emit_instruction("pop rax")
        self._emit_epilogue()

    def visit_IfStatement(self, node: IfStatement) -> None:
        index = self._new_label_index()

        self._emit_comment("if condition")
        self._generate_condition(node.condition)

        if node.else_branch is None:
            self._emit_instruction(f"je .Lend{index}")
            self.visit(node.then_branch)
        else:
            self._emit_instruction(f"je .Lelse{index}")
            self.visit(node.then_branch)
            self._emit_instruction(f"jmp .Lend{index}")
            self._emit_label(f".Lelse{index}")
            self.visit(node.else_branch)

        self._emit_label(f".Lend{index}")

    def visit_WhileStatement(self, node: WhileStatement) -> None:
        index = self._new_label_index()

        self._emit_label(f".Lbegin{index}")
        self._emit_comment("while condition")
        self._generate_condition(node.condition)
        self._emit_instruction(f"je .Lend{index}")

        self.visit(node.body)

        self._emit_instruction(f"jmp .Lbegin{index}")
        self._emit_label(f".Lend{index}")

    def visit_ForStatement(self, node: ForStatement) -> None:
        """
        Generate a for loop.

        Absent clauses emit nothing at all; without a condition there is
        no exit test and the loop only ends through return.
        """
        if node.initializer is not None:
            self._emit_comment("for init")
            self._generate_expression(node.initializer)
            self._emit_instruction("pop rax")

        index = self._new_label_index()
        self._emit_label(f".Lbegin{index}")

        if node.condition is not None:
            self._emit_comment("for condition")
            self._generate_condition(node.condition)
            self._emit_instruction(f"je .Lend{index}")

        self.visit(node.body)

        if node.update is not None:
            self._emit_comment("for update")
            self._generate_expression(node.update)
            self._emit_instruction("pop rax")

        self._emit_instruction(f"jmp .Lbegin{index}")
        self._emit_label(f".Lend{index}")

    def _generate_condition(self, condition: Expression) -> None:
        """Evaluate condition and set ZF when it is zero (false)."""
        self._generate_expression(condition)
        self._emit_instruction("pop rax")
        self._emit_instruction("cmp rax, 0")

    def generic_visit(self, node) -> None:
        raise CodeGenError(f"cannot generate code for {type(node).__name__}")

    # =========================================================================
    # Expression Generation
    # =========================================================================

    def _generate_expression(self, expr: Expression) -> None:
        """Generate code that pushes the value of expr."""
        if isinstance(expr, NumberLiteral):
            self._generate_number(expr.value)
        elif isinstance(expr, VariableExpression):
            self._generate_address(expr)
            self._emit_instruction("pop rax")
            self._emit_instruction("mov rax, [rax]")
            self._emit_instruction("push rax")
        elif isinstance(expr, AssignmentExpression):
            self._generate_assignment(expr)
        elif isinstance(expr, BinaryExpression):
            self._generate_binary(expr)
        else:
            raise CodeGenError(f"cannot generate code for {type(expr).__name__}")

    def _generate_number(self, value: int) -> None:
        if value > PUSH_IMMEDIATE_MAX:
            self._emit_instruction(f"mov rax, {value}")
            self._emit_instruction("push rax")
        else:
            self._emit_instruction(f"push {value}")

    def _generate_address(self, expr: Expression) -> None:
        """Push the frame address of a variable."""
        if not isinstance(expr, VariableExpression):
            raise InvalidAssignmentTargetError(expr.location)
        self._emit_instruction("mov rax, rbp")
        self._emit_instruction(f"sub rax, {expr.var.offset}")
        self._emit_instruction("push rax")

    def _generate_assignment(self, expr: AssignmentExpression) -> None:
        """Store the value and push it again as the expression's result."""
        self._generate_address(expr.target)
        self._generate_expression(expr.value)
        self._emit_instruction("pop rdi")
        self._emit_instruction("pop rax")
        self._emit_instruction("mov [rax], rdi")
        self._emit_instruction("push rdi")

    def _generate_binary(self, expr: BinaryExpression) -> None:
        self._generate_expression(expr.left)
        self._generate_expression(expr.right)
        self._emit_instruction("pop rdi")
        self._emit_instruction("pop rax")

        op = expr.operator
        if op in ARITHMETIC_INSTRUCTIONS:
            for instruction in ARITHMETIC_INSTRUCTIONS[op]:
                self._emit_instruction(instruction)
        elif op in SET_INSTRUCTIONS:
            self._emit_instruction("cmp rax, rdi")
            self._emit_instruction(f"{SET_INSTRUCTIONS[op]} al")
            self._emit_instruction("movzb rax, al")
        else:
            raise CodeGenError(f"unsupported operator '{op.symbol}'")

        self._emit_instruction("push rax")


# =============================================================================
# Convenience Functions
# =============================================================================

def generate(program: ProgramNode, frame_size: Optional[int] = None) -> str:
    """Generate assembly text for program with default settings."""
    return CodeGenerator(frame_size=frame_size).generate(program)

"""
x86-64 Subset Simulator
=======================

Runs the assembly produced by the code generator without an external
assembler. Only the instructions the generator emits are understood:

    push pop mov add sub imul cqo idiv cmp
    sete setne setl setle movzb je jmp ret

plus labels, directives and '#' comments. Registers are 64 bits wide and
wrap around; comparisons, multiplication and division are signed.
As on the real machine, a 'push' immediate is a sign-extended 32-bit
value; wider constants must go through a register.

Execution starts at 'main' with a sentinel return address on the stack.
When main returns to it, the value in rax is the program's result and
``rax & 0xFF`` is the exit status a real process would report.

Memory is a sparse map of 8-byte words. Reading a word that was never
written yields 0.

Example:
    >>> from ninecc.compiler import compile_program
    >>> from ninecc.simulator import run_assembly
    >>> run_assembly(compile_program("a = 6; return a * 7;")).exit_status
    42
"""

from dataclasses import dataclass, field
import logging

from ninecc.errors import SimulationError

logger = logging.getLogger(__name__)

# Default instruction budget for one run
DEFAULT_MAX_STEPS = 1_000_000

# Initial stack pointer; the stack grows down from here
STACK_TOP = 0x7FFF_FFF0

# Return address pushed before main is entered
RETURN_SENTINEL = -1

WORD_MASK = (1 << 64) - 1
SIGN_BIT = 1 << 63

# Range of the sign-extended immediate accepted by push
IMM32_MIN = -(1 << 31)
IMM32_MAX = (1 << 31) - 1

REGISTERS = ("rax", "rdi", "rdx", "rbp", "rsp")

SET_CONDITIONS = {
    "sete": lambda left, right: left == right,
    "setne": lambda left, right: left != right,
    "setl": lambda left, right: left < right,
    "setle": lambda left, right: left <= right,
}


def to_signed(value: int) -> int:
    """Interpret a 64-bit pattern as a signed integer."""
    value &= WORD_MASK
    return value - (1 << 64) if value & SIGN_BIT else value


@dataclass(frozen=True)
class Instruction:
    """One parsed instruction and the assembly line it came from."""
    mnemonic: str
    operands: tuple[str, ...]
    line: int


@dataclass
class MachineState:
    """
    Register file, flags and memory of the simulated machine.

    Register values are unsigned 64-bit patterns. The last 'cmp' is kept
    as its two signed operands; setCC and je are evaluated from them.
    """
    registers: dict[str, int] = field(default_factory=lambda: dict.fromkeys(REGISTERS, 0))
    memory: dict[int, int] = field(default_factory=dict)
    compared: tuple[int, int] = (0, 0)
    pc: int = 0


@dataclass(frozen=True)
class SimulationResult:
    """
    Outcome of running a program.

    Attributes:
        return_value: Signed value of rax when main returned
        steps: Number of instructions executed
    """
    return_value: int
    steps: int

    @property
    def exit_status(self) -> int:
        """Status a shell would see for this return value."""
        return self.return_value & 0xFF


def parse_assembly(text: str) -> tuple[list[Instruction], dict[str, int]]:
    """
    Split assembly text into instructions and a label table.

    Returns:
        (instructions, labels) where labels maps a label name to the index
        of the instruction that follows it
    """
    instructions: list[Instruction] = []
    labels: dict[str, int] = {}

    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue

        if line.endswith(":"):
            labels[line[:-1]] = len(instructions)
            continue

        # Directives (.intel_syntax, .globl) carry no behaviour
        if line.startswith("."):
            continue

        mnemonic, _, rest = line.partition(" ")
        operands = tuple(op.strip() for op in rest.split(",")) if rest.strip() else ()
        instructions.append(Instruction(mnemonic.lower(), operands, line_number))

    return instructions, labels


class Simulator:
    """
    Interpreter for generated assembly.

    Usage:
        result = Simulator(max_steps=10_000).run(assembly_text)
        print(result.exit_status)
    """

    def __init__(self, max_steps: int = DEFAULT_MAX_STEPS):
        self.max_steps = max_steps
        self.state = MachineState()

        self._instructions: list[Instruction] = []
        self._labels: dict[str, int] = {}

    def run(self, text: str, entry: str = "main") -> SimulationResult:
        """
        Execute text from entry until entry returns.

        Raises:
            SimulationError: On unsupported instructions, unknown labels,
                             division by zero, or when max_steps is exceeded
        """
        self._instructions, self._labels = parse_assembly(text)
        if entry not in self._labels:
            raise SimulationError(f"entry point '{entry}' not found")

        self.state = MachineState()
        self.state.registers["rsp"] = STACK_TOP
        self._push(RETURN_SENTINEL & WORD_MASK)
        self.state.pc = self._labels[entry]

        steps = 0
        while True:
            if self.state.pc >= len(self._instructions):
                raise SimulationError("execution ran past the last instruction")
            if steps >= self.max_steps:
                raise SimulationError(
                    f"step limit of {self.max_steps} exceeded",
                    line=self._instructions[self.state.pc].line,
                    hint="the program may not terminate",
                )

            instruction = self._instructions[self.state.pc]
            self.state.pc += 1
            steps += 1

            if self._execute(instruction):
                break

        result = SimulationResult(to_signed(self.state.registers["rax"]), steps)
        logger.debug(f"Simulation finished after {steps} steps, rax={result.return_value}")
        return result

    # =========================================================================
    # Machine Access
    # =========================================================================

    def _read(self, operand: str, line: int) -> int:
        if operand in self.state.registers:
            return self.state.registers[operand]
        if operand == "al":
            return self.state.registers["rax"] & 0xFF
        if operand.startswith("[") and operand.endswith("]"):
            return self.state.memory.get(self._address(operand, line), 0)
        try:
            return int(operand) & WORD_MASK
        except ValueError:
            raise SimulationError(f"unsupported operand '{operand}'", line) from None

    def _write(self, operand: str, value: int, line: int) -> None:
        value &= WORD_MASK
        if operand in self.state.registers:
            self.state.registers[operand] = value
        elif operand == "al":
            rax = self.state.registers["rax"]
            self.state.registers["rax"] = (rax & ~0xFF & WORD_MASK) | (value & 0xFF)
        elif operand.startswith("[") and operand.endswith("]"):
            self.state.memory[self._address(operand, line)] = value
        else:
            raise SimulationError(f"cannot write to operand '{operand}'", line)

    def _address(self, operand: str, line: int) -> int:
        register = operand[1:-1].strip()
        if register not in self.state.registers:
            raise SimulationError(f"unsupported memory operand '{operand}'", line)
        return self.state.registers[register]

    def _push_operand(self, operand: str, line: int) -> int:
        """Value pushed for operand; immediates are sign-extended from 32 bits."""
        try:
            value = int(operand)
        except ValueError:
            return self._read(operand, line)
        if not IMM32_MIN <= value <= IMM32_MAX:
            raise SimulationError(
                f"push immediate {value} does not fit in 32 bits",
                line,
                hint="load it into a register with mov first",
            )
        return value & WORD_MASK

    def _push(self, value: int) -> None:
        rsp = (self.state.registers["rsp"] - 8) & WORD_MASK
        self.state.registers["rsp"] = rsp
        self.state.memory[rsp] = value & WORD_MASK

    def _pop(self) -> int:
        rsp = self.state.registers["rsp"]
        value = self.state.memory.get(rsp, 0)
        self.state.registers["rsp"] = (rsp + 8) & WORD_MASK
        return value

    def _jump(self, label: str, line: int) -> None:
        if label not in self._labels:
            raise SimulationError(f"jump to unknown label '{label}'", line)
        self.state.pc = self._labels[label]

    # =========================================================================
    # Instruction Execution
    # =========================================================================

    def _execute(self, instruction: Instruction) -> bool:
        """Execute one instruction. Returns True when the entry point returned."""
        op = instruction.mnemonic
        args = instruction.operands
        line = instruction.line
        regs = self.state.registers

        if op == "push":
            self._push(self._push_operand(args[0], line))
        elif op == "pop":
            self._write(args[0], self._pop(), line)
        elif op == "mov":
            self._write(args[0], self._read(args[1], line), line)
        elif op == "add":
            self._write(args[0], self._read(args[0], line) + self._read(args[1], line), line)
        elif op == "sub":
            self._write(args[0], self._read(args[0], line) - self._read(args[1], line), line)
        elif op == "imul":
            product = to_signed(self._read(args[0], line)) * to_signed(self._read(args[1], line))
            self._write(args[0], product, line)
        elif op == "cqo":
            regs["rdx"] = WORD_MASK if regs["rax"] & SIGN_BIT else 0
        elif op == "idiv":
            self._divide(self._read(args[0], line), line)
        elif op == "cmp":
            self.state.compared = (
                to_signed(self._read(args[0], line)),
                to_signed(self._read(args[1], line)),
            )
        elif op in SET_CONDITIONS:
            self._write(args[0], int(SET_CONDITIONS[op](*self.state.compared)), line)
        elif op == "movzb":
            self._write(args[0], self._read(args[1], line) & 0xFF, line)
        elif op == "je":
            left, right = self.state.compared
            if left == right:
                self._jump(args[0], line)
        elif op == "jmp":
            self._jump(args[0], line)
        elif op == "ret":
            address = self._pop()
            if address == RETURN_SENTINEL & WORD_MASK:
                return True
            self.state.pc = address
        else:
            raise SimulationError(f"unsupported instruction '{op}'", line)

        return False

    def _divide(self, divisor_bits: int, line: int) -> None:
        """Signed rdx:rax / divisor, quotient to rax, remainder to rdx."""
        divisor = to_signed(divisor_bits)
        if divisor == 0:
            raise SimulationError("division by zero", line)

        regs = self.state.registers
        dividend = (regs["rdx"] << 64) | regs["rax"]
        if regs["rdx"] & SIGN_BIT:
            dividend -= 1 << 128

        # x86 division truncates toward zero
        quotient = abs(dividend) // abs(divisor)
        if (dividend < 0) != (divisor < 0):
            quotient = -quotient
        remainder = dividend - quotient * divisor

        regs["rax"] = quotient & WORD_MASK
        regs["rdx"] = remainder & WORD_MASK


def run_assembly(text: str, max_steps: int = DEFAULT_MAX_STEPS) -> SimulationResult:
    """Run assembly text from main and return the result."""
    return Simulator(max_steps=max_steps).run(text)

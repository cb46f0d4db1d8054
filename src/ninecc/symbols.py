"""
Local Variable Symbol Table
===========================

Every distinct identifier in a program names one local variable. The
symbol table hands out frame slots in order of first appearance:

    hoge = 1; huga = 2; hoge = 3;
    hoge -> [rbp-8]   (first seen)
    huga -> [rbp-16]  (second seen)
    hoge -> [rbp-8]   (reused)

Offsets are measured downwards from the frame base (rbp), one machine
word per variable. The frame size is derived from the final table, so
storage always matches what the program uses.
"""

from dataclasses import dataclass
from typing import Iterator

# Size of one variable slot in bytes (x86-64 machine word)
WORD_SIZE = 8

# The stack pointer is kept 16-byte aligned after the prologue
FRAME_ALIGNMENT = 16


@dataclass(frozen=True)
class LocalVar:
    """
    A local variable and its frame slot.

    Attributes:
        name: Identifier text
        offset: Byte distance below the frame base, (index + 1) * WORD_SIZE
    """
    name: str
    offset: int

    def __str__(self) -> str:
        return f"{self.name}[rbp-{self.offset}]"


class SymbolTable:
    """
    Maps identifier text to LocalVar slots.

    The same name always resolves to the same LocalVar; a new name gets
    the next free slot. Lookup is by dictionary, insertion order gives
    the order of first appearance.
    """

    def __init__(self):
        self._vars: dict[str, LocalVar] = {}

    def resolve(self, name: str) -> LocalVar:
        """Return the slot for name, allocating one on first use."""
        var = self._vars.get(name)
        if var is None:
            var = LocalVar(name, (len(self._vars) + 1) * WORD_SIZE)
            self._vars[name] = var
        return var

    def lookup(self, name: str) -> LocalVar | None:
        """Return the slot for name without allocating."""
        return self._vars.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._vars

    def __len__(self) -> int:
        return len(self._vars)

    def __iter__(self) -> Iterator[LocalVar]:
        return iter(self._vars.values())

    @property
    def frame_size(self) -> int:
        """Bytes needed for every variable seen so far."""
        return frame_size_for(len(self._vars))


def frame_size_for(count: int) -> int:
    """Frame bytes for count variables, rounded up to FRAME_ALIGNMENT."""
    size = count * WORD_SIZE
    return (size + FRAME_ALIGNMENT - 1) // FRAME_ALIGNMENT * FRAME_ALIGNMENT

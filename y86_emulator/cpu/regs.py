"""
Y86-64 Emulator - Register File + Condition Flags

Register model:
  r0..r15  16 general registers, unsigned 64-bit
  r4       stack pointer by convention (pushq/popq/call/ret)
  PC       64-bit program counter
  FLAGS    one byte holding three independent bits:
           bit 6 (0x40): Z  (Zero)
           bit 5 (0x20): O  (Overflow, defined but never set by the ALU)
           bit 2 (0x04): S  (Sign)

The flag bit positions are the ones the wire-level dump has always used,
so they are kept even though they are not contiguous.
"""

from typing import List

# Flag bit masks
FLAG_O = 0x20
FLAG_Z = 0x40
FLAG_S = 0x04

NUM_REGS = 16
REG_SP = 4

MASK64 = (1 << 64) - 1
SIGN64 = 1 << 63


def u64(v: int) -> int:
    """Mask to unsigned 64 bits."""
    return v & MASK64


def s64(v: int) -> int:
    """Interpret a 64-bit value as signed."""
    v = u64(v)
    return v - (1 << 64) if v >= SIGN64 else v


def valid_reg(index: int) -> bool:
    return 0 <= index < NUM_REGS


class Registers:
    """Y86-64 register file, flags byte and program counter."""

    __slots__ = ('r', 'PC', 'flags', 'halted')

    def __init__(self, stack_pointer: int = 0):
        self.r: List[int] = [0] * NUM_REGS
        self.r[REG_SP] = u64(stack_pointer)
        self.PC: int = 0
        self.flags: int = 0
        self.halted: bool = False

    # --- Stack pointer ---

    @property
    def SP(self) -> int:
        return self.r[REG_SP]

    @SP.setter
    def SP(self, value: int):
        self.r[REG_SP] = u64(value)

    # --- Flags ---

    def set_flags(self, flags: int):
        """Replace the whole flag byte (only O, S, Z bits are kept)."""
        self.flags = flags & (FLAG_O | FLAG_S | FLAG_Z)

    # --- Display ---

    def flag_string(self) -> str:
        """Three-character summary in fixed O, S, Z column order."""
        return ''.join(c if self.flags & bit else '-'
                       for c, bit in (('O', FLAG_O), ('S', FLAG_S), ('Z', FLAG_Z)))

    def display(self) -> str:
        """One-line register summary for trace logging."""
        regs = ' '.join(f"r{i}={v:X}" for i, v in enumerate(self.r) if v)
        return f"PC={self.PC:X} [{self.flag_string()}] {regs}".rstrip()

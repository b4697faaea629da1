"""
Y86-64 Emulator - Machine State

One MachineState per session: register file, flags, PC (cpu/regs.py) and
the bounded memory window (mem/memory.py). Nothing here is shared between
sessions.
"""

from typing import Optional

from .config import MachineConfig, DEFAULT_MACHINE
from .cpu.regs import Registers
from .mem.memory import Memory


class MachineState:
    """Registers + memory for one session."""

    def __init__(self, config: Optional[MachineConfig] = None):
        self.config = config or DEFAULT_MACHINE
        self.regs = Registers(stack_pointer=self.config.stack_pointer)
        self.mem = Memory(capacity=self.config.capacity,
                          start_addr=self.config.start_addr,
                          valid_mem=self.config.valid_mem)

    # Convenience pass-throughs used by the executor and the dump formatter.

    @property
    def pc(self) -> int:
        return self.regs.PC

    @property
    def halted(self) -> bool:
        return self.regs.halted

    def read_quad(self, address: int) -> Optional[int]:
        return self.mem.read_quad(address)

    def write_quad(self, address: int, value: int) -> bool:
        return self.mem.write_quad(address, value)

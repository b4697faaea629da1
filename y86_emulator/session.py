"""
Y86-64 Emulator - Session

A Session owns one MachineState for the lifetime of a client and turns
each request line into a response string:

    session = Session()
    session.handle("irmovq 7, r2")   # -> "Instruction Executed"
    session.handle("divq r0 r2")     # -> "Error: division by zero"
    session.handle("dump")           # -> register / flag / PC listing

Decode errors and execution faults both come back as "Error: ..." text;
neither ends the session.
"""

import logging
from typing import Optional

from .config import MachineConfig
from .cpu.decoder import DecodeError, Opcode, parse
from .emu import Executor
from .state import MachineState

logger = logging.getLogger(__name__)

DUMP_COMMAND = "dump"
ACK_EXECUTED = "Instruction Executed"
ACK_HALTED = "Program Halted"
ERROR_PREFIX = "Error: "


class Session:
    """Decode -> execute -> format for one client's machine."""

    def __init__(self, config: Optional[MachineConfig] = None, name: str = "local"):
        self.name = name
        self.state = MachineState(config)
        self.cpu = Executor(self.state)
        self.stats = {
            'requests': 0,
            'executed': 0,
            'decode_errors': 0,
            'faults': 0,
            'dumps': 0,
        }

    def handle(self, line: str) -> str:
        """Process one request line and return the response text."""
        self.stats['requests'] += 1
        line = line.strip()
        logger.debug("[%s] RX: %s", self.name, line)

        if line == DUMP_COMMAND:
            self.stats['dumps'] += 1
            return self.dump()

        inst = parse(line)
        if isinstance(inst, DecodeError):
            self.stats['decode_errors'] += 1
            logger.info("[%s] decode error (%s): %s", self.name, inst.kind.value, inst)
            return ERROR_PREFIX + str(inst)

        fault = self.cpu.execute(inst)
        if fault is not None:
            self.stats['faults'] += 1
            logger.info("[%s] %s faulted (%s): %s", self.name, inst, fault.kind.value, fault)
            return ERROR_PREFIX + str(fault)

        self.stats['executed'] += 1
        if inst.opcode is Opcode.HALT:
            return ACK_HALTED
        return ACK_EXECUTED

    def dump(self) -> str:
        """Registers, flags, PC and memory window as zero-padded hex."""
        regs = self.state.regs
        mem = self.state.mem
        lines = [f"r{i}: {value:016x}" for i, value in enumerate(regs.r)]
        lines.append(f"FLAGS: {regs.flag_string()}")
        lines.append(f"PC: {regs.PC:016x}")
        lines.append(f"START_ADDR: {mem.start_addr:016x}")
        lines.append(f"VALID_MEM: {mem.valid_mem:016x}")
        return '\n'.join(lines)

    def dump_stats(self) -> str:
        return '\n'.join(f"  {key:14s} {value}" for key, value in self.stats.items())

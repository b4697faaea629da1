"""
Y86-64 Text Instruction Emulator
================================
Interprets Y86-64 assembly one instruction per request against a
persistent per-session machine.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────────┐
    │ Session  │───>│ Decoder  │───>│ Executor │───>│ MachineState │
    │ (text)   │    │ (parse)  │    │ (emu)    │    │ (regs + mem) │
    └──────────┘    └──────────┘    └──────────┘    └──────────────┘

    - cpu/decoder.py: text line -> Instruction | DecodeError
    - cpu/alu.py:     64-bit signed arithmetic + Z/S flags
    - cpu/regs.py:    register file, flag byte, PC
    - mem/memory.py:  bounded memory window, quad read/write
    - emu.py:         opcode dispatch, PC advance, stack/call/ret
    - session.py:     request -> response text, dump
    - net/:           TCP session server and line client
"""

__version__ = "0.1.0"

from .config import MachineConfig, ServerConfig, ConfigError, machine_profile
from .cpu.decoder import parse, Instruction, DecodeError, Opcode
from .emu import Executor, ExecFault, FaultKind
from .session import Session
from .state import MachineState

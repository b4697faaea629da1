"""
Y86-64 Emulator - Instruction Executor

Applies one decoded Instruction to a MachineState.

Execution model:
  1. Look up the handler for the opcode in the dispatch table
  2. Handler validates register indices, then memory / divisor / stack
     guards, and only then mutates state
  3. On success, non-transferring ops advance PC by the instruction's
     encoded size (nop 1, RR/REG forms 2, irmovq/rmmovq/mrmovq 10)
  4. Control transfers (jXX, call, ret) write PC themselves

execute() returns None on success or an ExecFault describing why the
instruction was refused. A fault never moves PC. With the single
documented exception of modq 0 % 0 (which leaves Z set) a fault leaves
the machine exactly as it was.

Condition codes compare the flag byte for equality against single flags
rather than testing bits, which gives these predicates:

    le: Z or S        l:  S and not Z     e:  Z and not S
    ne: not Z         ge: Z or not S      g:  not S and not Z

After halt the machine keeps executing register, memory and flag effects
but PC is frozen: no advance and no control-transfer writes.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .cpu import alu
from .cpu.decoder import (
    Opcode, Instruction, CONDITIONS,
    CC_ALWAYS, CC_LE, CC_L, CC_E, CC_NE, CC_GE, CC_G,
)
from .cpu.regs import FLAG_S, FLAG_Z, u64, valid_reg
from .state import MachineState

logger = logging.getLogger(__name__)


class FaultKind(enum.Enum):
    REGISTER_RANGE = 'REGISTER_RANGE'
    MEMORY_BOUNDS = 'MEMORY_BOUNDS'
    STACK_UNDERFLOW = 'STACK_UNDERFLOW'
    EMPTY_STACK = 'EMPTY_STACK'
    DIVIDE_BY_ZERO = 'DIVIDE_BY_ZERO'
    MOD_ZERO = 'MOD_ZERO'


@dataclass(frozen=True)
class ExecFault:
    kind: FaultKind
    message: str

    def __str__(self) -> str:
        return self.message


# Ops that write PC themselves instead of taking the size-based advance.
CONTROL_TRANSFER = frozenset({
    Opcode.JMP, Opcode.JE, Opcode.JNE, Opcode.JL, Opcode.JLE, Opcode.JG, Opcode.JGE,
    Opcode.CALL, Opcode.RET,
})

ALU_OPS: Dict[Opcode, Callable[[int, int], tuple]] = {
    Opcode.ADDQ: alu.add64,
    Opcode.SUBQ: alu.sub64,
    Opcode.MULQ: alu.mul64,
    Opcode.ANDQ: alu.and64,
    Opcode.XORQ: alu.xor64,
}


def condition_holds(cc: int, flags: int) -> bool:
    """Evaluate a condition code against the flag byte (equality semantics)."""
    z = (flags == FLAG_Z)
    s = (flags == FLAG_S)
    if cc == CC_ALWAYS:
        return True
    if cc == CC_LE:
        return z or s
    if cc == CC_L:
        return s and not z
    if cc == CC_E:
        return z and not s
    if cc == CC_NE:
        return not z
    if cc == CC_GE:
        return z or not s
    if cc == CC_G:
        return not s and not z
    return False


def _register_fault(*indices: int) -> Optional[ExecFault]:
    for index in indices:
        if not valid_reg(index):
            return ExecFault(FaultKind.REGISTER_RANGE, f"register r{index} out of range")
    return None


def _bounds_fault(address: int) -> ExecFault:
    return ExecFault(FaultKind.MEMORY_BOUNDS, f"memory access out of bounds at 0x{address:016x}")


class Executor:
    """Dispatch table from opcode to handler, bound to one MachineState.

    Usage:
        state = MachineState()
        cpu = Executor(state)
        fault = cpu.execute(parse("irmovq 5, r1"))
        assert fault is None and state.regs.r[1] == 5
    """

    def __init__(self, state: MachineState):
        self.state = state
        self._trace = False
        self._trace_output: List[str] = []
        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def execute(self, inst: Instruction) -> Optional[ExecFault]:
        handler = self._dispatch[inst.opcode]
        fault = handler(inst)
        if fault is not None:
            logger.debug("fault %s: %s", inst, fault)
            if self._trace:
                self._trace_output.append(f"{inst}  FAULT {fault.kind.value}: {fault}")
            return fault

        if inst.opcode not in CONTROL_TRANSFER and inst.opcode is not Opcode.HALT:
            self._set_pc(self.state.regs.PC + inst.size)

        if self._trace:
            self._trace_output.append(f"{inst}  {self.state.regs.display()}")
        return None

    def _set_pc(self, value: int):
        if not self.state.regs.halted:
            self.state.regs.PC = u64(value)

    def _build_dispatch(self) -> Dict[Opcode, Callable[[Instruction], Optional[ExecFault]]]:
        table = {
            Opcode.NOP:    self._op_nop,
            Opcode.HALT:   self._op_halt,
            Opcode.RRMOVQ: self._op_cmov,
            Opcode.IRMOVQ: self._op_irmovq,
            Opcode.RMMOVQ: self._op_rmmovq,
            Opcode.MRMOVQ: self._op_mrmovq,
            Opcode.PUSHQ:  self._op_pushq,
            Opcode.POPQ:   self._op_popq,
            Opcode.CALL:   self._op_call,
            Opcode.RET:    self._op_ret,
            Opcode.DIVQ:   self._op_divq,
            Opcode.MODQ:   self._op_modq,
        }
        for op in ALU_OPS:
            table[op] = self._op_alu
        for op in (Opcode.CMOVE, Opcode.CMOVNE, Opcode.CMOVL,
                   Opcode.CMOVLE, Opcode.CMOVG, Opcode.CMOVGE):
            table[op] = self._op_cmov
        for op in (Opcode.JMP, Opcode.JE, Opcode.JNE, Opcode.JL,
                   Opcode.JLE, Opcode.JG, Opcode.JGE):
            table[op] = self._op_jump
        return table

    # ══════════════════════════════════════════════
    # Misc
    # ══════════════════════════════════════════════

    def _op_nop(self, inst):
        return None

    def _op_halt(self, inst):
        self.state.regs.halted = True
        logger.info("machine halted at PC=0x%x", self.state.regs.PC)
        return None

    # ══════════════════════════════════════════════
    # Moves
    # ══════════════════════════════════════════════

    def _op_irmovq(self, inst):
        fault = _register_fault(inst.rb)
        if fault:
            return fault
        self.state.regs.r[inst.rb] = u64(inst.value)
        return None

    def _op_cmov(self, inst):
        """rrmovq and cmovXX: copy rA to rB when the condition holds."""
        fault = _register_fault(inst.ra, inst.rb)
        if fault:
            return fault
        regs = self.state.regs
        if condition_holds(CONDITIONS[inst.opcode], regs.flags):
            regs.r[inst.rb] = regs.r[inst.ra]
        return None

    def _op_rmmovq(self, inst):
        fault = _register_fault(inst.ra, inst.rb)
        if fault:
            return fault
        regs = self.state.regs
        address = u64(regs.r[inst.rb] + inst.disp)
        if not self.state.write_quad(address, regs.r[inst.ra]):
            return _bounds_fault(address)
        return None

    def _op_mrmovq(self, inst):
        fault = _register_fault(inst.ra, inst.rb)
        if fault:
            return fault
        regs = self.state.regs
        address = u64(regs.r[inst.rb] + inst.disp)
        value = self.state.read_quad(address)
        if value is None:
            return _bounds_fault(address)
        regs.r[inst.ra] = value
        return None

    # ══════════════════════════════════════════════
    # Arithmetic
    # ══════════════════════════════════════════════

    def _op_alu(self, inst):
        fault = _register_fault(inst.ra, inst.rb)
        if fault:
            return fault
        regs = self.state.regs
        result, flags = ALU_OPS[inst.opcode](regs.r[inst.rb], regs.r[inst.ra])
        regs.r[inst.rb] = result
        regs.set_flags(flags)
        return None

    def _op_divq(self, inst):
        fault = _register_fault(inst.ra, inst.rb)
        if fault:
            return fault
        regs = self.state.regs
        if regs.r[inst.ra] == 0:
            return ExecFault(FaultKind.DIVIDE_BY_ZERO, "division by zero")
        result, flags = alu.div64(regs.r[inst.rb], regs.r[inst.ra])
        regs.r[inst.rb] = result
        regs.set_flags(flags)
        return None

    def _op_modq(self, inst):
        """rB = rB % rA.

        0 % 0 sets Z and faults. x % 0 for nonzero x succeeds and changes
        nothing. Both are long-standing behaviour clients depend on.
        """
        fault = _register_fault(inst.ra, inst.rb)
        if fault:
            return fault
        regs = self.state.regs
        divisor, dividend = regs.r[inst.ra], regs.r[inst.rb]
        if divisor == 0:
            if dividend == 0:
                regs.set_flags(FLAG_Z)
                return ExecFault(FaultKind.MOD_ZERO, "modulo of zero by zero")
            return None
        result, flags = alu.mod64(dividend, divisor)
        regs.r[inst.rb] = result
        regs.set_flags(flags)
        return None

    # ══════════════════════════════════════════════
    # Control transfer
    # ══════════════════════════════════════════════

    def _op_jump(self, inst):
        regs = self.state.regs
        if condition_holds(CONDITIONS[inst.opcode], regs.flags):
            self._set_pc(inst.target)
        else:
            self._set_pc(regs.PC + inst.size)
        return None

    def _op_call(self, inst):
        regs = self.state.regs
        if regs.SP == 0:
            return ExecFault(FaultKind.EMPTY_STACK, "call with empty stack pointer")
        new_sp = u64(regs.SP - 8)
        return_addr = u64(regs.PC + inst.size)
        if not self.state.write_quad(new_sp, return_addr):
            return _bounds_fault(new_sp)
        regs.SP = new_sp
        self._set_pc(inst.target)
        return None

    def _op_ret(self, inst):
        regs = self.state.regs
        value = self.state.read_quad(regs.SP)
        if value is None:
            return _bounds_fault(regs.SP)
        regs.SP = regs.SP + 8
        self._set_pc(value)
        return None

    # ══════════════════════════════════════════════
    # Stack
    # ══════════════════════════════════════════════

    def _op_pushq(self, inst):
        fault = _register_fault(inst.ra)
        if fault:
            return fault
        regs = self.state.regs
        if regs.SP < 8:
            return ExecFault(FaultKind.STACK_UNDERFLOW,
                             f"stack pointer 0x{regs.SP:x} too low to push")
        new_sp = regs.SP - 8
        if not self.state.write_quad(new_sp, regs.r[inst.ra]):
            return _bounds_fault(new_sp)
        regs.SP = new_sp
        return None

    def _op_popq(self, inst):
        # No lower-bound guard on r4 here, unlike pushq.
        fault = _register_fault(inst.ra)
        if fault:
            return fault
        regs = self.state.regs
        value = self.state.read_quad(regs.SP)
        if value is None:
            return _bounds_fault(regs.SP)
        regs.r[inst.ra] = value
        regs.SP = regs.SP + 8
        return None

    # ══════════════════════════════════════════════
    # Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Enable instruction trace logging."""
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output = []

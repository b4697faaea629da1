"""
Y86-64 Emulator - Text Instruction Decoder

Converts one line of assembly text into a typed Instruction value.

    parse("irmovq 42, r3")    -> RegImmediate(IRMOVQ, value=42, rb=3)
    parse("rmmovq r1 8(r4)")  -> RegDisplacement(RMMOVQ, ra=1, disp=8, rb=4)
    parse("foobar r1,r2")     -> DecodeError(UNKNOWN_INSTRUCTION, ...)

parse() never raises for bad input: malformed lines come back as a
DecodeError value so the caller can report them and keep going.

Grammar (the only one accepted):
  line         := mnemonic operand*        tokens split on whitespace/commas
  register     := 'r' DIGIT DIGIT?         r0..r99, range checked at execute
  immediate    := DECIMAL | '0x' HEX       unsigned, at most 2**64-1
  displacement := immediate '(' register ')'

Operand forms:
  NONE   nop, halt, ret
  REG    pushq rA, popq rA
  RR     rrmovq / cmovXX / OPq  rA, rB
  IR     irmovq V, rB
  RM     rmmovq rA, D(rB)
  MR     mrmovq D(rB), rA
  DEST   jXX / call  target
"""

from __future__ import annotations
import enum
import re
from dataclasses import dataclass
from typing import Dict, List, Tuple, Union

from .regs import MASK64


# ──────────────────────────────────────────────
# Opcodes
# ──────────────────────────────────────────────

class Opcode(enum.Enum):
    NOP = "nop"
    HALT = "halt"
    RRMOVQ = "rrmovq"
    IRMOVQ = "irmovq"
    RMMOVQ = "rmmovq"
    MRMOVQ = "mrmovq"
    PUSHQ = "pushq"
    POPQ = "popq"
    CALL = "call"
    RET = "ret"
    JMP = "jmp"
    JE = "je"
    JNE = "jne"
    JL = "jl"
    JLE = "jle"
    JG = "jg"
    JGE = "jge"
    ADDQ = "addq"
    SUBQ = "subq"
    MULQ = "mulq"
    MODQ = "modq"
    DIVQ = "divq"
    ANDQ = "andq"
    XORQ = "xorq"
    CMOVE = "cmove"
    CMOVNE = "cmovne"
    CMOVL = "cmovl"
    CMOVLE = "cmovle"
    CMOVG = "cmovg"
    CMOVGE = "cmovge"


# ──────────────────────────────────────────────
# Operand forms
# ──────────────────────────────────────────────

NONE = 'NONE'
REG = 'REG'
RR = 'RR'
IR = 'IR'
RM = 'RM'
MR = 'MR'
DEST = 'DEST'

OPERAND_COUNT = {NONE: 0, REG: 1, RR: 2, IR: 2, RM: 2, MR: 2, DEST: 1}


# ──────────────────────────────────────────────
# Condition codes (shared by cmovXX / jXX)
# ──────────────────────────────────────────────

CC_ALWAYS = 0
CC_LE = 1
CC_L = 2
CC_E = 3
CC_NE = 4
CC_GE = 5
CC_G = 6


# ──────────────────────────────────────────────
# Mnemonic table
# ──────────────────────────────────────────────
# Format: mnemonic -> (opcode, operand_form, encoded_size)
#
# encoded_size is the width of the instruction in the byte encoding and is
# what the executor adds to PC after a successful, non-transferring op.

MNEMONICS: Dict[str, Tuple[Opcode, str, int]] = {
    'nop':    (Opcode.NOP,    NONE, 1),
    'halt':   (Opcode.HALT,   NONE, 1),
    'rrmovq': (Opcode.RRMOVQ, RR,   2),
    'irmovq': (Opcode.IRMOVQ, IR,   10),
    'rmmovq': (Opcode.RMMOVQ, RM,   10),
    'mrmovq': (Opcode.MRMOVQ, MR,   10),
    'pushq':  (Opcode.PUSHQ,  REG,  2),
    'popq':   (Opcode.POPQ,   REG,  2),
    'call':   (Opcode.CALL,   DEST, 9),
    'ret':    (Opcode.RET,    NONE, 1),
    'jmp':    (Opcode.JMP,    DEST, 9),
    'je':     (Opcode.JE,     DEST, 9),
    'jne':    (Opcode.JNE,    DEST, 9),
    'jl':     (Opcode.JL,     DEST, 9),
    'jle':    (Opcode.JLE,    DEST, 9),
    'jg':     (Opcode.JG,     DEST, 9),
    'jge':    (Opcode.JGE,    DEST, 9),
    'addq':   (Opcode.ADDQ,   RR,   2),
    'subq':   (Opcode.SUBQ,   RR,   2),
    'mulq':   (Opcode.MULQ,   RR,   2),
    'modq':   (Opcode.MODQ,   RR,   2),
    'divq':   (Opcode.DIVQ,   RR,   2),
    'andq':   (Opcode.ANDQ,   RR,   2),
    'xorq':   (Opcode.XORQ,   RR,   2),
    'cmove':  (Opcode.CMOVE,  RR,   2),
    'cmovne': (Opcode.CMOVNE, RR,   2),
    'cmovl':  (Opcode.CMOVL,  RR,   2),
    'cmovle': (Opcode.CMOVLE, RR,   2),
    'cmovg':  (Opcode.CMOVG,  RR,   2),
    'cmovge': (Opcode.CMOVGE, RR,   2),
}

SIZES: Dict[Opcode, int] = {op: size for op, _form, size in MNEMONICS.values()}

CONDITIONS: Dict[Opcode, int] = {
    Opcode.RRMOVQ: CC_ALWAYS,
    Opcode.JMP:    CC_ALWAYS,
    Opcode.CMOVLE: CC_LE,  Opcode.JLE: CC_LE,
    Opcode.CMOVL:  CC_L,   Opcode.JL:  CC_L,
    Opcode.CMOVE:  CC_E,   Opcode.JE:  CC_E,
    Opcode.CMOVNE: CC_NE,  Opcode.JNE: CC_NE,
    Opcode.CMOVGE: CC_GE,  Opcode.JGE: CC_GE,
    Opcode.CMOVG:  CC_G,   Opcode.JG:  CC_G,
}


# ──────────────────────────────────────────────
# Decoded instruction values
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Instruction:
    """Base of the decoded instruction variants."""
    opcode: Opcode

    @property
    def mnemonic(self) -> str:
        return self.opcode.value

    @property
    def size(self) -> int:
        return SIZES[self.opcode]

    def __str__(self) -> str:
        return self.mnemonic


@dataclass(frozen=True)
class NoOperand(Instruction):
    pass


@dataclass(frozen=True)
class OneReg(Instruction):
    ra: int

    def __str__(self) -> str:
        return f"{self.mnemonic} r{self.ra}"


@dataclass(frozen=True)
class TwoReg(Instruction):
    ra: int
    rb: int

    def __str__(self) -> str:
        return f"{self.mnemonic} r{self.ra}, r{self.rb}"


@dataclass(frozen=True)
class RegImmediate(Instruction):
    value: int
    rb: int

    def __str__(self) -> str:
        return f"{self.mnemonic} {self.value}, r{self.rb}"


@dataclass(frozen=True)
class RegDisplacement(Instruction):
    """rmmovq rA, D(rB) and mrmovq D(rB), rA share this shape."""
    ra: int
    disp: int
    rb: int

    def __str__(self) -> str:
        if self.opcode is Opcode.MRMOVQ:
            return f"{self.mnemonic} {self.disp}(r{self.rb}), r{self.ra}"
        return f"{self.mnemonic} r{self.ra}, {self.disp}(r{self.rb})"


@dataclass(frozen=True)
class Jump(Instruction):
    """jXX and call: one absolute target."""
    target: int

    def __str__(self) -> str:
        return f"{self.mnemonic} {self.target}"


# ──────────────────────────────────────────────
# Decode errors
# ──────────────────────────────────────────────

class DecodeErrorKind(enum.Enum):
    INVALID_FORMAT = "INVALID_FORMAT"
    UNKNOWN_INSTRUCTION = "UNKNOWN_INSTRUCTION"
    OPERAND_COUNT = "OPERAND_COUNT"
    INVALID_REGISTER = "INVALID_REGISTER"
    INVALID_IMMEDIATE = "INVALID_IMMEDIATE"
    INVALID_DISPLACEMENT = "INVALID_DISPLACEMENT"


@dataclass(frozen=True)
class DecodeError:
    kind: DecodeErrorKind
    message: str

    def __str__(self) -> str:
        return self.message


# ──────────────────────────────────────────────
# Token parsers
# ──────────────────────────────────────────────
# Each returns the parsed value, or a DecodeError describing the bad token.

_REGISTER_RE = re.compile(r'r([0-9]{1,2})')
_IMMEDIATE_RE = re.compile(r'0[xX][0-9a-fA-F]+|[0-9]+')
_DISPLACEMENT_RE = re.compile(r'([^()]*)\(([^()]*)\)')

# Significant digits in 2**64-1
_MAX_DEC_DIGITS = 20
_MAX_HEX_DIGITS = 16


def tokenize(line: str) -> List[str]:
    """Split on whitespace; commas between operands count as whitespace."""
    return line.replace(',', ' ').split()


def parse_register(token: str) -> Union[int, DecodeError]:
    m = _REGISTER_RE.fullmatch(token)
    if not m:
        return DecodeError(DecodeErrorKind.INVALID_REGISTER, f"invalid register '{token}'")
    return int(m.group(1))


def parse_immediate(token: str) -> Union[int, DecodeError]:
    if not _IMMEDIATE_RE.fullmatch(token):
        return DecodeError(DecodeErrorKind.INVALID_IMMEDIATE, f"invalid immediate '{token}'")
    is_hex = token[:2].lower() == '0x'
    digits = (token[2:] if is_hex else token).lstrip('0')
    # Length check first: int() refuses very long decimal strings.
    if len(digits) > (_MAX_HEX_DIGITS if is_hex else _MAX_DEC_DIGITS):
        return _out_of_range(token)
    value = int(digits, 16 if is_hex else 10) if digits else 0
    if value > MASK64:
        return _out_of_range(token)
    return value


def _out_of_range(token: str) -> DecodeError:
    if len(token) > 32:
        token = token[:29] + '...'
    return DecodeError(DecodeErrorKind.INVALID_IMMEDIATE,
                       f"immediate out of 64-bit range '{token}'")


def parse_displacement(token: str) -> Union[Tuple[int, int], DecodeError]:
    """Parse `D(rN)` into (displacement, register)."""
    m = _DISPLACEMENT_RE.fullmatch(token)
    if not m or not _IMMEDIATE_RE.fullmatch(m.group(1)):
        return DecodeError(DecodeErrorKind.INVALID_DISPLACEMENT,
                           f"invalid displacement '{token}'")
    disp = parse_immediate(m.group(1))
    if isinstance(disp, DecodeError):
        return disp
    reg = parse_register(m.group(2))
    if isinstance(reg, DecodeError):
        return reg
    return disp, reg


# ──────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────

def parse(line: str) -> Union[Instruction, DecodeError]:
    """Decode one line of text. Returns an Instruction or a DecodeError."""
    tokens = tokenize(line)
    if not tokens:
        return DecodeError(DecodeErrorKind.INVALID_FORMAT, "invalid instruction format")

    mnem, operands = tokens[0], tokens[1:]
    entry = MNEMONICS.get(mnem)
    if entry is None:
        return DecodeError(DecodeErrorKind.UNKNOWN_INSTRUCTION,
                           f"unknown instruction '{mnem}'")
    opcode, form, _size = entry

    expected = OPERAND_COUNT[form]
    if len(operands) != expected:
        return DecodeError(
            DecodeErrorKind.OPERAND_COUNT,
            f"wrong operand count: {mnem} expects {expected}, got {len(operands)}")

    # Operand tokens in source order, each paired with its parser.
    layout = {
        NONE: (),
        REG:  (parse_register,),
        RR:   (parse_register, parse_register),
        IR:   (parse_immediate, parse_register),
        RM:   (parse_register, parse_displacement),
        MR:   (parse_displacement, parse_register),
        DEST: (parse_immediate,),
    }[form]

    values = []
    for parser, token in zip(layout, operands):
        value = parser(token)
        if isinstance(value, DecodeError):
            return value
        values.append(value)

    return _build(opcode, form, values)


def _build(opcode: Opcode, form: str, values: list) -> Instruction:
    if form == NONE:
        return NoOperand(opcode)
    if form == REG:
        return OneReg(opcode, values[0])
    if form == RR:
        return TwoReg(opcode, values[0], values[1])
    if form == IR:
        return RegImmediate(opcode, values[0], values[1])
    if form == RM:
        disp, rb = values[1]
        return RegDisplacement(opcode, values[0], disp, rb)
    if form == MR:
        disp, rb = values[0]
        return RegDisplacement(opcode, values[1], disp, rb)
    return Jump(opcode, values[0])

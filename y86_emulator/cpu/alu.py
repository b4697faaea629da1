"""
Y86-64 Emulator - ALU Operations

Every ALU op works on signed 64-bit two's-complement operands and wraps
on overflow. Each function takes (b, a) in instruction order `OPq rA, rB`
meaning rB = rB OP rA, and returns a tuple:

    (result_u64, flags)

where flags is a complete replacement for the flag byte: Z if the signed
result is zero, S if it is negative. O is never produced.

Division and modulo follow C semantics (truncate toward zero, remainder
takes the dividend's sign). Callers must reject a zero divisor before
calling div64/mod64.
"""

from .regs import FLAG_Z, FLAG_S, u64, s64


def result_flags(result: int) -> int:
    """Z/S flags for a 64-bit result (O is never set)."""
    value = s64(result)
    flags = 0
    if value == 0:
        flags |= FLAG_Z
    if value < 0:
        flags |= FLAG_S
    return flags


def add64(b: int, a: int) -> tuple:
    result = u64(s64(b) + s64(a))
    return (result, result_flags(result))


def sub64(b: int, a: int) -> tuple:
    """rB - rA."""
    result = u64(s64(b) - s64(a))
    return (result, result_flags(result))


def mul64(b: int, a: int) -> tuple:
    result = u64(s64(b) * s64(a))
    return (result, result_flags(result))


def and64(b: int, a: int) -> tuple:
    result = u64(b) & u64(a)
    return (result, result_flags(result))


def xor64(b: int, a: int) -> tuple:
    result = u64(b) ^ u64(a)
    return (result, result_flags(result))


def div64(b: int, a: int) -> tuple:
    """Signed rB / rA, truncating toward zero.

    INT64_MIN / -1 wraps back to INT64_MIN.
    """
    num, den = s64(b), s64(a)
    quotient = abs(num) // abs(den)
    if (num < 0) != (den < 0):
        quotient = -quotient
    result = u64(quotient)
    return (result, result_flags(result))


def mod64(b: int, a: int) -> tuple:
    """Signed rB % rA; the remainder carries the sign of rB."""
    num, den = s64(b), s64(a)
    remainder = abs(num) % abs(den)
    if num < 0:
        remainder = -remainder
    result = u64(remainder)
    return (result, result_flags(result))

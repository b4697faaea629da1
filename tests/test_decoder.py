"""
Y86-64 Emulator - Decoder Tests

parse() turns one text line into an Instruction value or a DecodeError.
Nothing here touches machine state.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import dataclasses

import pytest

from y86_emulator.cpu.decoder import (
    parse, tokenize, parse_register, parse_immediate, parse_displacement,
    Opcode, DecodeError, DecodeErrorKind, MNEMONICS,
    NoOperand, OneReg, TwoReg, RegImmediate, RegDisplacement, Jump,
)


class TestOperandForms:

    def test_no_operand(self):
        for mnem in ("nop", "halt", "ret"):
            inst = parse(mnem)
            assert isinstance(inst, NoOperand)
            assert inst.opcode is Opcode(mnem)

    def test_one_register(self):
        inst = parse("pushq r7")
        assert inst == OneReg(Opcode.PUSHQ, 7)

    def test_two_registers(self):
        inst = parse("addq r1, r2")
        assert inst == TwoReg(Opcode.ADDQ, 1, 2)

    def test_irmovq(self):
        inst = parse("irmovq 42, r3")
        assert inst == RegImmediate(Opcode.IRMOVQ, 42, 3)

    def test_irmovq_hex_and_max(self):
        assert parse("irmovq 0xFFFFFFFFFFFFFFFF, r0").value == (1 << 64) - 1
        assert parse("irmovq 18446744073709551615 r0").value == (1 << 64) - 1

    def test_rmmovq(self):
        inst = parse("rmmovq r1, 8(r4)")
        assert inst == RegDisplacement(Opcode.RMMOVQ, ra=1, disp=8, rb=4)

    def test_mrmovq(self):
        inst = parse("mrmovq 0x10(r2), r5")
        assert inst == RegDisplacement(Opcode.MRMOVQ, ra=5, disp=16, rb=2)

    def test_jump_and_call(self):
        assert parse("jmp 0x100") == Jump(Opcode.JMP, 0x100)
        assert parse("call 64") == Jump(Opcode.CALL, 64)

    def test_every_mnemonic_decodes(self):
        samples = {
            'NONE': "", 'REG': " r1", 'RR': " r1, r2", 'IR': " 1, r2",
            'RM': " r1, 0(r2)", 'MR': " 0(r2), r1", 'DEST': " 0",
        }
        for mnem, (opcode, form, _size) in MNEMONICS.items():
            inst = parse(mnem + samples[form])
            assert not isinstance(inst, DecodeError), mnem
            assert inst.opcode is opcode


class TestTokenizing:

    def test_commas_are_separators(self):
        assert tokenize("addq r1,r2") == ["addq", "r1", "r2"]
        assert tokenize("  addq\tr1 ,  r2 ") == ["addq", "r1", "r2"]

    def test_comma_and_space_forms_agree(self):
        assert parse("subq r3,r4") == parse("subq r3 r4") == parse("subq r3, r4")

    def test_r16_decodes(self):
        """Range is checked by the executor, not the decoder."""
        assert parse("rrmovq r16, r99") == TwoReg(Opcode.RRMOVQ, 16, 99)

    def test_sizes(self):
        assert parse("nop").size == 1
        assert parse("halt").size == 1
        assert parse("addq r1 r2").size == 2
        assert parse("popq r1").size == 2
        assert parse("irmovq 1 r1").size == 10
        assert parse("rmmovq r1 0(r2)").size == 10
        assert parse("je 0").size == 9
        assert parse("call 0").size == 9
        assert parse("ret").size == 1


class TestDecodeErrors:

    def test_empty_line(self):
        err = parse("   ")
        assert isinstance(err, DecodeError)
        assert err.kind == DecodeErrorKind.INVALID_FORMAT

    def test_unknown_mnemonic(self):
        err = parse("foobar r1,r2")
        assert err.kind == DecodeErrorKind.UNKNOWN_INSTRUCTION
        assert "foobar" in str(err)

    def test_mnemonics_are_case_sensitive(self):
        assert parse("NOP").kind == DecodeErrorKind.UNKNOWN_INSTRUCTION

    @pytest.mark.parametrize("line", [
        "nop r1", "addq r1", "addq r1 r2 r3", "irmovq 5", "jmp", "ret 4",
    ])
    def test_operand_count(self, line):
        assert parse(line).kind == DecodeErrorKind.OPERAND_COUNT

    @pytest.mark.parametrize("token", ["x1", "r", "r100", "r-1", "R1", "r1a", "%rax"])
    def test_bad_register(self, token):
        err = parse(f"pushq {token}")
        assert err.kind == DecodeErrorKind.INVALID_REGISTER

    @pytest.mark.parametrize("token", ["-5", "abc", "0x", "1.5", "0xg1", "$5"])
    def test_bad_immediate(self, token):
        err = parse(f"irmovq {token}, r1")
        assert err.kind == DecodeErrorKind.INVALID_IMMEDIATE

    def test_immediate_too_large(self):
        err = parse("irmovq 0x10000000000000000, r1")
        assert err.kind == DecodeErrorKind.INVALID_IMMEDIATE
        assert "range" in str(err)

    def test_twenty_digit_decimal_over_range(self):
        err = parse("irmovq 18446744073709551616, r1")
        assert err.kind == DecodeErrorKind.INVALID_IMMEDIATE

    def test_very_long_decimal_literal(self):
        """Thousands of digits still come back as a DecodeError, not an exception."""
        err = parse("irmovq " + "1" * 5000 + " r1")
        assert isinstance(err, DecodeError)
        assert err.kind == DecodeErrorKind.INVALID_IMMEDIATE
        assert len(str(err)) < 100

    def test_very_long_displacement_literal(self):
        err = parse("mrmovq " + "9" * 5000 + "(r2), r1")
        assert err.kind == DecodeErrorKind.INVALID_IMMEDIATE

    def test_leading_zeros_do_not_count(self):
        assert parse("irmovq " + "0" * 40 + "7, r1").value == 7
        assert parse("irmovq 0x" + "0" * 40 + "ff, r1").value == 0xFF
        assert parse("jmp 0x0000").target == 0

    @pytest.mark.parametrize("token", ["(r2)", "8r2", "8(r2", "8[r2]", "-8(r2)", "x(r2)"])
    def test_bad_displacement(self, token):
        err = parse(f"mrmovq {token}, r1")
        assert err.kind == DecodeErrorKind.INVALID_DISPLACEMENT

    def test_bad_register_inside_displacement(self):
        err = parse("rmmovq r1, 8(q2)")
        assert err.kind == DecodeErrorKind.INVALID_REGISTER

    def test_operand_in_wrong_slot(self):
        assert parse("irmovq r1, 5").kind == DecodeErrorKind.INVALID_IMMEDIATE
        assert parse("rmmovq 8(r1), r2").kind == DecodeErrorKind.INVALID_REGISTER


class TestTokenParsers:

    def test_parse_register(self):
        assert parse_register("r0") == 0
        assert parse_register("r15") == 15
        assert parse_register("r07") == 7
        assert isinstance(parse_register("15"), DecodeError)

    def test_parse_immediate(self):
        assert parse_immediate("0") == 0
        assert parse_immediate("0X1f") == 31
        assert isinstance(parse_immediate(""), DecodeError)

    def test_parse_displacement(self):
        assert parse_displacement("0x20(r9)") == (32, 9)
        assert isinstance(parse_displacement("20"), DecodeError)


class TestInstructionValues:

    def test_frozen(self):
        inst = parse("addq r1, r2")
        with pytest.raises(dataclasses.FrozenInstanceError):
            inst.ra = 5

    def test_str(self):
        assert str(parse("nop")) == "nop"
        assert str(parse("popq r3")) == "popq r3"
        assert str(parse("addq r1,r2")) == "addq r1, r2"
        assert str(parse("irmovq 0x10 r1")) == "irmovq 16, r1"
        assert str(parse("rmmovq r1 8(r2)")) == "rmmovq r1, 8(r2)"
        assert str(parse("mrmovq 8(r2) r1")) == "mrmovq 8(r2), r1"
        assert str(parse("jne 12")) == "jne 12"

    def test_error_str_is_message(self):
        err = parse("")
        assert str(err) == "invalid instruction format"

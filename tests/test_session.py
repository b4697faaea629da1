"""
Y86-64 Emulator - Session Tests

Session.handle() is the whole request/response surface: one line in,
one response string out.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from y86_emulator.config import MachineConfig
from y86_emulator.session import Session, ACK_EXECUTED, ACK_HALTED, ERROR_PREFIX


def dump_fields(text):
    """Parse a dump response into {label: value-string}."""
    fields = {}
    for line in text.splitlines():
        key, _, value = line.partition(": ")
        fields[key] = value
    return fields


class TestResponses:

    def test_executed_ack(self):
        s = Session()
        assert s.handle("irmovq 5, r1") == ACK_EXECUTED == "Instruction Executed"

    def test_halt_ack(self):
        s = Session()
        assert s.handle("halt") == ACK_HALTED
        assert s.state.halted

    def test_decode_error(self):
        s = Session()
        resp = s.handle("foobar r1,r2")
        assert resp.startswith(ERROR_PREFIX)
        assert "foobar" in resp

    def test_exec_fault(self):
        s = Session()
        assert s.handle("divq r0, r1") == "Error: division by zero"

    def test_line_is_stripped(self):
        s = Session()
        assert s.handle("  nop \r\n") == ACK_EXECUTED
        assert s.handle(" dump ").startswith("r0: ")

    def test_oversized_literal_is_an_error_response(self):
        s = Session()
        s.handle("irmovq 5, r1")
        before = s.dump()
        resp = s.handle("irmovq " + "1" * 5000 + " r1")
        assert resp.startswith(ERROR_PREFIX + "immediate out of 64-bit range")
        assert s.dump() == before
        assert s.stats['decode_errors'] == 1

    def test_session_continues_after_errors(self):
        s = Session()
        s.handle("bogus")
        s.handle("pushq r1")
        assert s.handle("irmovq 1, r1") == ACK_EXECUTED

    def test_commands_after_halt_still_answer(self):
        s = Session()
        s.handle("halt")
        assert s.handle("irmovq 9, r2") == ACK_EXECUTED
        fields = dump_fields(s.handle("dump"))
        assert fields["r2"] == "0000000000000009"
        assert fields["PC"] == "0" * 16


class TestDump:

    def test_fresh_dump(self):
        s = Session()
        lines = s.handle("dump").splitlines()
        assert lines[:16] == [f"r{i}: {'0' * 16}" for i in range(16)]
        assert lines[16:] == [
            "FLAGS: ---",
            "PC: 0000000000000000",
            "START_ADDR: 0000000000000000",
            "VALID_MEM: 0000000000000400",
        ]

    def test_irmovq_shows_in_dump(self):
        s = Session()
        s.handle("irmovq 0xfedcba9876543210, r15")
        fields = dump_fields(s.handle("dump"))
        assert fields["r15"] == "fedcba9876543210"
        assert fields["PC"] == "000000000000000a"

    def test_flag_summary(self):
        s = Session()
        s.handle("irmovq 1, r1")
        s.handle("subq r1, r2")
        assert dump_fields(s.dump())["FLAGS"] == "-S-"
        s.handle("subq r2, r2")
        assert dump_fields(s.dump())["FLAGS"] == "--Z"

    def test_window_from_config(self):
        s = Session(MachineConfig(capacity=0x100, start_addr=0x2000, stack_pointer=0x2100))
        fields = dump_fields(s.dump())
        assert fields["START_ADDR"] == "0000000000002000"
        assert fields["VALID_MEM"] == "0000000000000100"
        assert fields["r4"] == "0000000000002100"

    def test_unknown_mnemonic_leaves_state_identical(self):
        s = Session()
        s.handle("irmovq 3, r1")
        s.handle("irmovq 64, r4")
        before = s.handle("dump")
        mem_before = s.state.mem.snapshot()
        assert s.handle("foobar r1,r2").startswith(ERROR_PREFIX)
        assert s.handle("dump") == before
        assert s.state.mem.snapshot() == mem_before

    def test_failed_push_leaves_state_identical(self):
        s = Session()
        s.handle("irmovq 4, r4")
        before = s.dump()
        assert s.handle("pushq r1").startswith(ERROR_PREFIX)
        assert s.dump() == before


class TestStats:

    def test_counters(self):
        s = Session()
        s.handle("nop")
        s.handle("nope")
        s.handle("divq r0, r0")
        s.handle("dump")
        assert s.stats == {
            'requests': 4,
            'executed': 1,
            'decode_errors': 1,
            'faults': 1,
            'dumps': 1,
        }
        assert "requests" in s.dump_stats()

    def test_sessions_are_isolated(self):
        a, b = Session(name="a"), Session(name="b")
        a.handle("irmovq 7, r3")
        assert dump_fields(b.dump())["r3"] == "0" * 16
        assert dump_fields(a.dump())["r3"] == "0000000000000007"

import io

import pytest

from rv32sim.cpu import Cpu
from rv32sim.debugger import Debugger
from rv32sim.isa import Reg
from rv32sim.memory import Memory
from rv32sim.supervisor import Supervisor, SupervisorError, SupervisorStatus

ECALL = 0x00000073
EBREAK = 0x00100073


def i_type(op, rd, f3, rs1, imm):
    return ((imm & 0xFFF) << 20) | (rs1 << 15) | (f3 << 12) | (rd << 7) | op


def addi(rd, rs1, imm):
    return i_type(0x13, rd, 0, rs1, imm)


def lw(rd, rs1, imm):
    return i_type(0x03, rd, 2, rs1, imm)


def sw(rs2, rs1, imm):
    imm &= 0xFFF
    return ((imm >> 5) << 25) | (rs2 << 20) | (rs1 << 15) | (2 << 12) | ((imm & 0x1F) << 7) | 0x23


def lui(rd, imm20):
    return (imm20 << 12) | (rd << 7) | 0x37


def exit_with(code):
    return [addi(Reg.A0, 0, code), addi(Reg.A7, 0, 93), ECALL]


def build(words, stdin_text="", debugger_input=None):
    memory = Memory()
    cpu = Cpu(memory)
    code = b"".join(w.to_bytes(4, "little") for w in words)
    memory.map_area(0, len(code))[:] = code
    cpu.reset(0)
    out = io.StringIO()
    debugger = None
    err = io.StringIO()
    if debugger_input is not None:
        debugger = Debugger(cpu, memory, io.StringIO(debugger_input), io.StringIO(), err)
        debugger.enable()
    sv = Supervisor(cpu, memory, debugger, io.StringIO(stdin_text), out)
    return sv, out, err


def test_init_sets_stack_pointer():
    sv, _, _ = build([ECALL])
    assert sv.cpu.get_register(Reg.SP) == Supervisor.STACK_TOP - 4
    assert sv.memory.is_mapped(Supervisor.STACK_TOP - Supervisor.STACK_PAGE_SIZE, Supervisor.STACK_PAGE_SIZE)


def test_init_fails_when_stack_is_mapped():
    memory = Memory()
    memory.map_area(Supervisor.STACK_TOP - 8, 8)
    with pytest.raises(SupervisorError):
        Supervisor(Cpu(memory), memory, None, io.StringIO(), io.StringIO())


def test_print_int_and_exit_0():
    sv, out, _ = build([addi(Reg.A0, 0, 42), addi(Reg.A7, 0, 1), ECALL, addi(Reg.A7, 0, 10), ECALL])
    assert sv.run() == SupervisorStatus.TERMINATED
    assert out.getvalue() == "42"
    assert sv.exit_code == 0


def test_print_negative_int():
    sv, out, _ = build([addi(Reg.A0, 0, -5), addi(Reg.A7, 0, 1), ECALL, addi(Reg.A7, 0, 10), ECALL])
    sv.run()
    assert out.getvalue() == "-5"


def test_exit_with_code():
    sv, _, _ = build(exit_with(7))
    assert sv.run() == SupervisorStatus.TERMINATED
    assert sv.exit_code == 7


def test_exit_with_negative_code():
    sv, _, _ = build(exit_with(-3))
    sv.run()
    assert sv.exit_code == -3


def test_print_char():
    sv, out, _ = build([addi(Reg.A0, 0, ord("A")), addi(Reg.A7, 0, 11), ECALL, addi(Reg.A7, 0, 10), ECALL])
    sv.run()
    assert out.getvalue() == "A"


def test_read_int_then_print():
    words = [addi(Reg.A7, 0, 5), ECALL, addi(Reg.A7, 0, 1), ECALL, addi(Reg.A7, 0, 10), ECALL]
    sv, out, _ = build(words, stdin_text="  123\n")
    sv.run()
    assert out.getvalue() == "int value? >123"


def test_read_int_then_read_char_keeps_delimiter():
    words = [addi(Reg.A7, 0, 5), ECALL, addi(Reg.A7, 0, 12), ECALL, addi(Reg.A7, 0, 93), ECALL]
    sv, _, _ = build(words, stdin_text="12x")
    sv.run()
    assert sv.exit_code == ord("x")


def test_read_char():
    words = [addi(Reg.A7, 0, 12), ECALL, addi(Reg.A7, 0, 93), ECALL]
    sv, _, _ = build(words, stdin_text="Z")
    sv.run()
    assert sv.exit_code == ord("Z")


def test_read_char_at_eof():
    words = [addi(Reg.A7, 0, 12), ECALL, addi(Reg.A7, 0, 93), ECALL]
    sv, _, _ = build(words, stdin_text="")
    sv.run()
    assert sv.exit_code == -1


def test_invalid_syscall():
    sv, _, _ = build([addi(Reg.A7, 0, 200), ECALL])
    assert sv.run() == SupervisorStatus.INVALID_SYSCALL


def test_illegal_instruction():
    sv, _, _ = build([addi(Reg.A0, 0, 1), 0])
    assert sv.run() == SupervisorStatus.ILL_INST_FAULT
    assert sv.cpu.get_register(Reg.PC) == 4


def test_memory_fault():
    sv, _, _ = build([lui(Reg.T0, 0x10), lw(Reg.A0, Reg.T0, 0)])
    assert sv.run() == SupervisorStatus.MEMORY_FAULT
    assert sv.memory.last_fault_address == 0x10 << 12


def test_stack_grows_by_one_page():
    words = [addi(Reg.SP, Reg.SP, -2048), addi(Reg.SP, Reg.SP, -2048), sw(0, Reg.SP, 0)] + exit_with(0)
    sv, _, _ = build(words)
    assert sv.run() == SupervisorStatus.TERMINATED
    assert sv.memory.is_mapped(sv.cpu.get_register(Reg.SP), 4)
    assert sv.stack_bottom == Supervisor.STACK_TOP - 2 * Supervisor.STACK_PAGE_SIZE


def test_stack_does_not_grow_past_one_page():
    words = [addi(Reg.SP, Reg.SP, -2048)] * 4 + [sw(0, Reg.SP, 0)] + exit_with(0)
    sv, _, _ = build(words)
    assert sv.run() == SupervisorStatus.MEMORY_FAULT
    assert sv.stack_bottom == Supervisor.STACK_TOP - Supervisor.STACK_PAGE_SIZE


def test_ebreak_without_debugger_is_skipped():
    sv, _, _ = build([EBREAK] + exit_with(4))
    assert sv.run() == SupervisorStatus.TERMINATED
    assert sv.exit_code == 4


def test_ebreak_enters_debugger():
    sv, _, err = build([EBREAK] + exit_with(4), debugger_input="c\n")
    assert sv.run() == SupervisorStatus.TERMINATED
    assert err.getvalue().count("debug> ") == 1


def test_debugger_quit_kills_program():
    sv, _, _ = build(exit_with(4), debugger_input="q\n")
    sv.debugger.request_enter()
    assert sv.run() == SupervisorStatus.KILLED
    assert sv.cpu.get_register(Reg.PC) == 0
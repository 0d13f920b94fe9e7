"""RV32IM processor core: register file, fetch and execute."""

from __future__ import annotations

from collections.abc import Callable
from enum import IntEnum

from .isa import (
    MASK32,
    Opcode,
    Reg,
    b_imm13_sext,
    funct3,
    funct7,
    i_imm12,
    i_imm12_sext,
    j_imm21_sext,
    opcode,
    rd,
    rs1,
    rs2,
    s_imm12_sext,
    sext32,
    sra32,
    to_signed32,
    u_imm20,
)
from .memory import Memory, MemoryAccessError

_NUM_REGS = 32


class CpuStatus(IntEnum):
    """Outcome of executing one instruction."""

    OK = 0
    MEMORY_FAULT = -1
    ILL_INST_FAULT = -2
    ECALL_TRAP = -3
    EBREAK_TRAP = -4


def _trunc_div(a: int, b: int) -> int:
    """Signed division rounding toward zero."""
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


class Cpu:
    """A single-hart RV32IM core executing from a :class:`Memory`."""

    def __init__(self, memory: Memory) -> None:
        self.memory = memory
        self._regs = [0] * _NUM_REGS
        self.pc = 0
        self.last_status = CpuStatus.OK
        self._handlers: dict[int, Callable[[int], CpuStatus]] = {
            Opcode.LOAD: self._exec_load,
            Opcode.OPIMM: self._exec_opimm,
            Opcode.AUIPC: self._exec_auipc,
            Opcode.STORE: self._exec_store,
            Opcode.OP: self._exec_op,
            Opcode.LUI: self._exec_lui,
            Opcode.BRANCH: self._exec_branch,
            Opcode.JALR: self._exec_jalr,
            Opcode.JAL: self._exec_jal,
            Opcode.SYSTEM: self._exec_system,
        }

    def get_register(self, reg: int) -> int:
        """Return the value of a register; ``Reg.PC`` gives the program counter."""
        if reg == Reg.ZERO:
            return 0
        if reg == Reg.PC:
            return self.pc
        return self._regs[reg]

    def set_register(self, reg: int, value: int) -> None:
        """Set a register; writes to x0 are ignored."""
        value &= MASK32
        if reg == Reg.PC:
            self.pc = value
        elif reg != Reg.ZERO:
            self._regs[reg] = value

    def reset(self, pc: int) -> None:
        """Clear all registers and the fault state, and jump to ``pc``."""
        self.last_status = CpuStatus.OK
        self.pc = pc & MASK32
        self._regs = [0] * _NUM_REGS

    def clear_last_fault(self) -> CpuStatus:
        """Resume after a fault; traps and illegal instructions are skipped over."""
        if self.last_status in (
            CpuStatus.ILL_INST_FAULT,
            CpuStatus.EBREAK_TRAP,
            CpuStatus.ECALL_TRAP,
        ):
            self.pc = (self.pc + 4) & MASK32
        self.last_status = CpuStatus.OK
        return self.last_status

    def tick(self) -> CpuStatus:
        """Fetch and execute one instruction; a pending fault is returned unchanged."""
        if self.last_status != CpuStatus.OK:
            return self.last_status
        try:
            instr = self.memory.read32(self.pc)
        except MemoryAccessError:
            self.last_status = CpuStatus.MEMORY_FAULT
            return self.last_status

        handler = self._handlers.get(opcode(instr))
        if handler is None:
            status = CpuStatus.ILL_INST_FAULT
        else:
            try:
                status = handler(instr)
            except MemoryAccessError:
                status = CpuStatus.MEMORY_FAULT
        self._regs[Reg.ZERO] = 0
        self.last_status = status
        return status

    def _advance(self) -> CpuStatus:
        self.pc = (self.pc + 4) & MASK32
        return CpuStatus.OK

    def _exec_load(self, instr: int) -> CpuStatus:
        regs = self._regs
        addr = (regs[rs1(instr)] + i_imm12_sext(instr)) & MASK32
        f3 = funct3(instr)
        mem = self.memory
        if f3 == 0:
            value = sext32(mem.read8(addr), 8)
        elif f3 == 1:
            value = sext32(mem.read16(addr), 16)
        elif f3 == 2:
            value = mem.read32(addr)
        elif f3 == 4:
            value = mem.read8(addr)
        elif f3 == 5:
            value = mem.read16(addr)
        else:
            return CpuStatus.ILL_INST_FAULT
        regs[rd(instr)] = value
        return self._advance()

    def _exec_opimm(self, instr: int) -> CpuStatus:
        regs = self._regs
        src = regs[rs1(instr)]
        imm = i_imm12_sext(instr)
        shamt = i_imm12(instr) & 0x1F
        f3 = funct3(instr)
        f7 = funct7(instr)
        if f3 == 0:
            result = src + imm
        elif f3 == 1:
            if f7 != 0x00:
                return CpuStatus.ILL_INST_FAULT
            result = src << shamt
        elif f3 == 2:
            result = int(to_signed32(src) < to_signed32(imm))
        elif f3 == 3:
            result = int(src < i_imm12(instr))
        elif f3 == 4:
            result = src ^ imm
        elif f3 == 5:
            if f7 == 0x00:
                result = src >> shamt
            elif f7 == 0x20:
                result = sra32(src, shamt)
            else:
                return CpuStatus.ILL_INST_FAULT
        elif f3 == 6:
            result = src | imm
        else:
            result = src & imm
        regs[rd(instr)] = result & MASK32
        return self._advance()

    def _exec_auipc(self, instr: int) -> CpuStatus:
        self._regs[rd(instr)] = (self.pc + (u_imm20(instr) << 12)) & MASK32
        return self._advance()

    def _exec_store(self, instr: int) -> CpuStatus:
        regs = self._regs
        addr = (regs[rs1(instr)] + s_imm12_sext(instr)) & MASK32
        value = regs[rs2(instr)]
        f3 = funct3(instr)
        if f3 == 0:
            self.memory.write8(addr, value & 0xFF)
        elif f3 == 1:
            self.memory.write16(addr, value & 0xFFFF)
        elif f3 == 2:
            self.memory.write32(addr, value)
        else:
            return CpuStatus.ILL_INST_FAULT
        return self._advance()

    def _exec_op(self, instr: int) -> CpuStatus:
        regs = self._regs
        a = regs[rs1(instr)]
        b = regs[rs2(instr)]
        f3 = funct3(instr)
        f7 = funct7(instr)
        if f7 == 0x00:
            result = (
                a + b,
                a << (b & 0x1F),
                int(to_signed32(a) < to_signed32(b)),
                int(a < b),
                a ^ b,
                a >> (b & 0x1F),
                a | b,
                a & b,
            )[f3]
        elif f7 == 0x20:
            if f3 == 0:
                result = a - b
            elif f3 == 5:
                result = sra32(a, b & 0x1F)
            else:
                return CpuStatus.ILL_INST_FAULT
        elif f7 == 0x01:
            result = self._muldiv(f3, a, b)
        else:
            return CpuStatus.ILL_INST_FAULT
        regs[rd(instr)] = result & MASK32
        return self._advance()

    @staticmethod
    def _muldiv(f3: int, a: int, b: int) -> int:
        sa = to_signed32(a)
        sb = to_signed32(b)
        if f3 == 0:
            return a * b
        if f3 == 1:
            return (sa * sb) >> 32
        if f3 == 2:
            return (sa * b) >> 32
        if f3 == 3:
            return (a * b) >> 32
        if f3 == 4:
            if b == 0:
                return MASK32
            if a == 0x80000000 and b == MASK32:
                return 0x80000000
            return _trunc_div(sa, sb)
        if f3 == 5:
            return MASK32 if b == 0 else a // b
        if f3 == 6:
            if b == 0:
                return a
            if a == 0x80000000 and b == MASK32:
                return 0
            return sa - _trunc_div(sa, sb) * sb
        return a if b == 0 else a % b

    def _exec_lui(self, instr: int) -> CpuStatus:
        self._regs[rd(instr)] = (u_imm20(instr) << 12) & MASK32
        return self._advance()

    def _exec_branch(self, instr: int) -> CpuStatus:
        regs = self._regs
        a = regs[rs1(instr)]
        b = regs[rs2(instr)]
        f3 = funct3(instr)
        if f3 == 0:
            taken = a == b
        elif f3 == 1:
            taken = a != b
        elif f3 == 4:
            taken = to_signed32(a) < to_signed32(b)
        elif f3 == 5:
            taken = to_signed32(a) >= to_signed32(b)
        elif f3 == 6:
            taken = a < b
        elif f3 == 7:
            taken = a >= b
        else:
            return CpuStatus.ILL_INST_FAULT
        step = b_imm13_sext(instr) if taken else 4
        self.pc = (self.pc + step) & MASK32
        return CpuStatus.OK

    def _exec_jalr(self, instr: int) -> CpuStatus:
        if funct3(instr) != 0:
            return CpuStatus.ILL_INST_FAULT
        regs = self._regs
        regs[rd(instr)] = (self.pc + 4) & MASK32
        # bit zero is cleared as the specification suggests
        self.pc = (regs[rs1(instr)] + i_imm12_sext(instr)) & MASK32 & ~1
        return CpuStatus.OK

    def _exec_jal(self, instr: int) -> CpuStatus:
        self._regs[rd(instr)] = (self.pc + 4) & MASK32
        self.pc = (self.pc + j_imm21_sext(instr)) & MASK32
        return CpuStatus.OK

    def _exec_system(self, instr: int) -> CpuStatus:
        if funct3(instr) != 0:
            return CpuStatus.ILL_INST_FAULT
        imm = i_imm12(instr)
        if imm == 0:
            return CpuStatus.ECALL_TRAP
        if imm == 1:
            return CpuStatus.EBREAK_TRAP
        return CpuStatus.ILL_INST_FAULT
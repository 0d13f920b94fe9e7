"""RV32IM instruction-set definitions: registers, opcodes, field decoding and disassembly."""

from __future__ import annotations

from enum import IntEnum

XLEN = 32
MASK32 = 0xFFFFFFFF


class Reg(IntEnum):
    """CPU register identifiers, with ABI aliases."""

    X0 = 0
    ZERO = 0
    X1 = 1
    RA = 1
    X2 = 2
    SP = 2
    X3 = 3
    GP = 3
    X4 = 4
    TP = 4
    X5 = 5
    T0 = 5
    X6 = 6
    T1 = 6
    X7 = 7
    T2 = 7
    X8 = 8
    FP = 8
    S0 = 8
    X9 = 9
    S1 = 9
    X10 = 10
    A0 = 10
    X11 = 11
    A1 = 11
    X12 = 12
    A2 = 12
    X13 = 13
    A3 = 13
    X14 = 14
    A4 = 14
    X15 = 15
    A5 = 15
    X16 = 16
    A6 = 16
    X17 = 17
    A7 = 17
    X18 = 18
    S2 = 18
    X19 = 19
    S3 = 19
    X20 = 20
    S4 = 20
    X21 = 21
    S5 = 21
    X22 = 22
    S6 = 22
    X23 = 23
    S7 = 23
    X24 = 24
    S8 = 24
    X25 = 25
    S9 = 25
    X26 = 26
    S10 = 26
    X27 = 27
    S11 = 27
    X28 = 28
    T3 = 28
    X29 = 29
    T4 = 29
    X30 = 30
    T5 = 30
    X31 = 31
    T6 = 31
    PC = 32


def _opcode_code(x: int) -> int:
    return (x << 2) | 3


class Opcode(IntEnum):
    """Major opcodes of the supported instructions."""

    LOAD = _opcode_code(0x00)
    OPIMM = _opcode_code(0x04)
    AUIPC = _opcode_code(0x05)
    STORE = _opcode_code(0x08)
    OP = _opcode_code(0x0C)
    LUI = _opcode_code(0x0D)
    BRANCH = _opcode_code(0x18)
    JALR = _opcode_code(0x19)
    JAL = _opcode_code(0x1B)
    SYSTEM = _opcode_code(0x1C)


def sext32(x: int, amt: int) -> int:
    """Sign-extend the low ``amt`` bits of ``x`` to a 32-bit unsigned value."""
    x &= MASK32
    amt %= 32
    if amt == 0:
        return x
    if x & (1 << (amt - 1)):
        x |= (MASK32 << amt) & MASK32
    return x


def sra32(x: int, amt: int) -> int:
    """Arithmetic right shift of a 32-bit value."""
    amt %= 32
    shifted = (x & MASK32) >> amt
    return sext32(shifted, 32 - amt)


def bits32(x: int, a: int, b: int) -> int:
    """Extract bits ``a`` (inclusive) to ``b`` (exclusive) of ``x``."""
    return ((x & MASK32) >> a) & ((1 << (b - a)) - 1)


def to_signed32(x: int) -> int:
    """Interpret a 32-bit unsigned value as a signed integer."""
    x &= MASK32
    return x - (1 << 32) if x & 0x80000000 else x


def opcode(instr: int) -> int:
    return bits32(instr, 0, 7)


def rd(instr: int) -> int:
    return bits32(instr, 7, 12)


def funct3(instr: int) -> int:
    return bits32(instr, 12, 15)


def rs1(instr: int) -> int:
    return bits32(instr, 15, 20)


def rs2(instr: int) -> int:
    return bits32(instr, 20, 25)


def funct7(instr: int) -> int:
    return bits32(instr, 25, 32)


def i_imm12(instr: int) -> int:
    return bits32(instr, 20, 32)


def i_imm12_sext(instr: int) -> int:
    return sext32(i_imm12(instr), 12)


def _s_imm12(instr: int) -> int:
    return bits32(instr, 7, 12) | (bits32(instr, 25, 32) << 5)


def s_imm12_sext(instr: int) -> int:
    return sext32(_s_imm12(instr), 12)


def _b_imm13(instr: int) -> int:
    return (
        (bits32(instr, 7, 8) << 11)
        | (bits32(instr, 8, 12) << 1)
        | (bits32(instr, 25, 31) << 5)
        | (bits32(instr, 31, 32) << 12)
    )


def b_imm13_sext(instr: int) -> int:
    return sext32(_b_imm13(instr), 13)


def u_imm20(instr: int) -> int:
    return bits32(instr, 12, 32)


def _j_imm21(instr: int) -> int:
    return (
        (bits32(instr, 12, 20) << 12)
        | (bits32(instr, 20, 21) << 11)
        | (bits32(instr, 21, 31) << 1)
        | (bits32(instr, 31, 32) << 20)
    )


def j_imm21_sext(instr: int) -> int:
    return sext32(_j_imm21(instr), 21)


_ILLEGAL = "<illegal>"

_OP_MNEMONICS = {
    0x00: ("ADD", "SLL", "SLT", "SLTU", "XOR", "SRL", "OR", "AND"),
    0x20: ("SUB", None, None, None, None, "SRA", None, None),
    0x01: ("MUL", "MULH", "MULHSU", "MULHU", "DIV", "DIVU", "REM", "REMU"),
}
_OPIMM_MNEMONICS = ("ADDI", "SLLI", "SLTI", "SLTIU", "XORI", "SRLI", "ORI", "ANDI")
_LOAD_MNEMONICS = ("LB", "LH", "LW", None, "LBU", "LHU", None, None)
_STORE_MNEMONICS = ("SB", "SH", "SW", None, None, None, None, None)
_BRANCH_MNEMONICS = ("BEQ", "BNE", None, None, "BLT", "BGE", "BLTU", "BGEU")


def _dis_op(instr: int) -> str:
    table = _OP_MNEMONICS.get(funct7(instr))
    if table is None:
        return _ILLEGAL
    mnem = table[funct3(instr)]
    if mnem is None:
        return _ILLEGAL
    return f"{mnem} x{rd(instr)}, x{rs1(instr)}, x{rs2(instr)}"


def _dis_opimm(instr: int) -> str:
    imm = to_signed32(i_imm12_sext(instr))
    f3 = funct3(instr)
    mnem = _OPIMM_MNEMONICS[f3]
    if f3 == 3:
        imm &= 0x7FF
    elif f3 == 1:
        if funct7(instr) != 0:
            return _ILLEGAL
    elif f3 == 5:
        if funct7(instr) == 0x20:
            mnem = "SRAI"
            imm &= 0x1F
        elif funct7(instr) != 0:
            return _ILLEGAL
    return f"{mnem} x{rd(instr)}, x{rs1(instr)}, {imm}"


def _dis_load(instr: int) -> str:
    mnem = _LOAD_MNEMONICS[funct3(instr)]
    if mnem is None:
        return _ILLEGAL
    imm = to_signed32(i_imm12_sext(instr))
    return f"{mnem} x{rd(instr)}, {imm}(x{rs1(instr)})"


def _dis_store(instr: int) -> str:
    mnem = _STORE_MNEMONICS[funct3(instr)]
    if mnem is None:
        return _ILLEGAL
    imm = to_signed32(s_imm12_sext(instr))
    return f"{mnem} x{rs2(instr)}, {imm}(x{rs1(instr)})"


def _dis_branch(instr: int) -> str:
    mnem = _BRANCH_MNEMONICS[funct3(instr)]
    if mnem is None:
        return _ILLEGAL
    imm = to_signed32(b_imm13_sext(instr))
    return f"{mnem} x{rs1(instr)}, x{rs2(instr)}, *{imm:+d}"


def _dis_system(instr: int) -> str:
    if funct3(instr) != 0:
        return _ILLEGAL
    imm = i_imm12(instr)
    if imm == 0:
        return "ECALL"
    if imm == 1:
        return "EBREAK"
    return _ILLEGAL


def disassemble(instr: int) -> str:
    """Return the assembly text of a 32-bit instruction word."""
    op = opcode(instr)
    if op == Opcode.OP:
        return _dis_op(instr)
    if op == Opcode.OPIMM:
        return _dis_opimm(instr)
    if op == Opcode.LOAD:
        return _dis_load(instr)
    if op == Opcode.STORE:
        return _dis_store(instr)
    if op == Opcode.BRANCH:
        return _dis_branch(instr)
    if op == Opcode.JAL:
        imm = to_signed32(j_imm21_sext(instr))
        return f"JAL x{rd(instr)}, *{imm:+d}"
    if op == Opcode.JALR:
        if funct3(instr) != 0:
            return _ILLEGAL
        imm = to_signed32(i_imm12_sext(instr))
        return f"JALR x{rd(instr)}, {imm}(x{rs1(instr)})"
    if op == Opcode.LUI:
        return f"LUI x{rd(instr)}, 0x{u_imm20(instr):05x}"
    if op == Opcode.AUIPC:
        return f"AUIPC x{rd(instr)}, 0x{u_imm20(instr):05x}"
    if op == Opcode.SYSTEM:
        return _dis_system(instr)
    return _ILLEGAL
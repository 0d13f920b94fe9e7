"""Interactive debugger: breakpoints, stepping and a small command shell."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TextIO

from .cpu import Cpu
from .isa import MASK32, Opcode, Reg, disassemble, funct3, opcode, rd
from .memory import Memory

_ULONG_MAX = (1 << 64) - 1

_NUMBER_RE = re.compile(
    r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)"
)

_HELP_TEXT = (
    "Debugger commands:",
    "q               Exit the simulator",
    "c               Exit the debugger and continue (up to the next",
    "                  breakpoint if any)",
    "s               Step in",
    "n               Step over",
    "b <address>     Add a breakpoint at the specified address",
    "bl              List all breakpoints",
    "br <id>         Remove breakpoint number <id>",
    "v               Print current CPU state",
    "u <start> <len> Disassemble 'len' instructions from address 'start'",
    "d <start> <len> Dump 'len' bytes from address 'start'",
)


class DebugResult(IntEnum):
    """What the simulation should do after a debugger tick."""

    CONTINUE = 0
    EXIT = 1


@dataclass(frozen=True)
class Breakpoint:
    """A breakpoint on an instruction address."""

    id: int
    address: int


class _Trigger(Enum):
    NONE = 0
    BREAKPOINT = 1
    STEP_IN = 2
    STEP_OVER = 3
    USER = 4


def _parse_number(text: str) -> tuple[int, str] | None:
    """Parse an unsigned number the way ``strtoul`` with base 0 does."""
    match = _NUMBER_RE.match(text)
    if match is None:
        return None
    sign, digits = match.groups()
    if digits[:2] in ("0x", "0X"):
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits, 10)
    value = min(value, _ULONG_MAX)
    if sign == "-":
        value = (-value) & _ULONG_MAX
    return value, text[match.end():]


def _accept_keyword(word: str, text: str) -> tuple[bool, str]:
    """Skip leading whitespace, then consume ``word`` if the text starts with it."""
    text = text.lstrip()
    if text.startswith(word):
        return True, text[len(word):]
    return False, text


class Debugger:
    """Debugger attached to a CPU and its memory."""

    def __init__(
        self,
        cpu: Cpu,
        memory: Memory,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.cpu = cpu
        self.memory = memory
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.enabled = False
        self._user_requests_enter = False
        self._step_in = False
        self._step_over = False
        self._step_over_addr = 0
        self._breakpoints: list[Breakpoint] = []
        self._next_id = 0

    def enable(self) -> bool:
        """Enable the debugger; return whether it was already enabled."""
        old = self.enabled
        self.enabled = True
        return old

    def disable(self) -> bool:
        """Disable the debugger; return whether it was enabled."""
        old = self.enabled
        self.enabled = False
        return old

    def request_enter(self) -> None:
        """Enter the interactive shell at the next tick."""
        self._user_requests_enter = True

    def log(self, message: str) -> int:
        """Write a message to stderr when enabled; return the characters written."""
        if not self.enabled:
            return 0
        return self.stderr.write(message)

    def add_breakpoint(self, address: int) -> int:
        """Add a breakpoint and return its identifier."""
        bp = Breakpoint(self._next_id, address & MASK32)
        self._next_id += 1
        self._breakpoints.insert(0, bp)
        return bp.id

    def remove_breakpoint(self, bp_id: int) -> bool:
        """Remove a breakpoint; return False if no such breakpoint exists."""
        for index, bp in enumerate(self._breakpoints):
            if bp.id == bp_id:
                del self._breakpoints[index]
                return True
        return False

    def get_breakpoint(self, bp_id: int) -> int:
        """Return the address of a breakpoint; raise KeyError if it does not exist."""
        for bp in self._breakpoints:
            if bp.id == bp_id:
                return bp.address
        raise KeyError(bp_id)

    def breakpoints(self) -> list[Breakpoint]:
        """Return all breakpoints, most recently added first."""
        return list(self._breakpoints)

    def _check_trigger(self) -> tuple[_Trigger, Breakpoint | None]:
        if not self.enabled:
            return _Trigger.NONE, None
        if self._user_requests_enter:
            return _Trigger.USER, None
        if self._step_in:
            return _Trigger.STEP_IN, None
        pc = self.cpu.get_register(Reg.PC)
        if self._step_over and self._step_over_addr == pc:
            return _Trigger.STEP_OVER, None
        for bp in self._breakpoints:
            if bp.address == pc:
                return _Trigger.BREAKPOINT, bp
        return _Trigger.NONE, None

    def execute_command(self, line: str) -> DebugResult | None:
        """Run one shell command.

        Returns None to stay in the shell, ``DebugResult.CONTINUE`` to resume
        execution and ``DebugResult.EXIT`` to stop the simulator.
        """
        rest = line
        for word, action in (
            ("q", self._cmd_quit),
            ("c", self._cmd_continue),
            ("s", self._cmd_step_in),
            ("n", self._cmd_step_over),
            ("bl", self._cmd_print_breakpoints),
            ("br", self._cmd_remove_breakpoint),
            ("b", self._cmd_add_breakpoint),
            ("v", self._cmd_print_cpu_status),
            ("u", self._cmd_disassemble),
            ("d", self._cmd_mem_dump),
        ):
            accepted, rest = _accept_keyword(word, rest)
            if accepted:
                return action(rest)
        if rest:
            self._cmd_help()
        return None

    def cpu_status(self) -> str:
        """Return the program counter, current instruction and all registers."""
        pc = self.cpu.get_register(Reg.PC)
        inst = self.memory.debug_read32(pc)
        parts = [f"PC : {pc:08x}: {inst:08x} {disassemble(inst)}\n"]
        for reg in range(Reg.X0, Reg.X31 + 1):
            parts.append(f"X{reg:<2d}: {self.cpu.get_register(reg):08x}")
            parts.append("\n" if (reg + 1) % 4 == 0 else " ")
        return "".join(parts)

    def _cmd_quit(self, _args: str) -> DebugResult:
        return DebugResult.EXIT

    def _cmd_continue(self, _args: str) -> DebugResult:
        return DebugResult.CONTINUE

    def _cmd_step_in(self, _args: str) -> DebugResult:
        self._step_in = True
        return DebugResult.CONTINUE

    def _cmd_step_over(self, _args: str) -> DebugResult:
        pc = self.cpu.get_register(Reg.PC)
        inst = self.memory.debug_read32(pc)
        op = opcode(inst)
        is_call = (
            op == Opcode.JAL or (op == Opcode.JALR and funct3(inst) == 0)
        ) and rd(inst) == Reg.RA
        if is_call:
            self._step_over = True
            self._step_over_addr = (pc + 4) & MASK32
        else:
            self._step_in = True
        return DebugResult.CONTINUE

    def _cmd_help(self) -> None:
        for text in _HELP_TEXT:
            self.stdout.write(text + "\n")

    def _two_numbers(self, args: str) -> tuple[int, int] | None:
        first = _parse_number(args)
        if first is None:
            self.stderr.write("First argument is not a valid number\n")
            return None
        start, rest = first
        second = _parse_number(rest)
        if second is None:
            self.stderr.write("Second argument is not a valid number\n")
            return None
        return start, second[0]

    def _cmd_add_breakpoint(self, args: str) -> None:
        parsed = _parse_number(args)
        if parsed is None:
            self.stderr.write("First argument is not a valid number\n")
            return None
        addr = parsed[0]
        bp_id = self.add_breakpoint(addr)
        self.stderr.write(f"Added breakpoint {bp_id} at address 0x{addr:08x}\n")
        return None

    def _cmd_remove_breakpoint(self, args: str) -> None:
        parsed = _parse_number(args)
        if parsed is None:
            self.stderr.write("First argument is not a valid number\n")
            return None
        bp_id = parsed[0]
        if self.remove_breakpoint(bp_id):
            self.stderr.write(f"Removed breakpoint {bp_id}\n")
        else:
            self.stderr.write(f"Breakpoint {bp_id} not found\n")
        return None

    def _cmd_print_breakpoints(self, _args: str) -> None:
        if not self._breakpoints:
            self.stderr.write("No breakpoints defined\n")
            return None
        for bp in self._breakpoints:
            self.stderr.write(f"Breakpoint {bp.id:<8d} Address 0x{bp.address:08x}\n")
        return None

    def _cmd_print_cpu_status(self, _args: str) -> None:
        self.stderr.write(self.cpu_status())
        return None

    def _cmd_disassemble(self, args: str) -> None:
        parsed = self._two_numbers(args)
        if parsed is None:
            return None
        start, count = parsed
        for i in range(count):
            addr = (start + 4 * i) & MASK32
            instr = self.memory.debug_read32(addr)
            self.stderr.write(f"{addr:08x}:  {instr:08x}  {disassemble(instr)}\n")
        return None

    def _cmd_mem_dump(self, args: str) -> None:
        parsed = self._two_numbers(args)
        if parsed is None:
            return None
        start, length = parsed
        if length == 0:
            self.stderr.write("Length is zero\n")
            return None
        out = [f"{start & MASK32:08x}: "]
        for i in range(length):
            addr = (start + i) & MASK32
            out.append(f"{self.memory.debug_read8(addr):02x}")
            count = i + 1
            out.append("\n" if count % 16 == 0 or count == length else " ")
            if count % 16 == 0 and count < length:
                out.append(f"{(addr + 1) & MASK32:08x}: ")
        self.stderr.write("".join(out))
        return None

    def _prompt(self) -> DebugResult | None:
        self.stderr.write("debug> ")
        self.stderr.flush()
        line = self.stdin.readline()
        if not line:
            return DebugResult.EXIT
        return self.execute_command(line)

    def tick(self) -> DebugResult:
        """Enter the shell if a breakpoint, step or user request triggers."""
        trigger, bp = self._check_trigger()
        if trigger is _Trigger.NONE:
            return DebugResult.CONTINUE
        if bp is not None:
            self.stderr.write(
                f"Stopped at breakpoint #{bp.id} (PC=0x{bp.address:08x})\n"
            )
        self._step_in = False
        self._step_over = False
        self._user_requests_enter = False

        self.stderr.write(self.cpu_status())
        while True:
            result = self._prompt()
            if result is not None:
                return result
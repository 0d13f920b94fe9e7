"""Supervisor: stack management and environment calls around the CPU."""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TextIO

from .cpu import Cpu, CpuStatus
from .debugger import Debugger, DebugResult
from .isa import MASK32, Reg, to_signed32
from .memory import Memory, MemoryAccessError

_DIGITS = frozenset("0123456789")


class SupervisorStatus(IntEnum):
    """State of the simulated program after a supervisor tick."""

    RUNNING = 0
    TERMINATED = 1
    KILLED = 2
    MEMORY_FAULT = CpuStatus.MEMORY_FAULT
    ILL_INST_FAULT = CpuStatus.ILL_INST_FAULT
    INVALID_SYSCALL = -1000


class SupervisorError(Exception):
    """The supervisor could not set up the program's stack."""


class _Syscall(IntEnum):
    PRINT_INT = 1
    READ_INT = 5
    EXIT_0 = 10
    PRINT_CHAR = 11
    READ_CHAR = 12
    EXIT = 93


class Supervisor:
    """Runs a loaded program, serving its system calls and growing its stack."""

    STACK_TOP = 0x80000000
    STACK_PAGE_SIZE = 4096

    def __init__(
        self,
        cpu: Cpu,
        memory: Memory,
        debugger: Debugger | None = None,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self.cpu = cpu
        self.memory = memory
        self.debugger = debugger
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self.exit_code = 0
        self._pushback = ""
        self.stack_bottom = self.STACK_TOP - self.STACK_PAGE_SIZE
        try:
            memory.map_area(self.stack_bottom, self.STACK_PAGE_SIZE)
        except MemoryAccessError as exc:
            raise SupervisorError(f"cannot map the stack: {exc}") from exc
        cpu.set_register(Reg.SP, self.STACK_TOP - 4)

    def _expand_stack(self) -> None:
        fault = self.memory.last_fault_address
        if self.stack_bottom - self.STACK_PAGE_SIZE <= fault < self.stack_bottom:
            self.stack_bottom -= self.STACK_PAGE_SIZE
            try:
                self.memory.map_area(self.stack_bottom, self.STACK_PAGE_SIZE)
            except MemoryAccessError:
                pass

    def _getc(self) -> str:
        if self._pushback:
            char, self._pushback = self._pushback, ""
            return char
        return self.stdin.read(1)

    def _read_int(self) -> int | None:
        char = self._getc()
        while char and char.isspace():
            char = self._getc()
        sign = ""
        if char in ("+", "-") and char:
            sign = char
            char = self._getc()
        digits = []
        while char and char in _DIGITS:
            digits.append(char)
            char = self._getc()
        if char:
            self._pushback = char
        if not digits:
            return None
        return int(sign + "".join(digits)) & MASK32

    def _handle_env_call(self) -> SupervisorStatus:
        cpu = self.cpu
        syscall = cpu.get_register(Reg.A7)
        a0 = cpu.get_register(Reg.A0)
        if syscall == _Syscall.PRINT_INT:
            self.stdout.write(str(to_signed32(a0)))
        elif syscall == _Syscall.READ_INT:
            self.stdout.write("int value? >")
            self.stdout.flush()
            value = self._read_int()
            cpu.set_register(Reg.A0, 0 if value is None else value)
        elif syscall == _Syscall.EXIT_0:
            self.exit_code = 0
            return SupervisorStatus.TERMINATED
        elif syscall == _Syscall.PRINT_CHAR:
            self.stdout.write(chr(a0 & 0xFF))
        elif syscall == _Syscall.READ_CHAR:
            self.stdout.flush()
            char = self._getc()
            cpu.set_register(Reg.A0, ord(char) if char else MASK32)
        elif syscall == _Syscall.EXIT:
            self.exit_code = to_signed32(a0)
            return SupervisorStatus.TERMINATED
        else:
            return SupervisorStatus.INVALID_SYSCALL
        return SupervisorStatus.RUNNING

    def tick(self) -> SupervisorStatus:
        """Run the debugger hook and one instruction, then handle any trap."""
        if self.debugger is not None and self.debugger.tick() == DebugResult.EXIT:
            return SupervisorStatus.KILLED

        cpu = self.cpu
        status = cpu.tick()
        if status == CpuStatus.MEMORY_FAULT:
            self._expand_stack()
            cpu.clear_last_fault()
            status = cpu.tick()

        if status == CpuStatus.ECALL_TRAP:
            result = self._handle_env_call()
            if result == SupervisorStatus.RUNNING:
                cpu.clear_last_fault()
            return result
        if status == CpuStatus.EBREAK_TRAP:
            if self.debugger is not None and self.debugger.enabled:
                self.debugger.request_enter()
            cpu.clear_last_fault()
            return SupervisorStatus.RUNNING
        if status == CpuStatus.ILL_INST_FAULT:
            return SupervisorStatus.ILL_INST_FAULT
        if status == CpuStatus.MEMORY_FAULT:
            return SupervisorStatus.MEMORY_FAULT
        return SupervisorStatus.RUNNING

    def run(self) -> SupervisorStatus:
        """Tick until the program stops running and return the final status."""
        status = SupervisorStatus.RUNNING
        while status == SupervisorStatus.RUNNING:
            status = self.tick()
        return status
"""Command-line entry point of the RV32IM simulator."""

from __future__ import annotations

import getopt
import sys
from collections.abc import Sequence
from enum import IntEnum

from .cpu import Cpu
from .debugger import Debugger, _parse_number
from .isa import MASK32, Reg
from .loader import (
    ExecFormat,
    InvalidArchError,
    InvalidFormatError,
    LoaderError,
    detect_exec_type,
    load_binary,
    load_elf,
)
from .memory import Memory
from .supervisor import Supervisor, SupervisorError, SupervisorStatus

_PROG = "rv32sim"

_USAGE = (
    "Options:",
    "  -d, --debug           Enters debug mode before starting execution",
    "  -e, --entry=ADDR      Force the entry point to ADDR",
    "  -l, --load-addr=ADDR  Sets the executable loading address (only",
    "                          for executables in raw binary format)",
    "  -x, --prg-exit-code   Exits the simulator with the same exit code",
    "                          as the simulated program. In case of faults",
    "                          produces POSIX-style exit codes.",
    "  -h, --help            Displays available options",
)


class ExitReason(IntEnum):
    """Why the simulator stopped."""

    SUCCESS = 0
    HELP = 1
    INVALID_ARGS = 2
    INVALID_FILE = 3
    SIGSEGV = 4
    SIGILL = 5


_NORMAL_CODES = (0, 0, 1, 2, 100, 101)
_POSIX_CODES = (0, 126, 126, 126, 128 + 11, 128 + 4)


def exit_code(reason: int, to_posix: bool) -> int:
    """Map an exit reason to the process exit status."""
    try:
        reason = ExitReason(reason)
    except ValueError:
        return int(reason)
    table = _POSIX_CODES if to_posix else _NORMAL_CODES
    return table[reason]


def _usage(name: str) -> None:
    print("RISC-V RV32IM simulator")
    print(f"usage: {name} [options] executable\n")
    for line in _USAGE:
        print(line)


def _parse_address(text: str) -> int | None:
    parsed = _parse_number(text)
    return None if parsed is None else parsed[0] & MASK32


def main(argv: Sequence[str] | None = None) -> int:
    """Load an executable, run it and return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    debug = False
    entry = 0
    entry_set = False
    load = 0
    prg_exit = False

    try:
        opts, rest = getopt.gnu_getopt(
            args,
            "de:hl:x",
            ["debug", "entry=", "help", "load-addr=", "prg-exit-code"],
        )
    except getopt.GetoptError as exc:
        print(f"{_PROG}: {exc}", file=sys.stderr)
        _usage(_PROG)
        return exit_code(ExitReason.INVALID_ARGS, prg_exit)

    for opt, value in opts:
        if opt in ("-d", "--debug"):
            debug = True
        elif opt in ("-e", "--entry"):
            entry_set = True
            parsed = _parse_address(value)
            if parsed is None:
                print("Invalid entry address", file=sys.stderr)
                return 1
            entry = parsed
        elif opt in ("-l", "--load-addr"):
            parsed = _parse_address(value)
            if parsed is None:
                print("Invalid load address", file=sys.stderr)
                return 1
            load = parsed
        elif opt in ("-x", "--prg-exit-code"):
            prg_exit = True
        elif opt in ("-h", "--help"):
            _usage(_PROG)
            return exit_code(ExitReason.HELP, prg_exit)

    if not rest:
        _usage(_PROG)
        return exit_code(ExitReason.INVALID_ARGS, prg_exit)
    if len(rest) > 1:
        print("Cannot load more than one file, exiting.", file=sys.stderr)
        return exit_code(ExitReason.INVALID_ARGS, prg_exit)
    path = rest[0]

    memory = Memory()
    cpu = Cpu(memory)
    debugger = Debugger(cpu, memory)
    if debug:
        debugger.enable()

    try:
        exec_format = detect_exec_type(path)
    except LoaderError:
        print("Could not open executable, exiting.", file=sys.stderr)
        return exit_code(ExitReason.INVALID_FILE, prg_exit)

    error: LoaderError | None = None
    try:
        if exec_format == ExecFormat.BINARY:
            load_binary(path, memory, cpu, load, entry if entry_set else load, debugger.log)
        else:
            try:
                load_elf(path, memory, cpu, debugger.log)
            finally:
                if entry_set:
                    cpu.set_register(Reg.PC, entry)
    except LoaderError as exc:
        error = exc

    if isinstance(error, InvalidArchError):
        print("Not a valid RISC-V executable, exiting.", file=sys.stderr)
        return exit_code(ExitReason.INVALID_FILE, prg_exit)
    if isinstance(error, InvalidFormatError):
        print("Unsupported executable, exiting.", file=sys.stderr)
        return exit_code(ExitReason.INVALID_FILE, prg_exit)
    if error is not None:
        print("Error during executable loading, exiting.", file=sys.stderr)
        return exit_code(ExitReason.INVALID_FILE, prg_exit)

    supervisor: Supervisor | None = None
    try:
        supervisor = Supervisor(cpu, memory, debugger)
    except SupervisorError:
        status = SupervisorStatus.MEMORY_FAULT
    else:
        if debug:
            debugger.request_enter()
        status = supervisor.run()

    if status == SupervisorStatus.MEMORY_FAULT:
        print(
            f"Memory fault at address 0x{memory.last_fault_address:08x}, "
            "execution stopped.",
            file=sys.stderr,
        )
        return exit_code(ExitReason.SIGSEGV, prg_exit)
    if status == SupervisorStatus.ILL_INST_FAULT:
        print(
            f"Illegal instruction at address 0x{cpu.get_register(Reg.PC):08x}",
            file=sys.stderr,
        )
        return exit_code(ExitReason.SIGILL, prg_exit)
    if prg_exit and supervisor is not None:
        return supervisor.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())
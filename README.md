# rv32sim

A simulator for programs built for the RISC-V RV32IM instruction set. It
loads a 32-bit little-endian RISC-V ELF executable, or a raw binary image,
and runs it on a simulated CPU with a small supervisor that supplies a
stack and a handful of system calls. An interactive debugger is built in.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Running a program

```
rv32sim program.elf
```

Options:

```
-d, --debug           Enter debug mode before starting execution
-e, --entry=ADDR      Force the entry point to ADDR
-l, --load-addr=ADDR  Set the loading address (raw binary executables only)
-x, --prg-exit-code   Exit with the same exit code as the simulated program;
                      faults produce POSIX-style exit codes
-h, --help            Display the available options
```

Addresses may be written in decimal, hexadecimal (`0x...`) or octal (`0...`).

A file that starts with the ELF magic number is loaded as an ELF executable:
its `PT_LOAD` segments are mapped at their virtual addresses and execution
starts at the entry point in the header, unless `-e` forces another one.
Any other file (at least 4 bytes long) is loaded as a raw binary image at the
load address (0 unless given with `-l`); unless an entry point is forced,
execution starts at its first byte.

## System calls

The program requests a service with `ECALL`, placing the call number in
`a7` and the argument in `a0`:

| a7 | Service                                                         |
|----|-----------------------------------------------------------------|
| 1  | print the signed integer in `a0`                                |
| 5  | print `int value? >` and read a decimal integer into `a0` (0 if none) |
| 10 | exit with code 0                                                |
| 11 | print the character in the low byte of `a0`                     |
| 12 | read a character into `a0` (-1 at end of input)                 |
| 93 | exit with the code in `a0`                                      |

Any other call number stops the program.

The stack pointer starts at `0x7ffffffc`, inside a 4 KiB page just below
address `0x80000000`. When the program touches the page directly below the
lowest stack page, that page is mapped and the access is retried, so the
stack grows downward one page at a time.

## Exit status

| Outcome                     | Without `-x` | With `-x`              |
|-----------------------------|--------------|------------------------|
| program finished            | 0            | the program's exit code |
| `-h`                        | 0            | 126                    |
| bad arguments               | 1            | 126                    |
| executable cannot be loaded | 2            | 126                    |
| memory fault                | 100          | 139                    |
| illegal instruction         | 101          | 132                    |

An address given to `-e` or `-l` that is not a number always exits with 1.

## Debugger

Start with `-d`, or execute an `EBREAK` while the debugger is enabled, to
reach the `debug>` prompt. The debugger writes to standard error. Commands:

```
q               Exit the simulator
c               Continue (up to the next breakpoint, if any)
s               Step in
n               Step over (a JAL/JALR that writes ra runs to its return)
b <address>     Add a breakpoint at the specified address
bl              List all breakpoints
br <id>         Remove breakpoint number <id>
v               Print the current CPU state
u <start> <len> Disassemble 'len' instructions from address 'start'
d <start> <len> Dump 'len' bytes from address 'start'
```

Any other non-empty input prints this list.

## Using it as a library

The parts can be wired together directly:

```python
from rv32sim.memory import Memory
from rv32sim.cpu import Cpu
from rv32sim.isa import disassemble

memory = Memory()
memory.map_area(0x1000, 8)
memory.write32(0x1000, 0x00500513)   # ADDI x10, x0, 5
cpu = Cpu(memory)
cpu.reset(0x1000)
cpu.tick()
print(cpu.get_register(10))          # 5
print(disassemble(0x00500513))       # ADDI x10, x0, 5
```

- `rv32sim.isa` holds the register and opcode enumerations, instruction
  field decoding and `disassemble`.
- `rv32sim.memory.Memory` is a sparse address space of mapped areas;
  accesses outside them raise `MappingError`, overlapping mappings raise
  `ExtentMappedError`.
- `rv32sim.cpu.Cpu` executes one instruction per `tick()` and reports a
  `CpuStatus`.
- `rv32sim.loader` provides `detect_exec_type`, `load_binary` and
  `load_elf`, raising subclasses of `LoaderError` on failure.
- `rv32sim.supervisor.Supervisor` runs a loaded program with stack growth
  and system calls; `run()` returns the final `SupervisorStatus` and
  `exit_code` holds the program's exit code.
- `rv32sim.debugger.Debugger` provides breakpoints, stepping and the
  command shell; `execute_command` runs a single command line.

## What it does not do

The simulator only runs programs that are already built. It has no
assembler or compiler, supports only the base RV32I integer instructions
with the M extension (no compressed, floating-point or CSR instructions),
and offers only the system calls listed above.
"""A RISC-V RV32IM instruction-set simulator with an ELF and raw-binary loader, a supervisor and a debugger."""

__version__ = "0.1.0"

__all__ = ["cli", "cpu", "debugger", "isa", "loader", "memory", "supervisor"]
"""Loading of raw binary and ELF32 RISC-V executables into simulated memory."""

from __future__ import annotations

import os
import struct
from collections.abc import Callable
from enum import IntEnum
from typing import BinaryIO

from .cpu import Cpu
from .memory import Memory, MemoryAccessError

_MAX_BINARY_SIZE = 0x8000000

_ELF_MAGIC = b"\x7fELF"
_ELFCLASS32 = 1
_ELFDATA2LSB = 1
_EV_CURRENT = 1
_ET_EXEC = 2
_EM_RISCV = 0xF3

_PT_NULL = 0
_PT_LOAD = 1
_PT_NOTE = 4

_EHDR = struct.Struct("<16sHHIIIIIHHHHHH")
_PHDR = struct.Struct("<8I")

LogFunc = Callable[[str], object]


class ExecFormat(IntEnum):
    """Kinds of executable file the loader understands."""

    BINARY = 0
    ELF = 1


class LoaderError(Exception):
    """Base class for loader errors."""


class LoaderFileError(LoaderError):
    """The file could not be opened or read."""


class LoaderMemoryError(LoaderError):
    """The executable could not be mapped into memory."""


class InvalidFormatError(LoaderError):
    """The file is not a supported executable."""


class InvalidArchError(LoaderError):
    """The executable is not for the RISC-V architecture."""


def _emit(log: LogFunc | None, message: str) -> None:
    if log is not None:
        log(message)


def _open(path: str | os.PathLike[str]) -> BinaryIO:
    try:
        return open(os.fspath(path), "rb")
    except OSError as exc:
        raise LoaderFileError(f"cannot open {os.fspath(path)!r}: {exc}") from exc


def _map(memory: Memory, base: int, extent: int) -> bytearray:
    try:
        return memory.map_area(base, extent)
    except MemoryAccessError as exc:
        raise LoaderMemoryError(str(exc)) from exc


def load_binary(
    path: str | os.PathLike[str],
    memory: Memory,
    cpu: Cpu,
    base_addr: int = 0,
    entry: int = 0,
    log: LogFunc | None = None,
) -> None:
    """Map a raw binary image at ``base_addr`` and reset the CPU to ``entry``."""
    _emit(log, f'Loading raw binary file "{os.fspath(path)}" at address {base_addr}\n')
    with _open(path) as fp:
        try:
            data = fp.read(_MAX_BINARY_SIZE + 1)
        except OSError as exc:
            raise LoaderFileError(str(exc)) from exc
    if len(data) > _MAX_BINARY_SIZE:
        raise LoaderFileError("binary image is too large")
    buffer = _map(memory, base_addr, len(data))
    if not data:
        raise LoaderFileError("binary image is empty")
    buffer[:] = data
    cpu.reset(entry)


def load_elf(
    path: str | os.PathLike[str],
    memory: Memory,
    cpu: Cpu,
    log: LogFunc | None = None,
) -> None:
    """Map the loadable segments of an ELF32 executable and reset the CPU to its entry."""
    _emit(log, f'Loading ELF file "{os.fspath(path)}"\n')
    with _open(path) as fp:
        raw = fp.read(_EHDR.size)
        if len(raw) < _EHDR.size:
            raise LoaderFileError("truncated ELF header")
        (
            ident,
            e_type,
            e_machine,
            e_version,
            e_entry,
            e_phoff,
            _e_shoff,
            _e_flags,
            _e_ehsize,
            e_phentsize,
            e_phnum,
            _e_shentsize,
            _e_shnum,
            _e_shstrndx,
        ) = _EHDR.unpack(raw)
        if (
            ident[:4] != _ELF_MAGIC
            or ident[4] != _ELFCLASS32
            or ident[5] != _ELFDATA2LSB
            or ident[6] != _EV_CURRENT
        ):
            raise InvalidFormatError("not a little-endian ELF32 file")
        if e_type != _ET_EXEC or e_version != _EV_CURRENT:
            raise InvalidFormatError("not an executable ELF file")
        if e_machine != _EM_RISCV:
            raise InvalidArchError(f"unsupported machine 0x{e_machine:x}")

        for index in range(e_phnum):
            fp.seek(e_phoff + index * e_phentsize)
            raw = fp.read(_PHDR.size)
            if len(raw) < _PHDR.size:
                raise LoaderFileError("truncated program header")
            p_type, p_offset, p_vaddr, _p_paddr, p_filesz, p_memsz, _flags, _align = (
                _PHDR.unpack(raw)
            )
            if p_type in (_PT_NULL, _PT_NOTE):
                continue
            if p_type != _PT_LOAD:
                raise InvalidFormatError(f"unsupported segment type {p_type}")

            _emit(
                log,
                f"Loaded section at 0x{p_offset:08x} (size=0x{p_filesz:08x}) "
                f"to 0x{p_vaddr:08x} (size=0x{p_memsz:08x})\n",
            )
            if p_memsz == 0:
                continue
            buffer = _map(memory, p_vaddr, p_memsz)
            if p_filesz > 0:
                size = min(p_memsz, p_filesz)
                fp.seek(p_offset)
                data = fp.read(size)
                if len(data) < size:
                    raise LoaderFileError("truncated segment data")
                buffer[:size] = data

    _emit(log, f"Setting the entry point to 0x{e_entry:x}\n")
    cpu.reset(e_entry)


def detect_exec_type(path: str | os.PathLike[str]) -> ExecFormat:
    """Tell an ELF file from a raw binary by its magic number."""
    with _open(path) as fp:
        magic = fp.read(4)
    if len(magic) < 4:
        raise LoaderFileError("file is too short")
    return ExecFormat.ELF if magic == _ELF_MAGIC else ExecFormat.BINARY
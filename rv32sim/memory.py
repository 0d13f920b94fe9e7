"""Sparse 32-bit little-endian address space made of mapped areas."""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass

_MASK32 = 0xFFFFFFFF


class MemoryAccessError(Exception):
    """Base class for memory errors."""


class ExtentMappedError(MemoryAccessError):
    """Raised when mapping an area that overlaps an existing one."""

    def __init__(self, base: int, extent: int) -> None:
        super().__init__(f"area 0x{base:08x}+0x{extent:x} overlaps a mapped area")
        self.base = base
        self.extent = extent


class MappingError(MemoryAccessError):
    """Raised when accessing an address that is not mapped."""

    def __init__(self, address: int) -> None:
        super().__init__(f"address 0x{address:08x} is not mapped")
        self.address = address


@dataclass
class _Area:
    base: int
    extent: int
    buffer: bytearray

    @property
    def end(self) -> int:
        return self.base + self.extent


class Memory:
    """A set of non-overlapping mapped memory areas."""

    def __init__(self) -> None:
        self._areas: list[_Area] = []
        self._bases: list[int] = []
        self.last_fault_address = 0

    def map_area(self, base: int, extent: int) -> bytearray:
        """Map a zero-filled area and return its backing buffer."""
        if extent < 0:
            raise ValueError("extent must not be negative")
        base &= _MASK32
        if extent == 0:
            return bytearray()
        idx = bisect_left(self._bases, base + extent)
        if idx > 0 and base < self._areas[idx - 1].end:
            raise ExtentMappedError(base, extent)
        area = _Area(base, extent, bytearray(extent))
        self._areas.insert(idx, area)
        self._bases.insert(idx, base)
        return area.buffer

    def _find(self, addr: int, extent: int, debug: bool) -> _Area | None:
        idx = bisect_right(self._bases, addr) - 1
        if idx >= 0:
            area = self._areas[idx]
            if addr < area.end and addr + extent <= area.end:
                return area
        if not debug:
            self.last_fault_address = addr
        return None

    def _read(self, addr: int, size: int) -> int:
        addr &= _MASK32
        area = self._find(addr, size, debug=False)
        if area is None:
            raise MappingError(addr)
        off = addr - area.base
        return int.from_bytes(area.buffer[off:off + size], "little")

    def _debug_read(self, addr: int, size: int) -> int:
        addr &= _MASK32
        area = self._find(addr, size, debug=True)
        if area is None:
            return (1 << (8 * size)) - 1
        off = addr - area.base
        return int.from_bytes(area.buffer[off:off + size], "little")

    def _write(self, addr: int, size: int, value: int) -> None:
        addr &= _MASK32
        area = self._find(addr, size, debug=False)
        if area is None:
            raise MappingError(addr)
        off = addr - area.base
        value &= (1 << (8 * size)) - 1
        area.buffer[off:off + size] = value.to_bytes(size, "little")

    def read8(self, addr: int) -> int:
        return self._read(addr, 1)

    def read16(self, addr: int) -> int:
        return self._read(addr, 2)

    def read32(self, addr: int) -> int:
        return self._read(addr, 4)

    def debug_read8(self, addr: int) -> int:
        """Read without recording faults; unmapped bytes read as all ones."""
        return self._debug_read(addr, 1)

    def debug_read16(self, addr: int) -> int:
        return self._debug_read(addr, 2)

    def debug_read32(self, addr: int) -> int:
        return self._debug_read(addr, 4)

    def is_mapped(self, addr: int, extent: int) -> bool:
        """Whether ``extent`` bytes at ``addr`` lie within one mapped area."""
        return self._find(addr & _MASK32, extent, debug=True) is not None

    def write8(self, addr: int, value: int) -> None:
        self._write(addr, 1, value)

    def write16(self, addr: int, value: int) -> None:
        self._write(addr, 2, value)

    def write32(self, addr: int, value: int) -> None:
        self._write(addr, 4, value)
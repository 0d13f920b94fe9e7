import pytest

from rv32sim.memory import ExtentMappedError, MappingError, Memory, MemoryAccessError

BASE = 0x1000


@pytest.fixture
def mem():
    m = Memory()
    m.map_area(BASE, 64)
    return m


def test_unmapped_read_raises_and_records_fault():
    m = Memory()
    with pytest.raises(MappingError) as exc:
        m.read32(0x2000)
    assert exc.value.address == 0x2000
    assert m.last_fault_address == 0x2000


def test_mapping_error_is_memory_access_error():
    m = Memory()
    with pytest.raises(MemoryAccessError):
        m.write8(0x10, 1)


def test_new_area_is_zero_filled(mem):
    assert mem.read32(BASE) == 0
    assert mem.read8(BASE + 63) == 0


@pytest.mark.parametrize("value", [0, 0x7F, 0xFF])
def test_byte_round_trip(mem, value):
    mem.write8(BASE + 3, value)
    assert mem.read8(BASE + 3) == value


@pytest.mark.parametrize("value", [0, 0x1234, 0xFFFF])
def test_half_round_trip(mem, value):
    mem.write16(BASE + 2, value)
    assert mem.read16(BASE + 2) == value


@pytest.mark.parametrize("value", [0, 0x80000000, 0xFFFFFFFF, 0x12345678])
def test_word_round_trip(mem, value):
    mem.write32(BASE + 8, value)
    assert mem.read32(BASE + 8) == value


def test_little_endian_layout(mem):
    mem.write16(BASE, 0xFFFF)
    mem.write16(BASE + 2, 0)
    assert mem.read32(BASE) == 0xFFFF
    assert mem.read8(BASE + 2) == 0


def test_write_truncates_value(mem):
    mem.write8(BASE, 0x1FF)
    mem.write16(BASE + 4, 0x1FFFF)
    assert mem.read8(BASE) == 0xFF
    assert mem.read16(BASE + 4) == 0xFFFF
    assert mem.read8(BASE + 1) == 0


def test_returned_buffer_backs_memory():
    m = Memory()
    buf = m.map_area(BASE, 16)
    assert len(buf) == 16
    buf[5] = 0xAB
    assert m.read8(BASE + 5) == 0xAB
    m.write8(BASE + 6, 0xCD)
    assert buf[6] == 0xCD


def test_overlapping_map_rejected(mem):
    with pytest.raises(ExtentMappedError):
        mem.map_area(BASE + 32, 64)
    with pytest.raises(ExtentMappedError):
        mem.map_area(BASE - 8, 16)


def test_adjacent_areas_allowed(mem):
    mem.map_area(BASE + 64, 16)
    mem.map_area(BASE - 16, 16)
    mem.write8(BASE + 64, 1)
    mem.write8(BASE - 1, 2)
    assert mem.read8(BASE + 64) == 1
    assert mem.read8(BASE - 1) == 2


def test_access_spanning_two_areas_faults(mem):
    mem.map_area(BASE + 64, 16)
    with pytest.raises(MappingError):
        mem.read32(BASE + 62)
    assert mem.last_fault_address == BASE + 62


def test_access_past_area_end_faults(mem):
    with pytest.raises(MappingError):
        mem.write32(BASE + 61, 0)
    mem.write32(BASE + 60, 1)
    assert mem.read32(BASE + 60) == 1


def test_zero_extent_maps_nothing():
    m = Memory()
    assert len(m.map_area(BASE, 0)) == 0
    assert not m.is_mapped(BASE, 1)


def test_debug_reads_unmapped_return_all_ones():
    m = Memory()
    assert m.debug_read8(0x40) == 0xFF
    assert m.debug_read16(0x40) == 0xFFFF
    assert m.debug_read32(0x40) == 0xFFFFFFFF
    assert m.last_fault_address == 0


def test_debug_reads_mapped(mem):
    mem.write32(BASE, 0x12345678)
    assert mem.debug_read32(BASE) == mem.read32(BASE)
    assert mem.debug_read16(BASE) == mem.read16(BASE)
    assert mem.debug_read8(BASE + 3) == mem.read8(BASE + 3)


def test_is_mapped(mem):
    assert mem.is_mapped(BASE, 64)
    assert not mem.is_mapped(BASE + 60, 8)
    assert not mem.is_mapped(BASE - 1, 1)


def test_areas_inserted_out_of_order():
    m = Memory()
    m.map_area(0x80000000 - 4096, 4096)
    m.map_area(0, 16)
    m.map_area(0x100, 16)
    m.write32(0x80000000 - 4, 0xFFFFFFFF)
    m.write32(0x100, 0x80000000)
    assert m.read32(0x80000000 - 4) == 0xFFFFFFFF
    assert m.read32(0x100) == 0x80000000
    assert m.read32(0) == 0
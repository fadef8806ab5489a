"""
CPU Memory Bus
Flat 64KB address space with the PPU register window at $2000-$3FFF
"""

from utils import debug_print

MEMORY_SIZE = 0x10000
PPU_WINDOW_START = 0x2000
PPU_WINDOW_END = 0x3FFF
RESET_VECTOR = 0xFFFC


class Memory:
    def __init__(self, ppu=None):
        self.ram = bytearray(MEMORY_SIZE)
        self.ppu = None  # PPU register sink
        self.dropped_writes = 0  # Window writes with no sink attached

        if ppu is not None:
            self.set_ppu(ppu)

    def set_ppu(self, ppu):
        """Set the PPU register sink (anything with write_register(addr, value))"""
        self.ppu = ppu

    def read(self, addr):
        """Read from CPU memory"""
        return self.ram[addr & 0xFFFF]

    def write(self, addr, value):
        """Write to CPU memory"""
        addr = addr & 0xFFFF
        value = value & 0xFF

        if PPU_WINDOW_START <= addr <= PPU_WINDOW_END:
            # PPU registers (mirrored every 8 bytes), never stored locally
            ppu_addr = 0x2000 + (addr & 7)
            if self.ppu is None:
                self.dropped_writes += 1
                debug_print(
                    f"Memory: Write 0x{value:02X} to PPU register 0x{ppu_addr:04X} dropped (no PPU attached)"
                )
                return
            self.ppu.write_register(ppu_addr, value)
            return

        self.ram[addr] = value

    def read_word(self, addr):
        """Read a little-endian 16-bit word"""
        low = self.read(addr)
        high = self.read((addr + 1) & 0xFFFF)
        return (high << 8) | low

    def load(self, address, data):
        """Copy a raw byte blob into memory, bypassing I/O routing.

        Addresses wrap at the top of the 64KB space.
        """
        address = address & 0xFFFF
        for offset, value in enumerate(data):
            self.ram[(address + offset) & 0xFFFF] = value & 0xFF

    def set_reset_vector(self, address):
        self.ram[RESET_VECTOR] = address & 0xFF
        self.ram[RESET_VECTOR + 1] = (address >> 8) & 0xFF

    @property
    def reset_vector(self):
        return self.read_word(RESET_VECTOR)

    def dump(self, start, length):
        """Return `length` bytes starting at `start` (wrapping)"""
        return bytes(self.ram[(start + i) & 0xFFFF] for i in range(length))

    def clear(self):
        self.ram = bytearray(MEMORY_SIZE)
        self.dropped_writes = 0

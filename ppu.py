"""
Minimal PPU (Picture Processing Unit)
Receives CPU register writes and renders the background name table from
2bpp pattern-table tiles
"""

from collections import deque

from PIL import Image

from utils import debug_print

SCREEN_WIDTH = 256
SCREEN_HEIGHT = 240
TILE_SIZE = 8
NAME_TABLE_COLUMNS = 32
NAME_TABLE_ROWS = 30
NAME_TABLE_SIZE = NAME_TABLE_COLUMNS * NAME_TABLE_ROWS  # 960 entries
NAME_TABLE_BASE = 0x2000
PATTERN_TABLE_SIZE = 0x1000

WRITE_LOG_SIZE = 1024

# First 16 NES palette entries; tiles index 0-3
NES_PALETTE = [
    (124, 124, 124), (0, 0, 252), (0, 0, 188), (68, 40, 188),
    (148, 0, 132), (168, 0, 32), (168, 16, 0), (136, 20, 0),
    (80, 48, 0), (0, 120, 0), (0, 104, 0), (0, 88, 0),
    (0, 64, 88), (0, 0, 0), (0, 0, 0), (0, 0, 0),
]


def pack_abgr(rgb):
    """Pack an (r, g, b) tuple into an opaque 0xAABBGGRR pixel"""
    r, g, b = rgb
    return 0xFF000000 | (b << 16) | (g << 8) | r


class PPU:
    # PPUCTRL bits
    VRAM_INCREMENT_32 = 0x04

    def __init__(self):
        # CPU-visible registers
        self.ctrl = 0  # $2000 - PPUCTRL
        self.mask = 0  # $2001 - PPUMASK
        self.status = 0  # $2002 - PPUSTATUS (read-only)
        self.oam_addr = 0  # $2003 - OAMADDR
        self.scroll_x = 0  # $2005 - PPUSCROLL, first write
        self.scroll_y = 0  # $2005 - PPUSCROLL, second write

        # Internal registers
        self.v = 0  # Current VRAM address (14 bits)
        self.w = 0  # Write toggle shared by $2005/$2006

        # PPU memory: pattern tables + name tables
        self.vram = bytearray(0x4000)
        self.oam = bytearray(0x100)

        # Most recent (addr, value) register writes
        self.write_log = deque(maxlen=WRITE_LOG_SIZE)

        self.palette = [pack_abgr(rgb) for rgb in NES_PALETTE]
        self.screen = [self.palette[0]] * (SCREEN_WIDTH * SCREEN_HEIGHT)

    def reset(self):
        """Clear registers and the write latch; VRAM and OAM keep their contents"""
        self.ctrl = 0
        self.mask = 0
        self.status = 0
        self.oam_addr = 0
        self.scroll_x = 0
        self.scroll_y = 0
        self.v = 0
        self.w = 0
        self.write_log.clear()

    def write_register(self, addr, value):
        """Write to PPU register ($2000-$2007)"""
        value &= 0xFF
        self.write_log.append((addr, value))

        if addr == 0x2000:  # PPUCTRL
            self.ctrl = value
            debug_print(f"PPU: WRITE $2000=0x{value:02X}")
        elif addr == 0x2001:  # PPUMASK
            self.mask = value
            debug_print(f"PPU: WRITE $2001=0x{value:02X}")
        elif addr == 0x2002:  # PPUSTATUS is read-only
            debug_print(f"PPU: Ignoring write 0x{value:02X} to read-only $2002")
        elif addr == 0x2003:  # OAMADDR
            self.oam_addr = value
        elif addr == 0x2004:  # OAMDATA
            self.oam[self.oam_addr] = value
            self.oam_addr = (self.oam_addr + 1) & 0xFF
        elif addr == 0x2005:  # PPUSCROLL
            if self.w == 0:
                self.scroll_x = value
            else:
                self.scroll_y = value
            self.w ^= 1
        elif addr == 0x2006:  # PPUADDR, high byte first
            if self.w == 0:
                self.v = ((value & 0x3F) << 8) | (self.v & 0x00FF)
            else:
                self.v = (self.v & 0xFF00) | value
            self.w ^= 1
        elif addr == 0x2007:  # PPUDATA
            self.vram[self.v & 0x3FFF] = value
            step = 32 if self.ctrl & self.VRAM_INCREMENT_32 else 1
            self.v = (self.v + step) & 0x3FFF
        else:
            raise ValueError(f"Not a PPU register: 0x{addr:04X}")

    # ------------------------ Pattern/Name tables ------------------------

    def load_chr(self, data):
        """Copy up to 4KB of 2bpp tile data into pattern table 0"""
        chunk = bytes(data[:PATTERN_TABLE_SIZE])
        self.vram[0 : len(chunk)] = chunk

    def fill_test_name_table(self):
        for i in range(NAME_TABLE_SIZE):
            self.vram[NAME_TABLE_BASE + i] = i % 256

    @property
    def name_table(self):
        return self.vram[NAME_TABLE_BASE : NAME_TABLE_BASE + NAME_TABLE_SIZE]

    # ------------------------ Rendering ------------------------

    def render(self):
        """Render the name table into the framebuffer and return it"""
        for row in range(NAME_TABLE_ROWS):
            for col in range(NAME_TABLE_COLUMNS):
                tile_index = self.vram[NAME_TABLE_BASE + row * NAME_TABLE_COLUMNS + col]
                self._draw_tile(tile_index, col * TILE_SIZE, row * TILE_SIZE)
        return self.screen

    def _draw_tile(self, index, x, y):
        tile_addr = index * 16
        for row in range(TILE_SIZE):
            low_byte = self.vram[tile_addr + row]
            high_byte = self.vram[tile_addr + row + 8]
            offset = (y + row) * SCREEN_WIDTH + x
            for col in range(TILE_SIZE):
                bit0 = (low_byte >> (7 - col)) & 1
                bit1 = (high_byte >> (7 - col)) & 1
                self.screen[offset + col] = self.palette[(bit1 << 1) | bit0]

    def to_image(self):
        """Current framebuffer as a Pillow RGB image"""
        image = Image.new("RGB", (SCREEN_WIDTH, SCREEN_HEIGHT))
        image.putdata(
            [(p & 0xFF, (p >> 8) & 0xFF, (p >> 16) & 0xFF) for p in self.screen]
        )
        return image

    def save_screenshot(self, filename, scale=1):
        image = self.to_image()
        if scale != 1:
            image = image.resize(
                (SCREEN_WIDTH * scale, SCREEN_HEIGHT * scale), Image.Resampling.NEAREST
            )
        image.save(filename)
        debug_print(f"PPU: Screenshot saved as {filename}")
        return filename

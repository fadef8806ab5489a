"""
tinynes with SDL2 graphics
Runs a program to its halt, then shows the PPU name table in a window
"""

import sys
import os
import time
import ctypes
import sdl2
from PIL import Image
from config import display_settings, machine_settings
from cpu import HaltReason
from loader import DEMO_PROGRAM, LEGACY_DEMO_PROGRAM, read_program
from machine import Machine
from ppu import SCREEN_WIDTH, SCREEN_HEIGHT


def stripe_chr():
    """4KB of diagonal stripe tiles (alternating bit planes)"""
    data = bytearray(0x1000)
    for i in range(256):
        base = i * 16
        for j in range(8):
            data[base + j] = 0b10101010  # Bitplane 0
            data[base + j + 8] = 0b01010101  # Bitplane 1
    return bytes(data)


class TinyNESDisplay:
    def __init__(self, program, legacy_opcodes=False):
        self.machine = Machine(legacy_opcodes=legacy_opcodes)
        self.program = program
        self.machine_settings = machine_settings(legacy_opcodes=legacy_opcodes)
        self.settings = display_settings()
        self.running = False

        # Display settings
        self.scale = self.settings["scale"]
        self.window_width = SCREEN_WIDTH * self.scale
        self.window_height = SCREEN_HEIGHT * self.scale

        # SDL components
        self.window = None
        self.renderer = None
        self.texture = None

        # Timing
        self.frame_time = 1.0 / self.settings["target_fps"]

    def initialize_sdl(self):
        """Initialize SDL2"""
        if sdl2.SDL_Init(sdl2.SDL_INIT_VIDEO | sdl2.SDL_INIT_EVENTS) != 0:
            print(f"SDL2 initialization failed: {sdl2.SDL_GetError()}")
            return False

        self.window = sdl2.SDL_CreateWindow(
            self.settings["window_title"].encode(),
            sdl2.SDL_WINDOWPOS_CENTERED,
            sdl2.SDL_WINDOWPOS_CENTERED,
            self.window_width,
            self.window_height,
            sdl2.SDL_WINDOW_SHOWN,
        )
        if not self.window:
            print(f"Window creation failed: {sdl2.SDL_GetError()}")
            return False

        self.renderer = sdl2.SDL_CreateRenderer(
            self.window,
            -1,
            sdl2.SDL_RENDERER_ACCELERATED | sdl2.SDL_RENDERER_PRESENTVSYNC,
        )
        if not self.renderer:
            print(f"Renderer creation failed: {sdl2.SDL_GetError()}")
            return False

        # Framebuffer pixels are packed ABGR
        self.texture = sdl2.SDL_CreateTexture(
            self.renderer,
            sdl2.SDL_PIXELFORMAT_ABGR8888,
            sdl2.SDL_TEXTUREACCESS_STREAMING,
            SCREEN_WIDTH,
            SCREEN_HEIGHT,
        )
        if not self.texture:
            print(f"Texture creation failed: {sdl2.SDL_GetError()}")
            return False

        print("SDL2 initialized successfully")
        return True

    def cleanup_sdl(self):
        """Clean up SDL2 resources"""
        if self.settings["screenshot_on_exit"] and self.renderer:
            self.take_screenshot("exit_screenshot.png")
        if self.texture:
            sdl2.SDL_DestroyTexture(self.texture)
        if self.renderer:
            sdl2.SDL_DestroyRenderer(self.renderer)
        if self.window:
            sdl2.SDL_DestroyWindow(self.window)
        sdl2.SDL_Quit()

    def start_program(self):
        """Load CHR + test name table, then run the program to its halt"""
        ppu = self.machine.ppu
        ppu.load_chr(stripe_chr())
        ppu.fill_test_name_table()

        self.machine.load_program(self.program, self.machine_settings["load_address"])
        result = self.machine.run(self.machine_settings["max_instructions"])
        cpu = self.machine.cpu
        if result is HaltReason.ILLEGAL_OPCODE:
            print(f"Program halted: {cpu.fault}")
        elif result is HaltReason.BRK:
            print(f"BRK reached after {cpu.cycles} instructions (A=${cpu.A:02X} X=${cpu.X:02X} Y=${cpu.Y:02X})")
        else:
            print(f"Instruction budget exhausted at PC=${cpu.PC:04X}")

        # The name table is static once the program halts
        self.machine.get_screen()

    def take_screenshot(self, filename):
        """Save the current framebuffer, scaled to window size"""
        image = self.machine.ppu.to_image().resize(
            (self.window_width, self.window_height), Image.Resampling.NEAREST
        )
        image.save(filename)
        print(f"Screenshot saved as: {filename}")
        return True

    def handle_events(self):
        """Handle SDL events"""
        event = sdl2.SDL_Event()
        while sdl2.SDL_PollEvent(ctypes.byref(event)):
            if event.type == sdl2.SDL_QUIT:
                self.running = False
            elif event.type == sdl2.SDL_KEYDOWN:
                self.handle_keydown(event.key.keysym.sym)

    def handle_keydown(self, key):
        if key == sdl2.SDLK_ESCAPE:
            self.running = False
        elif key == sdl2.SDLK_r:
            self.start_program()
            print("Reset")
        elif key == sdl2.SDLK_F12:
            self.take_screenshot(f"screenshot_{int(time.time())}.png")

    def update_texture(self):
        """Update SDL texture with the PPU framebuffer"""
        screen = self.machine.ppu.screen

        # ABGR8888 on little-endian is laid out R, G, B, A in memory
        pixels_bytes = bytearray(SCREEN_WIDTH * SCREEN_HEIGHT * 4)
        for i, pixel in enumerate(screen):
            base_idx = i * 4
            pixels_bytes[base_idx + 0] = pixel & 0xFF
            pixels_bytes[base_idx + 1] = (pixel >> 8) & 0xFF
            pixels_bytes[base_idx + 2] = (pixel >> 16) & 0xFF
            pixels_bytes[base_idx + 3] = (pixel >> 24) & 0xFF

        sdl2.SDL_UpdateTexture(self.texture, None, bytes(pixels_bytes), SCREEN_WIDTH * 4)

    def render(self):
        sdl2.SDL_SetRenderDrawColor(self.renderer, 0, 0, 0, 255)
        sdl2.SDL_RenderClear(self.renderer)
        sdl2.SDL_RenderCopy(self.renderer, self.texture, None, None)
        sdl2.SDL_RenderPresent(self.renderer)

    def run(self):
        if not self.initialize_sdl():
            return False

        self.start_program()
        self.running = True

        print("Controls:")
        print("  R: Reset and rerun program")
        print("  F12: Take screenshot")
        print("  Escape: Quit")

        while self.running:
            frame_start = time.time()

            self.handle_events()
            self.update_texture()
            self.render()

            frame_duration = time.time() - frame_start
            if frame_duration < self.frame_time:
                time.sleep(self.frame_time - frame_duration)

        self.cleanup_sdl()
        return True


def main():
    """Main entry point"""
    args = [a for a in sys.argv[1:] if a != "--legacy-opcodes"]
    legacy = "--legacy-opcodes" in sys.argv[1:]

    if len(args) > 1:
        print("Usage: python main.py [program.bin] [--legacy-opcodes]")
        return 1

    if args:
        if not os.path.exists(args[0]):
            print(f"Program file not found: {args[0]}")
            return 1
        program = read_program(args[0])
    else:
        program = LEGACY_DEMO_PROGRAM if legacy else DEMO_PROGRAM

    display = TinyNESDisplay(program, legacy_opcodes=legacy)
    try:
        return 0 if display.run() else 1
    except KeyboardInterrupt:
        print("\nStopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Machine
Wires the CPU, memory bus and PPU register sink together
"""

from cpu import CPU
from loader import DEFAULT_LOAD_ADDRESS, load_program
from memory import Memory
from opcodes import INSTRUCTIONS, LEGACY_INSTRUCTIONS
from ppu import PPU
from utils import debug_print


class Machine:
    def __init__(self, legacy_opcodes=False):
        self.legacy_opcodes = legacy_opcodes
        self.ppu = PPU()
        self.memory = Memory(self.ppu)
        self.cpu = CPU(
            self.memory,
            LEGACY_INSTRUCTIONS if legacy_opcodes else INSTRUCTIONS,
        )

    def load_program(self, program, load_address=DEFAULT_LOAD_ADDRESS):
        """Load a flat program, point the reset vector at it and reset"""
        load_program(self.memory, program, load_address)
        self.reset()

    def reset(self):
        self.cpu.reset()
        self.ppu.reset()
        debug_print(f"Machine: Reset, PC=0x{self.cpu.PC:04X}")

    def step(self):
        return self.cpu.step()

    def run(self, max_instructions=None):
        return self.cpu.run(max_instructions)

    def registers(self):
        return self.cpu.registers()

    @property
    def halted(self):
        return self.cpu.halted

    def get_screen(self):
        return self.ppu.render()

"""
Program loader
Copies a flat byte blob into memory and points the reset vector at it
"""

import re

from utils import debug_print

DEFAULT_LOAD_ADDRESS = 0x8000

# Bring-up program: loads, transfers, ALU ops, stores, compares and branches
DEMO_PROGRAM = bytes([
    0xA9, 0x10,        # LDA #$10
    0x8D, 0x00, 0x02,  # STA $0200
    0xA2, 0x10,        # LDX #$10
    0xA0, 0x10,        # LDY #$10
    0xAA,              # TAX
    0xA8,              # TAY
    0x8A,              # TXA
    0x98,              # TYA
    0x69, 0x05,        # ADC #$05
    0xE9, 0x02,        # SBC #$02
    0x29, 0x13,        # AND #$13
    0x09, 0x03,        # ORA #$03
    0x49, 0xFF,        # EOR #$FF
    0x85, 0x0C,        # STA $0C
    0xA5, 0x0C,        # LDA $0C
    0xB5, 0x0C,        # LDA $0C,X
    0x86, 0x0C,        # STX $0C
    0x84, 0x0C,        # STY $0C
    0x18,              # CLC
    0x38,              # SEC
    0xC9, 0x0C,        # CMP #$0C
    0xF0, 0x01,        # BEQ +1
    0xEA,              # NOP
    0xD0, 0x03,        # BNE +3
    0x10, 0x00,        # BPL +0
    0x00,              # BRK
])

# Same program for the legacy table, where STY zp lives on $87
LEGACY_DEMO_PROGRAM = DEMO_PROGRAM[:31] + bytes([0x87]) + DEMO_PROGRAM[32:]

_HEX_TOKEN = re.compile(r"^(?:0x|\$)?([0-9a-fA-F]{1,2})$")


class ProgramLoadError(ValueError):
    pass


def load_program(memory, program, load_address=DEFAULT_LOAD_ADDRESS, set_vector=True):
    """Copy `program` into memory at `load_address` and set the reset vector.

    Returns the address just past the loaded program.
    """
    if not 0 <= load_address <= 0xFFFF:
        raise ProgramLoadError(f"Load address out of range: {load_address:#x}")
    if not program:
        raise ProgramLoadError("Program is empty")
    end = load_address + len(program)
    if end > 0x10000:
        raise ProgramLoadError(
            f"Program of {len(program)} bytes does not fit at 0x{load_address:04X}"
        )

    memory.load(load_address, program)
    if set_vector:
        memory.set_reset_vector(load_address)

    debug_print(
        f"Loader: {len(program)} bytes at 0x{load_address:04X}-0x{end - 1:04X}"
        f"{', reset vector set' if set_vector else ''}"
    )
    return end & 0xFFFF


def read_program(path):
    """Read a flat binary program (no header)"""
    with open(path, "rb") as f:
        return f.read()


def parse_hex_program(text):
    """Parse hex bytes separated by whitespace or commas: "A9 10", "0xA9,$10" """
    program = bytearray()
    for token in re.split(r"[\s,]+", text.strip()):
        if not token:
            continue
        match = _HEX_TOKEN.match(token)
        if match is None:
            raise ProgramLoadError(f"Not a hex byte: {token!r}")
        program.append(int(match.group(1), 16))
    return bytes(program)

"""
6502 opcode tables
Maps an opcode byte to (mnemonic, addressing mode)
"""

IMPLIED = "implied"
ACCUMULATOR = "accumulator"
IMMEDIATE = "immediate"
ZERO_PAGE = "zero_page"
ZERO_PAGE_X = "zero_page_x"
ABSOLUTE = "absolute"
ABSOLUTE_X = "absolute_x"
RELATIVE = "relative"

# Operand bytes following the opcode for each addressing mode
OPERAND_LENGTH = {
    IMPLIED: 0,
    ACCUMULATOR: 0,
    IMMEDIATE: 1,
    ZERO_PAGE: 1,
    ZERO_PAGE_X: 1,
    ABSOLUTE: 2,
    ABSOLUTE_X: 2,
    RELATIVE: 1,
}

# Textbook opcode assignments for the emulated instruction subset
INSTRUCTIONS = {
    # Load/Store
    0xA9: ("LDA", IMMEDIATE),
    0xA5: ("LDA", ZERO_PAGE),
    0xB5: ("LDA", ZERO_PAGE_X),
    0xAD: ("LDA", ABSOLUTE),
    0xA2: ("LDX", IMMEDIATE),
    0xA6: ("LDX", ZERO_PAGE),
    0xAE: ("LDX", ABSOLUTE),
    0xA0: ("LDY", IMMEDIATE),
    0xA4: ("LDY", ZERO_PAGE),
    0xAC: ("LDY", ABSOLUTE),
    0x85: ("STA", ZERO_PAGE),
    0x8D: ("STA", ABSOLUTE),
    0x9D: ("STA", ABSOLUTE_X),
    0x86: ("STX", ZERO_PAGE),
    0x84: ("STY", ZERO_PAGE),
    # Transfer
    0xAA: ("TAX", IMPLIED),
    0xA8: ("TAY", IMPLIED),
    0xBA: ("TSX", IMPLIED),
    0x8A: ("TXA", IMPLIED),
    0x9A: ("TXS", IMPLIED),
    0x98: ("TYA", IMPLIED),
    # Stack
    0x48: ("PHA", IMPLIED),
    0x68: ("PLA", IMPLIED),
    0x08: ("PHP", IMPLIED),
    0x28: ("PLP", IMPLIED),
    # Arithmetic
    0x69: ("ADC", IMMEDIATE),
    0x65: ("ADC", ZERO_PAGE),
    0x75: ("ADC", ZERO_PAGE_X),
    0x6D: ("ADC", ABSOLUTE),
    0x7D: ("ADC", ABSOLUTE_X),
    0xE9: ("SBC", IMMEDIATE),
    0xE5: ("SBC", ZERO_PAGE),
    0xED: ("SBC", ABSOLUTE),
    # Logic
    0x29: ("AND", IMMEDIATE),
    0x25: ("AND", ZERO_PAGE),
    0x09: ("ORA", IMMEDIATE),
    0x05: ("ORA", ZERO_PAGE),
    0x49: ("EOR", IMMEDIATE),
    0x45: ("EOR", ZERO_PAGE),
    0x24: ("BIT", ZERO_PAGE),
    # Shift/Rotate
    0x0A: ("ASL", ACCUMULATOR),
    0x06: ("ASL", ZERO_PAGE),
    0x4A: ("LSR", ACCUMULATOR),
    0x46: ("LSR", ZERO_PAGE),
    0x2A: ("ROL", ACCUMULATOR),
    0x26: ("ROL", ZERO_PAGE),
    0x6A: ("ROR", ACCUMULATOR),
    0x66: ("ROR", ZERO_PAGE),
    # Compare
    0xC9: ("CMP", IMMEDIATE),
    0xC5: ("CMP", ZERO_PAGE),
    0xCD: ("CMP", ABSOLUTE),
    0xE0: ("CPX", IMMEDIATE),
    0xE4: ("CPX", ZERO_PAGE),
    0xC0: ("CPY", IMMEDIATE),
    0xC4: ("CPY", ZERO_PAGE),
    # Increment/Decrement
    0xE6: ("INC", ZERO_PAGE),
    0xC6: ("DEC", ZERO_PAGE),
    0xE8: ("INX", IMPLIED),
    0xC8: ("INY", IMPLIED),
    0xCA: ("DEX", IMPLIED),
    0x88: ("DEY", IMPLIED),
    # Branches
    0x10: ("BPL", RELATIVE),
    0x30: ("BMI", RELATIVE),
    0x50: ("BVC", RELATIVE),
    0x70: ("BVS", RELATIVE),
    0x90: ("BCC", RELATIVE),
    0xB0: ("BCS", RELATIVE),
    0xD0: ("BNE", RELATIVE),
    0xF0: ("BEQ", RELATIVE),
    # Jumps/Calls
    0x4C: ("JMP", ABSOLUTE),
    0x20: ("JSR", ABSOLUTE),
    0x60: ("RTS", IMPLIED),
    # Halt
    0x00: ("BRK", IMPLIED),
    # Flags
    0x18: ("CLC", IMPLIED),
    0x38: ("SEC", IMPLIED),
    0x58: ("CLI", IMPLIED),
    0x78: ("SEI", IMPLIED),
    0xB8: ("CLV", IMPLIED),
    0xD8: ("CLD", IMPLIED),
    0xF8: ("SED", IMPLIED),
    # No Operation
    0xEA: ("NOP", IMPLIED),
}

# Byte-for-byte reproduction of the first-generation table. Indexed and
# indirect ADC/SBC variants collapse onto the unindexed handler, and STY/LDY
# sit on the SAX/LDX bytes.
LEGACY_INSTRUCTIONS = {
    0xA9: ("LDA", IMMEDIATE),
    0x8D: ("STA", ABSOLUTE),
    0x00: ("BRK", IMPLIED),
    0xE8: ("INX", IMPLIED),
    0xC8: ("INY", IMPLIED),
    0xCA: ("DEX", IMPLIED),
    0x88: ("DEY", IMPLIED),
    0x4C: ("JMP", ABSOLUTE),
    0xEA: ("NOP", IMPLIED),
    0xA2: ("LDX", IMMEDIATE),
    0xA0: ("LDY", IMMEDIATE),
    0x85: ("STA", ZERO_PAGE),
    0x86: ("STX", ZERO_PAGE),
    0x87: ("STY", ZERO_PAGE),
    0x69: ("ADC", IMMEDIATE),
    0xE9: ("SBC", IMMEDIATE),
    0x29: ("AND", IMMEDIATE),
    0x09: ("ORA", IMMEDIATE),
    0x49: ("EOR", IMMEDIATE),
    0x18: ("CLC", IMPLIED),
    0xC9: ("CMP", IMMEDIATE),
    0xD0: ("BNE", RELATIVE),
    0xF0: ("BEQ", RELATIVE),
    0xE6: ("INC", ZERO_PAGE),
    0xC6: ("DEC", ZERO_PAGE),
    0x0A: ("ASL", ACCUMULATOR),
    0x4A: ("LSR", ACCUMULATOR),
    0x2A: ("ROL", ACCUMULATOR),
    0x6A: ("ROR", ACCUMULATOR),
    0x8A: ("TXA", IMPLIED),
    0x98: ("TYA", IMPLIED),
    0xAA: ("TAX", IMPLIED),
    0xA8: ("TAY", IMPLIED),
    0xA5: ("LDA", ZERO_PAGE),
    0xAD: ("LDA", ABSOLUTE),
    0xB5: ("LDA", ZERO_PAGE_X),
    0xBD: ("STA", ABSOLUTE_X),
    0x06: ("ASL", ZERO_PAGE),
    0x46: ("LSR", ZERO_PAGE),
    0x9A: ("TXS", IMPLIED),
    0x60: ("RTS", IMPLIED),
    0x48: ("PHA", IMPLIED),
    0x68: ("PLA", IMPLIED),
    0x08: ("PHP", IMPLIED),
    0x28: ("PLP", IMPLIED),
    0x24: ("BIT", ZERO_PAGE),
    0x38: ("SEC", IMPLIED),
    0xF8: ("SED", IMPLIED),
    0xD8: ("CLD", IMPLIED),
    0x78: ("SEI", IMPLIED),
    0x58: ("CLI", IMPLIED),
    0xB8: ("CLV", IMPLIED),
    0x10: ("BPL", RELATIVE),
    0x20: ("JSR", ABSOLUTE),
    0xA6: ("LDX", ZERO_PAGE),
    0xAE: ("LDX", ABSOLUTE),
    0xB6: ("LDY", ZERO_PAGE),
    0xBE: ("LDY", ABSOLUTE),
    0x65: ("ADC", ZERO_PAGE),
    0x75: ("ADC", ZERO_PAGE),
    0x6D: ("ADC", ABSOLUTE),
    0x7D: ("ADC", ABSOLUTE),
    0x61: ("SBC", ZERO_PAGE),
    0x71: ("SBC", ZERO_PAGE),
    0x6E: ("SBC", ABSOLUTE),
    0x7E: ("SBC", ABSOLUTE),
}


def instruction_length(instructions, opcode):
    """Total instruction length in bytes, or None for an unmapped opcode"""
    entry = instructions.get(opcode)
    if entry is None:
        return None
    return 1 + OPERAND_LENGTH[entry[1]]

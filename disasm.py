"""
Disassembler for the emulated instruction subset
"""

from opcodes import (
    INSTRUCTIONS,
    ACCUMULATOR,
    IMMEDIATE,
    ZERO_PAGE,
    ZERO_PAGE_X,
    ABSOLUTE,
    ABSOLUTE_X,
    RELATIVE,
    instruction_length,
)


def format_operand(mode, operand_bytes, next_pc):
    if mode == IMMEDIATE:
        return f"#${operand_bytes[0]:02X}"
    elif mode == ZERO_PAGE:
        return f"${operand_bytes[0]:02X}"
    elif mode == ZERO_PAGE_X:
        return f"${operand_bytes[0]:02X},X"
    elif mode == ABSOLUTE:
        return f"${operand_bytes[1]:02X}{operand_bytes[0]:02X}"
    elif mode == ABSOLUTE_X:
        return f"${operand_bytes[1]:02X}{operand_bytes[0]:02X},X"
    elif mode == RELATIVE:
        offset = operand_bytes[0]
        if offset & 0x80:
            offset -= 256
        return f"${(next_pc + offset) & 0xFFFF:04X}"
    elif mode == ACCUMULATOR:
        return "A"
    return ""


def disassemble_one(memory, address, instructions=INSTRUCTIONS):
    """Disassemble the instruction at `address`. Returns (text, length)."""
    address &= 0xFFFF
    opcode = memory.read(address)
    length = instruction_length(instructions, opcode)
    if length is None:
        return f"{address:04X}  {opcode:02X}        .byte ${opcode:02X}", 1

    mnemonic, mode = instructions[opcode]
    operand_bytes = [memory.read((address + i) & 0xFFFF) for i in range(1, length)]
    raw = " ".join(f"{b:02X}" for b in [opcode] + operand_bytes)
    operand = format_operand(mode, operand_bytes, (address + length) & 0xFFFF)
    text = f"{address:04X}  {raw:<8}  {mnemonic} {operand}".rstrip()
    return text, length


def disassemble(memory, start, count, instructions=INSTRUCTIONS):
    lines = []
    address = start & 0xFFFF
    for _ in range(count):
        text, length = disassemble_one(memory, address, instructions)
        lines.append(text)
        address = (address + length) & 0xFFFF
    return lines

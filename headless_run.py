#!/usr/bin/env python3
import sys
import argparse

from config import describe_config, machine_settings
from cpu import HaltReason
from disasm import disassemble_one
from loader import (
    DEMO_PROGRAM,
    LEGACY_DEMO_PROGRAM,
    ProgramLoadError,
    parse_hex_program,
    read_program,
)
from machine import Machine
from utils import set_debug


def parse_address(text):
    text = text.strip()
    if text.startswith("$"):
        return int(text[1:], 16)
    return int(text, 0)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Run a flat 6502 program headless and print the final machine state."
    )
    parser.add_argument("program", nargs="?", default=None, help="Path to a flat binary program (default: built-in demo)")
    parser.add_argument("--hex", default=None, help='Program as hex bytes, e.g. "A9 10 8D 00 02 00"')
    parser.add_argument("--load-address", type=parse_address, default=None, help="Load address (e.g. 0x8000 or $8000)")
    parser.add_argument("--max-instructions", type=int, default=None, help="Stop after this many instructions")
    parser.add_argument("--legacy-opcodes", action="store_true", default=None, help="Use the first-generation opcode table")
    parser.add_argument("--trace", action="store_true", help="Print each executed instruction")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--screenshot", default=None, help="Render the PPU name table to this image file after the run")
    parser.add_argument("--show-config", action="store_true", help="Print the active configuration")
    return parser


def make_trace_printer(machine):
    """Trace observer printing a disassembled line plus the register state"""
    def print_trace(record):
        text, _ = disassemble_one(machine.memory, record.pc, machine.cpu.instructions)
        regs = record.registers
        print(
            f"{text:<32} A:{regs.A:02X} X:{regs.X:02X} Y:{regs.Y:02X} "
            f"P:{regs.P:02X} SP:{regs.SP:02X} CYC:{record.cycles}"
        )

    return print_trace


def print_summary(machine, result):
    cpu = machine.cpu
    print(f"A: {cpu.A}")
    print(f"X: {cpu.X}")
    print(f"Y: {cpu.Y}")
    print(f"SP: {cpu.SP}")
    print(f"PC: ${cpu.PC:04X}")
    print(f"Status: {cpu.get_status_byte():08b}")
    print(f"Memory[0x0200]: {machine.memory.read(0x0200)}")
    print(f"Total cycles: {cpu.cycles}")
    if result is HaltReason.BRK:
        print("Emulation complete (BRK).")
    elif result is HaltReason.ILLEGAL_OPCODE:
        print(f"Emulation halted: {cpu.fault}")
    else:
        print("Emulation stopped: instruction budget exhausted.")


def main(argv=None):
    args = build_parser().parse_args(argv)
    set_debug(args.debug)

    settings = machine_settings(
        load_address=args.load_address,
        max_instructions=args.max_instructions,
        legacy_opcodes=args.legacy_opcodes,
    )
    if args.show_config:
        describe_config(settings)

    try:
        if args.hex is not None:
            program = parse_hex_program(args.hex)
        elif args.program is not None:
            program = read_program(args.program)
        else:
            program = LEGACY_DEMO_PROGRAM if settings["legacy_opcodes"] else DEMO_PROGRAM
    except (OSError, ProgramLoadError) as e:
        print(f"Failed to read program: {e}")
        return 1

    machine = Machine(legacy_opcodes=settings["legacy_opcodes"])
    try:
        machine.load_program(program, settings["load_address"])
    except ProgramLoadError as e:
        print(f"Failed to load program: {e}")
        return 1

    if args.trace:
        machine.cpu.add_trace_observer(make_trace_printer(machine))

    print(f"Running program: {' '.join(f'0x{b:02x}' for b in program)}")
    result = machine.run(settings["max_instructions"])
    print_summary(machine, result)

    if args.screenshot:
        machine.get_screen()
        machine.ppu.save_screenshot(args.screenshot)
        print(f"Screenshot saved as: {args.screenshot}")

    return 1 if result is HaltReason.ILLEGAL_OPCODE else 0


if __name__ == "__main__":
    sys.exit(main())

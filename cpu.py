"""
6502 CPU Emulator
Implements the register/flag model, stack, addressing modes and the
instruction subset of the MOS Technology 6502.
One tick per instruction; decimal mode is tracked but not applied.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from opcodes import (
    INSTRUCTIONS,
    IMPLIED,
    ACCUMULATOR,
    IMMEDIATE,
    ZERO_PAGE,
    ZERO_PAGE_X,
    ABSOLUTE,
    ABSOLUTE_X,
    RELATIVE,
)
from utils import debug_print

STACK_BASE = 0x0100
RESET_SP = 0xFD
RESET_STATUS = 0x24

@dataclass(frozen=True)
class Operation:
    """Dispatch entry resolved once per CPU from an opcode table"""

    mnemonic: str
    mode: str
    execute: Callable


@dataclass(frozen=True)
class RegisterSnapshot:
    A: int
    X: int
    Y: int
    SP: int
    PC: int
    P: int  # Packed status byte


@dataclass(frozen=True)
class TraceRecord:
    opcode: int
    pc: int  # Address the opcode was fetched from
    registers: RegisterSnapshot
    cycles: int


class HaltReason(Enum):
    BRK = "BRK"
    ILLEGAL_OPCODE = "illegal opcode"


class IllegalOpcode(Exception):
    """Fetched byte has no entry in the opcode table"""

    def __init__(self, opcode, pc):
        self.opcode = opcode
        self.pc = pc
        super().__init__(f"Illegal opcode 0x{opcode:02X} at PC=0x{pc:04X}")


class CPU:
    def __init__(self, memory, instructions=None):
        self.memory = memory

        # Registers
        self.A = 0  # Accumulator
        self.X = 0  # X Register
        self.Y = 0  # Y Register
        self.PC = 0  # Program Counter
        self.SP = RESET_SP  # Stack Pointer

        # Status flags (P register)
        self.C = 0  # Carry flag
        self.Z = 0  # Zero flag
        self.I = 1  # Interrupt disable
        self.D = 0  # Decimal mode (tracked only)
        self.B = 0  # Break flag
        self.V = 0  # Overflow flag
        self.N = 0  # Negative flag

        # Instruction counter (one tick per instruction)
        self.cycles = 0

        # Halt state
        self.halted = False
        self.halt_reason = None
        self.fault = None

        self.trace_observers = []

        self.instructions = INSTRUCTIONS if instructions is None else instructions
        self.operations = self._build_dispatch(self.instructions)

    def _build_dispatch(self, instructions):
        """Resolve the opcode table into a 256-entry dispatch list"""
        operations = [None] * 256
        for opcode, (mnemonic, mode) in instructions.items():
            execute = getattr(self, f"execute_{mnemonic.lower()}")
            operations[opcode] = Operation(mnemonic, mode, execute)
        return operations

    def reset(self):
        """Reset the CPU and load PC from the reset vector"""
        self.SP = RESET_SP
        self.set_status_byte(RESET_STATUS)

        low = self.memory.read(0xFFFC)
        high = self.memory.read(0xFFFD)
        self.PC = (high << 8) | low

        self.cycles = 0
        self.halted = False
        self.halt_reason = None
        self.fault = None

    # ------------------------ Execution ------------------------

    def step(self):
        """Execute one complete instruction. Returns ticks consumed (0 when halted)."""
        if self.halted:
            return 0

        self.cycles += 1
        pc = self.PC
        opcode = self.fetch_byte()
        operation = self.operations[opcode]

        if operation is None:
            self.halted = True
            self.halt_reason = HaltReason.ILLEGAL_OPCODE
            self.fault = IllegalOpcode(opcode, pc)
            debug_print(f"CPU: Unknown opcode: 0x{opcode:02X} at PC: 0x{pc:04X}")
            self._notify(opcode, pc)
            raise self.fault

        address = self.resolve_address(operation.mode)
        operation.execute(address, operation.mode)

        self._notify(opcode, pc)
        return 1

    def run(self, max_instructions=None):
        """Step until BRK or an illegal opcode halts the CPU.

        Returns the HaltReason, or None if max_instructions ran out first.
        """
        executed = 0
        while not self.halted:
            if max_instructions is not None and executed >= max_instructions:
                debug_print(f"CPU: Instruction budget of {max_instructions} exhausted at PC=0x{self.PC:04X}")
                return None
            try:
                self.step()
            except IllegalOpcode as fault:
                debug_print(f"CPU: Halted: {fault}")
            executed += 1
        return self.halt_reason

    def add_trace_observer(self, observer):
        self.trace_observers.append(observer)

    def remove_trace_observer(self, observer):
        self.trace_observers.remove(observer)

    def _notify(self, opcode, pc):
        if not self.trace_observers:
            return
        record = TraceRecord(opcode, pc, self.registers(), self.cycles)
        # Observers may remove themselves while being notified
        for observer in tuple(self.trace_observers):
            observer(record)

    def registers(self):
        """Immutable snapshot of the register file"""
        return RegisterSnapshot(
            self.A, self.X, self.Y, self.SP, self.PC, self.get_status_byte()
        )

    # ------------------------ Fetch primitives ------------------------

    def fetch_byte(self):
        value = self.memory.read(self.PC)
        self.PC = (self.PC + 1) & 0xFFFF
        return value

    def fetch_word(self):
        low = self.fetch_byte()
        high = self.fetch_byte()
        return (high << 8) | low

    def fetch_signed_byte(self):
        value = self.fetch_byte()
        return value if value < 0x80 else value - 0x100

    def resolve_address(self, addressing_mode):
        """Consume operand bytes and return the effective address.

        Immediate yields the address of the operand byte, relative yields the
        branch target, implied/accumulator yield None.
        """
        if addressing_mode == IMPLIED or addressing_mode == ACCUMULATOR:
            return None
        elif addressing_mode == IMMEDIATE:
            addr = self.PC
            self.PC = (self.PC + 1) & 0xFFFF
            return addr
        elif addressing_mode == ZERO_PAGE:
            return self.fetch_byte()
        elif addressing_mode == ZERO_PAGE_X:
            return (self.fetch_byte() + self.X) & 0xFF
        elif addressing_mode == ABSOLUTE:
            return self.fetch_word()
        elif addressing_mode == ABSOLUTE_X:
            return (self.fetch_word() + self.X) & 0xFFFF
        elif addressing_mode == RELATIVE:
            # Offset is consumed whether or not the branch is taken
            offset = self.fetch_signed_byte()
            return (self.PC + offset) & 0xFFFF
        raise ValueError(f"Unsupported addressing mode: {addressing_mode}")

    # ------------------------ Flags ------------------------

    def get_status_byte(self):
        """Get the status register as a byte (bit 5 always set)"""
        return (
            (self.N << 7)
            | (self.V << 6)
            | (1 << 5)
            | (self.B << 4)
            | (self.D << 3)
            | (self.I << 2)
            | (self.Z << 1)
            | self.C
        )

    def set_status_byte(self, value):
        """Set the status register from a byte"""
        self.N = (value >> 7) & 1
        self.V = (value >> 6) & 1
        self.B = (value >> 4) & 1
        self.D = (value >> 3) & 1
        self.I = (value >> 2) & 1
        self.Z = (value >> 1) & 1
        self.C = value & 1

    def set_zero_negative(self, value):
        """Set zero and negative flags based on value"""
        self.Z = 1 if value == 0 else 0
        self.N = 1 if value & 0x80 else 0

    # ------------------------ Stack ------------------------

    def push_byte(self, value):
        self.memory.write(STACK_BASE + self.SP, value)
        self.SP = (self.SP - 1) & 0xFF

    def pull_byte(self):
        self.SP = (self.SP + 1) & 0xFF
        return self.memory.read(STACK_BASE + self.SP)

    def push_word(self, value):
        self.push_byte((value >> 8) & 0xFF)
        self.push_byte(value & 0xFF)

    def pull_word(self):
        low = self.pull_byte()
        high = self.pull_byte()
        return (high << 8) | low

    # ------------------------ ALU helpers ------------------------

    def _add_with_carry(self, value):
        result = self.A + value + self.C
        self.V = 1 if (~(self.A ^ value) & (self.A ^ result)) & 0x80 else 0
        self.C = 1 if result > 0xFF else 0
        self.A = result & 0xFF
        self.set_zero_negative(self.A)

    def _subtract_with_borrow(self, value):
        result = self.A - value - (1 - self.C)
        self.V = 1 if ((self.A ^ result) & (self.A ^ value)) & 0x80 else 0
        self.C = 1 if result >= 0 else 0
        self.A = result & 0xFF
        self.set_zero_negative(self.A)

    def _compare(self, register, value):
        # Carry from the unmasked comparison, Z/N from the truncated difference
        self.C = 1 if register >= value else 0
        self.set_zero_negative((register - value) & 0xFF)

    def _shift(self, operand, addressing_mode, shifter):
        """Apply shifter(value) -> (result, carry) to A or to memory"""
        if addressing_mode == ACCUMULATOR:
            self.A, self.C = shifter(self.A)
            self.set_zero_negative(self.A)
        else:
            value, self.C = shifter(self.memory.read(operand))
            self.memory.write(operand, value)
            self.set_zero_negative(value)

    # ------------------------ Load/Store ------------------------

    def execute_lda(self, operand, addressing_mode):
        self.A = self.memory.read(operand)
        self.set_zero_negative(self.A)

    def execute_ldx(self, operand, addressing_mode):
        self.X = self.memory.read(operand)
        self.set_zero_negative(self.X)

    def execute_ldy(self, operand, addressing_mode):
        self.Y = self.memory.read(operand)
        self.set_zero_negative(self.Y)

    def execute_sta(self, operand, addressing_mode):
        self.memory.write(operand, self.A)

    def execute_stx(self, operand, addressing_mode):
        self.memory.write(operand, self.X)

    def execute_sty(self, operand, addressing_mode):
        self.memory.write(operand, self.Y)

    # ------------------------ Transfer ------------------------

    def execute_tax(self, operand, addressing_mode):
        self.X = self.A
        self.set_zero_negative(self.X)

    def execute_tay(self, operand, addressing_mode):
        self.Y = self.A
        self.set_zero_negative(self.Y)

    def execute_tsx(self, operand, addressing_mode):
        self.X = self.SP
        self.set_zero_negative(self.X)

    def execute_txa(self, operand, addressing_mode):
        self.A = self.X
        self.set_zero_negative(self.A)

    def execute_txs(self, operand, addressing_mode):
        self.SP = self.X

    def execute_tya(self, operand, addressing_mode):
        self.A = self.Y
        self.set_zero_negative(self.A)

    # ------------------------ Stack ------------------------

    def execute_pha(self, operand, addressing_mode):
        self.push_byte(self.A)

    def execute_pla(self, operand, addressing_mode):
        self.A = self.pull_byte()
        self.set_zero_negative(self.A)

    def execute_php(self, operand, addressing_mode):
        # B is only ever visible on the stack copy
        self.push_byte(self.get_status_byte() | 0x10)

    def execute_plp(self, operand, addressing_mode):
        self.set_status_byte(self.pull_byte())

    # ------------------------ Arithmetic/Logic ------------------------

    def execute_adc(self, operand, addressing_mode):
        self._add_with_carry(self.memory.read(operand))

    def execute_sbc(self, operand, addressing_mode):
        self._subtract_with_borrow(self.memory.read(operand))

    def execute_and(self, operand, addressing_mode):
        self.A = self.A & self.memory.read(operand)
        self.set_zero_negative(self.A)

    def execute_eor(self, operand, addressing_mode):
        self.A = self.A ^ self.memory.read(operand)
        self.set_zero_negative(self.A)

    def execute_ora(self, operand, addressing_mode):
        self.A = self.A | self.memory.read(operand)
        self.set_zero_negative(self.A)

    def execute_bit(self, operand, addressing_mode):
        """Bit Test - Z from A & value, N and V copied from bits 7 and 6"""
        value = self.memory.read(operand)
        self.Z = 1 if (self.A & value) == 0 else 0
        self.V = 1 if value & 0x40 else 0
        self.N = 1 if value & 0x80 else 0

    def execute_cmp(self, operand, addressing_mode):
        self._compare(self.A, self.memory.read(operand))

    def execute_cpx(self, operand, addressing_mode):
        self._compare(self.X, self.memory.read(operand))

    def execute_cpy(self, operand, addressing_mode):
        self._compare(self.Y, self.memory.read(operand))

    # ------------------------ Shift/Rotate ------------------------

    def execute_asl(self, operand, addressing_mode):
        self._shift(operand, addressing_mode, lambda v: ((v << 1) & 0xFF, (v >> 7) & 1))

    def execute_lsr(self, operand, addressing_mode):
        self._shift(operand, addressing_mode, lambda v: (v >> 1, v & 1))

    def execute_rol(self, operand, addressing_mode):
        carry = self.C
        self._shift(
            operand, addressing_mode, lambda v: (((v << 1) | carry) & 0xFF, (v >> 7) & 1)
        )

    def execute_ror(self, operand, addressing_mode):
        carry = self.C
        self._shift(
            operand, addressing_mode, lambda v: ((v >> 1) | (carry << 7), v & 1)
        )

    # ------------------------ Increment/Decrement ------------------------

    def execute_inc(self, operand, addressing_mode):
        value = (self.memory.read(operand) + 1) & 0xFF
        self.memory.write(operand, value)
        self.set_zero_negative(value)

    def execute_dec(self, operand, addressing_mode):
        value = (self.memory.read(operand) - 1) & 0xFF
        self.memory.write(operand, value)
        self.set_zero_negative(value)

    def execute_inx(self, operand, addressing_mode):
        self.X = (self.X + 1) & 0xFF
        self.set_zero_negative(self.X)

    def execute_iny(self, operand, addressing_mode):
        self.Y = (self.Y + 1) & 0xFF
        self.set_zero_negative(self.Y)

    def execute_dex(self, operand, addressing_mode):
        self.X = (self.X - 1) & 0xFF
        self.set_zero_negative(self.X)

    def execute_dey(self, operand, addressing_mode):
        self.Y = (self.Y - 1) & 0xFF
        self.set_zero_negative(self.Y)

    # ------------------------ Branches ------------------------

    def execute_bpl(self, operand, addressing_mode):
        if self.N == 0:
            self.PC = operand

    def execute_bmi(self, operand, addressing_mode):
        if self.N == 1:
            self.PC = operand

    def execute_bvc(self, operand, addressing_mode):
        if self.V == 0:
            self.PC = operand

    def execute_bvs(self, operand, addressing_mode):
        if self.V == 1:
            self.PC = operand

    def execute_bcc(self, operand, addressing_mode):
        if self.C == 0:
            self.PC = operand

    def execute_bcs(self, operand, addressing_mode):
        if self.C == 1:
            self.PC = operand

    def execute_bne(self, operand, addressing_mode):
        if self.Z == 0:
            self.PC = operand

    def execute_beq(self, operand, addressing_mode):
        if self.Z == 1:
            self.PC = operand

    # ------------------------ Jumps/Calls ------------------------

    def execute_jmp(self, operand, addressing_mode):
        self.PC = operand

    def execute_jsr(self, operand, addressing_mode):
        self.push_word((self.PC - 1) & 0xFFFF)
        self.PC = operand

    def execute_rts(self, operand, addressing_mode):
        self.PC = (self.pull_word() + 1) & 0xFFFF

    def execute_brk(self, operand, addressing_mode):
        # Simplified: BRK ends the run instead of vectoring through $FFFE
        self.halted = True
        self.halt_reason = HaltReason.BRK
        debug_print(f"CPU: BRK reached at PC=0x{(self.PC - 1) & 0xFFFF:04X}. Halting.")

    def execute_nop(self, operand, addressing_mode):
        pass

    # ------------------------ Flags ------------------------

    def execute_clc(self, operand, addressing_mode):
        self.C = 0

    def execute_sec(self, operand, addressing_mode):
        self.C = 1

    def execute_cli(self, operand, addressing_mode):
        self.I = 0

    def execute_sei(self, operand, addressing_mode):
        self.I = 1

    def execute_clv(self, operand, addressing_mode):
        self.V = 0

    def execute_cld(self, operand, addressing_mode):
        self.D = 0

    def execute_sed(self, operand, addressing_mode):
        self.D = 1

"""
CPU tests: flags, ALU, stack, branches, subroutines and halting
"""

import dataclasses

import pytest

from cpu import CPU, HaltReason, IllegalOpcode
from memory import Memory

ORIGIN = 0x8000


def make_cpu(program, origin=ORIGIN, instructions=None):
    memory = Memory()
    memory.load(origin, program)
    memory.set_reset_vector(origin)
    cpu = CPU(memory, instructions)
    cpu.reset()
    return cpu


def run_steps(cpu, count):
    for _ in range(count):
        cpu.step()


# ------------------------ Register/flag model ------------------------


def test_reset_state():
    cpu = make_cpu(bytes([0xEA]), origin=0xC000)
    assert cpu.PC == 0xC000
    assert cpu.SP == 0xFD
    assert cpu.get_status_byte() == 0x24
    assert cpu.I == 1
    assert (cpu.N, cpu.V, cpu.B, cpu.D, cpu.Z, cpu.C) == (0, 0, 0, 0, 0, 0)
    assert cpu.cycles == 0
    assert not cpu.halted


def test_zero_negative_for_every_byte():
    cpu = make_cpu(bytes([0xEA]))
    for value in range(256):
        cpu.set_zero_negative(value)
        assert cpu.Z == (1 if value == 0 else 0)
        assert cpu.N == (value >> 7) & 1


def test_status_pack_unpack_round_trip():
    cpu = make_cpu(bytes([0xEA]))
    for value in range(256):
        cpu.set_status_byte(value)
        assert cpu.get_status_byte() == value | 0x20


def test_pack_forces_bit5():
    cpu = make_cpu(bytes([0xEA]))
    cpu.set_status_byte(0x00)
    assert cpu.get_status_byte() == 0x20
    cpu.N = cpu.C = 1
    assert cpu.get_status_byte() == 0xA1


def test_registers_snapshot_is_immutable():
    cpu = make_cpu(bytes([0xA9, 0x42]))
    cpu.step()
    snapshot = cpu.registers()
    assert snapshot.A == 0x42
    assert snapshot.PC == ORIGIN + 2
    assert snapshot.P == cpu.get_status_byte()
    with pytest.raises(dataclasses.FrozenInstanceError):
        snapshot.A = 0
    assert snapshot == cpu.registers()


# ------------------------ Addressing modes ------------------------


def test_immediate_resolves_to_operand_address():
    cpu = make_cpu(bytes([0xA9, 0x42]))
    cpu.PC = ORIGIN + 1
    assert cpu.resolve_address("immediate") == ORIGIN + 1
    assert cpu.PC == ORIGIN + 2


def test_zero_page_x_wraps_within_page():
    # LDX #$10; LDA $F5,X reads $0005
    cpu = make_cpu(bytes([0xA2, 0x10, 0xB5, 0xF5]))
    cpu.memory.write(0x0005, 0x77)
    cpu.memory.write(0x0105, 0x11)
    run_steps(cpu, 2)
    assert cpu.A == 0x77


def test_absolute_x_wraps_address_space():
    # LDX #$02; LDA #$5A; STA $FFFF,X writes $0001
    cpu = make_cpu(bytes([0xA2, 0x02, 0xA9, 0x5A, 0x9D, 0xFF, 0xFF]))
    run_steps(cpu, 3)
    assert cpu.memory.read(0x0001) == 0x5A


def test_implied_consumes_no_operand():
    cpu = make_cpu(bytes([0xEA, 0xEA]))
    cpu.step()
    assert cpu.PC == ORIGIN + 1


# ------------------------ Loads, stores and transfers ------------------------


def test_load_immediate_sets_flags():
    cpu = make_cpu(bytes([0xA9, 0x00, 0xA2, 0x80, 0xA0, 0x7F]))
    cpu.step()
    assert cpu.A == 0 and cpu.Z == 1 and cpu.N == 0
    cpu.step()
    assert cpu.X == 0x80 and cpu.Z == 0 and cpu.N == 1
    cpu.step()
    assert cpu.Y == 0x7F and cpu.Z == 0 and cpu.N == 0
    assert cpu.PC == ORIGIN + 6


def test_store_forms():
    # LDA #$AB; STA $10; LDX #$01; STA $0300,X; STX $11; LDY #$22; STY $12
    cpu = make_cpu(bytes([
        0xA9, 0xAB, 0x85, 0x10, 0xA2, 0x01, 0x9D, 0x00, 0x03,
        0x86, 0x11, 0xA0, 0x22, 0x84, 0x12,
    ]))
    run_steps(cpu, 7)
    assert cpu.memory.read(0x0010) == 0xAB
    assert cpu.memory.read(0x0301) == 0xAB
    assert cpu.memory.read(0x0011) == 0x01
    assert cpu.memory.read(0x0012) == 0x22


def test_transfers_update_destination_flags():
    cpu = make_cpu(bytes([0xA9, 0x80, 0xAA, 0xA8, 0xA9, 0x00, 0x8A, 0x98]))
    run_steps(cpu, 3)
    assert cpu.X == 0x80 and cpu.Y == 0x80 and cpu.N == 1
    cpu.step()  # LDA #$00
    cpu.step()  # TXA
    assert cpu.A == 0x80 and cpu.N == 1 and cpu.Z == 0
    cpu.Y = 0
    cpu.step()  # TYA
    assert cpu.A == 0 and cpu.Z == 1


def test_txs_does_not_touch_flags():
    cpu = make_cpu(bytes([0xA2, 0x00, 0x9A]))
    run_steps(cpu, 2)
    assert cpu.SP == 0x00
    assert cpu.Z == 1
    cpu.Z = 0
    cpu.X = 0x80
    cpu.PC = ORIGIN + 2
    cpu.step()
    assert cpu.SP == 0x80
    assert cpu.Z == 0 and cpu.N == 0


def test_tsx():
    cpu = make_cpu(bytes([0xBA]))
    cpu.step()
    assert cpu.X == 0xFD
    assert cpu.N == 1


# ------------------------ ALU ------------------------


def test_adc_signed_overflow():
    cpu = make_cpu(bytes([0xA9, 0x7F, 0x69, 0x01]))
    run_steps(cpu, 2)
    assert cpu.A == 0x80
    assert (cpu.V, cpu.N, cpu.C, cpu.Z) == (1, 1, 0, 0)


def test_adc_carry_out_and_carry_in():
    cpu = make_cpu(bytes([0xA9, 0xFF, 0x69, 0x01, 0x69, 0x00]))
    run_steps(cpu, 2)
    assert cpu.A == 0x00
    assert (cpu.C, cpu.Z, cpu.V) == (1, 1, 0)
    cpu.step()  # ADC #$00 adds the carry
    assert cpu.A == 0x01
    assert cpu.C == 0


def test_adc_negative_overflow():
    # -128 + -1 overflows to +127
    cpu = make_cpu(bytes([0xA9, 0x80, 0x69, 0xFF]))
    run_steps(cpu, 2)
    assert cpu.A == 0x7F
    assert (cpu.V, cpu.C, cpu.N) == (1, 1, 0)


def test_adc_ignores_decimal_flag():
    cpu = make_cpu(bytes([0xF8, 0xA9, 0x09, 0x69, 0x01]))
    run_steps(cpu, 3)
    assert cpu.D == 1
    assert cpu.A == 0x0A


def test_sbc_borrow():
    cpu = make_cpu(bytes([0x38, 0xA9, 0x00, 0xE9, 0x01]))
    run_steps(cpu, 3)
    assert cpu.A == 0xFF
    assert (cpu.C, cpu.N, cpu.Z) == (0, 1, 0)


def test_sbc_without_carry_subtracts_one_more():
    cpu = make_cpu(bytes([0x18, 0xA9, 0x10, 0xE9, 0x05]))
    run_steps(cpu, 3)
    assert cpu.A == 0x0A
    assert cpu.C == 1


def test_sbc_overflow():
    # -128 - 1 overflows to +127
    cpu = make_cpu(bytes([0x38, 0xA9, 0x80, 0xE9, 0x01]))
    run_steps(cpu, 3)
    assert cpu.A == 0x7F
    assert (cpu.V, cpu.C) == (1, 1)


def test_logic_operations():
    cpu = make_cpu(bytes([0xA9, 0xF0, 0x29, 0x0F, 0x09, 0x81, 0x49, 0xFF]))
    cpu.C = 1
    cpu.V = 1
    run_steps(cpu, 2)
    assert cpu.A == 0x00 and cpu.Z == 1
    cpu.step()
    assert cpu.A == 0x81 and cpu.N == 1 and cpu.Z == 0
    cpu.step()
    assert cpu.A == 0x7E and cpu.N == 0
    # Logic ops leave carry and overflow alone
    assert cpu.C == 1 and cpu.V == 1


@pytest.mark.parametrize(
    "a, operand, carry, zero, negative",
    [
        (0x10, 0x20, 0, 0, 1),
        (0x20, 0x20, 1, 1, 0),
        (0x80, 0x01, 1, 0, 0),
        (0x00, 0x80, 0, 0, 1),
        (0xFF, 0x00, 1, 0, 1),
    ],
)
def test_cmp(a, operand, carry, zero, negative):
    cpu = make_cpu(bytes([0xA9, a, 0xC9, operand]))
    run_steps(cpu, 2)
    assert cpu.A == a
    assert (cpu.C, cpu.Z, cpu.N) == (carry, zero, negative)


def test_cpx_cpy():
    cpu = make_cpu(bytes([0xA2, 0x05, 0xE0, 0x05, 0xA0, 0x01, 0xC0, 0x02]))
    run_steps(cpu, 2)
    assert (cpu.C, cpu.Z) == (1, 1)
    run_steps(cpu, 2)
    assert (cpu.C, cpu.Z, cpu.N) == (0, 0, 1)


def test_bit_zero_page():
    cpu = make_cpu(bytes([0xA9, 0x01, 0x24, 0x10]))
    cpu.memory.write(0x0010, 0xC0)
    run_steps(cpu, 2)
    assert (cpu.Z, cpu.V, cpu.N) == (1, 1, 1)
    assert cpu.A == 0x01


# ------------------------ Shifts and rotates ------------------------


def test_asl_lsr_accumulator():
    cpu = make_cpu(bytes([0xA9, 0x81, 0x0A, 0xA9, 0x01, 0x4A]))
    run_steps(cpu, 2)
    assert cpu.A == 0x02 and cpu.C == 1 and cpu.N == 0
    run_steps(cpu, 2)
    assert cpu.A == 0x00 and cpu.C == 1 and cpu.Z == 1


def test_rol_ror_accumulator_use_prior_carry():
    cpu = make_cpu(bytes([0x38, 0xA9, 0x80, 0x2A, 0x38, 0xA9, 0x01, 0x6A]))
    run_steps(cpu, 3)
    assert cpu.A == 0x01 and cpu.C == 1
    run_steps(cpu, 3)
    assert cpu.A == 0x80 and cpu.C == 1 and cpu.N == 1


def test_rol_without_carry():
    cpu = make_cpu(bytes([0x18, 0xA9, 0x40, 0x2A]))
    run_steps(cpu, 3)
    assert cpu.A == 0x80 and cpu.C == 0 and cpu.N == 1


def test_shift_zero_page_forms():
    cpu = make_cpu(bytes([0x06, 0x10, 0x46, 0x11, 0x26, 0x12, 0x66, 0x13]))
    cpu.memory.write(0x10, 0x40)
    cpu.memory.write(0x11, 0x01)
    cpu.memory.write(0x12, 0x80)
    cpu.memory.write(0x13, 0x02)

    cpu.step()  # ASL $10
    assert cpu.memory.read(0x10) == 0x80 and cpu.C == 0 and cpu.N == 1
    cpu.step()  # LSR $11
    assert cpu.memory.read(0x11) == 0x00 and cpu.C == 1 and cpu.Z == 1
    cpu.step()  # ROL $12, carry in 1
    assert cpu.memory.read(0x12) == 0x01 and cpu.C == 1
    cpu.step()  # ROR $13, carry in 1
    assert cpu.memory.read(0x13) == 0x81 and cpu.C == 0 and cpu.N == 1


# ------------------------ Increment/decrement ------------------------


def test_inc_dec_zero_page_wrap():
    cpu = make_cpu(bytes([0xE6, 0x20, 0xC6, 0x21]))
    cpu.memory.write(0x20, 0xFF)
    cpu.C = 1
    cpu.step()
    assert cpu.memory.read(0x20) == 0x00 and cpu.Z == 1
    cpu.step()
    assert cpu.memory.read(0x21) == 0xFF and cpu.N == 1
    assert cpu.C == 1


def test_register_increments_wrap():
    cpu = make_cpu(bytes([0xE8, 0xC8, 0xCA, 0x88]))
    cpu.X = 0xFF
    cpu.Y = 0x7F
    cpu.step()
    assert cpu.X == 0x00 and cpu.Z == 1
    cpu.step()
    assert cpu.Y == 0x80 and cpu.N == 1
    cpu.step()
    assert cpu.X == 0xFF
    cpu.step()
    assert cpu.Y == 0x7F and cpu.N == 0


# ------------------------ Flag instructions ------------------------


def test_flag_instructions():
    cpu = make_cpu(bytes([0x38, 0xF8, 0x58, 0x18, 0xD8, 0x78, 0xB8]))
    cpu.V = 1
    run_steps(cpu, 3)
    assert (cpu.C, cpu.D, cpu.I) == (1, 1, 0)
    run_steps(cpu, 4)
    assert (cpu.C, cpu.D, cpu.I, cpu.V) == (0, 0, 1, 0)


# ------------------------ Stack ------------------------


def test_pha_pla_round_trip():
    cpu = make_cpu(bytes([0xA9, 0x5A, 0x48, 0xA9, 0x00, 0x68]))
    run_steps(cpu, 2)
    assert cpu.SP == 0xFC
    assert cpu.memory.read(0x01FD) == 0x5A
    run_steps(cpu, 2)
    assert cpu.A == 0x5A
    assert cpu.SP == 0xFD
    assert cpu.Z == 0 and cpu.N == 0


def test_php_sets_break_on_stack_only():
    cpu = make_cpu(bytes([0x08]))
    cpu.step()
    assert cpu.memory.read(0x01FD) == 0x34
    assert cpu.B == 0


def test_plp_restores_flags():
    cpu = make_cpu(bytes([0x28]))
    cpu.memory.write(0x01FE, 0xC3)
    cpu.step()
    assert (cpu.N, cpu.V, cpu.Z, cpu.C, cpu.I) == (1, 1, 1, 1, 0)
    assert cpu.SP == 0xFE


def test_stack_wraps_silently():
    cpu = make_cpu(bytes([0xEA]))
    cpu.SP = 0x00
    cpu.push_byte(0x11)
    assert cpu.memory.read(0x0100) == 0x11
    assert cpu.SP == 0xFF
    assert cpu.pull_byte() == 0x11
    assert cpu.SP == 0x00


def test_push_word_order():
    cpu = make_cpu(bytes([0xEA]))
    cpu.push_word(0xBEEF)
    assert cpu.memory.read(0x01FD) == 0xBE
    assert cpu.memory.read(0x01FC) == 0xEF
    assert cpu.pull_word() == 0xBEEF


# ------------------------ Branches ------------------------


def test_branch_not_taken_skips_offset():
    cpu = make_cpu(bytes([0xA9, 0x01, 0xF0, 0x05]))
    run_steps(cpu, 2)
    assert cpu.PC == ORIGIN + 4


def test_branch_taken_forward():
    cpu = make_cpu(bytes([0xA9, 0x00, 0xF0, 0x05]))
    run_steps(cpu, 2)
    assert cpu.PC == ORIGIN + 4 + 5


def test_branch_backward_loop():
    # LDX #$03; loop: DEX; BNE loop; BRK
    cpu = make_cpu(bytes([0xA2, 0x03, 0xCA, 0xD0, 0xFD, 0x00]))
    assert cpu.run() is HaltReason.BRK
    assert cpu.X == 0
    assert cpu.cycles == 8
    assert cpu.PC == ORIGIN + 6


def test_branch_wraps_around_address_space():
    cpu = make_cpu(bytes([0x10, 0x7F]), origin=0xFFF0)
    cpu.step()
    assert cpu.PC == (0xFFF2 + 0x7F) & 0xFFFF


@pytest.mark.parametrize(
    "opcode, flag, taken_when",
    [
        (0x10, "N", 0),
        (0x30, "N", 1),
        (0x50, "V", 0),
        (0x70, "V", 1),
        (0x90, "C", 0),
        (0xB0, "C", 1),
        (0xD0, "Z", 0),
        (0xF0, "Z", 1),
    ],
)
def test_branch_conditions(opcode, flag, taken_when):
    for value in (0, 1):
        cpu = make_cpu(bytes([opcode, 0x10]))
        setattr(cpu, flag, value)
        cpu.step()
        expected = ORIGIN + 2 + (0x10 if value == taken_when else 0)
        assert cpu.PC == expected


# ------------------------ Subroutines and jumps ------------------------


def test_jsr_rts():
    program = bytearray(0x20)
    program[0:4] = bytes([0x20, 0x10, 0x80, 0x00])  # JSR $8010; BRK
    program[0x10:0x13] = bytes([0xA9, 0x42, 0x60])  # LDA #$42; RTS
    cpu = make_cpu(bytes(program))

    cpu.step()
    assert cpu.PC == 0x8010
    assert cpu.memory.read(0x01FD) == 0x80
    assert cpu.memory.read(0x01FC) == 0x02
    assert cpu.SP == 0xFB

    assert cpu.run() is HaltReason.BRK
    assert cpu.A == 0x42
    assert cpu.SP == 0xFD
    assert cpu.PC == 0x8004


def test_jmp_absolute():
    cpu = make_cpu(bytes([0x4C, 0x34, 0x12]))
    cpu.step()
    assert cpu.PC == 0x1234


# ------------------------ Halting ------------------------


def test_brk_halts():
    cpu = make_cpu(bytes([0xEA, 0x00, 0xEA]))
    assert cpu.run() is HaltReason.BRK
    assert cpu.halted
    assert cpu.PC == ORIGIN + 2
    assert cpu.cycles == 2
    # A halted CPU no longer steps
    assert cpu.step() == 0
    assert cpu.cycles == 2


def test_illegal_opcode_raises_from_step():
    cpu = make_cpu(bytes([0xA9, 0xFF, 0xFF]))
    cpu.step()
    assert cpu.A == 0xFF
    with pytest.raises(IllegalOpcode) as excinfo:
        cpu.step()
    assert excinfo.value.opcode == 0xFF
    assert excinfo.value.pc == ORIGIN + 2
    assert "0xFF" in str(excinfo.value)
    assert cpu.halted
    assert cpu.halt_reason is HaltReason.ILLEGAL_OPCODE


def test_illegal_opcode_reported_by_run():
    cpu = make_cpu(bytes([0xA9, 0xFF, 0xFF]))
    assert cpu.run() is HaltReason.ILLEGAL_OPCODE
    assert cpu.fault.pc == 0x8002
    assert cpu.fault.opcode == 0xFF
    assert cpu.A == 0xFF
    assert cpu.cycles == 2


def test_run_budget():
    cpu = make_cpu(bytes([0x4C, 0x00, 0x80]))  # JMP $8000 forever
    assert cpu.run(max_instructions=10) is None
    assert cpu.cycles == 10
    assert not cpu.halted


def test_reset_clears_halt():
    cpu = make_cpu(bytes([0x00]))
    cpu.run()
    cpu.reset()
    assert not cpu.halted
    assert cpu.halt_reason is None
    assert cpu.PC == ORIGIN


# ------------------------ Trace observer ------------------------


def test_trace_observer_records_each_step():
    cpu = make_cpu(bytes([0xA9, 0x10, 0xAA, 0x00]))
    records = []
    cpu.add_trace_observer(records.append)
    cpu.run()

    assert [r.opcode for r in records] == [0xA9, 0xAA, 0x00]
    assert [r.pc for r in records] == [0x8000, 0x8002, 0x8003]
    assert [r.cycles for r in records] == [1, 2, 3]
    assert records[1].registers.X == 0x10

    cpu.remove_trace_observer(records.append)
    cpu.reset()
    cpu.run()
    assert len(records) == 3


def test_observer_removing_itself_does_not_starve_others():
    cpu = make_cpu(bytes([0xEA, 0xEA, 0x00]))
    one_shot_calls = []
    seen = []

    def one_shot(record):
        one_shot_calls.append(record.opcode)
        cpu.remove_trace_observer(one_shot)

    cpu.add_trace_observer(one_shot)
    cpu.add_trace_observer(seen.append)
    cpu.run()

    assert one_shot_calls == [0xEA]
    assert [r.opcode for r in seen] == [0xEA, 0xEA, 0x00]
    assert cpu.trace_observers == [seen.append]


def test_trace_observer_sees_illegal_opcode():
    cpu = make_cpu(bytes([0x02]))
    records = []
    cpu.add_trace_observer(records.append)
    cpu.run()
    assert records[0].opcode == 0x02
    assert records[0].pc == ORIGIN

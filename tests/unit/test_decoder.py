"""Instruction decoder tests."""

import pytest

from chip8emu.cpu.decoder import decode


def test_decode_splits_every_field() -> None:
    decoded = decode(0xD12F)

    assert decoded.raw == 0xD12F
    assert decoded.opcode == 0xD
    assert decoded.x == 0x1
    assert decoded.y == 0x2
    assert decoded.n == 0xF
    assert decoded.nn == 0x2F
    assert decoded.nnn == 0x12F


@pytest.mark.parametrize(
    "raw, opcode, nnn",
    [(0x0000, 0x0, 0x000), (0x1ABC, 0x1, 0xABC), (0xFFFF, 0xF, 0xFFF)],
)
def test_decode_opcode_and_address(raw: int, opcode: int, nnn: int) -> None:
    decoded = decode(raw)
    assert decoded.opcode == opcode
    assert decoded.nnn == nnn


def test_decode_masks_to_sixteen_bits() -> None:
    assert decode(0x1_6A05).raw == 0x6A05


def test_decoded_instruction_str_lists_fields() -> None:
    text = str(decode(0x8AB4))
    assert "Instruction: 8AB4" in text
    assert "X: A" in text
    assert "Y: B" in text

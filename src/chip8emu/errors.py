"""Fatal error hierarchy for the CHIP-8 interpreter."""

from __future__ import annotations

EXIT_OK = 0
EXIT_LOAD_FAILURE = 1
EXIT_DECODE_FAILURE = 2
EXIT_VM_FAULT = 3


class Chip8Error(RuntimeError):
    """Base class for every condition that halts the virtual machine."""

    exit_code = EXIT_VM_FAULT


class ProgramLoadError(Chip8Error):
    """Raised when a program image cannot be read or does not fit in memory."""

    exit_code = EXIT_LOAD_FAILURE


class UnknownOpcodeError(Chip8Error):
    """Raised when an instruction has no handler."""

    exit_code = EXIT_DECODE_FAILURE

    def __init__(self, instruction: int, address: int, field: str, value: int, opcode: int) -> None:
        self.instruction = instruction & 0xFFFF
        self.address = address
        self.field = field
        self.value = value
        self.opcode = opcode
        if field == "opcode":
            text = f"Unrecognized opcode: {opcode:X}"
        else:
            text = f"Unrecognized {field}: {value:X} for opcode: {opcode:X}"
        super().__init__(f"{text} (instruction 0x{self.instruction:04X} at 0x{address:03X})")


class StackUnderflowError(Chip8Error):
    """Raised on return from subroutine with an empty stack."""


class StackOverflowError(Chip8Error):
    """Raised on subroutine call with every stack slot in use."""


class MemoryAccessError(Chip8Error):
    """Raised when an address falls outside the 4 KiB address space."""


def exit_code_for(error: BaseException) -> int:
    return getattr(error, "exit_code", EXIT_VM_FAULT)

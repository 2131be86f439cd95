"""
Register VM Instruction Set Definition
======================================

This module defines the instruction set of the register virtual machine:
every mnemonic's opcode byte and ordered operand signature, and every
symbolic condition-flag name.

The tables are built once at import time and exposed as read-only mappings.
They must be reproduced exactly: the numeric opcodes are the contract with
whatever interpreter later runs the binary.

Operand Kinds
-------------
Each operand slot of an instruction has a kind which decides both how the
token is parsed and how wide it is in the binary:

1. **REGISTER**: register token R0-R31
   - 1 byte: register index
   - Example: PUSH R3 -> $13 $03

2. **FLAGS**: condition mask (EQ, NE, LT, GT, GE or a number 0-15)
   - 1 byte
   - Example: IF EQ, 0 -> $05 $01 $00 $00 $00 $00

3. **ADDRESS**: code/data offset, unsigned, below 65536
   - 4 bytes little-endian, or
   - 2 bytes ($FF marker + register) when written [Rn]

4. **IMMEDIATE**: signed 32-bit literal
   - same widths as ADDRESS

Condition Flags
---------------
| Name | Mask |
|------|------|
| EQ   | $01  |
| NE   | $02  |
| LT   | $04  |
| GT   | $08  |
| GE   | $08  |

GT and GE share one bit, so a consumer of the mask cannot tell them apart.
The table is kept exactly as the virtual machine defines it.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


# =============================================================================
# Operand Kind Enumeration
# =============================================================================

class OperandKind(Enum):
    """Kind of an instruction operand slot."""
    REGISTER = "reg"
    ADDRESS = "addr"
    IMMEDIATE = "imm"
    FLAGS = "flags"

    def __str__(self) -> str:
        return {
            OperandKind.REGISTER: "register",
            OperandKind.ADDRESS: "address",
            OperandKind.IMMEDIATE: "immediate",
            OperandKind.FLAGS: "flags",
        }[self]


REG = OperandKind.REGISTER
ADDR = OperandKind.ADDRESS
IMM = OperandKind.IMMEDIATE
FLAGS = OperandKind.FLAGS


# =============================================================================
# Instruction Information
# =============================================================================

@dataclass(frozen=True)
class InstructionInfo:
    """
    Encoding information for one mnemonic.

    Attributes:
        mnemonic: Upper-case instruction name
        opcode: The opcode byte
        operands: Ordered operand kinds
    """
    mnemonic: str
    opcode: int
    operands: tuple[OperandKind, ...] = ()

    @property
    def arity(self) -> int:
        """Number of operands the instruction takes."""
        return len(self.operands)

    def __repr__(self) -> str:
        kinds = ", ".join(k.value for k in self.operands)
        return f"InstructionInfo({self.mnemonic}, opcode=${self.opcode:02X}, ({kinds}))"


def _build_table(*entries: tuple[str, int, tuple[OperandKind, ...]]) -> Mapping[str, InstructionInfo]:
    table = {name: InstructionInfo(name, opcode, operands) for name, opcode, operands in entries}
    return MappingProxyType(table)


# =============================================================================
# Opcode Table
# =============================================================================

OPCODE_TABLE: Mapping[str, InstructionInfo] = _build_table(
    # Control flow
    ("NOP", 0x00, ()),
    ("HALT", 0x01, ()),
    ("JUMP", 0x02, (ADDR,)),
    ("CALL", 0x03, (ADDR,)),
    ("RET", 0x04, ()),
    ("IF", 0x05, (FLAGS, ADDR)),

    # Memory / register transfer
    ("LOAD", 0x10, (REG, ADDR)),
    ("STORE", 0x11, (REG, ADDR)),
    ("MOVE", 0x12, (REG, REG)),
    ("PUSH", 0x13, (REG,)),
    ("POP", 0x14, (REG,)),
    ("LOADI", 0x15, (REG, IMM)),

    # Arithmetic / logic
    ("ADD", 0x20, (REG, REG, REG)),
    ("SUB", 0x21, (REG, REG, REG)),
    ("MUL", 0x22, (REG, REG, REG)),
    ("DIV", 0x23, (REG, REG, REG)),
    ("AND", 0x24, (REG, REG, REG)),
    ("OR", 0x25, (REG, REG, REG)),
    ("XOR", 0x26, (REG, REG, REG)),
    ("NOT", 0x27, (REG, REG)),
    ("CMP", 0x28, (REG, IMM)),

    # Shifts and debugging
    ("SHL", 0x30, (REG, REG, IMM)),
    ("SHR", 0x31, (REG, REG, IMM)),
    ("BREAK", 0x32, ()),

    # Filesystem / environment introspection
    ("FS_LIST", 0x34, (ADDR,)),
    ("ENV_LIST", 0x42, (ADDR,)),

    # Console I/O
    ("PRINT", 0x50, (REG,)),
    ("INPUT", 0x51, (REG,)),
    ("PRINTS", 0x52, (ADDR,)),

    # Machine state
    ("SNAPSHOT", 0x60, ()),
    ("RESTORE", 0x61, ()),

    # File operations
    ("OPEN", 0x70, (REG, REG, REG)),
    ("READ", 0x71, (REG, REG, REG, REG)),
    ("WRITE", 0x72, (REG, REG, REG, REG)),
    ("CLOSE", 0x73, (REG,)),
    ("SEEK", 0x74, (REG, IMM, IMM, REG)),
)

FLAG_TABLE: Mapping[str, int] = MappingProxyType({
    "EQ": 0x01,
    "NE": 0x02,
    "LT": 0x04,
    "GT": 0x08,
    "GE": 0x08,  # Same bit as GT
})

FLAG_MASK = 0x0F


# =============================================================================
# Instruction Groups
# =============================================================================

# Three-register instructions whose source operands may be written as literals
ARITHMETIC_INSTRUCTIONS = frozenset({"ADD", "SUB", "MUL", "DIV", "AND", "OR", "XOR"})

# File transfer instructions whose operands may all be written as literals
FILE_TRANSFER_INSTRUCTIONS = frozenset({"READ", "WRITE"})

# Registers reserved for staging literals during macro expansion, in
# allocation order
SCRATCH_REGISTERS = ("R30", "R31")

REGISTER_COUNT = 32

# Marker byte introducing a register-indirect address operand
REGISTER_INDIRECT_MARKER = 0xFF

# Address operands index a 64 KiB space even though they are stored in 4 bytes
ADDRESS_LIMIT = 0x10000


# =============================================================================
# Lookup Functions
# =============================================================================

def get_instruction_info(mnemonic: str) -> Optional[InstructionInfo]:
    """Look up an instruction by mnemonic (case-insensitive)."""
    return OPCODE_TABLE.get(mnemonic.upper())


def is_valid_instruction(mnemonic: str) -> bool:
    """Check if a mnemonic names a real instruction."""
    return mnemonic.upper() in OPCODE_TABLE


def get_flag_value(name: str) -> Optional[int]:
    """Look up a condition flag by its exact name."""
    return FLAG_TABLE.get(name)

"""
Operand and Directive Encoding
==============================

The layout pass must reserve exactly as many bytes for a line as the code
generator later emits, or every label after that line points at the wrong
offset. Both passes therefore size operands with the same function,
operand_encoded_width(), and the encoder picks its output format from that
width rather than re-deciding it.

Operand Encodings
-----------------
| Kind       | Written    | Bytes                       |
|------------|------------|-----------------------------|
| register   | R5         | 05                          |
| flags      | EQ         | 01                          |
| address    | label      | 4-byte little-endian value  |
| address    | [100]      | 64 00 00 00                 |
| address    | [R3]       | FF 03                       |
| immediate  | -1         | FF FF FF FF                 |

Directive Encodings
-------------------
| Directive        | Bytes                                  |
|------------------|----------------------------------------|
| .ASCIIZ "text"   | escaped text, then 00                  |
| .SPACE n         | n zero bytes                           |
| .BYTE v          | 1 byte                                 |
| .WORD v          | 4-byte little-endian                   |
"""

import struct
from typing import Sequence

from vmasm.errors import ArityError, FlagMaskError, RangeError, UnknownDirectiveError
from vmasm.assembler.lexer import (
    REGISTER_RE,
    decode_string,
    parse_register,
    strip_brackets,
    unquote,
)
from vmasm.assembler.opcodes import (
    ADDRESS_LIMIT,
    FLAG_MASK,
    REGISTER_INDIRECT_MARKER,
    InstructionInfo,
    OperandKind,
)
from vmasm.assembler.statements import DIRECTIVES
from vmasm.assembler.values import INT32_MIN, UINT32_MAX, ValueParser


REGISTER_INDIRECT_WIDTH = 2
WORD_WIDTH = 4


# =============================================================================
# Operand Width and Encoding
# =============================================================================

def is_register_indirect(token: str) -> bool:
    """Check for a [Rn] operand."""
    token = token.strip()
    if not (token.startswith("[") and token.endswith("]")):
        return False
    return bool(REGISTER_RE.match(strip_brackets(token)))


def operand_encoded_width(kind: OperandKind, token: str) -> int:
    """
    Return the number of bytes an operand occupies in the output.

    This never resolves the token's value, so it can be called during
    pass 1 before forward references are known.
    """
    if kind in (OperandKind.REGISTER, OperandKind.FLAGS):
        return 1
    if is_register_indirect(token):
        return REGISTER_INDIRECT_WIDTH
    return WORD_WIDTH


def encode_word(value: int) -> bytes:
    """
    Encode a 32-bit value little-endian.

    Accepts both signed and unsigned interpretations of the machine word.

    Raises:
        RangeError: If the value does not fit in 32 bits
    """
    if not INT32_MIN <= value <= UINT32_MAX:
        raise RangeError(f"value {value} does not fit in 32 bits")
    return struct.pack("<I", value & 0xFFFFFFFF)


def encode_operand(kind: OperandKind, token: str, values: ValueParser) -> bytes:
    """
    Encode one operand.

    Raises:
        LexicalError: If a register operand is not written Rn
        RangeError: If a register, address or immediate is out of range
        FlagMaskError: If a flags value is wider than four bits
        UnresolvedSymbolError: If a value cannot be resolved
    """
    width = operand_encoded_width(kind, token)

    if kind == OperandKind.REGISTER:
        return bytes([parse_register(token)])

    if kind == OperandKind.FLAGS:
        value = values.parse(token)
        if not 0 <= value <= FLAG_MASK:
            raise FlagMaskError(
                f"flag value {value:#x} does not fit in mask {FLAG_MASK:#04x}",
                hint="use EQ, NE, LT, GT, GE or a value from 0 to 15",
            )
        return bytes([value])

    if width == REGISTER_INDIRECT_WIDTH:
        return bytes([REGISTER_INDIRECT_MARKER, parse_register(token)])

    value = values.parse(token)
    if kind == OperandKind.ADDRESS and not 0 <= value < ADDRESS_LIMIT:
        raise RangeError(
            f"address {value} out of range",
            hint=f"addresses must be between 0 and {ADDRESS_LIMIT - 1}",
        )
    return encode_word(value)


def instruction_length(info: InstructionInfo, operands: Sequence[str]) -> int:
    """Return the encoded size of an instruction: opcode plus operands."""
    check_arity(info, operands)
    return 1 + sum(
        operand_encoded_width(kind, token)
        for kind, token in zip(info.operands, operands)
    )


def encode_instruction(info: InstructionInfo, operands: Sequence[str], values: ValueParser) -> bytes:
    """Encode an instruction: opcode byte then each operand in order."""
    check_arity(info, operands)
    code = bytearray([info.opcode])
    for kind, token in zip(info.operands, operands):
        code.extend(encode_operand(kind, token, values))
    return bytes(code)


def check_arity(info: InstructionInfo, operands: Sequence[str]) -> None:
    """
    Raises:
        ArityError: If the operand count differs from the signature
    """
    if len(operands) != info.arity:
        kinds = ", ".join(str(k) for k in info.operands) or "no operands"
        raise ArityError(
            f"'{info.mnemonic}' takes {info.arity} operand(s), got {len(operands)}",
            hint=f"{info.mnemonic} expects: {kinds}",
        )


# =============================================================================
# Directives
# =============================================================================

def _single_argument(directive: str, args: Sequence[str]) -> str:
    if len(args) != 1:
        raise ArityError(f"'{directive}' takes exactly one argument, got {len(args)}")
    return args[0]


def asciiz_data(args: Sequence[str]) -> bytes:
    """Return the bytes of an .ASCIIZ string including its terminator."""
    text = _single_argument(".ASCIIZ", args)
    return decode_string(unquote(text)) + b"\x00"


def space_count(args: Sequence[str], values: ValueParser) -> int:
    """
    Resolve the zero-fill count of a .SPACE directive.

    Raises:
        RangeError: If the count is negative or larger than the address space
    """
    count = values.parse(_single_argument(".SPACE", args))
    if not 0 <= count <= ADDRESS_LIMIT:
        raise RangeError(
            f".SPACE count {count} out of range",
            hint=f"the count must be between 0 and {ADDRESS_LIMIT}",
        )
    return count


def check_directive(directive: str) -> None:
    """
    Raises:
        UnknownDirectiveError: If the directive is not a data directive
    """
    if directive not in DIRECTIVES:
        raise UnknownDirectiveError(directive)


def directive_length(directive: str, args: Sequence[str], values: ValueParser) -> int:
    """
    Return the number of bytes a directive emits.

    Only .SPACE needs a value; its argument must refer to symbols already
    bound when this is called during pass 1.
    """
    check_directive(directive)
    if directive == ".ASCIIZ":
        return len(asciiz_data(args))
    if directive == ".SPACE":
        return space_count(args, values)
    _single_argument(directive, args)
    return 1 if directive == ".BYTE" else WORD_WIDTH


def encode_directive(directive: str, args: Sequence[str], values: ValueParser) -> bytes:
    """Emit the bytes of a directive."""
    check_directive(directive)

    if directive == ".ASCIIZ":
        return asciiz_data(args)

    if directive == ".SPACE":
        return bytes(space_count(args, values))

    if directive == ".BYTE":
        value = values.parse(_single_argument(directive, args))
        if not -0x80 <= value <= 0xFF:
            raise RangeError(f".BYTE value {value} does not fit in a byte")
        return bytes([value & 0xFF])

    return encode_word(values.parse(_single_argument(directive, args)))

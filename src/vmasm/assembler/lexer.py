"""
Register VM Assembly Line Lexer
===============================

This module turns raw source lines into the pieces the rest of the
assembler works with. It has three layers:

1. **Line preprocessing**: strip the comment, trim, split off the label.
2. **Operand splitting**: separate the mnemonic from its comma-separated
   operands.
3. **Operand grammar**: classify a single operand token by its form.

Source Line Grammar
-------------------
    [label ":"] (mnemonic [operand ("," operand)*] | "." directive [arg]) [";" comment]

Quote handling is simple: a `'` or `"` opens a quoted span
that closes at the next occurrence of the same character (a backslash
inside the span escapes the following character). Delimiters (`;`, `:`,
`,`) inside a quoted span are ordinary text. Nothing here raises on odd
quoting; an unterminated quote simply runs to the end of the line.

Operand Forms
-------------
| Form              | Example            |
|-------------------|--------------------|
| REGISTER          | R7                 |
| REGISTER_INDIRECT | [R7]               |
| ABSOLUTE_INDIRECT | [100], [buffer]    |
| INDEXED           | [4 + R2]           |
| VALUE             | 5, 0x1F, 'a', EQ   |

Example
-------
>>> from vmasm.assembler.lexer import preprocess_line, split_instruction
>>> preprocess_line("loop: ADD R1, R1, 1 ; count")
('loop', 'ADD R1, R1, 1')
>>> split_instruction("ADD R1, R1, 1")
('ADD', ['R1', 'R1', '1'])
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional
import re
import string

from vmasm.errors import ArityError, LexicalError, RangeError
from vmasm.assembler.opcodes import REGISTER_COUNT


REGISTER_RE = re.compile(r"^R(\d+)$")
LABEL_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
INDEXED_RE = re.compile(r"^(?P<offset>.+?)\s*\+\s*(?P<register>R\d+)$")

QUOTES = ("'", '"')

# Escape sequences in string and character literals
ESCAPE_SEQUENCES = {
    "n": "\n",      # Newline
    "r": "\r",      # Carriage return
    "t": "\t",      # Tab
    "0": "\0",      # Null
    "a": "\a",      # Bell
    "b": "\b",      # Backspace
    "f": "\f",      # Form feed
    "v": "\v",      # Vertical tab
    "\\": "\\",     # Backslash
    '"': '"',       # Double quote
    "'": "'",       # Single quote
}


# =============================================================================
# Line Preprocessing
# =============================================================================

def _find_unquoted(text: str, delimiter: str) -> int:
    """Return the index of the first delimiter outside quotes, or -1."""
    quote: Optional[str] = None
    escaped = False
    for i, ch in enumerate(text):
        if quote is not None:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
        elif ch in QUOTES:
            quote = ch
        elif ch == delimiter:
            return i
    return -1


def strip_comment(line: str) -> str:
    """Remove everything from the first unquoted ';' onward."""
    index = _find_unquoted(line, ";")
    if index >= 0:
        line = line[:index]
    return line


def split_label(text: str) -> tuple[str, str]:
    """
    Split text at the first unquoted ':' into (label, remainder).

    Both parts are stripped. Without a ':' the label is empty.
    """
    index = _find_unquoted(text, ":")
    if index < 0:
        return "", text.strip()
    return text[:index].strip(), text[index + 1:].strip()


def preprocess_line(line: str) -> tuple[str, str]:
    """
    Strip the comment, trim whitespace and separate the label.

    Args:
        line: Raw source line

    Returns:
        (label, remainder); both empty for a blank or comment-only line
    """
    text = strip_comment(line).strip()
    if not text:
        return "", ""
    return split_label(text)


def is_valid_label(name: str) -> bool:
    """Check that a label is a plain identifier."""
    return bool(LABEL_RE.match(name))


# =============================================================================
# Operand Splitting
# =============================================================================

def split_operands(text: str) -> list[str]:
    """
    Split an operand list on commas outside quotes and brackets.

    Raises:
        ArityError: If an operand between two commas is empty
    """
    text = text.strip()
    if not text:
        return []

    operands = []
    current = []
    quote: Optional[str] = None
    escaped = False
    depth = 0

    for ch in text:
        if quote is not None:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
        elif ch in QUOTES:
            quote = ch
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif ch == "," and depth <= 0:
            operands.append("".join(current).strip())
            current = []
            continue
        current.append(ch)

    operands.append("".join(current).strip())

    if any(not op for op in operands):
        raise ArityError(f"empty operand in '{text}'")

    return operands


def split_instruction(text: str) -> tuple[str, list[str]]:
    """
    Split instruction text into its mnemonic and operand list.

    The mnemonic is returned as written; callers upper-case it.
    """
    parts = text.split(None, 1)
    if not parts:
        return "", []
    mnemonic = parts[0]
    rest = parts[1] if len(parts) > 1 else ""
    return mnemonic, split_operands(rest)


# =============================================================================
# Operand Grammar
# =============================================================================

class OperandForm(Enum):
    """Syntactic form of an operand token."""
    REGISTER = auto()           # R7
    REGISTER_INDIRECT = auto()  # [R7]
    ABSOLUTE_INDIRECT = auto()  # [100]
    INDEXED = auto()            # [4 + R2]
    VALUE = auto()              # 5, 0x10, 'a', EQ, label


@dataclass(frozen=True)
class Operand:
    """
    A classified operand token.

    Attributes:
        form: Syntactic form
        text: The operand as written (stripped)
        value: Value token for VALUE, ABSOLUTE_INDIRECT and INDEXED forms
        register: Register token for REGISTER, REGISTER_INDIRECT and INDEXED
    """
    form: OperandForm
    text: str
    value: Optional[str] = None
    register: Optional[str] = None

    @property
    def is_register(self) -> bool:
        """True for a register written bare or in one level of brackets."""
        return self.form in (OperandForm.REGISTER, OperandForm.REGISTER_INDIRECT)

    @property
    def is_bracketed(self) -> bool:
        return self.form in (
            OperandForm.REGISTER_INDIRECT,
            OperandForm.ABSOLUTE_INDIRECT,
            OperandForm.INDEXED,
        )


def is_quoted_literal(token: str) -> bool:
    """Check if a token is a complete '...' or "..." literal."""
    return len(token) >= 2 and token[0] in QUOTES and token[-1] == token[0]


def _is_plain_token(token: str) -> bool:
    if is_quoted_literal(token):
        return True
    return bool(token) and not any(ch.isspace() or ch in "[]+," for ch in token)


def _malformed_address(text: str) -> LexicalError:
    return LexicalError(
        f"malformed address '{text}'",
        hint="use [imm], [Rn] or [imm + Rn]",
    )


def parse_operand(text: str) -> Operand:
    """
    Classify an operand token.

    Raises:
        LexicalError: If the token is a malformed bracket expression
    """
    token = text.strip()

    if token.startswith("["):
        if not token.endswith("]"):
            raise _malformed_address(token)
        inner = token[1:-1].strip()
        if not inner or "[" in inner or "]" in inner:
            raise _malformed_address(token)

        if REGISTER_RE.match(inner):
            return Operand(OperandForm.REGISTER_INDIRECT, token, register=inner)

        match = INDEXED_RE.match(inner)
        if match:
            offset = match.group("offset").strip()
            if REGISTER_RE.match(offset) or not _is_plain_token(offset):
                raise _malformed_address(token)
            return Operand(
                OperandForm.INDEXED, token,
                value=offset, register=match.group("register"),
            )

        if not _is_plain_token(inner):
            raise _malformed_address(token)
        return Operand(OperandForm.ABSOLUTE_INDIRECT, token, value=inner)

    if token.endswith("]") and not is_quoted_literal(token):
        raise _malformed_address(token)

    if REGISTER_RE.match(token):
        return Operand(OperandForm.REGISTER, token, register=token)

    return Operand(OperandForm.VALUE, token, value=token)


def strip_brackets(token: str) -> str:
    """Remove one level of surrounding [ ] if present."""
    token = token.strip()
    if token.startswith("[") and token.endswith("]"):
        return token[1:-1].strip()
    return token


def is_register_token(token: str) -> bool:
    """Check for a bare register token (R0, R31, ...)."""
    return bool(REGISTER_RE.match(token.strip()))


def parse_register(token: str) -> int:
    """
    Parse a register operand, allowing one level of brackets.

    Returns:
        Register index 0-31

    Raises:
        LexicalError: If the token is not of the form Rn
        RangeError: If the index is outside 0-31
    """
    inner = strip_brackets(token)
    match = REGISTER_RE.match(inner)
    if not match:
        raise LexicalError(
            f"expected a register, got '{token}'",
            hint="registers are written R0 to R31",
        )
    index = int(match.group(1))
    if index >= REGISTER_COUNT:
        raise RangeError(
            f"register '{inner}' out of range",
            hint=f"registers are R0 to R{REGISTER_COUNT - 1}",
        )
    return index


# =============================================================================
# String Literals
# =============================================================================

def decode_string(text: str) -> bytes:
    """
    Encode the body of a string literal as bytes, processing escapes.

    Supports \\n \\r \\t \\0 \\a \\b \\f \\v \\\\ \\" \\' and \\xHH. A \\xHH
    escape yields exactly that byte; all other text is encoded as UTF-8.

    Raises:
        LexicalError: On an unknown or incomplete escape sequence
    """
    out = bytearray()
    i = 0
    while i < len(text):
        ch = text[i]
        if ch != "\\":
            out.extend(ch.encode("utf-8"))
            i += 1
            continue

        if i + 1 >= len(text):
            raise LexicalError(f"trailing backslash in '{text}'")

        code = text[i + 1]
        if code == "x":
            digits = text[i + 2:i + 4]
            if len(digits) != 2 or not all(c in string.hexdigits for c in digits):
                raise LexicalError(f"malformed escape '\\x{digits}' in '{text}'")
            out.append(int(digits, 16))
            i += 4
        elif code in ESCAPE_SEQUENCES:
            out.extend(ESCAPE_SEQUENCES[code].encode("ascii"))
            i += 2
        else:
            raise LexicalError(
                f"unknown escape sequence '\\{code}' in '{text}'",
                hint="supported escapes: \\n \\r \\t \\0 \\a \\b \\f \\v \\\\ \\\" \\' \\xHH",
            )

    return bytes(out)


def unquote(token: str) -> str:
    """
    Remove one pair of matching surrounding quotes, if present.

    Unquoted text is returned unchanged.
    """
    token = token.strip()
    if is_quoted_literal(token):
        return token[1:-1]
    return token

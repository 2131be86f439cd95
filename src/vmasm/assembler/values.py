"""
Operand Value Parser
====================

This module resolves a single operand token to an integer. It is used for
every operand kind except registers (which have their own recognizer in
the lexer) and for directive arguments.

Resolution Order
----------------
A token is tried against these rules in order; the first match wins:

1. Condition flag name (EQ, NE, LT, GT, GE) -> its bitmask
2. One level of surrounding [ ] is removed
3. `0x` prefix -> hexadecimal
4. Quoted character or string -> value of its first byte
5. Decimal literal (optional sign)
6. `R<digits>` -> the register number itself
7. Exact symbol-table lookup

Anything else raises UnresolvedSymbolError.

Example Usage
-------------
>>> from vmasm.assembler.values import ValueParser
>>> parser = ValueParser({"buffer": 64})
>>> parser.parse("[buffer]")
64
>>> parser.parse("'A'")
65
>>> parser.parse("GE")
8

Forward References
------------------
The parser only sees the symbols it was given. During pass 1 that is the
set of labels bound so far, so a forward reference raises
UnresolvedSymbolError; the layout pass only resolves values where the line
size depends on them (.SPACE). Pass 2 runs with the complete table.
"""

import difflib
import re
from typing import Mapping, Optional

from vmasm.errors import LexicalError, UnresolvedSymbolError
from vmasm.assembler.lexer import (
    QUOTES,
    REGISTER_RE,
    decode_string,
    is_quoted_literal,
    strip_brackets,
)
from vmasm.assembler.opcodes import get_flag_value


HEX_RE = re.compile(r"^0[xX]([0-9a-fA-F]+)$")
DECIMAL_RE = re.compile(r"^[+-]?\d+$")

INT32_MIN = -(1 << 31)
UINT32_MAX = (1 << 32) - 1


def literal_first_byte(token: str) -> int:
    """
    Return the value of the first byte of a quoted literal.

    Raises:
        LexicalError: On an empty literal or a bad escape sequence
    """
    data = decode_string(token[1:-1])
    if not data:
        raise LexicalError(f"empty character literal {token}")
    return data[0]


class ValueParser:
    """
    Resolves operand tokens against a symbol table.

    The parser does not copy the table, so a pass can keep binding labels
    into the same dict and the parser sees them immediately.

    Attributes:
        symbols: Mapping of label names to byte offsets
    """

    def __init__(self, symbols: Optional[Mapping[str, int]] = None):
        self.symbols: Mapping[str, int] = symbols if symbols is not None else {}

    def parse(self, token: str) -> int:
        """
        Resolve a token to an integer.

        Raises:
            UnresolvedSymbolError: If no rule matches
            LexicalError: For a malformed character literal
        """
        token = token.strip()

        flag = get_flag_value(token)
        if flag is not None:
            return flag

        token = strip_brackets(token)

        match = HEX_RE.match(token)
        if match:
            return int(match.group(1), 16)

        if token[:1] in QUOTES:
            if not is_quoted_literal(token):
                raise LexicalError(f"unterminated literal {token}")
            return literal_first_byte(token)

        if DECIMAL_RE.match(token):
            return int(token)

        match = REGISTER_RE.match(token)
        if match:
            return int(match.group(1))

        if token in self.symbols:
            return self.symbols[token]

        raise UnresolvedSymbolError(token, similar_symbols=self.similar_symbols(token))

    def similar_symbols(self, name: str) -> list[str]:
        """Return defined symbols whose names are close to name."""
        return difflib.get_close_matches(name, list(self.symbols), n=3, cutoff=0.6)


def parse_value(token: str, symbols: Optional[Mapping[str, int]] = None) -> int:
    """
    Convenience function to resolve one token.

    Args:
        token: Operand token
        symbols: Optional symbol table

    Returns:
        The resolved integer
    """
    return ValueParser(symbols).parse(token)

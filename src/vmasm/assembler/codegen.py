"""
Register VM Code Generator
==========================

This module generates the binary instruction stream from canonical lines.
It implements the two-pass assembly process:

Pass 1 (Layout)
---------------
- Compute the size of every line
- Bind each label to the offset of its line
- See layout.py

Pass 2 (Code Generation)
------------------------
- Encode every line with the complete symbol table
- Resolve forward references
- Validate register, address and flag ranges
- Check each line's size against the size pass 1 reserved

Listing
-------
Pass 2 records one listing entry per canonical line:

    Offset  Code                       Line  Source
    0000    15 1E 05 00 00 00             1  LOADI R30, 5
    0006    20 01 02 1E                   1  ADD R1, R2, R30
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from vmasm.errors import AssemblerError, LayoutMismatchError, UnknownInstructionError
from vmasm.assembler.encoding import encode_directive, encode_instruction
from vmasm.assembler.layout import Layout, LayoutResolver
from vmasm.assembler.opcodes import OPCODE_TABLE
from vmasm.assembler.statements import CanonicalLine
from vmasm.assembler.values import ValueParser


logger = logging.getLogger(__name__)

LISTING_BYTES = 8


@dataclass(frozen=True)
class ListingEntry:
    """
    One row of the assembly listing.

    Attributes:
        offset: Offset of the line's first byte
        data: Bytes emitted for the line
        line_number: Source line the canonical line came from
        text: Canonical text of the line
    """
    offset: int
    data: bytes
    line_number: int
    text: str

    def format(self) -> str:
        hex_str = " ".join(f"{b:02X}" for b in self.data[:LISTING_BYTES])
        if len(self.data) > LISTING_BYTES:
            hex_str += " ..."
        return f"{self.offset:04X}    {hex_str:27s} {self.line_number:4d}  {self.text}"


# =============================================================================
# Code Generator
# =============================================================================

class CodeGenerator:
    """
    Generates bytecode from canonical lines.

    The code generator maintains:
    - The layout (symbol table and line sizes) from pass 1
    - The output code buffer
    - The listing entries

    Usage:
        codegen = CodeGenerator()
        code = codegen.generate(lines)
        codegen.get_symbols()
    """

    def __init__(self, predefined: Optional[Mapping[str, int]] = None):
        """
        Args:
            predefined: Constant symbols visible to every line (e.g. -D)
        """
        self._predefined = dict(predefined or {})
        self._code = bytearray()
        self._layout = Layout()
        self._listing: list[ListingEntry] = []

    # =========================================================================
    # Public Interface
    # =========================================================================

    def define_symbol(self, name: str, value: int) -> None:
        """Pre-define a constant symbol for the next generate() call."""
        self._predefined[name] = value

    def generate(self, lines: Sequence[CanonicalLine]) -> bytes:
        """
        Run both passes over the canonical lines.

        Args:
            lines: Output of the macro expander

        Returns:
            The code bytes (without the length header)

        Raises:
            AssemblerError: On the first line that fails
        """
        self.reset()

        layout = LayoutResolver(self._predefined).resolve(lines)
        code, listing = self._pass2(lines, layout)

        self._layout = layout
        self._code = code
        self._listing = listing

        logger.debug("Generated %d bytes", len(self._code))
        return bytes(self._code)

    def reset(self) -> None:
        """Discard the code, layout and listing of the previous run."""
        self._code = bytearray()
        self._layout = Layout()
        self._listing = []

    def get_code(self) -> bytes:
        """Return the generated code bytes."""
        return bytes(self._code)

    def get_layout(self) -> Layout:
        """Return the layout computed by pass 1."""
        return self._layout

    def get_symbols(self) -> dict[str, int]:
        """Return a dictionary of symbol names to values."""
        return self._layout.values()

    def get_listing_entries(self) -> list[ListingEntry]:
        return list(self._listing)

    # =========================================================================
    # Pass 2: Code Generation
    # =========================================================================

    def _pass2(
        self, lines: Sequence[CanonicalLine], layout: Layout
    ) -> tuple[bytearray, list[ListingEntry]]:
        """
        Second pass: generate code.

        The symbol table from pass 1 is complete, so forward references
        resolve here. Nothing is stored on the generator until every line
        has been encoded.
        """
        values = ValueParser(layout.values())
        code = bytearray()
        listing: list[ListingEntry] = []

        for line, expected in zip(lines, layout.sizes):
            start = len(code)
            try:
                data = self.encode_line(line, values)
                if len(data) != expected:
                    raise LayoutMismatchError(expected, len(data))
            except AssemblerError as e:
                raise e.with_location(line.location, line.source)

            code.extend(data)
            listing.append(ListingEntry(start, data, line.line_number, str(line)))

        return code, listing

    @staticmethod
    def encode_line(line: CanonicalLine, values: ValueParser) -> bytes:
        """Encode one canonical line."""
        if line.is_directive:
            return encode_directive(line.directive, line.operands, values)
        if line.is_instruction:
            info = OPCODE_TABLE.get(line.mnemonic)
            if info is None:
                raise UnknownInstructionError(line.mnemonic)
            return encode_instruction(info, line.operands, values)
        return b""

    # =========================================================================
    # Listing and Symbol Output
    # =========================================================================

    def get_listing(self) -> str:
        """
        Get the assembly listing as a string.

        Returns:
            The listing showing offsets, generated bytes, and source lines.
        """
        lines = []
        lines.append("vmasm Listing")
        lines.append("=" * 60)
        lines.append("")
        lines.append("Offset  Code                        Line  Source")
        lines.append("-" * 60)
        lines.extend(entry.format() for entry in self._listing)
        lines.append("")
        lines.append("Symbol Table")
        lines.append("-" * 30)
        for name, sym in sorted(self._layout.symbols.items()):
            lines.append(f"{name:20s} = 0x{sym.value:04X}")
        return "\n".join(lines) + "\n"

    def write_listing(self, filepath: str | Path) -> None:
        """Write the assembly listing file."""
        Path(filepath).write_text(self.get_listing())

    def write_symbols(self, filepath: str | Path) -> None:
        """
        Write symbol table file.

        Format: name offset (one per line, sorted by name)
        """
        with open(filepath, "w") as f:
            f.write("# Symbol table\n")
            f.write("# Generated by vmasm\n")
            for name, sym in sorted(self._layout.symbols.items()):
                f.write(f"{name} 0x{sym.value:04X}\n")

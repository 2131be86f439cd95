"""
Pass 1: Layout Resolution
=========================

The layout pass walks the canonical lines once, in order, keeping a running
byte offset that starts at 0. For every line it:

1. Binds the line's label (if any) to the current offset
2. Computes the line's encoded size without emitting anything
3. Advances the offset by that size

Sizes come from the same functions the code generator uses to emit bytes
(see encoding.py), so the offsets computed here are the offsets the bytes
end up at.

When the pass is complete the symbol table is final; the code generator
reads it but never changes it.
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from vmasm.errors import (
    AssemblerError,
    DuplicateLabelError,
    SourceLocation,
    UnknownInstructionError,
)
from vmasm.assembler.encoding import directive_length, instruction_length
from vmasm.assembler.opcodes import OPCODE_TABLE
from vmasm.assembler.statements import CanonicalLine
from vmasm.assembler.values import ValueParser


logger = logging.getLogger(__name__)

PREDEFINED = SourceLocation("<predefined>", 0, 0)


# =============================================================================
# Symbol Table Entry
# =============================================================================

@dataclass
class Symbol:
    """
    Symbol table entry.

    Attributes:
        name: Label name (case-sensitive)
        value: Byte offset in the code section, or the constant value
        location: Where the symbol was defined
        is_constant: True for symbols defined outside the source (-D)
    """
    name: str
    value: int
    location: SourceLocation
    is_constant: bool = False


@dataclass
class Layout:
    """
    Result of the layout pass.

    Attributes:
        symbols: Symbol table, by name
        sizes: Encoded size of each canonical line, in line order
        offsets: Starting offset of each canonical line
    """
    symbols: dict[str, Symbol] = field(default_factory=dict)
    sizes: list[int] = field(default_factory=list)
    offsets: list[int] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(self.sizes)

    def values(self) -> dict[str, int]:
        """Return the symbol table as a plain name -> value mapping."""
        return {name: sym.value for name, sym in self.symbols.items()}


# =============================================================================
# Layout Resolver
# =============================================================================

class LayoutResolver:
    """
    Computes line sizes and label offsets.

    Usage:
        layout = LayoutResolver().resolve(lines)
        layout.symbols["loop"].value
    """

    def __init__(self, predefined: Optional[Mapping[str, int]] = None):
        """
        Args:
            predefined: Constant symbols available before the first line
        """
        self._predefined = dict(predefined or {})

    def resolve(self, lines: Sequence[CanonicalLine]) -> Layout:
        """
        Run the layout pass.

        Raises:
            DuplicateLabelError: If a label is bound twice
            AssemblerError: If a line's size cannot be computed
        """
        layout = Layout()
        known: dict[str, int] = {}
        values = ValueParser(known)

        for name, value in self._predefined.items():
            layout.symbols[name] = Symbol(name, value, PREDEFINED, is_constant=True)
            known[name] = value

        offset = 0
        for line in lines:
            try:
                if line.label:
                    self._bind_label(layout, known, line, offset)
                size = self.line_size(line, values)
            except AssemblerError as e:
                raise e.with_location(line.location, line.source)

            layout.offsets.append(offset)
            layout.sizes.append(size)
            offset += size

        logger.debug("Layout: %d lines, %d bytes, %d symbols",
                     len(lines), offset, len(layout.symbols))
        return layout

    def _bind_label(
        self, layout: Layout, known: dict[str, int], line: CanonicalLine, offset: int
    ) -> None:
        existing = layout.symbols.get(line.label)
        if existing is not None:
            raise DuplicateLabelError(
                line.label,
                location=line.location,
                original_location=existing.location,
                source_line=line.source,
            )
        layout.symbols[line.label] = Symbol(line.label, offset, line.location)
        known[line.label] = offset
        logger.debug("Label %s = %#06x", line.label, offset)

    @staticmethod
    def line_size(line: CanonicalLine, values: ValueParser) -> int:
        """Return the encoded size of one canonical line."""
        if line.is_directive:
            return directive_length(line.directive, line.operands, values)
        if line.is_instruction:
            info = OPCODE_TABLE.get(line.mnemonic)
            if info is None:
                raise UnknownInstructionError(line.mnemonic)
            return instruction_length(info, line.operands)
        return 0

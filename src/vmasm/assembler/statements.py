"""
Canonical Line Representation
=============================

The macro expander rewrites every source line into zero or more canonical
lines. A canonical line is macro-free: it is either a label on its own, a
data directive, or a real instruction whose operand list already has the
instruction's exact arity in the common case. Both assembler passes walk the
same list of canonical lines.

Each line keeps the location and text of the source line it came from, so
an error raised while laying out or encoding a line produced by expansion
still points at the line the user wrote.
"""

from dataclasses import dataclass, field
from typing import Optional

from vmasm.errors import SourceLocation


DIRECTIVES = frozenset({".ASCIIZ", ".SPACE", ".BYTE", ".WORD"})


@dataclass(frozen=True)
class CanonicalLine:
    """
    One unit of work for the layout and code generation passes.

    Attributes:
        location: Source location of the originating line
        label: Label bound at this line's offset (optional)
        mnemonic: Upper-case instruction name, for instruction lines
        directive: Upper-case directive name including the dot
        operands: Operand tokens (instructions) or arguments (directives)
        source: Text of the originating source line
    """
    location: SourceLocation
    label: Optional[str] = None
    mnemonic: Optional[str] = None
    directive: Optional[str] = None
    operands: tuple[str, ...] = field(default_factory=tuple)
    source: str = ""

    @property
    def is_instruction(self) -> bool:
        return self.mnemonic is not None

    @property
    def is_directive(self) -> bool:
        return self.directive is not None

    @property
    def line_number(self) -> int:
        return self.location.line

    @property
    def text(self) -> str:
        """Render the line back to assembly text (without label)."""
        head = self.mnemonic or self.directive or ""
        if not self.operands:
            return head
        separator = ", " if self.is_instruction else " "
        return f"{head} {separator.join(self.operands)}"

    def __str__(self) -> str:
        body = self.text
        if self.label:
            return f"{self.label}: {body}" if body else f"{self.label}:"
        return body

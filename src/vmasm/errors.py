"""
vmasm Error Hierarchy
=====================

This module defines the exception hierarchy for the assembler. All exceptions
inherit from VMAsmError, allowing callers to catch every assembler failure
with a single except clause.

Exception Hierarchy
-------------------
VMAsmError (base)
└── AssemblerError
    ├── LexicalError - bad escape, malformed address, bad label/register text
    ├── UnsupportedPatternError - recognized but unencodable construct
    ├── MacroExpansionError - pseudo-instruction cannot be expanded
    │   ├── ScratchRegisterExhaustedError - more than two staged literals
    │   └── ModuloSyntaxError - malformed MOV ... MOD ... (also an ArityError)
    ├── DuplicateLabelError - label bound twice
    ├── UnresolvedSymbolError - token matches no value rule
    ├── ArityError - operand count mismatch
    ├── RangeError - register, address or byte value out of range
    │   └── FlagMaskError - flag value wider than four bits
    ├── UnknownInstructionError - mnemonic not in the instruction table
    ├── UnknownDirectiveError - directive name not recognized
    └── LayoutMismatchError - pass 1 and pass 2 disagree on a line size

Compilation is fail-fast: the first error aborts the run. Every error carries
the source location of the line the user wrote, even when it is raised while
processing a line produced by macro expansion.

Error messages follow this format:
    filename:line:column: error: description
        source_line_text
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


class VMAsmError(Exception):
    """
    Base exception for all vmasm errors.

        try:
            assembler.assemble_file("program.asm")
        except VMAsmError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed, 0 when unknown)
    """
    filename: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(VMAsmError):
    """
    Base exception for all assembly errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    @property
    def line(self) -> Optional[int]:
        """Source line number of the error, if known."""
        return self.location.line if self.location else None

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            prog.asm:3:0: error: undefined symbol 'lop'
                JUMP lop
            hint: did you mean 'loop'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line.strip()}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)

    def with_location(
        self, location: SourceLocation, source_line: Optional[str] = None
    ) -> "AssemblerError":
        """
        Attach a location to an error raised without one.

        Lower layers (value parser, operand grammar) do not know which line
        they are working on; the pass that calls them fills it in here.
        """
        if self.location is None:
            self.location = location
            if self.source_line is None:
                self.source_line = source_line
            self.args = (self._format_message(),)
        return self


class LexicalError(AssemblerError):
    """
    Malformed text inside a line.

    Examples:
        - Unknown escape sequence in a string ("\\q")
        - Malformed address bracket ("[1 + 2]", "[R1")
        - Label that is not an identifier
    """
    pass


class UnsupportedPatternError(AssemblerError):
    """
    A construct that is recognized but cannot be encoded.

    Examples:
        CMP R1, R2        ; CMP only has a reg, imm form
        PRINTS "hello"    ; strings must be placed with .ASCIIZ
    """
    pass


class MacroExpansionError(AssemblerError):
    """Error while expanding a pseudo-instruction."""
    pass


class ScratchRegisterExhaustedError(MacroExpansionError):
    """
    More than two distinct literals need staging on one line.

    Only R30 and R31 are reserved for staging, so a line can hoist at most
    two distinct immediate values into registers.
    """

    def __init__(
        self,
        value: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.value = value
        super().__init__(
            f"no scratch register left to stage '{value}'",
            location=location,
            hint="load the value into a register with LOADI first",
            source_line=source_line,
        )


class DuplicateLabelError(AssemblerError):
    """
    Label defined more than once.

    Includes the location of the original definition when available.
    """

    def __init__(
        self,
        label: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.label = label
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{label}' was first defined at {original_location}"

        super().__init__(
            f"duplicate label '{label}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class UnresolvedSymbolError(AssemblerError):
    """
    A token that matches no value-resolution rule.

    This covers references to labels that are never defined. Similar
    label names are offered as a hint to catch typos.
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.symbol = symbol
        self.similar_symbols = similar_symbols or []

        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"unresolved symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class ArityError(AssemblerError):
    """Operand count does not match the instruction or directive."""
    pass


class ModuloSyntaxError(MacroExpansionError, ArityError):
    """
    Malformed modulo pseudo-instruction.

    The only accepted form is:
        MOV dest, X MOD Y
    """
    pass


class RangeError(AssemblerError):
    """
    A value does not fit its encoding.

    Examples:
        - Register index outside R0-R31
        - Address value of 65536 or more
        - .BYTE value outside -128..255
    """
    pass


class FlagMaskError(RangeError):
    """Condition flag value does not fit in the 4-bit mask (0x0F)."""
    pass


class UnknownInstructionError(AssemblerError):
    """Mnemonic is not in the instruction table."""

    def __init__(
        self,
        mnemonic: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.mnemonic = mnemonic
        super().__init__(
            f"unknown instruction '{mnemonic}'",
            location=location,
            source_line=source_line,
        )


class UnknownDirectiveError(AssemblerError):
    """Directive name is not one of .ASCIIZ, .SPACE, .BYTE, .WORD."""

    def __init__(
        self,
        directive: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.directive = directive
        super().__init__(
            f"unknown directive '{directive}'",
            location=location,
            hint="supported directives: .ASCIIZ, .SPACE, .BYTE, .WORD",
            source_line=source_line,
        )


class LayoutMismatchError(AssemblerError):
    """
    Pass 2 emitted a different number of bytes than pass 1 reserved.

    This indicates a bug in the assembler: every label after the line
    would point at the wrong offset.
    """

    def __init__(
        self,
        expected: int,
        actual: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"line size mismatch: layout reserved {expected} bytes, "
            f"encoder emitted {actual}",
            location=location,
            source_line=source_line,
        )

"""
vmasm - Assembler for a Register Virtual Machine
================================================

This package turns human-written assembly text for a small register-based
virtual machine into a compact length-prefixed binary program.

The virtual machine has 32 registers (R0-R31), a 64 KiB address space and a
byte-oriented instruction stream. The assembler accepts a richer surface
syntax than the machine encodes and rewrites it before encoding:

- Immediate operands where the machine only takes registers
- A modulo pseudo-instruction (`MOV R1, R2 MOD R3`)
- Indexed addresses (`[8 + R2]`)
- Two-operand SUB and memory-first STORE

Main Components
---------------
- **assembler**: Lexer, macro expander, two-pass code generator
- **cli**: The `vmasm` command-line tool
- **errors**: Exception hierarchy shared by all components

Quick Start
-----------
    >>> from vmasm import Assembler
    >>> asm = Assembler()
    >>> image = asm.assemble_string("JUMP end\\nend: HALT")
    >>> image.hex()
    '06000000020500000001'

Or use the command-line tool:
    $ vmasm program.asm program.bin -l program.lst
"""

__version__ = "0.1.0"

# =============================================================================
# Public API Exports
# =============================================================================

from vmasm.assembler import Assembler, ProgramImage, assemble, assemble_file
from vmasm.errors import (
    VMAsmError,
    SourceLocation,
    AssemblerError,
    LexicalError,
    UnsupportedPatternError,
    MacroExpansionError,
    ScratchRegisterExhaustedError,
    ModuloSyntaxError,
    DuplicateLabelError,
    UnresolvedSymbolError,
    ArityError,
    RangeError,
    FlagMaskError,
    UnknownInstructionError,
    UnknownDirectiveError,
    LayoutMismatchError,
)

__all__ = [
    "__version__",
    # Assembler
    "Assembler",
    "ProgramImage",
    "assemble",
    "assemble_file",
    # Exception hierarchy
    "VMAsmError",
    "SourceLocation",
    "AssemblerError",
    "LexicalError",
    "UnsupportedPatternError",
    "MacroExpansionError",
    "ScratchRegisterExhaustedError",
    "ModuloSyntaxError",
    "DuplicateLabelError",
    "UnresolvedSymbolError",
    "ArityError",
    "RangeError",
    "FlagMaskError",
    "UnknownInstructionError",
    "UnknownDirectiveError",
    "LayoutMismatchError",
]

"""
Register VM Assembler - Main Interface
======================================

This module provides the main Assembler class, the primary interface for
assembling register-VM source code. It coordinates the macro expander and
the code generator and produces the length-prefixed program image.

Example Usage
-------------
>>> from vmasm.assembler import Assembler
>>>
>>> asm = Assembler()
>>> image = asm.assemble_string('''
...     LOADI R1, 10
... loop:
...     SUB R1, 1
...     CMP R1, 0
...     IF NE, loop
...     HALT
... ''')
>>>
>>> code = asm.get_code()
>>> print(f"Generated {len(code)} bytes")
>>>
>>> asm.write_binary("countdown.bin")

Command-Line Usage
------------------
The assembler can also be invoked from the command line:

    $ vmasm countdown.asm countdown.bin -l countdown.lst -s countdown.sym

Assembly is all-or-nothing: output files are only written after every line
has been expanded, laid out and encoded without error.
"""

import logging
from pathlib import Path
from typing import Optional

from vmasm.assembler.artifact import ProgramImage
from vmasm.assembler.codegen import CodeGenerator
from vmasm.assembler.macros import MacroExpander
from vmasm.assembler.statements import CanonicalLine
from vmasm.errors import AssemblerError


logger = logging.getLogger(__name__)


class Assembler:
    """
    Main register-VM assembler class.

    The assembler supports:
    - The full VM instruction set
    - Pseudo-instructions (MOD, immediate operands, indexed addresses)
    - Data directives (.ASCIIZ, .SPACE, .BYTE, .WORD)
    - Forward label references
    - Listing and symbol table output

    Attributes:
        verbose: If True, progress is logged at INFO instead of DEBUG
    """

    def __init__(self, verbose: bool = False, defines: dict[str, int] | None = None):
        """
        Initialize the assembler.

        Args:
            verbose: Log progress messages at INFO level
            defines: Dictionary of pre-defined constant symbols
        """
        self._verbose = verbose
        self._codegen = CodeGenerator()
        self._lines: list[CanonicalLine] = []
        self._image: Optional[ProgramImage] = None

        if defines:
            for name, value in defines.items():
                self.define_symbol(name, value)

    def _log(self, message: str, *args) -> None:
        logger.log(logging.INFO if self._verbose else logging.DEBUG, message, *args)

    # =========================================================================
    # Configuration
    # =========================================================================

    def define_symbol(self, name: str, value: int) -> None:
        """
        Pre-define a constant symbol (like -D on the command line).

        A source label with the same name is a duplicate label.
        """
        self._codegen.define_symbol(name, value)

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble_string(self, source: str, filename: str = "<input>") -> bytes:
        """
        Assemble source code from a string.

        The assembly pipeline is:
        1. Expand pseudo-instructions into canonical lines
        2. Pass 1: lay out lines and bind labels
        3. Pass 2: encode lines

        Args:
            source: Assembly source code
            filename: Virtual filename for error messages

        Returns:
            The program image bytes (length header + code)

        Raises:
            AssemblerError: If assembly fails
        """
        self._image = None
        self._lines = []
        self._codegen.reset()

        self._lines = MacroExpander(filename).expand_source(source)
        self._log("Expanded %s into %d lines", filename, len(self._lines))

        code = self._codegen.generate(self._lines)
        self._image = ProgramImage(code)
        self._log("Generated %d bytes of code", len(code))

        return self._image.to_bytes()

    def assemble(self, source: str, filename: str = "<input>") -> bytes:
        """Alias for assemble_string()."""
        return self.assemble_string(source, filename)

    def assemble_file(self, filepath: str | Path) -> bytes:
        """
        Assemble source code from a file.

        Raises:
            AssemblerError: If assembly fails
            FileNotFoundError: If source file not found
        """
        filepath = Path(filepath)
        self._log("Assembling %s", filepath)
        source = filepath.read_text()
        return self.assemble_string(source, str(filepath))

    # =========================================================================
    # Output Methods
    # =========================================================================

    def get_code(self) -> bytes:
        """Get the generated code bytes (without the length header)."""
        return self._codegen.get_code()

    def get_image(self) -> ProgramImage:
        """
        Get the assembled program image.

        Raises:
            AssemblerError: If nothing has been assembled successfully
        """
        if self._image is None:
            raise AssemblerError("no program has been assembled")
        return self._image

    def get_lines(self) -> list[CanonicalLine]:
        """Get the canonical lines produced by macro expansion."""
        return list(self._lines)

    def get_symbols(self) -> dict[str, int]:
        """Get the symbol table as a name -> offset mapping."""
        return self._codegen.get_symbols()

    def get_listing(self) -> str:
        """Get the assembly listing as a string."""
        return self._codegen.get_listing()

    def write_binary(self, filepath: str | Path) -> None:
        """Write the program image (length header + code)."""
        image = self.get_image()
        image.write(filepath)
        self._log("Wrote %d bytes to %s", len(image), filepath)

    def write_listing(self, filepath: str | Path) -> None:
        """Write the assembly listing file."""
        self.get_image()
        self._codegen.write_listing(filepath)
        self._log("Wrote listing to %s", filepath)

    def write_symbols(self, filepath: str | Path) -> None:
        """Write the symbol table file."""
        self.get_image()
        self._codegen.write_symbols(filepath)
        self._log("Wrote symbols to %s", filepath)


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(source: str, filename: str = "<input>") -> bytes:
    """
    Convenience function to assemble source code.

    Returns:
        The program image bytes

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler().assemble_string(source, filename)


def assemble_file(filepath: str | Path) -> bytes:
    """
    Convenience function to assemble a file.

    Returns:
        The program image bytes

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler().assemble_file(filepath)

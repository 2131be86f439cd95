"""
Register VM Assembler
=====================

This package provides the assembler for the register virtual machine. It
converts assembly source text into a length-prefixed binary program image.

Main Components
---------------
- **Assembler**: Main class that orchestrates the assembly process
- **lexer**: Line preprocessing, operand splitting and the operand grammar
- **ValueParser**: Resolves operand tokens to integers
- **MacroExpander**: Rewrites pseudo-instructions into canonical lines
- **LayoutResolver**: Pass 1, line sizes and label offsets
- **CodeGenerator**: Pass 2, byte emission, listing and symbol output
- **ProgramImage**: The on-disk output format

Assembly Process
----------------
1. **Expansion (MacroExpander)**:
   - Strip comments and split labels
   - Rewrite MOD, literal register operands, indexed addresses,
     two-operand SUB and memory-first STORE
   - Reject constructs the machine cannot encode

2. **Code Generation (LayoutResolver + CodeGenerator)** (two-pass):
   - Pass 1: compute every line's size and bind labels
   - Pass 2: encode every line with the complete symbol table

3. **Output (ProgramImage)**:
   - 4-byte little-endian code length followed by the code

Example Usage
-------------
>>> from vmasm.assembler import Assembler
>>> asm = Assembler()
>>> asm.assemble_string('''
... start:
...     LOADI R1, 'A'
...     PRINT R1
...     HALT
... ''')
>>> asm.write_binary("hello.bin")
"""

from vmasm.assembler.assembler import Assembler, assemble, assemble_file
from vmasm.assembler.artifact import ProgramImage
from vmasm.assembler.codegen import CodeGenerator, ListingEntry
from vmasm.assembler.layout import Layout, LayoutResolver, Symbol
from vmasm.assembler.macros import MacroExpander, ScratchAllocator, expand_source
from vmasm.assembler.opcodes import (
    FLAG_TABLE,
    OPCODE_TABLE,
    InstructionInfo,
    OperandKind,
    get_instruction_info,
)
from vmasm.assembler.statements import CanonicalLine
from vmasm.assembler.values import ValueParser, parse_value

__all__ = [
    # Main interface
    "Assembler",
    "assemble",
    "assemble_file",
    "ProgramImage",
    # Pipeline components
    "MacroExpander",
    "ScratchAllocator",
    "expand_source",
    "CanonicalLine",
    "LayoutResolver",
    "Layout",
    "Symbol",
    "CodeGenerator",
    "ListingEntry",
    "ValueParser",
    "parse_value",
    # Instruction set
    "OPCODE_TABLE",
    "FLAG_TABLE",
    "InstructionInfo",
    "OperandKind",
    "get_instruction_info",
]

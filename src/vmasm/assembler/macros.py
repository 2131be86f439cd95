"""
Pseudo-Instruction Expansion
============================

The virtual machine's arithmetic and file instructions only take register
operands, and its address operands only know [imm] and [Rn]. This module
lets source code be written more freely and rewrites each source line into
zero or more canonical lines the encoder understands.

Expansions
----------
**Modulo** (there is no MOD instruction):

    MOV R1, R2 MOD R3     ->  DIV R30, R2, R3
                              MUL R31, R30, R3
                              SUB R1, R2, R31

**Immediate operands** in ADD/SUB/MUL/DIV/AND/OR/XOR (operands 2 and 3)
and READ/WRITE (all operands) are staged through scratch registers:

    ADD R1, R2, 5         ->  LOADI R30, 5
                              ADD R1, R2, R30

**Two-operand SUB** is shorthand for subtracting in place:

    SUB R1, R2            ->  SUB R1, R1, R2

**Operand order of STORE** may be written memory-first:

    STORE [100], R2       ->  STORE R2, [100]

**Indexed addresses** fold into register-indirect form:

    LOAD R1, [8 + R2]     ->  LOADI R30, 8
                              ADD R30, R30, R2
                              LOAD R1, [R30]

Scratch Registers
-----------------
R30 and R31 are handed out in that order, per source line. A literal used
twice on one line is loaded once and its register reused. A line that needs
a third distinct literal is rejected. The expander does not check whether
the program itself uses R30 or R31; a line such as `ADD R1, R30, 5`
overwrites R30 before reading it.

Rejected Forms
--------------
- `CMP reg, reg`: CMP only has a register/immediate encoding
- `PRINTS "text"`: place strings with .ASCIIZ and pass their label

Expansion is line-local: each source line is rewritten on its own and the
output lines are never expanded again.
"""

import logging
import re

from vmasm.errors import (
    ArityError,
    AssemblerError,
    LexicalError,
    MacroExpansionError,
    ModuloSyntaxError,
    ScratchRegisterExhaustedError,
    SourceLocation,
    UnknownInstructionError,
    UnsupportedPatternError,
)
from vmasm.assembler.lexer import (
    OperandForm,
    is_register_token,
    is_valid_label,
    parse_operand,
    preprocess_line,
    split_operands,
)
from vmasm.assembler.opcodes import (
    ARITHMETIC_INSTRUCTIONS,
    FILE_TRANSFER_INSTRUCTIONS,
    OPCODE_TABLE,
    SCRATCH_REGISTERS,
    OperandKind,
    is_valid_instruction,
)
from vmasm.assembler.statements import CanonicalLine


logger = logging.getLogger(__name__)

MOD_KEYWORD_RE = re.compile(r"\bMOD\b", re.IGNORECASE)
MODULO_RE = re.compile(r"^(?P<x>\S+)\s+MOD\s+(?P<y>\S+)$", re.IGNORECASE)

MODULO_FORM = "MOV dest, X MOD Y"


# =============================================================================
# Scratch Register Allocation
# =============================================================================

class ScratchAllocator:
    """
    Hands out scratch registers for one source line.

    Registers are allocated in SCRATCH_REGISTERS order. Asking again for
    a key that already has a register returns the same register.
    """

    def __init__(self):
        self._assigned: dict[str, str] = {}
        self._free = list(SCRATCH_REGISTERS)

    def allocate(self, key: str) -> tuple[str, bool]:
        """
        Get the scratch register for a key.

        Returns:
            (register, is_new); is_new is False when the key was seen before

        Raises:
            ScratchRegisterExhaustedError: If no register is left
        """
        if key in self._assigned:
            return self._assigned[key], False
        if not self._free:
            raise ScratchRegisterExhaustedError(key)
        register = self._free.pop(0)
        self._assigned[key] = register
        return register, True

    @property
    def used(self) -> list[str]:
        """Registers handed out so far, in allocation order."""
        return list(self._assigned.values())


# =============================================================================
# Macro Expander
# =============================================================================

class MacroExpander:
    """
    Rewrites source lines into canonical lines.

    Usage:
        expander = MacroExpander("prog.asm")
        lines = expander.expand_source(source_text)

    Attributes:
        filename: Source name used in error locations
    """

    def __init__(self, filename: str = "<input>"):
        self.filename = filename

    def expand_source(self, source: str) -> list[CanonicalLine]:
        """
        Expand every line of a source text.

        Raises:
            AssemblerError: On the first line that cannot be expanded
        """
        lines: list[CanonicalLine] = []
        for number, text in enumerate(source.splitlines(), start=1):
            lines.extend(self.expand_line(text, number))
        logger.debug("Expanded %s into %d canonical lines", self.filename, len(lines))
        return lines

    def expand_line(self, line: str, line_number: int) -> list[CanonicalLine]:
        """
        Expand one source line.

        Args:
            line: Raw source text
            line_number: 1-based line number for error reporting

        Returns:
            Canonical lines; the source label, if any, is on the first one
        """
        location = SourceLocation(self.filename, line_number)
        try:
            lines = self._expand(line, location)
        except AssemblerError as e:
            raise e.with_location(location, line)

        if len(lines) > 1:
            logger.debug(
                "Line %d expanded to: %s", line_number, "; ".join(str(l) for l in lines)
            )
        return lines

    # =========================================================================
    # Line Dispatch
    # =========================================================================

    def _expand(self, line: str, location: SourceLocation) -> list[CanonicalLine]:
        label, text = preprocess_line(line)
        if label and not is_valid_label(label):
            raise LexicalError(f"invalid label '{label}'", hint="labels are identifiers like loop_1")

        if not text:
            if label:
                return [CanonicalLine(location, label=label, source=line)]
            return []

        parts = text.split(None, 1)
        word = parts[0]
        rest = parts[1] if len(parts) > 1 else ""

        if word.startswith("."):
            return [self._directive_line(label, word, rest, location, line)]

        mnemonic = word.upper()

        if mnemonic == "MOV" and MOD_KEYWORD_RE.search(rest):
            body = self._expand_modulo(rest)
        else:
            if not is_valid_instruction(mnemonic):
                raise UnknownInstructionError(word)
            body = self._expand_instruction(mnemonic, split_operands(rest))

        return self._finish(label, body, location, line)

    def _directive_line(
        self, label: str, word: str, rest: str, location: SourceLocation, line: str
    ) -> CanonicalLine:
        directive = word.upper()
        if directive == ".ASCIIZ":
            # The string is one argument even if it contains commas
            args = (rest,) if rest else ()
        else:
            args = tuple(split_operands(rest))
        return CanonicalLine(
            location,
            label=label or None,
            directive=directive,
            operands=args,
            source=line,
        )

    def _finish(
        self,
        label: str,
        body: list[tuple[str, list[str]]],
        location: SourceLocation,
        line: str,
    ) -> list[CanonicalLine]:
        lines = []
        for index, (mnemonic, operands) in enumerate(body):
            lines.append(CanonicalLine(
                location,
                label=(label or None) if index == 0 else None,
                mnemonic=mnemonic,
                operands=tuple(operands),
                source=line,
            ))
        return lines

    # =========================================================================
    # Instructions
    # =========================================================================

    def _expand_instruction(
        self, mnemonic: str, operands: list[str]
    ) -> list[tuple[str, list[str]]]:
        self._reject_unsupported(mnemonic, operands)

        if mnemonic == "STORE" and len(operands) == 2:
            if operands[0].startswith("[") and is_register_token(operands[1]):
                operands = [operands[1], operands[0]]

        scratch = ScratchAllocator()
        prelude: list[tuple[str, list[str]]] = []

        if mnemonic in ARITHMETIC_INSTRUCTIONS:
            if mnemonic == "SUB" and len(operands) == 2:
                operands = [operands[0], operands[0], operands[1]]
            if len(operands) != 3:
                raise ArityError(
                    f"'{mnemonic}' takes 3 operands, got {len(operands)}",
                    hint=f"{mnemonic} dest, src1, src2",
                )
            for i in (1, 2):
                operands[i] = self._stage_register(operands[i], scratch, prelude)

        elif mnemonic in FILE_TRANSFER_INSTRUCTIONS:
            if len(operands) != 4:
                raise ArityError(f"'{mnemonic}' takes 4 operands, got {len(operands)}")
            for i in range(4):
                operands[i] = self._stage_register(operands[i], scratch, prelude)

        info = OPCODE_TABLE[mnemonic]
        for i, (kind, token) in enumerate(zip(info.operands, operands)):
            if kind in (OperandKind.ADDRESS, OperandKind.IMMEDIATE):
                operands[i] = self._fold_address(token, scratch, prelude)

        return prelude + [(mnemonic, operands)]

    def _reject_unsupported(self, mnemonic: str, operands: list[str]) -> None:
        if mnemonic == "CMP" and len(operands) == 2 and is_register_token(operands[1]):
            raise UnsupportedPatternError(
                "CMP reg, reg is not supported",
                hint="use CMP reg, imm",
            )
        if mnemonic == "PRINTS" and operands and operands[0].startswith('"'):
            raise UnsupportedPatternError(
                'PRINTS "..." is not supported',
                hint="define the string with .ASCIIZ and pass its label",
            )

    def _stage_register(
        self,
        token: str,
        scratch: ScratchAllocator,
        prelude: list[tuple[str, list[str]]],
    ) -> str:
        """Replace a literal register operand with a loaded scratch register."""
        operand = parse_operand(token)
        if operand.is_register:
            return token
        if operand.form == OperandForm.INDEXED:
            raise UnsupportedPatternError(
                f"indexed address '{token}' cannot be used as a register operand",
                hint="compute the address into a register first",
            )
        register, is_new = scratch.allocate(operand.text)
        if is_new:
            prelude.append(("LOADI", [register, operand.text]))
        return register

    def _fold_address(
        self,
        token: str,
        scratch: ScratchAllocator,
        prelude: list[tuple[str, list[str]]],
    ) -> str:
        """Rewrite [imm + Rn] into [Rs] with Rs = imm + Rn computed first."""
        operand = parse_operand(token)
        if operand.form != OperandForm.INDEXED:
            return token
        key = f"[{operand.value} + {operand.register}]"
        register, is_new = scratch.allocate(key)
        if is_new:
            prelude.append(("LOADI", [register, operand.value]))
            prelude.append(("ADD", [register, register, operand.register]))
        return f"[{register}]"

    # =========================================================================
    # Modulo
    # =========================================================================

    def _expand_modulo(self, rest: str) -> list[tuple[str, list[str]]]:
        """
        Expand MOV dest, X MOD Y.

        With register operands the expansion is exactly:
            DIV R30, X, Y
            MUL R31, R30, Y
            SUB dest, X, R31

        An immediate Y is loaded into R31 first. An immediate X is loaded
        into dest first, since R30 receives the quotient.
        """
        operands = split_operands(rest)
        if len(operands) != 2:
            raise ModuloSyntaxError(
                f"malformed modulo expression '{rest}'", hint=f"use {MODULO_FORM}"
            )
        dest, expression = operands
        match = MODULO_RE.match(expression)
        if not match or not is_register_token(dest):
            raise ModuloSyntaxError(
                f"malformed modulo expression '{rest}'", hint=f"use {MODULO_FORM}"
            )

        x = self._modulo_operand(match.group("x"), rest)
        y = self._modulo_operand(match.group("y"), rest)
        quotient, product = SCRATCH_REGISTERS

        body: list[tuple[str, list[str]]] = []

        x_reg = x
        if not is_register_token(x):
            if y == dest:
                raise MacroExpansionError(
                    f"cannot stage dividend '{x}' in {dest}: {dest} is also the divisor",
                    hint="use a different destination register",
                )
            body.append(("LOADI", [dest, x]))
            x_reg = dest

        y_reg = y
        if not is_register_token(y):
            body.append(("LOADI", [product, y]))
            y_reg = product

        body.append(("DIV", [quotient, x_reg, y_reg]))
        body.append(("MUL", [product, quotient, y_reg]))
        body.append(("SUB", [dest, x_reg, product]))
        return body

    def _modulo_operand(self, token: str, rest: str) -> str:
        form = parse_operand(token).form
        if form not in (OperandForm.REGISTER, OperandForm.VALUE) or token.upper() == "MOD":
            raise ModuloSyntaxError(
                f"malformed modulo expression '{rest}'", hint=f"use {MODULO_FORM}"
            )
        return token


def expand_source(source: str, filename: str = "<input>") -> list[CanonicalLine]:
    """Convenience function to expand a whole source text."""
    return MacroExpander(filename).expand_source(source)

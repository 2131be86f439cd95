# =============================================================================
# test_codegen.py - Encoding, Layout and Code Generation Tests
# =============================================================================
# Tests for operand/directive encoding and the two assembler passes.
#
# Test coverage includes:
#   - Operand widths shared by both passes
#   - Register, flags, address and immediate encodings
#   - Range checks on every value kind
#   - Data directives
#   - Label binding, forward references and duplicate labels
#   - Listing and symbol output
# =============================================================================

import pytest

from vmasm.assembler.codegen import CodeGenerator, ListingEntry
from vmasm.assembler.encoding import (
    directive_length,
    encode_directive,
    encode_instruction,
    encode_word,
    instruction_length,
    operand_encoded_width,
)
from vmasm.assembler.layout import LayoutResolver
from vmasm.assembler.macros import expand_source
from vmasm.assembler.opcodes import (
    OPCODE_TABLE,
    OperandKind,
    get_flag_value,
    get_instruction_info,
    is_valid_instruction,
)
from vmasm.assembler.values import ValueParser
from vmasm.errors import (
    ArityError,
    DuplicateLabelError,
    FlagMaskError,
    LexicalError,
    RangeError,
    UnknownDirectiveError,
    UnresolvedSymbolError,
)


# =============================================================================
# Helper Functions
# =============================================================================

def generate(source: str, **predefined) -> bytes:
    """Expand and generate code for source."""
    return CodeGenerator(predefined).generate(expand_source(source))


def encode(source_line: str) -> bytes:
    """Encode a single canonical instruction with no symbols."""
    mnemonic, _, rest = source_line.partition(" ")
    operands = [op.strip() for op in rest.split(",")] if rest else []
    return encode_instruction(OPCODE_TABLE[mnemonic], operands, ValueParser())


# =============================================================================
# Instruction Table
# =============================================================================

class TestOpcodeTable:
    """Test the instruction set definition."""

    def test_opcodes(self):
        assert OPCODE_TABLE["NOP"].opcode == 0x00
        assert OPCODE_TABLE["IF"].opcode == 0x05
        assert OPCODE_TABLE["LOADI"].opcode == 0x15
        assert OPCODE_TABLE["XOR"].opcode == 0x26
        assert OPCODE_TABLE["SHR"].opcode == 0x31
        assert OPCODE_TABLE["ENV_LIST"].opcode == 0x42
        assert OPCODE_TABLE["SEEK"].opcode == 0x74

    def test_signatures(self):
        assert OPCODE_TABLE["SEEK"].operands == (
            OperandKind.REGISTER, OperandKind.IMMEDIATE,
            OperandKind.IMMEDIATE, OperandKind.REGISTER,
        )
        assert OPCODE_TABLE["HALT"].arity == 0

    def test_lookup_case_insensitive(self):
        assert get_instruction_info("loadi") is OPCODE_TABLE["LOADI"]
        assert get_instruction_info("MOV") is None

    def test_instruction_and_flag_helpers(self):
        assert is_valid_instruction("halt")
        assert not is_valid_instruction("MOV")
        assert get_flag_value("GE") == get_flag_value("GT") == 0x08
        assert get_flag_value("ge") is None

    def test_table_read_only(self):
        with pytest.raises(TypeError):
            OPCODE_TABLE["NEW"] = None


# =============================================================================
# Operand Encoding
# =============================================================================

class TestOperandWidth:
    """Test the width function shared by both passes."""

    def test_register_and_flags(self):
        assert operand_encoded_width(OperandKind.REGISTER, "R1") == 1
        assert operand_encoded_width(OperandKind.FLAGS, "EQ") == 1

    def test_register_indirect(self):
        assert operand_encoded_width(OperandKind.ADDRESS, "[R3]") == 2
        assert operand_encoded_width(OperandKind.IMMEDIATE, "[R3]") == 2

    def test_word(self):
        assert operand_encoded_width(OperandKind.ADDRESS, "label") == 4
        assert operand_encoded_width(OperandKind.ADDRESS, "[100]") == 4
        assert operand_encoded_width(OperandKind.IMMEDIATE, "-1") == 4

    def test_instruction_length(self):
        assert instruction_length(OPCODE_TABLE["HALT"], []) == 1
        assert instruction_length(OPCODE_TABLE["LOADI"], ["R1", "5"]) == 6
        assert instruction_length(OPCODE_TABLE["LOAD"], ["R1", "[R2]"]) == 4
        assert instruction_length(OPCODE_TABLE["SEEK"], ["R1", "0", "[R2]", "R3"]) == 9


class TestInstructionEncoding:
    """Test byte output of single instructions."""

    def test_no_operands(self):
        assert encode("HALT") == bytes([0x01])

    def test_registers(self):
        assert encode("ADD R1, R2, R30") == bytes([0x20, 0x01, 0x02, 0x1E])

    def test_immediate(self):
        assert encode("LOADI R1, 5") == bytes([0x15, 0x01, 0x05, 0x00, 0x00, 0x00])

    def test_negative_immediate(self):
        assert encode("LOADI R1, -1") == bytes([0x15, 0x01, 0xFF, 0xFF, 0xFF, 0xFF])

    def test_unsigned_immediate(self):
        assert encode("LOADI R1, 0xFFFFFFFF") == bytes([0x15, 0x01, 0xFF, 0xFF, 0xFF, 0xFF])

    def test_register_indirect_address(self):
        assert encode("LOAD R1, [R2]") == bytes([0x10, 0x01, 0xFF, 0x02])

    def test_absolute_address(self):
        assert encode("STORE R2, [100]") == bytes([0x11, 0x02, 0x64, 0x00, 0x00, 0x00])

    def test_flags(self):
        assert encode("IF EQ, 0") == bytes([0x05, 0x01, 0x00, 0x00, 0x00, 0x00])
        assert encode("IF 15, 0") == bytes([0x05, 0x0F, 0x00, 0x00, 0x00, 0x00])

    def test_character_immediate(self):
        assert encode("LOADI R1, 'A'") == bytes([0x15, 0x01, 0x41, 0x00, 0x00, 0x00])


class TestRangeChecks:
    """Test rejection of values that do not fit their encoding."""

    def test_register_out_of_range(self):
        with pytest.raises(RangeError):
            encode("PUSH R32")

    def test_bad_register_token(self):
        with pytest.raises(LexicalError):
            encode("PUSH 5")

    def test_address_limit(self):
        assert encode("JUMP 65535") == bytes([0x02, 0xFF, 0xFF, 0x00, 0x00])
        with pytest.raises(RangeError):
            encode("JUMP 65536")

    def test_negative_address(self):
        with pytest.raises(RangeError):
            encode("CALL -1")

    def test_immediate_limits(self):
        encode("LOADI R1, -2147483648")
        encode("LOADI R1, 4294967295")
        with pytest.raises(RangeError):
            encode("LOADI R1, 4294967296")
        with pytest.raises(RangeError):
            encode("LOADI R1, -2147483649")

    def test_flag_mask(self):
        with pytest.raises(FlagMaskError):
            encode("IF 16, 0")

    def test_flag_mask_is_range_error(self):
        with pytest.raises(RangeError):
            encode("IF 0x10, 0")

    def test_arity(self):
        with pytest.raises(ArityError):
            encode("HALT R1")

    def test_encode_word(self):
        assert encode_word(0x12345678) == bytes([0x78, 0x56, 0x34, 0x12])
        assert encode_word(-2) == bytes([0xFE, 0xFF, 0xFF, 0xFF])


# =============================================================================
# Directives
# =============================================================================

class TestDirectives:
    """Test data directive sizes and bytes."""

    def test_asciiz(self):
        values = ValueParser()
        assert encode_directive(".ASCIIZ", ['"hi\\n"'], values) == b"hi\n\x00"
        assert directive_length(".ASCIIZ", ['"hi\\n"'], values) == 4

    def test_asciiz_empty(self):
        assert encode_directive(".ASCIIZ", ['""'], ValueParser()) == b"\x00"

    def test_asciiz_hex_escape(self):
        assert encode_directive(".ASCIIZ", ['"\\xff"'], ValueParser()) == b"\xff\x00"

    def test_space(self):
        values = ValueParser()
        assert encode_directive(".SPACE", ["3"], values) == b"\x00\x00\x00"
        assert directive_length(".SPACE", ["3"], values) == 3
        assert encode_directive(".SPACE", ["0"], values) == b""

    def test_space_negative(self):
        with pytest.raises(RangeError):
            encode_directive(".SPACE", ["-1"], ValueParser())

    def test_space_limited_to_address_space(self):
        values = ValueParser()
        assert directive_length(".SPACE", ["0x10000"], values) == 0x10000
        with pytest.raises(RangeError):
            directive_length(".SPACE", ["0x10001"], values)
        with pytest.raises(RangeError):
            encode_directive(".SPACE", ["0xFFFFFFFF"], values)

    def test_byte(self):
        values = ValueParser()
        assert encode_directive(".BYTE", ["0x41"], values) == b"A"
        assert encode_directive(".BYTE", ["-1"], values) == b"\xff"
        assert directive_length(".BYTE", ["0x41"], values) == 1

    def test_byte_out_of_range(self):
        with pytest.raises(RangeError):
            encode_directive(".BYTE", ["256"], ValueParser())
        with pytest.raises(RangeError):
            encode_directive(".BYTE", ["-129"], ValueParser())

    def test_word(self):
        values = ValueParser({"target": 0x1234})
        assert encode_directive(".WORD", ["target"], values) == bytes([0x34, 0x12, 0x00, 0x00])
        assert directive_length(".WORD", ["later"], ValueParser()) == 4

    def test_wrong_argument_count(self):
        with pytest.raises(ArityError):
            directive_length(".BYTE", ["1", "2"], ValueParser())
        with pytest.raises(ArityError):
            directive_length(".SPACE", [], ValueParser())

    def test_unknown_directive(self):
        with pytest.raises(UnknownDirectiveError):
            directive_length(".ORG", ["0"], ValueParser())
        with pytest.raises(UnknownDirectiveError):
            encode_directive(".ORG", ["0"], ValueParser())


# =============================================================================
# Layout Pass
# =============================================================================

class TestLayout:
    """Test line sizing and label binding."""

    def test_offsets_and_labels(self):
        lines = expand_source("start: LOADI R1, 10\nloop: SUB R1, 1\nend: HALT")
        layout = LayoutResolver().resolve(lines)
        assert layout.values() == {"start": 0, "loop": 6, "end": 16}
        assert layout.sizes == [6, 6, 4, 1]
        assert layout.offsets == [0, 6, 12, 16]
        assert layout.total_size == 17

    def test_label_only_line(self):
        lines = expand_source("a:\nb:\nNOP")
        layout = LayoutResolver().resolve(lines)
        assert layout.values() == {"a": 0, "b": 0}

    def test_trailing_label(self):
        lines = expand_source("NOP\nend:")
        assert LayoutResolver().resolve(lines).values()["end"] == 1

    def test_forward_reference_does_not_affect_size(self):
        lines = expand_source("JUMP end\nend: HALT")
        layout = LayoutResolver().resolve(lines)
        assert layout.values()["end"] == 5

    def test_duplicate_label(self):
        lines = expand_source("a: NOP\na: HALT")
        with pytest.raises(DuplicateLabelError) as exc_info:
            LayoutResolver().resolve(lines)
        error = exc_info.value
        assert error.line == 2
        assert error.original_location.line == 1
        assert error.label == "a"

    def test_labels_case_sensitive(self):
        lines = expand_source("a: NOP\nA: HALT")
        assert LayoutResolver().resolve(lines).values() == {"a": 0, "A": 1}

    def test_predefined_symbols(self):
        lines = expand_source("buf: .SPACE SIZE\nend:")
        layout = LayoutResolver({"SIZE": 8}).resolve(lines)
        assert layout.values()["end"] == 8
        assert layout.symbols["SIZE"].is_constant

    def test_predefined_conflicts_with_label(self):
        with pytest.raises(DuplicateLabelError):
            LayoutResolver({"start": 1}).resolve(expand_source("start: NOP"))

    def test_space_forward_reference(self):
        """A .SPACE count must be known when the line is laid out."""
        lines = expand_source(".SPACE later\nlater: NOP")
        with pytest.raises(UnresolvedSymbolError) as exc_info:
            LayoutResolver().resolve(lines)
        assert exc_info.value.line == 1

    def test_unknown_directive_location(self):
        lines = expand_source("NOP\n.ORG 100")
        with pytest.raises(UnknownDirectiveError) as exc_info:
            LayoutResolver().resolve(lines)
        assert exc_info.value.line == 2


# =============================================================================
# Code Generation
# =============================================================================

class TestCodeGenerator:
    """Test the second pass."""

    def test_forward_reference(self):
        assert generate("JUMP foo\nfoo: HALT") == bytes([0x02, 0x05, 0x00, 0x00, 0x00, 0x01])

    def test_backward_reference(self):
        code = generate("top: NOP\nJUMP top")
        assert code == bytes([0x00, 0x02, 0x00, 0x00, 0x00, 0x00])

    def test_staged_immediate(self):
        code = generate("ADD R1, R2, 5")
        assert code.hex(" ").upper() == "15 1E 05 00 00 00 20 01 02 1E"

    def test_layout_matches_emission(self):
        source = """
            LOADI R1, 10
        loop:
            SUB R1, 1
            MOV R2, R1 MOD 3
            LOAD R3, [4 + R1]
            CMP R1, 0
            IF NE, loop
            JUMP done
        msg: .ASCIIZ "bye\\n"
        buf: .SPACE 5
            .BYTE 7
            .WORD msg
        done: HALT
        """
        codegen = CodeGenerator()
        code = codegen.generate(expand_source(source))
        layout = codegen.get_layout()
        assert layout.total_size == len(code)
        for offset, size, entry in zip(layout.offsets, layout.sizes, codegen.get_listing_entries()):
            assert entry.offset == offset
            assert len(entry.data) == size
        assert codegen.get_symbols()["done"] == len(code) - 1

    def test_label_address_in_data(self):
        code = generate("JUMP start\nmsg: .ASCIIZ \"a\"\nstart: PRINTS msg\nHALT")
        # JUMP(5) + "a\0"(2) -> start = 7, msg = 5
        assert code[1:5] == bytes([0x07, 0x00, 0x00, 0x00])
        assert code[7:12] == bytes([0x52, 0x05, 0x00, 0x00, 0x00])

    def test_unresolved_symbol(self):
        with pytest.raises(UnresolvedSymbolError) as exc_info:
            generate("NOP\nJUMP nowhere")
        assert exc_info.value.line == 2
        assert exc_info.value.symbol == "nowhere"

    def test_error_on_expanded_line_reports_source(self):
        with pytest.raises(UnresolvedSymbolError) as exc_info:
            generate("NOP\nADD R1, R2, missing")
        error = exc_info.value
        assert error.line == 2
        assert error.source_line == "ADD R1, R2, missing"

    def test_predefined_symbol_value(self):
        assert generate("LOADI R1, LIMIT", LIMIT=0x10) == bytes([0x15, 0x01, 0x10, 0, 0, 0])

    def test_deterministic(self):
        source = "ADD R1, R2, 5\nloop: IF EQ, loop\n.ASCIIZ \"x\""
        assert generate(source) == generate(source)

    def test_failed_generate_keeps_nothing(self):
        codegen = CodeGenerator()
        codegen.generate(expand_source("old: NOP"))
        with pytest.raises(UnresolvedSymbolError):
            codegen.generate(expand_source("NOP\nHALT\nJUMP nowhere"))
        assert codegen.get_code() == b""
        assert codegen.get_symbols() == {}
        assert codegen.get_listing_entries() == []

    def test_generate_resets_state(self):
        codegen = CodeGenerator()
        codegen.generate(expand_source("NOP\nNOP"))
        code = codegen.generate(expand_source("HALT"))
        assert code == b"\x01"
        assert len(codegen.get_listing_entries()) == 1


class TestListing:
    """Test listing and symbol file output."""

    def test_listing_entry_format(self):
        entry = ListingEntry(0, bytes([0x15, 0x1E, 0x05, 0, 0, 0]), 1, "LOADI R30, 5")
        text = entry.format()
        assert text.startswith("0000    15 1E 05 00 00 00")
        assert text.endswith("   1  LOADI R30, 5")

    def test_listing_entry_truncates_long_data(self):
        entry = ListingEntry(0x10, bytes(12), 3, ".SPACE 12")
        assert "00 00 00 00 00 00 00 00 ..." in entry.format()

    def test_listing(self):
        codegen = CodeGenerator()
        codegen.generate(expand_source("start: ADD R1, R2, 5\nHALT"))
        listing = codegen.get_listing()
        assert "0000    15 1E 05 00 00 00" in listing
        assert "0006    20 01 02 1E" in listing
        assert "start: LOADI R30, 5" in listing
        assert "start                = 0x0000" in listing

    def test_symbol_file(self, tmp_path):
        codegen = CodeGenerator()
        codegen.generate(expand_source("JUMP foo\nfoo: HALT\nbar:"))
        path = tmp_path / "out.sym"
        codegen.write_symbols(path)
        assert path.read_text().splitlines() == [
            "# Symbol table",
            "# Generated by vmasm",
            "bar 0x0006",
            "foo 0x0005",
        ]

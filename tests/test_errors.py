# =============================================================================
# test_errors.py - Error Hierarchy Tests
# =============================================================================
# Tests for error formatting and the exception hierarchy.
# =============================================================================

from vmasm.errors import (
    ArityError,
    AssemblerError,
    DuplicateLabelError,
    FlagMaskError,
    MacroExpansionError,
    ModuloSyntaxError,
    RangeError,
    ScratchRegisterExhaustedError,
    SourceLocation,
    UnresolvedSymbolError,
    VMAsmError,
)


class TestFormatting:
    """Test error message layout."""

    def test_without_location(self):
        error = AssemblerError("bad thing")
        assert str(error) == "error: bad thing"
        assert error.line is None

    def test_with_location_and_source(self):
        error = AssemblerError(
            "bad thing",
            location=SourceLocation("a.asm", 4),
            hint="do better",
            source_line="  NOP R1  ",
        )
        assert str(error) == "a.asm:4:0: error: bad thing\n    NOP R1\nhint: do better"

    def test_caret_for_column(self):
        error = AssemblerError("x", location=SourceLocation("a.asm", 1, 3), source_line="ABC")
        assert str(error).splitlines()[2] == "      ^"

    def test_with_location_fills_in_once(self):
        error = AssemblerError("bad")
        error.with_location(SourceLocation("a.asm", 2), "NOP")
        error.with_location(SourceLocation("a.asm", 9), "HALT")
        assert error.line == 2
        assert str(error).startswith("a.asm:2:0: error: bad")


class TestHierarchy:
    """Test exception relationships."""

    def test_base_classes(self):
        assert issubclass(AssemblerError, VMAsmError)
        assert issubclass(FlagMaskError, RangeError)
        assert issubclass(ScratchRegisterExhaustedError, MacroExpansionError)

    def test_modulo_syntax_error(self):
        assert issubclass(ModuloSyntaxError, MacroExpansionError)
        assert issubclass(ModuloSyntaxError, ArityError)

    def test_duplicate_label_hint(self):
        error = DuplicateLabelError(
            "loop",
            location=SourceLocation("a.asm", 5),
            original_location=SourceLocation("a.asm", 2),
        )
        assert "duplicate label 'loop'" in str(error)
        assert "first defined at a.asm:2:0" in str(error)

    def test_unresolved_without_suggestions(self):
        error = UnresolvedSymbolError("zzz")
        assert error.hint is None
        assert error.similar_symbols == []

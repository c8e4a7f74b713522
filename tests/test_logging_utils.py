from __future__ import annotations

from upgradarr.logging_utils import format_value, render_fields_block, render_section_block


class TestFormatValue:
    def test_scalars(self) -> None:
        assert format_value(None) == "-"
        assert format_value(True) == "yes"
        assert format_value(80.0) == "80"
        assert format_value(12.345) == "12.35"
        assert format_value("  ") == "-"

    def test_sequences(self) -> None:
        assert format_value(["hi", "en"]) == "hi, en"
        assert format_value(()) == "-"


class TestRenderFieldsBlock:
    def test_aligned_lines(self) -> None:
        block = render_fields_block("Matched Inception", {"Resolution": "1080p", "TMDB": 27205}, pad_top=False)

        lines = block.splitlines()
        assert lines[0] == "Matched Inception"
        assert lines[1] == "-" * len("Matched Inception")
        assert lines[2] == "    Resolution: 1080p"
        assert lines[3] == "    TMDB      : 27205"

    def test_pad_top_and_pairs(self) -> None:
        block = render_fields_block("Run Recap", [("Processed", 3)])

        assert block.startswith("\nRun Recap")

    def test_long_values_wrap(self) -> None:
        block = render_fields_block("Title", {"Reason": "word " * 60}, pad_top=False)

        assert len(block.splitlines()) > 3


class TestRenderSectionBlock:
    def test_sections(self) -> None:
        block = render_section_block("Run Problems", [("Errors", ["boom"]), ("Warnings", [])], pad_top=False)

        assert "Errors:" in block
        assert "    - boom" in block
        assert "    (none)" in block

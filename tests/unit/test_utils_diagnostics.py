"""
Tests for rich diagnostic rendering.
"""

import pytest

from phprepl.utils.diagnostics import (
    Diagnostic,
    DiagnosticLevel,
    SourceSpan,
    command_error_diagnostic,
    diagnostic_from_error,
    levenshtein_distance,
    suggest_similar,
    unknown_command_diagnostic,
)
from phprepl.utils.errors import CommandError, ErrorInfo, ErrorKind, SourceLocation


class TestFromError:
    """Diagnostics built from parse failures."""

    @pytest.mark.parametrize(
        "kind, code",
        [
            (ErrorKind.UNEXPECTED_TOKEN, "E0201"),
            (ErrorKind.UNCLOSED_DELIMITER, "E0202"),
            (ErrorKind.UNEXPECTED_EOF, "E0203"),
            (ErrorKind.INVALID_EXPRESSION, "E0204"),
            (ErrorKind.UNTERMINATED, "E0206"),
        ],
    )
    def test_codes(self, kind, code) -> None:
        diagnostic = diagnostic_from_error(ErrorInfo("boom", kind, 0))
        assert diagnostic.code == code
        assert diagnostic.level is DiagnosticLevel.ERROR

    def test_span_from_location(self) -> None:
        info = ErrorInfo(
            "syntax error, unexpected ')'",
            ErrorKind.UNEXPECTED_TOKEN,
            13,
            SourceLocation(2, 6, 13),
        )
        span = diagnostic_from_error(info, filename="demo.php", length=2).span
        assert span == SourceSpan(2, 6, 8, "demo.php")
        assert str(span) == "demo.php:2:6"

    def test_unclosed_delimiter_help(self) -> None:
        info = ErrorInfo("unclosed '{'", ErrorKind.UNCLOSED_DELIMITER, 8)
        assert diagnostic_from_error(info).helps == ["add the matching closing delimiter"]

    def test_command_error(self) -> None:
        error = CommandError("unknown option '--bogus'", SourceLocation(1, 4, 3))
        diagnostic = command_error_diagnostic(error)
        assert diagnostic.code == "E0402"
        assert diagnostic.span.start_col == 4


class TestRender:
    """Plain-text rendering."""

    def test_render_without_color(self) -> None:
        diagnostic = Diagnostic(
            code="E0201",
            level=DiagnosticLevel.ERROR,
            message="syntax error, unexpected ')'",
            span=SourceSpan.from_location(1, 1),
            helps=["remove the stray ')'"],
        )
        rendered = diagnostic.render(")(", use_color=False)
        assert rendered.splitlines() == [
            "error[E0201]: syntax error, unexpected ')'",
            "  --> <stdin>:1:1",
            "   |",
            "  1 | )(",
            "   | ^",
            "   |",
            "   = help: remove the stray ')'",
        ]

    def test_render_uses_color(self) -> None:
        diagnostic = Diagnostic("E0401", DiagnosticLevel.ERROR, "unknown command 'x'")
        assert "\033[91m" in diagnostic.render("")

    def test_span_outside_source(self) -> None:
        diagnostic = Diagnostic(
            "E0203", DiagnosticLevel.ERROR, "eof", span=SourceSpan.from_location(9, 1)
        )
        assert "|" not in diagnostic.render("x", use_color=False)

    def test_simple_message(self) -> None:
        diagnostic = Diagnostic("E0403", DiagnosticLevel.ERROR, "execution failed")
        assert diagnostic.to_simple_message() == "[E0403] execution failed"


class TestSuggestions:
    """Typo suggestions for meta-commands."""

    def test_unknown_command_suggests(self) -> None:
        diagnostic = unknown_command_diagnostic("hepl", ["help", "history", "ls"])
        assert diagnostic.code == "E0401"
        assert diagnostic.helps == [
            "did you mean 'help'?",
            "type 'help' for available commands",
        ]

    def test_unknown_command_without_match(self) -> None:
        diagnostic = unknown_command_diagnostic("zzzzzz", ["help"])
        assert diagnostic.helps == ["type 'help' for available commands"]

    @pytest.mark.parametrize(
        "a, b, distance",
        [("", "abc", 3), ("kitten", "sitting", 3), ("watch", "watch", 0), ("ls", "sl", 2)],
    )
    def test_levenshtein(self, a, b, distance) -> None:
        assert levenshtein_distance(a, b) == distance

    def test_suggest_similar_orders_by_distance(self) -> None:
        assert suggest_similar("brek", ["break", "breaks", "exit"]) == ["break", "breaks"]

    def test_suggest_similar_is_case_insensitive(self) -> None:
        assert suggest_similar("HELP", ["help"]) == ["help"]

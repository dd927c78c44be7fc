"""Tests for the phprepl LSP diagnostics provider."""

import pytest
from lsprotocol.types import (
    DiagnosticSeverity,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    Position,
    TextDocumentIdentifier,
    TextDocumentItem,
)

from phprepl.lsp.diagnostics import DiagnosticProvider, end_position, offset_at
from phprepl.lsp.server import PhpReplLanguageServer, create_server

URI = "file:///tmp/scratch.php"


def diagnostics_for(source: str):
    return DiagnosticProvider(source, URI).get_diagnostics()


class TestDiagnosticProvider:
    """Classifying whole documents."""

    def test_complete_document_has_no_diagnostics(self) -> None:
        assert diagnostics_for("$x = 1;\nfunction f() { return 2; }\n") == []

    def test_missing_semicolon_is_a_warning(self) -> None:
        """Documents get no implicit trailing semicolon."""
        (diagnostic,) = diagnostics_for("$x = 1")
        assert diagnostic.severity == DiagnosticSeverity.Warning
        assert diagnostic.code == "E0203"

    def test_incomplete_document_warns_at_end(self) -> None:
        (diagnostic,) = diagnostics_for("function f() {\n  return 1;\n")
        assert diagnostic.severity == DiagnosticSeverity.Warning
        assert diagnostic.range.start == Position(line=2, character=0)
        assert diagnostic.code == "E0202"
        assert diagnostic.message.startswith("Incomplete input")

    def test_syntax_error_points_at_token(self) -> None:
        (diagnostic,) = diagnostics_for("$x = 1;\n$y = );")
        assert diagnostic.severity == DiagnosticSeverity.Error
        assert diagnostic.range.start == Position(line=1, character=5)
        assert diagnostic.range.end == Position(line=1, character=6)
        assert diagnostic.source == "phprepl"

    def test_error_at_start(self) -> None:
        (diagnostic,) = diagnostics_for(")(")
        assert diagnostic.range.start == Position(line=0, character=0)
        assert diagnostic.code == "E0201"


class TestPositions:
    """Offset and position conversion."""

    def test_end_position(self) -> None:
        assert end_position("ab\ncd") == Position(line=1, character=2)
        assert end_position("") == Position(line=0, character=0)

    @pytest.mark.parametrize(
        "line, character, expected",
        [(0, 0, 0), (0, 2, 2), (1, 1, 4), (5, 0, 5), (0, 99, 5)],
    )
    def test_offset_at(self, line, character, expected) -> None:
        assert offset_at("ab\ncd", line, character) == expected


class TestServer:
    """Diagnostics kept by the server per document."""

    def test_analyze_remembers_diagnostics(self) -> None:
        server = PhpReplLanguageServer()
        diagnostics = server.analyze(URI, "if ($x) {")
        assert len(diagnostics) == 1
        assert server.diagnostics_for(URI) == diagnostics
        assert server.diagnostics_for("file:///other.php") == []

    def test_fixing_the_document_clears_diagnostics(self) -> None:
        server = PhpReplLanguageServer()
        server.analyze(URI, "if ($x) {")
        server.analyze(URI, "if ($x) { }")
        assert server.diagnostics_for(URI) == []

    def test_did_open_publishes_diagnostics(self, monkeypatch) -> None:
        server = PhpReplLanguageServer()
        published: list[tuple[str, list]] = []
        monkeypatch.setattr(
            server, "_publish", lambda uri, diagnostics: published.append((uri, diagnostics))
        )
        server._on_did_open(
            DidOpenTextDocumentParams(
                text_document=TextDocumentItem(
                    uri=URI, language_id="php", version=1, text="$y = );"
                )
            )
        )
        ((uri, diagnostics),) = published
        assert uri == URI
        assert diagnostics[0].severity == DiagnosticSeverity.Error
        assert server.diagnostics_for(URI) == diagnostics

    def test_did_close_clears_diagnostics(self, monkeypatch) -> None:
        server = PhpReplLanguageServer()
        published: list[tuple[str, list]] = []
        monkeypatch.setattr(
            server, "_publish", lambda uri, diagnostics: published.append((uri, diagnostics))
        )
        server.analyze(URI, "if ($x) {")
        server._on_did_close(
            DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=URI))
        )
        assert published == [(URI, [])]
        assert server.diagnostics_for(URI) == []

    def test_create_server(self) -> None:
        assert isinstance(create_server(), PhpReplLanguageServer)

"""Tests for LSP completion items."""

from lsprotocol.types import CompletionItemKind

from phprepl.completion.context import Candidate, CandidateKind
from phprepl.lsp.completions import (
    CompletionProvider,
    completion_item,
    document_environment,
)


class TestCompletionItems:
    """Candidate to CompletionItem conversion."""

    def test_method_item(self) -> None:
        item = completion_item(Candidate("format", CandidateKind.METHOD, "format()"))
        assert item.label == "format()"
        assert item.insert_text == "format"
        assert item.kind == CompletionItemKind.Method
        assert item.detail == "method"

    def test_trait_is_shown_as_class(self) -> None:
        item = completion_item(Candidate("Loggable", CandidateKind.TRAIT))
        assert item.kind == CompletionItemKind.Class


class TestDocumentEnvironment:
    """Symbols collected from the document being edited."""

    def test_whole_document(self) -> None:
        source = "function helper() {}\n$d = new DateTime();\n"
        environment = document_environment(source, len(source))
        assert environment.has_function("helper")
        assert environment.get_variable("d").class_name == "DateTime"
        assert environment.has_function("strlen")

    def test_prefix_before_cursor_line(self) -> None:
        source = "$d = new DateTime();\n$d->"
        environment = document_environment(source, len(source))
        assert environment.get_variable("d").class_name == "DateTime"


class TestCompletionProvider:
    """Completion at a document position."""

    def test_member_completion(self) -> None:
        source = "$d = new DateTime();\n$d->"
        items = CompletionProvider(source).get_completions(1, 4)
        inserted = {item.insert_text for item in items}
        assert {"modify", "format"} <= inserted
        assert "createFromFormat" not in inserted

    def test_variable_completion(self) -> None:
        source = "$counter = 1;\n$total = 2;\n$tot"
        items = CompletionProvider(source).get_completions(2, 4)
        assert [item.insert_text for item in items] == ["$total"]

    def test_declared_function(self) -> None:
        source = "function render_page() {}\nrender_"
        items = CompletionProvider(source).get_completions(1, 7)
        assert "render_page" in {item.insert_text for item in items}

    def test_inside_comment(self) -> None:
        source = "// $co\n"
        assert CompletionProvider(source).get_completions(0, 6) == []

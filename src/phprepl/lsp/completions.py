"""
Completion items for the phprepl language server.

Uses the same completion engine as the shell. The scope is built from the
document itself: declarations and assignments that parse are collected into
a fresh environment on top of the builtins.
"""

import logging

from lsprotocol import types

from phprepl.compiler.detector import IncompletenessDetector
from phprepl.completion.context import Candidate, CandidateKind
from phprepl.completion.engine import CompletionEngine
from phprepl.lsp.diagnostics import offset_at
from phprepl.runtime.environment import RuntimeEnvironment
from phprepl.runtime.resolver import ScopeResolver
from phprepl.runtime.symbols import collect_symbols

logger = logging.getLogger("phprepl-lsp")

CANDIDATE_ITEM_KINDS: dict[CandidateKind, types.CompletionItemKind] = {
    CandidateKind.VARIABLE: types.CompletionItemKind.Variable,
    CandidateKind.METHOD: types.CompletionItemKind.Method,
    CandidateKind.PROPERTY: types.CompletionItemKind.Property,
    CandidateKind.CONSTANT: types.CompletionItemKind.Constant,
    CandidateKind.CLASS: types.CompletionItemKind.Class,
    CandidateKind.INTERFACE: types.CompletionItemKind.Interface,
    CandidateKind.TRAIT: types.CompletionItemKind.Class,
    CandidateKind.FUNCTION: types.CompletionItemKind.Function,
    CandidateKind.KEYWORD: types.CompletionItemKind.Keyword,
    CandidateKind.COMMAND: types.CompletionItemKind.Text,
    CandidateKind.SERVICE: types.CompletionItemKind.Value,
    CandidateKind.PARAMETER: types.CompletionItemKind.Value,
}


def document_environment(source: str, cursor: int) -> RuntimeEnvironment:
    """
    Environment holding the symbols a document declares.

    The whole document is tried first; while it does not parse (the user is
    typing), the text before the cursor's line is used instead.
    """
    environment = RuntimeEnvironment.with_builtins()
    detector = IncompletenessDetector(implicit_semicolon=False)

    line_start = source.rfind("\n", 0, cursor) + 1
    for text in (source, source[:line_start]):
        detection = detector.detect(text)
        if detection.program is not None:
            collect_symbols(detection.program, environment)
            break
    else:
        logger.debug("No parsable prefix for document symbols")
    return environment


def completion_item(candidate: Candidate) -> types.CompletionItem:
    return types.CompletionItem(
        label=candidate.label,
        kind=CANDIDATE_ITEM_KINDS.get(candidate.kind, types.CompletionItemKind.Text),
        insert_text=candidate.text,
        detail=candidate.kind.value,
    )


class CompletionProvider:
    """Completion for one document snapshot."""

    def __init__(self, source: str) -> None:
        self.source = source

    def get_completions(self, line: int, character: int) -> list[types.CompletionItem]:
        cursor = offset_at(self.source, line, character)
        environment = document_environment(self.source, cursor)
        engine = CompletionEngine(ScopeResolver(environment))
        result = engine.complete(self.source, cursor)
        return [completion_item(candidate) for candidate in result.candidates]

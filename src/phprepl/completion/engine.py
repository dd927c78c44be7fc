"""
Completion orchestrator.

Tokenizes the text before the cursor, works out the prefix being typed, asks
the matchers in priority order and ranks the first non-empty answer.
Completion never raises: a failing matcher or an unavailable scope yields no
candidates and a warning in the log.
"""

import logging
from types import MappingProxyType
from typing import Callable, Iterable, Optional, Sequence

from phprepl.completion.context import (
    DEFAULT_WINDOW_SIZE,
    Candidate,
    CompletionResult,
    MatchContext,
    TokenWindow,
)
from phprepl.completion.matchers import Matcher, default_matchers
from phprepl.compiler.lexer import tokenize
from phprepl.compiler.tokens import Token, TokenKind
from phprepl.runtime.resolver import ScopeResolver
from phprepl.utils.errors import ResolverUnavailable

logger = logging.getLogger(__name__)

# Word delimiters for readline; `$` and `\` belong to PHP names
READLINE_DELIMS = " \t\n;(){}[],=+-*/%&|^!~<>.:?@'\"`#"

_WORD_KINDS = (TokenKind.IDENTIFIER, TokenKind.KEYWORD, TokenKind.VARIABLE)


def rank(candidates: Iterable[Candidate], prefix: str) -> tuple[Candidate, ...]:
    """
    Deduplicate by text and order candidates.

    Case-insensitive prefix matches come before substring matches; within a
    group candidates sort case-insensitively, ties keeping the order in
    which they were produced.
    """
    unique: dict[str, Candidate] = {}
    for candidate in candidates:
        unique.setdefault(candidate.text, candidate)

    needle = prefix.lower()

    def sort_key(item: tuple[int, Candidate]) -> tuple[int, str, int]:
        index, candidate = item
        lowered = candidate.text.lower()
        return (0 if lowered.startswith(needle) else 1, lowered, index)

    ordered = sorted(enumerate(unique.values()), key=sort_key)
    return tuple(candidate for _, candidate in ordered)


def _string_content(token: Token) -> str:
    """Text typed after the opening quote of an unterminated string."""
    text = token.text
    if text[:1] in ("b", "B"):
        text = text[1:]
    if text[:1] in ("'", '"', "`"):
        return text[1:]
    # Heredoc bodies are not completed
    return ""


class CompletionEngine:
    """
    Drives matchers over the input buffer.

    Args:
        resolver: Scope queries for matchers
        matchers: Matchers in priority order; defaults to the built-in set
        commands: Meta-command names offered as the first word
        window_size: Number of trailing tokens matchers see
    """

    def __init__(
        self,
        resolver: ScopeResolver,
        matchers: Optional[Sequence[Matcher]] = None,
        commands: Iterable[str] = (),
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> None:
        self.resolver = resolver
        self.matchers: list[Matcher] = list(matchers) if matchers is not None else default_matchers()
        self.commands = tuple(commands)
        self.window_size = window_size

    def add_matcher(self, matcher: Matcher, priority: Optional[int] = None) -> None:
        """Register a matcher; without a priority it is consulted last."""
        if priority is None:
            self.matchers.append(matcher)
        else:
            self.matchers.insert(priority, matcher)

    def build_context(self, source: str, cursor: Optional[int] = None) -> Optional[MatchContext]:
        """
        Build the context for a cursor position.

        Returns:
            The context, or None when the cursor sits inside a comment
        """
        cursor = len(source) if cursor is None else max(0, min(cursor, len(source)))
        text = source[:cursor]
        tokens = tokenize(text)

        last = tokens[-2] if len(tokens) >= 2 else None
        word: Optional[Token] = None
        prefix = ""
        in_string = False

        if last is not None:
            if last.kind == TokenKind.COMMENT:
                if last.text.startswith(("#", "//")) or last.unterminated:
                    return None
            elif last.kind == TokenKind.STRING and last.unterminated:
                word, prefix, in_string = last, _string_content(last), True
            elif last.kind in _WORD_KINDS:
                word, prefix = last, last.text

        info = {
            **self.resolver.aux_info(),
            "resolver": self.resolver,
            "commands": self.commands,
        }
        return MatchContext(
            tokens=TokenWindow(tokens, self.window_size),
            prefix=prefix,
            info=MappingProxyType(info),
            source=text,
            word=word,
            in_string=in_string,
        )

    def complete(self, source: str, cursor: Optional[int] = None) -> CompletionResult:
        """
        Complete at `cursor` (defaults to the end of `source`).

        The first matcher returning candidates wins; matchers after it are
        not consulted.
        """
        try:
            ctx = self.build_context(source, cursor)
        except ResolverUnavailable as error:
            logger.warning("Completion unavailable: %s", error)
            return CompletionResult()
        if ctx is None:
            return CompletionResult()

        for matcher in self.matchers:
            if ctx.in_string and not matcher.completes_strings:
                continue
            try:
                if not matcher.can_match(ctx):
                    continue
                candidates = matcher.get_matches(ctx)
            except ResolverUnavailable as error:
                logger.warning("Completion unavailable in %r: %s", matcher, error)
                return CompletionResult(prefix=ctx.prefix)
            except Exception:
                logger.warning("Matcher %r failed", matcher, exc_info=True)
                return CompletionResult(prefix=ctx.prefix)
            if candidates:
                logger.debug("%r produced %d candidates", matcher, len(candidates))
                return CompletionResult(rank(candidates, ctx.prefix), ctx.prefix)

        return CompletionResult(prefix=ctx.prefix)


class ReadlineCompleter:
    """
    Adapter for readline's `completer(text, state)` protocol.

    Args:
        engine: The completion engine
        line_source: Returns the text to complete and the cursor offset in it
            (the buffered lines plus the current line)
    """

    def __init__(
        self,
        engine: CompletionEngine,
        line_source: Callable[[], tuple[str, int]],
    ) -> None:
        self.engine = engine
        self.line_source = line_source
        self._matches: list[str] = []

    def complete_word(self, text: str, state: int) -> Optional[str]:
        if state == 0:
            source, cursor = self.line_source()
            self._matches = self.engine.complete(source, cursor).texts
        if state < len(self._matches):
            return self._matches[state]
        return None

    __call__ = complete_word

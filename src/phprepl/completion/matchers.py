"""
Completion matchers.

Each matcher proposes candidates for one kind of syntactic context. The
engine asks them in a fixed priority order and keeps the first non-empty
answer, so a matcher only has to decide whether its context applies and what
fits the typed prefix.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Mapping, Optional

from phprepl.completion.context import (
    CLASS_CONTEXT_KEYWORDS,
    Candidate,
    CandidateKind,
    MatchContext,
)
from phprepl.compiler.tokens import KEYWORDS, STATEMENT_STARTERS, Token, TokenKind
from phprepl.runtime.environment import MemberInfo, MemberKind, SymbolKind

SUPERGLOBALS: tuple[str, ...] = (
    "GLOBALS", "_SERVER", "_GET", "_POST", "_FILES", "_COOKIE", "_SESSION",
    "_REQUEST", "_ENV",
)

# Constants that are spelled like keywords
LITERAL_CONSTANTS: tuple[str, ...] = ("true", "false", "null")


def fits(name: str, prefix: str) -> bool:
    """Case-insensitive substring test; everything fits an empty prefix."""
    return not prefix or prefix.lower() in name.lower()


def starts_with(name: str, prefix: str) -> bool:
    return name.lower().startswith(prefix.lower())


class Matcher(ABC):
    """
    Base class for completion matchers.

    Attributes:
        completes_strings: The matcher completes string arguments, so it is
            still consulted when the cursor is inside a string literal
    """

    completes_strings: bool = False

    @abstractmethod
    def can_match(self, ctx: MatchContext) -> bool:
        """Whether this matcher's context applies."""

    @abstractmethod
    def get_matches(self, ctx: MatchContext) -> list[Candidate]:
        """Candidates for the context; only called when `can_match` is true."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# -----------------------------------------------------------------------------
# Member access
# -----------------------------------------------------------------------------


def owner_expression(tokens: tuple[Token, ...]) -> Optional[str]:
    """
    Rebuild the owner of a trailing `->` as `$var` or `$var->prop->...`.

    Returns None when the owner is anything else (a call result, an array
    element, ...) because its type is unknown.
    """
    if not tokens or not tokens[-1].is_op("->", "?->"):
        return None
    parts: list[str] = []
    index = len(tokens) - 2
    while index >= 0:
        token = tokens[index]
        if token.kind == TokenKind.VARIABLE and token.text != "$":
            parts.append(token.text)
            return "".join(reversed(parts))
        if token.kind == TokenKind.IDENTIFIER and index >= 1 and tokens[index - 1].is_op("->", "?->"):
            parts.append(token.text)
            parts.append(tokens[index - 1].text)
            index -= 2
            continue
        return None
    return None


def _member_candidate(member: MemberInfo, static: bool) -> Candidate:
    if member.kind is MemberKind.METHOD:
        return Candidate(member.name, CandidateKind.METHOD, f"{member.name}()")
    if member.kind is MemberKind.CONSTANT:
        return Candidate(member.name, CandidateKind.CONSTANT)
    text = f"${member.name}" if static else member.name
    return Candidate(text, CandidateKind.PROPERTY)


class ObjectMemberMatcher(Matcher):
    """Properties and methods after `$var->` and `$var?->`."""

    def can_match(self, ctx: MatchContext) -> bool:
        return not ctx.prefix.startswith("$") and owner_expression(ctx.preceding_tokens) is not None

    def get_matches(self, ctx: MatchContext) -> list[Candidate]:
        owner = owner_expression(ctx.preceding_tokens)
        members = ctx.resolver.lookup_member(owner)
        return [
            _member_candidate(member, static=False)
            for member in members
            if fits(member.name, ctx.prefix)
        ]


class StaticMemberMatcher(Matcher):
    """Constants, static properties and static methods after `Class::`."""

    def _owner(self, ctx: MatchContext) -> Optional[str]:
        tokens = ctx.preceding_tokens
        if len(tokens) < 2 or not tokens[-1].is_op("::"):
            return None
        owner = tokens[-2]
        if owner.kind == TokenKind.IDENTIFIER:
            return owner.text
        if owner.kind == TokenKind.VARIABLE:
            return ctx.resolver.get_variable_class(owner.text)
        return None

    def can_match(self, ctx: MatchContext) -> bool:
        tokens = ctx.preceding_tokens
        return bool(tokens) and tokens[-1].is_op("::")

    def get_matches(self, ctx: MatchContext) -> list[Candidate]:
        owner = self._owner(ctx)
        if owner is None:
            return []
        candidates = [
            _member_candidate(member, static=True)
            for member in ctx.resolver.lookup_member(owner)
        ]
        if candidates:
            candidates.append(Candidate("class", CandidateKind.CONSTANT))
        return [c for c in candidates if fits(c.text, ctx.prefix)]


# -----------------------------------------------------------------------------
# Variables and class contexts
# -----------------------------------------------------------------------------


def split_qualifier(prefix: str) -> tuple[str, str]:
    """Split the leading `\\` of a fully qualified name off a prefix."""
    if prefix.startswith("\\"):
        return "\\", prefix[1:]
    return "", prefix


def _qualify(candidate: Candidate, qualifier: str) -> Candidate:
    if not qualifier:
        return candidate
    display = qualifier + candidate.display if candidate.display else None
    return Candidate(qualifier + candidate.text, candidate.kind, display)


def _class_candidates(ctx: MatchContext, kinds: Iterable[SymbolKind]) -> list[Candidate]:
    """Class-like names of the given kinds, from the resolver's class table."""
    class_kinds: Mapping[str, SymbolKind] = ctx.info.get("class_kinds", {})
    wanted = set(kinds)
    return [
        Candidate(name, _CLASS_KINDS[kind])
        for name, kind in sorted(class_kinds.items())
        if kind in wanted
    ]


class VariableMatcher(Matcher):
    """Variables in scope while typing `$...`."""

    def can_match(self, ctx: MatchContext) -> bool:
        return ctx.prefix.startswith("$") and not ctx.in_member_access

    def get_matches(self, ctx: MatchContext) -> list[Candidate]:
        needle = ctx.prefix[1:]
        names = sorted(ctx.resolver.list_variables()) + list(SUPERGLOBALS)
        return [
            Candidate(f"${name}", CandidateKind.VARIABLE)
            for name in names
            if fits(name, needle)
        ]


class ClassContextMatcher(Matcher):
    """
    Class names where only a class can follow.

    Handles:
        new Fo|   extends Fo|   implements Fo|, Ba|   instanceof Fo|   catch (Fo|
    """

    def _keyword(self, ctx: MatchContext) -> Optional[str]:
        tokens = ctx.preceding_tokens
        if not tokens:
            return None
        last = tokens[-1]
        if last.kind == TokenKind.KEYWORD and last.lowered in CLASS_CONTEXT_KEYWORDS:
            return last.lowered
        if last.is_op("(", "|"):
            # catch (A | B ...
            index = len(tokens) - 1
            while index >= 1 and tokens[index].is_op("|"):
                if tokens[index - 1].kind != TokenKind.IDENTIFIER:
                    return None
                index -= 2
            if index >= 1 and tokens[index].is_op("(") and tokens[index - 1].is_keyword("catch"):
                return "catch"
            return None
        if last.is_op(","):
            # implements A, B, ...
            for token in reversed(tokens[:-1]):
                if token.is_keyword("implements"):
                    return "implements"
                if not (token.kind == TokenKind.IDENTIFIER or token.is_op(",")):
                    break
        return None

    def can_match(self, ctx: MatchContext) -> bool:
        return not ctx.prefix.startswith("$") and self._keyword(ctx) is not None

    def get_matches(self, ctx: MatchContext) -> list[Candidate]:
        keyword = self._keyword(ctx)
        kinds: tuple[SymbolKind, ...]
        if keyword == "new":
            kinds = (SymbolKind.CLASS,)
        elif keyword == "implements":
            kinds = (SymbolKind.INTERFACE,)
        else:
            kinds = (SymbolKind.CLASS, SymbolKind.INTERFACE)
        qualifier, needle = split_qualifier(ctx.prefix)
        return [
            _qualify(candidate, qualifier)
            for candidate in _class_candidates(ctx, kinds)
            if fits(candidate.text, needle)
        ]


_CLASS_KINDS: dict[SymbolKind, CandidateKind] = {
    SymbolKind.CLASS: CandidateKind.CLASS,
    SymbolKind.INTERFACE: CandidateKind.INTERFACE,
    SymbolKind.TRAIT: CandidateKind.TRAIT,
}


# -----------------------------------------------------------------------------
# Bare names
# -----------------------------------------------------------------------------


class BareNameMatcher(Matcher):
    """
    Base class for names typed on their own: functions, classes, constants,
    keywords and meta-commands.

    A bare word could be any of these, so the kinds are compared with each
    other: a matcher whose names only contain the prefix somewhere gives way
    when another kind has a name starting with it. Typing `Exce` offers
    `Exception` rather than `set_exception_handler`.

    Attributes:
        qualifiable: Names of this kind may be written fully qualified (`\\strlen`)
    """

    qualifiable: bool = True

    def can_match(self, ctx: MatchContext) -> bool:
        return ctx.is_bare_word

    @abstractmethod
    def names(self, ctx: MatchContext) -> list[Candidate]:
        """Every name of this kind, unfiltered."""

    def has_prefix_hit(self, ctx: MatchContext, qualifier: str, needle: str) -> bool:
        if not self.can_match(ctx) or (qualifier and not self.qualifiable):
            return False
        return any(starts_with(c.text, needle) for c in self.names(ctx))

    def get_matches(self, ctx: MatchContext) -> list[Candidate]:
        qualifier, needle = split_qualifier(ctx.prefix)
        if qualifier and not self.qualifiable:
            return []
        hits = [c for c in self.names(ctx) if fits(c.text, needle)]
        if needle and hits and not any(starts_with(c.text, needle) for c in hits):
            others = (m for m in BARE_NAME_MATCHERS if type(m) is not type(self))
            if any(other.has_prefix_hit(ctx, qualifier, needle) for other in others):
                return []
        return [_qualify(candidate, qualifier) for candidate in hits]


class FunctionMatcher(BareNameMatcher):
    """Function names in expression position."""

    def names(self, ctx: MatchContext) -> list[Candidate]:
        return [
            Candidate(name, CandidateKind.FUNCTION, f"{name}()")
            for name in sorted(ctx.resolver.list_symbols(SymbolKind.FUNCTION))
        ]


class ClassNameMatcher(BareNameMatcher):
    """Class, interface and trait names in expression position (`Foo::`, `Foo $x`)."""

    def names(self, ctx: MatchContext) -> list[Candidate]:
        return _class_candidates(ctx, _CLASS_KINDS)


class ConstantMatcher(BareNameMatcher):
    """Global constants."""

    def names(self, ctx: MatchContext) -> list[Candidate]:
        names = sorted(ctx.resolver.list_symbols(SymbolKind.CONSTANT)) + list(LITERAL_CONSTANTS)
        return [Candidate(name, CandidateKind.CONSTANT) for name in names]


class KeywordMatcher(BareNameMatcher):
    """Language keywords."""

    qualifiable = False

    def can_match(self, ctx: MatchContext) -> bool:
        return ctx.is_bare_word and bool(ctx.prefix)

    def names(self, ctx: MatchContext) -> list[Candidate]:
        return [Candidate(word, CandidateKind.KEYWORD) for word in sorted(KEYWORDS)]


class CommandMatcher(BareNameMatcher):
    """
    Shell meta-command names as the first word of the input.

    Consulted after the code matchers: `ex` offers `explode` before the
    `exit` command.
    """

    qualifiable = False

    def can_match(self, ctx: MatchContext) -> bool:
        return (
            bool(ctx.prefix)
            and ctx.word is not None
            and ctx.preceding is None
            and ctx.source.lstrip() == ctx.prefix
        )

    def names(self, ctx: MatchContext) -> list[Candidate]:
        commands: Iterable[str] = ctx.info.get("commands", ())
        return [Candidate(name, CandidateKind.COMMAND) for name in commands]

    def get_matches(self, ctx: MatchContext) -> list[Candidate]:
        return [c for c in self.names(ctx) if starts_with(c.text, ctx.prefix)]


# Every kind a bare word is compared across
BARE_NAME_MATCHERS: tuple[BareNameMatcher, ...] = (
    FunctionMatcher(),
    ClassNameMatcher(),
    ConstantMatcher(),
    KeywordMatcher(),
    CommandMatcher(),
)


class StatementStarterMatcher(Matcher):
    """Keywords that begin a statement, offered before anything is typed."""

    def can_match(self, ctx: MatchContext) -> bool:
        return ctx.is_empty

    def get_matches(self, ctx: MatchContext) -> list[Candidate]:
        return [Candidate(word, CandidateKind.KEYWORD) for word in STATEMENT_STARTERS]


def default_matchers() -> list[Matcher]:
    """Built-in matchers in priority order, most specific context first."""
    return [
        ObjectMemberMatcher(),
        StaticMemberMatcher(),
        VariableMatcher(),
        ClassContextMatcher(),
        FunctionMatcher(),
        ClassNameMatcher(),
        ConstantMatcher(),
        KeywordMatcher(),
        CommandMatcher(),
        StatementStarterMatcher(),
    ]

"""
Completion context types.

A `MatchContext` is built once per completion request from the text before
the cursor and handed unchanged to every matcher.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, overload

from phprepl.compiler.tokens import Token, TokenKind

DEFAULT_WINDOW_SIZE = 10

# Member access operators
_MEMBER_OPERATORS: frozenset[str] = frozenset({"->", "?->", "::"})

# Keywords followed by a name being declared, not an expression
_DECLARING_KEYWORDS: frozenset[str] = frozenset(
    {"function", "class", "interface", "trait", "enum", "const", "namespace", "goto", "as"}
)

# Keywords after which a class name is expected
CLASS_CONTEXT_KEYWORDS: frozenset[str] = frozenset({"new", "extends", "implements", "instanceof"})


class CandidateKind(Enum):
    VARIABLE = "variable"
    METHOD = "method"
    PROPERTY = "property"
    CONSTANT = "constant"
    CLASS = "class"
    INTERFACE = "interface"
    TRAIT = "trait"
    FUNCTION = "function"
    KEYWORD = "keyword"
    COMMAND = "command"
    SERVICE = "service"
    PARAMETER = "parameter"


@dataclass(frozen=True, slots=True)
class Candidate:
    """
    One proposed completion.

    Attributes:
        text: Replacement for the typed prefix
        kind: What the candidate names
        display: Label for menus; defaults to `text`
    """

    text: str
    kind: CandidateKind
    display: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display or self.text


class TokenWindow(Sequence[Token]):
    """
    The last `size` significant tokens ending at the cursor.

    Immutable and indexable; never holds tokens after the cursor.
    """

    __slots__ = ("_tokens",)

    def __init__(self, tokens: Sequence[Token], size: int = DEFAULT_WINDOW_SIZE) -> None:
        significant = [
            t for t in tokens if not t.is_trivia and t.kind != TokenKind.EOF
        ]
        self._tokens: tuple[Token, ...] = tuple(significant[-size:]) if size > 0 else ()

    @overload
    def __getitem__(self, index: int) -> Token: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Token, ...]: ...

    def __getitem__(self, index: Any) -> Any:
        return self._tokens[index]

    def __len__(self) -> int:
        return len(self._tokens)

    def __repr__(self) -> str:
        return f"TokenWindow({[t.text for t in self._tokens]!r})"

    @property
    def texts(self) -> tuple[str, ...]:
        return tuple(t.text for t in self._tokens)


@dataclass(frozen=True)
class MatchContext:
    """
    Everything a matcher may look at.

    Attributes:
        tokens: Token window ending at the cursor
        prefix: Fragment being completed ("$us", "get", or the content of an
            unterminated string)
        info: Read-only extras ("resolver", "commands", ...)
        source: Text before the cursor
        word: The token the prefix belongs to, if any
        in_string: The cursor is inside an unterminated string literal
    """

    tokens: TokenWindow
    prefix: str = ""
    info: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    source: str = ""
    word: Optional[Token] = None
    in_string: bool = False

    @property
    def preceding_tokens(self) -> tuple[Token, ...]:
        """Window tokens before the word being completed."""
        if self.word is not None and self.tokens and self.tokens[-1] is self.word:
            return self.tokens[:-1]
        return tuple(self.tokens)

    @property
    def preceding(self) -> Optional[Token]:
        tokens = self.preceding_tokens
        return tokens[-1] if tokens else None

    @property
    def resolver(self) -> Any:
        return self.info.get("resolver")

    @property
    def is_empty(self) -> bool:
        """Nothing typed at all."""
        return len(self.tokens) == 0

    @property
    def in_member_access(self) -> bool:
        previous = self.preceding
        return previous is not None and previous.is_op(*_MEMBER_OPERATORS)

    @property
    def expects_expression(self) -> bool:
        """The word being completed starts a new operand or statement."""
        previous = self.preceding
        if previous is None:
            return True
        if previous.kind == TokenKind.KEYWORD:
            return previous.lowered not in _DECLARING_KEYWORDS | CLASS_CONTEXT_KEYWORDS
        if previous.kind == TokenKind.OPEN_BRACE:
            return True
        if previous.kind == TokenKind.CLOSE_BRACE:
            return previous.text == "}"
        if previous.kind == TokenKind.OPERATOR:
            return previous.text not in _MEMBER_OPERATORS and not previous.invalid
        return False

    @property
    def is_bare_word(self) -> bool:
        """A plain name (function, class, constant, keyword) can go here."""
        if self.in_string or self.prefix.startswith("$"):
            return False
        if not self.expects_expression:
            return False
        return bool(self.prefix) or self.preceding is not None


@dataclass(frozen=True, slots=True)
class CompletionResult:
    """Ranked candidates and the typed prefix they replace."""

    candidates: tuple[Candidate, ...] = ()
    prefix: str = ""

    @property
    def texts(self) -> list[str]:
        return [c.text for c in self.candidates]

    def __len__(self) -> int:
        return len(self.candidates)

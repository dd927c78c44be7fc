"""
Token definitions for the PHP lexer.

The token kinds form a deliberately small, closed set mirroring PHP's lexical
categories. Parsing and completion work from the token `text`; the kind only
says which lexical family a token belongs to.
"""

from dataclasses import dataclass
from enum import Enum, auto

from phprepl.utils.errors import SourceLocation


class TokenKind(Enum):
    """Enumeration of the lexical categories produced by the lexer."""

    IDENTIFIER = auto()
    VARIABLE = auto()     # $name (a lone "$" is degraded)
    OPERATOR = auto()     # operators, punctuation, casts
    STRING = auto()       # quoted strings, heredoc/nowdoc, backticks
    NUMBER = auto()
    OPEN_BRACE = auto()   # ( [ {
    CLOSE_BRACE = auto()  # ) ] }
    KEYWORD = auto()
    WHITESPACE = auto()
    COMMENT = auto()
    EOF = auto()


@dataclass(frozen=True, slots=True)
class Token:
    """
    Represents a single token from the source code.

    Attributes:
        text: The exact source text of the token
        kind: The lexical category
        position: 0-indexed character offset of the first character
        location: Line/column of the first character
        unterminated: True when the token runs to end-of-input without its
            closing marker (string, heredoc, block comment)
        invalid: True for characters PHP would reject
    """

    text: str
    kind: TokenKind
    position: int
    location: SourceLocation
    unterminated: bool = False
    invalid: bool = False

    def __repr__(self) -> str:
        flag = ", unterminated" if self.unterminated else ""
        flag += ", invalid" if self.invalid else ""
        return f"Token({self.kind.name}, {self.text!r}, {self.position}{flag})"

    @property
    def degraded(self) -> bool:
        """Best-effort token: the lexer could not produce a well-formed one."""
        return self.unterminated or self.invalid

    @property
    def end(self) -> int:
        """Offset one past the last character of the token."""
        return self.position + len(self.text)

    @property
    def is_trivia(self) -> bool:
        """Whitespace and comments carry no syntax."""
        return self.kind in (TokenKind.WHITESPACE, TokenKind.COMMENT)

    @property
    def lowered(self) -> str:
        return self.text.lower()

    def is_op(self, *texts: str) -> bool:
        """Check if this is an operator/brace token with one of the given texts."""
        return (
            self.kind in (TokenKind.OPERATOR, TokenKind.OPEN_BRACE, TokenKind.CLOSE_BRACE)
            and self.text in texts
        )

    def is_keyword(self, *words: str) -> bool:
        """Check if this is a keyword token matching one of the given words."""
        return self.kind == TokenKind.KEYWORD and self.lowered in words


# PHP reserved words (case-insensitive)
KEYWORDS: frozenset[str] = frozenset(
    {
        "abstract", "and", "array", "as", "break", "callable", "case", "catch",
        "class", "clone", "const", "continue", "declare", "default", "do",
        "echo", "else", "elseif", "empty", "enddeclare", "endfor",
        "endforeach", "endif", "endswitch", "endwhile", "enum", "eval",
        "exit", "die", "extends", "final", "finally", "fn", "for", "foreach",
        "function", "global", "goto", "if", "implements", "include",
        "include_once", "instanceof", "insteadof", "interface", "isset",
        "list", "match", "namespace", "new", "or", "print", "private",
        "protected", "public", "readonly", "require", "require_once",
        "return", "static", "switch", "throw", "trait", "try", "unset",
        "use", "var", "while", "xor", "yield",
    }
)

# Keywords a statement may start with, offered at the start of input
STATEMENT_STARTERS: tuple[str, ...] = (
    "abstract", "class", "const", "do", "echo", "enum", "final", "for",
    "foreach", "function", "global", "if", "interface", "namespace", "print",
    "readonly", "return", "static", "switch", "throw", "trait", "try",
    "unset", "use", "while",
)

# Cast operators, matched case-insensitively with optional inner spaces
CAST_TYPES: frozenset[str] = frozenset(
    {"int", "integer", "bool", "boolean", "float", "double", "real",
     "string", "binary", "array", "object", "unset"}
)

# Operators and punctuation, longest first so the lexer matches greedily
OPERATORS: tuple[str, ...] = tuple(
    sorted(
        {
            "<<=", ">>=", "**=", "...", "<=>", "===", "!==", "??=", "?->",
            "++", "--", "->", "=>", "::", "==", "!=", "<>", "<=", ">=", "&&",
            "||", "??", "+=", "-=", "*=", "/=", ".=", "%=", "&=", "|=", "^=",
            "<<", ">>", "**",
            "+", "-", "*", "/", "%", "=", "<", ">", "!", ".", "&", "|", "^",
            "~", "?", ":", ";", ",", "@", "\\",
        },
        key=len,
        reverse=True,
    )
)

OPEN_BRACES: dict[str, str] = {"(": ")", "[": "]", "{": "}"}
CLOSE_BRACES: dict[str, str] = {v: k for k, v in OPEN_BRACES.items()}

# Binary operators: a buffer ending in one of these needs another operand
BINARY_OPERATORS: frozenset[str] = frozenset(
    {
        "+", "-", "*", "/", "%", "**", ".", "<<", ">>", "&", "|", "^",
        "&&", "||", "??", "==", "!=", "<>", "===", "!==", "<", ">", "<=",
        ">=", "<=>", "and", "or", "xor", "instanceof",
    }
)

ASSIGNMENT_OPERATORS: frozenset[str] = frozenset(
    {"=", "+=", "-=", "*=", "/=", ".=", "%=", "**=", "&=", "|=", "^=",
     "<<=", ">>=", "??="}
)

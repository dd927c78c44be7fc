"""
PHP Lexer (Tokenizer).

Transforms PHP source into a flat stream of tokens. The lexer is tolerant by
construction: it never raises on malformed or partial input. Unterminated
strings, heredocs and block comments become a single token spanning to the
end of input with `unterminated=True`, and characters PHP would reject come
out as `invalid` operator tokens. Completion and incompleteness detection
both depend on getting *some* token stream for code the user is still typing.
"""

import re
from typing import Iterator, Optional

from phprepl.compiler.tokens import (
    CAST_TYPES,
    CLOSE_BRACES,
    KEYWORDS,
    OPEN_BRACES,
    OPERATORS,
    Token,
    TokenKind,
)
from phprepl.utils.errors import SourceLocation

_CAST_RE = re.compile(r"\([ \t]*([A-Za-z]+)[ \t]*\)")
_HEREDOC_RE = re.compile(r"<<<[ \t]*(?:([A-Za-z_][A-Za-z0-9_]*)|\"([A-Za-z_][A-Za-z0-9_]*)\"|'([A-Za-z_][A-Za-z0-9_]*)')")
_OPEN_TAG_RE = re.compile(r"<\?(?:php\b|=)?", re.IGNORECASE)

_MEMBER_OPERATORS = ("->", "?->", "::")


def _is_ident_start(char: Optional[str]) -> bool:
    return char is not None and (char.isalpha() or char == "_" or ord(char) >= 0x80)


def _is_ident_char(char: Optional[str]) -> bool:
    return char is not None and (char.isalnum() or char == "_" or ord(char) >= 0x80)


class Lexer:
    """
    Tolerant tokenizer for PHP source code.

    The lexer supports:
    - Variables ($name), identifiers and namespaced names (Foo\\Bar)
    - Case-insensitive keywords (member names after -> and :: stay identifiers)
    - Integer and float literals in every PHP notation
    - Single, double and backtick quoted strings with {$...} interpolation
    - Heredoc and nowdoc
    - Line (#, //) and block (/* */) comments, open/close tags
    - Casts such as (int) and (string)

    Usage:
        lexer = Lexer(source_code)
        tokens = lexer.tokenize()
        # or iterate: for token in lexer: ...
    """

    def __init__(self, source: str, filename: Optional[str] = None) -> None:
        """
        Initialize the lexer with source code.

        Args:
            source: The PHP source code to tokenize
            filename: Optional filename for token locations
        """
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: list[Token] = []
        self._last_significant: Optional[Token] = None

    @property
    def _current_char(self) -> Optional[str]:
        """Return the current character or None if at end."""
        if self.pos >= len(self.source):
            return None
        return self.source[self.pos]

    @property
    def _peek_char(self) -> Optional[str]:
        """Return the next character without consuming it."""
        return self._peek_ahead(1)

    def _peek_ahead(self, n: int) -> Optional[str]:
        """Return the character n positions ahead."""
        peek_pos = self.pos + n
        if peek_pos >= len(self.source):
            return None
        return self.source[peek_pos]

    def _location(self) -> SourceLocation:
        """Create a SourceLocation for the current position."""
        return SourceLocation(
            line=self.line,
            column=self.column,
            offset=self.pos,
            filename=self.filename,
        )

    def _advance(self, count: int = 1) -> None:
        """Consume `count` characters, tracking line and column."""
        for _ in range(count):
            if self.pos >= len(self.source):
                return
            char = self.source[self.pos]
            self.pos += 1
            if char == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1

    def _make(
        self,
        kind: TokenKind,
        start: int,
        location: SourceLocation,
        unterminated: bool = False,
        invalid: bool = False,
    ) -> Token:
        return Token(
            text=self.source[start:self.pos],
            kind=kind,
            position=start,
            location=location,
            unterminated=unterminated,
            invalid=invalid,
        )

    # -------------------------------------------------------------------------
    # Trivia
    # -------------------------------------------------------------------------

    def _read_whitespace(self) -> Token:
        start, loc = self.pos, self._location()
        while self._current_char is not None and self._current_char in " \t\r\n\f\v":
            self._advance()
        return self._make(TokenKind.WHITESPACE, start, loc)

    def _read_line_comment(self) -> Token:
        start, loc = self.pos, self._location()
        while self._current_char is not None and self._current_char != "\n":
            self._advance()
        return self._make(TokenKind.COMMENT, start, loc)

    def _read_block_comment(self) -> Token:
        start, loc = self.pos, self._location()
        end = self.source.find("*/", self.pos + 2)
        if end == -1:
            self._advance(len(self.source) - self.pos)
            return self._make(TokenKind.COMMENT, start, loc, unterminated=True)
        self._advance(end + 2 - self.pos)
        return self._make(TokenKind.COMMENT, start, loc)

    # -------------------------------------------------------------------------
    # Literals
    # -------------------------------------------------------------------------

    def _skip_quoted(self, quote_char: str, interpolate: bool) -> bool:
        """
        Consume a quoted string whose opening quote is the current char.

        Returns:
            True if the closing quote was found.
        """
        self._advance()  # opening quote
        while self._current_char is not None:
            char = self._current_char
            if char == "\\":
                self._advance(2)
                continue
            if char == quote_char:
                self._advance()
                return True
            if interpolate and char == "{" and self._peek_char == "$":
                if not self._skip_interpolation():
                    return False
                continue
            self._advance()
        return False

    def _skip_interpolation(self) -> bool:
        """Consume a {$...} interpolation block inside a double-quoted string."""
        depth = 0
        while self._current_char is not None:
            char = self._current_char
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    self._advance()
                    return True
            elif char in "'\"":
                if not self._skip_quoted(char, interpolate=char == '"'):
                    return False
                continue
            self._advance()
        return False

    def _read_string(self, quote_char: str) -> Token:
        """Read a quoted string literal; an unterminated one runs to end-of-input."""
        start, loc = self.pos, self._location()
        closed = self._skip_quoted(quote_char, interpolate=quote_char != "'")
        return self._make(TokenKind.STRING, start, loc, unterminated=not closed)

    def _read_heredoc(self, match: re.Match) -> Token:
        """
        Read a heredoc or nowdoc.

        The closing label may be indented and must not be followed by an
        identifier character. Without it the token runs to end-of-input.
        """
        start, loc = self.pos, self._location()
        label = match.group(1) or match.group(2) or match.group(3)
        self._advance(match.end() - match.start())

        newline = self.source.find("\n", self.pos)
        if newline == -1:
            self._advance(len(self.source) - self.pos)
            return self._make(TokenKind.STRING, start, loc, unterminated=True)

        closing = re.compile(
            r"^[ \t]*" + re.escape(label) + r"(?![A-Za-z0-9_\x80-\uffff])", re.MULTILINE
        )
        found = closing.search(self.source, newline + 1)
        if found is None:
            self._advance(len(self.source) - self.pos)
            return self._make(TokenKind.STRING, start, loc, unterminated=True)

        self._advance(found.end() - self.pos)
        return self._make(TokenKind.STRING, start, loc)

    def _read_number(self) -> Token:
        """
        Read a numeric literal.

        Supports decimal, 0x hex, 0b binary, 0o/leading-zero octal, floats,
        exponents and `_` digit separators.
        """
        start, loc = self.pos, self._location()

        if self._current_char == "0" and self._peek_char is not None and self._peek_char in "xXbBoO":
            self._advance(2)
            while _is_ident_char(self._current_char):
                self._advance()
            return self._make(TokenKind.NUMBER, start, loc)

        def digits() -> None:
            while self._current_char is not None and (
                self._current_char.isdigit() or self._current_char == "_"
            ):
                self._advance()

        digits()
        if self._current_char == "." and (self._peek_char or "").isdigit():
            self._advance()
            digits()
        elif self._current_char == "." and self.pos > start and not (
            self._peek_char == "." or _is_ident_start(self._peek_char)
        ):
            # "1." is a float in PHP
            self._advance()

        if self._current_char is not None and self._current_char in "eE":
            sign = 1 if self._peek_char in ("+", "-") else 0
            if (self._peek_ahead(1 + sign) or "").isdigit():
                self._advance(1 + sign)
                digits()

        return self._make(TokenKind.NUMBER, start, loc)

    # -------------------------------------------------------------------------
    # Names
    # -------------------------------------------------------------------------

    def _read_variable(self) -> Token:
        start, loc = self.pos, self._location()
        self._advance()  # $
        while _is_ident_char(self._current_char):
            self._advance()
        return self._make(TokenKind.VARIABLE, start, loc)

    def _read_name(self) -> Token:
        """
        Read an identifier, keyword or namespaced name.

        Keywords right after `->`, `?->` or `::` are member names and come
        out as identifiers.
        """
        start, loc = self.pos, self._location()
        if self._current_char == "\\":
            self._advance()
        while True:
            while _is_ident_char(self._current_char):
                self._advance()
            if self._current_char == "\\" and _is_ident_start(self._peek_char):
                self._advance()
                continue
            break

        text = self.source[start:self.pos]
        previous = self._last_significant
        after_member = previous is not None and previous.is_op(*_MEMBER_OPERATORS)
        if text.lower() in KEYWORDS and not after_member:
            return self._make(TokenKind.KEYWORD, start, loc)
        return self._make(TokenKind.IDENTIFIER, start, loc)

    # -------------------------------------------------------------------------
    # Operators
    # -------------------------------------------------------------------------

    def _read_operator(self) -> Token:
        start, loc = self.pos, self._location()

        cast = _CAST_RE.match(self.source, self.pos)
        if cast is not None and cast.group(1).lower() in CAST_TYPES:
            self._advance(cast.end() - cast.start())
            return self._make(TokenKind.OPERATOR, start, loc)

        char = self._current_char
        if char == "#" and self._peek_char == "[":
            self._advance(2)
            return self._make(TokenKind.OPEN_BRACE, start, loc)
        if char in OPEN_BRACES:
            self._advance()
            return self._make(TokenKind.OPEN_BRACE, start, loc)
        if char in CLOSE_BRACES:
            self._advance()
            return self._make(TokenKind.CLOSE_BRACE, start, loc)
        if char == "?" and self._peek_char == ">":
            self._advance(2)
            return self._make(TokenKind.OPERATOR, start, loc)

        for operator in OPERATORS:
            if self.source.startswith(operator, self.pos):
                self._advance(len(operator))
                return self._make(TokenKind.OPERATOR, start, loc)

        # Unknown character: keep going with a degraded token
        self._advance()
        return self._make(TokenKind.OPERATOR, start, loc, invalid=True)

    # -------------------------------------------------------------------------
    # Driver
    # -------------------------------------------------------------------------

    def _next_token(self) -> Token:
        """Extract the next token from the source."""
        char = self._current_char

        if char is None:
            return Token("", TokenKind.EOF, self.pos, self._location())

        if char in " \t\r\n\f\v":
            return self._read_whitespace()

        if char == "#" and self._peek_char != "[":
            return self._read_line_comment()
        if char == "/" and self._peek_char == "/":
            return self._read_line_comment()
        if char == "/" and self._peek_char == "*":
            return self._read_block_comment()

        if char == "<":
            if self._peek_char == "?":
                tag = _OPEN_TAG_RE.match(self.source, self.pos)
                start, loc = self.pos, self._location()
                self._advance(tag.end() - tag.start())
                return self._make(TokenKind.COMMENT, start, loc)
            heredoc = _HEREDOC_RE.match(self.source, self.pos)
            if heredoc is not None:
                return self._read_heredoc(heredoc)

        if char in "'\"`":
            return self._read_string(char)
        if char in "bB" and self._peek_char in ("'", '"'):
            start, loc = self.pos, self._location()
            self._advance()
            token = self._read_string(self.source[self.pos])
            return Token(
                self.source[start:self.pos], TokenKind.STRING, start, loc, token.unterminated
            )

        if char.isdigit() or (char == "." and (self._peek_char or "").isdigit()):
            return self._read_number()

        if char == "$":
            return self._read_variable()

        if _is_ident_start(char) or (char == "\\" and _is_ident_start(self._peek_char)):
            return self._read_name()

        return self._read_operator()

    def tokenize(self) -> list[Token]:
        """
        Tokenize the entire source code.

        Returns:
            A list of all tokens including the final EOF token. Never raises.
        """
        self.tokens = []
        self.pos = 0
        self.line = 1
        self.column = 1
        self._last_significant = None

        while True:
            token = self._next_token()
            self.tokens.append(token)
            if token.kind == TokenKind.EOF:
                break
            if not token.is_trivia:
                self._last_significant = token

        return self.tokens

    def __iter__(self) -> Iterator[Token]:
        """Iterate over tokens (re-tokenizes if necessary)."""
        if not self.tokens:
            self.tokenize()
        return iter(self.tokens)


def tokenize(source: str, filename: Optional[str] = None) -> list[Token]:
    """
    Convenience function to tokenize source code.

    Args:
        source: PHP source code, complete or not
        filename: Optional filename for token locations

    Returns:
        List of tokens ending with EOF
    """
    return Lexer(source, filename).tokenize()


def significant(tokens: list[Token]) -> list[Token]:
    """Drop whitespace and comment tokens."""
    return [token for token in tokens if not token.is_trivia]

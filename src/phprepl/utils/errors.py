"""
Error types and source location tracking for phprepl.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """
    Represents a location in the source code.

    Attributes:
        line: 1-indexed line number
        column: 1-indexed column number
        offset: 0-indexed character offset from start of source
        filename: Optional filename for error reporting
    """

    line: int
    column: int
    offset: int = 0
    filename: Optional[str] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"

    def shifted(self, offset: int) -> "SourceLocation":
        """Return this location moved right by `offset` characters on its line."""
        if offset == 0:
            return self
        column = self.column + offset if self.line == 1 else self.column
        return SourceLocation(self.line, column, self.offset + offset, self.filename)


class ErrorKind(Enum):
    """Structured classification of a parse failure."""

    UNEXPECTED_EOF = "unexpected_eof"
    UNTERMINATED = "unterminated"
    UNCLOSED_DELIMITER = "unclosed_delimiter"
    UNEXPECTED_TOKEN = "unexpected_token"
    INVALID_EXPRESSION = "invalid_expression"


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """
    A parse failure reported by the parser.

    Attributes:
        message: Human readable description
        kind: Structured failure kind
        position: 0-indexed character offset of the offending token
        location: Line/column of the offending token
        expecting: What the parser wanted instead, e.g. "';'"
    """

    message: str
    kind: ErrorKind
    position: int
    location: Optional[SourceLocation] = None
    expecting: Optional[str] = None

    @property
    def needs_more_input(self) -> bool:
        """True for failures caused by the source ending too early."""
        return self.kind in (
            ErrorKind.UNEXPECTED_EOF,
            ErrorKind.UNTERMINATED,
            ErrorKind.UNCLOSED_DELIMITER,
        )

    def shifted(self, offset: int) -> "ErrorInfo":
        """Return this error with its position moved by `offset` characters."""
        location = self.location.shifted(offset) if self.location else None
        return ErrorInfo(
            self.message, self.kind, self.position + offset, location, self.expecting
        )


class PhpReplError(Exception):
    """Base exception for all phprepl errors."""

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ) -> None:
        self.message = message
        self.location = location
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = []

        if self.location:
            parts.append(f"[{self.location}]")

        parts.append(self.message)

        if self.source_line and self.location:
            parts.append(f"\n    {self.source_line}")
            # Add caret pointing to the error column
            padding = " " * (4 + self.location.column - 1)
            parts.append(f"\n{padding}^")

        return " ".join(parts) if not self.source_line else parts[0] + " " + "".join(parts[1:])


class LexerError(PhpReplError):
    """Raised by strict token checks; `tokenize` itself never raises."""

    pass


class ParseError(PhpReplError):
    """Raised when the parser encounters a syntax error."""

    def __init__(
        self,
        info: ErrorInfo,
        source_line: Optional[str] = None,
    ) -> None:
        self.info = info
        super().__init__(info.message, info.location, source_line)

    @property
    def kind(self) -> ErrorKind:
        return self.info.kind


class ResolverUnavailable(PhpReplError):
    """Raised when the live scope cannot be queried."""

    pass


class CommandError(PhpReplError):
    """Raised when a meta-command line is malformed."""

    pass


class ExecutionError(PhpReplError):
    """Raised when the execution collaborator fails to run code."""

    def __init__(self, message: str, stderr: str = "") -> None:
        self.stderr = stderr
        super().__init__(message)


class ExecutionTimeout(ExecutionError):
    """Raised when executed code exceeds its time budget."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Execution timed out after {timeout:g}s; process killed")


class ConfigError(PhpReplError):
    """Raised when configuration values are invalid."""

    pass

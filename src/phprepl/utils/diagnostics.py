"""
Rust-like rich diagnostics for phprepl.

Turns parse failures into readable reports with source context and
suggestions.

Example output:
    error[E0201]: syntax error, unexpected ')'
      --> <stdin>:1:1
       |
     1 | )(
       | ^
       |
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from phprepl.utils.errors import CommandError, ErrorInfo, ErrorKind


# =============================================================================
# Error Codes Catalog
# =============================================================================


class ErrorCode:
    """
    Centralized catalog of error codes.

    - E02xx: Syntax errors
    - E04xx: Shell errors
    """

    # Syntax errors: E02xx
    E0201 = "E0201"  # unexpected token
    E0202 = "E0202"  # unclosed delimiter
    E0203 = "E0203"  # unexpected end of input
    E0204 = "E0204"  # invalid expression
    E0206 = "E0206"  # unterminated string/heredoc/comment

    # Shell errors: E04xx
    E0401 = "E0401"  # unknown command
    E0402 = "E0402"  # invalid command option
    E0403 = "E0403"  # execution failed


ERROR_DESCRIPTIONS: dict[str, str] = {
    ErrorCode.E0201: "unexpected token",
    ErrorCode.E0202: "unclosed delimiter",
    ErrorCode.E0203: "unexpected end of input",
    ErrorCode.E0204: "invalid expression",
    ErrorCode.E0206: "unterminated literal",
    ErrorCode.E0401: "unknown command",
    ErrorCode.E0402: "invalid command option",
    ErrorCode.E0403: "execution failed",
}

ERROR_KIND_CODES: dict[ErrorKind, str] = {
    ErrorKind.UNEXPECTED_TOKEN: ErrorCode.E0201,
    ErrorKind.UNCLOSED_DELIMITER: ErrorCode.E0202,
    ErrorKind.UNEXPECTED_EOF: ErrorCode.E0203,
    ErrorKind.INVALID_EXPRESSION: ErrorCode.E0204,
    ErrorKind.UNTERMINATED: ErrorCode.E0206,
}


# =============================================================================
# Diagnostic Types
# =============================================================================


class DiagnosticLevel(Enum):
    """Severity level of a diagnostic message."""

    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"

    def color_code(self) -> str:
        """Get ANSI color code for this level."""
        colors = {
            DiagnosticLevel.ERROR: "\033[91m",  # Red
            DiagnosticLevel.WARNING: "\033[93m",  # Yellow
            DiagnosticLevel.NOTE: "\033[96m",  # Cyan
        }
        return colors.get(self, "")


@dataclass(frozen=True, slots=True)
class SourceSpan:
    """
    A span of source code on a single line.

    Attributes:
        line: 1-indexed line number
        start_col: 1-indexed starting column
        end_col: 1-indexed ending column (exclusive)
        filename: Filename for display
    """

    line: int
    start_col: int
    end_col: int
    filename: str = "<stdin>"

    @classmethod
    def from_location(
        cls, line: int, col: int, length: int = 1, filename: str = "<stdin>"
    ) -> "SourceSpan":
        """Create a span from a single location with a given length."""
        return cls(line=line, start_col=col, end_col=col + length, filename=filename)

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.start_col}"

    @property
    def length(self) -> int:
        return max(1, self.end_col - self.start_col)


@dataclass
class Diagnostic:
    """
    A diagnostic message with source context and help lines.

    Attributes:
        code: Error code (e.g., "E0201")
        level: Severity level
        message: The main diagnostic message
        span: Primary source span, if any
        helps: Help messages with suggestions
    """

    code: str
    level: DiagnosticLevel
    message: str
    span: Optional[SourceSpan] = None
    helps: list[str] = field(default_factory=list)

    def render(self, source_code: str, use_color: bool = True) -> str:
        """
        Render this diagnostic as a formatted string.

        Args:
            source_code: The original source code for context
            use_color: Whether to use ANSI color codes

        Returns:
            A formatted multi-line string representation
        """
        lines: list[str] = []
        source_lines = source_code.splitlines()

        reset = "\033[0m" if use_color else ""
        bold = "\033[1m" if use_color else ""
        level_color = self.level.color_code() if use_color else ""
        blue = "\033[94m" if use_color else ""
        green = "\033[92m" if use_color else ""

        level_str = self.level.value
        if self.code in ERROR_DESCRIPTIONS:
            header = (
                f"{level_color}{bold}{level_str}[{self.code}]{reset}: {bold}{self.message}{reset}"
            )
        else:
            header = f"{level_color}{bold}{level_str}{reset}: {bold}{self.message}{reset}"
        lines.append(header)

        if self.span is not None:
            lines.append(f"  {blue}-->{reset} {self.span}")

            if 1 <= self.span.line <= len(source_lines):
                source_line = source_lines[self.span.line - 1]
                padding = " " * (self.span.start_col - 1)
                underline = "^" * self.span.length
                lines.append(f"   {blue}|{reset}")
                lines.append(f"{blue}{self.span.line:3} |{reset} {source_line}")
                lines.append(f"   {blue}|{reset} {padding}{level_color}{underline}{reset}")
                lines.append(f"   {blue}|{reset}")

        for help_msg in self.helps:
            lines.append(f"   {blue}={reset} {green}help:{reset} {help_msg}")

        return "\n".join(lines)

    def to_simple_message(self) -> str:
        """Get a simple one-line error message."""
        return f"[{self.code}] {self.message}"


def diagnostic_from_error(
    info: ErrorInfo,
    filename: str = "<stdin>",
    length: int = 1,
) -> Diagnostic:
    """Build an error diagnostic for a parse failure."""
    span = None
    if info.location is not None:
        span = SourceSpan.from_location(
            info.location.line, info.location.column, length, filename
        )
    diagnostic = Diagnostic(
        code=ERROR_KIND_CODES.get(info.kind, ErrorCode.E0201),
        level=DiagnosticLevel.ERROR,
        message=info.message,
        span=span,
    )
    if info.kind is ErrorKind.UNCLOSED_DELIMITER:
        diagnostic.helps.append("add the matching closing delimiter")
    return diagnostic


def command_error_diagnostic(error: CommandError, filename: str = "<stdin>") -> Diagnostic:
    """Build the diagnostic for a malformed meta-command line."""
    span = None
    if error.location is not None:
        span = SourceSpan.from_location(
            error.location.line, error.location.column, 1, filename
        )
    return Diagnostic(
        code=ErrorCode.E0402,
        level=DiagnosticLevel.ERROR,
        message=error.message,
        span=span,
    )


def unknown_command_diagnostic(name: str, known: list[str]) -> Diagnostic:
    """Build the diagnostic shown for an unrecognised meta-command."""
    diagnostic = Diagnostic(
        code=ErrorCode.E0401,
        level=DiagnosticLevel.ERROR,
        message=f"unknown command '{name}'",
    )
    similar = suggest_similar(name, known)
    if similar:
        quoted = ", ".join(f"'{s}'" for s in similar)
        diagnostic.helps.append(f"did you mean {quoted}?")
    diagnostic.helps.append("type 'help' for available commands")
    return diagnostic


# =============================================================================
# String Similarity (Levenshtein Distance)
# =============================================================================


def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Calculate the Levenshtein (edit) distance between two strings.

    Args:
        s1: First string
        s2: Second string

    Returns:
        The edit distance as an integer
    """
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    # Use two rows for space efficiency
    previous_row = list(range(len(s2) + 1))

    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def suggest_similar(
    name: str,
    candidates: list[str],
    max_distance: int = 2,
    max_suggestions: int = 3,
) -> list[str]:
    """
    Find similar names from a list of candidates.

    Args:
        name: The name to find suggestions for
        candidates: List of valid names to compare against
        max_distance: Maximum edit distance to consider
        max_suggestions: Maximum number of suggestions to return

    Returns:
        List of similar names, closest first
    """
    if not candidates:
        return []

    scored = []
    for candidate in candidates:
        if abs(len(candidate) - len(name)) > max_distance:
            continue

        distance = levenshtein_distance(name.lower(), candidate.lower())
        if distance <= max_distance:
            scored.append((candidate, distance))

    # Closest first, then alphabetically for ties
    scored.sort(key=lambda x: (x[1], x[0]))

    return [candidate for candidate, _ in scored[:max_suggestions]]


__all__ = [
    "ErrorCode",
    "ERROR_DESCRIPTIONS",
    "ERROR_KIND_CODES",
    "DiagnosticLevel",
    "SourceSpan",
    "Diagnostic",
    "diagnostic_from_error",
    "command_error_diagnostic",
    "unknown_command_diagnostic",
    "levenshtein_distance",
    "suggest_similar",
]

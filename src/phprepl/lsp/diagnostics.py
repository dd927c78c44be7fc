"""
Diagnostic generation for the phprepl language server.

A document is classified like a REPL buffer, without the implicit trailing
semicolon: an INCOMPLETE document gets a warning at its end, a syntax error
an error at the offending token.
"""

from lsprotocol import types

from phprepl.compiler.detector import Detection, IncompletenessDetector, InputStatus
from phprepl.utils.diagnostics import ERROR_KIND_CODES
from phprepl.utils.errors import ErrorInfo

SOURCE_NAME = "phprepl"


def end_position(source: str) -> types.Position:
    """Position just past the last character of `source`."""
    lines = source.split("\n")
    return types.Position(line=len(lines) - 1, character=len(lines[-1]))


def offset_at(source: str, line: int, character: int) -> int:
    """Convert a 0-indexed line/character position to a character offset."""
    offset = 0
    lines = source.split("\n")
    for index in range(min(line, len(lines) - 1)):
        offset += len(lines[index]) + 1
    if line >= len(lines):
        return len(source)
    return min(offset + character, len(source))


class DiagnosticProvider:
    """
    Generates LSP diagnostics for a PHP document.

    Args:
        source: Document text
        uri: Document URI, used as the filename in messages
    """

    def __init__(self, source: str, uri: str) -> None:
        self.source = source
        self.uri = uri
        self.detector = IncompletenessDetector(filename=uri, implicit_semicolon=False)

    def detect(self) -> Detection:
        return self.detector.detect(self.source)

    def get_diagnostics(self) -> list[types.Diagnostic]:
        detection = self.detect()
        if detection.status is InputStatus.COMPLETE or detection.error is None:
            return []
        if detection.status is InputStatus.INCOMPLETE:
            return [self._incomplete(detection.error)]
        return [self._syntax_error(detection.error)]

    def _incomplete(self, error: ErrorInfo) -> types.Diagnostic:
        end = end_position(self.source)
        return types.Diagnostic(
            range=types.Range(start=end, end=end),
            message=f"Incomplete input: {error.message}",
            severity=types.DiagnosticSeverity.Warning,
            code=ERROR_KIND_CODES.get(error.kind),
            source=SOURCE_NAME,
        )

    def _syntax_error(self, error: ErrorInfo) -> types.Diagnostic:
        if error.location is not None:
            line = max(0, error.location.line - 1)
            character = max(0, error.location.column - 1)
        else:
            position = end_position(self.source[: error.position])
            line, character = position.line, position.character

        # Underline the offending token
        rest = self.source[error.position:]
        length = 1
        for index, char in enumerate(rest):
            if char.isspace() or (index > 0 and char in "()[]{},;"):
                length = max(1, index)
                break
        else:
            length = max(1, len(rest))

        return types.Diagnostic(
            range=types.Range(
                start=types.Position(line=line, character=character),
                end=types.Position(line=line, character=character + length),
            ),
            message=error.message,
            severity=types.DiagnosticSeverity.Error,
            code=ERROR_KIND_CODES.get(error.kind),
            source=SOURCE_NAME,
        )

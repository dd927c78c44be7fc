"""
Incompleteness detection for the multi-line input loop.

Each time the user presses Enter the whole accumulated buffer is parsed from
scratch and classified:

    COMPLETE      the buffer parses; hand it to the executor
    INCOMPLETE    the parser ran out of input; prompt for another line
    SYNTAX_ERROR  anything else; report it and drop the buffer
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from phprepl.compiler.ast_nodes import Program
from phprepl.compiler.lexer import tokenize
from phprepl.compiler.parser import Parser
from phprepl.utils.errors import ErrorInfo, ErrorKind, ParseError

logger = logging.getLogger(__name__)


class InputStatus(Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    SYNTAX_ERROR = "syntax_error"


# Error kinds caused by the source ending too early
_NEEDS_MORE_INPUT: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.UNEXPECTED_EOF,
        ErrorKind.UNTERMINATED,
        ErrorKind.UNCLOSED_DELIMITER,
    }
)


@dataclass(frozen=True, slots=True)
class Detection:
    """
    Result of classifying a buffer.

    Attributes:
        status: The verdict
        error: The parse failure for INCOMPLETE and SYNTAX_ERROR
        source: Code to execute for COMPLETE; may differ from the input when
            a missing trailing semicolon was supplied
        program: The parsed program for COMPLETE
    """

    status: InputStatus
    error: Optional[ErrorInfo] = None
    source: str = ""
    program: Optional[Program] = None

    @property
    def is_complete(self) -> bool:
        return self.status is InputStatus.COMPLETE


def classify(kind: object) -> InputStatus:
    """Map a parse error kind onto a verdict; unrecognised kinds are syntax errors."""
    if kind in _NEEDS_MORE_INPUT:
        return InputStatus.INCOMPLETE
    return InputStatus.SYNTAX_ERROR


class IncompletenessDetector:
    """
    Classifies buffers as complete, incomplete or erroneous.

    Args:
        filename: Name used in error locations
        implicit_semicolon: Retry a buffer that only lacks its final `;`
    """

    def __init__(self, filename: str = "<stdin>", implicit_semicolon: bool = True) -> None:
        self.filename = filename
        self.implicit_semicolon = implicit_semicolon

    def _parse(self, source: str) -> Program:
        return Parser(tokenize(source, self.filename), source, self.filename).parse()

    def detect(self, source: str, offset: int = 0) -> Detection:
        """
        Classify `source`.

        Args:
            source: The whole accumulated buffer, with any meta-command prefix
                already removed
            offset: Length of the removed prefix; error positions are shifted
                by it so they point into the original line
        """
        try:
            program = self._parse(source)
        except ParseError as error:
            return self._classify_failure(source, error.info, offset)
        return Detection(InputStatus.COMPLETE, source=source, program=program)

    def _classify_failure(self, source: str, info: ErrorInfo, offset: int) -> Detection:
        status = classify(info.kind)

        if (
            status is InputStatus.INCOMPLETE
            and self.implicit_semicolon
            and info.kind is ErrorKind.UNEXPECTED_EOF
            and info.expecting == "';'"
        ):
            normalized = source.rstrip() + ";"
            try:
                program = self._parse(normalized)
            except ParseError:
                pass
            else:
                logger.debug("Accepted buffer with implicit semicolon")
                return Detection(InputStatus.COMPLETE, source=normalized, program=program)

        return Detection(status, error=info.shifted(offset), source=source)


@dataclass
class BufferState:
    """Lines typed so far for the statement being entered."""

    lines: list[str] = field(default_factory=list)
    last_error: Optional[ErrorInfo] = None
    offset: int = 0

    @property
    def source(self) -> str:
        return "\n".join(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines


class InputBuffer:
    """
    Accumulates lines until they form a complete statement.

    Usage:
        buffer = InputBuffer()
        detection = buffer.push("if (true) {")   # INCOMPLETE
        detection = buffer.push("echo 1; }")     # COMPLETE, buffer cleared
    """

    def __init__(self, detector: Optional[IncompletenessDetector] = None) -> None:
        self.detector = detector or IncompletenessDetector()
        self.state = BufferState()

    @property
    def is_empty(self) -> bool:
        return self.state.is_empty

    @property
    def source(self) -> str:
        return self.state.source

    def push(self, line: str, offset: int = 0) -> Detection:
        """
        Append a line and re-classify the whole buffer.

        The buffer is cleared on COMPLETE and SYNTAX_ERROR and kept on
        INCOMPLETE. `offset` is taken from the first line of a buffer, where
        a meta-command prefix can appear.
        """
        if self.state.is_empty:
            if not line.strip():
                return Detection(InputStatus.COMPLETE, source="")
            self.state.offset = offset

        self.state.lines.append(line)
        detection = self.detector.detect(self.state.source, self.state.offset)

        if detection.status is InputStatus.INCOMPLETE:
            self.state.last_error = detection.error
        else:
            self.reset()
        return detection

    def reset(self) -> None:
        """Drop everything typed so far (completion, error or user abort)."""
        self.state = BufferState()

"""
phprepl Utilities Package.

Common utilities for error handling, source locations, and diagnostics.
"""

from phprepl.utils.diagnostics import (
    ERROR_DESCRIPTIONS,
    Diagnostic,
    DiagnosticLevel,
    ErrorCode,
    SourceSpan,
    command_error_diagnostic,
    diagnostic_from_error,
    levenshtein_distance,
    suggest_similar,
    unknown_command_diagnostic,
)
from phprepl.utils.errors import (
    CommandError,
    ConfigError,
    ErrorInfo,
    ErrorKind,
    ExecutionError,
    ExecutionTimeout,
    LexerError,
    ParseError,
    PhpReplError,
    ResolverUnavailable,
    SourceLocation,
)

__all__ = [
    "ERROR_DESCRIPTIONS",
    "Diagnostic",
    "DiagnosticLevel",
    "ErrorCode",
    "SourceSpan",
    "command_error_diagnostic",
    "diagnostic_from_error",
    "levenshtein_distance",
    "suggest_similar",
    "unknown_command_diagnostic",
    "CommandError",
    "ConfigError",
    "ErrorInfo",
    "ErrorKind",
    "ExecutionError",
    "ExecutionTimeout",
    "LexerError",
    "ParseError",
    "PhpReplError",
    "ResolverUnavailable",
    "SourceLocation",
]

"""
phprepl Compiler Package.

This package contains the input-analysis components:
- Lexer: Tolerant tokenizer for partial PHP source
- Parser: Validates PHP statements and produces a statement-level AST
- AST: Node definitions for declarations and bindings
- Detector: Classifies a buffer as complete, incomplete or a syntax error
"""

from __future__ import annotations

from phprepl.compiler.ast_nodes import (
    BaseASTVisitor,
    Binding,
    ClassDeclaration,
    FunctionDeclaration,
    MemberDeclaration,
    Program,
)
from phprepl.compiler.detector import (
    BufferState,
    Detection,
    IncompletenessDetector,
    InputBuffer,
    InputStatus,
)
from phprepl.compiler.lexer import Lexer, significant, tokenize
from phprepl.compiler.parser import Parser, parse_source
from phprepl.compiler.tokens import Token, TokenKind


def detect(source: str, offset: int = 0) -> Detection:
    """Classify `source` with a default detector."""
    return IncompletenessDetector().detect(source, offset)


__all__ = [
    "BaseASTVisitor",
    "Binding",
    "BufferState",
    "ClassDeclaration",
    "Detection",
    "FunctionDeclaration",
    "IncompletenessDetector",
    "InputBuffer",
    "InputStatus",
    "Lexer",
    "MemberDeclaration",
    "Parser",
    "Program",
    "Token",
    "TokenKind",
    "detect",
    "parse_source",
    "significant",
    "tokenize",
]

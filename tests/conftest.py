"""
Pytest configuration and shared fixtures for phprepl tests.
"""

from typing import Iterable, Optional

import pytest

from phprepl.compiler.ast_nodes import Program
from phprepl.compiler.detector import Detection, IncompletenessDetector
from phprepl.compiler.lexer import Lexer
from phprepl.compiler.parser import Parser
from phprepl.compiler.tokens import Token
from phprepl.completion.engine import CompletionEngine
from phprepl.completion.matchers import Matcher
from phprepl.runtime.environment import (
    ClassInfo,
    MemberInfo,
    MemberKind,
    RuntimeEnvironment,
    VariableBinding,
)
from phprepl.runtime.resolver import ScopeResolver


@pytest.fixture
def lexer_factory():
    """Factory fixture for creating lexers."""

    def _create_lexer(source: str, filename: str = "test.php") -> Lexer:
        return Lexer(source, filename)

    return _create_lexer


@pytest.fixture
def tokenize(lexer_factory):
    """Fixture to tokenize source code."""

    def _tokenize(source: str) -> list[Token]:
        return lexer_factory(source).tokenize()

    return _tokenize


@pytest.fixture
def parse(tokenize):
    """Fixture to parse source code into an AST."""

    def _parse(source: str) -> Program:
        return Parser(tokenize(source), source, "test.php").parse()

    return _parse


@pytest.fixture
def detect():
    """Fixture to classify a buffer."""

    def _detect(source: str, offset: int = 0, implicit_semicolon: bool = True) -> Detection:
        detector = IncompletenessDetector(implicit_semicolon=implicit_semicolon)
        return detector.detect(source, offset)

    return _detect


@pytest.fixture
def environment():
    """An empty environment with a `User` class and a `$user` bound to it."""
    env = RuntimeEnvironment()
    env.define_class(
        ClassInfo(
            name="User",
            members=[
                MemberInfo("getName", MemberKind.METHOD, declaring_class="User"),
                MemberInfo("name", MemberKind.PROPERTY, declaring_class="User"),
                MemberInfo("secret", MemberKind.PROPERTY, visibility="private"),
                MemberInfo("create", MemberKind.METHOD, is_static=True),
                MemberInfo("TABLE", MemberKind.CONSTANT, is_static=True),
            ],
        )
    )
    env.define_variable(VariableBinding("user", type_name="object", class_name="User"))
    return env


@pytest.fixture
def engine_factory():
    """Factory fixture for completion engines over an environment."""

    def _create_engine(
        env: Optional[RuntimeEnvironment] = None,
        matchers: Optional[list[Matcher]] = None,
        commands: Iterable[str] = (),
    ) -> CompletionEngine:
        resolver = ScopeResolver(env if env is not None else RuntimeEnvironment())
        return CompletionEngine(resolver, matchers=matchers, commands=commands)

    return _create_engine


@pytest.fixture
def complete(engine_factory, environment):
    """Fixture to complete text at its end against the `environment` fixture."""

    def _complete(source: str, cursor: Optional[int] = None):
        return engine_factory(environment).complete(source, cursor)

    return _complete

"""
phprepl Completion Package.

Tab completion for partial PHP input:
- CompletionEngine: builds the context and runs matchers in priority order
- Matchers: variables, members, class names, functions, keywords, commands
- Registry matchers: framework container ids inside string arguments
"""

from phprepl.completion.context import (
    Candidate,
    CandidateKind,
    CompletionResult,
    MatchContext,
    TokenWindow,
)
from phprepl.completion.engine import CompletionEngine, ReadlineCompleter, rank
from phprepl.completion.matchers import Matcher, default_matchers
from phprepl.completion.service_matchers import (
    LaravelServiceMatcher,
    RegistryMatcher,
    SymfonyParameterMatcher,
    SymfonyServiceMatcher,
)

__all__ = [
    "Candidate",
    "CandidateKind",
    "CompletionEngine",
    "CompletionResult",
    "LaravelServiceMatcher",
    "MatchContext",
    "Matcher",
    "ReadlineCompleter",
    "RegistryMatcher",
    "SymfonyParameterMatcher",
    "SymfonyServiceMatcher",
    "TokenWindow",
    "default_matchers",
    "rank",
]

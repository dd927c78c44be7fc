"""
Framework registry matchers.

These complete the string argument of a container lookup from an injected
registry of identifiers:

    $container->get('|          Symfony service ids
    $container->getParameter('| Symfony parameters
    $app->make('|               Laravel services

They run before every other matcher and are the only ones consulted while
the cursor is inside a string literal.
"""

from typing import Iterable

from phprepl.completion.context import Candidate, CandidateKind, MatchContext
from phprepl.completion.matchers import Matcher, starts_with

LARAVEL_SERVICES: tuple[str, ...] = (
    "auth", "cache", "config", "db", "events", "files", "hash", "log", "mail",
    "queue", "redis", "request", "router", "session", "url", "validator", "view",
)


class RegistryMatcher(Matcher):
    """
    Completes `<receiver>-><method>('...` from a fixed list of identifiers.

    Args:
        identifiers: The registry contents
        receiver: Variable holding the container, with its $ sigil
        method: Lookup method name
        kind: Candidate kind reported for matches
    """

    completes_strings = True

    def __init__(
        self,
        identifiers: Iterable[str],
        receiver: str,
        method: str,
        kind: CandidateKind = CandidateKind.SERVICE,
    ) -> None:
        self.identifiers = tuple(dict.fromkeys(identifiers))
        self.receiver = receiver
        self.method = method
        self.kind = kind

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.receiver}->{self.method}, {len(self.identifiers)} ids)"

    def can_match(self, ctx: MatchContext) -> bool:
        texts = [token.text for token in ctx.preceding_tokens[-4:]]
        if texts != [self.receiver, "->", self.method, "("]:
            return False
        # Either inside the opening quote or right after the parenthesis
        return ctx.in_string or not ctx.prefix

    def get_matches(self, ctx: MatchContext) -> list[Candidate]:
        matches = [name for name in self.identifiers if starts_with(name, ctx.prefix)]
        if ctx.in_string:
            return [Candidate(name, self.kind) for name in matches]
        return [Candidate(f"'{name}'", self.kind, name) for name in matches]


class SymfonyServiceMatcher(RegistryMatcher):
    """Service ids for `$container->get('...')`."""

    def __init__(self, service_ids: Iterable[str], receiver: str = "$container") -> None:
        super().__init__(service_ids, receiver, "get", CandidateKind.SERVICE)


class SymfonyParameterMatcher(RegistryMatcher):
    """Parameter names for `$container->getParameter('...')`."""

    def __init__(self, parameters: Iterable[str], receiver: str = "$container") -> None:
        super().__init__(parameters, receiver, "getParameter", CandidateKind.PARAMETER)


class LaravelServiceMatcher(RegistryMatcher):
    """Common container bindings for `$app->make('...')`."""

    def __init__(
        self, services: Iterable[str] = LARAVEL_SERVICES, receiver: str = "$app"
    ) -> None:
        super().__init__(services, receiver, "make", CandidateKind.SERVICE)

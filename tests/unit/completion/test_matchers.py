"""
Unit tests for the built-in completion matchers.
"""

import pytest

from phprepl.compiler.tokens import STATEMENT_STARTERS
from phprepl.completion.context import CandidateKind
from phprepl.completion.matchers import (
    ObjectMemberMatcher,
    StaticMemberMatcher,
    VariableMatcher,
    default_matchers,
    fits,
    owner_expression,
)
from phprepl.completion.service_matchers import (
    LaravelServiceMatcher,
    SymfonyParameterMatcher,
    SymfonyServiceMatcher,
)
from phprepl.runtime.environment import (
    ClassInfo,
    MemberInfo,
    MemberKind,
    RuntimeEnvironment,
    VariableBinding,
)


@pytest.fixture
def builtin_complete(engine_factory):
    """Complete against the builtin environment plus a few user symbols."""
    env = RuntimeEnvironment.with_builtins()
    env.define_functions(["format_name"])
    env.define_constant("APP_LIMIT")
    env.define_variable(VariableBinding("date", "object", "DateTime"))

    def _complete(source: str, commands=()):
        return engine_factory(env, commands=commands).complete(source)

    return _complete


class TestHelpers:
    """Matching predicates."""

    def test_fits_is_case_insensitive_substring(self) -> None:
        assert fits("getName", "NAME")
        assert fits("anything", "")
        assert not fits("getName", "id")

    @pytest.mark.parametrize(
        "source, expected",
        [
            ("$user->", "$user"),
            ("$user->profile->", "$user->profile"),
            ("$user?->profile->", "$user?->profile"),
            ("$list[0]->", None),
            ("make()->", None),
            ("$user", None),
        ],
    )
    def test_owner_expression(self, tokenize, source, expected) -> None:
        tokens = tuple(t for t in tokenize(source) if not t.is_trivia and t.text)
        assert owner_expression(tokens) == expected


class TestMemberMatchers:
    """`->` and `::` contexts."""

    def test_instance_members_exclude_statics_and_private(self, complete) -> None:
        texts = complete("$user->").texts
        assert texts == ["getName", "name"]

    def test_member_prefix(self, complete) -> None:
        result = complete("$user->get")
        assert result.texts == ["getName"]
        assert result.candidates[0].kind is CandidateKind.METHOD
        assert result.candidates[0].label == "getName()"

    def test_unknown_variable_has_no_members(self, complete) -> None:
        assert complete("$nobody->").texts == []

    def test_keyword_member_name_prefix(self, engine_factory) -> None:
        """A prefix that is also a keyword still completes members."""
        env = RuntimeEnvironment()
        env.define_class(ClassInfo("Q", members=[MemberInfo("listAll", MemberKind.METHOD)]))
        env.define_variable(VariableBinding("q", "object", "Q"))
        assert engine_factory(env).complete("$q->list").texts == ["listAll"]

    def test_static_members(self, complete) -> None:
        result = complete("User::")
        assert result.texts == ["class", "create", "TABLE"]

    def test_static_members_through_variable(self, complete) -> None:
        assert "create" in complete("$user::").texts

    def test_static_property_has_sigil(self, engine_factory) -> None:
        env = RuntimeEnvironment()
        env.define_class(
            ClassInfo("Counter", members=[MemberInfo("count", MemberKind.PROPERTY, is_static=True)])
        )
        assert engine_factory(env).complete("Counter::$c").texts == ["$count"]

    def test_unknown_class_has_no_static_members(self, complete) -> None:
        assert complete("Missing::").texts == []

    def test_chained_property(self, engine_factory) -> None:
        env = RuntimeEnvironment()
        env.define_class(
            ClassInfo(
                "User",
                members=[MemberInfo("profile", MemberKind.PROPERTY, type_name="Profile")],
            )
        )
        env.define_class(ClassInfo("Profile", members=[MemberInfo("avatar", MemberKind.PROPERTY)]))
        env.define_variable(VariableBinding("u", "object", "User"))
        assert engine_factory(env).complete("$u->profile->").texts == ["avatar"]

    def test_builtin_class_members(self, builtin_complete) -> None:
        assert "format" in builtin_complete("$date->").texts

    def test_matchers_declare_string_support(self) -> None:
        assert not ObjectMemberMatcher.completes_strings
        assert not StaticMemberMatcher.completes_strings


class TestVariableMatcher:
    """`$...` contexts."""

    def test_variables_and_superglobals(self, complete) -> None:
        texts = complete("$").texts
        assert "$user" in texts
        assert "$_SERVER" in texts

    def test_variable_prefix(self, complete) -> None:
        result = complete("echo $us")
        assert result.texts == ["$user"]
        assert result.candidates[0].kind is CandidateKind.VARIABLE
        assert result.prefix == "$us"

    def test_variable_matcher_repr(self) -> None:
        assert repr(VariableMatcher()) == "VariableMatcher()"


class TestClassContexts:
    """Keywords after which only a class name fits."""

    def test_new(self, builtin_complete) -> None:
        texts = builtin_complete("$d = new DateT").texts
        assert texts[:2] == ["DateTime", "DateTimeImmutable"]
        assert "DateTimeInterface" not in texts

    def test_implements_offers_interfaces(self, builtin_complete) -> None:
        texts = builtin_complete("class Box implements Count").texts
        assert texts == ["Countable"]

    def test_implements_list(self, builtin_complete) -> None:
        texts = builtin_complete("class Box implements Countable, Json").texts
        assert texts == ["JsonSerializable"]

    def test_catch(self, builtin_complete) -> None:
        texts = builtin_complete("try { f(); } catch (Runt").texts
        assert texts == ["RuntimeException"]

    def test_catch_union(self, builtin_complete) -> None:
        texts = builtin_complete("try { f(); } catch (RuntimeException | Logic").texts
        assert texts == ["LogicException"]

    def test_new_fully_qualified(self, builtin_complete) -> None:
        texts = builtin_complete("$d = new \\DateT").texts
        assert texts[:2] == ["\\DateTime", "\\DateTimeImmutable"]


class TestBareNames:
    """Functions, classes, constants and keywords."""

    def test_functions_win_over_classes(self, builtin_complete) -> None:
        result = builtin_complete("format")
        assert result.texts == ["format_name", "number_format"]
        assert all(c.kind is CandidateKind.FUNCTION for c in result.candidates)

    def test_class_names_when_no_function_fits(self, builtin_complete) -> None:
        result = builtin_complete("ArrayObj")
        assert result.texts == ["ArrayObject"]
        assert result.candidates[0].kind is CandidateKind.CLASS

    def test_constants(self, builtin_complete) -> None:
        assert builtin_complete("APP_").texts == ["APP_LIMIT"]

    def test_literal_constants(self, complete) -> None:
        assert complete("$flag = tru").texts == ["true"]

    def test_keywords(self, complete) -> None:
        assert complete("whil").texts == ["while", "endwhile"]

    def test_no_bare_names_after_value(self, complete) -> None:
        """After a complete operand only operators could follow."""
        assert complete("$user fo").texts == []

    def test_statement_starters(self, complete) -> None:
        assert complete("").texts == sorted(STATEMENT_STARTERS)

    def test_commands_at_line_start(self, builtin_complete) -> None:
        result = builtin_complete("hist", commands=["help", "hist", "history"])
        assert result.texts == ["hist", "history"]
        assert result.candidates[0].kind is CandidateKind.COMMAND

    def test_commands_only_as_first_word(self, builtin_complete) -> None:
        texts = builtin_complete("echo hel", commands=["help"]).texts
        assert "help" not in texts

    def test_class_prefix_beats_function_substring(self, builtin_complete) -> None:
        result = builtin_complete("Exce")
        assert result.texts[0] == "Exception"
        assert "set_exception_handler" not in result.texts
        assert all(c.kind is CandidateKind.CLASS for c in result.candidates)

    def test_keyword_prefix_beats_constant_substring(self, builtin_complete) -> None:
        texts = builtin_complete("ret").texts
        assert texts[0] == "return"
        assert "JSON_PRETTY_PRINT" not in texts

    def test_code_before_commands(self, builtin_complete) -> None:
        result = builtin_complete("ex", commands=["exit", "help"])
        assert result.texts[:2] == ["explode", "extract"]
        assert all(c.kind is CandidateKind.FUNCTION for c in result.candidates)

    def test_command_prefix_beats_function_substring(self, engine_factory) -> None:
        env = RuntimeEnvironment()
        env.define_functions(["show_timeit"])
        result = engine_factory(env, commands=["timeit"]).complete("time")
        assert result.texts == ["timeit"]
        assert result.candidates[0].kind is CandidateKind.COMMAND

    def test_fully_qualified_function(self, builtin_complete) -> None:
        result = builtin_complete("$n = \\strl")
        assert result.prefix == "\\strl"
        assert result.texts == ["\\strlen", "\\mb_strlen"]
        assert result.candidates[0].label == "\\strlen()"

    def test_fully_qualified_name_has_no_keywords(self, complete) -> None:
        assert complete("\\whil").texts == []

    def test_default_matcher_order(self) -> None:
        names = [type(m).__name__ for m in default_matchers()]
        assert names[0] == "ObjectMemberMatcher"
        assert names[-1] == "StatementStarterMatcher"


class TestRegistryMatchers:
    """Framework container lookups."""

    def test_symfony_service_inside_quote(self, engine_factory) -> None:
        matcher = SymfonyServiceMatcher(["router", "logger"])
        engine = engine_factory(matchers=[matcher])
        result = engine.complete("$container->get('lo")
        assert result.texts == ["logger"]
        assert result.candidates[0].kind is CandidateKind.SERVICE

    def test_symfony_service_before_quote_adds_quotes(self, engine_factory) -> None:
        matcher = SymfonyServiceMatcher(["router"])
        result = engine_factory(matchers=[matcher]).complete("$container->get(")
        assert result.texts == ["'router'"]
        assert result.candidates[0].label == "router"

    def test_symfony_parameters(self, engine_factory) -> None:
        matcher = SymfonyParameterMatcher(["kernel.debug", "kernel.environment"])
        result = engine_factory(matchers=[matcher]).complete("$container->getParameter('kernel.d")
        assert result.texts == ["kernel.debug"]
        assert result.candidates[0].kind is CandidateKind.PARAMETER

    def test_laravel_defaults(self, engine_factory) -> None:
        result = engine_factory(matchers=[LaravelServiceMatcher()]).complete("$app->make('ca")
        assert result.texts == ["cache"]

    def test_other_receiver_is_ignored(self, engine_factory) -> None:
        matcher = SymfonyServiceMatcher(["router"])
        assert engine_factory(matchers=[matcher]).complete("$other->get('r").texts == []

    def test_duplicate_identifiers_collapse(self) -> None:
        assert SymfonyServiceMatcher(["a", "a", "b"]).identifiers == ("a", "b")

    def test_registry_before_defaults(self, engine_factory, environment) -> None:
        matchers = [SymfonyServiceMatcher(["router"]), *default_matchers()]
        engine = engine_factory(environment, matchers=matchers)
        assert engine.complete("$container->get('").texts == ["router"]
        assert engine.complete("$user->na").texts == ["name", "getName"]

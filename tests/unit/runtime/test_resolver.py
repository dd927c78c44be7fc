"""
Unit tests for the scope resolver.
"""

import pytest

from phprepl.runtime.environment import (
    ClassInfo,
    MemberInfo,
    MemberKind,
    RuntimeEnvironment,
    SymbolKind,
    VariableBinding,
)
from phprepl.runtime.resolver import ScopeResolver
from phprepl.utils.errors import ResolverUnavailable


@pytest.fixture
def hierarchy():
    """Animal <- Dog, with a trait and an interface."""
    env = RuntimeEnvironment()
    env.define_class(
        ClassInfo(
            "Named",
            kind="interface",
            members=[MemberInfo("getName", MemberKind.METHOD, declaring_class="Named")],
        )
    )
    env.define_class(
        ClassInfo(
            "Walks",
            kind="trait",
            members=[MemberInfo("walk", MemberKind.METHOD, declaring_class="Walks")],
        )
    )
    env.define_class(
        ClassInfo(
            "Animal",
            interfaces=("Named",),
            members=[
                MemberInfo("speak", MemberKind.METHOD, declaring_class="Animal"),
                MemberInfo("legs", MemberKind.PROPERTY, declaring_class="Animal"),
                MemberInfo("registry", MemberKind.PROPERTY, is_static=True, declaring_class="Animal"),
                MemberInfo("KINGDOM", MemberKind.CONSTANT, is_static=True, declaring_class="Animal"),
                MemberInfo("dna", MemberKind.PROPERTY, visibility="protected"),
            ],
        )
    )
    env.define_class(
        ClassInfo(
            "Dog",
            parent="Animal",
            traits=("Walks",),
            members=[
                MemberInfo("SPEAK", MemberKind.METHOD, declaring_class="Dog"),
                MemberInfo("fetch", MemberKind.METHOD, declaring_class="Dog"),
            ],
        )
    )
    env.define_variable(VariableBinding("rex", "object", "Dog"))
    env.define_variable(VariableBinding("count", "int"))
    return env


class TestListings:
    """Global symbol listings."""

    def test_list_variables(self, hierarchy) -> None:
        assert ScopeResolver(hierarchy).list_variables() == {"rex", "count"}

    def test_list_symbols_by_kind(self, hierarchy) -> None:
        resolver = ScopeResolver(hierarchy)
        assert resolver.list_symbols(SymbolKind.CLASS) == {"Animal", "Dog"}
        assert resolver.list_symbols(SymbolKind.INTERFACE) == {"Named"}
        assert resolver.list_symbols(SymbolKind.TRAIT) == {"Walks"}
        assert resolver.list_symbols(SymbolKind.FUNCTION) == set()

    def test_function_display_names(self) -> None:
        env = RuntimeEnvironment()
        env.define_function("\\MyHelper")
        assert ScopeResolver(env).list_symbols(SymbolKind.FUNCTION) == {"MyHelper"}

    def test_variable_class(self, hierarchy) -> None:
        resolver = ScopeResolver(hierarchy)
        assert resolver.get_variable_class("$rex") == "Dog"
        assert resolver.get_variable_class("count") is None
        assert resolver.get_variable_class("missing") is None

    def test_listings_are_copies(self, hierarchy) -> None:
        ScopeResolver(hierarchy).list_variables().add("intruder")
        assert "intruder" not in hierarchy.variables


class TestMembers:
    """Member lookup through the class hierarchy."""

    def names(self, members) -> list[str]:
        return sorted(m.name for m in members)

    def test_instance_members_include_inherited(self, hierarchy) -> None:
        members = ScopeResolver(hierarchy).lookup_member("$rex")
        assert self.names(members) == ["SPEAK", "fetch", "getName", "legs", "walk"]

    def test_static_methods_only_through_class_name(self) -> None:
        env = RuntimeEnvironment()
        env.define_class(
            ClassInfo(
                "Clock",
                members=[
                    MemberInfo("now", MemberKind.METHOD, is_static=True),
                    MemberInfo("tick", MemberKind.METHOD),
                ],
            )
        )
        env.define_variable(VariableBinding("clock", "object", "Clock"))
        resolver = ScopeResolver(env)
        assert [m.name for m in resolver.lookup_member("$clock")] == ["tick"]
        assert [m.name for m in resolver.lookup_member("Clock")] == ["now"]

    def test_own_method_shadows_parent(self, hierarchy) -> None:
        """Method names are case-insensitive; the subclass wins."""
        members = ScopeResolver(hierarchy).lookup_member("$rex")
        speak = [m for m in members if m.name.lower() == "speak"]
        assert len(speak) == 1
        assert speak[0].declaring_class == "Dog"

    def test_static_lookup_by_class_name(self, hierarchy) -> None:
        members = ScopeResolver(hierarchy).lookup_member("Dog")
        assert self.names(members) == ["KINGDOM", "registry"]

    def test_class_name_case_and_backslash(self, hierarchy) -> None:
        resolver = ScopeResolver(hierarchy)
        assert resolver.lookup_member("\\animal") == resolver.lookup_member("Animal")

    def test_protected_members_hidden(self, hierarchy) -> None:
        names = [m.name for m in ScopeResolver(hierarchy).class_members("Animal")]
        assert "dna" not in names

    @pytest.mark.parametrize(
        "owner",
        ["$missing", "$count", "Unknown", "self", "parent", "static", "$rex[0]", "1 + 2", ""],
    )
    def test_unresolvable_owners_are_empty(self, hierarchy, owner) -> None:
        assert ScopeResolver(hierarchy).lookup_member(owner) == []

    def test_untyped_property_chain_is_empty(self, hierarchy) -> None:
        assert ScopeResolver(hierarchy).lookup_member("$rex->legs") == []

    def test_snapshot_property_types(self, hierarchy) -> None:
        """Observed property classes take precedence for the first hop."""
        hierarchy.define_variable(
            VariableBinding("owner", "object", "Animal", properties={"pet": "Dog"})
        )
        names = self.names(ScopeResolver(hierarchy).lookup_member("$owner->pet"))
        assert "fetch" in names

    def test_cyclic_hierarchy_terminates(self) -> None:
        env = RuntimeEnvironment()
        env.define_class(
            ClassInfo("A", parent="B", members=[MemberInfo("a", MemberKind.METHOD)])
        )
        env.define_class(
            ClassInfo("B", parent="A", members=[MemberInfo("b", MemberKind.METHOD)])
        )
        env.define_variable(VariableBinding("x", "object", "A"))
        assert sorted(m.name for m in ScopeResolver(env).lookup_member("$x")) == ["a", "b"]

    def test_aux_info(self, hierarchy) -> None:
        info = ScopeResolver(hierarchy).aux_info()
        assert info["class_kinds"]["Named"] is SymbolKind.INTERFACE
        assert info["class_kinds"]["Walks"] is SymbolKind.TRAIT


class TestUnavailable:
    """Failures surface as ResolverUnavailable."""

    def test_broken_environment(self) -> None:
        class Broken(RuntimeEnvironment):
            @property
            def variables(self):
                raise RuntimeError("lost connection")

            @variables.setter
            def variables(self, value):
                pass

        resolver = ScopeResolver(Broken())
        with pytest.raises(ResolverUnavailable, match="lost connection"):
            resolver.list_variables()

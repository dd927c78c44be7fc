"""
Unit tests for the runtime environment and symbol collection.
"""

from phprepl.runtime.environment import (
    MemberKind,
    RuntimeEnvironment,
    SymbolKind,
    class_info_from_dict,
)
from phprepl.runtime.resolver import ScopeResolver
from phprepl.runtime.symbols import collect_symbols


class TestEnvironment:
    """Definitions and lookups."""

    def test_functions_are_case_insensitive(self) -> None:
        env = RuntimeEnvironment()
        env.define_function("MyHelper")
        assert env.has_function("myhelper")
        assert env.has_function("\\MYHELPER")
        assert env.functions["myhelper"] == "MyHelper"

    def test_builtins_loaded(self) -> None:
        env = RuntimeEnvironment.with_builtins()
        assert env.has_function("strlen")
        assert env.get_class("ArrayObject") is not None
        assert "PHP_EOL" in env.constants

    def test_user_symbols_exclude_builtins(self) -> None:
        env = RuntimeEnvironment.with_builtins()
        env.define_function("double")
        env.define_constant("LIMIT")
        assert env.user_functions() == ["double"]
        assert env.user_constants() == ["LIMIT"]
        assert env.user_classes() == []
        assert env.is_builtin("STRLEN")

    def test_remove_variable(self) -> None:
        env = RuntimeEnvironment()
        env.merge_snapshot({"variables": {"a": {"type": "int", "preview": "1"}}})
        env.remove_variable("a")
        env.remove_variable("never-defined")
        assert env.variables == {}


class TestSnapshots:
    """Merging what the PHP process reports."""

    def test_merge_snapshot(self) -> None:
        env = RuntimeEnvironment()
        env.merge_snapshot(
            {
                "variables": {
                    "user": {
                        "type": "object",
                        "class": "User",
                        "properties": {"name": "string"},
                        "preview": "User {#1}",
                    }
                },
                "functions": ["helper"],
                "classes": [
                    {
                        "name": "User",
                        "kind": "class",
                        "members": [
                            {"name": "getName", "kind": "method"},
                            {"name": "all", "kind": "method", "static": True},
                        ],
                    }
                ],
                "constants": ["LIMIT"],
            }
        )
        binding = env.get_variable("$user")
        assert binding.class_name == "User"
        assert binding.preview == "User {#1}"
        assert env.has_function("helper")
        assert "LIMIT" in env.constants
        methods = {m.name: m for m in env.get_class("user").members}
        assert methods["all"].is_static
        assert methods["getName"].declaring_class == "User"

    def test_snapshot_variables_are_authoritative(self) -> None:
        env = RuntimeEnvironment()
        env.merge_snapshot({"variables": {"a": {"type": "int"}, "b": {"type": "int"}}})
        env.merge_snapshot({"variables": {"b": {"type": "string"}}})
        assert set(env.variables) == {"b"}
        assert env.variables["b"].type_name == "string"

    def test_snapshot_without_variables_keeps_them(self) -> None:
        env = RuntimeEnvironment()
        env.merge_snapshot({"variables": {"a": {"type": "int"}}})
        env.merge_snapshot({"functions": ["f"]})
        assert "a" in env.variables

    def test_class_info_defaults(self) -> None:
        info = class_info_from_dict({"name": "Shape", "kind": "interface"})
        assert info.symbol_kind is SymbolKind.INTERFACE
        assert info.members == []
        assert info.parent is None


class TestSymbolCollection:
    """Declarations and bindings from parsed input."""

    def test_collects_declarations(self, parse) -> None:
        program = parse(
            """
            function double($n) { return $n * 2; }
            const LIMIT = 3;
            interface Shape { public function area(): float; }
            class Circle implements Shape {
                public function __construct(private float $r) {}
                public function area(): float { return 3.14 * $this->r ** 2; }
            }
            """
        )
        env = collect_symbols(program)
        assert env.has_function("double")
        assert "LIMIT" in env.constants
        circle = env.get_class("Circle")
        assert circle.interfaces == ("Shape",)
        assert env.get_class("Shape").symbol_kind is SymbolKind.INTERFACE
        kinds = {m.name: m.kind for m in circle.members}
        assert kinds["area"] is MemberKind.METHOD
        assert kinds["r"] is MemberKind.PROPERTY

    def test_new_binds_class(self, parse) -> None:
        env = collect_symbols(parse("$c = new Circle(2);"))
        assert env.get_variable("c").class_name == "Circle"

    def test_enum_cases_are_static_constants(self, parse) -> None:
        env = collect_symbols(parse("enum Suit { case Hearts; case Spades; }"))
        members = ScopeResolver(env).lookup_member("Suit")
        assert sorted(m.name for m in members) == ["Hearts", "Spades"]
        assert all(m.kind is MemberKind.CONSTANT for m in members)

    def test_inferred_class_feeds_completion(self, parse) -> None:
        env = collect_symbols(
            parse("class User { public function getName() {} } $u = new User();")
        )
        names = [m.name for m in ScopeResolver(env).lookup_member("$u")]
        assert names == ["getName"]

    def test_snapshot_type_survives_untyped_assignment(self, parse) -> None:
        """`$x = f()` says nothing new about a value the PHP process described."""
        env = RuntimeEnvironment()
        env.merge_snapshot({"variables": {"x": {"type": "int", "preview": "5"}}})
        collect_symbols(parse("$x = f();"), env)
        assert env.get_variable("x").preview == "5"

    def test_snapshot_class_survives_reassignment(self, parse) -> None:
        env = RuntimeEnvironment()
        env.merge_snapshot(
            {"variables": {"u": {"type": "object", "class": "User", "preview": "User {#1}"}}}
        )
        collect_symbols(parse("$u = load_user(); $v = new User();"), env)
        assert env.get_variable("u").class_name == "User"
        assert env.get_variable("u").preview == "User {#1}"

        collect_symbols(parse("$u = new Admin();"), env)
        assert env.get_variable("u").class_name == "Admin"

    def test_namespaced_class_name(self, parse) -> None:
        env = collect_symbols(parse("namespace App\\Models; class User {}"))
        assert env.get_class("App\\Models\\User") is not None

    def test_foreach_bindings(self, parse) -> None:
        env = collect_symbols(parse("foreach ([1, 2] as $i => $v) {}"))
        assert {"i", "v"} <= set(env.variables)

"""
Runtime environment model.

The environment is what the shell knows about the live PHP session: variable
bindings, user and builtin functions, classes with their members, and
constants. It is fed from two places: symbols collected from statements that
parsed successfully, and JSON snapshots emitted by the PHP executor after each
run. Completion only ever reads it through the scope resolver.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Iterable, Optional


class SymbolKind(Enum):
    """Kinds of global symbols that can be listed."""

    FUNCTION = auto()
    CLASS = auto()
    INTERFACE = auto()
    TRAIT = auto()
    CONSTANT = auto()


class MemberKind(Enum):
    """Kinds of class members."""

    METHOD = "method"
    PROPERTY = "property"
    CONSTANT = "constant"


# Class-like declaration keyword -> symbol kind
CLASS_KIND_SYMBOLS: dict[str, SymbolKind] = {
    "class": SymbolKind.CLASS,
    "enum": SymbolKind.CLASS,
    "interface": SymbolKind.INTERFACE,
    "trait": SymbolKind.TRAIT,
}


def normalize_name(name: str) -> str:
    """Functions, classes and namespaces are case-insensitive in PHP."""
    return name.lstrip("\\").lower()


@dataclass(frozen=True, slots=True)
class MemberInfo:
    """
    A member of a class.

    Attributes:
        name: Member name (properties without the $ sigil)
        kind: Method, property or constant (enum cases are constants)
        is_static: Reachable through `::`
        visibility: "public", "protected" or "private"
        declaring_class: Class the member is declared on
        type_name: Declared or observed class of a property value
    """

    name: str
    kind: MemberKind
    is_static: bool = False
    visibility: str = "public"
    declaring_class: str = ""
    type_name: Optional[str] = None

    @property
    def is_public(self) -> bool:
        return self.visibility == "public"


@dataclass
class ClassInfo:
    """A class, interface, trait or enum known to the session."""

    name: str
    kind: str = "class"
    parent: Optional[str] = None
    interfaces: tuple[str, ...] = ()
    traits: tuple[str, ...] = ()
    members: list[MemberInfo] = field(default_factory=list)

    @property
    def symbol_kind(self) -> SymbolKind:
        return CLASS_KIND_SYMBOLS.get(self.kind, SymbolKind.CLASS)


@dataclass
class VariableBinding:
    """
    A variable in the session scope.

    Attributes:
        name: Variable name without the $ sigil
        type_name: PHP type as reported by gettype(), when known
        class_name: Class of an object value
        properties: Public property name -> class name (or type) of its value
        preview: Short printable rendering of the value
    """

    name: str
    type_name: Optional[str] = None
    class_name: Optional[str] = None
    properties: dict[str, str] = field(default_factory=dict)
    preview: Optional[str] = None


class RuntimeEnvironment:
    """
    Mutable store of everything known about the session scope.

    The environment is owned by the session. Readers go through
    `ScopeResolver`, which never mutates it.
    """

    def __init__(self) -> None:
        self.variables: dict[str, VariableBinding] = {}
        # normalized name -> display name
        self.functions: dict[str, str] = {}
        self.classes: dict[str, ClassInfo] = {}
        self.constants: set[str] = set()
        # Normalized names present before any user code ran
        self._builtin_names: frozenset[str] = frozenset()

    @classmethod
    def with_builtins(cls) -> "RuntimeEnvironment":
        """Create an environment preloaded with common PHP builtins."""
        from phprepl.runtime.builtins import load_builtins

        environment = cls()
        load_builtins(environment)
        environment._builtin_names = frozenset(
            [*environment.functions, *environment.classes]
            + [normalize_name(name) for name in environment.constants]
        )
        return environment

    # -------------------------------------------------------------------------
    # Definitions
    # -------------------------------------------------------------------------

    def define_variable(self, binding: VariableBinding) -> None:
        self.variables[binding.name] = binding

    def remove_variable(self, name: str) -> None:
        self.variables.pop(name, None)

    def define_function(self, name: str) -> None:
        self.functions[normalize_name(name)] = name.lstrip("\\")

    def define_functions(self, names: Iterable[str]) -> None:
        for name in names:
            self.define_function(name)

    def define_class(self, info: ClassInfo) -> None:
        self.classes[normalize_name(info.name)] = info

    def define_constant(self, name: str) -> None:
        self.constants.add(name)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_variable(self, name: str) -> Optional[VariableBinding]:
        return self.variables.get(name.lstrip("$"))

    def get_class(self, name: str) -> Optional[ClassInfo]:
        """Find a class by name, case-insensitively, with or without a leading backslash."""
        return self.classes.get(normalize_name(name))

    def has_function(self, name: str) -> bool:
        return normalize_name(name) in self.functions

    def is_builtin(self, name: str) -> bool:
        return normalize_name(name) in self._builtin_names

    def user_functions(self) -> list[str]:
        return sorted(n for n in self.functions.values() if not self.is_builtin(n))

    def user_classes(self) -> list[ClassInfo]:
        return sorted(
            (info for info in self.classes.values() if not self.is_builtin(info.name)),
            key=lambda info: info.name.lower(),
        )

    def user_constants(self) -> list[str]:
        return sorted(n for n in self.constants if not self.is_builtin(n))

    # -------------------------------------------------------------------------
    # Executor snapshots
    # -------------------------------------------------------------------------

    def merge_snapshot(self, snapshot: dict[str, Any]) -> None:
        """
        Merge a snapshot reported by the PHP process.

        The snapshot's variable list is authoritative (variables missing from
        it were unset); functions, classes and constants are added.

        Snapshot format:
            {
              "variables": {"user": {"type": "object", "class": "User",
                                     "properties": {"name": "string"},
                                     "preview": "User {...}"}},
              "functions": ["helper"],
              "classes": [{"name": "User", "kind": "class", "parent": null,
                           "interfaces": [], "members": [...]}],
              "constants": ["LIMIT"]
            }
        """
        if "variables" in snapshot:
            variables: dict[str, VariableBinding] = {}
            for name, info in (snapshot.get("variables") or {}).items():
                variables[name] = VariableBinding(
                    name=name,
                    type_name=info.get("type"),
                    class_name=info.get("class"),
                    properties=dict(info.get("properties") or {}),
                    preview=info.get("preview"),
                )
            self.variables = variables

        self.define_functions(snapshot.get("functions") or ())

        for data in snapshot.get("classes") or ():
            self.define_class(class_info_from_dict(data))

        for name in snapshot.get("constants") or ():
            self.define_constant(name)


def class_info_from_dict(data: dict[str, Any]) -> ClassInfo:
    """Build a ClassInfo from its snapshot representation."""
    name = data["name"]
    members = [
        MemberInfo(
            name=member["name"],
            kind=MemberKind(member.get("kind", "method")),
            is_static=bool(member.get("static", False)),
            visibility=member.get("visibility", "public"),
            declaring_class=member.get("class") or name,
            type_name=member.get("type"),
        )
        for member in data.get("members") or ()
    ]
    return ClassInfo(
        name=name,
        kind=data.get("kind", "class"),
        parent=data.get("parent"),
        interfaces=tuple(data.get("interfaces") or ()),
        traits=tuple(data.get("traits") or ()),
        members=members,
    )

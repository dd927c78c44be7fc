"""
Scope/Symbol resolver.

Read-only query interface over a `RuntimeEnvironment`. Matchers use it to
list variables and global symbols and to find the members reachable from an
owner expression such as `$user`, `$user->profile` or `DateTime`.
"""

import logging
import re
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, TypeVar

from phprepl.runtime.environment import (
    ClassInfo,
    MemberInfo,
    MemberKind,
    RuntimeEnvironment,
    SymbolKind,
)
from phprepl.utils.errors import ResolverUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_VARIABLE_CHAIN_RE = re.compile(
    r"^\$([A-Za-z_\x80-\uffff][A-Za-z0-9_\x80-\uffff]*)((?:\??->[A-Za-z_\x80-\uffff][A-Za-z0-9_\x80-\uffff]*)*)$"
)
_CLASS_NAME_RE = re.compile(r"^\\?[A-Za-z_\x80-\uffff][A-Za-z0-9_\x80-\uffff\\]*$")
_CHAIN_SPLIT_RE = re.compile(r"\??->")

# Relative class names depend on the calling class, which a shell prompt lacks
_RELATIVE_CLASS_NAMES: frozenset[str] = frozenset({"self", "static", "parent"})


class ScopeResolver:
    """
    Read-only view of the live scope.

    Every query goes through `_guard`: a failing environment surfaces as
    `ResolverUnavailable` and never as an arbitrary exception.
    """

    def __init__(self, environment: RuntimeEnvironment) -> None:
        self._environment = environment

    def _guard(self, query: Callable[[], T]) -> T:
        try:
            return query()
        except ResolverUnavailable:
            raise
        except Exception as error:
            raise ResolverUnavailable(f"Scope lookup failed: {error}") from error

    # -------------------------------------------------------------------------
    # Global listings
    # -------------------------------------------------------------------------

    def list_variables(self) -> set[str]:
        """Names of variables in scope, without the $ sigil."""
        return self._guard(lambda: set(self._environment.variables))

    def list_symbols(self, kind: SymbolKind) -> set[str]:
        """Names of declared symbols of one kind."""
        return self._guard(lambda: self._list_symbols(kind))

    def _list_symbols(self, kind: SymbolKind) -> set[str]:
        env = self._environment
        if kind is SymbolKind.FUNCTION:
            return set(env.functions.values())
        if kind is SymbolKind.CONSTANT:
            return set(env.constants)
        return {info.name for info in env.classes.values() if info.symbol_kind is kind}

    def get_variable_class(self, name: str) -> Optional[str]:
        return self._guard(lambda: self._variable_class(name))

    def _variable_class(self, name: str) -> Optional[str]:
        binding = self._environment.get_variable(name)
        return binding.class_name if binding else None

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    def lookup_member(self, owner_expr: str) -> list[MemberInfo]:
        """
        Members reachable from an owner expression.

        `$var` and `$var->prop->...` chains yield public non-static members
        (methods and properties) of the value's class.
        `ClassName` yields public static members: static methods and
        properties, constants and enum cases. Undefined, untyped or
        partially typed owners yield an empty list.
        """
        return self._guard(lambda: self._lookup_member(owner_expr.strip()))

    def _lookup_member(self, owner_expr: str) -> list[MemberInfo]:
        match = _VARIABLE_CHAIN_RE.match(owner_expr)
        if match is not None:
            class_name = self._resolve_chain(match.group(1), match.group(2))
            if class_name is None:
                return []
            return [m for m in self.class_members(class_name) if not m.is_static]

        if _CLASS_NAME_RE.match(owner_expr) and owner_expr.lower() not in _RELATIVE_CLASS_NAMES:
            return [m for m in self.class_members(owner_expr) if m.is_static]

        return []

    def _resolve_chain(self, variable: str, chain: str) -> Optional[str]:
        binding = self._environment.get_variable(variable)
        if binding is None:
            return None

        class_name = binding.class_name
        hops = [hop for hop in _CHAIN_SPLIT_RE.split(chain) if hop]
        for index, prop in enumerate(hops):
            if class_name is None:
                return None
            if index == 0 and prop in binding.properties:
                class_name = binding.properties[prop]
            else:
                class_name = self._property_type(class_name, prop)
        if class_name is not None and self._environment.get_class(class_name) is None:
            return None
        return class_name

    def _property_type(self, class_name: str, prop: str) -> Optional[str]:
        for member in self.class_members(class_name):
            if member.kind is MemberKind.PROPERTY and member.name == prop:
                return member.type_name
        return None

    def class_members(self, class_name: str) -> list[MemberInfo]:
        """
        Public members of a class including inherited ones.

        Own members come first, then traits, the parent chain and
        interfaces; a member declared lower in the hierarchy shadows one
        with the same name above it.
        """
        members: dict[tuple[MemberKind, str], MemberInfo] = {}
        self._collect(class_name, members, set())
        return [member for member in members.values() if member.is_public]

    def _collect(
        self,
        class_name: str,
        members: dict[tuple[MemberKind, str], MemberInfo],
        seen: set[str],
    ) -> None:
        info = self._environment.get_class(class_name)
        if info is None:
            return
        key = info.name.lower()
        if key in seen:
            logger.debug("Skipping already visited class %s", info.name)
            return
        seen.add(key)

        for member in info.members:
            # Method names are case-insensitive, properties and constants are not
            name = member.name.lower() if member.kind is MemberKind.METHOD else member.name
            members.setdefault((member.kind, name), member)

        ancestors: list[str] = [*info.traits]
        if info.parent:
            ancestors.append(info.parent)
        ancestors.extend(info.interfaces)
        for ancestor in ancestors:
            self._collect(ancestor, members, seen)

    def get_class(self, class_name: str) -> Optional[ClassInfo]:
        return self._guard(lambda: self._environment.get_class(class_name))

    # -------------------------------------------------------------------------
    # Matcher context
    # -------------------------------------------------------------------------

    def aux_info(self) -> Mapping[str, Any]:
        """
        Read-only extras for matchers.

        `class_kinds` maps every known class, interface and trait name to its
        `SymbolKind`; class-name matchers read it instead of one listing
        per kind.
        """
        return self._guard(
            lambda: MappingProxyType(
                {
                    "class_kinds": {
                        info.name: info.symbol_kind for info in self._environment.classes.values()
                    },
                }
            )
        )

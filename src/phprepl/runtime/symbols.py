"""
Symbol collection from parsed input.

Walks a parsed program and records what it declares or binds into a
`RuntimeEnvironment`, so completion knows about `$user = new User` before (or
without) a PHP process reporting it.
"""

from typing import Optional

from phprepl.compiler.ast_nodes import (
    BaseASTVisitor,
    Binding,
    ClassDeclaration,
    CompoundStatement,
    ConstDeclaration,
    EchoStatement,
    ExpressionStatement,
    FunctionDeclaration,
    MemberDeclaration,
    Program,
    SimpleStatement,
)
from phprepl.runtime.environment import (
    ClassInfo,
    MemberInfo,
    MemberKind,
    RuntimeEnvironment,
    VariableBinding,
)

# Enum cases are reached like class constants
_MEMBER_KINDS: dict[str, MemberKind] = {
    "method": MemberKind.METHOD,
    "property": MemberKind.PROPERTY,
    "constant": MemberKind.CONSTANT,
    "case": MemberKind.CONSTANT,
}


class SymbolCollector(BaseASTVisitor):
    """
    Records declarations and variable bindings into an environment.

    Usage:
        collector = SymbolCollector(environment)
        collector.collect(program)
    """

    def __init__(self, environment: RuntimeEnvironment) -> None:
        self.environment = environment
        self._namespace: Optional[str] = None

    def collect(self, program: Program) -> RuntimeEnvironment:
        self.visit(program)
        return self.environment

    def _bind(self, bindings: tuple[Binding, ...]) -> None:
        for binding in bindings:
            existing = self.environment.get_variable(binding.name)
            if existing is not None and binding.class_name in (None, existing.class_name):
                # Nothing new over what a snapshot already said
                continue
            if binding.class_name is not None:
                variable = VariableBinding(
                    binding.name, type_name="object", class_name=binding.class_name
                )
            else:
                variable = VariableBinding(binding.name)
            self.environment.define_variable(variable)

    def visit_expression_statement(self, node: ExpressionStatement) -> None:
        self._bind(node.bindings)

    def visit_echo_statement(self, node: EchoStatement) -> None:
        self._bind(node.bindings)

    def visit_simple_statement(self, node: SimpleStatement) -> None:
        self._bind(node.bindings)

    def visit_compound_statement(self, node: CompoundStatement) -> None:
        self._bind(node.bindings)
        super().visit_compound_statement(node)

    def visit_function_declaration(self, node: FunctionDeclaration) -> None:
        self.environment.define_function(node.name)

    def visit_const_declaration(self, node: ConstDeclaration) -> None:
        for name in node.names:
            self.environment.define_constant(name)

    def visit_class_declaration(self, node: ClassDeclaration) -> None:
        members = [self._member_info(member, node.name) for member in node.members]
        self.environment.define_class(
            ClassInfo(
                name=node.qualified_name,
                kind=node.kind,
                parent=node.parent,
                interfaces=node.interfaces,
                traits=node.traits,
                members=members,
            )
        )

    def _member_info(self, member: MemberDeclaration, owner: str) -> MemberInfo:
        kind = _MEMBER_KINDS[member.kind]
        return MemberInfo(
            name=member.name,
            kind=kind,
            is_static=member.is_static or kind is MemberKind.CONSTANT,
            visibility=member.visibility,
            declaring_class=owner,
        )


def collect_symbols(
    program: Program, environment: Optional[RuntimeEnvironment] = None
) -> RuntimeEnvironment:
    """Convenience function: collect a program's symbols into an environment."""
    return SymbolCollector(environment or RuntimeEnvironment()).collect(program)

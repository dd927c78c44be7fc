"""
Abstract Syntax Tree (AST) node definitions for PHP input.

The tree is statement-level: expressions are validated by the parser but only
the facts the shell needs survive into the tree (declared names, class
members, variable bindings). Every node is immutable and carries source
location information; declarations also record the (start, end) character
offsets of their source text as `span`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from phprepl.utils.errors import SourceLocation


class ASTNode(ABC):
    """Base class for all AST nodes."""

    location: Optional[SourceLocation]

    @abstractmethod
    def accept(self, visitor: "ASTVisitor") -> Any:
        """Accept a visitor for tree traversal."""
        pass


class ASTVisitor(ABC):
    """
    Visitor pattern base class for AST traversal.

    Implement this to create custom AST processors (symbol collectors,
    statement classifiers, ...).
    """

    def visit(self, node: ASTNode) -> Any:
        """Dispatch to the appropriate visit method."""
        return node.accept(self)


class Statement(ASTNode):
    """Base class for all statements."""

    pass


# -----------------------------------------------------------------------------
# Bindings
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Binding:
    """
    A variable bound by a statement.

    Examples:
        $x = 1           -> Binding("x")
        $user = new User -> Binding("user", class_name="User")
        foreach ($a as $k => $v) -> Binding("k"), Binding("v")
    """

    name: str
    class_name: Optional[str] = None
    location: Optional[SourceLocation] = None


@dataclass(frozen=True, slots=True)
class Parameter:
    """A function or method parameter."""

    name: str
    type_name: Optional[str] = None
    has_default: bool = False
    promoted: bool = False
    visibility: str = "public"


@dataclass(frozen=True, slots=True)
class MemberDeclaration:
    """
    A member declared inside a class-like body.

    Attributes:
        name: Member name (properties without the $ sigil)
        kind: "method", "property", "constant" or "case"
        is_static: True for static methods and properties
        visibility: "public", "protected" or "private"
    """

    name: str
    kind: str
    is_static: bool = False
    visibility: str = "public"
    location: Optional[SourceLocation] = None


# -----------------------------------------------------------------------------
# Statements
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExpressionStatement(Statement):
    """An expression used as a statement, with the variables it assigns."""

    bindings: tuple[Binding, ...] = ()
    is_assignment: bool = False
    location: Optional[SourceLocation] = None

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_expression_statement(self)


@dataclass(frozen=True, slots=True)
class EchoStatement(Statement):
    """echo expr, expr;"""

    bindings: tuple[Binding, ...] = ()
    location: Optional[SourceLocation] = None

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_echo_statement(self)


@dataclass(frozen=True, slots=True)
class FunctionDeclaration(Statement):
    """function name(params) { ... }"""

    name: str
    parameters: tuple[Parameter, ...] = ()
    return_type: Optional[str] = None
    location: Optional[SourceLocation] = None
    span: tuple[int, int] = (0, 0)

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_function_declaration(self)


@dataclass(frozen=True, slots=True)
class ClassDeclaration(Statement):
    """
    A class, interface, trait or enum declaration.

    Examples:
        final class Foo extends Bar implements Baz { ... }
        interface Shape extends Countable { ... }
        enum Suit: string { case Hearts = 'H'; }
    """

    name: str
    kind: str = "class"
    parent: Optional[str] = None
    interfaces: tuple[str, ...] = ()
    traits: tuple[str, ...] = ()
    members: tuple[MemberDeclaration, ...] = ()
    namespace: Optional[str] = None
    location: Optional[SourceLocation] = None
    span: tuple[int, int] = (0, 0)

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_class_declaration(self)

    @property
    def qualified_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}\\{self.name}"
        return self.name


@dataclass(frozen=True, slots=True)
class ConstDeclaration(Statement):
    """const NAME = value, OTHER = value;"""

    names: tuple[str, ...]
    location: Optional[SourceLocation] = None
    span: tuple[int, int] = (0, 0)

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_const_declaration(self)


@dataclass(frozen=True, slots=True)
class CompoundStatement(Statement):
    """
    A statement owning nested statements.

    Used for blocks, if/else chains, loops, switch, try/catch, declare and
    braced namespaces. `keyword` is the introducing keyword ("{" for bare
    blocks).
    """

    keyword: str
    body: tuple[Statement, ...] = ()
    bindings: tuple[Binding, ...] = ()
    location: Optional[SourceLocation] = None

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_compound_statement(self)


@dataclass(frozen=True, slots=True)
class SimpleStatement(Statement):
    """
    A statement with no nested statements (return, break, global, use, ...).

    Examples:
        return $x;  global $config;  use Foo\\Bar;  ;
    """

    keyword: str
    bindings: tuple[Binding, ...] = ()
    location: Optional[SourceLocation] = None

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_simple_statement(self)


@dataclass(frozen=True, slots=True)
class Program(ASTNode):
    """
    The root node of a parsed buffer.

    Contains all top-level statements.
    """

    statements: tuple[Statement, ...]
    location: Optional[SourceLocation] = None

    def accept(self, visitor: ASTVisitor) -> Any:
        return visitor.visit_program(self)

    @property
    def is_declaration_only(self) -> bool:
        """True when every statement only declares functions, classes or constants."""
        return bool(self.statements) and all(
            isinstance(stmt, (FunctionDeclaration, ClassDeclaration, ConstDeclaration))
            for stmt in self.statements
        )


# -----------------------------------------------------------------------------
# Visitor with default implementations
# -----------------------------------------------------------------------------


class BaseASTVisitor(ASTVisitor):
    """
    Base visitor with default implementations that traverse children.

    Subclass this and override specific visit_* methods as needed.
    """

    def visit_program(self, node: Program) -> Any:
        for stmt in node.statements:
            self.visit(stmt)

    def visit_compound_statement(self, node: CompoundStatement) -> Any:
        for stmt in node.body:
            self.visit(stmt)

    def visit_expression_statement(self, node: ExpressionStatement) -> Any:
        pass

    def visit_echo_statement(self, node: EchoStatement) -> Any:
        pass

    def visit_function_declaration(self, node: FunctionDeclaration) -> Any:
        pass

    def visit_class_declaration(self, node: ClassDeclaration) -> Any:
        pass

    def visit_const_declaration(self, node: ConstDeclaration) -> Any:
        pass

    def visit_simple_statement(self, node: SimpleStatement) -> Any:
        pass

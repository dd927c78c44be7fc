"""
PHP Parser.

A recursive descent parser over the lexer's token stream. It validates the
statement and expression grammar used interactively and builds a
statement-level AST. Expressions are parsed with precedence climbing but only
their bindings (assigned variables, instantiated classes) are kept.

Every failure raises `ParseError` carrying a structured `ErrorInfo`. The
`ErrorKind` separates "ran out of input" (UNEXPECTED_EOF, UNCLOSED_DELIMITER,
UNTERMINATED) from genuine mistakes (UNEXPECTED_TOKEN, INVALID_EXPRESSION);
the incompleteness detector relies on that distinction.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from phprepl.compiler.ast_nodes import (
    Binding,
    ClassDeclaration,
    CompoundStatement,
    ConstDeclaration,
    EchoStatement,
    ExpressionStatement,
    FunctionDeclaration,
    MemberDeclaration,
    Parameter,
    Program,
    SimpleStatement,
    Statement,
)
from phprepl.compiler.lexer import tokenize
from phprepl.compiler.tokens import (
    ASSIGNMENT_OPERATORS,
    Token,
    TokenKind,
)
from phprepl.utils.errors import ErrorInfo, ErrorKind, ParseError


# Operator precedence levels (higher = tighter binding)
class Precedence:
    """Operator precedence levels."""

    NONE = 0
    LOGICAL_OR = 1       # or
    LOGICAL_XOR = 2      # xor
    LOGICAL_AND = 3      # and
    ASSIGNMENT = 4       # = += ...
    TERNARY = 5          # ? :
    COALESCE = 6         # ??
    OR = 7               # ||
    AND = 8              # &&
    BITWISE_OR = 9       # |
    BITWISE_XOR = 10     # ^
    BITWISE_AND = 11     # &
    EQUALITY = 12        # == != === !== <> <=>
    COMPARISON = 13      # < <= > >=
    CONCAT = 14          # .
    SHIFT = 15           # << >>
    ADDITIVE = 16        # + -
    MULTIPLICATIVE = 17  # * / %
    INSTANCEOF = 18      # instanceof
    UNARY = 19           # ! ~ casts
    POWER = 20           # **


BINARY_PRECEDENCE: dict[str, int] = {
    "or": Precedence.LOGICAL_OR,
    "xor": Precedence.LOGICAL_XOR,
    "and": Precedence.LOGICAL_AND,
    "??": Precedence.COALESCE,
    "||": Precedence.OR,
    "&&": Precedence.AND,
    "|": Precedence.BITWISE_OR,
    "^": Precedence.BITWISE_XOR,
    "&": Precedence.BITWISE_AND,
    "==": Precedence.EQUALITY,
    "!=": Precedence.EQUALITY,
    "===": Precedence.EQUALITY,
    "!==": Precedence.EQUALITY,
    "<>": Precedence.EQUALITY,
    "<=>": Precedence.EQUALITY,
    "<": Precedence.COMPARISON,
    "<=": Precedence.COMPARISON,
    ">": Precedence.COMPARISON,
    ">=": Precedence.COMPARISON,
    ".": Precedence.CONCAT,
    "<<": Precedence.SHIFT,
    ">>": Precedence.SHIFT,
    "+": Precedence.ADDITIVE,
    "-": Precedence.ADDITIVE,
    "*": Precedence.MULTIPLICATIVE,
    "/": Precedence.MULTIPLICATIVE,
    "%": Precedence.MULTIPLICATIVE,
    "instanceof": Precedence.INSTANCEOF,
    "**": Precedence.POWER,
}

RIGHT_ASSOCIATIVE: frozenset[str] = frozenset({"??", "**"})

PREFIX_OPERATORS: frozenset[str] = frozenset({"!", "-", "+", "~", "@", "++", "--", "&"})

INCLUDE_KEYWORDS: frozenset[str] = frozenset(
    {"include", "include_once", "require", "require_once"}
)

CLASS_MODIFIERS: frozenset[str] = frozenset({"abstract", "final", "readonly"})

MEMBER_MODIFIERS: frozenset[str] = frozenset(
    {"public", "protected", "private", "static", "abstract", "final", "readonly", "var"}
)

PROMOTION_MODIFIERS: frozenset[str] = frozenset(
    {"public", "protected", "private", "readonly"}
)

# Keywords usable as type names
TYPE_KEYWORDS: frozenset[str] = frozenset({"array", "callable", "static"})


@dataclass(frozen=True, slots=True)
class _Expr:
    """What the parser remembers about an expression it validated."""

    kind: str
    name: Optional[str] = None
    class_name: Optional[str] = None
    writable: bool = False


_OTHER = _Expr("other")


class Parser:
    """
    Recursive descent parser for PHP input.

    Usage:
        parser = Parser(tokens)
        program = parser.parse()
    """

    def __init__(
        self,
        tokens: list[Token],
        source: str = "",
        filename: str = "<stdin>",
    ) -> None:
        """
        Initialize the parser.

        Args:
            tokens: Tokens from the lexer, trivia included, ending with EOF
            source: Optional source code for error context
            filename: Optional filename for error reporting
        """
        self._all_tokens = tokens
        self.tokens = [token for token in tokens if not token.is_trivia]
        self.pos = 0
        self._source_lines: list[str] = source.splitlines() if source else []
        self._filename = filename
        self._delimiters: list[Token] = []
        self._bindings: list[Binding] = []
        self._function_depth = 0
        self._namespace: Optional[str] = None

    # -------------------------------------------------------------------------
    # Token navigation
    # -------------------------------------------------------------------------

    @property
    def _current(self) -> Token:
        """Get the current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[self.pos]

    @property
    def _previous(self) -> Token:
        """Get the previous token."""
        return self.tokens[self.pos - 1] if self.pos > 0 else self.tokens[0]

    def _peek(self, offset: int = 1) -> Token:
        """Peek at a token ahead of the current position."""
        pos = self.pos + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[pos]

    def _is_at_end(self) -> bool:
        return self._current.kind == TokenKind.EOF

    def _advance(self) -> Token:
        """Consume and return the current token."""
        token = self._current
        if not self._is_at_end():
            self.pos += 1
        return token

    def _check_op(self, *texts: str) -> bool:
        return self._current.is_op(*texts)

    def _check_kw(self, *words: str) -> bool:
        return self._current.is_keyword(*words)

    def _match_op(self, *texts: str) -> bool:
        if self._check_op(*texts):
            self._advance()
            return True
        return False

    def _match_kw(self, *words: str) -> bool:
        if self._check_kw(*words):
            self._advance()
            return True
        return False

    def _expect_op(self, text: str) -> Token:
        if self._check_op(text):
            return self._advance()
        raise self._unexpected(f"'{text}'")

    def _expect_name(self, what: str = "identifier") -> Token:
        """Consume an identifier; keywords are accepted where PHP allows them as names."""
        if self._current.kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD):
            return self._advance()
        raise self._unexpected(what)

    def _expect_variable(self) -> Token:
        if self._current.kind == TokenKind.VARIABLE and self._current.text != "$":
            return self._advance()
        raise self._unexpected("variable")

    def _span_from(self, start: Token) -> tuple[int, int]:
        """Character range from `start` through the last consumed token."""
        return (start.position, self._previous.end)

    # -------------------------------------------------------------------------
    # Delimiters
    # -------------------------------------------------------------------------

    def _open(self, text: str) -> Token:
        """Consume an opening delimiter and remember it until it is closed."""
        token = self._expect_op(text)
        self._delimiters.append(token)
        return token

    def _close(self, text: str) -> Token:
        """Consume the closing delimiter for the innermost open one."""
        token = self._expect_op(text)
        if self._delimiters:
            self._delimiters.pop()
        return token

    # -------------------------------------------------------------------------
    # Errors
    # -------------------------------------------------------------------------

    def _line_text(self, token: Token) -> Optional[str]:
        line = token.location.line
        if 1 <= line <= len(self._source_lines):
            return self._source_lines[line - 1]
        return None

    def _unexpected(self, expecting: Optional[str] = None) -> ParseError:
        """Create an error for the current token."""
        token = self._current

        if token.kind == TokenKind.EOF:
            if self._delimiters:
                kind = ErrorKind.UNCLOSED_DELIMITER
                opener = self._delimiters[-1]
                message = (
                    f"Syntax error, unexpected end of file, unclosed '{opener.text}' "
                    f"on line {opener.location.line}"
                )
            else:
                kind = ErrorKind.UNEXPECTED_EOF
                message = "Syntax error, unexpected end of file"
        else:
            kind = ErrorKind.UNEXPECTED_TOKEN
            message = f"Syntax error, unexpected '{token.text}'"

        if expecting:
            message += f", expecting {expecting}"

        info = ErrorInfo(message, kind, token.position, token.location, expecting)
        return ParseError(info, self._line_text(token))

    def _invalid(self, message: str, token: Token) -> ParseError:
        info = ErrorInfo(message, ErrorKind.INVALID_EXPRESSION, token.position, token.location)
        return ParseError(info, self._line_text(token))

    def _check_unterminated(self) -> None:
        """Raise UNTERMINATED when input ends inside a string, heredoc or comment."""
        last = None
        for token in reversed(self._all_tokens):
            if token.kind != TokenKind.EOF:
                last = token
                break
        if last is None or not last.unterminated:
            return

        if last.kind == TokenKind.COMMENT:
            what = "comment"
        elif last.text.startswith("<<<"):
            what = "heredoc"
        else:
            what = "string"
        info = ErrorInfo(
            f"Syntax error, unterminated {what} starting on line {last.location.line}",
            ErrorKind.UNTERMINATED,
            last.position,
            last.location,
        )
        raise ParseError(info, self._line_text(last))

    # -------------------------------------------------------------------------
    # Program Parsing
    # -------------------------------------------------------------------------

    def parse(self) -> Program:
        """
        Parse the whole buffer.

        Returns:
            The root Program AST node.

        Raises:
            ParseError: with a structured ErrorInfo on any failure
        """
        statements: list[Statement] = []
        try:
            while not self._is_at_end():
                statements.append(self._parse_statement())
        except ParseError as error:
            # Running out of input inside a literal beats any other EOF reason
            if error.kind in (ErrorKind.UNEXPECTED_EOF, ErrorKind.UNCLOSED_DELIMITER):
                self._check_unterminated()
            raise
        self._check_unterminated()
        return Program(tuple(statements))

    # -------------------------------------------------------------------------
    # Statement Parsing
    # -------------------------------------------------------------------------

    def _parse_statement(self) -> Statement:
        """Parse a single statement."""
        token = self._current

        if token.is_op("#["):
            self._skip_attributes()
            return self._parse_statement()
        if token.is_op(";", "?>"):
            self._advance()
            return SimpleStatement(";", location=token.location)
        if token.is_op("{"):
            body = self._parse_block()
            return CompoundStatement("{", body, location=token.location)

        if token.kind == TokenKind.IDENTIFIER and self._peek().is_op(":") and not self._peek().is_op("::"):
            self._advance()
            self._advance()
            return SimpleStatement("label", location=token.location)

        if token.kind == TokenKind.KEYWORD:
            handler = self._statement_handler(token)
            if handler is not None:
                return handler()

        return self._parse_expression_statement()

    def _statement_handler(self, token: Token) -> Optional[Callable[[], Statement]]:
        keyword = token.lowered
        following = self._peek()

        if keyword == "function":
            name_token = self._peek(2) if following.is_op("&") else following
            if name_token.kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD):
                return self._parse_function_declaration
            return None
        if keyword == "static":
            if following.kind == TokenKind.VARIABLE:
                return self._parse_static_variables
            return None
        if keyword in CLASS_MODIFIERS or keyword in ("class", "interface", "trait"):
            return self._parse_class_like
        if keyword == "enum":
            return self._parse_class_like if following.kind == TokenKind.IDENTIFIER else None

        handlers: dict[str, Callable[[], Statement]] = {
            "echo": self._parse_echo,
            "if": self._parse_if,
            "while": self._parse_while,
            "do": self._parse_do,
            "for": self._parse_for,
            "foreach": self._parse_foreach,
            "switch": self._parse_switch,
            "break": self._parse_jump,
            "continue": self._parse_jump,
            "return": self._parse_return,
            "global": self._parse_global,
            "unset": self._parse_unset,
            "try": self._parse_try,
            "namespace": self._parse_namespace,
            "use": self._parse_use,
            "const": self._parse_const,
            "declare": self._parse_declare,
            "goto": self._parse_goto,
        }
        return handlers.get(keyword)

    def _end_statement(self) -> None:
        """Consume a statement terminator."""
        if self._match_op(";", "?>"):
            return
        raise self._unexpected("';'")

    def _parse_block(self) -> tuple[Statement, ...]:
        """Parse `{ statements }`."""
        self._open("{")
        statements: list[Statement] = []
        while not self._check_op("}"):
            if self._is_at_end():
                raise self._unexpected("'}'")
            statements.append(self._parse_statement())
        self._close("}")
        return tuple(statements)

    def _parse_alternative_body(self, *terminators: str) -> tuple[Statement, ...]:
        """Parse statements of the `if (...): ... endif;` syntax up to a terminator keyword."""
        statements: list[Statement] = []
        while not self._check_kw(*terminators):
            if self._is_at_end():
                expected = " or ".join(f"'{t}'" for t in terminators)
                raise self._unexpected(expected)
            statements.append(self._parse_statement())
        return tuple(statements)

    def _parse_body(self, end_keyword: str) -> tuple[Statement, ...]:
        """Parse a loop body in either brace or alternative syntax."""
        if self._match_op(":"):
            body = self._parse_alternative_body(end_keyword)
            self._advance()
            self._end_statement()
            return body
        return (self._parse_statement(),)

    def _parse_parenthesized(self) -> _Expr:
        self._open("(")
        expr = self._parse_expression()
        self._close(")")
        return expr

    def _parse_expression_statement(self) -> ExpressionStatement:
        loc = self._current.location
        self._bindings = []
        expr = self._parse_expression()
        self._end_statement()
        return ExpressionStatement(
            tuple(self._bindings),
            is_assignment=expr.kind == "assign",
            location=loc,
        )

    def _parse_echo(self) -> EchoStatement:
        loc = self._advance().location
        self._bindings = []
        self._parse_expression_list()
        self._end_statement()
        return EchoStatement(tuple(self._bindings), location=loc)

    def _parse_expression_list(self) -> None:
        self._parse_expression()
        while self._match_op(","):
            self._parse_expression()

    def _parse_if(self) -> CompoundStatement:
        """
        Parse an if statement.

        Handles:
            if (cond) stmt elseif (cond) stmt else stmt
            if (cond): ... elseif (cond): ... else: ... endif;
        """
        loc = self._advance().location
        self._bindings = []
        self._parse_parenthesized()

        if self._match_op(":"):
            body = list(self._parse_alternative_body("elseif", "else", "endif"))
            while self._match_kw("elseif"):
                self._parse_parenthesized()
                self._expect_op(":")
                body.extend(self._parse_alternative_body("elseif", "else", "endif"))
            if self._match_kw("else"):
                self._expect_op(":")
                body.extend(self._parse_alternative_body("endif"))
            self._advance()  # endif
            self._end_statement()
            return CompoundStatement("if", tuple(body), location=loc)

        body = [self._parse_statement()]
        while True:
            if self._match_kw("elseif"):
                self._parse_parenthesized()
                body.append(self._parse_statement())
            elif self._match_kw("else"):
                body.append(self._parse_statement())
                break
            else:
                break
        return CompoundStatement("if", tuple(body), location=loc)

    def _parse_while(self) -> CompoundStatement:
        loc = self._advance().location
        self._parse_parenthesized()
        return CompoundStatement("while", self._parse_body("endwhile"), location=loc)

    def _parse_do(self) -> CompoundStatement:
        loc = self._advance().location
        body = (self._parse_statement(),)
        if not self._match_kw("while"):
            raise self._unexpected("'while'")
        self._parse_parenthesized()
        self._end_statement()
        return CompoundStatement("do", body, location=loc)

    def _parse_for(self) -> CompoundStatement:
        loc = self._advance().location
        self._open("(")
        for separator in (";", ";", ")"):
            if not self._check_op(separator):
                self._parse_expression_list()
            if separator == ")":
                self._close(")")
            else:
                self._expect_op(separator)
        return CompoundStatement("for", self._parse_body("endfor"), location=loc)

    def _parse_foreach(self) -> CompoundStatement:
        """
        Parse a foreach loop.

        Handles:
            foreach ($items as $item) ...
            foreach ($items as $key => &$value) ...
            foreach ($pairs as [$a, $b]) ...
        """
        loc = self._advance().location
        self._open("(")
        self._parse_expression()
        if not self._match_kw("as"):
            raise self._unexpected("'as'")

        bindings: list[Binding] = []
        target = self._parse_foreach_target()
        if self._match_op("=>"):
            if target.kind == "variable":
                bindings.append(Binding(target.name, location=self._previous.location))
            target = self._parse_foreach_target()
        if target.kind == "variable":
            bindings.append(Binding(target.name, location=self._previous.location))
        self._close(")")

        body = self._parse_body("endforeach")
        return CompoundStatement("foreach", body, tuple(bindings), location=loc)

    def _parse_foreach_target(self) -> _Expr:
        self._match_op("&")
        return self._parse_postfix(self._parse_primary())

    def _parse_switch(self) -> CompoundStatement:
        loc = self._advance().location
        self._parse_parenthesized()

        alternative = self._match_op(":")
        if not alternative:
            self._open("{")
        closer_check = (lambda: self._check_kw("endswitch")) if alternative else (lambda: self._check_op("}"))

        body: list[Statement] = []
        while not closer_check():
            if self._is_at_end():
                raise self._unexpected("'endswitch'" if alternative else "'}'")
            if self._match_kw("case"):
                self._parse_expression()
            elif self._match_kw("default"):
                pass
            else:
                raise self._unexpected("'case' or 'default'")
            if not self._match_op(":", ";"):
                raise self._unexpected("':'")
            while not (self._check_kw("case", "default") or closer_check() or self._is_at_end()):
                body.append(self._parse_statement())

        if alternative:
            self._advance()
            self._end_statement()
        else:
            self._close("}")
        return CompoundStatement("switch", tuple(body), location=loc)

    def _parse_jump(self) -> SimpleStatement:
        token = self._advance()
        if self._current.kind == TokenKind.NUMBER:
            self._advance()
        self._end_statement()
        return SimpleStatement(token.lowered, location=token.location)

    def _parse_return(self) -> SimpleStatement:
        loc = self._advance().location
        if not self._check_op(";", "?>"):
            self._parse_expression()
        self._end_statement()
        return SimpleStatement("return", location=loc)

    def _parse_global(self) -> SimpleStatement:
        loc = self._advance().location
        bindings = []
        while True:
            variable = self._expect_variable()
            bindings.append(Binding(variable.text[1:], location=variable.location))
            if not self._match_op(","):
                break
        self._end_statement()
        return SimpleStatement("global", tuple(bindings), location=loc)

    def _parse_static_variables(self) -> SimpleStatement:
        loc = self._advance().location
        bindings = []
        while True:
            variable = self._expect_variable()
            bindings.append(Binding(variable.text[1:], location=variable.location))
            if self._match_op("="):
                self._parse_expression()
            if not self._match_op(","):
                break
        self._end_statement()
        return SimpleStatement("static", tuple(bindings), location=loc)

    def _parse_unset(self) -> SimpleStatement:
        loc = self._advance().location
        self._parse_arguments()
        self._end_statement()
        return SimpleStatement("unset", location=loc)

    def _parse_try(self) -> CompoundStatement:
        """
        Parse try/catch/finally.

        A try block with neither catch nor finally at end of input is still
        waiting for one of them.
        """
        token = self._advance()
        body = list(self._parse_block())
        handled = False

        while self._check_kw("catch"):
            self._advance()
            self._open("(")
            self._parse_type()
            if self._current.kind == TokenKind.VARIABLE:
                self._advance()
            self._close(")")
            body.extend(self._parse_block())
            handled = True

        if self._match_kw("finally"):
            body.extend(self._parse_block())
            handled = True

        if not handled:
            raise self._unexpected("'catch' or 'finally'")
        return CompoundStatement("try", tuple(body), location=token.location)

    def _parse_namespace(self) -> Statement:
        loc = self._advance().location
        name = None
        if self._current.kind == TokenKind.IDENTIFIER:
            name = self._advance().text.lstrip("\\")
        if self._check_op("{"):
            previous = self._namespace
            self._namespace = name
            body = self._parse_block()
            self._namespace = previous
            return CompoundStatement("namespace", body, location=loc)
        if name is None:
            raise self._unexpected("namespace name")
        self._namespace = name
        self._end_statement()
        return SimpleStatement("namespace", location=loc)

    def _parse_use(self) -> SimpleStatement:
        """
        Parse an import.

        Handles:
            use Foo\\Bar;  use Foo\\Bar as Baz, Qux;
            use function Foo\\helper;  use const Foo\\LIMIT;
            use Foo\\{Bar, Baz as B};
        """
        loc = self._advance().location
        self._match_kw("function", "const")
        while True:
            self._expect_name("name")
            if self._match_op("\\"):
                self._open("{")
                while not self._check_op("}"):
                    self._expect_name("name")
                    if self._match_kw("as"):
                        self._expect_name("alias")
                    if not self._match_op(","):
                        break
                self._close("}")
            elif self._match_kw("as"):
                self._expect_name("alias")
            if not self._match_op(","):
                break
        self._end_statement()
        return SimpleStatement("use", location=loc)

    def _parse_const(self) -> ConstDeclaration:
        start = self._advance()
        names = []
        while True:
            names.append(self._expect_name("constant name").text)
            self._expect_op("=")
            self._parse_expression()
            if not self._match_op(","):
                break
        self._end_statement()
        return ConstDeclaration(tuple(names), start.location, self._span_from(start))

    def _parse_declare(self) -> Statement:
        loc = self._advance().location
        self._open("(")
        while True:
            self._expect_name("directive")
            self._expect_op("=")
            self._parse_expression()
            if not self._match_op(","):
                break
        self._close(")")
        if self._match_op(";", "?>"):
            return SimpleStatement("declare", location=loc)
        return CompoundStatement("declare", self._parse_body("enddeclare"), location=loc)

    def _parse_goto(self) -> SimpleStatement:
        loc = self._advance().location
        self._expect_name("label")
        self._end_statement()
        return SimpleStatement("goto", location=loc)

    # -------------------------------------------------------------------------
    # Declarations
    # -------------------------------------------------------------------------

    def _skip_attributes(self) -> None:
        """Skip `#[...]` attribute groups."""
        while self._check_op("#["):
            self._open("#[")
            while not self._check_op("]"):
                if self._is_at_end():
                    raise self._unexpected("']'")
                self._parse_expression()
                if self._check_op("("):
                    self._parse_arguments()
                if not self._match_op(","):
                    break
            self._close("]")

    def _parse_function_declaration(self) -> FunctionDeclaration:
        start = self._advance()
        self._match_op("&")
        name = self._expect_name("function name").text
        parameters = self._parse_parameters()
        return_type = self._parse_return_type()
        self._parse_function_body()
        return FunctionDeclaration(
            name, parameters, return_type, start.location, self._span_from(start)
        )

    def _parse_function_body(self) -> tuple[Statement, ...]:
        self._function_depth += 1
        try:
            return self._parse_block()
        finally:
            self._function_depth -= 1

    def _parse_return_type(self) -> Optional[str]:
        if self._match_op(":"):
            return self._parse_type()
        return None

    def _parse_parameters(self) -> tuple[Parameter, ...]:
        """Parse `(Type $a = 1, private readonly Foo &...$rest)`."""
        self._open("(")
        parameters: list[Parameter] = []
        while not self._check_op(")"):
            self._skip_attributes()
            modifiers: set[str] = set()
            while self._current.kind == TokenKind.KEYWORD and self._current.lowered in PROMOTION_MODIFIERS:
                modifiers.add(self._advance().lowered)
            visibility = next((v for v in ("private", "protected") if v in modifiers), "public")

            type_name = None
            if not (self._current.kind == TokenKind.VARIABLE or self._check_op("&", "...")):
                type_name = self._parse_type()
            self._match_op("&")
            self._match_op("...")
            name = self._expect_variable().text[1:]

            has_default = self._match_op("=")
            if has_default:
                self._parse_expression()
            parameters.append(
                Parameter(name, type_name, has_default, bool(modifiers), visibility)
            )
            if not self._match_op(","):
                break
        self._close(")")
        return tuple(parameters)

    def _parse_type(self) -> str:
        """
        Parse a type declaration and return its text.

        Handles nullable (?Foo), union (A|B), intersection (A&B) and
        DNF ((A&B)|null) types.
        """
        parts: list[str] = []
        if self._match_op("?"):
            parts.append("?")
        while True:
            if self._check_op("("):
                self._open("(")
                parts.append("(" + self._parse_type() + ")")
                self._close(")")
            elif self._current.kind == TokenKind.IDENTIFIER or (
                self._current.kind == TokenKind.KEYWORD and self._current.lowered in TYPE_KEYWORDS
            ):
                parts.append(self._advance().text)
            else:
                raise self._unexpected("type")

            if self._check_op("|"):
                parts.append(self._advance().text)
                continue
            # "Foo &$x" is a by-reference parameter, not an intersection
            if self._check_op("&") and not (
                self._peek().kind == TokenKind.VARIABLE or self._peek().is_op("...")
            ):
                parts.append(self._advance().text)
                continue
            break
        return "".join(parts)

    def _parse_name_list(self) -> tuple[str, ...]:
        names = [self._expect_name("class name").text]
        while self._match_op(","):
            names.append(self._expect_name("class name").text)
        return tuple(names)

    def _parse_class_like(self) -> ClassDeclaration:
        """
        Parse a class, interface, trait or enum declaration.

        Handles:
            abstract class Foo extends Bar implements A, B { ... }
            interface Foo extends A, B { ... }
            trait Foo { ... }
            enum Suit: string implements HasLabel { case Hearts = 'H'; ... }
        """
        start = self._current
        while self._current.kind == TokenKind.KEYWORD and self._current.lowered in CLASS_MODIFIERS:
            self._advance()

        if not self._check_kw("class", "interface", "trait", "enum"):
            raise self._unexpected("'class'")
        kind = self._advance().lowered
        name = self._expect_name("class name").text

        parent = None
        interfaces: tuple[str, ...] = ()
        if kind == "enum" and self._match_op(":"):
            self._parse_type()
        if self._match_kw("extends"):
            if kind == "interface":
                interfaces = self._parse_name_list()
            else:
                parent = self._expect_name("class name").text
        if self._match_kw("implements"):
            interfaces = self._parse_name_list()

        members, traits = self._parse_class_body()
        return ClassDeclaration(
            name=name,
            kind=kind,
            parent=parent,
            interfaces=interfaces,
            traits=traits,
            members=members,
            namespace=self._namespace,
            location=start.location,
            span=self._span_from(start),
        )

    def _parse_class_body(self) -> tuple[tuple[MemberDeclaration, ...], tuple[str, ...]]:
        self._open("{")
        members: list[MemberDeclaration] = []
        traits: list[str] = []

        while not self._check_op("}"):
            if self._is_at_end():
                raise self._unexpected("'}'")
            self._skip_attributes()
            loc = self._current.location

            if self._match_kw("use"):
                traits.extend(self._parse_name_list())
                if self._check_op("{"):
                    self._skip_balanced("{", "}")
                else:
                    self._end_statement()
                continue

            if self._match_kw("case"):
                members.append(
                    MemberDeclaration(self._expect_name("case name").text, "case", location=loc)
                )
                if self._match_op("="):
                    self._parse_expression()
                self._end_statement()
                continue

            modifiers: set[str] = set()
            while self._current.kind == TokenKind.KEYWORD and self._current.lowered in MEMBER_MODIFIERS:
                modifiers.add(self._advance().lowered)
            visibility = next(
                (v for v in ("private", "protected") if v in modifiers), "public"
            )
            is_static = "static" in modifiers

            if self._match_kw("const"):
                # Typed class constants: const string NAME = ...
                if self._current.kind == TokenKind.IDENTIFIER and self._peek().kind == TokenKind.IDENTIFIER:
                    self._advance()
                while True:
                    const_name = self._expect_name("constant name").text
                    members.append(
                        MemberDeclaration(const_name, "constant", True, visibility, loc)
                    )
                    self._expect_op("=")
                    self._parse_expression()
                    if not self._match_op(","):
                        break
                self._end_statement()
                continue

            if self._match_kw("function"):
                self._match_op("&")
                method_name = self._expect_name("method name").text
                parameters = self._parse_parameters()
                # Constructor promotion declares properties
                members.extend(
                    MemberDeclaration(p.name, "property", False, p.visibility, loc)
                    for p in parameters
                    if p.promoted
                )
                self._parse_return_type()
                if self._check_op("{"):
                    self._parse_function_body()
                else:
                    self._end_statement()
                members.append(
                    MemberDeclaration(method_name, "method", is_static, visibility, loc)
                )
                continue

            if not modifiers:
                raise self._unexpected("class member")
            if self._current.kind != TokenKind.VARIABLE:
                self._parse_type()
            while True:
                prop = self._expect_variable()
                members.append(
                    MemberDeclaration(prop.text[1:], "property", is_static, visibility, loc)
                )
                if self._match_op("="):
                    self._parse_expression()
                if not self._match_op(","):
                    break
            self._end_statement()

        self._close("}")
        return tuple(members), tuple(traits)

    def _skip_balanced(self, opener: str, closer: str) -> None:
        self._open(opener)
        depth = 1
        while depth:
            if self._is_at_end():
                raise self._unexpected(f"'{closer}'")
            if self._check_op(opener):
                depth += 1
            elif self._check_op(closer):
                depth -= 1
                if depth == 0:
                    break
            self._advance()
        self._close(closer)

    # -------------------------------------------------------------------------
    # Expression Parsing
    # -------------------------------------------------------------------------

    def _binary_key(self, token: Token) -> Optional[str]:
        if token.kind == TokenKind.KEYWORD and token.lowered in ("and", "or", "xor", "instanceof"):
            return token.lowered
        if token.kind == TokenKind.OPERATOR and token.text in BINARY_PRECEDENCE:
            return token.text
        return None

    def _parse_expression(self, min_precedence: int = Precedence.NONE) -> _Expr:
        """Parse an expression using precedence climbing."""
        left = self._parse_unary()

        while True:
            token = self._current

            if token.is_op("?") and Precedence.TERNARY >= min_precedence:
                self._advance()
                if not self._match_op(":"):
                    self._parse_expression(Precedence.ASSIGNMENT)
                    self._expect_op(":")
                self._parse_expression(Precedence.TERNARY + 1)
                left = _OTHER
                continue

            key = self._binary_key(token)
            if key is None:
                break
            precedence = BINARY_PRECEDENCE[key]
            if precedence < min_precedence:
                break
            self._advance()

            if key == "instanceof":
                self._parse_class_reference()
            else:
                next_min = precedence if key in RIGHT_ASSOCIATIVE else precedence + 1
                self._parse_expression(next_min)
            left = _OTHER

        return left

    def _parse_unary(self) -> _Expr:
        """Parse prefix operators, then a postfix expression and any assignment to it."""
        token = self._current

        if token.kind == TokenKind.OPERATOR and (
            token.text in PREFIX_OPERATORS or token.text.startswith("(")
        ):
            # Casts come out of the lexer as "(int)"-style operator tokens
            self._advance()
            self._parse_unary()
            return _OTHER

        if token.kind == TokenKind.KEYWORD:
            keyword = token.lowered
            if keyword == "new":
                return self._parse_postfix(self._parse_new())
            if keyword == "clone":
                self._advance()
                self._parse_unary()
                return _OTHER
            if keyword in ("print", "throw") or keyword in INCLUDE_KEYWORDS:
                self._advance()
                self._parse_expression(Precedence.ASSIGNMENT)
                return _OTHER
            if keyword == "yield":
                return self._parse_yield()

        expr = self._parse_postfix(self._parse_primary())

        if self._current.kind == TokenKind.OPERATOR and self._current.text in ASSIGNMENT_OPERATORS:
            return self._parse_assignment(expr)
        return expr

    def _parse_assignment(self, target: _Expr) -> _Expr:
        operator = self._current
        if not target.writable:
            raise self._invalid(
                f"Cannot assign to this expression with '{operator.text}'", operator
            )
        self._advance()
        if operator.text == "=":
            self._match_op("&")
        value = self._parse_expression(Precedence.ASSIGNMENT)

        class_name = value.class_name if operator.text == "=" else None
        if target.kind == "variable" and target.name and self._function_depth == 0:
            self._bindings.append(
                Binding(target.name, class_name=class_name, location=operator.location)
            )
        return _Expr("assign", class_name=class_name)

    def _parse_yield(self) -> _Expr:
        self._advance()
        if self._match_kw("from"):
            self._parse_expression(Precedence.ASSIGNMENT)
            return _OTHER
        if self._check_op(";", ")", ",", "]") or self._is_at_end():
            return _OTHER
        self._parse_expression(Precedence.TERNARY)
        if self._match_op("=>"):
            self._parse_expression(Precedence.TERNARY)
        return _OTHER

    def _parse_class_reference(self) -> Optional[str]:
        """Parse the operand of `new` or `instanceof`; returns the class name if static."""
        token = self._current
        if token.kind == TokenKind.IDENTIFIER:
            self._advance()
            return token.text.lstrip("\\")
        if token.is_keyword("static"):
            self._advance()
            return None
        if token.kind == TokenKind.VARIABLE:
            self._parse_primary()
            while self._check_op("->", "?->", "::", "["):
                if self._check_op("["):
                    self._open("[")
                    self._parse_expression()
                    self._close("]")
                else:
                    self._advance()
                    self._parse_member_name()
            return None
        if token.is_op("("):
            self._parse_parenthesized()
            return None
        raise self._unexpected("class name")

    def _parse_new(self) -> _Expr:
        self._advance()  # new
        self._skip_attributes()

        if self._match_kw("class"):
            if self._check_op("("):
                self._parse_arguments()
            if self._match_kw("extends"):
                self._expect_name("class name")
            if self._match_kw("implements"):
                self._parse_name_list()
            self._function_depth += 1
            try:
                self._parse_class_body()
            finally:
                self._function_depth -= 1
            return _Expr("new")

        class_name = self._parse_class_reference()
        if self._check_op("("):
            self._parse_arguments()
        return _Expr("new", class_name=class_name)

    def _parse_member_name(self) -> None:
        token = self._current
        if token.kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD):
            self._advance()
        elif token.kind == TokenKind.VARIABLE:
            self._parse_primary()
        elif token.is_op("{"):
            self._open("{")
            self._parse_expression()
            self._close("}")
        else:
            raise self._unexpected("member name")

    def _parse_postfix(self, expr: _Expr) -> _Expr:
        """Parse calls, member access, array access and postfix ++/--."""
        while True:
            token = self._current

            if token.is_op("["):
                self._open("[")
                if not self._check_op("]"):
                    self._parse_expression()
                self._close("]")
                expr = _Expr("dim", writable=True)
            elif token.is_op("->", "?->"):
                self._advance()
                self._parse_member_name()
                expr = _Expr("property", writable=token.text == "->")
            elif token.is_op("::"):
                self._advance()
                writable = self._current.kind == TokenKind.VARIABLE
                self._parse_member_name()
                expr = _Expr("static", writable=writable)
            elif token.is_op("("):
                self._parse_arguments()
                expr = _Expr("call")
            elif token.is_op("++", "--"):
                if not expr.writable:
                    raise self._invalid("Cannot increment/decrement this expression", token)
                self._advance()
                expr = _OTHER
            else:
                return expr

    def _parse_arguments(self) -> None:
        """Parse `(args)`, including named arguments, spreads and `(...)`."""
        self._open("(")
        if self._check_op("...") and self._peek().is_op(")"):
            self._advance()
            self._close(")")
            return
        while not self._check_op(")"):
            if self._current.kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD) and self._peek().is_op(":"):
                self._advance()
                self._advance()
            self._match_op("...")
            self._parse_expression()
            if not self._match_op(","):
                break
        self._close(")")

    def _parse_array_items(self, closer: str) -> None:
        while not self._check_op(closer):
            if self._check_op(","):
                # Skipped slot in list() destructuring
                self._advance()
                continue
            if self._match_op("..."):
                self._parse_expression()
            else:
                self._match_op("&")
                self._parse_expression()
                if self._match_op("=>"):
                    self._match_op("&")
                    self._parse_expression()
            if not self._match_op(","):
                break
        self._close(closer)

    def _parse_closure(self) -> _Expr:
        """Parse `function (...) use (...) {}` and `fn (...) => expr`, optionally static."""
        self._match_kw("static")
        arrow = self._advance().lowered == "fn"
        self._match_op("&")
        self._parse_parameters()

        if not arrow and self._match_kw("use"):
            self._open("(")
            while not self._check_op(")"):
                self._match_op("&")
                self._expect_variable()
                if not self._match_op(","):
                    break
            self._close(")")
        self._parse_return_type()

        self._function_depth += 1
        try:
            if arrow:
                self._expect_op("=>")
                self._parse_expression(Precedence.ASSIGNMENT)
            else:
                self._parse_block()
        finally:
            self._function_depth -= 1
        return _Expr("closure")

    def _parse_match(self) -> _Expr:
        self._advance()  # match
        self._parse_parenthesized()
        self._open("{")
        while not self._check_op("}"):
            if not self._match_kw("default"):
                self._parse_expression_list()
                self._match_op(",")
            self._expect_op("=>")
            self._parse_expression()
            if not self._match_op(","):
                break
        self._close("}")
        return _OTHER

    def _parse_primary(self) -> _Expr:
        """Parse a primary expression."""
        token = self._current

        if token.kind == TokenKind.VARIABLE:
            self._advance()
            if token.text != "$":
                return _Expr("variable", name=token.text[1:], writable=True)
            # Variable variables: $$name, ${expr}
            if self._current.kind == TokenKind.VARIABLE:
                self._parse_primary()
                return _Expr("variable", writable=True)
            if self._check_op("{"):
                self._open("{")
                self._parse_expression()
                self._close("}")
                return _Expr("variable", writable=True)
            raise self._unexpected("variable name")

        if token.kind in (TokenKind.NUMBER, TokenKind.STRING):
            self._advance()
            return _Expr("literal")

        if token.kind == TokenKind.IDENTIFIER:
            self._advance()
            return _Expr("name", name=token.text)

        if token.is_op("["):
            self._open("[")
            self._parse_array_items("]")
            return _Expr("array", writable=True)

        if token.is_op("("):
            self._parse_parenthesized()
            return _Expr("group")

        if token.is_op("#["):
            self._skip_attributes()
            return self._parse_primary()

        if token.kind == TokenKind.KEYWORD:
            return self._parse_keyword_expression(token)

        raise self._unexpected()

    def _parse_keyword_expression(self, token: Token) -> _Expr:
        keyword = token.lowered

        if keyword in ("array", "list") and self._peek().is_op("("):
            self._advance()
            self._open("(")
            self._parse_array_items(")")
            return _Expr("array", writable=keyword == "list")
        if keyword in ("isset", "empty", "eval"):
            self._advance()
            self._parse_arguments()
            return _OTHER
        if keyword in ("exit", "die"):
            self._advance()
            if self._check_op("("):
                self._parse_arguments()
            return _OTHER
        if keyword in ("function", "fn"):
            return self._parse_closure()
        if keyword == "static":
            following = self._peek()
            if following.is_keyword("function", "fn"):
                return self._parse_closure()
            if following.is_op("::"):
                self._advance()
                return _Expr("name", name="static")
        if keyword == "match" and self._peek().is_op("("):
            return self._parse_match()
        if keyword == "new":
            return self._parse_new()
        if keyword in ("print", "throw", "clone", "yield") or keyword in INCLUDE_KEYWORDS:
            return self._parse_unary()

        raise self._unexpected()


def parse_source(source: str, filename: str = "<stdin>") -> Program:
    """
    Convenience function to tokenize and parse PHP source.

    Raises:
        ParseError: on any syntax error or incomplete input
    """
    return Parser(tokenize(source, filename), source, filename).parse()

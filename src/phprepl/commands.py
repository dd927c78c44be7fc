"""
Shell meta-commands.

A line whose first word is a registered command name is a command rather
than PHP. `CommandLine.split` separates the name, its options and, for
commands that take code, the code argument with its offset in the original
line so that syntax errors in the code point at the right column.

Usage:
    >>> line = CommandLine(COMMANDS).split("timeit -n 100 strlen('abc');")
    >>> line.options, line.code, line.offset
    ({'iterations': '100'}, "strlen('abc');", 14)

Watch and breakpoint lists are plain state objects owned by the session.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Iterator, Mapping, Optional, Union

from phprepl.compiler.ast_nodes import ExpressionStatement
from phprepl.compiler.detector import IncompletenessDetector, InputStatus
from phprepl.utils.errors import CommandError, SourceLocation

_WORD_RE = re.compile(r"\S+")
_TARGET_RE = re.compile(
    r"^\\?[A-Za-z_\x80-\uffff][\w\\\x80-\uffff]*(::[A-Za-z_\x80-\uffff]\w*)?$"
)

OptionValue = Union[str, bool]


# =============================================================================
# Command Definitions
# =============================================================================


class ValueMode(Enum):
    """How an option consumes the words after it."""

    NONE = "none"
    REQUIRED = "required"
    OPTIONAL = "optional"
    # Everything up to the end of the line
    REST = "rest"


@dataclass(frozen=True)
class Option:
    """A command option, spelled `--name` or `-s`."""

    name: str
    short: Optional[str] = None
    value: ValueMode = ValueMode.NONE
    help_text: str = ""

    @property
    def spelling(self) -> str:
        return f"--{self.name}"


@dataclass(frozen=True)
class CommandSpec:
    """A meta-command definition."""

    name: str
    aliases: tuple[str, ...] = ()
    help_text: str = ""
    usage: str = ""
    options: tuple[Option, ...] = ()
    takes_code: bool = False

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)

    def find_option(self, word: str) -> Optional[Option]:
        for option in self.options:
            if word == option.spelling or (option.short and word == f"-{option.short}"):
                return option
        return None


COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec(
        name="help",
        aliases=("?",),
        help_text="Show the command list, or help for one command",
        usage="help [command]",
    ),
    CommandSpec(
        name="exit",
        aliases=("quit", "q"),
        help_text="End the session",
        usage="exit",
    ),
    CommandSpec(
        name="ls",
        help_text="List variables, functions, classes and constants",
        usage="ls [-v] [-f] [-c] [-k]",
        options=(
            Option("vars", "v", help_text="Variables only"),
            Option("functions", "f", help_text="Functions only"),
            Option("classes", "c", help_text="Classes, interfaces and traits only"),
            Option("constants", "k", help_text="Constants only"),
        ),
    ),
    CommandSpec(
        name="history",
        aliases=("hist",),
        help_text="Show previously entered code",
        usage="history [-n N]",
        options=(Option("count", "n", ValueMode.REQUIRED, "Show the last N entries"),),
    ),
    CommandSpec(
        name="timeit",
        help_text="Time the execution of code",
        usage="timeit [-n N] <code>",
        options=(Option("iterations", "n", ValueMode.REQUIRED, "Number of runs"),),
        takes_code=True,
    ),
    CommandSpec(
        name="watch",
        help_text="Track changes to variables between runs",
        usage="watch <var> | --list | --clear [name|all] | --history <var> | --diff",
        options=(
            Option("list", "l", help_text="List watched variables"),
            Option("clear", "c", ValueMode.OPTIONAL, "Stop watching a variable, or all"),
            Option("history", "h", ValueMode.REQUIRED, "Show recorded values of a variable"),
            Option("diff", "d", help_text="Show changes since the last diff"),
        ),
    ),
    CommandSpec(
        name="break",
        help_text="Register function, method or conditional breakpoints",
        usage="break <target> [--if <expr>] | --list | --clear [id|all] | --enable id | --disable id",
        options=(
            Option("if", None, ValueMode.REST, "Condition expression"),
            Option("list", "l", help_text="List breakpoints"),
            Option("clear", "c", ValueMode.OPTIONAL, "Remove a breakpoint, or all"),
            Option("enable", "e", ValueMode.REQUIRED, "Enable a breakpoint by id"),
            Option("disable", "d", ValueMode.REQUIRED, "Disable a breakpoint by id"),
        ),
    ),
)


# =============================================================================
# Command Line Splitting
# =============================================================================


@dataclass
class CommandInput:
    """
    A split command line.

    Attributes:
        spec: The matched command
        name: The command name as typed
        options: Option name -> value (True for flags)
        arguments: Positional words
        code: Code argument for commands that take code
        offset: Character offset of `code` in the original line
        option_offsets: Character offset of each REST option value
    """

    spec: CommandSpec
    name: str
    options: dict[str, OptionValue] = field(default_factory=dict)
    arguments: list[str] = field(default_factory=list)
    code: str = ""
    offset: int = 0
    option_offsets: dict[str, int] = field(default_factory=dict)

    def has(self, name: str) -> bool:
        return name in self.options

    def flag(self, name: str) -> bool:
        return bool(self.options.get(name))

    def value(self, name: str) -> Optional[str]:
        value = self.options.get(name)
        return value if isinstance(value, str) else None

    def int_value(self, name: str, default: int) -> int:
        """Read a positive integer option."""
        raw = self.value(name)
        if raw is None:
            return default
        try:
            number = int(raw)
        except ValueError:
            raise CommandError(f"Option --{name} expects a number, got '{raw}'") from None
        if number < 1:
            raise CommandError(f"Option --{name} must be at least 1")
        return number


class CommandLine:
    """
    Recognizes meta-commands and splits their arguments.

    Command names are matched case-insensitively against the first word of
    the line; anything else is PHP code.
    """

    def __init__(self, commands: Iterable[CommandSpec] = COMMANDS) -> None:
        self.commands = tuple(commands)
        self._lookup: dict[str, CommandSpec] = {}
        for spec in self.commands:
            for name in spec.names:
                self._lookup[name.lower()] = spec

    @property
    def names(self) -> list[str]:
        """Every command name and alias, for completion."""
        return sorted(self._lookup)

    def get(self, name: str) -> Optional[CommandSpec]:
        return self._lookup.get(name.lower())

    def split(self, line: str) -> Optional[CommandInput]:
        """
        Split a command line.

        Returns:
            The command input, or None when the line is not a command

        Raises:
            CommandError: For unknown options or missing option values
        """
        words = list(_WORD_RE.finditer(line))
        if not words:
            return None
        head = words[0].group()
        spec = self.get(head)
        if spec is None:
            return None

        command = CommandInput(spec=spec, name=head)
        index = 1
        while index < len(words):
            word = words[index]
            text = word.group()

            if text == "--":
                if spec.takes_code and index + 1 < len(words):
                    command.offset = words[index + 1].start()
                    command.code = line[command.offset:]
                else:
                    command.arguments.extend(w.group() for w in words[index + 1:])
                break

            if text.startswith("-") and len(text) > 1:
                index = self._consume_option(line, words, index, command)
                continue

            if spec.takes_code:
                command.offset = word.start()
                command.code = line[command.offset:]
                break

            command.arguments.append(text)
            index += 1

        return command

    def _consume_option(
        self,
        line: str,
        words: list[re.Match[str]],
        index: int,
        command: CommandInput,
    ) -> int:
        """Record the option at `index`; returns the index of the next word."""
        word = words[index]
        spelled, has_inline, inline = word.group().partition("=")
        option = command.spec.find_option(spelled)
        if option is None:
            raise CommandError(
                f"Unknown option '{spelled}' for '{command.spec.name}'",
                SourceLocation(1, word.start() + 1, word.start()),
            )

        following = words[index + 1] if index + 1 < len(words) else None

        if option.value is ValueMode.NONE:
            if has_inline:
                raise CommandError(f"Option {option.spelling} does not take a value")
            command.options[option.name] = True
            return index + 1

        if option.value is ValueMode.REST:
            if has_inline:
                start = word.start() + len(spelled) + 1
            elif following is not None:
                start = following.start()
            else:
                raise CommandError(f"Option {option.spelling} requires a value")
            command.options[option.name] = line[start:].rstrip()
            command.option_offsets[option.name] = start
            return len(words)

        if has_inline:
            command.options[option.name] = inline
            return index + 1
        if following is not None and (
            option.value is ValueMode.REQUIRED or not following.group().startswith("-")
        ):
            command.options[option.name] = following.group()
            return index + 2
        if option.value is ValueMode.REQUIRED:
            raise CommandError(f"Option {option.spelling} requires a value")
        command.options[option.name] = True
        return index + 1


# =============================================================================
# Watch List
# =============================================================================


@dataclass(frozen=True)
class WatchChange:
    """A watched variable whose value changed; None means undefined."""

    name: str
    old: Optional[str]
    new: Optional[str]


@dataclass
class WatchEntry:
    name: str
    value: Optional[str]
    added_at: datetime = field(default_factory=datetime.now)
    change_count: int = 0
    history: list[tuple[datetime, Optional[str]]] = field(default_factory=list)


class WatchList:
    """
    Variables whose values are compared after every run.

    Values are the printable previews from the scope snapshot; None stands
    for a variable that is not defined.
    """

    def __init__(self) -> None:
        self._entries: dict[str, WatchEntry] = {}
        # name -> (value at the last diff, latest value)
        self._pending: dict[str, tuple[Optional[str], Optional[str]]] = {}

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lstrip("$") in self._entries

    def __iter__(self) -> Iterator[WatchEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, name: str, value: Optional[str]) -> WatchEntry:
        name = name.lstrip("$")
        if not name:
            raise CommandError("You must specify a variable name to watch")
        entry = self._entries.get(name)
        if entry is None:
            entry = WatchEntry(name, value)
            entry.history.append((entry.added_at, value))
            self._entries[name] = entry
        return entry

    def remove(self, name: str) -> bool:
        name = name.lstrip("$")
        self._pending.pop(name, None)
        return self._entries.pop(name, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        self._pending.clear()
        return count

    def history(self, name: str) -> list[tuple[datetime, Optional[str]]]:
        entry = self._entries.get(name.lstrip("$"))
        if entry is None:
            raise CommandError(f'No history found for variable "{name.lstrip("$")}"')
        return list(entry.history)

    def observe(self, values: Mapping[str, Optional[str]]) -> list[WatchChange]:
        """
        Compare watched variables against fresh values.

        Args:
            values: Variable name -> current preview; missing names are
                undefined

        Returns:
            The variables that changed since the previous observation
        """
        now = datetime.now()
        changes = []
        for entry in self._entries.values():
            current = values.get(entry.name)
            if current == entry.value:
                continue
            changes.append(WatchChange(entry.name, entry.value, current))
            baseline = self._pending.get(entry.name, (entry.value, None))[0]
            self._pending[entry.name] = (baseline, current)
            entry.value = current
            entry.change_count += 1
            entry.history.append((now, current))
        return changes

    def take_diff(self) -> list[WatchChange]:
        """Net changes since the last call; values that changed back are left out."""
        changes = [
            WatchChange(name, old, new)
            for name, (old, new) in self._pending.items()
            if old != new
        ]
        self._pending.clear()
        return changes


# =============================================================================
# Breakpoints
# =============================================================================


@dataclass
class Breakpoint:
    id: int
    target: Optional[str] = None
    condition: Optional[str] = None
    enabled: bool = True

    @property
    def kind(self) -> str:
        return "function/method" if self.target else "conditional"

    @property
    def description(self) -> str:
        if self.target and self.condition:
            return f"{self.target} if {self.condition}"
        return self.target or self.condition or ""


class BreakpointList:
    """
    Registered breakpoints.

    Conditions are checked for syntax when they are added and stored as
    text; they are never evaluated here.
    """

    def __init__(self, detector: Optional[IncompletenessDetector] = None) -> None:
        self.detector = detector or IncompletenessDetector()
        self._items: dict[int, Breakpoint] = {}
        self._next_id = 1

    def __iter__(self) -> Iterator[Breakpoint]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def add(
        self,
        target: Optional[str] = None,
        condition: Optional[str] = None,
        offset: int = 0,
    ) -> Breakpoint:
        """
        Register a breakpoint.

        Args:
            target: `function` or `Class::method`
            condition: PHP expression
            offset: Offset of `condition` in the command line, for errors

        Raises:
            CommandError: When neither is given, or either is malformed
        """
        if not target and not condition:
            raise CommandError("You must specify a target or condition for the breakpoint")
        if target and not _TARGET_RE.match(target):
            raise CommandError(f"Invalid breakpoint target '{target}'")
        if condition:
            self._validate_condition(condition, offset)

        breakpoint = Breakpoint(self._next_id, target or None, condition or None)
        self._items[breakpoint.id] = breakpoint
        self._next_id += 1
        return breakpoint

    def _validate_condition(self, condition: str, offset: int) -> None:
        detection = self.detector.detect(condition, offset)
        if detection.status is InputStatus.INCOMPLETE:
            raise CommandError(f"Incomplete breakpoint condition: {condition}")
        if detection.status is InputStatus.SYNTAX_ERROR and detection.error is not None:
            raise CommandError(detection.error.message, detection.error.location)
        program = detection.program
        if program is None or len(program.statements) != 1 or not isinstance(
            program.statements[0], ExpressionStatement
        ):
            raise CommandError("A breakpoint condition must be a single expression")

    def get(self, breakpoint_id: Union[int, str]) -> Breakpoint:
        try:
            key = int(breakpoint_id)
        except ValueError:
            raise CommandError(f"Invalid breakpoint id '{breakpoint_id}'") from None
        breakpoint = self._items.get(key)
        if breakpoint is None:
            raise CommandError(f"Breakpoint #{key} not found")
        return breakpoint

    def remove(self, breakpoint_id: Union[int, str]) -> Breakpoint:
        breakpoint = self.get(breakpoint_id)
        del self._items[breakpoint.id]
        return breakpoint

    def clear(self) -> int:
        count = len(self._items)
        self._items.clear()
        return count

    def set_enabled(self, breakpoint_id: Union[int, str], enabled: bool) -> Breakpoint:
        breakpoint = self.get(breakpoint_id)
        breakpoint.enabled = enabled
        return breakpoint

"""
phprepl Interactive Shell (Read-Eval-Print Loop).

Reads PHP line by line, keeps prompting while the statement is incomplete,
runs complete buffers in a PHP process and offers context-aware tab
completion from the live scope.

Usage:
    phprepl
    phprepl repl --php /usr/bin/php8.3

Example session:
    >>> $user = new ArrayObject([1, 2]);
    >>> $user->co<TAB>
    count
    >>> function double($n) {
    ...     return $n * 2;
    ... }
    >>> double(21)
    => 42
    >>> watch user
"""

from __future__ import annotations

import logging
import os
import re
import sys
from pathlib import Path
from typing import Optional

try:
    import readline

    HAS_READLINE = True
except ImportError:
    # readline not available on some platforms (e.g., Windows)
    HAS_READLINE = False

from phprepl import __version__
from phprepl.commands import (
    BreakpointList,
    CommandInput,
    CommandLine,
    WatchChange,
    WatchList,
)
from phprepl.compiler.detector import Detection, IncompletenessDetector, InputBuffer, InputStatus
from phprepl.compiler.tokens import KEYWORDS
from phprepl.completion.engine import READLINE_DELIMS, CompletionEngine, ReadlineCompleter
from phprepl.completion.matchers import Matcher, default_matchers
from phprepl.completion.service_matchers import (
    LaravelServiceMatcher,
    SymfonyParameterMatcher,
    SymfonyServiceMatcher,
)
from phprepl.config import ReplConfig
from phprepl.runtime.environment import RuntimeEnvironment
from phprepl.runtime.executor import ExecutionResult, Executor, PhpProcessExecutor
from phprepl.runtime.resolver import ScopeResolver
from phprepl.runtime.symbols import collect_symbols
from phprepl.utils.diagnostics import (
    Diagnostic,
    DiagnosticLevel,
    ErrorCode,
    command_error_diagnostic,
    diagnostic_from_error,
    suggest_similar,
    unknown_command_diagnostic,
)
from phprepl.utils.errors import CommandError, ExecutionError, ExecutionTimeout

logger = logging.getLogger(__name__)

_BARE_WORD_RE = re.compile(r"^\s*([A-Za-z]+)(\s|$)")


# =============================================================================
# ANSI Color Codes
# =============================================================================


class Colors:
    """ANSI escape codes for colored terminal output."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RESET = "\033[0m"

    @classmethod
    def disable(cls) -> None:
        """Disable all colors."""
        for attr in ["RED", "GREEN", "YELLOW", "BLUE", "CYAN", "GRAY", "BOLD", "DIM", "RESET"]:
            setattr(cls, attr, "")

    @classmethod
    def enabled(cls) -> bool:
        return bool(cls.RESET)


def _init_colors() -> None:
    """Initialize colors based on terminal capabilities."""
    if not sys.stdout.isatty() or os.environ.get("NO_COLOR"):
        Colors.disable()


_init_colors()


# =============================================================================
# Completion Setup
# =============================================================================


def build_matchers(config: ReplConfig) -> list[Matcher]:
    """Registry matchers enabled in the config, then the built-in set."""
    matchers: list[Matcher] = []
    if "symfony" in config.matchers:
        matchers.append(SymfonyServiceMatcher(config.symfony_services))
        matchers.append(SymfonyParameterMatcher(config.symfony_parameters))
    if "laravel" in config.matchers:
        matchers.append(LaravelServiceMatcher())
    return matchers + default_matchers()


def create_engine(
    resolver: ScopeResolver,
    config: Optional[ReplConfig] = None,
    commands: Optional[CommandLine] = None,
) -> CompletionEngine:
    config = config or ReplConfig()
    return CompletionEngine(
        resolver,
        matchers=build_matchers(config),
        commands=(commands or CommandLine()).names,
        window_size=config.window_size,
    )


# =============================================================================
# REPL Session
# =============================================================================


class ReplSession:
    """
    Interactive PHP session.

    Owns the input buffer, the runtime environment fed by executor
    snapshots, the completion engine and the watch and breakpoint lists.
    `feed` processes one line and returns the text to print, so the session
    can be driven without a terminal.
    """

    def __init__(
        self,
        config: Optional[ReplConfig] = None,
        executor: Optional[Executor] = None,
        environment: Optional[RuntimeEnvironment] = None,
    ) -> None:
        self.config = config or ReplConfig()
        if not self.config.color:
            Colors.disable()

        # Session state
        self.environment = environment or RuntimeEnvironment.with_builtins()
        self.resolver = ScopeResolver(self.environment)
        self.history: list[str] = []
        self.watches = WatchList()
        self.detector = IncompletenessDetector()
        self.breakpoints = BreakpointList(self.detector)
        self.running = True

        # Input handling
        self.command_line = CommandLine()
        self.buffer = InputBuffer(self.detector)
        self.engine = create_engine(self.resolver, self.config, self.command_line)
        self.executor = executor or PhpProcessExecutor(
            php_binary=self.config.php_binary, timeout=self.config.timeout
        )
        # Raw lines of the buffer being entered, command prefix included
        self._raw_lines: list[str] = []
        self._pending_command: Optional[CommandInput] = None

        self._handlers = {
            "help": self._cmd_help,
            "exit": self._cmd_exit,
            "ls": self._cmd_ls,
            "history": self._cmd_history,
            "timeit": self._cmd_timeit,
            "watch": self._cmd_watch,
            "break": self._cmd_break,
        }

    @property
    def prompt(self) -> str:
        if self.buffer.is_empty:
            return self.config.prompt
        return self.config.continuation_prompt

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def feed(self, line: str) -> str:
        """
        Process one line of input.

        Returns:
            Text to print; empty while a statement is incomplete
        """
        if self.buffer.is_empty:
            try:
                command = self.command_line.split(line)
            except CommandError as error:
                return command_error_diagnostic(error).render(line, Colors.enabled())

            if command is not None and not (command.spec.takes_code and command.code.strip()):
                self.history.append(line)
                return self._run_command(command, line)

            self._pending_command = command
            self._raw_lines = [line]
            if command is not None:
                detection = self.buffer.push(command.code, command.offset)
            else:
                detection = self.buffer.push(line)
        else:
            self._raw_lines.append(line)
            detection = self.buffer.push(line)

        if detection.status is InputStatus.INCOMPLETE:
            return ""

        raw_source = "\n".join(self._raw_lines)
        command = self._pending_command
        self._raw_lines = []
        self._pending_command = None

        if detection.status is InputStatus.SYNTAX_ERROR:
            typo = self._command_typo(raw_source)
            if typo is not None:
                return typo
            if detection.error is None:
                return ""
            return diagnostic_from_error(detection.error).render(raw_source, Colors.enabled())

        if not detection.source.strip():
            return ""

        self.history.append(raw_source)
        if command is not None:
            return self._run_command(command, raw_source, detection)
        if self._is_unknown_bare_word(raw_source):
            typo = self._command_typo(raw_source)
            if typo is not None:
                return typo
        return self._execute(detection)

    def abort(self) -> None:
        """Drop the statement being entered (Ctrl-C)."""
        self.buffer.reset()
        self._raw_lines = []
        self._pending_command = None

    def completion_text(self, line: str, cursor: int) -> tuple[str, int]:
        """Text and cursor the completion engine should see for `line`."""
        text = line[:cursor]
        if self.buffer.is_empty:
            try:
                command = self.command_line.split(text)
            except CommandError:
                command = None
            if command is not None and command.spec.takes_code and command.code:
                text = command.code
        else:
            text = self.buffer.source + "\n" + text
        return text, len(text)

    def _command_typo(self, source: str) -> Optional[str]:
        """Diagnostic for input that looks like a misspelled command."""
        match = _BARE_WORD_RE.match(source)
        if match is None or "\n" in source.strip():
            return None
        word = match.group(1)
        if word.lower() in KEYWORDS or self.command_line.get(word) is not None:
            return None
        if not suggest_similar(word, self.command_line.names):
            return None
        return unknown_command_diagnostic(word, self.command_line.names).render(
            source, Colors.enabled()
        )

    def _is_unknown_bare_word(self, source: str) -> bool:
        word = source.strip().rstrip(";").strip()
        if not word.isidentifier():
            return False
        return word not in self.environment.constants and not self.environment.has_function(word)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _execute(self, detection: Detection) -> str:
        try:
            result = self.executor.execute(detection.source, detection.program)
        except ExecutionTimeout as error:
            return f"{Colors.RED}Error: {error.message}{Colors.RESET}"
        except ExecutionError as error:
            return self._execution_failure(error)

        self._absorb(detection, result)
        lines = self._format_result(result)
        lines.extend(self._format_changes(self._observe_watches()))
        return "\n".join(lines)

    def _absorb(self, detection: Detection, result: ExecutionResult) -> None:
        """Update the environment from a finished run."""
        if result.snapshot:
            self.environment.merge_snapshot(result.snapshot)
        if result.ok and detection.program is not None:
            collect_symbols(detection.program, self.environment)

    def _format_result(self, result: ExecutionResult) -> list[str]:
        lines = []
        if result.stdout:
            lines.append(result.stdout.rstrip("\n"))
        if result.stderr:
            lines.append(f"{Colors.YELLOW}{result.stderr.rstrip()}{Colors.RESET}")
        if result.result is not None:
            lines.append(f"{Colors.GRAY}=>{Colors.RESET} {result.result}")
        return lines

    def _execution_failure(self, error: ExecutionError) -> str:
        diagnostic = Diagnostic(
            code=ErrorCode.E0403,
            level=DiagnosticLevel.ERROR,
            message=error.message,
        )
        if error.stderr:
            diagnostic.helps.append(error.stderr.strip())
        return diagnostic.render("", Colors.enabled())

    def _observe_watches(self) -> list[WatchChange]:
        if not len(self.watches):
            return []
        return self.watches.observe(self._variable_values())

    def _variable_values(self) -> dict[str, Optional[str]]:
        return {name: binding.preview for name, binding in self.environment.variables.items()}

    def _format_changes(self, changes: list[WatchChange]) -> list[str]:
        return [
            f"{Colors.CYAN}watch:{Colors.RESET} ${change.name}: "
            f"{_format_value(change.old)} -> {_format_value(change.new)}"
            for change in changes
        ]

    # -------------------------------------------------------------------------
    # Command Handlers
    # -------------------------------------------------------------------------

    def _run_command(
        self,
        command: CommandInput,
        source: str,
        detection: Optional[Detection] = None,
    ) -> str:
        handler = self._handlers[command.spec.name]
        try:
            return handler(command, detection)
        except CommandError as error:
            return command_error_diagnostic(error).render(source, Colors.enabled())

    def _cmd_help(self, command: CommandInput, detection: Optional[Detection]) -> str:
        """Show the command list or one command's usage."""
        if command.arguments:
            spec = self.command_line.get(command.arguments[0])
            if spec is None:
                return unknown_command_diagnostic(
                    command.arguments[0], self.command_line.names
                ).render("", Colors.enabled())
            lines = [f"{Colors.BOLD}Usage:{Colors.RESET} {spec.usage}", f"  {spec.help_text}"]
            if spec.aliases:
                lines.append(f"  Aliases: {', '.join(spec.aliases)}")
            for option in spec.options:
                short = f"-{option.short}, " if option.short else ""
                lines.append(f"  {Colors.CYAN}{short}{option.spelling:<12}{Colors.RESET} {option.help_text}")
            return "\n".join(lines)

        lines = [f"{Colors.BOLD}Commands:{Colors.RESET}"]
        for spec in self.command_line.commands:
            lines.append(f"  {Colors.CYAN}{spec.name:<10}{Colors.RESET} {spec.help_text}")
        lines.append("")
        lines.append(f"Type {Colors.CYAN}help <command>{Colors.RESET} for details.")
        return "\n".join(lines)

    def _cmd_exit(self, command: CommandInput, detection: Optional[Detection]) -> str:
        self.running = False
        return f"{Colors.DIM}Goodbye!{Colors.RESET}"

    def _cmd_ls(self, command: CommandInput, detection: Optional[Detection]) -> str:
        """List what is defined in the session."""
        sections = ("vars", "functions", "classes", "constants")
        wanted = [name for name in sections if command.flag(name)] or list(sections)
        environment = self.environment

        lines = []
        if "vars" in wanted:
            names = sorted(environment.variables)
            lines.append(self._listing("Variables", [f"${name}" for name in names]))
        if "functions" in wanted:
            lines.append(self._listing("Functions", environment.user_functions()))
        if "classes" in wanted:
            lines.append(self._listing("Classes", [info.name for info in environment.user_classes()]))
        if "constants" in wanted:
            lines.append(self._listing("Constants", environment.user_constants()))
        return "\n".join(lines)

    @staticmethod
    def _listing(title: str, names: list[str]) -> str:
        body = ", ".join(names) if names else f"{Colors.DIM}(none){Colors.RESET}"
        return f"{Colors.BOLD}{title}:{Colors.RESET} {body}"

    def _cmd_history(self, command: CommandInput, detection: Optional[Detection]) -> str:
        count = command.int_value("count", len(self.history))
        start = max(0, len(self.history) - count)
        lines = []
        for number, entry in enumerate(self.history[start:], start=start + 1):
            text = entry.replace("\n", "\n      ")
            lines.append(f"{Colors.GRAY}{number:4}{Colors.RESET}  {text}")
        return "\n".join(lines)

    def _cmd_timeit(self, command: CommandInput, detection: Optional[Detection]) -> str:
        if detection is None or not detection.source.strip():
            raise CommandError("timeit requires code to run")
        iterations = command.int_value("iterations", 1)
        try:
            result = self.executor.timeit(detection.source, iterations)
        except ExecutionTimeout as error:
            return f"{Colors.RED}Error: {error.message}{Colors.RESET}"
        except ExecutionError as error:
            return self._execution_failure(error)

        lines = self._format_result(result)
        if result.elapsed_ns is None:
            lines.append(f"{Colors.RED}Error: no timing was reported{Colors.RESET}")
            return "\n".join(lines)
        total = result.elapsed_ns / 1e9
        lines.append(
            f"Command took {total / iterations:.6f} seconds on average "
            f"({total:.6f} total over {iterations} run{'s' if iterations != 1 else ''})."
        )
        return "\n".join(lines)

    def _cmd_watch(self, command: CommandInput, detection: Optional[Detection]) -> str:
        watches = self.watches

        if command.flag("list"):
            if not len(watches):
                return "No variables are being watched."
            lines = [f"{Colors.BOLD}Watched variables:{Colors.RESET}"]
            for entry in watches:
                lines.append(
                    f"  ${entry.name} = {_format_value(entry.value)}  "
                    f"{Colors.GRAY}({entry.change_count} changes, since "
                    f"{entry.added_at:%H:%M:%S}){Colors.RESET}"
                )
            return "\n".join(lines)

        if command.has("clear"):
            target = command.value("clear") or "all"
            if target == "all":
                return f"Cleared {watches.clear()} watched variable(s)."
            if not watches.remove(target):
                raise CommandError(f'Variable "{target.lstrip("$")}" is not being watched')
            return f'Stopped watching variable "{target.lstrip("$")}".'

        history_of = command.value("history")
        if history_of is not None:
            lines = [f"{Colors.BOLD}History for ${history_of.lstrip('$')}:{Colors.RESET}"]
            for when, value in watches.history(history_of):
                lines.append(f"  {when:%Y-%m-%d %H:%M:%S}  {_format_value(value)}")
            return "\n".join(lines)

        if command.flag("diff"):
            if not len(watches):
                return "No variables are being watched."
            self._observe_watches()
            changes = watches.take_diff()
            if not changes:
                return "No changes detected in watched variables."
            return "\n".join(self._format_changes(changes))

        if not command.arguments:
            raise CommandError("You must specify a variable name to watch")
        name = command.arguments[0].lstrip("$")
        binding = self.environment.get_variable(name)
        entry = watches.add(name, binding.preview if binding else None)
        if binding is None:
            return f'Variable "{name}" not found in current scope, but added to watch list.'
        return f'Now watching variable "{name}" (current value: {_format_value(entry.value)})'

    def _cmd_break(self, command: CommandInput, detection: Optional[Detection]) -> str:
        breakpoints = self.breakpoints

        if command.flag("list"):
            if not len(breakpoints):
                return "No breakpoints set."
            lines = [f"{Colors.BOLD}Breakpoints:{Colors.RESET}"]
            for bp in breakpoints:
                status = "enabled" if bp.enabled else "disabled"
                lines.append(f"  #{bp.id}  {bp.kind:<16} {bp.description}  [{status}]")
            return "\n".join(lines)

        if command.has("clear"):
            target = command.value("clear") or "all"
            if target == "all":
                return f"Cleared {breakpoints.clear()} breakpoint(s)."
            removed = breakpoints.remove(target)
            return f"Cleared breakpoint #{removed.id}."

        for option, enabled in (("enable", True), ("disable", False)):
            value = command.value(option)
            if value is not None:
                bp = breakpoints.set_enabled(value, enabled)
                return f"{option.capitalize()}d breakpoint #{bp.id}."

        target = command.arguments[0] if command.arguments else None
        condition = command.value("if")
        bp = breakpoints.add(target, condition, command.option_offsets.get("if", 0))
        if bp.target and bp.condition:
            return f"Breakpoint #{bp.id} set on {bp.target} when {bp.condition}"
        if bp.target:
            return f"Breakpoint #{bp.id} set on: {bp.target}"
        return f"Conditional breakpoint #{bp.id} set: {bp.condition}"

    # -------------------------------------------------------------------------
    # Main Loop
    # -------------------------------------------------------------------------

    def _setup_readline(self) -> None:
        if not HAS_READLINE:
            return

        def line_source() -> tuple[str, int]:
            return self.completion_text(readline.get_line_buffer(), readline.get_endidx())

        readline.set_completer(ReadlineCompleter(self.engine, line_source))
        readline.set_completer_delims(READLINE_DELIMS)
        readline.parse_and_bind("tab: complete")

        history_file = self.config.history_path
        if history_file.exists():
            try:
                readline.read_history_file(str(history_file))
            except OSError as error:
                logger.warning("Cannot read history file %s: %s", history_file, error)

    def _save_history(self) -> None:
        if not HAS_READLINE:
            return
        history_file: Path = self.config.history_path
        try:
            readline.set_history_length(self.config.history_length)
            readline.write_history_file(str(history_file))
        except OSError as error:
            logger.warning("Cannot write history file %s: %s", history_file, error)

    def run(self) -> int:
        """Main REPL loop."""
        print(f"{Colors.BOLD}phprepl {__version__}{Colors.RESET} - Interactive PHP")
        print(f"Type {Colors.CYAN}help{Colors.RESET} for commands, {Colors.CYAN}exit{Colors.RESET} to quit")
        if isinstance(self.executor, PhpProcessExecutor) and not PhpProcessExecutor.is_available(
            self.config.php_binary
        ):
            print(
                f"{Colors.YELLOW}Warning: '{self.config.php_binary}' not found; "
                f"code cannot be executed{Colors.RESET}"
            )
        print()

        self._setup_readline()
        try:
            while self.running:
                try:
                    line = input(self.prompt)
                except KeyboardInterrupt:
                    print()
                    self.abort()
                    continue
                except EOFError:
                    print(f"\n{Colors.DIM}Goodbye!{Colors.RESET}")
                    break

                output = self.feed(line)
                if output:
                    print(output)
        finally:
            self._save_history()
            self.executor.close()
        return 0


def _format_value(value: Optional[str]) -> str:
    return "<undefined>" if value is None else value


# =============================================================================
# Entry Point
# =============================================================================


def main(config: Optional[ReplConfig] = None) -> int:
    """Entry point for the REPL."""
    session = ReplSession(config)
    return session.run()


if __name__ == "__main__":
    sys.exit(main())

"""
Unit tests for meta-command parsing, watches and breakpoints.
"""

import pytest

from phprepl.commands import (
    COMMANDS,
    BreakpointList,
    CommandLine,
    WatchChange,
    WatchList,
)
from phprepl.utils.errors import CommandError


@pytest.fixture
def command_line():
    return CommandLine(COMMANDS)


class TestCommandLine:
    """Recognising and splitting command lines."""

    def test_php_code_is_not_a_command(self, command_line) -> None:
        assert command_line.split("$x = 1;") is None
        assert command_line.split("echo 'help';") is None
        assert command_line.split("   ") is None

    def test_names_include_aliases(self, command_line) -> None:
        names = command_line.names
        assert {"help", "?", "exit", "quit", "q", "hist"} <= set(names)
        assert names == sorted(names)

    def test_case_insensitive_lookup(self, command_line) -> None:
        command = command_line.split("HELP ls")
        assert command.spec.name == "help"
        assert command.name == "HELP"
        assert command.arguments == ["ls"]

    def test_alias(self, command_line) -> None:
        assert command_line.split("quit").spec.name == "exit"
        assert command_line.split("  q").spec.name == "exit"

    def test_flags(self, command_line) -> None:
        command = command_line.split("ls -v --functions")
        assert command.flag("vars")
        assert command.flag("functions")
        assert not command.flag("classes")

    def test_required_value(self, command_line) -> None:
        command = command_line.split("history -n 5")
        assert command.int_value("count", 20) == 5

    def test_inline_value(self, command_line) -> None:
        command = command_line.split("history --count=3")
        assert command.value("count") == "3"

    def test_missing_required_value(self, command_line) -> None:
        with pytest.raises(CommandError, match="requires a value"):
            command_line.split("history --count")

    def test_flag_with_value_is_rejected(self, command_line) -> None:
        with pytest.raises(CommandError, match="does not take a value"):
            command_line.split("ls --vars=1")

    def test_unknown_option_location(self, command_line) -> None:
        with pytest.raises(CommandError) as exc_info:
            command_line.split("ls --bogus")
        location = exc_info.value.location
        assert location.column == 4
        assert location.offset == 3

    def test_optional_value(self, command_line) -> None:
        assert command_line.split("watch --clear").options["clear"] is True
        assert command_line.split("watch --clear x").value("clear") == "x"
        assert command_line.split("watch --clear --list").options["clear"] is True

    def test_int_value_validation(self, command_line) -> None:
        with pytest.raises(CommandError, match="expects a number"):
            command_line.split("history -n many").int_value("count", 1)
        with pytest.raises(CommandError, match="at least 1"):
            command_line.split("history -n 0").int_value("count", 1)
        assert command_line.split("history").int_value("count", 7) == 7


class TestCodeArguments:
    """Commands that take PHP code keep its offset."""

    def test_code_and_offset(self, command_line) -> None:
        line = "timeit -n 100 strlen('abc');"
        command = command_line.split(line)
        assert command.value("iterations") == "100"
        assert command.code == "strlen('abc');"
        assert command.offset == 14
        assert line[command.offset:] == command.code

    def test_code_without_options(self, command_line) -> None:
        command = command_line.split("timeit   usleep(1);")
        assert command.code == "usleep(1);"
        assert command.offset == 9

    def test_double_dash_ends_options(self, command_line) -> None:
        command = command_line.split("timeit -- -1 * 2;")
        assert command.code == "-1 * 2;"

    def test_code_may_be_missing(self, command_line) -> None:
        command = command_line.split("timeit -n 3")
        assert command.code == ""

    def test_rest_option(self, command_line) -> None:
        line = "break process --if $x > 10 && $y"
        command = command_line.split(line)
        assert command.arguments == ["process"]
        assert command.value("if") == "$x > 10 && $y"
        assert line[command.option_offsets["if"]:] == "$x > 10 && $y"


class TestWatchList:
    """Watched variables."""

    def test_add_strips_sigil(self) -> None:
        watches = WatchList()
        entry = watches.add("$count", "1")
        assert entry.name == "count"
        assert "count" in watches
        assert "$count" in watches
        assert len(watches) == 1

    def test_add_requires_name(self) -> None:
        with pytest.raises(CommandError):
            WatchList().add("$", None)

    def test_observe_reports_changes(self) -> None:
        watches = WatchList()
        watches.add("a", "1")
        watches.add("b", "x")
        changes = watches.observe({"a": "2", "b": "x"})
        assert changes == [WatchChange("a", "1", "2")]
        assert watches.observe({"a": "2", "b": "x"}) == []

    def test_missing_variable_is_undefined(self) -> None:
        watches = WatchList()
        watches.add("a", "1")
        assert watches.observe({}) == [WatchChange("a", "1", None)]

    def test_history(self) -> None:
        watches = WatchList()
        watches.add("a", "1")
        watches.observe({"a": "2"})
        assert [value for _, value in watches.history("$a")] == ["1", "2"]
        with pytest.raises(CommandError):
            watches.history("nope")

    def test_diff_is_net_since_last_call(self) -> None:
        watches = WatchList()
        watches.add("a", "1")
        watches.add("b", "1")
        watches.observe({"a": "2", "b": "2"})
        watches.observe({"a": "3", "b": "1"})
        assert watches.take_diff() == [WatchChange("a", "1", "3")]
        assert watches.take_diff() == []

    def test_remove_and_clear(self) -> None:
        watches = WatchList()
        watches.add("a", None)
        watches.add("b", None)
        assert watches.remove("$a")
        assert not watches.remove("a")
        assert watches.clear() == 1
        assert len(watches) == 0


class TestBreakpoints:
    """Breakpoint registration and validation."""

    def test_function_breakpoint(self) -> None:
        bp = BreakpointList().add("process")
        assert bp.id == 1
        assert bp.kind == "function/method"
        assert bp.description == "process"

    def test_method_breakpoint(self) -> None:
        bp = BreakpointList().add("App\\Service::handle")
        assert bp.target == "App\\Service::handle"

    def test_conditional_breakpoint(self) -> None:
        bp = BreakpointList().add(condition="$x > 10")
        assert bp.kind == "conditional"
        assert bp.condition == "$x > 10"

    def test_target_with_condition(self) -> None:
        bp = BreakpointList().add("process", "$n === 0")
        assert bp.description == "process if $n === 0"

    def test_requires_target_or_condition(self) -> None:
        with pytest.raises(CommandError, match="target or condition"):
            BreakpointList().add()

    @pytest.mark.parametrize("target", ["123abc", "foo()", "a::b::c", "$x"])
    def test_invalid_target(self, target) -> None:
        with pytest.raises(CommandError, match="Invalid breakpoint target"):
            BreakpointList().add(target)

    def test_incomplete_condition(self) -> None:
        with pytest.raises(CommandError, match="Incomplete"):
            BreakpointList().add(condition="($x > 1")

    def test_condition_syntax_error_is_located(self) -> None:
        with pytest.raises(CommandError) as exc_info:
            BreakpointList().add(condition="$x > )", offset=10)
        assert exc_info.value.location.column == 6 + 10

    def test_condition_must_be_single_expression(self) -> None:
        with pytest.raises(CommandError, match="single expression"):
            BreakpointList().add(condition="if ($x) { }")

    def test_ids_are_never_reused(self) -> None:
        breakpoints = BreakpointList()
        first = breakpoints.add("a")
        breakpoints.remove(first.id)
        assert breakpoints.add("b").id == 2

    def test_enable_disable(self) -> None:
        breakpoints = BreakpointList()
        breakpoints.add("a")
        assert not breakpoints.set_enabled("1", False).enabled
        assert breakpoints.set_enabled(1, True).enabled

    def test_lookup_errors(self) -> None:
        breakpoints = BreakpointList()
        with pytest.raises(CommandError, match="Invalid breakpoint id"):
            breakpoints.get("x")
        with pytest.raises(CommandError, match="not found"):
            breakpoints.remove(5)

    def test_clear(self) -> None:
        breakpoints = BreakpointList()
        breakpoints.add("a")
        breakpoints.add("b")
        assert breakpoints.clear() == 2
        assert len(breakpoints) == 0

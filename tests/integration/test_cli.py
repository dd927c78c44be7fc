"""
Integration tests for the command-line interface.
"""

import pytest

from phprepl.cli import create_parser, main


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """An empty working directory with no environment overrides."""
    monkeypatch.chdir(tmp_path)
    for name in ("PHPREPL_PHP", "PHPREPL_TIMEOUT", "NO_COLOR"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def php_file(workdir):
    def write(source: str, name: str = "input.php"):
        path = workdir / name
        path.write_text(source, encoding="utf-8")
        return str(path)

    return write


class TestCheck:
    """`phprepl check` classifies a file."""

    def test_complete(self, php_file, capsys) -> None:
        assert main(["--no-color", "check", php_file("$x = 1;\n")]) == 0
        assert capsys.readouterr().out.strip() == "COMPLETE"

    def test_syntax_error(self, php_file, capsys) -> None:
        assert main(["--no-color", "check", php_file("$x = );")]) == 1
        captured = capsys.readouterr()
        assert captured.out.strip() == "SYNTAX_ERROR"
        assert "error[E0201]" in captured.err
        assert "input.php:1:6" in captured.err

    def test_incomplete(self, php_file, capsys) -> None:
        assert main(["--no-color", "check", php_file("if ($x) {\n")]) == 2
        assert capsys.readouterr().out.strip() == "INCOMPLETE"

    def test_strict_needs_semicolon(self, php_file) -> None:
        path = php_file("$x = 1")
        assert main(["--no-color", "check", path]) == 0
        assert main(["--no-color", "check", path, "--strict"]) == 2

    def test_missing_file(self, workdir, capsys) -> None:
        assert main(["--no-color", "check", "nope.php"]) == 1
        assert "File not found" in capsys.readouterr().err


class TestTokens:
    """`phprepl tokens` dumps the token stream."""

    def test_dump(self, php_file, capsys) -> None:
        assert main(["--no-color", "tokens", php_file("$x = 'abc")]) == 0
        out = capsys.readouterr().out
        assert "VARIABLE" in out
        assert "'$x'" in out
        assert "[unterminated]" in out


class TestComplete:
    """`phprepl complete` prints candidates at a cursor."""

    def test_member_candidates(self, php_file, capsys) -> None:
        assert main(["--no-color", "complete", php_file("$d = new DateTime();\n$d->")]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert "format\tmethod" in lines
        assert "modify\tmethod" in lines

    def test_cursor(self, php_file, capsys) -> None:
        path = php_file("$total = 1;\n$to + 1;")
        assert main(["--no-color", "complete", path, "--cursor", "15"]) == 0
        assert capsys.readouterr().out.splitlines() == ["$total\tvariable"]

    def test_cursor_out_of_range(self, php_file, capsys) -> None:
        assert main(["--no-color", "complete", php_file("$x;"), "--cursor", "99"]) == 1
        assert "outside the file" in capsys.readouterr().err


class TestConfiguration:
    """Configuration problems are reported before any command runs."""

    def test_invalid_project_config(self, php_file, workdir, capsys) -> None:
        (workdir / "phprepl.toml").write_text("[repl]\ntimeout = -1\n", encoding="utf-8")
        assert main(["check", php_file("$x = 1;")]) == 1
        assert "timeout must be positive" in capsys.readouterr().err

    def test_missing_explicit_config(self, php_file, workdir, capsys) -> None:
        assert main(["--config", str(workdir / "missing.toml"), "check", php_file("1;")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_parser_defaults(self) -> None:
        args = create_parser().parse_args(["complete", "a.php"])
        assert args.cursor is None
        assert args.command == "complete"

"""
phprepl Command-Line Interface.

Usage:
    phprepl                         # Interactive shell
    phprepl repl --php php8.3
    phprepl check input.php         # COMPLETE / INCOMPLETE / SYNTAX_ERROR
    phprepl tokens input.php        # Token dump (debug)
    phprepl complete input.php --cursor 42
    phprepl lsp                     # Language server on stdio
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from phprepl import __version__
from phprepl.compiler.detector import IncompletenessDetector, InputStatus
from phprepl.compiler.lexer import tokenize
from phprepl.config import LOG_LEVELS, ReplConfig, load_config
from phprepl.repl import Colors, ReplSession, create_engine
from phprepl.runtime.environment import RuntimeEnvironment
from phprepl.runtime.resolver import ScopeResolver
from phprepl.runtime.symbols import collect_symbols
from phprepl.utils.diagnostics import diagnostic_from_error
from phprepl.utils.errors import ConfigError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Exit codes of `phprepl check`
CHECK_EXIT_CODES: dict[InputStatus, int] = {
    InputStatus.COMPLETE: 0,
    InputStatus.SYNTAX_ERROR: 1,
    InputStatus.INCOMPLETE: 2,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="phprepl",
        description="phprepl - An interactive PHP shell with context-aware completion",
    )

    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file (default: ./phprepl.toml or ~/.config/phprepl/config.toml)",
    )
    parser.add_argument("--php", help="PHP binary used to run code")
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (default: from config, else WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "repl",
        aliases=["i"],
        help="Start the interactive shell (default)",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Classify a file as complete, incomplete or a syntax error",
    )
    check_parser.add_argument("input", type=Path, help="PHP source file")
    check_parser.add_argument(
        "--strict",
        action="store_true",
        help="Do not supply a missing trailing semicolon",
    )

    tokens_parser = subparsers.add_parser(
        "tokens",
        help="Show the tokens of a file (debug)",
    )
    tokens_parser.add_argument("input", type=Path, help="PHP source file")

    complete_parser = subparsers.add_parser(
        "complete",
        help="Print completion candidates for a cursor offset in a file",
    )
    complete_parser.add_argument("input", type=Path, help="PHP source file")
    complete_parser.add_argument(
        "--cursor",
        type=int,
        help="Character offset of the cursor (default: end of file)",
    )

    lsp_parser = subparsers.add_parser(
        "lsp",
        help="Start the language server",
    )
    lsp_parser.add_argument("--tcp", action="store_true", help="Serve over TCP instead of stdio")
    lsp_parser.add_argument("--host", default="127.0.0.1", help="TCP host (default: 127.0.0.1)")
    lsp_parser.add_argument("--port", type=int, default=2087, help="TCP port (default: 2087)")

    return parser


def _read_input(input_path: Path) -> Optional[str]:
    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return None
    try:
        return input_path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"{Colors.RED}Error:{Colors.RESET} {e}", file=sys.stderr)
        return None


# =============================================================================
# Command Handlers
# =============================================================================


def cmd_repl(args: argparse.Namespace, config: ReplConfig) -> int:
    """Handle the repl command."""
    return ReplSession(config).run()


def cmd_check(args: argparse.Namespace, config: ReplConfig) -> int:
    """Handle the check command."""
    source = _read_input(args.input)
    if source is None:
        return 1

    detector = IncompletenessDetector(
        filename=str(args.input), implicit_semicolon=not args.strict
    )
    detection = detector.detect(source)
    print(detection.status.name)

    if detection.error is not None:
        diagnostic = diagnostic_from_error(detection.error, str(args.input))
        print(diagnostic.render(source, use_color=Colors.enabled()), file=sys.stderr)
    return CHECK_EXIT_CODES[detection.status]


def cmd_tokens(args: argparse.Namespace, config: ReplConfig) -> int:
    """Handle the tokens command (debug)."""
    source = _read_input(args.input)
    if source is None:
        return 1

    for token in tokenize(source, str(args.input)):
        flags = []
        if token.unterminated:
            flags.append("unterminated")
        if token.invalid:
            flags.append("invalid")
        suffix = f" {Colors.YELLOW}[{', '.join(flags)}]{Colors.RESET}" if flags else ""
        print(f"{Colors.GRAY}{token.location}{Colors.RESET} {token.kind.name:<12} {token.text!r}{suffix}")
    return 0


def cmd_complete(args: argparse.Namespace, config: ReplConfig) -> int:
    """Handle the complete command."""
    source = _read_input(args.input)
    if source is None:
        return 1

    cursor = len(source) if args.cursor is None else args.cursor
    if not 0 <= cursor <= len(source):
        print(f"Error: cursor {cursor} is outside the file (0..{len(source)})", file=sys.stderr)
        return 1

    # Declarations before the cursor form the scope
    environment = RuntimeEnvironment.with_builtins()
    line_start = source.rfind("\n", 0, cursor) + 1
    detection = IncompletenessDetector().detect(source[:line_start])
    if detection.program is not None:
        collect_symbols(detection.program, environment)

    engine = create_engine(ScopeResolver(environment), config)
    for candidate in engine.complete(source, cursor).candidates:
        print(f"{candidate.text}\t{candidate.kind.value}")
    return 0


def cmd_lsp(args: argparse.Namespace, config: ReplConfig) -> int:
    """Handle the lsp command."""
    from phprepl.lsp.server import serve

    serve(args.tcp, args.host, args.port)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        config = config.with_overrides(
            php_binary=args.php,
            log_level=args.log_level,
            color=False if args.no_color else None,
        )
    except ConfigError as e:
        print(f"{Colors.RED}Configuration error:{Colors.RESET} {e}", file=sys.stderr)
        return 1

    logging.basicConfig(level=getattr(logging, config.log_level.upper()), format=LOG_FORMAT)
    if not config.color:
        Colors.disable()

    command_handlers = {
        None: cmd_repl,
        "repl": cmd_repl,
        "i": cmd_repl,
        "check": cmd_check,
        "tokens": cmd_tokens,
        "complete": cmd_complete,
        "lsp": cmd_lsp,
    }

    handler = command_handlers.get(args.command)
    if handler:
        return handler(args, config)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())

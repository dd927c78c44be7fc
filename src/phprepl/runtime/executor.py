"""
Execution hand-off.

Complete buffers are run by an `Executor`. The PHP implementation starts a
fresh `php` process per buffer: variables survive between runs through a
serialized state file, earlier declarations are replayed, and a shutdown
hook writes a JSON snapshot of the scope that the environment merges for
completion. A run that exceeds its timeout is killed.
"""

import json
import logging
import re
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from phprepl.compiler.ast_nodes import (
    ClassDeclaration,
    ConstDeclaration,
    ExpressionStatement,
    FunctionDeclaration,
    Program,
)
from phprepl.compiler.lexer import significant, tokenize
from phprepl.compiler.tokens import TokenKind
from phprepl.utils.errors import ExecutionError, ExecutionTimeout

logger = logging.getLogger(__name__)

_OPEN_TAG_RE = re.compile(r"^\s*<\?php\b", re.IGNORECASE)


@dataclass
class ExecutionResult:
    """
    Outcome of running code.

    Attributes:
        stdout: Program output
        stderr: Warnings and errors reported by PHP
        returncode: Process exit status
        snapshot: Scope snapshot for `RuntimeEnvironment.merge_snapshot`
        result: Rendering of the value of a lone expression statement
        elapsed_ns: Loop time reported by `timeit`
    """

    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    snapshot: dict[str, Any] = field(default_factory=dict)
    result: Optional[str] = None
    elapsed_ns: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Executor(ABC):
    """Runs complete buffers on behalf of the shell."""

    @abstractmethod
    def execute(self, source: str, program: Optional[Program] = None) -> ExecutionResult:
        """Run a complete buffer; `program` is its parse, when available."""

    @abstractmethod
    def timeit(self, source: str, iterations: int) -> ExecutionResult:
        """Run `source` `iterations` times and report the elapsed time."""

    def close(self) -> None:
        pass

    def __enter__(self) -> "Executor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def php_string(value: str) -> str:
    """Render a PHP single-quoted string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def expression_of(source: str) -> Optional[str]:
    """Text of `expr` for a source of the form `expr;`, else None."""
    tokens = [t for t in significant(tokenize(source)) if t.kind != TokenKind.EOF]
    if len(tokens) < 2 or not tokens[-1].is_op(";"):
        return None
    return source[tokens[0].position:tokens[-1].position]


# Scope capture runs from a shutdown hook so it also happens after exit() or
# a fatal error in user code.
_PRELUDE = r"""<?php
$__phprepl_builtin = array_merge(get_declared_classes(), get_declared_interfaces(), get_declared_traits());
$__phprepl_state_path = @STATE@;
$__phprepl_snapshot_path = @SNAPSHOT@;
if (is_file($__phprepl_state_path)) {
    foreach ((array) @unserialize(file_get_contents($__phprepl_state_path)) as $__phprepl_name => $__phprepl_value) {
        $$__phprepl_name = @unserialize($__phprepl_value);
    }
    unset($__phprepl_name, $__phprepl_value);
}
register_shutdown_function(static function () use ($__phprepl_builtin, $__phprepl_state_path, $__phprepl_snapshot_path) {
    $preview = static function ($value, int $limit): string {
        if (is_object($value)) {
            return get_class($value) . ' {#' . spl_object_id($value) . '}';
        }
        if (is_array($value) && count($value) > 20) {
            return 'array(' . count($value) . ')';
        }
        if (is_resource($value)) {
            return 'resource(' . get_resource_type($value) . ')';
        }
        $text = @var_export($value, true);
        return strlen($text) > $limit ? substr($text, 0, $limit) . '...' : $text;
    };
    $skip = ['GLOBALS', '_GET', '_POST', '_COOKIE', '_FILES', '_SERVER', '_ENV', '_REQUEST', '_SESSION', 'argv', 'argc'];
    $variables = [];
    $state = [];
    foreach ($GLOBALS as $name => $value) {
        if (in_array($name, $skip, true) || strncmp($name, '__phprepl', 9) === 0) {
            continue;
        }
        $info = ['type' => gettype($value), 'preview' => $preview($value, 80)];
        if (is_object($value)) {
            $info['class'] = get_class($value);
            $info['properties'] = [];
            foreach (get_object_vars($value) as $prop => $propValue) {
                $info['properties'][$prop] = is_object($propValue) ? get_class($propValue) : gettype($propValue);
            }
        }
        $variables[$name] = $info;
        try {
            $state[$name] = serialize($value);
        } catch (\Throwable $e) {
            // Closures and resources cannot cross process boundaries
        }
    }
    $visibility = static function ($reflector): string {
        return $reflector->isPublic() ? 'public' : ($reflector->isProtected() ? 'protected' : 'private');
    };
    $classes = [];
    $declared = array_merge(get_declared_classes(), get_declared_interfaces(), get_declared_traits());
    foreach (array_diff($declared, $__phprepl_builtin) as $class) {
        $reflection = new \ReflectionClass($class);
        $members = [];
        foreach ($reflection->getMethods() as $method) {
            $members[] = ['name' => $method->getName(), 'kind' => 'method', 'static' => $method->isStatic(),
                'visibility' => $visibility($method), 'class' => $method->getDeclaringClass()->getName()];
        }
        foreach ($reflection->getProperties() as $property) {
            $type = $property->getType();
            $members[] = ['name' => $property->getName(), 'kind' => 'property', 'static' => $property->isStatic(),
                'visibility' => $visibility($property), 'class' => $property->getDeclaringClass()->getName(),
                'type' => $type instanceof \ReflectionNamedType && !$type->isBuiltin() ? $type->getName() : null];
        }
        foreach ($reflection->getReflectionConstants() as $constant) {
            $members[] = ['name' => $constant->getName(), 'kind' => 'constant', 'static' => true,
                'visibility' => $visibility($constant), 'class' => $constant->getDeclaringClass()->getName()];
        }
        $kind = $reflection->isInterface() ? 'interface' : ($reflection->isTrait() ? 'trait' : ($reflection->isEnum() ? 'enum' : 'class'));
        $parent = $reflection->getParentClass();
        $classes[] = ['name' => $reflection->getName(), 'kind' => $kind, 'parent' => $parent ? $parent->getName() : null,
            'interfaces' => $reflection->getInterfaceNames(), 'traits' => $reflection->getTraitNames(), 'members' => $members];
    }
    $snapshot = [
        'variables' => $variables,
        'functions' => get_defined_functions()['user'],
        'classes' => $classes,
        'constants' => array_keys(get_defined_constants(true)['user'] ?? []),
    ];
    if (array_key_exists('__phprepl_result', $GLOBALS)) {
        $snapshot['result'] = $preview($GLOBALS['__phprepl_result'], 2000);
    }
    if (array_key_exists('__phprepl_elapsed', $GLOBALS)) {
        $snapshot['elapsed_ns'] = $GLOBALS['__phprepl_elapsed'];
    }
    file_put_contents($__phprepl_state_path, serialize($state));
    file_put_contents($__phprepl_snapshot_path, json_encode($snapshot, JSON_PARTIAL_OUTPUT_ON_ERROR | JSON_INVALID_UTF8_SUBSTITUTE));
});
"""


class PhpProcessExecutor(Executor):
    """
    Runs code in a separate `php` process.

    Args:
        php_binary: PHP CLI executable
        timeout: Seconds before a run is killed
        cwd: Working directory for the process
    """

    def __init__(
        self,
        php_binary: str = "php",
        timeout: float = 10.0,
        cwd: Optional[Path] = None,
    ) -> None:
        self.php_binary = php_binary
        self.timeout = timeout
        self.cwd = cwd
        self._workdir = tempfile.TemporaryDirectory(prefix="phprepl-")
        self._state_path = Path(self._workdir.name) / "state.ser"
        self._snapshot_path = Path(self._workdir.name) / "snapshot.json"
        # Declarations from earlier runs, replayed before each new one
        self._declarations: list[str] = []

    @staticmethod
    def is_available(php_binary: str = "php") -> bool:
        return shutil.which(php_binary) is not None

    @property
    def declarations(self) -> tuple[str, ...]:
        return tuple(self._declarations)

    def execute(self, source: str, program: Optional[Program] = None) -> ExecutionResult:
        body = _OPEN_TAG_RE.sub("", source, count=1)
        if program is not None and self._is_lone_expression(program):
            expression = expression_of(body)
            if expression is not None:
                body = f"$__phprepl_result = ({expression});"

        result = self._run(body)
        if result.ok and program is not None:
            self._remember_declarations(source, program)
        return result

    def timeit(self, source: str, iterations: int) -> ExecutionResult:
        body = (
            "$__phprepl_start = hrtime(true);\n"
            f"for ($__phprepl_i = 0; $__phprepl_i < {int(iterations)}; $__phprepl_i++) {{\n"
            f"{_OPEN_TAG_RE.sub('', source, count=1)}\n"
            "}\n"
            "$__phprepl_elapsed = hrtime(true) - $__phprepl_start;"
        )
        return self._run(body)

    def close(self) -> None:
        self._workdir.cleanup()

    @staticmethod
    def _is_lone_expression(program: Program) -> bool:
        statements = program.statements
        return (
            len(statements) == 1
            and isinstance(statements[0], ExpressionStatement)
            and not statements[0].is_assignment
        )

    def _remember_declarations(self, source: str, program: Program) -> None:
        for statement in program.statements:
            if isinstance(statement, (FunctionDeclaration, ClassDeclaration, ConstDeclaration)):
                start, end = statement.span
                self._declarations.append(source[start:end])

    def _script(self, body: str) -> str:
        prelude = _PRELUDE.replace("@STATE@", php_string(str(self._state_path))).replace(
            "@SNAPSHOT@", php_string(str(self._snapshot_path))
        )
        return "\n".join([prelude, *self._declarations, body, ""])

    def _run(self, body: str) -> ExecutionResult:
        script = self._script(body)
        self._snapshot_path.unlink(missing_ok=True)
        logger.debug("Running %d characters of PHP with %s", len(script), self.php_binary)

        try:
            completed = subprocess.run(
                [self.php_binary, "-d", "display_errors=stderr", "-d", "log_errors=0"],
                input=script,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.cwd,
            )
        except subprocess.TimeoutExpired as error:
            raise ExecutionTimeout(self.timeout) from error
        except OSError as error:
            raise ExecutionError(f"Cannot run {self.php_binary}: {error}") from error

        snapshot = self._read_snapshot()
        logger.debug("PHP exited with status %d", completed.returncode)
        return ExecutionResult(
            stdout=completed.stdout,
            stderr=completed.stderr,
            returncode=completed.returncode,
            snapshot=snapshot,
            result=snapshot.pop("result", None),
            elapsed_ns=snapshot.pop("elapsed_ns", None),
        )

    def _read_snapshot(self) -> dict[str, Any]:
        try:
            text = self._snapshot_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            return json.loads(text)
        except json.JSONDecodeError as error:
            logger.warning("Ignoring unreadable scope snapshot: %s", error)
            return {}

"""
phprepl Runtime Package.

What the shell knows about the live PHP session and how code reaches it:
- RuntimeEnvironment: variables, functions, classes and constants
- ScopeResolver: read-only queries used by completion
- SymbolCollector: records declarations and bindings from parsed input
- PhpProcessExecutor: runs complete buffers in a `php` process
"""

from phprepl.runtime.environment import (
    ClassInfo,
    MemberInfo,
    MemberKind,
    RuntimeEnvironment,
    SymbolKind,
    VariableBinding,
)
from phprepl.runtime.executor import (
    ExecutionResult,
    Executor,
    PhpProcessExecutor,
)
from phprepl.runtime.resolver import ScopeResolver
from phprepl.runtime.symbols import SymbolCollector, collect_symbols

__all__ = [
    "ClassInfo",
    "ExecutionResult",
    "Executor",
    "MemberInfo",
    "MemberKind",
    "PhpProcessExecutor",
    "RuntimeEnvironment",
    "ScopeResolver",
    "SymbolCollector",
    "SymbolKind",
    "VariableBinding",
    "collect_symbols",
]

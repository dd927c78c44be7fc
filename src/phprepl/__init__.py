"""
phprepl - An interactive PHP shell.

phprepl reads PHP a line at a time, decides whether the buffer is a complete
statement, runs complete buffers in a PHP process and offers tab completion
driven by the live scope.
"""

__version__ = "0.1.0"

from phprepl.compiler import InputStatus, detect, tokenize  # noqa: E402
from phprepl.completion import CompletionEngine  # noqa: E402
from phprepl.runtime import RuntimeEnvironment, ScopeResolver  # noqa: E402

__all__ = [
    "CompletionEngine",
    "InputStatus",
    "RuntimeEnvironment",
    "ScopeResolver",
    "detect",
    "tokenize",
    "__version__",
]

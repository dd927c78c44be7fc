"""
phprepl Language Server Protocol (LSP) implementation.

Brings the shell's input handling to editors:
- Diagnostics for incomplete documents and syntax errors
- Completion of variables, members, classes, functions and keywords

Usage:
    # Start the LSP server (stdio mode)
    phprepl-lsp

    # Or run as a module
    python -m phprepl.lsp
"""

from phprepl.lsp.server import PhpReplLanguageServer, create_server, main

__all__ = [
    "PhpReplLanguageServer",
    "create_server",
    "main",
]

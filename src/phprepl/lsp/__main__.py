"""
Entry point for running the phprepl LSP server as a module.

Usage:
    python -m phprepl.lsp
    python -m phprepl.lsp --tcp --port 2087
"""

from phprepl.lsp.server import main

if __name__ == "__main__":
    main()

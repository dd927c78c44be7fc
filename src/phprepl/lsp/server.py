"""
phprepl Language Server Protocol (LSP) Server.

Serves the shell's interactive-input core to editors through pygls:

- Document synchronization (open, change, save, close)
- Diagnostics: incomplete documents as warnings, syntax errors as errors
- Completion from the document's own declarations and the builtins

Usage:
    # Start the server in stdio mode (for IDE integration)
    phprepl-lsp

    # Start in TCP mode (for debugging)
    phprepl-lsp --tcp --port 2087
"""

import logging
from typing import Optional

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from phprepl import __version__
from phprepl.lsp.completions import CompletionProvider
from phprepl.lsp.diagnostics import DiagnosticProvider

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("phprepl-lsp")

TRIGGER_CHARACTERS = ["$", ">", ":", "(", "'", '"', " "]


class PhpReplLanguageServer(LanguageServer):
    """
    Language server for PHP buffers.

    Keeps the latest diagnostics per document; completion always works on
    the current document text.
    """

    def __init__(self) -> None:
        super().__init__(name="phprepl-lsp", version=__version__)

        # uri -> diagnostics last published
        self._diagnostics: dict[str, list[types.Diagnostic]] = {}

        self._register_handlers()

    def _register_handlers(self) -> None:
        """
        Register all LSP request and notification handlers.

        pygls tags each handler with its registration name, which bound
        methods do not allow, so every feature gets a plain function.
        """

        # Document synchronization
        @self.feature(types.TEXT_DOCUMENT_DID_OPEN)
        def did_open(params: types.DidOpenTextDocumentParams) -> None:
            self._on_did_open(params)

        @self.feature(types.TEXT_DOCUMENT_DID_CHANGE)
        def did_change(params: types.DidChangeTextDocumentParams) -> None:
            self._on_did_change(params)

        @self.feature(types.TEXT_DOCUMENT_DID_SAVE)
        def did_save(params: types.DidSaveTextDocumentParams) -> None:
            self._on_did_save(params)

        @self.feature(types.TEXT_DOCUMENT_DID_CLOSE)
        def did_close(params: types.DidCloseTextDocumentParams) -> None:
            self._on_did_close(params)

        # Completion
        @self.feature(
            types.TEXT_DOCUMENT_COMPLETION,
            types.CompletionOptions(
                trigger_characters=TRIGGER_CHARACTERS,
                resolve_provider=False,
            ),
        )
        def completion(params: types.CompletionParams) -> Optional[types.CompletionList]:
            return self._on_completion(params)

    def analyze(self, uri: str, text: str) -> list[types.Diagnostic]:
        """Compute and remember the diagnostics for a document."""
        diagnostics = DiagnosticProvider(text, uri).get_diagnostics()
        self._diagnostics[uri] = diagnostics
        return diagnostics

    def diagnostics_for(self, uri: str) -> list[types.Diagnostic]:
        return list(self._diagnostics.get(uri, ()))

    def _publish(self, uri: str, diagnostics: list[types.Diagnostic]) -> None:
        self.text_document_publish_diagnostics(
            types.PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
        )

    def _refresh(self, uri: str) -> None:
        doc = self.workspace.get_text_document(uri)
        self._publish(uri, self.analyze(uri, doc.source))

    # =========================================================================
    # Document Synchronization
    # =========================================================================

    def _on_did_open(self, params: types.DidOpenTextDocumentParams) -> None:
        document = params.text_document
        logger.info("Document opened: %s", document.uri)
        self._publish(document.uri, self.analyze(document.uri, document.text))

    def _on_did_change(self, params: types.DidChangeTextDocumentParams) -> None:
        uri = params.text_document.uri
        logger.debug("Document changed: %s", uri)
        self._refresh(uri)

    def _on_did_save(self, params: types.DidSaveTextDocumentParams) -> None:
        uri = params.text_document.uri
        logger.info("Document saved: %s", uri)
        self._refresh(uri)

    def _on_did_close(self, params: types.DidCloseTextDocumentParams) -> None:
        uri = params.text_document.uri
        logger.info("Document closed: %s", uri)
        self._diagnostics.pop(uri, None)
        self._publish(uri, [])

    # =========================================================================
    # Completion
    # =========================================================================

    def _on_completion(self, params: types.CompletionParams) -> Optional[types.CompletionList]:
        doc = self.workspace.get_text_document(params.text_document.uri)
        position = params.position
        items = CompletionProvider(doc.source).get_completions(
            position.line, position.character
        )
        return types.CompletionList(is_incomplete=False, items=items)


# =============================================================================
# Server Creation and Main Entry Point
# =============================================================================


def create_server() -> PhpReplLanguageServer:
    """Create and configure a language server instance."""
    server = PhpReplLanguageServer()

    @server.feature(types.INITIALIZED)
    def on_initialized(
        params: types.InitializedParams,  # noqa: ARG001
    ) -> None:
        logger.info("phprepl language server initialized")

    @server.feature(types.SHUTDOWN)
    def on_shutdown(
        params: None,  # noqa: ARG001
    ) -> None:
        logger.info("Shutting down phprepl language server")

    return server


def serve(tcp: bool = False, host: str = "127.0.0.1", port: int = 2087) -> None:
    server = create_server()
    if tcp:
        logger.info("Starting phprepl LSP in TCP mode on %s:%d", host, port)
        server.start_tcp(host, port)
    else:
        logger.info("Starting phprepl LSP in stdio mode")
        server.start_io()


def main() -> None:
    """
    Main entry point for the language server.

    Starts the server in stdio mode for IDE integration.
    """
    import argparse

    parser = argparse.ArgumentParser(
        description="phprepl Language Server",
        prog="phprepl-lsp",
    )
    parser.add_argument(
        "--tcp",
        action="store_true",
        help="Start server in TCP mode instead of stdio",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to in TCP mode (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=2087,
        help="Port to listen on in TCP mode (default: 2087)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Logging level (default: info)",
    )

    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper()), format=LOG_FORMAT)
    serve(args.tcp, args.host, args.port)


if __name__ == "__main__":
    main()

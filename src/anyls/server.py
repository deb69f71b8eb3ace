from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Generator, Optional

from pygls.exceptions import JsonRpcInternalError, JsonRpcInvalidParams
from pygls.lsp.server import LanguageServer
from pygls.protocol.language_server import LanguageServerProtocol, lsp_method
from lsprotocol.types import (
    INITIALIZE,
    INITIALIZED,
    SHUTDOWN,
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DIAGNOSTIC,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    TEXT_DOCUMENT_HOVER,
    CompletionList,
    CompletionParams,
    Diagnostic,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    DocumentDiagnosticParams,
    Hover,
    HoverOptions,
    HoverParams,
    InitializeParams,
    InitializeResult,
    InitializedParams,
    LogMessageParams,
    MarkupContent,
    MarkupKind,
    MessageType,
    PublishDiagnosticsParams,
    RelatedFullDocumentDiagnosticReport,
)

from anyls import __version__
from anyls.capabilities import POSITION_ENCODING
from anyls.config import AnyLsConfig
from anyls.documents import DocumentStore
from anyls.exceptions import DocumentNotFound, ProviderError
from anyls.providers.registry import ProviderRegistry, probe_providers

logger = logging.getLogger(__name__)

SERVER_NAME = "anyls"

_MESSAGE_TYPES: dict[int, MessageType] = {
    logging.CRITICAL: MessageType.Error,
    logging.ERROR: MessageType.Error,
    logging.WARNING: MessageType.Warning,
    logging.INFO: MessageType.Info,
    logging.DEBUG: MessageType.Log,
}


def message_type_for(level: int) -> MessageType:
    return _MESSAGE_TYPES.get(level, MessageType.Log)


class AnyLsProtocol(LanguageServerProtocol):
    @lsp_method(INITIALIZE)
    def lsp_initialize(
        self, params: InitializeParams
    ) -> Generator[Any, Any, InitializeResult]:
        """Negotiate UTF-16 regardless of the client's preference order.

        Token columns and tool ranges are counted in UTF-16 code units, which
        every client must support.
        """
        general = params.capabilities.general
        if general is not None and general.position_encodings is not None:
            if POSITION_ENCODING not in general.position_encodings:
                logger.warning(
                    "Client offered %s, answering with %s",
                    general.position_encodings,
                    POSITION_ENCODING.value,
                )
            general.position_encodings = [POSITION_ENCODING]
        return (yield from super().lsp_initialize(params))


class AnyLanguageServer(LanguageServer):
    def __init__(self, registry: ProviderRegistry) -> None:
        capabilities = registry.merged_capabilities()
        super().__init__(
            SERVER_NAME,
            __version__,
            text_document_sync_kind=capabilities.text_document_sync,
            protocol_cls=AnyLsProtocol,
        )
        self.registry = registry
        self.merged_capabilities = capabilities
        self.documents = DocumentStore(
            registry,
            publish=self.publish,
            log=self.log_to_client,
        )

    def publish(self, uri: str, diagnostics: list[Diagnostic], version: Optional[int]) -> None:
        self.text_document_publish_diagnostics(
            PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics, version=version)
        )

    def log_to_client(self, level: int, message: str) -> None:
        self.window_log_message(
            LogMessageParams(type=message_type_for(level), message=message)
        )


def initialized(ls: AnyLanguageServer, params: InitializedParams) -> None:
    ls.log_to_client(logging.INFO, "server initialized!")


def shutdown(ls: AnyLanguageServer, params: None = None) -> None:
    ls.registry.close()


def did_open(ls: AnyLanguageServer, params: DidOpenTextDocumentParams) -> None:
    document = params.text_document
    ls.documents.open(document.uri, document.language_id, document.version, document.text)


def did_change(ls: AnyLanguageServer, params: DidChangeTextDocumentParams) -> None:
    if not params.content_changes:
        return
    # Full sync: every entry carries the whole document, the last one is current.
    text = params.content_changes[-1].text
    ls.documents.change(params.text_document.uri, params.text_document.version, text)


def did_save(ls: AnyLanguageServer, params: DidSaveTextDocumentParams) -> None:
    ls.documents.save(params.text_document.uri)


def did_close(ls: AnyLanguageServer, params: DidCloseTextDocumentParams) -> None:
    ls.documents.close(params.text_document.uri)


def document_diagnostic(
    ls: AnyLanguageServer, params: DocumentDiagnosticParams
) -> RelatedFullDocumentDiagnosticReport:
    uri = params.text_document.uri
    try:
        document = ls.documents.snapshot(uri)
        items = ls.documents.diagnostics(uri)
    except DocumentNotFound as exc:
        raise JsonRpcInvalidParams(message=str(exc)) from exc
    except ProviderError as exc:
        logger.error("Diagnostics unavailable for %s: %s", uri, exc)
        ls.log_to_client(logging.ERROR, str(exc))
        ls.documents.clear(document)
        raise JsonRpcInternalError(message=str(exc)) from exc
    return RelatedFullDocumentDiagnosticReport(items=items, kind="full")


def hover(ls: AnyLanguageServer, params: HoverParams) -> Hover | None:
    text = ls.documents.hover(
        params.text_document.uri, params.position.line, params.position.character
    )
    if text is None:
        return None
    return Hover(contents=MarkupContent(kind=MarkupKind.PlainText, value=text))


def completion(ls: AnyLanguageServer, params: CompletionParams) -> CompletionList:
    items = ls.documents.completions(
        params.text_document.uri, params.position.line, params.position.character
    )
    return CompletionList(is_incomplete=False, items=items)


def create_server(registry: ProviderRegistry) -> AnyLanguageServer:
    """Bind the registry to a pygls server advertising its merged capabilities."""
    server = AnyLanguageServer(registry)
    capabilities = server.merged_capabilities

    server.feature(INITIALIZED)(initialized)
    server.feature(SHUTDOWN)(shutdown)
    server.feature(TEXT_DOCUMENT_DID_OPEN)(server.thread()(did_open))
    server.feature(TEXT_DOCUMENT_DID_CHANGE)(did_change)
    server.feature(TEXT_DOCUMENT_DID_SAVE)(server.thread()(did_save))
    server.feature(TEXT_DOCUMENT_DID_CLOSE)(did_close)

    if capabilities.diagnostic_provider is not None:
        server.feature(TEXT_DOCUMENT_DIAGNOSTIC, capabilities.diagnostic_provider)(
            server.thread()(document_diagnostic)
        )
    if isinstance(capabilities.hover_provider, HoverOptions):
        server.feature(TEXT_DOCUMENT_HOVER, capabilities.hover_provider)(hover)
    elif capabilities.hover_provider:
        server.feature(TEXT_DOCUMENT_HOVER)(hover)
    if capabilities.completion_provider is not None:
        server.feature(TEXT_DOCUMENT_COMPLETION, capabilities.completion_provider)(completion)
    return server


def start(
    root: Path,
    config: AnyLsConfig | None = None,
    *,
    start_fn: Callable[[AnyLanguageServer], None] | None = None,
) -> None:
    """Probe providers, then serve LSP on stdio.

    Providers (and the definition index) are built before the transport
    starts, so the initialize handshake never waits on filesystem scanning.
    """
    serve(probe_providers(root, config), start_fn=start_fn)


def serve(
    registry: ProviderRegistry,
    *,
    start_fn: Callable[[AnyLanguageServer], None] | None = None,
) -> None:
    """Run a server over ``registry`` and release its providers however it exits."""
    try:
        server = create_server(registry)
        logger.info(
            "Starting %s %s with %d providers", SERVER_NAME, __version__, len(registry)
        )
        if start_fn is None:
            server.start_io()
        else:
            start_fn(server)
    finally:
        registry.close()

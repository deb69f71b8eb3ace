"""Open-document state and diagnostic recomputation.

Every open document keeps the providers it was assigned when it was opened.
The document map is guarded by one lock, and every transition (open, change,
close, publish) is a single critical section under it. Providers always run
outside the lock, on a snapshot, and their results are published only if the
document has not changed in the meantime.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence, TypeAlias

from lsprotocol.types import CompletionItem, Diagnostic, Position

from anyls.exceptions import DocumentNotFound, ProviderError
from anyls.providers.contract import Provider
from anyls.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

Publisher: TypeAlias = Callable[[str, list[Diagnostic], Optional[int]], None]
ClientLog: TypeAlias = Callable[[int, str], None]


@dataclass(frozen=True)
class DocumentSnapshot:
    uri: str
    filetype: str
    version: int
    contents: str
    providers: tuple[Provider, ...]
    revision: int = 0


def _ignore_log(_level: int, _message: str) -> None:
    return None


def aggregate_diagnostics(
    providers: Sequence[Provider],
    contents: str,
    *,
    log: ClientLog = _ignore_log,
) -> list[Diagnostic]:
    """Concatenate diagnostics from every provider that succeeded.

    Failures are only logged while at least one provider succeeds. When all
    of them fail, the last failure in provider order is raised.
    """
    diagnostics: list[Diagnostic] = []
    succeeded = False
    last_error: ProviderError | None = None
    for provider in providers:
        try:
            found = provider.compute_diagnostics(contents)
        except ProviderError as exc:
            message = f"{provider.kind.value}: {exc}"
            logger.warning("Diagnostics failed for %s", message)
            log(logging.WARNING, message)
            last_error = exc
            continue
        succeeded = True
        diagnostics.extend(found)
    if not succeeded and last_error is not None:
        raise last_error
    return diagnostics


class DocumentStore:
    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        publish: Publisher,
        log: ClientLog = _ignore_log,
    ) -> None:
        self._registry = registry
        self._publish = publish
        self._log = log
        self._lock = threading.Lock()
        self._documents: dict[str, DocumentSnapshot] = {}
        self._revisions = 0

    def _next_revision(self) -> int:
        self._revisions += 1
        return self._revisions

    def snapshot(self, uri: str) -> DocumentSnapshot:
        with self._lock:
            document = self._documents.get(uri)
        if document is None:
            raise DocumentNotFound(uri)
        return document

    def __contains__(self, uri: object) -> bool:
        with self._lock:
            return uri in self._documents

    def open(self, uri: str, filetype: str, version: int, text: str) -> bool:
        providers = self._registry.providers_for(filetype)
        if not providers:
            message = f"No provider for filetype: {filetype}"
            logger.info("%s (%s)", message, uri)
            self._log(logging.WARNING, message)
            return False
        with self._lock:
            self._documents[uri] = DocumentSnapshot(
                uri=uri,
                filetype=filetype,
                version=version,
                contents=text,
                providers=providers,
                revision=self._next_revision(),
            )
        self.refresh(uri)
        return True

    def change(self, uri: str, version: int, text: str) -> None:
        with self._lock:
            document = self._documents.get(uri)
            if document is None:
                logger.debug("Ignoring change for untracked document %s", uri)
                return
            self._documents[uri] = replace(
                document,
                version=version,
                contents=text,
                revision=self._next_revision(),
            )

    def save(self, uri: str) -> None:
        if uri not in self:
            logger.debug("Ignoring save for untracked document %s", uri)
            return
        self.refresh(uri)

    def close(self, uri: str) -> None:
        with self._lock:
            document = self._documents.pop(uri, None)
            version = document.version if document is not None else None
            self._publish(uri, [], version)

    def diagnostics(self, uri: str) -> list[Diagnostic]:
        document = self.snapshot(uri)
        return aggregate_diagnostics(document.providers, document.contents, log=self._log)

    def refresh(self, uri: str) -> None:
        """Recompute diagnostics for ``uri`` and publish them if still current."""
        try:
            document = self.snapshot(uri)
        except DocumentNotFound:
            return
        try:
            diagnostics = aggregate_diagnostics(
                document.providers, document.contents, log=self._log
            )
        except ProviderError as exc:
            logger.error("Diagnostics unavailable for %s: %s", uri, exc)
            self._log(logging.ERROR, str(exc))
            diagnostics = []
        self._publish_if_current(document, diagnostics)

    def clear(self, document: DocumentSnapshot) -> None:
        self._publish_if_current(document, [])

    def _publish_if_current(
        self, document: DocumentSnapshot, diagnostics: list[Diagnostic]
    ) -> bool:
        with self._lock:
            current = self._documents.get(document.uri)
            if current is None or current.revision != document.revision:
                logger.debug(
                    "Discarding diagnostics for superseded %s (version %s)",
                    document.uri,
                    document.version,
                )
                return False
            self._publish(document.uri, diagnostics, document.version)
            return True

    def _feature_providers(self, uri: str, feature: str) -> tuple[DocumentSnapshot, list[Provider]] | None:
        try:
            document = self.snapshot(uri)
        except DocumentNotFound:
            logger.debug("No %s for untracked document %s", feature, uri)
            return None
        providers = [
            provider
            for provider in document.providers
            if getattr(provider.capabilities(), feature) not in (None, False)
        ]
        return document, providers

    def hover(self, uri: str, line: int, character: int) -> str | None:
        found = self._feature_providers(uri, "hover_provider")
        if found is None:
            return None
        document, providers = found
        if not providers:
            return None
        provider = providers[0]
        try:
            return provider.hover(document.contents, Position(line=line, character=character))
        except ProviderError as exc:
            logger.warning("Hover failed for %s: %s", uri, exc)
            return None

    def completions(self, uri: str, line: int, character: int) -> list[CompletionItem]:
        found = self._feature_providers(uri, "completion_provider")
        if found is None:
            return []
        document, providers = found
        if not providers:
            return []
        provider = providers[0]
        try:
            return provider.completions(
                document.contents, Position(line=line, character=character)
            )
        except ProviderError as exc:
            logger.warning("Completion failed for %s: %s", uri, exc)
            return []

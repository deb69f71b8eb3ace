from __future__ import annotations

import logging
from pathlib import Path

from lsprotocol.types import (
    CompletionItem,
    CompletionItemKind,
    CompletionOptions,
    Diagnostic,
    Position,
    ServerCapabilities,
)

from anyls.definitions import MAX_TRAVERSAL_DEPTH, DefinitionIndex
from anyls.hover import render_definitions, token_at
from anyls.providers.contract import ProviderKind

logger = logging.getLogger(__name__)


class PropsProvider:
    """Hover and completion for names defined in ``.env``-style files.

    Applies to every filetype. The index is taken as given and never rebuilt
    during the session.
    """

    kind = ProviderKind.PROPS

    def __init__(self, index: DefinitionIndex) -> None:
        self.index = index

    @classmethod
    def from_root(cls, root: Path, *, max_depth: int = MAX_TRAVERSAL_DEPTH) -> PropsProvider:
        return cls(DefinitionIndex.build(root, max_depth=max_depth))

    def supports(self, filetype: str) -> bool:
        return True

    def capabilities(self) -> ServerCapabilities:
        return ServerCapabilities(
            hover_provider=True,
            completion_provider=CompletionOptions(resolve_provider=False),
        )

    def compute_diagnostics(self, contents: str) -> list[Diagnostic]:
        return []

    def hover(self, contents: str, position: Position) -> str | None:
        name = token_at(contents, position.line, position.character)
        if name is None:
            return None
        definitions = self.index.lookup(name)
        if not definitions:
            logger.debug("No definition for %r", name)
            return None
        return render_definitions(definitions)

    def completions(self, contents: str, position: Position) -> list[CompletionItem]:
        items: list[CompletionItem] = []
        for name in self.index.names():
            definitions = self.index.lookup(name)
            items.append(
                CompletionItem(
                    label=name,
                    kind=CompletionItemKind.Constant,
                    detail=definitions[0].value,
                    documentation=render_definitions(definitions),
                )
            )
        return items

    def close(self) -> None:
        pass

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable

from lsprotocol.types import CompletionItem, Diagnostic, Position, ServerCapabilities


class ProviderKind(str, Enum):
    JUST = "just"
    PROPS = "props"


@runtime_checkable
class Provider(Protocol):
    kind: ProviderKind

    def supports(self, filetype: str) -> bool: ...

    def capabilities(self) -> ServerCapabilities: ...

    def compute_diagnostics(self, contents: str) -> list[Diagnostic]: ...

    def hover(self, contents: str, position: Position) -> str | None: ...

    def completions(self, contents: str, position: Position) -> list[CompletionItem]: ...

    def close(self) -> None: ...

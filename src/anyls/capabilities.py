"""Capability negotiation across providers.

Providers advertise independent ``ServerCapabilities``. The session presents
one merged set, folded field by field in registration order: the first
provider with a value for a field owns it, and later providers only fill
fields still empty. Registration order therefore decides every conflict.

Position encoding and document sync are not part of the fold. The server
always speaks UTF-16 and always receives whole documents.
"""

from __future__ import annotations

from typing import Iterable

from lsprotocol.types import (
    PositionEncodingKind,
    ServerCapabilities,
    TextDocumentSyncKind,
)

POSITION_ENCODING = PositionEncodingKind.Utf16
TEXT_DOCUMENT_SYNC = TextDocumentSyncKind.Full

MERGED_FIELDS: tuple[str, ...] = (
    "notebook_document_sync",
    "selection_range_provider",
    "hover_provider",
    "completion_provider",
    "signature_help_provider",
    "definition_provider",
    "type_definition_provider",
    "implementation_provider",
    "references_provider",
    "document_highlight_provider",
    "document_symbol_provider",
    "workspace_symbol_provider",
    "code_action_provider",
    "code_lens_provider",
    "document_formatting_provider",
    "document_range_formatting_provider",
    "document_on_type_formatting_provider",
    "rename_provider",
    "document_link_provider",
    "color_provider",
    "folding_range_provider",
    "declaration_provider",
    "execute_command_provider",
    "workspace",
    "call_hierarchy_provider",
    "semantic_tokens_provider",
    "moniker_provider",
    "linked_editing_range_provider",
    "inline_value_provider",
    "inlay_hint_provider",
    "diagnostic_provider",
    "experimental",
)


def fill_empty(merged: ServerCapabilities, offered: ServerCapabilities) -> None:
    for name in MERGED_FIELDS:
        if getattr(merged, name) is not None:
            continue
        value = getattr(offered, name)
        if value is not None:
            setattr(merged, name, value)


def merge_capabilities(offers: Iterable[ServerCapabilities]) -> ServerCapabilities:
    merged = ServerCapabilities()
    for offered in offers:
        fill_empty(merged, offered)
    merged.position_encoding = POSITION_ENCODING
    merged.text_document_sync = TEXT_DOCUMENT_SYNC
    return merged

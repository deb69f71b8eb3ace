from __future__ import annotations

from typing import List, Optional

from lsprotocol.types import Diagnostic, DiagnosticSeverity
from pydantic import BaseModel

from anyls.definitions import Definition

_SEVERITY_NAMES = {
    DiagnosticSeverity.Error: "error",
    DiagnosticSeverity.Warning: "warning",
    DiagnosticSeverity.Information: "information",
    DiagnosticSeverity.Hint: "hint",
}


def severity_name(severity: Optional[DiagnosticSeverity]) -> str:
    if severity is None:
        return "unknown"
    return _SEVERITY_NAMES.get(severity, "unknown")


class DiagnosticDTO(BaseModel):
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    severity: str
    message: str
    source: Optional[str] = None

    @classmethod
    def from_diagnostic(cls, diagnostic: Diagnostic) -> DiagnosticDTO:
        return cls(
            start_line=diagnostic.range.start.line,
            start_col=diagnostic.range.start.character,
            end_line=diagnostic.range.end.line,
            end_col=diagnostic.range.end.character,
            severity=severity_name(diagnostic.severity),
            message=diagnostic.message,
            source=diagnostic.source,
        )


class CheckResponseDTO(BaseModel):
    path: str
    filetype: str
    providers: List[str] = []
    diagnostics: List[DiagnosticDTO] = []
    errors: List[str] = []
    exit_code: int = 0


class DefinitionDTO(BaseModel):
    source_path: str
    name: str
    value: str

    @classmethod
    def from_definition(cls, definition: Definition) -> DefinitionDTO:
        return cls(
            source_path=definition.source_path,
            name=definition.name,
            value=definition.value,
        )

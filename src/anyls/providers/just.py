"""Diagnostics for justfiles via ``just --dry-run``.

The buffer is written to a transient file owned by the provider, ``just`` is
asked to validate it without running recipes, and the first error it reports
on stderr becomes a single-character diagnostic.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Callable, Optional, TypeAlias

from lsprotocol.types import (
    CompletionItem,
    Diagnostic,
    DiagnosticOptions,
    DiagnosticSeverity,
    Position,
    Range,
    ServerCapabilities,
)

from anyls.exceptions import EncodingError, ProviderUnavailable, ToolInvocationError
from anyls.providers.contract import ProviderKind

logger = logging.getLogger(__name__)

Runner: TypeAlias = Callable[[list[str]], "subprocess.CompletedProcess[bytes]"]
Which: TypeAlias = Callable[[str], Optional[str]]

DIAGNOSTIC_SOURCE = "just"
FILETYPES = frozenset({"just", "justfile"})
FALLBACK_SEVERITY = DiagnosticSeverity.Warning

_STDERR_RE = re.compile(
    r"(?P<severity>\w+):\s(?P<message>.*)\n.*——▶.*:(?P<line>\d+):(?P<col>\d+)"
)


def run_process(args: list[str]) -> subprocess.CompletedProcess[bytes]:
    return subprocess.run(
        args,
        stdin=subprocess.DEVNULL,
        capture_output=True,
        check=False,
    )


def parse_severity(word: str) -> DiagnosticSeverity:
    if word == "error":
        return DiagnosticSeverity.Error
    logger.warning("Unknown severity when parsing just output: %r", word)
    return FALLBACK_SEVERITY


def parse_stdout(_contents: str) -> list[Diagnostic]:
    return []


def parse_stderr(contents: str) -> list[Diagnostic]:
    match = _STDERR_RE.search(contents)
    if match is None:
        logger.warning("Could not parse just stderr: %r", contents)
        return []
    line = max(int(match.group("line")) - 1, 0)
    col = int(match.group("col"))
    return [
        Diagnostic(
            range=Range(
                start=Position(line=line, character=max(col - 1, 0)),
                end=Position(line=line, character=col),
            ),
            message=match.group("message"),
            severity=parse_severity(match.group("severity")),
            source=DIAGNOSTIC_SOURCE,
        )
    ]


def _decode(output: bytes, *, stream: str) -> str:
    try:
        return output.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EncodingError(f"just {stream} is not valid UTF-8: {exc}") from exc


class JustProvider:
    kind = ProviderKind.JUST

    def __init__(
        self,
        *,
        executable: str = "just",
        version: str = "",
        runner: Runner = run_process,
        workdir: Path | None = None,
    ) -> None:
        self.executable = executable
        self.version = version
        self._runner = runner
        self._lock = threading.Lock()
        fd, name = tempfile.mkstemp(prefix="anyls-", suffix=".just", dir=workdir)
        os.close(fd)
        self.transient_path = Path(name)

    @classmethod
    def probe(
        cls,
        executable: str = "just",
        *,
        runner: Runner = run_process,
        which: Which = shutil.which,
        workdir: Path | None = None,
    ) -> JustProvider:
        if which(executable) is None:
            raise ProviderUnavailable("just", f"{executable!r} not found on PATH")
        try:
            out = runner([executable, "--version"])
        except OSError as exc:
            raise ProviderUnavailable("just", str(exc)) from exc
        if out.returncode != 0:
            raise ProviderUnavailable(
                "just", f"'{executable} --version' exited with {out.returncode}"
            )
        version = out.stdout.decode("utf-8", errors="replace").strip()
        logger.info("Using %s", version or executable)
        return cls(executable=executable, version=version, runner=runner, workdir=workdir)

    def supports(self, filetype: str) -> bool:
        return filetype in FILETYPES

    def capabilities(self) -> ServerCapabilities:
        return ServerCapabilities(
            diagnostic_provider=DiagnosticOptions(
                inter_file_dependencies=False,
                workspace_diagnostics=False,
                work_done_progress=False,
            )
        )

    def compute_diagnostics(self, contents: str) -> list[Diagnostic]:
        with self._lock:
            try:
                self.transient_path.write_text(contents, encoding="utf-8", newline="")
            except UnicodeEncodeError as exc:
                raise EncodingError(f"buffer is not encodable as UTF-8: {exc}") from exc
            except OSError as exc:
                raise ToolInvocationError(
                    f"could not write {self.transient_path}: {exc}"
                ) from exc
            args = [
                self.executable,
                "--dry-run",
                "--justfile",
                str(self.transient_path),
            ]
            try:
                out = self._runner(args)
            except OSError as exc:
                raise ToolInvocationError(f"could not run {self.executable}: {exc}") from exc

        if out.returncode == 0:
            return parse_stdout(_decode(out.stdout, stream="stdout"))
        return parse_stderr(_decode(out.stderr, stream="stderr"))

    def hover(self, contents: str, position: Position) -> str | None:
        return None

    def completions(self, contents: str, position: Position) -> list[CompletionItem]:
        return []

    def close(self) -> None:
        try:
            self.transient_path.unlink()
        except FileNotFoundError:
            pass

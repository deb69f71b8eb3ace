from __future__ import annotations

import subprocess
import threading
from pathlib import Path

import pytest
from lsprotocol.types import DiagnosticSeverity, Position, Range

from anyls.exceptions import EncodingError, ProviderUnavailable, ToolInvocationError
from anyls.providers import just
from anyls.providers.just import JustProvider
from tests.harness.provider_harness import BlockingRunner, RaisingRunner


def _on_path(name: str) -> str:
    return f"/usr/bin/{name}"


def _missing(_name: str) -> None:
    return None


def test_parse_stderr_unknown_start_of_token() -> None:
    stderr = (
        "error: Unknown start of token:\n"
        " ——▶ justfile:7:13\n"
        "  │\n"
        "7 │   just something here\n"
        "  │             ^"
    )
    diagnostics = just.parse_stderr(stderr)
    assert len(diagnostics) == 1
    diagnostic = diagnostics[0]
    assert diagnostic.severity == DiagnosticSeverity.Error
    assert diagnostic.message == "Unknown start of token:"
    assert diagnostic.source == "just"
    assert diagnostic.range == Range(
        start=Position(line=6, character=12), end=Position(line=6, character=13)
    )


def test_parse_stderr_uses_last_location_on_the_marker_line() -> None:
    stderr = "\n".join(
        [
            "error: Expected '&&', comment, end of file, end of line, identifier, or '(', but found ':'",
            "——▶ .tmpu9xSRk:3:4",
            "  │",
            "3 │ a:::b",
            "  │    ^",
        ]
    )
    (diagnostic,) = just.parse_stderr(stderr)
    assert diagnostic.message.startswith("Expected '&&'")
    assert diagnostic.range.start == Position(line=2, character=3)
    assert diagnostic.range.end == Position(line=2, character=4)


def test_parse_stderr_without_marker_is_empty() -> None:
    assert just.parse_stderr("error: Justfile does not exist\n") == []
    assert just.parse_stderr("") == []


def test_parse_stderr_unknown_severity_falls_back_to_warning() -> None:
    (diagnostic,) = just.parse_stderr("bogus: odd\n——▶ f:1:1\n")
    assert diagnostic.severity == DiagnosticSeverity.Warning
    assert diagnostic.range.start == Position(line=0, character=0)
    assert diagnostic.range.end == Position(line=0, character=1)


def test_parse_stdout_is_always_empty() -> None:
    assert just.parse_stdout("recipe:\n    echo hi\n") == []
    assert just.parse_stdout("error: looks bad\n——▶ f:1:1\n") == []


def test_compute_diagnostics_success_returns_empty(tmp_path: Path, recording_runner) -> None:
    runner = recording_runner(returncode=0, stdout=b"echo hi\n")
    provider = JustProvider(runner=runner, workdir=tmp_path)
    try:
        assert provider.compute_diagnostics("build:\n    echo hi\n") == []
    finally:
        provider.close()
    (args,) = runner.calls
    assert args[:3] == ["just", "--dry-run", "--justfile"]
    assert args[3] == str(provider.transient_path)


def test_compute_diagnostics_failure_parses_stderr(tmp_path: Path, recording_runner) -> None:
    stderr = "error: Unknown start of token:\n——▶ justfile:2:5\n".encode("utf-8")
    runner = recording_runner(returncode=1, stderr=stderr)
    provider = JustProvider(runner=runner, workdir=tmp_path)
    try:
        (diagnostic,) = provider.compute_diagnostics("a:\n    $$\n")
    finally:
        provider.close()
    assert diagnostic.range.start == Position(line=1, character=4)


def test_transient_file_has_no_residue_between_calls(tmp_path: Path, recording_runner) -> None:
    runner = recording_runner(returncode=0)
    provider = JustProvider(runner=runner, workdir=tmp_path)
    try:
        provider.compute_diagnostics("a long first buffer\nwith two lines\n")
        provider.compute_diagnostics("short")
    finally:
        provider.close()
    assert runner.seen_contents == ["a long first buffer\nwith two lines\n", "short"]
    assert not provider.transient_path.exists()


def test_spawn_failure_is_tool_invocation_error(tmp_path: Path) -> None:
    provider = JustProvider(runner=RaisingRunner(FileNotFoundError("just")), workdir=tmp_path)
    try:
        with pytest.raises(ToolInvocationError):
            provider.compute_diagnostics("a:\n")
    finally:
        provider.close()


def test_non_utf8_output_is_encoding_error(tmp_path: Path, recording_runner) -> None:
    runner = recording_runner(returncode=1, stderr=b"\xff\xfe error")
    provider = JustProvider(runner=runner, workdir=tmp_path)
    try:
        with pytest.raises(EncodingError):
            provider.compute_diagnostics("a:\n")
    finally:
        provider.close()


def test_supports_only_just_filetypes(tmp_path: Path, recording_runner) -> None:
    provider = JustProvider(runner=recording_runner(), workdir=tmp_path)
    try:
        assert provider.supports("just")
        assert provider.supports("justfile")
        assert not provider.supports("python")
        assert provider.capabilities().diagnostic_provider is not None
        assert provider.capabilities().hover_provider is None
    finally:
        provider.close()


def test_probe_missing_executable_is_unavailable(recording_runner) -> None:
    runner = recording_runner()
    with pytest.raises(ProviderUnavailable):
        JustProvider.probe("just", runner=runner, which=_missing)
    assert runner.calls == []


def test_probe_failing_version_is_unavailable(recording_runner) -> None:
    with pytest.raises(ProviderUnavailable):
        JustProvider.probe("just", runner=recording_runner(returncode=127), which=_on_path)
    with pytest.raises(ProviderUnavailable):
        JustProvider.probe("just", runner=RaisingRunner(PermissionError("no")), which=_on_path)


def test_probe_records_version(tmp_path: Path, recording_runner) -> None:
    runner = recording_runner(stdout=b"just 1.25.2\n")
    provider = JustProvider.probe("just", runner=runner, which=_on_path, workdir=tmp_path)
    try:
        assert provider.version == "just 1.25.2"
        assert runner.calls == [["just", "--version"]]
    finally:
        provider.close()


def test_unencodable_buffer_is_encoding_error(tmp_path: Path, recording_runner) -> None:
    runner = recording_runner()
    provider = JustProvider(runner=runner, workdir=tmp_path)
    try:
        with pytest.raises(EncodingError):
            provider.compute_diagnostics("a:\n  echo \ud800\n")
    finally:
        provider.close()
    assert runner.calls == []


def test_concurrent_runs_never_share_the_transient_file(tmp_path: Path) -> None:
    runner = BlockingRunner(subprocess.CompletedProcess(args=[], returncode=0, stdout=b"", stderr=b""))
    provider = JustProvider(runner=runner, workdir=tmp_path)
    first = threading.Thread(target=provider.compute_diagnostics, args=("first:\n",))
    second = threading.Thread(target=provider.compute_diagnostics, args=("second:\n",))
    try:
        first.start()
        assert runner.entered.wait(timeout=5)
        second.start()
        second.join(timeout=0.2)
        assert second.is_alive()
        assert provider.transient_path.read_text(encoding="utf-8") == "first:\n"
        runner.release.set()
        first.join(timeout=5)
        second.join(timeout=5)
    finally:
        runner.release.set()
        provider.close()
    assert not first.is_alive() and not second.is_alive()
    assert runner.seen_contents == ["first:\n", "second:\n"]

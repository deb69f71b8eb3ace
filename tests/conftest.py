from __future__ import annotations

import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


import pytest

from tests.harness.provider_harness import RecordingRunner


@pytest.fixture
def recording_runner():
    def _make(
        *,
        returncode: int = 0,
        stdout: bytes = b"",
        stderr: bytes = b"",
    ) -> RecordingRunner:
        return RecordingRunner(
            subprocess.CompletedProcess(
                args=[], returncode=returncode, stdout=stdout, stderr=stderr
            )
        )

    return _make


@pytest.fixture
def env_tree(tmp_path: Path) -> Path:
    """repo/.git, repo/.env, repo/app/.env.example, repo/app/service (root)."""
    repo = tmp_path / "repo"
    (repo / ".git").mkdir(parents=True)
    (repo / ".env").write_text("TOP=1\n", encoding="utf-8")
    app = repo / "app"
    app.mkdir()
    (app / ".env.example").write_text("MIDDLE=2\n", encoding="utf-8")
    service = app / "service"
    service.mkdir()
    (service / ".env").write_text("LEAF=3\n", encoding="utf-8")
    (tmp_path / ".env").write_text("OUTSIDE=4\n", encoding="utf-8")
    return service

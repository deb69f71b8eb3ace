from __future__ import annotations

from pathlib import Path

import pytest

from anyls.config import DEFAULT_CONFIG_NAME, AnyLsConfig, load_config
from anyls.exceptions import ConfigError


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    config = load_config(root=tmp_path)
    assert config == AnyLsConfig()
    assert config.just.executable == "just"
    assert config.definitions.max_depth == 64
    assert config.server.log_level is None


def test_config_sections_are_read_from_root(tmp_path: Path) -> None:
    (tmp_path / DEFAULT_CONFIG_NAME).write_text(
        "[server]\n"
        'log_level = "DEBUG"\n'
        "[just]\n"
        'executable = "/opt/bin/just"\n'
        "[definitions]\n"
        "enabled = false\n"
        "max_depth = 3\n",
        encoding="utf-8",
    )
    config = load_config(root=tmp_path)
    assert config.server.log_level == "debug"
    assert config.just.executable == "/opt/bin/just"
    assert config.just.enabled is True
    assert config.definitions.enabled is False
    assert config.definitions.max_depth == 3


def test_explicit_config_path_wins(tmp_path: Path) -> None:
    (tmp_path / DEFAULT_CONFIG_NAME).write_text("[just]\nenabled = false\n", encoding="utf-8")
    explicit = tmp_path / "other.toml"
    explicit.write_text('[just]\nexecutable = "j"\n', encoding="utf-8")
    config = load_config(root=tmp_path, config_path=explicit)
    assert config.just.enabled is True
    assert config.just.executable == "j"


@pytest.mark.parametrize(
    "body",
    [
        '[server]\nlog_level = "chatty"\n',
        "[definitions]\nmax_depth = 0\n",
        "[just]\nenabled = [1]\n",
        "[just\n",
    ],
)
def test_invalid_config_raises_config_error(tmp_path: Path, body: str) -> None:
    path = tmp_path / DEFAULT_CONFIG_NAME
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError) as info:
        load_config(root=tmp_path)
    assert str(path) in str(info.value)

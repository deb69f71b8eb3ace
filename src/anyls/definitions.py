"""Property-file definition index.

Definitions are discovered by walking upward from a root directory, collecting
``.env``-style files until a repository root marker is seen, and parsing every
``name=value`` line. The index is built once and never invalidated.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

PROPERTY_FILE_NAMES: tuple[str, ...] = (".env", ".env.example")
STOP_MARKERS: tuple[str, ...] = (".git",)
MAX_TRAVERSAL_DEPTH = 64


@dataclass(frozen=True)
class Definition:
    source_path: str
    name: str
    value: str


def _scan_level(
    directory: Path,
    *,
    stop_at: tuple[str, ...],
    file_names: tuple[str, ...],
) -> tuple[list[Path], bool]:
    found: list[Path] = []
    stop = False
    with os.scandir(directory) as entries:
        for entry in sorted(entries, key=lambda item: item.name):
            if entry.name in stop_at:
                stop = True
            elif entry.name in file_names and entry.is_file():
                found.append(Path(entry.path))
    return found, stop


def traverse_parents(
    start: Path,
    *,
    stop_at: tuple[str, ...] = STOP_MARKERS,
    file_names: tuple[str, ...] = PROPERTY_FILE_NAMES,
    max_depth: int = MAX_TRAVERSAL_DEPTH,
) -> list[Path]:
    """Collect recognized files from ``start`` and its ancestors.

    A level holding a stop marker is still scanned; only its parents are
    skipped. A level that cannot be listed ends the walk, keeping what was
    found below it.
    """
    found: list[Path] = []
    visited: set[str] = set()
    current = start
    for _depth in range(max_depth):
        resolved = os.path.realpath(current)
        if resolved in visited:
            break
        visited.add(resolved)
        try:
            level_files, stop = _scan_level(
                current, stop_at=stop_at, file_names=file_names
            )
        except OSError as exc:
            logger.debug("Stopping traversal at %s: %s", current, exc)
            break
        found.extend(level_files)
        if stop:
            break
        parent = current.parent
        if parent == current:
            break
        current = parent
    else:
        logger.warning("Traversal from %s hit the depth limit of %d", start, max_depth)
    return found


def parse_definitions(source_path: str, text: str) -> list[Definition]:
    definitions: list[Definition] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        name, sep, value = line.partition("=")
        if not sep:
            continue
        definitions.append(
            Definition(source_path=source_path, name=name.strip(), value=value.strip())
        )
    return definitions


@dataclass
class DefinitionIndex:
    files: tuple[Path, ...] = ()
    _by_name: dict[str, list[Definition]] = field(default_factory=dict)

    @classmethod
    def build(cls, root: Path, *, max_depth: int = MAX_TRAVERSAL_DEPTH) -> DefinitionIndex:
        files = tuple(traverse_parents(root, max_depth=max_depth))
        index = cls(files=files)
        for path in files:
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable property file %s: %s", path, exc)
                continue
            index.extend(parse_definitions(str(path), text))
        logger.info(
            "Indexed %d names from %d property files under %s",
            len(index._by_name),
            len(files),
            root,
        )
        return index

    def extend(self, definitions: Iterable[Definition]) -> None:
        for definition in definitions:
            self._by_name.setdefault(definition.name, []).append(definition)

    def lookup(self, name: str) -> tuple[Definition, ...]:
        return tuple(self._by_name.get(name, ()))

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

"""Token resolution for hover requests.

Positions arrive as (line, character) where ``character`` counts UTF-16 code
units, so scalars outside the basic multilingual plane count twice.
"""

from __future__ import annotations

from typing import Iterable

from anyls.definitions import Definition


def utf16_units(char: str) -> int:
    return 2 if ord(char) > 0xFFFF else 1


def is_token_char(char: str) -> bool:
    return char == "_" or (char.isascii() and char.isalnum())


def _line_start(text: str, line: int) -> int | None:
    offset = 0
    for _ in range(line):
        newline = text.find("\n", offset)
        if newline < 0:
            return None
        offset = newline + 1
    return offset


def token_at(text: str, line: int, character: int) -> str | None:
    """Return the identifier covering ``character`` on ``line``, if any.

    The scan stops at the first non-token character once the UTF-16 count has
    reached the target column. Running off the end of the text, landing on an
    empty span, or ending the token at or before the column all mean no token.
    """
    start = _line_start(text, line)
    if start is None:
        return None
    rest = text[start:]

    token_start = 0
    units = 0
    for index, char in enumerate(rest):
        if not is_token_char(char):
            if units >= character:
                token_end = index
                break
            if char == "\n":
                return None
            token_start = index + 1
        units += utf16_units(char)
    else:
        return None

    if token_start >= token_end or units <= character:
        return None
    return rest[token_start:token_end]


def render_definitions(definitions: Iterable[Definition]) -> str:
    return "\n\n".join(
        f"{definition.source_path}\n{definition.name} = {definition.value}"
        for definition in definitions
    )

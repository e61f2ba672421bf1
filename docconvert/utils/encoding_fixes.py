"""
Repair of Windows-1252 text that was misread as UTF-8 ("mojibake").

A right single quote written as UTF-8 (E2 80 99) and decoded as Windows-1252
shows up as "â€™". The table below maps every such sequence for the
Windows-1252 repertoire above ASCII back to an HTML entity of the intended
character. All sequences are replaced in one simultaneous pass, longest
first, and since replacements are plain ASCII a second pass changes nothing.
"""

import re
from html.entities import codepoint2name
from typing import Dict


def _entity(char: str) -> str:
    codepoint = ord(char)
    name = codepoint2name.get(codepoint)
    return f"&{name};" if name else f"&#{codepoint};"


def _cp1252(byte: int) -> str:
    # 0x81, 0x8D, 0x8F, 0x90, 0x9D are unassigned and decode to the C1
    # control of the same value, as browsers do
    try:
        return bytes([byte]).decode("cp1252")
    except UnicodeDecodeError:
        return chr(byte)


def _build_table() -> Dict[str, str]:
    table: Dict[str, str] = {}
    for byte in range(0x80, 0x100):
        char = _cp1252(byte)
        if ord(char) < 0xA0 and char == chr(byte):
            continue
        garbled = "".join(_cp1252(b) for b in char.encode("utf-8"))
        table[garbled] = _entity(char)
    return table


MOJIBAKE_TABLE: Dict[str, str] = _build_table()

_MOJIBAKE_RE = re.compile(
    "|".join(re.escape(key) for key in sorted(MOJIBAKE_TABLE, key=len, reverse=True))
)


def fix_mojibake(text: str) -> str:
    """
    Replace misdecoded Windows-1252 sequences with HTML entities.

    Examples:
        >>> fix_mojibake("Donâ€™t")
        'Don&rsquo;t'
        >>> fix_mojibake("Don&rsquo;t")
        'Don&rsquo;t'
    """
    if not text:
        return text
    return _MOJIBAKE_RE.sub(lambda match: MOJIBAKE_TABLE[match.group(0)], text)

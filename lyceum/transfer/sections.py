"""
Section parser for the transfer text format.

A document is a sequence of sections. Each section opens with a title line
(no delimiter, ending in ``Data`` or a localized suffix), is usually followed
by a header line starting with ``ID``, then carries one delimited row per
record. Fields use double quotes for literals; a doubled quote inside a quoted
field is one literal quote, and a quoted field may span physical lines.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from .values import DELIMITER, QUOTE, QuotedText

Rows = List[List[str]]

TITLE_SUFFIXES: Tuple[str, ...] = ("Data", "data", "DATA", "Data?", "数据", "数据？", "数据?")
HEADER_SENTINEL = "ID"
BOM = "\ufeff"

_LINE_BREAK = re.compile(r"(\r\n|\r|\n)")


def strip_bom(text: str | bytes) -> str:
    """Drop a leading UTF-8 byte-order mark, decoding bytes input as UTF-8."""
    if isinstance(text, (bytes, bytearray)):
        return bytes(text).decode("utf-8-sig")
    if text.startswith(BOM):
        return text[len(BOM):]
    return text


def _finish_field(chars: List[Tuple[str, bool]], quoted: bool) -> str:
    # Trim whitespace written outside the quotes only
    start, end = 0, len(chars)
    while start < end and not chars[start][1] and chars[start][0].isspace():
        start += 1
    while end > start and not chars[end - 1][1] and chars[end - 1][0].isspace():
        end -= 1
    text = "".join(char for char, _ in chars[start:end])
    return QuotedText(text) if quoted else text


def split_fields(line: str) -> List[str]:
    """
    Split one logical line on delimiters outside quotes.

    Unquoted fields are trimmed. Quoted fields come back as ``QuotedText``
    with the whitespace inside the quotes kept.
    """
    if QUOTE not in line:
        return [field.strip() for field in line.split(DELIMITER)]

    fields: List[str] = []
    chars: List[Tuple[str, bool]] = []
    quoted = False
    in_quotes = False
    index = 0
    length = len(line)
    while index < length:
        char = line[index]
        if char == QUOTE:
            if in_quotes and index + 1 < length and line[index + 1] == QUOTE:
                chars.append((QUOTE, True))
                index += 2
                continue
            in_quotes = not in_quotes
            quoted = True
        elif char == DELIMITER and not in_quotes:
            fields.append(_finish_field(chars, quoted))
            chars = []
            quoted = False
        else:
            chars.append((char, in_quotes))
        index += 1
    fields.append(_finish_field(chars, quoted))
    return fields


def _physical_lines(text: str) -> Iterator[Tuple[str, str]]:
    parts = _LINE_BREAK.split(text)
    for index in range(0, len(parts), 2):
        separator = parts[index + 1] if index + 1 < len(parts) else ""
        yield parts[index], separator


def iter_logical_lines(text: str) -> Iterator[str]:
    """Yield lines, joining physical lines while a quoted field is still open."""
    pending: List[str] = []
    quote_count = 0
    for line, separator in _physical_lines(text):
        pending.append(line)
        quote_count += line.count(QUOTE)
        if quote_count % 2:
            pending.append(separator)
            continue
        yield "".join(pending)
        pending = []
        quote_count = 0
    if pending:
        # Unterminated quote at end of input: keep what was read
        yield "".join(pending).rstrip("\r\n")


def is_section_title(line: str) -> bool:
    stripped = line.strip()
    if not stripped or DELIMITER in stripped:
        return False
    return stripped.endswith(TITLE_SUFFIXES)


def is_header(line: str, fields: Sequence[str]) -> bool:
    stripped = line.strip()
    if stripped.startswith(HEADER_SENTINEL + DELIMITER):
        return True
    return bool(fields) and fields[0].strip().upper() == HEADER_SENTINEL


def parse_sections(text: str | bytes | None) -> Dict[str, Rows]:
    """
    Split raw export text into ``{title: rows}`` in document order.

    Lines before the first title and blank lines are ignored. A title with no
    data lines maps to an empty list. A repeated title appends to the earlier
    section.
    """
    sections: Dict[str, Rows] = {}
    if not text:
        return sections

    current: str | None = None
    for line in iter_logical_lines(strip_bom(text)):
        stripped = line.strip()
        if not stripped:
            continue
        if is_section_title(stripped):
            current = stripped
            sections.setdefault(current, [])
            continue
        if current is None:
            continue
        fields = split_fields(line)
        if is_header(stripped, fields):
            continue
        if all(field == "" for field in fields):
            continue
        sections[current].append(fields)
    return sections


def find_section(
    sections: Dict[str, Rows],
    titles: Iterable[str],
    keyword_sets: Iterable[Sequence[str]] = (),
    exclude: Iterable[str] = (),
) -> Rows | None:
    """
    Look up a section: exact titles first (in order), then keyword containment.

    A title matches a keyword set when it contains every token of the set
    (case-insensitive) and none of the ``exclude`` tokens. Returns None when
    nothing matches, which is distinct from a matched empty section.
    """
    for title in titles:
        if title in sections:
            return sections[title]

    excluded = tuple(token.lower() for token in exclude)
    lowered = {title: title.lower() for title in sections}
    for keywords in keyword_sets:
        tokens = tuple(token.lower() for token in keywords)
        if not tokens:
            continue
        for title, lowered_title in lowered.items():
            if any(token in lowered_title for token in excluded):
                continue
            if all(token in lowered_title for token in tokens):
                return sections[title]
    return None

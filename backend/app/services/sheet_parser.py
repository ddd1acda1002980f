"""Parse the spreadsheet export into label/value rows.

The dashboard tab is not a header + rows table: each line holds several
independent pairs side by side, e.g. ``Flag Urgente:,SIM ⚠️,Score Risco:,ALTO``.
"""

from __future__ import annotations

import csv
import logging
import re
from typing import Any, Iterable, Iterator, Sequence

from .field_normalizer import normalize_label

LOGGER = logging.getLogger(__name__)

SECTION_MARKERS = ("🚨", "💡", "👤", "📋", "📊", "🎫", "📝")

_LINE_END_RE = re.compile(r"\r\n|\n|\r")

RawRow = dict[str, str]


class DelimitedRows:
    """Restartable, lazy view over the records of a delimited text.

    Quoting follows RFC 4180: quoted cells may contain the delimiter, doubled
    quotes and line breaks, and keep the line terminator exactly as written.
    A quote left open until the end of the text is closed at the end of the
    line that opened it, and parsing carries on with the following line.
    """

    def __init__(self, text: str, delimiter: str = ",") -> None:
        if len(delimiter) != 1:
            raise ValueError("delimiter must be a single character")
        self.text = text or ""
        self.delimiter = delimiter

    def __iter__(self) -> Iterator[list[str]]:
        lines = _split_lines(self.text)
        index = 0
        while index < len(lines):
            end = index
            in_quotes, at_field_start = _scan_quotes(lines[index][0], self.delimiter)
            while in_quotes and end + 1 < len(lines):
                end += 1
                in_quotes, at_field_start = _scan_quotes(
                    lines[end][0], self.delimiter, in_quotes, at_field_start
                )
            if in_quotes and end > index:
                # Never closed: keep only the opening line and resume after it.
                end = index

            record = "".join(
                content + terminator for content, terminator in lines[index:end]
            ) + lines[end][0]
            index = end + 1

            if not record.strip():
                continue
            yield _split_record(record, self.delimiter)


def parse_delimited_text(text: str, delimiter: str = ",") -> DelimitedRows:
    return DelimitedRows(text, delimiter)


def _split_lines(text: str) -> list[tuple[str, str]]:
    """Split ``text`` into ``(content, terminator)`` pairs."""

    lines: list[tuple[str, str]] = []
    position = 0
    for match in _LINE_END_RE.finditer(text):
        lines.append((text[position : match.start()], match.group()))
        position = match.end()
    if position < len(text):
        lines.append((text[position:], ""))
    return lines


def _scan_quotes(
    line: str,
    delimiter: str,
    in_quotes: bool = False,
    at_field_start: bool = True,
) -> tuple[bool, bool]:
    """Advance the quoting state over one physical line."""

    index = 0
    while index < len(line):
        char = line[index]
        if in_quotes:
            if char == '"':
                if line[index + 1 : index + 2] == '"':
                    index += 2
                    continue
                in_quotes = False
        elif char == '"' and at_field_start:
            in_quotes = True
            at_field_start = False
        else:
            at_field_start = char == delimiter
        index += 1
    return in_quotes, at_field_start


def _split_record(record: str, delimiter: str) -> list[str]:
    try:
        return next(csv.reader([record], delimiter=delimiter, strict=False), [])
    except csv.Error as exc:
        LOGGER.warning("Malformed line, splitting on raw delimiter: %s", exc)
        return record.split(delimiter)


def _is_section_heading(label: str) -> bool:
    return label.startswith(SECTION_MARKERS)


def decode_label_value_row(cells: Sequence[Any]) -> RawRow:
    """Decode one row of alternating ``label, value`` cells."""

    row: RawRow = {}
    for position in range(0, len(cells) - 1, 2):
        label = _cell_text(cells[position])
        value = _cell_text(cells[position + 1])
        if label.endswith(":"):
            label = label[:-1].rstrip()
        if not label or not value or _is_section_heading(label):
            continue
        key = normalize_label(label)
        if not key:
            continue
        row[key] = value
    return row


def decode_label_value_rows(rows: Iterable[Sequence[Any]]) -> list[RawRow]:
    """Decode every row, omitting rows without a usable pair."""

    decoded: list[RawRow] = []
    for cells in rows:
        row = decode_label_value_row(cells)
        if row:
            decoded.append(row)
    return decoded


def _cell_text(cell: Any) -> str:
    if cell is None:
        return ""
    return str(cell).strip()

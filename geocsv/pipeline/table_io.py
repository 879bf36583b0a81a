"""Delimited table reading and writing with BOM handling."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable

from geocsv.common.errors import FileIOError, ParseError
from geocsv.common.fs import atomic_write_text
from geocsv.common.models import Row

BOM = "\ufeff"


def _decode(path: Path) -> str:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise FileIOError(f"Cannot read table {path}: {exc}") from exc
    try:
        # utf-8-sig is strict UTF-8 that also drops a leading BOM.
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError(f"{path} is not valid UTF-8 (byte offset {exc.start})") from exc


def _check_header(path: Path, header: list[str]) -> None:
    seen: set[str] = set()
    dupes: set[str] = set()
    for name in header:
        if name in seen:
            dupes.add(name)
        seen.add(name)
    if dupes:
        raise ParseError(f"{path}: duplicate header names: {', '.join(sorted(dupes))}")


def read_table(path: Path) -> list[Row]:
    """Read a CSV table into ordered rows keyed by the first line's headers."""
    text = _decode(path)
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)

    header: list[str] | None = None
    rows: list[Row] = []
    try:
        for record in reader:
            if not record:
                continue
            if header is None:
                _check_header(path, record)
                header = record
                continue
            if len(record) != len(header):
                raise ParseError(
                    f"{path}:{reader.line_num}: expected {len(header)} fields, got {len(record)}"
                )
            rows.append(dict(zip(header, record)))
    except csv.Error as exc:
        raise ParseError(f"{path}:{reader.line_num}: {exc}") from exc
    return rows


def table_header(rows: Iterable[Row]) -> list[str]:
    header: list[str] = []
    seen: set[str] = set()
    for row in rows:
        for name in row:
            if name not in seen:
                seen.add(name)
                header.append(name)
    return header


def render_table(rows: list[Row]) -> str:
    header = table_header(rows)
    buffer = io.StringIO()
    if header:
        writer = csv.DictWriter(buffer, fieldnames=header, restval="", lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
    return BOM + buffer.getvalue()


def write_table(path: Path, rows: list[Row]) -> Path:
    """Replace ``path`` with ``rows`` as BOM-prefixed UTF-8 CSV."""
    return atomic_write_text(path, render_table(rows))

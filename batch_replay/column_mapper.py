"""
column_mapper.py

Binds the columns of one input record onto the configured request template.

Column layout for a config with P path vars, Q query vars and a body:
  row[0 .. P-1]      -> "/value" path segments, in order
  row[P .. P+Q-1]    -> "name=value" query pairs, joined with '&' after a '?'
  row[P+Q]           -> raw body (not trimmed)

All functions are pure; diagnostics are passed to the optional `log` callable.
"""
from __future__ import annotations

from typing import Callable, Optional, Sequence

from .config_schema import ApiConfig


LogFn = Callable[[str], None]


class ColumnCountError(ValueError):
    """Raised when a record lacks a column required by the configured bindings."""

    def __init__(self, index: int, row: Sequence[str]) -> None:
        self.index = index
        self.row = list(row)
        super().__init__(
            f"Row has {len(row)} column(s) but column {index + 1} is required by the config: {self.row}"
        )


def _noop(_: str) -> None:
    return None


def trim_quotes(s: str) -> str:
    """Strip whitespace, one layer of single quotes, one layer of double quotes, then whitespace again.

    Each quote layer is removed from the start and the end independently, so
    "'hello" becomes "hello" and "'hello'world'" becomes "hello'world".
    """
    s = s.strip()
    for q in ("'", '"'):
        if s.startswith(q):
            s = s[1:]
        if s.endswith(q):
            s = s[:-1]
    return s.strip()


def _cell(row: Sequence[str], index: int) -> str:
    if index >= len(row):
        raise ColumnCountError(index, row)
    return row[index]


def build_path_segment(config: ApiConfig, row: Sequence[str], log: Optional[LogFn] = None) -> str:
    log = log or _noop
    total = config.total_columns
    parts = []
    for j in range(min(len(config.path_vars), total)):
        parts.append("/" + trim_quotes(_cell(row, j)))
    if len(config.path_vars) > total:
        log(f"Too many columns in the csv: {list(row)}")
    return "".join(parts)


def build_query_segment(config: ApiConfig, row: Sequence[str], log: Optional[LogFn] = None) -> str:
    if not config.query_vars:
        return ""
    log = log or _noop
    total = config.total_columns
    offset = len(config.path_vars)
    pairs = []
    for j, name in enumerate(config.query_vars):
        column = j + offset
        if column >= total:
            # Keep the pairs built so far
            log(f"Too many columns in the csv: {list(row)}")
            break
        pairs.append(f"{trim_quotes(name)}={trim_quotes(_cell(row, column))}")
    return "?" + "&".join(pairs)


def extract_body(config: ApiConfig, row: Sequence[str]) -> Optional[str]:
    """Return the raw body cell verbatim, or None when the config has no body."""
    index = config.body_index
    if index is None:
        return None
    return _cell(row, index)

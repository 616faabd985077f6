"""
record_parser.py

Turns the raw bytes of a delimited input file into an ordered list of RequestDescriptor
objects, one per non-empty record, using the column mapper for URL and body binding.

Tokenizing uses the stdlib csv reader configured from the ApiConfig:
- delimiter: first character of csv_delimiter, tab when empty
- quoting is lenient (strict=False) so stray quotes do not abort a row
- leading whitespace in fields is skipped by the reader itself
- no per-field size limit beyond _FIELD_SIZE_LIMIT, so large bodies pass through

Input is decoded as UTF-8 with surrogateescape: bytes that are not valid UTF-8 survive
unchanged in the body and are percent-encoded in the URL.
"""
from __future__ import annotations

import csv
import io
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from .column_mapper import build_path_segment, build_query_segment, extract_body
from .config_schema import ApiConfig


UTF8_BOM = b"\xef\xbb\xbf"

# Largest value csv.field_size_limit accepts on every platform (C long)
_FIELD_SIZE_LIMIT = 2**31 - 1
_ESCAPED_BYTE_RE = re.compile("[\udc80-\udcff]")

PathLike = Union[str, Path]
LogFn = Callable[[str], None]


class RecordParseError(Exception):
    """Aborts a parse. `records` holds the descriptors built before the failure."""

    def __init__(self, message: str, records: Optional[List["RequestDescriptor"]] = None) -> None:
        super().__init__(message)
        self.records: List[RequestDescriptor] = list(records or [])


class RequestDescriptor(BaseModel):
    """A ready-to-send request built from one record. Never mutated after construction."""

    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[bytes] = None


def remove_bom(content: bytes) -> bytes:
    """Strip a leading UTF-8 byte-order mark; anything else is returned unchanged."""
    if content.startswith(UTF8_BOM):
        return content[len(UTF8_BOM):]
    return content


def escape_undecodable(s: str) -> str:
    """Percent-encode bytes that were carried through decoding as lone surrogates."""
    return _ESCAPED_BYTE_RE.sub(lambda m: f"%{ord(m.group()) - 0xDC00:02X}", s)


def is_empty_row(row: Sequence[str]) -> bool:
    return len(row) == 0 or (len(row) == 1 and row[0].strip() == "")


class RecordParser:
    def __init__(self, config: ApiConfig, log: Optional[LogFn] = None) -> None:
        self.config = config
        self._log: LogFn = log or (lambda _m: None)

    def read_and_parse(self, file_path: PathLike) -> List[RequestDescriptor]:
        p = Path(file_path)
        try:
            content = p.read_bytes()
        except OSError as e:
            raise RecordParseError(f"Error reading file '{p}': {e}") from e
        return self.parse(remove_bom(content))

    def _reader(self, text: str):
        if csv.field_size_limit() < _FIELD_SIZE_LIMIT:
            csv.field_size_limit(_FIELD_SIZE_LIMIT)
        return csv.reader(
            io.StringIO(text, newline=""),
            delimiter=self.config.delimiter,
            skipinitialspace=True,
            strict=False,
        )

    def parse(self, content: bytes) -> List[RequestDescriptor]:
        """Parse BOM-free content into descriptors, in file order.

        Raises RecordParseError on a row the tokenizer cannot read, or on the
        first row that cannot be turned into a request.
        """
        text = content.decode("utf-8", errors="surrogateescape")
        reader = self._reader(text)
        records: List[RequestDescriptor] = []
        while True:
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                raise RecordParseError(f"Error reading row {reader.line_num}: {e}", records) from e

            if is_empty_row(row):
                self._log(f"Skipping empty row {reader.line_num}")
                continue

            try:
                records.append(self.create_request(row))
            except ValueError as e:
                raise RecordParseError(f"Error creating request from row {reader.line_num}: {e}", records) from e

        return records

    def create_request(self, row: Sequence[str]) -> RequestDescriptor:
        cfg = self.config
        if len(row) > cfg.total_columns:
            self._log(
                f"Row has {len(row)} columns, config expects {cfg.total_columns}; extra columns ignored: {list(row)}"
            )
        url = cfg.api_endpoint + build_path_segment(cfg, row, self._log) + build_query_segment(cfg, row, self._log)
        body = extract_body(cfg, row)
        return RequestDescriptor(
            method=cfg.method,
            url=escape_undecodable(url),
            headers=dict(cfg.headers),
            body=body.encode("utf-8", errors="surrogateescape") if body is not None else None,
        )

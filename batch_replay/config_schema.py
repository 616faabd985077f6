from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


DEFAULT_DELIMITER = "\t"


# Enums for constrained values
class Method(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class ApiConfig(BaseModel):
    """API request template applied to every record of the input file.

    Column order in the input file matters: the first len(path_vars) columns are
    path segments, the next len(query_vars) columns are query values, and the last
    column is the raw body when has_body is true.
    """

    model_config = ConfigDict(extra='forbid', frozen=True, use_enum_values=True)

    api_endpoint: str
    method: Method = Field(Method.GET, validate_default=True)
    headers: Dict[str, str] = Field(default_factory=dict)
    path_vars: List[str] = Field(default_factory=list)
    query_vars: List[str] = Field(default_factory=list)
    has_body: bool = False
    csv_delimiter: Optional[str] = ""

    @field_validator('api_endpoint')
    @classmethod
    def check_endpoint(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("api_endpoint is required and must be a non-empty string")
        return v.strip()

    @field_validator('method', mode='before')
    @classmethod
    def normalize_method(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator('headers')
    @classmethod
    def check_header_values(cls, v: Dict[str, str]) -> Dict[str, str]:
        # http.client sends header values as latin-1
        for name, value in v.items():
            try:
                value.encode("latin-1")
            except UnicodeEncodeError:
                raise ValueError(f"header '{name}' has characters outside latin-1: {value!r}") from None
        return v

    @property
    def total_columns(self) -> int:
        total = len(self.path_vars) + len(self.query_vars)
        if self.has_body:
            total += 1
        return total

    @property
    def delimiter(self) -> str:
        # Only the first character is meaningful; empty means tab
        if self.csv_delimiter:
            return self.csv_delimiter[0]
        return DEFAULT_DELIMITER

    @property
    def body_index(self) -> Optional[int]:
        if not self.has_body:
            return None
        return len(self.path_vars) + len(self.query_vars)


class RunArgs(BaseModel):
    """Already-validated run parameters handed from the CLI to the core."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    input_file: Path
    config_file: Path = Path("config.json")
    dry_run: bool = True
    delay_seconds: float = Field(1.0, ge=0)
    timeout_seconds: Optional[float] = Field(None, gt=0)
    log_file: Optional[Path] = None


def validate_config_data(data: Dict[str, Any]) -> ApiConfig:
    """Validate already-loaded config data against the schema.

    Returns the parsed ApiConfig or raises ValidationError.
    """
    if not isinstance(data, dict):
        raise ValueError(
            "Config must be a JSON object with keys like "
            "'api_endpoint', 'method', 'headers', 'path_vars', 'query_vars', 'has_body'"
        )
    return ApiConfig(**data)


def validate_config_path(path: Union[str, Path]) -> ApiConfig:
    p = Path(path)
    if not p.exists() or not p.is_file():
        raise FileNotFoundError(f"Config file not found: {p}")
    # JSON is valid YAML, so one loader covers .json and .yml configs
    with p.open('r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    return validate_config_data(data)


def format_validation_error(err: Union[ValidationError, Exception]) -> str:
    """Return a human-friendly string for Pydantic validation errors."""
    if isinstance(err, ValidationError):
        lines: List[str] = ["Validation failed with the following errors:"]
        for e in err.errors():
            loc = ".".join(str(x) for x in e.get('loc', []))
            msg = e.get('msg', 'Invalid value')
            typ = e.get('type', '')
            lines.append(f" - {loc}: {msg} ({typ})")
        return "\n".join(lines)
    else:
        return f"Validation failed: {err}"


def describe_columns(config: ApiConfig) -> List[str]:
    """List the expected input columns in order, e.g. ['1: path userId', '2: query status']."""
    out: List[str] = []
    for name in config.path_vars:
        out.append(f"{len(out) + 1}: path {name}")
    for name in config.query_vars:
        out.append(f"{len(out) + 1}: query {name}")
    if config.has_body:
        out.append(f"{len(out) + 1}: body")
    return out

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Iterable, Optional, Union
import yaml


PathLike = Union[str, Path]


class NoAliasDumper(yaml.SafeDumper):
    def ignore_aliases(self, data):
        return True


def write_log(log_file: PathLike, message: str, newline: bool = True) -> None:
    """
    Append a message to the specified log file, creating parent directories if necessary.

    Parameters:
    - log_file: Path or string to the log file.
    - message: Text to write.
    - newline: If True, appends a trailing newline if not already present.
    """
    p = Path(log_file)
    if p.parent and not p.parent.exists():
        p.parent.mkdir(parents=True, exist_ok=True)

    text = message
    if newline and not message.endswith("\n"):
        text += "\n"

    with p.open('a', encoding='utf-8') as f:
        f.write(text)


def start_run_log(log_file: PathLike, ts_utc: str, input_file: PathLike, config_file: PathLike, dry_run: bool) -> None:
    """Initialize the run log with a standardized header for a BatchReplay run."""
    write_log(log_file, f"=== BatchReplay run started at {ts_utc} UTC ===")
    write_log(log_file, f"Input file: {input_file}")
    write_log(log_file, f"Config: {config_file}")
    write_log(log_file, f"Mode: {'DRY-RUN (no HTTP calls)' if dry_run else 'LIVE'}")
    write_log(log_file, "--- Records ---")


def yaml_to_string(data) -> str:
    """Return YAML string without aliases, preserving order."""
    return yaml.dump(data, Dumper=NoAliasDumper, sort_keys=False, allow_unicode=True)


def log_yaml(log_file: PathLike, title: str, data, indent: int = 0) -> None:
    """Append a titled YAML block to the log file, every line prefixed by `indent` spaces."""
    write_log(log_file, title)
    y = yaml_to_string(data)
    if indent and indent > 0:
        prefix = " " * indent
        y = "".join(prefix + line for line in y.splitlines(True))
    if not y.endswith("\n"):
        y += "\n"
    write_log(log_file, y, newline=False)


def write_responses(input_file: PathLike, lines: Iterable[str], suffix: str) -> Path:
    """Write newline-joined `lines` to '<input_file><suffix>' and return that path."""
    out = Path(f"{input_file}{suffix}")
    out.write_text("\n".join(lines), encoding='utf-8')
    return out


def delay_for(seconds: Optional[float], log: Optional[Callable[[str], None]] = None,
              sleep: Callable[[float], None] = time.sleep) -> None:
    """Sleep between records; a zero or missing delay does not sleep."""
    seconds = float(seconds or 0)
    if seconds > 0:
        sleep(seconds)
    if log is not None:
        log(f"Delay {seconds:g} s")

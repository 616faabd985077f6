import sys
from pathlib import Path
from datetime import datetime, timezone
from typing import Callable, Optional

import click

from . import __version__
from .config_schema import Method, RunArgs, describe_columns, format_validation_error, validate_config_path


def _make_logger(log_path: Path) -> Callable[[str], None]:
    """Echo to the console and append the same text to the run log."""
    from .utility import write_log

    def _log(message: str) -> None:
        click.echo(message)
        write_log(log_path, message)

    return _log


@click.group(help="BatchReplay CLI")
@click.version_option(__version__, prog_name="BatchReplay")
def main():
    """BatchReplay top-level command group."""
    pass


@main.command()
@click.argument("config", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(config: Path):
    """Validate a JSON (or YAML) CONFIG file and print the expected column layout."""
    try:
        cfg = validate_config_path(config)
    except Exception as e:
        click.echo(format_validation_error(e), err=True)
        sys.exit(1)

    click.echo(f"OK: {config} is a valid BatchReplay config. {cfg.method} {cfg.api_endpoint}")
    delimiter = "TAB" if cfg.delimiter == "\t" else repr(cfg.delimiter)
    click.echo(f"  Delimiter: {delimiter}")
    click.echo(f"  Columns:   {cfg.total_columns}")
    click.echo(f"  Methods:   {', '.join(m.value for m in Method)} (supported)")
    for line in describe_columns(cfg):
        click.echo(f"    {line}")


@main.command(help="Replay every record of INPUT_FILE as an HTTP request and write <INPUT_FILE>.resp / <INPUT_FILE>.err.")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--config", "config_file", default="config.json", show_default=True, type=click.Path(dir_okay=False, path_type=Path), help="Path to the API config file.")
@click.option("--dry/--no-dry", "dry_run", default=True, show_default=True, help="Log the requests and simulate responses instead of making HTTP calls.")
@click.option("--delay", "delay_seconds", default=1.0, show_default=True, type=click.FloatRange(min=0), help="Seconds to wait between requests.")
@click.option("--timeout", "timeout_seconds", default=None, type=click.FloatRange(min=0, min_open=True), help="Per-request timeout in seconds.")
@click.option("--log", "log_file", default=None, type=click.Path(dir_okay=False, path_type=Path), help="Run log path (default: <INPUT_FILE>.log).")
@click.option("--yes", is_flag=True, help="Automatically continue without prompting for confirmation.")
def run(input_file: Path, config_file: Path, dry_run: bool, delay_seconds: float,
        timeout_seconds: Optional[float], log_file: Optional[Path], yes: bool):
    # 1) Validate arguments and config
    try:
        args = RunArgs(
            input_file=input_file,
            config_file=config_file,
            dry_run=dry_run,
            delay_seconds=delay_seconds,
            timeout_seconds=timeout_seconds,
            log_file=log_file,
        )
        cfg = validate_config_path(args.config_file)
    except Exception as e:
        click.echo(format_validation_error(e), err=True)
        sys.exit(9)

    log_path = args.log_file or Path(f"{args.input_file}.log")

    # 2) Print summary of what the run will do
    click.echo("BatchReplay run summary:")
    click.echo(f"  Input file:  {args.input_file}")
    click.echo(f"  Config:      {args.config_file}")
    click.echo(f"  Endpoint:    {cfg.method} {cfg.api_endpoint}")
    click.echo(f"  Columns:     {cfg.total_columns}")
    click.echo(f"  Delay:       {args.delay_seconds:g} s")
    click.echo(f"  Log file:    {log_path}")
    if args.dry_run:
        click.echo("  Mode:        DRY-RUN (no HTTP calls)")
    else:
        click.echo("  Mode:        LIVE (TLS certificate verification disabled)")

    # 3) Live runs need confirmation
    if not args.dry_run:
        if yes:
            click.echo("Auto-continue (--yes supplied).")
            resp = "yes"
        else:
            click.echo(" Continue? [y/N]: ", nl=False)
            resp = click.get_text_stream('stdin').readline().strip().lower()
        if resp not in ("y", "yes"):
            click.echo("\nOperation Cancelled")
            sys.exit(0)

    from .utility import start_run_log, log_yaml, write_responses
    from .record_parser import RecordParser, RecordParseError
    from .request_manager import create_dispatcher
    from .batch_processor import BatchProcessor, BatchAbortedError

    ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    start_run_log(log_path, ts, args.input_file, args.config_file, args.dry_run)
    log_yaml(log_path, "Config:", cfg.model_dump(), indent=2)
    _log = _make_logger(log_path)

    click.echo(f"\nProcessing inputFile: {args.input_file}")

    # 4) Parse records
    parser = RecordParser(cfg, log=_log)
    try:
        records = parser.read_and_parse(args.input_file)
    except RecordParseError as e:
        _log(f"Error reading CSV: {e}")
        if e.records:
            _log(f"{len(e.records)} record(s) were parsed before the error; nothing was sent.")
        click.echo("Aborted: no requests were sent.", err=True)
        sys.exit(1)
    _log(f"Parsed {len(records)} record(s)")

    # 5) Process sequentially
    dispatcher = create_dispatcher(args, log=_log)
    processor = BatchProcessor(dispatcher, delay_seconds=args.delay_seconds, log=_log)
    exit_code = 0
    try:
        resp_list, err_list = processor.process_all(records)
    except BatchAbortedError as e:
        _log(f"Error processing records: {e}")
        resp_list, err_list = e.successes, e.errors
        exit_code = 1

    # 6) Write outputs (partial outputs too, when the batch was aborted)
    for suffix, lines in ((".err", err_list), (".resp", resp_list)):
        try:
            out = write_responses(args.input_file, lines, suffix)
            _log(f"Wrote {len(lines)} line(s) to {out}")
        except OSError as we:
            _log(f"Error writing {args.input_file}{suffix} file: {we}")
            exit_code = 1

    _log(f"Done. success={len(resp_list)} error={len(err_list)}")
    _log("=== BatchReplay run finished ===")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

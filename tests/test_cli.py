import json
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from batch_replay import __version__
from batch_replay.main import main
from batch_replay.request_manager import DispatchError


def _write_config(tmp_path: Path, **overrides) -> Path:
    data = {
        "api_endpoint": "https://api.example.com/users",
        "method": "POST",
        "headers": {"Content-Type": "application/json"},
        "path_vars": ["userId"],
        "query_vars": ["status"],
        "has_body": False,
    }
    data.update(overrides)
    p = tmp_path / "config.json"
    p.write_text(json.dumps(data))
    return p


def _write_input(tmp_path: Path, content: bytes) -> Path:
    p = tmp_path / "records.tsv"
    p.write_bytes(content)
    return p


class TestCliValidate:
    def test_valid_config(self, tmp_path):
        config = _write_config(tmp_path, has_body=True)
        result = CliRunner().invoke(main, ["validate", str(config)])
        assert result.exit_code == 0
        assert "POST https://api.example.com/users" in result.output
        assert "3: body" in result.output
        assert "Methods:   GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS" in result.output

    def test_invalid_config(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"method": "POST"}))
        result = CliRunner().invoke(main, ["validate", str(config)])
        assert result.exit_code == 1
        assert "api_endpoint" in result.output

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert __version__ in result.output


class TestCliRun:
    @patch("batch_replay.request_manager.random.Random")
    def test_dry_run_writes_outputs(self, MockRandom, tmp_path):
        MockRandom.return_value.randrange.side_effect = [1, 3]
        config = _write_config(tmp_path)
        input_file = _write_input(tmp_path, b"\xef\xbb\xbf123\tactive\n\n456\tinactive\n")

        result = CliRunner().invoke(main, [
            "run", str(input_file), "--config", str(config), "--delay", "0",
        ])

        assert result.exit_code == 0, result.output
        assert "DRY-RUN" in result.output
        assert "https://api.example.com/users/123?status=active" in result.output
        assert Path(f"{input_file}.resp").read_text() == "0-200 - Success"
        assert Path(f"{input_file}.err").read_text() == "1-400 - BadRequest"
        log_text = Path(f"{input_file}.log").read_text()
        assert "=== BatchReplay run started" in log_text
        assert "Skipping empty row" in log_text

    def test_parse_error_writes_nothing(self, tmp_path):
        config = _write_config(tmp_path)
        input_file = _write_input(tmp_path, b"123\tactive\n456\n")

        result = CliRunner().invoke(main, [
            "run", str(input_file), "--config", str(config), "--delay", "0",
        ])

        assert result.exit_code == 1
        assert "Error reading CSV" in result.output
        assert not Path(f"{input_file}.resp").exists()
        assert not Path(f"{input_file}.err").exists()

    def test_missing_config(self, tmp_path):
        input_file = _write_input(tmp_path, b"1\ta\n")
        result = CliRunner().invoke(main, [
            "run", str(input_file), "--config", str(tmp_path / "nope.json"),
        ])
        assert result.exit_code == 9
        assert "Config file not found" in result.output

    def test_live_run_cancelled_without_confirmation(self, tmp_path):
        config = _write_config(tmp_path)
        input_file = _write_input(tmp_path, b"1\ta\n")
        result = CliRunner().invoke(main, [
            "run", str(input_file), "--config", str(config), "--no-dry",
        ], input="n\n")
        assert result.exit_code == 0
        assert "Operation Cancelled" in result.output
        assert not Path(f"{input_file}.resp").exists()

    @patch("batch_replay.request_manager.RequestManager")
    def test_live_run_abort_flushes_partial_outputs(self, MockRM, tmp_path):
        MockRM.return_value.request.side_effect = [
            (200, b"created"),
            (409, b"conflict"),
            DispatchError("connection refused"),
        ]
        config = _write_config(tmp_path)
        input_file = _write_input(tmp_path, b"1\ta\n2\tb\n3\tc\n4\td\n")

        result = CliRunner().invoke(main, [
            "run", str(input_file), "--config", str(config),
            "--no-dry", "--yes", "--delay", "0",
        ])

        assert result.exit_code == 1
        assert "Error processing records" in result.output
        assert MockRM.return_value.request.call_count == 3
        assert Path(f"{input_file}.resp").read_text() == "0-200 - created"
        assert Path(f"{input_file}.err").read_text() == "1-409 - conflict"

    @patch("batch_replay.request_manager.RequestManager")
    def test_live_run_uses_custom_log(self, MockRM, tmp_path):
        MockRM.return_value.request.return_value = (200, b"ok")
        config = _write_config(tmp_path)
        input_file = _write_input(tmp_path, b"1\ta\n")
        log_file = tmp_path / "logs" / "run.log"

        result = CliRunner().invoke(main, [
            "run", str(input_file), "--config", str(config),
            "--no-dry", "--yes", "--delay", "0", "--log", str(log_file),
        ])

        assert result.exit_code == 0, result.output
        assert "Mode: LIVE" in log_file.read_text()
        MockRM.return_value.request.assert_called_once_with(
            method="POST",
            url="https://api.example.com/users/1?status=a",
            headers={"Content-Type": "application/json"},
            body=None,
        )

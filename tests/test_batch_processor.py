from unittest.mock import MagicMock

import pytest

from batch_replay.batch_processor import (
    BatchAbortedError,
    BatchProcessor,
    OutcomeType,
    classify,
    format_response,
)
from batch_replay.record_parser import RequestDescriptor
from batch_replay.request_manager import DispatchError, Dispatcher


def _descriptors(n: int):
    return [RequestDescriptor(method="GET", url=f"https://api.example.com/{i}") for i in range(n)]


class ScriptedDispatcher(Dispatcher):
    """Answers each call with the next scripted (body, status) or raises it if it is an exception."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def call(self, descriptor):
        self.calls.append(descriptor.url)
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class TestFormatAndClassify:
    def test_format_response(self):
        assert format_response(3, 200, b"OK") == "3-200 - OK"

    def test_format_response_invalid_utf8(self):
        assert format_response(0, 500, b"\xff") == "0-500 - �"

    @pytest.mark.parametrize("status, expected", [
        (199, OutcomeType.ERROR),
        (200, OutcomeType.SUCCESS),
        (204, OutcomeType.SUCCESS),
        (299, OutcomeType.SUCCESS),
        (300, OutcomeType.ERROR),
        (404, OutcomeType.ERROR),
        (503, OutcomeType.ERROR),
    ])
    def test_classify(self, status, expected):
        assert classify(status, "m").type == expected


class TestProcessAll:
    def test_success_entry(self):
        dispatcher = ScriptedDispatcher([(b"x", 200)] * 3 + [(b"OK", 200)])
        processor = BatchProcessor(dispatcher, sleep=MagicMock())
        successes, errors = processor.process_all(_descriptors(4))
        assert successes[3] == "3-200 - OK"
        assert errors == []

    def test_error_entry(self):
        dispatcher = ScriptedDispatcher([(b"Bad", 400)])
        processor = BatchProcessor(dispatcher, sleep=MagicMock())
        successes, errors = processor.process_all(_descriptors(1))
        assert successes == []
        assert errors == ["0-400 - Bad"]

    def test_order_is_preserved_across_buckets(self):
        dispatcher = ScriptedDispatcher([(b"a", 200), (b"b", 500), (b"c", 201), (b"d", 302)])
        processor = BatchProcessor(dispatcher, sleep=MagicMock())
        successes, errors = processor.process_all(_descriptors(4))
        assert successes == ["0-200 - a", "2-201 - c"]
        assert errors == ["1-500 - b", "3-302 - d"]

    def test_delay_after_each_record(self):
        sleep = MagicMock()
        dispatcher = ScriptedDispatcher([(b"a", 200), (b"b", 400), (b"c", 200)])
        BatchProcessor(dispatcher, delay_seconds=0.5, sleep=sleep).process_all(_descriptors(3))
        assert sleep.call_count == 3
        sleep.assert_called_with(0.5)

    def test_zero_delay_does_not_sleep(self):
        sleep = MagicMock()
        dispatcher = ScriptedDispatcher([(b"a", 200)])
        BatchProcessor(dispatcher, delay_seconds=0, sleep=sleep).process_all(_descriptors(1))
        sleep.assert_not_called()

    def test_dispatch_failure_aborts_batch(self):
        sleep = MagicMock()
        dispatcher = ScriptedDispatcher([
            (b"ok", 200),
            (b"bad", 400),
            DispatchError("connection refused"),
            (b"never", 200),
            (b"never", 200),
        ])
        processor = BatchProcessor(dispatcher, delay_seconds=1, sleep=sleep)

        with pytest.raises(BatchAbortedError) as exc:
            processor.process_all(_descriptors(5))

        assert exc.value.index == 2
        assert exc.value.successes == ["0-200 - ok"]
        assert exc.value.errors == ["1-400 - bad"]
        assert isinstance(exc.value.__cause__, DispatchError)
        assert len(dispatcher.calls) == 3
        # no delay after the aborting record
        assert sleep.call_count == 2

    def test_empty_batch(self):
        processor = BatchProcessor(ScriptedDispatcher([]), sleep=MagicMock())
        assert processor.process_all([]) == ([], [])

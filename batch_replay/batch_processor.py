"""
batch_processor.py

Sequential driver: dispatch each RequestDescriptor in file order, bucket the outcome by
HTTP status and pause between records.

Output lines are formatted "<index>-<status> - <body>" where index is the 0-based
position of the descriptor in the parsed input.
"""
from __future__ import annotations

import time
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from .record_parser import RequestDescriptor
from .request_manager import DispatchError, Dispatcher
from .utility import delay_for


HTTP_SUCCESS_MIN = 200
HTTP_SUCCESS_MAX = 300

LogFn = Callable[[str], None]


class OutcomeType(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class Outcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: OutcomeType
    message: str


class BatchAbortedError(Exception):
    """A dispatch failure stopped the batch at `index`.

    `successes` and `errors` hold the lines accumulated for the records before it.
    """

    def __init__(self, message: str, index: int, successes: List[str], errors: List[str]) -> None:
        super().__init__(message)
        self.index = index
        self.successes = successes
        self.errors = errors


def format_response(index: int, status: int, body: bytes) -> str:
    return f"{index}-{status} - {body.decode('utf-8', errors='replace')}"


def classify(status: int, message: str) -> Outcome:
    # Anything outside 2xx counts as an error, client and server alike
    if HTTP_SUCCESS_MIN <= status < HTTP_SUCCESS_MAX:
        return Outcome(type=OutcomeType.SUCCESS, message=message)
    return Outcome(type=OutcomeType.ERROR, message=message)


class BatchProcessor:
    def __init__(
        self,
        dispatcher: Dispatcher,
        delay_seconds: float = 0,
        log: Optional[LogFn] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.dispatcher = dispatcher
        self.delay_seconds = delay_seconds
        self._log: LogFn = log or (lambda _m: None)
        self._sleep = sleep

    def process_record(self, descriptor: RequestDescriptor, index: int) -> Outcome:
        body, status = self.dispatcher.call(descriptor)
        return classify(status, format_response(index, status, body))

    def process_all(self, descriptors: Sequence[RequestDescriptor]) -> Tuple[List[str], List[str]]:
        """Process every descriptor in order and return (successes, errors).

        The first DispatchError aborts the run with BatchAbortedError; records after
        it are never attempted.
        """
        successes: List[str] = []
        errors: List[str] = []
        total = len(descriptors)
        for i, descriptor in enumerate(descriptors):
            self._log(f"Record {i + 1}/{total}")
            try:
                outcome = self.process_record(descriptor, i)
            except DispatchError as e:
                raise BatchAbortedError(
                    f"Error processing record {i}: {e}", index=i, successes=successes, errors=errors
                ) from e

            if outcome.type == OutcomeType.SUCCESS:
                successes.append(outcome.message)
            else:
                errors.append(outcome.message)

            delay_for(self.delay_seconds, log=self._log, sleep=self._sleep)
        return successes, errors

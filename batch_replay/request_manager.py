"""
request_manager.py

Request dispatch for BatchReplay.

Design:
- Use urllib3 PoolManager for the real calls with retries=False: no retries, redirects are returned as-is.
  A record is sent exactly once; a network failure aborts the batch.
- TLS certificate verification is disabled on purpose when insecure_tls is set (the default):
  the tool is pointed at internal endpoints that commonly use self-signed certificates.
  The pool is built by the caller and injected, there is no process-wide client.
- Dry runs go through DryRunDispatcher, which performs no I/O and returns a simulated response.

Every dispatcher exposes `call(descriptor) -> (body_bytes, status_code)`.
"""
from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import urllib3
from urllib3 import exceptions as u3exc

from .config_schema import RunArgs
from .record_parser import RequestDescriptor
from .utility import yaml_to_string


LogFn = Callable[[str], None]


class DispatchError(Exception):
    """A request could not be delivered (connection, DNS, TLS or timeout failure)."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class RequestManager:
    def __init__(
        self,
        insecure_tls: bool = True,
        timeout_s: Optional[float] = None,
        pool_maxsize: int = 1,
    ) -> None:
        self.insecure_tls = insecure_tls
        self.timeout_s = timeout_s
        pool_kwargs = {}
        if insecure_tls:
            # Disable urllib3 warnings about insecure requests, the relaxation is explicit
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            pool_kwargs["cert_reqs"] = "CERT_NONE"
        self._pool = urllib3.PoolManager(
            retries=False,
            maxsize=pool_maxsize,
            **pool_kwargs,
        )

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[bytes] = None,
    ) -> Tuple[int, bytes]:
        """Perform a single HTTP request and return (status_code, response_body)."""
        timeout = None
        if isinstance(self.timeout_s, (int, float)) and self.timeout_s > 0:
            timeout = urllib3.Timeout(total=float(self.timeout_s))
        try:
            resp = self._pool.request(
                method=method.upper(),
                url=url,
                body=body,
                headers=headers or {},
                timeout=timeout,
                preload_content=False,  # so we can control read
            )
        except (u3exc.HTTPError, ValueError) as e:
            raise DispatchError(f"Error making request to {url}: {e}", url=url) from e
        try:
            status = int(resp.status)
            data = resp.read() or b""
        except (u3exc.HTTPError, ValueError) as e:
            raise DispatchError(f"Error reading response from {url}: {e}", url=url) from e
        finally:
            resp.release_conn()
            resp.close()
        return status, data


class Dispatcher(ABC):
    @abstractmethod
    def call(self, descriptor: RequestDescriptor) -> Tuple[bytes, int]:
        """Deliver one request; return (body, status) or raise DispatchError."""


class DryRunDispatcher(Dispatcher):
    """Logs what would be sent and returns a simulated response.

    By default roughly one call in three is answered with 400 so the error output
    path can be rehearsed; pass deterministic=True to always answer 200.
    """

    def __init__(
        self,
        log: Optional[LogFn] = None,
        rng: Optional[random.Random] = None,
        deterministic: bool = False,
    ) -> None:
        self._log: LogFn = log or (lambda _m: None)
        self._rng = rng or random.Random()
        self.deterministic = deterministic

    def call(self, descriptor: RequestDescriptor) -> Tuple[bytes, int]:
        block = {
            "Method": descriptor.method,
            "URL": descriptor.url,
            "Headers": dict(descriptor.headers),
            "Body": descriptor.body.decode("utf-8", errors="replace") if descriptor.body is not None else None,
        }
        lines = ["--- Start Request ---", "DRY-RUN: would make request (skipped)"]
        lines.extend("  " + ln for ln in yaml_to_string(block).splitlines())
        lines.append("--- End Request ---")
        self._log("\n".join(lines))

        if self.deterministic:
            return b"Success", 200
        if self._rng.randrange(10) % 3 == 0:
            return b"BadRequest", 400
        return b"Success", 200


class HttpDispatcher(Dispatcher):
    def __init__(self, request_manager: RequestManager, log: Optional[LogFn] = None) -> None:
        self._rm = request_manager
        self._log: LogFn = log or (lambda _m: None)

    def call(self, descriptor: RequestDescriptor) -> Tuple[bytes, int]:
        self._log(f"{descriptor.method} {descriptor.url}")
        status, data = self._rm.request(
            method=descriptor.method,
            url=descriptor.url,
            headers=dict(descriptor.headers),
            body=descriptor.body,
        )
        self._log(f"Status: {status}")
        return data, status


def create_dispatcher(
    run_args: RunArgs,
    log: Optional[LogFn] = None,
    request_manager: Optional[RequestManager] = None,
) -> Dispatcher:
    """Pick the dispatcher for this run from the dry-run flag."""
    if run_args.dry_run:
        return DryRunDispatcher(log=log)
    if request_manager is None:
        request_manager = RequestManager(insecure_tls=True, timeout_s=run_args.timeout_seconds)
    return HttpDispatcher(request_manager, log=log)

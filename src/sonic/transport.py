"""
Single-call HTTP transport used by every client.

Reads the body as text, turns non-2xx responses into TransportError with the
service's ``error`` text when it has one, and decodes JSON bodies.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

log = logging.getLogger(__name__)

REQUEST_FAILED = "Request failed"
INVALID_JSON = "Invalid JSON response"


class TransportError(Exception):
    """A required HTTP call failed."""

    def __init__(self, reason: str, status_code: int | None = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class InvalidResponseError(TransportError):
    """A successful response carried a body that is not JSON or not the expected shape."""

    def __init__(self, status_code: int | None = None):
        super().__init__(INVALID_JSON, status_code)


def failure_reason(text: str) -> str:
    """Pick a human-readable reason out of an error body."""
    try:
        data = json.loads(text)
    except ValueError:
        return text or REQUEST_FAILED

    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, str) and error:
        return error
    return text or REQUEST_FAILED


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs: Any,
) -> Any:
    """
    Perform one HTTP call and return the decoded JSON body.

    Args:
        client: Async client to send with
        method: HTTP method
        url: Absolute URL, or path relative to the client's base_url
        **kwargs: Passed through to ``client.request`` (params, files, data, headers)

    Raises:
        TransportError: on network errors, invalid URLs and non-2xx responses
        InvalidResponseError: when a 2xx body is not valid JSON
    """
    try:
        response = await client.request(method, url, **kwargs)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        log.debug("%s %s failed: %s", method, url, e)
        raise TransportError(str(e) or REQUEST_FAILED) from e

    text = response.text
    log.debug("%s %s -> %d", method, response.request.url, response.status_code)

    if not response.is_success:
        raise TransportError(failure_reason(text), response.status_code)

    try:
        return json.loads(text)
    except ValueError as e:
        raise InvalidResponseError(response.status_code) from e


## Tests


def test_failure_reason_prefers_error_field():
    assert failure_reason('{"error": "file is required"}') == "file is required"


def test_failure_reason_raw_text():
    assert failure_reason("upstream exploded") == "upstream exploded"


def test_failure_reason_empty_body():
    assert failure_reason("") == REQUEST_FAILED


def test_failure_reason_json_without_error():
    assert failure_reason('{"detail": "nope"}') == '{"detail": "nope"}'

"""Helper utilities.

This module centralises common helper functions such as creating a
configured HTTP session, applying the retry policy to network calls and
reading the tail of the log file.
"""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path
from typing import Any

import requests
from requests import Response
from tenacity import (Retrying, after_log, retry_if_exception_type,
                      stop_after_attempt, wait_exponential)


logger = logging.getLogger(__name__)


def get_http_session() -> requests.Session:
    """Return a new HTTP session with sensible defaults.

    Caller is responsible for closing the session or letting it be garbage
    collected.
    """
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": "BrandStockMonitor/1.0",
            "Accept": "application/json",
        }
    )
    return session


class HTTPError(Exception):
    """Raised when an HTTP request fails at the transport level."""


def build_retrying(attempts: int = 1) -> Retrying:
    """Return the retry policy for outbound HTTP calls.

    Only transport failures (connection errors, timeouts) are retried; any
    HTTP status is handed back to the caller untouched.  ``attempts=1``
    performs a single try.
    """
    return Retrying(
        reraise=True,
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(requests.RequestException),
        after=after_log(logger, logging.WARNING),
    )


def request(
    session: requests.Session,
    method: str,
    url: str,
    *,
    attempts: int = 1,
    **kwargs: Any,
) -> Response:
    """Send *method* *url* through :func:`build_retrying`.

    Raises :class:`HTTPError` if every attempt fails at the transport level.
    """
    logger.debug("Making %s request to: %s", method, url)
    try:
        response = build_retrying(attempts)(session.request, method, url, **kwargs)
    except requests.RequestException as e:
        raise HTTPError(str(e)) from e
    logger.debug("Response code: %s", response.status_code)
    return response


def tail_file(path: Path, lines: int = 100) -> tuple[list[str], int]:
    """Return the last *lines* lines of *path* and the file's total line count."""
    lines = max(0, lines)
    tail: deque[str] = deque(maxlen=lines)
    total = 0
    with open(path, "r", encoding="utf-8", errors="replace") as fh:
        for line in fh:
            total += 1
            if lines:
                tail.append(line)
    return list(tail), total


__all__ = ["get_http_session", "build_retrying", "request", "tail_file", "HTTPError"]

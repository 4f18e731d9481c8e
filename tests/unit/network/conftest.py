"""
Fixtures for network-layer unit tests.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Optional

import pytest
import requests


def _make_response(
    status_code: int,
    body: Any = None,
    headers: Optional[dict[str, str]] = None,
    text: Optional[str] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Error"
    response.url = "https://open-api.guesty.com/v1/test"
    response.encoding = "utf-8"
    if body is not None:
        response._content = json.dumps(body).encode("utf-8")
    else:
        response._content = (text or "").encode("utf-8")
    response.headers.update(headers or {})
    return response


@pytest.fixture
def make_response() -> Callable[..., requests.Response]:
    """Build real requests.Response objects with a given status, body and headers."""
    return _make_response

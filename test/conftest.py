"""Shared fixtures: a fake streaming response and an API config."""

import json
from typing import Iterable, List, Optional
from unittest.mock import MagicMock

import pytest

from config import APIConfig


class FakeResponse:
    """Minimal stand-in for a streamed requests.Response"""

    def __init__(
        self,
        chunks: Iterable[bytes] = (),
        status_code: int = 200,
        text: str = "",
        error: Optional[Exception] = None,
    ):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.text = text
        self.error = error
        self.closed = False
        self.chunk_sizes: List[int] = []
        self.delivered = 0

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def iter_content(self, chunk_size=1, decode_unicode=False):
        self.chunk_sizes.append(chunk_size)
        for chunk in self.chunks:
            self.delivered += 1
            yield chunk
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def sse(content: str) -> bytes:
    """One `data:` event line carrying a delta"""
    event = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(event)}\n".encode("utf-8")


@pytest.fixture
def api_config() -> APIConfig:
    return APIConfig(
        api_key="sk-test",
        base_url="https://api.example.com/chat/completions",
        timeout=5,
    )


@pytest.fixture
def fake_session():
    return MagicMock()

"""
Общие фикстуры тестов OCR Gateway.

Апстрим подменяется через httpx.MockTransport: сетевых вызовов нет,
все запросы к апстриму сохраняются в FakeUpstream.requests.
"""

import json
from typing import Any, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from ocr_gateway.config import Settings, get_settings
from ocr_gateway.main import app
from ocr_gateway.services import upstream_client

# Минимальный "PNG": сигнатура + немного данных
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + bytes(range(32))
PDF_BYTES = b"%PDF-1.4\n%test document\n"


class FakeUpstream:
    """Подменный апстрим chat/completions."""

    def __init__(self):
        self.status_code = 200
        self.json_body: Any = {
            "model": "deepseek-ai/DeepSeek-OCR",
            "choices": [{"message": {"role": "assistant", "content": "  Распознанный текст  "}}],
        }
        self.raw_body: Optional[str] = None
        self.error: Optional[Exception] = None
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.raw_body is not None:
            return httpx.Response(self.status_code, text=self.raw_body)
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        siliconflow_api_key="test-key",
        siliconflow_base_url="https://upstream.test/",
    )


@pytest.fixture
def upstream(monkeypatch) -> FakeUpstream:
    fake = FakeUpstream()
    monkeypatch.setattr(
        upstream_client,
        "create_client",
        lambda _settings: httpx.AsyncClient(transport=httpx.MockTransport(fake.handler)),
    )
    return fake


@pytest.fixture
def client(settings, upstream):
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()

"""
Тесты HTTP эндпоинтов OCR Gateway.

Проверяют весь пайплайн: разбор multipart / JSON, выбор задачи,
валидацию файла, вызов апстрима (через MockTransport) и конверт ответа.
"""

import base64
import logging

import httpx
import pytest
from starlette.datastructures import UploadFile

from ocr_gateway.schemas import TaskType
from ocr_gateway.services.task_registry import get_task_config
from tests.conftest import PDF_BYTES, PNG_BYTES

PNG_BASE64 = base64.b64encode(PNG_BYTES).decode("ascii")

ALIAS_ROUTES = [
    ("/api/ocr/convert", "document_markdown"),
    ("/api/ocr/general", "general_ocr"),
    ("/api/ocr/simple", "plaintext_ocr"),
    ("/api/ocr/chart", "chart_parse"),
    ("/api/ocr/describe", "image_caption"),
    ("/api/ocr/locate", "text_localization"),
]


def png_file(filename: str = "scan.png"):
    return {"image": (filename, PNG_BYTES, "image/png")}


class TestSuccess:
    def test_multipart_generic_endpoint(self, client, upstream):
        response = client.post(
            "/api/ocr",
            files=png_file(),
            data={"taskType": " general_ocr "},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert "error" not in body
        data = body["data"]
        assert data["text"] == "Распознанный текст"
        assert data["taskType"] == "general_ocr"
        assert data["promptUsed"] == get_task_config(TaskType.GENERAL_OCR).default_prompt
        assert data["filename"] == "scan.png"
        assert data["model"] == "deepseek-ai/DeepSeek-OCR"
        assert isinstance(data["processingTime"], (int, float))
        assert "confidence" not in data

        image_url = upstream.last_payload["messages"][0]["content"][0]["image_url"]["url"]
        assert image_url == f"data:image/png;base64,{PNG_BASE64}"

    @pytest.mark.parametrize("path, task_type", ALIAS_ROUTES)
    def test_alias_endpoint_forces_task_type(self, client, path, task_type):
        response = client.post(
            path,
            json={"image": PNG_BASE64, "taskType": "chart_parse", "text": "Итого"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["taskType"] == task_type

    def test_repeated_multipart_fields_use_first_value(self, client, upstream):
        response = client.post(
            "/api/ocr",
            files=[
                ("image", ("a.png", PNG_BYTES, "image/png")),
                ("image", ("b.pdf", PDF_BYTES, "application/pdf")),
            ],
            data={
                "taskType": ["text_localization", "general_ocr"],
                "text": ["总计", "小计"],
            },
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["filename"] == "a.png"
        assert data["taskType"] == "text_localization"
        assert data["promptUsed"] == "<image>\nLocate <|ref|>总计<|/ref|> in the image."
        image_url = upstream.last_payload["messages"][0]["content"][0]["image_url"]["url"]
        assert image_url.startswith("data:image/png;base64,")

    def test_multipart_form_closed_after_parsing(self, client, monkeypatch):
        closed = []
        original_close = UploadFile.close

        async def recording_close(self):
            closed.append(self.filename)
            await original_close(self)

        monkeypatch.setattr(UploadFile, "close", recording_close)

        response = client.post("/api/ocr/general", files=png_file())

        assert response.status_code == 200
        assert "scan.png" in closed

    def test_alias_ignores_invalid_task_type(self, client):
        response = client.post(
            "/api/ocr/simple",
            files=png_file(),
            data={"taskType": "unknown"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["taskType"] == "plaintext_ocr"

    def test_json_without_filename(self, client, upstream):
        response = client.post(
            "/api/ocr",
            json={"image": PNG_BASE64, "taskType": "plaintext_ocr"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["filename"] == "upload"
        assert data["model"]
        # MIME определён по сигнатуре файла
        image_url = upstream.last_payload["messages"][0]["content"][0]["image_url"]["url"]
        assert image_url.startswith("data:image/png;base64,")

    def test_json_data_uri(self, client, upstream):
        response = client.post(
            "/api/ocr/convert",
            json={"image": f"data:image/png;base64,{PNG_BASE64}", "filename": "page"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["filename"] == "page"

    def test_custom_prompt_dropped_for_markdown(self, client):
        response = client.post(
            "/api/ocr/convert",
            files=png_file(),
            data={"prompt": "Only the first table"},
        )

        assert response.json()["data"]["promptUsed"] == (
            "<image>\n<|grounding|>Convert the document to markdown."
        )

    def test_localization_prompt(self, client, upstream):
        response = client.post(
            "/api/ocr/locate",
            json={"image": PNG_BASE64, "text": "总计", "prompt": "Return coordinates"},
        )

        expected = "<image>\nLocate <|ref|>总计<|/ref|> in the image.\nReturn coordinates"
        assert response.status_code == 200
        assert response.json()["data"]["promptUsed"] == expected
        assert upstream.last_payload["messages"][0]["content"][1]["text"] == expected
        # CJK без \uXXXX экранирования
        assert "总计" in response.text

    def test_pdf_upload(self, client, upstream):
        response = client.post(
            "/api/ocr/general",
            files={"image": ("report.pdf", PDF_BYTES, "application/pdf")},
        )

        assert response.status_code == 200
        image_url = upstream.last_payload["messages"][0]["content"][0]["image_url"]["url"]
        assert image_url.startswith("data:application/pdf;base64,")

    def test_confidence_and_parts(self, client, upstream):
        upstream.json_body = {
            "model": "upstream/model-v2",
            "choices": [
                {"message": {"content": [{"text": "A"}, {"text": "B"}]}, "confidence": 0.9}
            ],
        }

        data = client.post("/api/ocr/general", files=png_file()).json()["data"]

        assert data["text"] == "A\nB"
        assert data["confidence"] == 0.9
        assert data["model"] == "upstream/model-v2"


class TestRequestErrors:
    def test_unsupported_content_type_logged(self, client, caplog):
        with caplog.at_level(logging.WARNING, logger="ocr_gateway.services.input_parser"):
            client.post("/api/ocr", content=b"x", headers={"content-type": "text/xml"})

        assert any("text/xml" in record.getMessage() for record in caplog.records)

    def test_multipart_without_boundary(self, client, upstream):
        response = client.post(
            "/api/ocr/general",
            content=b"garbage",
            headers={"content-type": "multipart/form-data"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FILE"
        assert upstream.requests == []

    def test_unsupported_content_type(self, client, upstream):
        response = client.post(
            "/api/ocr",
            content=b"image=...",
            headers={"content-type": "text/plain"},
        )

        assert response.status_code == 415
        body = response.json()
        assert body["success"] is False
        assert "data" not in body
        assert body["error"]["code"] == "UNSUPPORTED_CONTENT_TYPE"
        assert upstream.requests == []

    def test_multipart_without_file(self, client):
        response = client.post(
            "/api/ocr/general",
            files={"other": ("a.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FILE"

    def test_multipart_image_as_text_field(self, client):
        response = client.post(
            "/api/ocr/general",
            files={"prompt": (None, "x")},
            data={"image": "not-a-file"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FILE"

    def test_missing_task_type(self, client):
        response = client.post("/api/ocr", files=png_file(), data={"taskType": "   "})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_TASK_TYPE"

    def test_invalid_task_type(self, client):
        response = client.post("/api/ocr", json={"image": PNG_BASE64, "taskType": "translate"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TASK_TYPE"

    def test_malformed_json(self, client):
        response = client.post(
            "/api/ocr",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_JSON"

    def test_json_schema_violation(self, client):
        response = client.post("/api/ocr/general", json={"image": 123})

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_JSON"
        assert "image" in error["message"]

    def test_json_missing_image(self, client):
        response = client.post("/api/ocr/general", json={"filename": "a.png"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_IMAGE"

    def test_json_invalid_base64(self, client):
        response = client.post("/api/ocr/general", json={"image": "@@@@"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FILE"

    def test_localization_without_text_multipart(self, client, upstream):
        response = client.post("/api/ocr/locate", files=png_file(), data={"prompt": "x"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_TARGET_TEXT"
        assert upstream.requests == []

    def test_localization_without_text_json(self, client):
        response = client.post(
            "/api/ocr",
            json={"image": PNG_BASE64, "taskType": "text_localization", "text": "  "},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_TARGET_TEXT"

    def test_file_too_large(self, client, settings, upstream):
        settings.max_file_size = "16"

        response = client.post(
            "/api/ocr/general",
            files={"image": ("big.bin", b"0" * 17, "application/x-unknown")},
        )

        assert response.status_code == 413
        assert response.json()["error"]["code"] == "FILE_TOO_LARGE"
        assert upstream.requests == []

    def test_unsupported_format(self, client, settings):
        settings.supported_formats = '["image/jpeg", ".pdf"]'

        response = client.post("/api/ocr/general", files=png_file())

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "UNSUPPORTED_FORMAT"


class TestUpstreamErrors:
    def test_missing_api_key(self, client, settings):
        settings.siliconflow_api_key = None

        response = client.post("/api/ocr/general", files=png_file())

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "MISSING_API_KEY"

    def test_upstream_status_propagated(self, client, upstream):
        upstream.status_code = 429
        upstream.json_body = {"error": {"message": "Rate limit reached"}}

        response = client.post("/api/ocr/general", files=png_file())

        assert response.status_code == 429
        error = response.json()["error"]
        assert error["code"] == "UPSTREAM_ERROR"
        assert "Rate limit reached" in error["message"]
        assert "Rate limit reached" in error["details"]

    @pytest.mark.parametrize(
        "json_body",
        [
            {"choices": []},
            {"choices": [{"message": {"content": ""}}]},
        ],
    )
    def test_empty_response(self, client, upstream, json_body):
        upstream.json_body = json_body

        response = client.post("/api/ocr/general", files=png_file())

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "EMPTY_RESPONSE"

    def test_transport_failure_is_internal_error(self, client, upstream):
        upstream.error = httpx.ConnectError("connection refused")

        response = client.post("/api/ocr/general", files=png_file())

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert "details" not in error
        assert "connection refused" not in response.text


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["upstream"]["base_url"] == "https://upstream.test"
        assert body["upstream"]["api_key_configured"] is True
        assert body["config"]["max_file_size"] == 10 * 1024 * 1024
        assert "text_localization" in body["config"]["task_types"]

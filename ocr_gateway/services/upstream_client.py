"""
Клиент апстрима — OpenAI-совместимый chat/completions API SiliconFlow.

Отправляет изображение (data URI) и промпт одним сообщением,
разбирает ответ и классифицирует ошибки:
    - не-2xx ответ -> UpstreamError (со статусом апстрима)
    - нет choices или пустой текст -> EmptyResponseError (502)
    - сетевые ошибки httpx пробрасываются как есть
"""

import json
import logging
import time
from typing import Any, Optional

import httpx

from ocr_gateway.config import Settings
from ocr_gateway.errors import EmptyResponseError, MissingApiKeyError, UpstreamError
from ocr_gateway.schemas import OcrResult

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"


def create_client(settings: Settings) -> httpx.AsyncClient:
    """HTTP клиент для одного запроса к апстриму."""
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.upstream_timeout_seconds))


def build_payload(base64_content: str, mime_type: str, prompt: str, model: str) -> dict:
    """Тело запроса chat/completions (temperature=0 — детерминированный вывод)."""
    return {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime_type};base64,{base64_content}"},
                    },
                    {"type": "text", "text": prompt},
                ],
            }
        ],
        "temperature": 0,
    }


async def invoke_upstream(
    base64_content: str,
    mime_type: str,
    prompt: str,
    settings: Settings,
) -> OcrResult:
    """
    Выполняет распознавание через апстрим.

    Args:
        base64_content: содержимое файла в base64
        mime_type: MIME тип файла
        prompt: итоговый промпт
        settings: настройки (ключ, URL, модель, таймаут)

    Returns:
        OcrResult: текст, модель и (если есть) уверенность

    Raises:
        MissingApiKeyError: не задан SILICONFLOW_API_KEY
        UpstreamError: апстрим вернул не-2xx ответ
        EmptyResponseError: ответ без содержимого
        httpx.HTTPError: сетевая ошибка
    """
    api_key = settings.siliconflow_api_key
    if not api_key:
        raise MissingApiKeyError()

    model = settings.model_id
    endpoint = f"{settings.base_url}{CHAT_COMPLETIONS_PATH}"
    payload = build_payload(base64_content, mime_type, prompt, model)

    logger.info(f"Запрос к апстриму: {endpoint}, модель={model}")
    started = time.perf_counter()

    try:
        async with create_client(settings) as client:
            response = await client.post(
                endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
    except httpx.HTTPError as e:
        logger.error(f"Апстрим недоступен ({endpoint}): {e!r}")
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    raw_text = response.text
    data = _parse_json(raw_text)

    if not response.is_success:
        message = _extract_error_message(data) or response.reason_phrase or "вызов API завершился ошибкой"
        logger.warning(
            f"Апстрим вернул ошибку: {response.status_code} за {elapsed_ms:.0f}ms - {message}"
        )
        raise UpstreamError(
            f"Ошибка API SiliconFlow: {message}",
            details=raw_text,
            status_code=response.status_code,
        )

    text, confidence = extract_text_from_response(data)
    response_model = data.get("model") if isinstance(data, dict) else None
    if not isinstance(response_model, str) or not response_model.strip():
        response_model = None

    logger.info(f"Ответ апстрима получен за {elapsed_ms:.0f}ms, символов={len(text)}")

    return OcrResult(
        text=text,
        model=response_model or model,
        confidence=confidence,
    )


def extract_text_from_response(payload: Any) -> tuple[str, Optional[Any]]:
    """
    Извлекает текст из ответа chat/completions.

    content может быть строкой или списком частей; из списка берутся
    строковые поля text, соединённые переводом строки.

    Args:
        payload: разобранный JSON ответа (None, если тело не JSON)

    Returns:
        tuple: (текст, уверенность или None)

    Raises:
        EmptyResponseError: нет первого choice или текст пуст
    """
    choices = payload.get("choices") if isinstance(payload, dict) else None
    choice = choices[0] if isinstance(choices, list) and choices else None
    if not choice:
        raise EmptyResponseError("API распознавания не вернул содержимого.")

    message = choice.get("message") if isinstance(choice, dict) else None
    content = message.get("content") if isinstance(message, dict) else None

    text = ""
    if isinstance(content, str):
        text = content.strip()
    elif isinstance(content, list):
        parts = [
            part["text"]
            for part in content
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        text = "\n".join(parts).strip()

    if not text:
        raise EmptyResponseError("Результат распознавания пуст, попробуйте ещё раз.")

    confidence = choice.get("confidence") if isinstance(choice, dict) else None
    return text, confidence


def _parse_json(raw_text: str) -> Any:
    """Разбирает тело ответа; некорректный JSON даёт None, а не исключение."""
    try:
        return json.loads(raw_text)
    except ValueError:
        return None


def _extract_error_message(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return None

"""
Разбор входящего запроса.

Поддерживает два формата тела:
    - multipart/form-data: файл в поле image + текстовые поля
    - application/json: файл в base64 в поле image

Оба формата приводятся к одному ParsedInput.
"""

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request

from ocr_gateway.errors import (
    InvalidFileError,
    InvalidJsonError,
    MissingImageError,
    UnsupportedMediaTypeError,
)
from ocr_gateway.schemas import JsonOCRRequest, ParsedInput, TaskType
from ocr_gateway.services.encoding import (
    decode_base64,
    infer_mime_type,
    mime_type_from_data_uri,
    sniff_mime_type,
)
from ocr_gateway.services.task_registry import resolve_task_type

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "upload"


async def parse_input(
    request: Request,
    forced_task_type: Optional[TaskType] = None,
) -> ParsedInput:
    """
    Приводит запрос к ParsedInput.

    Args:
        request: входящий запрос
        forced_task_type: тип задачи, зафиксированный эндпоинтом

    Returns:
        ParsedInput: нормализованные данные запроса

    Raises:
        UnsupportedMediaTypeError: Content-Type не multipart и не JSON
        OCRError: ошибки разбора тела и определения задачи
    """
    content_type = request.headers.get("content-type", "").lower()

    if "multipart/form-data" in content_type:
        return await _parse_multipart(request, forced_task_type)
    if "application/json" in content_type:
        return await _parse_json(request, forced_task_type)

    logger.warning(f"Неподдерживаемый Content-Type: {content_type or '(не указан)'}")
    raise UnsupportedMediaTypeError()


async def _parse_multipart(
    request: Request,
    forced_task_type: Optional[TaskType],
) -> ParsedInput:
    try:
        async with request.form() as form:
            upload = _first(form, "image")
            if not isinstance(upload, UploadFile):
                raise InvalidFileError()

            content = await upload.read()
            task_type = resolve_task_type(
                forced_task_type,
                _normalize_string(_first(form, "taskType")),
            )

            return ParsedInput(
                content=content,
                filename=upload.filename or DEFAULT_FILENAME,
                task_type=task_type,
                mime_type=upload.content_type or None,
                custom_prompt=_normalize_string(_first(form, "prompt")),
                target_text=_normalize_string(_first(form, "text")),
            )
    except (HTTPException, MultiPartException) as e:
        # Starlette оборачивает MultiPartException в HTTPException внутри приложения
        message = getattr(e, "detail", None) or getattr(e, "message", None) or str(e)
        logger.warning(f"Некорректное multipart тело: {message}")
        raise InvalidFileError(f"Некорректное multipart тело запроса: {message}")


async def _parse_json(
    request: Request,
    forced_task_type: Optional[TaskType],
) -> ParsedInput:
    body = await request.body()
    try:
        raw = json.loads(body)
    except ValueError as e:
        raise InvalidJsonError(f"Некорректный JSON: {e}")

    if not isinstance(raw, dict):
        raise InvalidJsonError("Тело запроса должно быть JSON объектом.")

    try:
        payload = JsonOCRRequest.model_validate(raw)
    except ValidationError as e:
        raise InvalidJsonError(_format_validation_error(e))

    if not payload.image or not payload.image.strip():
        raise MissingImageError()

    filename = payload.filename or DEFAULT_FILENAME
    content = decode_base64(payload.image)
    mime_type = (
        mime_type_from_data_uri(payload.image)
        or infer_mime_type(filename)
        or sniff_mime_type(content)
    )

    return ParsedInput(
        content=content,
        filename=filename,
        task_type=resolve_task_type(forced_task_type, _normalize_string(payload.task_type)),
        mime_type=mime_type,
        custom_prompt=_normalize_string(payload.prompt),
        target_text=_normalize_string(payload.text),
    )


def _first(form: FormData, key: str) -> Any:
    """Первое значение поля формы (поле может повторяться)."""
    values = form.getlist(key)
    return values[0] if values else None


def _normalize_string(value: Any) -> Optional[str]:
    """Обрезает пробелы; пустая строка и не-строки считаются отсутствующими."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _format_validation_error(error: ValidationError) -> str:
    messages = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue["loc"])
        messages.append(f"{location}: {issue['msg']}" if location else issue["msg"])
    return "; ".join(messages)

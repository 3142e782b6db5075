"""
Процессор OCR запроса — координация пайплайна.

Этапы (строго последовательно, без повторов):
    разбор запроса -> конфигурация задачи -> промпт -> валидация файла
    -> base64 + MIME -> вызов апстрима -> конверт ответа

Любая ошибка этапа прерывает пайплайн и превращается в конверт ошибки.
Неожиданные исключения логируются и отдаются клиенту как INTERNAL_ERROR
без подробностей.
"""

import logging
import time
from typing import Optional

from starlette.requests import Request

from ocr_gateway.config import Settings
from ocr_gateway.errors import INTERNAL_ERROR_CODE, INTERNAL_ERROR_MESSAGE, OCRError
from ocr_gateway.schemas import ErrorInfo, OCRData, OCRResponse, TaskType
from ocr_gateway.services.encoding import prepare_file
from ocr_gateway.services.file_validator import validate_file
from ocr_gateway.services.input_parser import parse_input
from ocr_gateway.services.prompt_builder import build_prompt
from ocr_gateway.services.task_registry import get_task_config
from ocr_gateway.services.upstream_client import invoke_upstream

logger = logging.getLogger(__name__)


async def process_ocr_request(
    request: Request,
    settings: Settings,
    forced_task_type: Optional[TaskType] = None,
) -> tuple[int, OCRResponse]:
    """
    Обрабатывает OCR запрос целиком.

    Args:
        request: входящий запрос (multipart или JSON)
        settings: настройки сервиса
        forced_task_type: тип задачи эндпоинта-алиаса

    Returns:
        tuple: (HTTP статус, конверт ответа)
    """
    try:
        return 200, await _run_pipeline(request, settings, forced_task_type)
    except OCRError as e:
        logger.warning(f"Запрос отклонён: {e.code} ({e.status_code}) - {e.message}")
        return e.status_code, error_response(e.code, e.message, e.details)
    except Exception:
        logger.exception("Непредвиденная ошибка обработки OCR запроса")
        return 500, error_response(INTERNAL_ERROR_CODE, INTERNAL_ERROR_MESSAGE)


async def _run_pipeline(
    request: Request,
    settings: Settings,
    forced_task_type: Optional[TaskType],
) -> OCRResponse:
    # 1. Разбираем запрос
    payload = await parse_input(request, forced_task_type)
    logger.info(
        f"Получен файл: {payload.filename}, задача: {payload.task_type.value}, "
        f"размер: {len(payload.content)} байт"
    )

    # 2. Промпт по конфигурации задачи
    config = get_task_config(payload.task_type)
    final_prompt = build_prompt(config, payload.custom_prompt, payload.target_text)

    # 3. Валидация и подготовка файла
    validate_file(payload.content, payload.filename, payload.mime_type, settings)
    file_info = prepare_file(payload.content, payload.filename, payload.mime_type)

    # 4. Вызов апстрима (время замеряется только для него)
    started = time.perf_counter()
    result = await invoke_upstream(
        file_info.base64_content,
        file_info.mime_type,
        final_prompt,
        settings,
    )
    processing_time = round((time.perf_counter() - started) * 1000, 2)

    logger.info(
        f"OCR завершён: {file_info.filename}, модель={result.model}, {processing_time}ms"
    )

    return OCRResponse(
        success=True,
        data=OCRData(
            text=result.text,
            confidence=result.confidence,
            processing_time=processing_time,
            model=result.model,
            task_type=payload.task_type,
            prompt_used=final_prompt,
            filename=file_info.filename,
        ),
    )


def error_response(
    code: str,
    message: str,
    details: Optional[str] = None,
) -> OCRResponse:
    """Конверт ошибки."""
    return OCRResponse(
        success=False,
        error=ErrorInfo(code=code, message=message, details=details),
    )

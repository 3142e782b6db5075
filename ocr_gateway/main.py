"""
OCR Gateway — FastAPI приложение.

Принимает изображение или PDF (multipart/form-data или JSON с base64),
формирует промпт по типу задачи и проксирует запрос к vision-language
модели SiliconFlow.

Эндпоинты:
    POST /api/ocr          — общий эндпоинт (taskType обязателен)
    POST /api/ocr/convert  — документ в Markdown
    POST /api/ocr/general  — OCR с разметкой
    POST /api/ocr/simple   — текст без разметки
    POST /api/ocr/chart    — разбор графиков
    POST /api/ocr/describe — описание изображения
    POST /api/ocr/locate   — локализация текста
    GET  /health           — проверка работоспособности и конфигурации

Запуск:
    uvicorn ocr_gateway.main:app --host 0.0.0.0 --port 8000
"""

import json
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from ocr_gateway import __version__
from ocr_gateway.config import Settings, get_settings
from ocr_gateway.schemas import JsonOCRRequest, OCRResponse, TaskType
from ocr_gateway.services.file_validator import get_max_file_size, parse_supported_formats
from ocr_gateway.services.ocr_processor import process_ocr_request

# Настройка логгера
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [OCR-Gateway] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


class UnicodeJSONResponse(JSONResponse):
    """JSON ответ без \\uXXXX экранирования (кириллица, CJK в тексте OCR)."""

    def render(self, content) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


# FastAPI приложение
app = FastAPI(
    title="OCR Gateway",
    description="Распознавание документов и изображений через vision-language модель",
    version=__version__,
    default_response_class=UnicodeJSONResponse,
)

# (путь, зафиксированный тип задачи, описание)
OCR_ROUTES: list[tuple[str, Optional[TaskType], str]] = [
    ("/api/ocr", None, "Общий эндпоинт OCR задач"),
    ("/api/ocr/convert", TaskType.DOCUMENT_MARKDOWN, "Документ в Markdown"),
    ("/api/ocr/general", TaskType.GENERAL_OCR, "OCR с разметкой"),
    ("/api/ocr/simple", TaskType.PLAINTEXT_OCR, "Извлечение текста без разметки"),
    ("/api/ocr/chart", TaskType.CHART_PARSE, "Разбор графиков"),
    ("/api/ocr/describe", TaskType.IMAGE_CAPTION, "Описание изображения"),
    ("/api/ocr/locate", TaskType.TEXT_LOCALIZATION, "Локализация текста"),
]

_MULTIPART_SCHEMA = {
    "type": "object",
    "required": ["image"],
    "properties": {
        "image": {"type": "string", "format": "binary", "description": "Изображение или PDF"},
        "prompt": {"type": "string", "description": "Дополнительный промпт"},
        "text": {"type": "string", "description": "Текст для локализации"},
        "taskType": {
            "type": "string",
            "enum": [task.value for task in TaskType],
            "description": "Обязателен для общего эндпоинта",
        },
    },
}

_OPENAPI_EXTRA = {
    "requestBody": {
        "required": True,
        "content": {
            "multipart/form-data": {"schema": _MULTIPART_SCHEMA},
            "application/json": {"schema": JsonOCRRequest.model_json_schema(by_alias=True)},
        },
    }
}

_RESPONSES = {
    400: {"model": OCRResponse, "description": "Ошибка параметров запроса"},
    413: {"model": OCRResponse, "description": "Файл слишком большой"},
    415: {"model": OCRResponse, "description": "Неподдерживаемый Content-Type"},
    500: {"model": OCRResponse, "description": "Ошибка сервиса"},
}


def _make_ocr_endpoint(forced_task_type: Optional[TaskType]):
    """Обработчик маршрута; все эндпоинты отличаются только forced_task_type."""

    async def endpoint(
        request: Request,
        settings: Settings = Depends(get_settings),
    ) -> UnicodeJSONResponse:
        status_code, response = await process_ocr_request(request, settings, forced_task_type)
        return UnicodeJSONResponse(content=response.to_content(), status_code=status_code)

    return endpoint


for _path, _task_type, _summary in OCR_ROUTES:
    app.add_api_route(
        _path,
        _make_ocr_endpoint(_task_type),
        methods=["POST"],
        summary=_summary,
        tags=["OCR"],
        response_model=OCRResponse,
        responses=_RESPONSES,
        openapi_extra=_OPENAPI_EXTRA,
    )


@app.get("/health")
async def health_check(settings: Settings = Depends(get_settings)) -> dict:
    """
    Проверка работоспособности сервиса.

    Апстрим не вызывается: возвращается только эффективная конфигурация.

    Returns:
        dict: статус сервиса и конфигурация
    """
    return {
        "status": "ok" if settings.siliconflow_api_key else "degraded",
        "service": "ocr-gateway",
        "version": __version__,
        "upstream": {
            "base_url": settings.base_url,
            "model": settings.model_id,
            "api_key_configured": bool(settings.siliconflow_api_key),
        },
        "config": {
            "max_file_size": get_max_file_size(settings.max_file_size),
            "supported_formats": parse_supported_formats(settings.supported_formats),
            "task_types": [task.value for task in TaskType],
        },
    }


if __name__ == "__main__":
    import uvicorn

    port = get_settings().port
    logger.info(f"Запуск OCR Gateway на порту {port}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )

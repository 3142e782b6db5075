"""
Сервисы обработки OCR запроса.

Модули:
    - task_registry: типы задач и шаблоны промптов
    - input_parser: разбор multipart / JSON запроса
    - file_validator: проверка размера и формата файла
    - prompt_builder: сборка итогового промпта
    - encoding: base64 и определение MIME типа
    - upstream_client: вызов SiliconFlow API
    - ocr_processor: координация пайплайна
"""

from ocr_gateway.services.ocr_processor import process_ocr_request
from ocr_gateway.services.prompt_builder import build_prompt
from ocr_gateway.services.task_registry import get_task_config, resolve_task_type

__all__ = [
    "process_ocr_request",
    "build_prompt",
    "get_task_config",
    "resolve_task_type",
]

"""
OCR Gateway — адаптер между клиентами и vision-language OCR API.

Объединяет в одном FastAPI приложении:
    - Приём файла в multipart/form-data или JSON (base64)
    - Выбор промпта по типу задачи (TaskType)
    - Валидацию размера и формата файла
    - Вызов SiliconFlow chat/completions и нормализацию ответа
"""

__version__ = "1.0.0"

from ocr_gateway.config import Settings, get_settings
from ocr_gateway.schemas import OCRResponse, ParsedInput, TaskConfig, TaskType

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "OCRResponse",
    "ParsedInput",
    "TaskConfig",
    "TaskType",
]

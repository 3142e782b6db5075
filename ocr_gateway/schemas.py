"""
Схемы данных OCR Gateway.

Включает:
    - Перечисление типов задач (TaskType)
    - Внутренние dataclass'ы пайплайна (TaskConfig, ParsedInput, PreparedFile, OcrResult)
    - Pydantic модели для API (тело JSON запроса, конверт ответа)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TaskType(str, Enum):
    """Поддерживаемые задачи распознавания."""

    DOCUMENT_MARKDOWN = "document_markdown"
    GENERAL_OCR = "general_ocr"
    PLAINTEXT_OCR = "plaintext_ocr"
    CHART_PARSE = "chart_parse"
    IMAGE_CAPTION = "image_caption"
    TEXT_LOCALIZATION = "text_localization"


# =============================================================================
# Внутренние структуры пайплайна
# =============================================================================


@dataclass(frozen=True)
class TaskConfig:
    """
    Описание задачи распознавания.

    Attributes:
        id: тип задачи
        default_prompt: шаблон промпта, может содержать {{target}}
        requires_target_text: шаблон требует подстановки текста
        allow_custom_prompt: к шаблону можно дописать промпт клиента
    """

    id: TaskType
    default_prompt: str
    requires_target_text: bool = False
    allow_custom_prompt: bool = False


@dataclass
class ParsedInput:
    """
    Нормализованный запрос (одинаковый для multipart и JSON).

    Attributes:
        content: содержимое файла
        filename: имя файла ("upload", если клиент его не передал)
        task_type: тип задачи (уже проверен)
        mime_type: MIME тип, заявленный клиентом
        custom_prompt: дополнительный промпт
        target_text: текст для локализации
    """

    content: bytes
    filename: str
    task_type: TaskType
    mime_type: Optional[str] = None
    custom_prompt: Optional[str] = None
    target_text: Optional[str] = None


@dataclass
class PreparedFile:
    """Файл, готовый к отправке в апстрим."""

    base64_content: str
    mime_type: str
    filename: str


@dataclass
class OcrResult:
    """Результат распознавания от апстрима."""

    text: str
    model: str
    confidence: Optional[Any] = None


# =============================================================================
# Pydantic модели для API
# =============================================================================


class JsonOCRRequest(BaseModel):
    """
    Тело запроса application/json.

    Attributes:
        image: содержимое файла в base64 (допускается data URI)
        filename: имя файла
        prompt: дополнительный промпт
        text: текст для локализации
        task_type: тип задачи (для общего эндпоинта)
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    image: Optional[str] = Field(
        default=None,
        description="Содержимое файла в base64",
    )
    filename: Optional[str] = None
    prompt: Optional[str] = None
    text: Optional[str] = None
    task_type: Optional[str] = Field(default=None, alias="taskType")


class OCRData(BaseModel):
    """Данные успешного ответа."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: str
    confidence: Optional[Any] = None
    processing_time: float
    model: str
    task_type: TaskType
    prompt_used: str
    filename: str


class ErrorInfo(BaseModel):
    """Описание ошибки в конверте ответа."""

    code: str
    message: str
    details: Optional[str] = None


class OCRResponse(BaseModel):
    """
    Единый конверт ответа.

    Ровно одно из полей data / error заполнено, в зависимости от success.
    """

    success: bool
    data: Optional[OCRData] = None
    error: Optional[ErrorInfo] = None

    def to_content(self) -> dict:
        """Сериализует конверт для JSON ответа (camelCase, без пустых полей)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

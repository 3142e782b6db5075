"""
Реестр задач распознавания.

Статическое сопоставление TaskType -> TaskConfig. Создаётся один раз
при импорте и только читается, поэтому безопасен для конкурентных запросов.
"""

from types import MappingProxyType
from typing import Optional

from ocr_gateway.errors import InvalidTaskTypeError, MissingTaskTypeError
from ocr_gateway.schemas import TaskConfig, TaskType

TARGET_PLACEHOLDER = "{{target}}"

TASK_CONFIGS = MappingProxyType(
    {
        TaskType.DOCUMENT_MARKDOWN: TaskConfig(
            id=TaskType.DOCUMENT_MARKDOWN,
            default_prompt="<image>\n<|grounding|>Convert the document to markdown.",
        ),
        TaskType.GENERAL_OCR: TaskConfig(
            id=TaskType.GENERAL_OCR,
            default_prompt="<image>\n<|grounding|>OCR this image.",
        ),
        TaskType.PLAINTEXT_OCR: TaskConfig(
            id=TaskType.PLAINTEXT_OCR,
            default_prompt="<image>\nFree OCR.",
        ),
        TaskType.CHART_PARSE: TaskConfig(
            id=TaskType.CHART_PARSE,
            default_prompt="<image>\nParse the figure.",
        ),
        TaskType.IMAGE_CAPTION: TaskConfig(
            id=TaskType.IMAGE_CAPTION,
            default_prompt="<image>\nDescribe this image in detail.",
        ),
        TaskType.TEXT_LOCALIZATION: TaskConfig(
            id=TaskType.TEXT_LOCALIZATION,
            default_prompt=f"<image>\nLocate <|ref|>{TARGET_PLACEHOLDER}<|/ref|> in the image.",
            requires_target_text=True,
            allow_custom_prompt=True,
        ),
    }
)


def get_task_config(task_type: TaskType) -> TaskConfig:
    """Возвращает конфигурацию задачи (определена для каждого TaskType)."""
    return TASK_CONFIGS[task_type]


def resolve_task_type(
    forced: Optional[TaskType],
    candidate: Optional[str],
) -> TaskType:
    """
    Определяет тип задачи запроса.

    Тип, зафиксированный эндпоинтом, имеет безусловный приоритет
    над полем taskType из запроса.

    Args:
        forced: тип задачи эндпоинта-алиаса (None для общего эндпоинта)
        candidate: значение taskType из запроса

    Returns:
        TaskType: итоговый тип задачи

    Raises:
        MissingTaskTypeError: taskType не передан
        InvalidTaskTypeError: taskType не входит в перечисление
    """
    if forced is not None:
        return forced
    if not candidate:
        raise MissingTaskTypeError()
    try:
        return TaskType(candidate)
    except ValueError:
        raise InvalidTaskTypeError()

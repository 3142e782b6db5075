"""Сборка итогового промпта из шаблона задачи и параметров клиента."""

from typing import Optional

from ocr_gateway.errors import MissingTargetTextError
from ocr_gateway.schemas import TaskConfig
from ocr_gateway.services.task_registry import TARGET_PLACEHOLDER


def build_prompt(
    config: TaskConfig,
    custom_prompt: Optional[str] = None,
    target_text: Optional[str] = None,
) -> str:
    """
    Формирует промпт для апстрима.

    Для задач с {{target}} подставляет target_text (первое вхождение).
    Промпт клиента дописывается с новой строки, только если задача это
    разрешает; иначе молча игнорируется.

    Raises:
        MissingTargetTextError: задача требует target_text, а он не передан
    """
    if config.requires_target_text and not target_text:
        raise MissingTargetTextError()

    if config.requires_target_text:
        base = config.default_prompt.replace(TARGET_PLACEHOLDER, target_text or "", 1)
    else:
        base = config.default_prompt

    if config.allow_custom_prompt and custom_prompt:
        return f"{base}\n{custom_prompt}"
    return base

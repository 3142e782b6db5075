"""
Валидация загруженного файла.

Проверяет:
    - Размер файла (MAX_FILE_SIZE, по умолчанию 10 МБ)
    - Формат по списку SUPPORTED_FORMATS (MIME типы и/или расширения)

Некорректные значения в конфигурации не считаются ошибкой:
используется значение по умолчанию.
"""

import json
import logging
import math
import re
from typing import Optional, Union

from ocr_gateway.config import Settings
from ocr_gateway.errors import FileTooLargeError, UnsupportedFormatError
from ocr_gateway.services.encoding import get_extension, infer_mime_type

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_SUPPORTED_FORMATS = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/bmp",
    "image/webp",
    "application/pdf",
]

_FORMAT_SEPARATOR_RE = re.compile(r"[,\s]+")


def get_max_file_size(value: Optional[str]) -> Union[int, float]:
    """
    Лимит размера файла в байтах.

    Args:
        value: сырое значение MAX_FILE_SIZE

    Returns:
        число байт; DEFAULT_MAX_FILE_SIZE, если значение не задано,
        не число или не положительное
    """
    if not value:
        return DEFAULT_MAX_FILE_SIZE
    try:
        parsed = float(value.strip())
    except ValueError:
        logger.warning(f"Некорректный MAX_FILE_SIZE={value!r}, используется значение по умолчанию")
        return DEFAULT_MAX_FILE_SIZE
    if not math.isfinite(parsed) or parsed <= 0:
        return DEFAULT_MAX_FILE_SIZE
    return int(parsed) if parsed.is_integer() else parsed


def parse_supported_formats(value: Optional[str]) -> list[str]:
    """
    Список допустимых форматов.

    Принимает JSON массив строк ('["image/png", ".pdf"]') или список
    через запятую / пробел ("image/png, pdf").
    """
    if not value:
        return list(DEFAULT_SUPPORTED_FORMATS)

    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = None
    if isinstance(parsed, list) and all(isinstance(item, str) for item in parsed):
        return parsed if parsed else list(DEFAULT_SUPPORTED_FORMATS)

    items = [item.strip() for item in _FORMAT_SEPARATOR_RE.split(value)]
    items = [item for item in items if item]
    return items if items else list(DEFAULT_SUPPORTED_FORMATS)


def is_allowed_format(formats: list[str], mime_type: str, filename: str) -> bool:
    """
    Проверяет файл по списку форматов (без учёта регистра).

    Элемент с "/" сравнивается с MIME типом, элемент вида ".pdf" или "pdf" —
    с расширением файла.
    """
    ext = get_extension(filename)
    normalized_mime = mime_type.lower()

    for entry in formats:
        normalized = entry.strip().lower()
        if not normalized:
            continue
        if "/" in normalized:
            if normalized == normalized_mime:
                return True
        elif normalized.startswith("."):
            if ext is not None and normalized[1:] == ext:
                return True
        elif ext is not None and normalized == ext:
            return True
    return False


def _to_whole_megabytes(size_bytes: Union[int, float]) -> int:
    """Округление до целых МБ (половина округляется вверх)."""
    return math.floor(size_bytes / 1024 / 1024 + 0.5)


def validate_file(
    content: bytes,
    filename: str,
    mime_type: Optional[str],
    settings: Settings,
) -> None:
    """
    Валидирует файл по размеру и формату.

    Args:
        content: содержимое файла
        filename: имя файла
        mime_type: MIME тип, заявленный клиентом
        settings: настройки сервиса

    Raises:
        FileTooLargeError: файл больше лимита (413)
        UnsupportedFormatError: формат не входит в SUPPORTED_FORMATS
    """
    max_size = get_max_file_size(settings.max_file_size)
    if len(content) > max_size:
        raise FileTooLargeError(
            f"Размер файла превышает лимит (максимум {_to_whole_megabytes(max_size)} МБ)."
        )

    formats = parse_supported_formats(settings.supported_formats)
    effective_mime = mime_type or infer_mime_type(filename) or ""
    if not is_allowed_format(formats, effective_mime, filename):
        raise UnsupportedFormatError(
            f"Формат файла не поддерживается: {effective_mime or filename}."
        )

"""
Кодирование файлов и определение MIME типов.

Содержит:
    - Кодирование в base64 порциями (без переноса строк)
    - Декодирование base64 из JSON запроса (с data URI префиксом)
    - Определение MIME типа по расширению, data URI и сигнатуре файла
    - Подготовку файла к отправке в апстрим
"""

import base64
import binascii
import re
from typing import Optional

from ocr_gateway.errors import InvalidFileError
from ocr_gateway.schemas import PreparedFile

DEFAULT_MIME_TYPE = "application/octet-stream"

# Кратно 3 байтам: base64 порций склеивается в стандартную кодировку
CHUNK_SIZE = 3 * 8192

EXTENSION_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "pdf": "application/pdf",
}

_DATA_URI_RE = re.compile(r"^\s*data:([^;,]+)[^,]*,", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def to_base64(content: bytes) -> str:
    """
    Кодирует содержимое файла в base64.

    Файл обрабатывается порциями по CHUNK_SIZE байт, чтобы не держать
    в памяти промежуточные копии всего файла.

    Args:
        content: содержимое файла

    Returns:
        str: стандартный base64 без переносов строк
    """
    view = memoryview(content)
    parts = []
    for offset in range(0, len(view), CHUNK_SIZE):
        parts.append(base64.b64encode(view[offset:offset + CHUNK_SIZE]).decode("ascii"))
    return "".join(parts)


def decode_base64(value: str) -> bytes:
    """
    Декодирует base64 строку из JSON запроса.

    Отбрасывает всё до последней запятой (data URI префикс) и все пробельные
    символы.

    Raises:
        InvalidFileError: строка не является корректным base64
    """
    cleaned = value.rsplit(",", 1)[-1] if "," in value else value
    cleaned = _WHITESPACE_RE.sub("", cleaned)
    # Клиенты нередко отбрасывают паддинг
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidFileError("Поле image не является корректной base64 строкой.")


def get_extension(filename: Optional[str]) -> Optional[str]:
    """Расширение файла в нижнем регистре (None, если точки в имени нет)."""
    if not filename:
        return None
    parts = filename.split(".")
    if len(parts) < 2:
        return None
    return parts[-1].lower()


def infer_mime_type(filename: Optional[str]) -> Optional[str]:
    return EXTENSION_MIME_TYPES.get(get_extension(filename) or "")


def mime_type_from_data_uri(value: str) -> Optional[str]:
    """MIME тип из префикса data:<type>;base64, (если он есть)."""
    match = _DATA_URI_RE.match(value)
    if not match:
        return None
    return match.group(1).strip().lower() or None


def sniff_mime_type(content: bytes) -> Optional[str]:
    """Определяет MIME тип по сигнатуре файла."""
    if content.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if content.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if content.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if content.startswith(b"BM"):
        return "image/bmp"
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    if content.startswith(b"%PDF"):
        return "application/pdf"
    return None


def resolve_mime_type(filename: str, declared: Optional[str] = None) -> str:
    """
    Итоговый MIME тип файла.

    Порядок: заявленный клиентом -> по расширению -> application/octet-stream.
    """
    return declared or infer_mime_type(filename) or DEFAULT_MIME_TYPE


def prepare_file(
    content: bytes,
    filename: str,
    mime_type: Optional[str] = None,
) -> PreparedFile:
    """Кодирует файл и определяет его MIME тип для отправки в апстрим."""
    return PreparedFile(
        base64_content=to_base64(content),
        mime_type=resolve_mime_type(filename, mime_type),
        filename=filename,
    )

"""
Ошибки OCR Gateway.

Каждый вид отказа — отдельный подкласс OCRError с фиксированным кодом
и HTTP статусом. Ошибка создаётся в точке обнаружения и без изменений
доходит до обработчика запроса, который превращает её в конверт ошибки.
"""

from typing import Optional


class OCRError(Exception):
    """
    Базовая доменная ошибка.

    Attributes:
        status_code: HTTP статус ответа
        code: машинный код ошибки (например "FILE_TOO_LARGE")
        message: сообщение для клиента
        details: дополнительная информация (например сырой ответ апстрима)
    """

    status_code: int = 400
    code: str = "OCR_ERROR"
    default_message: str = "Ошибка обработки запроса."

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class UnsupportedMediaTypeError(OCRError):
    status_code = 415
    code = "UNSUPPORTED_CONTENT_TYPE"
    default_message = "Поддерживаются только запросы multipart/form-data или application/json."


class InvalidFileError(OCRError):
    code = "INVALID_FILE"
    default_message = "Загрузите корректное изображение или PDF файл."


class InvalidJsonError(OCRError):
    code = "INVALID_JSON"
    default_message = "Некорректное тело JSON запроса."


class MissingImageError(OCRError):
    code = "MISSING_IMAGE"
    default_message = "JSON запрос должен содержать поле image (base64)."


class MissingTaskTypeError(OCRError):
    code = "MISSING_TASK_TYPE"
    default_message = "Укажите поле taskType в запросе."


class InvalidTaskTypeError(OCRError):
    code = "INVALID_TASK_TYPE"
    default_message = "Значение taskType не входит в допустимый список."


class MissingTargetTextError(OCRError):
    code = "MISSING_TARGET_TEXT"
    default_message = "Для задачи локализации текста требуется поле text."


class FileTooLargeError(OCRError):
    status_code = 413
    code = "FILE_TOO_LARGE"
    default_message = "Размер файла превышает лимит."


class UnsupportedFormatError(OCRError):
    code = "UNSUPPORTED_FORMAT"
    default_message = "Формат файла не поддерживается."


class MissingApiKeyError(OCRError):
    status_code = 500
    code = "MISSING_API_KEY"
    default_message = "Переменная окружения SILICONFLOW_API_KEY не задана."


class UpstreamError(OCRError):
    """Апстрим вернул не-2xx ответ; status_code берётся из ответа."""

    status_code = 502
    code = "UPSTREAM_ERROR"
    default_message = "Ошибка вызова API распознавания."


class EmptyResponseError(OCRError):
    status_code = 502
    code = "EMPTY_RESPONSE"
    default_message = "API распознавания не вернул содержимого."


INTERNAL_ERROR_CODE = "INTERNAL_ERROR"
INTERNAL_ERROR_MESSAGE = "Сервис временно недоступен, попробуйте позже."

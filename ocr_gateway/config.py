"""
Конфигурация OCR Gateway.

Все значения читаются из .env файла (или переменных окружения).
Имена переменных совпадают с исходным деплоем: SILICONFLOW_API_KEY,
SILICONFLOW_BASE_URL, SILICONFLOW_MODEL_ID, MAX_FILE_SIZE, SUPPORTED_FORMATS.

MAX_FILE_SIZE и SUPPORTED_FORMATS хранятся как сырые строки: их разбор
(с откатом на значения по умолчанию) выполняет file_validator, чтобы
некорректное значение не роняло сервис при старте.

Документация по параметрам: .env.example
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://api.siliconflow.cn"
DEFAULT_MODEL_ID = "deepseek-ai/DeepSeek-OCR"


class Settings(BaseSettings):
    """
    Настройки OCR Gateway.

    Обязательных полей нет: отсутствие API ключа обнаруживается
    при первом запросе к апстриму (MISSING_API_KEY).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # --- Сервер ---
    port: int = 8000

    # --- Апстрим: SiliconFlow ---
    siliconflow_api_key: Optional[str] = None
    siliconflow_base_url: Optional[str] = None
    siliconflow_model_id: Optional[str] = None
    # None — без таймаута
    upstream_timeout_seconds: Optional[float] = None

    # --- Лимиты ---
    max_file_size: Optional[str] = None
    supported_formats: Optional[str] = None

    @property
    def base_url(self) -> str:
        return (self.siliconflow_base_url or DEFAULT_BASE_URL).rstrip("/")

    @property
    def model_id(self) -> str:
        return self.siliconflow_model_id or DEFAULT_MODEL_ID


@lru_cache
def get_settings() -> Settings:
    """Глобальный экземпляр настроек (FastAPI dependency)."""
    return Settings()

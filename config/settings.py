# config/settings.py - настройки сервиса проверки сертификатов

"""
Настройки приложения, загружаемые из переменных окружения.
"""

from pathlib import Path
from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Настройки приложения."""

    # Настройки базы данных
    database_url: Optional[str] = Field(default=None, description="Полный URL подключения к БД")
    db_host: str = Field(default="localhost", description="Хост базы данных")
    db_port: int = Field(default=5432, description="Порт базы данных")
    db_name: Optional[str] = Field(default=None, description="Имя базы данных")
    db_user: Optional[str] = Field(default=None, description="Пользователь базы данных")
    db_password: Optional[str] = Field(default=None, description="Пароль базы данных")
    db_echo: bool = Field(default=False, description="Выводить SQL запросы в лог")

    # Настройки логирования
    log_level: str = Field(default="INFO", description="Уровень логирования")
    log_file: Path = Field(default=Path("./logs/train_cert.log"), description="Путь к файлу логов")

    # Настройки проверки
    message_locale: str = Field(default="en", description="Язык сообщений о результатах проверки")
    expiry_warning_days: int = Field(default=30, ge=0, description="За сколько дней предупреждать об истечении")
    frequency_window_seconds: int = Field(default=3600, gt=0, description="Окно подсчета частых проверок, сек")
    frequency_threshold: int = Field(default=10, gt=0, description="Порог частых проверок")

    # Настройки очистки
    cleanup_expired_days: int = Field(default=365, ge=0, description="Удалять записи, просроченные более N дней")
    cleanup_verification_days: int = Field(default=90, ge=0, description="Удалять журнал проверок старше N дней")
    cleanup_batch_size: int = Field(default=100, gt=0, description="Размер пакета при очистке")

    # Настройки выдачи
    worker_id: int = Field(default=0, ge=0, le=1023, description="ID узла для генератора snowflake")
    default_issuing_authority: str = Field(default="Training Center", description="Организация, выдающая сертификаты")

    # Настройки API
    api_key: Optional[str] = Field(default=None, description="Ключ для межсервисных запросов к API")

    @property
    def sqlalchemy_url(self) -> str:
        """Возвращает URL подключения к базе данных."""
        if self.database_url:
            return self.database_url
        if self.db_name and self.db_user:
            return f"postgresql://{self.db_user}:{self.db_password or ''}@{self.db_host}:{self.db_port}/{self.db_name}"
        return "sqlite:///./train_cert.db"

    @validator('message_locale')
    def validate_locale(cls, v):
        """Валидация языка сообщений."""
        locale = v.strip().lower()
        if locale not in ("en", "ru", "zh"):
            raise ValueError(f"Неподдерживаемый язык сообщений: {v}")
        return locale

    @validator('log_level')
    def validate_log_level(cls, v):
        """Валидация уровня логирования."""
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Некорректный уровень логирования: {v}")
        return level

    class Config:
        """Конфигурация настроек."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Игнорировать дополнительные поля из .env


# Глобальная переменная с настройками
settings = Settings()


def get_settings() -> Settings:
    """Возвращает объект настроек."""
    return settings

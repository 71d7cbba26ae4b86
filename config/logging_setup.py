"""
Настройка логирования для CLI и API сервера.
"""

import logging
from pathlib import Path
from typing import Optional

from .settings import Settings, get_settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(settings: Optional[Settings] = None, log_file: Optional[Path] = None) -> None:
    """
    Настраивает корневой логгер: вывод в файл и в консоль.

    Args:
        settings: Настройки приложения
        log_file: Путь к файлу логов (перекрывает значение из настроек)
    """
    settings = settings or get_settings()
    log_file = Path(log_file or settings.log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler()
        ]
    )

    # SQLAlchemy пишет запросы только в режиме отладки
    if not settings.db_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

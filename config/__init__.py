"""
Модуль конфигурации сервиса сертификатов.
"""

from .settings import get_settings, Settings
from .logging_setup import setup_logging

__version__ = "1.0.0"

__all__ = ['get_settings', 'Settings', 'setup_logging']

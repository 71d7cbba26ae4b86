"""
Генераторы идентификаторов: snowflake ID, номера сертификатов и коды проверки.
"""

import hashlib
import random
import secrets
import threading
import time
from datetime import date, datetime
from typing import Optional
from .exceptions import GenerationError

# 2020-01-01 00:00:00 UTC в миллисекундах
SNOWFLAKE_EPOCH_MS = 1577836800000

WORKER_ID_BITS = 10
SEQUENCE_BITS = 12
MAX_WORKER_ID = (1 << WORKER_ID_BITS) - 1
SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1


class SnowflakeIdGenerator:
    """
    Генератор упорядоченных по времени уникальных ID.

    Структура 63-битного числа: 41 бит миллисекунд от эпохи,
    10 бит номера узла, 12 бит счетчика внутри миллисекунды.
    """

    def __init__(self, worker_id: int = 0):
        if not 0 <= worker_id <= MAX_WORKER_ID:
            raise GenerationError(f"ID узла должен быть в диапазоне 0..{MAX_WORKER_ID}: {worker_id}")
        self.worker_id = worker_id
        self.sequence = 0
        self.last_timestamp = -1
        self._lock = threading.Lock()

    def _current_millis(self) -> int:
        return int(time.time() * 1000)

    def next_id(self) -> int:
        """
        Возвращает следующий ID.

        Raises:
            GenerationError: Если системные часы ушли назад
        """
        with self._lock:
            timestamp = self._current_millis()

            if timestamp < self.last_timestamp:
                raise GenerationError(
                    f"Системные часы сдвинулись назад на {self.last_timestamp - timestamp} мс"
                )

            if timestamp == self.last_timestamp:
                self.sequence = (self.sequence + 1) & SEQUENCE_MASK
                if self.sequence == 0:
                    # Счетчик исчерпан, ждем следующую миллисекунду
                    while timestamp <= self.last_timestamp:
                        timestamp = self._current_millis()
            else:
                self.sequence = 0

            self.last_timestamp = timestamp

            return ((timestamp - SNOWFLAKE_EPOCH_MS) << (WORKER_ID_BITS + SEQUENCE_BITS)) \
                | (self.worker_id << SEQUENCE_BITS) \
                | self.sequence

    def next_id_str(self) -> str:
        """Возвращает следующий ID в виде строки."""
        return str(self.next_id())


_snowflake = SnowflakeIdGenerator()


def configure_snowflake(worker_id: int) -> None:
    """Переключает глобальный генератор на указанный номер узла."""
    global _snowflake
    if _snowflake.worker_id != worker_id:
        _snowflake = SnowflakeIdGenerator(worker_id)


def generate_snowflake_id() -> str:
    """Возвращает новый snowflake ID (используется как default для первичных ключей)."""
    return _snowflake.next_id_str()


class CertificateNumberGenerator:
    """Генератор номеров сертификатов и кодов проверки."""

    def __init__(self, code_length: int = 12):
        self.code_length = code_length

    def generate_number(self, issue_date: Optional[date] = None) -> str:
        """
        Генерирует номер сертификата.

        Формат: CERT-YYYYMMDD-NNNNNN, где дата - день выдачи,
        а NNNNNN - случайная последовательность с ведущими нулями.
        Уникальность номера проверяет БД при сохранении.

        Args:
            issue_date: Дата выдачи (по умолчанию сегодня)

        Returns:
            str: Номер сертификата
        """
        issue_date = issue_date or date.today()
        sequence = random.randint(1, 999999)
        return f"CERT-{issue_date.strftime('%Y%m%d')}-{sequence:06d}"

    def generate_verification_code(self, certificate_id: str) -> str:
        """
        Генерирует код проверки, не связанный с номером сертификата.

        Args:
            certificate_id: ID сертификата

        Returns:
            str: code_length шестнадцатеричных символов в верхнем регистре
        """
        salt = secrets.token_hex(8)
        digest = hashlib.sha256(f"{certificate_id}{datetime.now().timestamp()}{salt}".encode()).hexdigest()
        return digest[:self.code_length].upper()

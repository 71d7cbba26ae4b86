"""
Очистка устаревших данных: давно просроченные сертификаты и старый журнал проверок.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from .database import DatabaseManager, get_db_manager
from .evaluator import Clock
from .exceptions import DatabaseError
from .models import CleanupPlan, CleanupResult
from .repository import CertificateRecordRepository, CertificateVerificationRepository

# Настройка логирования
logger = logging.getLogger(__name__)


def _batches(items: List[str], batch_size: int):
    for start in range(0, len(items), batch_size):
        yield items[start:start + batch_size]


class CertificateCleanupService:
    """Сервис удаления устаревших записей."""

    def __init__(self, db_manager: Optional[DatabaseManager] = None, clock: Optional[Clock] = None):
        db_manager = db_manager or get_db_manager()
        self.clock = clock or datetime.now
        self.record_repo = CertificateRecordRepository(db_manager)
        self.verification_repo = CertificateVerificationRepository(db_manager)

    def plan(self, expired_days: int = 365, verification_days: int = 90) -> CleanupPlan:
        """
        Определяет, что будет удалено.

        Args:
            expired_days: Удалять сертификаты, просроченные более N дней назад
            verification_days: Удалять записи журнала старше N дней

        Returns:
            CleanupPlan: План очистки
        """
        now = self.clock()
        expired_before = now.date() - timedelta(days=expired_days)
        verifications_before = now - timedelta(days=verification_days)

        try:
            records = self.record_repo.find_expired_before(expired_before)
            verifications = self.verification_repo.find_verifications_before_date(verifications_before)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка подготовки плана очистки: {e}")
            raise DatabaseError(f"Ошибка при подготовке очистки: {e}")

        plan = CleanupPlan(
            expired_before=expired_before,
            verifications_before=verifications_before,
            record_ids=[record.id for record in records],
            verification_ids=[verification.id for verification in verifications],
        )

        logger.info(
            f"План очистки: {len(plan.record_ids)} просроченных сертификатов "
            f"(до {expired_before}), {len(plan.verification_ids)} записей журнала "
            f"(до {verifications_before})"
        )
        return plan

    def execute(self, plan: CleanupPlan, batch_size: int = 100, dry_run: bool = False) -> CleanupResult:
        """
        Выполняет очистку пакетами.

        Ошибка в одном пакете не прерывает очистку: она попадает в
        CleanupResult.errors, остальные пакеты обрабатываются.

        Args:
            plan: План очистки
            batch_size: Размер пакета
            dry_run: Только посчитать, ничего не удаляя

        Returns:
            CleanupResult: Итог очистки
        """
        if batch_size <= 0:
            raise ValueError("Размер пакета должен быть положительным")

        result = CleanupResult(dry_run=dry_run)

        if dry_run:
            result.expired_records_deleted = len(plan.record_ids)
            result.verifications_deleted = len(plan.verification_ids)
            logger.info(f"Пробный запуск очистки, к удалению {plan.total_items} записей")
            return result

        result.verifications_deleted = self._run_batches(
            plan.verification_ids, batch_size, self.verification_repo.delete_by_ids,
            "записей журнала", result.errors
        )
        result.expired_records_deleted = self._run_batches(
            plan.record_ids, batch_size, self.record_repo.delete_records,
            "просроченных сертификатов", result.errors
        )

        logger.info(
            f"Очистка завершена: удалено {result.expired_records_deleted} сертификатов, "
            f"{result.verifications_deleted} записей журнала, ошибок: {len(result.errors)}"
        )
        return result

    def _run_batches(self, ids: List[str], batch_size: int, delete: Callable[[List[str]], int],
                     label: str, errors: List[str]) -> int:
        deleted = 0
        for batch in _batches(ids, batch_size):
            try:
                deleted += delete(batch)
            except SQLAlchemyError as e:
                logger.error(f"Ошибка удаления {label}: {e}")
                errors.append(f"Ошибка удаления {label} ({len(batch)} шт.): {e}")
        return deleted

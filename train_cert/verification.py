"""
Проверка сертификатов: журнал проверок, контроль частоты и основной сервис.
"""

import logging
from datetime import datetime, date, time, timedelta
from typing import Dict, List, Optional, Union
from urllib.parse import urlparse, parse_qs
from sqlalchemy.exc import SQLAlchemyError
from config.settings import Settings, get_settings
from .database import DatabaseManager, CertificateRecord, CertificateVerification, get_db_manager
from .evaluator import ValidityEvaluator, Clock
from .exceptions import DatabaseError, InvalidArgumentError
from .messages import MessageKey, render_message
from .models import (
    CertificateDetails, RequestContext, VerificationDetails, VerificationEntry,
    VerificationMethod, VerificationStatistics, VerifyResult
)
from .repository import CertificateRecordRepository, CertificateVerificationRepository

# Настройка логирования
logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]

VERIFIER_INFO_MAX_LENGTH = 200


class VerificationRecorder:
    """Записывает каждую попытку проверки в журнал."""

    def __init__(self, verification_repo: CertificateVerificationRepository,
                 clock: Optional[Clock] = None, locale: str = "en"):
        self.verification_repo = verification_repo
        self.clock = clock or datetime.now
        self.locale = locale

    def record(self, certificate_id: Optional[str], method: VerificationMethod, result: VerifyResult,
               context: Optional[RequestContext] = None, **extra) -> Optional[CertificateVerification]:
        """
        Добавляет запись о проверке.

        Запись создается и для ненайденных сертификатов (certificate_id=None).
        Ошибка записи в журнал не отменяет результат проверки: она
        логируется, а метод возвращает None.

        Args:
            certificate_id: ID проверенного сертификата или None
            method: Способ проверки
            result: Результат проверки
            context: Сведения о запросе, если проверка пришла по HTTP
            **extra: Дополнительные поля для verification_details

        Returns:
            Optional[CertificateVerification]: Созданная запись или None при ошибке записи
        """
        details = VerificationDetails.from_result(result, **extra)
        verification_data = {
            "certificate_id": certificate_id,
            "verification_method": VerificationMethod(method).value,
            "verification_result": result.valid,
            "verification_details": details.model_dump(mode="json"),
            "verification_time": self.clock(),
        }

        if context is not None:
            verification_data["ip_address"] = context.client_ip
            verification_data["user_agent"] = context.user_agent
            verification_data["verifier_info"] = self.extract_verifier_info(context)

        try:
            return self.verification_repo.add_verification(verification_data)
        except SQLAlchemyError:
            logger.exception(
                f"Не удалось записать проверку сертификата {certificate_id} в журнал "
                f"(способ {verification_data['verification_method']})"
            )
            return None

    def extract_verifier_info(self, context: RequestContext) -> Optional[str]:
        """
        Собирает описание проверяющего из заголовков Referer и Accept-Language.

        Returns:
            Optional[str]: Строка вида "Source: <referer>, Language: <lang>" или None
        """
        info = []

        if context.referer:
            info.append(render_message(MessageKey.VERIFIER_SOURCE, self.locale, referer=context.referer))

        if context.accept_language:
            info.append(render_message(MessageKey.VERIFIER_LANGUAGE, self.locale, language=context.accept_language))

        if not info:
            return None
        return ", ".join(info)[:VERIFIER_INFO_MAX_LENGTH]


class FrequencyGuard:
    """Признак частых проверок сертификата. Сам проверки не блокирует."""

    def __init__(self, verification_repo: CertificateVerificationRepository,
                 clock: Optional[Clock] = None, window_seconds: int = 3600, threshold: int = 10):
        self.verification_repo = verification_repo
        self.clock = clock or datetime.now
        self.window_seconds = window_seconds
        self.threshold = threshold

    def is_frequently_verified(self, certificate_id: str, window_seconds: Optional[int] = None,
                               threshold: Optional[int] = None) -> bool:
        """
        Проверяет, превышено ли число проверок сертификата в скользящем окне.

        Args:
            certificate_id: ID сертификата
            window_seconds: Длина окна в секундах
            threshold: Порог количества проверок

        Returns:
            bool: True если проверок в окне не меньше порога
        """
        window_seconds = self.window_seconds if window_seconds is None else window_seconds
        threshold = self.threshold if threshold is None else threshold

        since = self.clock() - timedelta(seconds=window_seconds)
        count = self.verification_repo.count_since(certificate_id, since)

        if count >= threshold:
            logger.warning(
                f"Сертификат {certificate_id} проверялся {count} раз за {window_seconds} сек"
            )
            return True
        return False


class CertificateVerificationService:
    """Сервис проверки сертификатов по номеру и коду проверки."""

    def __init__(self, db_manager: Optional[DatabaseManager] = None, clock: Optional[Clock] = None,
                 settings: Optional[Settings] = None):
        """
        Инициализация сервиса.

        Args:
            db_manager: Менеджер БД (по умолчанию глобальный)
            clock: Источник текущего времени
            settings: Настройки приложения
        """
        settings = settings or get_settings()
        db_manager = db_manager or get_db_manager()

        self.clock = clock or datetime.now
        self.locale = settings.message_locale
        self.record_repo = CertificateRecordRepository(db_manager)
        self.verification_repo = CertificateVerificationRepository(db_manager)
        self.evaluator = ValidityEvaluator(self.clock, settings.expiry_warning_days, self.locale)
        self.recorder = VerificationRecorder(self.verification_repo, self.clock, self.locale)
        self.frequency_guard = FrequencyGuard(
            self.verification_repo,
            self.clock,
            settings.frequency_window_seconds,
            settings.frequency_threshold
        )

    def verify_by_certificate_number(self, certificate_number: str,
                                     context: Optional[RequestContext] = None) -> VerifyResult:
        """
        Проверяет сертификат по номеру.

        Args:
            certificate_number: Номер сертификата
            context: Сведения о запросе

        Returns:
            VerifyResult: Результат проверки
        """
        logger.info(f"Проверка сертификата по номеру {certificate_number}")
        record = self._lookup(self.record_repo.find_by_certificate_number, certificate_number)
        return self._verify(
            record, VerificationMethod.CERTIFICATE_NUMBER, MessageKey.CERTIFICATE_NOT_FOUND, context
        )

    def verify_by_verification_code(self, verification_code: str,
                                    context: Optional[RequestContext] = None) -> VerifyResult:
        """
        Проверяет сертификат по коду проверки.

        Args:
            verification_code: Код проверки
            context: Сведения о запросе

        Returns:
            VerifyResult: Результат проверки
        """
        logger.info(f"Проверка сертификата по коду {verification_code}")
        record = self._lookup(self.record_repo.find_by_verification_code, verification_code)
        return self._verify(
            record, VerificationMethod.VERIFICATION_CODE, MessageKey.VERIFICATION_CODE_INVALID, context
        )

    def verify_by_qr_code(self, payload: str, context: Optional[RequestContext] = None) -> VerifyResult:
        """
        Проверяет сертификат по содержимому QR-кода.

        QR-код содержит код проверки: либо сам код, либо ссылку, в которой
        код передан параметром code или последним сегментом пути.
        """
        verification_code = self.extract_code_from_qr(payload)
        logger.info(f"Проверка сертификата по QR-коду, код {verification_code}")
        record = self._lookup(self.record_repo.find_by_verification_code, verification_code)
        return self._verify(
            record, VerificationMethod.QR_CODE, MessageKey.VERIFICATION_CODE_INVALID, context,
            qr_payload=payload
        )

    def batch_verify(self, certificate_numbers: List[str],
                     context: Optional[RequestContext] = None) -> Dict[str, VerifyResult]:
        """
        Проверяет несколько сертификатов независимо друг от друга.

        Каждый номер из списка, включая повторы, проверяется и попадает
        в журнал отдельно.

        Args:
            certificate_numbers: Номера сертификатов
            context: Сведения о запросе

        Returns:
            Dict[str, VerifyResult]: Результат по каждому номеру
        """
        logger.info(f"Пакетная проверка {len(certificate_numbers)} сертификатов")

        results = {}
        for number in certificate_numbers:
            results[number] = self.verify_by_certificate_number(number, context)
        return results

    def get_certificate_details(self, certificate_number: str) -> Optional[CertificateDetails]:
        """
        Возвращает сведения о сертификате без записи в журнал.

        Args:
            certificate_number: Номер сертификата

        Returns:
            Optional[CertificateDetails]: Сведения или None если не найден
        """
        record = self._lookup(self.record_repo.find_by_certificate_number, certificate_number)
        if record is None:
            return None
        return self.build_details(record)

    def build_details(self, record: CertificateRecord) -> CertificateDetails:
        today = self.clock().date()
        certificate = record.certificate
        return CertificateDetails(
            certificate_id=certificate.id,
            certificate_number=record.certificate_number,
            certificate_type=record.certificate_type,
            holder_name=certificate.holder_name,
            title=certificate.title,
            issue_date=record.issue_date,
            expiry_date=record.expiry_date,
            issuing_authority=record.issuing_authority,
            verification_code=record.verification_code,
            is_valid=bool(certificate.valid),
            is_expired=record.is_expired(today),
            remaining_days=record.remaining_days(today),
            metadata=record.extra_metadata,
            template_id=record.template_id,
        )

    def get_verification_history(self, certificate_id: str) -> List[VerificationEntry]:
        """
        Возвращает историю проверок сертификата, новые первыми.

        Args:
            certificate_id: ID сертификата

        Returns:
            List[VerificationEntry]: Записи журнала
        """
        try:
            verifications = self.verification_repo.find_by_certificate_id(certificate_id)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка получения истории проверок сертификата {certificate_id}: {e}")
            raise DatabaseError(f"Ошибка при получении истории проверок: {e}")

        return [VerificationEntry.model_validate(verification) for verification in verifications]

    def get_verification_statistics(self, start_date: Optional[DateLike] = None,
                                    end_date: Optional[DateLike] = None) -> VerificationStatistics:
        """
        Считает проверки за период.

        Границы включительно: дата без времени в конце периода
        охватывает весь день.

        Args:
            start_date: Начало периода
            end_date: Конец периода

        Returns:
            VerificationStatistics: Всего, успешных, неуспешных и доля успешных в процентах

        Raises:
            InvalidArgumentError: Если начало периода позже окончания
        """
        start, end = self._period_bounds(start_date, end_date)
        if start is not None and end is not None and start > end:
            raise InvalidArgumentError("Начало периода позже его окончания")
        logger.info(f"Получение статистики проверок: {start} - {end}")

        try:
            total, successful, failed = self.verification_repo.get_statistics(start, end)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка получения статистики проверок: {e}")
            raise DatabaseError(f"Ошибка при получении статистики проверок: {e}")

        success_rate = round(successful / total * 100, 2) if total > 0 else 0
        return VerificationStatistics(
            total=total,
            successful=successful,
            failed=failed,
            success_rate=success_rate,
        )

    def is_frequently_verified(self, certificate_id: str, window_seconds: Optional[int] = None,
                               threshold: Optional[int] = None) -> bool:
        """Проверяет, часто ли проверяется сертификат (см. FrequencyGuard)."""
        try:
            return self.frequency_guard.is_frequently_verified(certificate_id, window_seconds, threshold)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка подсчета проверок сертификата {certificate_id}: {e}")
            raise DatabaseError(f"Ошибка при подсчете проверок: {e}")

    @staticmethod
    def extract_code_from_qr(payload: str) -> str:
        """Извлекает код проверки из содержимого QR-кода."""
        payload = (payload or "").strip()
        if "://" not in payload:
            return payload

        parsed = urlparse(payload)
        codes = parse_qs(parsed.query).get("code")
        if codes:
            return codes[0]
        return parsed.path.rstrip("/").rsplit("/", 1)[-1]

    def _lookup(self, finder, value: str) -> Optional[CertificateRecord]:
        try:
            return finder(value)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка поиска записи сертификата {value}: {e}")
            raise DatabaseError(f"Ошибка при поиске сертификата: {e}")

    def _verify(self, record: Optional[CertificateRecord], method: VerificationMethod,
                not_found_key: MessageKey, context: Optional[RequestContext], **extra) -> VerifyResult:
        if record is None:
            result = VerifyResult(
                valid=False,
                message=render_message(not_found_key, self.locale),
                message_key=not_found_key,
                data=None,
            )
            certificate_id = None
        else:
            verdict = self.evaluator.evaluate(record)
            result = VerifyResult(
                valid=verdict.valid,
                message=verdict.message,
                message_key=verdict.message_key,
                warnings=verdict.warnings,
                data=self.evaluator.snapshot(record),
            )
            certificate_id = record.certificate_id

        self.recorder.record(certificate_id, method, result, context, **extra)

        logger.info(f"Результат проверки ({method.value}): {result.message_key.value}")
        return result

    @staticmethod
    def _period_bounds(start_date: Optional[DateLike], end_date: Optional[DateLike]):
        start = end = None
        if start_date is not None:
            start = start_date if isinstance(start_date, datetime) else datetime.combine(start_date, time.min)
        if end_date is not None:
            end = end_date if isinstance(end_date, datetime) else datetime.combine(end_date, time.max)
        return start, end


# Глобальный экземпляр сервиса создается при первом обращении
_verification_service: Optional[CertificateVerificationService] = None


def get_verification_service() -> CertificateVerificationService:
    """Возвращает экземпляр сервиса проверки."""
    global _verification_service
    if _verification_service is None:
        _verification_service = CertificateVerificationService()
    return _verification_service

"""
Оценка действительности записи сертификата.
"""

from datetime import datetime
from typing import Callable, Optional
from .database import CertificateRecord
from .messages import MessageKey, render_message, DEFAULT_LOCALE
from .models import ValidityVerdict, CertificateSnapshot

Clock = Callable[[], datetime]


class ValidityEvaluator:
    """
    Определяет, действителен ли сертификат на текущую дату.

    Порядок проверок: отзыв, затем срок действия. Предупреждение об
    скором истечении добавляется только к действительному сертификату
    и на результат не влияет.
    """

    def __init__(self, clock: Optional[Clock] = None, warning_days: int = 30,
                 locale: str = DEFAULT_LOCALE):
        self.clock = clock or datetime.now
        self.warning_days = warning_days
        self.locale = locale

    def evaluate(self, record: CertificateRecord) -> ValidityVerdict:
        """
        Оценивает запись сертификата.

        Args:
            record: Запись с загруженным сертификатом

        Returns:
            ValidityVerdict: Заключение о действительности
        """
        today = self.clock().date()
        remaining_days = record.remaining_days(today)
        warnings = []

        if not record.certificate.valid:
            key = MessageKey.CERTIFICATE_REVOKED
        elif record.is_expired(today):
            key = MessageKey.CERTIFICATE_EXPIRED
        else:
            key = MessageKey.VERIFICATION_PASSED
            if remaining_days is not None and remaining_days <= self.warning_days:
                warnings.append(render_message(MessageKey.EXPIRING_SOON, self.locale, days=remaining_days))

        return ValidityVerdict(
            valid=key == MessageKey.VERIFICATION_PASSED,
            message_key=key,
            message=render_message(key, self.locale),
            warnings=warnings,
            remaining_days=remaining_days,
        )

    def snapshot(self, record: CertificateRecord) -> CertificateSnapshot:
        """Данные сертификата для отображения в результате проверки."""
        certificate = record.certificate
        return CertificateSnapshot(
            certificate_number=record.certificate_number,
            certificate_type=record.certificate_type,
            holder_name=certificate.holder_name,
            title=certificate.title,
            issue_date=record.issue_date,
            expiry_date=record.expiry_date,
            issuing_authority=record.issuing_authority,
            remaining_days=record.remaining_days(self.clock().date()),
        )

# train_cert/repository.py

"""
Репозитории для работы с сертификатами, записями и журналом проверок.
"""

from datetime import datetime, date, timedelta
from typing import Dict, List, Optional, Tuple
from sqlalchemy import BigInteger, case, cast, func
from sqlalchemy.exc import IntegrityError
from .database import (
    DatabaseManager, Certificate, CertificateRecord, CertificateVerification,
    CertificateApplication, CertificateAudit, CertificateTemplate
)
from .exceptions import CertificateExistsError


class CertificateRepository:
    """Репозиторий для работы с сертификатами владельцев."""

    def __init__(self, db_manager: DatabaseManager):
        """
        Инициализация репозитория.

        Args:
            db_manager: Менеджер базы данных
        """
        self.db_manager = db_manager

    def get_by_id(self, certificate_id: str) -> Optional[Certificate]:
        """Получает сертификат по ID."""
        with self.db_manager.get_session() as session:
            return session.get(Certificate, certificate_id)

    def find_by_user(self, user_id: str) -> List[Certificate]:
        """Получает сертификаты пользователя, новые первыми."""
        with self.db_manager.get_session() as session:
            return session.query(Certificate).filter(
                Certificate.user_id == str(user_id)
            ).order_by(Certificate.created_at.desc()).all()

    def find_by_user_and_title(self, user_id: str, title: str) -> Optional[Certificate]:
        """Ищет сертификат пользователя с указанным названием."""
        with self.db_manager.get_session() as session:
            return session.query(Certificate).filter(
                Certificate.user_id == str(user_id),
                Certificate.title == title
            ).first()

    def set_valid(self, certificate_id: str, valid: bool) -> bool:
        """
        Меняет признак действительности сертификата.

        Args:
            certificate_id: ID сертификата
            valid: Новое значение

        Returns:
            bool: True если сертификат найден и обновлен
        """
        with self.db_manager.get_session() as session:
            certificate = session.get(Certificate, certificate_id)
            if certificate is None:
                return False

            certificate.valid = valid
            session.commit()
            return True

    def get_statistics(self, today: date) -> Dict[str, int]:
        """
        Получает статистику по сертификатам.

        Args:
            today: Текущая дата для подсчета просроченных

        Returns:
            Dict[str, int]: Статистика
        """
        with self.db_manager.get_session() as session:
            total = session.query(Certificate).count()
            valid = session.query(Certificate).filter(Certificate.valid == True).count()  # noqa: E712
            expired = session.query(CertificateRecord).join(CertificateRecord.certificate).filter(
                CertificateRecord.expiry_date < today,
                Certificate.valid == True  # noqa: E712
            ).count()
            expiring = session.query(CertificateRecord).join(CertificateRecord.certificate).filter(
                CertificateRecord.expiry_date >= today,
                CertificateRecord.expiry_date <= today + timedelta(days=30),
                Certificate.valid == True  # noqa: E712
            ).count()

            by_type = dict(
                session.query(CertificateRecord.certificate_type, func.count(CertificateRecord.id))
                .group_by(CertificateRecord.certificate_type)
                .all()
            )

            return {
                "total_certificates": total,
                "valid_certificates": valid,
                "revoked_certificates": total - valid,
                "expired_certificates": expired,
                "expiring_certificates": expiring,
                "by_type": by_type,
            }


class CertificateRecordRepository:
    """Репозиторий записей сертификатов (номер, код проверки, сроки)."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def create_record(self, certificate_data: dict, record_data: dict) -> CertificateRecord:
        """
        Создает сертификат и его запись в одной транзакции.

        Args:
            certificate_data: Поля сертификата
            record_data: Поля записи

        Returns:
            CertificateRecord: Созданная запись с загруженным сертификатом

        Raises:
            CertificateExistsError: Если номер, код проверки или сертификат уже заняты
        """
        with self.db_manager.get_session() as session:
            certificate = Certificate(**certificate_data)
            record = CertificateRecord(certificate=certificate, **record_data)
            session.add(record)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise CertificateExistsError(
                    f"Запись с номером {record_data.get('certificate_number')} или таким кодом проверки уже существует"
                ) from e
            return record

    def get_by_id(self, record_id: str) -> Optional[CertificateRecord]:
        with self.db_manager.get_session() as session:
            return session.get(CertificateRecord, record_id)

    def find_by_certificate_id(self, certificate_id: str) -> Optional[CertificateRecord]:
        with self.db_manager.get_session() as session:
            return session.query(CertificateRecord).filter(
                CertificateRecord.certificate_id == certificate_id
            ).first()

    def find_by_certificate_number(self, certificate_number: str) -> Optional[CertificateRecord]:
        """
        Ищет запись по номеру сертификата (точное совпадение с учетом регистра).

        Args:
            certificate_number: Номер сертификата

        Returns:
            Optional[CertificateRecord]: Запись или None
        """
        with self.db_manager.get_session() as session:
            return session.query(CertificateRecord).filter(
                CertificateRecord.certificate_number == certificate_number
            ).first()

    def find_by_verification_code(self, verification_code: str) -> Optional[CertificateRecord]:
        """
        Ищет запись по коду проверки (точное совпадение с учетом регистра).

        Args:
            verification_code: Код проверки

        Returns:
            Optional[CertificateRecord]: Запись или None
        """
        with self.db_manager.get_session() as session:
            return session.query(CertificateRecord).filter(
                CertificateRecord.verification_code == verification_code
            ).first()

    def find_by_certificate_type(self, certificate_type: str) -> List[CertificateRecord]:
        with self.db_manager.get_session() as session:
            return session.query(CertificateRecord).filter(
                CertificateRecord.certificate_type == certificate_type
            ).order_by(CertificateRecord.issue_date.desc()).all()

    def find_by_issuing_authority(self, authority: str) -> List[CertificateRecord]:
        with self.db_manager.get_session() as session:
            return session.query(CertificateRecord).filter(
                CertificateRecord.issuing_authority == authority
            ).order_by(CertificateRecord.issue_date.desc()).all()

    def find_expiring(self, today: date, days: int = 30) -> List[CertificateRecord]:
        """Записи, срок которых истекает в ближайшие days дней (включая сегодня)."""
        with self.db_manager.get_session() as session:
            return session.query(CertificateRecord).filter(
                CertificateRecord.expiry_date >= today,
                CertificateRecord.expiry_date <= today + timedelta(days=days)
            ).order_by(CertificateRecord.expiry_date.asc()).all()

    def find_expired(self, today: date) -> List[CertificateRecord]:
        """Записи с истекшим сроком действия."""
        with self.db_manager.get_session() as session:
            return session.query(CertificateRecord).filter(
                CertificateRecord.expiry_date < today
            ).order_by(CertificateRecord.expiry_date.desc()).all()

    def find_expired_before(self, cutoff: date) -> List[CertificateRecord]:
        """Записи, срок которых истек раньше указанной даты."""
        with self.db_manager.get_session() as session:
            return session.query(CertificateRecord).filter(
                CertificateRecord.expiry_date < cutoff
            ).all()

    def update_expiry(self, certificate_number: str, expiry_date: Optional[date]) -> Optional[CertificateRecord]:
        """
        Продлевает или сокращает срок действия.

        Returns:
            Optional[CertificateRecord]: Обновленная запись или None, если не найдена
        """
        with self.db_manager.get_session() as session:
            record = session.query(CertificateRecord).filter(
                CertificateRecord.certificate_number == certificate_number
            ).first()
            if record is None:
                return None

            record.expiry_date = expiry_date
            session.commit()
            return record

    def update_metadata(self, certificate_number: str, metadata: Optional[dict]) -> Optional[CertificateRecord]:
        with self.db_manager.get_session() as session:
            record = session.query(CertificateRecord).filter(
                CertificateRecord.certificate_number == certificate_number
            ).first()
            if record is None:
                return None

            record.extra_metadata = metadata
            session.commit()
            return record

    def delete_records(self, record_ids: List[str]) -> int:
        """
        Удаляет записи вместе с их сертификатами.

        Args:
            record_ids: ID записей

        Returns:
            int: Количество удаленных записей
        """
        if not record_ids:
            return 0

        with self.db_manager.get_session() as session:
            certificate_ids = [
                row.certificate_id for row in
                session.query(CertificateRecord.certificate_id).filter(CertificateRecord.id.in_(record_ids)).all()
            ]
            deleted = session.query(CertificateRecord).filter(
                CertificateRecord.id.in_(record_ids)
            ).delete(synchronize_session=False)
            session.query(Certificate).filter(
                Certificate.id.in_(certificate_ids)
            ).delete(synchronize_session=False)
            session.commit()
            return deleted


class CertificateVerificationRepository:
    """Репозиторий журнала проверок."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def add_verification(self, verification_data: dict) -> CertificateVerification:
        """
        Добавляет запись о проверке. Существующие записи не изменяются.

        Args:
            verification_data: Поля записи

        Returns:
            CertificateVerification: Созданная запись
        """
        with self.db_manager.get_session() as session:
            verification = CertificateVerification(**verification_data)
            session.add(verification)
            session.commit()
            return verification

    def find_by_certificate_id(self, certificate_id: str) -> List[CertificateVerification]:
        """Записи о проверках сертификата, новые первыми."""
        with self.db_manager.get_session() as session:
            return session.query(CertificateVerification).filter(
                CertificateVerification.certificate_id == certificate_id
            ).order_by(
                CertificateVerification.verification_time.desc(),
                # ID - snowflake в строке, порядок по числовому значению
                cast(CertificateVerification.id, BigInteger).desc()
            ).all()

    def find_successful_verifications(self) -> List[CertificateVerification]:
        with self.db_manager.get_session() as session:
            return session.query(CertificateVerification).filter(
                CertificateVerification.verification_result == True  # noqa: E712
            ).order_by(CertificateVerification.verification_time.desc()).all()

    def find_by_ip_address(self, ip_address: str) -> List[CertificateVerification]:
        with self.db_manager.get_session() as session:
            return session.query(CertificateVerification).filter(
                CertificateVerification.ip_address == ip_address
            ).order_by(CertificateVerification.verification_time.desc()).all()

    def find_verifications_before_date(self, cutoff: datetime) -> List[CertificateVerification]:
        """Записи старше указанного момента (для очистки журнала)."""
        with self.db_manager.get_session() as session:
            return session.query(CertificateVerification).filter(
                CertificateVerification.verification_time < cutoff
            ).all()

    def count_since(self, certificate_id: str, since: datetime) -> int:
        """Количество проверок сертификата начиная с указанного момента."""
        with self.db_manager.get_session() as session:
            return session.query(func.count(CertificateVerification.id)).filter(
                CertificateVerification.certificate_id == certificate_id,
                CertificateVerification.verification_time >= since
            ).scalar() or 0

    def get_statistics(self, start: Optional[datetime] = None,
                       end: Optional[datetime] = None) -> Tuple[int, int, int]:
        """
        Считает проверки за период (границы включительно).

        Args:
            start: Начало периода
            end: Конец периода

        Returns:
            Tuple[int, int, int]: Всего, успешных, неуспешных
        """
        with self.db_manager.get_session() as session:
            query = session.query(
                func.count(CertificateVerification.id),
                func.sum(case((CertificateVerification.verification_result == True, 1), else_=0)),  # noqa: E712
                func.sum(case((CertificateVerification.verification_result == False, 1), else_=0)),  # noqa: E712
            )

            if start is not None:
                query = query.filter(CertificateVerification.verification_time >= start)
            if end is not None:
                query = query.filter(CertificateVerification.verification_time <= end)

            total, successful, failed = query.one()
            return int(total or 0), int(successful or 0), int(failed or 0)

    def delete_by_ids(self, verification_ids: List[str]) -> int:
        if not verification_ids:
            return 0

        with self.db_manager.get_session() as session:
            deleted = session.query(CertificateVerification).filter(
                CertificateVerification.id.in_(verification_ids)
            ).delete(synchronize_session=False)
            session.commit()
            return deleted


class CertificateApplicationRepository:
    """Репозиторий заявок и результатов их рассмотрения."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def create_application(self, application_data: dict) -> CertificateApplication:
        with self.db_manager.get_session() as session:
            application = CertificateApplication(**application_data)
            session.add(application)
            session.commit()
            return application

    def get_by_id(self, application_id: str) -> Optional[CertificateApplication]:
        with self.db_manager.get_session() as session:
            return session.get(CertificateApplication, application_id)

    def find_by_user(self, user_id: str) -> List[CertificateApplication]:
        with self.db_manager.get_session() as session:
            return session.query(CertificateApplication).filter(
                CertificateApplication.user_id == str(user_id)
            ).order_by(CertificateApplication.application_time.desc()).all()

    def save_audit(self, application_id: str, application_changes: dict,
                   audit_data: dict) -> CertificateAudit:
        """
        Сохраняет результат рассмотрения и обновляет заявку в одной транзакции.

        Args:
            application_id: ID заявки
            application_changes: Новые значения полей заявки
            audit_data: Поля записи аудита

        Returns:
            CertificateAudit: Созданная запись аудита
        """
        with self.db_manager.get_session() as session:
            application = session.get(CertificateApplication, application_id)
            for field, value in application_changes.items():
                setattr(application, field, value)

            audit = CertificateAudit(application_id=application_id, **audit_data)
            session.add(audit)
            session.commit()
            return audit

    def update_application(self, application_id: str, changes: dict) -> Optional[CertificateApplication]:
        with self.db_manager.get_session() as session:
            application = session.get(CertificateApplication, application_id)
            if application is None:
                return None

            for field, value in changes.items():
                setattr(application, field, value)
            session.commit()
            return application

    def find_audits(self, application_id: str) -> List[CertificateAudit]:
        with self.db_manager.get_session() as session:
            return session.query(CertificateAudit).filter(
                CertificateAudit.application_id == application_id
            ).order_by(CertificateAudit.audit_time.desc()).all()


class CertificateTemplateRepository:
    """Репозиторий шаблонов сертификатов."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def create_template(self, template_data: dict) -> CertificateTemplate:
        """
        Создает шаблон. Если он отмечен как шаблон по умолчанию,
        отметка снимается с остальных шаблонов того же типа.

        Args:
            template_data: Поля шаблона

        Returns:
            CertificateTemplate: Созданный шаблон
        """
        with self.db_manager.get_session() as session:
            template = CertificateTemplate(**template_data)
            if template.is_default:
                self._clear_default(session, template.template_type)
            session.add(template)
            session.commit()
            return template

    def get_by_id(self, template_id: str) -> Optional[CertificateTemplate]:
        with self.db_manager.get_session() as session:
            return session.get(CertificateTemplate, template_id)

    def update_template(self, template_id: str, changes: dict) -> Optional[CertificateTemplate]:
        """
        Обновляет поля шаблона.

        Returns:
            Optional[CertificateTemplate]: Обновленный шаблон или None, если не найден
        """
        with self.db_manager.get_session() as session:
            template = session.get(CertificateTemplate, template_id)
            if template is None:
                return None

            template_type = changes.get("template_type", template.template_type)
            if changes.get("is_default") or (template.is_default and template_type != template.template_type):
                self._clear_default(session, template_type, exclude_id=template_id)

            for field, value in changes.items():
                setattr(template, field, value)
            session.commit()
            return template

    def find_active(self, template_type: Optional[str] = None) -> List[CertificateTemplate]:
        """Активные шаблоны, по алфавиту; при указании типа - только этого типа."""
        with self.db_manager.get_session() as session:
            query = session.query(CertificateTemplate).filter(
                CertificateTemplate.is_active == True  # noqa: E712
            )
            if template_type:
                query = query.filter(CertificateTemplate.template_type == template_type)
            return query.order_by(CertificateTemplate.template_name.asc()).all()

    def find_default(self, template_type: Optional[str] = None) -> Optional[CertificateTemplate]:
        """Активный шаблон по умолчанию (для типа или первый найденный)."""
        with self.db_manager.get_session() as session:
            query = session.query(CertificateTemplate).filter(
                CertificateTemplate.is_default == True,  # noqa: E712
                CertificateTemplate.is_active == True  # noqa: E712
            )
            if template_type:
                query = query.filter(CertificateTemplate.template_type == template_type)
            return query.order_by(CertificateTemplate.template_type.asc()).first()

    def _clear_default(self, session, template_type: str, exclude_id: Optional[str] = None):
        query = session.query(CertificateTemplate).filter(
            CertificateTemplate.template_type == template_type,
            CertificateTemplate.is_default == True  # noqa: E712
        )
        if exclude_id is not None:
            query = query.filter(CertificateTemplate.id != exclude_id)
        query.update({CertificateTemplate.is_default: False}, synchronize_session=False)

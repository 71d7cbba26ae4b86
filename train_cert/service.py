"""
Бизнес-логика жизненного цикла сертификатов: заявка, рассмотрение, выдача, отзыв, продление.
"""

import logging
from datetime import datetime, date
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from config.settings import Settings, get_settings
from .database import DatabaseManager, Certificate, CertificateApplication, CertificateAudit, get_db_manager
from .evaluator import Clock
from .exceptions import (
    CertificateExistsError, CertificateNotFoundError, DatabaseError,
    GenerationError, InvalidArgumentError, PeriodValidationError
)
from .generator import CertificateNumberGenerator, generate_snowflake_id
from .models import (
    ApplicationRequest, ApplicationStatus, ApplicationType, CertificateDetails, IssueCertificateRequest
)
from .repository import (
    CertificateApplicationRepository, CertificateRecordRepository, CertificateRepository,
    CertificateTemplateRepository
)
from .verification import CertificateVerificationService

# Настройка логирования
logger = logging.getLogger(__name__)

REQUIRED_APPLICATION_FIELDS = ("title", "application_type")


class CertificateService:
    """Сервис для выдачи и сопровождения сертификатов."""

    def __init__(self, db_manager: Optional[DatabaseManager] = None, clock: Optional[Clock] = None,
                 settings: Optional[Settings] = None,
                 number_generator: Optional[CertificateNumberGenerator] = None,
                 max_attempts: int = 5):
        """
        Инициализация сервиса.

        Args:
            db_manager: Менеджер БД (по умолчанию глобальный)
            clock: Источник текущего времени
            settings: Настройки приложения
            number_generator: Генератор номеров и кодов проверки
            max_attempts: Сколько раз повторять выдачу при совпадении номера
        """
        self.settings = settings or get_settings()
        db_manager = db_manager or get_db_manager()

        self.clock = clock or datetime.now
        self.certificate_repo = CertificateRepository(db_manager)
        self.record_repo = CertificateRecordRepository(db_manager)
        self.application_repo = CertificateApplicationRepository(db_manager)
        self.template_repo = CertificateTemplateRepository(db_manager)
        self.number_generator = number_generator or CertificateNumberGenerator()
        self.max_attempts = max_attempts
        self.verification_service = CertificateVerificationService(db_manager, self.clock, self.settings)

    def issue_certificate(self, request: IssueCertificateRequest) -> CertificateDetails:
        """
        Выдает сертификат: создает действительный сертификат и его запись.

        Номер и код проверки генерируются; уникальность гарантирует БД,
        при совпадении выдача повторяется с новыми значениями.

        Args:
            request: Запрос на выдачу

        Returns:
            CertificateDetails: Сведения о выданном сертификате

        Raises:
            InvalidArgumentError: Если шаблон не найден или выключен
            GenerationError: Если не удалось подобрать свободный номер
            DatabaseError: При ошибке БД
        """
        logger.info(f"Выдача сертификата '{request.title}' пользователю {request.user_id}")

        if request.template_id is not None:
            self._check_template(request.template_id)

        for attempt in range(1, self.max_attempts + 1):
            certificate_id = generate_snowflake_id()
            certificate_data = {
                "id": certificate_id,
                "title": request.title,
                "user_id": request.user_id,
                "holder_name": request.holder_name,
                "img_url": request.img_url,
                "valid": True  # Явно устанавливаем значение
            }
            record_data = {
                "certificate_number": self.number_generator.generate_number(request.issue_date),
                "verification_code": self.number_generator.generate_verification_code(certificate_id),
                "certificate_type": request.certificate_type,
                "issue_date": request.issue_date,
                "expiry_date": request.expiry_date,
                "issuing_authority": request.issuing_authority or self.settings.default_issuing_authority,
                "template_id": request.template_id,
                "extra_metadata": request.metadata,
            }

            try:
                record = self.record_repo.create_record(certificate_data, record_data)
            except CertificateExistsError:
                logger.warning(
                    f"Номер {record_data['certificate_number']} или код проверки уже занят, "
                    f"попытка {attempt} из {self.max_attempts}"
                )
                continue
            except SQLAlchemyError as e:
                logger.error(f"Ошибка выдачи сертификата: {e}")
                raise DatabaseError(f"Ошибка при выдаче сертификата: {e}")

            logger.info(f"Сертификат {record.certificate_number} успешно выдан")
            return self.verification_service.build_details(record)

        raise GenerationError(f"Не удалось выдать сертификат за {self.max_attempts} попыток")

    def revoke_certificate(self, certificate_id: str, reason: Optional[str] = None) -> bool:
        """
        Отзывает сертификат.

        Args:
            certificate_id: ID сертификата
            reason: Причина отзыва

        Returns:
            bool: True если сертификат найден и отозван
        """
        logger.info(f"Отзыв сертификата {certificate_id}, причина: {reason or 'не указана'}")
        return self._set_valid(certificate_id, False)

    def reinstate_certificate(self, certificate_id: str) -> bool:
        """
        Восстанавливает отозванный сертификат.

        Args:
            certificate_id: ID сертификата

        Returns:
            bool: True если сертификат найден и восстановлен
        """
        logger.info(f"Восстановление сертификата {certificate_id}")
        return self._set_valid(certificate_id, True)

    def renew_certificate(self, certificate_number: str, new_expiry_date: Optional[date]) -> CertificateDetails:
        """
        Меняет дату окончания действия.

        Args:
            certificate_number: Номер сертификата
            new_expiry_date: Новая дата окончания; None - бессрочный

        Returns:
            CertificateDetails: Обновленные сведения

        Raises:
            CertificateNotFoundError: Если сертификат не найден
            PeriodValidationError: Если новая дата раньше даты выдачи
        """
        logger.info(f"Продление сертификата {certificate_number} до {new_expiry_date}")

        try:
            record = self.record_repo.find_by_certificate_number(certificate_number)
            if record is None:
                raise CertificateNotFoundError(f"Сертификат {certificate_number} не найден")

            if new_expiry_date is not None and new_expiry_date < record.issue_date:
                raise PeriodValidationError("Дата окончания не может быть раньше даты выдачи")

            record = self.record_repo.update_expiry(certificate_number, new_expiry_date)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка продления сертификата {certificate_number}: {e}")
            raise DatabaseError(f"Ошибка при продлении сертификата: {e}")

        return self.verification_service.build_details(record)

    def update_metadata(self, certificate_number: str, metadata: Optional[Dict[str, Any]]) -> CertificateDetails:
        """
        Заменяет дополнительные данные записи сертификата.

        Raises:
            CertificateNotFoundError: Если сертификат не найден
        """
        try:
            record = self.record_repo.update_metadata(certificate_number, metadata)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка обновления метаданных сертификата {certificate_number}: {e}")
            raise DatabaseError(f"Ошибка при обновлении метаданных: {e}")

        if record is None:
            raise CertificateNotFoundError(f"Сертификат {certificate_number} не найден")
        return self.verification_service.build_details(record)

    def apply_certificate(self, request: ApplicationRequest) -> CertificateApplication:
        """
        Регистрирует заявку на сертификат.

        Args:
            request: Заявка

        Returns:
            CertificateApplication: Заявка в статусе pending

        Raises:
            InvalidArgumentError: Если не заполнены обязательные поля или тип заявки неизвестен
        """
        self._validate_application(request)
        logger.info(f"Заявка пользователя {request.user_id} на сертификат '{request.title}'")

        application_data = {
            "user_id": request.user_id,
            "holder_name": request.holder_name,
            "title": request.title,
            "certificate_type": request.certificate_type,
            "application_type": request.application_type,
            "application_status": ApplicationStatus.PENDING.value,
            "application_data": request.application_data,
            "required_documents": request.required_documents,
            "application_time": self.clock(),
        }

        try:
            return self.application_repo.create_application(application_data)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка сохранения заявки: {e}")
            raise DatabaseError(f"Ошибка при сохранении заявки: {e}")

    def audit_application(self, application_id: str, audit_result: str, comment: str,
                          auditor: Optional[str] = None) -> CertificateAudit:
        """
        Рассматривает заявку.

        Args:
            application_id: ID заявки
            audit_result: approved или rejected
            comment: Комментарий проверяющего
            auditor: Кто рассмотрел заявку

        Returns:
            CertificateAudit: Запись о рассмотрении

        Raises:
            InvalidArgumentError: Если заявка не найдена, уже рассмотрена или результат неизвестен
        """
        application = self._get_application(application_id)

        if application.application_status != ApplicationStatus.PENDING.value:
            raise InvalidArgumentError("Статус заявки не позволяет ее рассмотреть")

        if audit_result not in (ApplicationStatus.APPROVED.value, ApplicationStatus.REJECTED.value):
            raise InvalidArgumentError(f"Неизвестный результат рассмотрения: {audit_result}")

        now = self.clock()
        logger.info(f"Рассмотрение заявки {application_id}: {audit_result}")

        try:
            return self.application_repo.save_audit(
                application_id,
                {
                    "application_status": audit_result,
                    "review_comment": comment,
                    "reviewer": auditor,
                    "review_time": now,
                },
                {
                    "audit_status": audit_result,
                    "audit_result": audit_result,
                    "audit_comment": comment,
                    "auditor": auditor,
                    "audit_time": now,
                }
            )
        except SQLAlchemyError as e:
            logger.error(f"Ошибка сохранения рассмотрения заявки {application_id}: {e}")
            raise DatabaseError(f"Ошибка при рассмотрении заявки: {e}")

    def issue_from_application(self, application_id: str, expiry_date: Optional[date] = None,
                               issuing_authority: Optional[str] = None) -> CertificateDetails:
        """
        Выдает сертификат по одобренной заявке.
        Используется активный шаблон по умолчанию для типа сертификата, если он есть.

        Raises:
            InvalidArgumentError: Если заявка не одобрена или у пользователя уже есть такой сертификат
        """
        application = self._get_application(application_id)

        if application.application_status != ApplicationStatus.APPROVED.value:
            raise InvalidArgumentError("Заявка не одобрена, выдача сертификата невозможна")

        if self.certificate_repo.find_by_user_and_title(application.user_id, application.title):
            raise InvalidArgumentError("У пользователя уже есть сертификат этого типа")

        default_template = self.template_repo.find_default(application.certificate_type)

        details = self.issue_certificate(IssueCertificateRequest(
            title=application.title,
            user_id=application.user_id,
            holder_name=application.holder_name,
            certificate_type=application.certificate_type,
            issue_date=self.clock().date(),
            expiry_date=expiry_date,
            issuing_authority=issuing_authority,
            metadata={"application_id": application.id},
            template_id=default_template.id if default_template else None,
        ))

        self.application_repo.update_application(application_id, {
            "application_status": ApplicationStatus.ISSUED.value,
            "certificate_id": details.certificate_id,
        })
        return details

    def get_user_certificates(self, user_id: str) -> List[Certificate]:
        """Сертификаты пользователя."""
        return self.certificate_repo.find_by_user(user_id)

    def get_user_applications(self, user_id: str) -> List[CertificateApplication]:
        """Заявки пользователя."""
        return self.application_repo.find_by_user(user_id)

    def get_statistics(self) -> Dict:
        """
        Получает статистику по сертификатам.

        Returns:
            Dict: Статистика
        """
        logger.info("Получение статистики сертификатов")

        try:
            return {
                "certificates": self.certificate_repo.get_statistics(self.clock().date()),
                "last_updated": self.clock().isoformat()
            }
        except SQLAlchemyError as e:
            logger.error(f"Ошибка получения статистики: {e}")
            raise DatabaseError(f"Ошибка при получении статистики: {e}")

    def _set_valid(self, certificate_id: str, valid: bool) -> bool:
        try:
            result = self.certificate_repo.set_valid(certificate_id, valid)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка изменения статуса сертификата {certificate_id}: {e}")
            raise DatabaseError(f"Ошибка при изменении статуса сертификата: {e}")

        if not result:
            logger.warning(f"Сертификат {certificate_id} не найден")
        return result

    def _check_template(self, template_id: str):
        template = self.template_repo.get_by_id(template_id)
        if template is None:
            raise InvalidArgumentError("Шаблон сертификата не найден")
        if not template.is_active:
            raise InvalidArgumentError("Шаблон сертификата не активен")

    def _get_application(self, application_id: str) -> CertificateApplication:
        application = self.application_repo.get_by_id(application_id)
        if application is None:
            raise InvalidArgumentError("Заявка на сертификат не найдена")
        return application

    def _validate_application(self, request: ApplicationRequest):
        for field in REQUIRED_APPLICATION_FIELDS:
            if not getattr(request, field):
                raise InvalidArgumentError(f"Не заполнено обязательное поле: {field}")

        valid_types = [application_type.value for application_type in ApplicationType]
        if request.application_type not in valid_types:
            raise InvalidArgumentError(f"Неизвестный тип заявки: {request.application_type}")


# Глобальный экземпляр сервиса создается при первом обращении
_certificate_service: Optional[CertificateService] = None


def get_certificate_service() -> CertificateService:
    """Возвращает экземпляр сервиса сертификатов."""
    global _certificate_service
    if _certificate_service is None:
        _certificate_service = CertificateService()
    return _certificate_service

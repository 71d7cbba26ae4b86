"""
Управление шаблонами сертификатов: создание, изменение, копирование, выбор шаблона по умолчанию.
"""

import logging
from pathlib import Path
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from .database import DatabaseManager, CertificateTemplate, get_db_manager
from .exceptions import DatabaseError, InvalidArgumentError
from .models import TemplateCheckResult, TemplateRequest, TemplateType, TemplateUpdateRequest
from .repository import CertificateTemplateRepository

# Настройка логирования
logger = logging.getLogger(__name__)

REQUIRED_TEMPLATE_FIELDS = ("template_name", "template_type")


class CertificateTemplateService:
    """Сервис шаблонов сертификатов."""

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        """
        Инициализация сервиса.

        Args:
            db_manager: Менеджер БД (по умолчанию глобальный)
        """
        self.template_repo = CertificateTemplateRepository(db_manager or get_db_manager())

    def create_template(self, request: TemplateRequest) -> CertificateTemplate:
        """
        Создает шаблон.

        Шаблон по умолчанию у типа может быть только один: при создании
        нового шаблона по умолчанию отметка снимается с прежнего.

        Args:
            request: Данные шаблона

        Returns:
            CertificateTemplate: Созданный шаблон

        Raises:
            InvalidArgumentError: Если не заполнено название или тип, либо тип неизвестен
        """
        for field in REQUIRED_TEMPLATE_FIELDS:
            if not getattr(request, field):
                raise InvalidArgumentError(f"Не заполнено обязательное поле шаблона: {field}")
        self._validate_type(request.template_type)

        logger.info(f"Создание шаблона '{request.template_name}' для типа {request.template_type}")
        try:
            return self.template_repo.create_template(request.model_dump())
        except SQLAlchemyError as e:
            logger.error(f"Ошибка создания шаблона: {e}")
            raise DatabaseError(f"Ошибка при создании шаблона: {e}")

    def update_template(self, template_id: str, request: TemplateUpdateRequest) -> CertificateTemplate:
        """
        Обновляет переданные поля шаблона.

        Raises:
            InvalidArgumentError: Если шаблон не найден, название пустое или тип неизвестен
        """
        changes = request.model_dump(exclude_unset=True)

        if "template_name" in changes and not changes["template_name"]:
            raise InvalidArgumentError("Название шаблона не может быть пустым")
        if "template_type" in changes:
            self._validate_type(changes["template_type"])
        for field in ("is_default", "is_active"):
            if field in changes and changes[field] is None:
                changes.pop(field)

        try:
            template = self.template_repo.update_template(template_id, changes)
        except SQLAlchemyError as e:
            logger.error(f"Ошибка обновления шаблона {template_id}: {e}")
            raise DatabaseError(f"Ошибка при обновлении шаблона: {e}")

        if template is None:
            raise InvalidArgumentError("Шаблон сертификата не найден")
        logger.info(f"Шаблон {template_id} обновлен: {', '.join(changes) or 'без изменений'}")
        return template

    def duplicate_template(self, template_id: str) -> CertificateTemplate:
        """
        Создает копию шаблона. Копия выключена и не является шаблоном по умолчанию.

        Raises:
            InvalidArgumentError: Если исходный шаблон не найден
        """
        source = self._get_template(template_id)

        try:
            return self.template_repo.create_template({
                "template_name": f"{source.template_name} (копия)",
                "template_type": source.template_type,
                "template_path": source.template_path,
                "template_config": source.template_config,
                "field_mapping": source.field_mapping,
                "description": source.description,
                "is_default": False,
                "is_active": False,
            })
        except SQLAlchemyError as e:
            logger.error(f"Ошибка копирования шаблона {template_id}: {e}")
            raise DatabaseError(f"Ошибка при копировании шаблона: {e}")

    def get_available_templates(self, template_type: Optional[str] = None) -> List[CertificateTemplate]:
        """Активные шаблоны, при указании типа - только этого типа."""
        return self.template_repo.find_active(template_type)

    def get_default_template(self, template_type: Optional[str] = None) -> Optional[CertificateTemplate]:
        """Активный шаблон по умолчанию для типа (или любой, если тип не указан)."""
        return self.template_repo.find_default(template_type)

    def validate_template(self, template_id: str) -> TemplateCheckResult:
        """
        Проверяет пригодность шаблона.

        Ошибки: не указан путь к файлу шаблона или файла нет.
        Предупреждения: пустая конфигурация или пустое сопоставление полей.

        Raises:
            InvalidArgumentError: Если шаблон не найден
        """
        template = self._get_template(template_id)
        errors = []
        warnings = []

        if not template.template_path:
            errors.append("Не указан путь к файлу шаблона")
        elif not Path(template.template_path).exists():
            errors.append(f"Файл шаблона не найден: {template.template_path}")

        if not template.template_config:
            warnings.append("Конфигурация шаблона пуста")
        if not template.field_mapping:
            warnings.append("Сопоставление полей пусто")

        return TemplateCheckResult(valid=not errors, errors=errors, warnings=warnings)

    def _get_template(self, template_id: str) -> CertificateTemplate:
        template = self.template_repo.get_by_id(template_id)
        if template is None:
            raise InvalidArgumentError("Шаблон сертификата не найден")
        return template

    def _validate_type(self, template_type: Optional[str]):
        valid_types = [t.value for t in TemplateType]
        if template_type not in valid_types:
            raise InvalidArgumentError(
                f"Неизвестный тип шаблона: {template_type}, допустимы: {', '.join(valid_types)}"
            )


# Глобальный экземпляр сервиса создается при первом обращении
_template_service: Optional[CertificateTemplateService] = None


def get_template_service() -> CertificateTemplateService:
    """Возвращает экземпляр сервиса шаблонов."""
    global _template_service
    if _template_service is None:
        _template_service = CertificateTemplateService()
    return _template_service

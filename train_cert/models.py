# train_cert/models.py

"""
Pydantic модели для валидации и сериализации данных сертификатов.
"""

from datetime import datetime, date
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, validator
from .exceptions import PeriodValidationError
from .messages import MessageKey


class CertificateType(str, Enum):
    """Известные типы сертификатов. В БД хранится строка, набор расширяемый."""

    TRAINING = "training"
    QUALIFICATION = "qualification"
    SKILL = "skill"
    SAFETY = "safety"


class TemplateType(str, Enum):
    """Типы, для которых заводятся шаблоны сертификатов."""

    SAFETY = "safety"
    SKILL = "skill"
    MANAGEMENT = "management"
    SPECIAL = "special"


class VerificationMethod(str, Enum):
    """Способ проверки сертификата."""

    CERTIFICATE_NUMBER = "certificate_number"
    VERIFICATION_CODE = "verification_code"
    QR_CODE = "qr_code"


class ApplicationType(str, Enum):
    STANDARD = "standard"
    RENEWAL = "renewal"
    UPGRADE = "upgrade"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ISSUED = "issued"


class RequestContext(BaseModel):
    """Сведения о запросе, в рамках которого выполняется проверка."""
    client_ip: Optional[str] = Field(None, description="IP адрес клиента")
    user_agent: Optional[str] = Field(None, description="Заголовок User-Agent")
    referer: Optional[str] = Field(None, description="Заголовок Referer")
    accept_language: Optional[str] = Field(None, description="Заголовок Accept-Language")


class CertificateSnapshot(BaseModel):
    """Данные сертификата для отображения в результате проверки."""
    certificate_number: str
    certificate_type: str
    holder_name: Optional[str] = None
    title: str
    issue_date: date
    expiry_date: Optional[date] = None
    issuing_authority: str
    remaining_days: Optional[int] = None


class ValidityVerdict(BaseModel):
    """Заключение о действительности записи сертификата."""
    valid: bool
    message_key: MessageKey
    message: str
    warnings: List[str] = Field(default_factory=list)
    remaining_days: Optional[int] = None


class VerifyResult(BaseModel):
    """Результат одной проверки сертификата."""
    valid: bool
    message: str
    message_key: MessageKey
    warnings: List[str] = Field(default_factory=list)
    data: Optional[CertificateSnapshot] = None


class VerificationDetails(BaseModel):
    """
    Содержимое поля verification_details журнала проверок.

    Схема фиксирована; всё, что появится позже, кладется в extra.
    """
    valid: bool
    message_key: MessageKey
    message: str
    warnings: List[str] = Field(default_factory=list)
    data: Optional[CertificateSnapshot] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: VerifyResult, **extra) -> "VerificationDetails":
        return cls(
            valid=result.valid,
            message_key=result.message_key,
            message=result.message,
            warnings=list(result.warnings),
            data=result.data,
            extra=extra,
        )


class VerificationEntry(BaseModel):
    """Запись журнала проверок."""
    id: str
    certificate_id: Optional[str] = None
    verification_method: str
    verification_result: bool
    verification_details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    verifier_info: Optional[str] = None
    verification_time: datetime

    class Config:
        """Конфигурация модели."""
        from_attributes = True


class CertificateDetails(BaseModel):
    """Полные сведения о сертификате с вычисленным статусом."""
    certificate_id: str
    certificate_number: str
    certificate_type: str
    holder_name: Optional[str] = None
    title: str
    issue_date: date
    expiry_date: Optional[date] = None
    issuing_authority: str
    verification_code: str
    is_valid: bool
    is_expired: bool
    remaining_days: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None
    template_id: Optional[str] = None


class VerificationStatistics(BaseModel):
    """Сводная статистика проверок за период."""
    total: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = Field(0, description="Доля успешных проверок, %")


class IssueCertificateRequest(BaseModel):
    """Модель запроса на выдачу сертификата."""
    title: str = Field(..., min_length=1, max_length=200, description="Название сертификата")
    user_id: Optional[str] = Field(None, max_length=64, description="ID владельца")
    holder_name: Optional[str] = Field(None, max_length=200, description="Имя владельца")
    certificate_type: str = Field(CertificateType.TRAINING.value, min_length=1, max_length=50)
    issue_date: date = Field(default_factory=date.today, description="Дата выдачи")
    expiry_date: Optional[date] = Field(None, description="Дата окончания; пусто - бессрочный")
    issuing_authority: Optional[str] = Field(None, max_length=200, description="Организация, выдавшая сертификат")
    img_url: Optional[str] = Field(None, max_length=500)
    metadata: Optional[Dict[str, Any]] = None
    template_id: Optional[str] = Field(None, description="ID шаблона сертификата")

    @validator('expiry_date')
    def validate_period(cls, v, values):
        """Дата окончания не может быть раньше даты выдачи."""
        issue_date = values.get('issue_date')
        if v is not None and issue_date is not None and v < issue_date:
            raise PeriodValidationError("Дата окончания не может быть раньше даты выдачи")
        return v

    class Config:
        """Конфигурация модели."""
        json_schema_extra = {
            "example": {
                "title": "Охрана труда для руководителей",
                "user_id": "10024",
                "holder_name": "Иванов Иван",
                "certificate_type": "safety",
                "issue_date": "2024-01-15",
                "expiry_date": "2027-01-15",
                "issuing_authority": "Training Center"
            }
        }


class ApplicationRequest(BaseModel):
    """Модель заявки на сертификат. Обязательность полей проверяет сервис."""
    user_id: str = Field(..., min_length=1, max_length=64)
    holder_name: Optional[str] = None
    title: Optional[str] = None
    certificate_type: str = CertificateType.TRAINING.value
    application_type: Optional[str] = None
    application_data: Dict[str, Any] = Field(default_factory=dict)
    required_documents: List[str] = Field(default_factory=list)


class TemplateRequest(BaseModel):
    """
    Данные для создания шаблона.

    Обязательность названия и типа проверяет сервис шаблонов.
    """
    template_name: Optional[str] = Field(None, max_length=100, description="Название шаблона")
    template_type: Optional[str] = Field(None, max_length=50, description="Тип сертификата")
    template_path: Optional[str] = Field(None, max_length=255, description="Путь к файлу шаблона")
    template_config: Dict[str, Any] = Field(default_factory=dict)
    field_mapping: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False
    is_active: bool = True
    description: Optional[str] = None

    class Config:
        """Конфигурация модели."""
        json_schema_extra = {
            "example": {
                "template_name": "Охрана труда, стандарт",
                "template_type": "safety",
                "template_path": "templates/safety.html",
                "field_mapping": {"holder_name": "userName", "title": "courseName"},
                "is_default": True
            }
        }


class TemplateUpdateRequest(BaseModel):
    """Изменения шаблона. Меняются только переданные поля."""
    template_name: Optional[str] = Field(None, max_length=100)
    template_type: Optional[str] = Field(None, max_length=50)
    template_path: Optional[str] = Field(None, max_length=255)
    template_config: Optional[Dict[str, Any]] = None
    field_mapping: Optional[Dict[str, Any]] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None
    description: Optional[str] = None


class TemplateCheckResult(BaseModel):
    """Итог проверки шаблона: ошибки делают его непригодным, предупреждения нет."""
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class CleanupPlan(BaseModel):
    """Что будет удалено при очистке."""
    expired_before: date
    verifications_before: datetime
    record_ids: List[str] = Field(default_factory=list)
    verification_ids: List[str] = Field(default_factory=list)

    @property
    def total_items(self) -> int:
        return len(self.record_ids) + len(self.verification_ids)


class CleanupResult(BaseModel):
    """Итог очистки."""
    expired_records_deleted: int = 0
    verifications_deleted: int = 0
    dry_run: bool = False
    errors: List[str] = Field(default_factory=list)

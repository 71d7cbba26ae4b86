# train_cert/database.py

"""
Модели SQLAlchemy для работы с базой данных.
"""

import logging
from datetime import datetime, date
from typing import Optional
from sqlalchemy import (
    create_engine, Column, String, DateTime, Date, Boolean, Text,
    Index, ForeignKey, CheckConstraint, JSON, text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from config.settings import get_settings
from .generator import generate_snowflake_id

logger = logging.getLogger(__name__)

# Базовый класс для моделей
Base = declarative_base()

# JSONB в PostgreSQL, обычный JSON в остальных СУБД (SQLite в тестах)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Certificate(Base):
    """Сертификат владельца: название, владелец и признак действительности."""

    __tablename__ = "certificates"

    id = Column(String(20), primary_key=True, default=generate_snowflake_id)
    title = Column(String(200), nullable=False, default="")
    user_id = Column(String(64), nullable=True, index=True)
    holder_name = Column(String(200), nullable=True)
    img_url = Column(String(500), nullable=True)
    valid = Column(Boolean, default=False, nullable=False, index=True)

    # Метаданные
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    def __repr__(self):
        return f"<Certificate(id={self.id}, title={self.title}, valid={self.valid})>"


class CertificateTemplate(Base):
    """Шаблон сертификата: оформление и сопоставление полей для своего типа."""

    __tablename__ = "certificate_templates"

    id = Column(String(20), primary_key=True, default=generate_snowflake_id)
    template_name = Column(String(100), nullable=False)
    template_type = Column(String(50), nullable=False, index=True)
    template_path = Column(String(255), nullable=True)
    template_config = Column(JSONType, nullable=True)
    field_mapping = Column(JSONType, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    __table_args__ = (
        # Не больше одного шаблона по умолчанию на тип
        Index(
            'uq_template_default_per_type', 'template_type', unique=True,
            sqlite_where=text("is_default"), postgresql_where=text("is_default")
        ),
    )

    def __repr__(self):
        return f"<CertificateTemplate(id={self.id}, name={self.template_name}, type={self.template_type})>"


class CertificateRecord(Base):
    """Неизменяемые сведения о выданном сертификате: номер, код проверки, даты."""

    __tablename__ = "certificate_records"

    id = Column(String(20), primary_key=True, default=generate_snowflake_id)
    # Один сертификат - одна запись, уникальность на уровне БД
    certificate_id = Column(
        String(20), ForeignKey("certificates.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    certificate_number = Column(String(100), unique=True, nullable=False, index=True)
    verification_code = Column(String(100), unique=True, nullable=False, index=True)
    certificate_type = Column(String(50), nullable=False, index=True)
    issue_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=True, index=True)
    issuing_authority = Column(String(200), nullable=False, index=True)
    template_id = Column(
        String(20), ForeignKey("certificate_templates.id", ondelete="SET NULL"), nullable=True
    )
    # Атрибут metadata зарезервирован декларативной базой
    extra_metadata = Column("metadata", JSONType, nullable=True)

    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    certificate = relationship("Certificate", lazy="joined")

    __table_args__ = (
        CheckConstraint(
            "expiry_date IS NULL OR expiry_date >= issue_date",
            name="ck_record_expiry_after_issue"
        ),
        Index('idx_record_type_issue', 'certificate_type', 'issue_date'),
    )

    def __repr__(self):
        return f"<CertificateRecord(number={self.certificate_number}, type={self.certificate_type})>"

    def is_expired(self, today: Optional[date] = None) -> bool:
        """Проверяет, истек ли срок действия (в день окончания сертификат еще действует)."""
        if self.expiry_date is None:
            return False
        return self.expiry_date < (today or date.today())

    def remaining_days(self, today: Optional[date] = None) -> Optional[int]:
        """Возвращает количество дней до окончания; отрицательное, если срок прошел."""
        if self.expiry_date is None:
            return None
        return (self.expiry_date - (today or date.today())).days


class CertificateVerification(Base):
    """Запись журнала проверок. Создается на каждую попытку и не изменяется."""

    __tablename__ = "certificate_verifications"

    id = Column(String(20), primary_key=True, default=generate_snowflake_id)
    certificate_id = Column(
        String(20), ForeignKey("certificates.id", ondelete="SET NULL"), nullable=True
    )
    verification_method = Column(String(50), nullable=False)
    verification_result = Column(Boolean, default=False, nullable=False)
    verification_details = Column(JSONType, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    verifier_info = Column(String(200), nullable=True)
    verification_time = Column(DateTime, default=datetime.now, nullable=False)

    # Индексы
    __table_args__ = (
        Index('idx_verification_certificate_time', 'certificate_id', 'verification_time'),
        Index('idx_verification_time', 'verification_time'),
        Index('idx_verification_ip', 'ip_address'),
    )

    def __repr__(self):
        return (
            f"<CertificateVerification(certificate_id={self.certificate_id}, "
            f"method={self.verification_method}, result={self.verification_result})>"
        )


class CertificateApplication(Base):
    """Заявка на получение сертификата."""

    __tablename__ = "certificate_applications"

    id = Column(String(20), primary_key=True, default=generate_snowflake_id)
    user_id = Column(String(64), nullable=False, index=True)
    holder_name = Column(String(200), nullable=True)
    title = Column(String(200), nullable=False)
    certificate_type = Column(String(50), nullable=False)
    application_type = Column(String(50), nullable=False)
    application_status = Column(String(20), nullable=False, default="pending", index=True)
    application_data = Column(JSONType, nullable=True)
    required_documents = Column(JSONType, nullable=True)
    review_comment = Column(Text, nullable=True)
    reviewer = Column(String(100), nullable=True)
    application_time = Column(DateTime, default=datetime.now, nullable=False)
    review_time = Column(DateTime, nullable=True)
    certificate_id = Column(String(20), ForeignKey("certificates.id", ondelete="SET NULL"), nullable=True)

    def __repr__(self):
        return f"<CertificateApplication(id={self.id}, status={self.application_status})>"


class CertificateAudit(Base):
    """Результат рассмотрения заявки."""

    __tablename__ = "certificate_audits"

    id = Column(String(20), primary_key=True, default=generate_snowflake_id)
    application_id = Column(
        String(20), ForeignKey("certificate_applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    audit_status = Column(String(20), nullable=False, default="pending")
    audit_result = Column(String(20), nullable=True)
    audit_comment = Column(Text, nullable=True)
    audit_details = Column(JSONType, nullable=True)
    auditor = Column(String(100), nullable=True)
    audit_time = Column(DateTime, default=datetime.now, nullable=False)

    def __repr__(self):
        return f"<CertificateAudit(application_id={self.application_id}, status={self.audit_status})>"


class DatabaseManager:
    """Менеджер для работы с базой данных."""

    def __init__(self, database_url: str = None, echo: bool = None):
        """
        Инициализация менеджера БД.

        Args:
            database_url: URL подключения к БД
            echo: Выводить SQL запросы в лог
        """
        settings = get_settings()
        if database_url is None:
            database_url = settings.sqlalchemy_url
        if echo is None:
            echo = settings.db_echo

        engine_kwargs = {"pool_pre_ping": True, "echo": echo}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # Одно соединение на весь процесс, иначе каждая сессия видит пустую БД
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_recycle"] = 3600

        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False, bind=self.engine)

    def create_tables(self):
        """Создает все таблицы в базе данных."""
        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self):
        """Удаляет все таблицы из базы данных."""
        Base.metadata.drop_all(bind=self.engine)

    def get_session(self) -> Session:
        """Возвращает новую сессию для работы с БД."""
        return self.SessionLocal()

    def health_check(self) -> bool:
        """Проверяет подключение к базе данных."""
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.error(f"Ошибка подключения к БД: {e}")
            return False


# Глобальный менеджер БД создается при первом обращении
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Возвращает менеджер БД."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager

"""
Общие фикстуры для тестов
"""
import pytest
from datetime import datetime, date, timedelta

from config.settings import Settings
from train_cert.database import DatabaseManager
from train_cert.repository import CertificateRecordRepository
from train_cert.service import CertificateService
from train_cert.templates import CertificateTemplateService
from train_cert.verification import CertificateVerificationService


class FixedClock:
    """Часы, которые идут только по команде"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Фиксированное текущее время: 15.06.2024 12:00"""
    return FixedClock(datetime(2024, 6, 15, 12, 0, 0))


@pytest.fixture
def today(clock):
    return clock().date()


@pytest.fixture
def settings(tmp_path):
    """Настройки для тестов"""
    return Settings(
        database_url="sqlite://",
        log_file=tmp_path / "logs" / "test.log",
        message_locale="en",
        expiry_warning_days=30,
        frequency_window_seconds=3600,
        frequency_threshold=10,
        api_key=None,
    )


@pytest.fixture
def db_manager():
    """БД в памяти, отдельная для каждого теста"""
    manager = DatabaseManager("sqlite://", echo=False)
    manager.create_tables()
    yield manager
    manager.drop_tables()
    manager.engine.dispose()


@pytest.fixture
def verification_service(db_manager, clock, settings):
    return CertificateVerificationService(db_manager, clock, settings)


@pytest.fixture
def certificate_service(db_manager, clock, settings):
    return CertificateService(db_manager, clock, settings)


@pytest.fixture
def template_service(db_manager):
    return CertificateTemplateService(db_manager)


@pytest.fixture
def make_record(db_manager, today):
    """Фабрика записей сертификатов"""
    repo = CertificateRecordRepository(db_manager)
    counter = {"n": 0}

    def _make(certificate_number=None, verification_code=None, valid=True,
              issue_date=None, expiry_date=None, certificate_type="training",
              title="Охрана труда", holder_name="Иванов Иван", user_id="1001"):
        counter["n"] += 1
        n = counter["n"]
        if issue_date is None:
            issue_date = min(date(2024, 1, 1), expiry_date or date(2024, 1, 1))
        return repo.create_record(
            {
                "title": title,
                "user_id": user_id,
                "holder_name": holder_name,
                "valid": valid,
            },
            {
                "certificate_number": certificate_number or f"CERT-20240101-{n:06d}",
                "verification_code": verification_code or f"CODE{n:08d}",
                "certificate_type": certificate_type,
                "issue_date": issue_date,
                "expiry_date": expiry_date,
                "issuing_authority": "Training Center",
            }
        )

    return _make

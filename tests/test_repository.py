"""
Тесты для хранилища записей сертификатов
"""
import pytest
from datetime import date, datetime, timedelta

from sqlalchemy.exc import IntegrityError

from train_cert.database import Certificate, CertificateRecord
from train_cert.exceptions import CertificateExistsError
from train_cert.repository import (
    CertificateRecordRepository, CertificateRepository, CertificateVerificationRepository
)


@pytest.fixture
def record_repo(db_manager):
    return CertificateRecordRepository(db_manager)


@pytest.fixture
def verification_repo(db_manager):
    return CertificateVerificationRepository(db_manager)


class TestCertificateRecordRepository:
    """Тесты для CertificateRecordRepository"""

    def test_create_and_find(self, record_repo, make_record):
        record = make_record(certificate_number="CERT-1", verification_code="CODE-1")

        by_number = record_repo.find_by_certificate_number("CERT-1")
        by_code = record_repo.find_by_verification_code("CODE-1")

        assert by_number.id == record.id
        assert by_code.id == record.id
        assert by_number.certificate.title == "Охрана труда"
        assert record_repo.find_by_certificate_id(record.certificate_id).id == record.id

    def test_number_is_unique(self, make_record):
        make_record(certificate_number="CERT-DUP")

        with pytest.raises(CertificateExistsError):
            make_record(certificate_number="CERT-DUP")

    def test_verification_code_is_unique(self, make_record):
        make_record(verification_code="CODE-DUP")

        with pytest.raises(CertificateExistsError):
            make_record(verification_code="CODE-DUP")

    def test_one_record_per_certificate(self, db_manager, make_record):
        """У сертификата не может быть двух записей"""
        record = make_record()

        with db_manager.get_session() as session:
            session.add(CertificateRecord(
                certificate_id=record.certificate_id,
                certificate_number="CERT-SECOND",
                verification_code="CODE-SECOND",
                certificate_type="training",
                issue_date=date(2024, 1, 1),
                issuing_authority="Training Center",
            ))
            with pytest.raises(IntegrityError):
                session.commit()

    def test_expiry_before_issue_rejected(self, db_manager):
        """Дата окончания раньше даты выдачи запрещена на уровне БД"""
        with db_manager.get_session() as session:
            session.add(CertificateRecord(
                certificate=Certificate(title="Охрана труда", valid=True),
                certificate_number="CERT-BAD-PERIOD",
                verification_code="CODE-BAD-PERIOD",
                certificate_type="training",
                issue_date=date(2024, 5, 1),
                expiry_date=date(2024, 4, 30),
                issuing_authority="Training Center",
            ))
            with pytest.raises(IntegrityError):
                session.commit()

    def test_find_by_type_and_authority(self, record_repo, make_record):
        make_record(certificate_type="safety")
        make_record(certificate_type="skill")

        assert len(record_repo.find_by_certificate_type("safety")) == 1
        assert len(record_repo.find_by_issuing_authority("Training Center")) == 2

    def test_find_expiring_and_expired(self, record_repo, make_record, today):
        make_record(certificate_number="CERT-TODAY", expiry_date=today)
        make_record(certificate_number="CERT-SOON", expiry_date=today + timedelta(days=20))
        make_record(certificate_number="CERT-LATER", expiry_date=today + timedelta(days=60))
        make_record(certificate_number="CERT-PAST", expiry_date=today - timedelta(days=1))
        make_record(certificate_number="CERT-FOREVER")

        expiring = [r.certificate_number for r in record_repo.find_expiring(today, 30)]
        expired = [r.certificate_number for r in record_repo.find_expired(today)]

        assert expiring == ["CERT-TODAY", "CERT-SOON"]
        assert expired == ["CERT-PAST"]

    def test_update_expiry(self, record_repo, make_record, today):
        make_record(certificate_number="CERT-R", expiry_date=today)

        updated = record_repo.update_expiry("CERT-R", today + timedelta(days=365))

        assert updated.expiry_date == today + timedelta(days=365)
        assert record_repo.find_by_certificate_number("CERT-R").expiry_date == today + timedelta(days=365)
        assert record_repo.update_expiry("CERT-MISSING", today) is None

    def test_update_metadata(self, record_repo, make_record):
        make_record(certificate_number="CERT-M")

        record_repo.update_metadata("CERT-M", {"course_hours": 72})

        assert record_repo.find_by_certificate_number("CERT-M").extra_metadata == {"course_hours": 72}

    def test_delete_records_removes_certificate(self, db_manager, record_repo, make_record):
        record = make_record()

        assert record_repo.delete_records([record.id]) == 1
        assert record_repo.get_by_id(record.id) is None
        assert CertificateRepository(db_manager).get_by_id(record.certificate_id) is None
        assert record_repo.delete_records([]) == 0


class TestCertificateRepository:
    """Тесты для CertificateRepository"""

    def test_set_valid(self, db_manager, make_record):
        repo = CertificateRepository(db_manager)
        record = make_record()

        assert repo.set_valid(record.certificate_id, False) is True
        assert repo.get_by_id(record.certificate_id).valid is False
        assert repo.set_valid("missing", False) is False

    def test_find_by_user(self, db_manager, make_record):
        repo = CertificateRepository(db_manager)
        make_record(user_id="7", title="Охрана труда")
        make_record(user_id="7", title="Пожарная безопасность")
        make_record(user_id="8")

        assert len(repo.find_by_user("7")) == 2
        assert repo.find_by_user_and_title("7", "Пожарная безопасность") is not None
        assert repo.find_by_user_and_title("8", "Пожарная безопасность") is None

    def test_statistics(self, db_manager, make_record, today):
        repo = CertificateRepository(db_manager)
        make_record(certificate_type="safety", expiry_date=today + timedelta(days=10))
        make_record(certificate_type="safety", expiry_date=today - timedelta(days=10))
        make_record(certificate_type="skill", valid=False)

        statistics = repo.get_statistics(today)

        assert statistics["total_certificates"] == 3
        assert statistics["valid_certificates"] == 2
        assert statistics["revoked_certificates"] == 1
        assert statistics["expired_certificates"] == 1
        assert statistics["expiring_certificates"] == 1
        assert statistics["by_type"] == {"safety": 2, "skill": 1}


class TestCertificateVerificationRepository:
    """Тесты для журнала проверок"""

    def add(self, repo, certificate_id, result, when):
        return repo.add_verification({
            "certificate_id": certificate_id,
            "verification_method": "certificate_number",
            "verification_result": result,
            "verification_time": when,
        })

    def test_count_since(self, verification_repo, make_record):
        record = make_record()
        now = datetime(2024, 6, 15, 12, 0)
        self.add(verification_repo, record.certificate_id, True, now - timedelta(hours=2))
        self.add(verification_repo, record.certificate_id, True, now - timedelta(minutes=30))
        self.add(verification_repo, record.certificate_id, False, now)

        assert verification_repo.count_since(record.certificate_id, now - timedelta(hours=1)) == 2
        assert verification_repo.count_since("missing", now - timedelta(hours=1)) == 0

    def test_history_same_time_ordered_by_numeric_id(self, verification_repo, make_record):
        """При одинаковом времени новее та запись, у которой больше ID, даже если в нем больше цифр"""
        record = make_record()
        now = datetime(2024, 6, 15, 12, 0)
        for verification_id in ("999999999999999999", "1000000000000000000"):
            verification_repo.add_verification({
                "id": verification_id,
                "certificate_id": record.certificate_id,
                "verification_method": "certificate_number",
                "verification_result": True,
                "verification_time": now,
            })

        history = verification_repo.find_by_certificate_id(record.certificate_id)

        assert [v.id for v in history] == ["1000000000000000000", "999999999999999999"]

    def test_statistics_and_cleanup_queries(self, verification_repo):
        now = datetime(2024, 6, 15, 12, 0)
        old = self.add(verification_repo, None, False, now - timedelta(days=100))
        self.add(verification_repo, None, True, now)

        assert verification_repo.get_statistics() == (2, 1, 1)
        assert verification_repo.get_statistics(start=now - timedelta(days=1)) == (1, 1, 0)

        before = verification_repo.find_verifications_before_date(now - timedelta(days=90))
        assert [v.id for v in before] == [old.id]
        assert verification_repo.delete_by_ids([old.id]) == 1
        assert verification_repo.get_statistics() == (1, 1, 0)

    def test_find_by_ip_and_successful(self, verification_repo):
        verification_repo.add_verification({
            "verification_method": "verification_code",
            "verification_result": True,
            "ip_address": "10.0.0.1",
        })

        assert len(verification_repo.find_by_ip_address("10.0.0.1")) == 1
        assert len(verification_repo.find_successful_verifications()) == 1

"""
Тесты для API
"""
import pytest
from datetime import timedelta

from fastapi.testclient import TestClient

from api_server import create_app


class TestCertificateAPI:
    """Тесты для API проверки сертификатов"""

    @pytest.fixture
    def client(self, settings, db_manager, clock):
        """Тестовый клиент"""
        return TestClient(create_app(settings, db_manager, clock))

    @pytest.fixture
    def record(self, make_record, today):
        return make_record(
            certificate_number="CERT-20240101-000123",
            verification_code="3F9A0C12B7DE",
            expiry_date=today + timedelta(days=20),
        )

    def test_verify_by_number(self, client, record):
        """Тест успешной проверки по номеру"""
        response = client.get("/verify/number/CERT-20240101-000123")

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["message"] == "Certificate verification passed"
        assert data["message_key"] == "verification_passed"
        assert data["warnings"] == ["Certificate expires in 20 days"]
        assert data["data"]["certificate_number"] == "CERT-20240101-000123"
        assert data["data"]["holder_name"] == "Иванов Иван"

    def test_verify_unknown_number(self, client):
        """Ненайденный сертификат - обычный ответ с valid=false"""
        response = client.get("/verify/number/CERT-MISSING")

        assert response.status_code == 200
        assert response.json()["valid"] is False
        assert response.json()["message"] == "Certificate not found"
        assert response.json()["data"] is None

    def test_verify_by_code(self, client, record):
        response = client.get("/verify/code/3F9A0C12B7DE")

        assert response.status_code == 200
        assert response.json()["valid"] is True

    def test_verify_by_qr(self, client, record):
        response = client.get("/verify/qr", params={"payload": "https://cert.example.com/v?code=3F9A0C12B7DE"})

        assert response.status_code == 200
        assert response.json()["valid"] is True

    def test_request_context_is_logged(self, client, record):
        """Заголовки запроса попадают в журнал проверок"""
        client.get(
            "/verify/number/CERT-20240101-000123",
            headers={"Referer": "https://hr.example.com", "Accept-Language": "ru", "User-Agent": "pytest"}
        )

        response = client.get(f"/certificates/{record.certificate_id}/history")

        assert response.status_code == 200
        history = response.json()
        assert len(history) == 1
        assert history[0]["verifier_info"] == "Source: https://hr.example.com, Language: ru"
        assert history[0]["user_agent"] == "pytest"
        assert history[0]["ip_address"] == "testclient"

    def test_batch_verify(self, client, record):
        response = client.post(
            "/verify/batch",
            json={"certificate_numbers": ["CERT-20240101-000123", "CERT-MISSING"]}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["CERT-20240101-000123"]["valid"] is True
        assert data["CERT-MISSING"]["valid"] is False

    def test_batch_verify_empty(self, client):
        response = client.post("/verify/batch", json={"certificate_numbers": []})

        assert response.status_code == 422

    def test_certificate_details(self, client, record):
        response = client.get("/certificates/CERT-20240101-000123")

        assert response.status_code == 200
        data = response.json()
        assert data["certificate_id"] == record.certificate_id
        assert data["verification_code"] == "3F9A0C12B7DE"
        assert data["is_valid"] is True
        assert data["remaining_days"] == 20

    def test_certificate_details_not_found(self, client):
        response = client.get("/certificates/CERT-MISSING")

        assert response.status_code == 404

    def test_frequency(self, client, record):
        for _ in range(3):
            client.get("/verify/number/CERT-20240101-000123")

        response = client.get(f"/certificates/{record.certificate_id}/frequency", params={"threshold": 3})

        assert response.status_code == 200
        assert response.json() == {"certificate_id": record.certificate_id, "frequently_verified": True}

    def test_statistics(self, client, record):
        client.get("/verify/number/CERT-20240101-000123")
        client.get("/verify/number/CERT-MISSING")

        response = client.get("/statistics", params={"start_date": "2024-06-15", "end_date": "2024-06-15"})

        assert response.status_code == 200
        assert response.json() == {"total": 2, "successful": 1, "failed": 1, "success_rate": 50.0}

    def test_statistics_reversed_period(self, client):
        response = client.get("/statistics", params={"start_date": "2024-06-15", "end_date": "2024-06-01"})

        assert response.status_code == 400

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["components"]["database"]["status"] == "healthy"


class TestAPIKey:
    """Тесты ключа для межсервисных запросов"""

    @pytest.fixture
    def client(self, settings, db_manager, clock):
        secured = settings.model_copy(update={"api_key": "test-api-key"})
        return TestClient(create_app(secured, db_manager, clock))

    def test_missing_key(self, client):
        response = client.get("/verify/number/CERT-MISSING")

        assert response.status_code in (401, 403)

    def test_wrong_key(self, client):
        response = client.get("/verify/number/CERT-MISSING", headers={"Authorization": "Bearer wrong"})

        assert response.status_code == 401

    def test_valid_key(self, client):
        response = client.get("/verify/number/CERT-MISSING", headers={"Authorization": "Bearer test-api-key"})

        assert response.status_code == 200

    def test_health_is_open(self, client):
        assert client.get("/health").status_code == 200

    def test_bearer_scheme_documented(self, client):
        """Схема авторизации видна в описании API"""
        schema = client.get("/openapi.json").json()

        assert "HTTPBearer" in schema["components"]["securitySchemes"]
        assert schema["paths"]["/verify/number/{certificate_number}"]["get"]["security"] == [{"HTTPBearer": []}]

    def test_open_without_key(self, settings, db_manager, clock):
        client = TestClient(create_app(settings, db_manager, clock))
        schema = client.get("/openapi.json").json()

        assert "securitySchemes" not in schema.get("components", {})
        assert client.get("/verify/number/CERT-MISSING").status_code == 200

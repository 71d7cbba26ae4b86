"""
Тесты для генераторов идентификаторов
"""
import re
import pytest
from datetime import date

from train_cert import generator as generator_module
from train_cert.exceptions import GenerationError
from train_cert.generator import CertificateNumberGenerator, SnowflakeIdGenerator


class TestCertificateNumberGenerator:
    """Тесты для класса CertificateNumberGenerator"""

    @pytest.fixture
    def generator(self):
        """Фикстура для генератора"""
        return CertificateNumberGenerator()

    def test_number_format(self, generator):
        """Тест формата номера сертификата"""
        number = generator.generate_number(date(2024, 1, 15))

        assert re.fullmatch(r"CERT-20240115-\d{6}", number)

    def test_number_zero_padded(self, generator, monkeypatch):
        """Номер дополняется ведущими нулями до шести цифр"""
        monkeypatch.setattr(generator_module.random, "randint", lambda a, b: 42)

        assert generator.generate_number(date(2024, 1, 15)) == "CERT-20240115-000042"

    def test_verification_code_format(self, generator):
        """Код проверки - 12 шестнадцатеричных символов в верхнем регистре"""
        code = generator.generate_verification_code("1234567890")

        assert re.fullmatch(r"[0-9A-F]{12}", code)

    def test_verification_codes_differ(self, generator):
        """Коды для одного сертификата не повторяются"""
        codes = {generator.generate_verification_code("1234567890") for _ in range(50)}

        assert len(codes) == 50

    def test_custom_code_length(self):
        code = CertificateNumberGenerator(code_length=8).generate_verification_code("1234567890")

        assert re.fullmatch(r"[0-9A-F]{8}", code)


class TestSnowflakeIdGenerator:
    """Тесты для генератора snowflake ID"""

    def test_ids_are_unique_and_ordered(self):
        generator = SnowflakeIdGenerator(worker_id=3)
        ids = [generator.next_id() for _ in range(1000)]

        assert len(set(ids)) == 1000
        assert ids == sorted(ids)

    def test_worker_id_encoded(self):
        generator = SnowflakeIdGenerator(worker_id=5)

        assert (generator.next_id() >> 12) & 0x3FF == 5

    def test_string_id(self):
        assert SnowflakeIdGenerator().next_id_str().isdigit()

    @pytest.mark.parametrize("worker_id", [-1, 1024])
    def test_invalid_worker_id(self, worker_id):
        with pytest.raises(GenerationError):
            SnowflakeIdGenerator(worker_id)

    def test_clock_moved_backwards(self, monkeypatch):
        generator = SnowflakeIdGenerator()
        generator.next_id()
        monkeypatch.setattr(generator, "_current_millis", lambda: generator.last_timestamp - 10)

        with pytest.raises(GenerationError):
            generator.next_id()

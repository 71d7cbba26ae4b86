"""
Кастомные исключения для системы сертификатов.
"""


class CertificateError(Exception):
    """Базовое исключение для всех ошибок сертификатов."""
    pass


class ValidationError(CertificateError):
    """Ошибка валидации входных данных."""
    pass


class InvalidArgumentError(ValidationError):
    """Некорректный аргумент операции (заявка, аудит, выдача)."""
    pass


class PeriodValidationError(ValidationError):
    """Ошибка валидации периода действия."""
    pass


class CertificateNotFoundError(CertificateError):
    """Сертификат не найден."""
    pass


class CertificateExistsError(CertificateError):
    """Сертификат уже существует."""
    pass


class DatabaseError(CertificateError):
    """Ошибка работы с базой данных."""
    pass


class GenerationError(CertificateError):
    """Ошибка генерации номера сертификата."""
    pass

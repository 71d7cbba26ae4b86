"""
Основной модуль бизнес-логики проверки сертификатов.
"""

from .verification import CertificateVerificationService, get_verification_service
from .service import CertificateService, get_certificate_service
from .cleanup import CertificateCleanupService
from .templates import CertificateTemplateService, get_template_service
from .evaluator import ValidityEvaluator
from .models import RequestContext, VerifyResult, CertificateDetails
from .messages import MessageKey
from .database import DatabaseManager, get_db_manager

__version__ = "1.0.0"

__all__ = [
    'CertificateVerificationService',
    'get_verification_service',
    'CertificateService',
    'get_certificate_service',
    'CertificateCleanupService',
    'CertificateTemplateService',
    'get_template_service',
    'ValidityEvaluator',
    'RequestContext',
    'VerifyResult',
    'CertificateDetails',
    'MessageKey',
    'DatabaseManager',
    'get_db_manager'
]

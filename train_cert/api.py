"""
API для проверки сертификатов
"""
import logging
from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from .exceptions import CertificateNotFoundError, DatabaseError, ValidationError
from .models import (
    CertificateDetails, RequestContext, VerificationEntry, VerificationStatistics, VerifyResult
)
from .verification import CertificateVerificationService


# Модели для API
class BatchVerifyRequest(BaseModel):
    """Модель запроса пакетной проверки"""
    certificate_numbers: List[str] = Field(..., min_length=1, max_length=100)


class FrequencyResponse(BaseModel):
    """Модель ответа о частоте проверок"""
    certificate_id: str
    frequently_verified: bool


# Схема авторизации для межсервисных запросов
security = HTTPBearer()


def build_request_context(request: Request) -> RequestContext:
    """Собирает сведения о запросе из HTTP заголовков"""
    return RequestContext(
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
        accept_language=request.headers.get("accept-language"),
    )


class CertificateAPI:
    """API для проверки сертификатов"""

    def __init__(self, verification_service: CertificateVerificationService, api_key: Optional[str] = None):
        self.verification_service = verification_service
        self.api_key = api_key
        self.logger = logging.getLogger(__name__)

        # Ключ нужен только для межсервисных запросов
        dependencies = []
        if api_key:
            dependencies.append(Depends(self._verify_api_key))

        self.router = APIRouter(dependencies=dependencies)
        self._setup_routes()

    def _verify_api_key(self, token: HTTPAuthorizationCredentials = Depends(security)) -> bool:
        """Проверка API ключа"""
        if token.credentials != self.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")
        return True

    def _call(self, action: str, func, *args, **kwargs):
        """Вызывает метод сервиса и переводит ошибки в HTTP ответы"""
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            self.logger.warning(f"Ошибка валидации ({action}): {e}")
            raise HTTPException(status_code=400, detail=str(e))
        except CertificateNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except DatabaseError as e:
            self.logger.error(f"Ошибка БД ({action}): {e}")
            raise HTTPException(status_code=500, detail="Ошибка работы с базой данных")

    def _setup_routes(self):
        """Настройка маршрутов API"""
        service = self.verification_service

        @self.router.get("/verify/number/{certificate_number}", response_model=VerifyResult)
        def verify_by_number(certificate_number: str, request: Request):
            """Проверка сертификата по номеру"""
            return self._call(
                "проверка по номеру", service.verify_by_certificate_number,
                certificate_number, build_request_context(request)
            )

        @self.router.get("/verify/code/{verification_code}", response_model=VerifyResult)
        def verify_by_code(verification_code: str, request: Request):
            """Проверка сертификата по коду проверки"""
            return self._call(
                "проверка по коду", service.verify_by_verification_code,
                verification_code, build_request_context(request)
            )

        @self.router.get("/verify/qr", response_model=VerifyResult)
        def verify_by_qr(request: Request, payload: str = Query(..., min_length=1)):
            """Проверка сертификата по содержимому QR-кода"""
            return self._call(
                "проверка по QR-коду", service.verify_by_qr_code,
                payload, build_request_context(request)
            )

        @self.router.post("/verify/batch", response_model=Dict[str, VerifyResult])
        def batch_verify(body: BatchVerifyRequest, request: Request):
            """Пакетная проверка сертификатов"""
            return self._call(
                "пакетная проверка", service.batch_verify,
                body.certificate_numbers, build_request_context(request)
            )

        @self.router.get("/certificates/{certificate_number}", response_model=CertificateDetails)
        def get_certificate(certificate_number: str):
            """Сведения о сертификате без записи в журнал проверок"""
            details = self._call("получение сертификата", service.get_certificate_details, certificate_number)
            if details is None:
                raise HTTPException(status_code=404, detail="Certificate not found")
            return details

        @self.router.get("/certificates/{certificate_id}/history", response_model=List[VerificationEntry])
        def get_history(certificate_id: str):
            """История проверок сертификата"""
            return self._call("история проверок", service.get_verification_history, certificate_id)

        @self.router.get("/certificates/{certificate_id}/frequency", response_model=FrequencyResponse)
        def get_frequency(
                certificate_id: str,
                window_seconds: Optional[int] = Query(None, gt=0),
                threshold: Optional[int] = Query(None, gt=0)
        ):
            """Признак частых проверок сертификата"""
            frequent = self._call(
                "частота проверок", service.is_frequently_verified,
                certificate_id, window_seconds, threshold
            )
            return FrequencyResponse(certificate_id=certificate_id, frequently_verified=frequent)

        @self.router.get("/statistics", response_model=VerificationStatistics)
        def get_statistics(start_date: Optional[date] = None, end_date: Optional[date] = None):
            """Статистика проверок за период"""
            return self._call(
                "статистика проверок", service.get_verification_statistics, start_date, end_date
            )

"""
FastAPI сервер для API проверки сертификатов
"""
import logging
import os
from datetime import datetime
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, get_settings, setup_logging
from train_cert.api import CertificateAPI
from train_cert.database import DatabaseManager
from train_cert.evaluator import Clock
from train_cert.generator import configure_snowflake
from train_cert.verification import CertificateVerificationService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    # Запуск
    logging.info("Запуск API сервера...")

    app.state.db_manager.create_tables()
    logging.info("Таблицы БД проверены")

    yield

    # Завершение
    logging.info("Остановка API сервера...")
    app.state.db_manager.engine.dispose()


def create_app(settings: Optional[Settings] = None, db_manager: Optional[DatabaseManager] = None,
               clock: Optional[Clock] = None) -> FastAPI:
    """Создание FastAPI приложения"""
    settings = settings or get_settings()

    # Настройка логирования
    setup_logging(settings)
    configure_snowflake(settings.worker_id)

    # Создание приложения
    app = FastAPI(
        title="Certificate Verification API",
        description="API для проверки сертификатов об обучении",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # В продакшене указать конкретные домены
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    db_manager = db_manager or DatabaseManager(settings.sqlalchemy_url, settings.db_echo)
    verification_service = CertificateVerificationService(db_manager, clock, settings)

    app.state.db_manager = db_manager
    app.state.certificate_api = CertificateAPI(verification_service, settings.api_key)
    app.include_router(app.state.certificate_api.router)

    @app.get("/health", tags=["monitoring"])
    def health_check():
        """Проверка здоровья API и БД"""
        database_ok = app.state.db_manager.health_check()
        health_status = {
            "status": "healthy" if database_ok else "unhealthy",
            "timestamp": datetime.now().isoformat(),
            "components": {
                "api": {"status": "healthy", "message": "API is running"},
                "database": {
                    "status": "healthy" if database_ok else "unhealthy",
                    "message": "Database connection is active" if database_ok else "Database is unavailable"
                }
            }
        }

        # Возвращаем с соответствующим HTTP кодом
        return JSONResponse(content=health_status, status_code=200 if database_ok else 503)

    return app


# Создание приложения
app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api_server:app",
        host="0.0.0.0",
        port=int(os.getenv('PORT', '8000')),
        reload=True if os.getenv('ENVIRONMENT') == 'development' else False,
        workers=1 if os.getenv('ENVIRONMENT') == 'development' else 4
    )

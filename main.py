"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import payments as payments_routes
from application.ports.payment_callbacks import PaymentCallbacks
from application.services.payment_service import PaymentService
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger
from core.response import success_response
from core.settings import PaymentSettings, payment_settings
from domain.payment.repository import PaymentStore
from infrastructure.callbacks import load_callbacks
from infrastructure.database import AsyncSessionLocal, create_tables, engine
from infrastructure.repositories.payment_store import SQLAlchemyPaymentStore


logger = get_logger(__name__)


def create_app(
    *,
    store: Optional[PaymentStore] = None,
    callbacks: Optional[PaymentCallbacks] = None,
    provider_settings: Optional[PaymentSettings] = None,
) -> FastAPI:
    """Build the application. Tests and embedding hosts inject their own collaborators."""
    owns_database = store is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # 生产环境应使用 Alembic 迁移（alembic upgrade head）
        if owns_database and settings.AUTO_CREATE_TABLES:
            await create_tables()
            logger.info("database_initialized", url=engine.url.render_as_string(hide_password=True))

        service_settings = provider_settings or payment_settings
        app.state.payment_service = PaymentService(
            store if store is not None else SQLAlchemyPaymentStore(AsyncSessionLocal),
            callbacks if callbacks is not None else load_callbacks(settings.PAYMENT_CALLBACKS),
            settings=service_settings,
        )
        logger.info(
            "payment_service_started",
            payme=service_settings.payme.is_configured,
            click=service_settings.click.is_configured,
            paynet=service_settings.paynet.is_configured,
        )
        yield
        if owns_database:
            await engine.dispose()
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="Payme, Click and Paynet payment webhooks",
    )

    # 中间件按添加的逆序执行：RequestID 最先执行，为日志提供 request_id
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)
    app.include_router(payments_routes.router, prefix=settings.API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return success_response(data={"status": "healthy"}, message="OK")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )

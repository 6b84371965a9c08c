"""Application wiring: services, event handlers, middleware and routers."""

import logging

from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import ActorContextMiddleware, RequestIDMiddleware
from api.rate_limiter import RateLimiter
from api.verify import create_verify_router
from clients.postgres_client import PostgresClient
from core.audit import AuditLogger
from core.config import ComplianceConfig
from core.event_bus import EventBus
from core.handlers.notification_handler import register_notification_handlers
from core.services.credit_note_service import CreditNoteService
from core.services.directory_service import DirectoryService
from core.services.export_service import ExportService
from core.services.invoice_service import InvoiceService
from core.services.notification_service import NotificationService
from core.services.payment_service import PaymentService
from core.services.report_service import ReportService
from core.services.retention_service import RetentionService
from core.services.verification_service import VerificationService

logger = logging.getLogger(__name__)


def build_services(postgres: PostgresClient, config: ComplianceConfig | None = None) -> dict:
    """Construct every service against one pool and one event bus."""
    config = config or ComplianceConfig()

    audit = AuditLogger(postgres)
    event_bus = EventBus()
    retention = RetentionService(postgres, audit, default_years=config.default_retention_years)
    directory = DirectoryService(postgres, default_jurisdiction=config.default_jurisdiction)
    notification = NotificationService(postgres)

    register_notification_handlers(event_bus, notification)

    return {
        "audit": audit,
        "event_bus": event_bus,
        "retention": retention,
        "directory": directory,
        "notification": notification,
        "invoice": InvoiceService(postgres, audit, event_bus, directory, retention, config),
        "payment": PaymentService(postgres, audit, event_bus, directory, retention, config),
        "credit_note": CreditNoteService(postgres, audit, event_bus, directory, retention, config),
        "verification": VerificationService(postgres, audit),
        "report": ReportService(postgres),
        "export": ExportService(postgres, audit),
    }


def create_app(services: dict, rate_limiter: RateLimiter | None = None) -> FastAPI:
    """FastAPI app with middleware, error handlers and all routes under /api."""
    app = FastAPI(title="Invoice Ledger")
    app.add_middleware(ActorContextMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")
    app.include_router(
        create_verify_router(services["verification"], rate_limiter), prefix="/api"
    )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    logger.info("Invoice ledger API ready")
    return app


def create_default_app(config: ComplianceConfig | None = None) -> FastAPI:
    """App wired to the Vault-configured PostgreSQL and Valkey instances."""
    from clients.valkey_client import ValkeyClient
    from clients.vault_client import get_compliance_overrides, get_database_url, get_valkey_url

    config = config or ComplianceConfig(**get_compliance_overrides())
    postgres = PostgresClient(
        get_database_url(), statement_timeout_seconds=config.statement_timeout_seconds
    )
    rate_limiter = RateLimiter(
        ValkeyClient(get_valkey_url()),
        max_attempts=config.verify_rate_limit_attempts,
        window_seconds=config.verify_rate_limit_window_seconds,
    )
    return create_app(build_services(postgres, config), rate_limiter)

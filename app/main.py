import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CollectorRegistry
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from starlette.requests import Request

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.errors import AuthError, BookstoreError, InfrastructureError
from app.core.logging import setup_logging
from app.core.tokens import TokenManager
from app.db.bootstrap import run_migrations_and_seed
from app.db.credential_store import CredentialStore, RedisCredentialStore
from app.db.session import build_engine, build_sessionmaker
from app.services.orders import OrderSettlementEngine

log = logging.getLogger(__name__)

setup_logging()


def create_app(*, db_engine: Engine | None = None, credential_store: CredentialStore | None = None) -> FastAPI:
    """
    Monta a aplicação. Os clientes de banco e Redis nascem no startup e morrem
    no shutdown; passar ``db_engine``/``credential_store`` prontos (testes)
    desliga migrações e deixa o fechamento a cargo de quem os criou.
    """
    api = FastAPI(
        title="Bookstore API",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        swagger_ui_parameters={"displayRequestDuration": True, "persistAuthorization": True},
    )

    api.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # ajuste para domínios específicos em produção
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # métricas /metrics (Prometheus); registry por app para não duplicar séries
    Instrumentator(registry=CollectorRegistry()).instrument(api).expose(api, include_in_schema=False, should_gzip=True)

    api.include_router(api_router, prefix="/api/v1")

    @api.get("/healthz", tags=["health"])
    def healthz(request: Request):
        # sem credential store nenhuma rota autenticada funciona
        if not request.app.state.credential_store.ping():
            return JSONResponse(status_code=503, content={"status": "degraded", "credential_store": "unavailable"})
        return {"status": "ok"}

    @api.on_event("startup")
    def startup():
        engine = db_engine or build_engine()
        session_factory = build_sessionmaker(engine)
        if db_engine is None and settings.RUN_MIGRATIONS:
            run_migrations_and_seed(session_factory)
        store = credential_store or RedisCredentialStore.from_url()

        api.state.db_engine = engine
        api.state.session_factory = session_factory
        api.state.credential_store = store
        api.state.token_manager = TokenManager(store)
        api.state.settlement_engine = OrderSettlementEngine(session_factory)
        log.info("startup complete")

    @api.on_event("shutdown")
    def shutdown():
        if credential_store is None and isinstance(api.state.credential_store, RedisCredentialStore):
            api.state.credential_store.close()
        if db_engine is None:
            api.state.db_engine.dispose()

    @api.exception_handler(AuthError)
    def handle_auth_error(request: Request, exc: AuthError):
        # nunca diz ao cliente por que o token falhou
        log.info("unauthenticated %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=401, content={"code": AuthError.code, "message": AuthError.message})

    @api.exception_handler(InfrastructureError)
    def handle_infra_error(request: Request, exc: InfrastructureError):
        log.error("infrastructure failure %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=503, content={"code": InfrastructureError.code, "message": InfrastructureError.message})

    @api.exception_handler(BookstoreError)
    def handle_domain_error(request: Request, exc: BookstoreError):
        return JSONResponse(status_code=exc.http_status, content={"code": exc.code, "message": exc.message})

    @api.exception_handler(IntegrityError)
    def handle_integrity_error(request: Request, exc: IntegrityError):
        return JSONResponse(
            status_code=409,
            content={"code": "UNIQUE_VIOLATION", "message": "Registro duplicado.", "details": str(getattr(exc, "orig", exc))}
        )

    @api.exception_handler(Exception)
    def handle_unexpected(request: Request, exc: Exception):
        log.exception("unhandled error %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"code": "INTERNAL_ERROR", "message": "Erro interno."}
        )

    return api


api = create_app()

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import auth as auth_routes
from app.core.config import Settings, get_settings
from app.core.db import build_engine, build_session_factory, init_models
from app.core.errors import register_exception_handlers
from app.core.logging_config import configure_logging
from app.core.redis import build_redis
from app.services import otp as otp_ledger, password_reset as reset_ledger
from app.services import refresh_tokens as refresh_ledger
from app.services.email import Notifier
from app.services.otp_delivery import select_otp_delivery
from app.services.tokens import TokenSigner
from app.utils.middleware import EnforceHTTPSMiddleware, RequestLoggingMiddleware
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


async def purge_expired_records(session_factory, now) -> None:
    async with session_factory() as db:
        otps = await otp_ledger.purge_expired(db, now)
        resets = await reset_ledger.purge_expired(db, now)
        tokens = await refresh_ledger.purge_expired(db, now)
        await db.commit()
    logger.info("Purged expired records: %d otp, %d reset, %d refresh", otps, resets, tokens)


def create_app(settings: Settings | None = None, *, notifier: Notifier | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.api_title, version=settings.api_version)

    engine = build_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.notifier = notifier or Notifier.from_settings(settings)
    app.state.otp_delivery = select_otp_delivery(settings)
    app.state.signer = TokenSigner(settings)
    app.state.redis = None
    app.state.clock = utcnow

    register_exception_handlers(app)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        EnforceHTTPSMiddleware,
        enabled=settings.enforce_https,
        hsts_max_age=settings.hsts_max_age,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.base_url, *settings.cors_origins],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(auth_routes.router)

    @app.on_event("startup")
    async def on_startup():
        await init_models(engine)
        app.state.redis = build_redis(settings.redis_url)
        await purge_expired_records(app.state.session_factory, app.state.clock())

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.redis is not None:
            await app.state.redis.aclose()
        await engine.dispose()

    @app.get("/", tags=["misc"])
    async def root():
        return {"message": "Realty Admin Auth API"}

    @app.get("/health", tags=["misc"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

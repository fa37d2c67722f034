from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.exceptions import (
    ConversationNotFoundError,
    EntityResolutionConflictError,
    MalformedPayloadError,
    PersistenceError,
    SignatureInvalidError,
)
from app.infra.logging_config import LoggingConfig, get_logger
from app.realtime.bus import InMemoryRealtimeBus, build_realtime_bus
from app.routers import conversations_router, webhooks

logger = get_logger("main")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SignatureInvalidError)
    async def signature_invalid_handler(request: Request, exc: SignatureInvalidError):
        return JSONResponse(status_code=401, content={"message": "Invalid signature"})

    @app.exception_handler(MalformedPayloadError)
    async def malformed_payload_handler(request: Request, exc: MalformedPayloadError):
        logger.warning("Malformed webhook payload: %s", exc)
        return JSONResponse(status_code=400, content={"message": "Malformed payload"})

    @app.exception_handler(ConversationNotFoundError)
    async def conversation_not_found_handler(
        request: Request, exc: ConversationNotFoundError
    ):
        return JSONResponse(status_code=404, content={"error": "Conversation not found"})

    @app.exception_handler(PersistenceError)
    @app.exception_handler(EntityResolutionConflictError)
    async def persistence_error_handler(request: Request, exc: Exception):
        logger.error("Persistence failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": "Persistence error"})


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    LoggingConfig()

    realtime_bus = InMemoryRealtimeBus() if testing else build_realtime_bus(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s (%s)", settings.app_name, settings.environment)
        yield
        app.state.realtime_bus.close()

    app = FastAPI(
        title=settings.app_name,
        lifespan=lifespan,
    )
    app.state.realtime_bus = realtime_bus

    register_exception_handlers(app)

    app.include_router(webhooks.router)
    app.include_router(conversations_router.conversations_router)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()

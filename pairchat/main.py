import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pairchat.config import Settings, settings as default_settings
from pairchat.database import Database
from pairchat.exceptions import ChatError
from pairchat.mailer import EmailSender, Mailer
from pairchat.websocket_manager import create_manager

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "[{asctime}] {levelname} {name} {module}:{lineno} - {message}",
                "style": "{",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "verbose",
            },
        },
        "loggers": {
            "pairchat": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
        },
    })


async def chat_error_handler(request: Request, exc: ChatError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def create_app(settings: Settings = default_settings, email_sender: EmailSender = None) -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.db = Database(settings.DATABASE_URL, echo=settings.DEBUG)
        app.state.relay = create_manager(settings)
        app.state.mailer = Mailer(email_sender or EmailSender(), settings.RESET_PASSWORD_URL)

        await app.state.db.create_tables()
        await app.state.relay.start()
        logger.info(f"{settings.APP_NAME} started with {settings.RELAY_BACKEND} relay")
        try:
            yield
        finally:
            await app.state.relay.stop()
            await app.state.db.dispose()
            logger.info(f"{settings.APP_NAME} stopped")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        description="Direct messaging API",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ChatError, chat_error_handler)

    from pairchat.api.v1 import auth, users, chats, messages, websocket

    app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(users.router, prefix="/api/v1/users", tags=["users"])
    app.include_router(chats.router, prefix="/api/v1/chats", tags=["chats"])
    app.include_router(messages.router, prefix="/api/v1/messages", tags=["messages"])
    app.include_router(websocket.router, prefix="/api/v1/ws", tags=["websocket"])

    @app.get("/")
    async def root():
        return {"message": f"{settings.APP_NAME} API", "version": settings.VERSION}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()

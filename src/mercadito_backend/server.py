import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from mercadito_backend.api.conversations import conversations_router
from mercadito_backend.api.messages import messages_router
from mercadito_backend.api.notifications import notifications_router
from mercadito_backend.api.system import system_router
from mercadito_backend.business_logic.notifications import seed_notification_types
from mercadito_backend.database import _get_db, get_db, session_scope
from mercadito_backend.exceptions import register_exception_handlers
from mercadito_backend.model import Base
from mercadito_backend.permissions.auth import get_current_principal
from mercadito_backend.rate_limit import limiter
from mercadito_backend.settings import settings
from mercadito_backend.websocket.broadcast import ws_broadcast
from mercadito_backend.websocket.connection_manager import ConnectionManager
from mercadito_backend.websocket.handlers import EventRouter
from mercadito_backend.websocket.presence import PresenceTracker
from mercadito_backend.websocket.router import ws_router

logger = logging.getLogger(__name__)

origins = [
    "http://localhost:3000",  # web frontend
    "http://localhost:5173",  # vite dev server
    "http://localhost:8000",
]


def startup_logic(session_factory: Optional[Callable[[], Session]] = None, create_schema: bool = False):
    """Create tables (development only) and make sure lookup rows exist."""
    with session_scope(session_factory) as db:
        if create_schema:
            Base.metadata.create_all(bind=db.get_bind())
            logger.info("Database schema created")
        seed_notification_types(db)


def create_app(
    session_factory: Optional[Callable[[], Session]] = None,
    enable_presence: Optional[bool] = None,
    create_schema: Optional[bool] = None,
) -> FastAPI:
    """
    Build the application with its own connection registry.

    The registry, event router and presence tracker live on ``app.state``;
    the process-wide broadcast service is bound to the registry while the
    application is running.
    """
    if enable_presence is None:
        enable_presence = settings.WS_PRESENCE_ENABLED
    if create_schema is None:
        create_schema = settings.CREATE_SCHEMA_ON_STARTUP

    presence = PresenceTracker() if enable_presence else None
    manager = ConnectionManager(presence=presence)
    event_router = EventRouter(manager, session_factory=session_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        startup_logic(session_factory, create_schema=create_schema)
        ws_broadcast.configure(manager)
        manager.start_presence_keepalive()
        logger.info("Realtime relay ready")

        yield

        await manager.stop()
        ws_broadcast.configure(None)

    app = FastAPI(title="Mercadito realtime backend", lifespan=lifespan)
    app.state.limiter = limiter
    app.state.ws_manager = manager
    app.state.ws_router = event_router
    app.state.ws_presence = presence

    if session_factory is not None:
        def get_db_override():
            yield from _get_db(session_factory)
        app.dependency_overrides[get_db] = get_db_override

    # Structured error responses (includes slowapi's RateLimitExceeded)
    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        messages_router,
        prefix="/messages",
        tags=["messages"],
        dependencies=[Depends(get_current_principal)]
    )

    app.include_router(
        conversations_router,
        prefix="/conversations",
        tags=["conversations"],
        dependencies=[Depends(get_current_principal)]
    )

    app.include_router(
        notifications_router,
        prefix="/notifications",
        tags=["notifications"],
        dependencies=[Depends(get_current_principal)]
    )

    app.include_router(
        system_router,
        prefix="/system",
        tags=["system"],
        dependencies=[Depends(get_current_principal)]
    )

    app.include_router(ws_router, tags=["websocket"])

    @app.head("/", status_code=204)
    def get_status_head():
        return

    return app


app = create_app()

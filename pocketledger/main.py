import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import settings
from .core.sms import build_sms_sender
from .core.storage import URL_PREFIX
from .database import init_db
from .errors import register_exception_handlers
from .routers import auth as auth_router
from .routers import categories as categories_router
from .routers import expenses as expenses_router


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title="PocketLedger – Backend", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            settings.client_url,
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Chosen once per process; handlers receive it through get_sms_sender
    app.state.sms_sender = build_sms_sender(settings)

    @app.on_event("startup")
    def on_startup():
        init_db()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/api/health")
    def api_health():
        return {"status": "ok", "environment": settings.environment}

    app.include_router(auth_router.router, prefix="/api")
    app.include_router(categories_router.router, prefix="/api")
    app.include_router(expenses_router.router, prefix="/api")

    upload_root = Path(settings.upload_dir)
    upload_root.mkdir(parents=True, exist_ok=True)
    app.mount(URL_PREFIX, StaticFiles(directory=upload_root), name="uploads")

    return app


app = create_app()

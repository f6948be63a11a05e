
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import CORS_ORIGINS, DATABASE_URL
from .db import Database
from .handlers import register_exception_handlers
from .logging_config import setup_logging
from .routers import accounts, forms, submissions

def create_app(database: Optional[Database] = None) -> FastAPI:
    setup_logging()
    app = FastAPI(title="Form Builder API")
    app.state.database = database or Database(DATABASE_URL)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.on_event("startup")
    def on_startup():
        app.state.database.init()

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.database.shutdown()

    app.include_router(accounts.router, prefix="/api/auth", tags=["auth"])
    app.include_router(forms.router, prefix="/api/forms", tags=["forms"])
    app.include_router(submissions.router, prefix="/api", tags=["submissions"])

    @app.get("/")
    def root():
        return {"ok": True, "service": "form-builder-api"}

    @app.get("/health")
    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    return app

app = create_app()

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from vitrine.api.routes.batch import router as batch_router
from vitrine.api.routes.costs import router as costs_router
from vitrine.api.routes.editor import router as editor_router
from vitrine.api.routes.gallery import router as gallery_router
from vitrine.api.routes.generation import router as generation_router
from vitrine.api.routes.users import router as users_router
from vitrine.core.config import API_TITLE, API_VERSION
from vitrine.core.errors import AppError, app_error_handler
from vitrine.core.logging import configure_logging
from vitrine.core.paths import STORAGE_DIR


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=API_TITLE, version=API_VERSION)

    app.mount("/storage", StaticFiles(directory=str(STORAGE_DIR)), name="storage")
    app.add_exception_handler(AppError, app_error_handler)

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/api/health")
    def api_health():
        return {"ok": True}

    app.include_router(users_router)
    app.include_router(gallery_router)
    app.include_router(generation_router)
    app.include_router(batch_router)
    app.include_router(editor_router)
    app.include_router(costs_router)

    return app


app = create_app()

#main.py
import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse

from middleware import RequestContextMiddleware
from routes.health import router as health_router
from routes.metrics import router as metrics_router
from routes.admin_notifications import router as admin_notifications_router

logger = logging.getLogger("settlement.api")


def create_app() -> FastAPI:
    app = FastAPI(title="Settlement Reconciler", version="1.0.0")

    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(admin_notifications_router)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled error path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()

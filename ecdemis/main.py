# ecdemis/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ecdemis import __version__
from ecdemis.api.routers import persons as persons_router
from ecdemis.api.routers import transfers as transfers_router
from ecdemis.api.routers import institutions as institutions_router
from ecdemis.core.config import settings
from ecdemis.core.errors import EcdemisError, ValidationError

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="ECDE & Vocational Training MIS", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    @app.exception_handler(EcdemisError)
    async def domain_error_handler(request: Request, exc: EcdemisError):
        content = {"detail": exc.message}
        if isinstance(exc, ValidationError) and exc.fields:
            content["fields"] = exc.fields
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=content)

    # Core routers with /api prefix
    app.include_router(persons_router.router, prefix="/api")
    app.include_router(transfers_router.router, prefix="/api")
    app.include_router(institutions_router.router, prefix="/api")

    @app.get("/healthz")
    def health():
        return {"ok": True}

    return app

app = create_app()

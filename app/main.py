import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import Settings, settings
from app.core.logging_setup import configure_logging
from app.core.request_tracing import install_request_tracing
from app.api.router import api_router, pages_router
from app.services.form_storage import FormStorage, build_storage

_LOG = logging.getLogger("app.main")


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for err in exc.errors():
        loc = list(err.get("loc") or ())
        if loc and loc[0] == "body":
            loc = loc[1:]
        errors.append({"path": loc, "message": err.get("msg"), "type": err.get("type")})
    return errors


def create_app(config: Settings | None = None, *, storage: FormStorage | None = None) -> FastAPI:
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = storage is None
        app.state.storage = storage if storage is not None else build_storage(config)
        _LOG.info("storage ready backend=%s", app.state.storage.backend)
        try:
            yield
        finally:
            if owned:
                app.state.storage.close()

    app = FastAPI(title=config.APP_NAME, version="0.1.0", lifespan=lifespan)
    # Available before the lifespan runs (TestClient without a context manager).
    if storage is not None:
        app.state.storage = storage
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_request_tracing(app)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": "Validation error", "errors": _validation_errors(exc)},
        )

    app.include_router(api_router)
    app.include_router(pages_router)

    @app.get("/", include_in_schema=False)
    def landing():
        return JSONResponse({"service": config.APP_NAME, "status": "ok"})

    @app.get("/health")
    def health(request: Request):
        current = getattr(request.app.state, "storage", None)
        return {"status": "ok", "storage": getattr(current, "backend", None)}

    return app


configure_logging()
app = create_app()

# clinic_scheduler/main.py
import os
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import settings
from .errors import SchedulerError, StoreError
from .services.clinic_config import ClinicConfigService
from .store import get_store

# Routers
from .routers.appointments import router as appointments_router
from .routers.admin import router as admin_router

# ──────────────────────────────────────────────────────────────────────────────
# LOGGING
# Levels come from environment variables:
#   LOG_LEVEL, SQLA_LOG_LEVEL, UVICORN_LOG_LEVEL
# ──────────────────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logging.getLogger("sqlalchemy.engine").setLevel(
    getattr(logging, os.getenv("SQLA_LOG_LEVEL", "WARNING"), logging.WARNING)
)
logging.getLogger("uvicorn.error").setLevel(
    getattr(logging, os.getenv("UVICORN_LOG_LEVEL", "INFO"), logging.INFO)
)

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────────────────
# FastAPI App
# ──────────────────────────────────────────────────────────────────────────────
app = FastAPI(title=settings.APP_NAME)

app.include_router(appointments_router)
app.include_router(admin_router, prefix="/admin")  # admin.py does not repeat /admin


# ──────────────────────────────────────────────────────────────────────────────
# Errors → {success, message, fieldErrors?}
# ──────────────────────────────────────────────────────────────────────────────
@app.exception_handler(SchedulerError)
async def scheduler_error_handler(request: Request, exc: SchedulerError):
    if isinstance(exc, StoreError):
        logger.warning("Store failure on %s %s: %s", request.method, request.url.path, exc.__cause__ or exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    field_errors: dict = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field_errors.setdefault(".".join(loc) or "body", []).append(err.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Invalid fields.", "fieldErrors": field_errors},
    )


# ──────────────────────────────────────────────────────────────────────────────
# Lifecycle
# ──────────────────────────────────────────────────────────────────────────────
@app.on_event("startup")
def on_startup():
    try:
        ClinicConfigService(get_store()).get_config()
    except StoreError:
        # Not fatal: every request re-reads the store and reports "try again"
        logger.exception("Store not reachable at startup")
    logger.info("Startup complete: %s (%s)", settings.APP_NAME, settings.ENV)


@app.get("/")
def root():
    return {"ok": True, "app": settings.APP_NAME, "env": settings.ENV}

# backend/workshop/main.py
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from workshop.core.api import UTF8JSONResponse, fail, ok
from workshop.core.config import AUTO_CREATE_SCHEMA, CORS_ALLOW_ORIGINS, LOG_LEVEL
from workshop.core.db import Base, engine, get_db
from workshop.domain.errors import WorkshopError

import workshop.models  # noqa: F401  (registers tables on Base.metadata)

# --- Routers ---
from workshop.routers.inventory import router as inventory_router
from workshop.routers.master_data import categories, holidays, standard_tasks, technicians
from workshop.routers.requisitions import router as requisitions_router
from workshop.routers.used_parts import router as used_parts_router
from workshop.routers.workorders import router as workorders_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("workshop")

app = FastAPI(title="Workshop repair orders", default_response_class=UTF8JSONResponse)


# -----------------------------
# Error envelope
# -----------------------------
@app.exception_handler(WorkshopError)
async def workshop_error_to_envelope(request: Request, exc: WorkshopError):
    return fail(exc.message, status_code=exc.status_code, meta=exc.to_meta())


@app.exception_handler(StarletteHTTPException)
async def http_exception_to_envelope(request: Request, exc: StarletteHTTPException):
    return fail(str(exc.detail) if exc.detail else exc.__class__.__name__, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_to_envelope(request: Request, exc: RequestValidationError):
    return fail("Validation error", status_code=422, meta={"code": "validation_error", "errors": exc.errors()})


@app.exception_handler(SQLAlchemyError)
async def db_error_to_envelope(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return fail("Database error", status_code=500, meta={"code": "database_error"})


# -----------------------------
# CORS (.env)
# -----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=CORS_ALLOW_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _ensure_schema():
    # Dev / SQLite convenience; production runs alembic
    if AUTO_CREATE_SCHEMA:
        Base.metadata.create_all(bind=engine)
        logger.info("Schema ensured (AUTO_CREATE_SCHEMA)")


# ---- Health ----
@app.get("/health")
def health():
    return ok({"service": "workshop"})


@app.get("/db-ping")
def db_ping(db: Session = Depends(get_db)):
    val = db.execute(text("SELECT 1")).scalar()
    return ok({"db": "ok", "select1": val})


# =========================
# Router registration
# =========================
app.include_router(workorders_router)     # /workorders
app.include_router(inventory_router)      # /stock
app.include_router(used_parts_router)     # /used-parts
app.include_router(requisitions_router)   # /requisitions
app.include_router(technicians)
app.include_router(holidays)
app.include_router(categories)
app.include_router(standard_tasks)

logger.debug("Routes registered: %s", [getattr(r, "path", str(r)) for r in app.routes])

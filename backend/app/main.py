import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.database import engine, Base, SessionLocal
from app.core.exceptions import CommissionError, UnavailableError
from app.api import rules, calculate, irdai, reports, compliance
from app.seed import seed_reference_data
from app import models  # noqa: F401  registers every table on Base.metadata

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def prepare_commission_store():
    """Ensure the commission tables exist and, unless disabled, load LOBs, insurers and IRDAI caps."""
    Base.metadata.create_all(bind=engine)
    logger.info(f"Commission store ready ({len(Base.metadata.tables)} tables)")

    if not settings.SEED_REFERENCE_DATA:
        logger.info("Reference data seeding disabled")
        return

    db = SessionLocal()
    try:
        seed_reference_data(db)
    except (SQLAlchemyError, CommissionError) as e:
        db.rollback()
        logger.error(f"Reference data not loaded: {e}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    prepare_commission_store()
    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    yield


# Interactive docs stay off in production
show_docs = settings.ENVIRONMENT != "production"

app = FastAPI(
    title=settings.APP_NAME,
    description="Commission rules, IRDAI caps, calculation, compliance and reporting",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if show_docs else None,
    redoc_url="/redoc" if show_docs else None,
    openapi_url="/openapi.json" if show_docs else None,
)


# Every error leaves as {"error": message}
@app.exception_handler(CommissionError)
async def commission_error_handler(request: Request, exc: CommissionError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        loc = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
        message = f"{loc}: {errors[0].get('msg')}" if loc else errors[0].get("msg")
    else:
        message = "Malformed request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(OperationalError)
async def store_unavailable_handler(request: Request, exc: OperationalError):
    logger.error(f"Commission store unavailable: {exc}")
    return await commission_error_handler(request, UnavailableError("Commission store temporarily unavailable"))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": f"Internal error: {str(exc)}"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "commission-engine", "version": "1.0.0"}


# Include routers
app.include_router(rules.router)
app.include_router(calculate.router)
app.include_router(irdai.router)
app.include_router(reports.router)
app.include_router(compliance.router)

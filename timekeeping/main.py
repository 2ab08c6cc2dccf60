from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timekeeping.api.routes import health
from timekeeping.core.config import settings
from timekeeping.core.errors import TimekeepingError
from timekeeping.core.logging import configure_logging, get_logger
from timekeeping.core.monitoring import configure_error_monitoring
from timekeeping.core.observability import configure_observability
from timekeeping.db.session import init_db
from timekeeping.domains.reporting.router import router as reporting_router
from timekeeping.domains.sign_ins.router import router as sign_ins_router
from timekeeping.domains.time_entries.router import router as time_entries_router
from timekeeping.domains.timesheets.router import router as timesheets_router

configure_logging(settings.log_level)
configure_observability()
configure_error_monitoring()
logger = get_logger(__name__)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin) for origin in settings.cors_origins] or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(sign_ins_router)
app.include_router(time_entries_router)
app.include_router(timesheets_router)
app.include_router(reporting_router)


@app.exception_handler(TimekeepingError)
def handle_timekeeping_error(request: Request, exc: TimekeepingError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed",
        path=request.url.path,
        method=request.method,
        code=exc.code,
        detail=exc.message,
        details=exc.details,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
def startup_event() -> None:
    init_db()
    logger.info("startup_complete", env=settings.env)


@app.get("/")
def root() -> dict[str, str]:
    return {"message": "Timekeeping API running", "environment": settings.env}

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from crm_scheduler.api.v1.api import api_router
from crm_scheduler.core.config import settings
from crm_scheduler.core.errors import AppointmentNotFound, LookupFailure, SlotConflictError, ValidationError
from crm_scheduler.core.logging import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    openapi_url=f"{settings.api_v1_str}/openapi.json"
)

app.include_router(api_router, prefix=settings.api_v1_str)

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

@app.exception_handler(AppointmentNotFound)
async def not_found_handler(request: Request, exc: AppointmentNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(SlotConflictError)
async def conflict_handler(request: Request, exc: SlotConflictError):
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "conflict": exc.report.model_dump(mode="json")},
    )

@app.exception_handler(LookupFailure)
async def lookup_failure_handler(request: Request, exc: LookupFailure):
    logger.error(f"Persistence unavailable on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Scheduling data is temporarily unavailable."})

@app.get("/")
async def root():
    return {"message": "Service CRM Scheduling Engine is running"}

from fastapi import APIRouter
from crm_scheduler.api.v1.endpoints import appointments, calendar, resources

api_router = APIRouter()
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
api_router.include_router(resources.router, prefix="/resources", tags=["resources"])

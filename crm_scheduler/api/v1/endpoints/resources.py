from fastapi import APIRouter, Depends
from typing import List
from crm_scheduler.api.deps import get_current_tenant, get_repository
from crm_scheduler.schemas.resource import ResourceResponse
from crm_scheduler.schemas.tenant import TenantResponse
from crm_scheduler.services.repository import AppointmentRepository

router = APIRouter()

@router.get("/", response_model=List[ResourceResponse])
async def list_resources(
    tenant: TenantResponse = Depends(get_current_tenant),
    repository: AppointmentRepository = Depends(get_repository),
):
    """
    The tenant's roster, ordered by name. Drives calendar colors and filters.
    """
    return repository.list_resources(tenant.id)

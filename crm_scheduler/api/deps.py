import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from crm_scheduler.core.supabase_client import get_supabase
from crm_scheduler.schemas.appointment import Id
from crm_scheduler.schemas.tenant import TenantResponse
from crm_scheduler.services.repository import AppointmentRepository

logger = logging.getLogger(__name__)

security = HTTPBearer()

def get_repository() -> AppointmentRepository:
    return AppointmentRepository()

async def get_current_user(auth: HTTPAuthorizationCredentials = Depends(security)):
    """
    Verifies the Supabase JWT and returns the user object.
    """
    try:
        res = get_supabase().auth.get_user(auth.credentials)
    except Exception as e:
        logger.warning(f"Auth error: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
        )
    if not res or not res.user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return res.user

async def get_current_tenant(
    current_user = Depends(get_current_user),
    repository: AppointmentRepository = Depends(get_repository),
) -> TenantResponse:
    """
    Resolves the tenant owned by the authenticated user. Every query is scoped to it.
    """
    tenant = repository.get_tenant_for_user(str(current_user.id))
    if tenant is None:
        raise HTTPException(status_code=404, detail="Tenant not found for this user.")
    return tenant

def parse_id(value: str) -> Id:
    """Numeric path ids become ints so they compare equal to row ids."""
    return int(value) if value.isdigit() else value

from pydantic import BaseModel, ConfigDict
from typing import Optional, Union

class ServiceResponse(BaseModel):
    id: Union[int, str]
    tenant_id: Union[int, str]
    name: str
    duration_minutes: Optional[int] = None
    base_price: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)

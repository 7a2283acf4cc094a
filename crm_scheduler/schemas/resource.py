from pydantic import BaseModel, ConfigDict
from typing import Optional, Union

class ResourceBase(BaseModel):
    name: str
    description: Optional[str] = None
    color: Optional[str] = None

class ResourceResponse(ResourceBase):
    id: Union[int, str]
    tenant_id: Union[int, str]

    model_config = ConfigDict(from_attributes=True)

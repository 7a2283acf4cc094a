from pydantic import BaseModel, ConfigDict
from typing import Optional, Union

class TenantResponse(BaseModel):
    id: Union[int, str]
    name: str
    timezone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

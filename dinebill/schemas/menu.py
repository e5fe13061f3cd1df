from pydantic import Field
from typing import Optional

from dinebill.schemas.common import CamelModel

class MenuItemIn(CamelModel):
    name: str = Field(min_length=1, max_length=160)
    description: Optional[str] = None
    price: float = Field(ge=0)
    is_enabled: bool = True

class MenuItemPatch(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=160)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    is_enabled: Optional[bool] = None

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class CamelModel(BaseModel):
    # accept both tableNo and table_no on input
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"
    refresh_token: Optional[str] = None
    role: str
    restaurant_id: str

from pydantic import Field, model_validator
from typing import Optional, Literal

from dinebill.schemas.common import CamelModel

GstModeLiteral = Literal["CGST_SGST", "IGST"]

class RestaurantIn(CamelModel):
    name: str = Field(min_length=2)
    gstin: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    gst_mode: GstModeLiteral = "CGST_SGST"
    cgst_rate: float = Field(default=0, ge=0)
    sgst_rate: float = Field(default=0, ge=0)
    igst_rate: float = Field(default=0, ge=0)
    invoice_prefix: str = Field(default="INV", min_length=1, max_length=20)

class RestaurantPatch(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2)
    gstin: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    gst_mode: Optional[GstModeLiteral] = None
    cgst_rate: Optional[float] = Field(default=None, ge=0)
    sgst_rate: Optional[float] = Field(default=None, ge=0)
    igst_rate: Optional[float] = Field(default=None, ge=0)
    invoice_prefix: Optional[str] = Field(default=None, min_length=1, max_length=20)

class OwnerIn(CamelModel):
    name: str = Field(min_length=2)
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, min_length=8)
    password: str = Field(min_length=8)

    @model_validator(mode="after")
    def _needs_login_id(self):
        if not self.email and not self.phone:
            raise ValueError("email or phone is required")
        return self

class RegisterIn(CamelModel):
    restaurant: RestaurantIn
    owner: OwnerIn

class LoginIn(CamelModel):
    identifier: str = Field(min_length=3)
    password: str = Field(min_length=1)

class RefreshIn(CamelModel):
    refresh_token: str = Field(min_length=10)

class TableIn(CamelModel):
    table_no: str = Field(min_length=1, max_length=30)
    capacity: int = Field(default=4, gt=0)
    is_enabled: bool = True

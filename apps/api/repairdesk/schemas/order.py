import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from repairdesk.models.order import OrderStatus


def _strip(value):
    if isinstance(value, str):
        return value.strip()
    return value


class OrderSubmit(BaseModel):
    location: str = Field(min_length=1, max_length=255)
    contact_phone: str | None = Field(default=None, max_length=50)
    description: str = Field(min_length=1)
    image_url: str | None = Field(default=None, max_length=512)

    @field_validator("location", "contact_phone", "description", "image_url", mode="before")
    @classmethod
    def strip_strings(cls, value):
        return _strip(value)


class OrderInfoPatch(BaseModel):
    location: str | None = Field(default=None, min_length=1, max_length=255)
    contact_phone: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, min_length=1)
    image_url: str | None = Field(default=None, max_length=512)

    @field_validator("location", "contact_phone", "description", "image_url", mode="before")
    @classmethod
    def strip_strings(cls, value):
        return _strip(value)

    @model_validator(mode="after")
    def require_one_field(self) -> "OrderInfoPatch":
        if not self.changes():
            raise ValueError("At least one field must be provided")
        return self

    def changes(self) -> dict[str, str]:
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class OrderFinish(BaseModel):
    message: str | None = Field(default=None, max_length=1000)


class OrderCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class OrderRating(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)


class OrderListQuery(BaseModel):
    status: OrderStatus | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    customer_id: str
    staff_id: str | None
    location: str
    contact_phone: str | None
    description: str
    image_url: str | None
    status: OrderStatus
    rating: int | None
    rating_comment: str | None
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    page: int
    page_size: int
    total: int

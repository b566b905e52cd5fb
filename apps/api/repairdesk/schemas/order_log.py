import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from repairdesk.models.order_log import OrderLogAction


class OrderLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    staff_id: str | None
    action: OrderLogAction
    message: str
    payload: dict
    created_at: datetime


class OrderLogListResponse(BaseModel):
    items: list[OrderLogResponse]

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from repairdesk.db.base import Base


class OrderLogAction(str, enum.Enum):
    CREATE = "create"
    TAKE = "take"
    FINISH = "finish"
    CANCEL = "cancel"
    UPDATE = "update"
    RATE = "rate"


class OrderLogEntry(Base):
    __tablename__ = "order_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    staff_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    action: Mapped[OrderLogAction] = mapped_column(
        Enum(
            OrderLogAction,
            name="order_log_action",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

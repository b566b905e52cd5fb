# Import SQLAlchemy models so they register on Base.metadata
from repairdesk.models.order import Order, OrderStatus  # noqa: F401
from repairdesk.models.order_log import OrderLogAction, OrderLogEntry  # noqa: F401

"""Settlement engine API package."""

from settlement.api.errors import register_settlement_handlers
from settlement.api.routes import order_router

__all__ = ["order_router", "register_settlement_handlers"]

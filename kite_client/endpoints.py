"""
Kite Client - Endpoint Table.

One EndpointDescriptor per supported REST operation.
Descriptors are immutable and shared by every client.
"""

from typing import Dict

from .types import EndpointDescriptor, HttpMethod, ResponseFormat


GET = HttpMethod.GET
POST = HttpMethod.POST
PUT = HttpMethod.PUT
DELETE = HttpMethod.DELETE


# ============================================================
# SESSION
# ============================================================

SESSION_TOKEN = EndpointDescriptor(
    "session.token", "/session/token", POST, requires_auth=False,
)
SESSION_INVALIDATE = EndpointDescriptor(
    "session.invalidate", "/session/token", DELETE, requires_auth=False,
)
SESSION_RENEW = EndpointDescriptor(
    "session.renew", "/session/refresh_token", POST, requires_auth=False,
)
SESSION_REFRESH_INVALIDATE = EndpointDescriptor(
    "session.refresh_invalidate", "/session/refresh_token", DELETE, requires_auth=False,
)


# ============================================================
# USER
# ============================================================

USER_PROFILE = EndpointDescriptor("user.profile", "/user/profile")
USER_MARGINS = EndpointDescriptor("user.margins", "/user/margins")
USER_MARGINS_SEGMENT = EndpointDescriptor("user.margins.segment", "/user/margins/{segment}")


# ============================================================
# PORTFOLIO
# ============================================================

PORTFOLIO_HOLDINGS = EndpointDescriptor("portfolio.holdings", "/portfolio/holdings")
PORTFOLIO_POSITIONS = EndpointDescriptor("portfolio.positions", "/portfolio/positions")
PORTFOLIO_POSITIONS_CONVERT = EndpointDescriptor(
    "portfolio.positions.convert", "/portfolio/positions", PUT,
)


# ============================================================
# ORDERS
# ============================================================

ORDER_PLACE = EndpointDescriptor("order.place", "/orders/{variety}", POST)
ORDER_MODIFY = EndpointDescriptor("order.modify", "/orders/{variety}/{order_id}", PUT)
ORDER_CANCEL = EndpointDescriptor("order.cancel", "/orders/{variety}/{order_id}", DELETE)
ORDERS = EndpointDescriptor("orders", "/orders")
ORDER_INFO = EndpointDescriptor("order.info", "/orders/{order_id}")
ORDER_TRADES = EndpointDescriptor("order.trades", "/orders/{order_id}/trades")
TRADES = EndpointDescriptor("trades", "/trades")


# ============================================================
# MARKET DATA
# ============================================================

INSTRUMENTS = EndpointDescriptor(
    "market.instruments", "/instruments",
    response_format=ResponseFormat.CSV,
)
INSTRUMENTS_EXCHANGE = EndpointDescriptor(
    "market.instruments.exchange", "/instruments/{exchange}",
    response_format=ResponseFormat.CSV,
)
TRIGGER_RANGE = EndpointDescriptor("market.trigger_range", "/instruments/trigger_range")


# ============================================================
# MUTUAL FUNDS
# ============================================================

MF_ORDERS = EndpointDescriptor("mf.orders", "/mf/orders")
MF_ORDER_INFO = EndpointDescriptor("mf.order.info", "/mf/orders/{order_id}")
MF_INSTRUMENTS = EndpointDescriptor(
    "mf.instruments", "/mf/instruments",
    response_format=ResponseFormat.CSV,
)


ENDPOINTS: Dict[str, EndpointDescriptor] = {
    descriptor.name: descriptor
    for descriptor in (
        SESSION_TOKEN,
        SESSION_INVALIDATE,
        SESSION_RENEW,
        SESSION_REFRESH_INVALIDATE,
        USER_PROFILE,
        USER_MARGINS,
        USER_MARGINS_SEGMENT,
        PORTFOLIO_HOLDINGS,
        PORTFOLIO_POSITIONS,
        PORTFOLIO_POSITIONS_CONVERT,
        ORDER_PLACE,
        ORDER_MODIFY,
        ORDER_CANCEL,
        ORDERS,
        ORDER_INFO,
        ORDER_TRADES,
        TRADES,
        INSTRUMENTS,
        INSTRUMENTS_EXCHANGE,
        TRIGGER_RANGE,
        MF_ORDERS,
        MF_ORDER_INFO,
        MF_INSTRUMENTS,
    )
}

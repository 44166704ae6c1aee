"""
Kite Client - Core Types.

============================================================
PURPOSE
============================================================
Enums, request/response envelopes and typed response records.

Typed records replace index lookups into raw JSON trees.
Every record keeps the source mapping under `raw` so fields
that are genuinely dynamic stay reachable.

============================================================
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from .errors import ParseError


# ============================================================
# ENUMS
# ============================================================

class HttpMethod(Enum):
    """HTTP methods used by the API."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @property
    def sends_body(self) -> bool:
        """Whether parameters travel as a form body rather than a query."""
        return self in (HttpMethod.POST, HttpMethod.PUT)


class ResponseFormat(Enum):
    """Declared response content type of an endpoint."""

    JSON = "JSON"
    CSV = "CSV"


# ============================================================
# ENDPOINT DESCRIPTOR
# ============================================================

@dataclass(frozen=True)
class EndpointDescriptor:
    """Static description of one REST operation."""

    name: str
    """Operation name, used for logging and metrics."""

    route_template: str
    """Path template, e.g. /orders/{variety}/{order_id}."""

    http_method: HttpMethod = HttpMethod.GET
    """HTTP method."""

    requires_auth: bool = True
    """Whether the Authorization header must carry an access token."""

    response_format: ResponseFormat = ResponseFormat.JSON
    """Expected response format."""

    def path(self, **path_params: str) -> str:
        """Render the route template with percent-encoded parameters."""
        return self.route_template.format(
            **{key: quote(str(value), safe="") for key, value in path_params.items()}
        )


# ============================================================
# RAW RESPONSE
# ============================================================

@dataclass
class RawResponse:
    """Undecoded HTTP response."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""


# ============================================================
# CONVERSION HELPERS
# ============================================================
# Absent or empty values map to None (or the field default).
# A value that is present but unreadable raises ParseError.

def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ParseError(
            f"Expected an object for {what}, got {type(data).__name__}",
            context=what,
        )
    return data


def _list(data: Mapping[str, Any], key: str) -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParseError(f"Expected a list for '{key}', got {type(value).__name__}")
    return list(value)


def _decimal(data: Mapping[str, Any], key: str) -> Optional[Decimal]:
    value = data.get(key)
    if value is None or value == "":
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ParseError(f"Invalid numeric value for '{key}': {value!r}") from None
    if not number.is_finite():
        raise ParseError(f"Invalid numeric value for '{key}': {value!r}")
    return number


def _int(
    data: Mapping[str, Any],
    key: str,
    default: int = 0,
    required: bool = False,
) -> int:
    value = data.get(key)
    if value is None or value == "":
        if required:
            raise ParseError(f"Missing required field '{key}'")
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        raise ParseError(f"Invalid integer value for '{key}': {value!r}") from None


def _bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() in ("1", "true", "True")
    return bool(value)


def _str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


# ============================================================
# USER / SESSION
# ============================================================

@dataclass
class UserProfile:
    """Authenticated user's profile."""

    user_id: str
    user_name: Optional[str] = None
    user_shortname: Optional[str] = None
    email: Optional[str] = None
    user_type: Optional[str] = None
    broker: Optional[str] = None
    exchanges: List[str] = field(default_factory=list)
    products: List[str] = field(default_factory=list)
    order_types: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserProfile":
        data = _mapping(data, "UserProfile")
        return cls(
            user_id=data.get("user_id", ""),
            user_name=data.get("user_name"),
            user_shortname=data.get("user_shortname"),
            email=data.get("email"),
            user_type=data.get("user_type"),
            broker=data.get("broker"),
            exchanges=_list(data, "exchanges"),
            products=_list(data, "products"),
            order_types=_list(data, "order_types"),
            raw=dict(data),
        )


@dataclass
class UserSession(UserProfile):
    """Result of a successful request-token exchange."""

    api_key: Optional[str] = None
    access_token: str = ""
    public_token: Optional[str] = None
    refresh_token: Optional[str] = None
    login_time: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserSession":
        data = _mapping(data, "UserSession")
        profile = UserProfile.from_dict(data)
        return cls(
            user_id=profile.user_id,
            user_name=profile.user_name,
            user_shortname=profile.user_shortname,
            email=profile.email,
            user_type=profile.user_type,
            broker=profile.broker,
            exchanges=profile.exchanges,
            products=profile.products,
            order_types=profile.order_types,
            raw=profile.raw,
            api_key=data.get("api_key"),
            access_token=data.get("access_token") or "",
            public_token=data.get("public_token"),
            refresh_token=_str(data.get("refresh_token")),
            login_time=_str(data.get("login_time")),
        )


# ============================================================
# MARGINS
# ============================================================

@dataclass
class SegmentMargin:
    """Funds and margin figures for one segment."""

    segment: str
    enabled: bool = False
    net: Optional[Decimal] = None
    available: Dict[str, Optional[Decimal]] = field(default_factory=dict)
    utilised: Dict[str, Optional[Decimal]] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, segment: str, data: Mapping[str, Any]) -> "SegmentMargin":
        data = _mapping(data, "SegmentMargin")
        available = _mapping(data.get("available") or {}, "SegmentMargin.available")
        utilised = _mapping(data.get("utilised") or {}, "SegmentMargin.utilised")
        return cls(
            segment=segment,
            enabled=_bool(data.get("enabled")),
            net=_decimal(data, "net"),
            available={key: _decimal(available, key) for key in available},
            utilised={key: _decimal(utilised, key) for key in utilised},
            raw=dict(data),
        )


@dataclass
class Margins:
    """Margins keyed by segment (equity, commodity)."""

    segments: Dict[str, SegmentMargin] = field(default_factory=dict)

    def __getitem__(self, segment: str) -> SegmentMargin:
        return self.segments[segment]

    def __contains__(self, segment: str) -> bool:
        return segment in self.segments

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        segment: Optional[str] = None,
    ) -> "Margins":
        data = _mapping(data, "Margins")
        # A single-segment response is the segment body itself
        if segment is not None:
            return cls(segments={segment: SegmentMargin.from_dict(segment, data)})
        return cls(segments={
            name: SegmentMargin.from_dict(name, body)
            for name, body in data.items()
            if isinstance(body, Mapping)
        })


# ============================================================
# PORTFOLIO
# ============================================================

@dataclass
class Holding:
    """Long-term equity holding."""

    tradingsymbol: str
    exchange: str
    instrument_token: int
    isin: Optional[str] = None
    product: Optional[str] = None
    quantity: int = 0
    t1_quantity: int = 0
    average_price: Optional[Decimal] = None
    last_price: Optional[Decimal] = None
    close_price: Optional[Decimal] = None
    pnl: Optional[Decimal] = None
    day_change: Optional[Decimal] = None
    day_change_percentage: Optional[Decimal] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Holding":
        data = _mapping(data, "Holding")
        return cls(
            tradingsymbol=data.get("tradingsymbol", ""),
            exchange=data.get("exchange", ""),
            instrument_token=_int(data, "instrument_token", required=True),
            isin=data.get("isin"),
            product=data.get("product"),
            quantity=_int(data, "quantity"),
            t1_quantity=_int(data, "t1_quantity"),
            average_price=_decimal(data, "average_price"),
            last_price=_decimal(data, "last_price"),
            close_price=_decimal(data, "close_price"),
            pnl=_decimal(data, "pnl"),
            day_change=_decimal(data, "day_change"),
            day_change_percentage=_decimal(data, "day_change_percentage"),
            raw=dict(data),
        )


@dataclass
class Position:
    """Intraday or carry-forward position."""

    tradingsymbol: str
    exchange: str
    instrument_token: int
    product: Optional[str] = None
    quantity: int = 0
    overnight_quantity: int = 0
    multiplier: Optional[Decimal] = None
    average_price: Optional[Decimal] = None
    close_price: Optional[Decimal] = None
    last_price: Optional[Decimal] = None
    value: Optional[Decimal] = None
    pnl: Optional[Decimal] = None
    m2m: Optional[Decimal] = None
    unrealised: Optional[Decimal] = None
    realised: Optional[Decimal] = None
    buy_quantity: int = 0
    buy_price: Optional[Decimal] = None
    sell_quantity: int = 0
    sell_price: Optional[Decimal] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Position":
        data = _mapping(data, "Position")
        return cls(
            tradingsymbol=data.get("tradingsymbol", ""),
            exchange=data.get("exchange", ""),
            instrument_token=_int(data, "instrument_token", required=True),
            product=data.get("product"),
            quantity=_int(data, "quantity"),
            overnight_quantity=_int(data, "overnight_quantity"),
            multiplier=_decimal(data, "multiplier"),
            average_price=_decimal(data, "average_price"),
            close_price=_decimal(data, "close_price"),
            last_price=_decimal(data, "last_price"),
            value=_decimal(data, "value"),
            pnl=_decimal(data, "pnl"),
            m2m=_decimal(data, "m2m"),
            unrealised=_decimal(data, "unrealised"),
            realised=_decimal(data, "realised"),
            buy_quantity=_int(data, "buy_quantity"),
            buy_price=_decimal(data, "buy_price"),
            sell_quantity=_int(data, "sell_quantity"),
            sell_price=_decimal(data, "sell_price"),
            raw=dict(data),
        )


@dataclass
class Positions:
    """Net and day-wise position books."""

    net: List[Position] = field(default_factory=list)
    day: List[Position] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Positions":
        data = _mapping(data, "Positions")
        return cls(
            net=[Position.from_dict(p) for p in _list(data, "net")],
            day=[Position.from_dict(p) for p in _list(data, "day")],
        )


# ============================================================
# ORDERS / TRADES
# ============================================================

@dataclass
class Order:
    """One entry of the order book or an order's history."""

    order_id: str
    status: Optional[str] = None
    status_message: Optional[str] = None
    parent_order_id: Optional[str] = None
    exchange_order_id: Optional[str] = None
    order_timestamp: Optional[str] = None
    exchange_timestamp: Optional[str] = None
    variety: Optional[str] = None
    exchange: Optional[str] = None
    tradingsymbol: Optional[str] = None
    instrument_token: int = 0
    order_type: Optional[str] = None
    transaction_type: Optional[str] = None
    validity: Optional[str] = None
    product: Optional[str] = None
    quantity: int = 0
    disclosed_quantity: int = 0
    price: Optional[Decimal] = None
    trigger_price: Optional[Decimal] = None
    average_price: Optional[Decimal] = None
    filled_quantity: int = 0
    pending_quantity: int = 0
    cancelled_quantity: int = 0
    tag: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Order":
        data = _mapping(data, "Order")
        return cls(
            order_id=str(data.get("order_id", "")),
            status=data.get("status"),
            status_message=data.get("status_message"),
            parent_order_id=_str(data.get("parent_order_id")),
            exchange_order_id=_str(data.get("exchange_order_id")),
            order_timestamp=_str(data.get("order_timestamp")),
            exchange_timestamp=_str(data.get("exchange_timestamp")),
            variety=data.get("variety"),
            exchange=data.get("exchange"),
            tradingsymbol=data.get("tradingsymbol"),
            instrument_token=_int(data, "instrument_token"),
            order_type=data.get("order_type"),
            transaction_type=data.get("transaction_type"),
            validity=data.get("validity"),
            product=data.get("product"),
            quantity=_int(data, "quantity"),
            disclosed_quantity=_int(data, "disclosed_quantity"),
            price=_decimal(data, "price"),
            trigger_price=_decimal(data, "trigger_price"),
            average_price=_decimal(data, "average_price"),
            filled_quantity=_int(data, "filled_quantity"),
            pending_quantity=_int(data, "pending_quantity"),
            cancelled_quantity=_int(data, "cancelled_quantity"),
            tag=_str(data.get("tag")),
            raw=dict(data),
        )


@dataclass
class Trade:
    """An executed fill."""

    trade_id: str
    order_id: str
    exchange_order_id: Optional[str] = None
    tradingsymbol: Optional[str] = None
    exchange: Optional[str] = None
    instrument_token: int = 0
    product: Optional[str] = None
    transaction_type: Optional[str] = None
    quantity: int = 0
    average_price: Optional[Decimal] = None
    fill_timestamp: Optional[str] = None
    exchange_timestamp: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Trade":
        data = _mapping(data, "Trade")
        return cls(
            trade_id=str(data.get("trade_id", "")),
            order_id=str(data.get("order_id", "")),
            exchange_order_id=_str(data.get("exchange_order_id")),
            tradingsymbol=data.get("tradingsymbol"),
            exchange=data.get("exchange"),
            instrument_token=_int(data, "instrument_token"),
            product=data.get("product"),
            transaction_type=data.get("transaction_type"),
            quantity=_int(data, "quantity"),
            average_price=_decimal(data, "average_price"),
            fill_timestamp=_str(data.get("fill_timestamp")),
            exchange_timestamp=_str(data.get("exchange_timestamp")),
            raw=dict(data),
        )


# ============================================================
# MARKET DATA
# ============================================================

@dataclass
class Instrument:
    """One row of the instrument dump."""

    instrument_token: int
    exchange_token: int
    tradingsymbol: str
    name: Optional[str] = None
    last_price: Optional[Decimal] = None
    expiry: Optional[str] = None
    strike: Optional[Decimal] = None
    tick_size: Optional[Decimal] = None
    lot_size: int = 0
    instrument_type: Optional[str] = None
    segment: Optional[str] = None
    exchange: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Instrument":
        data = _mapping(data, "Instrument")
        return cls(
            instrument_token=_int(data, "instrument_token", required=True),
            exchange_token=_int(data, "exchange_token"),
            tradingsymbol=data.get("tradingsymbol", ""),
            name=_str(data.get("name")),
            last_price=_decimal(data, "last_price"),
            expiry=_str(data.get("expiry")),
            strike=_decimal(data, "strike"),
            tick_size=_decimal(data, "tick_size"),
            lot_size=_int(data, "lot_size"),
            instrument_type=_str(data.get("instrument_type")),
            segment=_str(data.get("segment")),
            exchange=_str(data.get("exchange")),
            raw=dict(data),
        )


@dataclass
class TriggerRange:
    """Allowed trigger price band for one instrument."""

    instrument: str
    instrument_token: int = 0
    lower: Optional[Decimal] = None
    upper: Optional[Decimal] = None
    percentage: Optional[Decimal] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, instrument: str, data: Mapping[str, Any]) -> "TriggerRange":
        data = _mapping(data, "TriggerRange")
        return cls(
            instrument=instrument,
            instrument_token=_int(data, "instrument_token"),
            lower=_decimal(data, "lower"),
            upper=_decimal(data, "upper"),
            percentage=_decimal(data, "percentage"),
            raw=dict(data),
        )


# ============================================================
# MUTUAL FUNDS
# ============================================================

@dataclass
class MFOrder:
    """Mutual fund order."""

    order_id: str
    tradingsymbol: Optional[str] = None
    status: Optional[str] = None
    status_message: Optional[str] = None
    exchange_order_id: Optional[str] = None
    folio: Optional[str] = None
    fund: Optional[str] = None
    order_timestamp: Optional[str] = None
    exchange_timestamp: Optional[str] = None
    settlement_id: Optional[str] = None
    transaction_type: Optional[str] = None
    variety: Optional[str] = None
    purchase_type: Optional[str] = None
    quantity: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    last_price: Optional[Decimal] = None
    average_price: Optional[Decimal] = None
    placed_by: Optional[str] = None
    tag: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MFOrder":
        data = _mapping(data, "MFOrder")
        return cls(
            order_id=str(data.get("order_id", "")),
            tradingsymbol=data.get("tradingsymbol"),
            status=data.get("status"),
            status_message=_str(data.get("status_message")),
            exchange_order_id=_str(data.get("exchange_order_id")),
            folio=_str(data.get("folio")),
            fund=data.get("fund"),
            order_timestamp=_str(data.get("order_timestamp")),
            exchange_timestamp=_str(data.get("exchange_timestamp")),
            settlement_id=_str(data.get("settlement_id")),
            transaction_type=data.get("transaction_type"),
            variety=data.get("variety"),
            purchase_type=data.get("purchase_type"),
            quantity=_decimal(data, "quantity"),
            amount=_decimal(data, "amount"),
            last_price=_decimal(data, "last_price"),
            average_price=_decimal(data, "average_price"),
            placed_by=_str(data.get("placed_by")),
            tag=_str(data.get("tag")),
            raw=dict(data),
        )


@dataclass
class MFInstrument:
    """One row of the mutual fund instrument dump."""

    tradingsymbol: str
    amc: Optional[str] = None
    name: Optional[str] = None
    purchase_allowed: bool = False
    redemption_allowed: bool = False
    minimum_purchase_amount: Optional[Decimal] = None
    purchase_amount_multiplier: Optional[Decimal] = None
    minimum_additional_purchase_amount: Optional[Decimal] = None
    minimum_redemption_quantity: Optional[Decimal] = None
    redemption_quantity_multiplier: Optional[Decimal] = None
    dividend_type: Optional[str] = None
    scheme_type: Optional[str] = None
    plan: Optional[str] = None
    settlement_type: Optional[str] = None
    last_price: Optional[Decimal] = None
    last_price_date: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MFInstrument":
        data = _mapping(data, "MFInstrument")
        return cls(
            tradingsymbol=data.get("tradingsymbol", ""),
            amc=_str(data.get("amc")),
            name=_str(data.get("name")),
            purchase_allowed=_bool(data.get("purchase_allowed")),
            redemption_allowed=_bool(data.get("redemption_allowed")),
            minimum_purchase_amount=_decimal(data, "minimum_purchase_amount"),
            purchase_amount_multiplier=_decimal(data, "purchase_amount_multiplier"),
            minimum_additional_purchase_amount=_decimal(data, "minimum_additional_purchase_amount"),
            minimum_redemption_quantity=_decimal(data, "minimum_redemption_quantity"),
            redemption_quantity_multiplier=_decimal(data, "redemption_quantity_multiplier"),
            dividend_type=_str(data.get("dividend_type")),
            scheme_type=_str(data.get("scheme_type")),
            plan=_str(data.get("plan")),
            settlement_type=_str(data.get("settlement_type")),
            last_price=_decimal(data, "last_price"),
            last_price_date=_str(data.get("last_price_date")),
            raw=dict(data),
        )

"""
Kite Client - KiteConnect.

============================================================
PURPOSE
============================================================
Async client for the Kite Connect v3 REST API.

AUTHENTICATION FLOW:
1. login_url() - send the user to the login page
2. The redirect carries a request_token
3. generate_session(request_token, api_secret) - stores the
   access token on the shared credential store
4. Call any endpoint

CONCURRENCY:
clone() returns a handle sharing the credential store, the
transport pool and the metrics. Handles may be used from
concurrent tasks; responses are never shared between calls.

============================================================
USAGE
============================================================
```python
async with KiteConnect("api_key") as kite:
    print(kite.login_url())
    session = await kite.generate_session(request_token, api_secret)

    holdings, positions = await asyncio.gather(
        kite.holdings(),
        kite.clone().positions(),
    )
```

============================================================
"""

import copy
import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar, Union

from . import endpoints
from .config import ClientConfig
from .decoder import unwrap_data
from .errors import AuthenticationError, ParseError
from .metrics import RequestMetrics
from .pipeline import Params, RequestPipeline
from .session import ClientIdentity
from .transport.base import ExecutionTarget
from .transport.factory import TargetFactory
from .types import (
    EndpointDescriptor,
    Holding,
    Instrument,
    Margins,
    MFInstrument,
    MFOrder,
    Order,
    Positions,
    Trade,
    TriggerRange,
    UserProfile,
    UserSession,
)


logger = logging.getLogger(__name__)


R = TypeVar("R")

SessionExpiryHook = Callable[[], Any]


# ============================================================
# CONSTANTS
# ============================================================

# Products
PRODUCT_MIS = "MIS"
PRODUCT_CNC = "CNC"
PRODUCT_NRML = "NRML"

# Order types
ORDER_TYPE_MARKET = "MARKET"
ORDER_TYPE_LIMIT = "LIMIT"
ORDER_TYPE_SLM = "SL-M"
ORDER_TYPE_SL = "SL"

# Varieties
VARIETY_REGULAR = "regular"
VARIETY_AMO = "amo"
VARIETY_CO = "co"
VARIETY_ICEBERG = "iceberg"

# Transaction types
TRANSACTION_TYPE_BUY = "BUY"
TRANSACTION_TYPE_SELL = "SELL"

# Validity
VALIDITY_DAY = "DAY"
VALIDITY_IOC = "IOC"

# Margin segments
MARGIN_EQUITY = "equity"
MARGIN_COMMODITY = "commodity"


class KiteConnect:
    """
    Main client for the Kite Connect API.

    Every endpoint method is a coroutine returning typed records.
    CSV endpoints return the raw CSV text when running on the
    sandbox target.
    """

    def __init__(
        self,
        api_key: str,
        access_token: str = "",
        config: Optional[ClientConfig] = None,
        target: Optional[ExecutionTarget] = None,
        metrics: Optional[RequestMetrics] = None,
    ):
        """
        Create a client. No network call is made.

        Args:
            api_key: Kite Connect API key
            access_token: Existing access token, or "" to log in later
            config: Client configuration (defaults to ClientConfig())
            target: Execution target (defaults to config.target)
            metrics: Shared metrics collector
        """
        self._config = config or ClientConfig()
        self._identity = ClientIdentity.create(api_key, access_token)
        self._target = target or TargetFactory.create(self._config.target, self._config)
        self._pipeline = RequestPipeline(
            identity=self._identity,
            target=self._target,
            config=self._config,
            metrics=metrics,
        )
        self._session_expiry_hook: Optional[SessionExpiryHook] = None

    # --------------------------------------------------------
    # PROPERTIES
    # --------------------------------------------------------

    @property
    def api_key(self) -> str:
        return self._identity.api_key

    @property
    def access_token(self) -> str:
        return self._identity.credentials.access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._identity.credentials.refresh_token

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def target(self) -> ExecutionTarget:
        return self._target

    @property
    def pipeline(self) -> RequestPipeline:
        return self._pipeline

    @property
    def metrics(self) -> RequestMetrics:
        return self._pipeline.metrics

    @property
    def session_expiry_hook(self) -> Optional[SessionExpiryHook]:
        return self._session_expiry_hook

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    def clone(self) -> "KiteConnect":
        """
        New handle over the same credentials, transport and metrics.

        The session expiry hook is copied by value.
        """
        return copy.copy(self)

    async def close(self) -> None:
        """Close the shared transport. Affects every clone."""
        await self._target.close()

    async def __aenter__(self) -> "KiteConnect":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"KiteConnect(api_key={self.api_key!r}, target={self._target.name})"

    # --------------------------------------------------------
    # SESSION
    # --------------------------------------------------------

    def set_session_expiry_hook(self, hook: SessionExpiryHook) -> None:
        """
        Register a callable run when the service rejects the token.

        May be a plain function or a coroutine function. The
        AuthenticationError is still raised after it runs.
        """
        if not callable(hook):
            raise TypeError("Session expiry hook must be callable")
        self._session_expiry_hook = hook

    def set_access_token(self, access_token: str) -> None:
        """Set the token directly. Not validated until the next call."""
        self._identity.credentials.set_access_token(access_token)

    def login_url(self) -> str:
        return self._identity.login_url(self._config.login_url, self._config.api_version)

    async def generate_session(self, request_token: str, api_secret: str) -> UserSession:
        """
        Exchange a request token for an access token.

        The api_secret only feeds the checksum; it is never sent.
        On success the access (and refresh) token is stored on the
        shared credential store. On failure nothing changes.
        """
        checksum = self._identity.checksum(request_token, api_secret)
        data = await self._request_data(
            endpoints.SESSION_TOKEN,
            params={
                "api_key": self.api_key,
                "request_token": request_token,
                "checksum": checksum,
            },
        )

        session = self._parse(endpoints.SESSION_TOKEN, UserSession.from_dict, data)
        if not session.access_token:
            raise ParseError(
                "Session response carries no access_token",
                context=endpoints.SESSION_TOKEN.name,
            )

        self._identity.credentials.update(session.access_token, session.refresh_token)
        logger.info(f"Session generated for user {session.user_id}")
        return session

    async def invalidate_access_token(self, access_token: Optional[str] = None) -> bool:
        """
        Kill a session on the server (the current one by default).

        The local credential store is left as is; reset it with
        set_access_token("") if the handle should stop using it.
        """
        data = await self._request_data(
            endpoints.SESSION_INVALIDATE,
            params={
                "api_key": self.api_key,
                "access_token": access_token or self.access_token,
            },
        )
        return bool(data)

    async def renew_access_token(
        self,
        api_secret: str,
        refresh_token: Optional[str] = None,
    ) -> UserSession:
        """Get a fresh access token using a refresh token."""
        refresh_token = refresh_token or self.refresh_token
        if not refresh_token:
            raise ValueError("No refresh token available")

        data = await self._request_data(
            endpoints.SESSION_RENEW,
            params={
                "api_key": self.api_key,
                "refresh_token": refresh_token,
                "checksum": self._identity.checksum(refresh_token, api_secret),
            },
        )

        session = self._parse(endpoints.SESSION_RENEW, UserSession.from_dict, data)
        if not session.access_token:
            raise ParseError(
                "Renewal response carries no access_token",
                context=endpoints.SESSION_RENEW.name,
            )

        self._identity.credentials.update(session.access_token, session.refresh_token)
        return session

    async def invalidate_refresh_token(self, refresh_token: str) -> bool:
        data = await self._request_data(
            endpoints.SESSION_REFRESH_INVALIDATE,
            params={"api_key": self.api_key, "refresh_token": refresh_token},
        )
        return bool(data)

    # --------------------------------------------------------
    # USER
    # --------------------------------------------------------

    async def profile(self) -> UserProfile:
        data = await self._request_data(endpoints.USER_PROFILE)
        return self._parse(endpoints.USER_PROFILE, UserProfile.from_dict, data)

    async def margins(self, segment: Optional[str] = None) -> Margins:
        """Funds and margins, for all segments or just one."""
        if segment:
            data = await self._request_data(
                endpoints.USER_MARGINS_SEGMENT,
                path_params={"segment": segment},
            )
            return self._parse(endpoints.USER_MARGINS_SEGMENT, Margins.from_dict, data, segment)

        data = await self._request_data(endpoints.USER_MARGINS)
        return self._parse(endpoints.USER_MARGINS, Margins.from_dict, data)

    # --------------------------------------------------------
    # PORTFOLIO
    # --------------------------------------------------------

    async def holdings(self) -> List[Holding]:
        data = await self._request_data(endpoints.PORTFOLIO_HOLDINGS)
        return self._records(data, Holding, endpoints.PORTFOLIO_HOLDINGS)

    async def positions(self) -> Positions:
        data = await self._request_data(endpoints.PORTFOLIO_POSITIONS)
        return self._parse(endpoints.PORTFOLIO_POSITIONS, Positions.from_dict, data)

    async def convert_position(
        self,
        exchange: str,
        tradingsymbol: str,
        transaction_type: str,
        position_type: str,
        quantity: int,
        old_product: str,
        new_product: str,
    ) -> bool:
        data = await self._request_data(
            endpoints.PORTFOLIO_POSITIONS_CONVERT,
            params={
                "exchange": exchange,
                "tradingsymbol": tradingsymbol,
                "transaction_type": transaction_type,
                "position_type": position_type,
                "quantity": quantity,
                "old_product": old_product,
                "new_product": new_product,
            },
        )
        return bool(data)

    # --------------------------------------------------------
    # ORDERS
    # --------------------------------------------------------

    async def place_order(
        self,
        variety: str,
        exchange: str,
        tradingsymbol: str,
        transaction_type: str,
        quantity: int,
        product: Optional[str] = None,
        order_type: Optional[str] = None,
        price: Optional[Any] = None,
        validity: Optional[str] = None,
        disclosed_quantity: Optional[int] = None,
        trigger_price: Optional[Any] = None,
        squareoff: Optional[Any] = None,
        stoploss: Optional[Any] = None,
        trailing_stoploss: Optional[Any] = None,
        tag: Optional[str] = None,
    ) -> str:
        """Place an order. Returns the order_id."""
        data = await self._request_data(
            endpoints.ORDER_PLACE,
            path_params={"variety": variety},
            params={
                "variety": variety,
                "exchange": exchange,
                "tradingsymbol": tradingsymbol,
                "transaction_type": transaction_type,
                "quantity": quantity,
                "product": product,
                "order_type": order_type,
                "price": price,
                "validity": validity,
                "disclosed_quantity": disclosed_quantity,
                "trigger_price": trigger_price,
                "squareoff": squareoff,
                "stoploss": stoploss,
                "trailing_stoploss": trailing_stoploss,
                "tag": tag,
            },
        )
        return self._order_id(data, endpoints.ORDER_PLACE)

    async def modify_order(
        self,
        variety: str,
        order_id: str,
        parent_order_id: Optional[str] = None,
        quantity: Optional[int] = None,
        price: Optional[Any] = None,
        order_type: Optional[str] = None,
        trigger_price: Optional[Any] = None,
        validity: Optional[str] = None,
        disclosed_quantity: Optional[int] = None,
    ) -> str:
        data = await self._request_data(
            endpoints.ORDER_MODIFY,
            path_params={"variety": variety, "order_id": order_id},
            params={
                "parent_order_id": parent_order_id,
                "quantity": quantity,
                "price": price,
                "order_type": order_type,
                "trigger_price": trigger_price,
                "validity": validity,
                "disclosed_quantity": disclosed_quantity,
            },
        )
        return self._order_id(data, endpoints.ORDER_MODIFY)

    async def cancel_order(
        self,
        variety: str,
        order_id: str,
        parent_order_id: Optional[str] = None,
    ) -> str:
        data = await self._request_data(
            endpoints.ORDER_CANCEL,
            path_params={"variety": variety, "order_id": order_id},
            params={"parent_order_id": parent_order_id},
        )
        return self._order_id(data, endpoints.ORDER_CANCEL)

    async def exit_order(
        self,
        variety: str,
        order_id: str,
        parent_order_id: Optional[str] = None,
    ) -> str:
        """Exit a cover order. Same call as cancel_order."""
        return await self.cancel_order(variety, order_id, parent_order_id)

    async def orders(self) -> List[Order]:
        data = await self._request_data(endpoints.ORDERS)
        return self._records(data, Order, endpoints.ORDERS)

    async def order_history(self, order_id: str) -> List[Order]:
        """Every state transition of one order."""
        data = await self._request_data(
            endpoints.ORDER_INFO,
            path_params={"order_id": order_id},
        )
        return self._records(data, Order, endpoints.ORDER_INFO)

    async def trades(self) -> List[Trade]:
        data = await self._request_data(endpoints.TRADES)
        return self._records(data, Trade, endpoints.TRADES)

    async def order_trades(self, order_id: str) -> List[Trade]:
        data = await self._request_data(
            endpoints.ORDER_TRADES,
            path_params={"order_id": order_id},
        )
        return self._records(data, Trade, endpoints.ORDER_TRADES)

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def instruments(self, exchange: Optional[str] = None) -> Union[List[Instrument], str]:
        """
        Instrument dump, for all exchanges or one.

        Raw CSV text on the sandbox target.
        """
        if exchange:
            table = await self._request(
                endpoints.INSTRUMENTS_EXCHANGE,
                path_params={"exchange": exchange},
            )
        else:
            table = await self._request(endpoints.INSTRUMENTS)

        if isinstance(table, str):
            return table
        descriptor = endpoints.INSTRUMENTS_EXCHANGE if exchange else endpoints.INSTRUMENTS
        return self._records(table, Instrument, descriptor)

    async def trigger_range(
        self,
        transaction_type: str,
        instruments: List[str],
    ) -> Dict[str, TriggerRange]:
        """Trigger price band per EXCHANGE:TRADINGSYMBOL."""
        data = await self._request_data(
            endpoints.TRIGGER_RANGE,
            params={
                "transaction_type": transaction_type.lower(),
                "instruments": list(instruments),
            },
        )
        if not isinstance(data, Mapping):
            raise ParseError(
                "Expected an object keyed by instrument",
                context=endpoints.TRIGGER_RANGE.name,
            )
        return {
            instrument: self._parse(
                endpoints.TRIGGER_RANGE, TriggerRange.from_dict, instrument, body
            )
            for instrument, body in data.items()
        }

    # --------------------------------------------------------
    # MUTUAL FUNDS
    # --------------------------------------------------------

    async def mf_orders(self, order_id: Optional[str] = None) -> Union[List[MFOrder], MFOrder]:
        """All mutual fund orders, or one order when order_id is given."""
        if order_id:
            data = await self._request_data(
                endpoints.MF_ORDER_INFO,
                path_params={"order_id": order_id},
            )
            return self._parse(endpoints.MF_ORDER_INFO, MFOrder.from_dict, data)

        data = await self._request_data(endpoints.MF_ORDERS)
        return self._records(data, MFOrder, endpoints.MF_ORDERS)

    async def mf_instruments(self) -> Union[List[MFInstrument], str]:
        """Mutual fund instrument dump. Raw CSV text on the sandbox target."""
        table = await self._request(endpoints.MF_INSTRUMENTS)
        if isinstance(table, str):
            return table
        return self._records(table, MFInstrument, endpoints.MF_INSTRUMENTS)

    # --------------------------------------------------------
    # INTERNAL
    # --------------------------------------------------------

    async def _request(
        self,
        descriptor: EndpointDescriptor,
        params: Optional[Params] = None,
        path_params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        try:
            return await self._pipeline.request(descriptor, params, path_params)
        except AuthenticationError as e:
            # status 0 means refused locally, before any request
            if descriptor.requires_auth and e.status:
                await self._run_session_expiry_hook()
            raise

    async def _request_data(
        self,
        descriptor: EndpointDescriptor,
        params: Optional[Params] = None,
        path_params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        payload = await self._request(descriptor, params, path_params)
        return unwrap_data(payload, context=descriptor.name)

    async def _run_session_expiry_hook(self) -> None:
        if self._session_expiry_hook is None:
            return
        logger.warning("Session rejected by server, running session expiry hook")
        try:
            result = self._session_expiry_hook()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Session expiry hook failed")

    @staticmethod
    def _parse(descriptor: EndpointDescriptor, build: Callable[..., R], *args: Any) -> R:
        try:
            return build(*args)
        except ParseError as e:
            raise ParseError(e.message, context=descriptor.name) from e

    @classmethod
    def _records(cls, data: Any, record_cls: Type[R], descriptor: EndpointDescriptor) -> List[R]:
        if not isinstance(data, list):
            raise ParseError(
                f"Expected a list of records, got {type(data).__name__}",
                context=descriptor.name,
            )
        return [cls._parse(descriptor, record_cls.from_dict, item) for item in data]

    @staticmethod
    def _order_id(data: Any, descriptor: EndpointDescriptor) -> str:
        if not isinstance(data, Mapping) or "order_id" not in data:
            raise ParseError("Response carries no order_id", context=descriptor.name)
        return str(data["order_id"])

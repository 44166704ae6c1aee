"""
KiteConnect Client Tests.

============================================================
PURPOSE
============================================================
Session flow and per-endpoint methods over a mock transport.

TEST CATEGORIES:
- Session tests: token exchange, renewal, invalidation
- Credential sharing tests: clones, set_access_token
- Session expiry hook tests
- Endpoint tests: typed records, routes, parameters
- Concurrency tests: independent in-flight requests

============================================================
"""

import asyncio
import hashlib
from decimal import Decimal

import pytest

from kite_client.errors import (
    AuthenticationError,
    ErrorCategory,
    HttpStatusError,
    ParseError,
)
from kite_client.types import Holding, Instrument, MFInstrument, MFOrder, Order


TEST_API_KEY = "test_api_key"


# ============================================================
# SESSION TESTS
# ============================================================

class TestGenerateSession:
    """Tests for generate_session."""

    @pytest.mark.asyncio
    async def test_exchange_stores_tokens(self, anonymous_client, mock_json):
        """Test a successful exchange stores the access token."""
        kite, transport = anonymous_client
        transport.add_response("POST", "/session/token", json_body=mock_json("session_token.json"))

        session = await kite.generate_session("request_token_value", "api_secret_value")

        assert session.user_id == "AB1234"
        assert session.access_token == "fresh_access_token"
        assert kite.access_token == "fresh_access_token"
        assert kite.refresh_token == "refresh_token_value"

    @pytest.mark.asyncio
    async def test_exchange_request_shape(self, anonymous_client, mock_json):
        """Test the form body carries the checksum, never the secret."""
        kite, transport = anonymous_client
        transport.add_response("POST", "/session/token", json_body=mock_json("session_token.json"))

        await kite.generate_session("request_token_value", "api_secret_value")

        request = transport.last_request
        expected_checksum = hashlib.sha256(
            f"{TEST_API_KEY}request_token_valueapi_secret_value".encode()
        ).hexdigest()

        assert request.method == "POST"
        assert request.form["api_key"] == [TEST_API_KEY]
        assert request.form["request_token"] == ["request_token_value"]
        assert request.form["checksum"] == [expected_checksum]
        assert "api_secret" not in request.form
        assert b"api_secret_value" not in request.body
        assert request.header("Authorization") is None
        assert request.header("X-Kite-Version") == "3"

    @pytest.mark.asyncio
    async def test_rejected_exchange_leaves_state(self, anonymous_client, mock_json):
        """Test a 403 raises and stores nothing."""
        kite, transport = anonymous_client
        transport.add_response(
            "POST", "/session/token",
            json_body=mock_json("token_exception.json"),
            status=403,
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await kite.generate_session("bad_request_token", "api_secret_value")

        assert exc_info.value.status == 403
        assert exc_info.value.error_type == "TokenException"
        assert kite.access_token == ""
        assert kite.refresh_token is None

    @pytest.mark.asyncio
    async def test_response_without_token_raises(self, anonymous_client):
        """Test a success envelope lacking access_token."""
        kite, transport = anonymous_client
        transport.add_response("POST", "/session/token", json_body={"status": "success", "data": {"user_id": "X"}})

        with pytest.raises(ParseError):
            await kite.generate_session("rt", "secret")

        assert kite.access_token == ""

    @pytest.mark.asyncio
    async def test_null_data_raises_parse_error(self, anonymous_client):
        """Test a success envelope whose data is null."""
        kite, transport = anonymous_client
        transport.add_response("POST", "/session/token", json_body={"status": "success", "data": None})

        with pytest.raises(ParseError) as exc_info:
            await kite.generate_session("rt", "secret")

        assert exc_info.value.category == ErrorCategory.PARSE
        assert exc_info.value.context == "session.token"
        assert kite.access_token == ""

    @pytest.mark.asyncio
    async def test_session_visible_to_clones(self, anonymous_client, mock_json):
        """Test clones made before the exchange see the new token."""
        kite, transport = anonymous_client
        clone = kite.clone()
        transport.add_response("POST", "/session/token", json_body=mock_json("session_token.json"))
        transport.add_response("GET", "/portfolio/holdings", json_body=mock_json("holdings.json"))

        await kite.generate_session("rt", "secret")
        await clone.holdings()

        assert transport.last_request.header("Authorization") == (
            f"token {TEST_API_KEY}:fresh_access_token"
        )


class TestSessionLifecycle:
    """Tests for invalidation and renewal."""

    @pytest.mark.asyncio
    async def test_invalidate_access_token(self, client):
        """Test invalidation sends the token and keeps local state."""
        kite, transport = client
        transport.add_response("DELETE", "/session/token", json_body={"status": "success", "data": True})

        assert await kite.invalidate_access_token() is True

        request = transport.last_request
        assert request.method == "DELETE"
        assert request.query["access_token"] == ["test_access_token"]
        assert request.query["api_key"] == [TEST_API_KEY]
        assert kite.access_token == "test_access_token"

    @pytest.mark.asyncio
    async def test_invalidate_other_token(self, client):
        """Test invalidating an explicit token."""
        kite, transport = client
        transport.add_response("DELETE", "/session/token", json_body={"status": "success", "data": True})

        await kite.invalidate_access_token("other_token")

        assert transport.last_request.query["access_token"] == ["other_token"]

    @pytest.mark.asyncio
    async def test_renew_access_token(self, client):
        """Test renewal checksum uses the refresh token."""
        kite, transport = client
        transport.add_response(
            "POST", "/session/refresh_token",
            json_body={"status": "success", "data": {"access_token": "renewed", "refresh_token": "r2"}},
        )

        session = await kite.renew_access_token("api_secret_value", refresh_token="r1")

        expected_checksum = hashlib.sha256(
            f"{TEST_API_KEY}r1api_secret_value".encode()
        ).hexdigest()
        assert transport.last_request.form["checksum"] == [expected_checksum]
        assert transport.last_request.form["refresh_token"] == ["r1"]
        assert session.access_token == "renewed"
        assert kite.access_token == "renewed"
        assert kite.refresh_token == "r2"

    @pytest.mark.asyncio
    async def test_renew_without_refresh_token(self, client):
        """Test renewal needs a refresh token."""
        kite, transport = client

        with pytest.raises(ValueError):
            await kite.renew_access_token("api_secret_value")

        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_renew_with_list_data(self, client):
        """Test a renewal response whose data is not an object."""
        kite, transport = client
        transport.add_response("POST", "/session/refresh_token", json_body={"status": "success", "data": ["x"]})

        with pytest.raises(ParseError) as exc_info:
            await kite.renew_access_token("api_secret_value", refresh_token="r1")

        assert exc_info.value.context == "session.renew"
        assert kite.access_token == "test_access_token"

    @pytest.mark.asyncio
    async def test_invalidate_refresh_token(self, client):
        """Test refresh token invalidation."""
        kite, transport = client
        transport.add_response("DELETE", "/session/refresh_token", json_body={"status": "success", "data": True})

        assert await kite.invalidate_refresh_token("r1") is True
        assert transport.last_request.query["refresh_token"] == ["r1"]


# ============================================================
# CREDENTIAL SHARING TESTS
# ============================================================

class TestCredentials:
    """Tests for access token handling."""

    def test_login_url(self, anonymous_client):
        """Test login URL from the client."""
        kite, _ = anonymous_client

        assert kite.login_url() == (
            f"https://kite.trade/connect/login?api_key={TEST_API_KEY}&v=3"
        )

    @pytest.mark.asyncio
    async def test_set_access_token_used_on_next_request(self, anonymous_client, mock_json):
        """Test set_access_token without any network call."""
        kite, transport = anonymous_client
        transport.add_response("GET", "/portfolio/holdings", json_body=mock_json("holdings.json"))

        kite.set_access_token("abc")
        assert transport.requests == []

        await kite.holdings()

        assert transport.last_request.header("Authorization") == f"token {TEST_API_KEY}:abc"

    @pytest.mark.asyncio
    async def test_missing_token_no_io(self, anonymous_client):
        """Test authenticated calls fail locally without a token."""
        kite, transport = anonymous_client

        with pytest.raises(AuthenticationError) as exc_info:
            await kite.holdings()

        assert exc_info.value.status == 0
        assert transport.requests == []

    def test_clone_shares_credentials(self, client):
        """Test a token set through a clone is seen by the handle it was cloned from."""
        kite, _ = client
        clone = kite.clone()

        clone.set_access_token("from_clone")

        assert kite.access_token == "from_clone"
        assert clone is not kite
        assert clone.pipeline is kite.pipeline

    @pytest.mark.asyncio
    async def test_context_manager_closes_transport(self, client):
        """Test async with closes the shared transport."""
        kite, transport = client

        async with kite:
            pass

        assert transport.closed is True


# ============================================================
# SESSION EXPIRY HOOK TESTS
# ============================================================

class TestSessionExpiryHook:
    """Tests for the session expiry hook."""

    @pytest.mark.asyncio
    async def test_sync_hook_called_then_error_raised(self, client, mock_json):
        """Test a plain function hook."""
        kite, transport = client
        transport.add_response(
            "GET", "/portfolio/holdings",
            json_body=mock_json("token_exception.json"),
            status=403,
        )
        calls = []
        kite.set_session_expiry_hook(lambda: calls.append("expired"))

        with pytest.raises(AuthenticationError):
            await kite.holdings()

        assert calls == ["expired"]

    @pytest.mark.asyncio
    async def test_async_hook_awaited(self, client, mock_json):
        """Test a coroutine function hook."""
        kite, transport = client
        transport.add_response(
            "GET", "/user/profile",
            json_body=mock_json("token_exception.json"),
            status=403,
        )
        calls = []

        async def hook():
            calls.append("expired")

        kite.set_session_expiry_hook(hook)

        with pytest.raises(AuthenticationError):
            await kite.profile()

        assert calls == ["expired"]

    @pytest.mark.asyncio
    async def test_failing_hook_keeps_authentication_error(self, client, mock_json, caplog):
        """Test a hook that raises is logged and the original error surfaces."""
        kite, transport = client
        transport.add_response(
            "GET", "/portfolio/holdings",
            json_body=mock_json("token_exception.json"),
            status=403,
        )

        def hook():
            raise RuntimeError("relogin failed")

        kite.set_session_expiry_hook(hook)

        with pytest.raises(AuthenticationError) as exc_info:
            await kite.holdings()

        assert exc_info.value.status == 403
        assert "Session expiry hook failed" in caplog.text

    @pytest.mark.asyncio
    async def test_hook_not_called_for_other_errors(self, client):
        """Test input errors do not trigger the hook."""
        kite, transport = client
        transport.add_response(
            "GET", "/portfolio/holdings",
            json_body={"status": "error", "message": "bad", "error_type": "InputException"},
            status=400,
        )
        calls = []
        kite.set_session_expiry_hook(lambda: calls.append("expired"))

        with pytest.raises(HttpStatusError):
            await kite.holdings()

        assert calls == []

    @pytest.mark.asyncio
    async def test_hook_not_called_for_missing_token(self, anonymous_client):
        """Test a locally refused request does not trigger the hook."""
        kite, _ = anonymous_client
        calls = []
        kite.set_session_expiry_hook(lambda: calls.append("expired"))

        with pytest.raises(AuthenticationError):
            await kite.holdings()

        assert calls == []

    def test_hook_must_be_callable(self, client):
        """Test registering a non-callable."""
        kite, _ = client

        with pytest.raises(TypeError):
            kite.set_session_expiry_hook("not callable")


# ============================================================
# ENDPOINT TESTS
# ============================================================

class TestUserAndPortfolio:
    """Tests for user and portfolio endpoints."""

    @pytest.mark.asyncio
    async def test_profile(self, client):
        """Test profile record."""
        kite, transport = client
        transport.add_response(
            "GET", "/user/profile",
            json_body={"status": "success", "data": {"user_id": "AB1234", "exchanges": ["NSE"], "meta": {"x": 1}}},
        )

        profile = await kite.profile()

        assert profile.user_id == "AB1234"
        assert profile.exchanges == ["NSE"]
        assert profile.raw["meta"] == {"x": 1}

    @pytest.mark.asyncio
    async def test_margins_all_segments(self, client, mock_json):
        """Test margins keyed by segment."""
        kite, transport = client
        transport.add_response("GET", "/user/margins", json_body=mock_json("margins.json"))

        margins = await kite.margins()

        assert "equity" in margins
        assert "commodity" in margins
        assert margins["equity"].net == Decimal("99725.05")
        assert margins["equity"].available["cash"] == Decimal("245431.6")

    @pytest.mark.asyncio
    async def test_margins_one_segment(self, client, mock_json):
        """Test margins for one segment."""
        kite, transport = client
        equity = mock_json("margins.json")["data"]["equity"]
        transport.add_response("GET", "/user/margins/equity", json_body={"status": "success", "data": equity})

        margins = await kite.margins("equity")

        assert transport.last_request.path == "/user/margins/equity"
        assert margins["equity"].enabled is True
        assert "commodity" not in margins

    @pytest.mark.asyncio
    async def test_holdings(self, client, mock_json):
        """Test holdings records with Decimal money values."""
        kite, transport = client
        transport.add_response("GET", "/portfolio/holdings", json_body=mock_json("holdings.json"))

        holdings = await kite.holdings()

        assert len(holdings) == 2
        assert all(isinstance(h, Holding) for h in holdings)
        assert holdings[0].instrument_token == 408065
        assert holdings[0].average_price == Decimal("1450.25")
        assert holdings[1].t1_quantity == 1

    @pytest.mark.asyncio
    async def test_holdings_not_a_list(self, client):
        """Test a malformed holdings payload."""
        kite, transport = client
        transport.add_response("GET", "/portfolio/holdings", json_body={"status": "success", "data": {"x": 1}})

        with pytest.raises(ParseError):
            await kite.holdings()

    @pytest.mark.asyncio
    async def test_holdings_scalar_items(self, client):
        """Test a holdings list of scalars."""
        kite, transport = client
        transport.add_response("GET", "/portfolio/holdings", json_body={"status": "success", "data": [1, 2]})

        with pytest.raises(ParseError) as exc_info:
            await kite.holdings()

        assert exc_info.value.context == "portfolio.holdings"

    @pytest.mark.asyncio
    async def test_holding_without_instrument_token(self, client):
        """Test a holding missing its instrument token."""
        kite, transport = client
        transport.add_response(
            "GET", "/portfolio/holdings",
            json_body={"status": "success", "data": [{"tradingsymbol": "INFY", "exchange": "NSE"}]},
        )

        with pytest.raises(ParseError, match="instrument_token"):
            await kite.holdings()

    @pytest.mark.asyncio
    async def test_profile_not_an_object(self, client):
        """Test a profile payload that is a list."""
        kite, transport = client
        transport.add_response("GET", "/user/profile", json_body={"status": "success", "data": []})

        with pytest.raises(ParseError) as exc_info:
            await kite.profile()

        assert exc_info.value.context == "user.profile"

    @pytest.mark.asyncio
    async def test_margins_segment_not_an_object(self, client):
        """Test a single-segment margins payload that is null."""
        kite, transport = client
        transport.add_response("GET", "/user/margins/equity", json_body={"status": "success", "data": None})

        with pytest.raises(ParseError) as exc_info:
            await kite.margins("equity")

        assert exc_info.value.context == "user.margins.segment"

    @pytest.mark.asyncio
    async def test_positions_malformed_books(self, client):
        """Test position books that are not lists of objects."""
        kite, transport = client
        transport.add_response(
            "GET", "/portfolio/positions",
            json_body={"status": "success", "data": {"net": ["NIFTY"], "day": []}},
        )

        with pytest.raises(ParseError) as exc_info:
            await kite.positions()

        assert exc_info.value.context == "portfolio.positions"

        transport.add_response(
            "GET", "/portfolio/positions",
            json_body={"status": "success", "data": {"net": {"x": 1}, "day": []}},
        )

        with pytest.raises(ParseError):
            await kite.positions()

    @pytest.mark.asyncio
    async def test_positions(self, client, mock_json):
        """Test net and day books."""
        kite, transport = client
        transport.add_response("GET", "/portfolio/positions", json_body=mock_json("positions.json"))

        positions = await kite.positions()

        assert len(positions.net) == 1
        assert positions.day == []
        assert positions.net[0].pnl == Decimal("1237.5")

    @pytest.mark.asyncio
    async def test_convert_position(self, client):
        """Test position conversion is a PUT with a form body."""
        kite, transport = client
        transport.add_response("PUT", "/portfolio/positions", json_body={"status": "success", "data": True})

        result = await kite.convert_position(
            exchange="NSE",
            tradingsymbol="INFY",
            transaction_type="BUY",
            position_type="day",
            quantity=1,
            old_product="MIS",
            new_product="CNC",
        )

        assert result is True
        assert transport.last_request.form["new_product"] == ["CNC"]


class TestOrders:
    """Tests for order endpoints."""

    @pytest.mark.asyncio
    async def test_place_order(self, client):
        """Test order placement omits unset parameters."""
        kite, transport = client
        transport.add_response(
            "POST", "/orders/regular",
            json_body={"status": "success", "data": {"order_id": "151220000000000"}},
        )

        order_id = await kite.place_order(
            variety="regular",
            exchange="NSE",
            tradingsymbol="INFY",
            transaction_type="BUY",
            quantity=1,
            product="CNC",
            order_type="MARKET",
        )

        form = transport.last_request.form
        assert order_id == "151220000000000"
        assert form["tradingsymbol"] == ["INFY"]
        assert form["quantity"] == ["1"]
        assert "price" not in form
        assert "trigger_price" not in form

    @pytest.mark.asyncio
    async def test_place_order_rejected(self, client):
        """Test an order rejection surfaces with its category."""
        kite, transport = client
        transport.add_response(
            "POST", "/orders/regular",
            json_body={"status": "error", "message": "Insufficient funds", "error_type": "MarginException"},
            status=400,
        )

        with pytest.raises(HttpStatusError) as exc_info:
            await kite.place_order("regular", "NSE", "INFY", "BUY", 1000)

        assert exc_info.value.category == ErrorCategory.MARGIN

    @pytest.mark.asyncio
    async def test_modify_order(self, client):
        """Test modification route and method."""
        kite, transport = client
        transport.add_response(
            "PUT", "/orders/regular/151220000000000",
            json_body={"status": "success", "data": {"order_id": "151220000000000"}},
        )

        order_id = await kite.modify_order("regular", "151220000000000", quantity=2, price=1500)

        assert order_id == "151220000000000"
        assert transport.last_request.form == {"quantity": ["2"], "price": ["1500"]}

    @pytest.mark.asyncio
    async def test_cancel_and_exit_order(self, client):
        """Test cancellation is a DELETE with no unset parameters."""
        kite, transport = client
        transport.add_response(
            "DELETE", "/orders/co/151220000000000",
            json_body={"status": "success", "data": {"order_id": "151220000000000"}},
        )

        assert await kite.cancel_order("co", "151220000000000") == "151220000000000"
        assert await kite.exit_order("co", "151220000000000") == "151220000000000"
        assert transport.last_request.query == {}
        assert len(transport.requests_for("/orders/co/151220000000000")) == 2

    @pytest.mark.asyncio
    async def test_orders(self, client, mock_json):
        """Test order book records."""
        kite, transport = client
        transport.add_response("GET", "/orders", json_body=mock_json("orders.json"))

        orders = await kite.orders()

        assert isinstance(orders[0], Order)
        assert orders[0].status == "COMPLETE"
        assert orders[0].parent_order_id is None
        assert orders[0].price == Decimal("1450.25")

    @pytest.mark.asyncio
    async def test_order_history(self, client, mock_json):
        """Test order history route."""
        kite, transport = client
        transport.add_response("GET", "/orders/151220000000000", json_body=mock_json("orders.json"))

        history = await kite.order_history("151220000000000")

        assert len(history) == 1
        assert transport.last_request.path == "/orders/151220000000000"

    @pytest.mark.asyncio
    async def test_order_history_escapes_order_id(self, client, mock_json):
        """Test path parameters cannot reach a different route."""
        kite, transport = client
        transport.add_response("GET", "/orders/a%2Ftrades", json_body=mock_json("orders.json"))
        transport.add_response("GET", "/orders/a/trades", json_body={"status": "success", "data": []})

        history = await kite.order_history("a/trades")

        assert len(history) == 1
        assert transport.last_request.path == "/orders/a%2Ftrades"
        assert transport.requests_for("/orders/a/trades") == []

    @pytest.mark.asyncio
    async def test_invalid_price_raises(self, client):
        """Test a present but unreadable numeric field."""
        kite, transport = client
        order = {"order_id": "1", "price": "abc"}
        transport.add_response("GET", "/orders", json_body={"status": "success", "data": [order]})

        with pytest.raises(ParseError, match="price") as exc_info:
            await kite.orders()

        assert exc_info.value.context == "orders"

    @pytest.mark.asyncio
    async def test_invalid_quantity_raises(self, client):
        """Test a present but unreadable integer field."""
        kite, transport = client
        order = {"order_id": "1", "quantity": "ten"}
        transport.add_response("GET", "/orders", json_body={"status": "success", "data": [order]})

        with pytest.raises(ParseError, match="quantity"):
            await kite.orders()

    @pytest.mark.asyncio
    async def test_absent_numeric_fields(self, client):
        """Test absent or empty numeric fields stay unset."""
        kite, transport = client
        order = {"order_id": "1", "price": "", "trigger_price": None}
        transport.add_response("GET", "/orders", json_body={"status": "success", "data": [order]})

        orders = await kite.orders()

        assert orders[0].price is None
        assert orders[0].trigger_price is None
        assert orders[0].average_price is None
        assert orders[0].quantity == 0

    @pytest.mark.asyncio
    async def test_trades(self, client):
        """Test trade book and per-order trades."""
        kite, transport = client
        trade = {"trade_id": "T1", "order_id": "O1", "quantity": 5, "average_price": 10.5}
        transport.add_response("GET", "/trades", json_body={"status": "success", "data": [trade]})
        transport.add_response("GET", "/orders/O1/trades", json_body={"status": "success", "data": [trade]})

        trades = await kite.trades()
        order_trades = await kite.order_trades("O1")

        assert trades[0].trade_id == "T1"
        assert trades[0].average_price == Decimal("10.5")
        assert order_trades[0].quantity == 5


class TestMarketData:
    """Tests for instrument and trigger range endpoints."""

    @pytest.mark.asyncio
    async def test_instruments_native(self, client, mock_text):
        """Test instrument dump parsed into records."""
        kite, transport = client
        transport.add_response("GET", "/instruments", text=mock_text("instruments.csv"))

        instruments = await kite.instruments()

        assert len(instruments) == 3
        assert isinstance(instruments[0], Instrument)
        assert instruments[0].instrument_token == 408065
        assert instruments[0].tick_size == Decimal("0.05")
        assert instruments[2].lot_size == 25

    @pytest.mark.asyncio
    async def test_instruments_for_exchange(self, client, mock_text):
        """Test per-exchange route."""
        kite, transport = client
        transport.add_response("GET", "/instruments/NSE", text=mock_text("instruments.csv"))

        await kite.instruments("NSE")

        assert transport.last_request.path == "/instruments/NSE"

    @pytest.mark.asyncio
    async def test_instruments_sandbox_raw(self, sandbox_client, mock_text):
        """Test sandbox target returns the CSV body byte-for-byte."""
        kite, transport = sandbox_client
        text = mock_text("instruments.csv")
        transport.add_response("GET", "/instruments", text=text)

        result = await kite.instruments()

        assert result == text

    @pytest.mark.asyncio
    async def test_malformed_csv(self, client):
        """Test a malformed dump raises ParseError."""
        kite, transport = client
        transport.add_response("GET", "/instruments", text="a,b\n1,2,3\n")

        with pytest.raises(ParseError):
            await kite.instruments()

    @pytest.mark.asyncio
    async def test_instrument_rows_validated(self, client):
        """Test unreadable or missing instrument fields in the dump."""
        kite, transport = client
        transport.add_response(
            "GET", "/instruments/NSE",
            text="instrument_token,tradingsymbol,lot_size\n408065,INFY,one\n",
        )
        transport.add_response("GET", "/instruments/BSE", text="instrument_token,tradingsymbol\n,INFY\n")

        with pytest.raises(ParseError, match="lot_size") as exc_info:
            await kite.instruments("NSE")

        assert exc_info.value.context == "market.instruments.exchange"

        with pytest.raises(ParseError, match="instrument_token"):
            await kite.instruments("BSE")

    @pytest.mark.asyncio
    async def test_trigger_range_body_not_an_object(self, client):
        """Test a trigger range entry that is not an object."""
        kite, transport = client
        transport.add_response(
            "GET", "/instruments/trigger_range",
            json_body={"status": "success", "data": {"NSE:INFY": 5}},
        )

        with pytest.raises(ParseError) as exc_info:
            await kite.trigger_range("BUY", ["NSE:INFY"])

        assert exc_info.value.context == "market.trigger_range"

    @pytest.mark.asyncio
    async def test_trigger_range(self, client):
        """Test repeated instrument keys and keyed records."""
        kite, transport = client
        transport.add_response(
            "GET", "/instruments/trigger_range",
            json_body={
                "status": "success",
                "data": {
                    "NSE:INFY": {"instrument_token": 408065, "lower": 1075.6, "upper": 1184.1, "percentage": 5},
                    "NSE:RELIANCE": {"instrument_token": 738561, "lower": 2300.0, "upper": 2600.0, "percentage": 5},
                },
            },
        )

        ranges = await kite.trigger_range("BUY", ["NSE:INFY", "NSE:RELIANCE"])

        query = transport.last_request.query
        assert query["instruments"] == ["NSE:INFY", "NSE:RELIANCE"]
        assert query["transaction_type"] == ["buy"]
        assert ranges["NSE:INFY"].lower == Decimal("1075.6")
        assert ranges["NSE:RELIANCE"].instrument_token == 738561


class TestMutualFunds:
    """Tests for mutual fund endpoints."""

    @pytest.mark.asyncio
    async def test_mf_orders(self, client):
        """Test list and single order forms."""
        kite, transport = client
        order = {"order_id": "MF1", "tradingsymbol": "INF846K01DP8", "amount": 5000, "status": "OPEN"}
        transport.add_response("GET", "/mf/orders", json_body={"status": "success", "data": [order]})
        transport.add_response("GET", "/mf/orders/MF1", json_body={"status": "success", "data": order})

        orders = await kite.mf_orders()
        single = await kite.mf_orders("MF1")

        assert orders[0].amount == Decimal("5000")
        assert isinstance(single, MFOrder)
        assert single.order_id == "MF1"

    @pytest.mark.asyncio
    async def test_mf_instruments(self, client, mock_text):
        """Test mutual fund dump parsed into records."""
        kite, transport = client
        transport.add_response("GET", "/mf/instruments", text=mock_text("mf_instruments.csv"))

        instruments = await kite.mf_instruments()

        assert isinstance(instruments[0], MFInstrument)
        assert instruments[0].tradingsymbol == "INF846K01DP8"
        assert instruments[0].purchase_allowed is True
        assert instruments[0].last_price == Decimal("50.12")


# ============================================================
# CONCURRENCY TESTS
# ============================================================

class TestConcurrency:
    """Tests for concurrent requests through cloned handles."""

    @pytest.mark.asyncio
    async def test_out_of_order_completion(self, client, mock_json):
        """Test each call gets its own response regardless of finish order."""
        kite, transport = client
        transport.add_response("GET", "/portfolio/holdings", json_body=mock_json("holdings.json"), delay_seconds=0.15)
        transport.add_response("GET", "/portfolio/positions", json_body=mock_json("positions.json"), delay_seconds=0.05)
        transport.add_response(
            "GET", "/user/profile",
            json_body={"status": "success", "data": {"user_id": "AB1234"}},
            delay_seconds=0.1,
        )

        finished = []

        async def track(name, coro):
            result = await coro
            finished.append(name)
            return result

        holdings, positions, profile = await asyncio.gather(
            track("holdings", kite.clone().holdings()),
            track("positions", kite.clone().positions()),
            track("profile", kite.clone().profile()),
        )

        assert finished == ["positions", "profile", "holdings"]
        assert holdings[0].tradingsymbol == "INFY"
        assert positions.net[0].tradingsymbol == "NIFTY24DECFUT"
        assert profile.user_id == "AB1234"
        assert kite.metrics.get_summary()["requests"]["success"] == 3

    @pytest.mark.asyncio
    async def test_token_change_applies_to_later_requests(self, client, mock_json):
        """Test a token set mid-flight does not alter an in-flight request."""
        kite, transport = client
        transport.add_response("GET", "/portfolio/holdings", json_body=mock_json("holdings.json"), delay_seconds=0.05)

        in_flight = asyncio.ensure_future(kite.holdings())
        await asyncio.sleep(0)
        kite.clone().set_access_token("rotated")
        await in_flight
        await kite.holdings()

        first, second = transport.requests_for("/portfolio/holdings")
        assert first.header("Authorization") == f"token {TEST_API_KEY}:test_access_token"
        assert second.header("Authorization") == f"token {TEST_API_KEY}:rotated"


# ============================================================
# RUN TESTS
# ============================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""
Response Decoder Tests.

============================================================
PURPOSE
============================================================
JSON and CSV decoding, per execution target capability, and
typed record construction from the decoded trees.

============================================================
"""

import pytest

from kite_client.decoder import ResponseDecoder, unwrap_data
from kite_client.errors import ErrorCategory, ParseError
from kite_client.transport.native import CsvTableParser
from kite_client.types import (
    Holding,
    Margins,
    MFInstrument,
    Order,
    Positions,
    RawResponse,
    ResponseFormat,
    UserProfile,
)


URL = "https://api.kite.test/instruments"


def raw(body: bytes, url: str = URL) -> RawResponse:
    return RawResponse(status=200, headers={}, body=body, url=url)


# ============================================================
# JSON TESTS
# ============================================================

class TestJsonDecoding:
    """Tests for JSON bodies."""

    def test_valid_json(self):
        """Test a success envelope decodes to a tree."""
        decoder = ResponseDecoder()

        payload = decoder.decode(raw(b'{"status": "success", "data": [1, 2]}'), ResponseFormat.JSON)

        assert payload == {"status": "success", "data": [1, 2]}

    def test_truncated_json_raises(self):
        """Test a truncated body is a parse error, never partial data."""
        decoder = ResponseDecoder()

        with pytest.raises(ParseError) as exc_info:
            decoder.decode(raw(b'{"status": "succ'), ResponseFormat.JSON)

        assert exc_info.value.category == ErrorCategory.PARSE
        assert exc_info.value.context == URL

    def test_empty_body_raises(self):
        """Test an empty JSON body."""
        with pytest.raises(ParseError):
            ResponseDecoder().decode_json(raw(b""))

    def test_non_utf8_raises(self):
        """Test undecodable bytes."""
        with pytest.raises(ParseError):
            ResponseDecoder().decode_json(raw(b"\xff\xfe{}"))


# ============================================================
# CSV TESTS
# ============================================================

class TestCsvDecoding:
    """Tests for CSV bodies."""

    def test_raw_text_without_parser(self, mock_text):
        """Test CSV stays byte-for-byte raw without a table parser."""
        text = mock_text("instruments.csv")

        result = ResponseDecoder().decode(raw(text.encode("utf-8")), ResponseFormat.CSV)

        assert result == text

    def test_rows_with_parser(self, mock_text):
        """Test CSV parsed into header-keyed rows."""
        decoder = ResponseDecoder(CsvTableParser())

        rows = decoder.decode(raw(mock_text("instruments.csv").encode("utf-8")), ResponseFormat.CSV)

        assert len(rows) == 3
        assert rows[0]["instrument_token"] == "408065"
        assert rows[0]["tradingsymbol"] == "INFY"
        assert rows[2]["expiry"] == "2024-12-26"

    def test_quoted_fields(self):
        """Test quoted values with embedded delimiters."""
        decoder = ResponseDecoder(CsvTableParser())

        rows = decoder.decode_csv(raw(b'name,segment\n"RELIANCE, IND",NSE\n'))

        assert rows == [{"name": "RELIANCE, IND", "segment": "NSE"}]

    def test_extra_field_raises(self):
        """Test a row with too many fields."""
        decoder = ResponseDecoder(CsvTableParser())

        with pytest.raises(ParseError) as exc_info:
            decoder.decode_csv(raw(b"a,b\n1,2,3\n"))

        assert exc_info.value.context == URL

    def test_missing_field_raises(self):
        """Test a row with too few fields."""
        decoder = ResponseDecoder(CsvTableParser())

        with pytest.raises(ParseError):
            decoder.decode_csv(raw(b"a,b,c\n1,2\n"))

    def test_header_only(self):
        """Test a dump with no rows."""
        decoder = ResponseDecoder(CsvTableParser())

        assert decoder.decode_csv(raw(b"a,b\n")) == []


# ============================================================
# ENVELOPE TESTS
# ============================================================

class TestUnwrapData:
    """Tests for unwrap_data."""

    def test_returns_data(self):
        """Test data member is returned."""
        assert unwrap_data({"status": "success", "data": {"x": 1}}) == {"x": 1}

    def test_falsy_data_returned(self):
        """Test data may be false or empty."""
        assert unwrap_data({"data": False}) is False
        assert unwrap_data({"data": []}) == []

    def test_missing_data_raises(self):
        """Test envelope without data."""
        with pytest.raises(ParseError) as exc_info:
            unwrap_data({"status": "success"}, context="user.profile")

        assert exc_info.value.context == "user.profile"

    def test_non_object_raises(self):
        """Test a non-object payload."""
        with pytest.raises(ParseError):
            unwrap_data([1, 2, 3])


# ============================================================
# RECORD TESTS
# ============================================================

class TestRecordParsing:
    """Tests for typed record construction from decoded trees."""

    def test_non_object_rejected(self):
        """Test records refuse null, lists and scalars."""
        for data in (None, [], [1, 2], "x", 3):
            with pytest.raises(ParseError) as exc_info:
                UserProfile.from_dict(data)

            assert exc_info.value.category == ErrorCategory.PARSE
            assert exc_info.value.context == "UserProfile"

    def test_unreadable_decimal_names_field(self):
        """Test a present but unreadable decimal."""
        with pytest.raises(ParseError, match="'price'"):
            Order.from_dict({"order_id": "1", "price": "abc"})

    def test_non_finite_decimal_rejected(self):
        """Test NaN and infinity are not accepted as prices."""
        for value in ("NaN", "Infinity"):
            with pytest.raises(ParseError, match="last_price"):
                Holding.from_dict({"instrument_token": 1, "last_price": value})

    def test_empty_values_stay_unset(self):
        """Test absent and empty fields become None or the default."""
        row = {"tradingsymbol": "INF846K01DP8", "last_price": "", "minimum_purchase_amount": None}

        instrument = MFInstrument.from_dict(row)

        assert instrument.last_price is None
        assert instrument.minimum_purchase_amount is None
        assert instrument.purchase_allowed is False

    def test_required_instrument_token(self):
        """Test a holding without an instrument token."""
        with pytest.raises(ParseError, match="instrument_token"):
            Holding.from_dict({"tradingsymbol": "INFY", "exchange": "NSE"})

    def test_list_fields_checked(self):
        """Test list-valued fields must be lists."""
        with pytest.raises(ParseError, match="exchanges"):
            UserProfile.from_dict({"user_id": "AB1", "exchanges": "NSE"})

        with pytest.raises(ParseError, match="net"):
            Positions.from_dict({"net": {"a": 1}})

    def test_margin_breakdown_checked(self):
        """Test margin breakdowns must be objects of numbers."""
        with pytest.raises(ParseError):
            Margins.from_dict({"available": [1]}, segment="equity")

        with pytest.raises(ParseError, match="cash"):
            Margins.from_dict({"equity": {"available": {"cash": "lots"}}})


# ============================================================
# RUN TESTS
# ============================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v"])

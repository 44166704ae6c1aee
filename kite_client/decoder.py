"""
Kite Client - Response Decoder.

============================================================
PURPOSE
============================================================
Turns a successful RawResponse into a value.

- JSON endpoints: parsed JSON tree; invalid or truncated
  bodies raise ParseError, never a partial result
- CSV endpoints: raw text when no table parser is injected
  (sandbox target), otherwise parsed rows (native target)

The format comes from the endpoint descriptor; bodies are
never sniffed.

============================================================
"""

import json
import logging
from typing import Any, Optional

from .errors import ParseError
from .transport.base import TableParser
from .types import RawResponse, ResponseFormat


logger = logging.getLogger(__name__)


class ResponseDecoder:
    """Stateless decoder bound to a target's table parser."""

    def __init__(self, table_parser: Optional[TableParser] = None):
        self._table_parser = table_parser

    def decode(self, raw: RawResponse, expected_format: ResponseFormat) -> Any:
        if expected_format == ResponseFormat.JSON:
            return self.decode_json(raw)
        if expected_format == ResponseFormat.CSV:
            return self.decode_csv(raw)
        raise ValueError(f"Unknown response format: {expected_format}")

    def decode_json(self, raw: RawResponse) -> Any:
        try:
            text = raw.body.decode("utf-8")
            return json.loads(text)
        except (UnicodeDecodeError, ValueError) as e:
            raise ParseError(
                f"Invalid JSON response: {e}",
                context=raw.url,
                preview=raw.text[:200],
            )

    def decode_csv(self, raw: RawResponse) -> Any:
        try:
            text = raw.body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(
                f"CSV response is not UTF-8: {e}",
                context=raw.url,
                preview=raw.text[:200],
            )

        if self._table_parser is None:
            return text

        try:
            return self._table_parser.parse(text)
        except ParseError as e:
            if e.context == "csv":
                e.context = raw.url
            raise


def unwrap_data(payload: Any, context: Optional[str] = None) -> Any:
    """
    Return the `data` member of a success envelope.

    Raises:
        ParseError: if payload is not an envelope carrying data
    """
    if not isinstance(payload, dict) or "data" not in payload:
        raise ParseError(
            "Response envelope has no 'data' member",
            context=context,
            preview=json.dumps(payload, default=str)[:200],
        )
    return payload["data"]

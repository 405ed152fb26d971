# tests/test_codec.py
"""
Wire Codec Tests - Protobuf and JSON Shapes

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- cantorx.adapters.wire (codec and schema)
"""
import pytest

from cantorx.adapters.wire import codec
from cantorx.adapters.wire.schema import QuoteMessage, StreamRatesRequestMessage, ReplayRequestMessage
from cantorx.domain.errors import SerializationError
from cantorx.domain.models import HistoryPoint, Quote, Source

QUOTE = Quote(source_id=7, currency="EUR", buy=4.3, sell=4.3456, fetched_at=1_700_000_000, change_24h=2.5)


class TestQuoteEncoding:
    def test_protobuf_fields(self):
        message = QuoteMessage()
        message.ParseFromString(codec.encode_quote(QUOTE))

        assert message.buy_rate == "4.300"
        assert message.sell_rate == "4.346"
        assert message.cantor_id == 7
        assert message.currency == "EUR"
        assert message.fetched_at == 1_700_000_000
        assert message.change_24h == pytest.approx(2.5)

    def test_decode_restores_rates_at_three_digits(self):
        decoded = codec.decode_quote(codec.encode_quote(QUOTE))

        assert decoded.sell == pytest.approx(4.346)
        assert decoded.buy_rate == "4.300"
        assert decoded.change_24h == pytest.approx(2.5)

    def test_unknown_change_is_zero_on_the_wire(self):
        quote = Quote(source_id=1, currency="USD", buy=3.95, sell=4.01, fetched_at=1)

        assert QuoteMessage.FromString(codec.encode_quote(quote)).change_24h == 0.0
        assert codec.decode_quote(codec.encode_quote(quote)).change_24h is None
        assert codec.quote_to_dict(quote)["change_24h"] == 0.0

    def test_decode_garbage(self):
        with pytest.raises(SerializationError):
            codec.decode_quote(b"\xff\xff\xff\xff")

    def test_decode_malformed_rate(self):
        message = QuoteMessage(buy_rate="n/a", sell_rate="4.000", cantor_id=1, currency="EUR")

        with pytest.raises(SerializationError):
            codec.decode_quote(message.SerializeToString())

    def test_json_shape(self):
        assert codec.quote_to_dict(QUOTE) == {
            "buy_rate": "4.300",
            "sell_rate": "4.346",
            "cantor_id": 7,
            "currency": "EUR",
            "fetched_at": 1_700_000_000,
            "change_24h": 2.5,
        }


class TestOtherShapes:
    def test_history_dict(self):
        points = [HistoryPoint(time=3600, buy_rate=4.1, sell_rate=4.2)]

        assert codec.history_to_dict("EUR", points) == {
            "points": [{"time": 3600, "buy_rate": 4.1, "sell_rate": 4.2}],
            "currency": "EUR",
        }

    def test_cantor_dict_hides_base_url(self):
        source = Source(id=1, name="a", display_name="A", base_url="https://secret.example", strategy="C1")

        data = codec.cantor_to_dict(source)
        assert "base_url" not in data
        assert data["units"] == 1

    def test_quote_list(self):
        data = codec.quote_list_to_dict([QUOTE])

        assert data["results"][0]["cantor_id"] == 7
        assert codec.quote_list_to_bytes([]) == b""


class TestRequests:
    def test_stream_request(self):
        payload = StreamRatesRequestMessage(currencies=["EUR", "USD"]).SerializeToString()

        assert codec.decode_stream_request(payload) == ["EUR", "USD"]
        assert codec.decode_stream_request(b"") == []

    def test_replay_request_since_zero_means_unset(self):
        assert codec.decode_replay_request(ReplayRequestMessage(currency="EUR").SerializeToString()) == ("EUR", None)
        assert codec.decode_replay_request(
            ReplayRequestMessage(currency="EUR", since=42).SerializeToString()
        ) == ("EUR", 42)

    def test_invalid_request(self):
        with pytest.raises(SerializationError):
            codec.decode_rate_request(b"\x0a\xff")


class TestFraming:
    def test_frame_header(self):
        assert codec.frame(b"abc") == b"\x00\x00\x00\x00\x03abc"

    def test_unframe(self):
        data = codec.frame(b"one") + codec.frame(b"") + codec.frame(b"three")

        assert codec.unframe(data) == [b"one", b"", b"three"]

    def test_truncated(self):
        with pytest.raises(SerializationError):
            codec.unframe(codec.frame(b"abc")[:-1])
        with pytest.raises(SerializationError):
            codec.unframe(b"\x00\x00")

import json
from unittest.mock import Mock

import pytest

from core import Candle
from data.history import InMemoryDataSource, JsonFileDataSource, filter_range
from data.kraken import KrakenAPIError, KrakenDataSource

from conftest import HOUR_MS, START_TS, make_candles


def test_filter_range_sorts_and_includes_bounds():
    candles = make_candles([1.0, 2.0, 3.0, 4.0])
    selected = filter_range(reversed(candles), candles[1].timestamp, candles[2].timestamp)
    assert selected == candles[1:3]


def test_filter_range_accepts_dates():
    candles = make_candles([1.0, 2.0], start=1704067200000)  # 2024-01-01T00:00Z
    assert filter_range(candles, "2024-01-01", "2024-01-01 00:30") == candles[:1]


def test_in_memory_source():
    candles = make_candles([1.0, 2.0, 3.0])
    source = InMemoryDataSource(candles)
    assert source.load("ANY/USD", "1h", START_TS, START_TS + HOUR_MS) == candles[:2]


def test_json_source_reads_rows(tmp_path):
    rows = [[START_TS + i * HOUR_MS, 100, 101, 99, 100.5, 3] for i in range(5)]
    (tmp_path / "BTC_USD_1h.json").write_text(json.dumps(rows))
    source = JsonFileDataSource(tmp_path)

    candles = source.load("BTC/USD", "1h", START_TS + HOUR_MS, START_TS + 3 * HOUR_MS)

    assert len(candles) == 3
    assert candles[0] == Candle(START_TS + HOUR_MS, 100.0, 101.0, 99.0, 100.5, 3.0)


def test_json_source_reads_objects(tmp_path):
    rows = [{"timestamp": START_TS, "open": 1, "high": 2, "low": 1, "close": 2}]
    (tmp_path / "ETH_USD_4h.json").write_text(json.dumps(rows))
    candles = JsonFileDataSource(tmp_path).load("ETH/USD", "4h", START_TS, START_TS)
    assert candles == [Candle(START_TS, 1.0, 2.0, 1.0, 2.0, 0.0)]


def test_json_source_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        JsonFileDataSource(tmp_path).load("BTC/USD", "1h", START_TS, START_TS)


def test_json_source_save_merges(tmp_path):
    source = JsonFileDataSource(tmp_path / "data")
    first = make_candles([1.0, 2.0, 3.0])
    source.save("BTC/USD", "1h", first)
    updated = make_candles([5.0, 6.0], start=START_TS + 2 * HOUR_MS)
    path = source.save("BTC/USD", "1h", updated)

    assert path.name == "BTC_USD_1h.json"
    candles = source.load("BTC/USD", "1h", START_TS, START_TS + 10 * HOUR_MS)
    assert [c.close for c in candles] == [1.0, 2.0, 5.0, 6.0]


def kraken_response(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def test_kraken_pair_names():
    assert KrakenDataSource.pair_for("BTC/USD") == "XBTUSD"
    assert KrakenDataSource.pair_for("ETH/EUR") == "ETHEUR"


def test_kraken_fetch_ohlcv():
    session = Mock()
    session.get.return_value = kraken_response({
        "error": [],
        "result": {
            "XXBTZUSD": [
                [1700000000, "100.0", "110.0", "95.0", "105.0", "102.0", "12.5", 40],
                [1700003600, "105.0", "108.0", "101.0", "107.0", "104.0", "8.0", 22],
            ],
            "last": 1700003600,
        },
    })
    source = KrakenDataSource(session=session, request_delay=0)

    candles = source.fetch_ohlcv("BTC/USD", "1h", since=START_TS)

    assert candles[0] == Candle(START_TS, 100.0, 110.0, 95.0, 105.0, 12.5)
    assert candles[1].timestamp == START_TS + HOUR_MS
    _, kwargs = session.get.call_args
    assert kwargs["params"] == {"pair": "XBTUSD", "interval": 60, "since": 1700000000}


def test_kraken_error_payload():
    session = Mock()
    session.get.return_value = kraken_response({"error": ["EQuery:Unknown asset pair"]})
    source = KrakenDataSource(session=session)

    with pytest.raises(KrakenAPIError):
        source.fetch_ohlcv("FOO/BAR", "1h")


def test_kraken_invalid_interval():
    with pytest.raises(ValueError):
        KrakenDataSource(session=Mock()).fetch_ohlcv("BTC/USD", "2h")


def test_kraken_load_filters_range():
    session = Mock()
    session.get.return_value = kraken_response({
        "error": [],
        "result": {
            "XXBTZUSD": [
                [1700000000 + i * 3600, "1", "1", "1", "1", "1", "1", 1] for i in range(5)
            ],
            "last": 0,
        },
    })
    source = KrakenDataSource(session=session, request_delay=0)

    candles = source.load("BTC/USD", "1h", START_TS + HOUR_MS, START_TS + 2 * HOUR_MS)

    assert [c.timestamp for c in candles] == [START_TS + HOUR_MS, START_TS + 2 * HOUR_MS]
    assert session.get.call_count == 1


def test_kraken_current_price():
    session = Mock()
    session.get.return_value = kraken_response({
        "error": [],
        "result": {"XXBTZUSD": {"c": ["43210.5", "0.01"]}},
    })
    assert KrakenDataSource(session=session).get_current_price("BTC/USD") == 43210.5

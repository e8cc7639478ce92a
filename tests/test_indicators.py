import math

import pytest

import indicators


def test_sma():
    assert indicators.sma([1, 2, 3, 4, 5], 3) == pytest.approx([2, 3, 4])


def test_ema_seeded_with_sma():
    assert indicators.ema([2, 4, 6, 8], 2) == pytest.approx([3, 5, 7])


def test_short_input_gives_empty_list():
    assert indicators.sma([1, 2], 3) == []
    assert indicators.ema([1, 2], 3) == []
    assert indicators.rsi([1, 2, 3], 14) == []
    assert indicators.macd(list(range(20))) == []
    assert indicators.bollinger_bands([1, 2, 3], 20) == []


def test_invalid_period():
    with pytest.raises(ValueError):
        indicators.sma([1, 2, 3], 0)
    with pytest.raises(ValueError):
        indicators.macd(list(range(50)), 26, 12, 9)


def test_rsi_bounds():
    rising = [float(i) for i in range(1, 31)]
    falling = list(reversed(rising))

    up = indicators.rsi(rising, 14)
    down = indicators.rsi(falling, 14)

    assert len(up) == len(rising) - 14
    assert all(v == pytest.approx(100) for v in up)
    assert all(v == pytest.approx(0) for v in down)


def test_rsi_flat_series_is_nan():
    values = indicators.rsi([10.0] * 20, 14)
    assert all(math.isnan(v) for v in values)


def test_rsi_mixed_series_in_range():
    values = indicators.rsi([44, 44.3, 44.1, 43.6, 44.3, 44.8, 45.1, 45.4, 45.8, 46.1,
                             45.9, 46.3, 45.6, 46.3, 46.3, 46.0, 46.4, 46.2], 14)
    assert len(values) == 4
    assert all(0 < v < 100 for v in values)


def test_macd_length_and_histogram():
    values = [100 + math.sin(i / 3) * 5 for i in range(40)]
    result = indicators.macd(values, 12, 26, 9)

    assert len(result) == 40 - 26 - 9 + 2
    for point in result:
        assert point["histogram"] == pytest.approx(point["macd"] - point["signal"])


def test_bollinger_bands_constant_series():
    bands = indicators.bollinger_bands([5.0] * 25, 20)
    assert len(bands) == 6
    assert bands[0] == pytest.approx({"upper": 5.0, "middle": 5.0, "lower": 5.0})


def test_bollinger_bands_symmetry():
    bands = indicators.bollinger_bands([1, 2, 3, 4, 5], 5, 2.0)
    band = bands[0]
    assert band["middle"] == pytest.approx(3)
    assert band["upper"] - band["middle"] == pytest.approx(band["middle"] - band["lower"])
    assert band["upper"] == pytest.approx(3 + 2 * math.sqrt(2))

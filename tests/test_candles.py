import json
from decimal import Decimal

import pytest

from tradebot.binance.candles import Candle, parse_candles
from tradebot.ticker import Ticker

ROW = [
    1499040000000,
    "0.01634790",
    "0.80000000",
    "0.01575800",
    "0.01577100",
    "148976.11427815",
    1499644799999,
    "2434.19055334",
    308,
    "1756.87402397",
    "28.46694368",
    "0",
]


def test_candle_from_json():
    candle = Candle.from_json(list(ROW))
    assert candle.low_price == Decimal("0.01575800")
    assert candle.high_price == Decimal("0.80000000")
    assert candle.open_price == Decimal("0.01634790")
    assert candle.close_price == Decimal("0.01577100")
    assert candle.start_time == 1499040000000
    assert candle.close_time == 1499644799999


def test_candle_from_json_ignores_volume_and_count():
    candle = Candle.from_json(list(ROW))
    assert candle.trade_count == 0
    assert candle.volume == Decimal(0)


def test_candle_to_json():
    candle = Candle(
        start_time=1499040000000,
        open_price=Decimal("0.01634790"),
        high_price=Decimal("0.80000000"),
        low_price=Decimal("0.01575800"),
        close_price=Decimal("0.01577100"),
        volume=Decimal("148976.11427815"),
        close_time=1499644799999,
        trade_count=308,
    )
    text = json.dumps(candle.to_json(), separators=(",", ":"))
    assert text == (
        '[1499040000000,"0.01634790","0.80000000","0.01575800","0.01577100",'
        '"148976.11427815",1499644799999,"148976.11427815",308,"","",""]'
    )


def test_candle_round_trip_prices():
    candle = Candle.from_json(list(ROW))
    again = Candle.from_json(candle.to_json())
    assert again == candle


@pytest.mark.parametrize(
    "value",
    [
        {"open": 1},
        ROW[:10],
        [-1] + ROW[1:],
        ["1499040000000"] + ROW[1:],
        ROW[:1] + [0.5] + ROW[2:],
        ROW[:3] + ["abc"] + ROW[4:],
    ],
)
def test_candle_from_json_errors(value):
    with pytest.raises(ValueError):
        Candle.from_json(value)


def test_parse_candles_skips_bad_rows():
    candles = parse_candles([list(ROW), "bad", ROW[:5]])
    assert len(candles) == 1
    assert candles[0].start_time == 1499040000000


def test_to_candle_event():
    ticker = Ticker("BTC", "USDT")
    event = Candle.from_json(list(ROW)).to_candle_event(ticker)
    assert event.ticker == ticker
    assert event.closed is True
    assert event.low_price == Decimal("0.01575800")
    assert event.close_time == 1499644799999
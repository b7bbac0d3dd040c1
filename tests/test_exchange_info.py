from decimal import Decimal

import pytest

from tradebot.binance.exchange_info import (
    ExchangeInfo,
    LotSize,
    Notional,
    PriceFilter,
    SymbolInfo,
    parse_filter,
    parse_filters,
)
from tradebot.ticker import Ticker

PRICE = {
    "filterType": "PRICE_FILTER",
    "minPrice": "0.01000000",
    "maxPrice": "1000000.00000000",
    "tickSize": "0.01000000",
}
LOT = {
    "filterType": "LOT_SIZE",
    "minQty": "0.00001000",
    "maxQty": "9000.00000000",
    "stepSize": "0.00001000",
}
NOTIONAL = {
    "filterType": "NOTIONAL",
    "minNotional": "5.00000000",
    "applyMinToMarket": True,
}
OTHER = {"filterType": "ICEBERG_PARTS", "limit": 10}


def _symbol(base="BTC", quote="USDT"):
    return {
        "symbol": base + quote,
        "baseAsset": base,
        "quoteAsset": quote,
        "baseAssetPrecision": 8,
        "quoteAssetPrecision": 8,
        "filters": [PRICE, OTHER, LOT, NOTIONAL],
    }


def test_parse_price_filter():
    assert parse_filter(PRICE) == PriceFilter(
        Decimal("0.01000000"), Decimal("1000000.00000000"), Decimal("0.01000000")
    )


def test_parse_lot_size_and_notional():
    assert parse_filter(LOT) == LotSize(
        Decimal("0.00001000"), Decimal("9000.00000000"), Decimal("0.00001000")
    )
    assert parse_filter(NOTIONAL) == Notional(Decimal("5.00000000"))


def test_parse_unknown_filter_raises():
    with pytest.raises(ValueError):
        parse_filter(OTHER)


def test_parse_filter_missing_field_raises():
    with pytest.raises(ValueError):
        parse_filter({"filterType": "LOT_SIZE", "minQty": "1"})


def test_parse_filters_skips_unknown():
    filters = parse_filters([PRICE, OTHER, NOTIONAL])
    assert filters == [parse_filter(PRICE), parse_filter(NOTIONAL)]


def test_symbol_info_from_dict():
    info = SymbolInfo.from_dict(_symbol())
    assert info.symbol == "BTCUSDT"
    assert info.base_asset == "BTC"
    assert info.quote_asset == "USDT"
    assert info.base_asset_precision == 8
    assert [type(f) for f in info.filters] == [PriceFilter, LotSize, Notional]


def test_symbol_info_missing_field_raises():
    data = _symbol()
    del data["baseAsset"]
    with pytest.raises(ValueError):
        SymbolInfo.from_dict(data)


def test_exchange_info_find():
    info = ExchangeInfo.from_dict({"symbols": [_symbol(), _symbol("ETH", "USDT")]})
    found = info.find(Ticker("ETH", "USDT"))
    assert found is not None and found.symbol == "ETHUSDT"
    assert info.find(Ticker("BTC", "EUR")) is None


def test_exchange_info_malformed_raises():
    with pytest.raises(ValueError):
        ExchangeInfo.from_dict({"timezone": "UTC"})
from decimal import Decimal

from tradebot.portfolio import Asset, Portfolio


def portfolio_with(*symbols):
    return Portfolio(assets={s: Asset(s, Decimal("1")) for s in symbols})


def test_next_prev_symbol_empty():
    assert Portfolio().next_prev_symbol(None, True) is None


def test_next_prev_symbol_starts_at_first_sorted():
    portfolio = portfolio_with("USDT", "ETH", "BTC")
    assert portfolio.next_prev_symbol(None, True) == "BTC"
    assert portfolio.next_prev_symbol(None, False) == "BTC"


def test_next_symbol_advances():
    portfolio = portfolio_with("USDT", "ETH", "BTC")
    assert portfolio.next_prev_symbol("BTC", True) == "ETH"
    assert portfolio.next_prev_symbol("USDT", True) == "BTC"


def test_prev_symbol_wraps():
    portfolio = portfolio_with("USDT", "ETH", "BTC")
    assert portfolio.next_prev_symbol("BTC", False) == "USDT"
    assert portfolio.next_prev_symbol("USDT", False) == "ETH"


def test_unknown_current_symbol_goes_to_first():
    portfolio = portfolio_with("ETH", "BTC")
    assert portfolio.next_prev_symbol("DOGE", True) == "BTC"


def test_full_cycle_returns_to_start():
    portfolio = portfolio_with("A", "B", "C", "D")
    symbol = "B"
    for _ in portfolio.assets:
        symbol = portfolio.next_prev_symbol(symbol, True)
    assert symbol == "B"


def test_update_creates_missing_asset():
    portfolio = Portfolio()
    portfolio.update_asset_amount("USDT", Decimal("250.5"), Decimal("1"))
    asset = portfolio.assets["USDT"]
    assert asset.amount == Decimal("250.5")
    assert asset.value == Decimal("250.5")
    assert portfolio.value == Decimal("250.5")


def test_update_existing_asset_back_to_nothing():
    portfolio = Portfolio()
    portfolio.update_asset_amount("BTC", Decimal("0.3"), Decimal("100"))
    portfolio.update_asset_amount("BTC", Decimal("-0.3"), Decimal("100"))
    assert portfolio.assets["BTC"].amount == Decimal(0)
    assert portfolio.value == portfolio.assets["BTC"].value


def test_total_is_sum_of_asset_values():
    portfolio = Portfolio()
    portfolio.update_asset_amount("USDT", Decimal("10"), Decimal("1"))
    portfolio.update_asset_amount("BTC", Decimal("0.5"), Decimal("30"))
    portfolio.update_asset_amount("ETH", Decimal("2"), Decimal("7"))
    assert portfolio.value == sum(a.value for a in portfolio.assets.values())


def test_update_value_skips_unvalued_assets():
    portfolio = Portfolio(
        assets={
            "BTC": Asset("BTC", Decimal("1")),
            "USDT": Asset("USDT", Decimal("5"), Decimal("5")),
        }
    )
    portfolio.update_value()
    assert portfolio.value == Decimal("5")


def test_str_unknown_total_and_symbols():
    portfolio = portfolio_with("BTC", "USDT")
    text = str(portfolio)
    assert "?" in text.splitlines()[0]
    assert "BTC: " in text
    assert "USDT: " in text


def test_dict_round_trip():
    portfolio = Portfolio()
    portfolio.update_asset_amount("USDT", Decimal("5000"), Decimal("1"))
    portfolio.assets["BTC"] = Asset("BTC", Decimal("0.01"))
    assert Portfolio.from_dict(portfolio.to_dict()) == portfolio
"""Command line entry point: live trading, replays and account information."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Coroutine, Iterable, Optional, Sequence, Union

from dotenv import load_dotenv

from tradebot.binance.client import Binance
from tradebot.events import EventBus
from tradebot.market import marketplace_event_from_dict
from tradebot.portfolio import Asset
from tradebot.server import serve
from tradebot.simulation import (
    print_overview,
    record_events,
    run_strategy,
    simulate_new_orders_processing,
    simulate_orders_processing,
    update_portfolio_value,
)
from tradebot.state import State
from tradebot.ticker import Ticker

logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS = ["BTCUSDT"]
DEFAULT_SERVER_ADDRESS = "127.0.0.1:5555"
DEFAULT_REPLAY_SERVER_ADDRESS = "127.0.0.1:5554"
SIMULATED_QUOTE = "USDT"
SIMULATED_QUOTE_AMOUNT = Decimal(5000)

_REPLAY_BATCH = 1000
_REPLAY_PAUSE = 0.00001


def _symbol_list(value: str) -> list[str]:
    return [part for part in value.split(",") if part]


def build_parser() -> argparse.ArgumentParser:
    """Argument parser with the account-info, start and replay commands."""
    parser = argparse.ArgumentParser(prog="bot", description="Scalping trading bot.")
    parser.add_argument("--replay-path", dest="global_replay_path", type=Path)
    parser.add_argument("--store-path", dest="store_path", type=Path)
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("account-info", help="show the exchange account overview")

    start = commands.add_parser("start", help="trade live market data")
    start.add_argument("--symbol", type=_symbol_list, default=list(DEFAULT_SYMBOLS))
    start.add_argument("--server-address", default=DEFAULT_SERVER_ADDRESS)
    start.add_argument("--replay-path", type=Path)
    start.add_argument("--real", action="store_true")

    replay = commands.add_parser("replay", help="replay recorded market events")
    replay.add_argument("--symbol", type=_symbol_list, default=list(DEFAULT_SYMBOLS))
    replay.add_argument("--server-address", default=DEFAULT_REPLAY_SERVER_ADDRESS)
    replay.add_argument("--no-server", action="store_true")
    replay.add_argument("--replay-path", type=Path, required=True)
    return parser


def parse_tickers(symbols: Iterable[str]) -> list[Ticker]:
    """Tickers of the symbols that parse; comma-separated entries are split."""
    tickers = []
    for entry in symbols:
        for symbol in _symbol_list(entry):
            try:
                tickers.append(Ticker.parse(symbol))
            except ValueError as err:
                logger.debug("Ignoring symbol %s: %s", symbol, err)
    return tickers


def initial_assets(tickers: Iterable[Ticker]) -> dict[str, Asset]:
    """Simulated starting portfolio: no base assets and 5000 USDT."""
    assets = {
        ticker.base: Asset(symbol=ticker.base, amount=Decimal(0), value=None)
        for ticker in tickers
    }
    assets[SIMULATED_QUOTE] = Asset(
        symbol=SIMULATED_QUOTE, amount=SIMULATED_QUOTE_AMOUNT, value=None
    )
    return assets


async def replay_events(path: Union[str, Path], bus: EventBus) -> int:
    """Publish the market events stored one per line in ``path``; return their count."""
    count = 0
    with Path(path).open(encoding="utf-8") as file:
        for line in file:
            try:
                event = marketplace_event_from_dict(json.loads(line))
            except (ValueError, KeyError, TypeError):
                continue
            bus.publish(event)
            count += 1
            if count % _REPLAY_BATCH == 0:
                await asyncio.sleep(_REPLAY_PAUSE)
    return count


async def _supervise(
    background: Sequence[Coroutine[Any, Any, Any]],
    watched: Sequence[Coroutine[Any, Any, Any]],
) -> None:
    """Run all coroutines until one of ``watched`` ends, then cancel the rest."""
    background_tasks = [asyncio.create_task(coro) for coro in background]
    # let subscribers register before the event sources start publishing
    await asyncio.sleep(0)
    watched_tasks = [asyncio.create_task(coro) for coro in watched]
    tasks = background_tasks + watched_tasks
    try:
        done, _ = await asyncio.wait(watched_tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.error("Task failed: %s", task.exception())
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def run_account_info() -> None:
    """Log the account overview."""
    async with Binance() as marketplace:
        overview = await marketplace.get_account_overview(True)
        logger.info("%r", overview)


async def run_start(
    tickers: list[Ticker],
    replay_path: Optional[Path],
    server_address: str,
    real: bool,
) -> None:
    """Trade live events, optionally recording them to ``replay_path``."""
    state = State()
    bus = EventBus()
    async with Binance() as marketplace:
        await marketplace.init(tickers)
        if real:
            state.portfolio.assets = await marketplace.get_account_assets()
        else:
            state.portfolio.assets = initial_assets(tickers)

        background = [
            run_strategy(state, marketplace, tickers, bus),
            simulate_new_orders_processing(state, bus, False),
            simulate_orders_processing(state, marketplace, bus, False),
            update_portfolio_value(state, bus),
            print_overview(state),
        ]
        if replay_path is not None:
            background.append(record_events(replay_path, bus))

        logger.info("STARTING BOT")
        await _supervise(
            background,
            [marketplace.start(tickers, bus), serve(server_address, state, bus)],
        )


async def run_replay(
    tickers: list[Ticker],
    replay_path: Path,
    server_address: Optional[str],
) -> None:
    """Run the strategy over recorded events until the file is exhausted."""
    state = State()
    bus = EventBus()
    async with Binance() as marketplace:
        await marketplace.init(tickers)
        state.portfolio.assets = initial_assets(tickers)

        background = [
            run_strategy(state, marketplace, tickers, bus),
            simulate_new_orders_processing(state, bus, True),
            simulate_orders_processing(state, marketplace, bus, True),
            update_portfolio_value(state, bus),
            print_overview(state),
        ]
        watched = [replay_events(replay_path, bus)]
        if server_address is not None:
            watched.append(serve(server_address, state, bus))

        logger.info("STARTING REPLAY")
        await _supervise(background, watched)
        logger.info("replay ended")


def _configure_logging() -> None:
    level = os.environ.get("TRADEBOT_LOG", "DEBUG").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.DEBUG),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command given on the command line; return the exit status."""
    load_dotenv()
    _configure_logging()
    args = build_parser().parse_args(argv)

    if args.command == "account-info":
        job = run_account_info()
    elif args.command == "start":
        job = run_start(
            parse_tickers(args.symbol), args.replay_path, args.server_address, args.real
        )
    elif args.command == "replay":
        job = run_replay(
            parse_tickers(args.symbol),
            args.replay_path,
            None if args.no_server else args.server_address,
        )
    else:
        return 0

    try:
        asyncio.run(job)
    except KeyboardInterrupt:
        return 130
    except Exception as err:  # noqa: BLE001 - report any failure as an exit status
        logger.error("%s", err)
        return 1
    return 0
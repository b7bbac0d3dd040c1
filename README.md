# tradebot

A scalping trading bot for Binance spot markets. It listens to the public
trade and 1-minute candle streams, runs a scalping strategy built on Wilder
smoothed moving averages and the average true range, and executes the
resulting orders against a **simulated** portfolio. Every state change is
broadcast as JSON over a websocket so that a monitoring client can follow
along.

Market events can be recorded to a file and replayed later, which runs the
strategy offline at full speed.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Configuration

Both `start` and `replay` load the exchange's trading rules and the account
overview at start-up, and `account-info` shows that overview. These account
requests are signed with API credentials read from the environment variables
`BINANCE_API_KEY` and `BINANCE_API_SECRET`. A `.env` file in the working
directory is loaded first, so they can be kept there:

```
BINANCE_API_KEY=placeholder
BINANCE_API_SECRET=secret
```

The log level is taken from `TRADEBOT_LOG` (for example `INFO`); it defaults
to `DEBUG`.

## Usage

Log the account overview (balances and commission rates):

```
tradebot account-info
```

Run the strategy on live market data with a simulated portfolio of 5000 USDT,
serving events on `ws://127.0.0.1:5555/ws`:

```
tradebot start --symbol BTCUSDT,ETHUSDT
```

Options for `start`:

- `--symbol` — comma-separated symbols, default `BTCUSDT`; symbols are a
  three-letter base followed by a three- or four-letter quote
- `--server-address` — websocket server address as `host:port`, default `127.0.0.1:5555`
- `--replay-path` — append every market event to this file, one JSON object per line
- `--real` — start from the account's free balances instead of the simulated ones

Replay a recorded file through the strategy:

```
tradebot replay --symbol BTCUSDT --replay-path events.jsonl
```

Options for `replay`:

- `--symbol` — comma-separated symbols, default `BTCUSDT`
- `--server-address` — websocket server address, default `127.0.0.1:5554`
- `--no-server` — do not start the websocket server
- `--replay-path` — the recorded events file (required)

The replay ends once the file has been read. The command returns exit status
0 on success, 1 on an error and 130 when interrupted.

## How the strategy trades

For each ticker the strategy keeps recent candles and decides on every trade:

- with no executed order yet, it buys 300 quote units' worth when the
  5-candle smoothed average is above the 14-candle one, the price is above
  the 14-candle average, and the 3-candle true range is not below the
  10-candle one;
- after a buy, it sells once the profit after fees reaches 1.5 quote units,
  holding on during an upward trend unless the profit exceeds ten times that;
- after a sell, it waits at least a minute and then re-enters on a pullback
  of at least 1 % under the same trend and range conditions (conditions
  dropped after eight hours).

While an order for a ticker is pending, nothing new is decided for it.
Buy amounts are rounded to the exchange's lot size and minimum notional.

## The event feed

Clients connecting to `/ws` first receive the current portfolio and the list
of orders, then every event as it happens. Each message is one JSON object
tagged `State` (portfolio or order updates), `Strategy` (the action decided:
an order, or the reason an opportunity was skipped) or `MarketPlace` (the raw
trade and candle events).

## Library use

- `tradebot.ticker.Ticker`, `tradebot.order.Order`, `tradebot.portfolio.Portfolio`
  and `tradebot.state.State` model the trading state.
- `tradebot.utils` provides `sma`, `wsma`, `atr`, `avg` and `percentiles`
  over `Decimal` price series (most recent first).
- `tradebot.binance.client.Binance` talks to the exchange's REST API and
  market stream; `tradebot.binance.stream.parse_stream_message` decodes
  stream messages.
- `tradebot.scalping.ScalpingStrategy` turns market events into strategy actions.
- `tradebot.simulation` holds the simulated execution (`fill_orders`,
  `activate_sent_orders`) and the background tasks.
- `tradebot.events.EventBus` is the broadcast channel everything is wired
  through; `encode_app_event` and `decode_app_event` give the feed's JSON form.
- `tradebot.server.serve` runs the websocket feed.

## What it does not do

- Orders are never sent to the exchange by the commands: they are filled in
  simulation from public trades, even with `--real`, which only takes the
  starting balances from the account. `Binance.place_order` exists but
  nothing calls it.
- There is no built-in monitoring screen; the websocket feed is meant for an
  external client.
- Nothing is persisted apart from the optional file of recorded market events.
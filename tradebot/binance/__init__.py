"""Binance spot exchange client: REST endpoints, market data stream and order rules."""
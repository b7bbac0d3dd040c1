"""Scalping trading bot with simulated execution, event replay and a websocket event feed."""

__version__ = "0.1.0"
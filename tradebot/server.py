"""WebSocket server that streams application events to monitoring clients."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from tradebot.events import EventBus, OrdersUpdate, PortfolioUpdate, encode_app_event
from tradebot.state import State

logger = logging.getLogger(__name__)

WS_PATH = "/ws"
_POLICY_VIOLATION = 1008


def _request_path(websocket: Any) -> str:
    request = getattr(websocket, "request", None)
    path = getattr(request, "path", None) or getattr(websocket, "path", None) or WS_PATH
    return path.split("?", 1)[0]


def _parse_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"invalid server address {address!r}")
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"invalid port in server address {address!r}") from None


async def _forward_events(websocket: Any, subscription: Any) -> None:
    while True:
        event = await subscription.recv()
        try:
            await websocket.send(encode_app_event(event))
        except ConnectionClosed:
            return


async def _drain_messages(websocket: Any) -> None:
    try:
        async for message in websocket:
            logger.info("Received websocket message : %r", message)
    except ConnectionClosed:
        return


async def handle_connection(websocket: Any, state: State, bus: EventBus) -> None:
    """Send the current portfolio and orders, then forward every event on ``bus``."""
    if _request_path(websocket) != WS_PATH:
        await websocket.close(_POLICY_VIOLATION, "not found")
        return

    subscription = bus.subscribe()
    try:
        await websocket.send(encode_app_event(PortfolioUpdate(copy.deepcopy(state.portfolio))))
        await websocket.send(encode_app_event(OrdersUpdate(copy.deepcopy(state.orders))))
    except ConnectionClosed:
        pass

    send_task = asyncio.create_task(_forward_events(websocket, subscription))
    recv_task = asyncio.create_task(_drain_messages(websocket))
    try:
        _, pending = await asyncio.wait({send_task, recv_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (send_task, recv_task):
            if not task.done():
                task.cancel()
        await asyncio.gather(send_task, recv_task, return_exceptions=True)


async def serve(address: str, state: State, bus: EventBus) -> None:
    """Serve ``/ws`` on ``address`` (``host:port``) until cancelled."""
    host, port = _parse_address(address)

    async def handler(websocket: Any) -> None:
        await handle_connection(websocket, state, bus)

    async with websockets.serve(handler, host, port):
        await asyncio.Future()
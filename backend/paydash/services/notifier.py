# services/notifier.py
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set

from fastapi.encoders import jsonable_encoder

from paydash.core.exceptions import BroadcastFailure
from paydash.models.payment_model import Payment, StatsSnapshot

logger = logging.getLogger("paydash.ws")

NEW_PAYMENT = "newPayment"
STATS_UPDATE = "statsUpdate"


class ChangeNotifier:
    """
    Connected real-time subscribers and the channels each has joined.

    Anything with an async `send_json(dict)` can be a connection (a
    starlette WebSocket in production). Delivery is fire-and-forget: a
    subscriber that fails a send, or does not take it within send_timeout
    seconds, is dropped and nothing is replayed.
    """

    def __init__(self, send_timeout: float = 5.0):
        self.send_timeout = send_timeout
        self.connections: Dict[str, Any] = {}
        self.memberships: Dict[str, Set[str]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def connect(self, connection, connection_id: Optional[str] = None) -> str:
        connection_id = connection_id or uuid.uuid4().hex
        self.connections[connection_id] = connection
        self.memberships[connection_id] = set()
        self._locks[connection_id] = asyncio.Lock()
        logger.info(f"Client connected: {connection_id} | total={len(self.connections)}")
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self.connections.pop(connection_id, None) is None:
            return
        self.memberships.pop(connection_id, None)
        self._locks.pop(connection_id, None)
        logger.info(f"Client disconnected: {connection_id} | total={len(self.connections)}")

    async def join(self, connection_id: str, channel: str) -> bool:
        lock = self._locks.get(connection_id)
        if lock is None:
            return False
        async with lock:
            channels = self.memberships.get(connection_id)
            if channels is None:
                return False
            channels.add(channel)
        logger.info(f"Client {connection_id} joined room: {channel}")
        return True

    async def leave(self, connection_id: str, channel: str) -> bool:
        lock = self._locks.get(connection_id)
        if lock is None:
            return False
        async with lock:
            channels = self.memberships.get(connection_id)
            if channels is None:
                return False
            channels.discard(channel)
        logger.info(f"Client {connection_id} left room: {channel}")
        return True

    def members(self, channel: str) -> Set[str]:
        return {cid for cid, channels in self.memberships.items() if channel in channels}

    def is_member(self, connection_id: str, channel: str) -> bool:
        return channel in self.memberships.get(connection_id, ())

    async def _send(self, connection_id: str, message: dict) -> bool:
        connection = self.connections.get(connection_id)
        if connection is None:
            # Went away while the broadcast was in flight
            return False
        try:
            await asyncio.wait_for(connection.send_json(message), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Dropping {connection_id}: send not taken within {self.send_timeout}s")
            self.disconnect(connection_id)
            return False
        except Exception as e:
            logger.warning(f"Dropping {connection_id} after failed send: {e}")
            self.disconnect(connection_id)
            return False

    async def _deliver(self, targets, event: str, payload: Any) -> int:
        message = {"event": event, "data": jsonable_encoder(payload, by_alias=True)}
        # Sends run concurrently, each capped at send_timeout
        results = await asyncio.gather(*(self._send(cid, message) for cid in targets))
        delivered = sum(results)
        logger.debug(f"{event} delivered to {delivered} client(s)")
        return delivered

    async def broadcast_all(self, event: str, payload: Any) -> int:
        return await self._deliver(list(self.connections), event, payload)

    async def broadcast_channel(self, channel: str, event: str, payload: Any) -> int:
        return await self._deliver(sorted(self.members(channel)), event, payload)


# ========================================
# EVENTS SEEN BY THE PAYMENT FLOW
# ========================================
class PaymentEvents(ABC):
    """What the payment flow announces. It never sees the transport."""

    @abstractmethod
    async def payment_created(self, payment: Payment) -> None:
        ...

    @abstractmethod
    async def stats_changed(self, stats: StatsSnapshot) -> None:
        ...


class NotifierEvents(PaymentEvents):
    """newPayment to every client, statsUpdate to the dashboard channel only."""

    def __init__(self, notifier: ChangeNotifier, dashboard_channel: str = "dashboard"):
        self.notifier = notifier
        self.dashboard_channel = dashboard_channel

    async def payment_created(self, payment: Payment) -> None:
        try:
            await self.notifier.broadcast_all(NEW_PAYMENT, payment)
        except Exception as e:
            raise BroadcastFailure(f"{NEW_PAYMENT} broadcast failed: {e}") from e

    async def stats_changed(self, stats: StatsSnapshot) -> None:
        try:
            await self.notifier.broadcast_channel(self.dashboard_channel, STATS_UPDATE, stats)
        except Exception as e:
            raise BroadcastFailure(f"{STATS_UPDATE} broadcast failed: {e}") from e

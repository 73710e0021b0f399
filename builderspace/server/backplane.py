"""Redis pub/sub backplane for multi-process deployments.

Each server process holds only its own sockets.  When a backplane is
attached to the :class:`~builderspace.server.registry.ConnectionRegistry`,
broadcasts are published to one Redis channel and every process (including
the publisher) delivers the frame to whichever recipients it holds.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import redis.asyncio as aioredis
from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

if TYPE_CHECKING:
    from redis.asyncio.client import PubSub

    from builderspace.server.registry import ConnectionRegistry


class BroadcastEnvelope(BaseModel):
    """What travels over the channel: recipients plus the serialized frame."""

    user_ids: list[str]
    data: str


class RedisBackplane:
    def __init__(
        self,
        redis: aioredis.Redis,
        registry: ConnectionRegistry,
        *,
        channel: str,
        reconnect_delay: float = 1.0,
    ) -> None:
        self._redis = redis
        self._registry = registry
        self._channel = channel
        self._reconnect_delay = reconnect_delay
        self._pubsub: PubSub | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def channel(self) -> str:
        return self._channel

    async def start(self) -> None:
        """Subscribe to the channel and start delivering incoming broadcasts."""
        self._pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        await self._pubsub.subscribe(self._channel)
        self._task = asyncio.create_task(self._listen(), name="builderspace-backplane")
        logger.info("Backplane: subscribed to {}", self._channel)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self._channel)
            await self._pubsub.aclose()
            self._pubsub = None
        logger.info("Backplane: stopped")

    async def publish(self, user_ids: list[str], data: str) -> bool:
        """Publish a frame for *user_ids*.  Returns ``False`` if Redis rejected it."""
        envelope = BroadcastEnvelope(user_ids=user_ids, data=data)
        try:
            await self._redis.publish(self._channel, envelope.model_dump_json())
        except RedisError:
            logger.opt(exception=True).warning("Backplane: publish failed, delivering locally only")
            return False
        return True

    async def handle_message(self, raw: bytes | str) -> int:
        """Deliver one channel message to local connections.  Returns users reached."""
        try:
            envelope = BroadcastEnvelope.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("Backplane: dropping malformed message on {}", self._channel)
            return 0
        return await self._registry.deliver_local(envelope.user_ids, envelope.data)

    async def _listen(self) -> None:
        if self._pubsub is None:  # pragma: no cover
            msg = "Backplane not started"
            raise RuntimeError(msg)
        while True:
            try:
                async for message in self._pubsub.listen():
                    if message.get("type") == "message":
                        await self.handle_message(message["data"])
                # listen() only returns once the channel is unsubscribed.
                return
            except RedisError:
                logger.opt(exception=True).warning(
                    "Backplane: subscription lost, retrying in {}s", self._reconnect_delay
                )
                await asyncio.sleep(self._reconnect_delay)

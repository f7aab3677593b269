from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Protocol

import redis

from tenant_admin.core.config import settings
from tenant_admin.core.exceptions import BroadcastError

_LOG = logging.getLogger("tenant_admin.broadcast")

EVENT_TOAST_RECEIVED = "toast.received"
EVENT_NOTIFICATION_CHANGED = "notification.changed"


@dataclass(frozen=True)
class BroadcastEvent:
    channel: str
    event: str
    data: dict[str, Any]

    def envelope(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "event": self.event,
            "data": self.data,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }


class Broadcaster(Protocol):
    def publish(self, channel: str, event: str, data: dict[str, Any]) -> None:
        ...


class RedisBroadcaster:
    """Publishes JSON envelopes on ``{prefix}{channel}``; the websocket relay subscribes."""

    def __init__(self, client: redis.Redis, prefix: str):
        self.client = client
        self.prefix = prefix

    def publish(self, channel: str, event: str, data: dict[str, Any]) -> None:
        message = json.dumps(BroadcastEvent(channel, event, data).envelope(), ensure_ascii=False, default=str)
        try:
            self.client.publish(f"{self.prefix}{channel}", message)
        except redis.RedisError as exc:
            raise BroadcastError(f"Failed to publish {event} on {channel}: {exc}") from exc
        _LOG.debug("published %s on %s", event, channel)


class LogBroadcaster:
    def publish(self, channel: str, event: str, data: dict[str, Any]) -> None:
        _LOG.info("broadcast %s on %s data=%s", event, channel, json.dumps(data, ensure_ascii=False, default=str))


class NullBroadcaster:
    def publish(self, channel: str, event: str, data: dict[str, Any]) -> None:
        return None


class InMemoryBroadcaster:
    def __init__(self):
        self.events: list[BroadcastEvent] = []
        self._lock = Lock()

    def publish(self, channel: str, event: str, data: dict[str, Any]) -> None:
        with self._lock:
            self.events.append(BroadcastEvent(channel, event, dict(data)))

    def of(self, event: str, channel: str | None = None) -> list[BroadcastEvent]:
        return [e for e in self.events if e.event == event and (channel is None or e.channel == channel)]

    def clear(self) -> None:
        with self._lock:
            self.events.clear()


_cached_broadcaster: Broadcaster | None = None
_broadcaster_lock = Lock()


def _build_broadcaster() -> Broadcaster:
    driver = str(settings.BROADCAST_DRIVER or "").strip().lower()
    if driver == "redis":
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=1.0,
            socket_connect_timeout=1.0,
        )
        return RedisBroadcaster(client, settings.BROADCAST_PREFIX)
    if driver == "log":
        return LogBroadcaster()
    if driver in {"null", "none", ""}:
        return NullBroadcaster()
    raise ValueError(f"Unknown BROADCAST_DRIVER: {settings.BROADCAST_DRIVER}")


def get_broadcaster() -> Broadcaster:
    global _cached_broadcaster
    if _cached_broadcaster is None:
        with _broadcaster_lock:
            if _cached_broadcaster is None:
                _cached_broadcaster = _build_broadcaster()
    return _cached_broadcaster


def set_broadcaster(broadcaster: Broadcaster | None) -> None:
    global _cached_broadcaster
    with _broadcaster_lock:
        _cached_broadcaster = broadcaster

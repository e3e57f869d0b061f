# Overview: Real-time fan-out of edit request events to admins and requesters.

from __future__ import annotations

import json
from typing import Any

import redis
from flask import current_app


ADMIN_CHANNEL = "admin-notifications"
EVENT_NEW_EDIT_REQUEST = "new-edit-request"
EVENT_EDIT_REQUEST_UPDATE = "edit-request-update"

BACKEND_NULL = "null"
BACKEND_MEMORY = "memory"
BACKEND_REDIS = "redis"


def edit_request_channel(request_id: int) -> str:
    """Per-request channel the requester subscribes to."""
    return f"edit-request-update-{request_id}"


class NotificationError(Exception):
    """Raised by a notifier when the transport rejects a publish."""


class Notifier:
    """
    Publisher interface.

    Implementations deliver (channel, event, payload) to whatever transport
    relays messages to connected clients. Callers never depend on delivery.
    """

    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError


class NullNotifier(Notifier):
    """Discards every event."""

    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        return None


class InMemoryNotifier(Notifier):
    """Records events in order. Used by the dev server and tests."""

    def __init__(self):
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        self.events.append((channel, event, payload))

    def on_channel(self, channel: str) -> list[tuple[str, str, dict[str, Any]]]:
        return [e for e in self.events if e[0] == channel]

    def clear(self) -> None:
        self.events.clear()


class RedisNotifier(Notifier):
    """
    Publishes a JSON envelope {"event", "payload"} with Redis PUBLISH.

    A socket gateway subscribed to the same channels relays messages to
    browsers; this process only needs the publish side.
    """

    def __init__(self, url: str, client: redis.Redis | None = None):
        self.client = client or redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
        )

    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        message = json.dumps({"event": event, "payload": payload}, default=str)
        try:
            self.client.publish(channel, message)
        except redis.RedisError as e:
            raise NotificationError(f"Redis publish to {channel} failed: {e}") from e


def build_notifier(backend: str, redis_url: str | None = None) -> Notifier:
    backend = (backend or BACKEND_NULL).strip().lower()
    if backend == BACKEND_NULL:
        return NullNotifier()
    if backend == BACKEND_MEMORY:
        return InMemoryNotifier()
    if backend == BACKEND_REDIS:
        if not redis_url:
            raise ValueError("REDIS_URL is required when NOTIFIER_BACKEND=redis")
        return RedisNotifier(redis_url)
    raise ValueError(f"Unknown NOTIFIER_BACKEND: {backend}")


class NotificationFanout:
    """
    Flask extension holding the app's notifier.

    init_app builds the notifier from NOTIFIER_BACKEND / REDIS_URL unless one
    was injected with set_notifier (tests swap in InMemoryNotifier).
    """

    def __init__(self, app=None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        notifier = build_notifier(
            app.config.get("NOTIFIER_BACKEND", BACKEND_NULL),
            app.config.get("REDIS_URL"),
        )
        app.extensions["notifications"] = notifier

    def set_notifier(self, app, notifier: Notifier) -> None:
        app.extensions["notifications"] = notifier

    def get(self) -> Notifier:
        return current_app.extensions.get("notifications") or NullNotifier()


def safe_publish(notifier: Notifier | None, channel: str, event: str, payload: dict[str, Any]) -> bool:
    """
    Best-effort publish.

    Failures are logged and swallowed; the caller's committed state is never
    affected. Returns True when the notifier accepted the event.
    """
    if notifier is None:
        return False
    try:
        notifier.publish(channel, event, payload)
        return True
    except Exception:
        current_app.logger.warning(
            "Notification publish failed (channel=%s, event=%s)", channel, event, exc_info=True
        )
        return False

# Overview: Fire-and-forget notification dispatcher and delivery channels.

"""
Notification Dispatcher

Emits role-targeted messages after a lifecycle write has committed:
- manager_alert: a report submitted a new pending request (to their manager)
- dispatched:    an order was shipped (to the employee)
- low_stock:     digest of items at/below threshold (to admins)

DELIVERY CONTRACT:
- At-most-once, best-effort. No retry, no outbox.
- emit() never raises. Any failure is wrapped in NotificationError and logged
  at WARNING on current_app.logger, so it can never roll back or fail the
  operation that triggered it.
- Callers emit only after db.session.commit(); payloads are plain dicts built
  before emission so delivery never touches the session.
- With NOTIFY_ASYNC enabled delivery runs on a short-lived daemon thread
  inside a fresh app context; otherwise it runs inline.

CHANNELS (config NOTIFICATION_CHANNEL):
- "log":    renders subject/body and writes them to the app logger
- "memory": appends Notification records to a list (tests, local dev)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Protocol

from flask import current_app

from ..errors import NotificationError
from portal.time_utils import utcnow


KIND_MANAGER_ALERT = "manager_alert"
KIND_DISPATCHED = "dispatched"
KIND_LOW_STOCK = "low_stock"
VALID_KINDS = {KIND_MANAGER_ALERT, KIND_DISPATCHED, KIND_LOW_STOCK}

EXTENSION_KEY = "notifications"


@dataclass
class Notification:
    kind: str
    recipient: str
    payload: dict
    created_at: object = field(default_factory=utcnow)


class NotificationChannel(Protocol):
    def send(self, kind: str, recipient: str, payload: dict) -> None:
        ...


def _render_items(items: list[dict]) -> str:
    if not items:
        return "No items listed."
    lines = []
    for item in items:
        line = f"- {item.get('name')} x{item.get('quantity')}"
        if item.get("size"):
            line += f" (size {item['size']})"
        lines.append(line)
    return "\n".join(lines)


def _render_low_stock(items: list[dict]) -> str:
    if not items:
        return "There are currently no low stock items."
    lines = []
    for item in items:
        line = f"- {item.get('name')}: stock {item.get('stock_balance')}"
        if item.get("low_stock_threshold") is not None:
            line += f" (threshold {item['low_stock_threshold']})"
        lines.append(line)
    return "\n".join(lines)


def render_message(kind: str, payload: dict, *, base_url: str = "") -> tuple[str, str]:
    """Return (subject, plain-text body) for a notification."""
    if kind == KIND_MANAGER_ALERT:
        name = payload.get("employeeName") or "Employee"
        subject = f"Action Required: {name} submitted a request"
        body = (
            f"{name} has submitted a new asset request that requires your approval.\n\n"
            f"Items requested:\n{_render_items(payload.get('items') or [])}\n\n"
            f"Review it in Manager Approvals: {base_url}/manager/approvals"
        )
        return subject, body

    if kind == KIND_DISPATCHED:
        name = payload.get("employeeName") or "Employee"
        subject = "Your items are on their way!"
        body = (
            f"Hi {name},\n\nYour asset request has been dispatched.\n\n"
            f"Items dispatched:\n{_render_items(payload.get('items') or [])}\n\n"
            "If anything looks incorrect, please contact your manager or the admin team."
        )
        return subject, body

    if kind == KIND_LOW_STOCK:
        subject = "Low stock alert for assets"
        body = (
            "The following items are currently at or below their low stock thresholds:\n"
            f"{_render_low_stock(payload.get('items') or [])}\n\n"
            "Please review these items and arrange replenishment as needed."
        )
        return subject, body

    raise NotificationError(f"Unsupported notification kind '{kind}'")


class LogChannel:
    """Writes rendered messages to the application logger."""

    def send(self, kind: str, recipient: str, payload: dict) -> None:
        subject, body = render_message(
            kind, payload, base_url=current_app.config.get("PORTAL_BASE_URL", "")
        )
        current_app.logger.info("notification to=%s subject=%r\n%s", recipient, subject, body)


class MemoryChannel:
    """Keeps sent notifications in memory."""

    def __init__(self):
        self.sent: list[Notification] = []
        self._lock = threading.Lock()

    def send(self, kind: str, recipient: str, payload: dict) -> None:
        render_message(kind, payload)
        with self._lock:
            self.sent.append(Notification(kind=kind, recipient=recipient, payload=payload))

    def of_kind(self, kind: str) -> list[Notification]:
        return [n for n in self.sent if n.kind == kind]

    def clear(self) -> None:
        with self._lock:
            self.sent.clear()


CHANNELS = {
    "log": LogChannel,
    "memory": MemoryChannel,
}


class NotificationDispatcher:
    """
    Flask extension owning the configured notification channel.

    The channel instance is stored per app in app.extensions["notifications"].
    """

    def __init__(self, app=None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        app.config.setdefault("NOTIFICATION_CHANNEL", "log")
        app.config.setdefault("NOTIFY_ASYNC", False)

        name = app.config["NOTIFICATION_CHANNEL"]
        if name not in CHANNELS:
            raise ValueError(
                f"Invalid NOTIFICATION_CHANNEL '{name}'. Must be one of: {', '.join(sorted(CHANNELS))}"
            )
        app.extensions[EXTENSION_KEY] = CHANNELS[name]()

    @property
    def channel(self) -> NotificationChannel:
        return current_app.extensions[EXTENSION_KEY]

    def emit(self, kind: str, recipient: str | None, payload: dict) -> bool:
        """
        Hand a message to the channel. Never raises.

        Returns True if the message was handed off (or queued on a thread),
        False if it was skipped or failed.
        """
        if not recipient:
            current_app.logger.info("Skipping %s notification: no recipient", kind)
            return False

        if kind not in VALID_KINDS:
            current_app.logger.warning("Skipping unsupported notification kind %r", kind)
            return False

        if current_app.config.get("NOTIFY_ASYNC"):
            app = current_app._get_current_object()
            thread = threading.Thread(
                target=self._deliver_in_context,
                args=(app, kind, recipient, payload),
                daemon=True,
            )
            thread.start()
            return True

        return self._deliver(kind, recipient, payload)

    def _deliver_in_context(self, app, kind: str, recipient: str, payload: dict) -> None:
        with app.app_context():
            self._deliver(kind, recipient, payload)

    def _deliver(self, kind: str, recipient: str, payload: dict) -> bool:
        try:
            self.channel.send(kind, recipient, payload)
        except Exception as exc:
            error = exc if isinstance(exc, NotificationError) else NotificationError(
                f"Failed to deliver {kind} notification to {recipient}: {exc}"
            )
            current_app.logger.warning("%s", error, exc_info=exc)
            return False

        current_app.logger.info("Delivered %s notification to %s", kind, recipient)
        return True

    def emit_safely(self, kind: str, build):
        """
        Build (recipient, payload) with `build()` and emit it.

        Failures while building (e.g. a lookup of the manager's email) are
        treated like delivery failures: logged, never raised.
        """
        try:
            recipient, payload = build()
        except Exception:
            current_app.logger.warning("Failed to prepare %s notification", kind, exc_info=True)
            return False
        return self.emit(kind, recipient, payload)

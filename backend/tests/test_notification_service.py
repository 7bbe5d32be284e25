"""
Notification dispatcher tests: rendering, skip rules, failure isolation.
"""

import logging
import time

import pytest
from flask import Flask
from portal.errors import NotificationError
from portal.extensions import notifications
from portal.services.notification_service import (
    KIND_DISPATCHED,
    KIND_LOW_STOCK,
    KIND_MANAGER_ALERT,
    NotificationDispatcher,
    render_message,
)


class TestRenderMessage:
    def test_manager_alert(self):
        subject, body = render_message(
            KIND_MANAGER_ALERT,
            {"employeeName": "Evan", "items": [{"name": "Hoodie", "quantity": 2, "size": "M"}]},
            base_url="https://portal.example.com",
        )
        assert subject == "Action Required: Evan submitted a request"
        assert "- Hoodie x2 (size M)" in body
        assert "https://portal.example.com/manager/approvals" in body

    def test_dispatched(self):
        subject, body = render_message(
            KIND_DISPATCHED, {"employeeName": "Evan", "items": [{"name": "Laptop", "quantity": 1}]}
        )
        assert subject == "Your items are on their way!"
        assert body.startswith("Hi Evan,")
        assert "- Laptop x1" in body

    def test_low_stock(self):
        subject, body = render_message(
            KIND_LOW_STOCK,
            {"items": [{"name": "Lanyard", "stock_balance": 1, "low_stock_threshold": 5}]},
        )
        assert subject == "Low stock alert for assets"
        assert "- Lanyard: stock 1 (threshold 5)" in body

    def test_missing_name_falls_back(self):
        subject, _ = render_message(KIND_MANAGER_ALERT, {})
        assert subject == "Action Required: Employee submitted a request"

    def test_unknown_kind(self):
        with pytest.raises(NotificationError):
            render_message("carrier_pigeon", {})


class TestEmit:
    def test_delivers_to_channel(self, app, outbox):
        assert notifications.emit(KIND_DISPATCHED, "evan@example.com", {"items": []}) is True
        assert outbox.sent[0].recipient == "evan@example.com"

    @pytest.mark.parametrize("recipient", [None, ""])
    def test_skips_without_recipient(self, app, outbox, recipient):
        assert notifications.emit(KIND_DISPATCHED, recipient, {}) is False
        assert outbox.sent == []

    def test_skips_unknown_kind(self, app, outbox):
        assert notifications.emit("carrier_pigeon", "evan@example.com", {}) is False
        assert outbox.sent == []

    def test_channel_failure_is_logged_not_raised(self, app, outbox, monkeypatch, caplog):
        def explode(*args, **kwargs):
            raise ConnectionError("mail relay unreachable")

        monkeypatch.setattr(outbox, "send", explode)

        with caplog.at_level(logging.WARNING):
            assert notifications.emit(KIND_DISPATCHED, "evan@example.com", {}) is False

        assert "mail relay unreachable" in caplog.text

    def test_build_failure_is_logged_not_raised(self, app, outbox):
        def build():
            raise AttributeError("manager has no email")

        assert notifications.emit_safely(KIND_MANAGER_ALERT, build) is False
        assert outbox.sent == []

    def test_emit_safely_delivers(self, app, outbox):
        assert notifications.emit_safely(
            KIND_MANAGER_ALERT, lambda: ("maria@example.com", {"employeeName": "Evan"})
        ) is True
        assert outbox.of_kind(KIND_MANAGER_ALERT)[0].recipient == "maria@example.com"

    def test_async_delivery(self, app, outbox, monkeypatch):
        monkeypatch.setitem(app.config, "NOTIFY_ASYNC", True)

        assert notifications.emit(KIND_DISPATCHED, "evan@example.com", {"items": []}) is True

        deadline = time.monotonic() + 5
        while not outbox.sent and time.monotonic() < deadline:
            time.sleep(0.01)
        assert [n.recipient for n in outbox.sent] == ["evan@example.com"]


class TestInitApp:
    def test_unknown_channel_rejected(self):
        app = Flask(__name__)
        app.config["NOTIFICATION_CHANNEL"] = "carrier_pigeon"

        with pytest.raises(ValueError, match="NOTIFICATION_CHANNEL"):
            NotificationDispatcher(app)

    def test_defaults_to_log_channel(self):
        app = Flask(__name__)
        NotificationDispatcher(app)

        assert app.config["NOTIFICATION_CHANNEL"] == "log"
        assert app.config["NOTIFY_ASYNC"] is False
        assert type(app.extensions["notifications"]).__name__ == "LogChannel"

    def test_log_channel_writes_rendered_message(self, caplog):
        app = Flask(__name__)
        dispatcher = NotificationDispatcher(app)

        with app.app_context(), caplog.at_level(logging.INFO):
            assert dispatcher.emit(KIND_DISPATCHED, "evan@example.com", {"employeeName": "Evan"}) is True

        assert "Your items are on their way!" in caplog.text

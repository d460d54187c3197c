from __future__ import annotations

import pytest
import requests

from restockwatch.alerts import (
    AlertSink,
    DeliveryFailure,
    DryRunAlertSink,
    TelegramAlertSink,
    notify_best_effort,
)
from restockwatch.models import NotificationEvent


class FakeResponse:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text


def test_telegram_posts_form_data(monkeypatch) -> None:
    seen: dict[str, object] = {}

    def fake_post(url, data, timeout):
        seen.update(url=url, data=data, timeout=timeout)
        return FakeResponse(200, '{"ok":true}')

    monkeypatch.setattr("restockwatch.alerts.requests.post", fake_post)

    TelegramAlertSink("123:abc", "987").send("hello")

    assert seen["url"] == "https://api.telegram.org/bot123:abc/sendMessage"
    assert seen["data"] == {"chat_id": "987", "text": "hello"}
    assert seen["timeout"] == 10.0


def test_telegram_non_ok_status_is_delivery_failure(monkeypatch) -> None:
    monkeypatch.setattr(
        "restockwatch.alerts.requests.post",
        lambda *args, **kwargs: FakeResponse(400, '{"ok":false,"description":"chat not found"}'),
    )

    with pytest.raises(DeliveryFailure, match="400"):
        TelegramAlertSink("123:abc", "987").send("hello")


def test_telegram_transport_error_hides_token(monkeypatch) -> None:
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("https://api.telegram.org/bot123:abc/sendMessage unreachable")

    monkeypatch.setattr("restockwatch.alerts.requests.post", fake_post)

    with pytest.raises(DeliveryFailure) as excinfo:
        TelegramAlertSink("123:abc", "987").send("hello")
    assert "123:abc" not in str(excinfo.value)


def test_telegram_requires_credentials() -> None:
    with pytest.raises(ValueError):
        TelegramAlertSink("", "987")


def test_notify_best_effort_swallows_failures() -> None:
    attempts: list[str] = []

    class FailingSink(AlertSink):
        def send(self, message: str) -> None:
            attempts.append(message)
            raise DeliveryFailure("down")

    event = NotificationEvent(recipient="987", message="in stock")

    assert notify_best_effort(FailingSink(), event) is False
    assert attempts == ["in stock"]


def test_notify_best_effort_reports_success() -> None:
    event = NotificationEvent(recipient="dry-run", message="in stock")
    assert notify_best_effort(DryRunAlertSink(), event) is True
    assert event.timestamp.tzinfo is not None

from __future__ import annotations

import logging

import requests

from restockwatch.models import NotificationEvent

LOG = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


class DeliveryFailure(RuntimeError):
    pass


class AlertSink:
    def send(self, message: str) -> None:
        raise NotImplementedError


class DryRunAlertSink(AlertSink):
    def send(self, message: str) -> None:
        LOG.info("[DRY RUN] alert: %s", message)


class TelegramAlertSink(AlertSink):
    def __init__(self, bot_token: str, chat_id: str, timeout_seconds: float = 10.0) -> None:
        if not bot_token or not chat_id:
            raise ValueError("telegram bot token and chat id are required")
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout_seconds = timeout_seconds

    def send(self, message: str) -> None:
        LOG.debug("sending telegram message chat_id=%s", self.chat_id)
        try:
            response = requests.post(
                TELEGRAM_API_URL.format(token=self.bot_token),
                data={"chat_id": self.chat_id, "text": message},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            # the exception text can carry the request url, which embeds the token
            raise DeliveryFailure(f"telegram request failed: {type(exc).__name__}") from None
        if response.status_code >= 300:
            raise DeliveryFailure(
                f"telegram api request failed ({response.status_code}): {response.text}"
            )
        LOG.info("telegram notification sent")


def notify_best_effort(sink: AlertSink, event: NotificationEvent) -> bool:
    """Attempt delivery exactly once. Failures are logged and reported through the return value only."""
    try:
        sink.send(event.message)
    except Exception as exc:  # noqa: BLE001
        LOG.error(
            "alert delivery failed recipient=%s at=%s error=%s",
            event.recipient,
            event.timestamp.isoformat(),
            exc,
        )
        return False
    return True

from __future__ import annotations

import logging
import threading
import time
from contextlib import AbstractContextManager
from datetime import timedelta
from pathlib import Path
from typing import Callable

from restockwatch.alerts import AlertSink, DryRunAlertSink, TelegramAlertSink, notify_best_effort
from restockwatch.config import load_config
from restockwatch.extractor import extract
from restockwatch.models import AppConfig, NotificationEvent, Verdict
from restockwatch.renderer import PageRenderer, PlaywrightPageRenderer, RenderError

LOG = logging.getLogger(__name__)

RendererFactory = Callable[[], AbstractContextManager[PageRenderer]]


class AvailabilityMonitor:
    """Runs one availability check per tick and reports the outcome.

    Ticks are independent: nothing but the configuration survives from one
    tick to the next, so an item that stays available is announced on every
    tick.
    """

    def __init__(
        self,
        config: AppConfig,
        renderer_factory: RendererFactory,
        alert_sink: AlertSink,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.renderer_factory = renderer_factory
        self.alert_sink = alert_sink
        self.clock = clock
        self._stop = threading.Event()

    def _notify(self, message: str) -> bool:
        event = NotificationEvent(recipient=self.config.recipient, message=message)
        return notify_best_effort(self.alert_sink, event)

    def startup(self) -> bool:
        target = self.config.target
        interval = timedelta(seconds=self.config.check_interval_seconds)
        LOG.info("checking url=%s every %s item=%r", target.url, interval, target.target_item_text)
        return self._notify(
            f"Started monitoring '{target.target_item_text}' at {target.url} (every {interval})"
        )

    def _render(self) -> str:
        target = self.config.target
        settings = self.config.render
        with self.renderer_factory() as renderer:
            return renderer.render(
                target.url,
                target.container_selector,
                settings.settle_delay_seconds,
                settings.timeout_seconds,
            )

    def _tick(self) -> Verdict:
        snapshot = self._render()
        return extract(snapshot, self.config.target)

    def run_once(self) -> Verdict:
        target = self.config.target
        try:
            verdict = self._tick()
        except RenderError as exc:
            LOG.error("render failed url=%s error=%s", target.url, exc)
            self._report_error(exc)
            return Verdict.EXTRACTION_ERROR
        except Exception as exc:  # noqa: BLE001
            LOG.exception("check failed url=%s error=%s", target.url, exc)
            self._report_error(exc)
            return Verdict.EXTRACTION_ERROR

        if verdict is Verdict.AVAILABLE:
            LOG.info("item=%r status=%s url=%s", target.target_item_text, verdict.value, target.url)
            self._notify(f"{target.target_item_text} is AVAILABLE! {target.url}")
        elif verdict is Verdict.EXTRACTION_ERROR:
            self._report_error("rendered page could not be parsed")
        else:
            LOG.info("item=%r status=%s", target.target_item_text, verdict.value)
        return verdict

    def _report_error(self, error: object) -> None:
        if not self.config.notify_on_error:
            return
        self._notify(f"Availability check failed for '{self.config.target.target_item_text}': {error}")

    def run_forever(self) -> None:
        interval = self.config.check_interval_seconds
        self.startup()

        while not self._stop.is_set():
            started = self.clock()
            self.run_once()
            # fixed delay from tick start; a slow tick pushes the next one back, never overlaps it
            delay = max(0.0, started + interval - self.clock())
            LOG.debug("next check in %.1fs", delay)
            if self._stop.wait(delay):
                break

        LOG.info("monitor stopped")

    def stop(self) -> None:
        self._stop.set()


def _build_alert_sink(config: AppConfig, dry_run: bool) -> AlertSink:
    if dry_run or config.telegram is None:
        return DryRunAlertSink()
    return TelegramAlertSink(config.telegram.bot_token, config.telegram.chat_id)


def build_service(
    config_path: str | Path | None = None,
    dry_run: bool = False,
    headless: bool | None = None,
) -> AvailabilityMonitor:
    config = load_config(config_path, require_credentials=not dry_run)
    if headless is not None:
        config = config.model_copy(
            update={"render": config.render.model_copy(update={"headless": headless})}
        )
    return AvailabilityMonitor(
        config=config,
        renderer_factory=lambda: PlaywrightPageRenderer(config.render),
        alert_sink=_build_alert_sink(config, dry_run),
    )

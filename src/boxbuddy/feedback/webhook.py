"""HTTP webhook notifier for cooling, code and delivery notifications."""

from __future__ import annotations

import logging
import time
from typing import Optional

import requests

from boxbuddy.config.loader import WebhookConfig

LOGGER = logging.getLogger(__name__)


class WebhookNotifier:
    """Posts ``{title, body}`` notifications to a webhook over HTTP.

    Delivery is fire-and-forget: the first transport failure disables the
    notifier for the rest of its lifetime and nothing is retried.
    """

    def __init__(
        self,
        config: WebhookConfig,
        *,
        session: Optional[requests.Session] = None,
        source: str = "boxbuddy",
    ) -> None:
        self._config = config
        self._url = (config.url or "").strip()
        self._timeout_s = max(config.timeout_ms, 1) / 1000.0
        self._session = session or requests.Session()
        self._source = source
        self._disabled = not config.enabled or not self._url
        self._last_error: Optional[str] = None
        self._delivered = 0

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def disabled(self) -> bool:
        return self._disabled

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def delivered(self) -> int:
        return self._delivered

    def notify(self, title: str, body: str) -> None:
        if self._disabled:
            LOGGER.debug("Webhook disabled; dropping notification %r", title)
            return
        payload = {
            "title": title,
            "body": body,
            "source": self._source,
            "sent_at_ms": int(time.time() * 1000),
        }
        try:
            start = time.perf_counter()
            response = self._session.post(self._url, json=payload, timeout=self._timeout_s)
            latency_ms = (time.perf_counter() - start) * 1000.0
            response.raise_for_status()
            self._delivered += 1
            LOGGER.debug("Webhook delivered title=%r latency=%.2fms", title, latency_ms)
        except requests.RequestException as exc:
            self._disable(f"{exc.__class__.__name__}: {exc}")

    def _disable(self, reason: str) -> None:
        if self._disabled:
            return
        self._disabled = True
        self._last_error = reason
        LOGGER.warning("Disabling webhook notifications to %s (%s)", self._url, reason)


__all__ = ["WebhookNotifier"]

"""Calls the order service's auto-confirm sweep on a fixed interval.

The worker holds no order state: the sweep is idempotent on the server side,
so a tick that fails half-way is simply repeated on the next one.
"""

from __future__ import annotations

import json
import logging
import os
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, replace
from typing import Callable, Mapping

ENV_PREFIX = "HEED_AUTO_CONFIRM_WORKER_"
SWEEP_PATH = "/api/v1/orders/auto-confirm"
RETRYABLE_STATUS_CODES = {408, 429}

logger = logging.getLogger("heed.auto_confirm_worker")


@dataclass(frozen=True)
class AutoConfirmWorkerSettings:
    api_base_url: str
    interval_s: int
    timeout_s: float
    auth_token: str | None
    max_retries: int
    retry_backoff_s: float


@dataclass(frozen=True)
class SweepResult:
    ok: bool
    confirmed: int = 0
    status_code: int | None = None
    error: str | None = None
    attempts: int = 1

    @property
    def retryable(self) -> bool:
        if self.ok:
            return False
        if self.status_code is None:
            return True
        return self.status_code in RETRYABLE_STATUS_CODES or self.status_code >= 500


def _read(source: Mapping[str, str], name: str, default: str) -> str:
    return source.get(f"{ENV_PREFIX}{name}", default).strip()


def load_settings(env: Mapping[str, str] | None = None) -> AutoConfirmWorkerSettings:
    source = env if env is not None else os.environ

    settings = AutoConfirmWorkerSettings(
        api_base_url=_read(source, "API_BASE_URL", "http://localhost:8000").rstrip("/"),
        # hourly is plenty for a 48 hour threshold
        interval_s=int(_read(source, "INTERVAL_S", "3600")),
        timeout_s=float(_read(source, "TIMEOUT_S", "30")),
        auth_token=_read(source, "AUTH_TOKEN", "") or None,
        max_retries=int(_read(source, "MAX_RETRIES", "3")),
        retry_backoff_s=float(_read(source, "RETRY_BACKOFF_S", "1")),
    )

    if settings.interval_s < 1:
        raise ValueError(f"{ENV_PREFIX}INTERVAL_S must be >= 1")
    if settings.timeout_s <= 0:
        raise ValueError(f"{ENV_PREFIX}TIMEOUT_S must be > 0")
    if settings.max_retries < 0:
        raise ValueError(f"{ENV_PREFIX}MAX_RETRIES must be >= 0")
    if settings.retry_backoff_s < 0:
        raise ValueError(f"{ENV_PREFIX}RETRY_BACKOFF_S must be >= 0")
    return settings


def _parse_body(raw: str) -> SweepResult:
    if not raw:
        return SweepResult(ok=True)
    try:
        confirmed = int(json.loads(raw).get("confirmed", 0))
    except (json.JSONDecodeError, AttributeError):
        return SweepResult(ok=False, error="Sweep response is not a JSON object")
    except (TypeError, ValueError):
        return SweepResult(ok=False, error="Sweep response has a non-integer confirmed count")
    if confirmed < 0:
        return SweepResult(ok=False, error="Sweep response has a negative confirmed count")
    return SweepResult(ok=True, confirmed=confirmed)


def request_sweep(
    settings: AutoConfirmWorkerSettings,
    opener: Callable[..., object] = urllib.request.urlopen,
) -> SweepResult:
    headers = {"Content-Type": "application/json"}
    if settings.auth_token:
        headers["Authorization"] = f"Bearer {settings.auth_token}"
    request = urllib.request.Request(
        url=f"{settings.api_base_url}{SWEEP_PATH}",
        data=b"{}",
        method="POST",
        headers=headers,
    )

    try:
        with opener(request, timeout=settings.timeout_s) as response:
            parsed = _parse_body(response.read().decode("utf-8"))
            return replace(parsed, status_code=getattr(response, "status", 200))
    except urllib.error.HTTPError as exc:
        return SweepResult(ok=False, status_code=exc.code, error=f"HTTPError: {exc.code}")
    except urllib.error.URLError as exc:
        return SweepResult(ok=False, error=f"URLError: {exc.reason}")


def sweep_with_retries(
    settings: AutoConfirmWorkerSettings,
    opener: Callable[..., object] = urllib.request.urlopen,
    sleep: Callable[[float], None] = time.sleep,
) -> SweepResult:
    attempt = 1
    while True:
        result = replace(request_sweep(settings, opener=opener), attempts=attempt)
        if not result.retryable or attempt > settings.max_retries:
            return result
        sleep(settings.retry_backoff_s * (2 ** (attempt - 1)))
        attempt += 1


def run_forever(
    settings: AutoConfirmWorkerSettings,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    while True:
        result = sweep_with_retries(settings, sleep=sleep)
        if result.ok:
            logger.info("auto_confirm_tick confirmed=%s", result.confirmed)
        else:
            logger.warning(
                "auto_confirm_tick_failed status=%s error=%s attempts=%s",
                result.status_code,
                result.error,
                result.attempts,
            )
        sleep(settings.interval_s)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_forever(load_settings())

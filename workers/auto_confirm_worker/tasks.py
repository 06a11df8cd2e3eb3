from __future__ import annotations

from workers.auto_confirm_worker.worker import (
    AutoConfirmWorkerSettings,
    SweepResult,
    load_settings,
    sweep_with_retries,
)


def auto_confirm_tick(settings: AutoConfirmWorkerSettings | None = None) -> SweepResult:
    """One sweep with retries, for cron-style schedulers that own the interval."""
    return sweep_with_retries(settings or load_settings())

"""Periodic trigger for the auto-confirm sweep."""

from .worker import (
    AutoConfirmWorkerSettings,
    SweepResult,
    load_settings,
    request_sweep,
    run_forever,
    sweep_with_retries,
)

__all__ = [
    "AutoConfirmWorkerSettings",
    "SweepResult",
    "load_settings",
    "request_sweep",
    "run_forever",
    "sweep_with_retries",
]

"""Celery task package exposing the configured app and reconciliation tasks."""

from __future__ import annotations

from .celery_app import celery_app as app
from .reconcile import RECONCILE_TASKS, run_reconciliation

__all__ = [
    "app",
    "RECONCILE_TASKS",
    "run_reconciliation",
]

"""Celery application running the reconciliation tasks."""

from __future__ import annotations

from celery import Celery

from ..utils.config import GlobalSettings, get_settings

DEFAULT_BROKER_URL = "redis://localhost:6379/0"
RECONCILE_QUEUE = "reconcile"


def create_celery_app(settings: GlobalSettings | None = None) -> Celery:
    """
    Build the Celery application of the controller.

    Broker and result backend both use ``redis_url``; a local Redis is
    assumed when it is unset. Reconciliation results are only kept for an
    hour since callers read them right after the pass.
    """
    settings = settings or get_settings()
    url = settings.redis_url or DEFAULT_BROKER_URL

    app = Celery("aws_event_sources", broker=url, backend=url)
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        result_expires=3600,
        timezone="UTC",
        enable_utc=True,
        worker_hijack_root_logger=False,
        task_default_queue=RECONCILE_QUEUE,
        # a pass is redelivered when its worker dies before acknowledging it
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        # one reconciliation of a given source at a time per worker slot
        worker_prefetch_multiplier=1,
    )
    return app


celery_app = create_celery_app()

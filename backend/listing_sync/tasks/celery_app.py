from __future__ import annotations

import threading
import time
from typing import Any

from celery import Celery
from celery.app.task import Task
from celery.signals import task_postrun, task_prerun
from kombu import Queue

from listing_sync.core.config import Settings, get_settings
from listing_sync.core.metrics import celery_task_duration_seconds, tasks_in_progress

settings = get_settings()

SYNC_TASK_PREFIXES = ("listings.", "reviews.", "performance.", "keywords.", "media.")
QUEUE_BY_PREFIX: tuple[tuple[tuple[str, ...], str], ...] = (
    (SYNC_TASK_PREFIXES, "sync_queue"),
    (("posts.",), "publish_queue"),
    (("audits.",), "audit_queue"),
)
DEFAULT_QUEUE = "default_queue"

_started_lock = threading.Lock()
_started_at: dict[str, float] = {}


def _queue_for_task_name(task_name: str | None) -> str:
    for prefixes, queue_name in QUEUE_BY_PREFIX:
        if task_name and task_name.startswith(prefixes):
            return queue_name
    return DEFAULT_QUEUE


@task_prerun.connect
def _on_task_start(task_id=None, task=None, **_kwargs) -> None:
    if not task_id:
        return
    with _started_lock:
        _started_at[task_id] = time.perf_counter()
    tasks_in_progress.labels(queue_name=_queue_for_task_name(getattr(task, "name", None))).inc()


@task_postrun.connect
def _on_task_finish(task_id=None, task=None, **_kwargs) -> None:
    if not task_id:
        return
    with _started_lock:
        started = _started_at.pop(task_id, None)
    if started is None:
        return
    task_name = getattr(task, "name", None)
    queue_name = _queue_for_task_name(task_name)
    tasks_in_progress.labels(queue_name=queue_name).dec()
    celery_task_duration_seconds.labels(task_name=task_name or "unknown", queue_name=queue_name).observe(
        time.perf_counter() - started
    )


def _transport_config(app_settings: Settings) -> dict[str, Any]:
    return {
        "broker_url": app_settings.celery_broker_url,
        "result_backend": app_settings.celery_result_backend,
        "task_always_eager": app_settings.celery_task_always_eager,
        "task_eager_propagates": app_settings.celery_task_eager_propagates,
    }


def create_celery_app() -> Celery:
    eager_tests = settings.app_env.lower() == "test"

    class ListingSyncTask(Task):
        def retry(self, *args, **kwargs):
            # Eager tests surface the underlying error instead of re-queueing.
            if eager_tests:
                exc = kwargs.get("exc")
                if exc is not None:
                    raise exc
                raise RuntimeError("Retry requested during tests without an underlying exception.")
            return super().retry(*args, **kwargs)

    celery = Celery("listing_sync", task_cls=ListingSyncTask)
    routes: dict[str, dict[str, str]] = {}
    for prefixes, queue_name in QUEUE_BY_PREFIX:
        routes.update({f"{prefix}*": {"queue": queue_name} for prefix in prefixes})
    routes["*"] = {"queue": DEFAULT_QUEUE}

    celery.conf.update(
        **_transport_config(settings),
        worker_prefetch_multiplier=1,
        task_default_queue=DEFAULT_QUEUE,
        task_queues=tuple(Queue(name) for name in ("sync_queue", "publish_queue", "audit_queue", DEFAULT_QUEUE)),
        task_routes=routes,
        timezone="UTC",
    )
    celery.autodiscover_tasks(["listing_sync.tasks"])
    return celery


celery_app = create_celery_app()

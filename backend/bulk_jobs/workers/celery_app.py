"""Celery application factory for queued bulk jobs."""

import ssl

from celery import Celery

from bulk_jobs.core.config import get_settings
from bulk_jobs.utils.redis_client import normalize_redis_url

settings = get_settings()

BULK_QUEUE = "bulk"


def _with_ssl_param(url: str) -> str:
    # The Redis result backend reads ssl_cert_reqs from the URL during init.
    if "ssl_cert_reqs" in url:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}ssl_cert_reqs=none"


broker_url, broker_tls = normalize_redis_url(settings.celery_broker_url or settings.redis_url)
backend_url, backend_tls = normalize_redis_url(settings.celery_result_url or settings.redis_url)
is_ssl = broker_tls or backend_tls

if is_ssl:
    broker_url = _with_ssl_param(broker_url)
    backend_url = _with_ssl_param(backend_url)

celery_app = Celery(
    "bulk_jobs",
    broker=broker_url,
    backend=backend_url,
)

celery_config = {
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": "UTC",
    "enable_utc": True,
    "task_acks_late": True,  # Acknowledge after task completion
    # Jobs only start from pending; a redelivered task fails the job instead.
    "task_reject_on_worker_lost": False,
    "worker_prefetch_multiplier": 1,  # One bulk job per worker slot
    "task_time_limit": 3600,
    "task_soft_time_limit": 3300,
    "result_expires": 3600,
    "broker_connection_retry_on_startup": True,
    "worker_hijack_root_logger": False,
    "result_backend_always_retry": True,
    "result_backend_max_retries": 3,
    "task_default_queue": BULK_QUEUE,
    "task_routes": {
        "bulk_jobs.workers.tasks.run_bulk_job": {"queue": BULK_QUEUE},
    },
}

if is_ssl:
    ssl_dict = {"ssl_cert_reqs": ssl.CERT_NONE}
    celery_config["broker_use_ssl"] = ssl_dict
    celery_config["redis_backend_use_ssl"] = ssl_dict
    celery_config["broker_transport_options"] = ssl_dict.copy()
    celery_config["result_backend_transport_options"] = ssl_dict.copy()

celery_app.conf.update(celery_config)

# Explicitly import tasks to ensure they're registered with celery_app
from bulk_jobs.workers.tasks import run_bulk_job  # noqa: E402,F401

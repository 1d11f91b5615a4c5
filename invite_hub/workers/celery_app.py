from celery import Celery
from celery.signals import setup_logging

from invite_hub.core.config import get_settings
from invite_hub.core.logging import configure_logging

settings = get_settings()

REFERRALS_QUEUE = "q_referrals"

celery_app = Celery(
    "invite_hub",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "invite_hub.workers.tasks.referrals",
    ],
)

celery_app.conf.update(
    task_default_queue="q_normal",
    task_routes={
        "invite_hub.workers.tasks.referrals.*": {"queue": REFERRALS_QUEUE},
    },
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
)


@setup_logging.connect
def _configure_worker_logging(**_kwargs) -> None:
    configure_logging(settings.log_level, app_env=settings.app_env)

"""
Celery application instance.

Delivers account emails (invites and password setup links) off the request
path. Broker and result backend default to REDIS_URL.
"""

from celery import Celery

from lms.core.config import settings

PASSWORD_SETUP_TASK = "lms.workers.email_tasks.send_password_setup_email"

celery_app = Celery(
    "lms",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "lms.workers.email_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Results live as long as the setup link they carried
    result_expires=settings.PASSWORD_SETUP_TOKEN_TTL_SECONDS,
    # Redelivered after a worker crash
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_queues={
        "default": {},
        "account_email": {},
    },
    task_routes={
        PASSWORD_SETUP_TASK: {"queue": "account_email"},
    },
    task_annotations={
        # Stay under the Resend API send rate
        PASSWORD_SETUP_TASK: {"rate_limit": "10/s"},
    },
)

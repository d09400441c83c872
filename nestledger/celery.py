from celery import Celery
from celery.signals import worker_ready
from kombu import Queue

from nestledger.config import env
from nestledger.logger import logger


QUEUE_DEFAULT = env.QUEUE_DEFAULT
QUEUE_NOTIFICATIONS = env.QUEUE_NOTIFICATIONS

celery_config = env.get_celery_config()

celery_app = Celery(
  "tasks",
  broker=celery_config["broker_url"],
  result_backend=celery_config["result_backend"],
  include=[
    "nestledger.tasks.billing.late_fees",
    "nestledger.tasks.billing.monthly_invoices",
    "nestledger.tasks.billing.notifications",
  ],
)

celery_app.conf.update(
  enable_utc=True,
  timezone="UTC",
  broker_connection_retry_on_startup=True,
  task_acks_late=True,
  task_time_limit=env.CELERY_TASK_TIME_LIMIT,
  task_soft_time_limit=env.CELERY_TASK_SOFT_TIME_LIMIT,
  task_default_queue=QUEUE_DEFAULT,
  task_default_retry_delay=env.CELERY_TASK_RETRY_DELAY,
  task_max_retries=env.CELERY_TASK_MAX_RETRIES,
  task_queues=(Queue(QUEUE_DEFAULT), Queue(QUEUE_NOTIFICATIONS)),
  task_routes={
    "nestledger.tasks.send_billing_email": {"queue": QUEUE_NOTIFICATIONS},
  },
  task_serializer=celery_config["task_serializer"],
  result_serializer=celery_config["result_serializer"],
  accept_content=celery_config["accept_content"],
  task_acks_on_failure_or_timeout=True,
  task_reject_on_worker_lost=True,
  result_expires=86400,
)


# Configure Celery Beat Schedule
from nestledger.tasks.schedule import BEAT_SCHEDULE  # noqa: E402

celery_app.conf.beat_schedule = BEAT_SCHEDULE


@worker_ready.connect
def validate_worker_config(sender=None, **kwargs):
  """Validate configuration when worker starts."""
  logger.info("Starting Celery worker...")

  missing = env.validate()
  if missing:
    logger.error(f"Worker configuration missing required settings: {missing}")
    if env.is_production():
      raise RuntimeError(f"Missing required settings: {', '.join(missing)}")
    logger.warning("Continuing with incomplete configuration (non-production)")

  logger.info("Celery worker startup complete")

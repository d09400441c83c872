"""
Celery Beat Schedule Configuration

Periodic billing jobs. Each scheduled task calls the same entry point the
administrator's "run now" action uses.
"""

from celery.schedules import crontab
from nestledger.config import env
from nestledger.celery import QUEUE_DEFAULT

BEAT_SCHEDULE = {}

if env.BILLING_SCHEDULER_ENABLED:
  BEAT_SCHEDULE.update(
    {
      # Daily late fee accrual over every overdue pending invoice
      "apply-daily-late-fees": {
        "task": "nestledger.tasks.apply_late_fees",
        "schedule": crontab(hour=env.LATE_FEE_RUN_HOUR, minute=0),
        "options": {
          "queue": QUEUE_DEFAULT,
          "priority": 8,
        },
      },
      # Monthly invoices for administrators whose billing cycle day is today
      "generate-monthly-invoices": {
        "task": "nestledger.tasks.generate_monthly_invoices",
        "schedule": crontab(hour=env.INVOICE_GENERATION_RUN_HOUR, minute=0),
        "options": {
          "queue": QUEUE_DEFAULT,
          "priority": 8,
        },
      },
    }
  )

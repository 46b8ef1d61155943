import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("parkwise")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Expire assignments past their last day and release their spots - every hour
    "expire-lapsed-assignments": {
        "task": "bulk_bookings.expire_lapsed_assignments",
        "schedule": crontab(minute=5),
    },
    # Expire chunks past their last day - every hour, after the assignments
    "expire-lapsed-chunks": {
        "task": "bulk_bookings.expire_lapsed_chunks",
        "schedule": crontab(minute=10),
    },
    # Recompute chunk counters from assignments - every night
    "reconcile-chunk-usage": {
        "task": "bulk_bookings.reconcile_chunk_usage",
        "schedule": crontab(minute=30, hour=3),
    },
}
